"""
Output Sink: Diff Preview or In-Place Rewrite.

The sink receives each fixed file from the engine, reconciles it into canonical
bytes and then either:

- **WRITE**: overwrites the file. This is a plain, non-atomic write with no backup;
  an interruption mid-write can leave a truncated file.
- **DIFF**: prints ``diff <path> fixed/<path>`` followed by a unified diff. The file
  on disk is never touched.

Two differs are available. `UnifiedDiffer` computes the diff in-process with
`difflib`. `ExternalDiffer` runs a ``diff -u`` compatible executable over two
temporary snapshots, which are always removed afterwards.
"""

import difflib
import os
import subprocess
import sys
import tempfile
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import List, Optional, TextIO, Union

from kfix.core.errors import KfixError, OutputError
from kfix.core.reconciler import Reconciler
from kfix.core.reporter import Reporter
from kfix.core.units import FileUnit

_NO_NEWLINE = "\\ No newline at end of file\n"


class OutputMode(str, Enum):
  DIFF = "diff"
  WRITE = "write"


def _decode(data: bytes) -> str:
  return data.decode("utf-8", errors="replace")


class UnifiedDiffer:
  """
  In-process unified diff.
  """

  def __init__(self, context: int = 3) -> None:
    self.context = context

  def diff(self, original: bytes, fixed: bytes, label: str) -> str:
    """
    Computes a unified diff between two byte sequences.

    Args:
        original: Bytes before fixing.
        fixed: Bytes after fixing.
        label: Original path; the ``+++`` line uses its ``fixed/`` counterpart.

    Returns:
        str: The unified diff, empty if the inputs are identical.
    """
    if original == fixed:
      return ""

    a_lines = _terminate_lines(_split_lines(_decode(original)))
    b_lines = _terminate_lines(_split_lines(_decode(fixed)))
    return "".join(difflib.unified_diff(a_lines, b_lines, fromfile=label, tofile=fixed_path(label), n=self.context))


def _split_lines(text: str) -> List[str]:
  """
  Splits on ``\\n`` only, keeping line ends. `str.splitlines` also breaks on form
  feeds and Unicode separators, which `diff` treats as ordinary characters.
  """
  lines = [line + "\n" for line in text.split("\n")]
  lines[-1] = lines[-1][:-1]
  return lines if lines[-1] else lines[:-1]


def _terminate_lines(lines: List[str]) -> List[str]:
  """Marks a missing trailing newline the way `diff -u` does."""
  if lines and not lines[-1].endswith("\n"):
    lines[-1] = lines[-1] + "\n" + _NO_NEWLINE
  return lines


class ExternalDiffer:
  """
  Runs an external ``diff -u`` compatible tool over two temporary snapshots.

  The call blocks until the tool exits. There is no timeout.
  """

  def __init__(self, tool: str = "diff") -> None:
    self.tool = tool

  def diff(self, original: bytes, fixed: bytes, label: str) -> str:
    """
    Computes a unified diff with the external tool.

    Args:
        original: Bytes before fixing.
        fixed: Bytes after fixing.
        label: Unused; the tool labels hunks with the snapshot paths.

    Returns:
        str: The tool's output, verbatim.

    Raises:
        OutputError: If a snapshot cannot be written, the tool cannot be started,
            or the tool fails without producing output.
    """
    snapshots: List[str] = []
    try:
      snapshots.append(_write_temp_file(original))
      snapshots.append(_write_temp_file(fixed))
      try:
        proc = subprocess.run([self.tool, "-u", *snapshots], capture_output=True)
      except OSError as e:
        raise OutputError(f"cannot run {self.tool}: {e}") from e
    finally:
      for name in snapshots:
        try:
          os.remove(name)
        except FileNotFoundError:
          pass

    output = _decode(proc.stdout)
    # diff exits non-zero when the files differ; that is fine as long as it printed something.
    if proc.returncode != 0 and not output:
      raise OutputError(f"computing diff: {self.tool} exited with {proc.returncode}: {_decode(proc.stderr).strip()}")
    return output


def _write_temp_file(data: bytes) -> str:
  """
  Persists bytes to a new temporary file and returns its name.

  Raises:
      OutputError: If the snapshot cannot be written. No file is left behind.
  """
  try:
    fd, name = tempfile.mkstemp(prefix="kfix")
  except OSError as e:
    raise OutputError(f"cannot create temporary file: {e}") from e
  try:
    with os.fdopen(fd, "wb") as f:
      f.write(data)
  except OSError as e:
    os.remove(name)
    raise OutputError(f"cannot write temporary file {name}: {e}") from e
  return name


Differ = Union[UnifiedDiffer, ExternalDiffer]


class OutputSink:
  """
  Emits fixed files as diffs or rewrites.

  Attributes:
      mode (OutputMode): DIFF or WRITE.
      reconciler (Reconciler): Renders trees into canonical bytes.
      differ (Differ): Used in DIFF mode.
      stream (TextIO): Destination of diff output.
      reporter (Reporter): Structured log handle.
  """

  def __init__(
    self,
    mode: OutputMode = OutputMode.WRITE,
    reconciler: Optional[Reconciler] = None,
    differ: Optional[Differ] = None,
    stream: Optional[TextIO] = None,
    reporter: Optional[Reporter] = None,
  ) -> None:
    self.mode = mode
    self.reconciler = reconciler or Reconciler()
    self.differ = differ or UnifiedDiffer()
    self._stream = stream
    self.reporter = reporter or Reporter(name="kfix.sink")

  @property
  def stream(self) -> TextIO:
    # Resolved lazily so that a replaced sys.stdout (e.g. pytest capture) is honoured.
    return self._stream if self._stream is not None else sys.stdout

  def handle_fix(self, unit: FileUnit, last_fix: Optional[str] = None) -> None:
    """
    Engine callback: reconciles a fixed file and emits it.

    Args:
        unit: The fixed file.
        last_fix: Name of the last fix that changed the tree, for error context.

    Raises:
        RenderError: If the tree cannot be rendered.
        OutputError: If the output cannot be emitted.
    """
    try:
      fixed = self.reconciler.render(unit.tree)
      self.emit(unit.path, unit.original, fixed, location=unit.disk_path)
    except KfixError as e:
      raise e.with_context(file=str(unit.path), fix=last_fix)

  def emit(self, path: Path, original: bytes, fixed: bytes, location: Optional[Path] = None) -> None:
    """
    Writes or diffs one file.

    Args:
        path: The file's path, as reported by the loader.
        location: Where to write in WRITE mode. Defaults to `path`.
        original: Bytes read from disk before fixing.
        fixed: Reconciled bytes.

    Raises:
        OutputError: If writing or diffing fails.
    """
    if self.mode == OutputMode.DIFF:
      self._emit_diff(path, original, fixed)
    else:
      self._emit_write(path, original, fixed, location or path)

  def _emit_diff(self, path: Path, original: bytes, fixed: bytes) -> None:
    if original == fixed:
      self.reporter.v(1).info("no changes", file=str(path))
      return

    data = self.differ.diff(original, fixed, str(path))
    if not data:
      return

    self.stream.write(f"diff {path} {fixed_path(path)}\n")
    self.stream.write(data)
    self.stream.flush()

  def _emit_write(self, path: Path, original: bytes, fixed: bytes, location: Path) -> None:
    if original == fixed:
      self.reporter.v(1).info("no changes", file=str(path))
      return

    try:
      Path(location).write_bytes(fixed)
    except OSError as e:
      raise OutputError(f"writing file: {e}", file=str(path)) from e
    self.reporter.v(1).info("rewrote file", file=str(path))


def fixed_path(path: Union[str, Path]) -> str:
  """
  Returns the virtual destination path used in diff headers: ``fixed/<path>``.
  """
  relative = Path(path).as_posix().lstrip("/")
  return str(PurePosixPath("fixed") / relative)
