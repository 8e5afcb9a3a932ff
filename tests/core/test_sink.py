"""
Tests for the Output Sink and Differs.

Verifies:
1.  Diff headers and unified diff bodies.
2.  Diff-mode purity: the source file is never touched and no temp files remain.
3.  Unchanged files produce no output at all.
4.  Write mode overwrites changed files and leaves identical ones alone.
5.  Failures surface as OutputError / RenderError with file context.
"""

import io
import shutil
import tempfile
from pathlib import Path
from unittest.mock import MagicMock

import libcst as cst
import pytest

from kfix.core.errors import OutputError, RenderError
from kfix.core.sink import ExternalDiffer, OutputMode, OutputSink, UnifiedDiffer, fixed_path
from kfix.core.units import FileUnit


@pytest.fixture
def isolated_tmp(tmp_path, monkeypatch) -> Path:
  """Routes temporary files into a private directory that tests can inspect."""
  directory = tmp_path / "tmp"
  directory.mkdir()
  monkeypatch.setattr(tempfile, "tempdir", str(directory))
  return directory


def test_fixed_path():
  assert fixed_path("pkg/a.py") == "fixed/pkg/a.py"
  assert fixed_path("/abs/pkg/a.py") == "fixed/abs/pkg/a.py"


def test_unified_differ_identical_is_empty():
  assert UnifiedDiffer().diff(b"x = 1\n", b"x = 1\n", "a.py") == ""


def test_unified_differ_output():
  out = UnifiedDiffer().diff(b"x = 1\ny = 2\n", b"x = 1\ny = 3\n", "pkg/a.py")

  assert out.startswith("--- pkg/a.py\n+++ fixed/pkg/a.py\n@@ -1,2 +1,2 @@\n")
  assert " x = 1\n-y = 2\n+y = 3\n" in out


def test_unified_differ_marks_missing_newline():
  out = UnifiedDiffer().diff(b"x = 1", b"x = 1\n", "a.py")

  assert "-x = 1\n\\ No newline at end of file\n+x = 1\n" in out


def test_diff_mode_prints_header_and_leaves_file(tmp_path):
  target = tmp_path / "a.py"
  target.write_bytes(b"x=1\n")
  stream = io.StringIO()
  sink = OutputSink(mode=OutputMode.DIFF, stream=stream)

  sink.emit(target, b"x=1\n", b"x = 1\n")

  out = stream.getvalue()
  assert out.startswith(f"diff {target} {fixed_path(target)}\n--- {target}\n")
  assert "-x=1\n+x = 1\n" in out
  assert target.read_bytes() == b"x=1\n"


def test_diff_mode_unchanged_file_prints_nothing(tmp_path):
  """
  Scenario: A file that is already canonical.
  Expectation: No header, no body, and the file is not touched.
  """
  target = tmp_path / "a.py"
  target.write_bytes(b"x = 1\n")
  before = target.stat().st_mtime_ns
  stream = io.StringIO()
  sink = OutputSink(mode=OutputMode.DIFF, stream=stream)

  sink.handle_fix(FileUnit.from_source(target, b"x = 1\n"))

  assert stream.getvalue() == ""
  assert target.read_bytes() == b"x = 1\n"
  assert target.stat().st_mtime_ns == before


def test_write_mode_rewrites_file(tmp_path):
  target = tmp_path / "a.py"
  target.write_bytes(b"x=1\n")

  OutputSink(mode=OutputMode.WRITE).handle_fix(FileUnit.from_source(target, b"x=1\n"))

  assert target.read_bytes() == b"x = 1\n"


def test_write_mode_skips_identical_bytes(tmp_path):
  missing = tmp_path / "never_written.py"

  OutputSink(mode=OutputMode.WRITE).emit(missing, b"x = 1\n", b"x = 1\n")

  assert not missing.exists()


def test_write_failure_raises_output_error(tmp_path):
  target = tmp_path / "no_such_dir" / "a.py"

  with pytest.raises(OutputError) as excinfo:
    OutputSink(mode=OutputMode.WRITE).emit(target, b"x=1\n", b"x = 1\n")

  assert excinfo.value.file == str(target)
  assert "writing file" in str(excinfo.value)


def test_render_error_gets_file_and_fix_context(tmp_path):
  reconciler = MagicMock()
  reconciler.render.side_effect = RenderError("generated code is not valid Python: bad")
  sink = OutputSink(mode=OutputMode.WRITE, reconciler=reconciler)
  unit = FileUnit(path=tmp_path / "a.py", tree=cst.parse_module("x = 1\n"), original=b"x = 1\n")

  with pytest.raises(RenderError) as excinfo:
    sink.handle_fix(unit, "logr")

  assert excinfo.value.file == str(tmp_path / "a.py")
  assert excinfo.value.fix == "logr"


@pytest.mark.skipif(shutil.which("diff") is None, reason="diff executable not available")
def test_external_differ_cleans_up(isolated_tmp):
  out = ExternalDiffer("diff").diff(b"x = 1\n", b"x = 2\n", "a.py")

  assert "-x = 1\n" in out
  assert "+x = 2\n" in out
  assert list(isolated_tmp.iterdir()) == []


@pytest.mark.skipif(shutil.which("diff") is None, reason="diff executable not available")
def test_external_differ_in_sink(tmp_path, isolated_tmp):
  target = tmp_path / "a.py"
  target.write_bytes(b"x=1\n")
  stream = io.StringIO()
  sink = OutputSink(mode=OutputMode.DIFF, differ=ExternalDiffer(), stream=stream)

  sink.emit(target, b"x=1\n", b"x = 1\n")

  assert stream.getvalue().startswith(f"diff {target} {fixed_path(target)}\n")
  assert target.read_bytes() == b"x=1\n"
  assert list(isolated_tmp.iterdir()) == []


def test_external_differ_missing_tool(isolated_tmp):
  with pytest.raises(OutputError, match="cannot run"):
    ExternalDiffer("kfix-no-such-diff-tool").diff(b"a\n", b"b\n", "a.py")

  assert list(isolated_tmp.iterdir()) == []


@pytest.mark.skipif(shutil.which("false") is None, reason="false executable not available")
def test_external_differ_failure_without_output(isolated_tmp):
  with pytest.raises(OutputError, match="exited with 1"):
    ExternalDiffer("false").diff(b"a\n", b"b\n", "a.py")

  assert list(isolated_tmp.iterdir()) == []


def test_unified_differ_splits_on_newline_only():
  original = 'S = "a\u2028b"  # c\x0cd\nx=1\n'.encode("utf-8")
  fixed = 'S = "a\u2028b"  # c\x0cd\nx = 1\n'.encode("utf-8")

  out = UnifiedDiffer().diff(original, fixed, "a.py")

  assert "@@ -1,2 +1,2 @@\n" in out
  assert ' S = "a\u2028b"  # c\x0cd\n-x=1\n+x = 1\n' in out


def test_unified_differ_keeps_carriage_returns():
  out = UnifiedDiffer().diff(b"x=1\r\ny = 2\r\n", b"x = 1\r\ny = 2\r\n", "a.py")

  assert "@@ -1,2 +1,2 @@\n-x=1\r\n+x = 1\r\n y = 2\r\n" in out


def test_write_mode_uses_disk_location(tmp_path, monkeypatch):
  """
  The display path only labels output; the write goes to the unit's location.
  """
  target = tmp_path / "base" / "a.py"
  target.parent.mkdir()
  target.write_bytes(b"x=1\n")
  monkeypatch.chdir(tmp_path)
  unit = FileUnit.from_source(Path("a.py"), b"x=1\n", location=target)

  OutputSink(mode=OutputMode.WRITE).handle_fix(unit)

  assert target.read_bytes() == b"x = 1\n"
  assert not (tmp_path / "a.py").exists()
