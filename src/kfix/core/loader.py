"""
Package Resolution.

Turns command-line arguments into `PackageUnit` objects. An argument may be:

1.  A directory: the package is the directory's own ``*.py`` files (not recursive),
    sorted by file name.
2.  A single ``.py`` file: a package of one file.
3.  A dotted import name (``example.pkg``): located with `importlib.util.find_spec`.
    The package itself is not executed, though the import system imports the
    parents of a dotted name.
4.  A directory followed by ``/...``: expanded by `PackageLoader.expand` into every
    package directory below it.

Every file is read exactly once and parsed with LibCST; the bytes are kept on the
unit for later diffing.
"""

import importlib.util
import os
from pathlib import Path
from typing import Iterable, List, Optional

import libcst as cst

from kfix.core.errors import ResolutionError
from kfix.core.units import FileUnit, PackageUnit

RECURSIVE_SUFFIX = "/..."
_SKIPPED_DIRS = {"__pycache__", "node_modules"}


class PackageLoader:
  """
  Resolves path arguments into parsed packages.

  Attributes:
      cwd (Path): Base directory for relative arguments and reported file paths.
  """

  def __init__(self, cwd: Optional[Path] = None) -> None:
    self.cwd = (cwd or Path.cwd()).resolve()

  def expand(self, args: Iterable[str]) -> List[str]:
    """
    Expands ``dir/...`` arguments into one argument per package directory.

    A package directory is any directory below ``dir`` (including ``dir``) that
    holds at least one ``.py`` file. Hidden directories are skipped. Other
    arguments pass through unchanged, and argument order is preserved.

    Args:
        args: Raw command-line arguments.

    Returns:
        List[str]: The expanded argument list.
    """
    expanded: List[str] = []
    for arg in args:
      if arg != "..." and not arg.endswith(RECURSIVE_SUFFIX):
        expanded.append(arg)
        continue

      root_arg = arg[: -len(RECURSIVE_SUFFIX)] if arg != "..." else "."
      root = self._absolute(root_arg or "/")
      if not root.is_dir():
        # Left as is so that resolve() reports it.
        expanded.append(arg)
        continue

      for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if not d.startswith(".") and d not in _SKIPPED_DIRS)
        if any(name.endswith(".py") for name in filenames):
          expanded.append(self._display(Path(dirpath)))
    return expanded

  def resolve(self, arg: str) -> PackageUnit:
    """
    Loads and parses the package named by an argument.

    Args:
        arg: A directory, a ``.py`` file, or a dotted import name.

    Returns:
        PackageUnit: The package with its parsed files in name order.

    Raises:
        ResolutionError: If the argument does not name a loadable package.
    """
    location = self._locate(arg)

    if location.is_file():
      directory = location.parent
      sources = [location]
    else:
      directory = location
      sources = sorted(p for p in location.iterdir() if p.suffix == ".py" and p.is_file())
      if not sources:
        raise ResolutionError(arg, "no Python source files found")

    files = [self._load_file(arg, path) for path in sources]
    return PackageUnit(import_path=self._import_path(directory), directory=directory, files=files)

  def describe(self, arg: str) -> str:
    """
    Returns the import identifier of the package named by an argument.

    Raises:
        ResolutionError: If the argument cannot be located.
    """
    location = self._locate(arg)
    return self._import_path(location.parent if location.is_file() else location)

  def _locate(self, arg: str) -> Path:
    path = self._absolute(arg)
    if path.exists():
      if path.is_file() and path.suffix != ".py":
        raise ResolutionError(arg, "not a Python source file")
      return path

    if _is_dotted_name(arg):
      try:
        spec = importlib.util.find_spec(arg)
      except (ImportError, ValueError) as e:
        raise ResolutionError(arg, str(e)) from e
      if spec is not None:
        if spec.submodule_search_locations:
          return Path(list(spec.submodule_search_locations)[0]).resolve()
        if spec.origin and spec.origin.endswith(".py"):
          return Path(spec.origin).resolve()
        raise ResolutionError(arg, "module has no Python source")

    raise ResolutionError(arg, "no such file, directory or package")

  def _load_file(self, arg: str, path: Path) -> FileUnit:
    try:
      source = path.read_bytes()
    except OSError as e:
      raise ResolutionError(arg, f"reading {path}: {e}") from e
    try:
      return FileUnit.from_source(Path(self._display(path)), source, location=path)
    except cst.ParserSyntaxError as e:
      raise ResolutionError(arg, f"parsing {self._display(path)}: {e.message} (line {e.raw_line})") from e

  def _absolute(self, arg: str) -> Path:
    path = Path(arg)
    if not path.is_absolute():
      path = self.cwd / path
    return path.resolve()

  def _display(self, path: Path) -> str:
    """Path relative to cwd when below it, absolute otherwise."""
    try:
      return str(path.relative_to(self.cwd)) or "."
    except ValueError:
      return str(path)

  @staticmethod
  def _import_path(directory: Path) -> str:
    """
    Derives the dotted import path by walking up ``__init__.py`` parents.

    A directory that is not itself a regular package is identified by its name.
    """
    parts = [directory.name]
    current = directory
    if (current / "__init__.py").is_file():
      while (current.parent / "__init__.py").is_file() and current.parent != current:
        current = current.parent
        parts.append(current.name)
    return ".".join(reversed(parts)) or str(directory)


def _is_dotted_name(arg: str) -> bool:
  return bool(arg) and all(part.isidentifier() for part in arg.split("."))
