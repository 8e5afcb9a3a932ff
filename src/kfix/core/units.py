"""
Units of Work.

`FileUnit` and `PackageUnit` are produced by the loader and consumed by the fix
engine. A `FileUnit` owns its LibCST tree; the engine replaces `tree` as fixes are
applied, while `original` keeps the bytes read from disk for diffing.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import libcst as cst


@dataclass
class FileUnit:
  """
  A parsed source file.

  Attributes:
      path: The path shown in diff headers and messages.
      tree: The current syntax tree.
      original: Bytes read from disk.
      location: Where the file lives on disk. Defaults to `path`.
  """

  path: Path
  tree: cst.Module
  original: bytes
  location: Optional[Path] = None

  @property
  def disk_path(self) -> Path:
    return self.location if self.location is not None else self.path

  @classmethod
  def from_source(cls, path: Path, source: bytes, location: Optional[Path] = None) -> "FileUnit":
    """
    Parses source bytes into a unit.

    Raises:
        libcst.ParserSyntaxError: If the source is not valid Python.
    """
    return cls(path=path, tree=cst.parse_module(source), original=source, location=location)


@dataclass
class PackageUnit:
  import_path: str
  directory: Path
  files: List[FileUnit] = field(default_factory=list)
