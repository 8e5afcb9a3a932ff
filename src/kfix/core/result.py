"""
Data structures representing the output of the fix engine.

A package run yields a `FixRunResult`: the per-file reports for files that were
fixed and emitted, plus at most one `FixFailure` describing why processing stopped.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class FileReport(BaseModel):
  """
  Outcome of fixing a single file.
  """

  path: str = Field(description="Path of the file.")
  iterations: Dict[str, int] = Field(
    default_factory=dict,
    description="Fix name -> number of applications that reported a change.",
  )

  @property
  def changed(self) -> bool:
    """True if at least one fix rewrote the tree."""
    return any(count > 0 for count in self.iterations.values())

  @property
  def last_fix(self) -> Optional[str]:
    """Name of the last fix (in application order) that changed the tree."""
    changed = [name for name, count in self.iterations.items() if count > 0]
    return changed[-1] if changed else None


class FixFailure(BaseModel):
  """
  Reason a package could not be completed.
  """

  file: str = Field(description="The file being processed when the failure happened.")
  fix: Optional[str] = Field(None, description="The fix involved, if any.")
  cause: str = Field(description="Human readable cause.")

  def __str__(self) -> str:
    if self.fix:
      return f"{self.file}: fix {self.fix}: {self.cause}"
    return f"{self.file}: {self.cause}"


class FixRunResult(BaseModel):
  """
  Container for the result of fixing one package.
  """

  package: str = Field(description="Import path of the package.")
  files: List[FileReport] = Field(default_factory=list, description="Reports of completed files.")
  failure: Optional[FixFailure] = Field(None, description="Set when the package was aborted.")

  @property
  def success(self) -> bool:
    return self.failure is None

  @property
  def changed_files(self) -> List[str]:
    return [report.path for report in self.files if report.changed]
