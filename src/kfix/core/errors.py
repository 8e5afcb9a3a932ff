"""
Error Taxonomy for the Fix Pipeline.

Every failure raised by the loader, the fix engine, the reconciler or the output
sink derives from `KfixError`. Each error carries optional context (package import
path, file, fix name) so that a failure can be reproduced from the message alone.

Hierarchy::

    KfixError
    ├── ResolutionError        (argument does not name a loadable package)
    ├── FixApplicationError    (a rewrite rule cannot process a tree)
    │   └── IterationCapExceeded
    ├── RenderError            (a tree cannot be regenerated into source)
    └── OutputError            (write failure or diff failure)
"""

from typing import Optional


class KfixError(Exception):
  """
  Base class for all pipeline errors.

  Attributes:
      cause (str): Human readable description of what went wrong.
      package (Optional[str]): Import path of the package being processed.
      file (Optional[str]): Path of the file being processed.
      fix (Optional[str]): Name of the fix involved.
  """

  def __init__(
    self,
    cause: str,
    package: Optional[str] = None,
    file: Optional[str] = None,
    fix: Optional[str] = None,
  ) -> None:
    super().__init__(cause)
    self.cause = cause
    self.package = package
    self.file = file
    self.fix = fix

  def with_context(
    self,
    package: Optional[str] = None,
    file: Optional[str] = None,
    fix: Optional[str] = None,
  ) -> "KfixError":
    """
    Fills in missing context fields in place and returns self.

    Fields that are already set are kept, so the innermost (most precise)
    context wins when an error travels up through several layers.
    """
    if self.package is None:
      self.package = package
    if self.file is None:
      self.file = file
    if self.fix is None:
      self.fix = fix
    return self

  def __str__(self) -> str:
    parts = []
    if self.package:
      parts.append(f"package {self.package}")
    if self.file:
      parts.append(f"file {self.file}")
    if self.fix:
      parts.append(f"fix {self.fix}")
    if not parts:
      return self.cause
    return f"{', '.join(parts)}: {self.cause}"


class ResolutionError(KfixError):
  """Raised when a path argument does not resolve to a loadable package."""

  def __init__(self, path: str, cause: str) -> None:
    super().__init__(cause)
    self.path = path

  def __str__(self) -> str:
    return f"unable to import package from {self.path!r}: {self.cause}"


class FixApplicationError(KfixError):
  """Raised when a rewrite rule cannot safely process a file's tree."""


class IterationCapExceeded(FixApplicationError):
  """
  Raised when a fix keeps reporting changes after the iteration cap.

  This is an internal error: a well-behaved fix converges after a couple
  of applications.
  """

  def __init__(self, fix: str, cap: int, file: Optional[str] = None) -> None:
    super().__init__(
      f"internal error: fix did not converge after {cap} iterations",
      file=file,
      fix=fix,
    )
    self.cap = cap


class RenderError(KfixError):
  """Raised when the reconciler cannot regenerate source from a tree."""


class OutputError(KfixError):
  """Raised when fixed output cannot be written or diffed."""
