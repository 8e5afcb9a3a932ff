"""
Orchestration Engine for Fix Application.

This module provides the `FixEngine`, which applies an ordered sequence of fixes to
every file of a package.

For each file, in loader order:

1.  **Fixed-point application**: each fix, in the order supplied (never sorted by
    name), is applied repeatedly until it reports no change. A fix that is still
    changing the tree after ``max_iterations`` applications is reported as
    `IterationCapExceeded`.
2.  **Hand-off**: the resulting file is passed to the ``handle_fix`` callback (usually
    `OutputSink.handle_fix`), which reconciles and emits it. This happens before the
    next file is processed, so a later failure does not undo earlier output.
3.  **Abort on failure**: the first error ends the package. The remaining files are
    not attempted, and the failure is returned in the `FixRunResult`.
"""

from typing import Callable, Optional, Sequence, Tuple

import libcst as cst

from kfix.config import DEFAULT_MAX_ITERATIONS
from kfix.core.errors import FixApplicationError, IterationCapExceeded, KfixError
from kfix.core.fix import Fix
from kfix.core.reporter import Reporter
from kfix.core.result import FileReport, FixFailure, FixRunResult
from kfix.core.units import FileUnit, PackageUnit

FixHandler = Callable[[FileUnit, Optional[str]], None]


class FixEngine:
  """
  Applies fixes to packages.

  Attributes:
      fixes (Sequence[Fix]): The fixes, in application order.
      max_iterations (int): Cap on applications of a single fix to a single file.
      handle_fix (Optional[FixHandler]): Called with each successfully fixed file and
          the name of the last fix that changed it.
      reporter (Reporter): Structured log handle.
  """

  def __init__(
    self,
    fixes: Sequence[Fix],
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    handle_fix: Optional[FixHandler] = None,
    reporter: Optional[Reporter] = None,
  ) -> None:
    """
    Initializes the engine.

    Args:
        fixes: Fixes in the order they must be applied.
        max_iterations: Maximum applications of one fix before giving up.
        handle_fix: Callback receiving each fixed file.
        reporter: Structured log handle. A detached one is created if None.

    Raises:
        ValueError: If fix names are not unique or the cap is below 1.
    """
    names = [fix.name for fix in fixes]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
      raise ValueError(f"Duplicate fix names: {', '.join(duplicates)}")
    if max_iterations < 1:
      raise ValueError("max_iterations must be at least 1")

    self.fixes = list(fixes)
    self.max_iterations = max_iterations
    self.handle_fix = handle_fix
    self.reporter = reporter or Reporter(name="kfix.fixer")

  def fix_package(self, pkg: PackageUnit) -> FixRunResult:
    """
    Fixes and hands off every file of a package.

    Args:
        pkg: The package to process.

    Returns:
        FixRunResult: Reports for completed files, or a failure naming the file and fix.
    """
    log = self.reporter.with_values(package=pkg.import_path)
    log.v(1).info("fixing package", files=len(pkg.files))
    result = FixRunResult(package=pkg.import_path)

    for unit in pkg.files:
      file_name = str(unit.path)
      last_fix: Optional[str] = None
      try:
        report = self.fix_file(unit)
        last_fix = report.last_fix
        if self.handle_fix is not None:
          self.handle_fix(unit, last_fix)
      except KfixError as e:
        e.with_context(package=pkg.import_path, file=file_name, fix=last_fix)
        # Reported once by the caller, from the returned failure.
        log.v(1).info("aborting package", file=file_name, error=str(e))
        result.failure = FixFailure(file=e.file or file_name, fix=e.fix, cause=e.cause)
        return result

      result.files.append(report)

    log.v(1).info("package done", changed=len(result.changed_files))
    return result

  def fix_file(self, unit: FileUnit) -> FileReport:
    """
    Applies every fix to one file, each to a fixed point.

    The unit's tree is replaced in place.

    Args:
        unit: The file to fix.

    Returns:
        FileReport: Per-fix count of applications that changed the tree.

    Raises:
        FixApplicationError: If a fix fails or does not converge.
    """
    file_name = str(unit.path)
    log = self.reporter.with_values(file=file_name)
    report = FileReport(path=file_name)

    for fix in self.fixes:
      tree, count = self._apply_to_fixed_point(fix, unit.tree, file_name)
      unit.tree = tree
      report.iterations[fix.name] = count
      if count:
        log.v(2).info("applied fix", fix=fix.name, iterations=count)

    return report

  def _apply_to_fixed_point(self, fix: Fix, tree: cst.Module, file_name: str) -> Tuple[cst.Module, int]:
    """
    Re-applies one fix until it stops reporting changes.

    Returns:
        Tuple of (final tree, number of applications that changed it).
    """
    changes = 0
    for _ in range(self.max_iterations):
      try:
        tree, changed = fix.apply(tree)
      except KfixError as e:
        raise e.with_context(file=file_name, fix=fix.name)
      except Exception as e:
        raise FixApplicationError(f"{type(e).__name__}: {e}", file=file_name, fix=fix.name) from e

      if not changed:
        return tree, changes
      changes += 1

    raise IterationCapExceeded(fix=fix.name, cap=self.max_iterations, file=file_name)
