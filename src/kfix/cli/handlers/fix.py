"""
Fix Command Handler.

This module implements the work behind ``kfix [-diff] path ...``.
It orchestrates:
1. Fix catalog instantiation for the resolved configuration.
2. Wiring of the engine to the output sink (reconciler + differ).
3. Package resolution and fixing, one argument at a time, in argument order.
4. Mapping of the first failure to an exit code.

Arguments are resolved lazily: a package is only loaded once every package before
it has been fixed and emitted. The first failure stops the run, and whatever was
already written stays written.
"""

import sys
from pathlib import Path
from typing import List, Optional, TextIO

from rich.table import Table

from kfix.config import RuntimeConfig
from kfix.core.engine import FixEngine
from kfix.core.errors import ResolutionError
from kfix.core.fix import build_fixes
from kfix.core.loader import PackageLoader
from kfix.core.reconciler import Reconciler
from kfix.core.reporter import Reporter
from kfix.core.result import FixRunResult
from kfix.core.sink import ExternalDiffer, OutputMode, OutputSink, UnifiedDiffer
from kfix.utils.console import console, log_error, log_success

EXIT_SUCCESS = 0
EXIT_RESOLUTION_FAILED = 1
EXIT_FIX_FAILED = 5


def handle_fix(
  paths: List[str],
  config: RuntimeConfig,
  cwd: Optional[Path] = None,
  stream: Optional[TextIO] = None,
) -> int:
  """
  Handles a fix run.

  Args:
      paths: Package arguments (directories, files, dotted names, ``dir/...``).
      config: Resolved runtime configuration.
      cwd: Base directory for relative paths. Defaults to the process cwd.
      stream: Destination for diff output. Defaults to stdout.

  Returns:
      int: 0 on success, 1 if an argument cannot be resolved or a fix name is
      unknown, 5 if a package could not be fixed or emitted.
  """
  try:
    fixes = build_fixes(config)
  except ValueError as e:
    log_error(str(e))
    return EXIT_RESOLUTION_FAILED

  reporter = Reporter(name="kfix", verbosity=config.verbosity)
  loader = PackageLoader(cwd)

  differ = ExternalDiffer(config.diff_tool) if config.diff_tool else UnifiedDiffer()
  sink = OutputSink(
    mode=OutputMode.DIFF if config.diff else OutputMode.WRITE,
    reconciler=Reconciler(line_length=config.line_length),
    differ=differ,
    stream=stream,
    reporter=reporter.with_name("sink"),
  )
  engine = FixEngine(
    fixes,
    max_iterations=config.max_iterations,
    handle_fix=sink.handle_fix,
    reporter=reporter.with_name("fixer"),
  )

  results: List[FixRunResult] = []
  for arg in loader.expand(paths):
    try:
      pkg = loader.resolve(arg)
    except ResolutionError as e:
      log_error(str(e))
      return EXIT_RESOLUTION_FAILED

    result = engine.fix_package(pkg)
    if not result.success:
      sys.stderr.write(f'aborting package "{arg}": {result.failure}\n')
      return EXIT_FIX_FAILED
    results.append(result)

  _print_summary(results, config)
  return EXIT_SUCCESS


def _print_summary(results: List[FixRunResult], config: RuntimeConfig) -> None:
  """
  Reports what was done. With ``-v`` a per-file table is rendered too.

  Args:
      results: Results of all fixed packages, in argument order.
      config: Runtime configuration (diff mode and verbosity).
  """
  changed = [(res.package, report) for res in results for report in res.files if report.changed]
  verb = "would change" if config.diff else "changed"
  log_success(f"Fixed {len(results)} package(s): {len(changed)} file(s) {verb}.")

  if config.verbosity < 1 or not changed:
    return

  table = Table(title="Fix Report")
  table.add_column("Package", style="cyan")
  table.add_column("File", style="bold blue")
  table.add_column("Fixes (iterations)")

  for package, report in changed:
    applied = ", ".join(f"{name} ({count})" for name, count in report.iterations.items() if count)
    table.add_row(package, report.path, applied)

  console.print(table)
