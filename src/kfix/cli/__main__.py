"""
Main Entry Point for the kfix CLI.

Usage::

    kfix [-diff] [-v N] [--fixes a,b] [path ...]

Exit codes:
    0   every package was fixed and emitted.
    1   an argument did not resolve to a package, or a fix name is unknown.
    5   a package could not be fixed, rendered or emitted.
    93  usage: no paths, ``-h``, or a flag error.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from kfix import __version__
from kfix.cli.handlers import handle_fix
from kfix.config import RuntimeConfig
from kfix.core.fix import Fix, build_fixes, sorted_by_name

EXIT_USAGE = 93

USAGE = "kfix [-diff] [path ...]"


class UsageError(Exception):
  """Raised by the parser instead of exiting on a flag error."""


class _Parser(argparse.ArgumentParser):
  def error(self, message: str) -> None:  # type: ignore[override]
    raise UsageError(message)


def build_parser() -> argparse.ArgumentParser:
  """
  Defines the command-line flags.

  Options default to None so that values from ``[tool.kfix]`` are only
  overridden when given explicitly.
  """
  parser = _Parser(prog="kfix", usage=USAGE, add_help=False, allow_abbrev=False)
  parser.add_argument(
    "paths",
    nargs="*",
    metavar="path",
    help="package directory, source file, dotted import name, or dir/...",
  )
  parser.add_argument(
    "-diff",
    "--diff",
    dest="diff",
    action="store_true",
    default=None,
    help="print diffs instead of rewriting files",
  )
  parser.add_argument("-v", dest="verbosity", type=int, default=None, metavar="N", help="log verbosity (default: 0)")
  parser.add_argument("--fixes", default=None, help="comma separated fix names to apply (default: all)")
  parser.add_argument("--legacy-pkg", default=None, help="import name of the legacy logging module (default: klog)")
  parser.add_argument("--diff-tool", default=None, help="external diff -u compatible tool (default: built-in)")
  parser.add_argument(
    "--max-iterations",
    type=int,
    default=None,
    metavar="N",
    help="applications of one fix before it is deemed non-convergent (default: 10)",
  )
  parser.add_argument("--line-length", type=int, default=None, metavar="N", help="formatter line length (default: 88)")
  parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
  parser.add_argument("-h", "--help", action="store_true", help="show this message and the available fixups")
  return parser


def usage(parser: argparse.ArgumentParser, fixes: Optional[List[Fix]] = None, error: Optional[str] = None) -> int:
  """
  Prints usage, flag defaults and the fix catalog to stderr.

  Args:
      parser: The CLI parser, for the flag listing.
      fixes: Fixes to list. Defaults to the whole catalog.
      error: Flag error to report first.

  Returns:
      int: The usage exit code (93).
  """
  if fixes is None:
    fixes = build_fixes(RuntimeConfig())

  out = sys.stderr
  if error:
    out.write(f"kfix: {error}\n")
  out.write(parser.format_help())
  out.write("\nAvailable fixups are:\n")
  for fix in sorted_by_name(fixes):
    out.write(f"\n{fix.name}\n")
    desc = fix.description.strip().replace("\n", "\n\t")
    out.write(f"\t{desc}\n")
  return EXIT_USAGE


def _split_names(value: Optional[str]) -> Optional[List[str]]:
  if value is None:
    return None
  return [name.strip() for name in value.split(",") if name.strip()]


def main(argv: Optional[List[str]] = None) -> int:
  """
  Main CLI entry point.

  Args:
      argv: Optional list of command line arguments (defaults to sys.argv).

  Returns:
      int: Exit code.
  """
  parser = build_parser()
  try:
    args = parser.parse_args(argv)
  except UsageError as e:
    return usage(parser, error=str(e))

  if args.help or not args.paths:
    return usage(parser)

  try:
    config = RuntimeConfig.load(
      legacy_package=args.legacy_pkg,
      fixes=_split_names(args.fixes),
      max_iterations=args.max_iterations,
      line_length=args.line_length,
      diff=args.diff,
      diff_tool=args.diff_tool,
      verbosity=args.verbosity,
      search_path=Path.cwd(),
    )
  except ValueError as e:
    return usage(parser, error=str(e))

  return handle_fix(args.paths, config)


if __name__ == "__main__":
  sys.exit(main())
