"""
Fix: Migrate klog Calls to a logr-style Structured Logger.

The legacy module exposes printf-style and structured entry points
(``klog.info``, ``klog.infof``, ``klog.info_s``, ``klog.v(2).info``, ...). The
structured logger exposes a single handle with two entry points::

    log.info(msg, *key_values)
    log.error(err, msg, *key_values)
    log.v(level) -> verbose handle with .info() and .enabled()

Mapping rules:

- ``info_s`` / ``error_s`` keep their arguments and only switch receiver.
- ``info`` / ``warning`` collapse their arguments into a single message.
- ``infof`` / ``warningf`` render their format with ``%``.
- ``error`` / ``errorf`` become ``log.error(None, <message>)``.
- ``if klog.v(n):`` becomes ``if log.v(n).enabled():``.

Anything whose meaning cannot be carried over (``fatal``, ``exit``, keyword
arguments, starred arguments that feed a message) raises `FixApplicationError`
rather than being guessed at. Unknown members are left alone and keep the legacy
import alive.
"""

from typing import List, Mapping, Optional, Set

import libcst as cst
from libcst.metadata import BuiltinScope, GlobalScope, MetadataWrapper, Scope, ScopeProvider

from kfix.config import STANDARD_KLOG_PKG, RuntimeConfig
from kfix.core.errors import FixApplicationError
from kfix.core.fix import Fix, TransformerFix, register_fix
from kfix.core.scanners import (
  ImportAliasScanner,
  NameUsageScanner,
  get_full_name,
  module_level_bindings,
)
from kfix.utils.node_source import quote_node

LOGR_FIX_NAME = "logr"

LOGR_FIX_DESCRIPTION = """Migrate klog calls to a logr-style structured logger.
info_s/error_s switch to log.info/log.error; info, infof, warning, warningf,
error and errorf are folded into a single message; klog.v(n) becomes log.v(n)."""

_STRUCTURED_INFO = {"info_s"}
_STRUCTURED_ERROR = {"error_s"}
_PRINT_INFO = {"info", "warning"}
_PRINTF_INFO = {"infof", "warningf"}
_PRINT_ERROR = {"error"}
_PRINTF_ERROR = {"errorf"}
_PROCESS_EXIT = {"fatal", "fatalf", "fatal_s", "exit", "exitf"}

# Methods of the handle returned by klog.v(n).
_VERBOSE_METHODS = _STRUCTURED_INFO | _PRINT_INFO | _PRINTF_INFO

_STRING_LITERALS = (cst.SimpleString, cst.ConcatenatedString, cst.FormattedString)

# Expressions that bind at least as tightly as `%` and need no parentheses on its left.
_ATOMS = (
  cst.Name,
  cst.Attribute,
  cst.Call,
  cst.Subscript,
  cst.SimpleString,
  cst.ConcatenatedString,
  cst.FormattedString,
)


class LogrTransformer(cst.CSTTransformer):
  """
  Rewrites one module's legacy logging calls.

  A fresh instance is created per application; the aliases discovered in
  `visit_Module` are only valid for that module.
  """

  def __init__(
    self,
    legacy_pkg: str = STANDARD_KLOG_PKG,
    logger_pkg: str = "logr",
    logger_name: str = "log",
  ) -> None:
    super().__init__()
    self.legacy_pkg = legacy_pkg
    self.logger_pkg = logger_pkg
    self.logger_name = logger_name
    self.aliases: Set[str] = set()
    self._scopes: Mapping[cst.CSTNode, Optional[Scope]] = {}
    self._rewrote = False

  # --- Module ---

  def visit_Module(self, node: cst.Module) -> Optional[bool]:
    scanner = ImportAliasScanner(self.legacy_pkg)
    node.visit(scanner)

    if scanner.from_imports:
      raise FixApplicationError(
        f"cannot rewrite {quote_node(scanner.from_imports[0])}; use `import {self.legacy_pkg}` instead"
      )
    if scanner.nested_imports:
      raise FixApplicationError(f"cannot rewrite {quote_node(scanner.nested_imports[0])} below module level")

    if self.logger_name in scanner.aliases:
      raise FixApplicationError(f"`{self.logger_name}` is bound to the legacy package; rename the import first")
    self.aliases = scanner.aliases
    if not self.aliases:
      # Nothing to do in modules that never import the legacy package.
      return False

    # The wrapper shares `node`, so scopes are keyed by the original nodes seen below.
    self._scopes = MetadataWrapper(node, unsafe_skip_copy=True).resolve(ScopeProvider)
    return True

  def leave_Module(self, original_node: cst.Module, updated_node: cst.Module) -> cst.Module:
    if not self._rewrote:
      return updated_node

    usage = NameUsageScanner(self.aliases)
    updated_node.visit(usage)

    bindings = module_level_bindings(updated_node)
    # The logger is created after the import block holding the legacy import, so only
    # imports up to the end of that block can provide the logger package.
    first = next((i for i, stmt in enumerate(updated_node.body) if self._legacy_import(stmt) is not None), 0)
    end = first + 1
    while end < len(updated_node.body) and _is_import_line(updated_node.body[end]):
      end += 1
    earlier = module_level_bindings(updated_node.with_changes(body=updated_node.body[:end]))
    need_logger_import = self.logger_pkg.split(".")[0] not in earlier

    body: List[cst.BaseStatement] = []
    carried_lines: List[cst.EmptyLine] = []
    anchor: Optional[int] = None
    for stmt in updated_node.body:
      if carried_lines:
        stmt = stmt.with_changes(leading_lines=[*carried_lines, *stmt.leading_lines])
        carried_lines = []

      imported = self._legacy_import(stmt)
      if imported is None:
        body.append(stmt)
        continue

      dropped = [
        i
        for i, alias in enumerate(imported.names)
        if self._is_legacy_alias(alias) and self._bound_name(alias) not in usage.found
      ]
      kept = [alias for i, alias in enumerate(imported.names) if i not in dropped]

      if not dropped:
        body.append(stmt)
        if need_logger_import:
          # The legacy import stays; the logger import goes right after it.
          body.append(cst.SimpleStatementLine(body=[self._logger_import()]))
      elif need_logger_import:
        kept.insert(dropped[0], self._logger_import().names[0])
        body.append(stmt.with_changes(body=[_with_names(imported, kept)]))
      elif kept:
        body.append(stmt.with_changes(body=[_with_names(imported, kept)]))
      else:
        carried_lines = list(stmt.leading_lines)
      need_logger_import = False
      if anchor is None:
        anchor = len(body)

    if self.logger_name not in bindings:
      body = self._insert_logger(body, anchor or 0)

    return updated_node.with_changes(body=body)

  def _legacy_import(self, stmt: cst.BaseStatement) -> Optional[cst.Import]:
    """Returns the statement's import if it is a single `import` naming the legacy package."""
    if not isinstance(stmt, cst.SimpleStatementLine) or len(stmt.body) != 1:
      return None
    small = stmt.body[0]
    if isinstance(small, cst.Import) and any(self._is_legacy_alias(alias) for alias in small.names):
      return small
    return None

  def _is_legacy_alias(self, alias: cst.ImportAlias) -> bool:
    return get_full_name(alias.name) == self.legacy_pkg

  @staticmethod
  def _bound_name(alias: cst.ImportAlias) -> str:
    if alias.asname and isinstance(alias.asname.name, cst.Name):
      return alias.asname.name.value
    return get_full_name(alias.name)

  def _logger_import(self) -> cst.Import:
    return cst.Import(names=[cst.ImportAlias(name=cst.parse_expression(self.logger_pkg))])

  def _insert_logger(self, body: List[cst.BaseStatement], anchor: int) -> List[cst.BaseStatement]:
    """
    Binds the logger after the migrated import and the imports directly following
    it, ahead of any module-level code.
    """
    statement = cst.parse_statement(f"{self.logger_name} = {self.logger_pkg}.get_logger(__name__)\n")
    statement = statement.with_changes(leading_lines=[cst.EmptyLine()])

    while anchor < len(body) and _is_import_line(body[anchor]):
      anchor += 1
    return [*body[:anchor], statement, *body[anchor:]]

  # --- Calls ---

  def leave_Call(self, original_node: cst.Call, updated_node: cst.Call) -> cst.BaseExpression:
    member = self._legacy_member(original_node.func)
    rewritten: Optional[cst.Call] = None

    if member == "v":
      rewritten = updated_node.with_changes(func=self._logger_attr("v"))
    elif member in _PROCESS_EXIT:
      raise FixApplicationError(f"{quote_node(original_node)} exits the process; there is no structured equivalent")
    elif member is not None:
      rewritten = self._rewrite(member, updated_node, cst.Name(self.logger_name))
    else:
      func = original_node.func
      verbose_call = isinstance(func, cst.Attribute) and self._is_legacy_verbose(func.value)
      if verbose_call and func.attr.value in _VERBOSE_METHODS:
        # The receiver has already been rewritten to log.v(n).
        rewritten = self._rewrite(func.attr.value, updated_node, updated_node.func.value)

    if rewritten is None:
      return updated_node
    self._check_logger_visible(original_node)
    self._rewrote = True
    return rewritten

  def _check_logger_visible(self, node: cst.Call) -> None:
    """Refuses a rewrite where a local binding would capture the logger name."""
    scope = self._scopes.get(node)
    if scope is None:
      return
    if any(not isinstance(assignment.scope, (GlobalScope, BuiltinScope)) for assignment in scope[self.logger_name]):
      raise FixApplicationError(
        f"`{self.logger_name}` is bound locally where {quote_node(node)} is called; rename it first"
      )

  def _legacy_member(self, func: cst.BaseExpression) -> Optional[str]:
    """Returns 'info' for `klog.info`, None for anything not directly on the legacy module."""
    if isinstance(func, cst.Attribute) and get_full_name(func.value) in self.aliases:
      return func.attr.value
    return None

  def _is_legacy_verbose(self, expr: cst.BaseExpression) -> bool:
    return isinstance(expr, cst.Call) and self._legacy_member(expr.func) == "v"

  def _logger_attr(self, method: str, receiver: Optional[cst.BaseExpression] = None) -> cst.Attribute:
    return cst.Attribute(value=receiver if receiver is not None else cst.Name(self.logger_name), attr=cst.Name(method))

  def _rewrite(self, member: str, node: cst.Call, receiver: cst.BaseExpression) -> Optional[cst.Call]:
    args = list(node.args)

    if member in _STRUCTURED_INFO or member in _STRUCTURED_ERROR:
      _reject_keywords(node, args)
      method = "info" if member in _STRUCTURED_INFO else "error"
      return node.with_changes(func=self._logger_attr(method, receiver))

    if member in _PRINT_INFO or member in _PRINT_ERROR:
      message = _print_message(node, args)
    elif member in _PRINTF_INFO or member in _PRINTF_ERROR:
      message = _printf_message(node, args)
    else:
      return None

    if member in _PRINT_ERROR or member in _PRINTF_ERROR:
      new_args = [cst.Arg(cst.Name("None")), cst.Arg(message)]
      return node.with_changes(func=self._logger_attr("error", receiver), args=new_args)
    return node.with_changes(func=self._logger_attr("info", receiver), args=[cst.Arg(message)])

  # --- Verbosity checks ---

  def leave_If(self, original_node: cst.If, updated_node: cst.If) -> cst.If:
    return updated_node.with_changes(test=self._enabled_check(original_node.test, updated_node.test))

  def leave_While(self, original_node: cst.While, updated_node: cst.While) -> cst.While:
    return updated_node.with_changes(test=self._enabled_check(original_node.test, updated_node.test))

  def leave_IfExp(self, original_node: cst.IfExp, updated_node: cst.IfExp) -> cst.IfExp:
    return updated_node.with_changes(test=self._enabled_check(original_node.test, updated_node.test))

  def _enabled_check(self, original: cst.BaseExpression, updated: cst.BaseExpression) -> cst.BaseExpression:
    """
    Turns a legacy verbosity test into an explicit `.enabled()` call.

    The legacy verbose handle is truthy when enabled; the structured one is not.
    Descends through `not`, `and` and `or`.
    """
    if self._is_legacy_verbose(original):
      return cst.Call(func=cst.Attribute(value=updated.with_changes(lpar=[], rpar=[]), attr=cst.Name("enabled")))
    if isinstance(original, cst.UnaryOperation) and isinstance(original.operator, cst.Not):
      return updated.with_changes(expression=self._enabled_check(original.expression, updated.expression))
    if isinstance(original, cst.BooleanOperation):
      return updated.with_changes(
        left=self._enabled_check(original.left, updated.left),
        right=self._enabled_check(original.right, updated.right),
      )
    return updated


def _is_import_line(stmt: cst.BaseStatement) -> bool:
  return isinstance(stmt, cst.SimpleStatementLine) and all(
    isinstance(small, (cst.Import, cst.ImportFrom)) for small in stmt.body
  )


def _reject_keywords(
node: cst.Call, args: List[cst.Arg]) -> None:
  for arg in args:
    if arg.keyword is not None or arg.star == "**":
      raise FixApplicationError(f"cannot rewrite keyword arguments in {quote_node(node)}")


def _reject_starred(node: cst.Call, args: List[cst.Arg]) -> None:
  _reject_keywords(node, args)
  for arg in args:
    if arg.star:
      raise FixApplicationError(f"cannot build a message from starred arguments in {quote_node(node)}")


def _print_message(node: cst.Call, args: List[cst.Arg]) -> cst.BaseExpression:
  """
  Folds print-style arguments into one message expression.

  ``("x")`` -> ``"x"``; ``(n)`` -> ``str(n)``; ``(a, b)`` -> ``"%s %s" % (a, b)``.
  """
  _reject_starred(node, args)
  if not args:
    return cst.SimpleString('""')
  if len(args) == 1:
    value = args[0].value
    if isinstance(value, _STRING_LITERALS):
      return value
    return cst.Call(func=cst.Name("str"), args=[cst.Arg(value)])

  fmt = cst.SimpleString('"' + " ".join(["%s"] * len(args)) + '"')
  return _percent_format(fmt, [arg.value for arg in args])


def _printf_message(node: cst.Call, args: List[cst.Arg]) -> cst.BaseExpression:
  """
  Renders a printf-style call: ``(fmt, a, b)`` -> ``fmt % (a, b)``.
  """
  _reject_starred(node, args)
  if not args:
    raise FixApplicationError(f"missing format string in {quote_node(node)}")
  fmt = args[0].value
  if len(args) == 1:
    return fmt
  return _percent_format(fmt, [arg.value for arg in args[1:]])


def _percent_format(fmt: cst.BaseExpression, values: List[cst.BaseExpression]) -> cst.BinaryOperation:
  if not isinstance(fmt, _ATOMS) and not getattr(fmt, "lpar", None):
    fmt = fmt.with_changes(lpar=[cst.LeftParen()], rpar=[cst.RightParen()])

  elements: List[cst.Element] = [cst.Element(value=v) for v in values]
  if len(elements) == 1:
    elements[0] = elements[0].with_changes(comma=cst.Comma())
  return cst.BinaryOperation(left=fmt, operator=cst.Modulo(), right=cst.Tuple(elements=elements))


def _with_names(node: cst.Import, names: List[cst.ImportAlias]) -> cst.Import:
  """Replaces an import's names, keeping commas only between them."""
  cleaned = [alias.with_changes(comma=cst.MaybeSentinel.DEFAULT) for alias in names]
  return node.with_changes(names=cleaned)


def LogrFix(
  legacy_pkg: str = STANDARD_KLOG_PKG,
  logger_pkg: str = "logr",
  logger_name: str = "log",
) -> Fix:
  """
  Builds the klog -> logr fix for a given legacy package identifier.

  Args:
      legacy_pkg: Import name of the legacy logging module.
      logger_pkg: Import name of the structured logger module.
      logger_name: Module-level name bound to the structured logger.

  Returns:
      Fix: A transformer-backed fix named ``logr``.
  """
  return TransformerFix(
    LOGR_FIX_NAME,
    LOGR_FIX_DESCRIPTION,
    lambda: LogrTransformer(legacy_pkg, logger_pkg, logger_name),
  )


@register_fix(LOGR_FIX_NAME)
def _logr_from_config(config: RuntimeConfig) -> Fix:
  return LogrFix(config.legacy_package, config.logger_package, config.logger_name)

