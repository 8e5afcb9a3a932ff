"""
Fix Units and the Fix Registry.

A *fix* is a named, described transformation over a single file's syntax tree.
Every fix exposes the same capability::

    fix.apply(module) -> (module, changed)

Two variants are provided:

- `TransformerFix`: wraps a LibCST `CSTTransformer` factory. A fresh transformer is
  built for every application, so transformer state never leaks between files or
  iterations. The change flag is derived by structural comparison of the trees.
- `FunctionFix`: wraps a plain function that already honours the contract.

Fixes are made available to the CLI through the `register_fix` decorator, which
records a factory ``(RuntimeConfig) -> Fix``. The catalog order (registration
order) is the application order; sorting by name is only ever done for display.
"""

from abc import ABC, abstractmethod
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import libcst as cst

from kfix.config import RuntimeConfig

RewriteFunction = Callable[[cst.Module], Tuple[cst.Module, bool]]
TransformerFactory = Callable[[], cst.CSTTransformer]
FixFactory = Callable[[RuntimeConfig], "Fix"]


class Fix(ABC):
  """
  Abstract contract for a rewrite rule.

  Instances are immutable once constructed: `name` and `description` are read-only.
  """

  def __init__(self, name: str, description: str) -> None:
    if not name:
      raise ValueError("A fix needs a non-empty name")
    self._name = name
    self._description = description

  @property
  def name(self) -> str:
    return self._name

  @property
  def description(self) -> str:
    return self._description

  @abstractmethod
  def apply(self, module: cst.Module) -> Tuple[cst.Module, bool]:
    """
    Applies the rewrite once.

    Args:
        module: The current syntax tree.

    Returns:
        Tuple of (possibly new tree, whether anything changed).

    Raises:
        FixApplicationError: If the tree holds a construct the fix cannot safely rewrite.
    """

  def __repr__(self) -> str:
    return f"{type(self).__name__}({self._name!r})"


class TransformerFix(Fix):
  """
  A fix backed by a LibCST transformer.
  """

  def __init__(self, name: str, description: str, factory: TransformerFactory) -> None:
    super().__init__(name, description)
    self._factory = factory

  def apply(self, module: cst.Module) -> Tuple[cst.Module, bool]:
    updated = module.visit(self._factory())
    return updated, not updated.deep_equals(module)


class FunctionFix(Fix):
  """
  A fix backed by a function ``(module) -> (module, changed)``.
  """

  def __init__(self, name: str, description: str, rewrite: RewriteFunction) -> None:
    super().__init__(name, description)
    self._rewrite = rewrite

  def apply(self, module: cst.Module) -> Tuple[cst.Module, bool]:
    return self._rewrite(module)


_FIXES: Dict[str, FixFactory] = {}
_CATALOG_LOADED = False


def register_fix(name: str) -> Callable[[FixFactory], FixFactory]:
  """
  Decorator to register a fix factory under a unique name.

  Args:
      name: The unique fix identifier used on the command line.

  Raises:
      ValueError: If the name is already registered.
  """

  def decorator(factory: FixFactory) -> FixFactory:
    if name in _FIXES:
      raise ValueError(f"Fix '{name}' is already registered")
    _FIXES[name] = factory
    return factory

  return decorator


def load_fixes() -> None:
  """Imports the built-in catalog so its registrations run."""
  global _CATALOG_LOADED
  if _CATALOG_LOADED:
    return
  import kfix.fixes  # noqa: F401

  _CATALOG_LOADED = True


def available_fixes() -> List[str]:
  """
  Returns registered fix names in catalog (application) order.
  """
  load_fixes()
  return list(_FIXES)


def build_fixes(config: RuntimeConfig, names: Optional[Iterable[str]] = None) -> List[Fix]:
  """
  Instantiates fixes for a run.

  Args:
      config: Runtime configuration passed to every factory.
      names: Fix names to build. Defaults to ``config.fixes``, or the whole
             catalog when that is empty. Order is always catalog order.

  Returns:
      List[Fix]: The fixes to hand to the engine.

  Raises:
      ValueError: If a requested name is not registered.
  """
  load_fixes()
  requested = list(names) if names is not None else list(config.fixes)
  if requested:
    unknown = [n for n in requested if n not in _FIXES]
    if unknown:
      raise ValueError(f"Unknown fix(es): {', '.join(unknown)}. Available: {', '.join(_FIXES)}")
    selected = [n for n in _FIXES if n in requested]
  else:
    selected = list(_FIXES)

  return [_FIXES[n](config) for n in selected]


def sorted_by_name(fixes: Iterable[Fix]) -> List[Fix]:
  """
  Returns fixes in lexicographic name order. For display only.
  """
  return sorted(fixes, key=lambda f: f.name)
