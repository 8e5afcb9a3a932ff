"""
AST Scanners for Import and Symbol Usage Detection.

These LibCST helpers answer the questions a migration fix asks before and after
rewriting a module:

1.  Which local names are bound to a given module at module level
    (``import klog`` -> ``klog``, ``import klog as k`` -> ``k``)?
2.  Are any of those names still referenced outside import statements once the
    rewrite is done? If so, the import must be kept.
3.  Which names does the module bind at top level? Used to avoid shadowing an
    existing binding when a new one is injected.
"""

from typing import List, Set, Union

import libcst as cst


def get_full_name(node: Union[cst.Name, cst.Attribute, cst.BaseExpression]) -> str:
  """
  Recursively resolves a CST Name or Attribute chain to a dot-separated string.

  Args:
    node: The CST node representing the identifier.

  Returns:
    str: The fully qualified string (e.g., "klog.v"). Returns an empty string
    if the node is not a Name/Attribute chain.

  Example:
    >>> get_full_name(cst.Attribute(value=cst.Name("klog"), attr=cst.Name("info")))
    'klog.info'
  """
  if isinstance(node, cst.Name):
    return node.value
  elif isinstance(node, cst.Attribute):
    base = get_full_name(node.value)
    return f"{base}.{node.attr.value}" if base else ""
  return ""


class ImportAliasScanner(cst.CSTVisitor):
  """
  Catalogs the names bound to a module by import statements.

  Only ``import`` statements directly in the module body define aliases. Anything the caller may
  not be able to handle is collected separately instead of being guessed at.

  Attributes:
    module_name (str): The root module to scan for (e.g., 'klog').
    aliases (Set[str]): Local names bound to the module at module level.
    from_imports (List[cst.ImportFrom]): ``from klog import ...`` statements.
    nested_imports (List[cst.Import]): Imports of the module inside any block.
  """

  def __init__(self, module_name: str) -> None:
    self.module_name = module_name
    self.aliases: Set[str] = set()
    self.from_imports: List[cst.ImportFrom] = []
    self.nested_imports: List[cst.Import] = []
    self._depth = 0

  def _matches(self, name: str) -> bool:
    return name == self.module_name or name.startswith(f"{self.module_name}.")

  def visit_IndentedBlock(self, node: cst.IndentedBlock) -> None:
    self._depth += 1

  def leave_IndentedBlock(self, original_node: cst.IndentedBlock) -> None:
    self._depth -= 1

  def visit_SimpleStatementSuite(self, node: cst.SimpleStatementSuite) -> None:
    self._depth += 1

  def leave_SimpleStatementSuite(self, original_node: cst.SimpleStatementSuite) -> None:
    self._depth -= 1

  def visit_Import(self, node: cst.Import) -> None:
    """
    Catalogs names bound by `import ...`.

    Logic:
      - `import klog` -> tracks 'klog'.
      - `import klog as k` -> tracks 'k'.
    """
    for alias in node.names:
      full_name = get_full_name(alias.name)
      if full_name != self.module_name:
        continue
      if self._depth:
        self.nested_imports.append(node)
        return
      if alias.asname and isinstance(alias.asname.name, cst.Name):
        self.aliases.add(alias.asname.name.value)
      else:
        self.aliases.add(full_name)

  def visit_ImportFrom(self, node: cst.ImportFrom) -> None:
    if node.module is not None and not node.relative and self._matches(get_full_name(node.module)):
      self.from_imports.append(node)


class NameUsageScanner(cst.CSTVisitor):
  """
  Scans for references to any of a set of (possibly dotted) names outside imports.

  Attributes:
    names (Set[str]): The identifiers to search for.
    found (Set[str]): The identifiers that were referenced.
  """

  def __init__(self, names: Set[str]) -> None:
    self.names = set(names)
    self.found: Set[str] = set()

  def visit_Import(self, node: cst.Import) -> bool:
    return False

  def visit_ImportFrom(self, node: cst.ImportFrom) -> bool:
    return False

  def visit_Attribute(self, node: cst.Attribute) -> bool:
    full_name = get_full_name(node)
    if not full_name:
      # `f().x`: only the base can hold a reference.
      node.value.visit(self)
      return False
    self._check(full_name)
    return False

  def visit_Name(self, node: cst.Name) -> None:
    self._check(node.value)

  def _check(self, full_name: str) -> None:
    for name in self.names:
      if full_name == name or full_name.startswith(f"{name}."):
        self.found.add(name)


def module_level_bindings(module: cst.Module) -> Set[str]:
  """
  Returns the names bound by top-level statements of a module.

  Covers assignments (plain, annotated, augmented), imports, function and
  class definitions.
  """
  bound: Set[str] = set()
  for stmt in module.body:
    if isinstance(stmt, (cst.FunctionDef, cst.ClassDef)):
      bound.add(stmt.name.value)
      continue
    if not isinstance(stmt, cst.SimpleStatementLine):
      continue
    for small in stmt.body:
      if isinstance(small, cst.Assign):
        for target in small.targets:
          bound.update(_target_names(target.target))
      elif isinstance(small, (cst.AnnAssign, cst.AugAssign)):
        bound.update(_target_names(small.target))
      elif isinstance(small, cst.Import):
        for alias in small.names:
          if alias.asname and isinstance(alias.asname.name, cst.Name):
            bound.add(alias.asname.name.value)
          else:
            bound.add(get_full_name(alias.name).split(".")[0])
      elif isinstance(small, cst.ImportFrom) and not isinstance(small.names, cst.ImportStar):
        for alias in small.names:
          if alias.asname and isinstance(alias.asname.name, cst.Name):
            bound.add(alias.asname.name.value)
          else:
            bound.add(get_full_name(alias.name))
  return bound


def _target_names(target: cst.BaseExpression) -> Set[str]:
  if isinstance(target, cst.Name):
    return {target.value}
  if isinstance(target, (cst.Tuple, cst.List)):
    names: Set[str] = set()
    for element in target.elements:
      names.update(_target_names(element.value))
    return names
  return set()
