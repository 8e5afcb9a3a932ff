"""
Tests for Import and Usage Scanners.
"""

import libcst as cst

from kfix.core.scanners import ImportAliasScanner, NameUsageScanner, get_full_name, module_level_bindings


def scan_imports(code: str, module: str = "klog") -> ImportAliasScanner:
  scanner = ImportAliasScanner(module)
  cst.parse_module(code).visit(scanner)
  return scanner


def scan_usage(code: str, *names: str) -> set:
  scanner = NameUsageScanner(set(names))
  cst.parse_module(code).visit(scanner)
  return scanner.found


def test_get_full_name():
  assert get_full_name(cst.parse_expression("klog.v")) == "klog.v"
  assert get_full_name(cst.parse_expression("a.b.c")) == "a.b.c"
  assert get_full_name(cst.parse_expression("f().x")) == ""
  assert get_full_name(cst.parse_expression("1")) == ""


def test_module_level_aliases():
  scanner = scan_imports("import klog\nimport klog as k\nimport os, klog as kl\nimport klogger\n")

  assert scanner.aliases == {"klog", "k", "kl"}
  assert scanner.from_imports == []
  assert scanner.nested_imports == []


def test_submodule_import_is_not_an_alias():
  assert scan_imports("import klog.extra\n").aliases == set()


def test_dotted_legacy_module():
  assert scan_imports("import k8s.klog\n", module="k8s.klog").aliases == {"k8s.klog"}


def test_from_imports_collected():
  scanner = scan_imports("from klog import info\nfrom klog.sub import x\nfrom .klog import y\n")

  assert len(scanner.from_imports) == 2


def test_nested_imports_collected():
  code = "def f():\n    import klog\n\nif True: import klog as k\n"

  scanner = scan_imports(code)

  assert len(scanner.nested_imports) == 2
  assert scanner.aliases == set()


def test_usage_ignores_imports():
  assert scan_usage("import klog\n", "klog") == set()


def test_usage_of_names_and_attributes():
  code = "klog.flush()\nx = k\ny = other.klog\nf().k\n"

  assert scan_usage(code, "klog", "k", "unused") == {"klog", "k"}


def test_usage_of_dotted_alias():
  assert scan_usage("k8s.klog.info('x')\n", "k8s.klog") == {"k8s.klog"}
  assert scan_usage("k8s.other()\n", "k8s.klog") == set()


def test_module_level_bindings():
  code = (
    "import os.path\n"
    "import logr as lg\n"
    "from x import y, z as w\n"
    "a, (b, c) = 1, (2, 3)\n"
    "d: int = 4\n"
    "e += 1\n"
    "def f():\n"
    "    inner = 1\n"
    "class C:\n"
    "    pass\n"
  )

  assert module_level_bindings(cst.parse_module(code)) == {"os", "lg", "y", "w", "a", "b", "c", "d", "e", "f", "C"}
