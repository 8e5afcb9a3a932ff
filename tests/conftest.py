"""
Pytest Configuration and Fixtures.

Includes:
- Syspath patching for local imports.
- Snapshot testing fixture for visual verification.
- Global fix registry isolation to prevent tests with custom fixes from leaking.
- Console reset so captured log output never leaks between tests.
- Helpers to lay out throwaway packages on disk.
"""

import sys
import pytest
from pathlib import Path
from typing import Callable, Dict, Optional

# Add src to path so we can import 'kfix' without installing it
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Force load of the built-in catalog so it provides the "clean state" baseline
# for the registry snapshot taken in `isolate_fix_registry`.
from kfix.core.fix import _FIXES, load_fixes  # noqa: E402
from kfix.utils.console import reset_console  # noqa: E402

load_fixes()


class SnapshotAssert:
  """
  Simple snapshot comparison logic to verify CLI output stability.
  """

  def __init__(self, request: pytest.FixtureRequest):
    self.request = request
    self.test_name = request.node.name
    self.module_path = Path(request.node.fspath).parent
    self.snapshot_dir = self.module_path / "__snapshots__"
    self.update_mode = request.config.getoption("--update-snapshots", default=False)

  def assert_match(self, content: str, extension: str = "txt", normalizer: Optional[Callable[[str], str]] = None):
    """
    Compares content against stored file.

    Args:
        content: The actual output string.
        extension: File extension (default 'txt').
        normalizer: Optional function to clean both content and expected string before comparison.
    """
    if not self.snapshot_dir.exists():
      self.snapshot_dir.mkdir(parents=True)

    snapshot_file = self.snapshot_dir / f"{self.test_name}.{extension}"
    content = content.replace("\r\n", "\n")

    if self.update_mode or not snapshot_file.exists():
      snapshot_file.write_text(normalizer(content) if normalizer else content, encoding="utf-8")
      if self.update_mode:
        return

    expected = snapshot_file.read_text(encoding="utf-8").replace("\r\n", "\n")

    lhs = normalizer(content) if normalizer else content
    rhs = normalizer(expected) if normalizer else expected

    assert lhs == rhs, (
      f"Snapshot mismatch for {snapshot_file.name}. Run pytest with --update-snapshots to accept changes."
    )


@pytest.fixture
def snapshot(request):
  """Fixture to assert text matches a stored snapshot."""
  return SnapshotAssert(request)


@pytest.fixture(autouse=True)
def isolate_fix_registry():
  """
  Ensures that fixes registered by a test do not leak into other tests.
  """
  original_registry = _FIXES.copy()
  yield
  _FIXES.clear()
  _FIXES.update(original_registry)


@pytest.fixture(autouse=True)
def clean_console():
  """Resets logging to a fresh stderr console around every test."""
  reset_console()
  yield
  reset_console()


@pytest.fixture
def make_package(tmp_path: Path) -> Callable[..., Path]:
  """
  Factory writing a directory of source files.

  Usage::

      pkg = make_package("pkg", {"a.py": "import klog\\n"})
  """

  def _make(name: str, files: Dict[str, str]) -> Path:
    directory = tmp_path / name
    directory.mkdir(parents=True, exist_ok=True)
    for file_name, content in files.items():
      (directory / file_name).write_text(content, encoding="utf-8")
    return directory

  return _make


def pytest_addoption(parser):
  """Add CLI flag to update snapshots."""
  parser.addoption("--update-snapshots", action="store_true", default=False, help="Update snapshots for visual tests")
