"""
Tests for Centralized Logging Utility and Injection Mechanics.

Verifies:
1. Singleton Proxy correctness.
2. Injection capabilities (`set_console`).
3. Standard logging wrappers, including the SUCCESS level.
4. Logs go to stderr so that stdout stays reserved for diffs.
"""

import io
import logging

from rich.console import Console
from rich.logging import RichHandler

from kfix.utils.console import (
  SUCCESS_LEVEL_NUM,
  console,
  get_console,
  log_error,
  log_info,
  log_success,
  log_warning,
  reset_console,
  set_console,
)


def test_console_singleton_proxy():
  """
  Verify `console` acts as a proxy to a real Rich console.
  """
  assert callable(console.print)
  assert hasattr(console, "export_text")
  assert isinstance(get_console(), Console)


def test_custom_console_injection():
  """
  Verify we can inject a capturing console and retrieve logs.
  """
  capture_console = Console(record=True, file=io.StringIO(), width=200)
  set_console(capture_console)

  log_info("Captured Log")
  log_success("All done")

  output = capture_console.export_text()
  assert "Captured Log" in output
  assert "ℹ️" in output
  assert "✅ All done" in output
  assert "SUCCESS" in output


def test_reset_functionality():
  """
  Verify `reset_console` restores default behavior with a fresh instance.
  """
  original_backend = get_console()

  temp = Console()
  set_console(temp)
  assert get_console() is temp

  reset_console()
  current = get_console()

  assert current is not temp
  assert current is not original_backend
  assert isinstance(current, Console)


def test_logging_wrappers_write_to_stderr(capsys):
  reset_console()

  log_warning("WarnText")
  log_error("ErrorText")

  captured = capsys.readouterr()
  assert captured.out == ""
  assert "WarnText" in captured.err
  assert "ErrorText" in captured.err
  assert "❌" in captured.err


def test_single_rich_handler():
  """Swapping consoles must not stack handlers on the root logger."""
  set_console(Console(file=io.StringIO()))
  set_console(Console(file=io.StringIO()))

  rich_handlers = [h for h in logging.getLogger().handlers if isinstance(h, RichHandler)]
  assert len(rich_handlers) == 1


def test_success_level_name():
  assert logging.getLevelName(SUCCESS_LEVEL_NUM) == "SUCCESS"


def test_proxy_getattr_delegation():
  """
  Verify that attributes not defined on the proxy fall through to the backend.
  """
  width = console.width
  assert isinstance(width, int)
  assert width > 0
