"""
Structured Reporter Handle.

The engine and output sink never reach for a process-wide logger. Instead they are
handed a `Reporter`, a small logr-style handle that:

1. Carries a hierarchical name (``kfix.fixer``) and bound key/value pairs
   (``package=example.com/foo``) that are attached to every message.
2. Gates verbose messages: ``reporter.v(1).info(...)`` is only emitted when the
   configured verbosity is at least 1.
3. Records every message as a `ReportEvent`, so callers can inspect what
   happened without parsing console text.

Derived handles (`with_name`, `with_values`, `v`) share the parent's event log.
"""

import logging
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from rich.markup import escape


class ReportLevel(str, Enum):
  INFO = "info"
  ERROR = "error"


@dataclass
class ReportEvent:
  level: ReportLevel
  name: str
  message: str
  verbosity: int
  timestamp: float
  values: Dict[str, Any] = field(default_factory=dict)
  error: Optional[str] = None


class Reporter:
  """
  Structured logging handle passed explicitly through the pipeline.

  Attributes:
      name (str): Dotted logger name.
      values (Dict[str, Any]): Key/value pairs bound to this handle.
      verbosity (int): The configured verbosity threshold.
      level (int): The verbosity level of messages logged through this handle.
  """

  def __init__(
    self,
    name: str = "kfix",
    verbosity: int = 0,
    values: Optional[Dict[str, Any]] = None,
    level: int = 0,
    events: Optional[List[ReportEvent]] = None,
  ) -> None:
    self.name = name
    self.verbosity = verbosity
    self.values: Dict[str, Any] = dict(values or {})
    self.level = level
    self._events: List[ReportEvent] = events if events is not None else []
    self._logger = logging.getLogger(name)

  def _derive(self, **changes: Any) -> "Reporter":
    params = {
      "name": self.name,
      "verbosity": self.verbosity,
      "values": self.values,
      "level": self.level,
      "events": self._events,
    }
    params.update(changes)
    return Reporter(**params)

  def with_name(self, name: str) -> "Reporter":
    """Returns a handle whose name has `name` appended as a new segment."""
    return self._derive(name=f"{self.name}.{name}")

  def with_values(self, **values: Any) -> "Reporter":
    """Returns a handle with additional bound key/value pairs."""
    return self._derive(values={**self.values, **values})

  def v(self, level: int) -> "Reporter":
    """Returns a handle whose info messages are gated at the given verbosity."""
    return self._derive(level=level)

  @property
  def enabled(self) -> bool:
    """True if info messages at this handle's level will be emitted."""
    return self.level <= self.verbosity

  def info(self, message: str, **values: Any) -> None:
    """
    Records an informational message and logs it if enabled.

    Args:
        message: Constant message text.
        **values: Extra key/value pairs for this message only.
    """
    merged = {**self.values, **values}
    self._record(ReportLevel.INFO, message, merged)
    if self.enabled:
      self._logger.info(self._format(message, merged), extra={"markup": True})

  def error(self, err: Optional[BaseException], message: str, **values: Any) -> None:
    """
    Records an error. Errors are always logged, regardless of verbosity.

    Args:
        err: The exception that caused the error, if any.
        message: Constant message text.
        **values: Extra key/value pairs for this message only.
    """
    merged = {**self.values, **values}
    self._record(ReportLevel.ERROR, message, merged, err)
    if err is not None:
      merged = {**merged, "error": err}
    self._logger.error(self._format(message, merged), extra={"markup": True})

  def _record(
    self,
    level: ReportLevel,
    message: str,
    values: Dict[str, Any],
    err: Optional[BaseException] = None,
  ) -> None:
    self._events.append(
      ReportEvent(
        level=level,
        name=self.name,
        message=message,
        verbosity=self.level,
        timestamp=time.time(),
        values=dict(values),
        error=str(err) if err is not None else None,
      )
    )

  @staticmethod
  def _format(message: str, values: Dict[str, Any]) -> str:
    pairs = " ".join(f"{k}={v!r}" for k, v in values.items())
    text = f"{message} {pairs}" if pairs else message
    return escape(text)

  @property
  def events(self) -> List[ReportEvent]:
    """The shared event log."""
    return self._events

  def export(self) -> List[Dict[str, Any]]:
    """Returns list of dicts for JSON serialization."""
    return [asdict(e) for e in self._events]
