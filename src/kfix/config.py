"""
Runtime Configuration Store.

Settings are resolved in three layers: model defaults, the ``[tool.kfix]`` table of
the nearest ``pyproject.toml``, and explicit (CLI) overrides.
"""

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError, field_validator

if sys.version_info >= (3, 11):
  import tomllib
else:
  import tomli as tomllib

STANDARD_KLOG_PKG = "klog"
DEFAULT_MAX_ITERATIONS = 10


class RuntimeConfig(BaseModel):
  """
  Global configuration container for the fix pipeline.
  """

  legacy_package: str = Field(STANDARD_KLOG_PKG, description="Import name of the legacy logging module.")
  logger_package: str = Field("logr", description="Import name of the structured logger module.")
  logger_name: str = Field("log", description="Module-level name bound to the structured logger.")

  fixes: List[str] = Field(default_factory=list, description="Fix names to apply. Empty means all.")
  max_iterations: int = Field(
    DEFAULT_MAX_ITERATIONS,
    ge=1,
    description="Maximum applications of a single fix before it is deemed non-convergent.",
  )
  line_length: int = Field(88, ge=1, description="Line length used by the canonical formatter.")

  diff: bool = Field(False, description="If True, print diffs instead of rewriting files.")
  diff_tool: Optional[str] = Field(None, description="External diff executable. None uses the built-in differ.")
  verbosity: int = Field(0, ge=0, description="Log verbosity threshold for V(n) messages.")

  @field_validator("legacy_package", "logger_package", "logger_name")
  @classmethod
  def validate_identifier(cls, v: str) -> str:
    """
    Ensures module and binding names are usable as Python names.

    Args:
        v (str): The raw name.

    Returns:
        str: The stripped name.

    Raises:
        ValueError: If the name is not a (dotted) identifier.
    """
    v_clean = v.strip()
    if not v_clean or not all(part.isidentifier() for part in v_clean.split(".")):
      raise ValueError(f"Not a valid Python name: '{v}'")
    return v_clean

  @field_validator("fixes", mode="before")
  @classmethod
  def split_fix_names(cls, v: Any) -> Any:
    """Accepts a comma separated string as well as a list."""
    if isinstance(v, str):
      return [name.strip() for name in v.split(",") if name.strip()]
    return v

  @classmethod
  def load(
    cls,
    legacy_package: Optional[str] = None,
    fixes: Optional[List[str]] = None,
    max_iterations: Optional[int] = None,
    line_length: Optional[int] = None,
    diff: Optional[bool] = None,
    diff_tool: Optional[str] = None,
    verbosity: Optional[int] = None,
    search_path: Optional[Path] = None,
  ) -> "RuntimeConfig":
    """
    Loads configuration from pyproject.toml and overrides with CLI arguments.

    Arguments left as None fall back to the TOML value, then to the model default.

    Args:
        legacy_package: Override for the legacy logging module name.
        fixes: Override for the selected fix names.
        max_iterations: Override for the fixed-point iteration cap.
        line_length: Override for the formatter line length.
        diff: Override for diff mode.
        diff_tool: Override for the external diff executable.
        verbosity: Override for the log verbosity.
        search_path: Directory to start searching for TOML config.

    Returns:
        RuntimeConfig: The fully resolved configuration object.

    Raises:
        ValueError: If the merged settings fail validation.
    """
    start_dir = search_path or Path.cwd()
    settings, _ = _load_toml_settings(start_dir)

    overrides = {
      "legacy_package": legacy_package,
      "fixes": fixes,
      "max_iterations": max_iterations,
      "line_length": line_length,
      "diff": diff,
      "diff_tool": diff_tool,
      "verbosity": verbosity,
    }
    merged = {**settings, **{k: v for k, v in overrides.items() if v is not None}}

    try:
      return cls.model_validate(merged)
    except ValidationError as e:
      raise ValueError(f"Invalid kfix configuration: {e}")


def _load_toml_settings(start_path: Path) -> Tuple[Dict[str, Any], Optional[Path]]:
  """
  Searches start_path and its parents for 'pyproject.toml' and extracts config.

  Args:
      start_path (Path): Directory to start search from.

  Returns:
      Tuple[Dict, Optional[Path]]: The config dict and the directory it was found in.
  """
  current = start_path.resolve()

  for parent in [current, *current.parents]:
    toml_path = parent / "pyproject.toml"
    if toml_path.is_file():
      try:
        with open(toml_path, "rb") as f:
          data = tomllib.load(f)
      except (OSError, tomllib.TOMLDecodeError):
        return {}, None

      tool_section = data.get("tool", {})
      return tool_section.get("kfix", {}), parent

  return {}, None
