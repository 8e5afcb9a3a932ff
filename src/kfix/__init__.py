"""
kfix Package.

A source-to-source migration tool that moves Python code from a legacy
glog/klog-style logging module onto a logr-style structured logger.

Usage
-----

Command Line
^^^^^^^^^^^^

.. code-block:: bash

    kfix -diff mypkg/        # preview
    kfix mypkg/...           # rewrite every package below mypkg

Simple String Conversion
^^^^^^^^^^^^^^^^^^^^^^^^

.. code-block:: python

    import kfix
    code = "import klog\\nklog.info_s('started', 'port', 80)\\n"
    print(kfix.fix_source(code))
    # import logr
    #
    # log = logr.get_logger(__name__)
    # log.info("started", "port", 80)
"""

from pathlib import Path
from typing import Optional

from kfix.config import RuntimeConfig
from kfix.core.engine import FixEngine
from kfix.core.fix import build_fixes
from kfix.core.reconciler import Reconciler
from kfix.core.units import FileUnit

__version__ = "0.1.0"


def fix_source(code: str, config: Optional[RuntimeConfig] = None) -> str:
  """
  Runs the configured fixes over a string of Python code.

  This is a convenience wrapper around `FixEngine` and `Reconciler` for a single
  in-memory module. Nothing is read from or written to disk.

  Args:
      code (str): The source code to fix.
      config (RuntimeConfig, optional): Fix selection, legacy package name, iteration
          cap and line length. Defaults to the built-in settings.

  Returns:
      str: The fixed, canonically formatted source.

  Raises:
      libcst.ParserSyntaxError: If the code cannot be parsed.
      FixApplicationError: If a fix cannot process the code.
      RenderError: If the result cannot be formatted.
      ValueError: If the configuration names an unknown fix.
  """
  config = config or RuntimeConfig()
  engine = FixEngine(build_fixes(config), max_iterations=config.max_iterations)

  unit = FileUnit.from_source(Path("<string>"), code.encode("utf-8"))
  engine.fix_file(unit)
  return Reconciler(line_length=config.line_length).render(unit.tree).decode(unit.tree.encoding)


__all__ = [
  "fix_source",
  "RuntimeConfig",
  "__version__",
]
