"""
Entry point for module execution (``python -m kfix``).

This module delegates execution to the CLI handler in ``kfix.cli.__main__``.
"""

import sys
from kfix.cli.__main__ import main

if __name__ == "__main__":
  sys.exit(main())
