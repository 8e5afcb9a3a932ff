"""
Built-in Fix Catalog.

Importing this package registers every built-in fix. Registration order is the
order in which fixes are applied.
"""

from kfix.fixes import logr  # noqa: F401
