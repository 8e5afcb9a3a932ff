"""
Reconciliation of Syntax Trees into Canonical Source.

LibCST preserves the exact formatting of untouched code, and fixes build new nodes
with default whitespace. Neither is canonical on its own, so the reconciler always
regenerates the complete file: LibCST code generation followed by Black. The output
therefore matches what Black produces from a fresh parse of equivalent source, no
matter how much of the tree a fix touched.
"""

from typing import Optional

import black
import libcst as cst

from kfix.core.errors import RenderError


class Reconciler:
  """
  Renders LibCST modules into canonical bytes.

  Attributes:
      mode (black.Mode): The formatting options used for every file.
  """

  def __init__(self, line_length: int = black.DEFAULT_LINE_LENGTH, mode: Optional[black.Mode] = None) -> None:
    self.mode = mode or black.Mode(line_length=line_length)

  def render(self, tree: cst.Module) -> bytes:
    """
    Generates canonical source for a module.

    Args:
        tree: The (possibly mutated) syntax tree.

    Returns:
        bytes: Formatted source, encoded with the module's encoding.

    Raises:
        RenderError: If code generation or formatting fails, which means a fix
            produced a structurally invalid tree.
    """
    try:
      code = tree.code
    except Exception as e:
      raise RenderError(f"cannot generate code from tree: {e}") from e

    try:
      formatted = black.format_str(code, mode=self.mode)
    except black.InvalidInput as e:
      raise RenderError(f"generated code is not valid Python: {e}") from e

    try:
      return formatted.encode(tree.encoding)
    except (LookupError, UnicodeEncodeError) as e:
      raise RenderError(f"cannot encode output as {tree.encoding}: {e}") from e
