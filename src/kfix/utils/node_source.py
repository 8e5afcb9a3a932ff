"""
AST Node Serialization for Error Messages.

Renders arbitrary LibCST nodes into source text "in vacuum", without the module
they came from. Fixes use this to quote the offending construct when they refuse
to rewrite it.
"""

import libcst as cst

# A dummy module used as a context to render detached nodes.
_RENDER_CTX = cst.parse_module("")

_MAX_QUOTE = 80


def capture_node_source(node: cst.CSTNode) -> str:
  """
  Renders a LibCST node into its Python source code string representation.

  Args:
      node: The CST node to serialise.

  Returns:
      str: The Python code string.
  """
  try:
    return _RENDER_CTX.code_for_node(node)
  except Exception:
    return f"<Unrepresentable Node: {type(node).__name__}>"


def quote_node(node: cst.CSTNode) -> str:
  """
  Returns a single-line, length-limited rendering of a node for messages.
  """
  text = " ".join(capture_node_source(node).split())
  if len(text) > _MAX_QUOTE:
    text = text[: _MAX_QUOTE - 3] + "..."
  return f"`{text}`"
