"""
Project path resolution.

Turns a node of the flat project collection into its slash-separated path by
walking parent links up to the root.
"""

from typing import Dict, Optional, Sequence

from .models import Node, ROOT_ID


def _index(nodes: Sequence[Node]) -> Dict[str, Node]:
    return {n.id: n for n in nodes}


def resolve_path(node: Node, nodes: Sequence[Node]) -> Optional[str]:
    """
    Compute the path of a node relative to the project root.

    Args:
        node: Node to resolve
        nodes: Flat node collection the node belongs to

    Returns:
        Path such as "src/app/main.py", or None when an ancestor link is
        dangling (or loops back on itself).
    """
    by_id = _index(nodes)
    parts = [node.name]
    seen = {node.id}
    current = node

    while current.parent_id is not None and current.parent_id != ROOT_ID:
        parent = by_id.get(current.parent_id)
        if parent is None or parent.id in seen:
            return None
        seen.add(parent.id)
        parts.append(parent.name)
        current = parent

    return "/".join(reversed(parts))
