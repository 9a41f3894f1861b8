"""
Project Tree Mutations

Structural edits over the flat, parent-linked node collection. Every function
takes the current list and returns a new one; the input list is never
modified. Persisting the result is the caller's job.
"""

import logging
import uuid
from typing import Dict, List, Optional, Sequence, Set, Tuple

from .exceptions import CycleError, InvalidOperationError, NodeNotFoundError
from .models import Node, NodeKind, ROOT_ID

logger = logging.getLogger(__name__)


LANGUAGE_MAP: Dict[str, str] = {
    "js": "javascript",
    "jsx": "javascript",
    "ts": "typescript",
    "tsx": "typescript",
    "py": "python",
    "cpp": "cpp",
    "c": "cpp",
    "html": "html",
    "css": "css",
    "json": "json",
    "md": "markdown",
    "yml": "markdown",
    "yaml": "markdown",
}


def _extension(name: str) -> str:
    return name.rsplit(".", 1)[-1].lower() if "." in name else ""


def infer_language(name: str) -> Optional[str]:
    """Language tag for a file name, or None if the extension is unknown."""
    return LANGUAGE_MAP.get(_extension(name))


def ai_placeholder(name: str, description: str) -> str:
    """Placeholder shown in a file while its AI-generated content is pending."""
    ext = _extension(name)
    start = "//"
    if ext in ("html", "xml", "md"):
        start = "<!--"
    elif ext in ("py", "sh", "yaml"):
        start = "#"
    return f'{start} AI generating content for "{name}"...\n{start} Description: {description}'


def new_node_id(existing: Sequence[Node] = ()) -> str:
    taken = {n.id for n in existing}
    while True:
        candidate = uuid.uuid4().hex[:9]
        if candidate not in taken:
            return candidate


def _sort_key(node: Node):
    # Folders first, then a locale-like name order with a case-sensitive tie-break
    return (node.kind != "folder", node.name.casefold(), node.name)


def sort_nodes(nodes: Sequence[Node]) -> List[Node]:
    """Return the collection in display order: folders before files, each group by name."""
    return sorted(nodes, key=_sort_key)


def find_node(nodes: Sequence[Node], node_id: str) -> Node:
    for node in nodes:
        if node.id == node_id:
            return node
    raise NodeNotFoundError(node_id)


def children_of(nodes: Sequence[Node], parent_id: str) -> List[Node]:
    return [n for n in nodes if n.parent_id == parent_id]


def descendant_ids(nodes: Sequence[Node], node_id: str) -> Set[str]:
    """Ids of every node below node_id (not including node_id itself)."""
    children: Dict[str, List[str]] = {}
    for n in nodes:
        if n.parent_id is not None:
            children.setdefault(n.parent_id, []).append(n.id)

    found: Set[str] = set()
    stack = list(children.get(node_id, []))
    while stack:
        current = stack.pop()
        if current in found:
            continue
        found.add(current)
        stack.extend(children.get(current, []))
    return found


def _replace(nodes: Sequence[Node], node_id: str, **changes) -> List[Node]:
    return [n.model_copy(update=changes) if n.id == node_id else n for n in nodes]


def _check_name(name: str) -> str:
    name = name.strip()
    if not name or "/" in name:
        raise InvalidOperationError(f"Invalid node name: {name!r}")
    return name


def _require_folder(nodes: Sequence[Node], node_id: str) -> Node:
    folder = find_node(nodes, node_id)
    if not folder.is_folder:
        raise InvalidOperationError(f"'{folder.name}' is not a folder")
    return folder


def create_node(
    nodes: Sequence[Node],
    name: str,
    kind: NodeKind,
    parent_id: str = ROOT_ID,
    content: Optional[str] = None,
    node_id: Optional[str] = None,
) -> Tuple[List[Node], Node]:
    """
    Insert a new file or folder and re-sort the collection.

    Args:
        nodes: Current collection
        name: Name of the new node
        kind: 'file' or 'folder'
        parent_id: Folder that will contain the node
        content: Initial file contents (files only, defaults to "")
        node_id: Explicit id; a fresh one is generated when omitted

    Returns:
        (new collection, created node)

    Raises:
        NodeNotFoundError: If the parent does not exist
        InvalidOperationError: If the name is empty, the parent is a file,
            or the id is already taken
    """
    name = _check_name(name)
    _require_folder(nodes, parent_id)

    if node_id is None:
        node_id = new_node_id(nodes)
    elif any(n.id == node_id for n in nodes):
        raise InvalidOperationError(f"Node id already in use: {node_id}")

    if kind == "file":
        node = Node(
            id=node_id,
            name=name,
            kind="file",
            parent_id=parent_id,
            content=content if content is not None else "",
            language=infer_language(name),
        )
    else:
        node = Node(id=node_id, name=name, kind="folder", parent_id=parent_id, expanded=True)

    logger.debug(f"Created {kind} '{name}' ({node_id}) in {parent_id}")
    return sort_nodes([*nodes, node]), node


def rename_node(nodes: Sequence[Node], node_id: str, new_name: str) -> List[Node]:
    """Change a node's name. Sibling order is left as is; use sort_nodes to re-sort."""
    node = find_node(nodes, node_id)
    if node.parent_id is None:
        raise InvalidOperationError("The project root cannot be renamed")
    return _replace(nodes, node_id, name=_check_name(new_name))


def move_node(nodes: Sequence[Node], node_id: str, new_parent_id: str) -> List[Node]:
    """
    Reparent a node.

    Moving a node onto itself is a no-op. Moving a folder into one of its own
    descendants raises CycleError.
    """
    if node_id == new_parent_id:
        return list(nodes)

    node = find_node(nodes, node_id)
    if node.parent_id is None:
        raise InvalidOperationError("The project root cannot be moved")
    _require_folder(nodes, new_parent_id)

    if new_parent_id in descendant_ids(nodes, node_id):
        raise CycleError(f"Cannot move '{node.name}' into its own descendant")

    return _replace(nodes, node_id, parent_id=new_parent_id)


def delete_node(nodes: Sequence[Node], node_id: str) -> Tuple[List[Node], Set[str]]:
    """
    Remove a node together with all of its descendants.

    Returns:
        (new collection, ids of every removed node)
    """
    node = find_node(nodes, node_id)
    if node.parent_id is None:
        raise InvalidOperationError("The project root cannot be deleted")

    removed = descendant_ids(nodes, node_id) | {node_id}
    return [n for n in nodes if n.id not in removed], removed


def toggle_folder(nodes: Sequence[Node], node_id: str) -> List[Node]:
    folder = _require_folder(nodes, node_id)
    return _replace(nodes, node_id, expanded=not folder.expanded)


def update_content(nodes: Sequence[Node], node_id: str, content: str) -> List[Node]:
    node = find_node(nodes, node_id)
    if not node.is_file:
        raise InvalidOperationError(f"'{node.name}' is a folder and has no content")
    return _replace(nodes, node_id, content=content)


def validate_tree(nodes: Sequence[Node]) -> None:
    """
    Check the structural invariants of a whole collection.

    Raises:
        InvalidOperationError: On duplicate ids, a missing or extra root,
            a parent that is missing or not a folder
        CycleError: If any parent chain loops
    """
    by_id: Dict[str, Node] = {}
    for n in nodes:
        if n.id in by_id:
            raise InvalidOperationError(f"Duplicate node id: {n.id}")
        by_id[n.id] = n

    roots = [n for n in nodes if n.parent_id is None]
    if len(roots) != 1:
        raise InvalidOperationError(f"Expected exactly one root, found {len(roots)}")
    if roots[0].id != ROOT_ID or not roots[0].is_folder:
        raise InvalidOperationError(f"The root must be a folder with id '{ROOT_ID}'")

    for n in nodes:
        if n.parent_id is None:
            continue
        parent = by_id.get(n.parent_id)
        if parent is None:
            raise InvalidOperationError(f"'{n.name}' references missing parent {n.parent_id}")
        if not parent.is_folder:
            raise InvalidOperationError(f"'{n.name}' is inside file '{parent.name}'")

        seen = {n.id}
        current = parent
        while current is not None and current.parent_id is not None:
            if current.id in seen:
                raise CycleError(f"Parent chain of '{n.name}' loops")
            seen.add(current.id)
            current = by_id.get(current.parent_id)


def default_project() -> List[Node]:
    """Seed project shown to a new workspace."""
    nodes = [
        Node(id=ROOT_ID, name="root", kind="folder", parent_id=None, expanded=True),
        Node(id="src", name="src", kind="folder", parent_id=ROOT_ID, expanded=True),
        Node(id="public", name="public", kind="folder", parent_id=ROOT_ID, expanded=True),
        Node(
            id="main.py",
            name="main.py",
            kind="file",
            parent_id="src",
            language="python",
            content=(
                "import random\n\n"
                "def guess_number():\n"
                "    target = random.randint(1, 100)\n"
                "    print(\"I'm thinking of a number between 1 and 100.\")\n"
                "    for guess in [50, 25, 75, target]:\n"
                "        print(f\"User guesses: {guess}\")\n"
                "        if guess < target:\n"
                "            print(\"Too low!\")\n"
                "        elif guess > target:\n"
                "            print(\"Too high!\")\n"
                "        else:\n"
                "            print(\"Correct! You won!\")\n"
                "            return\n\n"
                "guess_number()\n"
            ),
        ),
        Node(
            id="index.html",
            name="index.html",
            kind="file",
            parent_id="public",
            language="html",
            content=(
                "<!DOCTYPE html>\n<html lang=\"en\">\n<head>\n"
                "    <meta charset=\"UTF-8\">\n    <title>CodeStudio Preview</title>\n"
                "</head>\n<body>\n    <h1>Hello from CodeStudio</h1>\n</body>\n</html>\n"
            ),
        ),
        Node(
            id="README.md",
            name="README.md",
            kind="file",
            parent_id=ROOT_ID,
            language="markdown",
            content="# My Project\n\nEdit files on the left, run them, and publish to GitHub.\n",
        ),
    ]
    return sort_nodes(nodes)
