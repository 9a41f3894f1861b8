"""
Workspace session state.

Holds the current project snapshot, the open editor tabs and any pending
AI file generations. All structural edits go through the tree module; this
class owns the resulting list and keeps tabs consistent with it.
"""

import asyncio
import logging
import uuid
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Set, Tuple

from .exceptions import InvalidOperationError
from .models import Node, NodeKind, Tab, ROOT_ID
from .tree import (
    ai_placeholder,
    create_node,
    default_project,
    delete_node,
    find_node,
    move_node,
    rename_node,
    toggle_folder,
    update_content,
    validate_tree,
)

logger = logging.getLogger(__name__)

ContentGenerator = Callable[[str, str, Sequence[Node]], Awaitable[str]]


class Workspace:
    """A single user's project plus editor state."""

    def __init__(self, nodes: Optional[Sequence[Node]] = None):
        self.nodes: List[Node] = list(nodes) if nodes is not None else default_project()
        validate_tree(self.nodes)
        self.tabs: List[Tab] = []
        self.active_tab_id: Optional[str] = None
        self.tab_history: List[str] = []
        # Held for the duration of a publish; publishes must not overlap
        self.publish_lock = asyncio.Lock()
        self._generations: Dict[str, "asyncio.Task[str]"] = {}

    def snapshot(self) -> List[Node]:
        return list(self.nodes)

    def get(self, node_id: str) -> Node:
        return find_node(self.nodes, node_id)

    def replace(self, nodes: Sequence[Node]) -> None:
        """Swap in a complete snapshot uploaded by the client."""
        nodes = list(nodes)
        validate_tree(nodes)
        kept = {n.id for n in nodes}
        self._forget(set(self._all_ids()) - kept)
        self.nodes = nodes

    # Tree edits

    def create(self, name: str, kind: NodeKind, parent_id: str = ROOT_ID) -> Node:
        self.nodes, node = create_node(self.nodes, name, kind, parent_id)
        if node.is_file:
            self.open_file(node.id)
        return node

    async def create_generated(
        self,
        name: str,
        description: str,
        parent_id: str,
        generator: ContentGenerator,
    ) -> Node:
        """
        Create a file immediately with placeholder content and fill it in
        once the generator finishes.

        Returns the placeholder node right away; await generation(node.id)
        to wait for the final content.
        """
        self.nodes, node = create_node(
            self.nodes, name, "file", parent_id, content=ai_placeholder(name, description)
        )
        self.open_file(node.id)

        self._generations[node.id] = asyncio.create_task(
            self._fill(node.id, generator, name, description, self.snapshot())
        )
        logger.info(f"Generating content for '{name}' ({node.id})")
        return node

    async def _fill(
        self,
        node_id: str,
        generator: ContentGenerator,
        name: str,
        description: str,
        context: Sequence[Node],
    ) -> str:
        try:
            content = await generator(name, description, context)
        except Exception as e:
            logger.error(f"Content generation for {node_id} failed: {e!r}")
            content = f"// Generation Failed: {e}"
        finally:
            self._generations.pop(node_id, None)

        if any(n.id == node_id for n in self.nodes):
            self.nodes = update_content(self.nodes, node_id, content)
            logger.info(f"Generated content stored for {node_id}")
        else:
            logger.info(f"Discarding generated content for deleted node {node_id}")
        return content

    def generation(self, node_id: str) -> Optional["asyncio.Task[str]"]:
        """Pending generation task for a node, if any."""
        return self._generations.get(node_id)

    def rename(self, node_id: str, new_name: str) -> Node:
        self.nodes = rename_node(self.nodes, node_id, new_name)
        return self.get(node_id)

    def move(self, node_id: str, new_parent_id: str) -> Node:
        self.nodes = move_node(self.nodes, node_id, new_parent_id)
        return self.get(node_id)

    def toggle(self, node_id: str) -> Node:
        self.nodes = toggle_folder(self.nodes, node_id)
        return self.get(node_id)

    def update_content(self, node_id: str, content: str) -> Node:
        self.nodes = update_content(self.nodes, node_id, content)
        return self.get(node_id)

    def delete(self, node_id: str) -> Tuple[Set[str], List[str]]:
        """
        Delete a node and its descendants, closing their tabs.

        Returns:
            (removed node ids, closed tab ids)
        """
        self.nodes, removed = delete_node(self.nodes, node_id)
        closed = self._forget(removed)
        logger.info(f"Deleted {len(removed)} node(s), closed {len(closed)} tab(s)")
        return removed, closed

    def _all_ids(self):
        return (n.id for n in self.nodes)

    def _forget(self, removed: Set[str]) -> List[str]:
        """Close tabs and cancel generations bound to removed nodes."""
        for node_id in removed:
            task = self._generations.pop(node_id, None)
            if task is not None:
                task.cancel()

        closed = [t.id for t in self.tabs if t.file_id in removed]
        for tab_id in closed:
            self.close_tab(tab_id)
        return closed

    # Tabs

    def open_file(self, file_id: str) -> Tab:
        node = self.get(file_id)
        if not node.is_file:
            raise InvalidOperationError(f"'{node.name}' is a folder and cannot be opened")

        for tab in self.tabs:
            if tab.file_id == file_id:
                self._activate(tab.id)
                return tab

        tab = Tab(id=uuid.uuid4().hex[:9], file_id=file_id)
        self.tabs.append(tab)
        self._activate(tab.id)
        return tab

    def _activate(self, tab_id: str) -> None:
        # Most recently focused tab last
        self.tab_history = [t for t in self.tab_history if t != tab_id] + [tab_id]
        self.active_tab_id = tab_id

    def close_tab(self, tab_id: str) -> None:
        """Close a tab; if it was focused, focus the most recently used one left."""
        remaining = [t for t in self.tabs if t.id != tab_id]
        if len(remaining) == len(self.tabs):
            raise InvalidOperationError(f"Tab not found: {tab_id}")
        self.tabs = remaining
        self.tab_history = [t for t in self.tab_history if t != tab_id]
        if self.active_tab_id == tab_id:
            if self.tab_history:
                self.active_tab_id = self.tab_history[-1]
            else:
                self.active_tab_id = remaining[-1].id if remaining else None
