"""
Sync payload construction.

Selects the publishable files of a project snapshot and pairs each with its
repository path.
"""

import logging
from typing import List, Sequence

from .exceptions import ValidationError
from .models import Node, PayloadEntry
from .paths import resolve_path

logger = logging.getLogger(__name__)


def build_payload(nodes: Sequence[Node]) -> List[PayloadEntry]:
    """
    Build the list of files to publish.

    Files whose path cannot be resolved (dangling parent) are skipped so they
    do not block the rest of the project. Empty files are kept.

    Raises:
        ValidationError: If no file survives
    """
    entries: List[PayloadEntry] = []

    for node in nodes:
        if not node.is_file or not node.name or not isinstance(node.content, str):
            continue

        path = resolve_path(node, nodes)
        if path is None:
            logger.debug(f"Skipping '{node.name}' ({node.id}): path cannot be resolved")
            continue

        path = path.lstrip("/")
        if not path:
            continue
        entries.append(PayloadEntry(path=path, content=node.content))

    if not entries:
        raise ValidationError("Project has no publishable content.")

    return entries
