"""
CodeStudio Exceptions

Error types for project tree editing and GitHub sync.
"""

from typing import Optional


# Project tree errors

class TreeError(ValueError):
    """Base class for rejected project tree operations."""


class NodeNotFoundError(TreeError):
    """Raised when an operation names a node id that does not exist."""

    def __init__(self, node_id: str):
        super().__init__(f"Node not found: {node_id}")
        self.node_id = node_id


class CycleError(TreeError):
    """Raised when a move would make a node its own ancestor."""


class InvalidOperationError(TreeError):
    """Raised for structurally invalid edits (renaming the root, moving into a file, ...)."""


# Sync errors

# Shown when GitHub gives no usable reason for a failure
GENERIC_FAILURE = "Sync failed"


class SyncError(Exception):
    """
    Base class for publish failures.

    Carries a human-readable message and whether the failure means the
    GitHub credential has to be renewed.
    """

    is_auth_error = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SyncError):
    """Nothing publishable: empty project, unresolvable paths, or every blob upload failed."""


class RemoteStateError(SyncError):
    """Repository existence or branch head could not be established."""


class AuthExpired(SyncError):
    """GitHub answered 401/403."""

    is_auth_error = True


class RemoteApiError(SyncError):
    """Any other non-2xx answer from GitHub, or a transport failure."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_auth_status(self) -> bool:
        return self.status_code in (401, 403)
