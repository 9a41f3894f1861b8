"""
Sync Orchestrator

Runs a full publish of the project to GitHub and translates every failure
into the sync error taxonomy.
"""

import logging
from typing import Optional, Sequence

import httpx

from .exceptions import GENERIC_FAILURE, AuthExpired, RemoteApiError, SyncError
from .github_publisher import GitHubPublisher, ProgressCallback
from .models import GitHubUser, Node, PublishResult
from .payload import build_payload

logger = logging.getLogger(__name__)

AUTH_EXPIRED = "GitHub authorization expired. Please re-authenticate."


def _translate(e: Exception) -> SyncError:
    """Map any failure raised while talking to GitHub onto the sync taxonomy."""
    if isinstance(e, RemoteApiError) and e.is_auth_status:
        logger.warning(f"GitHub rejected credentials (HTTP {e.status_code}): {e.message}")
        return AuthExpired(AUTH_EXPIRED)
    if isinstance(e, RemoteApiError):
        logger.error(f"GitHub API error (HTTP {e.status_code}): {e.message}")
        return e
    if isinstance(e, SyncError):
        logger.error(f"Sync failed: {e.message}")
        return e
    if isinstance(e, httpx.HTTPError):
        logger.error(f"GitHub request failed: {e}")
    else:
        logger.error(f"Unexpected sync failure: {e!r}", exc_info=e)
    return RemoteApiError(GENERIC_FAILURE)


async def sync_project(
    nodes: Sequence[Node],
    publisher: GitHubPublisher,
    on_progress: Optional[ProgressCallback] = None,
) -> PublishResult:
    """
    Publish a project snapshot.

    Args:
        nodes: Read-only snapshot of the flat node collection
        publisher: Publisher bound to the target repository
        on_progress: Receives human-readable status updates

    Returns:
        PublishResult for the new commit

    Raises:
        AuthExpired: GitHub answered 401/403 at any step
        ValidationError: Nothing publishable
        RemoteStateError: Repository state could not be established
        RemoteApiError: Any other failure, with GitHub's message when available
    """
    def report(message: str) -> None:
        if on_progress:
            on_progress(message)

    try:
        report("Analyzing project structure...")
        entries = build_payload(nodes)
        report(f"Preparing {len(entries)} files for upload...")

        result = await publisher.publish(entries, on_progress=on_progress)

        report("Finalizing commit...")
        return result

    except Exception as e:
        error = _translate(e)
        if error is e:
            raise
        raise error from e


async def fetch_current_user(publisher: GitHubPublisher) -> GitHubUser:
    """
    Return the signed-in GitHub account.

    Raises:
        AuthExpired: The token was rejected
        RemoteApiError: Any other failure
    """
    try:
        return await publisher.current_user()
    except Exception as e:
        error = _translate(e)
        if error is e:
            raise
        raise error from e
