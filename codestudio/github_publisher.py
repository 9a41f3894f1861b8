"""
GitHub Publisher Module for CodeStudio

Publishes a full project snapshot to GitHub as a single commit using the
low-level git data API: blobs, then a tree, then a commit, then a branch
reference update.
"""

import asyncio
import base64
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import httpx

from .config import (
    GITHUB_API_URL,
    GITHUB_WEB_URL,
    GITHUB_OWNER,
    GITHUB_REPO_NAME,
    GITHUB_PRIVATE,
    SYNC_SETTLE_DELAY,
    SYNC_CONFLICT_POLICY,
    SYNC_COMMIT_MESSAGE,
)
from .exceptions import GENERIC_FAILURE, RemoteApiError, RemoteStateError, ValidationError
from .models import GitHubUser, PayloadEntry, PublishResult

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]

# Regular, non-executable file
BLOB_MODE = "100644"


class ConflictPolicy(str, Enum):
    """How the branch reference is updated when the remote has moved on."""
    FORCE_OVERWRITE = "force-overwrite"
    FAIL_ON_DIVERGENCE = "fail-on-divergence"


class _UnresolvedState(Exception):
    """Branch head lookup produced no usable answer."""


def _b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def _json_body(response: httpx.Response) -> Dict[str, Any]:
    """Decoded JSON object of a reply, or {} when the body is not one."""
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _remote_error(response: httpx.Response, action: str) -> RemoteApiError:
    """Build a RemoteApiError carrying GitHub's own message when it sent one."""
    message = _json_body(response).get("message")
    if not message:
        logger.error(f"{action} failed (HTTP {response.status_code}) without a message")
        message = GENERIC_FAILURE
    return RemoteApiError(message, status_code=response.status_code)


def _require(response: httpx.Response, key: str, action: str) -> Any:
    """Field of a successful reply; a reply without it is a failed call."""
    value = _json_body(response).get(key)
    if not value:
        logger.error(f"{action} returned HTTP {response.status_code} without '{key}'")
        raise RemoteApiError(GENERIC_FAILURE)
    return value


class GitHubPublisher:
    """
    Client that writes a project snapshot to one GitHub repository.

    The publish sequence is strictly ordered (each step needs the SHA from
    the previous one) except for blob uploads, which run concurrently.
    Callers must not run two publishes for the same repository at once.
    """

    def __init__(
        self,
        token: str,
        repo_name: str = GITHUB_REPO_NAME,
        owner: Optional[str] = GITHUB_OWNER or None,
        api_url: str = GITHUB_API_URL,
        web_url: str = GITHUB_WEB_URL,
        private: bool = GITHUB_PRIVATE,
        settle_delay: float = SYNC_SETTLE_DELAY,
        conflict_policy: str = SYNC_CONFLICT_POLICY,
        commit_message: str = SYNC_COMMIT_MESSAGE,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the publisher.

        Args:
            token: GitHub bearer token (needs 'repo' scope)
            repo_name: Repository to publish into; created if missing
            owner: Repository owner; discovered from the token when None
            api_url: GitHub REST API base URL
            web_url: GitHub web base URL, used when the API omits html_url
            private: Visibility of a newly created repository
            settle_delay: Seconds to pause after repository creation or remediation
            conflict_policy: 'force-overwrite' or 'fail-on-divergence'
            commit_message: Message of the published commit
            timeout: HTTP timeout in seconds
            transport: Optional httpx transport (used by tests)

        Raises:
            ValueError: If token is empty or the conflict policy is unknown
        """
        if not token:
            raise ValueError("GitHub token required to publish")

        self.repo_name = repo_name
        self.owner = owner
        self.web_url = web_url.rstrip("/")
        self.private = private
        self.settle_delay = settle_delay
        self.conflict_policy = ConflictPolicy(conflict_policy)
        self.commit_message = commit_message
        self.client = httpx.AsyncClient(
            base_url=api_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=timeout,
            transport=transport,
        )

    async def publish(
        self,
        entries: Sequence[PayloadEntry],
        on_progress: Optional[ProgressCallback] = None,
    ) -> PublishResult:
        """
        Publish entries as one commit on the repository's default branch.

        Args:
            entries: Files to publish (full snapshot, not a diff)
            on_progress: Receives one status string per phase

        Returns:
            PublishResult with the repository URL, branch and commit SHA

        Raises:
            ValidationError: If every blob upload failed
            RemoteStateError: If the branch head cannot be established, or the
                branch diverged under the fail-on-divergence policy
            RemoteApiError: For any other non-2xx answer (including 401/403)
        """
        def report(message: str) -> None:
            logger.info(message)
            if on_progress:
                on_progress(message)

        report("Connecting to GitHub...")
        owner = await self._resolve_owner()
        repo = await self._ensure_repository(owner, report)

        report("Checking branch state...")
        branch, head_sha = await self._resolve_head_with_remediation(owner, report)

        report(f"Uploading {len(entries)} files...")
        tree_items, skipped = await self._create_blobs(owner, entries)
        if not tree_items:
            raise ValidationError("No valid files to push.")
        if skipped:
            report(f"{skipped} file(s) failed to upload and were skipped")

        report("Building file tree...")
        tree_sha = await self._create_tree(owner, tree_items)

        report("Creating commit...")
        commit_sha = await self._create_commit(owner, tree_sha, head_sha)

        report(f"Updating branch '{branch}'...")
        await self._update_ref(owner, branch, commit_sha, head_sha)

        repository_url = repo.get("html_url") or f"{self.web_url}/{owner}/{self.repo_name}"
        report("Sync complete")
        return PublishResult(
            repository_url=repository_url,
            branch=branch,
            commit_sha=commit_sha,
            files_pushed=len(tree_items),
            files_skipped=skipped,
        )

    async def current_user(self) -> GitHubUser:
        """
        Look up the account the token belongs to.

        Raises:
            RemoteApiError: On a non-200 answer (401 for a revoked token)
        """
        response = await self.client.get("/user")
        if response.status_code != 200:
            raise _remote_error(response, "User lookup")
        data = _json_body(response)
        login = _require(response, "login", "User lookup")
        return GitHubUser(
            id=str(data.get("id", "")),
            username=login,
            avatar_url=data.get("avatar_url") or "",
            html_url=data.get("html_url") or f"{self.web_url}/{login}",
        )

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _repo_path(self, owner: str) -> str:
        return f"/repos/{owner}/{self.repo_name}"

    async def _settle(self) -> None:
        await asyncio.sleep(self.settle_delay)

    async def _resolve_owner(self) -> str:
        if self.owner:
            return self.owner

        self.owner = (await self.current_user()).username
        logger.info(f"Publishing as GitHub user: {self.owner}")
        return self.owner

    async def _ensure_repository(self, owner: str, report: ProgressCallback) -> Dict[str, Any]:
        response = await self.client.get(self._repo_path(owner))
        if response.status_code == 200:
            return _json_body(response)
        if response.status_code != 404:
            raise _remote_error(response, "Repository lookup")

        report(f"Creating repository '{self.repo_name}'...")
        created = await self.client.post(
            "/user/repos",
            json={
                "name": self.repo_name,
                "private": self.private,
                # An initial commit gives the default branch a ref to look up
                "auto_init": True,
                "description": "Created with CodeStudio",
            },
        )
        if created.status_code not in (200, 201):
            raise _remote_error(created, "Repository creation")

        logger.info(f"Created repository {owner}/{self.repo_name}")
        await self._settle()
        return _json_body(created)

    async def _resolve_head(self, owner: str) -> Tuple[str, Optional[str]]:
        """
        Find the default branch and its head commit.

        Returns:
            (branch, head SHA or None for an empty repository)

        Raises:
            RemoteApiError: On 401/403
            _UnresolvedState: When neither a head nor an empty repository is recognized
        """
        response = await self.client.get(self._repo_path(owner))
        if response.status_code in (401, 403):
            raise _remote_error(response, "Repository lookup")
        if response.status_code != 200:
            raise _UnresolvedState(f"repository lookup returned HTTP {response.status_code}")

        branch = _json_body(response).get("default_branch")
        if not branch:
            raise _UnresolvedState("repository has no default branch")

        ref = await self.client.get(f"{self._repo_path(owner)}/git/ref/heads/{branch}")
        if ref.status_code in (404, 409):
            # No commits yet, so no ref either
            return branch, None
        if ref.status_code in (401, 403):
            raise _remote_error(ref, "Branch lookup")
        if ref.status_code != 200:
            raise _UnresolvedState(f"branch lookup returned HTTP {ref.status_code}")

        target = _json_body(ref).get("object")
        sha = target.get("sha") if isinstance(target, dict) else None
        if not sha:
            raise _UnresolvedState("branch reference has no commit")
        return branch, sha

    async def _resolve_head_with_remediation(
        self, owner: str, report: ProgressCallback
    ) -> Tuple[str, Optional[str]]:
        try:
            return await self._resolve_head(owner)
        except _UnresolvedState as e:
            logger.warning(f"Could not resolve branch head ({e}); writing placeholder file")

        report("Initializing repository...")
        placeholder = await self.client.put(
            f"{self._repo_path(owner)}/contents/README.md",
            json={
                "message": "Initialize repository",
                "content": _b64(f"# {self.repo_name}\n"),
            },
        )
        if placeholder.status_code in (401, 403):
            raise _remote_error(placeholder, "Repository initialization")
        if placeholder.status_code not in (200, 201):
            logger.warning(f"Placeholder write returned HTTP {placeholder.status_code}")

        await self._settle()
        try:
            return await self._resolve_head(owner)
        except _UnresolvedState as e:
            logger.error(f"Branch head still unresolved after remediation: {e}")
            raise RemoteStateError("Could not validate repository state")

    async def _create_blob(self, owner: str, entry: PayloadEntry) -> Dict[str, str]:
        response = await self.client.post(
            f"{self._repo_path(owner)}/git/blobs",
            json={"content": _b64(entry.content), "encoding": "base64"},
        )
        if response.status_code not in (200, 201):
            raise _remote_error(response, f"Blob upload for {entry.path}")
        return {
            "path": entry.path,
            "mode": BLOB_MODE,
            "type": "blob",
            "sha": _require(response, "sha", f"Blob upload for {entry.path}"),
        }

    async def _create_blobs(
        self, owner: str, entries: Sequence[PayloadEntry]
    ) -> Tuple[List[Dict[str, str]], int]:
        """
        Upload every entry as a blob concurrently.

        Individual failures are logged and dropped, except 401/403 which
        aborts the publish.

        Returns:
            (tree items for the successful uploads, number of dropped entries)
        """
        results = await asyncio.gather(
            *(self._create_blob(owner, entry) for entry in entries),
            return_exceptions=True,
        )

        items: List[Dict[str, str]] = []
        skipped = 0
        for entry, result in zip(entries, results):
            if isinstance(result, RemoteApiError) and result.is_auth_status:
                raise result
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning(f"Skipping {entry.path}: {result}")
                skipped += 1
                continue
            items.append(result)
        return items, skipped

    async def _create_tree(self, owner: str, items: List[Dict[str, str]]) -> str:
        # No base_tree: the published tree is the full snapshot
        response = await self.client.post(
            f"{self._repo_path(owner)}/git/trees",
            json={"tree": items},
        )
        if response.status_code not in (200, 201):
            raise _remote_error(response, "Tree creation")
        return _require(response, "sha", "Tree creation")

    async def _create_commit(self, owner: str, tree_sha: str, head_sha: Optional[str]) -> str:
        response = await self.client.post(
            f"{self._repo_path(owner)}/git/commits",
            json={
                "message": self.commit_message,
                "tree": tree_sha,
                "parents": [head_sha] if head_sha else [],
            },
        )
        if response.status_code not in (200, 201):
            raise _remote_error(response, "Commit creation")
        sha = _require(response, "sha", "Commit creation")
        logger.info(f"Created commit {sha[:7]}")
        return sha

    async def _update_ref(
        self, owner: str, branch: str, commit_sha: str, head_sha: Optional[str]
    ) -> None:
        if head_sha is None:
            created = await self.client.post(
                f"{self._repo_path(owner)}/git/refs",
                json={"ref": f"refs/heads/{branch}", "sha": commit_sha},
            )
            if created.status_code in (200, 201):
                return
            if created.status_code != 422:
                raise _remote_error(created, "Branch creation")
            # Ref appeared since the lookup; fall through to the update

        force = self.conflict_policy is ConflictPolicy.FORCE_OVERWRITE
        response = await self.client.patch(
            f"{self._repo_path(owner)}/git/refs/heads/{branch}",
            json={"sha": commit_sha, "force": force},
        )
        if response.status_code == 422 and not force:
            raise RemoteStateError(
                f"Branch '{branch}' has diverged on GitHub; refusing to overwrite it"
            )
        if response.status_code != 200:
            raise _remote_error(response, "Branch update")

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
