"""Shared fixtures for CodeStudio tests."""

import base64
import hashlib
import json

import httpx
import pytest

from codestudio.github_publisher import GitHubPublisher
from codestudio.models import Node, ROOT_ID


OWNER = "octo"
REPO = "codestudio-project"


class FakeGitHub:
    """
    In-memory stand-in for the parts of the GitHub REST API the publisher
    uses. Plug it into httpx with httpx.MockTransport(fake).
    """

    def __init__(self, repo_exists=True, head_sha="base123", default_branch="main"):
        self.repo_exists = repo_exists
        self.head_sha = head_sha
        self.default_branch = default_branch
        self.calls = []
        # (method, path) -> (status, json body)
        self.overrides = {}
        # Blob uploads whose decoded content is in here answer 500
        self.failing_contents = set()
        self.blobs = {}
        self.trees = []
        self.commits = []

    @property
    def repo_path(self):
        return f"/repos/{OWNER}/{REPO}"

    def _repo_json(self):
        return {
            "name": REPO,
            "full_name": f"{OWNER}/{REPO}",
            "html_url": f"https://github.com/{OWNER}/{REPO}",
            "default_branch": self.default_branch,
        }

    def requests_to(self, method, suffix):
        return [c for c in self.calls if c[0] == method and c[1].endswith(suffix)]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        path = request.url.path
        body = json.loads(request.content) if request.content else None
        self.calls.append((method, path, body))

        if (method, path) in self.overrides:
            status, data = self.overrides[(method, path)]
            return httpx.Response(status, json=data)

        ref_path = f"{self.repo_path}/git/ref/heads/{self.default_branch}"
        refs_path = f"{self.repo_path}/git/refs/heads/{self.default_branch}"

        if method == "GET" and path == "/user":
            return httpx.Response(200, json={"login": OWNER})

        if method == "GET" and path == self.repo_path:
            if not self.repo_exists:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(200, json=self._repo_json())

        if method == "POST" and path == "/user/repos":
            self.repo_exists = True
            return httpx.Response(201, json=self._repo_json())

        if method == "GET" and path == ref_path:
            if self.head_sha is None:
                return httpx.Response(409, json={"message": "Git Repository is empty."})
            return httpx.Response(200, json={"ref": f"refs/heads/{self.default_branch}",
                                             "object": {"sha": self.head_sha, "type": "commit"}})

        if method == "PUT" and path == f"{self.repo_path}/contents/README.md":
            self.head_sha = "init000"
            return httpx.Response(201, json={"commit": {"sha": self.head_sha}})

        if method == "POST" and path == f"{self.repo_path}/git/blobs":
            content = base64.b64decode(body["content"]).decode("utf-8")
            if content in self.failing_contents:
                return httpx.Response(500, json={"message": "Server Error"})
            sha = hashlib.sha1(content.encode("utf-8")).hexdigest()
            self.blobs[sha] = content
            return httpx.Response(201, json={"sha": sha})

        if method == "POST" and path == f"{self.repo_path}/git/trees":
            self.trees.append(body)
            return httpx.Response(201, json={"sha": f"tree{len(self.trees)}"})

        if method == "POST" and path == f"{self.repo_path}/git/commits":
            self.commits.append(body)
            return httpx.Response(201, json={"sha": f"commit{len(self.commits)}abcdef"})

        if method == "POST" and path == f"{self.repo_path}/git/refs":
            if self.head_sha is not None:
                return httpx.Response(422, json={"message": "Reference already exists"})
            self.head_sha = body["sha"]
            return httpx.Response(201, json={"ref": body["ref"], "object": {"sha": body["sha"]}})

        if method == "PATCH" and path == refs_path:
            self.head_sha = body["sha"]
            return httpx.Response(200, json={"object": {"sha": body["sha"]}})

        return httpx.Response(404, json={"message": "Not Found"})


@pytest.fixture
def fake_github():
    return FakeGitHub()


def make_publisher(fake, **kwargs):
    options = {
        "token": "gho_test",
        "repo_name": REPO,
        "owner": None,
        "settle_delay": 0,
        "conflict_policy": "force-overwrite",
        "transport": httpx.MockTransport(fake),
    }
    options.update(kwargs)
    return GitHubPublisher(**options)


def folder(node_id, name, parent_id=ROOT_ID):
    return Node(id=node_id, name=name, kind="folder", parent_id=parent_id, expanded=True)


def file(node_id, name, parent_id=ROOT_ID, content=""):
    return Node(id=node_id, name=name, kind="file", parent_id=parent_id, content=content)


@pytest.fixture
def sample_nodes():
    """root/{a.txt, src/b.py}"""
    return [
        folder(ROOT_ID, "root", parent_id=None),
        file("a", "a.txt", content="x"),
        folder("src", "src"),
        file("b", "b.py", parent_id="src", content="y"),
    ]
