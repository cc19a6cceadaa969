"""
Shared fixtures.

- FakeGitHub: an in-memory Git Data API behind httpx.MockTransport. Blobs,
  trees and commits are content-addressed per repository, refs are mutable,
  and individual requests can be made to fail.
- FakeSupabase: records every query chain built against it and answers
  with canned rows per table.
"""

import asyncio
import base64
import hashlib
import json
import re
from collections import Counter
from typing import Dict, List, Optional
from unittest.mock import MagicMock

import httpx
import pytest

from app.celery_app.task_lock import TaskLock
from app.services.github_client import GitHubClient
from app.services.sync.blobs import git_blob_sha


# =============================================================================
# Fake GitHub
# =============================================================================

class FakeRepo:
    def __init__(self, full_name: str, private: bool = False):
        self.full_name = full_name
        self.private = private
        self.blobs: Dict[str, bytes] = {}
        self.trees: Dict[str, Dict[str, tuple]] = {}
        self.commits: Dict[str, dict] = {}
        self.refs: Dict[str, str] = {}

    def add_blob(self, content: bytes) -> str:
        sha = git_blob_sha(content)
        self.blobs[sha] = content
        return sha

    def add_tree(self, entries: Dict[str, tuple]) -> str:
        payload = json.dumps(sorted(entries.items()), sort_keys=True).encode()
        sha = hashlib.sha1(b"tree " + payload).hexdigest()
        self.trees[sha] = dict(entries)
        return sha

    def add_commit(self, tree: str, parents: List[str], message: str) -> str:
        payload = json.dumps(
            {"tree": tree, "parents": parents, "message": message, "n": len(self.commits)}
        ).encode()
        sha = hashlib.sha1(b"commit " + payload).hexdigest()
        self.commits[sha] = {"tree": tree, "parents": list(parents), "message": message}
        return sha

    def tree_of(self, sha: str) -> Optional[str]:
        if sha in self.trees:
            return sha
        if sha in self.commits:
            return self.commits[sha]["tree"]
        return None


class FakeGitHub:
    """In-memory GitHub, served through ``self.transport``."""

    def __init__(self, login: str = "octocat"):
        self.login = login
        self.repos: Dict[str, FakeRepo] = {}
        self.valid_tokens: Optional[set] = None
        self.calls: List[tuple] = []
        self.truncate_trees = False
        self.in_flight = 0
        self.max_in_flight = 0
        self._failures: List[dict] = []
        self.transport = httpx.MockTransport(self._handle)

    # -- setup ---------------------------------------------------------------

    def create_repo(self, full_name: str, private: bool = False) -> FakeRepo:
        repo = FakeRepo(full_name, private)
        self.repos[full_name] = repo
        return repo

    def seed(self, full_name: str, files: Dict[str, bytes], branch: str = "main") -> str:
        """Commit ``files`` onto ``branch`` (creating the repo if needed)."""
        repo = self.repos.get(full_name) or self.create_repo(full_name)
        entries = {path: ("100644", repo.add_blob(data)) for path, data in files.items()}
        parent = repo.refs.get(branch)
        commit = repo.add_commit(repo.add_tree(entries), [parent] if parent else [], "seed")
        repo.refs[branch] = commit
        return commit

    def fail(self, method: str, pattern: str, status: int = 500, times: Optional[int] = None,
             delay: float = 0.0, body: Optional[str] = None) -> None:
        """
        Make requests whose path matches ``pattern`` fail, or stall for
        ``delay`` seconds first. ``body`` narrows it to requests whose body
        contains that text.
        """
        self._failures.append(
            {"method": method, "pattern": re.compile(pattern), "status": status,
             "times": times, "delay": delay, "body": body}
        )

    # -- inspection ----------------------------------------------------------

    def head(self, full_name: str, branch: str = "main") -> Optional[str]:
        return self.repos[full_name].refs.get(branch)

    def files(self, full_name: str, branch: str = "main") -> Dict[str, bytes]:
        repo = self.repos[full_name]
        tree = repo.commits[repo.refs[branch]]["tree"]
        return {path: repo.blobs[sha] for path, (_, sha) in repo.trees[tree].items()}

    def tree_shas(self, full_name: str, branch: str = "main") -> Dict[str, str]:
        repo = self.repos[full_name]
        tree = repo.commits[repo.refs[branch]]["tree"]
        return {path: sha for path, (_, sha) in repo.trees[tree].items()}

    def count(self, method: str, suffix: str) -> int:
        return sum(1 for m, p in self.calls if m == method and p.endswith(suffix))

    def client(self, token: str = "test-token") -> GitHubClient:
        return GitHubClient(token, transport=self.transport)

    # -- transport -----------------------------------------------------------

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            return await self._route(request)
        finally:
            self.in_flight -= 1

    async def _route(self, request: httpx.Request) -> httpx.Response:
        method, path = request.method, request.url.path
        self.calls.append((method, path))

        for failure in self._failures:
            if failure["method"] == method and failure["pattern"].search(path):
                if failure["body"] and failure["body"] not in request.content.decode():
                    continue
                if failure["times"] is not None:
                    if failure["times"] <= 0:
                        continue
                    failure["times"] -= 1
                if failure["delay"]:
                    await asyncio.sleep(failure["delay"])
                    break
                return _error(failure["status"], "Injected failure")

        if self.valid_tokens is not None:
            token = request.headers.get("Authorization", "").removeprefix("Bearer ")
            if token not in self.valid_tokens:
                return _error(401, "Bad credentials")

        if path == "/user":
            return httpx.Response(200, json={"login": self.login})
        if path == "/user/repos":
            return self._list_repos(request)

        match = re.match(r"^/repos/([^/]+/[^/]+)(/.*)?$", path)
        if not match:
            return _error(404, "Not Found")
        repo = self.repos.get(match.group(1))
        if repo is None:
            return _error(404, "Not Found")
        rest = match.group(2) or ""
        body = json.loads(request.content) if request.content else {}

        if rest == "" and method == "GET":
            owner, name = repo.full_name.split("/")
            return httpx.Response(200, json={
                "name": name, "full_name": repo.full_name, "private": repo.private,
                "default_branch": "main", "owner": {"login": owner},
            })

        if method == "GET" and rest.startswith("/branches/"):
            if not repo.refs:
                return _error(409, "Git Repository is empty.")
            sha = repo.refs.get(rest[len("/branches/"):])
            if sha is None:
                return _error(404, "Branch not found")
            return httpx.Response(200, json={"name": rest[10:], "commit": {"sha": sha}})

        if method == "GET" and rest.startswith("/git/trees/"):
            tree = repo.tree_of(rest[len("/git/trees/"):])
            if tree is None:
                return _error(404, "Not Found")
            return httpx.Response(200, json=_tree_listing(repo, tree, self.truncate_trees))

        if method == "GET" and rest.startswith("/git/blobs/"):
            sha = rest[len("/git/blobs/"):]
            if sha not in repo.blobs:
                return _error(404, "Not Found")
            data = repo.blobs[sha]
            return httpx.Response(200, json={
                "sha": sha, "size": len(data), "encoding": "base64",
                "content": base64.b64encode(data).decode("ascii"),
            })

        if method == "POST" and rest == "/git/blobs":
            sha = repo.add_blob(base64.b64decode(body["content"]))
            return httpx.Response(201, json={"sha": sha})

        if method == "POST" and rest == "/git/trees":
            paths = [item["path"] for item in body["tree"]]
            if len(paths) != len(set(paths)):
                return _error(422, "Tree contains duplicate entries")
            entries: Dict[str, tuple] = {}
            if body.get("base_tree"):
                entries.update(repo.trees[body["base_tree"]])
            for item in body["tree"]:
                if item["sha"] not in repo.blobs:
                    return _error(422, f"Invalid blob sha {item['sha']}")
                entries[item["path"]] = (item["mode"], item["sha"])
            return httpx.Response(201, json={"sha": repo.add_tree(entries)})

        if method == "POST" and rest == "/git/commits":
            if body["tree"] not in repo.trees:
                return _error(422, "Tree not found")
            if any(p not in repo.commits for p in body["parents"]):
                return _error(422, "Parent not found")
            sha = repo.add_commit(body["tree"], body["parents"], body["message"])
            return httpx.Response(201, json={"sha": sha})

        if method == "POST" and rest == "/git/refs":
            branch = body["ref"].removeprefix("refs/heads/")
            if branch in repo.refs:
                return _error(422, "Reference already exists")
            repo.refs[branch] = body["sha"]
            return httpx.Response(201, json={"ref": body["ref"], "object": {"sha": body["sha"]}})

        if method == "PATCH" and rest.startswith("/git/refs/heads/"):
            branch = rest[len("/git/refs/heads/"):]
            if branch not in repo.refs:
                return _error(422, "Reference does not exist")
            repo.refs[branch] = body["sha"]
            return httpx.Response(200, json={"object": {"sha": body["sha"]}})

        return _error(404, "Not Found")

    def _list_repos(self, request: httpx.Request) -> httpx.Response:
        per_page = int(request.url.params.get("per_page", 30))
        page = int(request.url.params.get("page", 1))
        visibility = request.url.params.get("visibility")
        repos = [
            r for r in self.repos.values()
            if visibility in (None, "all") or (visibility == "private") == r.private
        ]
        chunk = repos[(page - 1) * per_page: page * per_page]
        return httpx.Response(200, json=[
            {
                "name": r.full_name.split("/")[1],
                "full_name": r.full_name,
                "private": r.private,
                "default_branch": "main",
                "owner": {"login": r.full_name.split("/")[0]},
            }
            for r in chunk
        ])


def _tree_listing(repo: FakeRepo, tree: str, truncated: bool) -> dict:
    items = []
    directories = set()
    for path, (mode, sha) in sorted(repo.trees[tree].items()):
        parts = path.split("/")
        for depth in range(1, len(parts)):
            directories.add("/".join(parts[:depth]))
        items.append({"path": path, "mode": mode, "type": "blob", "sha": sha,
                      "size": len(repo.blobs[sha])})
    for directory in sorted(directories):
        items.append({"path": directory, "mode": "040000", "type": "tree",
                      "sha": hashlib.sha1(directory.encode()).hexdigest()})
    return {"sha": tree, "tree": items, "truncated": truncated}


def _error(status: int, message: str) -> httpx.Response:
    return httpx.Response(status, json={"message": message})


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
async def github(fake_github):
    client = fake_github.client()
    yield client
    await client.aclose()


# =============================================================================
# Fake Supabase
# =============================================================================

class FakeQuery:
    """A PostgREST query chain; every builder call is recorded."""

    def __init__(self, supabase: "FakeSupabase", table: str):
        self.supabase = supabase
        self.table = table
        self.ops: List[tuple] = []

    def __getattr__(self, name):
        def builder(*args, **kwargs):
            self.ops.append((name, args, kwargs))
            return self
        return builder

    def execute(self):
        self.supabase.executed.append(self)
        action = next(
            (op[0] for op in self.ops if op[0] in ("select", "insert", "update", "delete")),
            "select",
        )
        key = (self.table, action)
        queue = self.supabase.responses.get(key)
        if queue:
            data, count = queue.pop(0) if len(queue) > 1 else queue[0]
        else:
            data, count = [], None
        return MagicMock(data=data, count=count)

    def has(self, name: str, *args) -> bool:
        return any(op[0] == name and op[1][:len(args)] == args for op in self.ops)


class FakeSupabase:
    """
    Stand-in for supabase.Client.

    respond("sync_configs", "select", rows) queues a reply; the last queued
    reply for a key repeats.
    """

    def __init__(self):
        self.responses: Dict[tuple, list] = {}
        self.executed: List[FakeQuery] = []

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def respond(self, table: str, action: str, data: list, count: Optional[int] = None):
        self.responses.setdefault((table, action), []).append((data, count))

    def queries(self, table: str, action: Optional[str] = None) -> List[FakeQuery]:
        return [
            q for q in self.executed
            if q.table == table and (action is None or any(op[0] == action for op in q.ops))
        ]


@pytest.fixture
def fake_supabase() -> FakeSupabase:
    return FakeSupabase()


class FakeLock(TaskLock):
    """TaskLock that keeps leases in a dict instead of Redis."""

    def __init__(self):
        self.held: Dict[str, str] = {}
        self.history: Counter = Counter()

    def acquire(self, lock_key, ttl_seconds=300, task_id=None):
        if lock_key in self.held:
            return False
        self.held[lock_key] = task_id or "1"
        self.history[lock_key] += 1
        return True

    def release(self, lock_key, task_id=None):
        if task_id and self.held.get(lock_key) != task_id:
            return False
        return self.held.pop(lock_key, None) is not None


@pytest.fixture
def fake_lock() -> FakeLock:
    return FakeLock()


USER_ID = "11111111-1111-1111-1111-111111111111"
CONFIG_ID = "22222222-2222-2222-2222-222222222222"


def config_row(**overrides) -> dict:
    row = {
        "id": CONFIG_ID,
        "user_id": USER_ID,
        "name": "mirror",
        "source_repo": "octo/source",
        "target_repo": "octo/target",
        "target_branch": "main",
        "github_token": "test-token",
        "auto_sync": False,
        "sync_interval": 60,
        "status": "active",
        "last_sync": None,
        "created_at": "2026-10-01T12:00:00+00:00",
        "updated_at": None,
    }
    row.update(overrides)
    return row


@pytest.fixture
def make_config_row():
    return config_row
