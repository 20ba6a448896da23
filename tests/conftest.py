"""Shared pytest fixtures for treesync tests."""

import base64
import itertools
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Any

import pytest
from dulwich.objects import Blob, Commit, Tree

from ghgit import (
    MODE_FILE,
    MODE_SUBMODULE,
    MODE_TREE,
    GitBlob,
    GitCommit,
    GitHubError,
    GitObjectRef,
    GitRef,
    GitTree,
    GitTreeEntry,
    NewTreeItem,
    PullRequest,
)
from treesync import GitHubGateway, KnownObjects, Syncer

FIXED_NOW = datetime(2024, 5, 17, 8, 30, 0, tzinfo=timezone.utc)


def entry_type(mode: int) -> str:
    if mode == 0o040000:
        return "tree"
    if mode == 0o160000:
        return "commit"
    return "blob"


@dataclass
class FakeRepository:
    """In-memory git object database of one repository."""

    objects: dict[str, tuple[str, Any]] = field(default_factory=dict)
    refs: dict[str, str] = field(default_factory=dict)
    pulls: dict[int, dict[str, Any]] = field(default_factory=dict)
    labels: dict[int, list[str]] = field(default_factory=dict)


class FakeGitHubClient:
    """Minimal GitHubClient replacement for testing.

    Objects get their real git ids (computed with dulwich), so recreating a
    tree from the same entries yields the same sha, as on GitHub.
    """

    def __init__(self) -> None:
        self.repos: dict[tuple[str, str], FakeRepository] = {}
        self.calls: list[tuple] = []
        self._pull_numbers = itertools.count(1)
        self._commit_times = itertools.count(1_700_000_000)

    # -- helpers -------------------------------------------------------

    def repo(self, owner: str, repo: str) -> FakeRepository:
        return self.repos.setdefault((owner, repo), FakeRepository())

    def calls_to(self, method: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == method]

    def _store_blob(self, owner: str, repo: str, content: bytes) -> str:
        sha = Blob.from_string(content).id.decode("ascii")
        self.repo(owner, repo).objects[sha] = ("blob", content)
        return sha

    def _store_tree(self, owner: str, repo: str, items: list[NewTreeItem]) -> str:
        storage = self.repo(owner, repo)
        tree = Tree()
        for item in items:
            if item.type != "commit" and item.sha not in storage.objects:
                raise GitHubError(f"Object {item.sha} not found in {owner}/{repo}", 422)
            tree.add(item.path.encode("utf-8"), int(item.mode, 8), item.sha.encode("ascii"))
        entries = [
            GitTreeEntry(
                path=entry.path.decode("utf-8"),
                mode=f"{entry.mode:06o}",
                type=entry_type(entry.mode),
                sha=entry.sha.decode("ascii"),
            )
            for entry in tree.iteritems()
        ]
        sha = tree.id.decode("ascii")
        storage.objects[sha] = ("tree", entries)
        return sha

    def _store_commit(self, owner: str, repo: str, message: str, tree: str, parents: list[str]) -> str:
        commit = Commit()
        commit.tree = tree.encode("ascii")
        commit.parents = [parent.encode("ascii") for parent in parents]
        commit.author = commit.committer = b"treesync <treesync@example.com>"
        commit.author_time = commit.commit_time = next(self._commit_times)
        commit.author_timezone = commit.commit_timezone = 0
        commit.message = message.encode("utf-8")
        sha = commit.id.decode("ascii")
        self.repo(owner, repo).objects[sha] = (
            "commit",
            GitCommit(
                sha=sha,
                tree=GitObjectRef(sha=tree),
                message=message,
                parents=[GitObjectRef(sha=parent) for parent in parents],
            ),
        )
        return sha

    def _store_files(self, owner: str, repo: str, files: dict[str, Any]) -> str:
        """Build nested trees from ``{"dir/name": content}``.

        ``content`` may be ``(bytes, mode)``, or ``(commit_sha, MODE_SUBMODULE)``
        for a submodule.
        """
        children: dict[str, dict[str, Any]] = {}
        items: list[NewTreeItem] = []
        for path, content in files.items():
            head, sep, rest = path.partition("/")
            if sep:
                children.setdefault(head, {})[rest] = content
                continue
            data, mode = content if isinstance(content, tuple) else (content, MODE_FILE)
            if mode == MODE_SUBMODULE:
                items.append(NewTreeItem(path=head, mode=mode, type="commit", sha=data))
                continue
            items.append(
                NewTreeItem(path=head, mode=mode, type="blob", sha=self._store_blob(owner, repo, data))
            )
        for name, nested in children.items():
            items.append(
                NewTreeItem(path=name, mode=MODE_TREE, type="tree", sha=self._store_files(owner, repo, nested))
            )
        return self._store_tree(owner, repo, items)

    def seed(self, owner: str, repo: str, branch: str, files: dict[str, Any]) -> str:
        """Create a branch whose head commit holds ``files``; return the root tree sha."""
        tree = self._store_files(owner, repo, files)
        storage = self.repo(owner, repo)
        parents = [storage.refs[branch]] if branch in storage.refs else []
        storage.refs[branch] = self._store_commit(owner, repo, "seed", tree, parents)
        return tree

    def tree_sha(self, owner: str, repo: str, files: dict[str, Any]) -> str:
        """Sha a tree holding ``files`` would have (stores the objects)."""
        return self._store_files(owner, repo, files)

    def read_tree(self, owner: str, repo: str, sha: str, prefix: str = "") -> dict[str, bytes]:
        """Flatten a tree into ``{path: content}``."""
        storage = self.repo(owner, repo)
        kind, entries = storage.objects[sha]
        assert kind == "tree"
        files: dict[str, bytes] = {}
        for entry in entries:
            if entry.type == "tree":
                files.update(self.read_tree(owner, repo, entry.sha, f"{prefix}{entry.path}/"))
            elif entry.type == "commit":
                files[f"{prefix}{entry.path}"] = f"submodule {entry.sha}".encode("ascii")
            else:
                files[f"{prefix}{entry.path}"] = storage.objects[entry.sha][1]
        return files

    def commit(self, owner: str, repo: str, sha: str) -> GitCommit:
        return self.repo(owner, repo).objects[sha][1]

    # -- GitHubClient API ----------------------------------------------

    async def get_branch_head(self, owner: str, repo: str, branch: str) -> GitCommit | None:
        self.calls.append(("get_branch_head", owner, repo, branch))
        sha = self.repos.get((owner, repo), FakeRepository()).refs.get(branch)
        if sha is None:
            return None
        return await self.get_commit(owner, repo, sha)

    async def get_commit(self, owner: str, repo: str, sha: str) -> GitCommit | None:
        self.calls.append(("get_commit", owner, repo, sha))
        found = self.repos.get((owner, repo), FakeRepository()).objects.get(sha)
        if found is None or found[0] != "commit":
            return None
        return found[1]

    async def get_tree(self, owner: str, repo: str, sha: str) -> GitTree | None:
        self.calls.append(("get_tree", owner, repo, sha))
        found = self.repos.get((owner, repo), FakeRepository()).objects.get(sha)
        if found is None or found[0] != "tree":
            return None
        return GitTree(sha=sha, tree=[entry.model_copy() for entry in found[1]])

    async def get_blob(self, owner: str, repo: str, sha: str) -> GitBlob | None:
        self.calls.append(("get_blob", owner, repo, sha))
        found = self.repos.get((owner, repo), FakeRepository()).objects.get(sha)
        if found is None or found[0] != "blob":
            return None
        content = found[1]
        return GitBlob(sha=sha, size=len(content), content=base64.b64encode(content).decode("ascii"))

    async def create_blob(self, owner: str, repo: str, content: bytes) -> str:
        self.calls.append(("create_blob", owner, repo, content))
        return self._store_blob(owner, repo, content)

    async def create_tree(self, owner: str, repo: str, items: list[NewTreeItem]) -> str:
        self.calls.append(("create_tree", owner, repo, [item.path for item in items]))
        return self._store_tree(owner, repo, items)

    async def create_commit(self, owner: str, repo: str, message: str, tree: str, parents: list[str]) -> str:
        self.calls.append(("create_commit", owner, repo, tree, list(parents)))
        return self._store_commit(owner, repo, message, tree, parents)

    async def create_ref(self, owner: str, repo: str, ref: str, sha: str) -> GitRef:
        self.calls.append(("create_ref", owner, repo, ref, sha))
        storage = self.repo(owner, repo)
        branch = ref.removeprefix("refs/heads/")
        if branch in storage.refs:
            raise GitHubError("Reference already exists", 422)
        storage.refs[branch] = sha
        return GitRef(ref=ref, object=GitObjectRef(sha=sha))

    async def create_pull_request(
        self, owner: str, repo: str, title: str, head: str, base: str, body: str | None = None
    ) -> PullRequest:
        self.calls.append(("create_pull_request", owner, repo, head, base))
        number = next(self._pull_numbers)
        self.repo(owner, repo).pulls[number] = {"title": title, "head": head, "base": base, "body": body}
        return PullRequest(number=number, html_url=f"https://github.com/{owner}/{repo}/pull/{number}")

    async def add_labels(self, owner: str, repo: str, number: int, labels: list[str]) -> None:
        self.calls.append(("add_labels", owner, repo, number, list(labels)))
        self.repo(owner, repo).labels.setdefault(number, []).extend(labels)


@pytest.fixture
def fake_client():
    """Empty in-memory GitHub."""
    return FakeGitHubClient()


@pytest.fixture
def known_objects():
    return KnownObjects()


@pytest.fixture
def make_syncer(fake_client, known_objects):
    """Build a Syncer over a fresh gateway on ``fake_client``."""

    def _make(**kwargs: Any) -> Syncer:
        kwargs.setdefault("known_objects", known_objects)
        kwargs.setdefault("clock", lambda: FIXED_NOW)
        return Syncer(GitHubGateway(fake_client), **kwargs)

    return _make
