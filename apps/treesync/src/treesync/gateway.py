"""Location aware access to the GitHub object store."""

import base64
import logging
from collections.abc import Sequence

from ghgit import GitCommit, GitHubClient, GitTree, GitTreeEntry, NewTreeItem

from .exceptions import HashMismatchError, NotFoundError, UnsupportedOperationError
from .location import Location, ObjectKind, short_sha

logger = logging.getLogger(__name__)


class GitHubGateway:
    """
    Resolve Locations against GitHub and create objects there.

    Reads are cached for the lifetime of the gateway: branch heads per
    repository branch, tree listings per location, blob content per sha.
    A gateway therefore serves one diff and sync run; call :meth:`clear`
    before reusing it against branches that may have moved.
    """

    def __init__(self, client: GitHubClient):
        self.client = client
        self._commits: dict[tuple[str, str, str], GitCommit] = {}
        self._trees: dict[Location, tuple[Location, GitTree]] = {}
        self._contents: dict[str, bytes] = {}

    def clear(self) -> None:
        """Forget cached branch heads and tree listings."""
        self._commits.clear()
        self._trees.clear()

    async def root_commit_from(self, location: Location) -> GitCommit:
        """Head commit of the branch ``location`` lives in."""
        commit = await self._head_commit(location)
        if commit is None:
            raise self._missing_branch(location)
        return commit

    async def latest_commit_from(self, location: Location) -> GitCommit:
        """Head commit read from the remote, bypassing the cache."""
        commit = await self.client.get_branch_head(*location.branch_key)
        if commit is None:
            raise self._missing_branch(location)
        return commit

    @staticmethod
    def _missing_branch(location: Location) -> NotFoundError:
        return NotFoundError(
            f"Branch '{location.branch}' not found in {location.owner}/{location.repository}"
        )

    async def _head_commit(self, location: Location) -> GitCommit | None:
        key = location.branch_key
        if key not in self._commits:
            commit = await self.client.get_branch_head(*key)
            if commit is None:
                return None
            self._commits[key] = commit
        return self._commits[key]

    async def tree_from(
        self, location: Location, throw_if_not_found: bool
    ) -> tuple[Location, GitTree] | None:
        """
        Tree listing at ``location``.

        Returns:
            The location enriched with the tree sha and the listing, or
            None when absent and ``throw_if_not_found`` is false
        """
        if location.kind is not ObjectKind.TREE:
            raise UnsupportedOperationError(f"Not a tree: {location.url}")
        found = await self._walk(location)
        if found is None:
            return self._not_found(location, throw_if_not_found)
        return found

    async def blob_from(
        self, location: Location, throw_if_not_found: bool
    ) -> tuple[Location, GitTreeEntry] | None:
        """Entry describing the blob at ``location`` (sha and mode)."""
        if location.kind is not ObjectKind.BLOB:
            raise UnsupportedOperationError(f"Not a blob: {location.url}")
        parent = await self._walk(location.parent())
        entry = parent[1].entry(location.name) if parent else None
        if entry is None or entry.type != "blob":
            return self._not_found(location, throw_if_not_found)
        return location.with_sha(entry.sha), entry

    async def _walk(self, location: Location) -> tuple[Location, GitTree] | None:
        cached = self._trees.get(location)
        if cached is not None:
            return cached

        current = location.root
        found = self._trees.get(current)
        if found is None:
            commit = await self._head_commit(current)
            if commit is None:
                return None
            found = await self._load_tree(current, commit.tree.sha)
            if found is None:
                return None

        for segment in location.path:
            current = current.combine(ObjectKind.TREE, segment)
            cached = self._trees.get(current)
            if cached is not None:
                found = cached
                continue
            entry = found[1].entry(segment)
            if entry is None or entry.type != "tree":
                return None
            found = await self._load_tree(current, entry.sha)
            if found is None:
                return None
        return found

    async def _load_tree(self, location: Location, sha: str) -> tuple[Location, GitTree] | None:
        listing = await self.client.get_tree(location.owner, location.repository, sha)
        if listing is None:
            return None
        found = (location.with_sha(listing.sha), listing)
        self._trees[location] = found
        logger.debug("Loaded tree %s (%s, %d entries)", location.url, short_sha(sha), len(listing.tree))
        return found

    @staticmethod
    def _not_found(location: Location, throw_if_not_found: bool) -> None:
        if throw_if_not_found:
            raise NotFoundError(f"Couldn't find {location.kind.value} {location.url}")
        logger.debug("Not found: %s", location.url)
        return None

    async def fetch_blob(self, owner: str, repository: str, sha: str) -> None:
        """Download blob content so it can be created elsewhere."""
        if sha in self._contents:
            return
        blob = await self.client.get_blob(owner, repository, sha)
        if blob is None:
            raise NotFoundError(f"Blob {sha} not found in {owner}/{repository}")
        self._contents[sha] = base64.b64decode(blob.content) if blob.content else b""
        logger.debug("Fetched blob %s from %s/%s", short_sha(sha), owner, repository)

    async def create_blob(self, owner: str, repository: str, sha: str) -> str:
        """Upload previously fetched content of blob ``sha``."""
        content = self._contents.get(sha)
        if content is None:
            raise NotFoundError(f"Content of blob {sha} has not been fetched")
        created = await self.client.create_blob(owner, repository, content)
        if created != sha:
            raise HashMismatchError(
                f"Blob created in {owner}/{repository} as {created}, expected {sha}"
            )
        return created

    async def create_tree(
        self, entries: Sequence[NewTreeItem], owner: str, repository: str
    ) -> str:
        return await self.client.create_tree(owner, repository, list(entries))

    async def create_commit(
        self, tree_sha: str, owner: str, repository: str, parent_sha: str, message: str
    ) -> str:
        return await self.client.create_commit(owner, repository, message, tree_sha, [parent_sha])

    async def create_branch(
        self, owner: str, repository: str, branch_name: str, commit_sha: str
    ) -> str:
        await self.client.create_ref(owner, repository, f"refs/heads/{branch_name}", commit_sha)
        return branch_name

    async def create_pull_request(
        self,
        owner: str,
        repository: str,
        branch: str,
        base: str,
        title: str,
        body: str | None = None,
    ) -> int:
        pull = await self.client.create_pull_request(owner, repository, title, branch, base, body)
        return pull.number

    async def apply_labels(
        self, owner: str, repository: str, number: int, labels: Sequence[str]
    ) -> None:
        if not labels:
            return
        await self.client.add_labels(owner, repository, number, list(labels))
