"""Diff and synchronization of trees between repositories."""

import logging
from collections.abc import AsyncIterator, Callable, Iterable, Sequence
from datetime import datetime, timezone
from enum import Enum

from ghgit import MODE_TREE, GitTree, NewTreeItem

from .diff import Diff, DiffMap
from .exceptions import (
    BranchMovedError,
    ConfigurationConflictError,
    HashMismatchError,
    NotFoundError,
    UnsupportedOperationError,
)
from .gateway import GitHubGateway
from .known_objects import KnownObjects
from .location import GITHUB_URL, Location, ObjectKind, short_sha
from .merge_tree import MergeTree, replace_entries

logger = logging.getLogger(__name__)

DEFAULT_COMMIT_MESSAGE = "Synchronize files"
DEFAULT_BRANCH_PREFIX = "treesync"


class SyncOutput(str, Enum):
    """What a sync leaves behind in each destination repository."""

    CREATE_COMMIT = "commit"
    CREATE_BRANCH = "branch"
    CREATE_PULL_REQUEST = "pull-request"


def url_sanitize(branch: str) -> str:
    """Branch name usable in a compare URL."""
    return branch.replace("/", ";")


def _new_items(listing: GitTree) -> tuple[NewTreeItem, ...]:
    return tuple(
        NewTreeItem(path=item.path, mode=item.mode, type=item.type, sha=item.sha)
        for item in listing.tree
    )


class Syncer:
    """
    Compute what differs between source and destination locations, then
    rebuild only the differing destination trees and propose the result.
    """

    def __init__(
        self,
        gateway: GitHubGateway,
        known_objects: KnownObjects | None = None,
        commit_message: str = DEFAULT_COMMIT_MESSAGE,
        branch_prefix: str = DEFAULT_BRANCH_PREFIX,
        html_url: str = GITHUB_URL,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Args:
            gateway: Access to the repositories
            known_objects: Dedup cache, a fresh one when omitted
            commit_message: Message of the created commits, title of pull requests
            branch_prefix: Prefix of the created branch names
            html_url: Web root used to build result URLs
            clock: Source of the timestamp in branch names
        """
        self.gateway = gateway
        self.known = known_objects if known_objects is not None else KnownObjects()
        self.commit_message = commit_message
        self.branch_prefix = branch_prefix
        self.html_url = html_url.rstrip("/")
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    # ------------------------------------------------------------------
    # Diff
    # ------------------------------------------------------------------

    async def diff(self, diff_map: DiffMap) -> Diff:
        """Compare every mapped pair against the live repositories.

        Sources must exist; absent destinations are to be created.
        """
        result = Diff()

        for source, destinations in diff_map:
            logger.info("Diff - Analyze %s source '%s'", source.kind.value, source.url)
            rich_source = await self._enrich(source, throw_if_not_found=True)

            for destination in destinations:
                logger.info("Diff - Analyze %s target '%s'", source.kind.value, destination.url)
                rich_destination = await self._enrich(destination, throw_if_not_found=False)

                if rich_source.sha == rich_destination.sha:
                    logger.info(
                        "Diff - No sync required. Matching sha (%s) between target '%s' and source '%s'",
                        short_sha(rich_source.sha),
                        destination.url,
                        source.url,
                    )
                    continue

                logger.info(
                    "Diff - %s required. Non-matching sha (%s vs %s) between target '%s' and source '%s'",
                    "Creation" if rich_destination.sha is None else "Update",
                    short_sha(rich_source.sha),
                    short_sha(rich_destination.sha),
                    destination.url,
                    source.url,
                )
                result.add(rich_source, rich_destination)

        for destination in diff_map.removals:
            rich_destination = await self._enrich(destination, throw_if_not_found=False)
            if rich_destination.sha is None:
                logger.info("Diff - Nothing to remove, target '%s' does not exist", destination.url)
                continue
            logger.info(
                "Diff - Removal required for target '%s' (%s)",
                destination.url,
                short_sha(rich_destination.sha),
            )
            result.remove(rich_destination)

        return result

    async def _enrich(self, location: Location, throw_if_not_found: bool) -> Location:
        if location.kind is ObjectKind.TREE:
            found = await self.gateway.tree_from(location, throw_if_not_found)
            if found is None:
                return location.with_sha(None)
            rich, listing = found
            self.known.remember_listing(rich, listing)
            return rich

        found = await self.gateway.blob_from(location, throw_if_not_found)
        if found is None:
            return location.with_sha(None)
        rich, _ = found
        self.known.add(ObjectKind.BLOB, rich.sha, rich.owner, rich.repository)
        return rich

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    def sync(
        self,
        diff: Diff,
        output: SyncOutput | str = SyncOutput.CREATE_PULL_REQUEST,
        labels: Iterable[str] | None = None,
        description: str | None = None,
        prune: bool = False,
    ) -> AsyncIterator[str]:
        """
        Apply a diff, one destination repository branch at a time.

        Options are validated before any remote call. The returned async
        iterator yields one URL per destination (commit, compare view or
        pull request) as each one completes.

        Args:
            diff: Result of :meth:`diff`
            output: Commit, branch or pull request
            labels: Labels for created pull requests
            description: Pull request body
            prune: Also drop the destination entries listed for removal
        """
        labels = list(labels or [])
        try:
            output = SyncOutput(output)
        except ValueError as e:
            raise UnsupportedOperationError(f"Unsupported sync output '{output}'") from e

        if labels and output is not SyncOutput.CREATE_PULL_REQUEST:
            raise ConfigurationConflictError(
                f"Labels can only be applied in '{SyncOutput.CREATE_PULL_REQUEST.value}' mode."
            )

        return self._sync(diff, output, labels, description, prune)

    async def _sync(
        self,
        diff: Diff,
        output: SyncOutput,
        labels: list[str],
        description: str | None,
        prune: bool,
    ) -> AsyncIterator[str]:
        branch_name = f"{self.branch_prefix}-{self.clock():%Y%m%d-%H%M%S}"
        branches_per_repository: dict[tuple[str, str], int] = {}

        for (owner, repository, branch), group in diff.transpose().items():
            if group.removals and not prune:
                logger.info(
                    "Sync - Ignoring %d removal(s) in %s/%s@%s, pruning is disabled",
                    len(group.removals),
                    owner,
                    repository,
                    branch,
                )
            if not group.updates and not (prune and group.removals):
                continue

            root = group.root
            tree = MergeTree(root)
            for destination, source in group.updates:
                tree.add(destination, source)
            if prune:
                for destination in group.removals:
                    tree.remove(destination)

            parent = await self.gateway.root_commit_from(root)
            latest = await self.gateway.latest_commit_from(root)
            if latest.sha != parent.sha:
                raise BranchMovedError(
                    f"{owner}/{repository}@{branch} moved from {short_sha(parent.sha)} "
                    f"to {short_sha(latest.sha)} since it was diffed"
                )

            tree_sha = await self.build_target_tree(tree)
            if parent.tree.sha == tree_sha:
                logger.info("Sync - %s/%s@%s is already in sync", owner, repository, branch)
                continue

            commit_sha = await self.gateway.create_commit(
                tree_sha, owner, repository, parent.sha, self.commit_message
            )
            logger.info(
                "Sync - Created commit %s on top of %s in %s/%s",
                short_sha(commit_sha),
                short_sha(parent.sha),
                owner,
                repository,
            )
            # sync branch names are unique per repository
            used = branches_per_repository.get(root.repository_key, 0) + 1
            branches_per_repository[root.repository_key] = used
            name = branch_name if used == 1 else f"{branch_name}-{used}"
            yield await self._publish(root, commit_sha, output, name, labels, description)

    async def _publish(
        self,
        root: Location,
        commit_sha: str,
        output: SyncOutput,
        branch_name: str,
        labels: Sequence[str],
        description: str | None,
    ) -> str:
        owner, repository = root.repository_key
        base_url = f"{self.html_url}/{owner}/{repository}"

        if output is SyncOutput.CREATE_COMMIT:
            return f"{base_url}/commit/{commit_sha}"

        if output is SyncOutput.CREATE_BRANCH:
            branch_name = await self.gateway.create_branch(owner, repository, branch_name, commit_sha)
            return f"{base_url}/compare/{url_sanitize(root.branch)}...{url_sanitize(branch_name)}"

        if output is SyncOutput.CREATE_PULL_REQUEST:
            branch_name = await self.gateway.create_branch(owner, repository, branch_name, commit_sha)
            number = await self.gateway.create_pull_request(
                owner, repository, branch_name, root.branch, self.commit_message, description
            )
            await self.gateway.apply_labels(owner, repository, number, labels)
            return f"{base_url}/pull/{number}"

        raise UnsupportedOperationError(f"Unsupported sync output '{output}'")

    # ------------------------------------------------------------------
    # Tree rebuild
    # ------------------------------------------------------------------

    async def build_target_tree(self, tree: MergeTree) -> str:
        """Create the destination trees bottom-up, return the root tree sha.

        A directory left without entries is dropped from its parent, git
        has no empty directories. Only the root tree may end up empty.
        """
        hashes: dict[int, str | None] = {}

        for index in tree.post_order():
            node = tree.node(index)
            owner, repository = node.current.repository_key
            baseline = await self._baseline(node.current)

            removed = set(node.removals)
            additions: dict[str, NewTreeItem] = {}
            for name, child in node.subtrees.items():
                if hashes[child] is None:
                    removed.add(name)
                    continue
                additions[name] = NewTreeItem(path=name, mode=MODE_TREE, type="tree", sha=hashes[child])

            for name, (destination, source) in node.leaves.items():
                await self._sync_leaf(source, destination)
                additions[name] = await self._leaf_item(source, name)

            entries = replace_entries(baseline, list(additions.values()), removed)
            if not entries and index != MergeTree.ROOT:
                logger.info("Sync - Dropping empty directory '%s'", node.current.url)
                hashes[index] = None
                continue

            sha = await self.gateway.create_tree(entries, owner, repository)
            self.known.add(ObjectKind.TREE, sha, owner, repository)
            logger.info("Sync - Created tree %s for '%s'", short_sha(sha), node.current.url)
            hashes[index] = sha

        return hashes[MergeTree.ROOT]

    async def _baseline(self, location: Location) -> tuple[NewTreeItem, ...]:
        found = await self.gateway.tree_from(location, throw_if_not_found=False)
        if found is None:
            return ()
        rich, listing = found
        self.known.remember_listing(rich, listing)
        return _new_items(listing)

    async def _leaf_item(self, source: Location, name: str) -> NewTreeItem:
        if source.kind is ObjectKind.BLOB:
            _, entry = await self.gateway.blob_from(source, throw_if_not_found=True)
            return NewTreeItem(path=name, mode=entry.mode, type="blob", sha=source.sha)
        return NewTreeItem(path=name, mode=MODE_TREE, type="tree", sha=source.sha)

    async def _sync_leaf(self, source: Location, destination: Location) -> None:
        if not source.sha:
            raise NotFoundError(f"Source {source.url} has no resolved sha, diff it first")

        logger.info(
            "Sync - Determine if %s '%s' requires to be created in '%s/%s'",
            source.kind.value.capitalize(),
            short_sha(source.sha),
            destination.owner,
            destination.repository,
        )
        if source.kind is ObjectKind.BLOB:
            await self._sync_blob(
                source.owner, source.repository, source.sha, destination.owner, destination.repository
            )
        else:
            await self._sync_tree(source, destination.owner, destination.repository)

    async def _sync_blob(
        self,
        source_owner: str,
        source_repository: str,
        sha: str,
        owner: str,
        repository: str,
    ) -> None:
        if self.known.is_known_blob(sha, owner, repository):
            logger.debug("Sync - Blob %s already in %s/%s", short_sha(sha), owner, repository)
            return

        await self.gateway.fetch_blob(source_owner, source_repository, sha)
        await self.gateway.create_blob(owner, repository, sha)
        self.known.add(ObjectKind.BLOB, sha, owner, repository)
        logger.info("Sync - Created blob %s in %s/%s", short_sha(sha), owner, repository)

    async def _sync_tree(self, source: Location, owner: str, repository: str) -> None:
        """Copy a whole source tree into the destination repository."""
        stack: list[tuple[Location, bool]] = [(source, False)]

        while stack:
            location, expanded = stack.pop()
            if self.known.is_known_tree(location.sha, owner, repository):
                logger.debug("Sync - Tree %s already in %s/%s", short_sha(location.sha), owner, repository)
                continue

            rich, listing = await self.gateway.tree_from(location, throw_if_not_found=True)

            if not expanded:
                self.known.remember_listing(rich, listing)
                stack.append((rich, True))
                for item in reversed(listing.tree):
                    if item.type == "tree":
                        stack.append((rich.combine(ObjectKind.TREE, item.path, item.sha), False))
                continue

            for item in listing.tree:
                if item.type == "blob":
                    await self._sync_blob(rich.owner, rich.repository, item.sha, owner, repository)

            sha = await self.gateway.create_tree(_new_items(listing), owner, repository)
            if sha != listing.sha:
                raise HashMismatchError(
                    f"Tree {rich.url} recreated in {owner}/{repository} as {sha}, expected {listing.sha}"
                )
            self.known.add(ObjectKind.TREE, sha, owner, repository)
            logger.info("Sync - Created tree %s in %s/%s", short_sha(sha), owner, repository)
