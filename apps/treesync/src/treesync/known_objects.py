"""Memo of the objects already present in each repository."""

from ghgit import GitTree

from .location import Location, ObjectKind

RepositoryKey = tuple[str, str]


class KnownObjects:
    """
    Blob and tree hashes known to exist per ``(owner, repository)``.

    Append only: git objects are immutable by hash, so nothing is ever
    invalidated during a run.
    """

    def __init__(self) -> None:
        self._known: dict[tuple[ObjectKind, RepositoryKey], set[str]] = {}

    def is_known_by(self, kind: ObjectKind, sha: str | None, owner: str, repository: str) -> bool:
        if not sha:
            return False
        return sha in self._known.get((ObjectKind(kind), (owner, repository)), ())

    def is_known_blob(self, sha: str | None, owner: str, repository: str) -> bool:
        return self.is_known_by(ObjectKind.BLOB, sha, owner, repository)

    def is_known_tree(self, sha: str | None, owner: str, repository: str) -> bool:
        return self.is_known_by(ObjectKind.TREE, sha, owner, repository)

    def add(self, kind: ObjectKind, sha: str, owner: str, repository: str) -> None:
        self._known.setdefault((ObjectKind(kind), (owner, repository)), set()).add(sha)

    def remember_listing(self, location: Location, listing: GitTree) -> None:
        """Record a fetched tree and every object it references."""
        owner, repository = location.repository_key
        self.add(ObjectKind.TREE, listing.sha, owner, repository)
        for item in listing.tree:
            if item.type == "blob":
                self.add(ObjectKind.BLOB, item.sha, owner, repository)
            elif item.type == "tree":
                self.add(ObjectKind.TREE, item.sha, owner, repository)

    def count(self, owner: str, repository: str) -> int:
        return sum(
            len(hashes)
            for (_, key), hashes in self._known.items()
            if key == (owner, repository)
        )
