"""Pointers to trees and blobs inside a repository branch."""

from dataclasses import dataclass, field, replace
from enum import Enum

from .exceptions import InvalidTraversalError, UnsupportedOperationError

GITHUB_URL = "https://github.com"


class ObjectKind(str, Enum):
    """Kind of git object a Location points to."""

    TREE = "tree"
    BLOB = "blob"


def short_sha(sha: str | None) -> str:
    """Seven character prefix used in log lines."""
    return sha[:7] if sha else "NULL"


def split_path(path: str | None) -> tuple[str, ...]:
    """Split a slash separated path, ``None`` or ``""`` being the root."""
    if not path:
        return ()
    stripped = path.strip("/")
    if not stripped:
        return ()
    segments = tuple(stripped.split("/"))
    if any(not segment for segment in segments):
        raise ValueError(f"Invalid path: {path!r}")
    return segments


@dataclass(frozen=True)
class Location:
    """
    Immutable pointer to one tree or blob in one repository branch.

    Identity is owner, repository, branch and path. ``kind`` and ``sha``
    are metadata: ``sha`` stays ``None`` until the location is enriched
    with the content hash found on the remote.
    """

    owner: str
    repository: str
    kind: ObjectKind = field(compare=False)
    branch: str
    path: tuple[str, ...] = ()
    sha: str | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", ObjectKind(self.kind))
        object.__setattr__(self, "path", tuple(self.path))
        if not self.owner or not self.repository or not self.branch:
            raise ValueError("owner, repository and branch are required")
        if any(not segment or "/" in segment for segment in self.path):
            raise ValueError(f"Invalid path segments: {self.path!r}")
        if not self.path and self.kind is not ObjectKind.TREE:
            raise ValueError("The root of a repository is always a tree")

    @classmethod
    def parse(
        cls,
        repository: str,
        kind: ObjectKind | str,
        branch: str,
        path: str | None = None,
        sha: str | None = None,
    ) -> "Location":
        """
        Build a location from configuration strings.

        Args:
            repository: ``owner/repo``
            kind: ``tree`` or ``blob``
            branch: Branch name
            path: Slash separated path, empty for the repository root
            sha: Known content hash, if any
        """
        owner, sep, name = repository.partition("/")
        if not sep or not owner or not name or "/" in name:
            raise ValueError(f"Expected 'owner/repo', got {repository!r}")
        return cls(owner, name, ObjectKind(kind), branch, split_path(path), sha)

    @property
    def name(self) -> str | None:
        return self.path[-1] if self.path else None

    @property
    def is_root(self) -> bool:
        return not self.path

    @property
    def path_string(self) -> str:
        return "/".join(self.path)

    @property
    def repository_key(self) -> tuple[str, str]:
        return (self.owner, self.repository)

    @property
    def branch_key(self) -> tuple[str, str, str]:
        return (self.owner, self.repository, self.branch)

    @property
    def url(self) -> str:
        """Display only, never parsed back."""
        parts = [GITHUB_URL, self.owner, self.repository, self.kind.value, self.branch]
        if self.path:
            parts.append(self.path_string)
        return "/".join(parts)

    @property
    def root(self) -> "Location":
        """Root tree of the same repository branch."""
        return Location(self.owner, self.repository, ObjectKind.TREE, self.branch)

    def parent(self) -> "Location":
        """Tree containing this location.

        Raises:
            InvalidTraversalError: when called on the repository root
        """
        if self.is_root:
            raise InvalidTraversalError(f"Cannot escape out of the root tree of {self.url}")
        return Location(
            self.owner, self.repository, ObjectKind.TREE, self.branch, self.path[:-1]
        )

    def combine(self, kind: ObjectKind | str, name: str, sha: str | None = None) -> "Location":
        """Child location one level deeper."""
        if self.kind is not ObjectKind.TREE:
            raise UnsupportedOperationError(f"Cannot combine a path below blob {self.url}")
        return Location(
            self.owner,
            self.repository,
            ObjectKind(kind),
            self.branch,
            self.path + (name,),
            sha,
        )

    def with_sha(self, sha: str | None) -> "Location":
        return replace(self, sha=sha)

    def __str__(self) -> str:
        return self.url
