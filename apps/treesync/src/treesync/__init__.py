"""Tree diff and reconstruction between GitHub repositories."""

from .diff import Diff, DiffMap, TransposedGroup
from .exceptions import (
    BranchMovedError,
    ConfigurationConflictError,
    HashMismatchError,
    InvalidTraversalError,
    NotFoundError,
    TreeSyncError,
    UnsupportedOperationError,
)
from .gateway import GitHubGateway
from .known_objects import KnownObjects
from .location import Location, ObjectKind
from .merge_tree import MergeNode, MergeTree, replace_entries
from .syncer import Syncer, SyncOutput

__all__ = [
    "Location",
    "ObjectKind",
    "DiffMap",
    "Diff",
    "TransposedGroup",
    "MergeTree",
    "MergeNode",
    "replace_entries",
    "KnownObjects",
    "GitHubGateway",
    "Syncer",
    "SyncOutput",
    "TreeSyncError",
    "BranchMovedError",
    "NotFoundError",
    "InvalidTraversalError",
    "UnsupportedOperationError",
    "ConfigurationConflictError",
    "HashMismatchError",
]
