"""Exceptions for treesync."""


class TreeSyncError(Exception):
    """Base class for engine errors."""


class NotFoundError(TreeSyncError):
    """A required object (source tree/blob, destination branch) does not exist."""


class InvalidTraversalError(TreeSyncError):
    """Raised when walking above the root of a repository."""


class UnsupportedOperationError(TreeSyncError):
    """Operation the engine does not handle (removing a tree, unknown output mode...)."""


class ConfigurationConflictError(TreeSyncError):
    """Options that cannot be combined, e.g. labels without a pull request."""


class HashMismatchError(TreeSyncError):
    """An object recreated at the destination did not hash to the source sha."""


class BranchMovedError(TreeSyncError):
    """A destination branch moved after it was read, syncing would revert the new commits."""
