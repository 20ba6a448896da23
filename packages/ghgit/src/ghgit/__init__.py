"""GitHub Git Data API client utilities."""

from .client import GitHubClient, GitHubError, GitHubServerError, get_token
from .models import (
    MODE_EXECUTABLE,
    MODE_FILE,
    MODE_SUBMODULE,
    MODE_SYMLINK,
    MODE_TREE,
    GitBlob,
    GitCommit,
    GitObjectRef,
    GitRef,
    GitTree,
    GitTreeEntry,
    NewTreeItem,
    PullRequest,
)

__all__ = [
    "GitHubClient",
    "GitHubError",
    "GitHubServerError",
    "get_token",
    "GitBlob",
    "GitCommit",
    "GitObjectRef",
    "GitRef",
    "GitTree",
    "GitTreeEntry",
    "NewTreeItem",
    "PullRequest",
    "MODE_TREE",
    "MODE_FILE",
    "MODE_EXECUTABLE",
    "MODE_SYMLINK",
    "MODE_SUBMODULE",
]
