"""GitHub Git Data API models."""

from typing import Literal

from pydantic import BaseModel, Field

# Tree entry modes as reported and accepted by the Git Data API
MODE_TREE = "040000"
MODE_FILE = "100644"
MODE_EXECUTABLE = "100755"
MODE_SYMLINK = "120000"
MODE_SUBMODULE = "160000"

EntryType = Literal["blob", "tree", "commit"]


class GitTreeEntry(BaseModel):
    """Entry of a tree listing."""

    path: str
    mode: str
    type: EntryType
    sha: str
    size: int | None = None
    url: str | None = None


class GitTree(BaseModel):
    """Tree listing (non recursive)."""

    sha: str
    url: str | None = None
    tree: list[GitTreeEntry] = Field(default_factory=list)
    truncated: bool = False

    def entry(self, name: str) -> GitTreeEntry | None:
        """Find the entry with the given name."""
        for item in self.tree:
            if item.path == name:
                return item
        return None


class GitBlob(BaseModel):
    """Blob with base64 content."""

    sha: str
    size: int | None = None
    content: str = ""
    encoding: str = "base64"


class GitObjectRef(BaseModel):
    """Reference to another git object by sha."""

    sha: str
    url: str | None = None


class GitCommit(BaseModel):
    """Commit object."""

    sha: str
    tree: GitObjectRef
    message: str = ""
    parents: list[GitObjectRef] = Field(default_factory=list)
    html_url: str | None = None


class GitRef(BaseModel):
    """Branch or tag reference."""

    ref: str
    object: GitObjectRef


class NewTreeItem(BaseModel):
    """Entry sent when creating a tree."""

    path: str
    mode: str
    type: EntryType
    sha: str


class PullRequest(BaseModel):
    """Created pull request."""

    number: int
    html_url: str
    state: str = "open"
