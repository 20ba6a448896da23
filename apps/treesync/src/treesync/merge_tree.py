"""Per-directory accumulation of the changes targeting one destination root.

Nodes live in an arena (``MergeTree.nodes``) and reference their children
by index, so the rebuild can walk arbitrarily deep trees with an explicit
stack instead of recursion.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from ghgit import NewTreeItem

from .exceptions import UnsupportedOperationError
from .location import Location, ObjectKind


@dataclass
class MergeNode:
    """One destination directory and what changes inside it."""

    current: Location
    subtrees: dict[str, int] = field(default_factory=dict)
    leaves: dict[str, tuple[Location, Location]] = field(default_factory=dict)  # name -> (destination, source)
    removals: dict[str, Location] = field(default_factory=dict)


class MergeTree:
    """Hierarchical accumulator consumed once by the tree rebuild."""

    ROOT = 0

    def __init__(self, root: Location):
        if root.kind is not ObjectKind.TREE:
            raise UnsupportedOperationError(f"Merge tree root must be a tree: {root.url}")
        self.nodes: list[MergeNode] = [MergeNode(root)]

    @property
    def root(self) -> Location:
        return self.nodes[self.ROOT].current

    def node(self, index: int) -> MergeNode:
        return self.nodes[index]

    def add(self, destination: Location, source: Location) -> None:
        """Attach ``source`` as the new content of ``destination``."""
        node = self._parent_node(destination)
        node.leaves[destination.name] = (destination, source)

    def remove(self, destination: Location) -> None:
        """Attach the removal of ``destination`` to its parent node."""
        if destination.kind is ObjectKind.TREE:
            raise UnsupportedOperationError(
                f"Removing a tree isn't supported: {destination.url}"
            )
        node = self._parent_node(destination)
        node.removals[destination.name] = destination

    def _parent_node(self, destination: Location) -> MergeNode:
        root = self.root
        if destination.branch_key != root.branch_key:
            raise UnsupportedOperationError(
                f"{destination.url} is not in {root.owner}/{root.repository}@{root.branch}"
            )
        depth = len(root.path)
        if destination.path[:depth] != root.path or len(destination.path) <= depth:
            raise UnsupportedOperationError(f"{destination.url} is not below {root.url}")

        index = self.ROOT
        for segment in destination.path[depth:-1]:
            node = self.nodes[index]
            child = node.subtrees.get(segment)
            if child is None:
                child = len(self.nodes)
                self.nodes.append(MergeNode(node.current.combine(ObjectKind.TREE, segment)))
                node.subtrees[segment] = child
            index = child
        return self.nodes[index]

    def post_order(self) -> list[int]:
        """Node indices, every child before its parent."""
        order: list[int] = []
        stack: list[tuple[int, bool]] = [(self.ROOT, False)]
        while stack:
            index, expanded = stack.pop()
            if expanded:
                order.append(index)
                continue
            stack.append((index, True))
            children = list(self.nodes[index].subtrees.values())
            stack.extend((child, False) for child in reversed(children))
        return order


def replace_entries(
    baseline: Sequence[NewTreeItem],
    additions: Sequence[NewTreeItem],
    removed: Iterable[str] = (),
) -> tuple[NewTreeItem, ...]:
    """
    Remove-then-append merge of a tree listing.

    Baseline entries named like an addition (or listed in ``removed``) are
    dropped, then additions are appended in order. Inputs are not modified.
    """
    dropped = {item.path for item in additions} | set(removed)
    kept = tuple(item for item in baseline if item.path not in dropped)
    return kept + tuple(additions)
