"""Declared sync intent (DiffMap) and its comparison against live state (Diff)."""

from collections.abc import Iterator
from dataclasses import dataclass, field

from .exceptions import UnsupportedOperationError
from .location import Location, ObjectKind

DestinationKey = tuple[str, str, str]  # owner, repository, branch


class DiffMap:
    """
    Mapping of one source location to the destinations it must appear at.

    Insertion order is kept so that logs and results are deterministic.
    """

    def __init__(self) -> None:
        self._entries: dict[Location, list[Location]] = {}
        self._removals: list[Location] = []

    def add(self, source: Location, destination: Location) -> None:
        if source.kind is not destination.kind:
            raise UnsupportedOperationError(
                f"Cannot map {source.kind.value} '{source.url}' onto {destination.kind.value} '{destination.url}'"
            )
        destinations = self._entries.setdefault(source, [])
        if destination not in destinations:
            destinations.append(destination)

    def remove(self, destination: Location) -> None:
        """Declare that ``destination`` should no longer exist."""
        if destination.kind is ObjectKind.TREE:
            raise UnsupportedOperationError(
                f"Removing a tree isn't supported: {destination.url}"
            )
        if destination not in self._removals:
            self._removals.append(destination)

    @property
    def removals(self) -> list[Location]:
        return list(self._removals)

    def merge(self, other: "DiffMap") -> "DiffMap":
        """New map where ``other``'s destinations append to ours."""
        merged = DiffMap()
        for mapping in (self, other):
            for source, destinations in mapping:
                for destination in destinations:
                    merged.add(source, destination)
            for destination in mapping.removals:
                merged.remove(destination)
        return merged

    def __iter__(self) -> Iterator[tuple[Location, list[Location]]]:
        for source, destinations in self._entries.items():
            yield source, list(destinations)

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries) or bool(self._removals)


@dataclass
class TransposedGroup:
    """Changes targeting one destination repository branch."""

    updates: list[tuple[Location, Location]] = field(default_factory=list)  # (destination, source)
    removals: list[Location] = field(default_factory=list)

    @property
    def root(self) -> Location:
        first = self.updates[0][0] if self.updates else self.removals[0]
        return first.root


class Diff:
    """Outcome of comparing a DiffMap against the repositories."""

    def __init__(self) -> None:
        self.to_be_added_or_updated: dict[Location, list[Location]] = {}
        self.to_be_removed: list[Location] = []

    def add(self, source: Location, destination: Location) -> None:
        self.to_be_added_or_updated.setdefault(source, []).append(destination)

    def remove(self, destination: Location) -> None:
        if destination not in self.to_be_removed:
            self.to_be_removed.append(destination)

    @property
    def is_empty(self) -> bool:
        return not self.to_be_added_or_updated and not self.to_be_removed

    def merge(self, other: "Diff") -> "Diff":
        merged = Diff()
        for diff in (self, other):
            for source, destinations in diff.to_be_added_or_updated.items():
                for destination in destinations:
                    merged.add(source, destination)
            for destination in diff.to_be_removed:
                merged.remove(destination)
        return merged

    def transpose(self) -> dict[DestinationKey, TransposedGroup]:
        """Regroup entries by destination owner, repository and branch."""
        groups: dict[DestinationKey, TransposedGroup] = {}
        for source, destinations in self.to_be_added_or_updated.items():
            for destination in destinations:
                group = groups.setdefault(destination.branch_key, TransposedGroup())
                group.updates.append((destination, source))
        for destination in self.to_be_removed:
            group = groups.setdefault(destination.branch_key, TransposedGroup())
            group.removals.append(destination)
        return groups
