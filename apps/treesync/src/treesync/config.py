"""Sync file configuration."""

import json
import logging
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from .diff import DiffMap
from .location import Location, ObjectKind
from .syncer import DEFAULT_BRANCH_PREFIX, DEFAULT_COMMIT_MESSAGE, SyncOutput

logger = logging.getLogger(__name__)


class LocationConfig(BaseModel):
    """A path inside ``owner/repo`` at ``branch``."""

    repository: str
    branch: str = "main"
    path: str = ""

    @field_validator("repository")
    @classmethod
    def check_repository(cls, value: str) -> str:
        owner, sep, name = value.partition("/")
        if not sep or not owner or not name or "/" in name:
            raise ValueError(f"expected 'owner/repo', got {value!r}")
        return value

    def to_location(self, kind: ObjectKind) -> Location:
        return Location.parse(self.repository, kind, self.branch, self.path)


class MappingConfig(BaseModel):
    """One source synced to one or more destinations."""

    kind: ObjectKind = ObjectKind.BLOB
    source: LocationConfig
    destinations: list[LocationConfig] = Field(min_length=1)


class RemovalConfig(LocationConfig):
    """Destination blob that should disappear (applied with ``prune``)."""


class SyncConfig(BaseModel):
    """Content of a sync file."""

    mappings: list[MappingConfig] = Field(default_factory=list)
    removals: list[RemovalConfig] = Field(default_factory=list)
    output: SyncOutput = SyncOutput.CREATE_PULL_REQUEST
    labels: list[str] = Field(default_factory=list)
    prune: bool = False
    commit_message: str = DEFAULT_COMMIT_MESSAGE
    branch_prefix: str = DEFAULT_BRANCH_PREFIX
    description: str | None = None

    def to_diff_map(self) -> DiffMap:
        diff_map = DiffMap()
        for mapping in self.mappings:
            source = mapping.source.to_location(mapping.kind)
            for destination in mapping.destinations:
                diff_map.add(source, destination.to_location(mapping.kind))
        for removal in self.removals:
            diff_map.remove(removal.to_location(ObjectKind.BLOB))
        return diff_map

    def source_repositories(self) -> list[str]:
        """Source repositories in declaration order, without repeats."""
        seen: list[str] = []
        for mapping in self.mappings:
            if mapping.source.repository not in seen:
                seen.append(mapping.source.repository)
        return seen


def load_config(path: Path) -> SyncConfig:
    """Load and validate a sync file."""
    logger.info("Loading sync file: %s", path)
    with path.open("r", encoding="utf-8") as f:
        return SyncConfig(**json.load(f))


def build_description(config: SyncConfig) -> str:
    """Pull request body listing the source repositories."""
    if config.description:
        return config.description
    lines = [
        "This is an automated synchronization PR.",
        "",
        "The following source repositories were used:",
    ]
    lines.extend(f"* {name}" for name in config.source_repositories())
    return "\n".join(lines)
