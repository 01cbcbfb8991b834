"""Parsed records supplied by the upstream registry."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

UPSTREAM_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def parse_upstream_date(value: Optional[Union[str, datetime]]) -> Optional[datetime]:
    """Parse a registry timestamp; a missing value parses to None."""
    if value is None:
        return None
    # YAML snapshots arrive already parsed
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    return datetime.strptime(value, UPSTREAM_DATE_FORMAT)


@dataclass(frozen=True)
class DockerTagDigest:
    size: int
    digest: str
    architecture: Optional[str] = None
    arch_variant: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DockerTagDigest':
        return cls(
            size=int(data.get("size") or 0),
            digest=data["digest"],
            architecture=data.get("architecture"),
            arch_variant=data.get("variant"),
        )


@dataclass(frozen=True)
class DockerTag:
    name: str
    full_size: int
    build_date: Optional[datetime] = None
    digests: List[Optional[DockerTagDigest]] = field(default_factory=list, hash=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DockerTag':
        return cls(
            name=data["name"],
            full_size=int(data.get("fullSize") or 0),
            build_date=parse_upstream_date(data.get("buildDate")),
            digests=[
                DockerTagDigest.from_dict(d) if d is not None else None
                for d in data.get("digests") or []
            ],
        )


@dataclass(frozen=True)
class DockerImage:
    name: str
    namespace: str
    description: Optional[str] = None
    star_count: int = 0
    pull_count: int = 0
    build_date: Optional[datetime] = None
    tags: List[DockerTag] = field(default_factory=list, hash=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DockerImage':
        return cls(
            name=data["name"],
            namespace=data["namespace"],
            description=data.get("description"),
            star_count=int(data.get("starCount") or 0),
            pull_count=int(data.get("pullCount") or 0),
            build_date=parse_upstream_date(data.get("lastUpdated")),
            tags=[DockerTag.from_dict(t) for t in data.get("tags") or []],
        )
