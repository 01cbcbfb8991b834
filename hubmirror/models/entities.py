"""Repository, image, branch, tag and digest snapshots.

Every entity is frozen. State changes go through the ``clone_*``/``with_*``
helpers, which return new instances and leave the receiver untouched, so a
reference handed out by the cache never changes underneath its holder.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import FrozenSet, Iterable, Optional, Tuple

from ..errors import DuplicateError
from .keys import ImageKey, ImageLookupKey, RepositoryKey
from .meta import ImageMetaData, ItemSyncSpec


@dataclass(frozen=True)
class TagDigest:
    """One architecture-specific manifest within a tag."""
    size: int
    digest: str
    architecture: Optional[str] = None
    arch_variant: Optional[str] = None


@dataclass(frozen=True)
class Tag:
    """A concrete versioned tag."""
    version: str
    build_date: Optional[datetime] = None
    digests: FrozenSet[TagDigest] = frozenset()

    def __post_init__(self):
        object.__setattr__(self, 'digests', frozenset(self.digests))


@dataclass(frozen=True)
class TagBranch:
    """A tracked alias (e.g. "latest") and the tag it last resolved to."""
    id: Optional[int]
    branch_name: str
    latest_tag: Optional[Tag] = None

    def with_latest_tag(self, tag: Tag) -> 'TagBranch':
        return replace(self, latest_tag=tag)


@dataclass(frozen=True)
class Image:
    """An image and its upstream statistics, metadata and tracked branches."""
    key: ImageKey
    sync_spec: ItemSyncSpec = field(default_factory=ItemSyncSpec)
    metadata: ImageMetaData = field(default_factory=ImageMetaData)
    pull_count: int = 0
    star_count: int = 0
    description: Optional[str] = None
    last_updated: Optional[datetime] = None
    tag_branches: Tuple[TagBranch, ...] = ()

    def __post_init__(self):
        branches = tuple(self.tag_branches)
        names = [b.branch_name for b in branches]
        if len(names) != len(set(names)):
            raise DuplicateError(f"Image {self.key} tracks the same branch more than once: {names}")
        object.__setattr__(self, 'tag_branches', branches)

    @property
    def name(self) -> str:
        return self.key.name

    @property
    def repository_key(self) -> RepositoryKey:
        return self.key.repository_key

    @property
    def full_name(self) -> str:
        return f"{self.repository_key.name}/{self.name}"

    @property
    def lookup_key(self) -> ImageLookupKey:
        return ImageLookupKey(self.repository_key.name, self.name)

    @property
    def sync_enabled(self) -> bool:
        return self.sync_spec.sync_enabled

    @property
    def hidden(self) -> bool:
        return not self.sync_spec.sync_enabled

    def find_tag_branch_by_name(self, branch_name: str) -> Optional[TagBranch]:
        for branch in self.tag_branches:
            if branch.branch_name == branch_name:
                return branch
        return None

    def clone_with_sync_spec(self, sync_spec: ItemSyncSpec) -> 'Image':
        return replace(self, sync_spec=sync_spec)

    def clone_with_metadata(self, metadata: ImageMetaData) -> 'Image':
        return replace(self, metadata=metadata)

    def clone_for_update(self, pull_count: int, star_count: int, description: Optional[str],
                         last_updated: Optional[datetime]) -> 'Image':
        """Clone with refreshed upstream statistics."""
        return replace(self, pull_count=pull_count, star_count=star_count,
                       description=description, last_updated=last_updated)

    def clone_with_tag_branches(self, tag_branches: Iterable[TagBranch]) -> 'Image':
        return replace(self, tag_branches=tuple(tag_branches))

    def clone_with_tag_branch(self, tag_branch: TagBranch) -> 'Image':
        if self.find_tag_branch_by_name(tag_branch.branch_name) is not None:
            raise DuplicateError(f"Image {self.full_name} is already tracking branch {tag_branch.branch_name}")
        return self.clone_with_tag_branches(self.tag_branches + (tag_branch,))

    def clone_without_tag_branch(self, branch_name: str) -> 'Image':
        return self.clone_with_tag_branches(
            b for b in self.tag_branches if b.branch_name != branch_name
        )


@dataclass(frozen=True)
class Repository:
    """A repository and the images it owns, ordered by name."""
    key: RepositoryKey
    sync_spec: ItemSyncSpec = field(default_factory=ItemSyncSpec)
    images: Tuple[Image, ...] = ()

    def __post_init__(self):
        images = tuple(sorted(self.images, key=lambda i: i.name))
        for previous, current in zip(images, images[1:]):
            if previous.name == current.name:
                raise DuplicateError(f"Repository {self.name} holds two images named {current.name}")
        for image in images:
            if image.repository_key != self.key:
                raise ValueError(f"Image {image.key} does not belong to repository {self.key}")
        object.__setattr__(self, 'images', images)

    @property
    def name(self) -> str:
        return self.key.name

    @property
    def sync_enabled(self) -> bool:
        return self.sync_spec.sync_enabled

    @property
    def hidden(self) -> bool:
        return not self.sync_spec.sync_enabled

    def find_image(self, image_key: ImageKey) -> Optional[Image]:
        for image in self.images:
            if image.key == image_key:
                return image
        return None

    def find_image_by_name(self, image_name: str) -> Optional[Image]:
        for image in self.images:
            if image.name == image_name:
                return image
        return None

    def clone_with_sync_spec(self, sync_spec: ItemSyncSpec) -> 'Repository':
        """Clone with a new sync spec, keeping the current image set."""
        return replace(self, sync_spec=sync_spec)

    def with_image(self, image: Image) -> 'Repository':
        """Return a copy holding ``image``, replacing any image with the same key."""
        return replace(self, images=[i for i in self.images if i.key != image.key] + [image])

    def without_image(self, image_key: ImageKey) -> 'Repository':
        return replace(self, images=[i for i in self.images if i.key != image_key])
