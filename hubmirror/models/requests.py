"""Requests issued by callers of the image service."""

from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

from .keys import ImageKey, RepositoryKey
from .meta import EnvironmentTemplateItem, ItemSyncSpec, TemplateItem


@dataclass(frozen=True)
class RepositoryOutlineRequest:
    repository_name: str
    sync_spec: ItemSyncSpec = field(default_factory=ItemSyncSpec)


@dataclass(frozen=True)
class ImageOutlineRequest:
    repository_key: RepositoryKey
    image_name: str
    sync_spec: ItemSyncSpec = field(default_factory=ItemSyncSpec)


@dataclass(frozen=True)
class TagBranchOutlineRequest:
    image_key: ImageKey
    branch_name: str


@dataclass(frozen=True)
class ImageLogoUpload:
    """Raw logo bytes supplied with a general info update."""
    filename: str
    data: bytes
    content_type: str = "image/png"


@dataclass(frozen=True)
class ImageGeneralInfoUpdateRequest:
    base_image: Optional[str] = None
    category: Optional[str] = None
    image_app_logo: Optional[ImageLogoUpload] = None


@dataclass(frozen=True)
class ImageUrlsUpdateRequest:
    external_urls: Mapping[str, str] = field(default_factory=dict, hash=False)


@dataclass(frozen=True)
class ImageTemplateRequest:
    """Template fields to merge into an image. ``None`` leaves a field as it is."""
    restart_policy: Optional[str] = None
    ports: Optional[Tuple[TemplateItem, ...]] = None
    volumes: Optional[Tuple[TemplateItem, ...]] = None
    environment: Optional[Tuple[EnvironmentTemplateItem, ...]] = None
    devices: Optional[Tuple[TemplateItem, ...]] = None
    capabilities: Optional[Tuple[TemplateItem, ...]] = None
