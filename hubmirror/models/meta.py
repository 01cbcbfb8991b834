"""Image metadata: display fields and container template."""

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Mapping, Optional, Tuple, Dict, Any


@dataclass(frozen=True)
class ItemSyncSpec:
    """Controls whether an item takes part in synchronization."""
    sync_enabled: bool = True


@dataclass(frozen=True)
class TemplateItem:
    """A named template entry (port, volume, device or capability)."""
    name: str
    description: Optional[str] = None


@dataclass(frozen=True)
class EnvironmentTemplateItem:
    """An environment variable the container understands."""
    name: str
    description: Optional[str] = None
    example_value: Optional[str] = None


@dataclass(frozen=True)
class ImageTemplate:
    """Container template fields shown alongside an image."""
    restart_policy: Optional[str] = None
    ports: Tuple[TemplateItem, ...] = ()
    volumes: Tuple[TemplateItem, ...] = ()
    environment: Tuple[EnvironmentTemplateItem, ...] = ()
    devices: Tuple[TemplateItem, ...] = ()
    capabilities: Tuple[TemplateItem, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "RestartPolicy": self.restart_policy,
            "Ports": [_item_to_dict(i) for i in self.ports],
            "Volumes": [_item_to_dict(i) for i in self.volumes],
            "Environment": [
                {"Name": e.name, "Description": e.description, "ExampleValue": e.example_value}
                for e in self.environment
            ],
            "Devices": [_item_to_dict(i) for i in self.devices],
            "Capabilities": [_item_to_dict(i) for i in self.capabilities],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ImageTemplate':
        return cls(
            restart_policy=data.get("RestartPolicy"),
            ports=_items_from_dicts(data.get("Ports")),
            volumes=_items_from_dicts(data.get("Volumes")),
            environment=tuple(
                EnvironmentTemplateItem(e["Name"], e.get("Description"), e.get("ExampleValue"))
                for e in data.get("Environment") or []
            ),
            devices=_items_from_dicts(data.get("Devices")),
            capabilities=_items_from_dicts(data.get("Capabilities")),
        )


@dataclass(frozen=True)
class ImageCoreMeta:
    """Display fields: logo, base image, category and external links."""
    app_image_path: Optional[str] = None
    base_image: Optional[str] = None
    category: Optional[str] = None
    external_urls: Mapping[str, str] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        object.__setattr__(self, 'external_urls', MappingProxyType(dict(self.external_urls)))

    def clone_with_base_data(self, app_image_path: Optional[str], base_image: Optional[str],
                             category: Optional[str]) -> 'ImageCoreMeta':
        return replace(self, app_image_path=app_image_path, base_image=base_image, category=category)

    def clone_with_external_urls(self, external_urls: Mapping[str, str]) -> 'ImageCoreMeta':
        return replace(self, external_urls=external_urls)


@dataclass(frozen=True)
class ImageMetaData:
    """Everything about an image that is edited by hand rather than synced."""
    core_meta: ImageCoreMeta = field(default_factory=ImageCoreMeta)
    template: ImageTemplate = field(default_factory=ImageTemplate)

    def clone_with_core_meta(self, core_meta: ImageCoreMeta) -> 'ImageMetaData':
        return replace(self, core_meta=core_meta)

    def clone_with_template(self, template: ImageTemplate) -> 'ImageMetaData':
        return replace(self, template=template)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "AppImagePath": self.core_meta.app_image_path,
            "BaseImage": self.core_meta.base_image,
            "Category": self.core_meta.category,
            "ExternalUrls": dict(self.core_meta.external_urls),
            "Template": self.template.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'ImageMetaData':
        """Create from dictionary loaded from JSON."""
        if not data:
            return cls()
        return cls(
            core_meta=ImageCoreMeta(
                app_image_path=data.get("AppImagePath"),
                base_image=data.get("BaseImage"),
                category=data.get("Category"),
                external_urls=data.get("ExternalUrls") or {},
            ),
            template=ImageTemplate.from_dict(data.get("Template") or {}),
        )


def _item_to_dict(item: TemplateItem) -> Dict[str, Any]:
    return {"Name": item.name, "Description": item.description}


def _items_from_dicts(items) -> Tuple[TemplateItem, ...]:
    return tuple(TemplateItem(i["Name"], i.get("Description")) for i in items or [])
