"""Operations that edit image metadata by hand."""

import logging
import mimetypes
import os
import yaml
from typing import Dict, Any, Optional

from ..config.settings import Config
from ..models.meta import EnvironmentTemplateItem, TemplateItem
from ..models.requests import (
    ImageGeneralInfoUpdateRequest,
    ImageLogoUpload,
    ImageTemplateRequest,
    ImageUrlsUpdateRequest,
)
from ..storage.logo_store import S3LogoStore
from .common import ImageServiceOperation, resolve_image


logger = logging.getLogger(__name__)


class MetadataOperation(ImageServiceOperation):
    """Updates display fields, external links and templates of an image."""
    
    def __init__(self, config: Config):
        logo_store = S3LogoStore(config) if config.logo_storage_config else None
        super().__init__(config, logo_store=logo_store)
    
    def update_general_info(self, full_name: str, base_image: Optional[str] = None,
                            category: Optional[str] = None,
                            logo_path: Optional[str] = None) -> Dict[str, Any]:
        image = resolve_image(self.image_service, full_name)
        
        logo = None
        if logo_path:
            logo = load_logo(logo_path)
        
        core_meta = image.metadata.core_meta
        request = ImageGeneralInfoUpdateRequest(
            base_image=base_image if base_image is not None else core_meta.base_image,
            category=category if category is not None else core_meta.category,
            image_app_logo=logo
        )
        updated = self.image_service.update_image_general_info(image.key, request)
        return {'image': updated.full_name, 'metadata': updated.metadata.to_dict()}
    
    def update_external_urls(self, full_name: str, urls: Dict[str, str]) -> Dict[str, Any]:
        image = resolve_image(self.image_service, full_name)
        updated = self.image_service.update_image_external_urls(image.key, ImageUrlsUpdateRequest(urls))
        return {'image': updated.full_name, 'metadata': updated.metadata.to_dict()}
    
    def update_template(self, full_name: str, template_path: str) -> Dict[str, Any]:
        image = resolve_image(self.image_service, full_name)
        updated = self.image_service.update_image_template(image.key, load_template_request(template_path))
        return {'image': updated.full_name, 'metadata': updated.metadata.to_dict()}


def load_logo(logo_path: str) -> ImageLogoUpload:
    if not os.path.exists(logo_path):
        raise FileNotFoundError(f"Logo file not found: {logo_path}")
    
    content_type = mimetypes.guess_type(logo_path)[0] or "application/octet-stream"
    with open(logo_path, 'rb') as f:
        return ImageLogoUpload(os.path.basename(logo_path), f.read(), content_type)


def load_template_request(template_path: str) -> ImageTemplateRequest:
    """Load a template request from YAML.
    
    Keys mirror the request fields; each list entry is either a bare name or
    a mapping with ``name`` and ``description`` (plus ``example`` for
    environment entries). Omitted keys leave the current template untouched.
    """
    if not os.path.exists(template_path):
        raise FileNotFoundError(f"Template file not found: {template_path}")
    
    with open(template_path, 'r') as f:
        data = yaml.safe_load(f) or {}
    
    def items(key):
        if key not in data:
            return None
        return tuple(
            TemplateItem(entry) if isinstance(entry, str)
            else TemplateItem(entry['name'], entry.get('description'))
            for entry in data[key] or []
        )
    
    environment = None
    if 'environment' in data:
        environment = tuple(
            EnvironmentTemplateItem(entry) if isinstance(entry, str)
            else EnvironmentTemplateItem(entry['name'], entry.get('description'), entry.get('example'))
            for entry in data['environment'] or []
        )
    
    return ImageTemplateRequest(
        restart_policy=data.get('restart_policy'),
        ports=items('ports'),
        volumes=items('volumes'),
        environment=environment,
        devices=items('devices'),
        capabilities=items('capabilities')
    )
