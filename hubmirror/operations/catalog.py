"""Add and remove repositories and images."""

import logging
from typing import Dict, Any

from ..models.keys import ImageLookupKey
from ..models.meta import ItemSyncSpec
from ..models.requests import ImageOutlineRequest, RepositoryOutlineRequest
from .common import ImageServiceOperation, resolve_image, resolve_repository


logger = logging.getLogger(__name__)


class CatalogOperation(ImageServiceOperation):
    """Creates outlines for, and removes, repositories and images."""
    
    def add(self, target: str, sync_enabled: bool = True) -> Dict[str, Any]:
        sync_spec = ItemSyncSpec(sync_enabled=sync_enabled)
        
        if '/' in target:
            lookup_key = ImageLookupKey.parse(target)
            repository = resolve_repository(self.image_service, lookup_key.repository_name)
            created = self.image_service.create_outline(
                ImageOutlineRequest(repository.key, lookup_key.image_name, sync_spec)
            )
        else:
            created = self.image_service.create_outline(RepositoryOutlineRequest(target, sync_spec))
        
        logger.info(f"Added {target}")
        return {'target': target, 'id': created.key.id, 'hidden': created.hidden}
    
    def remove(self, target: str) -> Dict[str, Any]:
        if '/' in target:
            key = resolve_image(self.image_service, target).key
        else:
            key = resolve_repository(self.image_service, target).key
        
        self.image_service.remove_entity(key)
        logger.info(f"Removed {target}")
        return {'target': target, 'removed': True}
