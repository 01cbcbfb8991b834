"""Branch tracking operations."""

import logging
from typing import Dict, Any

from .common import ImageServiceOperation, image_summary, resolve_image


logger = logging.getLogger(__name__)


class BranchOperation(ImageServiceOperation):
    """Starts and stops tracking upstream branches on an image."""
    
    def track(self, full_name: str, branch_name: str) -> Dict[str, Any]:
        image = resolve_image(self.image_service, full_name)
        updated = self.image_service.track_branch(image.key, branch_name)
        logger.info(f"Now tracking branch {branch_name} on {full_name}")
        return image_summary(updated)
    
    def untrack(self, full_name: str, branch_name: str) -> Dict[str, Any]:
        image = resolve_image(self.image_service, full_name)
        updated = self.image_service.untrack_branch(image.key, branch_name)
        logger.info(f"Stopped tracking branch {branch_name} on {full_name}")
        return image_summary(updated)
