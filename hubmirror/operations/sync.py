"""Sync operations applying upstream registry state to the mirror."""

import logging
from datetime import datetime
from typing import Dict, Any, Optional

from ..config.settings import Config
from ..upstream.delegate import DockerHubDelegate
from ..upstream.snapshot_client import SnapshotRegistryClient
from ..workers.sync_worker import SyncWorkerPool
from .common import ImageServiceOperation, resolve_repository


logger = logging.getLogger(__name__)


class SyncOperation(ImageServiceOperation):
    """Handles upstream sync runs."""
    
    def __init__(self, config: Config, snapshot_path: str):
        super().__init__(config)
        self.delegate = DockerHubDelegate(SnapshotRegistryClient(snapshot_path))
    
    def sync(self, repository_filter: Optional[str] = None,
             num_workers: Optional[int] = None) -> Dict[str, Any]:
        """Apply upstream state to every cached image, or those of one repository."""
        num_workers = num_workers or self.config.sync_workers
        
        if repository_filter:
            repositories = [resolve_repository(self.image_service, repository_filter)]
        else:
            repositories = self.image_service.get_all_repositories()
        
        images = [
            image
            for repository in repositories if repository.sync_enabled
            for image in repository.images
        ]
        logger.info(f"Syncing {len(images)} images from {len(repositories)} repositories")
        
        worker_pool = SyncWorkerPool(self.image_service, self.delegate, num_workers)
        sync_results = worker_pool.sync_images(images)
        
        return {
            'completed': datetime.now().strftime("%A, %b %d, %Y %H:%M"),
            'repositories': len(repositories),
            'sync_results': sync_results
        }
