"""Concurrent upstream sync workers."""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List, Dict, Any, Callable, Optional

from ..models.entities import Image
from ..services.image_service import ImageService
from ..upstream.delegate import DockerHubDelegate
from ..utils.progress import ProgressReporter


logger = logging.getLogger(__name__)


class SyncWorker:
    """Worker for syncing individual images."""
    
    def __init__(self, worker_id: int, image_service: ImageService, delegate: DockerHubDelegate):
        self.worker_id = worker_id
        self.image_service = image_service
        self.delegate = delegate
    
    def sync_image(self, image: Image) -> Dict[str, Any]:
        """Fetch one image from upstream and apply it to the cache."""
        result = {
            'worker_id': self.worker_id,
            'image': image.full_name,
            'success': False,
            'skipped': False,
            'error': None
        }
        
        try:
            latest_image = self.delegate.fetch_image(image.repository_key.name, image.name)
            if latest_image is None:
                result['error'] = f"Image not found upstream: {image.full_name}"
                return result
            
            self.image_service.apply_upstream_update(image.key, latest_image)
            
            result['success'] = True
            
        except Exception as e:
            logger.debug(f"Sync of {image.full_name} failed", exc_info=True)
            result['error'] = str(e)
        
        return result


class SyncWorkerPool:
    """Pool of workers for concurrent image syncs.
    
    Upstream fetches run in parallel; the image service serializes the
    resulting writes.
    """
    
    def __init__(self, image_service: ImageService, delegate: DockerHubDelegate,
                 num_workers: int = 5, show_progress: bool = True):
        self.image_service = image_service
        self.delegate = delegate
        self.num_workers = num_workers
        self.show_progress = show_progress
    
    def sync_images(self, images: List[Image],
                    progress_callback: Optional[Callable] = None) -> Dict[str, Any]:
        """Sync multiple images using the worker pool."""
        results = {
            'total_images': len(images),
            'updated_images': 0,
            'skipped_images': 0,
            'failed_images': 0,
            'errors': []
        }
        
        if not images:
            return results
        
        workers = [
            SyncWorker(i, self.image_service, self.delegate)
            for i in range(self.num_workers)
        ]
        
        with ThreadPoolExecutor(max_workers=self.num_workers) as executor, \
                ProgressReporter(len(images), disable=not self.show_progress) as progress:
            future_to_image = {}
            for i, image in enumerate(images):
                if not image.sync_enabled:
                    skipped = {'image': image.full_name, 'success': True, 'skipped': True, 'error': None}
                    results['skipped_images'] += 1
                    progress.update(skipped)
                    if progress_callback:
                        progress_callback(skipped)
                    continue
                
                future = executor.submit(workers[i % self.num_workers].sync_image, image)
                future_to_image[future] = image
            
            for future in as_completed(future_to_image):
                result = future.result()
                
                if result['success']:
                    results['updated_images'] += 1
                else:
                    results['failed_images'] += 1
                    results['errors'].append({
                        'image': result['image'],
                        'error': result['error']
                    })
                
                progress.update(result)
                if progress_callback:
                    progress_callback(result)
        
        return results
