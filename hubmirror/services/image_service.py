"""Synchronization and update engine for cached repositories and images.

Every mutating call reads the committed entity from the cache, builds a
clone carrying the change, hands the clone to the DAO and, only if the DAO
accepts it, commits the DAO's copy back into the cache. All mutating calls
share one lock; reads go straight to the cache.
"""

import logging
import threading
import warnings
from typing import Callable, List, Optional, Union

from ..cache.repository_cache import RepositoryCache
from ..database.dao import ImageDAO, InsertUpdateResult
from ..errors import DuplicateError, NotFoundError, StorageError, TagResolutionWarning
from ..models.entities import Image, Repository, Tag, TagDigest
from ..models.keys import ImageKey, ImageLookupKey, RepositoryKey
from ..models.meta import ItemSyncSpec
from ..models.requests import (
    ImageGeneralInfoUpdateRequest,
    ImageOutlineRequest,
    ImageTemplateRequest,
    ImageUrlsUpdateRequest,
    RepositoryOutlineRequest,
    TagBranchOutlineRequest,
)
from ..models.upstream import DockerImage, DockerTag
from ..upstream.tag_finder import find_versioned_tag_matching_branch
from .template_merger import merge_template_request_into_image


logger = logging.getLogger(__name__)

ImageStorage = Callable[[Image], InsertUpdateResult[Image]]


class ImageService:
    """Sole writer of the repository cache."""

    def __init__(self, image_dao: ImageDAO, logo_store=None):
        self.image_dao = image_dao
        self.logo_store = logo_store
        self.repository_cache = RepositoryCache()
        self._write_lock = threading.RLock()

        self.reload_cache()

    def reload_cache(self) -> int:
        """Replace the cache with the DAO's full listing. Returns the repository count."""
        with self._write_lock:
            all_items = self.image_dao.fetch_all_repositories()

            self.repository_cache.replace_all(all_items)

        logger.info(f"Loaded {len(all_items)} repositories into cache")
        return len(all_items)

    # Lookups

    def get_repository(self, repository_key: RepositoryKey) -> Optional[Repository]:
        return self.repository_cache.find_item(repository_key)

    def get_image(self, image_key: ImageKey) -> Optional[Image]:
        return self.repository_cache.find_image(image_key)

    def lookup_image(self, lookup_key: ImageLookupKey) -> Optional[Image]:
        return self.repository_cache.lookup_image(lookup_key)

    def get_all_repositories(self) -> List[Repository]:
        return self.repository_cache.get_all_items()

    def get_all_visible_repositories(self) -> List[Repository]:
        return [r for r in self.get_all_repositories() if not r.hidden]

    def get_first_repository(self) -> Optional[Repository]:
        return next(iter(self.get_all_visible_repositories()), None)

    # Sync specs

    def update_sync_spec(self, key: Union[RepositoryKey, ImageKey],
                         sync_spec: ItemSyncSpec) -> Union[Repository, Image]:
        if isinstance(key, ImageKey):
            return self.update_image_spec(key, sync_spec)
        return self.update_repository_spec(key, sync_spec)

    def update_image_spec(self, image_key: ImageKey, sync_spec: ItemSyncSpec) -> Image:
        with self._write_lock:
            cached_image = self._find_image(image_key)
            return self.store_image(cached_image.clone_with_sync_spec(sync_spec))

    def update_repository_spec(self, repository_key: RepositoryKey, sync_spec: ItemSyncSpec) -> Repository:
        with self._write_lock:
            cached_repository = self._find_repository(repository_key)
            updated_repository = cached_repository.clone_with_sync_spec(sync_spec)

            result = self.image_dao.store_repository(updated_repository)
            if result.is_error:
                logger.error(f"Unable to store repository {repository_key}. "
                             f"Update returned error: {result.status_message}")
                raise StorageError(f"Failed to store repository: {result.status_message}",
                                   result.status_message)

            stored_repository = result.result
            self.repository_cache.add_item(stored_repository)
            return stored_repository

    # Outlines

    def create_outline(self, request: Union[RepositoryOutlineRequest, ImageOutlineRequest]):
        if isinstance(request, ImageOutlineRequest):
            return self.create_image_outline(request)
        return self.create_repository_outline(request)

    def create_repository_outline(self, request: RepositoryOutlineRequest) -> Repository:
        with self._write_lock:
            result = self.image_dao.create_repository_outline(request)
            if result.is_error:
                logger.error(f"Unable to create repository outline {request}, reason: {result.status_message}")
                raise StorageError("Unable to create repository outline", result.status_message)

            repository_outline = result.result
            logger.info(f"Successfully created outline for repository {repository_outline.name}")
            self.repository_cache.add_item(repository_outline)
            return repository_outline

    def create_image_outline(self, request: ImageOutlineRequest) -> Image:
        with self._write_lock:
            parent = self._find_repository(request.repository_key)
            if parent.find_image_by_name(request.image_name) is not None:
                raise DuplicateError(f"Repository {parent.name} already holds image {request.image_name}")

            result = self.image_dao.create_image_outline(request)
            if result.is_error:
                logger.error(f"Unable to create image outline {request}, reason: {result.status_message}")
                raise StorageError("Unable to create image outline", result.status_message)

            image_outline = result.result
            logger.info(f"Successfully created outline for image {image_outline.full_name}")
            self._update_cache(image_outline)
            return image_outline

    # Removal

    def remove_entity(self, key: Union[RepositoryKey, ImageKey]):
        if isinstance(key, ImageKey):
            self.remove_image(key)
        else:
            self.remove_repository(key)

    def remove_image(self, image_key: ImageKey):
        with self._write_lock:
            cached_image = self._find_image(image_key)

            result = self.image_dao.remove_image(cached_image)
            if result.is_error:
                logger.error(f"Unable to remove image {image_key}: {result.status_message}")
                raise StorageError(f"Unable to remove persisted image: {result.status_message}",
                                   result.status_message)

            parent = self.repository_cache.find_item(cached_image.repository_key)
            self.repository_cache.add_item(parent.without_image(image_key))

    def remove_repository(self, repository_key: RepositoryKey):
        with self._write_lock:
            cached = self._find_repository(repository_key)

            result = self.image_dao.remove_repository(cached)
            if result.is_error:
                logger.error(f"Unable to remove repository {repository_key}: {result.status_message}")
                raise StorageError(f"Unable to remove repository {repository_key}", result.status_message)

            self.repository_cache.remove_item(cached.key)

    # Upstream sync

    def apply_upstream_update(self, image_key: ImageKey, latest_image: DockerImage) -> Image:
        """Refresh an image's statistics and tracked branches from upstream.

        Branches with no resolvable upstream tag keep their previous tag and
        are logged and raise a TagResolutionWarning; the rest advance. The image is stored
        and committed as a single unit.
        """
        with self._write_lock:
            cached_image = self._find_image(image_key)
            cloned = cached_image.clone_for_update(latest_image.pull_count,
                                                   latest_image.star_count,
                                                   latest_image.description,
                                                   latest_image.build_date)

            branches = []
            for branch in cloned.tag_branches:
                matching_tag = find_versioned_tag_matching_branch(latest_image.tags, branch.branch_name)
                if matching_tag is None:
                    message = (f"Unable to find tag for branch {branch.branch_name} in image "
                               f"{cloned.full_name}. Will not update tags.")
                    logger.warning(message)
                    warnings.warn(message, TagResolutionWarning, stacklevel=2)
                    branches.append(branch)
                else:
                    branches.append(branch.with_latest_tag(_convert_tag(matching_tag)))

            return self.store_image(cloned.clone_with_tag_branches(branches))

    # Branch tracking

    def track_branch(self, image_key: ImageKey, branch_name: str) -> Image:
        with self._write_lock:
            image = self._find_image(image_key)
            if image.find_tag_branch_by_name(branch_name) is not None:
                raise DuplicateError(f"Image is already tracking branch {branch_name}")

            outline_result = self.image_dao.create_tag_branch_outline(
                TagBranchOutlineRequest(image_key, branch_name)
            )
            if outline_result.is_error:
                logger.error(f"Unable to track branch {branch_name} on {image.full_name}: "
                             f"{outline_result.status_message}")
                raise StorageError(outline_result.status_message, outline_result.status_message)

            return self.store_image(image.clone_with_tag_branch(outline_result.result))

    def untrack_branch(self, image_key: ImageKey, branch_name: str) -> Image:
        with self._write_lock:
            image = self._find_image(image_key)
            if image.find_tag_branch_by_name(branch_name) is None:
                raise NotFoundError(f"Could not find branch {branch_name} on image {image.full_name}")

            return self.store_image(image.clone_without_tag_branch(branch_name))

    # Metadata

    def update_image_general_info(self, image_key: ImageKey, request: ImageGeneralInfoUpdateRequest) -> Image:
        with self._write_lock:
            image = self._find_image(image_key)
            metadata = image.metadata

            app_logo_path = metadata.core_meta.app_image_path
            if request.image_app_logo is not None:
                if self.logo_store is None:
                    logger.warning(f"No logo store configured, keeping logo for {image.full_name}")
                else:
                    saved_path = self.logo_store.save_image_logo(request.image_app_logo)
                    if saved_path is not None:
                        app_logo_path = saved_path

            core_meta = metadata.core_meta.clone_with_base_data(app_logo_path,
                                                                request.base_image,
                                                                request.category)

            cloned = image.clone_with_metadata(metadata.clone_with_core_meta(core_meta))
            return self.store_image_metadata(cloned)

    def update_image_external_urls(self, image_key: ImageKey, request: ImageUrlsUpdateRequest) -> Image:
        with self._write_lock:
            image = self._find_image(image_key)
            metadata = image.metadata

            core_meta = metadata.core_meta.clone_with_external_urls(request.external_urls)
            cloned = image.clone_with_metadata(metadata.clone_with_core_meta(core_meta))
            return self.store_image_metadata(cloned)

    def update_image_template(self, image_key: ImageKey, request: ImageTemplateRequest) -> Image:
        with self._write_lock:
            image = self._find_image(image_key)
            cloned = merge_template_request_into_image(image, request)

            logger.info(f"{cloned.full_name} merged with new template")
            return self.store_image_metadata(cloned)

    # Storage

    def store_image(self, image: Image) -> Image:
        return self._store_image(image, self.image_dao.store_image)

    def store_image_metadata(self, image: Image) -> Image:
        return self._store_image(image, self.image_dao.store_image_metadata)

    def _store_image(self, image: Image, storage_function: ImageStorage) -> Image:
        with self._write_lock:
            result = storage_function(image)
            if result.is_error:
                logger.error(f"Unable to store image {image.key}. Update returned error: {result.status_message}")
                raise StorageError(f"Failed to store image: {result.status_message}", result.status_message)

            stored_image = result.result
            self._update_cache(stored_image)
            return stored_image

    def _find_image(self, image_key: ImageKey) -> Image:
        image = self.repository_cache.find_image(image_key)
        if image is None:
            raise NotFoundError(f"Could not find image with key {image_key}")
        return image

    def _find_repository(self, repository_key: RepositoryKey) -> Repository:
        repository = self.repository_cache.find_item(repository_key)
        if repository is None:
            raise NotFoundError(f"Unable to find cached repository {repository_key}")
        return repository

    def _update_cache(self, stored_image: Image):
        parent = self.repository_cache.find_item(stored_image.repository_key)
        if parent is None:
            logger.warning(f"Could not find repository for image {stored_image.key}")
            return

        self.repository_cache.add_item(parent.with_image(stored_image))


def _convert_tag(docker_tag: DockerTag) -> Tag:
    return Tag(
        version=docker_tag.name,
        build_date=docker_tag.build_date,
        digests=frozenset(
            TagDigest(d.size, d.digest, d.architecture, d.arch_variant)
            for d in docker_tag.digests
            if d is not None
        )
    )
