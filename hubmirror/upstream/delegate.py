"""Converts raw upstream registry records into parsed records."""

import logging
from typing import Any, Dict, List, Optional, Protocol

from ..models.upstream import DockerImage, DockerTag
from .tag_finder import find_versioned_tag_matching_branch


logger = logging.getLogger(__name__)


class RegistryClient(Protocol):
    """Raw upstream client. Network access lives behind this boundary."""

    def fetch_all_repositories(self) -> List[str]: ...

    def fetch_images_from_repository(self, repository_name: str) -> List[Dict[str, Any]]: ...

    def fetch_all_tags_for_image(self, repository_name: str, image_name: str) -> List[Dict[str, Any]]: ...


class DockerHubDelegate:
    """Upstream access used by the sync workers."""

    def __init__(self, client: RegistryClient):
        self.client = client

    def fetch_all_repositories(self) -> List[str]:
        return list(self.client.fetch_all_repositories())

    def fetch_all_images_from_repository(self, repository_name: str) -> List[DockerImage]:
        """Fetch every image in a repository, sorted by name."""
        images = [
            DockerImage.from_dict(raw)
            for raw in self.client.fetch_images_from_repository(repository_name)
        ]
        images.sort(key=lambda image: image.name)
        return images

    def fetch_all_tags_for_image(self, repository_name: str, image_name: str) -> List[DockerTag]:
        return [
            DockerTag.from_dict(raw)
            for raw in self.client.fetch_all_tags_for_image(repository_name, image_name)
        ]

    def fetch_image(self, repository_name: str, image_name: str) -> Optional[DockerImage]:
        """Fetch one image together with its tags, in registry order."""
        for image in self.fetch_all_images_from_repository(repository_name):
            if image.name == image_name:
                tags = self.fetch_all_tags_for_image(repository_name, image_name)
                return DockerImage(
                    name=image.name,
                    namespace=image.namespace,
                    description=image.description,
                    star_count=image.star_count,
                    pull_count=image.pull_count,
                    build_date=image.build_date,
                    tags=tags
                )

        logger.debug(f"Image {repository_name}/{image_name} not found upstream")
        return None

    def fetch_latest_image_tag(self, repository_name: str, image_name: str,
                               branch_name: str = "latest") -> Optional[str]:
        tags = self.fetch_all_tags_for_image(repository_name, image_name)
        if not tags:
            return None

        return find_versioned_tag_matching_branch(tags, branch_name).name
