"""In-memory mirror of every repository and the images it owns."""

from typing import Dict, Iterable, List, Optional

from ..models.entities import Image, Repository
from ..models.keys import ImageKey, ImageLookupKey, RepositoryKey


class RepositoryCache:
    """Holds committed repositories keyed by RepositoryKey.

    Writes swap in a new mapping rather than editing the current one, so
    readers never lock and always see a complete snapshot. Images are found by
    scanning the owning repositories; there is no separate image index to keep
    in step with the repositories.
    """

    def __init__(self):
        self._items: Dict[RepositoryKey, Repository] = {}

    def clear(self):
        self._items = {}

    def add_all_items(self, repositories: Iterable[Repository]):
        items = dict(self._items)
        for repository in repositories:
            items[repository.key] = repository
        self._items = items

    def replace_all(self, repositories: Iterable[Repository]):
        """Swap the whole mapping for the given repositories in one assignment."""
        self._items = {repository.key: repository for repository in repositories}

    def add_item(self, repository: Repository):
        items = dict(self._items)
        items[repository.key] = repository
        self._items = items

    def remove_item(self, key: RepositoryKey):
        items = dict(self._items)
        items.pop(key, None)
        self._items = items

    def is_item_cached(self, key: RepositoryKey) -> bool:
        return key in self._items

    def find_item(self, key: RepositoryKey) -> Optional[Repository]:
        return self._items.get(key)

    def get_all_items(self) -> List[Repository]:
        """Snapshot of all repositories, ordered by name."""
        return sorted(self._items.values(), key=lambda r: r.name)

    def find_image(self, image_key: ImageKey) -> Optional[Image]:
        repository = self._items.get(image_key.repository_key)
        if repository is None:
            return None
        return repository.find_image(image_key)

    def lookup_image(self, lookup_key: ImageLookupKey) -> Optional[Image]:
        for repository in list(self._items.values()):
            if repository.name == lookup_key.repository_name:
                image = repository.find_image_by_name(lookup_key.image_name)
                if image is not None:
                    return image
        return None
