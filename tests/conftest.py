"""
Shared pytest fixtures for hubmirror tests.

Fixtures provided:
- fake_dao: in-memory DAO honouring the persistence contract
- image_service: ImageService over fake_dao, seeded with one repository
- repository_key / image_key: keys of the seeded entities
"""

import itertools
from datetime import datetime

import pytest

from hubmirror.database.dao import InsertUpdateResult
from hubmirror.models.entities import Image, Repository, Tag, TagBranch, TagDigest
from hubmirror.models.keys import ImageKey, RepositoryKey
from hubmirror.models.meta import ItemSyncSpec
from hubmirror.models.upstream import DockerImage, DockerTag, DockerTagDigest
from hubmirror.services.image_service import ImageService


class FakeImageDAO:
    """Keeps stored entities in dicts. Set ``fail_with`` to make writes fail."""

    def __init__(self, repositories=()):
        self.repositories = {r.key: r for r in repositories}
        self.fail_with = None
        self.calls = []
        self._ids = itertools.count(1000)

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        if self.fail_with:
            return InsertUpdateResult.error(self.fail_with)
        return None

    def fetch_all_repositories(self):
        self.calls.append(('fetch_all_repositories',))
        return list(self.repositories.values())

    def store_repository(self, repository):
        return self._record('store_repository', repository) or self._save_repository(repository)

    def store_image(self, image):
        return self._record('store_image', image) or self._save_image(image)

    def store_image_metadata(self, image):
        return self._record('store_image_metadata', image) or self._save_image(image)

    def create_repository_outline(self, request):
        failed = self._record('create_repository_outline', request)
        if failed:
            return failed
        repository = Repository(RepositoryKey(next(self._ids), request.repository_name), request.sync_spec)
        return self._save_repository(repository)

    def create_image_outline(self, request):
        failed = self._record('create_image_outline', request)
        if failed:
            return failed
        image = Image(ImageKey(next(self._ids), request.image_name, request.repository_key), request.sync_spec)
        return self._save_image(image)

    def create_tag_branch_outline(self, request):
        failed = self._record('create_tag_branch_outline', request)
        if failed:
            return failed
        return InsertUpdateResult.success(TagBranch(next(self._ids), request.branch_name))

    def remove_image(self, image):
        failed = self._record('remove_image', image)
        if failed:
            return failed
        parent = self.repositories[image.repository_key]
        self.repositories[parent.key] = parent.without_image(image.key)
        return InsertUpdateResult.success()

    def remove_repository(self, repository):
        failed = self._record('remove_repository', repository)
        if failed:
            return failed
        del self.repositories[repository.key]
        return InsertUpdateResult.success()

    def _save_repository(self, repository):
        current = self.repositories.get(repository.key)
        if current is not None:
            repository = Repository(repository.key, repository.sync_spec, current.images)
        self.repositories[repository.key] = repository
        return InsertUpdateResult.success(repository)

    def _save_image(self, image):
        parent = self.repositories[image.repository_key]
        self.repositories[parent.key] = parent.with_image(image)
        return InsertUpdateResult.success(image)

    def call_names(self):
        return [c[0] for c in self.calls]


OLD_TAG = Tag("1.0.0", datetime(2020, 1, 1), frozenset({TagDigest(10, "sha256:old", "amd64")}))


@pytest.fixture
def repository_key():
    return RepositoryKey(1, "linuxserver")


@pytest.fixture
def image_key(repository_key):
    return ImageKey(10, "nginx", repository_key)


@pytest.fixture
def seeded_repository(repository_key, image_key):
    nginx = Image(
        key=image_key,
        pull_count=5,
        star_count=1,
        description="old",
        tag_branches=(TagBranch(100, "latest", OLD_TAG), TagBranch(101, "development", OLD_TAG))
    )
    plex = Image(ImageKey(11, "plex", repository_key))
    return Repository(repository_key, ItemSyncSpec(True), (plex, nginx))


@pytest.fixture
def fake_dao(seeded_repository):
    hidden = Repository(RepositoryKey(2, "archived"), ItemSyncSpec(False))
    return FakeImageDAO([seeded_repository, hidden])


@pytest.fixture
def image_service(fake_dao):
    service = ImageService(fake_dao)
    fake_dao.calls.clear()
    return service


def make_docker_tag(name, full_size, digests=None, build_date=None):
    if digests is None:
        digests = [DockerTagDigest(full_size, f"sha256:{name}", "amd64")]
    return DockerTag(name, full_size, build_date, digests)


def make_docker_image(tags, pull_count=50, star_count=7, description="new"):
    return DockerImage(
        name="nginx",
        namespace="linuxserver",
        description=description,
        star_count=star_count,
        pull_count=pull_count,
        build_date=datetime(2020, 3, 1, 10, 0),
        tags=tags
    )
