"""Tests for the image service sync and update engine."""

import logging
import threading
import warnings
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from hubmirror.database.dao import InsertUpdateResult
from hubmirror.errors import DuplicateError, NotFoundError, StorageError, TagResolutionWarning
from hubmirror.models.entities import TagDigest
from hubmirror.models.keys import ImageKey, ImageLookupKey, RepositoryKey
from hubmirror.models.meta import EnvironmentTemplateItem, ItemSyncSpec, TemplateItem
from hubmirror.models.requests import (
    ImageGeneralInfoUpdateRequest,
    ImageLogoUpload,
    ImageOutlineRequest,
    ImageTemplateRequest,
    ImageUrlsUpdateRequest,
    RepositoryOutlineRequest,
)
from hubmirror.models.upstream import DockerTagDigest
from hubmirror.services.image_service import ImageService

from .conftest import OLD_TAG, make_docker_image, make_docker_tag


class TestLookups:

    def test_reload_cache_on_construction(self, image_service, repository_key, image_key):
        assert image_service.get_repository(repository_key).name == "linuxserver"
        assert image_service.get_image(image_key).name == "nginx"

    def test_lookup_image(self, image_service, image_key):
        assert image_service.lookup_image(ImageLookupKey("linuxserver", "nginx")).key == image_key

    def test_visible_repositories_exclude_hidden(self, image_service):
        assert [r.name for r in image_service.get_all_repositories()] == ["archived", "linuxserver"]
        assert [r.name for r in image_service.get_all_visible_repositories()] == ["linuxserver"]
        assert image_service.get_first_repository().name == "linuxserver"

    def test_reload_is_idempotent(self, image_service):
        first = image_service.get_all_repositories()
        image_service.reload_cache()
        second = image_service.get_all_repositories()

        assert first == second

    def test_reload_failure_leaves_cache(self, image_service, fake_dao):
        before = image_service.get_all_repositories()
        fake_dao.fetch_all_repositories = MagicMock(side_effect=RuntimeError("db down"))

        with pytest.raises(RuntimeError):
            image_service.reload_cache()

        assert image_service.get_all_repositories() == before

    def test_reads_during_reload_see_committed_repositories(self, image_service, repository_key):
        cache = image_service.repository_cache
        original_replace_all = cache.replace_all
        seen = []

        def replace_all_with_read(repositories):
            seen.append(image_service.get_repository(repository_key))
            original_replace_all(repositories)
            seen.append(image_service.get_repository(repository_key))

        cache.replace_all = replace_all_with_read
        image_service.reload_cache()

        assert [r.name for r in seen] == ["linuxserver", "linuxserver"]


class TestSyncSpecUpdates:

    def test_update_repository_spec_commits_stored_result(self, image_service, fake_dao, repository_key):
        updated = image_service.update_sync_spec(repository_key, ItemSyncSpec(False))

        assert updated.hidden
        assert image_service.get_repository(repository_key) is updated
        assert len(updated.images) == 2
        assert fake_dao.call_names() == ['store_repository']

    def test_update_image_spec(self, image_service, image_key):
        updated = image_service.update_sync_spec(image_key, ItemSyncSpec(False))

        assert updated.hidden
        assert image_service.get_image(image_key).hidden

    def test_persisted_result_is_committed_not_local_clone(self, image_service, fake_dao, image_key):
        normalized = image_service.get_image(image_key).clone_for_update(0, 0, "normalized", None)
        fake_dao.store_image = MagicMock(return_value=InsertUpdateResult.success(normalized))

        result = image_service.update_image_spec(image_key, ItemSyncSpec(False))

        assert result is normalized
        assert image_service.get_image(image_key).description == "normalized"

    def test_unknown_key_raises_not_found(self, image_service, fake_dao, repository_key):
        with pytest.raises(NotFoundError):
            image_service.update_sync_spec(RepositoryKey(99, "nope"), ItemSyncSpec(False))
        with pytest.raises(NotFoundError):
            image_service.update_sync_spec(ImageKey(99, "nope", repository_key), ItemSyncSpec(False))
        assert fake_dao.calls == []

    def test_storage_failure_leaves_cache(self, image_service, fake_dao, repository_key):
        before = image_service.get_repository(repository_key)
        fake_dao.fail_with = "constraint violated"

        with pytest.raises(StorageError) as exc_info:
            image_service.update_sync_spec(repository_key, ItemSyncSpec(False))

        assert exc_info.value.status_message == "constraint violated"
        assert image_service.get_repository(repository_key) is before


class TestOutlines:

    def test_create_repository_outline(self, image_service):
        created = image_service.create_outline(RepositoryOutlineRequest("hotio"))

        assert image_service.get_repository(created.key) is created
        assert created.images == ()

    def test_create_image_outline(self, image_service, repository_key):
        created = image_service.create_outline(ImageOutlineRequest(repository_key, "sonarr"))

        names = [i.name for i in image_service.get_repository(repository_key).images]
        assert names == ["nginx", "plex", "sonarr"]
        assert image_service.get_image(created.key) is created

    def test_create_image_outline_with_taken_name(self, image_service, fake_dao, repository_key):
        with pytest.raises(DuplicateError):
            image_service.create_image_outline(ImageOutlineRequest(repository_key, "nginx"))
        assert fake_dao.calls == []

    def test_create_image_outline_in_unknown_repository(self, image_service, fake_dao):
        with pytest.raises(NotFoundError):
            image_service.create_image_outline(ImageOutlineRequest(RepositoryKey(42, "x"), "sonarr"))
        assert fake_dao.calls == []

    def test_outline_failure_leaves_cache(self, image_service, fake_dao):
        before = image_service.get_all_repositories()
        fake_dao.fail_with = "duplicate key"

        with pytest.raises(StorageError):
            image_service.create_outline(RepositoryOutlineRequest("hotio"))

        assert image_service.get_all_repositories() == before


class TestRemoval:

    def test_remove_image(self, image_service, repository_key, image_key):
        image_service.remove_entity(image_key)

        assert image_service.get_image(image_key) is None
        assert [i.name for i in image_service.get_repository(repository_key).images] == ["plex"]

    def test_remove_repository(self, image_service, repository_key):
        image_service.remove_entity(repository_key)
        assert image_service.get_repository(repository_key) is None

    def test_remove_unknown_repository_never_calls_dao(self, image_service, fake_dao):
        with pytest.raises(NotFoundError):
            image_service.remove_repository(RepositoryKey(99, "nope"))
        assert fake_dao.calls == []

    def test_remove_unknown_image_never_calls_dao(self, image_service, fake_dao, repository_key):
        with pytest.raises(NotFoundError):
            image_service.remove_image(ImageKey(99, "nope", repository_key))
        assert fake_dao.calls == []

    def test_removal_failure_keeps_entity_cached(self, image_service, fake_dao, image_key):
        fake_dao.fail_with = "locked"

        with pytest.raises(StorageError):
            image_service.remove_image(image_key)

        assert image_service.get_image(image_key) is not None


class TestApplyUpstreamUpdate:

    def test_updates_statistics_and_branches(self, image_service, image_key):
        upstream = make_docker_image([
            make_docker_tag("latest", 100),
            make_docker_tag("1.2.3", 100, build_date=datetime(2020, 3, 1)),
            make_docker_tag("development", 70),
        ])

        updated = image_service.apply_upstream_update(image_key, upstream)

        assert (updated.pull_count, updated.star_count, updated.description) == (50, 7, "new")
        assert updated.last_updated == datetime(2020, 3, 1, 10, 0)
        latest = updated.find_tag_branch_by_name("latest").latest_tag
        assert latest.version == "1.2.3"
        assert latest.build_date == datetime(2020, 3, 1)
        assert latest.digests == frozenset({TagDigest(100, "sha256:1.2.3", "amd64")})
        assert updated.find_tag_branch_by_name("development").latest_tag.version == "development"
        assert image_service.get_image(image_key) is updated

    def test_previously_cached_image_is_not_mutated(self, image_service, image_key):
        before = image_service.get_image(image_key)

        image_service.apply_upstream_update(image_key, make_docker_image([make_docker_tag("2.0.0", 100)]))

        assert before.pull_count == 5
        assert all(b.latest_tag == OLD_TAG for b in before.tag_branches)
        assert image_service.get_image(image_key) is not before

    def test_null_digests_are_dropped(self, image_service, image_key):
        digests = [None, DockerTagDigest(5, "sha256:arm", "arm", "v7"), None]
        upstream = make_docker_image([make_docker_tag("latest", 5, digests=digests)])

        updated = image_service.apply_upstream_update(image_key, upstream)

        assert updated.find_tag_branch_by_name("latest").latest_tag.digests == frozenset(
            {TagDigest(5, "sha256:arm", "arm", "v7")}
        )

    def test_empty_upstream_tags_keep_prior_tags_and_warn(self, image_service, image_key):
        with pytest.warns(TagResolutionWarning):
            updated = image_service.apply_upstream_update(image_key, make_docker_image([]))

        assert updated.pull_count == 50
        assert all(b.latest_tag == OLD_TAG for b in updated.tag_branches)

    def test_every_unresolved_branch_is_logged_on_each_update(self, image_service, image_key, caplog):
        with warnings.catch_warnings():
            warnings.simplefilter("default")
            with caplog.at_level(logging.WARNING, logger="hubmirror.services.image_service"):
                image_service.apply_upstream_update(image_key, make_docker_image([]))
                image_service.apply_upstream_update(image_key, make_docker_image([]))

        messages = [r.getMessage() for r in caplog.records if r.name == "hubmirror.services.image_service"]
        assert len(messages) == 4
        assert sum("branch development" in m for m in messages) == 2

    def test_unmatched_branch_and_matched_branch_commit_together(self, image_service, fake_dao, image_key):
        upstream = make_docker_image([
            make_docker_tag("1.5.0", 80),
            make_docker_tag("latest", 90),
            make_docker_tag("1.6.0", 90),
        ])

        updated = image_service.apply_upstream_update(image_key, upstream)

        assert updated.find_tag_branch_by_name("latest").latest_tag.version == "1.6.0"
        # no "development" tag upstream: falls back to the first listed tag
        assert updated.find_tag_branch_by_name("development").latest_tag.version == "1.5.0"
        assert fake_dao.call_names() == ['store_image']

    def test_storage_failure_discards_whole_update(self, image_service, fake_dao, image_key):
        before = image_service.get_image(image_key)
        fake_dao.fail_with = "timeout"

        with pytest.raises(StorageError):
            image_service.apply_upstream_update(image_key, make_docker_image([make_docker_tag("9.9", 1)]))

        assert image_service.get_image(image_key) is before

    def test_unknown_image(self, image_service, fake_dao, repository_key):
        with pytest.raises(NotFoundError):
            image_service.apply_upstream_update(ImageKey(99, "x", repository_key), make_docker_image([]))
        assert fake_dao.calls == []

    def test_resolution_warning_is_not_raised(self, image_service, image_key):
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            updated = image_service.apply_upstream_update(image_key, make_docker_image([]))
        assert updated is image_service.get_image(image_key)


class TestBranchTracking:

    def test_track_branch(self, image_service, fake_dao, image_key):
        updated = image_service.track_branch(image_key, "stable")

        assert updated.find_tag_branch_by_name("stable").latest_tag is None
        assert image_service.get_image(image_key).find_tag_branch_by_name("stable") is not None
        assert fake_dao.call_names() == ['create_tag_branch_outline', 'store_image']

    def test_track_duplicate_branch(self, image_service, fake_dao, image_key):
        before = image_service.get_image(image_key)

        with pytest.raises(DuplicateError):
            image_service.track_branch(image_key, "latest")

        assert fake_dao.calls == []
        assert image_service.get_image(image_key) is before

    def test_track_on_unknown_image(self, image_service, repository_key):
        with pytest.raises(NotFoundError):
            image_service.track_branch(ImageKey(99, "x", repository_key), "latest")

    def test_track_outline_failure(self, image_service, fake_dao, image_key):
        fake_dao.fail_with = "nope"
        with pytest.raises(StorageError):
            image_service.track_branch(image_key, "stable")
        assert image_service.get_image(image_key).find_tag_branch_by_name("stable") is None

    def test_untrack_branch(self, image_service, image_key):
        updated = image_service.untrack_branch(image_key, "development")

        assert [b.branch_name for b in updated.tag_branches] == ["latest"]

    def test_untrack_unknown_branch(self, image_service, fake_dao, image_key):
        with pytest.raises(NotFoundError):
            image_service.untrack_branch(image_key, "stable")
        assert fake_dao.calls == []


class TestMetadataUpdates:

    def test_general_info_uses_metadata_store(self, image_service, fake_dao, image_key):
        updated = image_service.update_image_general_info(
            image_key, ImageGeneralInfoUpdateRequest(base_image="alpine", category="web")
        )

        assert updated.metadata.core_meta.base_image == "alpine"
        assert updated.metadata.core_meta.category == "web"
        assert fake_dao.call_names() == ['store_image_metadata']

    def test_general_info_uploads_logo(self, fake_dao, image_key):
        logo_store = MagicMock()
        logo_store.save_image_logo.return_value = "/logos/abc-nginx.png"
        service = ImageService(fake_dao, logo_store=logo_store)
        upload = ImageLogoUpload("nginx.png", b"png")

        updated = service.update_image_general_info(image_key, ImageGeneralInfoUpdateRequest(image_app_logo=upload))

        logo_store.save_image_logo.assert_called_once_with(upload)
        assert updated.metadata.core_meta.app_image_path == "/logos/abc-nginx.png"

    def test_failed_logo_upload_keeps_previous_path(self, fake_dao, image_key):
        logo_store = MagicMock()
        logo_store.save_image_logo.side_effect = ["/logos/first.png", None]
        service = ImageService(fake_dao, logo_store=logo_store)
        request = ImageGeneralInfoUpdateRequest(image_app_logo=ImageLogoUpload("a.png", b"a"))

        service.update_image_general_info(image_key, request)
        updated = service.update_image_general_info(image_key, request)

        assert updated.metadata.core_meta.app_image_path == "/logos/first.png"

    def test_external_urls(self, image_service, image_key):
        urls = {"github": "https://github.com/linuxserver/docker-nginx"}
        updated = image_service.update_image_external_urls(image_key, ImageUrlsUpdateRequest(urls))

        assert dict(updated.metadata.core_meta.external_urls) == urls

    def test_template_merge_keeps_unset_fields(self, image_service, image_key):
        image_service.update_image_template(image_key, ImageTemplateRequest(
            restart_policy="unless-stopped",
            ports=(TemplateItem("80/tcp", "http"),)
        ))
        updated = image_service.update_image_template(image_key, ImageTemplateRequest(
            environment=(EnvironmentTemplateItem("PUID", "user id", "1000"),)
        ))

        template = updated.metadata.template
        assert template.restart_policy == "unless-stopped"
        assert template.ports == (TemplateItem("80/tcp", "http"),)
        assert template.environment[0].name == "PUID"

    def test_metadata_failure_leaves_cache(self, image_service, fake_dao, image_key):
        before = image_service.get_image(image_key)
        fake_dao.fail_with = "disk full"

        with pytest.raises(StorageError):
            image_service.update_image_external_urls(image_key, ImageUrlsUpdateRequest({"a": "b"}))

        assert image_service.get_image(image_key) is before


class TestWriteSerialization:

    def test_concurrent_updates_are_not_lost(self, image_service, image_key):
        branch_names = [f"branch-{i}" for i in range(20)]
        threads = [
            threading.Thread(target=image_service.track_branch, args=(image_key, name))
            for name in branch_names
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        tracked = {b.branch_name for b in image_service.get_image(image_key).tag_branches}
        assert set(branch_names) <= tracked

    def test_persist_runs_under_write_lock(self, image_service, fake_dao, image_key):
        observed = []
        original = fake_dao.store_image

        def try_acquire():
            acquired = image_service._write_lock.acquire(blocking=False)
            if acquired:
                image_service._write_lock.release()
            observed.append(acquired)

        def store_image(image):
            other_writer = threading.Thread(target=try_acquire)
            other_writer.start()
            other_writer.join()
            return original(image)

        fake_dao.store_image = store_image
        image_service.untrack_branch(image_key, "latest")

        assert observed == [False]
