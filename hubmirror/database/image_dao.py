"""PostgreSQL implementation of the image DAO."""

import logging
from collections import defaultdict
from typing import Any, Dict, List

import psycopg2

from ..models.entities import Image, Repository, Tag, TagBranch, TagDigest
from ..models.keys import ImageKey, RepositoryKey
from ..models.meta import ImageMetaData, ItemSyncSpec
from ..models.requests import ImageOutlineRequest, RepositoryOutlineRequest, TagBranchOutlineRequest
from .connection import DatabaseConnection
from .dao import InsertUpdateResult
from .queries import MirrorQueries


logger = logging.getLogger(__name__)


class PostgresImageDAO:
    """Stores repositories, images and tracked branches in PostgreSQL.

    Storage failures come back as error results carrying the database's
    message; nothing here raises for a rejected write.
    """

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection
        self.queries = MirrorQueries(db_connection)

    def create_schema(self):
        self.queries.create_schema()

    def fetch_all_repositories(self) -> List[Repository]:
        digests_by_branch = defaultdict(set)
        for row in self.queries.get_all_tag_digests():
            digests_by_branch[row['tag_branch_id']].add(
                TagDigest(row['size'], row['digest'], row['architecture'], row['arch_variant'])
            )

        branches_by_image = defaultdict(list)
        for row in self.queries.get_all_tag_branches():
            latest_tag = None
            if row['latest_version'] is not None:
                latest_tag = Tag(row['latest_version'], row['latest_build_date'],
                                 frozenset(digests_by_branch[row['id']]))
            branches_by_image[row['image_id']].append(
                TagBranch(row['id'], row['branch_name'], latest_tag)
            )

        image_rows_by_repository = defaultdict(list)
        for row in self.queries.get_all_images():
            image_rows_by_repository[row['repository_id']].append(row)

        repositories = []
        for row in self.queries.get_all_repositories():
            repository_key = RepositoryKey(row['id'], row['name'])
            images = [
                self._image_from_row(image_row, repository_key, branches_by_image[image_row['id']])
                for image_row in image_rows_by_repository[row['id']]
            ]
            repositories.append(Repository(repository_key, ItemSyncSpec(row['sync_enabled']), tuple(images)))

        return repositories

    def store_repository(self, repository: Repository) -> InsertUpdateResult[Repository]:
        try:
            with self.db.get_cursor() as cursor:
                updated = self.queries.update_repository(cursor, repository.key.id, repository.sync_enabled)
        except psycopg2.Error as e:
            return _error_result("store repository", e)

        if updated == 0:
            return InsertUpdateResult.error(f"Repository {repository.key} does not exist")
        return InsertUpdateResult.success(repository)

    def store_image(self, image: Image) -> InsertUpdateResult[Image]:
        try:
            with self.db.get_cursor() as cursor:
                updated = self.queries.update_image(cursor, image.key.id, image.sync_enabled,
                                                    image.pull_count, image.star_count,
                                                    image.description, image.last_updated)
                if updated == 0:
                    return InsertUpdateResult.error(f"Image {image.key} does not exist")

                self.queries.delete_tag_branches_except(
                    cursor, image.key.id, [b.id for b in image.tag_branches if b.id is not None]
                )
                for branch in image.tag_branches:
                    self._store_tag_branch(cursor, branch)
        except psycopg2.Error as e:
            return _error_result("store image", e)

        return InsertUpdateResult.success(image)

    def store_image_metadata(self, image: Image) -> InsertUpdateResult[Image]:
        try:
            with self.db.get_cursor() as cursor:
                updated = self.queries.update_image_metadata(cursor, image.key.id, image.metadata.to_dict())
        except psycopg2.Error as e:
            return _error_result("store image metadata", e)

        if updated == 0:
            return InsertUpdateResult.error(f"Image {image.key} does not exist")
        return InsertUpdateResult.success(image)

    def create_repository_outline(self, request: RepositoryOutlineRequest) -> InsertUpdateResult[Repository]:
        try:
            with self.db.get_cursor() as cursor:
                row = self.queries.insert_repository(cursor, request.repository_name,
                                                     request.sync_spec.sync_enabled)
        except psycopg2.Error as e:
            return _error_result("create repository outline", e)

        return InsertUpdateResult.success(
            Repository(RepositoryKey(row['id'], row['name']), ItemSyncSpec(row['sync_enabled']))
        )

    def create_image_outline(self, request: ImageOutlineRequest) -> InsertUpdateResult[Image]:
        try:
            with self.db.get_cursor() as cursor:
                row = self.queries.insert_image(cursor, request.repository_key.id, request.image_name,
                                                request.sync_spec.sync_enabled, ImageMetaData().to_dict())
        except psycopg2.Error as e:
            return _error_result("create image outline", e)

        return InsertUpdateResult.success(
            Image(ImageKey(row['id'], row['name'], request.repository_key), ItemSyncSpec(row['sync_enabled']))
        )

    def create_tag_branch_outline(self, request: TagBranchOutlineRequest) -> InsertUpdateResult[TagBranch]:
        try:
            with self.db.get_cursor() as cursor:
                row = self.queries.insert_tag_branch(cursor, request.image_key.id, request.branch_name)
        except psycopg2.Error as e:
            return _error_result("create tag branch outline", e)

        return InsertUpdateResult.success(TagBranch(row['id'], row['branch_name']))

    def remove_image(self, image: Image) -> InsertUpdateResult[None]:
        try:
            with self.db.get_cursor() as cursor:
                removed = self.queries.delete_image(cursor, image.key.id)
        except psycopg2.Error as e:
            return _error_result("remove image", e)

        if removed == 0:
            return InsertUpdateResult.error(f"Image {image.key} does not exist")
        return InsertUpdateResult.success()

    def remove_repository(self, repository: Repository) -> InsertUpdateResult[None]:
        try:
            with self.db.get_cursor() as cursor:
                removed = self.queries.delete_repository(cursor, repository.key.id)
        except psycopg2.Error as e:
            return _error_result("remove repository", e)

        if removed == 0:
            return InsertUpdateResult.error(f"Repository {repository.key} does not exist")
        return InsertUpdateResult.success()

    def _store_tag_branch(self, cursor, branch: TagBranch):
        tag = branch.latest_tag
        if tag is None:
            self.queries.update_tag_branch(cursor, branch.id, None, None)
            self.queries.replace_tag_digests(cursor, branch.id, [])
            return

        self.queries.update_tag_branch(cursor, branch.id, tag.version, tag.build_date)
        self.queries.replace_tag_digests(cursor, branch.id, [
            {
                'size': d.size,
                'digest': d.digest,
                'architecture': d.architecture,
                'arch_variant': d.arch_variant
            }
            for d in sorted(tag.digests, key=lambda d: d.digest)
        ])

    @staticmethod
    def _image_from_row(row: Dict[str, Any], repository_key: RepositoryKey,
                        branches: List[TagBranch]) -> Image:
        return Image(
            key=ImageKey(row['id'], row['name'], repository_key),
            sync_spec=ItemSyncSpec(row['sync_enabled']),
            metadata=ImageMetaData.from_dict(row['metadata']),
            pull_count=row['pull_count'],
            star_count=row['star_count'],
            description=row['description'],
            last_updated=row['last_updated'],
            tag_branches=tuple(branches)
        )


def _error_result(action: str, error: psycopg2.Error) -> InsertUpdateResult:
    message = str(error).strip() or error.__class__.__name__
    logger.error(f"Failed to {action}: {message}")
    return InsertUpdateResult.error(message)
