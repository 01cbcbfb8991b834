"""SQL for the mirror store."""

from typing import List, Dict, Any, Optional
from datetime import datetime

import psycopg2.extras

from .connection import DatabaseConnection


SCHEMA = """
CREATE TABLE IF NOT EXISTS repository (
    id SERIAL PRIMARY KEY,
    name VARCHAR(255) NOT NULL UNIQUE,
    sync_enabled BOOLEAN NOT NULL DEFAULT TRUE
);

CREATE TABLE IF NOT EXISTS image (
    id SERIAL PRIMARY KEY,
    repository_id INTEGER NOT NULL REFERENCES repository (id) ON DELETE CASCADE,
    name VARCHAR(255) NOT NULL,
    sync_enabled BOOLEAN NOT NULL DEFAULT TRUE,
    pull_count BIGINT NOT NULL DEFAULT 0,
    star_count INTEGER NOT NULL DEFAULT 0,
    description TEXT,
    last_updated TIMESTAMP,
    metadata JSONB NOT NULL DEFAULT '{}'::jsonb,
    UNIQUE (repository_id, name)
);

CREATE TABLE IF NOT EXISTS tag_branch (
    id SERIAL PRIMARY KEY,
    image_id INTEGER NOT NULL REFERENCES image (id) ON DELETE CASCADE,
    branch_name VARCHAR(255) NOT NULL,
    latest_version VARCHAR(255),
    latest_build_date TIMESTAMP,
    UNIQUE (image_id, branch_name)
);

CREATE TABLE IF NOT EXISTS tag_digest (
    id SERIAL PRIMARY KEY,
    tag_branch_id INTEGER NOT NULL REFERENCES tag_branch (id) ON DELETE CASCADE,
    size BIGINT NOT NULL,
    digest VARCHAR(255) NOT NULL,
    architecture VARCHAR(64),
    arch_variant VARCHAR(64)
);
"""


class MirrorQueries:
    """Queries over the repository, image, tag_branch and tag_digest tables.
    
    Read queries open their own cursor. Write queries run on the caller's
    cursor so a DAO call can group several of them into one transaction.
    """
    
    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection
    
    def create_schema(self):
        with self.db.get_cursor() as cursor:
            cursor.execute(SCHEMA)
    
    def get_all_repositories(self) -> List[Dict[str, Any]]:
        query = """
        SELECT id, name, sync_enabled
        FROM repository
        ORDER BY name
        """
        
        with self.db.get_cursor() as cursor:
            cursor.execute(query)
            return cursor.fetchall()
    
    def get_all_images(self) -> List[Dict[str, Any]]:
        query = """
        SELECT id, repository_id, name, sync_enabled, pull_count, star_count,
               description, last_updated, metadata
        FROM image
        ORDER BY repository_id, name
        """
        
        with self.db.get_cursor() as cursor:
            cursor.execute(query)
            return cursor.fetchall()
    
    def get_all_tag_branches(self) -> List[Dict[str, Any]]:
        query = """
        SELECT id, image_id, branch_name, latest_version, latest_build_date
        FROM tag_branch
        ORDER BY image_id, id
        """
        
        with self.db.get_cursor() as cursor:
            cursor.execute(query)
            return cursor.fetchall()
    
    def get_all_tag_digests(self) -> List[Dict[str, Any]]:
        query = """
        SELECT tag_branch_id, size, digest, architecture, arch_variant
        FROM tag_digest
        ORDER BY tag_branch_id, id
        """
        
        with self.db.get_cursor() as cursor:
            cursor.execute(query)
            return cursor.fetchall()
    
    def insert_repository(self, cursor, name: str, sync_enabled: bool) -> Dict[str, Any]:
        cursor.execute(
            "INSERT INTO repository (name, sync_enabled) VALUES (%s, %s) "
            "RETURNING id, name, sync_enabled",
            (name, sync_enabled)
        )
        return cursor.fetchone()
    
    def update_repository(self, cursor, repository_id: int, sync_enabled: bool) -> int:
        cursor.execute(
            "UPDATE repository SET sync_enabled = %s WHERE id = %s",
            (sync_enabled, repository_id)
        )
        return cursor.rowcount
    
    def delete_repository(self, cursor, repository_id: int) -> int:
        cursor.execute("DELETE FROM repository WHERE id = %s", (repository_id,))
        return cursor.rowcount
    
    def insert_image(self, cursor, repository_id: int, name: str, sync_enabled: bool,
                     metadata: Dict[str, Any]) -> Dict[str, Any]:
        cursor.execute(
            "INSERT INTO image (repository_id, name, sync_enabled, metadata) "
            "VALUES (%s, %s, %s, %s) "
            "RETURNING id, repository_id, name, sync_enabled",
            (repository_id, name, sync_enabled, psycopg2.extras.Json(metadata))
        )
        return cursor.fetchone()
    
    def update_image(self, cursor, image_id: int, sync_enabled: bool, pull_count: int,
                     star_count: int, description: Optional[str],
                     last_updated: Optional[datetime]) -> int:
        cursor.execute(
            """
            UPDATE image
            SET sync_enabled = %s, pull_count = %s, star_count = %s,
                description = %s, last_updated = %s
            WHERE id = %s
            """,
            (sync_enabled, pull_count, star_count, description, last_updated, image_id)
        )
        return cursor.rowcount
    
    def update_image_metadata(self, cursor, image_id: int, metadata: Dict[str, Any]) -> int:
        cursor.execute(
            "UPDATE image SET metadata = %s WHERE id = %s",
            (psycopg2.extras.Json(metadata), image_id)
        )
        return cursor.rowcount
    
    def delete_image(self, cursor, image_id: int) -> int:
        cursor.execute("DELETE FROM image WHERE id = %s", (image_id,))
        return cursor.rowcount
    
    def insert_tag_branch(self, cursor, image_id: int, branch_name: str) -> Dict[str, Any]:
        cursor.execute(
            "INSERT INTO tag_branch (image_id, branch_name) VALUES (%s, %s) "
            "RETURNING id, branch_name",
            (image_id, branch_name)
        )
        return cursor.fetchone()
    
    def delete_tag_branches_except(self, cursor, image_id: int, kept_branch_ids: List[int]) -> int:
        """Drop branches of an image that are no longer tracked."""
        cursor.execute(
            "DELETE FROM tag_branch WHERE image_id = %s AND NOT (id = ANY(%s::integer[]))",
            (image_id, kept_branch_ids)
        )
        return cursor.rowcount
    
    def update_tag_branch(self, cursor, branch_id: int, latest_version: Optional[str],
                          latest_build_date: Optional[datetime]) -> int:
        cursor.execute(
            "UPDATE tag_branch SET latest_version = %s, latest_build_date = %s WHERE id = %s",
            (latest_version, latest_build_date, branch_id)
        )
        return cursor.rowcount
    
    def replace_tag_digests(self, cursor, branch_id: int, digests: List[Dict[str, Any]]):
        cursor.execute("DELETE FROM tag_digest WHERE tag_branch_id = %s", (branch_id,))
        if digests:
            psycopg2.extras.execute_batch(
                cursor,
                "INSERT INTO tag_digest (tag_branch_id, size, digest, architecture, arch_variant) "
                "VALUES (%(tag_branch_id)s, %(size)s, %(digest)s, %(architecture)s, %(arch_variant)s)",
                [dict(d, tag_branch_id=branch_id) for d in digests]
            )
