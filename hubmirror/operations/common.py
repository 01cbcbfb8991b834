"""Helpers shared by the CLI operations."""

from ..config.settings import Config
from ..database.connection import DatabaseConnection
from ..database.image_dao import PostgresImageDAO
from ..errors import NotFoundError
from ..models.entities import Image, Repository
from ..models.keys import ImageLookupKey
from ..services.image_service import ImageService


class DatabaseOperation:
    """Owns the database connection for one command; use as a context manager."""
    
    def __init__(self, config: Config):
        self.config = config
        self.db_connection = DatabaseConnection(config)
        self.image_dao = PostgresImageDAO(self.db_connection)
    
    def close(self):
        self.db_connection.close()
    
    def __enter__(self):
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class ImageServiceOperation(DatabaseOperation):
    """Database operation working through a freshly loaded image service."""
    
    def __init__(self, config: Config, logo_store=None):
        super().__init__(config)
        try:
            self.image_service = ImageService(self.image_dao, logo_store=logo_store)
        except Exception:
            self.close()
            raise


def resolve_image(image_service: ImageService, full_name: str) -> Image:
    """Find a cached image by "<repository>/<image>"."""
    image = image_service.lookup_image(ImageLookupKey.parse(full_name))
    if image is None:
        raise NotFoundError(f"Image '{full_name}' not found")
    return image


def resolve_repository(image_service: ImageService, name: str) -> Repository:
    """Find a cached repository by name."""
    for repository in image_service.get_all_repositories():
        if repository.name == name:
            return repository
    raise NotFoundError(f"Repository '{name}' not found")


def image_summary(image: Image) -> dict:
    return {
        "Name": image.full_name,
        "Hidden": image.hidden,
        "Pulls": image.pull_count,
        "Stars": image.star_count,
        "LastUpdated": image.last_updated.isoformat() if image.last_updated else None,
        "Branches": {
            branch.branch_name: branch.latest_tag.version if branch.latest_tag else None
            for branch in image.tag_branches
        }
    }
