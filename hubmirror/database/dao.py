"""Persistence contract consumed by the image service."""

from dataclasses import dataclass
from typing import Generic, List, Optional, Protocol, TypeVar

from ..models.entities import Image, Repository, TagBranch
from ..models.requests import ImageOutlineRequest, RepositoryOutlineRequest, TagBranchOutlineRequest

T = TypeVar('T')


@dataclass(frozen=True)
class InsertUpdateResult(Generic[T]):
    """Outcome of a persistence call: the stored value or a status message."""
    result: Optional[T] = None
    status_message: str = "OK"
    is_error: bool = False

    @classmethod
    def success(cls, result: Optional[T] = None) -> 'InsertUpdateResult[T]':
        return cls(result=result)

    @classmethod
    def error(cls, status_message: str) -> 'InsertUpdateResult[T]':
        return cls(status_message=status_message, is_error=True)


class ImageDAO(Protocol):

    def fetch_all_repositories(self) -> List[Repository]: ...

    def store_repository(self, repository: Repository) -> InsertUpdateResult[Repository]: ...

    def store_image(self, image: Image) -> InsertUpdateResult[Image]: ...

    def store_image_metadata(self, image: Image) -> InsertUpdateResult[Image]: ...

    def create_repository_outline(self, request: RepositoryOutlineRequest) -> InsertUpdateResult[Repository]: ...

    def create_image_outline(self, request: ImageOutlineRequest) -> InsertUpdateResult[Image]: ...

    def create_tag_branch_outline(self, request: TagBranchOutlineRequest) -> InsertUpdateResult[TagBranch]: ...

    def remove_image(self, image: Image) -> InsertUpdateResult[None]: ...

    def remove_repository(self, repository: Repository) -> InsertUpdateResult[None]: ...
