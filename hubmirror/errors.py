"""Exceptions raised by the mirror engine."""

from typing import Optional


class MirrorError(Exception):
    """Base class for all hubmirror errors."""


class NotFoundError(MirrorError):
    """A cached repository, image or branch required by an operation is missing."""


class DuplicateError(MirrorError):
    """The entity being added already exists."""


class StorageError(MirrorError):
    """The persistence layer rejected a create, update or remove call."""

    def __init__(self, message: str, status_message: Optional[str] = None):
        super().__init__(message)
        self.status_message = status_message


class TagResolutionWarning(UserWarning):
    """No upstream tag could be resolved for a tracked branch."""
