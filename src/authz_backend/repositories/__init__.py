from .base import BaseRepository, RepositoryError, NotFoundError, DuplicateError

__all__ = [
    "BaseRepository",
    "RepositoryError",
    "NotFoundError",
    "DuplicateError",
]
