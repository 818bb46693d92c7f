"""Exceptions raised by the MongoDB repositories."""

from __future__ import annotations


class RepositoryError(RuntimeError):
    """A repository operation failed for a specific document."""

    def __init__(self, collection: str, key: str, reason: str) -> None:
        super().__init__(f"{collection} '{key}' {reason}")
        self.collection = collection
        self.key = key


class DuplicateKeyRepositoryError(RepositoryError):
    def __init__(self, collection: str, key: str) -> None:
        super().__init__(collection, key, "already exists")


class NotFoundRepositoryError(RepositoryError):
    def __init__(self, collection: str, key: str) -> None:
        super().__init__(collection, key, "not found")


__all__ = [
    "DuplicateKeyRepositoryError",
    "NotFoundRepositoryError",
    "RepositoryError",
]
