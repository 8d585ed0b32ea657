"""Services package."""

from taxbook.services.storage import (
    AuditStorageInterface,
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryMatchStorage,
    MatchStorageInterface,
    NotFoundError,
    StorageError,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "DuplicateError",
    "InMemoryAuditStorage",
    "InMemoryMatchStorage",
    "MatchStorageInterface",
    "NotFoundError",
    "StorageError",
]
