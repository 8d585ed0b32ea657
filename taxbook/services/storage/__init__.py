"""
Storage Services Package

Provides abstract interfaces and an in-memory implementation for match
records and the audit log. The desktop app's data store plugs in behind
the same interfaces.
"""

from taxbook.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    MatchStorageInterface,
    NotFoundError,
    StorageError,
)
from taxbook.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryMatchStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "MatchStorageInterface",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryMatchStorage",
]
