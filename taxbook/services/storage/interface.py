"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Plug in the desktop app's real data store
2. Use in-memory storage for testing
3. Keep reconciliation logic decoupled from storage implementation

Match records are append-only. The interface has no delete operation on
purpose: records must be retained, and only their resolution changes.
"""

from abc import ABC, abstractmethod
from typing import Iterable, Optional
from uuid import UUID

from taxbook.models.audit import AuditEvent
from taxbook.models.match import MatchRecord


class MatchStorageInterface(ABC):
    """
    Abstract interface for match record storage.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    async def save_matches(self, matches: Iterable[MatchRecord]) -> int:
        """
        Save new match records.

        Args:
            matches: Records to save

        Returns:
            Number of records saved

        Raises:
            DuplicateError: If a record with the same id already exists
        """
        pass

    @abstractmethod
    async def get_match_by_id(self, match_id: UUID) -> Optional[MatchRecord]:
        """
        Retrieve a match by its ID.

        Returns:
            The match if found, None otherwise
        """
        pass

    @abstractmethod
    async def list_matches_by_bank_transaction(
        self,
        bank_transaction_id: UUID,
    ) -> list[MatchRecord]:
        """
        All matches for one bank transaction, highest confidence first.
        """
        pass

    @abstractmethod
    async def list_matches_by_business(self, business_id: UUID) -> list[MatchRecord]:
        """All matches of a business, in creation order."""
        pass

    @abstractmethod
    async def list_unresolved_matches(self, business_id: UUID) -> list[MatchRecord]:
        """Matches of a business still waiting for review."""
        pass

    @abstractmethod
    async def count_unresolved_matches(self, business_id: UUID) -> int:
        pass

    @abstractmethod
    async def update_match_status(self, match: MatchRecord) -> bool:
        """
        Store the resolution of an existing match.

        Only status, resolved_at and resolved_by are taken from `match`.
        The stored record must still be UNRESOLVED.

        Returns:
            True if updated, False if no match with that id exists

        Raises:
            InvalidTransitionError: If the stored record is already resolved
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one reconciliation run).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass
