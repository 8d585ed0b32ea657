"""
In-Memory Storage

Process-local implementations of the storage interfaces. Used by tests
and by the desktop app when no data store is configured.

Records are kept in insertion order. Nothing is ever removed.
"""

from typing import Iterable, Optional
from uuid import UUID

from taxbook.models.audit import AuditEvent
from taxbook.models.match import InvalidTransitionError, MatchRecord, MatchStatus
from taxbook.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    MatchStorageInterface,
)


class InMemoryMatchStorage(MatchStorageInterface):
    """Match storage backed by a dict keyed by match id."""

    def __init__(self):
        self._matches: dict[UUID, MatchRecord] = {}

    async def save_matches(self, matches: Iterable[MatchRecord]) -> int:
        batch = list(matches)

        # Validate the whole batch before writing any of it
        seen: set[UUID] = set()
        for match in batch:
            if match.id in self._matches or match.id in seen:
                raise DuplicateError(f"Match {match.id} already exists")
            seen.add(match.id)

        for match in batch:
            self._matches[match.id] = match
        return len(batch)

    async def get_match_by_id(self, match_id: UUID) -> Optional[MatchRecord]:
        return self._matches.get(match_id)

    async def list_matches_by_bank_transaction(
        self,
        bank_transaction_id: UUID,
    ) -> list[MatchRecord]:
        found = [
            m for m in self._matches.values()
            if m.bank_transaction_id == bank_transaction_id
        ]
        return sorted(found, key=lambda m: m.confidence, reverse=True)

    async def list_matches_by_business(self, business_id: UUID) -> list[MatchRecord]:
        return [m for m in self._matches.values() if m.business_id == business_id]

    async def list_unresolved_matches(self, business_id: UUID) -> list[MatchRecord]:
        return [
            m for m in self._matches.values()
            if m.business_id == business_id and m.status == MatchStatus.UNRESOLVED
        ]

    async def count_unresolved_matches(self, business_id: UUID) -> int:
        return len(await self.list_unresolved_matches(business_id))

    async def update_match_status(self, match: MatchRecord) -> bool:
        stored = self._matches.get(match.id)
        if stored is None:
            return False
        if not stored.is_unresolved:
            raise InvalidTransitionError(stored.id, stored.status, match.status)

        data = stored.model_dump()
        data.update(
            status=match.status,
            resolved_at=match.resolved_at,
            resolved_by=match.resolved_by,
        )
        self._matches[match.id] = MatchRecord.model_validate(data)
        return True


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in a list."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        return [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
