"""
Audit Models for Reconciliation

Every reconciliation run and every human resolution is logged.
This provides:
1. Traceability of which run produced which matches
2. A record of who confirmed or dismissed each match, and when
3. Debugging information when a run fails

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from taxbook.models.match import MatchRecord


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Reconciliation runs
    RECONCILIATION_STARTED = "reconciliation_started"
    RECONCILIATION_COMPLETED = "reconciliation_completed"
    RECONCILIATION_FAILED = "reconciliation_failed"

    # Persistence
    MATCHES_SAVED = "matches_saved"

    # Human resolution
    MATCH_CONFIRMED = "match_confirmed"
    MATCH_DISMISSED = "match_dismissed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'match', 'business')"
    )
    entity_id: Optional[UUID] = None
    business_id: Optional[UUID] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events of one run)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "business_id": str(self.business_id) if self.business_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.reconciliation_started(business_id, 12, correlation_id)
        event = AuditEventBuilder.match_confirmed(match, correlation_id)
    """

    @staticmethod
    def reconciliation_started(
        business_id: UUID,
        bank_transaction_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECONCILIATION_STARTED,
            entity_type="business",
            entity_id=business_id,
            business_id=business_id,
            correlation_id=correlation_id,
            description=f"Reconciliation started for {bank_transaction_count} bank transactions",
            details={
                "bank_transaction_count": bank_transaction_count,
            },
        )

    @staticmethod
    def reconciliation_completed(
        business_id: UUID,
        detected: int,
        saved: int,
        skipped: int,
        tier_counts: dict[str, int],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECONCILIATION_COMPLETED,
            entity_type="business",
            entity_id=business_id,
            business_id=business_id,
            correlation_id=correlation_id,
            description=f"Reconciliation found {detected} matches ({saved} new)",
            details={
                "detected": detected,
                "saved": saved,
                "skipped_existing": skipped,
                "tier_counts": tier_counts,
            },
        )

    @staticmethod
    def reconciliation_failed(
        business_id: Optional[UUID],
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECONCILIATION_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="business",
            entity_id=business_id,
            business_id=business_id,
            correlation_id=correlation_id,
            description="Reconciliation aborted, no matches were saved",
            error_message=error_message,
        )

    @staticmethod
    def matches_saved(
        business_id: UUID,
        count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MATCHES_SAVED,
            entity_type="business",
            entity_id=business_id,
            business_id=business_id,
            correlation_id=correlation_id,
            description=f"{count} match records saved",
            details={"count": count},
        )

    @staticmethod
    def match_confirmed(match: MatchRecord, correlation_id: Optional[UUID] = None) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MATCH_CONFIRMED,
            entity_type="match",
            entity_id=match.id,
            business_id=match.business_id,
            correlation_id=correlation_id,
            description=f"User confirmed {match.tier.value} match as a duplicate",
            details={
                "bank_transaction_id": str(match.bank_transaction_id),
                "ledger_entry_id": str(match.ledger_entry_id),
                "ledger_entry_kind": match.ledger_entry_kind.value,
                "resolved_by": match.resolved_by,
            },
            is_user_action=True,
        )

    @staticmethod
    def match_dismissed(match: MatchRecord, correlation_id: Optional[UUID] = None) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MATCH_DISMISSED,
            entity_type="match",
            entity_id=match.id,
            business_id=match.business_id,
            correlation_id=correlation_id,
            description=f"User dismissed {match.tier.value} match",
            details={
                "bank_transaction_id": str(match.bank_transaction_id),
                "ledger_entry_id": str(match.ledger_entry_id),
                "ledger_entry_kind": match.ledger_entry_kind.value,
                "resolved_by": match.resolved_by,
            },
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
