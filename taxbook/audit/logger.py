"""
Audit Logger

DESIGN DECISION: Every reconciliation run and every resolution is logged.
This provides:
1. Traceability from a match back to the run that produced it
2. A history of who confirmed or dismissed what
3. Debugging capability when a run aborts

The audit logger:
- Is async so it can sit next to async storage
- Gracefully handles storage failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from taxbook.models.audit import AuditEvent, AuditEventBuilder
from taxbook.models.match import MatchRecord
from taxbook.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_reconciliation_started(
        self,
        business_id: UUID,
        bank_transaction_count: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.reconciliation_started(
            business_id=business_id,
            bank_transaction_count=bank_transaction_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_reconciliation_completed(
        self,
        business_id: UUID,
        detected: int,
        saved: int,
        skipped: int,
        tier_counts: dict[str, int],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.reconciliation_completed(
            business_id=business_id,
            detected=detected,
            saved=saved,
            skipped=skipped,
            tier_counts=tier_counts,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_reconciliation_failed(
        self,
        business_id: Optional[UUID],
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.reconciliation_failed(
            business_id=business_id,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_matches_saved(
        self,
        business_id: UUID,
        count: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.matches_saved(
            business_id=business_id,
            count=count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_match_confirmed(
        self,
        match: MatchRecord,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.match_confirmed(match, correlation_id))

    async def log_match_dismissed(
        self,
        match: MatchRecord,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.match_dismissed(match, correlation_id))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a reconciliation run or a review action.
    Pass it through all subsequent operations.
    """
    return uuid4()


def configure_logging(log_level: str = "INFO") -> None:
    """
    Route structlog output through the standard library at `log_level`.

    structlog's filter_by_level reads the stdlib logger level, so nothing
    below this level reaches the JSON renderer.
    """
    logging.basicConfig(format="%(message)s", level=log_level.upper())
    logging.getLogger("taxbook").setLevel(log_level.upper())
