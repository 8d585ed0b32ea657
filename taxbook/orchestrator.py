"""
Reconciliation Orchestrator

This module ties the pure reconciliation engine to storage and the audit
trail, and defines the review workflow:
1. Run (bank lines + ledger entries → engine → de-duplicate → save)
2. Review (confirm or dismiss one match)

DESIGN DECISION: The orchestrator enforces the boundaries:
- The engine never sees storage; the orchestrator never classifies
- A run for one business is serialized with other runs for that business
- Nothing is resolved without an explicit user action
- Every step is audited
"""

import asyncio
from collections import defaultdict
from datetime import datetime, timezone
from typing import Iterable, Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, ConfigDict, Field

from taxbook.audit import AuditLogger, configure_logging, create_correlation_id
from taxbook.config import Settings, get_settings
from taxbook.models.ledger import BankTransactionView, LedgerEntryView
from taxbook.models.match import MatchRecord, MatchStatus
from taxbook.reconciliation import (
    MatchingRules,
    ReconciliationSummary,
    confirm,
    dismiss,
    reconcile,
    summarize,
)
from taxbook.services.storage import (
    InMemoryAuditStorage,
    InMemoryMatchStorage,
    MatchStorageInterface,
    NotFoundError,
)


logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReconciliationRunResult(BaseModel):
    """Outcome of one reconciliation run."""
    model_config = ConfigDict(frozen=True)

    business_id: UUID
    correlation_id: UUID
    run_at: datetime
    detected_count: int = Field(ge=0, description="Matches the engine produced")
    skipped_count: int = Field(ge=0, description="Matches dropped as already stored")
    new_matches: list[MatchRecord] = Field(default_factory=list)
    summary: ReconciliationSummary

    @property
    def saved_count(self) -> int:
        return len(self.new_matches)


class ReconciliationFlow:
    """
    Orchestrates reconciliation runs and match review.

    Run flow:
    1. Lock → one run per business at a time
    2. Detect → pure engine call
    3. De-duplicate → drop pairs that already have a stored match
    4. Save → append new matches
    5. Audit → start, save, completion (or failure)

    The engine knows nothing about earlier runs. Without step 3 every run
    would insert the same UNRESOLVED matches again.

    LIMITATIONS:
    - Run locks are asyncio locks: they serialize runs inside one event
      loop only. Callers driving one flow from several threads (each with
      its own asyncio.run) must serialize runs themselves.
    - One lock is kept per business id seen, for the life of the flow.
    """

    def __init__(
        self,
        match_storage: Optional[MatchStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        rules: Optional[MatchingRules] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        recon_settings = settings.reconciliation

        self._match_storage = match_storage
        self._audit_logger = audit_logger
        self._rules = rules or MatchingRules.from_settings(recon_settings)
        self._dedupe_against_resolved = recon_settings.dedupe_against_resolved
        self._default_resolver = settings.app.default_resolver
        self._business_locks: defaultdict[UUID, asyncio.Lock] = defaultdict(asyncio.Lock)

    @property
    def rules(self) -> MatchingRules:
        return self._rules

    async def run(
        self,
        bank_transactions: Iterable[BankTransactionView],
        income_entries: Iterable[LedgerEntryView],
        expense_entries: Iterable[LedgerEntryView],
        business_id: UUID,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ReconciliationRunResult:
        """
        Detect, de-duplicate and save matches for one business.

        Raises:
            ValueError: If business_id is None or an input is invalid.
                        Nothing is saved in that case.
        """
        correlation_id = correlation_id or create_correlation_id()
        now = now or _utcnow()
        bank_transactions = list(bank_transactions or [])

        if business_id is None:
            await self._audit_failure(None, "business_id cannot be None", correlation_id)
            raise ValueError("business_id cannot be None")

        async with self._business_locks[business_id]:
            if self._audit_logger:
                await self._audit_logger.log_reconciliation_started(
                    business_id=business_id,
                    bank_transaction_count=len(bank_transactions),
                    correlation_id=correlation_id,
                )

            try:
                detected = reconcile(
                    bank_transactions,
                    income_entries,
                    expense_entries,
                    business_id,
                    now,
                    self._rules,
                )
            except ValueError as e:
                await self._audit_failure(business_id, str(e), correlation_id)
                raise

            new_matches = await self._without_stored_pairs(detected, business_id)

            if new_matches and self._match_storage:
                await self._match_storage.save_matches(new_matches)
                if self._audit_logger:
                    await self._audit_logger.log_matches_saved(
                        business_id=business_id,
                        count=len(new_matches),
                        correlation_id=correlation_id,
                    )

            summary = summarize(new_matches)
            skipped = len(detected) - len(new_matches)

            if self._audit_logger:
                await self._audit_logger.log_reconciliation_completed(
                    business_id=business_id,
                    detected=len(detected),
                    saved=len(new_matches),
                    skipped=skipped,
                    tier_counts=summary.tier_counts(),
                    correlation_id=correlation_id,
                )

        logger.info(
            "reconciliation_run",
            business_id=str(business_id),
            detected=len(detected),
            saved=len(new_matches),
            skipped=skipped,
        )

        return ReconciliationRunResult(
            business_id=business_id,
            correlation_id=correlation_id,
            run_at=now,
            detected_count=len(detected),
            skipped_count=skipped,
            new_matches=new_matches,
            summary=summary,
        )

    async def _without_stored_pairs(
        self,
        detected: list[MatchRecord],
        business_id: UUID,
    ) -> list[MatchRecord]:
        """
        Drop matches whose (bank transaction, ledger entry) pair is stored.

        UNRESOLVED pairs are always dropped. Resolved pairs are dropped too
        unless configured otherwise, so a dismissed pair is not re-flagged.
        """
        if not self._match_storage or not detected:
            return detected

        stored = await self._match_storage.list_matches_by_business(business_id)
        blocked = {
            m.pair_key for m in stored
            if m.is_unresolved or self._dedupe_against_resolved
        }
        return [m for m in detected if m.pair_key not in blocked]

    async def _audit_failure(
        self,
        business_id: Optional[UUID],
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        logger.error(
            "reconciliation_failed",
            business_id=str(business_id) if business_id else None,
            error=error_message,
        )
        if self._audit_logger:
            await self._audit_logger.log_reconciliation_failed(
                business_id=business_id,
                error_message=error_message,
                correlation_id=correlation_id,
            )

    async def confirm_match(
        self,
        match_id: UUID,
        resolved_by: Optional[str] = None,
        resolved_at: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> MatchRecord:
        """
        Record the user's decision that a match is a genuine duplicate.

        CRITICAL: Call this ONLY after explicit user confirmation.

        Raises:
            NotFoundError: If no match with that id is stored
            InvalidTransitionError: If the match is already resolved
        """
        match = await self._load(match_id, correlation_id)
        confirmed = confirm(
            match,
            resolved_at or _utcnow(),
            resolved_by or self._default_resolver,
        )
        await self._persist(confirmed, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_match_confirmed(confirmed, correlation_id)
        return confirmed

    async def dismiss_match(
        self,
        match_id: UUID,
        resolved_by: Optional[str] = None,
        resolved_at: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> MatchRecord:
        """
        Record the user's decision that a match is not a duplicate.

        Raises:
            NotFoundError: If no match with that id is stored
            InvalidTransitionError: If the match is already resolved
        """
        match = await self._load(match_id, correlation_id)
        dismissed = dismiss(
            match,
            resolved_at or _utcnow(),
            resolved_by or self._default_resolver,
        )
        await self._persist(dismissed, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_match_dismissed(dismissed, correlation_id)
        return dismissed

    async def _load(self, match_id: UUID, correlation_id: Optional[UUID]) -> MatchRecord:
        if not self._match_storage:
            raise NotFoundError("Match storage is not configured")

        match = await self._match_storage.get_match_by_id(match_id)
        if match is None:
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type="match_not_found",
                    error_message=f"Match {match_id} not found",
                    details={"match_id": str(match_id)},
                    correlation_id=correlation_id,
                )
            raise NotFoundError(f"Match {match_id} not found")
        return match

    async def _persist(self, resolved: MatchRecord, correlation_id: Optional[UUID]) -> None:
        """
        Store a resolution; nothing is audited unless this succeeds.

        Raises:
            NotFoundError: If the record vanished from storage
            InvalidTransitionError: If storage already holds a resolution
        """
        updated = await self._match_storage.update_match_status(resolved)
        if not updated:
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type="match_not_updated",
                    error_message=f"Match {resolved.id} could not be updated",
                    details={"match_id": str(resolved.id)},
                    correlation_id=correlation_id,
                )
            raise NotFoundError(f"Match {resolved.id} not found")

    async def confirmed_bank_transaction_ids(self, business_id: UUID) -> set[UUID]:
        """
        Bank transactions confirmed as duplicates.

        These must not be promoted to new ledger entries.
        """
        if not self._match_storage:
            return set()
        stored = await self._match_storage.list_matches_by_business(business_id)
        return {m.bank_transaction_id for m in stored if m.status == MatchStatus.CONFIRMED}

    async def review_summary(self, business_id: UUID) -> ReconciliationSummary:
        """Counts over every stored match of a business."""
        if not self._match_storage:
            return summarize([])
        return summarize(await self._match_storage.list_matches_by_business(business_id))


def create_reconciliation_flow(
    use_storage: bool = True,
) -> ReconciliationFlow:
    """
    Factory function to create the reconciliation workflow.

    Args:
        use_storage: Whether to attach in-memory match and audit storage.
                    Set to False for a detection-only flow.
    """
    settings = get_settings()
    configure_logging(settings.app.log_level)

    if use_storage:
        return ReconciliationFlow(
            match_storage=InMemoryMatchStorage(),
            audit_logger=AuditLogger(InMemoryAuditStorage()),
            settings=settings,
        )

    return ReconciliationFlow(
        audit_logger=AuditLogger(),  # Local-only logging
        settings=settings,
    )
