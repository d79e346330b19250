"""Payout service — unified facade for the affiliate payout engine.

This is the primary interface for programmatic access. It wires the
payout subsystem together and exposes:
- Administration (administrators, merchant configs, splits, thresholds)
- Commission intake (record_commission)
- Releases (scheduled, manual single-recipient, batch)
- Read accessors (configs, splits, pending balances, payout history)
- Persistence (state snapshot + append-only payout log)

All operations return a typed ServiceResult. Engine errors never escape
as exceptions; they come back as success=False with the error kind in
data["error_kind"].

Persistence happens after a mutation has been committed in memory (and,
for settlements, after value has moved). A failed snapshot therefore
never rolls anything back: the service flags persistence_degraded and
returns a warning alongside the successful result.

On startup, payout records logged after the last snapshot are deducted
from the restored pending balances, so a settlement whose snapshot was
lost is never paid a second time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

from affiliate_payout.affiliates import InMemoryAffiliateRegistry
from affiliate_payout.config import PayoutParams
from affiliate_payout.models.errors import PayoutError
from affiliate_payout.models.payout import (
    CommissionSplit,
    MerchantConfig,
    PayoutRecord,
    PayoutSchedule,
    PendingBalance,
    ScheduleState,
    SplitShare,
)
from affiliate_payout.payout.executor import InMemoryRail, PayoutExecutor, TransferRail
from affiliate_payout.payout.history import HistoryRecorder
from affiliate_payout.payout.ledger import PendingLedger
from affiliate_payout.payout.registry import MerchantRegistry
from affiliate_payout.payout.router import CommissionRouter
from affiliate_payout.payout.schedule import ScheduleClock
from affiliate_payout.payout.split import SplitValidator
from affiliate_payout.persistence.payout_log import PayoutLog
from affiliate_payout.persistence.state_store import PayoutState, StateStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)


class PayoutService:
    """Affiliate payout engine facade.

    Usage:
        service = PayoutService(bootstrap_admin="ops")
        service.initialize_schedule("ops", now=0)
        service.set_merchant_config("ops", "m1", "weekly", minimum_threshold=500)
        service.record_commission("m1", "m1", "aff_1", 1200)
        service.process_due_payouts(now=1008)

    Persistence (optional):
        service = PayoutService(
            bootstrap_admin="ops",
            state_store=StateStore(data_dir / "state.json"),
            payout_log=PayoutLog(data_dir / "payouts.jsonl"),
        )
    """

    def __init__(
        self,
        bootstrap_admin: str,
        params: Optional[PayoutParams] = None,
        rail: Optional[TransferRail] = None,
        state_store: Optional[StateStore] = None,
        payout_log: Optional[PayoutLog] = None,
        require_registered_affiliates: bool = False,
        height_fn: Optional[Callable[[], int]] = None,
    ) -> None:
        self._params = params or PayoutParams()
        self._state_store = state_store
        self._height_fn = height_fn or self._params.height_at

        state = state_store.load() if state_store is not None else PayoutState()

        self._affiliates = InMemoryAffiliateRegistry(state.affiliates)
        self._registry = MerchantRegistry(
            bootstrap_admin,
            validator=SplitValidator(self._params.max_split_recipients),
            administrators=state.administrators,
            merchants=state.merchants.values(),
            splits=state.splits.values(),
        )
        self._schedule = state.schedule
        self._history = HistoryRecorder(payout_log, counter=state.record_counter)
        unsnapshotted = self._history.records_after(state.record_counter)
        self._ledger = PendingLedger(_deduct_settled(state.pending, unsnapshotted))
        self._executor = PayoutExecutor(
            rail if rail is not None else InMemoryRail(),
            timeout_seconds=self._params.transfer_timeout_seconds,
        )
        self._router = CommissionRouter(
            self._registry,
            self._ledger,
            ScheduleClock(self._schedule, self._params),
            self._executor,
            self._history,
            params=self._params,
            affiliates=self._affiliates if require_registered_affiliates else None,
        )

        self._persistence_degraded: bool = False
        if unsnapshotted:
            logger.warning(
                "Snapshot predates %d logged payout record(s); deducted them from pending balances",
                len(unsnapshotted),
            )
            self._persist()

    @property
    def params(self) -> PayoutParams:
        return self._params

    @property
    def rail(self) -> TransferRail:
        return self._executor.rail

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def set_administrator(self, caller: str, principal: str, active: bool = True) -> ServiceResult:
        try:
            self._router.set_administrator(caller, principal, active)
        except PayoutError as e:
            return _failure(e)
        return self._committed({"principal": principal, "active": active})

    def set_merchant_config(
        self,
        caller: str,
        merchant_id: str,
        payout_schedule: PayoutSchedule | str,
        minimum_threshold: int = 0,
        default_commission_rate: int = 0,
        active: bool = True,
        now: Optional[int] = None,
    ) -> ServiceResult:
        try:
            config = self._router.set_merchant_config(
                caller, merchant_id, payout_schedule, minimum_threshold,
                default_commission_rate, active, self._height(now),
            )
        except PayoutError as e:
            return _failure(e)
        return self._committed({"merchant": config.to_dict()})

    def update_payout_threshold(
        self, caller: str, merchant_id: str, minimum_threshold: int,
        now: Optional[int] = None,
    ) -> ServiceResult:
        try:
            config = self._router.update_payout_threshold(
                caller, merchant_id, minimum_threshold, self._height(now),
            )
        except PayoutError as e:
            return _failure(e)
        return self._committed({"merchant": config.to_dict()})

    def set_commission_split(
        self,
        caller: str,
        merchant_id: str,
        affiliate_id: str,
        shares: Sequence[SplitShare | tuple[str, int]],
        active: bool = True,
    ) -> ServiceResult:
        """Configure a split. Shares may be SplitShare or (recipient, bp) pairs."""
        normalized = [
            s if isinstance(s, SplitShare) else SplitShare(str(s[0]), int(s[1]))
            for s in shares
        ]
        try:
            split = self._router.set_commission_split(
                caller, merchant_id, affiliate_id, normalized, active,
            )
        except PayoutError as e:
            return _failure(e)
        return self._committed({"split": split.to_dict()})

    def register_affiliate(self, affiliate_id: str) -> ServiceResult:
        """Record an affiliate identity for the registration check."""
        try:
            created = self._affiliates.register_affiliate(affiliate_id)
        except ValueError as e:
            return ServiceResult(success=False, errors=[str(e)])
        return self._committed({"affiliate_id": affiliate_id.strip(), "created": created})

    def initialize_schedule(self, caller: str, now: Optional[int] = None) -> ServiceResult:
        height = self._height(now)
        try:
            self._router.initialize_schedule(caller, height)
        except PayoutError as e:
            return _failure(e)
        return self._committed({"schedule": self._schedule.to_dict()})

    # ------------------------------------------------------------------
    # Commission intake and releases
    # ------------------------------------------------------------------

    def record_commission(
        self,
        caller: str,
        merchant_id: str,
        affiliate_id: str,
        amount: int,
        now: Optional[int] = None,
    ) -> ServiceResult:
        try:
            receipt = self._router.record_commission(
                caller, merchant_id, affiliate_id, amount, self._height(now),
            )
        except PayoutError as e:
            return _failure(e)
        data: dict[str, Any] = {
            "merchant_id": receipt.merchant_id,
            "affiliate_id": receipt.affiliate_id,
            "amount": receipt.amount,
            "credits": [list(c) for c in receipt.credits],
            "record": receipt.record.to_dict() if receipt.record else None,
            "failures": [
                {"recipient_id": f.recipient_id, "amount": f.amount, "reason": f.reason}
                for f in receipt.failures
            ],
        }
        return self._committed(data)

    def process_due_payouts(
        self,
        now: Optional[int] = None,
        cadences: Optional[Sequence[PayoutSchedule | str]] = None,
    ) -> ServiceResult:
        try:
            report = self._router.process_due_payouts(self._height(now), cadences)
        except PayoutError as e:
            return _failure(e)
        return self._committed(report.to_dict())

    def process_recipient_payout(
        self, caller: str, recipient_id: str, now: Optional[int] = None,
    ) -> ServiceResult:
        try:
            record = self._router.process_recipient_payout(
                caller, recipient_id, self._height(now),
            )
        except PayoutError as e:
            # A failed transfer restored the balance; persist the ledger anyway.
            self._persist()
            return _failure(e)
        return self._committed({"record": record.to_dict()})

    def batch_process_payouts(
        self, caller: str, recipients: Sequence[str], now: Optional[int] = None,
    ) -> ServiceResult:
        try:
            report = self._router.batch_process_payouts(
                caller, list(recipients), self._height(now),
            )
        except PayoutError as e:
            return _failure(e)
        return self._committed(report.to_dict())

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    def get_merchant_config(self, merchant_id: str) -> Optional[MerchantConfig]:
        return self._registry.get_merchant(merchant_id)

    def get_commission_split(self, merchant_id: str, affiliate_id: str) -> Optional[CommissionSplit]:
        return self._registry.get_split(merchant_id, affiliate_id)

    def get_pending_balance(self, recipient_id: str) -> Optional[PendingBalance]:
        return self._ledger.get(recipient_id)

    def pending_amount(self, recipient_id: str) -> int:
        return self._ledger.balance(recipient_id)

    def pending_balances(self) -> list[PendingBalance]:
        return [e for e in self._ledger.entries() if e.amount > 0]

    def get_payout_record(self, record_id: str) -> Optional[PayoutRecord]:
        return self._history.get(record_id)

    def payout_records(
        self,
        merchant_id: Optional[str] = None,
        affiliate_id: Optional[str] = None,
        recipient_id: Optional[str] = None,
    ) -> list[PayoutRecord]:
        records = self._history.all_records()
        if merchant_id is not None:
            records = [r for r in records if r.merchant_id == merchant_id]
        if affiliate_id is not None:
            records = [r for r in records if r.affiliate_id == affiliate_id]
        if recipient_id is not None:
            records = [r for r in records if recipient_id in r.recipients]
        return records

    def schedule_state(self) -> ScheduleState:
        return ScheduleState.from_dict(self._schedule.to_dict())

    def is_payout_due(self, schedule: PayoutSchedule | str, now: Optional[int] = None) -> bool:
        return self._router.is_payout_due(schedule, self._height(now))

    def is_admin(self, principal: str) -> bool:
        return self._registry.is_admin(principal)

    def status(self) -> dict[str, Any]:
        """Summary of engine state for operators."""
        with self._router.lock:
            return {
                "administrators": sorted(
                    a for a, on in self._registry.administrators().items() if on
                ),
                "merchants": {
                    "total": len(self._registry.merchants()),
                    "active": sum(1 for m in self._registry.merchants() if m.active),
                },
                "splits": len(self._registry.splits()),
                "affiliates": len(self._affiliates.affiliates()),
                "pending": {
                    "recipients": len(self._ledger.recipients()),
                    "total": self._ledger.total_pending(),
                },
                "schedule": self._schedule.to_dict(),
                "payout_records": len(self._history.all_records()),
                "rail": self._executor.rail.rail_id,
                "audit_degraded": self._history.audit_degraded,
                "persistence_degraded": self._persistence_degraded,
            }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _height(self, now: Optional[int]) -> int:
        return self._height_fn() if now is None else now

    def _committed(self, data: dict[str, Any]) -> ServiceResult:
        warning = self._persist()
        if warning:
            data["warning"] = warning
        return ServiceResult(success=True, data=data)

    def _snapshot(self) -> PayoutState:
        return PayoutState(
            administrators=self._registry.administrators(),
            merchants={m.merchant_id: m for m in self._registry.merchants()},
            splits={(s.merchant_id, s.affiliate_id): s for s in self._registry.splits()},
            pending=self._ledger.entries(),
            schedule=self._schedule,
            affiliates=self._affiliates.affiliates(),
            record_counter=self._history.counter,
        )

    def _persist(self) -> Optional[str]:
        """Snapshot state after a committed mutation.

        MUST NOT roll back: the mutation (possibly a transfer) has
        already happened. On failure, flags persistence_degraded and
        returns a warning string.
        """
        if self._state_store is None:
            return None
        with self._router.lock:
            try:
                self._state_store.save(self._snapshot())
                return None
            except OSError as e:
                self._persistence_degraded = True
                logger.warning("Payout state snapshot failed: %s", e)
                return f"Persistence degraded: {e}; state committed in memory but StateStore is stale"


def _deduct_settled(
    pending: list[PendingBalance], records: Sequence[PayoutRecord],
) -> list[PendingBalance]:
    """Apply settlements the snapshot missed to the loaded pending balances.

    A record in the payout log always means value already moved. Balances
    are floored at zero.
    """
    by_recipient = {p.recipient_id: p for p in pending}
    for record in records:
        for disbursement in record.disbursements:
            entry = by_recipient.get(disbursement.recipient_id)
            if entry is not None:
                entry.amount = max(0, entry.amount - disbursement.amount)
    return pending


def _failure(error: PayoutError) -> ServiceResult:
    return ServiceResult(
        success=False,
        errors=[error.message],
        data={"error_kind": error.kind.value},
    )
