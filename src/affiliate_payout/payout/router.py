"""Commission router — accrual, release and settlement orchestration.

The router is the only component that mutates the PendingLedger and the
only caller of the PayoutExecutor and HistoryRecorder. Every operation
runs under one re-entrant lock, so ledger, schedule and history see a
single serializable order of operations.

Settlement policy (attempt-then-restore):
    1. PendingLedger.settle() clears the balance and yields the amount.
    2. PayoutExecutor.execute_transfer() moves the value.
    3. On TransferFailed the exact cleared entry is restored before the
       failure is reported. Nothing is in flight when the lock releases.

Fan-out:
    credit(recipient) = amount × share_bp // 10000 for every split recipient.
    The rounding remainder is not redistributed.
"""

from __future__ import annotations

import logging
import threading
from typing import Iterable, List, Optional, Sequence, Tuple

from affiliate_payout.affiliates import AffiliateRegistry
from affiliate_payout.config import PayoutParams
from affiliate_payout.models.errors import (
    AffiliateNotFound,
    BatchTooLarge,
    InvalidAmount,
    InvalidRecipient,
    NoPendingPayouts,
    NotAuthorized,
    PayoutThresholdNotMet,
    TransferFailed,
)
from affiliate_payout.models.payout import (
    CommissionReceipt,
    CommissionSplit,
    Disbursement,
    MerchantConfig,
    PayoutRecord,
    PayoutSchedule,
    PayoutTrigger,
    ReleaseReport,
    SplitShare,
    TransferFailure,
)
from affiliate_payout.payout.executor import PayoutExecutor
from affiliate_payout.payout.history import HistoryRecorder
from affiliate_payout.payout.ledger import PendingLedger
from affiliate_payout.payout.registry import MerchantRegistry
from affiliate_payout.payout.schedule import ScheduleClock
from affiliate_payout.payout.split import allocate

logger = logging.getLogger(__name__)


class CommissionRouter:
    """Routes commissions to pending balances and releases them.

    Usage:
        router = CommissionRouter(registry, ledger, clock, executor, history)
        router.set_merchant_config("m1", "m1", "weekly", 500, 1000, True, now=0)
        router.record_commission("m1", "m1", "aff_1", 1200, now=10)
        report = router.process_due_payouts(now=1008)
    """

    def __init__(
        self,
        registry: MerchantRegistry,
        ledger: PendingLedger,
        clock: ScheduleClock,
        executor: PayoutExecutor,
        history: HistoryRecorder,
        params: Optional[PayoutParams] = None,
        affiliates: Optional[AffiliateRegistry] = None,
    ) -> None:
        self._registry = registry
        self._ledger = ledger
        self._clock = clock
        self._executor = executor
        self._history = history
        self._params = params or PayoutParams()
        self._affiliates = affiliates
        self._lock = threading.RLock()

    @property
    def registry(self) -> MerchantRegistry:
        return self._registry

    @property
    def ledger(self) -> PendingLedger:
        return self._ledger

    @property
    def clock(self) -> ScheduleClock:
        return self._clock

    @property
    def history(self) -> HistoryRecorder:
        return self._history

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    # ------------------------------------------------------------------
    # Commission intake
    # ------------------------------------------------------------------

    def record_commission(
        self,
        caller: str,
        merchant_id: str,
        affiliate_id: str,
        amount: int,
        now: int,
    ) -> CommissionReceipt:
        """Accrue a commission and, for immediate merchants, settle it.

        Raises:
            MerchantNotFound: no active config for merchant_id.
            InvalidAmount: amount is not positive.
            NotAuthorized: caller is neither the merchant nor an admin.
            AffiliateNotFound: an affiliate registry is wired and does
                not recognize affiliate_id.

        A failed transfer in the immediate path does not fail the call:
        the accrual stands and the restored balance is reported in
        receipt.failures.
        """
        with self._lock:
            config = self._registry.require_active_merchant(merchant_id)
            if amount <= 0:
                raise InvalidAmount(f"Commission amount must be positive, got {amount}")
            self._registry.require_merchant_or_admin(caller, merchant_id)
            if self._affiliates is not None and not self._affiliates.is_affiliate(affiliate_id):
                raise AffiliateNotFound(f"Unknown affiliate: {affiliate_id}")

            split = self._registry.active_split(merchant_id, affiliate_id)
            if split is not None:
                credits = allocate(amount, split.shares)
            else:
                credits = [(affiliate_id, amount)]

            for recipient_id, credit in credits:
                self._ledger.accrue(
                    recipient_id, credit, now,
                    merchant_id=merchant_id, affiliate_id=affiliate_id,
                )
            logger.info(
                "Commission %d from %s for %s accrued to %d recipient(s)",
                amount, merchant_id, affiliate_id, len(credits),
            )

            record: Optional[PayoutRecord] = None
            failures: List[TransferFailure] = []
            if config.payout_schedule == PayoutSchedule.IMMEDIATE:
                record, failures = self._settle_immediately(
                    config, affiliate_id, [rid for rid, _ in credits], now,
                )

            return CommissionReceipt(
                merchant_id=merchant_id,
                affiliate_id=affiliate_id,
                amount=amount,
                credits=tuple(credits),
                record=record,
                failures=tuple(failures),
            )

    def _settle_immediately(
        self,
        config: MerchantConfig,
        affiliate_id: str,
        recipients: Sequence[str],
        now: int,
    ) -> Tuple[Optional[PayoutRecord], List[TransferFailure]]:
        """Settle just-credited recipients into one shared record."""
        disbursements: List[Disbursement] = []
        failures: List[TransferFailure] = []
        for recipient_id in recipients:
            balance = self._ledger.balance(recipient_id)
            if balance <= 0 or balance < config.minimum_threshold:
                continue
            try:
                disbursements.append(self._settle_one(recipient_id))
            except TransferFailed as e:
                failures.append(TransferFailure(recipient_id, e.amount, e.message))

        record = None
        if disbursements:
            record = self._history.record(
                config.merchant_id,
                affiliate_id,
                disbursements,
                sum(d.amount for d in disbursements),
                now,
                PayoutTrigger.IMMEDIATE,
            )
        return record, failures

    # ------------------------------------------------------------------
    # Releases
    # ------------------------------------------------------------------

    def process_due_payouts(
        self,
        now: int,
        cadences: Optional[Iterable[PayoutSchedule]] = None,
    ) -> ReleaseReport:
        """Release every eligible pending balance. Callable by anyone.

        The cadences due at now (plus IMMEDIATE, for balances an
        immediate merchant could not settle earlier) decide eligibility.
        A recipient is settled when its governing merchant's cadence is
        eligible and its balance meets that merchant's threshold.

        At most max_due_per_run recipients are settled. When more remain,
        report.has_more is set and the due cadences stay armed, so a
        second call at the same height picks up the backlog. Otherwise
        the due cadences are re-armed one period past now.
        """
        with self._lock:
            wanted = None if cadences is None else [PayoutSchedule.parse(c) for c in cadences]
            due = self._clock.due_cadences(now)
            if wanted is not None:
                due = due & frozenset(wanted)
            eligible = set(due)
            if wanted is None or PayoutSchedule.IMMEDIATE in wanted:
                eligible.add(PayoutSchedule.IMMEDIATE)

            report = ReleaseReport(
                height=now,
                due_cadences=tuple(sorted(due, key=lambda c: c.value)),
            )
            attempts = 0
            for recipient_id in self._ledger.recipients():
                entry = self._ledger.get(recipient_id)
                config = self._registry.get_merchant(entry.merchant_id)
                if config is None:
                    report.skipped[recipient_id] = "merchant_not_found"
                    continue
                if config.payout_schedule not in eligible:
                    continue
                if entry.amount < config.minimum_threshold:
                    report.below_threshold.append(recipient_id)
                    continue
                if attempts >= self._params.max_due_per_run:
                    report.has_more = True
                    break
                attempts += 1
                self._release(recipient_id, entry.merchant_id, entry.affiliate_id,
                              now, PayoutTrigger.SCHEDULED, report)

            if not report.has_more:
                self._clock.advance(now, due)

            logger.info(
                "Scheduled release at height %d: due=%s settled=%d failed=%d",
                now, [c.value for c in report.due_cadences],
                len(report.records), len(report.failures),
            )
            return report

    def process_recipient_payout(self, caller: str, recipient_id: str, now: int) -> PayoutRecord:
        """Settle one recipient on demand, regardless of schedule.

        Raises:
            NotAuthorized: caller is neither the recipient nor an admin.
            NoPendingPayouts: nothing is owed.
            PayoutThresholdNotMet: balance is below the governing
                merchant's minimum threshold.
            TransferFailed: the transfer failed; the balance is restored.
        """
        with self._lock:
            if caller != recipient_id and not self._registry.is_admin(caller):
                raise NotAuthorized(f"{caller} may not settle payouts for {recipient_id}")
            entry = self._ledger.get(recipient_id)
            if entry is None or entry.amount <= 0:
                raise NoPendingPayouts(f"No pending payout for {recipient_id}")
            threshold = self._threshold_for(entry.merchant_id)
            if entry.amount < threshold:
                raise PayoutThresholdNotMet(
                    f"Pending {entry.amount} for {recipient_id} is below the "
                    f"minimum threshold of {threshold}"
                )
            disbursement = self._settle_one(recipient_id)
            return self._history.record(
                entry.merchant_id, entry.affiliate_id, [disbursement],
                disbursement.amount, now, PayoutTrigger.MANUAL,
            )

    def batch_process_payouts(
        self,
        caller: str,
        recipients: Sequence[str],
        now: int,
    ) -> ReleaseReport:
        """Settle an administrator-supplied list of recipients.

        Each listed recipient is settled if it has a pending balance
        meeting its merchant's threshold. Per-recipient outcomes are
        reported; one failed entry never stops the rest.

        Raises:
            NotAuthorized: caller is not an administrator.
            BatchTooLarge: more than max_batch_size distinct recipients.
            InvalidRecipient: a blank recipient id.
        """
        with self._lock:
            self._registry.require_admin(caller)
            unique: List[str] = []
            for recipient_id in recipients:
                if not recipient_id or not recipient_id.strip():
                    raise InvalidRecipient("Batch recipient id must be non-empty")
                if recipient_id not in unique:
                    unique.append(recipient_id)
            if len(unique) > self._params.max_batch_size:
                raise BatchTooLarge(
                    f"Batch lists {len(unique)} recipients; at most "
                    f"{self._params.max_batch_size} per call"
                )

            report = ReleaseReport(height=now)
            for recipient_id in unique:
                entry = self._ledger.get(recipient_id)
                if entry is None or entry.amount <= 0:
                    report.skipped[recipient_id] = "no_pending_payouts"
                    continue
                if entry.amount < self._threshold_for(entry.merchant_id):
                    report.below_threshold.append(recipient_id)
                    continue
                self._release(recipient_id, entry.merchant_id, entry.affiliate_id,
                              now, PayoutTrigger.BATCH, report)
            return report

    def _release(
        self,
        recipient_id: str,
        merchant_id: str,
        affiliate_id: str,
        now: int,
        trigger: PayoutTrigger,
        report: ReleaseReport,
    ) -> None:
        try:
            disbursement = self._settle_one(recipient_id)
        except TransferFailed as e:
            report.failures.append(TransferFailure(recipient_id, e.amount, e.message))
            return
        report.records.append(self._history.record(
            merchant_id, affiliate_id, [disbursement], disbursement.amount, now, trigger,
        ))

    def _settle_one(self, recipient_id: str) -> Disbursement:
        """Clear, transfer, and restore on failure. Caller holds the lock."""
        entry = self._ledger.settle(recipient_id)
        try:
            disbursement = self._executor.execute_transfer(recipient_id, entry.amount)
        except TransferFailed:
            self._ledger.restore(entry)
            logger.warning(
                "Transfer of %d to %s failed; pending balance restored",
                entry.amount, recipient_id,
            )
            raise
        logger.info("Settled %d to %s (%s)", disbursement.amount, recipient_id,
                    disbursement.transfer_id)
        return disbursement

    def _threshold_for(self, merchant_id: str) -> int:
        config = self._registry.get_merchant(merchant_id)
        return config.minimum_threshold if config is not None else 0

    # ------------------------------------------------------------------
    # Administrative operations
    # ------------------------------------------------------------------

    def set_administrator(self, caller: str, principal: str, active: bool) -> None:
        with self._lock:
            self._registry.set_administrator(caller, principal, active)
            logger.info("Administrator %s set to %s by %s", principal, active, caller)

    def set_merchant_config(
        self,
        caller: str,
        merchant_id: str,
        payout_schedule: PayoutSchedule | str,
        minimum_threshold: int,
        default_commission_rate: int,
        active: bool,
        now: int,
    ) -> MerchantConfig:
        with self._lock:
            config = self._registry.set_merchant_config(
                caller, merchant_id, payout_schedule, minimum_threshold,
                default_commission_rate, active, now,
            )
            logger.info(
                "Merchant %s configured: schedule=%s threshold=%d active=%s",
                merchant_id, config.payout_schedule.value,
                config.minimum_threshold, config.active,
            )
            return config

    def set_commission_split(
        self,
        caller: str,
        merchant_id: str,
        affiliate_id: str,
        shares: Sequence[SplitShare],
        active: bool = True,
    ) -> CommissionSplit:
        with self._lock:
            return self._registry.set_commission_split(
                caller, merchant_id, affiliate_id, shares, active,
            )

    def update_payout_threshold(
        self, caller: str, merchant_id: str, minimum_threshold: int, now: int,
    ) -> MerchantConfig:
        with self._lock:
            return self._registry.update_payout_threshold(
                caller, merchant_id, minimum_threshold, now,
            )

    def initialize_schedule(self, caller: str, now: int) -> None:
        """Arm all cadences from now. Re-running resets the schedules."""
        with self._lock:
            self._registry.require_admin(caller)
            self._clock.initialize(now)
            logger.info("Payout schedules initialized at height %d by %s", now, caller)

    def is_payout_due(self, schedule: PayoutSchedule | str, now: int) -> bool:
        with self._lock:
            return self._clock.is_due(PayoutSchedule.parse(schedule), now)
