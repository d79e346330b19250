"""Payout models — merchant configuration, splits, pending balances, history.

All monetary values are integers in the smallest unit of value. Shares and
commission rates are integer basis points. No floats in finance.

Invariants enforced by these models and their owners:
- An active CommissionSplit sums to exactly BASIS_POINTS (checked at write)
- A PendingBalance never goes negative
- A PayoutRecord is frozen once written
- Schedule counters only move forward, except on administrative reset
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from affiliate_payout.models.errors import InvalidPayoutSchedule

BASIS_POINTS = 10_000
MAX_SPLIT_RECIPIENTS = 10


class PayoutSchedule(str, enum.Enum):
    """Payout cadence of a merchant.

    IMMEDIATE settles on every accrual. The other cadences release
    when the ScheduleClock reports them due.
    """
    IMMEDIATE = "immediate"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @classmethod
    def parse(cls, value: Any) -> PayoutSchedule:
        """Parse a schedule name, failing with InvalidPayoutSchedule."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(s.value for s in cls)
            raise InvalidPayoutSchedule(
                f"Unknown payout schedule: {value!r}. Allowed: {allowed}"
            ) from None


SCHEDULED_CADENCES: Tuple[PayoutSchedule, ...] = (
    PayoutSchedule.DAILY,
    PayoutSchedule.WEEKLY,
    PayoutSchedule.MONTHLY,
)


class PayoutTrigger(str, enum.Enum):
    """What caused a settlement."""
    IMMEDIATE = "immediate"
    SCHEDULED = "scheduled"
    MANUAL = "manual"
    BATCH = "batch"


@dataclass
class MerchantConfig:
    """Payout configuration owned by a merchant.

    Mutable: updated by the merchant or an administrator. Never deleted;
    active=False suppresses commission acceptance.
    """
    merchant_id: str
    payout_schedule: PayoutSchedule
    minimum_threshold: int = 0
    default_commission_rate: int = 0
    active: bool = True
    updated_height: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "merchant_id": self.merchant_id,
            "payout_schedule": self.payout_schedule.value,
            "minimum_threshold": self.minimum_threshold,
            "default_commission_rate": self.default_commission_rate,
            "active": self.active,
            "updated_height": self.updated_height,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> MerchantConfig:
        return MerchantConfig(
            merchant_id=data["merchant_id"],
            payout_schedule=PayoutSchedule.parse(data["payout_schedule"]),
            minimum_threshold=int(data.get("minimum_threshold", 0)),
            default_commission_rate=int(data.get("default_commission_rate", 0)),
            active=bool(data.get("active", True)),
            updated_height=int(data.get("updated_height", 0)),
        )


@dataclass(frozen=True)
class SplitShare:
    """One recipient's weight in a commission split, in basis points."""
    recipient_id: str
    share_bp: int


@dataclass(frozen=True)
class CommissionSplit:
    """Fan-out of one (merchant, affiliate) commission across recipients.

    Invariant: when active, sum(share_bp) == BASIS_POINTS. Enforced by
    SplitValidator before storage and trusted afterwards.
    """
    merchant_id: str
    affiliate_id: str
    shares: Tuple[SplitShare, ...]
    active: bool = True

    @property
    def total_bp(self) -> int:
        return sum(s.share_bp for s in self.shares)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "merchant_id": self.merchant_id,
            "affiliate_id": self.affiliate_id,
            "shares": [[s.recipient_id, s.share_bp] for s in self.shares],
            "active": self.active,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> CommissionSplit:
        return CommissionSplit(
            merchant_id=data["merchant_id"],
            affiliate_id=data["affiliate_id"],
            shares=tuple(SplitShare(r, int(bp)) for r, bp in data["shares"]),
            active=bool(data.get("active", True)),
        )


@dataclass
class PendingBalance:
    """Undisbursed commission owed to one recipient.

    merchant_id/affiliate_id name the most recent accrual; that merchant
    governs the recipient's schedule and threshold.
    """
    recipient_id: str
    amount: int = 0
    last_updated: int = 0
    merchant_id: str = ""
    affiliate_id: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recipient_id": self.recipient_id,
            "amount": self.amount,
            "last_updated": self.last_updated,
            "merchant_id": self.merchant_id,
            "affiliate_id": self.affiliate_id,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> PendingBalance:
        return PendingBalance(
            recipient_id=data["recipient_id"],
            amount=int(data["amount"]),
            last_updated=int(data.get("last_updated", 0)),
            merchant_id=data.get("merchant_id", ""),
            affiliate_id=data.get("affiliate_id", ""),
        )


@dataclass(frozen=True)
class Disbursement:
    """Value actually moved to one recipient by a single transfer."""
    recipient_id: str
    amount: int
    transfer_id: str


@dataclass(frozen=True)
class PayoutRecord:
    """An immutable settlement entry in the payout history.

    Append-only: never updated or deleted once written.
    """
    record_id: str
    merchant_id: str
    affiliate_id: str
    disbursements: Tuple[Disbursement, ...]
    total_amount: int
    height: int
    trigger: PayoutTrigger

    @property
    def recipients(self) -> Tuple[str, ...]:
        return tuple(d.recipient_id for d in self.disbursements)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "record_id": self.record_id,
            "merchant_id": self.merchant_id,
            "affiliate_id": self.affiliate_id,
            "disbursements": [
                {
                    "recipient_id": d.recipient_id,
                    "amount": d.amount,
                    "transfer_id": d.transfer_id,
                }
                for d in self.disbursements
            ],
            "total_amount": self.total_amount,
            "height": self.height,
            "trigger": self.trigger.value,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> PayoutRecord:
        return PayoutRecord(
            record_id=data["record_id"],
            merchant_id=data["merchant_id"],
            affiliate_id=data["affiliate_id"],
            disbursements=tuple(
                Disbursement(d["recipient_id"], int(d["amount"]), d["transfer_id"])
                for d in data["disbursements"]
            ),
            total_amount=int(data["total_amount"]),
            height=int(data["height"]),
            trigger=PayoutTrigger(data["trigger"]),
        )


@dataclass
class ScheduleState:
    """Next eligible execution height for each scheduled cadence.

    Passed explicitly to the ScheduleClock so several independent
    schedules can coexist (one per service instance, one per test).
    Counters at 0 mean "due at any height" until initialize() runs.
    """
    next_daily: int = 0
    next_weekly: int = 0
    next_monthly: int = 0
    initialized: bool = False

    def next_for(self, cadence: PayoutSchedule) -> int:
        return getattr(self, f"next_{cadence.value}")

    def set_next(self, cadence: PayoutSchedule, height: int) -> None:
        setattr(self, f"next_{cadence.value}", height)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "next_daily": self.next_daily,
            "next_weekly": self.next_weekly,
            "next_monthly": self.next_monthly,
            "initialized": self.initialized,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> ScheduleState:
        return ScheduleState(
            next_daily=int(data.get("next_daily", 0)),
            next_weekly=int(data.get("next_weekly", 0)),
            next_monthly=int(data.get("next_monthly", 0)),
            initialized=bool(data.get("initialized", False)),
        )


@dataclass(frozen=True)
class TransferFailure:
    """A settlement whose transfer failed and whose balance was restored."""
    recipient_id: str
    amount: int
    reason: str


@dataclass(frozen=True)
class CommissionReceipt:
    """Outcome of record_commission."""
    merchant_id: str
    affiliate_id: str
    amount: int
    credits: Tuple[Tuple[str, int], ...]
    record: Optional[PayoutRecord] = None
    failures: Tuple[TransferFailure, ...] = ()

    @property
    def credited_total(self) -> int:
        return sum(amount for _, amount in self.credits)


@dataclass
class ReleaseReport:
    """Outcome of a scheduled, manual, or batch release."""
    height: int
    due_cadences: Tuple[PayoutSchedule, ...] = ()
    records: list[PayoutRecord] = field(default_factory=list)
    failures: list[TransferFailure] = field(default_factory=list)
    below_threshold: list[str] = field(default_factory=list)
    skipped: Dict[str, str] = field(default_factory=dict)
    has_more: bool = False

    @property
    def settled_total(self) -> int:
        return sum(r.total_amount for r in self.records)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "height": self.height,
            "due_cadences": [c.value for c in self.due_cadences],
            "records": [r.to_dict() for r in self.records],
            "failures": [
                {"recipient_id": f.recipient_id, "amount": f.amount, "reason": f.reason}
                for f in self.failures
            ],
            "below_threshold": list(self.below_threshold),
            "skipped": dict(self.skipped),
            "has_more": self.has_more,
            "settled_total": self.settled_total,
        }
