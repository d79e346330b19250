"""Payout subsystem — split validation, accrual, scheduling, settlement, history."""

from affiliate_payout.payout.executor import InMemoryRail, PayoutExecutor, TransferRail
from affiliate_payout.payout.history import HistoryRecorder
from affiliate_payout.payout.ledger import PendingLedger
from affiliate_payout.payout.registry import MerchantRegistry
from affiliate_payout.payout.router import CommissionRouter
from affiliate_payout.payout.schedule import ScheduleClock
from affiliate_payout.payout.split import SplitValidator, allocate

__all__ = [
    "CommissionRouter",
    "HistoryRecorder",
    "InMemoryRail",
    "MerchantRegistry",
    "PayoutExecutor",
    "PendingLedger",
    "ScheduleClock",
    "SplitValidator",
    "TransferRail",
    "allocate",
]
