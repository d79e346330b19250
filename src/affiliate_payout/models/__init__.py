"""Core data models for the affiliate payout engine."""

from affiliate_payout.models.errors import (
    AffiliateNotFound,
    BatchTooLarge,
    InvalidAmount,
    InvalidCommissionRate,
    InvalidCommissionSplit,
    InvalidPayoutSchedule,
    InvalidRecipient,
    InvalidThreshold,
    MerchantNotFound,
    NoPendingPayouts,
    NotAuthorized,
    PayoutError,
    PayoutErrorKind,
    PayoutThresholdNotMet,
    TransferFailed,
)
from affiliate_payout.models.payout import (
    BASIS_POINTS,
    MAX_SPLIT_RECIPIENTS,
    CommissionReceipt,
    CommissionSplit,
    Disbursement,
    MerchantConfig,
    PayoutRecord,
    PayoutSchedule,
    PayoutTrigger,
    PendingBalance,
    ReleaseReport,
    ScheduleState,
    SplitShare,
    TransferFailure,
)

__all__ = [
    "AffiliateNotFound",
    "BatchTooLarge",
    "InvalidAmount",
    "InvalidCommissionRate",
    "InvalidCommissionSplit",
    "InvalidPayoutSchedule",
    "InvalidRecipient",
    "InvalidThreshold",
    "MerchantNotFound",
    "NoPendingPayouts",
    "NotAuthorized",
    "PayoutError",
    "PayoutErrorKind",
    "PayoutThresholdNotMet",
    "TransferFailed",
    "BASIS_POINTS",
    "MAX_SPLIT_RECIPIENTS",
    "CommissionReceipt",
    "CommissionSplit",
    "Disbursement",
    "MerchantConfig",
    "PayoutRecord",
    "PayoutSchedule",
    "PayoutTrigger",
    "PendingBalance",
    "ReleaseReport",
    "ScheduleState",
    "SplitShare",
    "TransferFailure",
]
