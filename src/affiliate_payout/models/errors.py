"""Payout error taxonomy.

Every failure the engine reports carries a PayoutErrorKind. Exceptions
derive from ValueError so callers that already treat ValueError as a
rejected operation (the service layer) keep working unchanged.
"""

from __future__ import annotations

import enum


class PayoutErrorKind(str, enum.Enum):
    NOT_AUTHORIZED = "not_authorized"
    INVALID_COMMISSION_SPLIT = "invalid_commission_split"
    INVALID_PAYOUT_SCHEDULE = "invalid_payout_schedule"
    PAYOUT_THRESHOLD_NOT_MET = "payout_threshold_not_met"
    NO_PENDING_PAYOUTS = "no_pending_payouts"
    INVALID_RECIPIENT = "invalid_recipient"
    TRANSFER_FAILED = "transfer_failed"
    AFFILIATE_NOT_FOUND = "affiliate_not_found"
    MERCHANT_NOT_FOUND = "merchant_not_found"
    INVALID_THRESHOLD = "invalid_threshold"
    INVALID_AMOUNT = "invalid_amount"
    INVALID_COMMISSION_RATE = "invalid_commission_rate"
    BATCH_TOO_LARGE = "batch_too_large"


class PayoutError(ValueError):
    """Base class for all payout engine failures."""

    kind: PayoutErrorKind

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotAuthorized(PayoutError):
    kind = PayoutErrorKind.NOT_AUTHORIZED


class InvalidCommissionSplit(PayoutError):
    kind = PayoutErrorKind.INVALID_COMMISSION_SPLIT


class InvalidPayoutSchedule(PayoutError):
    kind = PayoutErrorKind.INVALID_PAYOUT_SCHEDULE


class PayoutThresholdNotMet(PayoutError):
    kind = PayoutErrorKind.PAYOUT_THRESHOLD_NOT_MET


class NoPendingPayouts(PayoutError):
    kind = PayoutErrorKind.NO_PENDING_PAYOUTS


class InvalidRecipient(PayoutError):
    kind = PayoutErrorKind.INVALID_RECIPIENT


class TransferFailed(PayoutError):
    """The rail did not confirm the transfer (refusal, error or timeout)."""

    kind = PayoutErrorKind.TRANSFER_FAILED

    def __init__(self, message: str, recipient_id: str = "", amount: int = 0) -> None:
        super().__init__(message)
        self.recipient_id = recipient_id
        self.amount = amount


class AffiliateNotFound(PayoutError):
    kind = PayoutErrorKind.AFFILIATE_NOT_FOUND


class MerchantNotFound(PayoutError):
    kind = PayoutErrorKind.MERCHANT_NOT_FOUND


class InvalidThreshold(PayoutError):
    kind = PayoutErrorKind.INVALID_THRESHOLD


class InvalidAmount(PayoutError):
    kind = PayoutErrorKind.INVALID_AMOUNT


class InvalidCommissionRate(PayoutError):
    kind = PayoutErrorKind.INVALID_COMMISSION_RATE


class BatchTooLarge(PayoutError):
    kind = PayoutErrorKind.BATCH_TOO_LARGE
