"""Split validator — the sole gate for activating a commission split.

A split fans one commission out across up to MAX_SPLIT_RECIPIENTS
recipients by basis-point share. An active split must account for the
whole commission: shares sum to exactly BASIS_POINTS, no more, no less.

Once stored as active, a split is trusted without re-validation.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple

from affiliate_payout.models.errors import InvalidCommissionSplit, InvalidRecipient
from affiliate_payout.models.payout import BASIS_POINTS, MAX_SPLIT_RECIPIENTS, SplitShare


class SplitValidator:
    """Validates commission-split configurations.

    Usage:
        validator = SplitValidator()
        validator.validate([SplitShare("r1", 6000), SplitShare("r2", 4000)])
    """

    def __init__(self, max_recipients: int = MAX_SPLIT_RECIPIENTS) -> None:
        self._max_recipients = max_recipients

    def validate(self, shares: Sequence[SplitShare]) -> None:
        """Raise unless the shares form a complete, well-formed split.

        Raises:
            InvalidRecipient: too many recipients, a blank recipient id,
                or the same recipient listed twice.
            InvalidCommissionSplit: a negative share, or a share sum
                other than BASIS_POINTS (including the empty split).
        """
        if len(shares) > self._max_recipients:
            raise InvalidRecipient(
                f"Split lists {len(shares)} recipients; "
                f"at most {self._max_recipients} allowed"
            )
        self.check_recipients(shares)

        for share in shares:
            if share.share_bp < 0:
                raise InvalidCommissionSplit(
                    f"Share for {share.recipient_id} is negative: {share.share_bp}"
                )

        total = sum(s.share_bp for s in shares)
        if total != BASIS_POINTS:
            raise InvalidCommissionSplit(
                f"Split shares sum to {total} bp; must equal exactly {BASIS_POINTS}"
            )

    @staticmethod
    def check_recipients(shares: Iterable[SplitShare]) -> None:
        seen: set[str] = set()
        for share in shares:
            rid = share.recipient_id.strip() if share.recipient_id else ""
            if not rid:
                raise InvalidRecipient("Split recipient id must be non-empty")
            if rid in seen:
                raise InvalidRecipient(f"Recipient listed twice in split: {rid}")
            seen.add(rid)


def allocate(amount: int, shares: Sequence[SplitShare]) -> List[Tuple[str, int]]:
    """Compute each recipient's floor share of amount.

    Every listed recipient is credited floor(amount * share / BASIS_POINTS).
    The rounding remainder is not redistributed.
    """
    return [
        (s.recipient_id, amount * s.share_bp // BASIS_POINTS)
        for s in shares
    ]
