"""Tests for the split validator — proves the exact-sum gate holds."""

import pytest

from affiliate_payout.models.errors import InvalidCommissionSplit, InvalidRecipient
from affiliate_payout.models.payout import BASIS_POINTS, SplitShare
from affiliate_payout.payout.split import SplitValidator, allocate


def _shares(*bps: int) -> list[SplitShare]:
    return [SplitShare(f"r{i}", bp) for i, bp in enumerate(bps, 1)]


class TestShareSum:
    def test_exact_sum_accepted(self) -> None:
        SplitValidator().validate(_shares(6000, 4000))

    def test_single_recipient_full_share(self) -> None:
        SplitValidator().validate(_shares(BASIS_POINTS))

    def test_one_short_rejected(self) -> None:
        with pytest.raises(InvalidCommissionSplit, match="9999"):
            SplitValidator().validate(_shares(5999, 4000))

    def test_one_over_rejected(self) -> None:
        with pytest.raises(InvalidCommissionSplit, match="10001"):
            SplitValidator().validate(_shares(6001, 4000))

    def test_empty_split_rejected(self) -> None:
        with pytest.raises(InvalidCommissionSplit, match="sum to 0"):
            SplitValidator().validate([])

    def test_negative_share_rejected(self) -> None:
        with pytest.raises(InvalidCommissionSplit, match="negative"):
            SplitValidator().validate(_shares(12000, -2000))

    def test_zero_share_allowed(self) -> None:
        SplitValidator().validate(_shares(10000, 0))

    def test_ten_recipients_accepted(self) -> None:
        SplitValidator().validate(_shares(*([1000] * 10)))


class TestRecipients:
    def test_eleven_recipients_rejected(self) -> None:
        shares = _shares(*([1000] * 9), 500, 500)
        with pytest.raises(InvalidRecipient, match="at most 10"):
            SplitValidator().validate(shares)

    def test_custom_limit(self) -> None:
        with pytest.raises(InvalidRecipient):
            SplitValidator(max_recipients=2).validate(_shares(4000, 3000, 3000))

    def test_blank_recipient_rejected(self) -> None:
        with pytest.raises(InvalidRecipient, match="non-empty"):
            SplitValidator().validate([SplitShare("  ", 10000)])

    def test_duplicate_recipient_rejected(self) -> None:
        with pytest.raises(InvalidRecipient, match="twice"):
            SplitValidator().validate([SplitShare("r1", 5000), SplitShare("r1", 5000)])


class TestAllocate:
    def test_floor_per_recipient(self) -> None:
        assert allocate(500, _shares(6000, 4000)) == [("r1", 300), ("r2", 200)]

    def test_remainder_not_redistributed(self) -> None:
        credits = allocate(100, _shares(3333, 3333, 3334))
        assert credits == [("r1", 33), ("r2", 33), ("r3", 33)]
        assert sum(a for _, a in credits) == 99

    def test_every_recipient_credited(self) -> None:
        """All ten recipients get a share, not just the first."""
        credits = allocate(10_000, _shares(*([1000] * 10)))
        assert len(credits) == 10
        assert all(amount == 1000 for _, amount in credits)

    def test_tiny_amount_floors_to_zero(self) -> None:
        assert allocate(1, _shares(5000, 5000)) == [("r1", 0), ("r2", 0)]
