"""Tests for the merchant registry — configs, splits and authorization."""

import pytest

from affiliate_payout.models.errors import (
    InvalidCommissionRate,
    InvalidCommissionSplit,
    InvalidPayoutSchedule,
    InvalidThreshold,
    MerchantNotFound,
    NotAuthorized,
)
from affiliate_payout.models.payout import PayoutSchedule, SplitShare
from affiliate_payout.payout.registry import MerchantRegistry


def _registry() -> MerchantRegistry:
    registry = MerchantRegistry("admin")
    registry.set_merchant_config("m1", "m1", "weekly", 500, 1500, True, now=0)
    return registry


class TestAdministrators:
    def test_bootstrap_identity_is_admin(self) -> None:
        assert MerchantRegistry("deployer").is_admin("deployer")

    def test_persisted_admins_take_precedence(self) -> None:
        registry = MerchantRegistry("deployer", administrators={"ops": True})
        assert registry.is_admin("ops")
        assert not registry.is_admin("deployer")

    def test_admin_can_add_admin(self) -> None:
        registry = MerchantRegistry("admin")
        registry.set_administrator("admin", "ops", True)
        assert registry.is_admin("ops")

    def test_non_admin_cannot_rekey(self) -> None:
        registry = MerchantRegistry("admin")
        with pytest.raises(NotAuthorized):
            registry.set_administrator("mallory", "mallory", True)

    def test_cannot_revoke_last_admin(self) -> None:
        registry = MerchantRegistry("admin")
        with pytest.raises(NotAuthorized, match="last administrator"):
            registry.set_administrator("admin", "admin", False)
        assert registry.is_admin("admin")

    def test_revoke_with_successor(self) -> None:
        registry = MerchantRegistry("admin")
        registry.set_administrator("admin", "ops", True)
        registry.set_administrator("ops", "admin", False)
        assert not registry.is_admin("admin")


class TestMerchantConfig:
    def test_merchant_configures_itself(self) -> None:
        config = _registry().get_merchant("m1")
        assert config.payout_schedule == PayoutSchedule.WEEKLY
        assert config.minimum_threshold == 500
        assert config.default_commission_rate == 1500

    def test_admin_configures_merchant(self) -> None:
        registry = _registry()
        registry.set_merchant_config("admin", "m2", PayoutSchedule.DAILY, 0, 0, True, now=1)
        assert registry.get_merchant("m2").payout_schedule == PayoutSchedule.DAILY

    def test_stranger_rejected(self) -> None:
        with pytest.raises(NotAuthorized):
            _registry().set_merchant_config("m2", "m1", "daily", 0, 0, True, now=1)

    def test_unknown_schedule_rejected(self) -> None:
        with pytest.raises(InvalidPayoutSchedule):
            _registry().set_merchant_config("m1", "m1", "hourly", 0, 0, True, now=1)

    def test_negative_threshold_rejected(self) -> None:
        registry = _registry()
        with pytest.raises(InvalidThreshold):
            registry.set_merchant_config("m1", "m1", "daily", -1, 0, True, now=1)
        assert registry.get_merchant("m1").payout_schedule == PayoutSchedule.WEEKLY

    def test_rate_out_of_range_rejected(self) -> None:
        with pytest.raises(InvalidCommissionRate):
            _registry().set_merchant_config("m1", "m1", "daily", 0, 10001, True, now=1)

    def test_update_threshold(self) -> None:
        registry = _registry()
        config = registry.update_payout_threshold("m1", "m1", 900, now=7)
        assert config.minimum_threshold == 900
        assert config.updated_height == 7

    def test_update_threshold_unknown_merchant(self) -> None:
        with pytest.raises(MerchantNotFound):
            _registry().update_payout_threshold("admin", "nope", 10, now=0)

    def test_returned_configs_are_copies(self) -> None:
        registry = _registry()
        registry.get_merchant("m1").minimum_threshold = -7
        registry.merchants()[0].active = False
        updated = registry.update_payout_threshold("m1", "m1", 900, now=1)
        updated.payout_schedule = PayoutSchedule.DAILY
        config = registry.get_merchant("m1")
        assert config.minimum_threshold == 900
        assert config.active
        assert config.payout_schedule == PayoutSchedule.WEEKLY

    def test_inactive_merchant_not_accepting(self) -> None:
        registry = _registry()
        registry.set_merchant_config("m1", "m1", "weekly", 0, 0, False, now=2)
        with pytest.raises(MerchantNotFound):
            registry.require_active_merchant("m1")


class TestSplits:
    def test_active_split_validated(self) -> None:
        registry = _registry()
        with pytest.raises(InvalidCommissionSplit):
            registry.set_commission_split("m1", "m1", "a1", [SplitShare("r1", 9999)])
        assert registry.get_split("m1", "a1") is None

    def test_active_split_stored(self) -> None:
        registry = _registry()
        shares = [SplitShare("r1", 6000), SplitShare("r2", 4000)]
        registry.set_commission_split("m1", "m1", "a1", shares)
        split = registry.active_split("m1", "a1")
        assert split.total_bp == 10000
        assert [s.recipient_id for s in split.shares] == ["r1", "r2"]

    def test_inactive_split_skips_sum_check(self) -> None:
        registry = _registry()
        registry.set_commission_split("m1", "m1", "a1", [SplitShare("r1", 5)], active=False)
        assert registry.get_split("m1", "a1") is not None
        assert registry.active_split("m1", "a1") is None

    def test_split_requires_merchant_config(self) -> None:
        with pytest.raises(MerchantNotFound):
            _registry().set_commission_split("admin", "m9", "a1", [SplitShare("r1", 10000)])

    def test_split_requires_authorization(self) -> None:
        with pytest.raises(NotAuthorized):
            _registry().set_commission_split("a1", "m1", "a1", [SplitShare("a1", 10000)])
