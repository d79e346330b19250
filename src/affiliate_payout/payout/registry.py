"""Merchant registry — payout configs, commission splits, administrators.

Owns the configuration side of the engine and the authorization rules:
- Merchant configs and splits are written by the merchant or an admin.
- The administrator set is re-keyed by administrators only, and can
  never be emptied.
- The bootstrap identity is an administrator from creation.

Validation happens before any write, so a rejected call leaves the
registry untouched. Configs handed out are copies; the only way to
change a stored config is through the operations below.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from affiliate_payout.models.errors import (
    InvalidCommissionRate,
    InvalidThreshold,
    MerchantNotFound,
    NotAuthorized,
)
from affiliate_payout.models.payout import (
    BASIS_POINTS,
    CommissionSplit,
    MerchantConfig,
    PayoutSchedule,
    SplitShare,
)
from affiliate_payout.payout.split import SplitValidator


class MerchantRegistry:
    """In-memory store of merchant configuration and administrators."""

    def __init__(
        self,
        bootstrap_admin: str,
        validator: Optional[SplitValidator] = None,
        administrators: Optional[Dict[str, bool]] = None,
        merchants: Optional[Iterable[MerchantConfig]] = None,
        splits: Optional[Iterable[CommissionSplit]] = None,
    ) -> None:
        self._validator = validator or SplitValidator()
        self._admins: Dict[str, bool] = dict(administrators or {})
        if not any(self._admins.values()):
            self._admins[bootstrap_admin] = True
        self._merchants: Dict[str, MerchantConfig] = {
            m.merchant_id: m for m in merchants or ()
        }
        self._splits: Dict[Tuple[str, str], CommissionSplit] = {
            (s.merchant_id, s.affiliate_id): s for s in splits or ()
        }

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    def is_admin(self, principal: str) -> bool:
        return self._admins.get(principal, False)

    def require_admin(self, caller: str) -> None:
        if not self.is_admin(caller):
            raise NotAuthorized(f"{caller} is not an administrator")

    def require_merchant_or_admin(self, caller: str, merchant_id: str) -> None:
        if caller != merchant_id and not self.is_admin(caller):
            raise NotAuthorized(
                f"{caller} may not act for merchant {merchant_id}"
            )

    def administrators(self) -> Dict[str, bool]:
        return dict(self._admins)

    def set_administrator(self, caller: str, principal: str, active: bool) -> None:
        self.require_admin(caller)
        if not active:
            remaining = [a for a, on in self._admins.items() if on and a != principal]
            if not remaining:
                raise NotAuthorized("Cannot revoke the last administrator")
        self._admins[principal] = active

    # ------------------------------------------------------------------
    # Merchant configuration
    # ------------------------------------------------------------------

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
        self.require_merchant_or_admin(caller, merchant_id)
        schedule = PayoutSchedule.parse(payout_schedule)
        _check_threshold(minimum_threshold)
        if not 0 <= default_commission_rate <= BASIS_POINTS:
            raise InvalidCommissionRate(
                f"Commission rate must be within 0-{BASIS_POINTS} bp, "
                f"got {default_commission_rate}"
            )
        config = MerchantConfig(
            merchant_id=merchant_id,
            payout_schedule=schedule,
            minimum_threshold=minimum_threshold,
            default_commission_rate=default_commission_rate,
            active=active,
            updated_height=now,
        )
        self._merchants[merchant_id] = config
        return replace(config)

    def update_payout_threshold(
        self, caller: str, merchant_id: str, minimum_threshold: int, now: int,
    ) -> MerchantConfig:
        self.require_merchant_or_admin(caller, merchant_id)
        _check_threshold(minimum_threshold)
        config = self._require_config(merchant_id)
        config.minimum_threshold = minimum_threshold
        config.updated_height = now
        return replace(config)

    def get_merchant(self, merchant_id: str) -> Optional[MerchantConfig]:
        """Return a copy of the merchant's config, or None."""
        config = self._merchants.get(merchant_id)
        return replace(config) if config is not None else None

    def require_active_merchant(self, merchant_id: str) -> MerchantConfig:
        config = self._merchants.get(merchant_id)
        if config is None or not config.active:
            raise MerchantNotFound(f"No active merchant config for {merchant_id}")
        return replace(config)

    def merchants(self) -> List[MerchantConfig]:
        return [replace(m) for m in self._merchants.values()]

    # ------------------------------------------------------------------
    # Commission splits
    # ------------------------------------------------------------------

    def set_commission_split(
        self,
        caller: str,
        merchant_id: str,
        affiliate_id: str,
        shares: Sequence[SplitShare],
        active: bool = True,
    ) -> CommissionSplit:
        """Store a split; active splits must pass the SplitValidator."""
        self.require_merchant_or_admin(caller, merchant_id)
        self._require_config(merchant_id)
        if active:
            self._validator.validate(shares)
        else:
            SplitValidator.check_recipients(shares)
        split = CommissionSplit(
            merchant_id=merchant_id,
            affiliate_id=affiliate_id,
            shares=tuple(SplitShare(s.recipient_id.strip(), s.share_bp) for s in shares),
            active=active,
        )
        self._splits[(merchant_id, affiliate_id)] = split
        return split

    def get_split(self, merchant_id: str, affiliate_id: str) -> Optional[CommissionSplit]:
        return self._splits.get((merchant_id, affiliate_id))

    def active_split(self, merchant_id: str, affiliate_id: str) -> Optional[CommissionSplit]:
        split = self._splits.get((merchant_id, affiliate_id))
        if split is None or not split.active:
            return None
        return split

    def splits(self) -> List[CommissionSplit]:
        return list(self._splits.values())

    def _require_config(self, merchant_id: str) -> MerchantConfig:
        config = self._merchants.get(merchant_id)
        if config is None:
            raise MerchantNotFound(f"Unknown merchant: {merchant_id}")
        return config


def _check_threshold(minimum_threshold: int) -> None:
    if minimum_threshold < 0:
        raise InvalidThreshold(
            f"Minimum payout threshold must be non-negative, got {minimum_threshold}"
        )
