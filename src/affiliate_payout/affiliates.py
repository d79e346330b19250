"""Affiliate registry — the "is this a recognized affiliate?" collaborator.

Registration, tiering and status bookkeeping live outside the payout
engine. The engine only needs the identity check below; any registry
that implements AffiliateRegistry can be wired into the router.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class AffiliateRegistry(Protocol):
    def is_affiliate(self, affiliate_id: str) -> bool:
        ...


class InMemoryAffiliateRegistry:
    """Set-backed registry, enough for a single-process deployment."""

    def __init__(self, affiliates: Optional[Iterable[str]] = None) -> None:
        self._affiliates: set[str] = set(affiliates or ())

    def register_affiliate(self, affiliate_id: str) -> bool:
        """Register an affiliate. Returns False if already registered."""
        aid = affiliate_id.strip()
        if not aid:
            raise ValueError("Affiliate id must be non-empty")
        if aid in self._affiliates:
            return False
        self._affiliates.add(aid)
        return True

    def deregister_affiliate(self, affiliate_id: str) -> None:
        self._affiliates.discard(affiliate_id)

    def is_affiliate(self, affiliate_id: str) -> bool:
        return affiliate_id in self._affiliates

    def affiliates(self) -> List[str]:
        return sorted(self._affiliates)
