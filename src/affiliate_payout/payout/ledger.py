"""Pending ledger — undisbursed commission owed to each recipient.

Balances only grow through accrual and drop to zero only through
settlement. Settlement clears the entry in the same step that hands the
amount to the executor; if the transfer then fails, the router restores
the exact cleared entry (attempt-then-restore).

Storage is in-memory; the service snapshots it through the StateStore.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from affiliate_payout.models.errors import InvalidAmount, NoPendingPayouts
from affiliate_payout.models.payout import PendingBalance


class PendingLedger:
    """Per-recipient accumulator of undisbursed commission.

    Usage:
        ledger = PendingLedger()
        ledger.accrue("aff_1", 250, now=10, merchant_id="m1", affiliate_id="aff_1")
        entry = ledger.settle("aff_1")      # balance cleared
        ledger.restore(entry)               # only if the transfer failed
    """

    def __init__(self, balances: Optional[Iterable[PendingBalance]] = None) -> None:
        self._balances: Dict[str, PendingBalance] = {}
        for entry in balances or ():
            if entry.amount > 0:
                self._balances[entry.recipient_id] = entry

    def accrue(
        self,
        recipient_id: str,
        amount: int,
        now: int,
        merchant_id: str = "",
        affiliate_id: str = "",
    ) -> int:
        """Add amount to the recipient's pending balance.

        Creates the entry at zero if absent. Accruing 0 is legal: it
        only refreshes last_updated and the governing merchant.

        Returns:
            The recipient's new pending total.
        """
        if amount < 0:
            raise InvalidAmount(f"Accrual amount must be non-negative, got {amount}")
        entry = self._balances.get(recipient_id)
        if entry is None:
            entry = PendingBalance(recipient_id=recipient_id)
            self._balances[recipient_id] = entry
        entry.amount += amount
        entry.last_updated = now
        if merchant_id:
            entry.merchant_id = merchant_id
        if affiliate_id:
            entry.affiliate_id = affiliate_id
        return entry.amount

    def settle(self, recipient_id: str) -> PendingBalance:
        """Clear the recipient's balance and return what was owed.

        Raises NoPendingPayouts (without mutating anything) when the
        balance is zero or absent.
        """
        entry = self._balances.get(recipient_id)
        if entry is None or entry.amount <= 0:
            raise NoPendingPayouts(f"No pending payout for {recipient_id}")
        del self._balances[recipient_id]
        return entry

    def restore(self, entry: PendingBalance) -> int:
        """Re-credit a settled entry whose transfer did not go through."""
        current = self._balances.get(entry.recipient_id)
        if current is None:
            self._balances[entry.recipient_id] = replace(entry)
            return entry.amount
        # Accrued again between settle and restore: keep the newer metadata.
        current.amount += entry.amount
        return current.amount

    def balance(self, recipient_id: str) -> int:
        entry = self._balances.get(recipient_id)
        return entry.amount if entry is not None else 0

    def get(self, recipient_id: str) -> Optional[PendingBalance]:
        """Return a copy of the recipient's entry, or None."""
        entry = self._balances.get(recipient_id)
        return replace(entry) if entry is not None else None

    def recipients(self) -> List[str]:
        """Recipients with a non-zero balance, in first-accrual order."""
        return [rid for rid, e in self._balances.items() if e.amount > 0]

    def entries(self) -> List[PendingBalance]:
        return [replace(e) for e in self._balances.values()]

    def total_pending(self) -> int:
        return sum(e.amount for e in self._balances.values())
