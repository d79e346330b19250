"""Payout executor — the only component that moves value.

Settlement is a pluggable backend behind the TransferRail protocol.
Adding a rail means implementing the protocol; the ledger, router and
history never talk to a rail directly.

Every transfer carries a fresh transfer_id. The rail call runs under a
bounded timeout; a timeout, an exception raised by the rail, or a rail
refusal all surface as TransferFailed. On timeout or error the executor
asks the rail to void the transfer_id so a late completion cannot pay twice.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable
from uuid import uuid4

from affiliate_payout.models.errors import InvalidAmount, TransferFailed
from affiliate_payout.models.payout import Disbursement

logger = logging.getLogger(__name__)


@runtime_checkable
class TransferRail(Protocol):
    """Contract every disbursement backend must satisfy.

    transfer() returns True once the value has moved, False if the rail
    refused (e.g. insufficient source funds). It may also raise; the
    executor treats that as a failed transfer.
    """

    @property
    def rail_id(self) -> str:
        ...

    def transfer(self, recipient_id: str, amount: int, transfer_id: str) -> bool:
        ...

    def void(self, transfer_id: str) -> None:
        """Make sure transfer_id never takes effect (or is reversed)."""
        ...

    def health_check(self) -> bool:
        ...


class InMemoryRail:
    """Reference rail holding a disbursement source and recipient wallets.

    source_balance=None means an unlimited source. Transfers are
    idempotent per transfer_id.
    """

    def __init__(self, source_balance: Optional[int] = None, rail_id: str = "in_memory") -> None:
        self._rail_id = rail_id
        self._source = source_balance
        self._received: Dict[str, int] = {}
        self._applied: Dict[str, Disbursement] = {}
        self._voided: set[str] = set()
        self._lock = threading.Lock()

    @property
    def rail_id(self) -> str:
        return self._rail_id

    @property
    def source_balance(self) -> Optional[int]:
        return self._source

    def fund(self, amount: int) -> None:
        with self._lock:
            if self._source is not None:
                self._source += amount

    def transfer(self, recipient_id: str, amount: int, transfer_id: str) -> bool:
        with self._lock:
            if transfer_id in self._voided:
                return False
            if transfer_id in self._applied:
                return True
            if self._source is not None:
                if self._source < amount:
                    return False
                self._source -= amount
            self._received[recipient_id] = self._received.get(recipient_id, 0) + amount
            self._applied[transfer_id] = Disbursement(recipient_id, amount, transfer_id)
            return True

    def void(self, transfer_id: str) -> None:
        with self._lock:
            self._voided.add(transfer_id)
            applied = self._applied.pop(transfer_id, None)
            if applied is None:
                return
            self._received[applied.recipient_id] -= applied.amount
            if self._source is not None:
                self._source += applied.amount

    def received(self, recipient_id: str) -> int:
        return self._received.get(recipient_id, 0)

    def transfers(self) -> List[Disbursement]:
        return list(self._applied.values())

    def health_check(self) -> bool:
        return True


class PayoutExecutor:
    """Executes single-recipient transfers with a bounded timeout.

    Usage:
        executor = PayoutExecutor(InMemoryRail(), timeout_seconds=5.0)
        disbursement = executor.execute_transfer("aff_1", 1000)
    """

    def __init__(self, rail: TransferRail, timeout_seconds: float = 5.0) -> None:
        if not isinstance(rail, TransferRail):
            raise TypeError(f"Rail must implement TransferRail Protocol, got {type(rail)}")
        self._rail = rail
        self._timeout = timeout_seconds

    @property
    def rail(self) -> TransferRail:
        return self._rail

    def execute_transfer(self, recipient_id: str, amount: int) -> Disbursement:
        """Move amount to recipient_id.

        Each rail call runs on its own daemon thread. A call that hangs
        past the timeout is abandoned with its thread, so one stuck
        transfer never delays the next.

        Returns:
            The Disbursement, reported exactly once per successful call.

        Raises:
            InvalidAmount: amount is not positive.
            TransferFailed: the rail refused, raised, or timed out.
        """
        if amount <= 0:
            raise InvalidAmount(f"Transfer amount must be positive, got {amount}")
        transfer_id = f"tx_{uuid4().hex[:16]}"

        outcome: Dict[str, Any] = {}

        def call_rail() -> None:
            try:
                outcome["confirmed"] = self._rail.transfer(recipient_id, amount, transfer_id)
            except Exception as e:
                # Re-raised as TransferFailed on the calling thread.
                outcome["error"] = e

        worker = threading.Thread(
            target=call_rail, name=f"payout-transfer-{transfer_id}", daemon=True,
        )
        worker.start()
        worker.join(self._timeout)

        if worker.is_alive():
            self._void(transfer_id)
            raise TransferFailed(
                f"Transfer {transfer_id} to {recipient_id} timed out after "
                f"{self._timeout}s on rail {self._rail.rail_id}",
                recipient_id=recipient_id,
                amount=amount,
            )
        error = outcome.get("error")
        if error is not None:
            self._void(transfer_id)
            raise TransferFailed(
                f"Transfer {transfer_id} to {recipient_id} failed on rail "
                f"{self._rail.rail_id}: {error}",
                recipient_id=recipient_id,
                amount=amount,
            ) from error

        if not outcome.get("confirmed"):
            raise TransferFailed(
                f"Rail {self._rail.rail_id} refused transfer of {amount} to {recipient_id}",
                recipient_id=recipient_id,
                amount=amount,
            )
        return Disbursement(recipient_id=recipient_id, amount=amount, transfer_id=transfer_id)

    def _void(self, transfer_id: str) -> None:
        try:
            self._rail.void(transfer_id)
        except Exception:
            # The transfer is already reported failed; a void that cannot
            # be confirmed needs an operator to reconcile the rail.
            logger.exception("Could not void transfer %s on rail %s",
                             transfer_id, self._rail.rail_id)
