"""State store — JSON snapshot of the mutable payout state.

Holds administrators, merchant configs, commission splits, pending
balances, the schedule counters and the payout-record counter. The
payout history itself lives in the append-only PayoutLog.

Writes go to a temporary file that then replaces the snapshot, so a
crash mid-write leaves the previous snapshot intact.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from affiliate_payout.models.payout import (
    CommissionSplit,
    MerchantConfig,
    PendingBalance,
    ScheduleState,
)

STATE_VERSION = 1


@dataclass
class PayoutState:
    """Everything the engine needs to resume after a restart."""
    administrators: dict[str, bool] = field(default_factory=dict)
    merchants: dict[str, MerchantConfig] = field(default_factory=dict)
    splits: dict[tuple[str, str], CommissionSplit] = field(default_factory=dict)
    pending: list[PendingBalance] = field(default_factory=list)
    schedule: ScheduleState = field(default_factory=ScheduleState)
    affiliates: list[str] = field(default_factory=list)
    record_counter: int = 0


class StateStore:
    """File-backed snapshot of PayoutState."""

    def __init__(self, storage_path: Path) -> None:
        self._storage_path = storage_path

    @property
    def storage_path(self) -> Path:
        return self._storage_path

    def exists(self) -> bool:
        return self._storage_path.exists()

    def save(self, state: PayoutState) -> None:
        """Write the snapshot atomically. Raises OSError on failure."""
        data: dict[str, Any] = {
            "version": STATE_VERSION,
            "administrators": dict(state.administrators),
            "merchants": [m.to_dict() for m in state.merchants.values()],
            "splits": [s.to_dict() for s in state.splits.values()],
            "pending": [p.to_dict() for p in state.pending],
            "schedule": state.schedule.to_dict(),
            "affiliates": sorted(state.affiliates),
            "record_counter": state.record_counter,
        }
        self._storage_path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._storage_path.with_suffix(self._storage_path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp, self._storage_path)

    def load(self) -> PayoutState:
        """Load the snapshot, or return an empty state if none exists."""
        if not self._storage_path.exists():
            return PayoutState()
        data = json.loads(self._storage_path.read_text(encoding="utf-8"))
        version = data.get("version")
        if version != STATE_VERSION:
            raise ValueError(f"Unsupported payout state version: {version}")

        merchants = [MerchantConfig.from_dict(m) for m in data.get("merchants", [])]
        splits = [CommissionSplit.from_dict(s) for s in data.get("splits", [])]
        return PayoutState(
            administrators={k: bool(v) for k, v in data.get("administrators", {}).items()},
            merchants={m.merchant_id: m for m in merchants},
            splits={(s.merchant_id, s.affiliate_id): s for s in splits},
            pending=[PendingBalance.from_dict(p) for p in data.get("pending", [])],
            schedule=ScheduleState.from_dict(data.get("schedule", {})),
            affiliates=list(data.get("affiliates", [])),
            record_counter=int(data.get("record_counter", 0)),
        )
