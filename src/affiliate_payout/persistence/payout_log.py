"""Append-only payout log — the durable audit trail of every settlement.

Each PayoutRecord is written as one JSON line together with a SHA-256
hash of its canonical form. Records are never modified or deleted. On
load, every line is re-hashed and duplicate record ids are rejected, so
a tampered or replayed log fails closed.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any, Optional

from affiliate_payout.models.payout import PayoutRecord


def record_hash(record: dict[str, Any]) -> str:
    """SHA-256 over the canonical JSON of a serialized record."""
    canonical = json.dumps(record, sort_keys=True, ensure_ascii=False).encode("utf-8")
    return f"sha256:{hashlib.sha256(canonical).hexdigest()}"


class PayoutLog:
    """Append-only payout log with optional JSONL file persistence."""

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._records: list[PayoutRecord] = []
        self._record_ids: set[str] = set()
        self._storage_path = storage_path

        if storage_path and storage_path.exists():
            self._load_from_file(storage_path)

    def append(self, record: PayoutRecord) -> None:
        """Append a record.

        The record is kept in memory before the file write, so an OSError
        from the file leaves the in-memory history complete.

        Raises ValueError on a duplicate record_id.
        """
        if record.record_id in self._record_ids:
            raise ValueError(f"Duplicate payout record ID: {record.record_id}")

        self._records.append(record)
        self._record_ids.add(record.record_id)

        if self._storage_path:
            self._append_to_file(record)

    def records(self) -> list[PayoutRecord]:
        return list(self._records)

    @property
    def count(self) -> int:
        return len(self._records)

    @property
    def last_record(self) -> Optional[PayoutRecord]:
        return self._records[-1] if self._records else None

    def _append_to_file(self, record: PayoutRecord) -> None:
        data = record.to_dict()
        line = {"record": data, "record_hash": record_hash(data)}
        with self._storage_path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(line, sort_keys=True, ensure_ascii=False) + "\n")

    def _load_from_file(self, path: Path) -> None:
        with path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                entry = json.loads(line)
                data = entry["record"]
                record_id = data["record_id"]

                if record_id in self._record_ids:
                    raise ValueError(
                        f"Duplicate payout record ID on recovery (line {line_num}): {record_id}"
                    )

                expected = record_hash(data)
                if entry["record_hash"] != expected:
                    raise ValueError(
                        f"Integrity check failed (line {line_num}): record {record_id} "
                        f"stored hash {entry['record_hash']} != computed {expected}"
                    )

                self._records.append(PayoutRecord.from_dict(data))
                self._record_ids.add(record_id)
