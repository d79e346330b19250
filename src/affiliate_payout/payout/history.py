"""History recorder — immutable audit records for every settlement.

Record ids come from a monotonic counter, never from the transfer
content, so two identical settlements in the same height still get
distinct ids.

Recording never undoes a transfer. If the durable append fails, the
record is still held in memory, the recorder flags audit_degraded, and a
warning is logged for the operator.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from affiliate_payout.models.payout import Disbursement, PayoutRecord, PayoutTrigger
from affiliate_payout.persistence.payout_log import PayoutLog

logger = logging.getLogger(__name__)

RECORD_ID_PREFIX = "PAY-"


class HistoryRecorder:
    """Appends PayoutRecords and answers history queries.

    Usage:
        recorder = HistoryRecorder(PayoutLog(path))
        record = recorder.record("m1", "aff_1", disbursements, 1000, now=42)
    """

    def __init__(self, log: Optional[PayoutLog] = None, counter: int = 0) -> None:
        self._log = log if log is not None else PayoutLog()
        stored = [record_sequence(r.record_id) for r in self._log.records()]
        self._counter = max([counter, *stored])
        self._audit_degraded = False

    @property
    def counter(self) -> int:
        return self._counter

    @property
    def audit_degraded(self) -> bool:
        return self._audit_degraded

    def record(
        self,
        merchant_id: str,
        affiliate_id: str,
        disbursements: Iterable[Disbursement],
        total_amount: int,
        now: int,
        trigger: PayoutTrigger = PayoutTrigger.SCHEDULED,
    ) -> PayoutRecord:
        """Append a PayoutRecord and return it."""
        record = PayoutRecord(
            record_id=self._next_record_id(),
            merchant_id=merchant_id,
            affiliate_id=affiliate_id,
            disbursements=tuple(disbursements),
            total_amount=total_amount,
            height=now,
            trigger=trigger,
        )
        try:
            self._log.append(record)
        except OSError as e:
            self._audit_degraded = True
            logger.warning(
                "Payout audit degraded: record %s (total %d) kept in memory only: %s",
                record.record_id, total_amount, e,
            )
        return record

    def records_after(self, sequence: int) -> List[PayoutRecord]:
        """Logged records whose id sequence is past sequence."""
        return [r for r in self._log.records() if record_sequence(r.record_id) > sequence]

    def get(self, record_id: str) -> Optional[PayoutRecord]:
        for record in self._log.records():
            if record.record_id == record_id:
                return record
        return None

    def all_records(self) -> List[PayoutRecord]:
        return self._log.records()

    def by_merchant(self, merchant_id: str) -> List[PayoutRecord]:
        return [r for r in self._log.records() if r.merchant_id == merchant_id]

    def by_affiliate(self, affiliate_id: str) -> List[PayoutRecord]:
        return [r for r in self._log.records() if r.affiliate_id == affiliate_id]

    def by_recipient(self, recipient_id: str) -> List[PayoutRecord]:
        return [r for r in self._log.records() if recipient_id in r.recipients]

    def _next_record_id(self) -> str:
        self._counter += 1
        return f"{RECORD_ID_PREFIX}{self._counter:08d}"


def record_sequence(record_id: str) -> int:
    """Numeric part of a record id, or 0 for ids not issued here."""
    number = record_id[len(RECORD_ID_PREFIX):]
    if not record_id.startswith(RECORD_ID_PREFIX) or not number.isdigit():
        return 0
    return int(number)
