"""Tests for payout history — unique record ids, append-only log, degraded audit."""

import json
from pathlib import Path

import pytest

from affiliate_payout.models.payout import Disbursement, PayoutRecord, PayoutTrigger
from affiliate_payout.payout.history import HistoryRecorder
from affiliate_payout.persistence.payout_log import PayoutLog


def _disb(recipient: str = "a1", amount: int = 100, tx: str = "tx_1") -> Disbursement:
    return Disbursement(recipient_id=recipient, amount=amount, transfer_id=tx)


class TestRecordIds:
    def test_identical_settlements_get_distinct_ids(self) -> None:
        recorder = HistoryRecorder()
        first = recorder.record("m1", "a1", [_disb()], 100, now=5)
        second = recorder.record("m1", "a1", [_disb()], 100, now=5)
        assert first.record_id != second.record_id
        assert first.record_id == "PAY-00000001"
        assert second.record_id == "PAY-00000002"

    def test_counter_resumes(self) -> None:
        recorder = HistoryRecorder(counter=41)
        assert recorder.record("m1", "a1", [_disb()], 100, now=0).record_id == "PAY-00000042"

    def test_counter_continues_past_highest_stored_id(self) -> None:
        log = PayoutLog()
        log.append(PayoutRecord("PAY-00000005", "m1", "a1", (_disb(),), 100, 0, PayoutTrigger.MANUAL))
        recorder = HistoryRecorder(log, counter=2)
        assert recorder.counter == 5
        assert recorder.record("m1", "a1", [_disb()], 100, now=1).record_id == "PAY-00000006"

    def test_records_after_sequence(self) -> None:
        recorder = HistoryRecorder()
        recorder.record("m1", "a1", [_disb()], 100, now=0)
        second = recorder.record("m1", "a1", [_disb()], 100, now=1)
        assert recorder.records_after(1) == [second]
        assert recorder.records_after(2) == []


class TestQueries:
    def test_lookup_by_keys(self) -> None:
        recorder = HistoryRecorder()
        r1 = recorder.record("m1", "a1", [_disb("r1"), _disb("r2")], 200, now=1,
                             trigger=PayoutTrigger.IMMEDIATE)
        r2 = recorder.record("m2", "a2", [_disb("r2")], 100, now=2)
        assert recorder.get(r1.record_id) == r1
        assert recorder.get("PAY-99999999") is None
        assert recorder.by_merchant("m2") == [r2]
        assert recorder.by_affiliate("a1") == [r1]
        assert recorder.by_recipient("r2") == [r1, r2]
        assert recorder.all_records() == [r1, r2]

    def test_record_is_frozen(self) -> None:
        record = HistoryRecorder().record("m1", "a1", [_disb()], 100, now=0)
        with pytest.raises(AttributeError):
            record.total_amount = 0  # type: ignore[misc]


class TestPayoutLog:
    def test_round_trip_through_file(self, tmp_path: Path) -> None:
        path = tmp_path / "payouts.jsonl"
        recorder = HistoryRecorder(PayoutLog(path))
        record = recorder.record("m1", "a1", [_disb()], 100, now=3,
                                 trigger=PayoutTrigger.MANUAL)

        reloaded = PayoutLog(path)
        assert reloaded.records() == [record]
        assert HistoryRecorder(reloaded).counter == 1

    def test_tampered_record_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "payouts.jsonl"
        HistoryRecorder(PayoutLog(path)).record("m1", "a1", [_disb()], 100, now=3)
        entry = json.loads(path.read_text().strip())
        entry["record"]["total_amount"] = 1_000_000
        path.write_text(json.dumps(entry) + "\n")
        with pytest.raises(ValueError, match="Integrity check failed"):
            PayoutLog(path)

    def test_duplicate_on_recovery_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "payouts.jsonl"
        HistoryRecorder(PayoutLog(path)).record("m1", "a1", [_disb()], 100, now=3)
        line = path.read_text()
        path.write_text(line + line)
        with pytest.raises(ValueError, match="Duplicate payout record ID"):
            PayoutLog(path)

    def test_duplicate_append_rejected(self) -> None:
        log = PayoutLog()
        record = PayoutRecord("PAY-1", "m1", "a1", (_disb(),), 100, 0, PayoutTrigger.BATCH)
        log.append(record)
        with pytest.raises(ValueError, match="Duplicate"):
            log.append(record)


class TestDegradedAudit:
    def test_write_failure_keeps_record(self, tmp_path: Path) -> None:
        # The parent directory does not exist, so every append fails.
        path = tmp_path / "missing" / "payouts.jsonl"
        recorder = HistoryRecorder(PayoutLog(path))
        record = recorder.record("m1", "a1", [_disb()], 100, now=1)
        assert recorder.audit_degraded
        assert recorder.get(record.record_id) == record
