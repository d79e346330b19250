"""Tests for the payout CLI — proves commands parse and dispatch."""

import json
from pathlib import Path

import pytest

from affiliate_payout.cli import build_parser, main
from affiliate_payout.models.payout import SplitShare


def _run(tmp_path: Path, *argv: str) -> int:
    return main([
        "--config", str(tmp_path / "config"),
        "--data", str(tmp_path / "data"),
        *argv,
    ])


class TestCLIParsing:
    def test_status_command(self) -> None:
        args = build_parser().parse_args(["status"])
        assert args.command == "status"

    def test_split_shares_parsed(self) -> None:
        args = build_parser().parse_args([
            "set-split", "--caller", "m1", "--merchant", "m1", "--affiliate", "a1",
            "--share", "r1:6000", "--share", "r2:4000",
        ])
        assert args.share == [SplitShare("r1", 6000), SplitShare("r2", 4000)]

    def test_bad_share_rejected(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([
                "set-split", "--caller", "m1", "--merchant", "m1",
                "--affiliate", "a1", "--share", "r1",
            ])

    def test_unknown_schedule_rejected(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([
                "set-merchant", "--caller", "m1", "--merchant", "m1", "--schedule", "hourly",
            ])

    def test_repeatable_batch_recipients(self) -> None:
        args = build_parser().parse_args([
            "batch", "--caller", "ops", "--recipient", "a1", "--recipient", "a2",
        ])
        assert args.recipient == ["a1", "a2"]


class TestCLIExecution:
    def test_no_command_shows_help(self) -> None:
        assert main([]) == 0

    def test_status_runs(self, tmp_path: Path, capsys) -> None:
        assert _run(tmp_path, "status") == 0
        status = json.loads(capsys.readouterr().out)
        assert status["administrators"] == ["admin"]

    def test_bootstrap_admin_from_env(self, tmp_path: Path, monkeypatch, capsys) -> None:
        monkeypatch.setenv("PAYOUT_BOOTSTRAP_ADMIN", "ops")
        assert _run(tmp_path, "status") == 0
        assert json.loads(capsys.readouterr().out)["administrators"] == ["ops"]

    def test_commission_to_payout_e2e(self, tmp_path: Path, capsys) -> None:
        assert _run(tmp_path, "init-schedule", "--caller", "admin", "--height", "0") == 0
        assert _run(
            tmp_path, "set-merchant", "--caller", "m1", "--merchant", "m1",
            "--schedule", "weekly", "--threshold", "100", "--height", "0",
        ) == 0
        assert _run(
            tmp_path, "set-split", "--caller", "m1", "--merchant", "m1",
            "--affiliate", "a1", "--share", "r1:6000", "--share", "r2:4000",
        ) == 0
        assert _run(
            tmp_path, "record-commission", "--caller", "m1", "--merchant", "m1",
            "--affiliate", "a1", "--amount", "1000", "--height", "5",
        ) == 0
        capsys.readouterr()

        assert _run(tmp_path, "pending", "--recipient", "r1") == 0
        assert json.loads(capsys.readouterr().out)["amount"] == 600

        assert _run(tmp_path, "process-due", "--height", "1008") == 0
        report = json.loads(capsys.readouterr().out)
        assert report["settled_total"] == 1000

        assert _run(tmp_path, "history", "--recipient", "r2") == 0
        history = json.loads(capsys.readouterr().out)
        assert [r["total_amount"] for r in history] == [400]

    def test_failure_exit_code(self, tmp_path: Path, capsys) -> None:
        code = _run(
            tmp_path, "record-commission", "--caller", "m1", "--merchant", "m1",
            "--affiliate", "a1", "--amount", "10", "--height", "1",
        )
        assert code == 1
        assert "Failed" in capsys.readouterr().err

    def test_manual_payout_and_batch(self, tmp_path: Path, capsys) -> None:
        _run(
            tmp_path, "set-merchant", "--caller", "admin", "--merchant", "m1",
            "--schedule", "monthly", "--height", "0",
        )
        _run(
            tmp_path, "record-commission", "--caller", "m1", "--merchant", "m1",
            "--affiliate", "a1", "--amount", "50", "--height", "1",
        )
        _run(
            tmp_path, "record-commission", "--caller", "m1", "--merchant", "m1",
            "--affiliate", "a2", "--amount", "70", "--height", "1",
        )
        assert _run(tmp_path, "payout", "--caller", "a1", "--recipient", "a1", "--height", "2") == 0
        assert _run(
            tmp_path, "batch", "--caller", "admin", "--recipient", "a2", "--height", "3",
        ) == 0
        assert _run(tmp_path, "batch", "--caller", "a1", "--recipient", "a2", "--height", "3") == 1
        capsys.readouterr()
        assert _run(tmp_path, "pending") == 0
        assert json.loads(capsys.readouterr().out) == []
