"""Payout CLI — command-line interface for the affiliate payout engine.

Usage:
    python -m affiliate_payout.cli status
    python -m affiliate_payout.cli init-schedule --caller ops
    python -m affiliate_payout.cli set-merchant --caller m1 --merchant m1 --schedule weekly --threshold 500
    python -m affiliate_payout.cli set-split --caller m1 --merchant m1 --affiliate a1 --share r1:6000 --share r2:4000
    python -m affiliate_payout.cli record-commission --caller m1 --merchant m1 --affiliate a1 --amount 1200
    python -m affiliate_payout.cli process-due
    python -m affiliate_payout.cli payout --caller r1 --recipient r1
    python -m affiliate_payout.cli batch --caller ops --recipient r1 --recipient r2
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any, Optional

from affiliate_payout.config import PayoutParams
from affiliate_payout.logging_utils import configure_logging
from affiliate_payout.models.payout import PayoutSchedule, SplitShare
from affiliate_payout.persistence.payout_log import PayoutLog
from affiliate_payout.persistence.state_store import StateStore
from affiliate_payout.service import PayoutService, ServiceResult


DEFAULT_CONFIG = Path(__file__).resolve().parents[2] / "config"
DEFAULT_DATA = Path(__file__).resolve().parents[2] / "data"
DEFAULT_ADMIN_ENV = "PAYOUT_BOOTSTRAP_ADMIN"


def _make_service(args: argparse.Namespace) -> PayoutService:
    """Create a PayoutService with durable persistence."""
    data_dir: Path = args.data
    data_dir.mkdir(parents=True, exist_ok=True)
    params = PayoutParams.from_config_dir(args.config)
    return PayoutService(
        bootstrap_admin=os.getenv(DEFAULT_ADMIN_ENV, "admin"),
        params=params,
        state_store=StateStore(data_dir / "state.json"),
        payout_log=PayoutLog(data_dir / "payouts.jsonl"),
        require_registered_affiliates=args.require_affiliates,
    )


def _emit(result: ServiceResult) -> int:
    if result.success:
        print(json.dumps(result.data, indent=2, default=str))
        return 0
    print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def _parse_share(text: str) -> SplitShare:
    recipient, sep, share = text.rpartition(":")
    if not sep or not recipient:
        raise argparse.ArgumentTypeError(f"Share must be RECIPIENT:BP, got {text!r}")
    try:
        return SplitShare(recipient, int(share))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Share basis points must be an integer: {text!r}") from None


def cmd_status(args: argparse.Namespace) -> int:
    service = _make_service(args)
    print(json.dumps(service.status(), indent=2))
    return 0


def cmd_init_schedule(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _emit(service.initialize_schedule(args.caller, now=args.height))


def cmd_set_admin(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _emit(service.set_administrator(args.caller, args.principal, not args.revoke))


def cmd_set_merchant(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _emit(service.set_merchant_config(
        args.caller,
        args.merchant,
        args.schedule,
        minimum_threshold=args.threshold,
        default_commission_rate=args.rate,
        active=not args.inactive,
        now=args.height,
    ))


def cmd_set_threshold(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _emit(service.update_payout_threshold(
        args.caller, args.merchant, args.threshold, now=args.height,
    ))


def cmd_set_split(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _emit(service.set_commission_split(
        args.caller, args.merchant, args.affiliate, args.share or [],
        active=not args.inactive,
    ))


def cmd_register_affiliate(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _emit(service.register_affiliate(args.affiliate))


def cmd_record_commission(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _emit(service.record_commission(
        args.caller, args.merchant, args.affiliate, args.amount, now=args.height,
    ))


def cmd_process_due(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _emit(service.process_due_payouts(now=args.height, cadences=args.cadence))


def cmd_payout(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _emit(service.process_recipient_payout(args.caller, args.recipient, now=args.height))


def cmd_batch(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _emit(service.batch_process_payouts(args.caller, args.recipient, now=args.height))


def cmd_pending(args: argparse.Namespace) -> int:
    service = _make_service(args)
    if args.recipient:
        entry = service.get_pending_balance(args.recipient)
        data: Any = entry.to_dict() if entry else {"recipient_id": args.recipient, "amount": 0}
    else:
        data = [e.to_dict() for e in service.pending_balances()]
    print(json.dumps(data, indent=2))
    return 0


def cmd_history(args: argparse.Namespace) -> int:
    service = _make_service(args)
    records = service.payout_records(
        merchant_id=args.merchant,
        affiliate_id=args.affiliate,
        recipient_id=args.recipient,
    )
    print(json.dumps([r.to_dict() for r in records], indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="affiliate-payout",
        description="Affiliate commission accrual and scheduled payout engine",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help="Path to config directory (default: config/)",
    )
    parser.add_argument(
        "--data",
        type=Path,
        default=DEFAULT_DATA,
        help="Path to state directory (default: data/)",
    )
    parser.add_argument(
        "--require-affiliates",
        action="store_true",
        help="Reject commissions for unregistered affiliates",
    )
    sub = parser.add_subparsers(dest="command")

    def with_height(p: argparse.ArgumentParser) -> argparse.ArgumentParser:
        p.add_argument("--height", type=int, help="Logical height (default: derived from wall clock)")
        return p

    def with_caller(p: argparse.ArgumentParser) -> argparse.ArgumentParser:
        p.add_argument("--caller", required=True, help="Principal performing the operation")
        return p

    sub.add_parser("status", help="Show engine status")

    with_height(with_caller(sub.add_parser("init-schedule", help="Arm payout schedules (admin)")))

    p_admin = with_caller(sub.add_parser("set-admin", help="Grant or revoke an administrator"))
    p_admin.add_argument("--principal", required=True)
    p_admin.add_argument("--revoke", action="store_true")

    p_merchant = with_height(with_caller(sub.add_parser("set-merchant", help="Configure a merchant")))
    p_merchant.add_argument("--merchant", required=True)
    p_merchant.add_argument(
        "--schedule", required=True, choices=[s.value for s in PayoutSchedule],
    )
    p_merchant.add_argument("--threshold", type=int, default=0, help="Minimum payout threshold")
    p_merchant.add_argument("--rate", type=int, default=0, help="Default commission rate (bp)")
    p_merchant.add_argument("--inactive", action="store_true")

    p_threshold = with_height(with_caller(sub.add_parser("set-threshold", help="Update a payout threshold")))
    p_threshold.add_argument("--merchant", required=True)
    p_threshold.add_argument("--threshold", type=int, required=True)

    p_split = with_caller(sub.add_parser("set-split", help="Configure a commission split"))
    p_split.add_argument("--merchant", required=True)
    p_split.add_argument("--affiliate", required=True)
    p_split.add_argument(
        "--share", action="append", type=_parse_share,
        help="RECIPIENT:BP (repeatable)",
    )
    p_split.add_argument("--inactive", action="store_true")

    p_aff = sub.add_parser("register-affiliate", help="Register an affiliate identity")
    p_aff.add_argument("--affiliate", required=True)

    p_comm = with_height(with_caller(sub.add_parser("record-commission", help="Record a commission")))
    p_comm.add_argument("--merchant", required=True)
    p_comm.add_argument("--affiliate", required=True)
    p_comm.add_argument("--amount", type=int, required=True)

    p_due = with_height(sub.add_parser("process-due", help="Release due payouts"))
    p_due.add_argument(
        "--cadence", action="append", choices=[s.value for s in PayoutSchedule],
        help="Restrict to a cadence (repeatable)",
    )

    p_pay = with_height(with_caller(sub.add_parser("payout", help="Settle one recipient")))
    p_pay.add_argument("--recipient", required=True)

    p_batch = with_height(with_caller(sub.add_parser("batch", help="Settle a list of recipients (admin)")))
    p_batch.add_argument("--recipient", action="append", required=True)

    p_pending = sub.add_parser("pending", help="Show pending balances")
    p_pending.add_argument("--recipient")

    p_hist = sub.add_parser("history", help="Show payout history")
    p_hist.add_argument("--merchant")
    p_hist.add_argument("--affiliate")
    p_hist.add_argument("--recipient")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    configure_logging()

    commands = {
        "status": cmd_status,
        "init-schedule": cmd_init_schedule,
        "set-admin": cmd_set_admin,
        "set-merchant": cmd_set_merchant,
        "set-threshold": cmd_set_threshold,
        "set-split": cmd_set_split,
        "register-affiliate": cmd_register_affiliate,
        "record-commission": cmd_record_commission,
        "process-due": cmd_process_due,
        "payout": cmd_payout,
        "batch": cmd_batch,
        "pending": cmd_pending,
        "history": cmd_history,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
