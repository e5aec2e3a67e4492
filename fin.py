"""Command-line interface for planning wish-list purchases."""

import argparse
import json
import logging
import sys
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from pathlib import Path
from typing import Dict, List, Optional

from cash_flow import counts_toward_balance
from models import (
    BalanceCheckpoint,
    PurchaseRequest,
    RecurringItem,
    UserPolicy,
    current_balance,
    last_checkpoint_date,
    to_day,
)
from purchase_scheduler import calculate_purchase_dates
from timeline import full_projection_timeline
from validate import validate_inputs


DATA_FILE = Path(__file__).with_name("budget_data.json")
CENT = Decimal("0.01")


def load_data(path: Path = DATA_FILE) -> Dict:
    """Load planner data from ``budget_data.json``."""
    if path.exists():
        with path.open() as f:
            return json.load(f)
    return {"user": {}, "checkpoints": [], "incomes": [], "expenses": [], "purchases": []}


def save_data(data: Dict, path: Path = DATA_FILE) -> None:
    """Persist planner data to disk."""
    with path.open("w") as f:
        json.dump(data, f, indent=2)


def _money(value: float) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


# ---------------------------------------------------------------------------
# Planning


def plan_purchases(data: Dict, today: date) -> Dict:
    """Parse ``data``, run the planner and return the parsed records."""

    policy = UserPolicy.from_dict(data.get("user", {}))
    checkpoints = [BalanceCheckpoint.from_dict(c) for c in data.get("checkpoints", [])]
    incomes = [RecurringItem.from_dict(i) for i in data.get("incomes", [])]
    expenses = [RecurringItem.from_dict(e) for e in data.get("expenses", [])]
    requests = [PurchaseRequest.from_dict(p) for p in data.get("purchases", [])]

    validate_inputs(policy, incomes, expenses, requests)
    balance = current_balance(checkpoints, policy.starting_balance)
    checkpoint = last_checkpoint_date(checkpoints)

    calculate_purchase_dates(
        policy,
        incomes,
        expenses,
        requests,
        now=today,
        balance=balance,
        checkpoint=checkpoint,
    )
    return {
        "policy": policy,
        "incomes": incomes,
        "expenses": expenses,
        "requests": requests,
        "balance": balance,
        "checkpoint": checkpoint,
    }


def store_results(data: Dict, requests: List[PurchaseRequest]) -> None:
    """Copy each request's outcome back into its purchase entry."""
    for entry, req in zip(data.get("purchases", []), requests):
        if req.purchased:
            continue
        entry["assigned_date"] = req.assigned_date.isoformat() if req.assigned_date else None
        entry["predicted_balance"] = req.predicted_balance
        entry["failure_reason"] = req.failure_reason


def print_purchases(requests: List[PurchaseRequest]) -> None:
    for req in requests:
        if req.purchased:
            print(f"{req.name} ${_money(req.price)}: purchased")
        elif req.assigned_date is not None:
            print(
                f"{req.name} ${_money(req.price)}: buy on {req.assigned_date.isoformat()} "
                f"(balance after ${_money(req.predicted_balance)})"
            )
        else:
            print(f"{req.name} ${_money(req.price)}: {req.failure_reason}")


def print_timeline(plan: Dict, today: date) -> None:
    events = full_projection_timeline(
        plan["policy"], plan["incomes"], plan["expenses"], plan["requests"], today
    )
    balance = plan["balance"]
    for ev in events:
        # Income and expenses the checkpoint already covers are listed but not added.
        if ev.type == "purchase" or counts_toward_balance(ev.date, plan["checkpoint"], today):
            balance += ev.amount
        print(
            f"{ev.date.isoformat()}: {ev.type:<8} {ev.title} "
            f"${_money(ev.amount)} -> ${_money(balance)}"
        )


# ---------------------------------------------------------------------------
# Entry point


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Plan when to buy wish-list items")
    parser.add_argument("--data", type=Path, default=DATA_FILE, help="Path to planner JSON file")
    parser.add_argument("--today", help="Override today's date (YYYY-MM-DD)")
    parser.add_argument("--timeline", action="store_true", help="Print the projected event timeline")
    parser.add_argument("--save", action="store_true", help="Write results back to the data file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log scheduling decisions")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Run the planner once and print the result."""
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        today = to_day(args.today) if args.today else date.today()
        data = load_data(args.data)
        plan = plan_purchases(data, today)
    except (KeyError, ValueError) as exc:
        print(f"Warning: {exc}")
        return 1

    print(f"--- Purchase plan as of {today.isoformat()} ---")
    print(f"Current balance: ${_money(plan['balance'])}")
    print_purchases(plan["requests"])
    if args.timeline:
        print()
        print_timeline(plan, today)
    if args.save:
        store_results(data, plan["requests"])
        save_data(data, args.data)
    return 0


if __name__ == "__main__":
    sys.exit(main())
