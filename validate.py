"""Reject malformed records before they reach the planner.

The engine assumes sane inputs; everything here raises ``ValueError`` with a
message naming the offending record.
"""

from __future__ import annotations

from typing import Iterable

from models import FREQUENCIES, PurchaseRequest, RecurringItem, UserPolicy


def validate_item(item: RecurringItem, kind: str = "item") -> None:
    label = f"{kind} '{item.name}'"
    if item.frequency not in FREQUENCIES:
        raise ValueError(f"{label}: unknown frequency {item.frequency!r}")
    if item.amount < 0:
        raise ValueError(f"{label}: amount must not be negative")
    if not 0 <= item.tax_percent <= 100:
        raise ValueError(f"{label}: tax percent must be between 0 and 100")
    if item.interval < 1:
        raise ValueError(f"{label}: interval must be at least 1")
    if item.end_date is not None and item.end_date < item.start_date:
        raise ValueError(f"{label}: end date {item.end_date} is before start date {item.start_date}")
    if item.frequency == "intermittent" and not item.intermittent_dates:
        raise ValueError(f"{label}: intermittent items need at least one date")


def validate_request(req: PurchaseRequest) -> None:
    if req.price < 0:
        raise ValueError(f"purchase '{req.name}': price must not be negative")


def validate_policy(policy: UserPolicy) -> None:
    if policy.search_window_months < 0:
        raise ValueError("search window months must not be negative")
    if policy.projection_horizon_months < 0:
        raise ValueError("projection horizon months must not be negative")


def validate_inputs(
    policy: UserPolicy,
    incomes: Iterable[RecurringItem],
    expenses: Iterable[RecurringItem],
    requests: Iterable[PurchaseRequest],
) -> None:
    """Validate everything a planning run consumes."""

    validate_policy(policy)
    for inc in incomes:
        validate_item(inc, "income")
    for exp in expenses:
        validate_item(exp, "expense")
    for req in requests:
        validate_request(req)
