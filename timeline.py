"""Build the chronological list of income and expense events."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Iterable, List

from horizon import resolve_projection_end
from models import DatedEvent, PurchaseRequest, RecurringItem, UserPolicy, to_day
from recurrence import MAX_ITERATIONS, expand_occurrences

logger = logging.getLogger(__name__)


def _expand(
    item: RecurringItem,
    amount: float,
    event_type: str,
    start: date,
    end: date,
    max_iterations: int,
) -> List[DatedEvent]:
    return [
        DatedEvent(date=day, amount=amount, type=event_type, title=item.name)
        for day in expand_occurrences(
            item.frequency,
            item.start_date,
            start,
            end,
            item_end=item.end_date,
            interval=item.interval,
            intermittent_dates=item.intermittent_dates,
            name=item.name,
            max_iterations=max_iterations,
        )
    ]


def build_event_timeline(
    incomes: Iterable[RecurringItem],
    expenses: Iterable[RecurringItem],
    start: date | datetime,
    end: date | datetime,
    max_iterations: int = MAX_ITERATIONS,
) -> List[DatedEvent]:
    """Return every income and expense occurrence in ``[start, end]``.

    Income is taken net of tax and stays positive; expenses are negated.
    Events are sorted by date; same-day events keep their input order.
    """

    start = to_day(start)
    end = to_day(end)
    events: List[DatedEvent] = []
    for inc in incomes:
        events.extend(_expand(inc, inc.net_amount, "income", start, end, max_iterations))
    for exp in expenses:
        events.extend(_expand(exp, -exp.amount, "expense", start, end, max_iterations))
    events.sort(key=lambda e: e.date)
    logger.debug("Built %d events between %s and %s", len(events), start, end)
    return events


def full_projection_timeline(
    policy: UserPolicy,
    incomes: Iterable[RecurringItem],
    expenses: Iterable[RecurringItem],
    requests: Iterable[PurchaseRequest],
    now: date | datetime,
) -> List[DatedEvent]:
    """Mandatory events plus already scheduled, unpurchased purchases.

    Read-only: requests are not modified.
    """

    incomes = list(incomes)
    expenses = list(expenses)
    requests = list(requests)
    today = to_day(now)
    end = resolve_projection_end(
        today, policy.projection_horizon_months, incomes, expenses, requests
    )
    events = build_event_timeline(incomes, expenses, today, end)
    for req in requests:
        if req.purchased or req.assigned_date is None:
            continue
        events.append(
            DatedEvent(
                date=req.assigned_date,
                amount=-req.price,
                type="purchase",
                title=req.name,
                request=req,
            )
        )
    events.sort(key=lambda e: e.date)
    return events
