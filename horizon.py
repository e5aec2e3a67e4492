"""Decide how far into the future a projection has to run."""

from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, Optional

from dateutil.relativedelta import relativedelta

from models import PurchaseRequest, RecurringItem, to_day

# Slack past the last known deadline so a search window around it still
# has room to extend forward.
BUFFER_MONTHS = 6


def resolve_projection_end(
    now: date | datetime,
    horizon_months: int,
    incomes: Iterable[RecurringItem],
    expenses: Iterable[RecurringItem],
    requests: Iterable[PurchaseRequest],
) -> date:
    """Return the last day of the projection.

    This is ``today + horizon_months`` unless some income/expense end date
    or pending purchase deadline plus ``BUFFER_MONTHS`` reaches further.
    """

    today = to_day(now)
    default_end = today + relativedelta(months=horizon_months)

    latest: Optional[date] = None
    for item in list(incomes) + list(expenses):
        if item.end_date is not None and (latest is None or item.end_date > latest):
            latest = item.end_date
    for req in requests:
        if req.purchased:
            continue
        if latest is None or req.desired_date > latest:
            latest = req.desired_date

    if latest is None:
        return default_end
    return max(latest + relativedelta(months=BUFFER_MONTHS), default_end)
