"""Expand a recurring rule into the dates it occurs on.

Stepped frequencies add one step to the previous occurrence, so a rule
starting on the 31st clamps to the end of a shorter month and keeps that
day from then on (Jan 31, Feb 28, Mar 28).
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Iterator, Optional

from dateutil.relativedelta import relativedelta

logger = logging.getLogger(__name__)

# Upper bound on stepped occurrences per item, whether or not they fall
# inside the projection window.
MAX_ITERATIONS = 10000


def _step(frequency: str, interval: int) -> relativedelta:
    if frequency == "weekly":
        return relativedelta(weeks=interval)
    if frequency == "biweekly":
        return relativedelta(weeks=2)
    if frequency == "monthly":
        return relativedelta(months=interval)
    if frequency == "yearly":
        return relativedelta(years=interval)
    raise ValueError(f"Unknown frequency: {frequency}")


def _in_bounds(day: date, start: date, end: Optional[date]) -> bool:
    return day >= start and (end is None or day <= end)


def expand_occurrences(
    frequency: str,
    item_start: date,
    window_start: date,
    window_end: date,
    item_end: Optional[date] = None,
    interval: int = 1,
    intermittent_dates: Optional[Iterable[date]] = None,
    name: str = "",
    max_iterations: int = MAX_ITERATIONS,
) -> Iterator[date]:
    """Yield every occurrence inside both the item bounds and the window.

    Parameters
    ----------
    frequency:
        One of ``weekly``, ``biweekly``, ``monthly``, ``yearly``,
        ``intermittent`` or ``once``.
    item_start, item_end:
        The item's own active range; ``item_end`` of ``None`` never ends.
    window_start, window_end:
        Inclusive projection window.
    interval:
        Step multiplier for weekly, monthly and yearly rules. Ignored for
        ``biweekly`` which always steps two weeks.
    intermittent_dates:
        Explicit dates, authoritative for ``intermittent`` rules.
    max_iterations:
        Stepping stops after this many occurrences have been generated.

    Expansion of a stepped rule is abandoned, with a warning, if the safety
    cap is reached or a step fails to move the date forward. Occurrences
    already yielded stand.
    """

    if frequency == "intermittent":
        for day in sorted(intermittent_dates or ()):
            if _in_bounds(day, item_start, item_end) and window_start <= day <= window_end:
                yield day
        return

    if frequency == "once":
        if _in_bounds(item_start, item_start, item_end) and window_start <= item_start <= window_end:
            yield item_start
        return

    step = _step(frequency, interval)
    current = item_start
    count = 0
    while current <= window_end and (item_end is None or current <= item_end):
        if count >= max_iterations:
            logger.warning("Recurrence safety cap reached for %s after %d steps", name, count)
            return
        if current >= window_start:
            yield current
        count += 1
        nxt = current + step
        if nxt <= current:
            logger.warning("Date failed to advance for %s at %s", name, current)
            return
        current = nxt
