"""Day-indexed balance projection and its forward-looking minimum.

Index ``i`` of every array refers to ``start + i`` days and holds the
end-of-day value. ``min_future[i]`` is the lowest balance on day ``i`` or
any later day; a purchase on day ``i`` is safe against the floor exactly
when both ``balances[i]`` and ``min_future[i]`` stay above it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional

from models import DatedEvent, to_day

logger = logging.getLogger(__name__)


def is_balance_fresh(checkpoint: Optional[date | datetime], now: date | datetime) -> bool:
    """True when the last checkpoint is dated today or later.

    A fresh checkpoint already includes today's events.
    """

    if checkpoint is None:
        return False
    return to_day(checkpoint) >= to_day(now)


def counts_toward_balance(
    day: date | datetime, checkpoint: Optional[date | datetime], now: date | datetime
) -> bool:
    """True when an income or expense on ``day`` still moves the balance.

    Nothing before today counts, nor anything before the checkpoint day.
    Today's events are already in a fresh checkpoint.
    """

    day = to_day(day)
    today = to_day(now)
    if day < today or (day == today and is_balance_fresh(checkpoint, today)):
        return False
    return checkpoint is None or day >= to_day(checkpoint)


def suffix_minimum(balances: List[float]) -> List[float]:
    """Return ``m`` with ``m[i] = min(balances[i:])``."""

    result = list(balances)
    for i in range(len(result) - 2, -1, -1):
        if result[i + 1] < result[i]:
            result[i] = result[i + 1]
    return result


@dataclass
class ProjectionState:
    """Balances and suffix minimum owned by a single scheduling run."""

    start: date
    balances: List[float]
    min_future: List[float] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.min_future:
            self.min_future = suffix_minimum(self.balances)

    def __len__(self) -> int:
        return len(self.balances)

    @property
    def end(self) -> date:
        return self.date_at(len(self.balances) - 1)

    def date_at(self, index: int) -> date:
        return self.start + timedelta(days=index)

    def index_of(self, day: date | datetime) -> int:
        return (to_day(day) - self.start).days

    def commit(self, index: int, price: float) -> None:
        """Record a purchase of ``price`` on day ``index``.

        Every balance from ``index`` on drops by ``price`` and so does its
        suffix minimum. Earlier days keep their balance but may now see a
        lower future, so their minimum is recomputed back to day 0.
        """

        for i in range(index, len(self.balances)):
            self.balances[i] -= price
            self.min_future[i] -= price
        for i in range(index - 1, -1, -1):
            self.min_future[i] = min(self.balances[i], self.min_future[i + 1])


def project_daily_balances(
    balance: float,
    checkpoint: Optional[date | datetime],
    now: date | datetime,
    events: Iterable[DatedEvent],
    start: date | datetime,
    end: date | datetime,
) -> List[float]:
    """Return end-of-day balances for every day from ``start`` to ``end``.

    Parameters
    ----------
    balance:
        Current balance, i.e. the amount of the latest checkpoint.
    checkpoint:
        Date of that checkpoint, or ``None`` if the balance is the configured
        starting balance.
    now:
        The current day. Events before it are history and are skipped; when
        the checkpoint is fresh, today's events are skipped too.
    events:
        Signed events, typically from ``timeline.build_event_timeline``.

    Changes only start to accumulate on the later of the checkpoint day and
    today. Days before that hold ``balance`` unchanged.
    """

    start = to_day(start)
    end = to_day(end)
    size = max((end - start).days + 1, 1)

    changes = [0.0] * size
    for ev in events:
        if not counts_toward_balance(ev.date, checkpoint, now):
            continue
        idx = (to_day(ev.date) - start).days
        if 0 <= idx < size:
            changes[idx] += ev.amount

    balances: List[float] = []
    running = balance
    for change in changes:
        running += change
        balances.append(running)

    logger.debug(
        "Projected %d days from %s to %s; final balance %.2f", size, start, end, running
    )
    return balances
