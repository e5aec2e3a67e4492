"""Assign each pending purchase the best day it can safely be afforded.

Requests are handled one at a time, earliest deadline first and cheapest
first on ties. For each request the days within ``search_window_months`` of
its deadline are scored and the best safe day wins. Only if none of them is
safe is the rest of the horizon tried, first forward and then backward.
The choice is committed into the shared projection before the next request
is looked at, so earlier requests get first claim on the money.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Iterable, List, Optional

from cash_flow import ProjectionState, project_daily_balances
from horizon import resolve_projection_end
from models import (
    Failed,
    PurchaseRequest,
    RecurringItem,
    Scheduled,
    Unscheduled,
    UserPolicy,
    to_day,
)
from recurrence import MAX_ITERATIONS
from timeline import build_event_timeline

logger = logging.getLogger(__name__)

FAILURE_REASON = "Insufficient funds/buffers within projection"


def order_pending(requests: Iterable[PurchaseRequest]) -> List[PurchaseRequest]:
    """Unpurchased requests by deadline, then price."""

    pending = [r for r in requests if not r.purchased]
    pending.sort(key=lambda r: (r.desired_date, r.price))
    return pending


def reset_outcomes(requests: Iterable[PurchaseRequest]) -> None:
    for req in requests:
        if not req.purchased:
            req.outcome = Unscheduled()


def is_safe(state: ProjectionState, index: int, price: float, floor: float) -> bool:
    return (
        state.balances[index] - price >= floor
        and state.min_future[index] - price >= floor
    )


def score_day(
    index: int,
    desired_index: int,
    remaining: float,
    policy: UserPolicy,
) -> float:
    """Score a safe day; higher is better.

    ``remaining`` is the balance left on that day after the purchase.
    """

    span = policy.window_days * 2
    dist = abs(index - desired_index)
    score = max(0.0, 100 * (1 - dist / (span + 1)))

    if remaining >= policy.target_savings:
        if policy.prioritize_savings_goal:
            score += 50
            surplus = remaining - policy.target_savings
            # Spending down close to the goal beats leaving a large surplus.
            if surplus <= max(policy.target_savings * 0.10, 100):
                score += 50
        else:
            score += 10

    if policy.prioritize_earlier_dates and index < desired_index:
        score += (desired_index - index) * 5.0
        score += 100
    return score


def _best_in_range(
    state: ProjectionState,
    first: int,
    last: int,
    price: float,
    desired_index: int,
    policy: UserPolicy,
) -> Optional[int]:
    best_index: Optional[int] = None
    best_score = float("-inf")
    floor = policy.floor
    for i in range(first, last + 1):
        if not is_safe(state, i, price, floor):
            continue
        score = score_day(i, desired_index, state.balances[i] - price, policy)
        if score > best_score:
            best_score = score
            best_index = i
    return best_index


def find_best_day(
    state: ProjectionState,
    price: float,
    desired: date,
    today: date,
    policy: UserPolicy,
) -> Optional[int]:
    """Return the index of the day to buy on, or ``None`` if none is safe."""

    if desired < today:
        desired = today
    last = len(state) - 1
    desired_index = min(max(0, state.index_of(desired)), last)
    window_start = max(0, desired_index - policy.window_days)
    window_end = min(last, desired_index + policy.window_days)

    best = _best_in_range(state, window_start, window_end, price, desired_index, policy)
    if best is None and window_end < last:
        best = _best_in_range(state, window_end + 1, last, price, desired_index, policy)
    if best is None and window_start > 0:
        best = _best_in_range(state, 0, window_start - 1, price, desired_index, policy)
    return best


def schedule_into(
    state: ProjectionState,
    requests: Iterable[PurchaseRequest],
    policy: UserPolicy,
    now: date | datetime,
) -> None:
    """Greedily schedule ``requests`` against ``state``, mutating both."""

    requests = list(requests)
    today = to_day(now)
    reset_outcomes(requests)
    floor = policy.floor

    scheduled = failed = 0
    for req in order_pending(requests):
        index = find_best_day(state, req.price, req.desired_date, today, policy)
        if index is None:
            headroom = state.min_future[-1] - floor
            req.outcome = Failed(
                reason=FAILURE_REASON, price=req.price, floor=floor, headroom=headroom
            )
            failed += 1
            logger.debug(
                "No safe day for %s (price %.2f, headroom %.2f)", req.name, req.price, headroom
            )
            continue

        req.outcome = Scheduled(
            date=state.date_at(index),
            predicted_balance=state.balances[index] - req.price,
        )
        state.commit(index, req.price)
        scheduled += 1
        logger.debug("Scheduled %s on %s", req.name, req.assigned_date)

    logger.info("Purchase scheduling complete: %d scheduled, %d failed", scheduled, failed)


def build_projection(
    policy: UserPolicy,
    incomes: Iterable[RecurringItem],
    expenses: Iterable[RecurringItem],
    requests: Iterable[PurchaseRequest],
    now: date | datetime,
    balance: float,
    checkpoint: Optional[date | datetime] = None,
    projection_start: Optional[date | datetime] = None,
    max_iterations: int = MAX_ITERATIONS,
) -> ProjectionState:
    """Project balances from ``projection_start`` (default today) to the horizon."""

    incomes = list(incomes)
    expenses = list(expenses)
    today = to_day(now)
    start = to_day(projection_start) if projection_start is not None else today
    end = resolve_projection_end(
        today, policy.projection_horizon_months, incomes, expenses, requests
    )
    logger.debug("Projection runs from %s to %s", start, end)
    events = build_event_timeline(incomes, expenses, start, end, max_iterations)
    balances = project_daily_balances(balance, checkpoint, today, events, start, end)
    return ProjectionState(start=start, balances=balances)


def calculate_purchase_dates(
    policy: UserPolicy,
    incomes: Iterable[RecurringItem],
    expenses: Iterable[RecurringItem],
    requests: List[PurchaseRequest],
    now: date | datetime,
    balance: float,
    checkpoint: Optional[date | datetime] = None,
    projection_start: Optional[date | datetime] = None,
) -> None:
    """Annotate every pending request with a purchase day or a failure.

    Parameters
    ----------
    policy:
        Floor, scoring preferences, search window and horizon.
    incomes, expenses:
        Recurring rules.
    requests:
        Purchase requests. Purchased ones are left untouched; every other
        request ends with a ``Scheduled`` or ``Failed`` outcome.
    now:
        The current day or moment.
    balance, checkpoint:
        The current balance and the date it was last confirmed, if ever.
    """

    state = build_projection(
        policy,
        incomes,
        expenses,
        requests,
        now,
        balance,
        checkpoint=checkpoint,
        projection_start=projection_start,
    )
    schedule_into(state, requests, policy, now)
