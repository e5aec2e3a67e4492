import logging
import os
import sys
from datetime import date, timedelta
from pathlib import Path

import pytest

# Ensure project root on path for direct module imports
sys.path.insert(0, os.path.abspath(os.path.join(Path(__file__).resolve().parent, "..")))

from cash_flow import suffix_minimum
from models import Failed, PurchaseRequest, RecurringItem, Scheduled, UserPolicy
from purchase_scheduler import (
    build_projection,
    calculate_purchase_dates,
    order_pending,
    schedule_into,
    score_day,
)

TODAY = date(2025, 6, 1)


def _days(n):
    return TODAY + timedelta(days=n)


def test_insufficient_funds_fails():
    policy = UserPolicy(rain_check_min=0, is_rain_check_hard_constraint=True)
    rent = RecurringItem("Rent", 1000, TODAY)
    item = PurchaseRequest("Luxury Item", 500, _days(20))
    requests = [item]

    calculate_purchase_dates(policy, [], [rent], requests, TODAY, balance=0)

    assert item.assigned_date is None
    assert item.failure_reason is not None
    assert isinstance(item.outcome, Failed)
    assert item.outcome.price == 500
    assert item.outcome.headroom < 0


def test_healthy_surplus_schedules_item():
    policy = UserPolicy(rain_check_min=500, target_savings=1000)
    salary = RecurringItem("Salary", 5000, TODAY)
    rent = RecurringItem("Rent", 1000, TODAY)
    item = PurchaseRequest("New Phone", 500, _days(20))

    calculate_purchase_dates(policy, [salary], [rent], [item], TODAY, balance=2000)

    assert item.assigned_date is not None
    assert item.failure_reason is None
    assert item.predicted_balance >= 500


def test_floor_invariant_and_incremental_minimum():
    policy = UserPolicy(rain_check_min=200, target_savings=500, search_window_months=1)
    salary = RecurringItem("Salary", 2000, _days(10))
    rent = RecurringItem("Rent", 1500, _days(5))
    requests = [
        PurchaseRequest("Couch", 900, _days(15)),
        PurchaseRequest("Lamp", 60, _days(15)),
        PurchaseRequest("Laptop", 1400, _days(40)),
        PurchaseRequest("Trip", 2500, _days(90)),
        PurchaseRequest("Watch", 300, _days(3)),
    ]
    state = build_projection(policy, [salary], [rent], requests, TODAY, 1000.0)
    schedule_into(state, requests, policy, TODAY)

    assert state.min_future == suffix_minimum(state.balances)
    scheduled = [r for r in requests if r.assigned_date is not None]
    assert scheduled
    first = min(state.index_of(r.assigned_date) for r in scheduled)
    for r in scheduled:
        assert r.predicted_balance >= policy.floor
    assert all(m >= policy.floor for m in state.min_future[first:])


def test_order_sensitivity_on_tie():
    policy = UserPolicy(rain_check_min=0)
    big = PurchaseRequest("TV", 900, _days(10))
    small = PurchaseRequest("Book", 100, _days(10))

    calculate_purchase_dates(policy, [], [], [big, small], TODAY, balance=950)

    assert small.assigned_date is not None
    assert big.assigned_date is None
    assert big.failure_reason is not None


def test_order_sensitivity_by_deadline():
    policy = UserPolicy(rain_check_min=0)
    big = PurchaseRequest("TV", 900, _days(5))
    small = PurchaseRequest("Book", 100, _days(10))

    calculate_purchase_dates(policy, [], [], [small, big], TODAY, balance=950)

    assert big.assigned_date is not None
    assert small.assigned_date is None


def test_order_pending_skips_purchased():
    a = PurchaseRequest("A", 50, _days(3))
    b = PurchaseRequest("B", 10, _days(3))
    c = PurchaseRequest("C", 5, _days(1))
    d = PurchaseRequest("D", 1, _days(0), purchased=True)
    assert [r.name for r in order_pending([a, b, c, d])] == ["C", "B", "A"]


def test_second_item_does_not_raise_first_prediction():
    policy = UserPolicy(rain_check_min=100)
    salary = RecurringItem("Salary", 1500, _days(14), frequency="biweekly")

    alone = [PurchaseRequest("Fridge", 800, _days(10))]
    calculate_purchase_dates(policy, [salary], [], alone, TODAY, balance=1000)

    both = [PurchaseRequest("Fridge", 800, _days(10)), PurchaseRequest("Mug", 50, _days(40))]
    calculate_purchase_dates(policy, [salary], [], both, TODAY, balance=1000)

    assert both[0].predicted_balance <= alone[0].predicted_balance


def test_rerun_is_idempotent():
    policy = UserPolicy(rain_check_min=250, target_savings=800)
    salary = RecurringItem("Salary", 3000, TODAY, frequency="monthly", tax_percent=15)
    rent = RecurringItem("Rent", 1200, _days(3))
    requests = [
        PurchaseRequest("Bike", 600, _days(12)),
        PurchaseRequest("Tent", 250, _days(30)),
        PurchaseRequest("Boat", 40000, _days(60)),
    ]

    calculate_purchase_dates(policy, [salary], [rent], requests, TODAY, balance=500)
    first = [(r.assigned_date, r.predicted_balance, r.failure_reason) for r in requests]
    calculate_purchase_dates(policy, [salary], [rent], requests, TODAY, balance=500)
    second = [(r.assigned_date, r.predicted_balance, r.failure_reason) for r in requests]

    assert first == second


def test_purchased_requests_left_untouched():
    done = PurchaseRequest("Lamp", 40, TODAY, purchased=True)
    outcome = Scheduled(date=TODAY, predicted_balance=960)
    done.outcome = outcome
    calculate_purchase_dates(UserPolicy(), [], [], [done], TODAY, balance=0)
    assert done.outcome is outcome


def test_stale_failure_cleared_on_success():
    req = PurchaseRequest("Chair", 100, _days(5))
    req.outcome = Failed(reason="old")
    calculate_purchase_dates(UserPolicy(), [], [], [req], TODAY, balance=1000)
    assert req.failure_reason is None
    assert req.assigned_date is not None


def test_past_desired_date_moves_to_today():
    req = PurchaseRequest("Shoes", 100, _days(-30))
    calculate_purchase_dates(UserPolicy(), [], [], [req], TODAY, balance=1000)
    assert req.assigned_date == TODAY
    assert req.predicted_balance == 900


def test_prefer_earlier_dates():
    early = PurchaseRequest("Desk", 100, _days(20))
    calculate_purchase_dates(
        UserPolicy(prioritize_earlier_dates=True), [], [], [early], TODAY, balance=1000
    )
    assert early.assigned_date == TODAY

    on_time = PurchaseRequest("Desk", 100, _days(20))
    calculate_purchase_dates(
        UserPolicy(prioritize_earlier_dates=False), [], [], [on_time], TODAY, balance=1000
    )
    assert on_time.assigned_date == _days(20)


def test_savings_goal_preference():
    bonus = RecurringItem("Bonus", 1000, _days(45), frequency="once")
    common = dict(target_savings=1000, prioritize_earlier_dates=False)

    goal = PurchaseRequest("Camera", 50, _days(25))
    calculate_purchase_dates(
        UserPolicy(prioritize_savings_goal=True, **common), [bonus], [], [goal], TODAY, balance=1000
    )
    assert goal.assigned_date == _days(45)

    no_goal = PurchaseRequest("Camera", 50, _days(25))
    calculate_purchase_dates(
        UserPolicy(prioritize_savings_goal=False, **common), [bonus], [], [no_goal], TODAY, balance=1000
    )
    assert no_goal.assigned_date == _days(25)


def test_extended_forward_search():
    policy = UserPolicy(search_window_months=1)
    windfall = RecurringItem("Windfall", 1000, _days(60), frequency="once")
    req = PurchaseRequest("Guitar", 500, _days(10))

    calculate_purchase_dates(policy, [windfall], [], [req], TODAY, balance=0)

    assert req.assigned_date == _days(60)
    assert req.predicted_balance == 500


def test_soft_rain_check_relaxes_floor():
    hard = PurchaseRequest("Grill", 300, _days(5))
    calculate_purchase_dates(
        UserPolicy(rain_check_min=500, is_rain_check_hard_constraint=True), [], [], [hard], TODAY, balance=600
    )
    assert hard.assigned_date is None

    soft = PurchaseRequest("Grill", 300, _days(5))
    calculate_purchase_dates(
        UserPolicy(rain_check_min=500, is_rain_check_hard_constraint=False), [], [], [soft], TODAY, balance=600
    )
    assert soft.assigned_date is not None


def test_failure_reports_headroom():
    req = PurchaseRequest("Sofa", 500, _days(5))
    calculate_purchase_dates(UserPolicy(rain_check_min=100), [], [], [req], TODAY, balance=400)
    assert req.outcome == Failed(
        reason=req.failure_reason, price=500, floor=100, headroom=300
    )


def test_fresh_checkpoint_excludes_todays_expense():
    rent = RecurringItem("Rent", 1000, TODAY, frequency="once")

    fresh = PurchaseRequest("Phone", 900, TODAY)
    calculate_purchase_dates(UserPolicy(), [], [rent], [fresh], TODAY, balance=1000, checkpoint=TODAY)
    assert fresh.assigned_date == TODAY

    stale = PurchaseRequest("Phone", 900, TODAY)
    calculate_purchase_dates(UserPolicy(), [], [rent], [stale], TODAY, balance=1000)
    assert stale.assigned_date is None


def test_future_dip_blocks_earlier_purchase():
    tax_bill = RecurringItem("Tax bill", 800, _days(30), frequency="once")
    req = PurchaseRequest("Console", 500, _days(5))
    calculate_purchase_dates(UserPolicy(), [], [tax_bill], [req], TODAY, balance=1000)
    assert req.assigned_date is None


def test_score_day_terms():
    policy = UserPolicy(
        target_savings=1000, prioritize_savings_goal=True, prioritize_earlier_dates=False
    )
    assert score_day(10, 10, 1050, policy) == pytest.approx(200)
    assert score_day(10, 10, 1500, policy) == pytest.approx(150)
    assert score_day(10, 10, 900, policy) == pytest.approx(100)
    assert score_day(191, 10, 900, policy) == 0
    assert score_day(400, 10, 900, policy) == 0

    flat = UserPolicy(target_savings=1000, prioritize_savings_goal=False, prioritize_earlier_dates=False)
    assert score_day(10, 10, 1500, flat) == pytest.approx(110)

    early = UserPolicy(target_savings=1000, prioritize_savings_goal=False, prioritize_earlier_dates=True)
    assert score_day(8, 10, 900, early) == pytest.approx(100 * (1 - 2 / 181) + 10 + 100)


def test_window_day_beats_better_scoring_day_outside_window():
    policy = UserPolicy(
        target_savings=1000,
        prioritize_savings_goal=True,
        prioritize_earlier_dates=False,
        search_window_months=1,
    )
    bonus = RecurringItem("Bonus", 600, _days(50), frequency="once")
    req = PurchaseRequest("Kettle", 100, _days(10))

    # Day 50 leaves exactly the savings goal, so it outscores the deadline.
    assert score_day(50, 10, 1000, policy) > score_day(10, 10, 400, policy)

    calculate_purchase_dates(policy, [bonus], [], [req], TODAY, balance=500)

    assert req.assigned_date == _days(10)
    assert req.predicted_balance == 400


def test_non_advancing_rule_does_not_stop_the_run(caplog):
    broken = RecurringItem("Broken", 100, TODAY, interval=0)
    phone = RecurringItem("Phone", 20, _days(3), frequency="once")
    chair = PurchaseRequest("Chair", 850, _days(5))
    mug = PurchaseRequest("Mug", 20, _days(40))

    with caplog.at_level(logging.WARNING):
        calculate_purchase_dates(
            UserPolicy(), [], [broken, phone], [chair, mug], TODAY, balance=1000
        )

    assert "failed to advance" in caplog.text
    assert chair.assigned_date == TODAY
    assert chair.predicted_balance == 50
    assert mug.assigned_date is not None


def test_safety_cap_truncates_rule_during_scheduling(caplog):
    policy = UserPolicy()
    gym = RecurringItem("Gym", 100, TODAY, frequency="weekly")
    req = PurchaseRequest("Bike", 750, _days(20))

    with caplog.at_level(logging.WARNING):
        state = build_projection(policy, [], [gym], [req], TODAY, 1000.0, max_iterations=2)
    assert "safety cap" in caplog.text
    assert state.balances[6] == 900
    assert state.balances[-1] == 800

    schedule_into(state, [req], policy, TODAY)
    assert req.assigned_date is not None
    assert state.balances[-1] == 50
