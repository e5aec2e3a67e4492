"""Records consumed and annotated by the purchase planner.

Incomes and expenses share one shape (``RecurringItem``); the sign
convention is applied when events are generated, not when items are stored.
Purchase requests carry their per-run result as a tagged ``outcome`` so a
request can never be both scheduled and failed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, List, Optional, Union

FREQUENCIES = ("weekly", "biweekly", "monthly", "yearly", "intermittent", "once")

EVENT_TYPES = ("income", "expense", "purchase")


def to_day(value: date | datetime | str) -> date:
    """Reduce a ``date``, ``datetime`` or ISO string to a calendar day."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(value[:10], "%Y-%m-%d").date()


def _optional_day(value) -> Optional[date]:
    if value is None or value == "":
        return None
    return to_day(value)


@dataclass
class RecurringItem:
    """A recurring income or expense rule.

    ``amount`` is always entered as a positive magnitude. Expenses are
    negated and income is reduced by ``tax_percent`` when events are built.
    """

    name: str
    amount: float
    start_date: date
    frequency: str = "monthly"
    end_date: Optional[date] = None
    interval: int = 1
    intermittent_dates: List[date] = field(default_factory=list)
    tax_percent: float = 0.0
    id: Optional[str] = None

    def __post_init__(self) -> None:
        self.frequency = self.frequency.lower()
        self.start_date = to_day(self.start_date)
        self.end_date = _optional_day(self.end_date)
        self.intermittent_dates = [to_day(d) for d in self.intermittent_dates]

    @property
    def net_amount(self) -> float:
        return self.amount * (1 - self.tax_percent / 100.0)

    @property
    def monthly_amount(self) -> float:
        """Approximate monthly figure, net of tax."""

        factor = {
            "weekly": 52 / 12,
            "biweekly": 26 / 12,
            "monthly": 1.0,
            "yearly": 1 / 12,
        }.get(self.frequency, 0.0)
        return self.net_amount * factor

    @classmethod
    def from_dict(cls, data: dict) -> "RecurringItem":
        amount = data.get("amount", data.get("cost", 0))
        return cls(
            name=data.get("name", "Item"),
            amount=float(amount),
            frequency=data.get("frequency", "monthly"),
            start_date=to_day(data["start_date"]),
            end_date=_optional_day(data.get("end_date")),
            interval=int(data.get("interval", 1)),
            intermittent_dates=list(data.get("intermittent_dates", [])),
            tax_percent=float(data.get("tax_percent", 0)),
            id=data.get("id"),
        )


@dataclass
class DatedEvent:
    """A single generated cash movement. Never persisted."""

    date: date
    amount: float  # positive for income, negative for expenses and purchases
    type: str  # "income", "expense" or "purchase"
    title: str
    request: Optional["PurchaseRequest"] = None


# ---------------------------------------------------------------------------
# Scheduling outcomes


@dataclass(frozen=True)
class Unscheduled:
    pass


@dataclass(frozen=True)
class Scheduled:
    date: date
    predicted_balance: float


@dataclass(frozen=True)
class Failed:
    """No safe day was found.

    ``headroom`` is the most that could have been spent on any single day of
    the projection without crossing ``floor``.
    """

    reason: str
    price: float = 0.0
    floor: float = 0.0
    headroom: float = 0.0


Outcome = Union[Unscheduled, Scheduled, Failed]


@dataclass
class PurchaseRequest:
    """An item on the wish list and the engine's verdict for it."""

    name: str
    price: float
    desired_date: date
    purchased: bool = False
    id: Optional[str] = None
    outcome: Outcome = field(default_factory=Unscheduled)

    def __post_init__(self) -> None:
        self.desired_date = to_day(self.desired_date)

    @property
    def assigned_date(self) -> Optional[date]:
        if isinstance(self.outcome, Scheduled):
            return self.outcome.date
        return None

    @property
    def predicted_balance(self) -> Optional[float]:
        if isinstance(self.outcome, Scheduled):
            return self.outcome.predicted_balance
        return None

    @property
    def failure_reason(self) -> Optional[str]:
        if isinstance(self.outcome, Failed):
            return self.outcome.reason
        return None

    @classmethod
    def from_dict(cls, data: dict) -> "PurchaseRequest":
        return cls(
            name=data.get("name", "Purchase"),
            price=float(data["price"]),
            desired_date=to_day(data["desired_date"]),
            purchased=bool(data.get("purchased", False)),
            id=data.get("id"),
        )


@dataclass
class BalanceCheckpoint:
    """The balance was ``amount`` as of ``date``."""

    date: date
    amount: float

    def __post_init__(self) -> None:
        self.date = to_day(self.date)

    @classmethod
    def from_dict(cls, data: dict) -> "BalanceCheckpoint":
        return cls(date=to_day(data["date"]), amount=float(data["amount"]))


def _latest(checkpoints: Iterable[BalanceCheckpoint]) -> Optional[BalanceCheckpoint]:
    latest = None
    for cp in checkpoints:
        if latest is None or cp.date > latest.date:
            latest = cp
    return latest


def current_balance(checkpoints: Iterable[BalanceCheckpoint], starting_balance: float) -> float:
    """Amount of the most recent checkpoint, or ``starting_balance``."""

    latest = _latest(checkpoints)
    return latest.amount if latest is not None else starting_balance


def last_checkpoint_date(checkpoints: Iterable[BalanceCheckpoint]) -> Optional[date]:
    latest = _latest(checkpoints)
    return latest.date if latest is not None else None


@dataclass
class UserPolicy:
    """Settings that steer the projection and the purchase scoring."""

    rain_check_min: float = 0.0
    is_rain_check_hard_constraint: bool = True
    target_savings: float = 0.0
    search_window_months: int = 3
    prioritize_savings_goal: bool = True
    prioritize_earlier_dates: bool = True
    projection_horizon_months: int = 12
    starting_balance: float = 0.0

    @property
    def window_days(self) -> int:
        return self.search_window_months * 30

    @property
    def floor(self) -> float:
        if self.is_rain_check_hard_constraint:
            return max(self.rain_check_min, 0.0)
        return 0.0

    @classmethod
    def from_dict(cls, data: dict) -> "UserPolicy":
        defaults = cls()
        return cls(
            rain_check_min=float(data.get("rain_check_min", defaults.rain_check_min)),
            is_rain_check_hard_constraint=bool(
                data.get("is_rain_check_hard_constraint", defaults.is_rain_check_hard_constraint)
            ),
            target_savings=float(data.get("target_savings", defaults.target_savings)),
            search_window_months=int(
                data.get("search_window_months", defaults.search_window_months)
            ),
            prioritize_savings_goal=bool(
                data.get("prioritize_savings_goal", defaults.prioritize_savings_goal)
            ),
            prioritize_earlier_dates=bool(
                data.get("prioritize_earlier_dates", defaults.prioritize_earlier_dates)
            ),
            projection_horizon_months=int(
                data.get("projection_horizon_months", defaults.projection_horizon_months)
            ),
            starting_balance=float(data.get("starting_balance", defaults.starting_balance)),
        )
