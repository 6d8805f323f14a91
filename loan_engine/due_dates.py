"""
Due-Date Sequencing

Each repayment frequency carries its own anchor type instead of one shared
integer: a day of the month, a weekday, or an interval in days. Sequencing
is pure; cycle 1 is the first due date after the loan's start date.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Union
import calendar

from .exceptions import InvalidLoanTerms


class RepaymentFrequency(Enum):
    """Repayment frequency options"""
    MONTHLY = "monthly"
    WEEKLY = "weekly"
    DAILY = "daily"


def add_months(start_date: date, months: int, day: int) -> date:
    """Add months to a date and pin the day, clamped to the month's last day"""
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    day = min(day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


@dataclass(frozen=True)
class MonthlyAnchor:
    """Installments fall on a fixed day of the month"""
    day_of_month: int

    frequency = RepaymentFrequency.MONTHLY

    def __post_init__(self):
        if not 1 <= self.day_of_month <= 31:
            raise InvalidLoanTerms(f"Day of month must be 1-31, got {self.day_of_month}")

    @property
    def anchor_day(self) -> int:
        return self.day_of_month

    def due_date(self, start_date: date, cycle_index: int) -> date:
        return add_months(start_date, cycle_index, self.day_of_month)


@dataclass(frozen=True)
class WeeklyAnchor:
    """Installments fall on a weekday (0=Monday .. 6=Sunday)"""
    weekday: int

    frequency = RepaymentFrequency.WEEKLY

    def __post_init__(self):
        if not 0 <= self.weekday <= 6:
            raise InvalidLoanTerms(f"Weekday must be 0-6 (Monday-Sunday), got {self.weekday}")

    @property
    def anchor_day(self) -> int:
        """Weekday in the legacy numbering (0=Sunday .. 6=Saturday)"""
        return (self.weekday + 1) % 7

    def first_occurrence(self, start_date: date) -> date:
        """First matching weekday strictly after start_date"""
        days_ahead = (self.weekday - start_date.weekday()) % 7 or 7
        return start_date + timedelta(days=days_ahead)

    def due_date(self, start_date: date, cycle_index: int) -> date:
        return self.first_occurrence(start_date) + timedelta(weeks=cycle_index - 1)


@dataclass(frozen=True)
class DailyAnchor:
    """Installments fall every ``interval_days`` days"""
    interval_days: int

    frequency = RepaymentFrequency.DAILY

    def __post_init__(self):
        if self.interval_days < 1:
            raise InvalidLoanTerms(f"Daily interval must be at least 1 day, got {self.interval_days}")

    @property
    def anchor_day(self) -> int:
        return self.interval_days

    def due_date(self, start_date: date, cycle_index: int) -> date:
        return start_date + timedelta(days=cycle_index * self.interval_days)


RepaymentAnchor = Union[MonthlyAnchor, WeeklyAnchor, DailyAnchor]

_ANCHOR_TYPES = {
    RepaymentFrequency.MONTHLY: MonthlyAnchor,
    RepaymentFrequency.DAILY: DailyAnchor,
}


def anchor_from_frequency(frequency: Union[RepaymentFrequency, str], anchor_day: int) -> RepaymentAnchor:
    """
    Build the anchor for a (frequency, anchor_day) pair

    ``anchor_day`` means day-of-month for monthly loans, weekday for weekly
    loans (0=Sunday .. 6=Saturday, converted to Python's 0=Monday) and the
    interval in days for daily loans.

    Raises:
        InvalidLoanTerms: If the frequency is unknown or anchor_day is out of range
    """
    try:
        frequency = RepaymentFrequency(frequency)
    except ValueError:
        raise InvalidLoanTerms(f"Unknown repayment frequency: {frequency}")
    if isinstance(anchor_day, bool) or not isinstance(anchor_day, int):
        raise InvalidLoanTerms(f"Anchor day must be an integer, got {anchor_day!r}")
    if frequency is RepaymentFrequency.WEEKLY:
        if not 0 <= anchor_day <= 6:
            raise InvalidLoanTerms(f"Weekday must be 0-6 (Sunday-Saturday), got {anchor_day}")
        return WeeklyAnchor((anchor_day - 1) % 7)
    return _ANCHOR_TYPES[frequency](anchor_day)


def due_date(start_date: date, anchor: RepaymentAnchor, cycle_index: int) -> date:
    """
    Due date of the ``cycle_index``-th installment (1-based)

    Raises:
        InvalidLoanTerms: If cycle_index is below 1
    """
    if cycle_index < 1:
        raise InvalidLoanTerms(f"Cycle index is 1-based, got {cycle_index}")
    return anchor.due_date(start_date, cycle_index)
