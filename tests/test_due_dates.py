"""
Test suite for due-date sequencing

Each anchor type is exercised on its own: day of month, weekday and
interval in days.
"""

import pytest
from datetime import date

from loan_engine.due_dates import (
    DailyAnchor, MonthlyAnchor, RepaymentFrequency, WeeklyAnchor,
    add_months, anchor_from_frequency, due_date
)
from loan_engine.exceptions import InvalidLoanTerms


START = date(2024, 1, 15)  # A Monday


class TestMonthlyAnchor:

    def test_first_cycle_is_next_month(self):
        assert due_date(START, MonthlyAnchor(5), 1) == date(2024, 2, 5)
        assert due_date(START, MonthlyAnchor(5), 2) == date(2024, 3, 5)

    def test_anchor_after_start_day(self):
        assert due_date(START, MonthlyAnchor(20), 1) == date(2024, 2, 20)

    def test_clamped_to_month_end(self):
        anchor = MonthlyAnchor(31)
        assert due_date(START, anchor, 1) == date(2024, 2, 29)  # Leap year
        assert due_date(START, anchor, 2) == date(2024, 3, 31)
        assert due_date(START, anchor, 3) == date(2024, 4, 30)
        assert due_date(date(2023, 1, 15), anchor, 1) == date(2023, 2, 28)

    def test_year_rollover(self):
        assert due_date(date(2023, 12, 10), MonthlyAnchor(5), 1) == date(2024, 1, 5)
        assert due_date(date(2023, 12, 10), MonthlyAnchor(5), 13) == date(2025, 1, 5)

    @pytest.mark.parametrize("day", [0, 32])
    def test_invalid_day(self, day):
        with pytest.raises(InvalidLoanTerms):
            MonthlyAnchor(day)

    def test_frequency(self):
        assert MonthlyAnchor(5).frequency == RepaymentFrequency.MONTHLY


class TestWeeklyAnchor:

    def test_first_occurrence_after_start(self):
        friday = WeeklyAnchor(4)
        assert due_date(START, friday, 1) == date(2024, 1, 19)
        assert due_date(START, friday, 2) == date(2024, 1, 26)
        assert due_date(START, friday, 5) == date(2024, 2, 16)

    def test_same_weekday_as_start_moves_a_full_week(self):
        monday = WeeklyAnchor(0)
        assert due_date(START, monday, 1) == date(2024, 1, 22)

    def test_sunday(self):
        assert due_date(START, WeeklyAnchor(6), 1) == date(2024, 1, 21)

    @pytest.mark.parametrize("weekday", [-1, 7])
    def test_invalid_weekday(self, weekday):
        with pytest.raises(InvalidLoanTerms):
            WeeklyAnchor(weekday)


class TestDailyAnchor:

    def test_interval_days(self):
        every_three = DailyAnchor(3)
        assert due_date(START, every_three, 1) == date(2024, 1, 18)
        assert due_date(START, every_three, 2) == date(2024, 1, 21)

    def test_every_day(self):
        assert due_date(START, DailyAnchor(1), 20) == date(2024, 2, 4)

    def test_invalid_interval(self):
        with pytest.raises(InvalidLoanTerms):
            DailyAnchor(0)


class TestSequencing:

    def test_cycle_index_is_one_based(self):
        with pytest.raises(InvalidLoanTerms, match="1-based"):
            due_date(START, MonthlyAnchor(5), 0)

    def test_dates_strictly_increase(self):
        for anchor in (MonthlyAnchor(31), WeeklyAnchor(2), DailyAnchor(2)):
            dates = [due_date(START, anchor, i) for i in range(1, 25)]
            assert all(a < b for a, b in zip(dates, dates[1:]))
            assert dates[0] > START

    def test_add_months_clamps(self):
        assert add_months(date(2024, 1, 31), 1, 31) == date(2024, 2, 29)


class TestAnchorFromFrequency:

    def test_builds_matching_variant(self):
        assert anchor_from_frequency("monthly", 5) == MonthlyAnchor(5)
        assert anchor_from_frequency("weekly", 5) == WeeklyAnchor(4)
        assert anchor_from_frequency(RepaymentFrequency.DAILY, 7) == DailyAnchor(7)

    def test_anchor_day_round_trips(self):
        for frequency, day in (("monthly", 28), ("weekly", 3), ("daily", 10)):
            anchor = anchor_from_frequency(frequency, day)
            assert anchor.anchor_day == day
            assert anchor.frequency.value == frequency

    @pytest.mark.parametrize("anchor_day,first_due", [
        (0, date(2024, 1, 21)),  # Sunday
        (1, date(2024, 1, 22)),  # Monday, same as start
        (4, date(2024, 1, 18)),  # Thursday
        (6, date(2024, 1, 20)),  # Saturday
    ])
    def test_weekly_anchor_day_counts_from_sunday(self, anchor_day, first_due):
        anchor = anchor_from_frequency("weekly", anchor_day)
        assert due_date(START, anchor, 1) == first_due
        assert anchor.anchor_day == anchor_day

    def test_unknown_frequency(self):
        with pytest.raises(InvalidLoanTerms, match="frequency"):
            anchor_from_frequency("fortnightly", 1)

    def test_range_checked_per_frequency(self):
        # 10 is a valid day of month and interval but not a weekday
        anchor_from_frequency("monthly", 10)
        anchor_from_frequency("daily", 10)
        with pytest.raises(InvalidLoanTerms):
            anchor_from_frequency("weekly", 10)
