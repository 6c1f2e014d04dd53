"""Payout week assignment.

A payout week runs from Saturday 00:00:00 to the following Friday
23:59:59.999999, computed in UTC. Weeks are numbered per calendar year of
their Saturday: the week starting on the first Saturday of the year is
week 1, and numbering restarts every year.

An order's (week, year) is computed once, when the order is marked paid,
and stored on the order. Reports must read the stored value instead of
calling these functions again for orders that are already paid.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional

from ..common.datetime_utils import now_utc, to_utc_naive
from ..core.constants import DAYS_PER_WEEK, PAYOUT_WEEK_START_WEEKDAY
from ..core.exceptions import ValidationError

_ONE_WEEK = timedelta(days=DAYS_PER_WEEK)
_LAST_INSTANT = timedelta(microseconds=1)


def _week_start_date(day: date) -> date:
    offset = (day.weekday() - PAYOUT_WEEK_START_WEEKDAY) % DAYS_PER_WEEK
    return day - timedelta(days=offset)


def _first_week_start(year: int) -> date:
    jan1 = date(year, 1, 1)
    return jan1 + timedelta(days=(PAYOUT_WEEK_START_WEEKDAY - jan1.weekday()) % DAYS_PER_WEEK)


@dataclass(frozen=True, order=True)
class PayoutWeek:
    """Immutable (year, week) identifier; orders chronologically."""

    year: int
    week: int

    @classmethod
    def from_start(cls, start: date) -> "PayoutWeek":
        return cls(year=start.year, week=(start - _first_week_start(start.year)).days // DAYS_PER_WEEK + 1)

    @property
    def start_date(self) -> date:
        start = _first_week_start(self.year) + (self.week - 1) * _ONE_WEEK
        if self.week < 1 or start.year != self.year:
            raise ValidationError(f"Week {self.week} does not exist in {self.year}")
        return start

    @property
    def start(self) -> datetime:
        return datetime.combine(self.start_date, time.min)

    @property
    def end(self) -> datetime:
        return self.start + _ONE_WEEK - _LAST_INSTANT

    @property
    def end_date(self) -> date:
        return self.start_date + timedelta(days=DAYS_PER_WEEK - 1)

    def contains(self, moment: datetime) -> bool:
        return self.start <= to_utc_naive(moment) <= self.end

    def next(self) -> "PayoutWeek":
        return PayoutWeek.from_start(self.start_date + _ONE_WEEK)

    def previous(self) -> "PayoutWeek":
        return PayoutWeek.from_start(self.start_date - _ONE_WEEK)

    @property
    def label(self) -> str:
        return f"Week {self.week} ({self.start_date:%d/%m} - {self.end_date:%d/%m})"


def get_payout_week_start(timestamp: datetime) -> datetime:
    """Saturday 00:00 UTC of the payout week containing timestamp."""
    moment = to_utc_naive(timestamp)
    return datetime.combine(_week_start_date(moment.date()), time.min)


def payout_week_for(timestamp: datetime) -> PayoutWeek:
    return PayoutWeek.from_start(get_payout_week_start(timestamp).date())


def get_current_payout_week(now: Optional[datetime] = None) -> PayoutWeek:
    return payout_week_for(now or now_utc())


def get_payout_week_range(week: int, year: int) -> tuple[datetime, datetime]:
    payout_week = PayoutWeek(year=int(year), week=int(week))
    return payout_week.start, payout_week.end


def week_for_start_date(week_start: date) -> PayoutWeek:
    """Week whose Saturday is week_start (any day of the week is accepted)."""
    return PayoutWeek.from_start(_week_start_date(week_start))


def resolve_week(week=None, year=None, *, now: Optional[datetime] = None) -> PayoutWeek:
    """Week named by a request, or the current one when it names none."""
    if week in (None, "") and year in (None, ""):
        return get_current_payout_week(now)
    try:
        payout_week = PayoutWeek(year=int(year), week=int(week))
    except (TypeError, ValueError):
        raise ValidationError("Both week and year must be whole numbers")
    return PayoutWeek.from_start(payout_week.start_date)
