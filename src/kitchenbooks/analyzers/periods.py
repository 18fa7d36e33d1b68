"""
Period Resolver — turns named periods into concrete date ranges.

Named periods (``today``, ``week``, ``month``, ``quarter``, ``year``,
``ytd``) start at the first day of the calendar unit containing the anchor
date and run through today, unless the whole unit is already in the past,
in which case they run through the unit's last day. ``custom`` takes
explicit bounds.

A comparison period is either the equal-length range immediately before the
primary one, or the same dates a year earlier.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum

from kitchenbooks.exceptions import InvalidPeriod
from kitchenbooks.models.ledger import Period

logger = logging.getLogger("kitchenbooks.analyzers.periods")


class PeriodName(str, Enum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"
    YTD = "ytd"
    CUSTOM = "custom"


class CompareMode(str, Enum):
    PREVIOUS_PERIOD = "previous_period"
    PREVIOUS_YEAR = "previous_year"


# IRS estimated-tax quarters: (start month, end month, due month, due day, due year offset)
_TAX_QUARTERS = (
    (1, 3, 4, 15, 0),
    (4, 6, 6, 15, 0),
    (7, 9, 9, 15, 0),
    (10, 12, 1, 15, 1),
)


@dataclass(frozen=True)
class ResolvedPeriod:
    """A primary period and, when requested, its comparison period."""

    name: PeriodName
    period: Period
    comparison: Period | None = None


@dataclass(frozen=True)
class TaxQuarter:
    quarter: int
    period: Period
    due_date: date


def _month_end(year: int, month: int) -> date:
    if month == 12:
        return date(year, 12, 31)
    return date(year, month + 1, 1) - timedelta(days=1)


def _shift_year(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year + years)
    except ValueError:  # Feb 29 in a non-leap year
        return day.replace(year=day.year + years, day=28)


def year_period(year: int) -> Period:
    return Period(start=date(year, 1, 1), end=date(year, 12, 31))


def month_period(year: int, month: int) -> Period:
    if not 1 <= month <= 12:
        raise InvalidPeriod(f"Month must be 1-12, got {month}")
    return Period(start=date(year, month, 1), end=_month_end(year, month))


def quarters_of(year: int) -> list[TaxQuarter]:
    """The four IRS-aligned estimated-tax quarters of a year."""
    quarters = []
    for i, (first, last, due_month, due_day, offset) in enumerate(_TAX_QUARTERS, start=1):
        quarters.append(
            TaxQuarter(
                quarter=i,
                period=Period(start=date(year, first, 1), end=_month_end(year, last)),
                due_date=date(year + offset, due_month, due_day),
            )
        )
    return quarters


class PeriodResolver:
    """Resolve period names against a fixed "today".

    Usage::

        resolver = PeriodResolver(today=date(2025, 5, 14))
        resolved = resolver.resolve("month", compare=True)
        resolved.period       # 2025-05-01..2025-05-14
        resolved.comparison   # 2025-04-17..2025-04-30
    """

    def __init__(self, *, today: date | None = None, week_start: int = 6) -> None:
        # week_start uses date.weekday() numbering: Monday=0 ... Sunday=6
        self._today = today
        self.week_start = week_start

    @property
    def today(self) -> date:
        return self._today or date.today()

    def resolve(
        self,
        name: PeriodName | str,
        *,
        start: date | str | None = None,
        end: date | str | None = None,
        compare: CompareMode | str | bool | None = None,
        anchor: date | None = None,
    ) -> ResolvedPeriod:
        """Resolve a named or custom period.

        Args:
            name: One of today, week, month, quarter, year, ytd, custom.
            start: Custom period start (required for ``custom``).
            end: Custom period end (required for ``custom``).
            compare: ``True`` or ``"previous_period"`` for the preceding
                equal-length range, ``"previous_year"`` for the same dates a
                year earlier.
            anchor: Date whose calendar unit is wanted (default today).

        Raises:
            InvalidPeriod: Unknown name, missing/malformed custom bounds, or an
                end date before the start date.
        """
        try:
            period_name = PeriodName(str(name.value if isinstance(name, PeriodName) else name).lower())
        except ValueError as e:
            raise InvalidPeriod(f"Unknown period: {name!r}") from e

        if period_name == PeriodName.CUSTOM:
            if start is None or end is None:
                raise InvalidPeriod("Custom periods need both start and end dates")
            period = Period.between(start, end)
        else:
            period = self._named(period_name, anchor or self.today)

        comparison = self.comparison_for(period, compare) if compare else None
        logger.debug("Resolved %s to %s (comparison %s)", period_name.value, period, comparison)
        return ResolvedPeriod(name=period_name, period=period, comparison=comparison)

    def comparison_for(self, period: Period, mode: CompareMode | str | bool = True) -> Period:
        """Comparison range for ``period``."""
        if mode is True:
            mode = CompareMode.PREVIOUS_PERIOD
        try:
            mode = CompareMode(mode)
        except ValueError as e:
            raise InvalidPeriod(f"Unknown comparison mode: {mode!r}") from e

        if mode == CompareMode.PREVIOUS_YEAR:
            return Period(start=_shift_year(period.start, -1), end=_shift_year(period.end, -1))
        return period.preceding()

    def _named(self, name: PeriodName, anchor: date) -> Period:
        today = self.today
        if name == PeriodName.TODAY:
            return Period(start=anchor, end=anchor)

        if name == PeriodName.WEEK:
            start = anchor - timedelta(days=(anchor.weekday() - self.week_start) % 7)
            unit_end = start + timedelta(days=6)
        elif name == PeriodName.MONTH:
            start = anchor.replace(day=1)
            unit_end = _month_end(anchor.year, anchor.month)
        elif name == PeriodName.QUARTER:
            first_month = (anchor.month - 1) // 3 * 3 + 1
            start = date(anchor.year, first_month, 1)
            unit_end = _month_end(anchor.year, first_month + 2)
        elif name == PeriodName.YEAR:
            start = date(anchor.year, 1, 1)
            unit_end = date(anchor.year, 12, 31)
        else:  # YTD is always anchored at today
            return Period(start=date(today.year, 1, 1), end=today)

        if unit_end < today:
            return Period(start=start, end=unit_end)
        if start > today:
            raise InvalidPeriod(f"{name.value} starting {start} is in the future")
        return Period(start=start, end=today)
