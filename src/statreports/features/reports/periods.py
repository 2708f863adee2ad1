"""Year/quarter periods and the closed ranges reports are requested over.

A range is turned into a :class:`PeriodPredicate`, a storage-neutral
description of which periods fall inside it. The predicate takes one of
three shapes depending on how many calendar years the range spans, which
is how the store layer builds its query conditions.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional, Union

from .exceptions import InvalidRangeError


class Quarter(IntEnum):
    Q1 = 1
    Q2 = 2
    Q3 = 3
    Q4 = 4


@dataclass(frozen=True, order=True)
class Period:
    year: int
    quarter: int

    def __post_init__(self):
        if self.quarter not in Quarter._value2member_map_:
            raise InvalidRangeError(
                f"Quarter must be between 1 and 4, got {self.quarter}",
                details={"year": self.year, "quarter": self.quarter},
            )
        # Quarter members compare equal to ints; store the plain int either way.
        object.__setattr__(self, "quarter", int(self.quarter))

    def __str__(self) -> str:
        return f"Q{self.quarter} {self.year}"


@dataclass(frozen=True)
class DataBounds:
    """Earliest and latest period present in a dataset."""

    min_period: Period
    max_period: Period


class PeriodPredicateCase(str, Enum):
    SINGLE_YEAR = "single_year"
    ADJACENT_YEARS = "adjacent_years"
    MULTI_YEAR_GAP = "multi_year_gap"


@dataclass(frozen=True)
class BoundaryYearClause:
    """``year == year AND first_quarter <= quarter <= last_quarter``."""

    year: int
    first_quarter: Quarter
    last_quarter: Quarter

    def matches(self, period: Period) -> bool:
        return period.year == self.year and self.first_quarter <= period.quarter <= self.last_quarter


@dataclass(frozen=True)
class InteriorYearsClause:
    """``after_year < year < before_year``, every quarter included."""

    after_year: int
    before_year: int

    def matches(self, period: Period) -> bool:
        return self.after_year < period.year < self.before_year


PeriodClause = Union[BoundaryYearClause, InteriorYearsClause]


@dataclass(frozen=True)
class PeriodPredicate:
    """Disjunction of clauses; a period matches if any clause does."""

    case: PeriodPredicateCase
    clauses: tuple[PeriodClause, ...]

    def matches(self, period: Period) -> bool:
        return any(clause.matches(period) for clause in self.clauses)


@dataclass(frozen=True)
class PeriodRange:
    start: Period
    end: Period

    def __post_init__(self):
        if self.start > self.end:
            raise InvalidRangeError(
                f"Range start {self.start} is after range end {self.end}",
                details={"from": str(self.start), "to": str(self.end)},
            )

    @classmethod
    def resolve(
        cls,
        bounds: Optional[DataBounds],
        *,
        from_year: Optional[int] = None,
        from_quarter: Optional[int] = None,
        to_year: Optional[int] = None,
        to_quarter: Optional[int] = None,
    ) -> "PeriodRange":
        """Builds a range from optional request bounds.

        Missing years fall back to the dataset's earliest and latest years,
        missing quarters to Q1 and Q4. The fallback uses only the year of the
        data bounds, never their quarter.

        Raises:
            InvalidRangeError: if a year is missing and the dataset is empty,
                a quarter is out of range, or the range is reversed.
        """
        if (from_year is None or to_year is None) and bounds is None:
            raise InvalidRangeError("No data is available to derive a default period range")
        if from_year is None:
            from_year = bounds.min_period.year
        if to_year is None:
            to_year = bounds.max_period.year
        start = Period(from_year, Quarter.Q1 if from_quarter is None else from_quarter)
        end = Period(to_year, Quarter.Q4 if to_quarter is None else to_quarter)
        return cls(start, end)

    @property
    def case(self) -> PeriodPredicateCase:
        span = self.end.year - self.start.year
        if span == 0:
            return PeriodPredicateCase.SINGLE_YEAR
        if span == 1:
            return PeriodPredicateCase.ADJACENT_YEARS
        return PeriodPredicateCase.MULTI_YEAR_GAP

    def predicate(self) -> PeriodPredicate:
        case = self.case
        start_q, end_q = Quarter(self.start.quarter), Quarter(self.end.quarter)
        if case is PeriodPredicateCase.SINGLE_YEAR:
            clauses: tuple[PeriodClause, ...] = (BoundaryYearClause(self.start.year, start_q, end_q),)
        else:
            clauses = (
                BoundaryYearClause(self.start.year, start_q, Quarter.Q4),
                BoundaryYearClause(self.end.year, Quarter.Q1, end_q),
            )
            if case is PeriodPredicateCase.MULTI_YEAR_GAP:
                clauses += (InteriorYearsClause(self.start.year, self.end.year),)
        return PeriodPredicate(case, clauses)

    def contains(self, period: Period) -> bool:
        return self.start <= period <= self.end

    def describe(self) -> str:
        return f"{self.start} to {self.end}"
