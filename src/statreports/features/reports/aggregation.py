"""Single-pass folding of sorted series rows into entity breakdowns.

Rows arrive sorted by ``(entity name, entity id, sub-entity name,
sub-entity id, period)`` and are consumed once, front to back. A new
:class:`EntityBreakdown` is opened each time the entity changes, and a new
child each time the sub-entity changes inside an entity. Names need not be
unique, so an entity is identified by its name and id together. Zero or
missing amounts become the "not significant" sentinel and are left out of
every total.

The fold keeps its cursor in a :class:`_FoldState` that lives only for the
duration of one :func:`aggregate` call.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from enum import Enum
from itertools import pairwise
from typing import Optional, Union

from .exceptions import UnsortedInputError
from .periods import Period

logger = logging.getLogger(__name__)

SENTINEL_TEXT = "n/s"


class NotSignificant:
    """Marker for a period whose amount is zero or was never reported."""

    _instance: Optional["NotSignificant"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return SENTINEL_TEXT

    __str__ = __repr__


NOT_SIGNIFICANT = NotSignificant()

Amount = Union[Decimal, NotSignificant]


class AmountKind(str, Enum):
    MONETARY = "monetary"  # two fractional digits, rounded half up
    TONNAGE = "tonnage"  # whole units, fraction truncated
    MEASURED_TONNAGE = "measured_tonnage"  # two fractional digits, rounded half up

    @property
    def quantum(self) -> Decimal:
        return Decimal("1") if self is AmountKind.TONNAGE else Decimal("0.01")

    @property
    def rounding(self) -> str:
        return ROUND_DOWN if self is AmountKind.TONNAGE else ROUND_HALF_UP


@dataclass(frozen=True)
class RawRow:
    entity_id: int
    entity_name: str
    period: Period
    amount: Optional[Decimal]
    entity_location: Optional[str] = None
    sub_entity_id: Optional[int] = None
    sub_entity_name: Optional[str] = None
    sub_entity_location: Optional[str] = None

    @property
    def sort_key(self) -> tuple[str, int, str, int, Period]:
        sub_entity_id = -1 if self.sub_entity_id is None else self.sub_entity_id
        return (self.entity_name, self.entity_id, self.sub_entity_name or "", sub_entity_id, self.period)

    @property
    def entity_identity(self) -> tuple[str, int]:
        return (self.entity_name, self.entity_id)

    @property
    def sub_entity_identity(self) -> tuple[str, Optional[int]]:
        return (self.sub_entity_name, self.sub_entity_id)


def period_label(period: Period) -> str:
    """Chart axis label: ``"2023/Q1"`` for first quarters, bare ``"Q2"`` otherwise.

    Only Q1 carries the year. Chart renderers consume this format verbatim.
    """
    if period.quarter == 1:
        return f"{period.year}/Q{period.quarter}"
    return f"Q{period.quarter}"


def period_key(period: Period) -> str:
    """Unambiguous ``"YYYY/Qn"`` key for totals maps."""
    return f"{period.year}/Q{period.quarter}"


@dataclass
class SeriesPoint:
    period: Period
    amount: Amount

    @property
    def label(self) -> str:
        return period_label(self.period)

    @property
    def is_significant(self) -> bool:
        return self.amount is not NOT_SIGNIFICANT


@dataclass
class EntityBreakdown:
    entity_id: int
    name: str
    location: Optional[str] = None
    points: list[SeriesPoint] = field(default_factory=list)
    yearly_totals: dict[int, Decimal] = field(default_factory=dict)
    period_totals: dict[Period, Decimal] = field(default_factory=dict)
    children: list["EntityBreakdown"] = field(default_factory=list)
    periods: set[Period] = field(default_factory=set)

    @property
    def identity(self) -> tuple[str, Optional[int]]:
        return (self.name, self.entity_id)

    def total_points(self) -> list[SeriesPoint]:
        """Per-period sums over every period seen, "n/s" where nothing counted.

        Parents of a nested breakdown carry no points of their own; this is
        the series charted for them.
        """
        return [
            SeriesPoint(period, self.period_totals.get(period, NOT_SIGNIFICANT))
            for period in sorted(self.periods)
        ]

    def _accumulate(self, period: Period, value: Decimal) -> None:
        self.yearly_totals[period.year] = self.yearly_totals.get(period.year, Decimal(0)) + value
        self.period_totals[period] = self.period_totals.get(period, Decimal(0)) + value

    def series(self) -> list["EntityBreakdown"]:
        """Breakdowns that carry points of their own, depth first."""
        found = [self] if self.points else []
        for child in self.children:
            found.extend(child.series())
        return found


@dataclass
class AggregateTotals:
    """Totals summed across every entity of one aggregation."""

    yearly: dict[int, Decimal] = field(default_factory=dict)
    per_period: dict[Period, Decimal] = field(default_factory=dict)

    def add(self, period: Period, value: Decimal) -> None:
        self.yearly[period.year] = self.yearly.get(period.year, Decimal(0)) + value
        self.per_period[period] = self.per_period.get(period, Decimal(0)) + value


def normalize_amount(amount, kind: AmountKind) -> Amount:
    """Maps a raw store amount onto the output scale.

    Zero and missing amounts become :data:`NOT_SIGNIFICANT`. Anything else,
    negative values included, is quantized to the scale of ``kind``. The
    zero test runs on the raw value, so 0.4 tonnes stays a numeric 0.
    """
    if amount is None:
        return NOT_SIGNIFICANT
    if not isinstance(amount, Decimal):
        amount = Decimal(str(amount))
    if amount == 0:
        return NOT_SIGNIFICANT
    return amount.quantize(kind.quantum, rounding=kind.rounding)


def check_sorted(rows: Sequence[RawRow]) -> None:
    """Raises :class:`UnsortedInputError` at the first out-of-order row."""
    for index, (previous, current) in enumerate(pairwise(rows), start=1):
        if current.sort_key < previous.sort_key:
            logger.critical(
                f"Unsorted series input at row {index}: {current.sort_key} after {previous.sort_key}"
            )
            raise UnsortedInputError(
                "Series rows are not sorted by entity, sub-entity and period",
                details={"row": index},
            )


@dataclass
class _FoldState:
    finished: list[EntityBreakdown] = field(default_factory=list)
    entity: Optional[EntityBreakdown] = None
    sub_entity: Optional[EntityBreakdown] = None

    def close(self) -> None:
        if self.entity is not None:
            self.finished.append(self.entity)
        self.entity = None
        self.sub_entity = None


def _step(state: _FoldState, row: RawRow, kind: AmountKind, totals: Optional[AggregateTotals]) -> None:
    if state.entity is None or state.entity.identity != row.entity_identity:
        state.close()
        state.entity = EntityBreakdown(row.entity_id, row.entity_name, row.entity_location)

    entity = state.entity
    if row.sub_entity_name is None:
        state.sub_entity = None
        target = entity
    else:
        if state.sub_entity is None or state.sub_entity.identity != row.sub_entity_identity:
            state.sub_entity = EntityBreakdown(
                row.sub_entity_id, row.sub_entity_name, row.sub_entity_location
            )
            entity.children.append(state.sub_entity)
        target = state.sub_entity

    point = SeriesPoint(row.period, normalize_amount(row.amount, kind))
    target.points.append(point)
    target.periods.add(row.period)
    entity.periods.add(row.period)

    if not point.is_significant:
        return
    target._accumulate(row.period, point.amount)
    if target is not entity:
        entity._accumulate(row.period, point.amount)
    if totals is not None:
        totals.add(row.period, point.amount)


def aggregate(
    rows: Iterable[RawRow],
    kind: AmountKind = AmountKind.TONNAGE,
    totals: Optional[AggregateTotals] = None,
) -> list[EntityBreakdown]:
    """Folds sorted rows into one breakdown per entity.

    Args:
        rows: Series rows sorted by ``RawRow.sort_key``. Order is checked
            once up front and never repaired.
        kind: Output scale for amounts.
        totals: Optional accumulator that also receives every significant
            amount, for cross-entity yearly and per-period totals.

    Returns:
        Breakdowns in input order. Entities without rows do not appear;
        an entity whose rows are all insignificant appears with empty totals.

    Raises:
        UnsortedInputError: if ``rows`` is not sorted.
    """
    rows = list(rows)
    check_sorted(rows)

    state = _FoldState()
    for row in rows:
        _step(state, row, kind, totals)
    state.close()

    logger.debug(f"Aggregated {len(rows)} rows into {len(state.finished)} breakdowns")
    return state.finished
