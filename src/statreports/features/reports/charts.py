"""Projection of entity breakdowns onto chart payloads."""
from __future__ import annotations

import itertools
import random
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Protocol

from .aggregation import EntityBreakdown, SeriesPoint

DEFAULT_CHART_WIDTH = 800
DEFAULT_CHART_HEIGHT = 450
POINT_WIDTH = 40
SERIES_HEIGHT = 30
HEIGHT_PADDING = 60


class ChartShape(str, Enum):
    SINGLE_SERIES = "single_series"
    PER_ENTITY_SERIES = "per_entity_series"
    STACKED_MULTI_SERIES = "stacked_multi_series"
    NESTED_BREAKDOWN = "nested_breakdown"


@dataclass(frozen=True)
class RGB:
    r: int
    g: int
    b: int

    def css(self) -> str:
        return f"rgb({self.r},{self.g},{self.b})"


class ColorSource(Protocol):
    def next_color(self) -> RGB: ...


class RandomColorSource:
    """Pastel-ish colors, each channel drawn from its own half-open range."""

    RED = (100, 255)
    GREEN = (100, 200)
    BLUE = (100, 155)

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    def _channel(self, bounds: tuple[int, int]) -> int:
        low, high = bounds
        return self._rng.randrange(low, high)

    def next_color(self) -> RGB:
        return RGB(self._channel(self.RED), self._channel(self.GREEN), self._channel(self.BLUE))


DEFAULT_PALETTE: tuple[RGB, ...] = (
    RGB(120, 170, 140),
    RGB(200, 130, 110),
    RGB(150, 110, 150),
    RGB(240, 190, 120),
    RGB(110, 150, 130),
    RGB(180, 180, 100),
)

FINANCIAL_PALETTE: tuple[RGB, ...] = (
    RGB(0, 0, 255),  # turnover
    RGB(255, 0, 0),  # operating profit
)


class PaletteColorSource:
    """Cycles through a fixed palette; the same input always gets the same colors."""

    def __init__(self, palette: Sequence[RGB] = DEFAULT_PALETTE):
        if not palette:
            raise ValueError("Palette must contain at least one color")
        self._colors = itertools.cycle(palette)

    def next_color(self) -> RGB:
        return next(self._colors)


@dataclass
class ChartSeries:
    name: str
    color: RGB
    points: list[SeriesPoint]
    entity_id: Optional[int] = None
    location: Optional[str] = None


@dataclass
class ChartPayload:
    shape: ChartShape
    series: list[ChartSeries] = field(default_factory=list)
    breakdowns: list[EntityBreakdown] = field(default_factory=list)
    chart_width: int = DEFAULT_CHART_WIDTH
    chart_height: Optional[int] = None


def chart_width(point_counts: Sequence[int]) -> int:
    return max(DEFAULT_CHART_WIDTH, max(point_counts, default=0) * POINT_WIDTH)


def chart_height(series_count: int) -> int:
    return max(DEFAULT_CHART_HEIGHT, series_count * SERIES_HEIGHT + HEIGHT_PADDING)


def _to_series(breakdown: EntityBreakdown, colors: ColorSource) -> ChartSeries:
    return ChartSeries(
        name=breakdown.name,
        color=colors.next_color(),
        points=list(breakdown.points),
        entity_id=breakdown.entity_id,
        location=breakdown.location,
    )


def present(
    breakdowns: Sequence[EntityBreakdown],
    shape: ChartShape,
    colors: Optional[ColorSource] = None,
) -> ChartPayload:
    """Builds the chart payload for ``shape``.

    ``SINGLE_SERIES`` charts the first breakdown only. ``NESTED_BREAKDOWN``
    keeps the full tree in ``breakdowns`` and sizes the chart on its widest
    leaf. An empty input gives an empty payload at the default size.
    """
    colors = colors or PaletteColorSource()

    if shape is ChartShape.NESTED_BREAKDOWN:
        leaves = [leaf for breakdown in breakdowns for leaf in breakdown.series()]
        return ChartPayload(
            shape=shape,
            series=[_to_series(breakdown, colors) for breakdown in breakdowns],
            breakdowns=list(breakdowns),
            chart_width=chart_width([len(leaf.points) for leaf in leaves]),
        )

    selected = list(breakdowns[:1]) if shape is ChartShape.SINGLE_SERIES else list(breakdowns)
    series = [_to_series(breakdown, colors) for breakdown in selected]
    payload = ChartPayload(
        shape=shape,
        series=series,
        chart_width=chart_width([len(s.points) for s in series]),
    )
    if shape is ChartShape.STACKED_MULTI_SERIES:
        payload.chart_height = chart_height(len(series))
    return payload
