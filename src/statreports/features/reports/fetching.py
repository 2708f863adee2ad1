"""Fetching raw series rows from the store.

The store contract is narrow: given a :class:`SeriesQuery` it returns
:class:`RawRow` objects grouped per (entity, sub-entity, period) and sorted
the way :func:`aggregate` requires. Reports that need one query per entity
go through :func:`fetch_per_entity`, which runs the queries concurrently
under a semaphore and merges the sorted results back into one stream.
"""
from __future__ import annotations

import asyncio
import dataclasses
import heapq
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from functools import reduce
from operator import attrgetter, or_
from typing import Optional, Protocol

from tortoise.expressions import Q

from ...core.config import REPORT_FETCH_CONCURRENCY
from ..catalog.models import Dataset, SeriesRecord
from .aggregation import RawRow
from .exceptions import ReportError, UpstreamFetchError
from .periods import BoundaryYearClause, DataBounds, Period, PeriodPredicate

logger = logging.getLogger(__name__)


class Dimension(str, Enum):
    PRODUCT = "product"
    COMPANY = "company"
    COUNTRY = "country"
    DATASET = "dataset"  # the whole dataset as one entity

    @property
    def has_location(self) -> bool:
        return self is Dimension.COMPANY


@dataclass(frozen=True)
class SeriesQuery:
    dataset: Dataset
    predicate: PeriodPredicate
    entity: Dimension
    sub_entity: Optional[Dimension] = None
    product_ids: Optional[tuple[int, ...]] = None
    company_ids: Optional[tuple[int, ...]] = None
    country_ids: Optional[tuple[int, ...]] = None

    def restricted_to(self, dimension: Dimension, ids: Sequence[int]) -> "SeriesQuery":
        if dimension is Dimension.DATASET:
            return self
        return dataclasses.replace(self, **{f"{dimension.value}_ids": tuple(ids)})


class SeriesStore(Protocol):
    async def fetch_rows(self, query: SeriesQuery) -> list[RawRow]: ...

    async def min_max_period(self, dataset: Dataset) -> Optional[DataBounds]: ...


def predicate_to_q(predicate: PeriodPredicate, year_field: str = "year", quarter_field: str = "quarter") -> Q:
    """Translates a period predicate into an OR of Tortoise filters."""
    filters = []
    for clause in predicate.clauses:
        if isinstance(clause, BoundaryYearClause):
            filters.append(Q(**{
                year_field: clause.year,
                f"{quarter_field}__gte": int(clause.first_quarter),
                f"{quarter_field}__lte": int(clause.last_quarter),
            }))
        else:
            filters.append(Q(**{
                f"{year_field}__gt": clause.after_year,
                f"{year_field}__lt": clause.before_year,
            }))
    return reduce(or_, filters)


class TortoiseSeriesStore:
    """Series store backed by the ``series_records`` table."""

    def _value_fields(self, dimension: Dimension) -> list[str]:
        if dimension is Dimension.DATASET:
            return []
        fields = [f"{dimension.value}_id", f"{dimension.value}__name"]
        if dimension.has_location:
            fields.append(f"{dimension.value}__location")
        return fields

    def _identity(self, record: dict, dimension: Dimension, dataset: Dataset) -> tuple:
        if dimension is Dimension.DATASET:
            return (0, dataset.label, None)
        return (
            record[f"{dimension.value}_id"],
            record[f"{dimension.value}__name"],
            record.get(f"{dimension.value}__location"),
        )

    async def fetch_rows(self, query: SeriesQuery) -> list[RawRow]:
        queryset = SeriesRecord.filter(dataset=query.dataset).filter(predicate_to_q(query.predicate))
        if query.product_ids is not None:
            queryset = queryset.filter(product_id__in=list(query.product_ids))
        if query.company_ids is not None:
            queryset = queryset.filter(company_id__in=list(query.company_ids))
        if query.country_ids is not None:
            queryset = queryset.filter(country_id__in=list(query.country_ids))

        dimensions = [query.entity] + ([query.sub_entity] if query.sub_entity else [])
        fields = ["year", "quarter", "amount"]
        for dimension in dimensions:
            if dimension is not Dimension.DATASET:
                queryset = queryset.filter(**{f"{dimension.value}_id__isnull": False})
            fields.extend(self._value_fields(dimension))

        records = await queryset.values(*fields)

        # Sum per (entity, sub-entity, period); a group of only nulls stays null.
        grouped: dict[tuple, Optional[Decimal]] = {}
        for record in records:
            entity = self._identity(record, query.entity, query.dataset)
            sub = self._identity(record, query.sub_entity, query.dataset) if query.sub_entity else None
            key = (entity, sub, record["year"], record["quarter"])
            amount = record["amount"]
            if amount is not None and not isinstance(amount, Decimal):
                amount = Decimal(str(amount))
            if key not in grouped:
                grouped[key] = amount
            elif amount is not None:
                grouped[key] = (grouped[key] or Decimal(0)) + amount

        rows = []
        for (entity, sub, year, quarter), amount in grouped.items():
            entity_id, entity_name, entity_location = entity
            sub_id, sub_name, sub_location = sub if sub else (None, None, None)
            rows.append(RawRow(
                entity_id=entity_id,
                entity_name=entity_name,
                entity_location=entity_location,
                sub_entity_id=sub_id,
                sub_entity_name=sub_name,
                sub_entity_location=sub_location,
                period=Period(year, quarter),
                amount=amount,
            ))
        rows.sort(key=attrgetter("sort_key"))
        return rows

    async def min_max_period(self, dataset: Dataset) -> Optional[DataBounds]:
        earliest = await SeriesRecord.filter(dataset=dataset).order_by("year", "quarter").first()
        if earliest is None:
            return None
        latest = await SeriesRecord.filter(dataset=dataset).order_by("-year", "-quarter").first()
        return DataBounds(Period(earliest.year, earliest.quarter), Period(latest.year, latest.quarter))


async def fetch_rows(store: SeriesStore, query: SeriesQuery) -> list[RawRow]:
    """Runs one store query, wrapping store failures in :class:`UpstreamFetchError`."""
    try:
        return await store.fetch_rows(query)
    except ReportError:
        raise
    except Exception as e:
        logger.error(f"Series fetch failed for {query.dataset.value}: {e}", exc_info=True)
        raise UpstreamFetchError(
            "Failed to fetch series rows", details={"dataset": query.dataset.value}
        ) from e


async def fetch_data_bounds(store: SeriesStore, dataset: Dataset) -> Optional[DataBounds]:
    try:
        return await store.min_max_period(dataset)
    except ReportError:
        raise
    except Exception as e:
        logger.error(f"Data bounds lookup failed for {dataset.value}: {e}", exc_info=True)
        raise UpstreamFetchError(
            "Failed to read dataset period bounds", details={"dataset": dataset.value}
        ) from e


async def fetch_many(
    store: SeriesStore,
    queries: Sequence[SeriesQuery],
    *,
    concurrency: int = REPORT_FETCH_CONCURRENCY,
) -> list[list[RawRow]]:
    """Runs independent queries concurrently, at most ``concurrency`` at a time.

    Results come back in the order of ``queries``. If any query fails, or the
    caller is cancelled, the remaining queries are cancelled before the
    error propagates, so no partial result escapes.
    """
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def _bounded(query: SeriesQuery) -> list[RawRow]:
        async with semaphore:
            return await fetch_rows(store, query)

    tasks = [asyncio.ensure_future(_bounded(query)) for query in queries]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def fetch_per_entity(
    store: SeriesStore,
    query: SeriesQuery,
    entity_ids: Sequence[int],
    *,
    concurrency: int = REPORT_FETCH_CONCURRENCY,
) -> list[RawRow]:
    """Fans ``query`` out into one query per entity id and merges the results.

    Each store result is sorted, so a k-way merge restores the global
    ``(entity, sub-entity, period)`` order the aggregator needs.
    """
    queries = [query.restricted_to(query.entity, (entity_id,)) for entity_id in entity_ids]
    logger.debug(f"Fanning out {len(queries)} {query.dataset.value} queries, concurrency {concurrency}")
    row_sets = await fetch_many(store, queries, concurrency=concurrency)
    return list(heapq.merge(*row_sets, key=attrgetter("sort_key")))
