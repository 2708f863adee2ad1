import asyncio
from decimal import Decimal

import pytest

from ...catalog.models import Company, Dataset, Product, SeriesRecord
from ..aggregation import RawRow
from ..exceptions import UpstreamFetchError
from ..fetching import (
    Dimension,
    SeriesQuery,
    TortoiseSeriesStore,
    fetch_data_bounds,
    fetch_many,
    fetch_per_entity,
    fetch_rows,
)
from ..periods import DataBounds, Period, PeriodRange

WHOLE_2021 = PeriodRange(Period(2021, 1), Period(2021, 4)).predicate()


class FakeStore:
    """In-memory store returning canned rows per product id."""

    def __init__(self, rows_by_product=None, fail_for=None, delay=0.01):
        self.rows_by_product = rows_by_product or {}
        self.fail_for = fail_for
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0
        self.cancelled = []

    async def fetch_rows(self, query):
        [product_id] = query.product_ids
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if product_id == self.fail_for:
                raise ConnectionError("store went away")
            await asyncio.sleep(self.delay)
            return self.rows_by_product.get(product_id, [])
        except asyncio.CancelledError:
            self.cancelled.append(product_id)
            raise
        finally:
            self.in_flight -= 1

    async def min_max_period(self, dataset):
        if self.fail_for == "bounds":
            raise ConnectionError("store went away")
        return DataBounds(Period(2020, 2), Period(2022, 3))


def product_query():
    return SeriesQuery(dataset=Dataset.PRODUCTION, predicate=WHOLE_2021, entity=Dimension.PRODUCT)


def raw(entity_id, name, quarter):
    return RawRow(entity_id=entity_id, entity_name=name, period=Period(2021, quarter), amount=Decimal(quarter))


@pytest.mark.asyncio
async def test_fetch_per_entity_merges_sorted_results():
    store = FakeStore({
        1: [raw(1, "Propylene", 1), raw(1, "Propylene", 2)],
        2: [raw(2, "Ethylene", 1), raw(2, "Ethylene", 3)],
    })
    rows = await fetch_per_entity(store, product_query(), [1, 2])
    assert [(r.entity_name, r.period.quarter) for r in rows] == [
        ("Ethylene", 1), ("Ethylene", 3), ("Propylene", 1), ("Propylene", 2)
    ]


@pytest.mark.asyncio
async def test_fan_out_respects_concurrency_bound():
    store = FakeStore()
    await fetch_per_entity(store, product_query(), list(range(1, 11)), concurrency=3)
    assert store.max_in_flight == 3


@pytest.mark.asyncio
async def test_fetch_many_keeps_query_order():
    store = FakeStore({1: [raw(1, "B", 1)], 2: [raw(2, "A", 1)]})
    queries = [product_query().restricted_to(Dimension.PRODUCT, [pid]) for pid in (1, 2)]
    first, second = await fetch_many(store, queries)
    assert first[0].entity_name == "B"
    assert second[0].entity_name == "A"


@pytest.mark.asyncio
async def test_failure_cancels_siblings_and_wraps_error():
    store = FakeStore(fail_for=1, delay=1)
    with pytest.raises(UpstreamFetchError) as excinfo:
        await fetch_per_entity(store, product_query(), [1, 2, 3], concurrency=3)
    assert excinfo.value.code == "UPSTREAM_FETCH_FAILED"
    assert isinstance(excinfo.value.__cause__, ConnectionError)
    assert sorted(store.cancelled) == [2, 3]
    assert store.in_flight == 0


@pytest.mark.asyncio
async def test_cancelling_the_caller_cancels_fetches():
    store = FakeStore(delay=1)
    task = asyncio.ensure_future(fetch_per_entity(store, product_query(), [1, 2], concurrency=2))
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert sorted(store.cancelled) == [1, 2]


@pytest.mark.asyncio
async def test_data_bounds_failure_is_wrapped():
    with pytest.raises(UpstreamFetchError):
        await fetch_data_bounds(FakeStore(fail_for="bounds"), Dataset.PRODUCTION)


def test_restricted_to_dataset_dimension_is_a_no_op():
    query = product_query()
    assert query.restricted_to(Dimension.DATASET, [1]) is query
    assert query.restricted_to(Dimension.COMPANY, [4, 5]).company_ids == (4, 5)


# --- Tortoise-backed store, against the seeded catalog ---

@pytest.mark.asyncio
async def test_tortoise_store_groups_and_sorts_rows():
    polyethylene = await Product.get(name="Polyethylene")
    orlen = await Company.get(name="Orlen")
    await SeriesRecord.create(
        dataset=Dataset.PRODUCTION, product=polyethylene, company=orlen, year=2021, quarter=2, amount=None
    )

    rows = await fetch_rows(TortoiseSeriesStore(), product_query())

    assert [(r.entity_name, r.period, r.amount) for r in rows] == [
        ("Ethylene", Period(2021, 1), Decimal("150.6")),
        ("Ethylene", Period(2021, 2), Decimal(60)),
        ("Ethylene", Period(2021, 3), Decimal(120)),
        ("Polyethylene", Period(2021, 2), None),
        ("Propylene", Period(2021, 4), Decimal(80)),
    ]
    assert rows[0].entity_id == (await Product.get(name="Ethylene")).id


@pytest.mark.asyncio
async def test_tortoise_store_company_rows_carry_location():
    ethylene = await Product.get(name="Ethylene")
    query = SeriesQuery(
        dataset=Dataset.PRODUCTION, predicate=WHOLE_2021,
        entity=Dimension.COMPANY, product_ids=(ethylene.id,),
    )
    rows = await TortoiseSeriesStore().fetch_rows(query)
    assert [(r.entity_name, r.entity_location, r.period.quarter) for r in rows] == [
        ("Basell", "Wesseling", 1), ("Basell", "Wesseling", 2),
        ("Orlen", "Plock", 1), ("Orlen", "Plock", 2), ("Orlen", "Plock", 3),
    ]


@pytest.mark.asyncio
async def test_tortoise_store_nests_sub_entities():
    query = SeriesQuery(
        dataset=Dataset.OLEFINS_POLYOLEFINS, predicate=WHOLE_2021,
        entity=Dimension.PRODUCT, sub_entity=Dimension.COUNTRY,
    )
    rows = await TortoiseSeriesStore().fetch_rows(query)
    assert [(r.entity_name, r.sub_entity_name, r.period.quarter) for r in rows] == [
        ("Ethylene", "Germany", 1), ("Ethylene", "Poland", 1), ("Ethylene", "Poland", 2),
        ("Polyethylene", "Germany", 1),
    ]


@pytest.mark.asyncio
async def test_tortoise_store_data_bounds():
    store = TortoiseSeriesStore()
    assert await store.min_max_period(Dataset.PRODUCTION) == DataBounds(Period(2021, 1), Period(2022, 2))

    await SeriesRecord.filter(dataset=Dataset.TURNOVER).delete()
    assert await store.min_max_period(Dataset.TURNOVER) is None
