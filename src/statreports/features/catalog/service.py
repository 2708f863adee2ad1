import logging
from collections.abc import Iterable, Mapping
from decimal import Decimal, InvalidOperation
from typing import Optional

from tortoise.transactions import in_transaction

from ..auth.models import User as AuthUser
from ..auth.service import get_authorized_product_ids
from ..reports.fetching import TortoiseSeriesStore
from .models import Company, Country, Dataset, Product, SeriesRecord
from .schemas import (
    CatalogResponse,
    CompanyResponse,
    CountryResponse,
    DatasetSummary,
    ProductResponse,
)

logger = logging.getLogger(__name__)

SERIES_CSV_COLUMNS = ("dataset", "year", "quarter", "amount", "product", "company", "company_location", "country")


class SeriesImportError(ValueError):
    """A CSV row could not be turned into a series record."""

    def __init__(self, line: int, message: str):
        super().__init__(f"line {line}: {message}")
        self.line = line


async def get_catalog(current_user: AuthUser) -> CatalogResponse:
    """
    Lists what the user can report on.

    Products are limited to the user's authorized products, companies and
    countries are listed in full. Each dataset carries its data bounds and
    the visible products that have data in it.
    """
    authorized = await get_authorized_product_ids(current_user)
    products_query = Product.all().order_by("name")
    if authorized is not None:
        products_query = products_query.filter(id__in=list(authorized))
    products = await products_query
    visible_ids = {p.id for p in products}

    companies = await Company.all().order_by("name")
    countries = await Country.all().order_by("name")

    store = TortoiseSeriesStore()
    datasets = []
    for dataset in Dataset:
        bounds = await store.min_max_period(dataset)
        with_data = await (
            SeriesRecord.filter(dataset=dataset, product_id__isnull=False)
            .distinct()
            .values_list("product_id", flat=True)
        )
        datasets.append(DatasetSummary(
            dataset=dataset.value,
            label=dataset.label,
            first_period=str(bounds.min_period) if bounds else None,
            last_period=str(bounds.max_period) if bounds else None,
            product_ids=sorted(pid for pid in set(with_data) if pid in visible_ids),
        ))

    return CatalogResponse(
        products=[ProductResponse.model_validate(p) for p in products],
        companies=[
            CompanyResponse(
                id=c.id, public_id=c.public_id, name=c.name,
                location=c.location, display_name=c.display_name,
            )
            for c in companies
        ],
        countries=[CountryResponse.model_validate(c) for c in countries],
        datasets=datasets,
    )


def _parse_series_row(line: int, row: Mapping[str, str]) -> dict:
    try:
        dataset = Dataset((row.get("dataset") or "").strip())
    except ValueError:
        raise SeriesImportError(line, f"unknown dataset {row.get('dataset')!r}")
    try:
        year = int(row["year"])
        quarter = int(row["quarter"])
    except (KeyError, TypeError, ValueError):
        raise SeriesImportError(line, "year and quarter must be integers")
    if not 1 <= quarter <= 4:
        raise SeriesImportError(line, f"quarter must be between 1 and 4, got {quarter}")

    raw_amount = (row.get("amount") or "").strip()
    amount: Optional[Decimal] = None
    if raw_amount:
        try:
            amount = Decimal(raw_amount)
        except InvalidOperation:
            raise SeriesImportError(line, f"amount {raw_amount!r} is not a number")

    return {
        "dataset": dataset,
        "year": year,
        "quarter": quarter,
        "amount": amount,
        "product": (row.get("product") or "").strip() or None,
        "company": (row.get("company") or "").strip() or None,
        "company_location": (row.get("company_location") or "").strip() or None,
        "country": (row.get("country") or "").strip() or None,
    }


async def import_series_rows(rows: Iterable[Mapping[str, str]]) -> int:
    """
    Loads series records from CSV-style rows in a single transaction.

    Products, companies and countries are created on first sight, keyed by
    name (companies by name and location). An empty amount is stored as
    null. Any malformed row aborts the whole import.

    Returns:
        The number of series records created.
    """
    parsed = [_parse_series_row(line, row) for line, row in enumerate(rows, start=2)]

    created = 0
    async with in_transaction() as conn:
        products: dict[str, Product] = {}
        companies: dict[tuple, Company] = {}
        countries: dict[str, Country] = {}
        records = []
        for row in parsed:
            product = company = country = None
            if row["product"]:
                if row["product"] not in products:
                    products[row["product"]], _ = await Product.get_or_create(
                        name=row["product"], using_db=conn
                    )
                product = products[row["product"]]
            if row["company"]:
                key = (row["company"], row["company_location"])
                if key not in companies:
                    companies[key], _ = await Company.get_or_create(
                        name=row["company"], location=row["company_location"], using_db=conn
                    )
                company = companies[key]
            if row["country"]:
                if row["country"] not in countries:
                    countries[row["country"]], _ = await Country.get_or_create(
                        name=row["country"], using_db=conn
                    )
                country = countries[row["country"]]
            records.append(SeriesRecord(
                dataset=row["dataset"], year=row["year"], quarter=row["quarter"],
                amount=row["amount"], product=product, company=company, country=country,
            ))
        if records:
            await SeriesRecord.bulk_create(records, using_db=conn)
        created = len(records)

    logger.info(f"Imported {created} series records")
    return created
