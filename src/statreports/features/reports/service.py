"""
Reports Service Module

This module generates the statistical report payloads. Every report follows
the same pipeline:

1. resolve the requested period range against the dataset's data bounds,
2. resolve the product/company selection against the user's authorization,
3. fetch sorted series rows from the store, fanned out per entity where the
   report is built one entity at a time,
4. fold the rows into entity breakdowns with :func:`aggregate`,
5. project the breakdowns onto the chart shape the front-end expects.
"""

import logging
from decimal import Decimal
from typing import Optional

from ..auth.models import User as AuthUser
from ..auth.service import get_authorized_product_ids
from ..catalog.models import Company, Dataset, Product
from .aggregation import (
    NOT_SIGNIFICANT,
    AggregateTotals,
    AmountKind,
    EntityBreakdown,
    SENTINEL_TEXT,
    SeriesPoint,
    aggregate,
    period_key,
)
from .charts import FINANCIAL_PALETTE, ChartShape, ColorSource, PaletteColorSource, present
from .fetching import (
    Dimension,
    SeriesQuery,
    SeriesStore,
    TortoiseSeriesStore,
    fetch_data_bounds,
    fetch_many,
    fetch_per_entity,
)
from .periods import PeriodRange
from .schemas import (
    ChartPoint,
    CompanyComparisonChartResponse,
    CompanyFinancialBreakdown,
    CompanySales,
    CompanySeries,
    CountryBreakdown,
    FinancialBreakdownResponse,
    FinancialChartResponse,
    FinancialYearlyTotals,
    NamedSeries,
    OlefinsPolyolefinsResponse,
    PeriodParams,
    PolishChemicalsResponse,
    ProductCountryBreakdown,
    ProductPeriodData,
    ProductQuarterlySummary,
    ProductSales,
    ProductSeries,
    ProductTrendChartResponse,
    ProductionSummary,
    ProductsByCompanyChartResponse,
    QuarterAmount,
    RussianDomesticSalesResponse,
)
from .selection import AllEntities, EntitySelection, resolve_selection

logger = logging.getLogger(__name__)

QUARTER_AXIS_TITLE = "Quarter"
TONNAGE_AXIS_TITLE = "Kilo Tons"
ALL_COMPANIES_FINANCIAL_TITLE = "Summary Turnover in $ million"


# --- Shared helpers ---

def _json_amount(amount):
    if amount is NOT_SIGNIFICANT:
        return SENTINEL_TEXT
    if amount == amount.to_integral_value():
        return int(amount)
    return float(amount)


def _chart_points(points: list[SeriesPoint]) -> list[ChartPoint]:
    return [ChartPoint(period=p.label, amount=_json_amount(p.amount)) for p in points]


def _quarter_amounts(points: list[SeriesPoint]) -> list[QuarterAmount]:
    return [
        QuarterAmount(year=p.period.year, quarter=f"Q{p.period.quarter}", amount=_json_amount(p.amount))
        for p in points
    ]


def _yearly(totals: dict[int, Decimal]) -> dict[int, float]:
    return {year: float(value) for year, value in sorted(totals.items())}


async def _resolve_range(store: SeriesStore, dataset: Dataset, period: PeriodParams) -> PeriodRange:
    bounds = await fetch_data_bounds(store, dataset)
    period_range = PeriodRange.resolve(
        bounds,
        from_year=period.from_year,
        from_quarter=period.from_quarter,
        to_year=period.to_year,
        to_quarter=period.to_quarter,
    )
    logger.debug(f"{dataset.value}: range {period_range.describe()} ({period_range.case.value})")
    return period_range


async def _product_ids(current_user: AuthUser, selection: EntitySelection) -> list[int]:
    universe = await Product.all().order_by("name").values_list("id", flat=True)
    authorized = await get_authorized_product_ids(current_user)
    return resolve_selection(selection, universe, authorized)


async def _company_ids(selection: EntitySelection) -> list[int]:
    universe = await Company.all().order_by("name").values_list("id", flat=True)
    return resolve_selection(selection, universe)


async def _company_title(company_ids: list[int]) -> str:
    companies = {c.id: c for c in await Company.filter(id__in=company_ids)}
    return " / ".join(companies[cid].display_name for cid in dict.fromkeys(company_ids) if cid in companies)


async def _product_name(product_id: int) -> Optional[str]:
    product = await Product.get_or_none(id=product_id)
    return product.name if product else None


# --- Production charts ---

async def generate_products_by_company_report(
    current_user: AuthUser,
    period: PeriodParams,
    products: EntitySelection,
    companies: EntitySelection,
    store: Optional[SeriesStore] = None,
    colors: Optional[ColorSource] = None,
) -> ProductsByCompanyChartResponse:
    """
    Generates the production chart of several products at the selected companies.

    One store query is issued per product, concurrently, each summing the
    product's production over the selected companies per quarter.

    Args:
        current_user: The authenticated user requesting the report
        period: Requested period bounds; missing bounds fall back to the data
        products: Product selection, intersected with the user's authorized products
        companies: Company selection
        store: Series store, the database-backed store by default
        colors: Color source for the series, a fixed palette by default

    Returns:
        ProductsByCompanyChartResponse: one series per product that has data
    """
    store = store or TortoiseSeriesStore()
    company_ids = await _company_ids(companies)
    product_ids = await _product_ids(current_user, products)
    period_range = await _resolve_range(store, Dataset.PRODUCTION, period)

    query = SeriesQuery(
        dataset=Dataset.PRODUCTION,
        predicate=period_range.predicate(),
        entity=Dimension.PRODUCT,
        company_ids=tuple(company_ids),
    )
    rows = await fetch_per_entity(store, query, product_ids)
    payload = present(aggregate(rows, AmountKind.TONNAGE), ChartShape.PER_ENTITY_SERIES, colors)

    return ProductsByCompanyChartResponse(
        title=await _company_title(company_ids),
        x_axis_title=QUARTER_AXIS_TITLE,
        y_axis_title=TONNAGE_AXIS_TITLE,
        chart_width=payload.chart_width,
        products=[
            ProductSeries(product_name=s.name, data=_chart_points(s.points), color=s.color.css())
            for s in payload.series
        ],
    )


async def generate_product_trend_report(
    current_user: AuthUser,
    period: PeriodParams,
    products: EntitySelection,
    companies: EntitySelection,
    store: Optional[SeriesStore] = None,
    colors: Optional[ColorSource] = None,
) -> ProductTrendChartResponse:
    """
    Generates the production trend of a single product summed over companies.

    Only the first product of the resolved selection is charted.
    """
    store = store or TortoiseSeriesStore()
    product_id = (await _product_ids(current_user, products))[0]
    company_ids = await _company_ids(companies)
    period_range = await _resolve_range(store, Dataset.PRODUCTION, period)

    query = SeriesQuery(
        dataset=Dataset.PRODUCTION,
        predicate=period_range.predicate(),
        entity=Dimension.PRODUCT,
        product_ids=(product_id,),
        company_ids=tuple(company_ids),
    )
    [rows] = await fetch_many(store, [query])
    payload = present(aggregate(rows, AmountKind.TONNAGE), ChartShape.SINGLE_SERIES, colors)

    chart_data = None
    if payload.series:
        series = payload.series[0]
        chart_data = ProductSeries(
            product_name=series.name, data=_chart_points(series.points), color=series.color.css()
        )
    return ProductTrendChartResponse(
        title=await _product_name(product_id),
        x_axis_title=QUARTER_AXIS_TITLE,
        y_axis_title=TONNAGE_AXIS_TITLE,
        chart_width=payload.chart_width,
        chart_data=chart_data,
    )


async def generate_company_comparison_report(
    current_user: AuthUser,
    period: PeriodParams,
    products: EntitySelection,
    companies: EntitySelection,
    store: Optional[SeriesStore] = None,
    colors: Optional[ColorSource] = None,
) -> CompanyComparisonChartResponse:
    """
    Generates the stacked production chart of one product, one series per company.

    Companies are fetched concurrently, one query each. The chart height
    grows with the number of companies that reported data.
    """
    store = store or TortoiseSeriesStore()
    product_id = (await _product_ids(current_user, products))[0]
    company_ids = await _company_ids(companies)
    period_range = await _resolve_range(store, Dataset.PRODUCTION, period)

    query = SeriesQuery(
        dataset=Dataset.PRODUCTION,
        predicate=period_range.predicate(),
        entity=Dimension.COMPANY,
        product_ids=(product_id,),
    )
    rows = await fetch_per_entity(store, query, company_ids)
    payload = present(aggregate(rows, AmountKind.TONNAGE), ChartShape.STACKED_MULTI_SERIES, colors)

    return CompanyComparisonChartResponse(
        title=await _product_name(product_id),
        x_axis_title=QUARTER_AXIS_TITLE,
        y_axis_title=TONNAGE_AXIS_TITLE,
        chart_width=payload.chart_width,
        chart_height=payload.chart_height,
        companies=[
            CompanySeries(
                company_name=s.name,
                company_location=s.location,
                data=_chart_points(s.points),
                color=s.color.css(),
            )
            for s in payload.series
        ],
    )


# --- Financial reports ---

async def generate_financial_chart_report(
    current_user: AuthUser,
    period: PeriodParams,
    companies: EntitySelection,
    store: Optional[SeriesStore] = None,
) -> FinancialChartResponse:
    """
    Generates the turnover and operating profit series summed over the selected companies.

    Turnover is always blue and operating profit always red. A series with
    no data is left out.
    """
    store = store or TortoiseSeriesStore()
    company_ids = await _company_ids(companies)
    period_range = await _resolve_range(store, Dataset.TURNOVER, period)
    predicate = period_range.predicate()

    datasets = (Dataset.TURNOVER, Dataset.OPERATING_PROFIT)
    row_sets = await fetch_many(store, [
        SeriesQuery(dataset=d, predicate=predicate, entity=Dimension.DATASET, company_ids=tuple(company_ids))
        for d in datasets
    ])

    breakdowns: list[EntityBreakdown] = []
    palette = []
    for color, rows in zip(FINANCIAL_PALETTE, row_sets):
        found = aggregate(rows, AmountKind.MONETARY)
        breakdowns.extend(found)
        palette.extend([color] * len(found))

    payload = present(breakdowns, ChartShape.PER_ENTITY_SERIES, PaletteColorSource(palette) if palette else None)
    if isinstance(companies, AllEntities):
        title = ALL_COMPANIES_FINANCIAL_TITLE
    else:
        title = await _company_title(company_ids)

    return FinancialChartResponse(
        title=title,
        chart_width=payload.chart_width,
        series=[
            NamedSeries(name=s.name, data=_chart_points(s.points), color=s.color.css())
            for s in payload.series
        ],
    )


async def generate_financial_breakdown_report(
    current_user: AuthUser,
    period: PeriodParams,
    companies: EntitySelection,
    store: Optional[SeriesStore] = None,
) -> FinancialBreakdownResponse:
    """
    Generates quarterly turnover and operating profit per company with yearly totals.

    Args:
        current_user: The authenticated user requesting the report
        period: Requested period bounds
        companies: Company selection
        store: Series store, the database-backed store by default

    Returns:
        FinancialBreakdownResponse: An object containing:
            - company_breakdowns: one entry per company with any financial data,
              ordered by company name
            - aggregate_totals: yearly turnover and operating profit summed over
              all companies
            - period: human readable range, e.g. "Q1 2021 to Q4 2023"

    Note:
        Amounts are monetary, rounded to two decimals. Zero or missing
        quarters are reported as "n/s" and do not count towards totals.
    """
    store = store or TortoiseSeriesStore()
    company_ids = await _company_ids(companies)
    period_range = await _resolve_range(store, Dataset.TURNOVER, period)
    predicate = period_range.predicate()

    turnover_rows, profit_rows = await fetch_many(store, [
        SeriesQuery(dataset=d, predicate=predicate, entity=Dimension.COMPANY, company_ids=tuple(company_ids))
        for d in (Dataset.TURNOVER, Dataset.OPERATING_PROFIT)
    ])
    turnover_totals, profit_totals = AggregateTotals(), AggregateTotals()
    turnover = {b.entity_id: b for b in aggregate(turnover_rows, AmountKind.MONETARY, turnover_totals)}
    profit = {b.entity_id: b for b in aggregate(profit_rows, AmountKind.MONETARY, profit_totals)}

    merged = {**profit, **turnover}
    ordered = sorted(merged.values(), key=lambda b: (b.name, b.entity_id))

    company_breakdowns = []
    for company in ordered:
        company_turnover = turnover.get(company.entity_id)
        company_profit = profit.get(company.entity_id)
        company_breakdowns.append(CompanyFinancialBreakdown(
            company_id=company.entity_id,
            company_name=company.name,
            location=company.location,
            quarterly_turnover=_quarter_amounts(company_turnover.points) if company_turnover else [],
            quarterly_operating_profit=_quarter_amounts(company_profit.points) if company_profit else [],
            yearly_totals=FinancialYearlyTotals(
                turnover=_yearly(company_turnover.yearly_totals) if company_turnover else {},
                operating_profit=_yearly(company_profit.yearly_totals) if company_profit else {},
            ),
        ))

    return FinancialBreakdownResponse(
        title="Financial Performance Report",
        period=period_range.describe(),
        company_breakdowns=company_breakdowns,
        aggregate_totals=FinancialYearlyTotals(
            turnover=_yearly(turnover_totals.yearly),
            operating_profit=_yearly(profit_totals.yearly),
        ),
    )


# --- Regional production reports ---

async def generate_olefins_polyolefins_report(
    current_user: AuthUser,
    period: PeriodParams,
    products: EntitySelection,
    include_country_breakdown: bool = True,
    store: Optional[SeriesStore] = None,
) -> OlefinsPolyolefinsResponse:
    """
    Generates the Central European olefins & polyolefins production report.

    The summary sums each product over all countries; the optional country
    breakdown nests countries under each product. Both queries run
    concurrently.
    """
    store = store or TortoiseSeriesStore()
    product_ids = await _product_ids(current_user, products)
    period_range = await _resolve_range(store, Dataset.OLEFINS_POLYOLEFINS, period)
    predicate = period_range.predicate()

    queries = [SeriesQuery(
        dataset=Dataset.OLEFINS_POLYOLEFINS, predicate=predicate,
        entity=Dimension.PRODUCT, product_ids=tuple(product_ids),
    )]
    if include_country_breakdown:
        queries.append(SeriesQuery(
            dataset=Dataset.OLEFINS_POLYOLEFINS, predicate=predicate,
            entity=Dimension.PRODUCT, sub_entity=Dimension.COUNTRY, product_ids=tuple(product_ids),
        ))
    row_sets = await fetch_many(store, queries)

    tonnage = AggregateTotals()
    summary = aggregate(row_sets[0], AmountKind.MEASURED_TONNAGE, tonnage)
    payload = present(summary, ChartShape.PER_ENTITY_SERIES)

    country_breakdowns = None
    if include_country_breakdown:
        nested = present(aggregate(row_sets[1], AmountKind.MEASURED_TONNAGE), ChartShape.NESTED_BREAKDOWN)
        country_breakdowns = [
            ProductCountryBreakdown(
                product_id=product.entity_id,
                product_name=product.name,
                quarterly_data=_quarter_amounts(product.total_points()),
                yearly_totals=_yearly(product.yearly_totals),
                country_breakdowns=[
                    CountryBreakdown(
                        country_id=country.entity_id,
                        country_name=country.name,
                        quarterly_data=_quarter_amounts(country.points),
                        yearly_totals=_yearly(country.yearly_totals),
                    )
                    for country in product.children
                ],
            )
            for product in nested.breakdowns
        ]

    return OlefinsPolyolefinsResponse(
        title="Central European Olefins & Polyolefin Production Report",
        period=period_range.describe(),
        chart_width=payload.chart_width,
        summary=ProductionSummary(
            products=[
                ProductQuarterlySummary(
                    product_name=product.name,
                    quarterly_data=_quarter_amounts(product.points),
                    yearly_totals=_yearly(product.yearly_totals),
                )
                for product in summary
            ],
            aggregate_tonnage=_yearly(tonnage.yearly),
        ),
        country_breakdowns=country_breakdowns,
    )


async def generate_polish_chemicals_report(
    current_user: AuthUser,
    period: PeriodParams,
    products: EntitySelection,
    store: Optional[SeriesStore] = None,
) -> PolishChemicalsResponse:
    """
    Generates the Polish chemical production report.

    ``totals`` sums every product per quarter and is keyed by ``"YYYY/Qn"``.
    """
    store = store or TortoiseSeriesStore()
    product_ids = await _product_ids(current_user, products)
    period_range = await _resolve_range(store, Dataset.POLISH_CHEMICALS, period)

    query = SeriesQuery(
        dataset=Dataset.POLISH_CHEMICALS,
        predicate=period_range.predicate(),
        entity=Dimension.PRODUCT,
        product_ids=tuple(product_ids),
    )
    [rows] = await fetch_many(store, [query])
    totals = AggregateTotals()
    breakdowns = aggregate(rows, AmountKind.MEASURED_TONNAGE, totals)

    return PolishChemicalsResponse(
        title="Polish Chemical Production Report",
        from_period=str(period_range.start),
        to_period=str(period_range.end),
        products=[
            ProductPeriodData(
                product_name=product.name,
                data=_chart_points(product.points),
                yearly_totals=_yearly(product.yearly_totals),
            )
            for product in breakdowns
        ],
        totals={period_key(p): float(v) for p, v in sorted(totals.per_period.items())},
    )


async def generate_russian_domestic_sales_report(
    current_user: AuthUser,
    period: PeriodParams,
    products: EntitySelection,
    store: Optional[SeriesStore] = None,
) -> RussianDomesticSalesResponse:
    """
    Generates Russian petrochemical domestic sales per product and company.

    Products are fetched concurrently, one query each, with companies as
    the nested level. ``total_sales`` sums the companies per quarter.
    """
    store = store or TortoiseSeriesStore()
    product_ids = await _product_ids(current_user, products)
    period_range = await _resolve_range(store, Dataset.RUSSIAN_DOMESTIC_SALES, period)

    query = SeriesQuery(
        dataset=Dataset.RUSSIAN_DOMESTIC_SALES,
        predicate=period_range.predicate(),
        entity=Dimension.PRODUCT,
        sub_entity=Dimension.COMPANY,
    )
    rows = await fetch_per_entity(store, query, product_ids)
    breakdowns = aggregate(rows, AmountKind.TONNAGE)

    return RussianDomesticSalesResponse(
        title="Russian Petrochemical Domestic Sales Report",
        from_period=str(period_range.start),
        to_period=str(period_range.end),
        products=[
            ProductSales(
                product_name=product.name,
                companies=[
                    CompanySales(name=c.name, location=c.location, data=_chart_points(c.points))
                    for c in product.children
                ],
                total_sales=_chart_points(product.total_points()),
            )
            for product in breakdowns
        ],
    )
