import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query

from ..auth.models import ReportAccess, User as AuthUser
from ..auth.security import get_current_active_user, require_report_access
from . import service as report_service
from .charts import ColorSource, RandomColorSource
from .fetching import SeriesStore, TortoiseSeriesStore
from .schemas import (
    CompanyComparisonChartResponse,
    FinancialBreakdownResponse,
    FinancialChartResponse,
    OlefinsPolyolefinsResponse,
    PeriodParams,
    PolishChemicalsResponse,
    ProductsByCompanyChartResponse,
    ProductTrendChartResponse,
    RussianDomesticSalesResponse,
)
from .selection import EntitySelection, parse_selection

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/reports",
    tags=["Reports"],
    dependencies=[Depends(get_current_active_user)],
    responses={404: {"description": "Not found"}},
)

StatisticalUser = Annotated[AuthUser, Depends(require_report_access(ReportAccess.STATISTICAL))]


def get_series_store() -> SeriesStore:
    return TortoiseSeriesStore()


def get_color_source() -> ColorSource:
    return RandomColorSource()


def period_params(
    from_year: Optional[int] = Query(None, alias="fromYear"),
    from_quarter: Optional[int] = Query(None, alias="fromQuarter", ge=1, le=4),
    to_year: Optional[int] = Query(None, alias="toYear"),
    to_quarter: Optional[int] = Query(None, alias="toQuarter", ge=1, le=4),
) -> PeriodParams:
    return PeriodParams(
        from_year=from_year, from_quarter=from_quarter, to_year=to_year, to_quarter=to_quarter
    )


def product_selection(
    products: Optional[str] = Query(None, description="'all' or comma-separated product ids"),
) -> EntitySelection:
    return parse_selection(products)


def company_selection(
    companies: Optional[str] = Query(None, description="'all' or comma-separated company ids"),
) -> EntitySelection:
    return parse_selection(companies)


# Production charts
@router.get("/charts/products-by-company", response_model=ProductsByCompanyChartResponse)
async def get_products_by_company_chart(
    current_user: StatisticalUser,
    period: PeriodParams = Depends(period_params),
    products: EntitySelection = Depends(product_selection),
    companies: EntitySelection = Depends(company_selection),
    store: SeriesStore = Depends(get_series_store),
    colors: ColorSource = Depends(get_color_source),
):
    return await report_service.generate_products_by_company_report(
        current_user=current_user, period=period, products=products,
        companies=companies, store=store, colors=colors,
    )

@router.get("/charts/product-trend", response_model=ProductTrendChartResponse)
async def get_product_trend_chart(
    current_user: StatisticalUser,
    period: PeriodParams = Depends(period_params),
    products: EntitySelection = Depends(product_selection),
    companies: EntitySelection = Depends(company_selection),
    store: SeriesStore = Depends(get_series_store),
    colors: ColorSource = Depends(get_color_source),
):
    return await report_service.generate_product_trend_report(
        current_user=current_user, period=period, products=products,
        companies=companies, store=store, colors=colors,
    )

@router.get("/charts/company-comparison", response_model=CompanyComparisonChartResponse)
async def get_company_comparison_chart(
    current_user: StatisticalUser,
    period: PeriodParams = Depends(period_params),
    products: EntitySelection = Depends(product_selection),
    companies: EntitySelection = Depends(company_selection),
    store: SeriesStore = Depends(get_series_store),
    colors: ColorSource = Depends(get_color_source),
):
    return await report_service.generate_company_comparison_report(
        current_user=current_user, period=period, products=products,
        companies=companies, store=store, colors=colors,
    )

# Financial reports
@router.get("/charts/financial", response_model=FinancialChartResponse)
async def get_financial_chart(
    current_user: StatisticalUser,
    period: PeriodParams = Depends(period_params),
    companies: EntitySelection = Depends(company_selection),
    store: SeriesStore = Depends(get_series_store),
):
    return await report_service.generate_financial_chart_report(
        current_user=current_user, period=period, companies=companies, store=store
    )

@router.get("/financial-breakdown", response_model=FinancialBreakdownResponse)
async def get_financial_breakdown(
    current_user: StatisticalUser,
    period: PeriodParams = Depends(period_params),
    companies: EntitySelection = Depends(company_selection),
    store: SeriesStore = Depends(get_series_store),
):
    return await report_service.generate_financial_breakdown_report(
        current_user=current_user, period=period, companies=companies, store=store
    )

# Regional production reports, each behind its own subscription package
@router.get("/olefins-polyolefins", response_model=OlefinsPolyolefinsResponse)
async def get_olefins_polyolefins_report(
    current_user: Annotated[AuthUser, Depends(require_report_access(ReportAccess.OLEFINS))],
    period: PeriodParams = Depends(period_params),
    products: EntitySelection = Depends(product_selection),
    include_country_breakdown: bool = Query(True, alias="includeCountryBreakdown"),
    store: SeriesStore = Depends(get_series_store),
):
    return await report_service.generate_olefins_polyolefins_report(
        current_user=current_user, period=period, products=products,
        include_country_breakdown=include_country_breakdown, store=store,
    )

@router.get("/polish-chemicals", response_model=PolishChemicalsResponse)
async def get_polish_chemicals_report(
    current_user: Annotated[AuthUser, Depends(require_report_access(ReportAccess.POLISH_CHEMICALS))],
    period: PeriodParams = Depends(period_params),
    products: EntitySelection = Depends(product_selection),
    store: SeriesStore = Depends(get_series_store),
):
    return await report_service.generate_polish_chemicals_report(
        current_user=current_user, period=period, products=products, store=store
    )

@router.get("/russian-domestic-sales", response_model=RussianDomesticSalesResponse)
async def get_russian_domestic_sales_report(
    current_user: StatisticalUser,
    period: PeriodParams = Depends(period_params),
    products: EntitySelection = Depends(product_selection),
    store: SeriesStore = Depends(get_series_store),
):
    return await report_service.generate_russian_domestic_sales_report(
        current_user=current_user, period=period, products=products, store=store
    )
