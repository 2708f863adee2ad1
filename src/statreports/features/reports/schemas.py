"""Statistical Report API Schemas

Pydantic models for the report endpoints. Field names are snake_case in
Python and serialized in camelCase, which is the contract the front-end
chart renderers read:

1. Chart payloads (products-by-company, product trend, company comparison,
   financial series)
2. Financial breakdown by company
3. Olefins & polyolefins production with country breakdowns
4. Polish chemical production
5. Russian domestic sales by product and company

Amounts are numbers, or the string ``"n/s"`` for not-significant periods."""
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

NotSignificantLiteral = Literal["n/s"]
AmountValue = Union[int, float, NotSignificantLiteral]


class ReportModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Query parameters shared by every report
class PeriodParams(ReportModel):
    from_year: Optional[int] = None
    from_quarter: Optional[int] = None
    to_year: Optional[int] = None
    to_quarter: Optional[int] = None


# 1. Chart payloads
class ChartPoint(ReportModel):
    period: str
    amount: AmountValue

class ProductSeries(ReportModel):
    product_name: str
    data: List[ChartPoint]
    color: str

class ProductsByCompanyChartResponse(ReportModel):
    title: str
    x_axis_title: str
    y_axis_title: str
    chart_width: int
    products: List[ProductSeries]

class ProductTrendChartResponse(ReportModel):
    title: Optional[str] = None
    x_axis_title: str
    y_axis_title: str
    chart_width: int
    chart_data: Optional[ProductSeries] = None

class CompanySeries(ReportModel):
    company_name: str
    company_location: Optional[str] = None
    data: List[ChartPoint]
    color: str

class CompanyComparisonChartResponse(ReportModel):
    title: Optional[str] = None
    x_axis_title: str
    y_axis_title: str
    chart_width: int
    chart_height: int
    companies: List[CompanySeries]

class NamedSeries(ReportModel):
    name: str
    data: List[ChartPoint]
    color: str

class FinancialChartResponse(ReportModel):
    title: str
    chart_width: int
    series: List[NamedSeries]


# 2. Financial breakdown
class QuarterAmount(ReportModel):
    year: int
    quarter: str
    amount: AmountValue

class FinancialYearlyTotals(ReportModel):
    turnover: Dict[int, float]
    operating_profit: Dict[int, float]

class CompanyFinancialBreakdown(ReportModel):
    company_id: int
    company_name: str
    location: Optional[str] = None
    quarterly_turnover: List[QuarterAmount]
    quarterly_operating_profit: List[QuarterAmount]
    yearly_totals: FinancialYearlyTotals

class FinancialBreakdownResponse(ReportModel):
    title: str
    period: str
    company_breakdowns: List[CompanyFinancialBreakdown]
    aggregate_totals: FinancialYearlyTotals


# 3. Olefins & polyolefins
class ProductQuarterlySummary(ReportModel):
    product_name: str
    quarterly_data: List[QuarterAmount]
    yearly_totals: Dict[int, float]

class ProductionSummary(ReportModel):
    products: List[ProductQuarterlySummary]
    aggregate_tonnage: Dict[int, float]

class CountryBreakdown(ReportModel):
    country_id: int
    country_name: str
    quarterly_data: List[QuarterAmount]
    yearly_totals: Dict[int, float]

class ProductCountryBreakdown(ReportModel):
    product_id: int
    product_name: str
    quarterly_data: List[QuarterAmount]
    yearly_totals: Dict[int, float]
    country_breakdowns: List[CountryBreakdown]

class OlefinsPolyolefinsResponse(ReportModel):
    title: str
    period: str
    chart_width: int
    summary: ProductionSummary
    country_breakdowns: Optional[List[ProductCountryBreakdown]] = None


# 4. Polish chemical production
class ProductPeriodData(ReportModel):
    product_name: str
    data: List[ChartPoint]
    yearly_totals: Dict[int, float]

class PolishChemicalsResponse(ReportModel):
    title: str
    from_period: str
    to_period: str
    products: List[ProductPeriodData]
    totals: Dict[str, float]


# 5. Russian domestic sales
class CompanySales(ReportModel):
    name: str
    location: Optional[str] = None
    data: List[ChartPoint]

class ProductSales(ReportModel):
    product_name: str
    companies: List[CompanySales]
    total_sales: List[ChartPoint]

class RussianDomesticSalesResponse(ReportModel):
    title: str
    from_period: str
    to_period: str
    products: List[ProductSales]
