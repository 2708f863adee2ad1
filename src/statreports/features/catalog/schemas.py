from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional


class ProductResponse(BaseModel):
    id: int = Field(..., description="Numeric id, as used by report selections")
    public_id: str = Field(..., description="Public unique identifier for the product (KSUID)")
    name: str

    model_config = ConfigDict(from_attributes=True)

class CompanyResponse(BaseModel):
    id: int
    public_id: str
    name: str
    location: Optional[str] = None
    display_name: str = Field(..., description="Name with location, e.g. 'Orlen[Plock]'")

    model_config = ConfigDict(from_attributes=True)

class CountryResponse(BaseModel):
    id: int
    public_id: str
    name: str

    model_config = ConfigDict(from_attributes=True)

class DatasetSummary(BaseModel):
    dataset: str
    label: str
    first_period: Optional[str] = Field(None, description="Earliest period with data, e.g. 'Q1 2021'")
    last_period: Optional[str] = Field(None, description="Latest period with data")
    product_ids: List[int] = Field(default_factory=list, description="Visible products with data in this dataset")

class CatalogResponse(BaseModel):
    products: List[ProductResponse]
    companies: List[CompanyResponse]
    countries: List[CountryResponse]
    datasets: List[DatasetSummary]
