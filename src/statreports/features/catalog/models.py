"""Data models for the statistical catalog: reported entities and their quarterly series."""

from enum import Enum

from tortoise import fields, models

from ...common.models import TimestampMixin, generate_ksuid


class Dataset(str, Enum):
    PRODUCTION = "production"
    TURNOVER = "turnover"
    OPERATING_PROFIT = "operating_profit"
    OLEFINS_POLYOLEFINS = "olefins_polyolefins"
    POLISH_CHEMICALS = "polish_chemicals"
    RUSSIAN_DOMESTIC_SALES = "russian_domestic_sales"

    @property
    def label(self) -> str:
        """Display name used when the whole dataset is charted as one series."""
        return self.value.replace("_", " ").upper()


class Product(TimestampMixin):
    id = fields.IntField(primary_key=True)
    public_id = fields.CharField(
        max_length=27, unique=True, default=generate_ksuid, db_index=True
    )
    name = fields.CharField(max_length=255, unique=True)

    series: fields.ReverseRelation["SeriesRecord"]

    def __str__(self):
        return self.name

    class Meta:
        table = "products"
        ordering = ["name"]


class Company(TimestampMixin):
    id = fields.IntField(primary_key=True)
    public_id = fields.CharField(
        max_length=27, unique=True, default=generate_ksuid, db_index=True
    )
    name = fields.CharField(max_length=255)
    location = fields.CharField(max_length=255, null=True)

    series: fields.ReverseRelation["SeriesRecord"]

    @property
    def display_name(self) -> str:
        return f"{self.name}[{self.location or ''}]"

    def __str__(self):
        return self.display_name

    class Meta:
        table = "companies"
        ordering = ["name"]


class Country(TimestampMixin):
    id = fields.IntField(primary_key=True)
    public_id = fields.CharField(
        max_length=27, unique=True, default=generate_ksuid, db_index=True
    )
    name = fields.CharField(max_length=100, unique=True)

    series: fields.ReverseRelation["SeriesRecord"]

    def __str__(self):
        return self.name

    class Meta:
        table = "countries"
        ordering = ["name"]


class SeriesRecord(models.Model):  # No TimestampMixin, rows are bulk loaded
    id = fields.IntField(primary_key=True)
    dataset = fields.CharEnumField(Dataset, max_length=40, db_index=True)

    product: fields.ForeignKeyNullableRelation[Product] = fields.ForeignKeyField(
        "models.Product", related_name="series", on_delete=fields.CASCADE, null=True
    )
    company: fields.ForeignKeyNullableRelation[Company] = fields.ForeignKeyField(
        "models.Company", related_name="series", on_delete=fields.CASCADE, null=True
    )
    country: fields.ForeignKeyNullableRelation[Country] = fields.ForeignKeyField(
        "models.Country", related_name="series", on_delete=fields.CASCADE, null=True
    )

    year = fields.IntField(db_index=True)
    quarter = fields.SmallIntField(description="Quarter number, 1-4")
    amount = fields.DecimalField(max_digits=18, decimal_places=4, null=True)

    def __str__(self):
        return f"{self.dataset.value} {self.year}/Q{self.quarter}: {self.amount}"

    class Meta:
        table = "series_records"
