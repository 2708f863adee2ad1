"""
Root conftest for the pytest test suite.

Each test runs against a fresh in-memory sqlite database holding three users
and a small statistical catalog:

- `reportsadmin` (admin, unrestricted)
- `subscriber` (statistical and olefins access, authorized for Ethylene and
  Propylene only)
- `basicuser` (active, but no report packages and no products)

Products: Ethylene, Propylene, Polyethylene. Companies: Orlen[Plock],
Basell[Wesseling], Sibur[Tobolsk]. Countries: Poland, Germany. Series data
covers 2021-2022 for every dataset.

Key Fixtures:
- `initialize_test_db`: (autouse) Creates and seeds a fresh DB schema for each test.
- `app_for_testing`: The FastAPI app with its production lifespan disabled and
  the random chart colors replaced by the fixed palette.
- `client`: A non-authenticated TestClient.
- `admin_client`, `subscriber_client`, `basic_client`: authenticated TestClients.
"""

from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any, AsyncGenerator, Generator

import pytest
import pytest_asyncio
from fastapi import FastAPI
from fastapi.testclient import TestClient
from tortoise import Tortoise

from statreports.core.config import MODEL_MODULES
from statreports.features.auth.models import User
from statreports.features.auth.security import get_password_hash
from statreports.features.catalog.models import Company, Country, Dataset, Product, SeriesRecord
from statreports.features.reports.charts import PaletteColorSource
from statreports.features.reports.router import get_color_source

from statreports.main import app as actual_app

TEST_PASSWORD = "password123"


async def add_users(products: dict[str, Product]):
    await User.create(
        username="reportsadmin",
        email="reportsadmin@example.com",
        hashed_password=get_password_hash(TEST_PASSWORD),
        role="admin",
    )
    subscriber = await User.create(
        username="subscriber",
        email="subscriber@example.com",
        hashed_password=get_password_hash(TEST_PASSWORD),
        statistical_access=True,
        olefins_access=True,
    )
    await subscriber.authorized_products.add(products["Ethylene"], products["Propylene"])
    await User.create(
        username="basicuser",
        email="basicuser@example.com",
        hashed_password=get_password_hash(TEST_PASSWORD),
    )


async def add_catalog_data() -> dict[str, Product]:
    products = {name: await Product.create(name=name) for name in ("Ethylene", "Propylene", "Polyethylene")}
    companies = {
        name: await Company.create(name=name, location=location)
        for name, location in (("Orlen", "Plock"), ("Basell", "Wesseling"), ("Sibur", "Tobolsk"))
    }
    countries = {name: await Country.create(name=name) for name in ("Poland", "Germany")}

    # (dataset, product, company, country, year, quarter, amount)
    series = [
        (Dataset.PRODUCTION, "Ethylene", "Orlen", None, 2021, 1, "100.6"),
        (Dataset.PRODUCTION, "Ethylene", "Orlen", None, 2021, 2, "0"),
        (Dataset.PRODUCTION, "Ethylene", "Orlen", None, 2021, 3, "120"),
        (Dataset.PRODUCTION, "Ethylene", "Orlen", None, 2022, 1, "130"),
        (Dataset.PRODUCTION, "Ethylene", "Basell", None, 2021, 1, "50"),
        (Dataset.PRODUCTION, "Ethylene", "Basell", None, 2021, 2, "60"),
        (Dataset.PRODUCTION, "Propylene", "Orlen", None, 2021, 4, "80"),
        (Dataset.PRODUCTION, "Propylene", "Orlen", None, 2022, 2, "90"),
        (Dataset.TURNOVER, None, "Orlen", None, 2021, 1, "10.005"),
        (Dataset.TURNOVER, None, "Orlen", None, 2021, 2, "12.5"),
        (Dataset.TURNOVER, None, "Basell", None, 2021, 1, "7"),
        (Dataset.TURNOVER, None, "Orlen", None, 2022, 4, "20"),
        (Dataset.OPERATING_PROFIT, None, "Orlen", None, 2021, 1, "1.25"),
        (Dataset.OPERATING_PROFIT, None, "Orlen", None, 2021, 2, "-0.5"),
        (Dataset.OPERATING_PROFIT, None, "Basell", None, 2021, 1, "0"),
        (Dataset.OLEFINS_POLYOLEFINS, "Ethylene", None, "Poland", 2021, 1, "300"),
        (Dataset.OLEFINS_POLYOLEFINS, "Ethylene", None, "Germany", 2021, 1, "200"),
        (Dataset.OLEFINS_POLYOLEFINS, "Ethylene", None, "Poland", 2021, 2, "310"),
        (Dataset.OLEFINS_POLYOLEFINS, "Polyethylene", None, "Germany", 2021, 1, "150"),
        (Dataset.OLEFINS_POLYOLEFINS, "Propylene", None, "Germany", 2022, 3, "75"),
        (Dataset.POLISH_CHEMICALS, "Propylene", None, None, 2021, 1, "40"),
        (Dataset.POLISH_CHEMICALS, "Polyethylene", None, None, 2021, 1, "60"),
        (Dataset.POLISH_CHEMICALS, "Propylene", None, None, 2021, 2, "45"),
        (Dataset.RUSSIAN_DOMESTIC_SALES, "Ethylene", "Sibur", None, 2021, 1, "500"),
        (Dataset.RUSSIAN_DOMESTIC_SALES, "Ethylene", "Sibur", None, 2021, 2, "510"),
        (Dataset.RUSSIAN_DOMESTIC_SALES, "Ethylene", "Orlen", None, 2021, 1, "5"),
        (Dataset.RUSSIAN_DOMESTIC_SALES, "Propylene", "Sibur", None, 2022, 1, "70"),
    ]
    await SeriesRecord.bulk_create([
        SeriesRecord(
            dataset=dataset,
            product=products[product] if product else None,
            company=companies[company] if company else None,
            country=countries[country] if country else None,
            year=year,
            quarter=quarter,
            amount=Decimal(amount),
        )
        for dataset, product, company, country, year, quarter, amount in series
    ])
    return products


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    return "asyncio"


@pytest_asyncio.fixture(scope="function", autouse=True)
async def initialize_test_db() -> AsyncGenerator[None, None]:
    """
    Initializes and seeds a fresh in-memory database for each test function.
    """
    test_db_config = {
        "connections": {"default": "sqlite://:memory:"},
        "apps": {
            "models": {
                "models": MODEL_MODULES,
                "default_connection": "default",
            }
        },
    }
    await Tortoise.init(config=test_db_config)
    await Tortoise.generate_schemas()
    products = await add_catalog_data()
    await add_users(products)

    yield

    await Tortoise.close_connections()


@pytest.fixture(scope="function")
def app_for_testing() -> Generator[FastAPI, Any, None]:
    """
    Provides the FastAPI application with its production lifespan disabled,
    so that `initialize_test_db` manages the database connection, and with
    deterministic chart colors.
    """
    original_lifespan = actual_app.router.lifespan_context

    @asynccontextmanager
    async def dummy_lifespan(app: FastAPI):
        yield

    actual_app.router.lifespan_context = dummy_lifespan
    actual_app.dependency_overrides[get_color_source] = PaletteColorSource

    yield actual_app

    actual_app.dependency_overrides.clear()
    actual_app.router.lifespan_context = original_lifespan


@pytest.fixture(scope="function")
def client(app_for_testing: FastAPI) -> Generator[TestClient, Any, None]:
    with TestClient(app_for_testing) as tc:
        yield tc


def _authenticated_client(app: FastAPI, username: str) -> Generator[TestClient, Any, None]:
    with TestClient(app) as tc:
        response = tc.post(
            "/api/v1/auth/token",
            data={"username": username, "password": TEST_PASSWORD},
        )
        if response.status_code != 200:
            raise Exception(f"Authentication failed for {username}")
        tc.headers = {"Authorization": f"Bearer {response.json()['access_token']}"}
        yield tc


@pytest_asyncio.fixture(scope="function")
async def admin_client(app_for_testing: FastAPI) -> AsyncGenerator[TestClient, Any]:
    for tc in _authenticated_client(app_for_testing, "reportsadmin"):
        yield tc


@pytest_asyncio.fixture(scope="function")
async def subscriber_client(app_for_testing: FastAPI) -> AsyncGenerator[TestClient, Any]:
    for tc in _authenticated_client(app_for_testing, "subscriber"):
        yield tc


@pytest_asyncio.fixture(scope="function")
async def basic_client(app_for_testing: FastAPI) -> AsyncGenerator[TestClient, Any]:
    for tc in _authenticated_client(app_for_testing, "basicuser"):
        yield tc
