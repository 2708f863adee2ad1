import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from tortoise import Tortoise
from tortoise.contrib.fastapi import tortoise_exception_handlers

from .core import logging_config  # noqa: F401  configures the "statreports" logger
from .core.config import DATABASE_URL, MODEL_MODULES
from .core.errors import report_exception_handlers
from .features.auth.router import router as auth_router
from .features.catalog.router import router as catalog_router
from .features.reports.router import router as reports_router

logger = logging.getLogger("statreports.main")

TORTOISE_ORM_CONFIG = {
    "connections": {"default": DATABASE_URL},
    "apps": {
        "models": {
            "models": MODEL_MODULES,
            "default_connection": "default",
        }
    },
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan context manager.

    Connects Tortoise-ORM on startup and closes its connections on shutdown.
    """
    logger.info("Starting statreports...")
    await Tortoise.init(config=TORTOISE_ORM_CONFIG)
    logger.info("Tortoise-ORM has been initialized.")

    yield

    await Tortoise.close_connections()
    logger.info("Tortoise-ORM connections have been closed.")


app = FastAPI(
    title="Statistical Reports API",
    description="Quarterly production, financial and regional chemical statistics as chart-ready reports.",
    version="0.1.0",
    exception_handlers={**tortoise_exception_handlers(), **report_exception_handlers()},
    lifespan=lifespan,
)


@app.get("/")
async def read_root(request: Request):
    client_host = request.client.host if request.client else "unknown client"
    logger.info(f"Root endpoint '/' accessed by {client_host}")
    return {"message": "Welcome to the Statistical Reports API!"}


app.include_router(auth_router, prefix="/api/v1")
app.include_router(catalog_router, prefix="/api/v1")
app.include_router(reports_router, prefix="/api/v1")
