"""HTTP mapping for report engine errors."""
import logging
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from ..features.reports.exceptions import ReportError

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Failed to generate report"


def error_body(message: str, code: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"detail": message, "code": code}
    if details:
        body["details"] = details
    return body


async def handle_report_error(request: Request, exc: ReportError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            f"Report generation failed on {request.url.path} [{exc.code}]: {exc.message}",
            exc_info=exc,
        )
        return JSONResponse(status_code=exc.status_code, content=error_body(GENERIC_FAILURE_MESSAGE, exc.code))

    logger.info(f"Rejected report request on {request.url.path} [{exc.code}]: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.code, exc.details))


def report_exception_handlers() -> dict:
    return {ReportError: handle_report_error}
