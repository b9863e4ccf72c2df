"""
Application factory for the student report service.
"""

import logging
import sys
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError, version
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI
from fastapi.responses import ORJSONResponse

from reporter.app.api.reports import router as reports_router
from reporter.app.core.config import Settings, get_settings
from reporter.app.services.fetcher import FETCH_TIMEOUT_SECONDS, RecordFetcher

logger = logging.getLogger("reporter.main")


def get_app_version() -> str:
    try:
        return version("student-report")
    except PackageNotFoundError:
        return "0.1.0"


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    ``settings`` and ``transport`` default to the environment and the
    real network. Tests pass their own.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Guarantees:
        - Fail-fast startup if configuration or credentials are invalid
        - One credential variant for the lifetime of the process
        - One shared connection pool for outbound fetches
        """
        try:
            resolved = settings or get_settings()
            credentials = resolved.resolve_credentials()
        except Exception:
            logger.exception("invalid_reporter_configuration")
            raise

        logger.info(
            "report_service_startup",
            extra={
                "version": get_app_version(),
                "backend_url": resolved.base_url,
                "auth_kind": credentials.kind,
            },
        )

        http_client = httpx.AsyncClient(
            transport=transport,
            timeout=httpx.Timeout(FETCH_TIMEOUT_SECONDS),
            headers={"User-Agent": f"student-report/{get_app_version()}"},
        )

        app.state.settings = resolved
        app.state.credentials = credentials
        app.state.fetcher = RecordFetcher(resolved.base_url, http_client)

        try:
            yield
        finally:
            logger.info("report_service_shutdown")
            await http_client.aclose()

    app = FastAPI(
        title="Student Report Service",
        description="Renders student records from the records backend as PDF.",
        version=get_app_version(),
        redoc_url=None,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    app.include_router(reports_router)

    @app.get(
        "/healthz",
        tags=["Monitoring"],
        summary="Liveness probe",
    )
    async def health_check():
        """Does NOT contact the records backend."""
        return ORJSONResponse(
            content={
                "status": "ok",
                "service": "student-report",
                "version": app.version,
                "runtime": f"python {sys.version.split()[0]}",
            }
        )

    return app


app = create_app()


def run() -> None:
    """Console entry point: configure logging and serve with uvicorn."""
    logging.basicConfig(
        level=logging.INFO,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    settings = get_settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
