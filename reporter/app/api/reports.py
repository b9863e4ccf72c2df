"""
Student report endpoint.

Fetches a record from the records backend and returns it as a PDF
attachment. The whole document is built in memory before the response
starts, so a failure can never leave a partial PDF on the wire.
"""

import logging
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import Response

from reporter.app.core.errors import FetchError, RenderError
from reporter.app.schemas.credentials import CredentialVariant
from reporter.app.services.document import render_record
from reporter.app.services.fetcher import RecordFetcher

logger = logging.getLogger("reporter.api")

router = APIRouter(tags=["Reports"])


# =============================================================================
# Dependency providers
# =============================================================================

def get_fetcher(request: Request) -> RecordFetcher:
    return request.app.state.fetcher


def get_credentials(request: Request) -> CredentialVariant:
    return request.app.state.credentials


# =============================================================================
# GET /api/v1/students/{record_id}/report
# =============================================================================

@router.get(
    "/api/v1/students/{record_id}/report",
    summary="Download a student report as PDF",
    response_class=Response,
    responses={
        200: {
            "content": {"application/pdf": {}},
            "description": "Rendered student report",
        },
        500: {"description": "Fetch or render failure"},
    },
)
async def download_report(
    record_id: int,
    fetcher: Annotated[RecordFetcher, Depends(get_fetcher)],
    credentials: Annotated[CredentialVariant, Depends(get_credentials)],
) -> Response:
    try:
        record = await fetcher.fetch_record(record_id, credentials)
    except FetchError as exc:
        logger.error(
            "record_fetch_failed",
            extra={
                "record_id": record_id,
                "error_type": type(exc).__name__,
                "error": str(exc),
            },
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch student: {exc}",
        ) from exc

    try:
        pdf_bytes = render_record(record, generated_at=datetime.now())
    except RenderError as exc:
        logger.exception(
            "report_render_failed",
            extra={"record_id": record_id},
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate PDF",
        ) from exc

    logger.info(
        "report_rendered",
        extra={"record_id": record_id, "size_bytes": len(pdf_bytes)},
    )

    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={
            "Content-Disposition": (
                f'attachment; filename="student_report_{record_id}.pdf"'
            ),
        },
    )
