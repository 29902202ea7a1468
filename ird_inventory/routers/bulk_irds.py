"""
IRD Inventory - Bulk IRD Import Router

Endpoints:
    POST /api/v1/irds/bulk          - Import every row of an uploaded sheet
    POST /api/v1/irds/bulk/validate - Check headers and preview the first rows
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import JSONResponse

from ..core.config import get_settings
from ..core.errors import ErrorResponse, InvalidArgumentError
from ..core.models import BulkImportResponse, FormatReport
from ..db import get_store
from ..services.bulk_ird_service import BulkIrdImporter
from ..services.spreadsheet import format_report, frame_to_rows, read_spreadsheet
from ..store import DocumentStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/irds/bulk", tags=["IRD Bulk Import"])


async def _read_upload(file: UploadFile):
    if not file.filename:
        raise InvalidArgumentError("No file uploaded", field="file")
    content = await file.read()
    return read_spreadsheet(content, file.filename)


@router.post(
    "",
    response_model=BulkImportResponse,
    responses={400: {"model": ErrorResponse, "description": "Missing, empty or unreadable file"}},
    summary="Bulk-create IRDs from a spreadsheet",
)
async def bulk_create(
    file: Annotated[UploadFile, File(description=".xlsx or .csv with one IRD per row")],
    store: DocumentStore = Depends(get_store),
) -> BulkImportResponse:
    """
    Each row creates an IRD and a fresh linked equipment record. Row failures
    are reported in ``data.errors`` and never stop the batch.
    """
    df = await _read_upload(file)
    logger.info(f"Bulk IRD import started: {file.filename} ({len(df)} rows)")

    result = await BulkIrdImporter(store).import_rows(frame_to_rows(df))
    return BulkImportResponse(
        success=True,
        message=(
            f"Processed {result.summary.total_processed} rows: "
            f"{result.summary.irds_created} created, {result.summary.errors} failed"
        ),
        data=result,
    )


@router.post(
    "/validate",
    response_model=FormatReport,
    responses={400: {"model": FormatReport, "description": "Required headers missing"}},
    summary="Validate a bulk IRD spreadsheet",
)
async def validate_format(
    file: Annotated[UploadFile, File(description=".xlsx or .csv to check")],
):
    df = await _read_upload(file)
    report = format_report(df, preview_rows=get_settings().BULK_PREVIEW_ROWS)
    if not report.success:
        return JSONResponse(status_code=400, content=report.model_dump(mode="json", by_alias=True))
    return report
