"""Originality scan API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse

from originality.core.exceptions import (
    ContentTooLargeError,
    ScanFailedError,
    ScanNotFoundError,
    ValidationError,
)
from originality.dependencies import get_draft_comparison_service, get_scan_orchestrator
from originality.schemas.scan import CompareDraftsRequest, StartScanRequest
from originality.services.originality.draft_comparison import DraftComparisonService
from originality.services.originality.orchestrator import ScanOrchestrator
from originality.utils.logging import get_logger
from originality.utils.responses import create_api_response

LOGGER = get_logger(__name__)

router = APIRouter()


@router.post(
    "/scans",
    response_model=dict,
    summary="Scan a document for originality",
    operation_id="start_originality_scan",
)
async def start_scan(
    request: Request,
    body: StartScanRequest,
    orchestrator: Annotated[ScanOrchestrator, Depends(get_scan_orchestrator)],
) -> dict:
    """Run a scan, or return the completed scan of identical content.

    Raises:
        HTTPException 400: Content cannot be scanned
        HTTPException 413: Content exceeds the size limit
    """
    try:
        result = await orchestrator.scan_with_analysis(body.subject_id, body.owner_id, body.content)
    except ContentTooLargeError as e:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ScanFailedError as e:
        LOGGER.warning("Returning failed scan", extra={"scan_id": e.scan.id if e.scan else None})
        data = orchestrator.build_result(e.scan) if e.scan is not None else None
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content=create_api_response(data=data, message=str(e), status=False, request=request),
        )

    return create_api_response(
        data=result,
        message="Scan retrieved from cache" if result.cached else "Scan completed",
        request=request,
    )


@router.get(
    "/scans/{scan_id}",
    response_model=dict,
    summary="Get a scan with its matches",
    operation_id="get_originality_scan",
)
async def get_scan(
    request: Request,
    scan_id: str,
    orchestrator: Annotated[ScanOrchestrator, Depends(get_scan_orchestrator)],
    owner_id: str = Query(..., min_length=1, description="Requesting user"),
) -> dict:
    try:
        scan = await orchestrator.get_scan(scan_id, owner_id)
    except ScanNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return create_api_response(
        data=orchestrator.build_result(scan),
        message="Scan retrieved successfully",
        request=request,
    )


@router.get(
    "/subjects/{subject_id}/scans",
    response_model=dict,
    summary="List the scans of a document",
    operation_id="list_originality_scans",
)
async def list_subject_scans(
    request: Request,
    subject_id: str,
    orchestrator: Annotated[ScanOrchestrator, Depends(get_scan_orchestrator)],
    owner_id: str = Query(..., min_length=1, description="Requesting user"),
) -> dict:
    scans = await orchestrator.list_subject_scans(subject_id, owner_id)
    return create_api_response(
        data=scans,
        message=f"Retrieved {len(scans)} scans",
        request=request,
    )


@router.post(
    "/compare",
    response_model=dict,
    summary="Compare two drafts for self-reuse",
    operation_id="compare_drafts",
)
async def compare_drafts(
    request: Request,
    body: CompareDraftsRequest,
    service: Annotated[DraftComparisonService, Depends(get_draft_comparison_service)],
) -> dict:
    try:
        result = await service.compare(body.current_draft, body.previous_draft)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return create_api_response(data=result, message="Drafts compared", request=request)
