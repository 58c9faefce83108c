"""Psychometric API endpoints: item statistics, item lifecycle and bank health."""

import time

from fastapi import APIRouter, Depends, status

from src.api.dependencies import get_request_id
from src.api.middleware.error_handler import http_exception_for
from src.schemas.base import SuccessResponse, create_success_response
from src.schemas.psychometric_schemas import (
    AuditResultResponse,
    ItemStatisticsResponse,
    PsychometricHealthResponse,
    ResponseRecordedResponse,
    RetireItemRequest,
)
from src.services.psychometrics.analysis import PsychometricAnalysisService
from src.services.psychometrics.audit_job import PsychometricAuditJob
from src.utils.exceptions import SkillSoftError
from src.utils.logger import get_api_logger, log_api_request, log_api_response

router = APIRouter(
    prefix="/psychometrics",
    tags=["Psychometrics"],
    responses={
        404: {"description": "Question or statistics not found"},
        409: {"description": "Item cannot change to the requested status"},
        500: {"description": "Internal server error"}
    }
)

analysis_service = PsychometricAnalysisService()
audit_job = PsychometricAuditJob(analysis_service=analysis_service)

logger = get_api_logger()


def elapsed_since(started: float) -> float:
    return (time.perf_counter() - started) * 1000


@router.post(
    "/audit",
    response_model=SuccessResponse[AuditResultResponse],
    summary="Run audit",
    description="Initialise new questions and recalculate all statistics now"
)
async def trigger_audit(request_id: str = Depends(get_request_id)) -> SuccessResponse[AuditResultResponse]:
    log_api_request("POST", "/psychometrics/audit", logger=logger)
    started = time.perf_counter()

    try:
        result = await audit_job.trigger_manual_audit()
    except (SkillSoftError, ValueError) as e:
        logger.error(f"Manual psychometric audit failed: {str(e)}")
        raise http_exception_for(e)

    log_api_response("POST", "/psychometrics/audit", status.HTTP_200_OK, elapsed_since(started), logger=logger)
    return create_success_response(
        data=AuditResultResponse.from_result(result),
        message=result.message,
        request_id=request_id
    )


@router.get(
    "/items/{question_id}",
    response_model=SuccessResponse[ItemStatisticsResponse],
    summary="Get item statistics"
)
async def get_item_statistics(
    question_id: str,
    request_id: str = Depends(get_request_id)
) -> SuccessResponse[ItemStatisticsResponse]:
    path = f"/psychometrics/items/{question_id}"
    log_api_request("GET", path, logger=logger)
    started = time.perf_counter()

    try:
        stats = await analysis_service.get_item_statistics(question_id)
    except (SkillSoftError, ValueError) as e:
        logger.warning(f"Item statistics lookup failed for {question_id}: {str(e)}")
        raise http_exception_for(e)

    log_api_response("GET", path, status.HTTP_200_OK, elapsed_since(started), logger=logger)
    return create_success_response(data=ItemStatisticsResponse.from_model(stats), request_id=request_id)


@router.get(
    "/health",
    response_model=SuccessResponse[PsychometricHealthResponse],
    summary="Item bank health report"
)
async def get_health_report(request_id: str = Depends(get_request_id)) -> SuccessResponse[PsychometricHealthResponse]:
    log_api_request("GET", "/psychometrics/health", logger=logger)
    started = time.perf_counter()

    try:
        report = await analysis_service.get_health_report()
    except (SkillSoftError, ValueError) as e:
        logger.error(f"Psychometric health report failed: {str(e)}")
        raise http_exception_for(e)

    log_api_response("GET", "/psychometrics/health", status.HTTP_200_OK, elapsed_since(started), logger=logger)
    return create_success_response(data=PsychometricHealthResponse.from_report(report), request_id=request_id)


@router.post(
    "/items/{question_id}/retire",
    response_model=SuccessResponse[ItemStatisticsResponse],
    summary="Retire item",
    description="Take a question out of assembly and mark it RETIRED"
)
async def retire_item(
    question_id: str,
    payload: RetireItemRequest,
    request_id: str = Depends(get_request_id)
) -> SuccessResponse[ItemStatisticsResponse]:
    path = f"/psychometrics/items/{question_id}/retire"
    log_api_request("POST", path, logger=logger)
    started = time.perf_counter()

    try:
        stats = await analysis_service.retire_item(question_id, payload.reason)
    except (SkillSoftError, ValueError) as e:
        logger.warning(f"Retiring item {question_id} failed: {str(e)}")
        raise http_exception_for(e)

    log_api_response("POST", path, status.HTTP_200_OK, elapsed_since(started), logger=logger)
    return create_success_response(
        data=ItemStatisticsResponse.from_model(stats),
        message="Item retired",
        request_id=request_id
    )


@router.post(
    "/items/{question_id}/activate",
    response_model=SuccessResponse[ItemStatisticsResponse],
    summary="Activate item",
    description="Return a question to assembly when its statistics allow it"
)
async def activate_item(
    question_id: str,
    request_id: str = Depends(get_request_id)
) -> SuccessResponse[ItemStatisticsResponse]:
    path = f"/psychometrics/items/{question_id}/activate"
    log_api_request("POST", path, logger=logger)
    started = time.perf_counter()

    try:
        stats = await analysis_service.activate_item(question_id)
    except (SkillSoftError, ValueError) as e:
        logger.warning(f"Activating item {question_id} failed: {str(e)}")
        raise http_exception_for(e)

    log_api_response("POST", path, status.HTTP_200_OK, elapsed_since(started), logger=logger)
    return create_success_response(
        data=ItemStatisticsResponse.from_model(stats),
        message="Item activated",
        request_id=request_id
    )


@router.post(
    "/items/{question_id}/responses",
    response_model=SuccessResponse[ResponseRecordedResponse],
    summary="Record item response",
    description="Called when an answer to the question is submitted; recalculates the item at response milestones"
)
async def record_item_response(
    question_id: str,
    request_id: str = Depends(get_request_id)
) -> SuccessResponse[ResponseRecordedResponse]:
    path = f"/psychometrics/items/{question_id}/responses"
    log_api_request("POST", path, logger=logger)
    started = time.perf_counter()

    recalculated = await audit_job.on_answer_submitted(question_id)

    log_api_response("POST", path, status.HTTP_200_OK, elapsed_since(started), logger=logger)
    return create_success_response(
        data=ResponseRecordedResponse(question_id=question_id, recalculated=recalculated),
        message="Item recalculated" if recalculated else None,
        request_id=request_id
    )
