"""Scoring API endpoints.

Scoring a session is idempotent: a second request for an already scored
session returns the stored result.
"""

import time

from fastapi import APIRouter, Depends, status

from src.api.dependencies import get_request_id
from src.api.middleware.error_handler import http_exception_for
from src.schemas.base import SuccessResponse, create_success_response
from src.schemas.result_schemas import TestResultResponse
from src.services.scoring.orchestrator import ScoringOrchestrationService
from src.utils.exceptions import SkillSoftError
from src.utils.logger import get_api_logger, log_api_request, log_api_response

router = APIRouter(
    prefix="/scoring",
    tags=["Scoring"],
    responses={
        404: {"description": "Session or result not found"},
        409: {"description": "Session is being scored by another request"},
        500: {"description": "Internal server error"}
    }
)

scoring_service = ScoringOrchestrationService()

logger = get_api_logger()


@router.post(
    "/sessions/{session_id}",
    response_model=SuccessResponse[TestResultResponse],
    summary="Score session",
    description="Score a completed session and store its result"
)
async def score_session(
    session_id: str,
    request_id: str = Depends(get_request_id)
) -> SuccessResponse[TestResultResponse]:
    """Score a session.

    A result with status PENDING means scoring failed after all retries and
    will be completed later.
    """
    path = f"/scoring/sessions/{session_id}"
    log_api_request("POST", path, logger=logger)
    started = time.perf_counter()

    try:
        result = await scoring_service.calculate_and_save_result(session_id)
    except (SkillSoftError, ValueError) as e:
        logger.warning(f"Scoring failed for session {session_id}: {str(e)}")
        raise http_exception_for(e)

    log_api_response("POST", path, status.HTTP_200_OK, (time.perf_counter() - started) * 1000, logger=logger)
    return create_success_response(data=result, message="Session scored", request_id=request_id)


@router.get(
    "/sessions/{session_id}",
    response_model=SuccessResponse[TestResultResponse],
    summary="Get session result"
)
async def get_session_result(
    session_id: str,
    request_id: str = Depends(get_request_id)
) -> SuccessResponse[TestResultResponse]:
    path = f"/scoring/sessions/{session_id}"
    log_api_request("GET", path, logger=logger)
    started = time.perf_counter()

    try:
        result = await scoring_service.get_result(session_id)
    except (SkillSoftError, ValueError) as e:
        logger.warning(f"Result lookup failed for session {session_id}: {str(e)}")
        raise http_exception_for(e)

    log_api_response("GET", path, status.HTTP_200_OK, (time.perf_counter() - started) * 1000, logger=logger)
    return create_success_response(data=result, request_id=request_id)
