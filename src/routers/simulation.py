"""Simulation API endpoints.

Simulations are dry runs: a persona answers an assembled test so that
authors can check inventory and difficulty before publishing.
"""

import time

from fastapi import APIRouter, Depends, status

from src.api.dependencies import get_request_id
from src.api.middleware.error_handler import http_exception_for
from src.schemas.base import SuccessResponse, create_success_response
from src.schemas.simulation_schemas import SimulationPreviewRequest, SimulationRequest, SimulationResponse
from src.services.simulation.simulator import TestSimulatorService
from src.utils.exceptions import SkillSoftError
from src.utils.logger import get_api_logger, log_api_request, log_api_response

router = APIRouter(
    prefix="/simulation",
    tags=["Simulation"],
    responses={
        404: {"description": "Template not found"},
        422: {"description": "Invalid ability level or blueprint"},
        500: {"description": "Internal server error"}
    }
)

simulator_service = TestSimulatorService()

logger = get_api_logger()


@router.post(
    "/templates/{template_id}",
    response_model=SuccessResponse[SimulationResponse],
    summary="Simulate template",
    description="Run a persona simulation of a stored template"
)
async def simulate_template(
    template_id: str,
    payload: SimulationRequest,
    request_id: str = Depends(get_request_id)
) -> SuccessResponse[SimulationResponse]:
    path = f"/simulation/templates/{template_id}"
    log_api_request("POST", path, logger=logger)
    started = time.perf_counter()

    try:
        result = await simulator_service.simulate_template(
            template_id,
            profile=payload.profile,
            ability_level=payload.ability_level,
            force_refresh=payload.force_refresh,
        )
    except (SkillSoftError, ValueError) as e:
        logger.warning(f"Simulation failed for template {template_id}: {str(e)}")
        raise http_exception_for(e)

    log_api_response("POST", path, status.HTTP_200_OK, (time.perf_counter() - started) * 1000, logger=logger)
    return create_success_response(data=SimulationResponse.from_result(result), request_id=request_id)


@router.post(
    "/preview",
    response_model=SuccessResponse[SimulationResponse],
    summary="Simulate blueprint",
    description="Run a persona simulation of an inline blueprint (not cached)"
)
async def simulate_preview(
    payload: SimulationPreviewRequest,
    request_id: str = Depends(get_request_id)
) -> SuccessResponse[SimulationResponse]:
    log_api_request("POST", "/simulation/preview", logger=logger)
    started = time.perf_counter()

    try:
        result = await simulator_service.simulate(payload.blueprint, payload.profile, payload.ability_level)
    except (SkillSoftError, ValueError) as e:
        logger.warning(f"Simulation preview failed: {str(e)}")
        raise http_exception_for(e)

    log_api_response(
        "POST", "/simulation/preview", status.HTTP_200_OK, (time.perf_counter() - started) * 1000, logger=logger
    )
    return create_success_response(data=SimulationResponse.from_result(result), request_id=request_id)
