"""Test assembly API endpoints."""

import time

from fastapi import APIRouter, Depends, status

from src.api.dependencies import get_request_id
from src.api.middleware.error_handler import http_exception_for
from src.schemas.assembly_schemas import AssemblyPreviewRequest, AssemblyResponse
from src.schemas.base import SuccessResponse, create_success_response
from src.services.assembly.factory import TestAssemblerFactory
from src.services.template_service import TemplateService
from src.utils.exceptions import SkillSoftError
from src.utils.logger import get_api_logger, log_api_request, log_api_response

router = APIRouter(
    prefix="/assembly",
    tags=["Assembly"],
    responses={
        404: {"description": "Template not found"},
        422: {"description": "Invalid or unsupported blueprint"},
        500: {"description": "Internal server error"}
    }
)

template_service = TemplateService()
assembler_factory = TestAssemblerFactory.create_default()

logger = get_api_logger()


@router.post(
    "/templates/{template_id}",
    response_model=SuccessResponse[AssemblyResponse],
    summary="Assemble template",
    description="Select the questions of a stored template from its blueprint"
)
async def assemble_template(
    template_id: str,
    request_id: str = Depends(get_request_id)
) -> SuccessResponse[AssemblyResponse]:
    path = f"/assembly/templates/{template_id}"
    log_api_request("POST", path, logger=logger)
    started = time.perf_counter()

    try:
        template = await template_service.get_template(template_id)
        blueprint = template.require_blueprint()
        result = await assembler_factory.assemble(blueprint)
    except (SkillSoftError, ValueError) as e:
        logger.warning(f"Assembly failed for template {template_id}: {str(e)}")
        raise http_exception_for(e)

    log_api_response("POST", path, status.HTTP_200_OK, (time.perf_counter() - started) * 1000, logger=logger)
    return create_success_response(
        data=AssemblyResponse.from_result(result, goal=blueprint.strategy),
        message=f"Assembled {len(result.question_ids)} questions",
        request_id=request_id
    )


@router.post(
    "/preview",
    response_model=SuccessResponse[AssemblyResponse],
    summary="Preview assembly",
    description="Assemble an inline blueprint without saving a template"
)
async def preview_assembly(
    payload: AssemblyPreviewRequest,
    request_id: str = Depends(get_request_id)
) -> SuccessResponse[AssemblyResponse]:
    log_api_request("POST", "/assembly/preview", logger=logger)
    started = time.perf_counter()

    try:
        result = await assembler_factory.assemble(payload.blueprint)
    except (SkillSoftError, ValueError) as e:
        logger.warning(f"Assembly preview failed: {str(e)}")
        raise http_exception_for(e)

    log_api_response(
        "POST", "/assembly/preview", status.HTTP_200_OK, (time.perf_counter() - started) * 1000, logger=logger
    )
    return create_success_response(
        data=AssemblyResponse.from_result(result, goal=payload.blueprint.strategy),
        request_id=request_id
    )
