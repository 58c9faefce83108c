"""Pydantic schemas for the SkillSoft assessment API.

Request bodies and response DTOs. Responses use camelCase aliases.
"""

from src.schemas.base import (
    BaseResponse,
    ErrorResponse,
    ResponseMetadata,
    SuccessResponse,
    create_success_response,
)

__version__ = "1.0.0"

__all__ = [
    "BaseResponse",
    "ErrorResponse",
    "ResponseMetadata",
    "SuccessResponse",
    "create_success_response",
]
