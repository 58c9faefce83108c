"""Base Pydantic schemas for the assessment API.

This module provides base schemas, response envelopes and common data
structures used across all API endpoints.
"""

from datetime import datetime
from typing import Any, Dict, Generic, Optional, TypeVar

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from src.utils.datetime_utils import utc_now

# Generic type variable for data
DataType = TypeVar('DataType')


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = {
        "use_enum_values": True,
        "validate_assignment": True,
        "arbitrary_types_allowed": False,
        "str_strip_whitespace": True,
        "json_schema_extra": {
            "example": {}
        }
    }


class CamelSchema(BaseSchema):
    """Schema serialised with camelCase keys, accepting either form on input."""

    model_config = {
        **BaseSchema.model_config,
        "alias_generator": to_camel,
        "populate_by_name": True,
    }


class ResponseMetadata(BaseSchema):
    """Metadata included in API responses."""

    request_id: Optional[str] = Field(None, description="Unique request identifier")
    timestamp: datetime = Field(default_factory=utc_now, description="Response timestamp")
    version: str = Field(default="1.0", description="API version")
    processing_time_ms: Optional[float] = Field(None, description="Request processing time in milliseconds")


class BaseResponse(BaseSchema, Generic[DataType]):
    """Base response schema for all API endpoints."""

    success: bool = Field(..., description="Whether the request was successful")
    message: Optional[str] = Field(None, description="Human-readable message")
    data: Optional[DataType] = Field(None, description="Response data")
    meta: Optional[ResponseMetadata] = Field(None, description="Response metadata")


class SuccessResponse(BaseResponse[DataType]):
    """Success response schema."""

    success: bool = Field(default=True, description="Always true for success responses")

    @classmethod
    def create(
        cls,
        data: DataType,
        message: Optional[str] = None,
        meta: Optional[ResponseMetadata] = None
    ) -> "SuccessResponse[DataType]":
        """Create a success response.

        Args:
            data: Response data
            message: Optional success message
            meta: Optional metadata

        Returns:
            SuccessResponse: Success response instance
        """
        return cls(
            success=True,
            data=data,
            message=message,
            meta=meta or ResponseMetadata()
        )


class ErrorDetail(BaseSchema):
    """Individual error detail."""

    code: Optional[str] = Field(None, description="Error code")
    message: str = Field(..., description="Error message")
    field: Optional[str] = Field(None, description="Field that caused the error")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")

    model_config = {
        **BaseSchema.model_config,
        "json_schema_extra": {
            "example": {
                "code": "RESOURCE_NOT_FOUND",
                "message": "Session not found",
                "field": None,
                "details": {"resource_type": "session"}
            }
        }
    }


class ErrorResponse(BaseResponse[None]):
    """Error response schema."""

    success: bool = Field(default=False, description="Always false for error responses")
    error: ErrorDetail = Field(..., description="Error information")

    @classmethod
    def create(
        cls,
        message: str,
        code: Optional[str] = None,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        meta: Optional[ResponseMetadata] = None
    ) -> "ErrorResponse":
        """Create an error response.

        Args:
            message: Error message
            code: Error code
            field: Field that caused the error
            details: Additional error details
            meta: Optional metadata

        Returns:
            ErrorResponse: Error response instance
        """
        return cls(
            success=False,
            error=ErrorDetail(
                code=code,
                message=message,
                field=field,
                details=details
            ),
            meta=meta or ResponseMetadata()
        )


def create_success_response(
    data: Any,
    message: Optional[str] = None,
    request_id: Optional[str] = None
) -> SuccessResponse:
    """Wrap data in the standard success envelope.

    Args:
        data: Response data
        message: Optional success message
        request_id: Request identifier for the metadata block

    Returns:
        SuccessResponse: Success response instance
    """
    return SuccessResponse.create(
        data=data,
        message=message,
        meta=ResponseMetadata(request_id=request_id)
    )
