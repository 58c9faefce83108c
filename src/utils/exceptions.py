"""Custom exception classes for the SkillSoft assessment server.

This module defines a hierarchy of custom exceptions for the different types
of errors raised by the assembly, scoring, simulation and psychometric
services.
"""

from typing import Any, Dict, List, Optional


class SkillSoftError(Exception):
    """Base exception class for all application errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        """Initialize application error.

        Args:
            message: Error message
            error_code: Application-specific error code
            details: Additional error details
            cause: Underlying exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary representation.

        Returns:
            Dict[str, Any]: Exception data
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
            "cause": str(self.cause) if self.cause else None,
        }

    def __str__(self) -> str:
        """String representation of the exception."""
        parts = [self.message]
        if self.error_code:
            parts.append(f"Code: {self.error_code}")
        if self.details:
            parts.append(f"Details: {self.details}")
        return " | ".join(parts)


class ValidationError(SkillSoftError):
    """Exception for input validation errors."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        validation_errors: Optional[List[str]] = None,
        **kwargs
    ):
        """Initialize validation error.

        Args:
            message: Error message
            field: Field name that failed validation
            value: Invalid value
            validation_errors: List of specific validation errors
            **kwargs: Additional arguments for parent class
        """
        details = kwargs.get("details", {})
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = value
        if validation_errors:
            details["validation_errors"] = validation_errors

        kwargs["details"] = details
        super().__init__(message, **kwargs)

        self.field = field
        self.value = value
        self.validation_errors = validation_errors or []


class BusinessLogicError(SkillSoftError):
    """Exception for business rule violations."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        resource_id: Optional[str] = None,
        **kwargs
    ):
        """Initialize business logic error.

        Args:
            message: Error message
            operation: Operation that failed
            resource_id: ID of resource involved
            **kwargs: Additional arguments for parent class
        """
        details = kwargs.get("details", {})
        if operation:
            details["operation"] = operation
        if resource_id:
            details["resource_id"] = resource_id

        kwargs["details"] = details
        super().__init__(message, **kwargs)

        self.operation = operation
        self.resource_id = resource_id


class ResourceNotFoundError(SkillSoftError):
    """Exception for when a requested resource is not found."""

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        **kwargs
    ):
        """Initialize resource not found error.

        Args:
            message: Error message
            resource_type: Type of resource (session, template, etc.)
            resource_id: ID of the resource
            **kwargs: Additional arguments for parent class
        """
        details = kwargs.get("details", {})
        if resource_type:
            details["resource_type"] = resource_type
        if resource_id:
            details["resource_id"] = resource_id

        kwargs["details"] = details
        super().__init__(message, **kwargs)

        self.resource_type = resource_type
        self.resource_id = resource_id


class DatabaseError(SkillSoftError):
    """Exception for database operation failures."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        collection: Optional[str] = None,
        query: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        """Initialize database error.

        Args:
            message: Error message
            operation: Database operation (find, insert, update, aggregate)
            collection: Collection name
            query: Query that failed (sensitive data will be masked)
            **kwargs: Additional arguments for parent class
        """
        details = kwargs.get("details", {})
        if operation:
            details["operation"] = operation
        if collection:
            details["collection"] = collection
        if query:
            details["query"] = _mask_sensitive_query_data(query)

        kwargs["details"] = details
        super().__init__(message, **kwargs)

        self.operation = operation
        self.collection = collection
        self.query = query


class ConfigurationError(SkillSoftError):
    """Exception for configuration errors such as a mismatched blueprint."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        **kwargs
    ):
        """Initialize configuration error.

        Args:
            message: Error message
            config_key: Configuration key
            config_value: Configuration value
            **kwargs: Additional arguments for parent class
        """
        details = kwargs.get("details", {})
        if config_key:
            details["config_key"] = config_key
        if config_value is not None:
            details["config_value"] = str(config_value)

        kwargs["details"] = details
        super().__init__(message, **kwargs)

        self.config_key = config_key
        self.config_value = config_value


class ScoringError(SkillSoftError):
    """Exception for scoring pipeline failures."""

    def __init__(
        self,
        message: str,
        session_id: Optional[str] = None,
        stage: Optional[str] = None,
        **kwargs
    ):
        """Initialize scoring error.

        Args:
            message: Error message
            session_id: Session being scored
            stage: Pipeline stage that failed (strategy, enrichment, persist)
            **kwargs: Additional arguments for parent class
        """
        details = kwargs.get("details", {})
        if session_id:
            details["session_id"] = session_id
        if stage:
            details["stage"] = stage

        kwargs["details"] = details
        super().__init__(message, **kwargs)

        self.session_id = session_id
        self.stage = stage


# Utility functions for error handling

def _mask_sensitive_query_data(query: Dict[str, Any]) -> Dict[str, Any]:
    """Mask sensitive data in database query.

    Args:
        query: Query dictionary

    Returns:
        Dict[str, Any]: Query with sensitive data masked
    """
    sensitive_fields = ["password", "token", "key", "secret", "clerk_user_id"]
    masked_query = {}

    for key, value in query.items():
        if any(field in key.lower() for field in sensitive_fields):
            masked_query[key] = "***MASKED***"
        elif isinstance(value, dict):
            masked_query[key] = _mask_sensitive_query_data(value)
        else:
            masked_query[key] = value

    return masked_query


def create_error_response(
    error: SkillSoftError,
    include_details: bool = True
) -> Dict[str, Any]:
    """Create standardized error response dictionary.

    Args:
        error: Application error instance
        include_details: Whether to include error details

    Returns:
        Dict[str, Any]: Error response dictionary
    """
    response = {
        "success": False,
        "error": {
            "type": error.__class__.__name__,
            "message": error.message,
            "code": error.error_code,
        }
    }

    if include_details and error.details:
        response["error"]["details"] = error.details

    return response


def handle_exception_chain(exception: Exception) -> List[Dict[str, Any]]:
    """Flatten an exception chain into a list of error descriptions.

    Args:
        exception: Exception to process

    Returns:
        List[Dict[str, Any]]: List of error information
    """
    errors = []
    current_exception = exception

    while current_exception:
        error_info = {
            "type": current_exception.__class__.__name__,
            "message": str(current_exception),
        }

        if isinstance(current_exception, SkillSoftError):
            error_info.update({
                "error_code": current_exception.error_code,
                "details": current_exception.details,
            })

        errors.append(error_info)

        if isinstance(current_exception, SkillSoftError) and current_exception.cause:
            current_exception = current_exception.cause
        else:
            current_exception = getattr(current_exception, "__cause__", None)

    return errors


__all__ = [
    "SkillSoftError",
    "ValidationError",
    "BusinessLogicError",
    "ResourceNotFoundError",
    "DatabaseError",
    "ConfigurationError",
    "ScoringError",
    "create_error_response",
    "handle_exception_chain",
]
