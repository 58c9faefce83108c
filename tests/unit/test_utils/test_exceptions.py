"""Unit tests for the exception hierarchy and the error handler middleware."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.api.middleware.error_handler import ErrorHandlerMiddleware, http_exception_for, status_code_for
from src.utils.constants import ErrorCodes
from src.utils.exceptions import (
    BusinessLogicError,
    ConfigurationError,
    DatabaseError,
    ResourceNotFoundError,
    ScoringError,
    ValidationError,
    create_error_response,
    handle_exception_chain,
)


class TestExceptionHierarchy:
    """Test the domain exception types."""

    def test_str_joins_message_code_and_details(self):
        error = ResourceNotFoundError(
            "Session s1 not found", resource_type="session", resource_id="s1",
            error_code=ErrorCodes.SESSION_NOT_FOUND,
        )

        assert str(error) == (
            "Session s1 not found | Code: 1201 | Details: {'resource_type': 'session', 'resource_id': 's1'}"
        )

    def test_to_dict(self):
        cause = KeyError("c1")
        error = ScoringError("strategy failed", session_id="s1", stage="strategy", cause=cause)

        data = error.to_dict()

        assert data["error_type"] == "ScoringError"
        assert data["details"] == {"session_id": "s1", "stage": "strategy"}
        assert data["cause"] == str(cause)

    def test_database_error_masks_sensitive_query_fields(self):
        error = DatabaseError(
            "find failed", operation="find", collection="test_sessions",
            query={"clerk_user_id": "user_1", "filter": {"api_token": "abc", "status": "COMPLETED"}},
        )

        assert error.details["query"] == {
            "clerk_user_id": "***MASKED***",
            "filter": {"api_token": "***MASKED***", "status": "COMPLETED"},
        }

    def test_validation_error_records_the_value(self):
        error = ValidationError("Ability level must be between 0 and 100", field="ability_level", value=150)

        assert error.details == {"field": "ability_level", "value": 150}
        assert error.validation_errors == []


class TestErrorHelpers:
    """Test create_error_response and handle_exception_chain."""

    def test_error_response_with_details(self):
        error = BusinessLogicError("Scoring already in progress", operation="score", resource_id="s1")

        response = create_error_response(error)

        assert response == {
            "success": False,
            "error": {
                "type": "BusinessLogicError",
                "message": "Scoring already in progress",
                "code": None,
                "details": {"operation": "score", "resource_id": "s1"},
            },
        }

    def test_error_response_without_details(self):
        response = create_error_response(ConfigurationError("Blueprint missing"), include_details=False)

        assert "details" not in response["error"]

    def test_chain_follows_cause_then_dunder_cause(self):
        try:
            try:
                raise ConnectionError("socket closed")
            except ConnectionError as e:
                raise RuntimeError("write failed") from e
        except RuntimeError as e:
            root = e
        error = DatabaseError("insert failed", cause=root)

        chain = handle_exception_chain(error)

        assert [entry["type"] for entry in chain] == ["DatabaseError", "RuntimeError", "ConnectionError"]
        assert chain[0]["details"] == {}
        assert "details" not in chain[1]


class TestStatusMapping:

    @pytest.mark.parametrize("error, expected", [
        (ValidationError("bad"), 422),
        (ConfigurationError("bad"), 422),
        (ValueError("bad"), 422),
        (ResourceNotFoundError("missing"), 404),
        (BusinessLogicError("conflict"), 409),
        (DatabaseError("down"), 500),
        (ScoringError("failed"), 500),
    ])
    def test_status_code_for(self, error, expected):
        assert status_code_for(error) == expected

    def test_internal_errors_hide_their_message(self):
        exc = http_exception_for(DatabaseError("connection string mongodb://admin:secret@db"))

        assert exc.status_code == 500
        assert exc.detail == "An internal error occurred"


@pytest.fixture
def failing_client():
    app = FastAPI()
    app.add_middleware(ErrorHandlerMiddleware, debug=True)

    @app.get("/missing")
    async def missing():
        raise ResourceNotFoundError(
            "Template t1 not found", resource_type="template", resource_id="t1",
            error_code=ErrorCodes.TEMPLATE_NOT_FOUND,
        )

    @app.get("/invalid")
    async def invalid():
        raise ValueError("No assembler found for strategy: TEAM_FIT")

    @app.get("/crash")
    async def crash():
        raise RuntimeError("boom")

    return TestClient(app)


class TestErrorHandlerMiddleware:

    def test_domain_error_uses_standard_envelope(self, failing_client):
        response = failing_client.get("/missing")

        assert response.status_code == 404
        error = response.json()["error"]
        assert error["code"] == "1202"
        assert error["type"] == "ResourceNotFoundError"
        assert error["message"] == "Template t1 not found"
        assert error["details"] == {"resource_type": "template", "resource_id": "t1"}
        assert error["request_id"]

    def test_value_error_is_unprocessable(self, failing_client):
        response = failing_client.get("/invalid")

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "ValueError"

    def test_unexpected_error_includes_debug_chain(self, failing_client):
        response = failing_client.get("/crash")

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "INTERNAL_ERROR"
        assert error["message"] == "An internal error occurred"
        assert error["debug"]["chain"][0]["type"] == "RuntimeError"
