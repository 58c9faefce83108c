"""Route tests for session scoring."""

from unittest.mock import AsyncMock, patch

import pytest

from src.schemas.result_schemas import TestResultResponse
from src.utils.exceptions import BusinessLogicError, DatabaseError, ResourceNotFoundError


@pytest.fixture
def scoring_service():
    with patch("src.routers.scoring.scoring_service") as service:
        service.calculate_and_save_result = AsyncMock()
        service.get_result = AsyncMock()
        yield service


def completed_result(**overrides):
    fields = dict(
        id="665f1c2e8b3e4a1d2c3b4a59",
        session_id="665f1c2e8b3e4a1d2c3b4a5a",
        template_id="665f1c2e8b3e4a1d2c3b4a5b",
        overall_score=8.0,
        overall_percentage=80.0,
        passed=True,
        questions_answered=10,
        total_questions=10,
        status="COMPLETED",
    )
    fields.update(overrides)
    return TestResultResponse(**fields)


class TestScoreSession:

    def test_scores_session(self, client, api, scoring_service):
        scoring_service.calculate_and_save_result.return_value = completed_result()

        response = client.post(api("/scoring/sessions/665f1c2e8b3e4a1d2c3b4a5a"))

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Session scored"
        assert body["data"]["overallPercentage"] == 80.0
        assert body["data"]["sessionId"] == "665f1c2e8b3e4a1d2c3b4a5a"
        scoring_service.calculate_and_save_result.assert_awaited_once_with("665f1c2e8b3e4a1d2c3b4a5a")

    def test_pending_result_is_still_a_success(self, client, api, scoring_service):
        scoring_service.calculate_and_save_result.return_value = completed_result(
            status="PENDING", overall_score=None, overall_percentage=None, passed=None,
        )

        response = client.post(api("/scoring/sessions/s1"))

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "PENDING"

    def test_missing_session_is_404(self, client, api, scoring_service):
        scoring_service.calculate_and_save_result.side_effect = ResourceNotFoundError(
            "Session s1 not found", resource_type="session", resource_id="s1"
        )

        response = client.post(api("/scoring/sessions/s1"))

        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["error"]["message"] == "Session s1 not found"

    def test_concurrent_scoring_is_409(self, client, api, scoring_service):
        scoring_service.calculate_and_save_result.side_effect = BusinessLogicError(
            "Session s1 is already being scored", operation="score_session"
        )

        response = client.post(api("/scoring/sessions/s1"))

        assert response.status_code == 409
        assert response.json()["error"]["code"] == 409

    def test_infrastructure_failure_hides_details(self, client, api, scoring_service):
        scoring_service.calculate_and_save_result.side_effect = DatabaseError("connection reset by mongo-0")

        response = client.post(api("/scoring/sessions/s1"))

        assert response.status_code == 500
        assert response.json()["error"]["message"] == "An internal error occurred"


class TestGetSessionResult:

    def test_returns_result(self, client, api, scoring_service):
        scoring_service.get_result.return_value = completed_result(percentile=62)

        response = client.get(api("/scoring/sessions/665f1c2e8b3e4a1d2c3b4a5a"))

        assert response.status_code == 200
        assert response.json()["data"]["percentile"] == 62

    def test_missing_result_is_404(self, client, api, scoring_service):
        scoring_service.get_result.side_effect = ResourceNotFoundError("No result for session s1")

        response = client.get(api("/scoring/sessions/s1"))

        assert response.status_code == 404
