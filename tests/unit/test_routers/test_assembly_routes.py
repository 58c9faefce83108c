"""Route tests for template assembly and blueprint previews."""

from unittest.mock import AsyncMock, patch

import pytest

from src.services.assembly.base import AssemblyResult
from src.utils.exceptions import ResourceNotFoundError


@pytest.fixture
def template_service():
    with patch("src.routers.assembly.template_service") as service:
        service.get_template = AsyncMock()
        yield service


@pytest.fixture
def assembler_factory():
    with patch("src.routers.assembly.assembler_factory") as factory:
        factory.assemble = AsyncMock(return_value=AssemblyResult.of(["q1", "q2", "q3"]))
        yield factory


class TestAssembleTemplate:

    def test_assembles_stored_template(self, client, api, template_service, assembler_factory, make_template):
        template = make_template(goal="OVERVIEW", blueprint={"strategy": "OVERVIEW", "competency_ids": ["c1"]})
        template_service.get_template.return_value = template

        response = client.post(api(f"/assembly/templates/{template.id_str}"))

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Assembled 3 questions"
        assert body["data"]["questionIds"] == ["q1", "q2", "q3"]
        assert body["data"]["totalQuestions"] == 3
        assert body["data"]["goal"] == "OVERVIEW"

    def test_unknown_template_is_404(self, client, api, template_service, assembler_factory):
        template_service.get_template.side_effect = ResourceNotFoundError("Template t1 not found")

        response = client.post(api("/assembly/templates/t1"))

        assert response.status_code == 404
        assert response.json()["success"] is False
        assembler_factory.assemble.assert_not_awaited()

    def test_template_without_blueprint_is_422(self, client, api, template_service, assembler_factory, make_template):
        template = make_template(blueprint=None)
        template_service.get_template.return_value = template

        response = client.post(api(f"/assembly/templates/{template.id_str}"))

        assert response.status_code == 422
        assert "has no blueprint" in response.json()["error"]["message"]

    def test_unregistered_strategy_is_422(self, client, api, template_service, assembler_factory, make_template):
        template = make_template(goal="TEAM_FIT", blueprint={"strategy": "TEAM_FIT", "team_id": "team-1"})
        template_service.get_template.return_value = template
        assembler_factory.assemble.side_effect = ValueError("No assembler found for strategy: TEAM_FIT")

        response = client.post(api(f"/assembly/templates/{template.id_str}"))

        assert response.status_code == 422


class TestPreviewAssembly:

    def test_previews_inline_blueprint(self, client, api, assembler_factory):
        assembler_factory.assemble.return_value = AssemblyResult.empty("No competency IDs provided in blueprint")

        response = client.post(api("/assembly/preview"), json={"blueprint": {"strategy": "OVERVIEW"}})

        assert response.status_code == 200
        assert response.json()["data"]["warnings"] == ["No competency IDs provided in blueprint"]
        blueprint = assembler_factory.assemble.call_args.args[0]
        assert blueprint.strategy == "OVERVIEW"

    def test_unknown_strategy_fails_validation(self, client, api, assembler_factory):
        response = client.post(api("/assembly/preview"), json={"blueprint": {"strategy": "PERSONALITY"}})

        assert response.status_code == 422
        body = response.json()
        assert body["error"]["message"] == "Validation error"
        assert body["error"]["details"]
        assembler_factory.assemble.assert_not_awaited()
