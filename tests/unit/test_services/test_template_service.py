"""Unit tests for template lookup, template status and the audit scheduler clock."""

from datetime import datetime, timezone

import pytest

from src.core.events import seconds_until_hour
from src.services.template_service import TemplateService
from src.utils.exceptions import ResourceNotFoundError


class TestTemplateService:

    @pytest.mark.asyncio
    async def test_template_is_loaded_and_cached(self, mock_db, mock_cache, make_template):
        template = make_template(goal="JOB_FIT", blueprint={"strategy": "JOB_FIT", "onet_soc_code": "15-1252.00"})
        mock_db.find_one.return_value = template.to_mongo()

        loaded = await TemplateService(db=mock_db, cache=mock_cache).get_template(template.id_str)

        assert loaded.id_str == template.id_str
        assert loaded.goal == "JOB_FIT"
        assert template.id_str in mock_cache.set.call_args.args[0]

    @pytest.mark.asyncio
    async def test_malformed_id_is_not_found(self, mock_db, mock_cache):
        with pytest.raises(ResourceNotFoundError):
            await TemplateService(db=mock_db, cache=mock_cache).get_template("not-an-object-id")

        mock_db.find_one.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_template(self, mock_db, mock_cache):
        with pytest.raises(ResourceNotFoundError):
            await TemplateService(db=mock_db, cache=mock_cache).get_template("507f1f77bcf86cd799439011")


class TestSecondsUntilHour:

    def test_later_today(self):
        now = datetime(2024, 5, 1, 0, 30, tzinfo=timezone.utc)

        assert seconds_until_hour(2, now) == 90 * 60

    def test_rolls_over_to_tomorrow(self):
        now = datetime(2024, 5, 1, 2, 0, tzinfo=timezone.utc)

        assert seconds_until_hour(2, now) == 24 * 3600


class TestTemplateStatus:

    @pytest.mark.parametrize("status,editable", [("DRAFT", True), ("PUBLISHED", False), ("ARCHIVED", False)])
    def test_only_drafts_are_editable(self, make_template, status, editable):
        assert make_template(status=status).is_editable is editable
