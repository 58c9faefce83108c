"""Shared fixtures for the assessment server test suite."""

from datetime import timedelta
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock, Mock

import pytest
from bson import ObjectId

from src.models.competency import BehavioralIndicator, Competency
from src.models.question import AssessmentQuestion
from src.models.session import TestAnswer, TestSession
from src.models.template import TestTemplate
from src.utils.datetime_utils import utc_now


def new_id() -> str:
    return str(ObjectId())


@pytest.fixture
def mock_db():
    """MongoDB stand-in with every class method the services call."""
    db = Mock()
    db.find_one = AsyncMock(return_value=None)
    db.find_many = AsyncMock(return_value=[])
    db.count_documents = AsyncMock(return_value=0)
    db.insert_one = AsyncMock(side_effect=lambda *args, **kwargs: new_id())
    db.update_one = AsyncMock(return_value=True)
    db.aggregate = AsyncMock(return_value=[])

    transaction = MagicMock()
    transaction.__aenter__ = AsyncMock(return_value=None)
    transaction.__aexit__ = AsyncMock(return_value=False)
    db.transaction = Mock(return_value=transaction)
    return db


@pytest.fixture
def mock_cache():
    """Redis stand-in: an empty cache whose locks are always free."""
    cache = Mock()
    cache.get = AsyncMock(return_value=None)
    cache.set = AsyncMock(return_value=True)
    cache.delete = AsyncMock(return_value=1)
    cache.publish = AsyncMock(return_value=0)
    cache.ping = AsyncMock(return_value=True)
    return cache


@pytest.fixture
def make_competency():
    def _make(name: str = "Communication", **kwargs: Any) -> Competency:
        return Competency(_id=ObjectId(), name=name, **kwargs)

    return _make


@pytest.fixture
def make_indicator():
    def _make(competency_id: str, title: str = "Listens actively", **kwargs: Any) -> BehavioralIndicator:
        return BehavioralIndicator(_id=ObjectId(), competency_id=competency_id, title=title, **kwargs)

    return _make


@pytest.fixture
def make_question():
    def _make(
        indicator_id: str,
        question_type: str = "LIKERT",
        difficulty: str = "INTERMEDIATE",
        **kwargs: Any,
    ) -> AssessmentQuestion:
        return AssessmentQuestion(
            _id=ObjectId(),
            behavioral_indicator_id=indicator_id,
            question_text=kwargs.pop("question_text", "How often do you summarise what others said?"),
            question_type=question_type,
            difficulty_level=difficulty,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_answer():
    def _make(
        question_id: str,
        session_id: Optional[str] = None,
        likert_value: Optional[int] = None,
        score: Optional[float] = None,
        is_skipped: bool = False,
        answered: bool = True,
        time_spent_seconds: Optional[int] = 30,
        **kwargs: Any,
    ) -> TestAnswer:
        return TestAnswer(
            _id=ObjectId(),
            session_id=session_id or new_id(),
            question_id=question_id,
            likert_value=likert_value,
            score=score,
            is_skipped=is_skipped,
            answered_at=utc_now() if answered and not is_skipped else None,
            time_spent_seconds=time_spent_seconds,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_session():
    def _make(template_id: str, question_order: Optional[List[str]] = None, **kwargs: Any) -> TestSession:
        now = utc_now()
        return TestSession(
            _id=ObjectId(),
            template_id=template_id,
            question_order=question_order or [],
            status=kwargs.pop("status", "COMPLETED"),
            started_at=kwargs.pop("started_at", now - timedelta(minutes=20)),
            completed_at=kwargs.pop("completed_at", now),
            **kwargs,
        )

    return _make


@pytest.fixture
def make_template():
    def _make(goal: str = "OVERVIEW", blueprint: Optional[Dict[str, Any]] = None, **kwargs: Any) -> TestTemplate:
        return TestTemplate(
            _id=ObjectId(),
            name=kwargs.pop("name", "Leadership Overview"),
            goal=goal,
            blueprint=blueprint,
            **kwargs,
        )

    return _make
