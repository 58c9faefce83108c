"""Test session and answer models."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from src.models.base import BaseDocument
from src.utils.constants import SessionStatus


class TestSession(BaseDocument):
    """One candidate's attempt at a template."""

    template_id: str = Field(...)
    clerk_user_id: Optional[str] = Field(default=None)
    question_order: List[str] = Field(default_factory=list)
    current_question_index: int = Field(default=0, ge=0)
    time_remaining_seconds: Optional[int] = Field(default=None, ge=0)
    status: SessionStatus = Field(default=SessionStatus.NOT_STARTED)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return SessionStatus(self.status).is_terminal

    @property
    def total_questions(self) -> int:
        return len(self.question_order)

    @classmethod
    def create_index_keys(cls) -> List[Dict[str, Any]]:
        return [
            {"keys": [("template_id", 1), ("status", 1)]},
            {"keys": [("clerk_user_id", 1)]},
        ]


class TestAnswer(BaseDocument):
    """One response to one question within a session."""

    session_id: str = Field(...)
    question_id: str = Field(...)

    # Response payload
    selected_option_ids: List[str] = Field(default_factory=list)
    likert_value: Optional[int] = Field(default=None)
    ranking_order: List[str] = Field(default_factory=list)
    text_response: Optional[str] = Field(default=None)

    is_skipped: bool = Field(default=False)
    answered_at: Optional[datetime] = None
    time_spent_seconds: Optional[int] = Field(default=None, ge=0)

    score: Optional[float] = Field(default=None)
    max_score: Optional[float] = Field(default=None)

    @property
    def is_answered(self) -> bool:
        """Answer counts towards scoring: not skipped and submitted."""
        return not self.is_skipped and self.answered_at is not None

    @classmethod
    def create_index_keys(cls) -> List[Dict[str, Any]]:
        return [
            {"keys": [("session_id", 1)]},
            {"keys": [("question_id", 1)]},
        ]
