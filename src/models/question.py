"""Assessment question model."""

from typing import Any, Dict, List, Optional

from pydantic import Field

from src.models.base import BaseDocument
from src.utils.constants import DifficultyLevel, QuestionType


class AssessmentQuestion(BaseDocument):
    """A single question belonging to exactly one behavioral indicator.

    Answer options are semi-structured records. Each one is expected to carry
    at least an ``id``; scored options also carry a ``score`` and choice
    questions may mark the keyed option with ``correct``.
    """

    behavioral_indicator_id: str = Field(...)
    question_text: str = Field(..., min_length=1)
    question_type: QuestionType = Field(...)
    answer_options: List[Dict[str, Any]] = Field(default_factory=list)
    difficulty_level: DifficultyLevel = Field(default=DifficultyLevel.INTERMEDIATE)
    scoring_rubric: Optional[str] = Field(default=None)
    time_limit: Optional[int] = Field(default=None, ge=1, description="Seconds")
    is_active: bool = Field(default=True)
    order_index: int = Field(default=0, ge=0)

    @classmethod
    def create_index_keys(cls) -> List[Dict[str, Any]]:
        return [
            {"keys": [("behavioral_indicator_id", 1), ("is_active", 1)]},
            {"keys": [("difficulty_level", 1)]},
        ]
