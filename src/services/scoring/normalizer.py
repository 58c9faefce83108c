"""Score normalization for individual answers.

Every question type is reduced to a value in [0, 1] so answers of different
formats can be aggregated together.
"""

from typing import Optional

from src.models.question import AssessmentQuestion
from src.models.session import TestAnswer
from src.utils.constants import (
    CHOICE_QUESTION_TYPES,
    HYBRID_QUESTION_TYPES,
    LIKERT_QUESTION_TYPES,
    SJT_QUESTION_TYPES,
    TEXT_QUESTION_TYPES,
    QuestionType,
    ScoringConstants,
)
from src.utils.helper import clamp
from src.utils.logger import get_logger

logger = get_logger(__name__)


class ScoreNormalizer:
    """Converts raw answer payloads into normalized scores."""

    def normalize(self, answer: TestAnswer, question: Optional[AssessmentQuestion] = None) -> float:
        """Normalize an answer's score into [0, 1].

        Args:
            answer: The answer to normalize
            question: The answered question, used to pick the policy

        Returns:
            float: Normalized score; 0 for skipped or missing answers
        """
        if answer is None or answer.is_skipped:
            return 0.0

        question_type = self._resolve_type(question)
        if question_type is None:
            logger.warning(
                f"Unknown question type for answer {answer.id_str}, using raw score",
                extra={"question_id": answer.question_id}
            )
            return self._clamped_score(answer)

        if question_type in LIKERT_QUESTION_TYPES:
            return self._likert(answer.likert_value)

        if question_type in SJT_QUESTION_TYPES:
            return self._clamped_score(answer)

        if question_type in CHOICE_QUESTION_TYPES:
            return answer.score if answer.score is not None else 0.0

        if question_type in HYBRID_QUESTION_TYPES:
            if answer.likert_value is not None:
                return self._likert(answer.likert_value)
            return self._clamped_score(answer)

        if question_type in TEXT_QUESTION_TYPES:
            return self._clamped_score(answer)

        return self._clamped_score(answer)

    @staticmethod
    def _likert(value: Optional[int]) -> float:
        if value is None:
            return 0.0
        bounded = clamp(value, ScoringConstants.LIKERT_MIN, ScoringConstants.LIKERT_MAX)
        span = ScoringConstants.LIKERT_MAX - ScoringConstants.LIKERT_MIN
        return (bounded - ScoringConstants.LIKERT_MIN) / span

    @staticmethod
    def _clamped_score(answer: TestAnswer) -> float:
        if answer.score is None:
            return 0.0
        return clamp(answer.score, 0.0, 1.0)

    @staticmethod
    def _resolve_type(question: Optional[AssessmentQuestion]) -> Optional[QuestionType]:
        if question is None or question.question_type is None:
            return None
        try:
            return QuestionType(question.question_type)
        except ValueError:
            return None
