"""Response consistency analysis.

Looks for disengagement patterns across a whole session: answers given
too fast to have been read, straight-lined Likert responses, and unusual
score variance inside a competency.
"""

import statistics
from collections import Counter
from typing import Dict, List, Optional

from src.models.question import AssessmentQuestion
from src.models.result import ConsistencyMetrics
from src.models.session import TestAnswer
from src.services.scoring.normalizer import ScoreNormalizer
from src.utils.constants import ConsistencyConstants
from src.utils.logger import get_scoring_logger

logger = get_scoring_logger()


class ResponseConsistencyAnalyzer:
    """Produces a 0..1 consistency score and human readable flags."""

    def __init__(self, normalizer: Optional[ScoreNormalizer] = None):
        self.normalizer = normalizer or ScoreNormalizer()

    def analyze(
        self,
        answers: List[TestAnswer],
        competency_by_question: Optional[Dict[str, str]] = None,
        questions: Optional[Dict[str, AssessmentQuestion]] = None,
    ) -> ConsistencyMetrics:
        """Analyze all answers of a session.

        Args:
            answers: Every answer in the session, skipped ones included
            competency_by_question: Question id to competency id
            questions: Loaded questions by id, used for normalization

        Returns:
            ConsistencyMetrics: Score, flags and the underlying rates
        """
        if not answers:
            return ConsistencyMetrics()

        answered = [a for a in answers if a.is_answered]
        speed_rate = self.speed_anomaly_rate(answered)
        straight_rate = self.straight_lining_rate(answers)
        variance = self.intra_competency_variance(answered, competency_by_question or {}, questions or {})

        score = (
            ConsistencyConstants.SPEED_WEIGHT * (1.0 - speed_rate)
            + ConsistencyConstants.STRAIGHT_LINING_WEIGHT * (1.0 - straight_rate)
            + ConsistencyConstants.VARIANCE_WEIGHT * self.variance_factor(variance)
        )
        flags = self.build_flags(len(answered), speed_rate, straight_rate, variance)

        logger.debug(
            f"Consistency score {score:.2f}: speed={speed_rate:.2f} straight={straight_rate:.2f} "
            f"variance={variance:.4f} flags={len(flags)}"
        )

        return ConsistencyMetrics(
            consistency_score=round(score, 2),
            consistency_flags=flags,
            speed_anomaly_rate=speed_rate,
            straight_lining_rate=straight_rate,
            intra_competency_variance=variance,
        )

    @staticmethod
    def speed_anomaly_rate(answered: List[TestAnswer]) -> float:
        if not answered:
            return 0.0
        fast = sum(
            1 for a in answered
            if a.time_spent_seconds is not None
            and a.time_spent_seconds < ConsistencyConstants.MIN_RESPONSE_TIME_SECONDS
        )
        return fast / len(answered)

    @staticmethod
    def straight_lining_rate(answers: List[TestAnswer]) -> float:
        """Share of Likert answers that used the most common value."""
        values = [a.likert_value for a in answers if a.likert_value is not None]
        if not values:
            return 0.0
        most_common = Counter(values).most_common(1)[0][1]
        return most_common / len(values)

    def intra_competency_variance(
        self,
        answered: List[TestAnswer],
        competency_by_question: Dict[str, str],
        questions: Dict[str, AssessmentQuestion],
    ) -> float:
        """Mean sample variance of normalized scores within each competency."""
        grouped: Dict[str, List[float]] = {}
        for answer in answered:
            competency_id = competency_by_question.get(answer.question_id)
            if competency_id is None:
                continue
            grouped.setdefault(competency_id, []).append(
                self.normalizer.normalize(answer, questions.get(answer.question_id))
            )

        variances = [
            statistics.variance(values)
            for values in grouped.values()
            if len(values) >= ConsistencyConstants.MIN_ANSWERS_FOR_VARIANCE
        ]
        if not variances:
            return 0.0
        return statistics.fmean(variances)

    @staticmethod
    def variance_factor(variance: float) -> float:
        """1.0 inside the normal variance band, falling linearly outside it."""
        if variance == 0.0:
            return ConsistencyConstants.ZERO_VARIANCE_FACTOR
        low = ConsistencyConstants.OPTIMAL_VARIANCE_LOW
        high = ConsistencyConstants.OPTIMAL_VARIANCE_HIGH
        if low <= variance <= high:
            return 1.0
        if variance < low:
            return variance / low
        return max(0.0, 1.0 - (variance - high) / (1.0 - high))

    @staticmethod
    def build_flags(answered_count: int, speed_rate: float, straight_rate: float, variance: float) -> List[str]:
        flags = []

        if speed_rate > ConsistencyConstants.SPEED_ANOMALY_THRESHOLD:
            flags.append(
                f"Speed anomaly: {round(speed_rate * answered_count)} of {answered_count} answers "
                f"were completed in under {ConsistencyConstants.MIN_RESPONSE_TIME_SECONDS} seconds"
            )

        if straight_rate > ConsistencyConstants.STRAIGHT_LINING_THRESHOLD:
            flags.append(
                f"Straight-lining detected: {round(straight_rate * 100)}% of Likert responses used the same value"
            )

        if 0.0 < variance < ConsistencyConstants.LOW_VARIANCE_FLAG:
            flags.append("Low response variance suggests possible disengagement")

        if variance > ConsistencyConstants.HIGH_VARIANCE_FLAG:
            flags.append("High response variance suggests inconsistent engagement")

        return flags
