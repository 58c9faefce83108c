"""Overview scoring: evidence-weighted profile across all measured competencies."""

from typing import Dict, List, Optional

from src.core.config import get_settings
from src.models.result import CompetencyScore
from src.models.template import OverviewBlueprint
from src.services.scoring.aggregation import CompetencyAggregationService
from src.services.scoring.interpreter import ScoreInterpreter
from src.services.scoring.strategies.base import (
    ScoringContext,
    ScoringResult,
    ScoringStrategy,
    build_big_five_profile,
    weighted_average,
)
from src.utils.constants import AssessmentGoal, ScoringConstants
from src.utils.logger import get_scoring_logger

settings = get_settings()
logger = get_scoring_logger()

PATTERN_ORDER = ["SIGNATURE_STRENGTH", "STRENGTH", "CRITICAL_GAP", "DEVELOPING", "AVERAGE"]


class OverviewScoringStrategy(ScoringStrategy):
    """Scores an overview assessment.

    Competencies with more answered questions carry more weight; those with
    insufficient evidence count at a reduced weight.
    """

    def __init__(
        self,
        aggregation_service: Optional[CompetencyAggregationService] = None,
        interpreter: Optional[ScoreInterpreter] = None,
        min_questions: Optional[int] = None,
        low_evidence_weight_factor: float = ScoringConstants.LOW_EVIDENCE_WEIGHT_FACTOR,
    ):
        self.aggregation_service = aggregation_service or CompetencyAggregationService()
        self.interpreter = interpreter or ScoreInterpreter()
        self.min_questions = min_questions or settings.MIN_QUESTIONS_PER_COMPETENCY
        self.low_evidence_weight_factor = low_evidence_weight_factor

    @property
    def supported_goal(self) -> AssessmentGoal:
        return AssessmentGoal.OVERVIEW

    async def calculate(self, context: ScoringContext) -> ScoringResult:
        aggregation = await self.aggregation_service.aggregate(context.answers, session=context.db_session)
        scores = aggregation.competency_scores

        self.aggregation_service.apply_evidence_sufficiency(scores, self.min_questions)
        weights = [self.competency_weight(score) for score in scores]

        overall_percentage = weighted_average([s.percentage for s in scores], weights)
        overall_score = weighted_average([s.score for s in scores], weights)

        self.interpreter.apply(scores)
        pattern = self.build_profile_pattern(scores, overall_percentage)

        big_five = None
        blueprint = context.template.blueprint
        if isinstance(blueprint, OverviewBlueprint) and blueprint.include_big_five:
            big_five = build_big_five_profile(scores, aggregation.competencies)

        logger.info(
            f"Overview scoring for session {context.session.id_str}: {overall_percentage:.1f}%",
            extra={"competency_count": len(scores)}
        )

        return ScoringResult(
            overall_score=overall_score,
            overall_percentage=overall_percentage,
            competency_scores=scores,
            big_five_profile=big_five,
            profile_pattern=pattern,
            aggregation=aggregation,
            warnings=aggregation.warnings,
        )

    def competency_weight(self, score: CompetencyScore) -> float:
        weight = float(max(score.questions_answered, 1))
        if score.insufficient_evidence:
            weight *= self.low_evidence_weight_factor
        return weight

    @staticmethod
    def classify(percentage: float, overall_percentage: float) -> str:
        """Place a competency into its profile pattern category."""
        if (
            percentage >= overall_percentage + ScoringConstants.SIGNATURE_STRENGTH_BAND
            and percentage >= ScoringConstants.STRENGTH_THRESHOLD
        ):
            return "SIGNATURE_STRENGTH"
        if percentage >= ScoringConstants.STRENGTH_THRESHOLD:
            return "STRENGTH"
        if percentage < ScoringConstants.CRITICAL_GAP_THRESHOLD:
            return "CRITICAL_GAP"
        if percentage >= ScoringConstants.DEVELOPING_PATTERN_THRESHOLD:
            return "DEVELOPING"
        return "AVERAGE"

    def build_profile_pattern(self, scores: List[CompetencyScore], overall_percentage: float) -> Dict[str, List[str]]:
        """Group competency names by pattern category, dropping empty ones."""
        pattern: Dict[str, List[str]] = {category: [] for category in PATTERN_ORDER}
        for score in scores:
            pattern[self.classify(score.percentage, overall_percentage)].append(score.competency_name)
        return {category: names for category, names in pattern.items() if names}
