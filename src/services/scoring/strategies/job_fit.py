"""Job fit scoring against an O*NET occupation benchmark."""

from typing import Dict, List, Optional

from src.core.config import get_settings
from src.models.result import CompetencyScore, DecisionConfidence
from src.models.template import JobFitBlueprint
from src.services.onet_service import OnetService
from src.services.scoring.aggregation import CompetencyAggregationService
from src.services.scoring.interpreter import ScoreInterpreter
from src.services.scoring.strategies.base import (
    ScoringContext,
    ScoringResult,
    ScoringStrategy,
    mean,
    weighted_average,
)
from src.utils.constants import AssessmentGoal, ConfidenceLevel, ScoringConstants
from src.utils.logger import get_scoring_logger

settings = get_settings()
logger = get_scoring_logger()

CONFIDENCE_MESSAGES = {
    ConfidenceLevel.HIGH: "High confidence: the result is clearly {direction} the fit threshold",
    ConfidenceLevel.MEDIUM: "Moderate confidence: consider a follow-up interview to confirm the decision",
    ConfidenceLevel.LOW: "Low confidence: the result is close to the threshold or based on limited evidence",
}


class JobFitScoringStrategy(ScoringStrategy):
    """Scores a job fit assessment with a strictness-dependent pass threshold."""

    def __init__(
        self,
        aggregation_service: Optional[CompetencyAggregationService] = None,
        onet_service: Optional[OnetService] = None,
        interpreter: Optional[ScoreInterpreter] = None,
        min_questions: int = ScoringConstants.JOB_FIT_MIN_QUESTIONS,
    ):
        self.aggregation_service = aggregation_service or CompetencyAggregationService()
        self.onet_service = onet_service or OnetService()
        self.interpreter = interpreter or ScoreInterpreter()
        self.min_questions = min_questions

    @property
    def supported_goal(self) -> AssessmentGoal:
        return AssessmentGoal.JOB_FIT

    @staticmethod
    def pass_threshold(strictness: int) -> float:
        """Fraction of the maximum needed to pass at a strictness level (0..100)."""
        return ScoringConstants.JOB_FIT_BASE_THRESHOLD + (strictness / 100.0) * ScoringConstants.JOB_FIT_STRICTNESS_RANGE

    async def calculate(self, context: ScoringContext) -> ScoringResult:
        blueprint = context.template.blueprint
        if not isinstance(blueprint, JobFitBlueprint):
            blueprint = None

        strictness = blueprint.strictness_level if blueprint else ScoringConstants.DEFAULT_STRICTNESS
        threshold = self.pass_threshold(strictness)
        benchmarks = await self.load_benchmarks(blueprint)

        aggregation = await self.aggregation_service.aggregate(context.answers, session=context.db_session)
        scores = aggregation.competency_scores

        for score in scores:
            self.score_against_benchmark(score, benchmarks)
        self.aggregation_service.apply_evidence_sufficiency(scores, self.min_questions)

        weights = [ScoringConstants.ONET_BOOST if s.onet_code else 1.0 for s in scores]
        overall_percentage = weighted_average([s.percentage for s in scores], weights)
        overall_score = mean([s.score for s in scores])
        passed = overall_percentage / 100.0 >= threshold

        self.interpreter.apply(scores)
        confidence = self.calculate_decision_confidence(overall_percentage, threshold, scores, benchmarks)

        logger.info(
            f"Job fit scoring for session {context.session.id_str}: {overall_percentage:.1f}% "
            f"(threshold {threshold:.2f}, passed={passed})",
            extra={"strictness": strictness, "confidence_level": confidence.confidence_level}
        )

        return ScoringResult(
            overall_score=overall_score,
            overall_percentage=overall_percentage,
            competency_scores=scores,
            passed=passed,
            decision_confidence=confidence,
            aggregation=aggregation,
            warnings=aggregation.warnings,
        )

    async def load_benchmarks(self, blueprint: Optional[JobFitBlueprint]) -> Dict[str, float]:
        """Benchmarks keyed by lower-cased competency name."""
        if blueprint is None or not blueprint.onet_soc_code:
            return {}
        profile = await self.onet_service.get_profile(blueprint.onet_soc_code)
        if profile is None:
            logger.warning(f"No O*NET profile for {blueprint.onet_soc_code}, scoring without benchmarks")
            return {}
        return {name.strip().lower(): value for name, value in profile.benchmarks.items()}

    def score_against_benchmark(self, score: CompetencyScore, benchmarks: Dict[str, float]) -> None:
        benchmark = benchmarks.get(score.competency_name.strip().lower())
        if benchmark is not None:
            score.benchmark_score = benchmark * ScoringConstants.ONET_BENCHMARK_SCALE

        if score.max_score > 0:
            score.questions_correct = round(score.percentage / 100.0 * score.questions_answered)

    @staticmethod
    def calculate_decision_confidence(
        overall_percentage: float,
        threshold: float,
        scores: List[CompetencyScore],
        benchmarks: Dict[str, float],
    ) -> DecisionConfidence:
        """Combine decision margin, evidence and benchmark coverage."""
        distance = overall_percentage / 100.0 - threshold
        margin = min(1.0, abs(distance) / ScoringConstants.DECISION_MARGIN_SPAN)

        evidence = 0.0
        if scores:
            evidence = sum(1 for s in scores if not s.insufficient_evidence) / len(scores)

        coverage = 1.0
        if benchmarks:
            assessed = {s.competency_name.strip().lower() for s in scores}
            coverage = sum(1 for name in benchmarks if name in assessed) / len(benchmarks)

        value = round(
            ScoringConstants.DECISION_MARGIN_WEIGHT * margin
            + ScoringConstants.DECISION_EVIDENCE_WEIGHT * evidence
            + ScoringConstants.DECISION_COVERAGE_WEIGHT * coverage,
            2,
        )

        if value >= ScoringConstants.HIGH_CONFIDENCE_THRESHOLD:
            level = ConfidenceLevel.HIGH
        elif value >= ScoringConstants.MEDIUM_CONFIDENCE_THRESHOLD:
            level = ConfidenceLevel.MEDIUM
        else:
            level = ConfidenceLevel.LOW

        message = CONFIDENCE_MESSAGES[level].format(direction="above" if distance >= 0 else "below")
        return DecisionConfidence(
            decision_confidence=value,
            confidence_level=level.value,
            confidence_message=message,
        )
