"""Team fit scoring: how a candidate complements an existing team."""

from typing import Dict, List, Optional

from src.models.result import CompetencyScore, TeamFitMetrics
from src.models.session import TestAnswer
from src.models.team import Team
from src.models.template import TeamFitBlueprint
from src.services.scoring.aggregation import AggregationResult, CompetencyAggregationService
from src.services.scoring.interpreter import ScoreInterpreter
from src.services.scoring.strategies.base import (
    ScoringContext,
    ScoringResult,
    ScoringStrategy,
    mean,
    weighted_average,
)
from src.services.team_service import TeamService
from src.utils.constants import AssessmentGoal, ScoringConstants
from src.utils.logger import get_scoring_logger

logger = get_scoring_logger()


class TeamFitScoringStrategy(ScoringStrategy):
    """Scores a team fit assessment.

    Each competency is classified as saturation (the candidate duplicates
    strength the team already has), diversity (adds useful range) or gap.
    A diverse, unsaturated profile earns a bonus; a heavily saturated one a
    penalty.
    """

    def __init__(
        self,
        aggregation_service: Optional[CompetencyAggregationService] = None,
        team_service: Optional[TeamService] = None,
        interpreter: Optional[ScoreInterpreter] = None,
    ):
        self.aggregation_service = aggregation_service or CompetencyAggregationService()
        self.team_service = team_service or TeamService()
        self.interpreter = interpreter or ScoreInterpreter()

    @property
    def supported_goal(self) -> AssessmentGoal:
        return AssessmentGoal.TEAM_FIT

    @staticmethod
    def resolve_saturation_threshold(blueprint: Optional[TeamFitBlueprint]) -> float:
        if blueprint is None:
            return ScoringConstants.DEFAULT_SATURATION_THRESHOLD
        value = blueprint.saturation_threshold
        if value is None or value <= 0 or value > 1:
            return ScoringConstants.DEFAULT_SATURATION_THRESHOLD
        return value

    async def calculate(self, context: ScoringContext) -> ScoringResult:
        blueprint = context.template.blueprint
        if not isinstance(blueprint, TeamFitBlueprint):
            blueprint = None

        saturation_threshold = self.resolve_saturation_threshold(blueprint)
        team = await self.team_service.get_team_profile(blueprint.team_id) if blueprint else None

        aggregation = await self.aggregation_service.aggregate(context.answers, session=context.db_session)
        scores = aggregation.competency_scores
        big_five = self.build_personality_profile(context.answers, aggregation)

        saturation_count = diversity_count = gap_count = 0
        for score in scores:
            category = self.classify(score.percentage / 100.0, saturation_threshold)
            if category == "saturation":
                saturation_count += 1
            elif category == "diversity":
                diversity_count += 1
            else:
                gap_count += 1

        total = len(scores)
        diversity_ratio = diversity_count / total if total else 0.0
        saturation_ratio = saturation_count / total if total else 0.0

        weights = [self.competency_weight(score, aggregation) for score in scores]
        overall_percentage = weighted_average([s.percentage for s in scores], weights)
        overall_score = mean([s.score for s in scores])

        multiplier = self.team_fit_multiplier(diversity_ratio, saturation_ratio)
        adjusted = overall_percentage * multiplier
        passed = (
            adjusted >= ScoringConstants.TEAM_FIT_PASS_THRESHOLD
            and diversity_ratio >= ScoringConstants.MIN_DIVERSITY_RATIO
        )

        self.interpreter.apply(scores)

        metrics = TeamFitMetrics(
            diversity_ratio=round(diversity_ratio, 4),
            saturation_ratio=round(saturation_ratio, 4),
            team_fit_multiplier=multiplier,
            diversity_count=diversity_count,
            saturation_count=saturation_count,
            gap_count=gap_count,
            competency_saturation=dict(team.competency_saturation) if team else {},
            team_size=team.member_count if team else 0,
            personality_compatibility=self.personality_compatibility(big_five, team),
        )

        logger.info(
            f"Team fit scoring for session {context.session.id_str}: {overall_percentage:.1f}% "
            f"x{multiplier} (passed={passed})",
            extra={"diversity_ratio": diversity_ratio, "saturation_ratio": saturation_ratio}
        )

        return ScoringResult(
            overall_score=overall_score,
            overall_percentage=overall_percentage,
            competency_scores=scores,
            passed=passed,
            big_five_profile=big_five,
            team_fit_metrics=metrics,
            aggregation=aggregation,
            warnings=aggregation.warnings,
        )

    @staticmethod
    def classify(fraction: float, saturation_threshold: float) -> str:
        if fraction >= saturation_threshold:
            return "saturation"
        if fraction >= ScoringConstants.DIVERSITY_THRESHOLD:
            return "diversity"
        return "gap"

    @staticmethod
    def competency_weight(score: CompetencyScore, aggregation: AggregationResult) -> float:
        competency = aggregation.competencies.get(score.competency_id)
        weight = 1.0
        if competency is not None and competency.esco_uri:
            weight *= ScoringConstants.ESCO_BOOST
        if competency is not None and competency.big_five_category:
            weight *= ScoringConstants.BIG_FIVE_BOOST
        return weight

    @staticmethod
    def team_fit_multiplier(diversity_ratio: float, saturation_ratio: float) -> float:
        if (
            diversity_ratio > ScoringConstants.DIVERSITY_BONUS_THRESHOLD
            and saturation_ratio < ScoringConstants.SATURATION_PENALTY_CEILING
        ):
            return ScoringConstants.DIVERSITY_BONUS
        if saturation_ratio > ScoringConstants.SATURATION_PENALTY_THRESHOLD:
            return ScoringConstants.SATURATION_PENALTY
        return 1.0

    def build_personality_profile(
        self,
        answers: List[TestAnswer],
        aggregation: AggregationResult,
    ) -> Optional[Dict[str, float]]:
        """Average normalized answer score per Big Five trait, as a percentage."""
        by_trait: Dict[str, List[float]] = {}
        competency_by_question = aggregation.question_competency_map()

        for answer in answers:
            if not answer.is_answered:
                continue
            competency = aggregation.competencies.get(competency_by_question.get(answer.question_id, ""))
            trait = competency.big_five_trait if competency else None
            if trait is None:
                continue
            normalized = self.aggregation_service.normalizer.normalize(
                answer, aggregation.questions.get(answer.question_id)
            )
            by_trait.setdefault(trait.value, []).append(normalized)

        if not by_trait:
            return None
        return {trait: round(mean(values) * 100, 2) for trait, values in by_trait.items()}

    @staticmethod
    def personality_compatibility(candidate: Optional[Dict[str, float]], team: Optional[Team]) -> Optional[float]:
        """Closeness of the candidate's trait profile to the team's, 0..100."""
        if not candidate or team is None or not team.personality_profile:
            return None
        shared = [trait for trait in candidate if trait in team.personality_profile]
        if not shared:
            return None
        distance = mean([abs(candidate[t] - team.personality_profile[t]) for t in shared])
        return round(max(0.0, 100.0 - distance), 2)
