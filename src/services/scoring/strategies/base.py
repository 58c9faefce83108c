"""Scoring strategy contract and goal-keyed registry.

Each assessment goal has at most one strategy. The orchestrator resolves a
strategy with a single registry lookup and falls back to legacy scoring when
no strategy is registered for a template's goal.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from src.models.competency import Competency
from src.models.result import CompetencyScore, DecisionConfidence, TeamFitMetrics
from src.models.session import TestAnswer, TestSession
from src.models.template import TestTemplate
from src.services.scoring.aggregation import AggregationResult
from src.utils.constants import AssessmentGoal, ErrorCodes
from src.utils.exceptions import ConfigurationError
from src.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class ScoringContext:
    """Everything a strategy needs to score one session."""

    session: TestSession
    template: TestTemplate
    answers: List[TestAnswer]
    db_session: Any = None


@dataclass
class ScoringResult:
    """Output of a scoring strategy before enrichment.

    ``passed`` is left as None by strategies that defer the pass decision to
    the template's passing score.
    """

    overall_score: float
    overall_percentage: float
    competency_scores: List[CompetencyScore]
    passed: Optional[bool] = None
    big_five_profile: Optional[Dict[str, float]] = None
    team_fit_metrics: Optional[TeamFitMetrics] = None
    decision_confidence: Optional[DecisionConfidence] = None
    profile_pattern: Optional[Dict[str, List[str]]] = None
    aggregation: Optional[AggregationResult] = None
    warnings: List[str] = field(default_factory=list)


class ScoringStrategy(ABC):
    """Goal-specific scoring algorithm."""

    @property
    @abstractmethod
    def supported_goal(self) -> AssessmentGoal:
        """Assessment goal this strategy scores."""

    @abstractmethod
    async def calculate(self, context: ScoringContext) -> ScoringResult:
        """Score a session's answers.

        Args:
            context: Session, template and answers to score

        Returns:
            ScoringResult: Overall and per-competency scores
        """

    @property
    def name(self) -> str:
        return self.__class__.__name__


class ScoringStrategyRegistry:
    """Goal to strategy map built once at startup."""

    def __init__(self, strategies: Optional[Iterable[ScoringStrategy]] = None):
        self._strategies: Dict[AssessmentGoal, ScoringStrategy] = {}
        for strategy in strategies or []:
            self.register(strategy)

    def register(self, strategy: ScoringStrategy) -> None:
        """Register a strategy for its goal.

        Raises:
            ConfigurationError: If the goal already has a strategy
        """
        goal = AssessmentGoal(strategy.supported_goal)
        if goal in self._strategies:
            raise ConfigurationError(
                f"Duplicate scoring strategy for goal: {goal.value}",
                config_key="scoring_strategy",
                config_value=goal.value,
                error_code=ErrorCodes.CONFIGURATION_ERROR,
            )
        self._strategies[goal] = strategy
        logger.debug(f"Registered scoring strategy {strategy.name} for {goal.value}")

    def get(self, goal: Any) -> Optional[ScoringStrategy]:
        """Get the strategy for a goal, or None when none is registered."""
        try:
            return self._strategies.get(AssessmentGoal(goal))
        except ValueError:
            return None

    @property
    def goals(self) -> List[AssessmentGoal]:
        return list(self._strategies.keys())


def weighted_average(values: Iterable[float], weights: Iterable[float]) -> float:
    """Weighted mean; 0 when the weights sum to zero."""
    total = 0.0
    total_weight = 0.0
    for value, weight in zip(values, weights):
        total += value * weight
        total_weight += weight
    if total_weight <= 0:
        return 0.0
    return total / total_weight


def mean(values: List[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def build_big_five_profile(
    scores: List[CompetencyScore],
    competencies: Dict[str, Competency],
) -> Optional[Dict[str, float]]:
    """Average competency percentage per Big Five trait.

    Only competencies mapped to a trait contribute. Returns None when no
    scored competency maps to any trait.
    """
    by_trait: Dict[str, List[float]] = {}
    for score in scores:
        competency = competencies.get(score.competency_id)
        trait = competency.big_five_trait if competency else None
        if trait is None:
            continue
        by_trait.setdefault(trait.value, []).append(score.percentage)

    if not by_trait:
        return None
    return {trait: round(mean(values), 2) for trait, values in by_trait.items()}
