"""Competency aggregation pipeline.

Answers are normalized, accumulated per behavioral indicator, rolled up into
their parent competencies and finally projected into competency scores.
Unresolvable references are logged, recorded as warnings and skipped; they
never abort the batch.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from src.database.mongodb import MongoDB
from src.models.competency import BehavioralIndicator, Competency
from src.models.question import AssessmentQuestion
from src.models.result import CompetencyScore, IndicatorScore
from src.models.session import TestAnswer
from src.services.scoring.normalizer import ScoreNormalizer
from src.utils.constants import Collections
from src.utils.helper import clamp, remove_duplicates, to_object_ids
from src.utils.logger import get_logger

logger = get_logger(__name__)

UNKNOWN_INDICATOR = "Unknown Indicator"
UNKNOWN_COMPETENCY = "Unknown Competency"


@dataclass
class IndicatorAggregation:
    """Running totals for one indicator within a scoring pass."""

    indicator_id: str
    total_score: float = 0.0
    max_score: float = 0.0
    question_count: int = 0

    def add_answer(self, normalized_score: float) -> None:
        self.total_score += normalized_score
        self.max_score += 1.0
        self.question_count += 1

    @property
    def percentage(self) -> float:
        if self.max_score <= 0:
            return 0.0
        return self.total_score / self.max_score * 100

    def to_score(self, indicator: Optional[BehavioralIndicator]) -> IndicatorScore:
        return IndicatorScore(
            indicator_id=self.indicator_id,
            indicator_title=(indicator.title if indicator and indicator.title else UNKNOWN_INDICATOR),
            score=self.total_score,
            max_score=self.max_score,
            percentage=self.percentage,
            weight=(indicator.weight if indicator and indicator.weight else 1.0),
            questions_answered=self.question_count,
        )


@dataclass
class CompetencyAggregation:
    """Weighted merge of indicator aggregations for one competency."""

    competency_id: str
    weighted_percentage_sum: float = 0.0
    total_weight: float = 0.0
    total_score: float = 0.0
    total_max_score: float = 0.0
    question_count: int = 0
    indicator_scores: List[IndicatorScore] = field(default_factory=list)

    def add_indicator(self, indicator_score: IndicatorScore, aggregation: IndicatorAggregation) -> None:
        weight = indicator_score.weight or 1.0
        self.weighted_percentage_sum += weight * indicator_score.percentage
        self.total_weight += weight
        self.total_score += weight * aggregation.total_score
        self.total_max_score += weight * aggregation.max_score
        self.question_count += aggregation.question_count
        self.indicator_scores.append(indicator_score)

    @property
    def percentage(self) -> float:
        if self.total_weight <= 0:
            return 0.0
        return clamp(self.weighted_percentage_sum / self.total_weight, 0.0, 100.0)

    def to_score(self, competency: Optional[Competency]) -> CompetencyScore:
        return CompetencyScore(
            competency_id=self.competency_id,
            competency_name=(competency.name if competency and competency.name else UNKNOWN_COMPETENCY),
            score=self.total_score,
            max_score=self.total_max_score,
            percentage=self.percentage,
            questions_answered=self.question_count,
            onet_code=competency.onet_code if competency else None,
            indicator_scores=list(self.indicator_scores),
        )


@dataclass
class AggregationResult:
    """Output of one aggregation pass, with the lookups it loaded."""

    indicator_aggregations: Dict[str, IndicatorAggregation] = field(default_factory=dict)
    competency_aggregations: Dict[str, CompetencyAggregation] = field(default_factory=dict)
    competency_scores: List[CompetencyScore] = field(default_factory=list)
    questions: Dict[str, AssessmentQuestion] = field(default_factory=dict)
    indicators: Dict[str, BehavioralIndicator] = field(default_factory=dict)
    competencies: Dict[str, Competency] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    def question_competency_map(self) -> Dict[str, str]:
        """Map question ids to the competency they measure."""
        mapping = {}
        for question_id, question in self.questions.items():
            indicator = self.indicators.get(question.behavioral_indicator_id)
            if indicator is not None:
                mapping[question_id] = indicator.competency_id
        return mapping


class CompetencyAggregationService:
    """Four-stage aggregation: load, normalize, roll up, build scores."""

    def __init__(self, db=None, normalizer: Optional[ScoreNormalizer] = None):
        """Initialize aggregation service.

        Args:
            db: Database instance
            normalizer: Answer normalizer
        """
        self.db = db or MongoDB
        self.normalizer = normalizer or ScoreNormalizer()

    async def aggregate(self, answers: List[TestAnswer], session=None) -> AggregationResult:
        """Aggregate a session's answers into competency scores.

        Args:
            answers: All answers of the session, skipped ones included
            session: Optional MongoDB client session

        Returns:
            AggregationResult: Aggregations, scores, lookups and warnings
        """
        result = await self.load_references(answers, session=session)

        result.indicator_aggregations = self.normalize_and_aggregate(
            answers, result.questions, result.warnings
        )
        result.competency_aggregations = self.roll_up_indicators_to_competencies(
            result.indicator_aggregations, result.indicators, result.competencies, result.warnings
        )
        result.competency_scores = self.build_competency_scores(
            result.competency_aggregations, result.competencies
        )

        logger.debug(
            f"Aggregated {len(answers)} answers into {len(result.competency_scores)} competencies",
            extra={"warning_count": len(result.warnings)}
        )
        return result

    async def load_references(self, answers: Iterable[TestAnswer], session=None) -> AggregationResult:
        """Batch-load questions, indicators and competencies for the answers."""
        result = AggregationResult()

        question_ids = remove_duplicates([a.question_id for a in answers if a.question_id])
        result.questions = await self.load_by_ids(
            Collections.ASSESSMENT_QUESTIONS, question_ids, AssessmentQuestion, session
        )

        indicator_ids = remove_duplicates([q.behavioral_indicator_id for q in result.questions.values()])
        result.indicators = await self.load_by_ids(
            Collections.BEHAVIORAL_INDICATORS, indicator_ids, BehavioralIndicator, session
        )

        competency_ids = remove_duplicates([i.competency_id for i in result.indicators.values()])
        result.competencies = await self.load_by_ids(
            Collections.COMPETENCIES, competency_ids, Competency, session
        )
        return result

    async def load_by_ids(self, collection: str, ids: List[str], model: Any, session=None) -> Dict[str, Any]:
        """Load documents by id into a map keyed by string id."""
        object_ids = to_object_ids(ids)
        if not object_ids:
            return {}

        docs = await self.db.find_many(collection, {"_id": {"$in": object_ids}}, session=session)
        loaded = {}
        for doc in docs:
            item = model.from_dict(doc)
            loaded[item.id_str] = item
        return loaded

    def normalize_and_aggregate(
        self,
        answers: Iterable[TestAnswer],
        questions: Dict[str, AssessmentQuestion],
        warnings: Optional[List[str]] = None,
    ) -> Dict[str, IndicatorAggregation]:
        """Normalize answered answers and accumulate them per indicator.

        Skipped and unanswered answers are excluded. Answers whose indicator
        cannot be resolved are logged and skipped.
        """
        warnings = warnings if warnings is not None else []
        aggregations: Dict[str, IndicatorAggregation] = {}

        for answer in answers:
            if not answer.is_answered:
                continue

            question = questions.get(answer.question_id)
            indicator_id = question.behavioral_indicator_id if question else None
            if not indicator_id:
                message = f"Could not resolve indicator for answer {answer.id_str} (question {answer.question_id})"
                logger.warning(message)
                warnings.append(message)
                continue

            normalized = self.normalizer.normalize(answer, question)
            aggregation = aggregations.setdefault(indicator_id, IndicatorAggregation(indicator_id))
            aggregation.add_answer(normalized)

        return aggregations

    def roll_up_indicators_to_competencies(
        self,
        indicator_aggregations: Dict[str, IndicatorAggregation],
        indicators: Dict[str, BehavioralIndicator],
        competencies: Dict[str, Competency],
        warnings: Optional[List[str]] = None,
    ) -> Dict[str, CompetencyAggregation]:
        """Merge indicator aggregations into their parent competencies."""
        warnings = warnings if warnings is not None else []
        aggregations: Dict[str, CompetencyAggregation] = {}

        for indicator_id, indicator_aggregation in indicator_aggregations.items():
            indicator = indicators.get(indicator_id)
            if indicator is None:
                message = f"Indicator {indicator_id} not found, skipping roll-up"
                logger.warning(message)
                warnings.append(message)
                continue

            if indicator.competency_id not in competencies:
                message = f"Competency {indicator.competency_id} of indicator {indicator_id} not found, skipping roll-up"
                logger.warning(message)
                warnings.append(message)
                continue

            competency_aggregation = aggregations.setdefault(
                indicator.competency_id, CompetencyAggregation(indicator.competency_id)
            )
            competency_aggregation.add_indicator(indicator_aggregation.to_score(indicator), indicator_aggregation)

        return aggregations

    def build_competency_scores(
        self,
        competency_aggregations: Dict[str, CompetencyAggregation],
        competencies: Dict[str, Competency],
    ) -> List[CompetencyScore]:
        """Project competency aggregations into score records."""
        scores = []
        for competency_id, aggregation in competency_aggregations.items():
            scores.append(aggregation.to_score(competencies.get(competency_id)))
        return scores

    @staticmethod
    def apply_evidence_sufficiency(scores: List[CompetencyScore], min_questions: int) -> List[CompetencyScore]:
        """Flag competencies answered with fewer than ``min_questions`` questions.

        This is advisory metadata; scores are never altered.
        """
        for score in scores:
            if score.questions_answered < min_questions:
                score.insufficient_evidence = True
                score.evidence_note = (
                    f"Score based on {score.questions_answered} question(s); "
                    f"minimum {min_questions} required"
                )
        return scores
