"""Legacy scoring used when no strategy is registered for a goal.

Raw answer scores are summed per competency with no weighting refinement.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from src.models.result import CompetencyScore
from src.services.scoring.aggregation import UNKNOWN_COMPETENCY, CompetencyAggregationService
from src.services.scoring.interpreter import ScoreInterpreter
from src.services.scoring.strategies.base import ScoringContext, ScoringResult
from src.utils.helper import calculate_percentage, clamp
from src.utils.logger import get_scoring_logger

logger = get_scoring_logger()


@dataclass
class _CompetencyTotals:
    score: float = 0.0
    max_score: float = 0.0
    count: int = 0


class LegacyScoring:
    """Flat per-competency sums over scored, non-skipped answers."""

    name = "LegacyScoring"

    def __init__(
        self,
        aggregation_service: Optional[CompetencyAggregationService] = None,
        interpreter: Optional[ScoreInterpreter] = None,
    ):
        self.aggregation_service = aggregation_service or CompetencyAggregationService()
        self.interpreter = interpreter or ScoreInterpreter()

    async def calculate(self, context: ScoringContext) -> ScoringResult:
        references = await self.aggregation_service.load_references(context.answers, session=context.db_session)
        competency_by_question = references.question_competency_map()

        totals: Dict[str, _CompetencyTotals] = {}
        overall_score = 0.0
        overall_max = 0.0

        for answer in context.answers:
            if answer.is_skipped or answer.score is None:
                continue

            max_score = answer.max_score if answer.max_score is not None else 1.0
            overall_score += answer.score
            overall_max += max_score

            competency_id = competency_by_question.get(answer.question_id)
            if competency_id is None:
                message = f"No competency for question {answer.question_id}, excluded from competency totals"
                logger.warning(message)
                references.warnings.append(message)
                continue

            entry = totals.setdefault(competency_id, _CompetencyTotals())
            entry.score += answer.score
            entry.max_score += max_score
            entry.count += 1

        scores = []
        for competency_id, entry in totals.items():
            competency = references.competencies.get(competency_id)
            scores.append(CompetencyScore(
                competency_id=competency_id,
                competency_name=competency.name if competency and competency.name else UNKNOWN_COMPETENCY,
                score=entry.score,
                max_score=entry.max_score,
                percentage=clamp(calculate_percentage(entry.score, entry.max_score), 0.0, 100.0),
                questions_answered=entry.count,
                onet_code=competency.onet_code if competency else None,
            ))

        self.interpreter.apply(scores)
        references.competency_scores = scores

        return ScoringResult(
            overall_score=overall_score,
            overall_percentage=clamp(calculate_percentage(overall_score, overall_max), 0.0, 100.0),
            competency_scores=scores,
            aggregation=references,
            warnings=references.warnings,
        )
