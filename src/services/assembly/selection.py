"""Question selection shared by the goal assemblers.

Selection always applies psychometric eligibility and never returns a
question twice within one assembly. When an indicator runs out of
questions it falls back, in order, to any difficulty and then to sibling
indicators of the same competency.
"""

from typing import Dict, Iterable, List, Optional, Set

from src.database.mongodb import MongoDB
from src.models.competency import BehavioralIndicator
from src.models.question import AssessmentQuestion
from src.services.psychometrics.validator import PsychometricValidator
from src.utils.constants import Collections, DifficultyLevel
from src.utils.helper import to_object_id
from src.utils.logger import get_assembly_logger

logger = get_assembly_logger()


def difficulty_distance(actual: Optional[str], preferred: DifficultyLevel) -> int:
    """Ordinal distance between two difficulty levels; unknown levels sort last."""
    try:
        return abs(DifficultyLevel(actual).ordinal - preferred.ordinal)
    except ValueError:
        return len(DifficultyLevel)


class QuestionSelectionService:
    """Picks questions for behavioral indicators."""

    def __init__(self, db=None, validator: Optional[PsychometricValidator] = None):
        self.db = db or MongoDB
        self.validator = validator or PsychometricValidator(self.db)

    async def load_active_questions(self, indicator_id: str) -> List[AssessmentQuestion]:
        docs = await self.db.find_many(
            Collections.ASSESSMENT_QUESTIONS,
            {"behavioral_indicator_id": indicator_id, "is_active": True},
            sort=[("order_index", 1), ("_id", 1)],
        )
        return [AssessmentQuestion.from_dict(doc) for doc in docs]

    async def load_eligible_questions(self, indicator_id: str) -> List[AssessmentQuestion]:
        return await self.validator.filter_eligible(await self.load_active_questions(indicator_id))

    @staticmethod
    def apply_difficulty_preference(
        questions: List[AssessmentQuestion],
        preferred: Optional[DifficultyLevel],
    ) -> List[AssessmentQuestion]:
        """Order questions by closeness to the preferred difficulty.

        The sort is stable, so questions at the same distance keep their
        stored order.
        """
        if preferred is None:
            return list(questions)
        preferred = DifficultyLevel(preferred)
        return sorted(questions, key=lambda q: difficulty_distance(q.difficulty_level, preferred))

    async def select_questions_for_indicator(
        self,
        indicator_id: str,
        max_questions: int,
        preferred_difficulty: Optional[DifficultyLevel] = None,
        exclude: Optional[Set[str]] = None,
        warnings: Optional[List[str]] = None,
    ) -> List[str]:
        """Select up to ``max_questions`` question ids for an indicator.

        Args:
            indicator_id: Indicator to select for
            max_questions: Upper bound on the number of ids returned
            preferred_difficulty: Difficulty to prefer, if any
            exclude: Ids already used in this assembly
            warnings: Collector for selection warnings

        Returns:
            List[str]: Selected question ids
        """
        if max_questions <= 0:
            return []
        excluded = set(exclude or ())
        if warnings is None:
            warnings = []

        eligible = await self.load_eligible_questions(indicator_id)
        if not eligible:
            message = f"No active questions found for indicator {indicator_id}"
            logger.warning(message)
            warnings.append(message)

        candidates = [q for q in eligible if q.id_str not in excluded]
        preferred = self.apply_difficulty_preference(candidates, preferred_difficulty)
        selected = [q.id_str for q in preferred[:max_questions]]

        if len(selected) < max_questions:
            selected = await self.apply_exhaustion_fallback(
                indicator_id, max_questions, excluded, selected, warnings
            )

        logger.debug(f"Selected {len(selected)} of {max_questions} questions for indicator {indicator_id}")
        return selected

    async def apply_exhaustion_fallback(
        self,
        indicator_id: str,
        max_questions: int,
        excluded: Set[str],
        selected: List[str],
        warnings: List[str],
    ) -> List[str]:
        """Fill a short selection from sibling indicators of the same competency.

        The difficulty-ordered primary pass already covers every difficulty
        of the indicator itself, so borrowing is the only remaining source.
        """
        result = list(selected)
        used = excluded | set(result)
        remaining = max_questions - len(result)

        indicator = await self.load_indicator(indicator_id)
        if indicator is None or not indicator.competency_id:
            return result

        siblings = await self.db.find_many(
            Collections.BEHAVIORAL_INDICATORS,
            {"competency_id": indicator.competency_id, "is_active": True},
            sort=[("weight", -1), ("_id", 1)],
        )
        borrowed = 0
        for sibling_doc in siblings:
            if remaining <= 0:
                break
            sibling_id = str(sibling_doc["_id"])
            if sibling_id == indicator_id:
                continue
            for question in await self.load_eligible_questions(sibling_id):
                if remaining <= 0:
                    break
                if question.id_str in used:
                    continue
                result.append(question.id_str)
                used.add(question.id_str)
                remaining -= 1
                borrowed += 1

        if borrowed:
            message = (
                f"Borrowing {borrowed} questions from sibling indicators of competency "
                f"{indicator.competency_id} (flagged for psychometric review)"
            )
            logger.warning(message)
            warnings.append(message)
        return result

    async def load_active_indicators(self, competency_ids: List[str]) -> List[BehavioralIndicator]:
        """Active indicators of the given competencies, heaviest first."""
        if not competency_ids:
            return []
        docs = await self.db.find_many(
            Collections.BEHAVIORAL_INDICATORS,
            {"competency_id": {"$in": list(competency_ids)}, "is_active": True},
        )
        indicators = [BehavioralIndicator.from_dict(doc) for doc in docs]
        return sorted(indicators, key=lambda i: -i.weight)

    async def load_indicator(self, indicator_id: str) -> Optional[BehavioralIndicator]:
        object_id = to_object_id(indicator_id)
        if object_id is None:
            return None
        doc = await self.db.find_one(Collections.BEHAVIORAL_INDICATORS, {"_id": object_id})
        return BehavioralIndicator.from_dict(doc) if doc else None

    async def distribute_questions_waterfall(
        self,
        indicator_ids: List[str],
        questions_per_indicator: int,
        preferred_difficulty: Optional[DifficultyLevel] = None,
        pools: Optional[Dict[str, List[str]]] = None,
    ) -> List[str]:
        """Round-robin over indicators, one question per indicator per round.

        Args:
            indicator_ids: Indicators in priority order
            questions_per_indicator: Rounds to run
            preferred_difficulty: Difficulty used to order each pool
            pools: Pre-built ordered question pools by indicator

        Returns:
            List[str]: Selected question ids, interleaved by indicator
        """
        if not indicator_ids or questions_per_indicator <= 0:
            return []

        if pools is None:
            pools = {}
            for indicator_id in indicator_ids:
                questions = self.apply_difficulty_preference(
                    await self.load_eligible_questions(indicator_id), preferred_difficulty
                )
                pools[indicator_id] = [q.id_str for q in questions]

        return waterfall(indicator_ids, pools, questions_per_indicator)


def waterfall(indicator_ids: Iterable[str], pools: Dict[str, List[str]], rounds: int) -> List[str]:
    """Interleave ordered pools, taking one unused id per pool per round."""
    indicator_ids = list(indicator_ids)
    cursors = {indicator_id: 0 for indicator_id in indicator_ids}
    used: Set[str] = set()
    selected: List[str] = []

    for _ in range(rounds):
        for indicator_id in indicator_ids:
            pool = pools.get(indicator_id, [])
            cursor = cursors[indicator_id]
            while cursor < len(pool) and pool[cursor] in used:
                cursor += 1
            if cursor < len(pool):
                selected.append(pool[cursor])
                used.add(pool[cursor])
                cursor += 1
            cursors[indicator_id] = cursor
    return selected
