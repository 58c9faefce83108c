"""Overview assembly: a broad, context-neutral sweep of selected competencies."""

from typing import Dict, List, Optional

from src.core.config import get_settings
from src.models.competency import BehavioralIndicator
from src.models.template import OverviewBlueprint
from src.services.assembly.base import AssemblyResult, TestAssembler
from src.services.assembly.selection import QuestionSelectionService, waterfall
from src.utils.constants import AssessmentGoal, ContextScope, DifficultyLevel
from src.utils.logger import get_assembly_logger

settings = get_settings()
logger = get_assembly_logger()


class OverviewAssembler(TestAssembler):
    """Round-robins across indicators so every indicator is sampled evenly."""

    blueprint_type = OverviewBlueprint

    def __init__(self, selection_service: Optional[QuestionSelectionService] = None):
        self.selection_service = selection_service or QuestionSelectionService()

    @property
    def supported_goal(self) -> AssessmentGoal:
        return AssessmentGoal.OVERVIEW

    async def assemble(self, blueprint) -> AssemblyResult:
        blueprint = self.require_blueprint(blueprint)

        if not blueprint.competency_ids:
            logger.warning("No competency ids in overview blueprint")
            return AssemblyResult.empty("No competency IDs provided in blueprint")

        logger.info(f"Assembling OVERVIEW test for {len(blueprint.competency_ids)} competencies")

        indicators = await self.selection_service.load_active_indicators(blueprint.competency_ids)
        if not indicators:
            logger.warning(f"No behavioral indicators for competencies {blueprint.competency_ids}")
            return AssemblyResult.empty("No active behavioral indicators found for the selected competencies")

        warnings: List[str] = []
        preferred = DifficultyLevel(blueprint.preferred_difficulty or DifficultyLevel.INTERMEDIATE)
        pools = await self.build_pools(indicators, preferred, warnings)

        rounds = blueprint.questions_per_indicator or settings.DEFAULT_QUESTIONS_PER_INDICATOR
        question_ids = waterfall([i.id_str for i in indicators], pools, rounds)

        logger.info(f"Assembled {len(question_ids)} questions for OVERVIEW across {len(indicators)} indicators")
        return AssemblyResult.of(question_ids, warnings)

    async def build_pools(
        self,
        indicators: List[BehavioralIndicator],
        preferred: DifficultyLevel,
        warnings: List[str],
    ) -> Dict[str, List[str]]:
        """Ordered question pool per indicator.

        Context-neutral indicators are preferred. An indicator outside the
        UNIVERSAL scope still contributes its eligible questions with a
        warning, so an overview never comes out silently empty. Retired
        questions are excluded in both cases.
        """
        pools: Dict[str, List[str]] = {}
        for indicator in indicators:
            questions = await self.selection_service.load_eligible_questions(indicator.id_str)
            if questions and indicator.context_scope != ContextScope.UNIVERSAL:
                message = (
                    f"Indicator {indicator.title} has no context-neutral questions, "
                    "using any eligible question"
                )
                logger.debug(message)
                warnings.append(message)

            ordered = self.selection_service.apply_difficulty_preference(questions, preferred)
            pools[indicator.id_str] = [q.id_str for q in ordered]
        return pools
