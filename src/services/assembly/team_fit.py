"""Team fit assembly: probe the competencies a team is missing."""

from typing import Dict, List, Optional, Set

from src.core.config import get_settings
from src.models.template import TeamFitBlueprint
from src.services.assembly.base import AssemblyResult, TestAssembler
from src.services.assembly.selection import QuestionSelectionService
from src.services.team_service import TeamService
from src.utils.constants import AssemblyConstants, AssessmentGoal, DifficultyLevel
from src.utils.logger import get_assembly_logger

settings = get_settings()
logger = get_assembly_logger()


class TeamFitAssembler(TestAssembler):
    """Selects more, and harder, questions for the team's deepest gaps."""

    blueprint_type = TeamFitBlueprint

    def __init__(
        self,
        team_service: Optional[TeamService] = None,
        selection_service: Optional[QuestionSelectionService] = None,
        base_questions: Optional[int] = None,
    ):
        self.team_service = team_service or TeamService()
        self.selection_service = selection_service or QuestionSelectionService()
        self.base_questions = base_questions or settings.TEAM_FIT_BASE_QUESTIONS

    @property
    def supported_goal(self) -> AssessmentGoal:
        return AssessmentGoal.TEAM_FIT

    @staticmethod
    def resolve_threshold(value: Optional[float]) -> float:
        if value is None or value <= 0 or value > 1:
            return AssemblyConstants.TEAM_FIT_DEFAULT_THRESHOLD
        return value

    def question_quota(self, saturation: float) -> int:
        """Questions to ask for a competency; lower saturation asks more."""
        if saturation < AssemblyConstants.CRITICAL_GAP_SATURATION:
            return self.base_questions + AssemblyConstants.CRITICAL_GAP_BONUS
        if saturation < AssemblyConstants.MODERATE_GAP_SATURATION:
            return self.base_questions
        if saturation < AssemblyConstants.MINOR_GAP_SATURATION:
            return self.base_questions - 1
        return self.base_questions - 2

    @staticmethod
    def target_difficulty(saturation: float) -> DifficultyLevel:
        if saturation < AssemblyConstants.CRITICAL_GAP_SATURATION:
            return DifficultyLevel.ADVANCED
        if saturation < AssemblyConstants.MODERATE_GAP_SATURATION:
            return DifficultyLevel.INTERMEDIATE
        return DifficultyLevel.FOUNDATIONAL

    async def assemble(self, blueprint) -> AssemblyResult:
        blueprint = self.require_blueprint(blueprint)

        if not blueprint.team_id:
            logger.warning("No team id in team fit blueprint")
            return AssemblyResult.empty("No team ID provided in blueprint")

        threshold = self.resolve_threshold(blueprint.saturation_threshold)
        logger.info(f"Assembling TEAM_FIT test for team {blueprint.team_id} (threshold {threshold})")

        team = await self.team_service.get_team_profile(blueprint.team_id)
        if team is None:
            logger.warning(f"No team profile found for team {blueprint.team_id}")
            return AssemblyResult.empty(f"No team profile found for team {blueprint.team_id}")

        targets = await self.team_service.get_undersaturated_competencies(blueprint.team_id, threshold)
        if not targets:
            logger.info(f"No undersaturated competencies for team {blueprint.team_id}, using full profile")
            targets = list(team.competency_saturation.keys())

        warnings: List[str] = []
        question_ids = await self.select_for_competencies(targets, team.competency_saturation, warnings)

        logger.info(f"Assembled {len(question_ids)} questions for TEAM_FIT team {blueprint.team_id}")
        return AssemblyResult.of(question_ids, warnings)

    async def select_for_competencies(
        self,
        competency_ids: List[str],
        saturation: Dict[str, float],
        warnings: List[str],
    ) -> List[str]:
        selected: List[str] = []
        used: Set[str] = set()

        # sorted() is stable, so equal saturations keep encounter order
        ordered = sorted(competency_ids, key=lambda cid: saturation.get(cid, 1.0))

        for competency_id in ordered:
            level = saturation.get(competency_id, 1.0)
            quota = self.question_quota(level)
            difficulty = self.target_difficulty(level)

            indicators = await self.selection_service.load_active_indicators([competency_id])
            if not indicators:
                message = f"No active indicators for competency {competency_id}"
                logger.warning(message)
                warnings.append(message)
                continue

            for indicator, share in zip(indicators, split_evenly(quota, len(indicators))):
                if share <= 0:
                    continue
                picked = await self.selection_service.select_questions_for_indicator(
                    indicator.id_str, share, difficulty, used, warnings
                )
                for question_id in picked:
                    if question_id not in used:
                        selected.append(question_id)
                        used.add(question_id)

            logger.debug(
                f"Competency {competency_id}: saturation {level:.2f}, quota {quota} at {difficulty.value}"
            )

        return selected


def split_evenly(total: int, parts: int) -> List[int]:
    """Split ``total`` into ``parts`` shares differing by at most one, larger first."""
    if parts <= 0:
        return []
    base, extra = divmod(total, parts)
    return [base + 1 if i < extra else base for i in range(parts)]
