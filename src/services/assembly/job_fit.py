"""Job fit assembly against an O*NET occupation profile."""

from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from src.database.mongodb import MongoDB
from src.models.competency import Competency
from src.models.template import JobFitBlueprint
from src.services.assembly.base import AssemblyResult, TestAssembler
from src.services.assembly.selection import QuestionSelectionService
from src.services.onet_service import OnetService
from src.utils.constants import AssemblyConstants, AssessmentGoal, Collections, DifficultyLevel
from src.utils.logger import get_assembly_logger

logger = get_assembly_logger()


@dataclass
class GapInfo:
    competency_name: str
    benchmark: float
    gap: float
    significant: bool


class JobFitAssembler(TestAssembler):
    """Targets the occupation's benchmark competencies, largest gaps first.

    Without a prior score for the candidate every benchmark is a full gap.
    """

    blueprint_type = JobFitBlueprint

    def __init__(
        self,
        onet_service: Optional[OnetService] = None,
        selection_service: Optional[QuestionSelectionService] = None,
        db=None,
    ):
        self.db = db or MongoDB
        self.onet_service = onet_service or OnetService()
        self.selection_service = selection_service or QuestionSelectionService(self.db)

    @property
    def supported_goal(self) -> AssessmentGoal:
        return AssessmentGoal.JOB_FIT

    @staticmethod
    def analyze_gaps(benchmarks: Dict[str, float], strictness: int) -> List[GapInfo]:
        """Gaps sorted largest first; stricter roles lower the significance bar."""
        threshold = AssemblyConstants.SIGNIFICANT_GAP_THRESHOLD * (100.0 - strictness) / 100.0
        gaps = [
            GapInfo(name, benchmark, benchmark, benchmark > threshold)
            for name, benchmark in benchmarks.items()
        ]
        return sorted(gaps, key=lambda g: -g.gap)

    async def assemble(self, blueprint) -> AssemblyResult:
        blueprint = self.require_blueprint(blueprint)

        soc_code = (blueprint.onet_soc_code or "").strip()
        if not soc_code:
            logger.warning("No O*NET SOC code in job fit blueprint")
            return AssemblyResult.empty("No O*NET SOC code provided in blueprint")

        logger.info(f"Assembling JOB_FIT test for SOC code {soc_code}")
        profile = await self.onet_service.get_profile(soc_code)
        if profile is None:
            logger.warning(f"No O*NET profile for SOC code {soc_code}")
            return AssemblyResult.empty(f"No O*NET profile found for SOC code {soc_code}")

        gaps = self.analyze_gaps(profile.benchmarks, blueprint.strictness_level)
        competencies = await self.load_competencies_by_name(blueprint.competency_ids)

        warnings: List[str] = []
        selected: List[str] = []
        used: Set[str] = set()

        for gap in gaps:
            difficulty = DifficultyLevel.ADVANCED if gap.significant else DifficultyLevel.INTERMEDIATE
            matches = competencies.get(gap.competency_name.strip().lower(), [])
            if not matches:
                message = f"No competency matches O*NET benchmark '{gap.competency_name}'"
                logger.debug(message)
                warnings.append(message)
                continue

            picked = await self.select_for_gap(matches, difficulty, used, warnings)
            selected.extend(picked)
            used.update(picked)

        logger.info(f"Assembled {len(selected)} questions for JOB_FIT (SOC {soc_code})")
        return AssemblyResult.of(selected, warnings)

    async def select_for_gap(
        self,
        competencies: List[Competency],
        difficulty: DifficultyLevel,
        used: Set[str],
        warnings: List[str],
    ) -> List[str]:
        picked: List[str] = []
        indicators = await self.selection_service.load_active_indicators([c.id_str for c in competencies])
        for indicator in indicators:
            remaining = AssemblyConstants.QUESTIONS_PER_GAP - len(picked)
            if remaining <= 0:
                break
            for question_id in await self.selection_service.select_questions_for_indicator(
                indicator.id_str, remaining, difficulty, used | set(picked), warnings
            ):
                if question_id not in used and question_id not in picked:
                    picked.append(question_id)
        return picked[:AssemblyConstants.QUESTIONS_PER_GAP]

    async def load_competencies_by_name(self, restrict_to: Optional[List[str]] = None) -> Dict[str, List[Competency]]:
        """Active competencies keyed by lower-cased name."""
        docs = await self.db.find_many(Collections.COMPETENCIES, {"is_active": True})
        allowed = set(restrict_to or [])
        by_name: Dict[str, List[Competency]] = {}
        for doc in docs:
            competency = Competency.from_dict(doc)
            if allowed and competency.id_str not in allowed:
                continue
            by_name.setdefault(competency.name.strip().lower(), []).append(competency)
        return by_name
