"""Goal-keyed assembler registry."""

from typing import Any, Dict, Iterable, List, Optional

from src.services.assembly.base import AssemblyResult, TestAssembler
from src.services.assembly.job_fit import JobFitAssembler
from src.services.assembly.overview import OverviewAssembler
from src.services.assembly.selection import QuestionSelectionService
from src.services.assembly.team_fit import TeamFitAssembler
from src.services.onet_service import OnetService
from src.services.team_service import TeamService
from src.utils.constants import AssessmentGoal
from src.utils.logger import get_assembly_logger

logger = get_assembly_logger()


class TestAssemblerFactory:
    """Dispatches a blueprint to the assembler registered for its goal."""

    def __init__(self, assemblers: Iterable[TestAssembler]):
        self._assemblers: Dict[AssessmentGoal, TestAssembler] = {}
        for assembler in assemblers:
            goal = AssessmentGoal(assembler.supported_goal)
            if goal in self._assemblers:
                raise ValueError(
                    f"Duplicate assembler for goal {goal.value}: "
                    f"{type(self._assemblers[goal]).__name__} and {type(assembler).__name__}"
                )
            self._assemblers[goal] = assembler
        logger.info(f"Assembler factory initialized with goals: {[g.value for g in self._assemblers]}")

    @classmethod
    def create_default(cls, db=None, cache=None) -> "TestAssemblerFactory":
        selection = QuestionSelectionService(db)
        return cls([
            OverviewAssembler(selection),
            JobFitAssembler(OnetService(db, cache), selection, db),
            TeamFitAssembler(TeamService(db, cache), selection),
        ])

    def get_assembler(self, goal: Any) -> TestAssembler:
        """Get the assembler for a goal.

        Raises:
            ValueError: If no assembler handles the goal
        """
        try:
            assembler = self._assemblers.get(AssessmentGoal(goal))
        except ValueError:
            assembler = None
        if assembler is None:
            raise ValueError(f"No assembler found for goal: {goal}")
        return assembler

    def has_assembler(self, goal: Any) -> bool:
        try:
            return AssessmentGoal(goal) in self._assemblers
        except ValueError:
            return False

    def get_all_assemblers(self) -> List[TestAssembler]:
        return list(self._assemblers.values())

    @property
    def available_goals(self) -> List[str]:
        return [goal.value for goal in self._assemblers]

    async def assemble(self, blueprint: Optional[Any]) -> AssemblyResult:
        """Assemble a test with the assembler matching the blueprint's strategy.

        Raises:
            ValueError: If the blueprint, its strategy or a matching assembler
                is missing
        """
        if blueprint is None:
            raise ValueError("Blueprint cannot be null")

        strategy = getattr(blueprint, "strategy", None)
        if not strategy:
            raise ValueError("Blueprint strategy cannot be null")

        if not self.has_assembler(strategy):
            raise ValueError(
                f"No assembler found for strategy: {strategy}. "
                f"Available strategies: {self.available_goals}"
            )

        return await self._assemblers[AssessmentGoal(strategy)].assemble(blueprint)
