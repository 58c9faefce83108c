"""Assembler contract shared by every assessment goal."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Optional, Type

from src.utils.constants import AssessmentGoal, ErrorCodes
from src.utils.exceptions import ConfigurationError


@dataclass
class AssemblyResult:
    """Ordered question ids selected for a test, plus selection warnings."""

    question_ids: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def empty(cls, warning: Optional[str] = None) -> "AssemblyResult":
        return cls(question_ids=[], warnings=[warning] if warning else [])

    @classmethod
    def of(cls, question_ids: List[str], warnings: Optional[List[str]] = None) -> "AssemblyResult":
        return cls(question_ids=list(question_ids), warnings=list(warnings or []))

    @property
    def is_empty(self) -> bool:
        return not self.question_ids


class TestAssembler(ABC):
    """Selects the questions of a test from a goal-specific blueprint."""

    blueprint_type: Type[Any]

    @property
    @abstractmethod
    def supported_goal(self) -> AssessmentGoal:
        """Assessment goal handled by this assembler."""

    @abstractmethod
    async def assemble(self, blueprint: Any) -> AssemblyResult:
        """Assemble a test from a blueprint.

        Args:
            blueprint: Blueprint of this assembler's goal

        Returns:
            AssemblyResult: Selected question ids in order

        Raises:
            ConfigurationError: If the blueprint is of the wrong type
        """

    def require_blueprint(self, blueprint: Any) -> Any:
        """Return the blueprint if it matches this assembler, else raise."""
        if not isinstance(blueprint, self.blueprint_type):
            actual = type(blueprint).__name__ if blueprint is not None else "None"
            raise ConfigurationError(
                f"{type(self).__name__} requires {self.blueprint_type.__name__}, got: {actual}",
                config_key="blueprint",
                config_value=actual,
                error_code=ErrorCodes.INVALID_BLUEPRINT,
            )
        return blueprint
