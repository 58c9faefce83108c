"""Assembly schemas for API requests and responses."""

from typing import List, Optional

from pydantic import Field

from src.models.template import TestBlueprint
from src.schemas.base import CamelSchema
from src.services.assembly.base import AssemblyResult


class AssemblyPreviewRequest(CamelSchema):
    """Inline blueprint to assemble without a stored template."""

    blueprint: TestBlueprint


class AssemblyResponse(CamelSchema):
    """Ordered question selection for a blueprint."""

    goal: Optional[str] = None
    question_ids: List[str] = Field(default_factory=list)
    total_questions: int = 0
    warnings: List[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: AssemblyResult, goal: Optional[str] = None) -> "AssemblyResponse":
        return cls(
            goal=goal,
            question_ids=result.question_ids,
            total_questions=len(result.question_ids),
            warnings=result.warnings,
        )
