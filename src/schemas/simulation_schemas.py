"""Simulation schemas for API requests and responses."""

from typing import Dict, List, Optional

from pydantic import Field

from src.models.template import TestBlueprint
from src.schemas.base import CamelSchema
from src.services.simulation.simulator import SimulationResult
from src.utils.constants import SimulationConstants, SimulationProfile


class SimulationRequest(CamelSchema):
    """Persona and ability for a dry run.

    The ability level is range-checked by the simulator so that an
    out-of-range value is reported with its own error code.
    """

    profile: SimulationProfile = Field(default=SimulationProfile.RANDOM_GUESSER)
    ability_level: Optional[int] = Field(default=SimulationConstants.DEFAULT_ABILITY_LEVEL)
    force_refresh: bool = Field(default=False)


class SimulationPreviewRequest(SimulationRequest):
    blueprint: TestBlueprint


class SimulationWarningResponse(CamelSchema):
    level: str
    code: str
    message: str
    competency_id: Optional[str] = None
    competency_name: Optional[str] = None
    difficulty: Optional[str] = None
    available_questions: int = 0
    required_questions: int = 0
    params: Optional[Dict[str, str]] = None


class SimulatedQuestionResponse(CamelSchema):
    question_id: str
    competency_id: Optional[str] = None
    indicator_id: Optional[str] = None
    text: str = ""
    difficulty: str
    question_type: str
    time_limit: Optional[int] = None
    simulated_correct: bool
    simulated_answer: str
    competency_name: Optional[str] = None
    indicator_title: Optional[str] = None


class CompetencySimulationScoreResponse(CamelSchema):
    competency_id: str
    total_questions: int
    correct_answers: int
    score_percentage: float
    difficulty_breakdown: Dict[str, int] = Field(default_factory=dict)


class SimulationResponse(CamelSchema):
    """Simulation outcome as returned to clients."""

    valid: bool
    composition: Dict[str, int] = Field(default_factory=dict)
    sample_questions: List[SimulatedQuestionResponse] = Field(default_factory=list)
    warnings: List[SimulationWarningResponse] = Field(default_factory=list)
    simulated_score: Optional[float] = None
    estimated_duration_minutes: Optional[int] = None
    total_questions: int = 0
    profile: Optional[str] = None
    ability_level: Optional[int] = None
    competency_scores: Dict[str, CompetencySimulationScoreResponse] = Field(default_factory=dict)

    @classmethod
    def from_result(cls, result: SimulationResult) -> "SimulationResponse":
        return cls.model_validate(result.model_dump())
