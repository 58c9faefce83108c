"""Test template and blueprint models.

A template's blueprint is a typed, goal-specific configuration describing
how the template's question set is assembled and scored. Blueprints form a
discriminated union on their ``strategy`` field.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import Field

from src.models.base import BaseDocument, EmbeddedDocument
from src.utils.constants import (
    AssessmentGoal,
    DifficultyLevel,
    ScoringConstants,
    TemplateStatus,
)
from src.utils.exceptions import ConfigurationError


class OverviewBlueprint(EmbeddedDocument):
    """Broad competency overview across a set of competencies."""

    strategy: Literal["OVERVIEW"] = "OVERVIEW"
    competency_ids: List[str] = Field(default_factory=list)
    include_big_five: bool = Field(default=False)
    questions_per_indicator: int = Field(default=3, ge=1, le=20)
    preferred_difficulty: DifficultyLevel = Field(default=DifficultyLevel.INTERMEDIATE)

    @property
    def goal(self) -> AssessmentGoal:
        return AssessmentGoal.OVERVIEW


class JobFitBlueprint(EmbeddedDocument):
    """Fit against an O*NET occupation benchmark."""

    strategy: Literal["JOB_FIT"] = "JOB_FIT"
    onet_soc_code: Optional[str] = Field(default=None)
    strictness_level: int = Field(default=ScoringConstants.DEFAULT_STRICTNESS, ge=0, le=100)
    competency_ids: List[str] = Field(default_factory=list)

    @property
    def goal(self) -> AssessmentGoal:
        return AssessmentGoal.JOB_FIT


class TeamFitBlueprint(EmbeddedDocument):
    """Fit against the competency gaps of an existing team."""

    strategy: Literal["TEAM_FIT"] = "TEAM_FIT"
    team_id: Optional[str] = Field(default=None)
    saturation_threshold: float = Field(default=ScoringConstants.DEFAULT_SATURATION_THRESHOLD)
    target_role: Optional[str] = Field(default=None)

    @property
    def goal(self) -> AssessmentGoal:
        return AssessmentGoal.TEAM_FIT


TestBlueprint = Annotated[
    Union[OverviewBlueprint, JobFitBlueprint, TeamFitBlueprint],
    Field(discriminator="strategy"),
]


class TestTemplate(BaseDocument):
    """Definition of a test: blueprint, timing, pass mark and lifecycle."""

    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    goal: AssessmentGoal = Field(default=AssessmentGoal.OVERVIEW)
    status: TemplateStatus = Field(default=TemplateStatus.DRAFT)

    # Versioning
    version: int = Field(default=1, ge=1)
    parent_id: Optional[str] = Field(default=None)

    # Timing and pass mark
    time_limit_minutes: Optional[int] = Field(default=None, ge=1)
    passing_score: float = Field(default=70.0, ge=0.0, le=100.0)

    # Navigation
    shuffle_questions: bool = Field(default=False)
    shuffle_options: bool = Field(default=False)
    allow_skip: bool = Field(default=True)
    allow_back_navigation: bool = Field(default=True)

    blueprint: Optional[TestBlueprint] = Field(default=None)

    @property
    def is_editable(self) -> bool:
        """Only draft templates may be modified."""
        return TemplateStatus(self.status).is_editable

    def require_blueprint(self) -> Union[OverviewBlueprint, JobFitBlueprint, TeamFitBlueprint]:
        """Get the typed blueprint, failing fast when it is unusable.

        Returns:
            The template's blueprint

        Raises:
            ConfigurationError: If the blueprint is missing or targets a
                different goal than the template
        """
        if self.blueprint is None:
            raise ConfigurationError(
                f"Template {self.id_str} has no blueprint",
                config_key="blueprint",
            )
        if self.blueprint.goal != self.goal:
            raise ConfigurationError(
                f"Template {self.id_str} goal {self.goal} does not match "
                f"blueprint strategy {self.blueprint.strategy}",
                config_key="blueprint.strategy",
                config_value=self.blueprint.strategy,
            )
        return self.blueprint

    @classmethod
    def create_index_keys(cls) -> List[Dict[str, Any]]:
        return [
            {"keys": [("status", 1), ("goal", 1)]},
        ]
