"""Test result models.

A result is owned by exactly one session. Its competency score list is
rebuilt wholesale on every scoring pass. Extended metrics are held in typed
families and persisted as the flat camelCase map the frontend reads.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic.alias_generators import to_camel

from src.models.base import BaseDocument, EmbeddedDocument
from src.utils.constants import ResultStatus


class IndicatorScore(EmbeddedDocument):
    """Score for one behavioral indicator."""

    indicator_id: str
    indicator_title: str = "Unknown Indicator"
    score: float = 0.0
    max_score: float = 0.0
    percentage: float = 0.0
    weight: float = 1.0
    questions_answered: int = 0
    proficiency_level: Optional[str] = None
    proficiency_label: Optional[str] = None


class CompetencyScore(EmbeddedDocument):
    """Score for one competency, enriched with statistical metadata."""

    competency_id: str
    competency_name: str = "Unknown Competency"
    score: float = 0.0
    max_score: float = 0.0
    percentage: float = 0.0
    questions_answered: int = 0
    questions_correct: Optional[int] = None
    onet_code: Optional[str] = None
    benchmark_score: Optional[float] = None
    indicator_scores: List[IndicatorScore] = Field(default_factory=list)

    # Evidence sufficiency
    insufficient_evidence: bool = False
    evidence_note: Optional[str] = None

    # Interpretation
    proficiency_level: Optional[str] = None
    proficiency_label: Optional[str] = None

    # Measurement precision
    standard_error: Optional[float] = None
    confidence_interval_lower: Optional[float] = None
    confidence_interval_upper: Optional[float] = None
    reliability: Optional[float] = None

    percentile: Optional[int] = None


# ============================================================================
# EXTENDED METRICS FAMILIES
# ============================================================================

class MetricFamily(BaseModel):
    """Base for metric families serialised with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )


class ConsistencyMetrics(MetricFamily):
    """Response consistency analysis output."""

    consistency_score: float = 1.0
    consistency_flags: List[str] = Field(default_factory=list)
    speed_anomaly_rate: float = 0.0
    straight_lining_rate: float = 0.0
    intra_competency_variance: float = 0.0


class TeamFitMetrics(MetricFamily):
    """Team fit classification summary."""

    diversity_ratio: float = 0.0
    saturation_ratio: float = 0.0
    team_fit_multiplier: float = 1.0
    diversity_count: int = 0
    saturation_count: int = 0
    gap_count: int = 0
    competency_saturation: Dict[str, float] = Field(default_factory=dict)
    team_size: int = 0
    personality_compatibility: Optional[float] = None


class DecisionConfidence(MetricFamily):
    """Confidence in a job fit pass/fail decision."""

    decision_confidence: float
    confidence_level: str
    confidence_message: str


class TimeAnomaly(MetricFamily):
    """Flag raised when answers were submitted implausibly fast."""

    suspiciously_fast: bool = True
    avg_seconds_per_question: float


CONSISTENCY_KEYS = ("consistencyScore", "consistencyFlags", "speedAnomalyRate", "straightLiningRate")
TEAM_FIT_KEYS = (
    "diversityRatio", "saturationRatio", "teamFitMultiplier", "diversityCount", "saturationCount",
    "gapCount", "competencySaturation", "teamSize", "personalityCompatibility",
)
DECISION_KEYS = ("decisionConfidence", "confidenceLevel", "confidenceMessage")
TIME_ANOMALY_KEYS = ("suspiciouslyFast", "avgSecondsPerQuestion")


class ExtendedMetrics(BaseModel):
    """Typed container for the optional metric families of a result.

    Unknown keys found in a stored map survive in ``additional`` so metrics
    written by newer code are never lost on re-save.
    """

    consistency: Optional[ConsistencyMetrics] = None
    team_fit: Optional[TeamFitMetrics] = None
    decision_confidence: Optional[DecisionConfidence] = None
    time_anomaly: Optional[TimeAnomaly] = None
    profile_pattern: Optional[Dict[str, List[str]]] = None
    additional: Dict[str, Any] = Field(default_factory=dict)

    def to_flat_map(self) -> Dict[str, Any]:
        """Serialise to the flat camelCase map stored on the result."""
        flat: Dict[str, Any] = dict(self.additional)
        if self.consistency is not None:
            flat.update(self.consistency.model_dump(by_alias=True, exclude={"intra_competency_variance"}))
        if self.team_fit is not None:
            flat.update(self.team_fit.model_dump(by_alias=True))
        if self.decision_confidence is not None:
            flat.update(self.decision_confidence.model_dump(by_alias=True))
        if self.time_anomaly is not None:
            flat.update(self.time_anomaly.model_dump(by_alias=True))
        if self.profile_pattern is not None:
            flat["profilePattern"] = self.profile_pattern
        return flat

    @classmethod
    def from_flat_map(cls, data: Optional[Dict[str, Any]]) -> "ExtendedMetrics":
        """Rebuild the typed families from a stored flat map."""
        remaining = dict(data or {})
        metrics = cls()

        if "consistencyScore" in remaining:
            metrics.consistency = ConsistencyMetrics.model_validate(
                {key: remaining.pop(key) for key in CONSISTENCY_KEYS if key in remaining}
            )
        if "teamFitMultiplier" in remaining:
            metrics.team_fit = TeamFitMetrics.model_validate(
                {key: remaining.pop(key) for key in TEAM_FIT_KEYS if key in remaining}
            )
        if "decisionConfidence" in remaining:
            metrics.decision_confidence = DecisionConfidence.model_validate(
                {key: remaining.pop(key) for key in DECISION_KEYS if key in remaining}
            )
        if "avgSecondsPerQuestion" in remaining:
            metrics.time_anomaly = TimeAnomaly.model_validate(
                {key: remaining.pop(key) for key in TIME_ANOMALY_KEYS if key in remaining}
            )
        if "profilePattern" in remaining:
            metrics.profile_pattern = remaining.pop("profilePattern")

        metrics.additional = remaining
        return metrics

    @property
    def is_empty(self) -> bool:
        return not self.to_flat_map()


class TestResult(BaseDocument):
    """Scored (or pending) outcome of a test session."""

    session_id: str
    template_id: str
    template_name: Optional[str] = None
    clerk_user_id: Optional[str] = None

    overall_score: Optional[float] = None
    overall_percentage: Optional[float] = None
    percentile: Optional[int] = None
    passed: Optional[bool] = None
    competency_scores: Optional[List[CompetencyScore]] = None

    total_time_seconds: int = 0
    questions_answered: int = 0
    questions_skipped: int = 0
    total_questions: int = 0

    completed_at: Optional[datetime] = None
    status: ResultStatus = ResultStatus.COMPLETED
    big_five_profile: Optional[Dict[str, float]] = None
    extended_metrics: Optional[ExtendedMetrics] = None

    @field_validator("extended_metrics", mode="before")
    @classmethod
    def parse_extended_metrics(cls, value: Any) -> Any:
        """Accept the stored flat map as well as the typed container."""
        if isinstance(value, dict):
            return ExtendedMetrics.from_flat_map(value)
        return value

    @field_serializer("extended_metrics")
    def serialize_extended_metrics(self, value: Optional[ExtendedMetrics]) -> Optional[Dict[str, Any]]:
        if value is None:
            return None
        return value.to_flat_map()

    @classmethod
    def create_index_keys(cls) -> List[Dict[str, Any]]:
        return [
            {"keys": [("session_id", 1)], "unique": True},
            {"keys": [("template_id", 1), ("status", 1), ("overall_percentage", 1)]},
            {"keys": [("template_id", 1), ("competency_scores.competency_id", 1)]},
        ]
