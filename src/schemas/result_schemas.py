"""Result schemas for API responses."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from src.models.result import CompetencyScore, IndicatorScore, TestResult
from src.schemas.base import CamelSchema


class IndicatorScoreResponse(CamelSchema):
    indicator_id: str
    indicator_title: str
    score: float
    max_score: float
    percentage: float
    weight: float
    questions_answered: int
    proficiency_level: Optional[str] = None
    proficiency_label: Optional[str] = None

    @classmethod
    def from_model(cls, score: IndicatorScore) -> "IndicatorScoreResponse":
        return cls(**score.model_dump())


class CompetencyScoreResponse(CamelSchema):
    """Competency score with its precision and interpretation fields."""

    competency_id: str
    competency_name: str
    score: float
    max_score: float
    percentage: float
    questions_answered: int
    questions_correct: Optional[int] = None
    onet_code: Optional[str] = None
    benchmark_score: Optional[float] = None
    indicator_scores: List[IndicatorScoreResponse] = Field(default_factory=list)
    insufficient_evidence: bool = False
    evidence_note: Optional[str] = None
    proficiency_level: Optional[str] = None
    proficiency_label: Optional[str] = None
    standard_error: Optional[float] = None
    confidence_interval_lower: Optional[float] = None
    confidence_interval_upper: Optional[float] = None
    reliability: Optional[float] = None
    percentile: Optional[int] = None

    @classmethod
    def from_model(cls, score: CompetencyScore) -> "CompetencyScoreResponse":
        data = score.model_dump(exclude={"indicator_scores"})
        return cls(
            **data,
            indicator_scores=[IndicatorScoreResponse.from_model(i) for i in score.indicator_scores],
        )


class TestResultResponse(CamelSchema):
    """Scored (or pending) result as returned to clients."""

    id: str
    session_id: str
    template_id: str
    template_name: Optional[str] = None
    clerk_user_id: Optional[str] = None
    overall_score: Optional[float] = None
    overall_percentage: Optional[float] = None
    percentile: Optional[int] = None
    passed: Optional[bool] = None
    competency_scores: Optional[List[CompetencyScoreResponse]] = None
    total_time_seconds: int = 0
    questions_answered: int = 0
    questions_skipped: int = 0
    total_questions: int = 0
    completed_at: Optional[datetime] = None
    status: str
    big_five_profile: Optional[Dict[str, float]] = None
    extended_metrics: Optional[Dict[str, Any]] = None

    @classmethod
    def from_result(cls, result: TestResult) -> "TestResultResponse":
        """Build the response from a stored result.

        Extended metrics are emitted as the flat camelCase map.
        """
        competency_scores = None
        if result.competency_scores is not None:
            competency_scores = [CompetencyScoreResponse.from_model(s) for s in result.competency_scores]

        extended = None
        if result.extended_metrics is not None and not result.extended_metrics.is_empty:
            extended = result.extended_metrics.to_flat_map()

        return cls(
            id=result.id_str,
            session_id=result.session_id,
            template_id=result.template_id,
            template_name=result.template_name,
            clerk_user_id=result.clerk_user_id,
            overall_score=result.overall_score,
            overall_percentage=result.overall_percentage,
            percentile=result.percentile,
            passed=result.passed,
            competency_scores=competency_scores,
            total_time_seconds=result.total_time_seconds,
            questions_answered=result.questions_answered,
            questions_skipped=result.questions_skipped,
            total_questions=result.total_questions,
            completed_at=result.completed_at,
            status=result.status,
            big_five_profile=result.big_five_profile,
            extended_metrics=extended,
        )
