"""Psychometric schemas for API requests and responses."""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import Field

from src.models.psychometrics import ItemStatistics, PsychometricHealthReport
from src.schemas.base import CamelSchema
from src.services.psychometrics.audit_job import AuditResult


class RetireItemRequest(CamelSchema):
    reason: str = Field(..., min_length=1, max_length=500)


class StatusChangeResponse(CamelSchema):
    from_status: Optional[str] = None
    to_status: str
    changed_at: datetime
    reason: Optional[str] = None


class ItemStatisticsResponse(CamelSchema):
    """Item statistics as returned to clients."""

    question_id: str
    response_count: int
    difficulty_index: Optional[float] = None
    discrimination_index: Optional[float] = None
    previous_discrimination_index: Optional[float] = None
    distractor_efficiency: Dict[str, float] = Field(default_factory=dict)
    validity_status: str
    flags: List[str] = Field(default_factory=list)
    status_history: List[StatusChangeResponse] = Field(default_factory=list)
    last_calculated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, stats: ItemStatistics) -> "ItemStatisticsResponse":
        history = [
            StatusChangeResponse(
                from_status=change.from_status,
                to_status=change.to_status,
                changed_at=change.changed_at,
                reason=change.reason,
            )
            for change in stats.status_history
        ]
        return cls(
            **stats.model_dump(
                exclude={"id", "created_at", "updated_at", "status_history"},
                by_alias=False,
            ),
            status_history=history,
        )


class AuditResultResponse(CamelSchema):
    items_recalculated: int = 0
    competencies_recalculated: int = 0
    traits_recalculated: int = 0
    statuses_updated: int = 0
    failed: int = 0
    message: str = ""

    @classmethod
    def from_result(cls, result: AuditResult) -> "AuditResultResponse":
        return cls(
            items_recalculated=result.items_recalculated,
            competencies_recalculated=result.competencies_recalculated,
            traits_recalculated=result.traits_recalculated,
            statuses_updated=result.statuses_updated,
            failed=result.failed,
            message=result.message,
        )


class ResponseRecordedResponse(CamelSchema):
    question_id: str
    recalculated: bool = False


class FlaggedItemResponse(CamelSchema):
    question_id: str
    question_text: str = ""
    competency_name: str = "Unknown"
    indicator_title: str = "Unknown"
    difficulty_index: Optional[float] = None
    discrimination_index: Optional[float] = None
    response_count: int = 0
    validity_status: str
    flags: List[str] = Field(default_factory=list)
    last_calculated_at: Optional[datetime] = None
    severity_level: int = 0


class BigFiveSummaryResponse(CamelSchema):
    total_traits: int = 0
    reliable_traits: int = 0
    unreliable_traits: int = 0
    insufficient_data_traits: int = 0
    average_alpha: Optional[float] = None
    lowest_alpha_trait: Optional[str] = None
    lowest_alpha_value: Optional[float] = None


class PsychometricHealthResponse(CamelSchema):
    """Item bank health report, including the derived status fields."""

    overall_status: str
    requires_immediate_action: bool
    items_needing_attention: int
    total_items: int = 0
    active_items: int = 0
    probation_items: int = 0
    flagged_items: int = 0
    retired_items: int = 0
    total_competencies: int = 0
    reliable_competencies: int = 0
    acceptable_competencies: int = 0
    unreliable_competencies: int = 0
    insufficient_data_competencies: int = 0
    average_alpha: Optional[float] = None
    average_discrimination: Optional[float] = None
    top_flagged_items: List[FlaggedItemResponse] = Field(default_factory=list)
    big_five_summary: BigFiveSummaryResponse = Field(default_factory=BigFiveSummaryResponse)
    generated_at: datetime
    items_analyzed_since_last_audit: int = 0

    @classmethod
    def from_report(cls, report: PsychometricHealthReport) -> "PsychometricHealthResponse":
        data = report.model_dump(exclude={"top_flagged_items"})
        flagged = [
            FlaggedItemResponse(**item.model_dump(), severity_level=item.severity_level)
            for item in report.top_flagged_items
        ]
        return cls(
            **data,
            top_flagged_items=flagged,
            overall_status=report.overall_status.value,
            requires_immediate_action=report.requires_immediate_action,
            items_needing_attention=report.items_needing_attention,
        )
