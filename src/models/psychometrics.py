"""Psychometric models: item statistics and scale reliability."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from src.models.base import BaseDocument, EmbeddedDocument
from src.utils.constants import ItemValidityStatus, PsychometricConstants, PsychometricHealth, ReliabilityStatus


class StatusChange(EmbeddedDocument):
    """One validity status transition of an item."""

    from_status: Optional[str] = Field(default=None, alias="from")
    to_status: str = Field(..., alias="to")
    changed_at: datetime
    reason: Optional[str] = None


class ItemStatistics(BaseDocument):
    """Classical test theory statistics for one question.

    ``difficulty_index`` is the mean normalized score (p-value) and
    ``discrimination_index`` the point-biserial correlation between the
    item score and the session total.
    """

    question_id: str
    response_count: int = Field(default=0, ge=0)
    difficulty_index: Optional[float] = None
    discrimination_index: Optional[float] = None
    previous_discrimination_index: Optional[float] = None
    distractor_efficiency: Dict[str, float] = Field(default_factory=dict)
    validity_status: ItemValidityStatus = Field(default=ItemValidityStatus.PROBATION)
    flags: List[str] = Field(default_factory=list)
    status_history: List[StatusChange] = Field(default_factory=list)
    last_calculated_at: Optional[datetime] = None

    def change_status(self, new_status: ItemValidityStatus, reason: str, changed_at: datetime) -> bool:
        """Move to a new validity status, recording the transition.

        Args:
            new_status: Target status
            reason: Human readable reason for the change
            changed_at: Time of the change

        Returns:
            bool: True if the status actually changed
        """
        current = self.validity_status
        if current == new_status:
            return False

        self.status_history.append(
            StatusChange(
                from_status=current,
                to_status=ItemValidityStatus(new_status).value,
                changed_at=changed_at,
                reason=reason,
            )
        )
        self.validity_status = ItemValidityStatus(new_status).value
        return True

    @classmethod
    def create_index_keys(cls) -> List[Dict[str, Any]]:
        return [
            {"keys": [("question_id", 1)], "unique": True},
            {"keys": [("validity_status", 1)]},
            {"keys": [("last_calculated_at", 1)]},
        ]


class CompetencyReliability(BaseDocument):
    """Cronbach's alpha for the items measuring one competency."""

    competency_id: str
    cronbach_alpha: Optional[float] = None
    sample_size: int = 0
    item_count: int = 0
    alpha_if_deleted: Dict[str, float] = Field(default_factory=dict)
    reliability_status: ReliabilityStatus = Field(default=ReliabilityStatus.INSUFFICIENT_DATA)
    last_calculated_at: Optional[datetime] = None

    @classmethod
    def create_index_keys(cls) -> List[Dict[str, Any]]:
        return [
            {"keys": [("competency_id", 1)], "unique": True},
        ]


class BigFiveReliability(BaseDocument):
    """Cronbach's alpha for all items loading on one Big Five trait."""

    trait: str
    cronbach_alpha: Optional[float] = None
    contributing_competencies: int = 0
    total_items: int = 0
    sample_size: int = 0
    reliability_status: ReliabilityStatus = Field(default=ReliabilityStatus.INSUFFICIENT_DATA)
    last_calculated_at: Optional[datetime] = None

    @classmethod
    def create_index_keys(cls) -> List[Dict[str, Any]]:
        return [
            {"keys": [("trait", 1)], "unique": True},
        ]


class FlaggedItemSummary(EmbeddedDocument):
    """Condensed view of an item that needs attention."""

    question_id: str
    question_text: str = ""
    competency_name: str = "Unknown"
    indicator_title: str = "Unknown"
    difficulty_index: Optional[float] = None
    discrimination_index: Optional[float] = None
    response_count: int = 0
    validity_status: ItemValidityStatus
    flags: List[str] = Field(default_factory=list)
    last_calculated_at: Optional[datetime] = None

    @property
    def severity_level(self) -> int:
        """3 for toxic items, 2 for near-zero discrimination, 1 for review."""
        if self.discrimination_index is not None and self.discrimination_index < 0:
            return 3
        if self.validity_status == ItemValidityStatus.RETIRED:
            return 3
        if self.discrimination_index is not None and self.discrimination_index < 0.1:
            return 2
        if self.validity_status == ItemValidityStatus.FLAGGED_FOR_REVIEW:
            return 1
        return 0


class BigFiveReliabilitySummary(EmbeddedDocument):
    total_traits: int = 0
    reliable_traits: int = 0
    unreliable_traits: int = 0
    insufficient_data_traits: int = 0
    average_alpha: Optional[float] = None
    lowest_alpha_trait: Optional[str] = None
    lowest_alpha_value: Optional[float] = None


class PsychometricHealthReport(EmbeddedDocument):
    """Snapshot of the item bank's psychometric quality."""

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
    top_flagged_items: List[FlaggedItemSummary] = Field(default_factory=list)
    big_five_summary: BigFiveReliabilitySummary = Field(default_factory=BigFiveReliabilitySummary)
    generated_at: datetime
    items_analyzed_since_last_audit: int = 0

    @property
    def overall_status(self) -> PsychometricHealth:
        if (self.flagged_items > self.total_items * PsychometricConstants.CRITICAL_FLAGGED_RATIO
                or self.retired_items > self.total_items * PsychometricConstants.CRITICAL_RETIRED_RATIO):
            return PsychometricHealth.CRITICAL
        if self.unreliable_competencies > self.total_competencies * PsychometricConstants.CRITICAL_UNRELIABLE_RATIO:
            return PsychometricHealth.CRITICAL

        if (self.flagged_items > self.total_items * PsychometricConstants.WARNING_FLAGGED_RATIO
                or self.probation_items > self.total_items * PsychometricConstants.WARNING_PROBATION_RATIO):
            return PsychometricHealth.WARNING
        if self.unreliable_competencies > self.total_competencies * PsychometricConstants.WARNING_UNRELIABLE_RATIO:
            return PsychometricHealth.WARNING
        if self.average_alpha is not None and self.average_alpha < PsychometricConstants.ALPHA_RELIABLE:
            return PsychometricHealth.WARNING

        return PsychometricHealth.HEALTHY

    @property
    def requires_immediate_action(self) -> bool:
        return any(item.severity_level >= 3 for item in self.top_flagged_items)

    @property
    def items_needing_attention(self) -> int:
        return self.flagged_items + self.probation_items
