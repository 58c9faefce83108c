"""Scoring domain events and their publisher.

Events are published on Redis pub/sub so audit, metrics and percentile
listeners can react without blocking the scoring path.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.cache.cache_manager import CacheManager
from src.utils.constants import EventChannels
from src.utils.datetime_utils import utc_now
from src.utils.logger import get_events_logger, log_domain_event

logger = get_events_logger()


class ScoringEvent(BaseModel):
    """Base for scoring events."""

    model_config = ConfigDict(use_enum_values=True)

    session_id: str
    timestamp: datetime = Field(default_factory=utc_now)

    @property
    def event_name(self) -> str:
        return type(self).__name__


class ScoringStarted(ScoringEvent):
    goal: Optional[str] = None
    answer_count: int = 0


class ScoringCompleted(ScoringEvent):
    result_id: str
    goal: Optional[str] = None
    overall_score: Optional[float] = None
    passed: bool = False
    duration_ms: float = 0.0


class ScoringFailed(ScoringEvent):
    goal: Optional[str] = None
    error_message: str
    error_type: str
    duration_ms: float = 0.0


class ResilienceFallback(ScoringEvent):
    operation_name: str = "scoringCalculation"
    reason: str = "RETRY_EXHAUSTED"
    error_message: str
    error_type: str
    total_attempts: int


class ScoringAudit(ScoringEvent):
    """Full scoring snapshot kept for traceability."""

    result_id: str
    clerk_user_id: Optional[str] = None
    template_id: str
    goal: Optional[str] = None
    strategy_class: str
    overall_score: Optional[float] = None
    overall_percentage: Optional[float] = None
    passed: Optional[bool] = None
    percentile: Optional[int] = None
    competency_scores: List[Dict[str, Any]] = Field(default_factory=list)
    indicator_weights: Dict[str, float] = Field(default_factory=dict)
    total_answers: int = 0
    answered_count: int = 0
    skipped_count: int = 0
    duration_ms: float = 0.0


EVENT_CHANNELS = {
    "ScoringAudit": EventChannels.SCORING_AUDIT,
    "ResilienceFallback": EventChannels.RESILIENCE,
}


class ScoringEventPublisher:
    """Publishes scoring events. Publishing never raises."""

    def __init__(self, cache=None):
        self.cache_manager = CacheManager(cache)

    async def publish(self, event: ScoringEvent) -> bool:
        """Publish an event on its channel.

        Args:
            event: Event to publish

        Returns:
            bool: True if the event was handed to Redis
        """
        name = event.event_name
        channel = EVENT_CHANNELS.get(name, EventChannels.SCORING)
        payload = {"event": name, **event.model_dump(mode="json")}

        try:
            await self.cache_manager.publish(channel, payload)
        except Exception as e:
            logger.error(f"Failed to publish {name} for session {event.session_id}: {str(e)}")
            return False

        log_domain_event(name, payload, logger=logger)
        return True
