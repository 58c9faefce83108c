"""Nightly and event-driven psychometric recalculation."""

from dataclasses import dataclass
from datetime import timedelta
from typing import Awaitable, Callable, Iterable, List, Optional

from src.cache.cache_keys import CacheKeys
from src.cache.cache_manager import CacheManager
from src.core.config import get_settings
from src.database.mongodb import MongoDB
from src.database.redis_client import RedisClient
from src.models.psychometrics import ItemStatistics
from src.services.psychometrics.analysis import ANSWERED_FILTER, PsychometricAnalysisService
from src.utils.constants import BigFiveTrait, Collections
from src.utils.datetime_utils import elapsed_ms, ensure_utc, utc_now
from src.utils.helper import to_object_id
from src.utils.logger import PerformanceLogger, get_psychometrics_logger

settings = get_settings()
logger = get_psychometrics_logger()


@dataclass
class AuditStepResult:
    processed: int = 0
    succeeded: int = 0
    failed: int = 0


@dataclass
class AuditResult:
    """Outcome of one audit run."""

    items_recalculated: int = 0
    competencies_recalculated: int = 0
    traits_recalculated: int = 0
    statuses_updated: int = 0
    failed: int = 0
    message: str = ""

    @classmethod
    def skipped(cls, message: str) -> "AuditResult":
        return cls(message=message)


class PsychometricAuditJob:
    """Keeps item statistics and reliability current.

    Every unit of work runs in isolation: a failure is logged and counted
    and the batch moves on.
    """

    def __init__(
        self,
        db=None,
        cache=None,
        analysis_service: Optional[PsychometricAnalysisService] = None,
    ):
        self.db = db or MongoDB
        self.cache = cache or RedisClient
        self.cache_manager = CacheManager(self.cache)
        self.analysis_service = analysis_service or PsychometricAnalysisService(self.db)
        self.min_responses = self.analysis_service.min_responses

    @property
    def enabled(self) -> bool:
        return settings.PSYCHOMETRICS_AUDIT_ENABLED

    async def run_nightly_audit(self) -> AuditResult:
        """Run the full audit under a cluster-wide Redis lock."""
        if not self.enabled:
            logger.debug("Psychometric audit is disabled, skipping nightly audit")
            return AuditResult.skipped("Psychometric audit is disabled")

        lock = CacheKeys.audit_lock()
        if not await self.cache_manager.acquire_lock(lock, ttl=settings.PSYCHOMETRICS_AUDIT_LOCK_TTL, retry_times=1):
            logger.info("Nightly psychometric audit already running elsewhere, skipping")
            return AuditResult.skipped("Audit already in progress")

        try:
            return await self.run_audit()
        finally:
            await self.cache_manager.release_lock(lock)

    async def trigger_manual_audit(self) -> AuditResult:
        """Run the audit on demand, creating statistics for new questions first."""
        if not self.enabled:
            return AuditResult.skipped("Psychometric audit is disabled")

        logger.info("Manual psychometric audit triggered")
        await self.initialize_new_questions()
        return await self.run_nightly_audit()

    async def run_audit(self) -> AuditResult:
        started = utc_now()
        logger.info("Starting psychometric audit")

        with PerformanceLogger("psychometric_audit", logger):
            items = await self.recalculate_items_with_new_responses()
            competencies = await self.recalculate_competency_reliability()
            traits = await self.recalculate_big_five_reliability()
            statuses = await self.update_all_validity_statuses()

        steps = (items, competencies, traits, statuses)
        failed = sum(step.failed for step in steps)
        message = f"Audit completed in {elapsed_ms(started)}ms"
        logger.info(
            f"{message}: {items.succeeded} items recalculated, {competencies.succeeded} competencies, "
            f"{traits.succeeded} traits, {statuses.succeeded} status updates, {failed} failures"
        )
        return AuditResult(
            items_recalculated=items.succeeded,
            competencies_recalculated=competencies.succeeded,
            traits_recalculated=traits.succeeded,
            statuses_updated=statuses.succeeded,
            failed=failed,
            message=message,
        )

    async def on_answer_submitted(self, question_id: str) -> bool:
        """Recompute an item each time its response count reaches a multiple of the minimum.

        Returns:
            bool: True if a recalculation ran
        """
        if not self.enabled:
            return False

        try:
            count = await self.analysis_service.count_responses(question_id)
            if count < self.min_responses or count % self.min_responses != 0:
                return False

            logger.info(f"Question {question_id} reached {count} responses, recalculating")
            await self.analysis_service.calculate_item_statistics(question_id)
            await self.analysis_service.update_item_validity_status(question_id)

            competency_id = await self.competency_of(question_id)
            if competency_id:
                try:
                    await self.analysis_service.calculate_competency_reliability(competency_id)
                except Exception as e:
                    logger.warning(
                        f"Failed to recalculate competency {competency_id} reliability "
                        f"after question {question_id} update: {str(e)}"
                    )
            return True
        except Exception as e:
            logger.warning(f"Failed to process answer submission for question {question_id}: {str(e)}")
            return False

    async def competency_of(self, question_id: str) -> Optional[str]:
        object_id = to_object_id(question_id)
        if object_id is None:
            return None
        question = await self.db.find_one(
            Collections.ASSESSMENT_QUESTIONS, {"_id": object_id}, projection={"behavioral_indicator_id": 1}
        )
        indicator_id = to_object_id(question.get("behavioral_indicator_id")) if question else None
        if indicator_id is None:
            return None
        indicator = await self.db.find_one(
            Collections.BEHAVIORAL_INDICATORS, {"_id": indicator_id}, projection={"competency_id": 1}
        )
        return indicator.get("competency_id") if indicator else None

    async def initialize_new_questions(self) -> int:
        """Create PROBATION statistics for questions that have none."""
        question_docs = await self.db.find_many(Collections.ASSESSMENT_QUESTIONS, {}, projection={"_id": 1})
        known = {
            doc["question_id"]
            for doc in await self.db.find_many(Collections.ITEM_STATISTICS, {}, projection={"question_id": 1})
        }

        count = 0
        for doc in question_docs:
            question_id = str(doc["_id"])
            if question_id in known:
                continue
            await self.analysis_service.save_item_statistics(ItemStatistics(question_id=question_id))
            count += 1

        if count:
            logger.info(f"Initialized item statistics for {count} new questions")
        return count

    async def questions_needing_recalculation(self) -> List[str]:
        """Questions with enough responses and answers newer than their last calculation."""
        rows = await self.db.aggregate(
            Collections.TEST_ANSWERS,
            [
                {"$match": ANSWERED_FILTER},
                {"$group": {
                    "_id": "$question_id",
                    "count": {"$sum": 1},
                    "latest": {"$max": "$answered_at"},
                }},
                {"$match": {"count": {"$gte": self.min_responses}}},
            ],
        )
        if not rows:
            return []

        stats_docs = await self.db.find_many(
            Collections.ITEM_STATISTICS,
            {"question_id": {"$in": [row["_id"] for row in rows]}},
            projection={"question_id": 1, "last_calculated_at": 1},
        )
        last_calculated = {doc["question_id"]: ensure_utc(doc.get("last_calculated_at")) for doc in stats_docs}
        stale_before = utc_now() - timedelta(days=1)

        due = []
        for row in rows:
            calculated = last_calculated.get(row["_id"])
            latest = ensure_utc(row.get("latest"))
            if calculated is None or calculated < stale_before or (latest is not None and latest > calculated):
                due.append(row["_id"])
        return due

    async def recalculate_items_with_new_responses(self) -> AuditStepResult:
        question_ids = await self.questions_needing_recalculation()
        return await self.run_step("item", question_ids, self.analysis_service.calculate_item_statistics)

    async def recalculate_competency_reliability(self) -> AuditStepResult:
        docs = await self.db.find_many(Collections.COMPETENCIES, {}, projection={"_id": 1})
        return await self.run_step(
            "competency",
            (str(doc["_id"]) for doc in docs),
            self.analysis_service.calculate_competency_reliability,
        )

    async def recalculate_big_five_reliability(self) -> AuditStepResult:
        return await self.run_step("trait", list(BigFiveTrait), self.analysis_service.calculate_big_five_reliability)

    async def update_all_validity_statuses(self) -> AuditStepResult:
        docs = await self.db.find_many(
            Collections.ITEM_STATISTICS,
            {"last_calculated_at": {"$ne": None}},
            projection={"question_id": 1},
        )
        return await self.run_step(
            "item status",
            (doc["question_id"] for doc in docs),
            self.analysis_service.update_item_validity_status,
        )

    @staticmethod
    async def run_step(
        label: str,
        keys: Iterable,
        action: Callable[..., Awaitable],
    ) -> AuditStepResult:
        result = AuditStepResult()
        for key in keys:
            result.processed += 1
            try:
                await action(key)
                result.succeeded += 1
            except Exception as e:
                result.failed += 1
                logger.warning(f"Failed to recalculate {label} {getattr(key, 'value', key)}: {str(e)}")
        return result
