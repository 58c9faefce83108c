"""Scoring orchestration.

Scoring runs in its own MongoDB transaction, independent of whatever
completed the session, so a scoring failure never rolls back the session.
Transient failures are retried with exponential backoff. When every
attempt fails a PENDING result is stored so the candidate's submission is
acknowledged and can be re-scored later.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import List, Optional, Tuple

from pymongo.errors import DuplicateKeyError

from src.cache.cache_keys import CacheKeys
from src.cache.cache_manager import CacheManager
from src.core.config import get_settings
from src.database.mongodb import MongoDB
from src.database.redis_client import RedisClient
from src.models.result import ExtendedMetrics, TestResult, TimeAnomaly
from src.models.session import TestAnswer, TestSession
from src.models.template import TestTemplate
from src.schemas.result_schemas import TestResultResponse
from src.services.onet_service import OnetService
from src.services.scoring.aggregation import CompetencyAggregationService
from src.services.scoring.enrichers.confidence_interval import ConfidenceIntervalCalculator
from src.services.scoring.enrichers.consistency import ResponseConsistencyAnalyzer
from src.services.scoring.enrichers.percentile import SubscalePercentileCalculator
from src.services.scoring.events import (
    ResilienceFallback,
    ScoringAudit,
    ScoringCompleted,
    ScoringEvent,
    ScoringEventPublisher,
    ScoringFailed,
    ScoringStarted,
)
from src.services.scoring.interpreter import ScoreInterpreter
from src.services.scoring.strategies.base import (
    ScoringContext,
    ScoringResult,
    ScoringStrategyRegistry,
)
from src.services.scoring.strategies.job_fit import JobFitScoringStrategy
from src.services.scoring.strategies.legacy import LegacyScoring
from src.services.scoring.strategies.overview import OverviewScoringStrategy
from src.services.scoring.strategies.team_fit import TeamFitScoringStrategy
from src.services.team_service import TeamService
from src.utils.constants import Collections, ErrorCodes, ResultStatus
from src.utils.datetime_utils import utc_now
from src.utils.exceptions import (
    BusinessLogicError,
    DatabaseError,
    ResourceNotFoundError,
    ScoringError,
    SkillSoftError,
)
from src.utils.helper import to_object_id
from src.utils.logger import PerformanceLogger, get_scoring_logger

settings = get_settings()
logger = get_scoring_logger()

LOCK_WAIT_SECONDS = 1.0


def build_default_registry(db=None, cache=None) -> ScoringStrategyRegistry:
    """Registry with the overview, job fit and team fit strategies."""
    aggregation = CompetencyAggregationService(db=db)
    interpreter = ScoreInterpreter()
    return ScoringStrategyRegistry([
        OverviewScoringStrategy(aggregation, interpreter),
        JobFitScoringStrategy(aggregation, OnetService(db, cache), interpreter),
        TeamFitScoringStrategy(aggregation, TeamService(db, cache), interpreter),
    ])


@dataclass
class SessionStats:
    answered: int = 0
    skipped: int = 0
    total_time_seconds: int = 0

    @classmethod
    def from_answers(cls, answers: List[TestAnswer]) -> "SessionStats":
        return cls(
            answered=sum(1 for a in answers if a.is_answered),
            skipped=sum(1 for a in answers if a.is_skipped),
            total_time_seconds=sum(a.time_spent_seconds or 0 for a in answers),
        )


class ScoringOrchestrationService:
    """Scores a completed session at most once and stores its result."""

    def __init__(
        self,
        db=None,
        cache=None,
        registry: Optional[ScoringStrategyRegistry] = None,
        legacy_scoring: Optional[LegacyScoring] = None,
        confidence_calculator: Optional[ConfidenceIntervalCalculator] = None,
        percentile_calculator: Optional[SubscalePercentileCalculator] = None,
        consistency_analyzer: Optional[ResponseConsistencyAnalyzer] = None,
        event_publisher: Optional[ScoringEventPublisher] = None,
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
    ):
        """Initialize the orchestration service.

        Args:
            db: Database instance (defaults to MongoDB)
            cache: Cache instance (defaults to RedisClient)
            registry: Goal to strategy registry
            legacy_scoring: Scoring used when a goal has no strategy
            confidence_calculator: Confidence interval enricher
            percentile_calculator: Percentile enricher
            consistency_analyzer: Response consistency enricher
            event_publisher: Domain event publisher
            max_attempts: Scoring attempts before falling back
            base_delay: Backoff multiplier in seconds
        """
        self.db = db or MongoDB
        self.cache = cache or RedisClient
        self.cache_manager = CacheManager(self.cache)

        self.registry = registry or build_default_registry(self.db, self.cache)
        self.legacy_scoring = legacy_scoring or LegacyScoring(CompetencyAggregationService(db=self.db))
        self.confidence_calculator = confidence_calculator or ConfidenceIntervalCalculator(self.db)
        self.percentile_calculator = percentile_calculator or SubscalePercentileCalculator(self.db)
        self.consistency_analyzer = consistency_analyzer or ResponseConsistencyAnalyzer()
        self.events = event_publisher or ScoringEventPublisher(self.cache)

        self.max_attempts = max_attempts or settings.SCORING_RETRY_ATTEMPTS
        self.base_delay = settings.SCORING_RETRY_BASE_DELAY if base_delay is None else base_delay

    async def calculate_and_save_result(self, session_id: str) -> TestResultResponse:
        """Score a session and persist its result.

        Calling this again for an already scored session returns the stored
        result without rescoring.

        Args:
            session_id: Session to score

        Returns:
            TestResultResponse: The COMPLETED result, or a PENDING placeholder
            when scoring failed after every retry

        Raises:
            ResourceNotFoundError: If the session does not exist
            BusinessLogicError: If another worker is scoring the session
        """
        existing = await self.find_result(session_id)
        if existing is not None:
            logger.info(f"Result already exists for session {session_id}, skipping scoring")
            return TestResultResponse.from_result(existing)

        lock_resource = CacheKeys.scoring_lock(session_id)
        locked = await self.cache_manager.acquire_lock(lock_resource, ttl=settings.SCORING_LOCK_TTL_SECONDS)

        if not locked:
            if await self.cache.ping():
                return await self.wait_for_concurrent_result(session_id)
            # The unique index on session_id still keeps scoring at-most-once.
            logger.warning(f"Redis unavailable, scoring session {session_id} without a lock")

        try:
            existing = await self.find_result(session_id)
            if existing is not None:
                return TestResultResponse.from_result(existing)

            with PerformanceLogger("score_session", logger=logger, extra={"session_id": session_id}):
                result = await self.score_with_retry(session_id)
        finally:
            if locked:
                await self.cache_manager.release_lock(lock_resource)

        await self.check_time_anomaly(result)
        await self.cache_manager.cache_result(session_id, result.to_dict())

        return TestResultResponse.from_result(result)

    async def get_result(self, session_id: str) -> TestResultResponse:
        """Get the stored result of a session.

        Raises:
            ResourceNotFoundError: If the session has no result
        """
        cached = await self.cache_manager.get_cached_result(session_id)
        if cached:
            return TestResultResponse.from_result(TestResult.from_dict(cached))

        result = await self.find_result(session_id)
        if result is None:
            raise ResourceNotFoundError(
                f"No result for session {session_id}",
                resource_type="result",
                resource_id=session_id,
                error_code=ErrorCodes.RESULT_NOT_FOUND,
            )

        await self.cache_manager.cache_result(session_id, result.to_dict())
        return TestResultResponse.from_result(result)

    async def find_result(self, session_id: str, db_session=None) -> Optional[TestResult]:
        doc = await self.db.find_one(Collections.TEST_RESULTS, {"session_id": session_id}, session=db_session)
        return TestResult.from_dict(doc) if doc else None

    async def wait_for_concurrent_result(self, session_id: str) -> TestResultResponse:
        """Give a concurrent scoring run a moment to finish, then return its result."""
        logger.info(f"Scoring lock busy for session {session_id}, waiting for concurrent run")
        await asyncio.sleep(LOCK_WAIT_SECONDS)

        existing = await self.find_result(session_id)
        if existing is not None:
            return TestResultResponse.from_result(existing)

        raise BusinessLogicError(
            f"Scoring already in progress for session {session_id}",
            operation="calculate_and_save_result",
            resource_id=session_id,
            error_code=ErrorCodes.SCORING_IN_PROGRESS,
        )

    def backoff_delay(self, attempt: int) -> float:
        return ((2 ** attempt) + 0.1 * attempt) * self.base_delay

    async def score_with_retry(self, session_id: str) -> TestResult:
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_attempts + 1):
            outbox: List[ScoringEvent] = []
            try:
                async with self.db.transaction() as db_session:
                    result = await self.score_session(session_id, db_session, outbox)
            except ResourceNotFoundError:
                raise
            except DatabaseError as e:
                if isinstance(e.cause, DuplicateKeyError):
                    existing = await self.find_result(session_id)
                    if existing is not None:
                        logger.info(f"Session {session_id} was scored concurrently, using stored result")
                        return existing
                last_error = e
            except Exception as e:
                last_error = e
            else:
                # Published only once the transaction has committed.
                for event in outbox:
                    await self.events.publish(event)
                return result

            logger.warning(
                f"Scoring attempt {attempt}/{self.max_attempts} failed for session {session_id}: {last_error}",
                extra={"session_id": session_id, "attempt": attempt}
            )
            if attempt < self.max_attempts:
                await asyncio.sleep(self.backoff_delay(attempt))

        return await self.scoring_fallback(session_id, last_error)

    async def load_scoring_inputs(
        self,
        session_id: str,
        db_session=None,
    ) -> Tuple[TestSession, TestTemplate, List[TestAnswer]]:
        object_id = to_object_id(session_id)
        doc = None
        if object_id is not None:
            doc = await self.db.find_one(Collections.TEST_SESSIONS, {"_id": object_id}, session=db_session)
        if doc is None:
            raise ResourceNotFoundError(
                f"Session {session_id} not found",
                resource_type="session",
                resource_id=session_id,
                error_code=ErrorCodes.SESSION_NOT_FOUND,
            )
        session = TestSession.from_dict(doc)

        template_doc = await self.db.find_one(
            Collections.TEST_TEMPLATES, {"_id": to_object_id(session.template_id)}, session=db_session
        )
        if template_doc is None:
            raise ResourceNotFoundError(
                f"Template {session.template_id} not found",
                resource_type="template",
                resource_id=session.template_id,
                error_code=ErrorCodes.TEMPLATE_NOT_FOUND,
            )
        template = TestTemplate.from_dict(template_doc)

        answer_docs = await self.db.find_many(
            Collections.TEST_ANSWERS, {"session_id": session.id_str}, session=db_session
        )
        answers = [TestAnswer.from_dict(a) for a in answer_docs]
        return session, template, answers

    async def score_session(
        self,
        session_id: str,
        db_session=None,
        outbox: Optional[List[ScoringEvent]] = None,
    ) -> TestResult:
        """One scoring attempt. Runs inside the caller's transaction.

        Domain events are appended to ``outbox`` rather than published, so
        the caller can publish them after a successful commit.
        """
        if outbox is None:
            outbox = []
        started = time.perf_counter()

        session, template, answers = await self.load_scoring_inputs(session_id, db_session)
        goal = template.goal
        logger.info(
            f"Calculating result for session {session_id} goal={goal} user={session.clerk_user_id}",
            extra={"session_id": session_id, "template_id": template.id_str}
        )

        outbox.append(ScoringStarted(session_id=session_id, goal=goal, answer_count=len(answers)))

        stats = SessionStats.from_answers(answers)
        context = ScoringContext(session=session, template=template, answers=answers, db_session=db_session)

        strategy = self.registry.get(goal)
        if strategy is None:
            logger.warning(f"No scoring strategy for goal {goal}, using legacy scoring")
            strategy = self.legacy_scoring
        strategy_name = strategy.name
        try:
            scoring = await strategy.calculate(context)
        except SkillSoftError:
            raise
        except Exception as e:
            raise ScoringError(
                f"{strategy_name} failed for session {session_id}: {str(e)}",
                session_id=session_id,
                stage="strategy",
                error_code=ErrorCodes.SCORING_FAILED,
                cause=e,
            ) from e

        # Enrichment order matters: percentiles read the final percentages.
        await self.confidence_calculator.enrich(scoring.competency_scores, session=db_session)
        await self.percentile_calculator.enrich(scoring.competency_scores, template.id_str, session=db_session)

        aggregation = scoring.aggregation
        consistency = self.consistency_analyzer.analyze(
            answers,
            aggregation.question_competency_map() if aggregation else {},
            aggregation.questions if aggregation else {},
        )

        result = TestResult(
            session_id=session.id_str,
            template_id=template.id_str,
            template_name=template.name,
            clerk_user_id=session.clerk_user_id,
            overall_score=scoring.overall_score,
            overall_percentage=scoring.overall_percentage,
            passed=self.resolve_passed(scoring, template),
            competency_scores=scoring.competency_scores,
            total_time_seconds=stats.total_time_seconds,
            questions_answered=stats.answered,
            questions_skipped=stats.skipped,
            total_questions=session.total_questions,
            completed_at=utc_now(),
            status=ResultStatus.COMPLETED,
            big_five_profile=scoring.big_five_profile,
            extended_metrics=ExtendedMetrics(
                consistency=consistency,
                team_fit=scoring.team_fit_metrics,
                decision_confidence=scoring.decision_confidence,
                profile_pattern=scoring.profile_pattern,
            ),
        )
        result.percentile = await self.percentile_calculator.overall_percentile(
            template.id_str, result.overall_percentage, session=db_session
        )

        await self.db.insert_one(Collections.TEST_RESULTS, result.to_mongo(), session=db_session)

        duration_ms = (time.perf_counter() - started) * 1000
        outbox.append(ScoringCompleted(
            session_id=session_id,
            result_id=result.id_str,
            goal=goal,
            overall_score=result.overall_score,
            passed=bool(result.passed),
            duration_ms=duration_ms,
        ))
        audit = self.build_audit(session, template, result, scoring, strategy_name, len(answers), stats, duration_ms)
        if audit is not None:
            outbox.append(audit)

        logger.info(
            f"Scoring completed for session {session_id}: result {result.id_str} "
            f"score={result.overall_percentage:.1f}%",
            extra={"session_id": session_id, "strategy": strategy_name, "duration_ms": duration_ms}
        )
        return result

    @staticmethod
    def resolve_passed(scoring: ScoringResult, template: TestTemplate) -> bool:
        """A strategy's own decision wins; otherwise compare with the passing score."""
        if scoring.passed is not None:
            return scoring.passed
        return scoring.overall_percentage >= template.passing_score

    def build_audit(
        self,
        session: TestSession,
        template: TestTemplate,
        result: TestResult,
        scoring: ScoringResult,
        strategy_name: str,
        total_answers: int,
        stats: SessionStats,
        duration_ms: float,
    ) -> Optional[ScoringAudit]:
        try:
            indicator_weights = {
                indicator.indicator_id: indicator.weight
                for score in scoring.competency_scores
                for indicator in score.indicator_scores
            }
            return ScoringAudit(
                session_id=session.id_str,
                result_id=result.id_str,
                clerk_user_id=session.clerk_user_id,
                template_id=template.id_str,
                goal=template.goal,
                strategy_class=strategy_name,
                overall_score=result.overall_score,
                overall_percentage=result.overall_percentage,
                passed=result.passed,
                percentile=result.percentile,
                competency_scores=[s.model_dump() for s in scoring.competency_scores],
                indicator_weights=indicator_weights,
                total_answers=total_answers,
                answered_count=stats.answered,
                skipped_count=stats.skipped,
                duration_ms=duration_ms,
            )
        except Exception as e:
            logger.warning(f"Failed to build scoring audit for session {session.id_str}: {str(e)}")
            return None

    async def scoring_fallback(self, session_id: str, error: Optional[Exception]) -> TestResult:
        """Store a PENDING result after scoring failed on every attempt."""
        error_type = type(error).__name__ if error else "Unknown"
        error_message = str(error) if error else "Unknown error"
        logger.error(
            f"Scoring exhausted {self.max_attempts} attempts for session {session_id}, storing PENDING result: "
            f"{error_message}",
            extra={"session_id": session_id, "error_type": error_type}
        )

        await self.events.publish(ResilienceFallback(
            session_id=session_id,
            error_message=error_message,
            error_type=error_type,
            total_attempts=self.max_attempts,
        ))

        session, template, answers = await self.load_scoring_inputs(session_id)

        await self.events.publish(ScoringFailed(
            session_id=session_id,
            goal=template.goal,
            error_message=error_message,
            error_type=error_type,
        ))

        stats = SessionStats.from_answers(answers)
        pending = TestResult(
            session_id=session.id_str,
            template_id=template.id_str,
            template_name=template.name,
            clerk_user_id=session.clerk_user_id,
            total_time_seconds=stats.total_time_seconds,
            questions_answered=stats.answered,
            questions_skipped=stats.skipped,
            total_questions=session.total_questions,
            completed_at=utc_now(),
            status=ResultStatus.PENDING,
        )

        try:
            await self.db.insert_one(Collections.TEST_RESULTS, pending.to_mongo())
        except DatabaseError as e:
            if not isinstance(e.cause, DuplicateKeyError):
                raise
            existing = await self.find_result(session_id)
            if existing is not None:
                return existing
            raise

        logger.info(f"Stored PENDING result {pending.id_str} for session {session_id}")
        return pending

    async def check_time_anomaly(self, result: TestResult) -> None:
        """Flag a result whose answers came in implausibly fast."""
        if result.questions_answered <= 0:
            return

        average = result.total_time_seconds / result.questions_answered
        if average >= settings.MIN_SECONDS_PER_QUESTION:
            return

        metrics = result.extended_metrics or ExtendedMetrics()
        metrics.time_anomaly = TimeAnomaly(avg_seconds_per_question=round(average, 2))
        result.extended_metrics = metrics

        logger.warning(
            f"Time anomaly for session {result.session_id}: {average:.1f}s per question",
            extra={"session_id": result.session_id}
        )
        try:
            await self.db.update_one(
                Collections.TEST_RESULTS,
                {"session_id": result.session_id},
                {"$set": {"extended_metrics": metrics.to_flat_map()}},
            )
        except DatabaseError as e:
            logger.error(f"Failed to store time anomaly for session {result.session_id}: {str(e)}")
