"""Application lifecycle event handlers.

This module manages startup and shutdown: database and Redis connections,
index creation, psychometric initialisation and the background loops
(connection health pings and the nightly psychometric audit).
"""

import asyncio
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple, Type

from fastapi import FastAPI

from src.core.config import get_settings
from src.database.mongodb import MongoDB
from src.database.redis_client import RedisClient
from src.models.base import BaseDocument
from src.models.competency import BehavioralIndicator, Competency
from src.models.psychometrics import BigFiveReliability, CompetencyReliability, ItemStatistics
from src.models.question import AssessmentQuestion
from src.models.result import TestResult
from src.models.session import TestAnswer, TestSession
from src.models.team import OnetProfile, Team
from src.models.template import TestTemplate
from src.services.psychometrics.audit_job import PsychometricAuditJob
from src.utils.constants import Collections
from src.utils.datetime_utils import utc_now
from src.utils.logger import get_events_logger

settings = get_settings()
logger = get_events_logger()

HEALTH_CHECK_INTERVAL_SECONDS = 60
CRITICAL_TASKS = ("Database Connection", "Redis Connection")

INDEXED_MODELS: List[Tuple[str, Type[BaseDocument]]] = [
    (Collections.COMPETENCIES, Competency),
    (Collections.BEHAVIORAL_INDICATORS, BehavioralIndicator),
    (Collections.ASSESSMENT_QUESTIONS, AssessmentQuestion),
    (Collections.TEST_TEMPLATES, TestTemplate),
    (Collections.TEST_SESSIONS, TestSession),
    (Collections.TEST_ANSWERS, TestAnswer),
    (Collections.TEST_RESULTS, TestResult),
    (Collections.ITEM_STATISTICS, ItemStatistics),
    (Collections.COMPETENCY_RELIABILITY, CompetencyReliability),
    (Collections.BIG_FIVE_RELIABILITY, BigFiveReliability),
    (Collections.TEAMS, Team),
    (Collections.ONET_PROFILES, OnetProfile),
]


def seconds_until_hour(hour: int, now: Optional[datetime] = None) -> float:
    """Seconds from ``now`` until the next occurrence of ``hour``:00 UTC."""
    now = now or utc_now()
    target = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


async def run_health_checks(interval: float = HEALTH_CHECK_INTERVAL_SECONDS) -> None:
    """Ping MongoDB and Redis until cancelled."""
    while True:
        if not await MongoDB.ping():
            logger.error("Database health check failed")
        if not await RedisClient.ping():
            logger.error("Redis health check failed")
        await asyncio.sleep(interval)


async def run_nightly_audit_loop(audit_job: Optional[PsychometricAuditJob] = None) -> None:
    """Run the psychometric audit daily at the configured UTC hour until cancelled."""
    audit_job = audit_job or PsychometricAuditJob()
    while True:
        delay = seconds_until_hour(settings.PSYCHOMETRICS_AUDIT_HOUR)
        logger.info(f"Next psychometric audit in {int(delay)}s")
        await asyncio.sleep(delay)
        try:
            result = await audit_job.run_nightly_audit()
            logger.info(f"Nightly psychometric audit finished: {result.message}")
        except Exception as e:
            logger.error(f"Nightly psychometric audit failed: {str(e)}", exc_info=True)


class StartupEvent:
    """Handles application startup tasks."""

    def __init__(self, app: FastAPI):
        self.app = app
        self.tasks: List[str] = []
        self.failed_tasks: List[Tuple[str, str]] = []

    async def execute(self) -> None:
        """Execute all startup tasks.

        Raises:
            RuntimeError: If the database or Redis cannot be reached
        """
        logger.info(
            "Starting application startup sequence",
            extra={
                "app_name": settings.APP_NAME,
                "version": settings.APP_VERSION,
                "environment": settings.APP_ENV,
            }
        )

        startup_tasks = [
            ("Database Connection", self._connect_database),
            ("Database Indexes", self._create_indexes),
            ("Redis Connection", self._connect_redis),
            ("Psychometric Initialisation", self._initialize_psychometrics),
            ("Background Tasks", self._start_background_tasks),
        ]

        for task_name, task_func in startup_tasks:
            try:
                logger.info(f"Starting: {task_name}")
                await task_func()
                self.tasks.append(task_name)
                logger.info(f"Completed: {task_name}")
            except Exception as e:
                logger.error(f"Failed: {task_name}", extra={"error": str(e)}, exc_info=True)
                self.failed_tasks.append((task_name, str(e)))

                if task_name in CRITICAL_TASKS:
                    raise RuntimeError(f"Critical startup task failed: {task_name}. Error: {str(e)}") from e

        self._log_startup_summary()

    async def _connect_database(self) -> None:
        await MongoDB.connect(
            url=settings.get_database_url(),
            db_name=settings.MONGODB_DB_NAME,
        )

    async def _create_indexes(self) -> None:
        """Create the indexes each model declares for its collection."""
        created_count = 0
        for collection_name, model in INDEXED_MODELS:
            for spec in model.create_index_keys():
                options = {key: value for key, value in spec.items() if key != "keys"}
                if await MongoDB.create_index(collection_name, spec["keys"], **options):
                    created_count += 1

        logger.info(f"Created {created_count} database indexes")

    async def _connect_redis(self) -> None:
        await RedisClient.connect(url=settings.get_redis_url())

    async def _initialize_psychometrics(self) -> None:
        if not settings.PSYCHOMETRICS_ENABLED:
            logger.info("Psychometric initialisation skipped (disabled)")
            return
        await PsychometricAuditJob().initialize_new_questions()

    async def _start_background_tasks(self) -> None:
        if not settings.ENABLE_BACKGROUND_JOBS:
            logger.info("Background tasks skipped (disabled)")
            return

        background_tasks = [asyncio.create_task(run_health_checks(), name="health_checks")]
        if settings.PSYCHOMETRICS_ENABLED and settings.PSYCHOMETRICS_AUDIT_ENABLED:
            background_tasks.append(
                asyncio.create_task(run_nightly_audit_loop(), name="psychometric_audit")
            )
        self.app.state.background_tasks = background_tasks
        logger.info(f"Started {len(background_tasks)} background tasks")

    def _log_startup_summary(self) -> None:
        summary = {
            "successful_tasks": len(self.tasks),
            "failed_tasks": len(self.failed_tasks),
            "tasks": self.tasks,
            "failures": self.failed_tasks,
            "environment": settings.APP_ENV,
            "debug_mode": settings.APP_DEBUG,
            "api_docs": settings.ENABLE_API_DOCS,
            "cache_enabled": settings.ENABLE_CACHE,
        }

        if self.failed_tasks:
            logger.warning("Application started with errors", extra=summary)
        else:
            logger.info("Application started successfully", extra=summary)


class ShutdownEvent:
    """Handles application shutdown tasks."""

    def __init__(self, app: FastAPI):
        self.app = app

    async def execute(self) -> None:
        """Execute all shutdown tasks, logging and continuing past failures."""
        logger.info("Starting application shutdown sequence")

        shutdown_tasks = [
            ("Cancel Background Tasks", self._cancel_background_tasks),
            ("Close Redis Connection", RedisClient.disconnect),
            ("Close Database Connection", MongoDB.disconnect),
        ]

        for task_name, task_func in shutdown_tasks:
            try:
                logger.info(f"Executing: {task_name}")
                await task_func()
                logger.info(f"Completed: {task_name}")
            except Exception as e:
                logger.error(f"Error during {task_name}: {str(e)}", exc_info=True)

        logger.info("Application shutdown complete")

    async def _cancel_background_tasks(self) -> None:
        tasks = getattr(self.app.state, "background_tasks", [])
        if not tasks:
            return

        logger.info(f"Cancelling {len(tasks)} background tasks")
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self.app.state.background_tasks = []


def create_start_app_handler(app: FastAPI) -> Callable:
    async def start_app() -> None:
        await StartupEvent(app).execute()

    return start_app


def create_stop_app_handler(app: FastAPI) -> Callable:
    async def stop_app() -> None:
        await ShutdownEvent(app).execute()

    return stop_app


__all__ = [
    "create_start_app_handler",
    "create_stop_app_handler",
    "seconds_until_hour",
    "StartupEvent",
    "ShutdownEvent",
]
