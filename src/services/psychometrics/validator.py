"""Psychometric eligibility of questions for test assembly.

A question without item statistics counts as PROBATION. RETIRED questions
are never assembled.
"""

from typing import Dict, Iterable, List

from src.core.config import get_settings
from src.database.mongodb import MongoDB
from src.models.question import AssessmentQuestion
from src.utils.constants import Collections, ItemValidityStatus
from src.utils.helper import to_object_id
from src.utils.logger import get_psychometrics_logger

settings = get_settings()
logger = get_psychometrics_logger()


class PsychometricValidator:
    """Answers whether questions may be placed in an assembled test."""

    def __init__(self, db=None):
        self.db = db or MongoDB

    async def load_validity_statuses(self, question_ids: Iterable[str]) -> Dict[str, str]:
        """Validity status per question id, defaulting to PROBATION."""
        ids = list(question_ids)
        statuses = {question_id: ItemValidityStatus.PROBATION.value for question_id in ids}
        if not ids:
            return statuses

        docs = await self.db.find_many(
            Collections.ITEM_STATISTICS,
            {"question_id": {"$in": ids}},
            projection={"question_id": 1, "validity_status": 1},
        )
        for doc in docs:
            if doc.get("validity_status"):
                statuses[doc["question_id"]] = doc["validity_status"]
        return statuses

    async def filter_eligible(self, questions: List[AssessmentQuestion]) -> List[AssessmentQuestion]:
        """Keep active, non-retired questions in their original order."""
        active = [q for q in questions if q.is_active]
        if not settings.PSYCHOMETRICS_ENABLED or not active:
            return active

        statuses = await self.load_validity_statuses(q.id_str for q in active)
        eligible = [q for q in active if statuses[q.id_str] != ItemValidityStatus.RETIRED.value]
        if len(eligible) < len(active):
            logger.debug(f"Excluded {len(active) - len(eligible)} retired questions from assembly")
        return eligible

    async def is_eligible_for_assembly(self, question_id: str) -> bool:
        object_id = to_object_id(question_id)
        if object_id is None:
            return False

        doc = await self.db.find_one(
            Collections.ASSESSMENT_QUESTIONS, {"_id": object_id}, projection={"is_active": 1}
        )
        if doc is None or not doc.get("is_active", False):
            return False
        if not settings.PSYCHOMETRICS_ENABLED:
            return True

        statuses = await self.load_validity_statuses([question_id])
        return statuses[question_id] != ItemValidityStatus.RETIRED.value
