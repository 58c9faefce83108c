"""Confidence intervals on competency scores.

Uses the standard error of measurement, ``SEM = SD * sqrt(1 - alpha)``,
with the competency's Cronbach alpha and a population standard deviation
estimated from historical results.
"""

import math
from typing import Dict, List, Optional

from src.database.mongodb import MongoDB
from src.models.result import CompetencyScore
from src.utils.constants import Collections, ConfidenceIntervalConstants, ResultStatus
from src.utils.exceptions import DatabaseError
from src.utils.helper import clamp
from src.utils.logger import get_scoring_logger

logger = get_scoring_logger()


class ConfidenceIntervalCalculator:
    """Adds standard error and a 95% interval to competency scores."""

    def __init__(self, db=None):
        self.db = db or MongoDB

    async def enrich(self, scores: List[CompetencyScore], session=None) -> None:
        """Set precision fields in place on every score with a usable alpha.

        Args:
            scores: Competency scores to enrich
            session: Optional MongoDB client session
        """
        if not scores:
            return

        competency_ids = [score.competency_id for score in scores]
        try:
            reliabilities = await self.load_reliabilities(competency_ids, session=session)
        except DatabaseError as e:
            logger.warning(f"Confidence intervals skipped, reliability lookup failed: {str(e)}")
            return

        try:
            distributions = await self.load_score_distributions(competency_ids, session=session)
        except DatabaseError as e:
            logger.warning(f"Score distribution lookup failed, using default SD: {str(e)}")
            distributions = {}

        enriched = 0
        for score in scores:
            alpha = reliabilities.get(score.competency_id)
            if alpha is None or alpha <= 0 or alpha > 1:
                continue

            count, actual_sd = distributions.get(score.competency_id, (0, None))
            sd = self.estimate_standard_deviation(count, actual_sd)
            self.apply_interval(score, alpha, sd)
            enriched += 1

        logger.debug(f"Confidence intervals set on {enriched} of {len(scores)} competencies")

    @staticmethod
    def estimate_standard_deviation(sample_size: int, actual_sd: Optional[float]) -> float:
        """Pick the SD to use for a competency.

        Large samples use their observed SD. Mid-sized samples inflate the
        default for small-sample uncertainty. Anything else uses the default.
        """
        default = ConfidenceIntervalConstants.DEFAULT_SD
        if sample_size >= ConfidenceIntervalConstants.MIN_SAMPLE_FOR_ACTUAL_SD:
            return actual_sd if actual_sd and actual_sd > 0 else default
        if sample_size > ConfidenceIntervalConstants.MIN_SAMPLE_FOR_SCALED_SD:
            return default * math.sqrt(ConfidenceIntervalConstants.MIN_SAMPLE_FOR_ACTUAL_SD / sample_size)
        if sample_size > 0:
            logger.warning(f"Only {sample_size} historical results, using default SD {default}")
        return default

    @staticmethod
    def apply_interval(score: CompetencyScore, alpha: float, sd: float) -> None:
        sem = sd * math.sqrt(1 - alpha)
        margin = ConfidenceIntervalConstants.Z_SCORE_95 * sem
        score.standard_error = round(sem, 2)
        score.confidence_interval_lower = round(clamp(score.percentage - margin, 0.0, 100.0), 2)
        score.confidence_interval_upper = round(clamp(score.percentage + margin, 0.0, 100.0), 2)
        score.reliability = round(alpha, 4)

    async def load_reliabilities(self, competency_ids: List[str], session=None) -> Dict[str, float]:
        docs = await self.db.find_many(
            Collections.COMPETENCY_RELIABILITY,
            {"competency_id": {"$in": competency_ids}},
            projection={"competency_id": 1, "cronbach_alpha": 1},
            session=session,
        )
        return {
            doc["competency_id"]: doc["cronbach_alpha"]
            for doc in docs
            if doc.get("cronbach_alpha") is not None
        }

    async def load_score_distributions(self, competency_ids: List[str], session=None) -> Dict[str, tuple]:
        """Historical (count, sample SD) of percentage per competency."""
        pipeline = [
            {"$match": {
                "status": ResultStatus.COMPLETED.value,
                "competency_scores.competency_id": {"$in": competency_ids},
            }},
            {"$unwind": "$competency_scores"},
            {"$match": {"competency_scores.competency_id": {"$in": competency_ids}}},
            {"$group": {
                "_id": "$competency_scores.competency_id",
                "count": {"$sum": 1},
                "sd": {"$stdDevSamp": "$competency_scores.percentage"},
            }},
        ]
        rows = await self.db.aggregate(Collections.TEST_RESULTS, pipeline, session=session)
        return {row["_id"]: (row.get("count", 0), row.get("sd")) for row in rows}
