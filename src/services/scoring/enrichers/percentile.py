"""Percentile ranks against historical results of the same template."""

from typing import List, Optional

from src.database.mongodb import MongoDB
from src.models.result import CompetencyScore
from src.utils.constants import Collections, ResultStatus, ScoringConstants
from src.utils.exceptions import DatabaseError
from src.utils.helper import clamp
from src.utils.logger import get_scoring_logger

logger = get_scoring_logger()


def percentile_rank(below: int, total: int) -> int:
    """Percentile of a score given how many of ``total`` results fall below it.

    Fewer than two historical results give the neutral 50.
    """
    if total <= 1:
        return ScoringConstants.DEFAULT_PERCENTILE
    return int(clamp(round(below / (total - 1) * 100), 0, 100))


class SubscalePercentileCalculator:
    """Per-competency and overall percentile ranks."""

    def __init__(self, db=None):
        self.db = db or MongoDB

    async def enrich(self, scores: List[CompetencyScore], template_id: str, session=None) -> None:
        """Set ``percentile`` on each competency score in place.

        A competency whose lookup fails is skipped; the others are still
        ranked.
        """
        for score in scores:
            try:
                score.percentile = await self.competency_percentile(
                    template_id, score.competency_id, score.percentage, session=session
                )
            except DatabaseError as e:
                logger.debug(f"Percentile skipped for competency {score.competency_id}: {str(e)}")

    async def competency_percentile(
        self,
        template_id: str,
        competency_id: str,
        percentage: float,
        session=None,
    ) -> int:
        base_filter = {"template_id": template_id, "status": ResultStatus.COMPLETED.value}

        total = await self.db.count_documents(
            Collections.TEST_RESULTS,
            {**base_filter, "competency_scores": {"$elemMatch": {"competency_id": competency_id}}},
            session=session,
        )
        if total <= 1:
            return ScoringConstants.DEFAULT_PERCENTILE

        below = await self.db.count_documents(
            Collections.TEST_RESULTS,
            {**base_filter, "competency_scores": {"$elemMatch": {
                "competency_id": competency_id,
                "percentage": {"$lt": percentage},
            }}},
            session=session,
        )
        return percentile_rank(below, total)

    async def overall_percentile(
        self,
        template_id: str,
        overall_percentage: Optional[float],
        session=None,
    ) -> Optional[int]:
        """Rank an overall percentage against the template's completed results.

        Returns:
            Optional[int]: Percentile, or None when the score is missing or
            the lookup fails
        """
        if overall_percentage is None:
            return None

        base_filter = {"template_id": template_id, "status": ResultStatus.COMPLETED.value}
        try:
            total = await self.db.count_documents(Collections.TEST_RESULTS, base_filter, session=session)
            if total <= 1:
                return ScoringConstants.DEFAULT_PERCENTILE
            below = await self.db.count_documents(
                Collections.TEST_RESULTS,
                {**base_filter, "overall_percentage": {"$lt": overall_percentage}},
                session=session,
            )
        except DatabaseError as e:
            logger.warning(f"Overall percentile unavailable for template {template_id}: {str(e)}")
            return None

        return percentile_rank(below, total)
