"""Classical test theory analysis of the item bank.

Item statistics:
    * difficulty index (p): mean of score / max_score over scored answers
    * discrimination index (rpb): Pearson correlation between the item
      score and the session total, the point-biserial for dichotomous items
    * distractor efficiency: share of selections per answer option

Scale reliability uses Cronbach's alpha with sample variances over
sessions that answered at least 90% of the scale's items.
"""

import math
import statistics
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, List, Optional, Sequence

from src.core.config import get_settings
from src.database.mongodb import MongoDB
from src.models.competency import BehavioralIndicator, Competency
from src.models.psychometrics import (
    BigFiveReliability,
    BigFiveReliabilitySummary,
    CompetencyReliability,
    FlaggedItemSummary,
    ItemStatistics,
    PsychometricHealthReport,
)
from src.models.question import AssessmentQuestion
from src.utils.constants import (
    BigFiveTrait,
    Collections,
    ErrorCodes,
    ItemFlag,
    ItemValidityStatus,
    PsychometricConstants,
    ReliabilityStatus,
)
from src.utils.datetime_utils import utc_now
from src.utils.exceptions import BusinessLogicError, ResourceNotFoundError
from src.utils.helper import to_object_id, to_object_ids, truncate_string
from src.utils.logger import get_psychometrics_logger

settings = get_settings()
logger = get_psychometrics_logger()

SCALE = PsychometricConstants.DECIMAL_SCALE
FLAGGED_ITEM_LIMIT = 10
FLAGGED_TEXT_LIMIT = 100
ANSWERED_FILTER = {"is_skipped": {"$ne": True}, "answered_at": {"$ne": None}}


# ============================================================================
# PURE STATISTICS
# ============================================================================

def pearson_correlation(x: Sequence[float], y: Sequence[float]) -> Optional[float]:
    """Pearson correlation, None for empty, mismatched or constant input."""
    if len(x) != len(y) or not x:
        return None
    mean_x = statistics.fmean(x)
    mean_y = statistics.fmean(y)
    numerator = sum((a - mean_x) * (b - mean_y) for a, b in zip(x, y))
    denominator = math.sqrt(
        sum((a - mean_x) ** 2 for a in x) * sum((b - mean_y) ** 2 for b in y)
    )
    if denominator == 0:
        return None
    return round(numerator / denominator, SCALE)


@dataclass
class ScoreMatrix:
    """Item scores per session: ``sessions[session_id][question_id]``."""

    sessions: Dict[str, Dict[str, float]] = field(default_factory=dict)
    items: List[str] = field(default_factory=list)

    def add(self, session_id: str, question_id: str, score: float) -> None:
        self.sessions.setdefault(session_id, {})[question_id] = score
        if question_id not in self.items:
            self.items.append(question_id)

    @property
    def session_count(self) -> int:
        return len(self.sessions)

    @property
    def item_count(self) -> int:
        return len(self.items)

    def complete_rows(self, min_responses: int) -> Optional[List[List[float]]]:
        """Rows of sessions answering at least 90% of the items.

        Missing items count as 0. Returns None when fewer than
        ``min_responses`` sessions qualify.
        """
        k = self.item_count
        threshold = k * PsychometricConstants.COMPLETENESS_THRESHOLD
        rows = [
            [scores.get(item, 0.0) for item in self.items]
            for scores in self.sessions.values()
            if len(scores) >= threshold
        ]
        if len(rows) < max(min_responses, 2):
            return None
        return rows


def cronbach_alpha(matrix: ScoreMatrix, min_responses: int) -> Optional[float]:
    """alpha = k / (k - 1) * (1 - sum(item variances) / total variance)."""
    k = matrix.item_count
    if k < 2 or matrix.session_count < min_responses:
        logger.debug(f"Insufficient data for alpha: k={k}, n={matrix.session_count}")
        return None

    rows = matrix.complete_rows(min_responses)
    if rows is None:
        return None

    item_variances = [statistics.variance(column) for column in zip(*rows)]
    total_variance = statistics.variance([sum(row) for row in rows])
    if total_variance == 0:
        logger.debug("Total variance is zero, cannot calculate alpha")
        return None

    alpha = k / (k - 1) * (1 - sum(item_variances) / total_variance)
    return round(alpha, SCALE)


def alpha_if_deleted(matrix: ScoreMatrix, min_responses: int) -> Dict[str, float]:
    """Alpha of the scale with each item removed in turn.

    Derived in one pass from the item variances and the item-total
    covariances rather than recomputing alpha k times.
    """
    k = matrix.item_count
    if k < 3:
        return {}
    rows = matrix.complete_rows(min_responses)
    if rows is None:
        return {}

    n = len(rows)
    columns = list(zip(*rows))
    totals = [sum(row) for row in rows]
    total_mean = statistics.fmean(totals)
    total_variance = statistics.variance(totals)
    item_variances = [statistics.variance(column) for column in columns]
    sum_item_variances = sum(item_variances)
    factor = (k - 1) / (k - 2)

    result: Dict[str, float] = {}
    for index, column in enumerate(columns):
        item_mean = statistics.fmean(column)
        covariance = sum(
            (score - item_mean) * (total - total_mean) for score, total in zip(column, totals)
        ) / (n - 1)
        reduced_total = total_variance - 2 * covariance + item_variances[index]
        if reduced_total == 0:
            continue
        reduced_items = sum_item_variances - item_variances[index]
        result[matrix.items[index]] = round(factor * (1 - reduced_items / reduced_total), SCALE)
    return result


def determine_validity_status(
    difficulty: Optional[float],
    discrimination: Optional[float],
) -> ItemValidityStatus:
    if discrimination is None:
        return ItemValidityStatus.PROBATION
    if discrimination < 0:
        return ItemValidityStatus.RETIRED
    if (
        discrimination >= PsychometricConstants.DISCRIMINATION_EXCELLENT
        and difficulty is not None
        and PsychometricConstants.DIFFICULTY_TOO_HARD <= difficulty <= PsychometricConstants.DIFFICULTY_TOO_EASY
    ):
        return ItemValidityStatus.ACTIVE
    return ItemValidityStatus.FLAGGED_FOR_REVIEW


def status_reason(difficulty: Optional[float], discrimination: Optional[float]) -> str:
    """Human readable reason, e.g. ``rpb=0.350 (excellent), p=0.600 (acceptable)``."""
    parts = []
    if discrimination is not None:
        if discrimination < 0:
            label = "toxic"
        elif discrimination >= PsychometricConstants.DISCRIMINATION_EXCELLENT:
            label = "excellent"
        elif discrimination >= PsychometricConstants.DISCRIMINATION_GOOD:
            label = "good"
        elif discrimination >= PsychometricConstants.DISCRIMINATION_WARNING:
            label = "marginal"
        else:
            label = "poor"
        parts.append(f"rpb={discrimination:.3f} ({label})")

    if difficulty is not None:
        if difficulty < PsychometricConstants.DIFFICULTY_TOO_HARD:
            label = "too hard"
        elif difficulty > PsychometricConstants.DIFFICULTY_TOO_EASY:
            label = "too easy"
        else:
            label = "acceptable"
        parts.append(f"p={difficulty:.3f} ({label})")

    return ", ".join(parts)


def determine_flags(
    difficulty: Optional[float],
    discrimination: Optional[float],
    distractors: Dict[str, float],
    keyed_options: Sequence[str] = (),
) -> List[str]:
    flags = []
    if difficulty is not None:
        if difficulty < PsychometricConstants.DIFFICULTY_TOO_HARD:
            flags.append(ItemFlag.TOO_HARD.value)
        elif difficulty > PsychometricConstants.DIFFICULTY_TOO_EASY:
            flags.append(ItemFlag.TOO_EASY.value)

    if discrimination is not None:
        if discrimination < 0:
            flags.append(ItemFlag.NEGATIVE_DISCRIMINATION.value)
        elif discrimination < PsychometricConstants.DISCRIMINATION_GOOD:
            flags.append(ItemFlag.LOW_DISCRIMINATION.value)

    if any(
        share < PsychometricConstants.MIN_DISTRACTOR_SELECTION
        for option_id, share in distractors.items()
        if option_id not in keyed_options
    ):
        flags.append(ItemFlag.NON_FUNCTIONING_DISTRACTOR.value)
    return flags


def determine_reliability_status(alpha: Optional[float], sample_size: int, item_count: int, min_responses: int) -> ReliabilityStatus:
    if sample_size < min_responses or item_count < 2 or alpha is None:
        return ReliabilityStatus.INSUFFICIENT_DATA
    if alpha >= PsychometricConstants.ALPHA_RELIABLE:
        return ReliabilityStatus.RELIABLE
    if alpha >= PsychometricConstants.ALPHA_ACCEPTABLE:
        return ReliabilityStatus.ACCEPTABLE
    return ReliabilityStatus.UNRELIABLE


def keyed_option_ids(question: AssessmentQuestion) -> List[str]:
    """Options that are the key rather than distractors.

    An option marked ``correct`` is the key. Otherwise the highest scored
    options are.
    """
    options = question.answer_options
    marked = [str(o["id"]) for o in options if o.get("correct") and o.get("id") is not None]
    if marked:
        return marked
    scores = [o.get("score") for o in options if isinstance(o.get("score"), (int, float))]
    if not scores:
        return []
    best = max(scores)
    return [str(o["id"]) for o in options if o.get("score") == best and o.get("id") is not None]


# ============================================================================
# SERVICE
# ============================================================================

class PsychometricAnalysisService:
    """Computes and persists item statistics and scale reliability."""

    def __init__(self, db=None, min_responses: Optional[int] = None):
        self.db = db or MongoDB
        self.min_responses = min_responses or settings.PSYCHOMETRICS_MIN_RESPONSES

    # ------------------------------------------------------------------ items

    async def load_question(self, question_id: str) -> AssessmentQuestion:
        object_id = to_object_id(question_id)
        doc = await self.db.find_one(Collections.ASSESSMENT_QUESTIONS, {"_id": object_id}) if object_id else None
        if doc is None:
            raise ResourceNotFoundError(
                f"Question not found: {question_id}",
                resource_type="question",
                resource_id=question_id,
                error_code=ErrorCodes.QUESTION_NOT_FOUND,
            )
        return AssessmentQuestion.from_dict(doc)

    async def find_item_statistics(self, question_id: str) -> Optional[ItemStatistics]:
        doc = await self.db.find_one(Collections.ITEM_STATISTICS, {"question_id": question_id})
        return ItemStatistics.from_dict(doc) if doc else None

    async def get_item_statistics(self, question_id: str) -> ItemStatistics:
        """Stored statistics of an item.

        Raises:
            ResourceNotFoundError: If the item has never been analyzed
        """
        stats = await self.find_item_statistics(question_id)
        if stats is None:
            raise ResourceNotFoundError(
                f"No statistics found for question: {question_id}",
                resource_type="item_statistics",
                resource_id=question_id,
                error_code=ErrorCodes.QUESTION_NOT_FOUND,
            )
        return stats

    async def save_item_statistics(self, stats: ItemStatistics) -> ItemStatistics:
        stats.update_timestamps()
        await self.upsert(Collections.ITEM_STATISTICS, {"question_id": stats.question_id}, stats)
        return stats

    async def count_responses(self, question_id: str) -> int:
        return await self.db.count_documents(
            Collections.TEST_ANSWERS, {"question_id": question_id, **ANSWERED_FILTER}
        )

    async def calculate_item_statistics(self, question_id: str) -> ItemStatistics:
        """Recompute and persist the statistics of one item.

        Raises:
            ResourceNotFoundError: If the question does not exist
        """
        question = await self.load_question(question_id)
        stats = await self.find_item_statistics(question_id) or ItemStatistics(question_id=question_id)

        if stats.discrimination_index is not None:
            stats.previous_discrimination_index = stats.discrimination_index

        now = utc_now()
        stats.response_count = await self.count_responses(question_id)

        if stats.response_count < self.min_responses:
            logger.info(
                f"Insufficient responses ({stats.response_count}) for question {question_id}, "
                "setting PROBATION"
            )
            stats.flags = [ItemFlag.INSUFFICIENT_DATA.value]
            stats.change_status(
                ItemValidityStatus.PROBATION,
                f"Insufficient responses: {stats.response_count} < {self.min_responses}",
                now,
            )
            stats.last_calculated_at = now
            return await self.save_item_statistics(stats)

        stats.difficulty_index = await self.calculate_difficulty_index(question_id)
        stats.discrimination_index = await self.calculate_discrimination_index(question_id)
        stats.distractor_efficiency = await self.analyze_distractors(question_id)
        stats.flags = determine_flags(
            stats.difficulty_index,
            stats.discrimination_index,
            stats.distractor_efficiency,
            keyed_option_ids(question),
        )

        status = determine_validity_status(stats.difficulty_index, stats.discrimination_index)
        stats.change_status(status, status_reason(stats.difficulty_index, stats.discrimination_index), now)
        stats.last_calculated_at = now

        logger.info(
            f"Item statistics for question {question_id}: p={stats.difficulty_index}, "
            f"rpb={stats.discrimination_index}, status={stats.validity_status}"
        )
        return await self.save_item_statistics(stats)

    async def calculate_difficulty_index(self, question_id: str) -> Optional[float]:
        docs = await self.db.find_many(
            Collections.TEST_ANSWERS,
            {"question_id": question_id, **ANSWERED_FILTER},
            projection={"score": 1, "max_score": 1},
        )
        normalized = [
            doc["score"] / doc["max_score"]
            for doc in docs
            if doc.get("score") is not None and doc.get("max_score")
        ]
        if not normalized:
            return None
        return round(statistics.fmean(normalized), SCALE)

    async def calculate_discrimination_index(self, question_id: str) -> Optional[float]:
        """Correlation between the item score and each session's total score."""
        docs = await self.db.find_many(
            Collections.TEST_ANSWERS,
            {"question_id": question_id, "score": {"$ne": None}, **ANSWERED_FILTER},
            projection={"session_id": 1, "score": 1},
        )
        item_scores = {doc["session_id"]: float(doc["score"]) for doc in docs}
        if len(item_scores) < self.min_responses:
            logger.debug(f"Insufficient score pairs ({len(item_scores)}) for discrimination")
            return None

        rows = await self.db.aggregate(
            Collections.TEST_ANSWERS,
            [
                {"$match": {"session_id": {"$in": list(item_scores)}, "score": {"$ne": None}, **ANSWERED_FILTER}},
                {"$group": {"_id": "$session_id", "total": {"$sum": "$score"}}},
            ],
        )
        totals = {row["_id"]: float(row["total"]) for row in rows}

        pairs = [(item_scores[sid], totals[sid]) for sid in item_scores if sid in totals]
        if len(pairs) < self.min_responses:
            return None
        return pearson_correlation([p[0] for p in pairs], [p[1] for p in pairs])

    async def analyze_distractors(self, question_id: str) -> Dict[str, float]:
        rows = await self.db.aggregate(
            Collections.TEST_ANSWERS,
            [
                {"$match": {"question_id": question_id, **ANSWERED_FILTER}},
                {"$unwind": "$selected_option_ids"},
                {"$group": {"_id": "$selected_option_ids", "count": {"$sum": 1}}},
            ],
        )
        total = sum(row["count"] for row in rows)
        if not total:
            return {}
        return {str(row["_id"]): round(row["count"] / total, SCALE) for row in rows}

    # ---------------------------------------------------------------- scales

    async def build_score_matrix(self, competency_ids: Sequence[str]) -> ScoreMatrix:
        """Score matrix over every active question of the given competencies."""
        matrix = ScoreMatrix()
        indicator_docs = await self.db.find_many(
            Collections.BEHAVIORAL_INDICATORS,
            {"competency_id": {"$in": list(competency_ids)}},
            projection={"_id": 1},
        )
        if not indicator_docs:
            return matrix

        question_docs = await self.db.find_many(
            Collections.ASSESSMENT_QUESTIONS,
            {"behavioral_indicator_id": {"$in": [str(d["_id"]) for d in indicator_docs]}, "is_active": True},
            projection={"_id": 1},
            sort=[("_id", 1)],
        )
        question_ids = [str(d["_id"]) for d in question_docs]
        if not question_ids:
            return matrix

        answers = await self.db.find_many(
            Collections.TEST_ANSWERS,
            {"question_id": {"$in": question_ids}, "score": {"$ne": None}, **ANSWERED_FILTER},
            projection={"session_id": 1, "question_id": 1, "score": 1},
            sort=[("session_id", 1), ("question_id", 1)],
        )
        for answer in answers:
            matrix.add(answer["session_id"], answer["question_id"], float(answer["score"]))
        return matrix

    async def calculate_competency_reliability(self, competency_id: str) -> CompetencyReliability:
        """Recompute and persist Cronbach's alpha for a competency.

        Raises:
            ResourceNotFoundError: If the competency does not exist
        """
        object_id = to_object_id(competency_id)
        doc = await self.db.find_one(Collections.COMPETENCIES, {"_id": object_id}) if object_id else None
        if doc is None:
            raise ResourceNotFoundError(
                f"Competency not found: {competency_id}",
                resource_type="competency",
                resource_id=competency_id,
                error_code=ErrorCodes.COMPETENCY_NOT_FOUND,
            )

        matrix = await self.build_score_matrix([competency_id])
        alpha = cronbach_alpha(matrix, self.min_responses)

        existing = await self.db.find_one(Collections.COMPETENCY_RELIABILITY, {"competency_id": competency_id})
        reliability = CompetencyReliability.from_dict(existing) if existing else CompetencyReliability(
            competency_id=competency_id
        )
        reliability.cronbach_alpha = alpha
        reliability.alpha_if_deleted = alpha_if_deleted(matrix, self.min_responses)
        reliability.sample_size = matrix.session_count
        reliability.item_count = matrix.item_count
        reliability.reliability_status = determine_reliability_status(
            alpha, matrix.session_count, matrix.item_count, self.min_responses
        ).value
        reliability.last_calculated_at = utc_now()
        reliability.update_timestamps()

        await self.upsert(Collections.COMPETENCY_RELIABILITY, {"competency_id": competency_id}, reliability)
        logger.info(
            f"Competency reliability for {competency_id}: alpha={alpha}, "
            f"status={reliability.reliability_status}"
        )
        return reliability

    async def calculate_big_five_reliability(self, trait: BigFiveTrait) -> BigFiveReliability:
        """Alpha over every item of the competencies loading on a trait."""
        trait = BigFiveTrait(trait)
        existing = await self.db.find_one(Collections.BIG_FIVE_RELIABILITY, {"trait": trait.value})
        reliability = BigFiveReliability.from_dict(existing) if existing else BigFiveReliability(trait=trait.value)

        competency_docs = await self.db.find_many(
            Collections.COMPETENCIES, {"big_five_category": trait.value}, projection={"_id": 1}
        )
        competency_ids = [str(d["_id"]) for d in competency_docs]

        if competency_ids:
            matrix = await self.build_score_matrix(competency_ids)
            alpha = cronbach_alpha(matrix, self.min_responses)
        else:
            logger.info(f"No competencies mapped to Big Five trait {trait.value}")
            matrix, alpha = ScoreMatrix(), None

        reliability.cronbach_alpha = alpha
        reliability.contributing_competencies = len(competency_ids)
        reliability.total_items = matrix.item_count
        reliability.sample_size = matrix.session_count
        reliability.reliability_status = determine_reliability_status(
            alpha, matrix.session_count, matrix.item_count, self.min_responses
        ).value
        reliability.last_calculated_at = utc_now()
        reliability.update_timestamps()

        await self.upsert(Collections.BIG_FIVE_RELIABILITY, {"trait": trait.value}, reliability)
        logger.info(
            f"Big Five reliability for {trait.value}: alpha={alpha}, "
            f"competencies={len(competency_ids)}, items={matrix.item_count}"
        )
        return reliability

    async def upsert(self, collection: str, key: Dict[str, str], model) -> None:
        """Write a document keyed by a natural key, keeping its original id."""
        doc = model.to_mongo()
        on_insert = {"_id": doc.pop("_id", None), "created_at": doc.pop("created_at", None)}
        await self.db.update_one(collection, key, {"$set": doc, "$setOnInsert": on_insert}, upsert=True)

    # ------------------------------------------------------------ status

    async def update_item_validity_status(self, question_id: str) -> ItemStatistics:
        """Re-derive the validity status from stored statistics.

        Raises:
            ResourceNotFoundError: If the item has no statistics
        """
        stats = await self.get_item_statistics(question_id)
        status = determine_validity_status(stats.difficulty_index, stats.discrimination_index)
        if stats.response_count < self.min_responses:
            status = ItemValidityStatus.PROBATION
        stats.change_status(status, status_reason(stats.difficulty_index, stats.discrimination_index), utc_now())
        return await self.save_item_statistics(stats)

    async def retire_item(self, question_id: str, reason: str) -> ItemStatistics:
        """Retire an item and deactivate its question."""
        question = await self.load_question(question_id)
        stats = await self.find_item_statistics(question_id) or ItemStatistics(question_id=question_id)
        stats.change_status(ItemValidityStatus.RETIRED, f"Manual retirement: {reason}", utc_now())

        await self.db.update_one(
            Collections.ASSESSMENT_QUESTIONS,
            {"_id": question.id},
            {"$set": {"is_active": False, "updated_at": utc_now()}},
        )
        await self.save_item_statistics(stats)
        logger.info(f"Item {question_id} retired. Reason: {reason}")
        return stats

    async def activate_item(self, question_id: str) -> ItemStatistics:
        """Manually activate an item with enough evidence of quality.

        Raises:
            ResourceNotFoundError: If the item has no statistics
            BusinessLogicError: If responses are insufficient or the
                discrimination index is below 0.3
        """
        stats = await self.get_item_statistics(question_id)

        if stats.response_count < self.min_responses:
            raise BusinessLogicError(
                f"Cannot activate item with insufficient responses: {stats.response_count}",
                operation="activate_item",
                resource_id=question_id,
                error_code=ErrorCodes.ITEM_NOT_ACTIVATABLE,
            )
        rpb = stats.discrimination_index
        if rpb is not None and rpb < 0:
            raise BusinessLogicError(
                "Cannot activate item with negative discrimination index",
                operation="activate_item",
                resource_id=question_id,
                error_code=ErrorCodes.ITEM_NOT_ACTIVATABLE,
            )
        if rpb is not None and rpb < PsychometricConstants.DISCRIMINATION_EXCELLENT:
            raise BusinessLogicError(
                f"Cannot activate item with discrimination index below "
                f"{PsychometricConstants.DISCRIMINATION_EXCELLENT}",
                operation="activate_item",
                resource_id=question_id,
                error_code=ErrorCodes.ITEM_NOT_ACTIVATABLE,
            )

        question = await self.load_question(question_id)
        stats.change_status(ItemValidityStatus.ACTIVE, "Manual activation", utc_now())
        await self.db.update_one(
            Collections.ASSESSMENT_QUESTIONS,
            {"_id": question.id},
            {"$set": {"is_active": True, "updated_at": utc_now()}},
        )
        await self.save_item_statistics(stats)
        logger.info(f"Item {question_id} activated")
        return stats

    # ------------------------------------------------------------ reporting

    async def get_health_report(self) -> PsychometricHealthReport:
        """Summarize item validity and scale reliability across the bank."""
        item_counts = await self.count_by(Collections.ITEM_STATISTICS, "validity_status")
        reliability_counts = await self.count_by(Collections.COMPETENCY_RELIABILITY, "reliability_status")

        competency_alphas = await self.db.find_many(
            Collections.COMPETENCY_RELIABILITY,
            {"cronbach_alpha": {"$ne": None}},
            projection={"cronbach_alpha": 1},
        )
        discriminations = await self.db.find_many(
            Collections.ITEM_STATISTICS,
            {"discrimination_index": {"$ne": None}},
            projection={"discrimination_index": 1},
        )
        recent = await self.db.count_documents(
            Collections.ITEM_STATISTICS,
            {"last_calculated_at": {"$gte": utc_now() - timedelta(days=1)}},
        )

        report = PsychometricHealthReport(
            total_items=sum(item_counts.values()),
            active_items=item_counts.get(ItemValidityStatus.ACTIVE.value, 0),
            probation_items=item_counts.get(ItemValidityStatus.PROBATION.value, 0),
            flagged_items=item_counts.get(ItemValidityStatus.FLAGGED_FOR_REVIEW.value, 0),
            retired_items=item_counts.get(ItemValidityStatus.RETIRED.value, 0),
            total_competencies=sum(reliability_counts.values()),
            reliable_competencies=reliability_counts.get(ReliabilityStatus.RELIABLE.value, 0),
            acceptable_competencies=reliability_counts.get(ReliabilityStatus.ACCEPTABLE.value, 0),
            unreliable_competencies=reliability_counts.get(ReliabilityStatus.UNRELIABLE.value, 0),
            insufficient_data_competencies=reliability_counts.get(ReliabilityStatus.INSUFFICIENT_DATA.value, 0),
            average_alpha=mean_or_none(d["cronbach_alpha"] for d in competency_alphas),
            average_discrimination=mean_or_none(d["discrimination_index"] for d in discriminations),
            top_flagged_items=await self.get_top_flagged_items(FLAGGED_ITEM_LIMIT),
            big_five_summary=await self.get_big_five_summary(),
            generated_at=utc_now(),
            items_analyzed_since_last_audit=recent,
        )
        logger.info(
            f"Psychometric health report: {report.overall_status.value}, "
            f"{report.total_items} items, {report.total_competencies} competencies"
        )
        return report

    async def count_by(self, collection: str, field_name: str) -> Dict[str, int]:
        rows = await self.db.aggregate(collection, [{"$group": {"_id": f"${field_name}", "count": {"$sum": 1}}}])
        return {str(row["_id"]): int(row["count"]) for row in rows}

    async def get_top_flagged_items(self, limit: int) -> List[FlaggedItemSummary]:
        docs = await self.db.find_many(
            Collections.ITEM_STATISTICS,
            {"$or": [
                {"validity_status": {"$in": [
                    ItemValidityStatus.FLAGGED_FOR_REVIEW.value,
                    ItemValidityStatus.RETIRED.value,
                ]}},
                {"discrimination_index": {"$lt": PsychometricConstants.DISCRIMINATION_CRITICAL}},
            ]},
        )
        items = [ItemStatistics.from_dict(doc) for doc in docs]
        if not items:
            return []

        question_docs = await self.db.find_many(
            Collections.ASSESSMENT_QUESTIONS, {"_id": {"$in": to_object_ids(i.question_id for i in items)}}
        )
        questions = {str(d["_id"]): AssessmentQuestion.from_dict(d) for d in question_docs}
        indicator_docs = await self.db.find_many(
            Collections.BEHAVIORAL_INDICATORS,
            {"_id": {"$in": to_object_ids(q.behavioral_indicator_id for q in questions.values())}},
        )
        indicators = {str(d["_id"]): BehavioralIndicator.from_dict(d) for d in indicator_docs}
        competency_docs = await self.db.find_many(
            Collections.COMPETENCIES,
            {"_id": {"$in": to_object_ids(i.competency_id for i in indicators.values())}},
        )
        competencies = {str(d["_id"]): Competency.from_dict(d) for d in competency_docs}

        summaries = []
        for stats in items:
            question = questions.get(stats.question_id)
            indicator = indicators.get(question.behavioral_indicator_id) if question else None
            competency = competencies.get(indicator.competency_id) if indicator else None
            summaries.append(FlaggedItemSummary(
                question_id=stats.question_id,
                question_text=truncate_string(question.question_text if question else None, FLAGGED_TEXT_LIMIT),
                competency_name=competency.name if competency else "Unknown",
                indicator_title=(indicator.title if indicator and indicator.title else "Unknown"),
                difficulty_index=stats.difficulty_index,
                discrimination_index=stats.discrimination_index,
                response_count=stats.response_count,
                validity_status=stats.validity_status,
                flags=stats.flags,
                last_calculated_at=stats.last_calculated_at,
            ))

        summaries.sort(key=lambda s: -s.severity_level)
        return summaries[:limit]

    async def get_big_five_summary(self) -> BigFiveReliabilitySummary:
        docs = await self.db.find_many(Collections.BIG_FIVE_RELIABILITY, {})
        traits = [BigFiveReliability.from_dict(doc) for doc in docs]
        with_alpha = [t for t in traits if t.cronbach_alpha is not None]
        lowest = min(with_alpha, key=lambda t: t.cronbach_alpha) if with_alpha else None

        return BigFiveReliabilitySummary(
            total_traits=len(traits),
            reliable_traits=sum(1 for t in traits if t.reliability_status == ReliabilityStatus.RELIABLE),
            unreliable_traits=sum(1 for t in traits if t.reliability_status == ReliabilityStatus.UNRELIABLE),
            insufficient_data_traits=sum(
                1 for t in traits if t.reliability_status == ReliabilityStatus.INSUFFICIENT_DATA
            ),
            average_alpha=mean_or_none(t.cronbach_alpha for t in with_alpha),
            lowest_alpha_trait=lowest.trait if lowest else None,
            lowest_alpha_value=lowest.cronbach_alpha if lowest else None,
        )


def mean_or_none(values) -> Optional[float]:
    values = [float(v) for v in values if v is not None]
    return round(statistics.fmean(values), SCALE) if values else None
