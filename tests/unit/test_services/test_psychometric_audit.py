"""Unit tests for item analysis, scale reliability and the audit job."""

from unittest.mock import AsyncMock, Mock, PropertyMock, patch

import pytest

from src.models.psychometrics import ItemStatistics, PsychometricHealthReport
from src.services.psychometrics.analysis import (
    PsychometricAnalysisService,
    ScoreMatrix,
    alpha_if_deleted,
    cronbach_alpha,
    determine_flags,
    determine_reliability_status,
    determine_validity_status,
    keyed_option_ids,
    pearson_correlation,
    status_reason,
)
from src.services.psychometrics.audit_job import AuditStepResult, PsychometricAuditJob
from src.utils.constants import Collections, ItemValidityStatus, PsychometricHealth, ReliabilityStatus
from src.utils.datetime_utils import utc_now
from src.utils.exceptions import BusinessLogicError, ResourceNotFoundError


def matrix_from(rows):
    matrix = ScoreMatrix()
    for index, row in enumerate(rows):
        for item, score in enumerate(row):
            matrix.add(f"s{index}", f"q{item}", score)
    return matrix


class TestItemStatistics:

    def test_pearson_correlation(self):
        assert pearson_correlation([1, 2, 3], [2, 4, 6]) == 1.0
        assert pearson_correlation([1, 2, 3], [3, 2, 1]) == -1.0
        assert pearson_correlation([1, 1, 1], [1, 2, 3]) is None
        assert pearson_correlation([], []) is None
        assert pearson_correlation([1, 2], [1]) is None

    @pytest.mark.parametrize("difficulty,discrimination,status", [
        (0.6, None, ItemValidityStatus.PROBATION),
        (0.6, -0.05, ItemValidityStatus.RETIRED),
        (0.6, 0.35, ItemValidityStatus.ACTIVE),
        (0.95, 0.35, ItemValidityStatus.FLAGGED_FOR_REVIEW),
        (0.1, 0.35, ItemValidityStatus.FLAGGED_FOR_REVIEW),
        (0.6, 0.22, ItemValidityStatus.FLAGGED_FOR_REVIEW),
        (None, 0.4, ItemValidityStatus.FLAGGED_FOR_REVIEW),
    ])
    def test_validity_status(self, difficulty, discrimination, status):
        assert determine_validity_status(difficulty, discrimination) == status

    def test_status_reason(self):
        assert status_reason(0.6, 0.35) == "rpb=0.350 (excellent), p=0.600 (acceptable)"
        assert status_reason(0.95, -0.1) == "rpb=-0.100 (toxic), p=0.950 (too easy)"
        assert status_reason(None, None) == ""

    def test_flags(self):
        flags = determine_flags(0.1, 0.15, {"a": 0.97, "b": 0.03}, keyed_options=["a"])

        assert flags == ["TOO_HARD", "LOW_DISCRIMINATION", "NON_FUNCTIONING_DISTRACTOR"]
        assert determine_flags(0.5, -0.2, {"a": 0.02}, keyed_options=["a"]) == ["NEGATIVE_DISCRIMINATION"]

    def test_keyed_options(self, make_question):
        marked = make_question("ind", answer_options=[{"id": "a"}, {"id": "b", "correct": True}])
        scored = make_question("ind", answer_options=[{"id": 1, "score": 1}, {"id": 2, "score": 4}, {"id": 3, "score": 4}])
        plain = make_question("ind", answer_options=[{"id": "x"}])

        assert keyed_option_ids(marked) == ["b"]
        assert keyed_option_ids(scored) == ["2", "3"]
        assert keyed_option_ids(plain) == []


class TestScaleReliability:

    ROWS = [[1, 1, 1], [1, 1, 0], [0, 1, 0], [0, 0, 0]]

    def test_cronbach_alpha(self):
        assert cronbach_alpha(matrix_from(self.ROWS), min_responses=2) == 0.75

    def test_alpha_needs_two_items_and_enough_sessions(self):
        assert cronbach_alpha(matrix_from([[1], [0], [1]]), min_responses=2) is None
        assert cronbach_alpha(matrix_from(self.ROWS), min_responses=10) is None

    def test_constant_totals_have_no_alpha(self):
        assert cronbach_alpha(matrix_from([[1, 0], [0, 1], [1, 0]]), min_responses=2) is None

    def test_incomplete_sessions_are_excluded(self):
        matrix = matrix_from(self.ROWS)
        matrix.add("partial", "q0", 1.0)

        assert len(matrix.complete_rows(2)) == 4
        assert cronbach_alpha(matrix, min_responses=2) == 0.75

    def test_alpha_if_deleted_matches_direct_recalculation(self):
        deleted = alpha_if_deleted(matrix_from(self.ROWS), min_responses=2)

        for index in range(3):
            reduced = [[score for i, score in enumerate(row) if i != index] for row in self.ROWS]
            direct = cronbach_alpha(matrix_from(reduced), min_responses=2)
            if direct is not None:
                assert deleted[f"q{index}"] == pytest.approx(direct, abs=1e-4)

    @pytest.mark.parametrize("alpha,sample,items,status", [
        (0.8, 100, 5, ReliabilityStatus.RELIABLE),
        (0.65, 100, 5, ReliabilityStatus.ACCEPTABLE),
        (0.4, 100, 5, ReliabilityStatus.UNRELIABLE),
        (0.9, 10, 5, ReliabilityStatus.INSUFFICIENT_DATA),
        (0.9, 100, 1, ReliabilityStatus.INSUFFICIENT_DATA),
        (None, 100, 5, ReliabilityStatus.INSUFFICIENT_DATA),
    ])
    def test_reliability_status(self, alpha, sample, items, status):
        assert determine_reliability_status(alpha, sample, items, min_responses=50) == status


@pytest.fixture
def stored_item(mock_db, make_question):
    """Route find_one to one question and its statistics document."""
    question = make_question("ind", question_type="MCQ", answer_options=[{"id": "a", "correct": True}, {"id": "b"}])
    stored = {Collections.ASSESSMENT_QUESTIONS: question.to_mongo()}

    async def find_one(collection, *args, **kwargs):
        return stored.get(collection)

    mock_db.find_one.side_effect = find_one

    def with_stats(**fields):
        stored[Collections.ITEM_STATISTICS] = ItemStatistics(question_id=question.id_str, **fields).to_mongo()

    return question, with_stats


class TestPsychometricAnalysisService:

    @pytest.mark.asyncio
    async def test_insufficient_responses_keep_item_on_probation(self, mock_db, stored_item):
        question, _ = stored_item
        mock_db.count_documents.return_value = 3
        service = PsychometricAnalysisService(db=mock_db, min_responses=50)

        stats = await service.calculate_item_statistics(question.id_str)

        assert stats.validity_status == ItemValidityStatus.PROBATION
        assert stats.flags == ["INSUFFICIENT_DATA"]
        assert stats.response_count == 3
        mock_db.aggregate.assert_not_awaited()
        assert mock_db.update_one.call_args.kwargs["upsert"] is True

    @pytest.mark.asyncio
    async def test_item_statistics_promote_good_item(self, mock_db, stored_item):
        question, _ = stored_item
        sessions = ["s1", "s2", "s3", "s4"]
        item_scores = [1.0, 1.0, 0.0, 1.0]
        mock_db.count_documents.return_value = 4
        mock_db.find_many.side_effect = [
            [{"score": s, "max_score": 1.0} for s in item_scores],
            [{"session_id": sid, "score": s} for sid, s in zip(sessions, item_scores)],
        ]
        mock_db.aggregate.side_effect = [
            [{"_id": sid, "total": total} for sid, total in zip(sessions, [5, 4, 1, 3])],
            [{"_id": "a", "count": 3}, {"_id": "b", "count": 1}],
        ]
        service = PsychometricAnalysisService(db=mock_db, min_responses=3)

        stats = await service.calculate_item_statistics(question.id_str)

        assert stats.difficulty_index == 0.75
        assert stats.discrimination_index == pytest.approx(0.8783, abs=1e-4)
        assert stats.distractor_efficiency == {"a": 0.75, "b": 0.25}
        assert stats.flags == []
        assert stats.validity_status == ItemValidityStatus.ACTIVE
        assert stats.status_history[-1].from_status == "PROBATION"

    @pytest.mark.asyncio
    async def test_unknown_question(self, mock_db):
        service = PsychometricAnalysisService(db=mock_db, min_responses=3)

        with pytest.raises(ResourceNotFoundError):
            await service.calculate_item_statistics("not-an-id")

    @pytest.mark.asyncio
    async def test_activation_requires_statistics(self, mock_db, stored_item):
        question, _ = stored_item

        with pytest.raises(ResourceNotFoundError):
            await PsychometricAnalysisService(db=mock_db, min_responses=50).activate_item(question.id_str)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("responses,rpb,message", [
        (10, 0.5, "insufficient responses"),
        (60, -0.1, "negative discrimination"),
        (60, 0.2, "below 0.3"),
    ])
    async def test_activation_rejected(self, mock_db, stored_item, responses, rpb, message):
        question, with_stats = stored_item
        with_stats(response_count=responses, discrimination_index=rpb)

        with pytest.raises(BusinessLogicError, match=message):
            await PsychometricAnalysisService(db=mock_db, min_responses=50).activate_item(question.id_str)

        mock_db.update_one.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_activation_reactivates_question(self, mock_db, stored_item):
        question, with_stats = stored_item
        with_stats(response_count=60, discrimination_index=0.35, validity_status="FLAGGED_FOR_REVIEW")

        stats = await PsychometricAnalysisService(db=mock_db, min_responses=50).activate_item(question.id_str)

        assert stats.validity_status == ItemValidityStatus.ACTIVE
        question_update = mock_db.update_one.call_args_list[0].args
        assert question_update[0] == Collections.ASSESSMENT_QUESTIONS
        assert question_update[2]["$set"]["is_active"] is True

    @pytest.mark.asyncio
    async def test_retire_deactivates_question(self, mock_db, stored_item):
        question, _ = stored_item

        stats = await PsychometricAnalysisService(db=mock_db, min_responses=50).retire_item(question.id_str, "biased wording")

        assert stats.validity_status == ItemValidityStatus.RETIRED
        assert stats.status_history[-1].reason == "Manual retirement: biased wording"
        assert mock_db.update_one.call_args_list[0].args[2]["$set"]["is_active"] is False

    @pytest.mark.asyncio
    async def test_status_update_respects_response_minimum(self, mock_db, stored_item):
        question, with_stats = stored_item
        with_stats(response_count=10, difficulty_index=0.5, discrimination_index=0.4, validity_status="ACTIVE")

        stats = await PsychometricAnalysisService(db=mock_db, min_responses=50).update_item_validity_status(
            question.id_str
        )

        assert stats.validity_status == ItemValidityStatus.PROBATION

    @pytest.mark.asyncio
    async def test_big_five_without_competencies(self, mock_db):
        reliability = await PsychometricAnalysisService(db=mock_db, min_responses=50).calculate_big_five_reliability(
            "OPENNESS"
        )

        assert reliability.contributing_competencies == 0
        assert reliability.cronbach_alpha is None
        assert reliability.reliability_status == ReliabilityStatus.INSUFFICIENT_DATA


class TestHealthReport:

    def report(self, **counts):
        return PsychometricHealthReport(generated_at=utc_now(), **counts)

    def test_overall_status(self):
        assert self.report(total_items=10).overall_status == PsychometricHealth.HEALTHY
        assert self.report(total_items=10, flagged_items=3).overall_status == PsychometricHealth.CRITICAL
        assert self.report(total_items=10, probation_items=6).overall_status == PsychometricHealth.WARNING
        assert self.report(total_items=10, average_alpha=0.65).overall_status == PsychometricHealth.WARNING

    def test_items_needing_attention(self):
        assert self.report(total_items=10, flagged_items=1, probation_items=2).items_needing_attention == 3


@pytest.fixture
def analysis():
    service = Mock()
    service.min_responses = 50
    service.count_responses = AsyncMock(return_value=100)
    service.calculate_item_statistics = AsyncMock()
    service.update_item_validity_status = AsyncMock()
    service.calculate_competency_reliability = AsyncMock()
    service.calculate_big_five_reliability = AsyncMock()
    service.save_item_statistics = AsyncMock()
    return service


class TestPsychometricAuditJob:

    @pytest.mark.asyncio
    async def test_step_failures_are_isolated(self):
        async def action(key):
            if key == "bad":
                raise RuntimeError("boom")

        result = await PsychometricAuditJob.run_step("item", ["a", "bad", "c"], action)

        assert result == AuditStepResult(processed=3, succeeded=2, failed=1)

    @pytest.mark.asyncio
    async def test_audit_runs_every_step(self, mock_db, mock_cache, analysis):
        mock_db.find_many.side_effect = [
            [{"_id": "c1"}, {"_id": "c2"}],
            [{"question_id": "q1"}],
        ]
        analysis.calculate_competency_reliability.side_effect = [None, RuntimeError("no data")]
        job = PsychometricAuditJob(db=mock_db, cache=mock_cache, analysis_service=analysis)

        result = await job.run_audit()

        assert result.items_recalculated == 0
        assert result.competencies_recalculated == 1
        assert result.traits_recalculated == 5
        assert result.statuses_updated == 1
        assert result.failed == 1

    @pytest.mark.asyncio
    async def test_nightly_audit_skipped_when_lock_is_held(self, mock_db, mock_cache, analysis):
        mock_cache.set.return_value = False
        job = PsychometricAuditJob(db=mock_db, cache=mock_cache, analysis_service=analysis)
        job.run_audit = AsyncMock()

        result = await job.run_nightly_audit()

        assert result.message == "Audit already in progress"
        job.run_audit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_nightly_audit_releases_lock(self, mock_db, mock_cache, analysis):
        job = PsychometricAuditJob(db=mock_db, cache=mock_cache, analysis_service=analysis)
        job.run_audit = AsyncMock(side_effect=RuntimeError("crash"))

        with pytest.raises(RuntimeError):
            await job.run_nightly_audit()

        mock_cache.delete.assert_awaited()

    @pytest.mark.asyncio
    async def test_disabled_audit(self, mock_db, mock_cache, analysis):
        job = PsychometricAuditJob(db=mock_db, cache=mock_cache, analysis_service=analysis)

        with patch.object(PsychometricAuditJob, "enabled", new_callable=PropertyMock, return_value=False):
            result = await job.run_nightly_audit()
            triggered = await job.on_answer_submitted("q1")

        assert result.message == "Psychometric audit is disabled"
        assert triggered is False
        mock_cache.set.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count,expected", [(100, True), (75, False), (20, False)])
    async def test_answer_submission_recalculates_at_multiples(self, mock_db, mock_cache, analysis, count, expected):
        analysis.count_responses.return_value = count
        job = PsychometricAuditJob(db=mock_db, cache=mock_cache, analysis_service=analysis)

        assert await job.on_answer_submitted("q1") is expected
        assert analysis.calculate_item_statistics.await_count == int(expected)

    @pytest.mark.asyncio
    async def test_answer_submission_never_raises(self, mock_db, mock_cache, analysis):
        analysis.count_responses.side_effect = RuntimeError("mongo down")
        job = PsychometricAuditJob(db=mock_db, cache=mock_cache, analysis_service=analysis)

        assert await job.on_answer_submitted("q1") is False

    @pytest.mark.asyncio
    async def test_new_questions_start_on_probation(self, mock_db, mock_cache, analysis):
        mock_db.find_many.side_effect = [
            [{"_id": "q1"}, {"_id": "q2"}],
            [{"question_id": "q1"}],
        ]
        job = PsychometricAuditJob(db=mock_db, cache=mock_cache, analysis_service=analysis)

        assert await job.initialize_new_questions() == 1
        saved = analysis.save_item_statistics.call_args.args[0]
        assert saved.question_id == "q2"
        assert saved.validity_status == ItemValidityStatus.PROBATION
