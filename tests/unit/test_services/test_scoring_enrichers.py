"""Unit tests for percentile, consistency and confidence interval enrichers."""

import math

import pytest

from src.models.result import CompetencyScore
from src.services.scoring.enrichers.confidence_interval import ConfidenceIntervalCalculator
from src.services.scoring.enrichers.consistency import ResponseConsistencyAnalyzer
from src.services.scoring.enrichers.percentile import SubscalePercentileCalculator, percentile_rank
from src.utils.exceptions import DatabaseError


class TestPercentileRank:

    @pytest.mark.parametrize("below,total,expected", [
        (0, 0, 50),
        (0, 1, 50),
        (0, 5, 0),
        (3, 5, 75),
        (4, 5, 100),
    ])
    def test_rank(self, below, total, expected):
        assert percentile_rank(below, total) == expected


class TestSubscalePercentileCalculator:

    @pytest.mark.asyncio
    async def test_competency_percentile_counts_lower_results(self, mock_db):
        mock_db.count_documents.side_effect = [10, 4]
        calculator = SubscalePercentileCalculator(db=mock_db)

        percentile = await calculator.competency_percentile("tpl", "comp", 62.0)

        assert percentile == 44
        below_filter = mock_db.count_documents.call_args_list[1].args[1]
        assert below_filter["status"] == "COMPLETED"
        assert below_filter["competency_scores"]["$elemMatch"]["percentage"] == {"$lt": 62.0}

    @pytest.mark.asyncio
    async def test_single_historical_result_is_neutral(self, mock_db):
        mock_db.count_documents.return_value = 1
        calculator = SubscalePercentileCalculator(db=mock_db)

        assert await calculator.competency_percentile("tpl", "comp", 90.0) == 50
        assert mock_db.count_documents.await_count == 1

    @pytest.mark.asyncio
    async def test_failed_lookup_skips_only_that_competency(self, mock_db):
        mock_db.count_documents.side_effect = [DatabaseError("timeout"), 3, 2]
        scores = [
            CompetencyScore(competency_id="a", percentage=40.0),
            CompetencyScore(competency_id="b", percentage=70.0),
        ]

        await SubscalePercentileCalculator(db=mock_db).enrich(scores, "tpl")

        assert scores[0].percentile is None
        assert scores[1].percentile == 100

    @pytest.mark.asyncio
    async def test_overall_percentile(self, mock_db):
        calculator = SubscalePercentileCalculator(db=mock_db)

        assert await calculator.overall_percentile("tpl", None) is None

        mock_db.count_documents.side_effect = [5, 2]
        assert await calculator.overall_percentile("tpl", 55.0) == 50

        mock_db.count_documents.side_effect = DatabaseError("down")
        assert await calculator.overall_percentile("tpl", 55.0) is None


class TestResponseConsistencyAnalyzer:

    @pytest.fixture
    def analyzer(self):
        return ResponseConsistencyAnalyzer()

    def test_no_answers_is_fully_consistent(self, analyzer):
        metrics = analyzer.analyze([])

        assert metrics.consistency_score == 1.0
        assert metrics.consistency_flags == []

    def test_straight_lining_is_flagged(self, analyzer, make_question, make_answer):
        questions = {q.id_str: q for q in (make_question("ind") for _ in range(10))}
        answers = [make_answer(qid, likert_value=3) for qid in questions]
        competency_by_question = {qid: "comp" for qid in questions}

        metrics = analyzer.analyze(answers, competency_by_question, questions)

        assert metrics.straight_lining_rate == 1.0
        assert metrics.speed_anomaly_rate == 0.0
        assert metrics.intra_competency_variance == 0.0
        # 0.3 * 1 + 0.3 * 0 + 0.4 * 0.7
        assert metrics.consistency_score == pytest.approx(0.58)
        assert any(flag.startswith("Straight-lining detected: 100%") for flag in metrics.consistency_flags)

    def test_speed_anomaly_is_flagged(self, analyzer, make_answer):
        answers = [
            make_answer("q1", likert_value=1, time_spent_seconds=1),
            make_answer("q2", likert_value=2, time_spent_seconds=2),
            make_answer("q3", likert_value=3, time_spent_seconds=20),
            make_answer("q4", likert_value=4, time_spent_seconds=20),
            make_answer("q5", likert_value=5, time_spent_seconds=None),
        ]

        metrics = analyzer.analyze(answers)

        assert metrics.speed_anomaly_rate == pytest.approx(0.4)
        assert metrics.straight_lining_rate == pytest.approx(0.2)
        assert metrics.consistency_flags[0].startswith("Speed anomaly: 2 of 5 answers")

    def test_skipped_answers_do_not_count_towards_speed(self, analyzer, make_answer):
        answers = [
            make_answer("q1", time_spent_seconds=1, is_skipped=True),
            make_answer("q2", likert_value=4, time_spent_seconds=30),
        ]

        assert analyzer.analyze(answers).speed_anomaly_rate == 0.0

    @pytest.mark.parametrize("variance,expected", [
        (0.0, 0.7),
        (0.025, 0.5),
        (0.1, 1.0),
        (0.4, 1.0),
        (0.7, 0.5),
        (1.0, 0.0),
    ])
    def test_variance_factor(self, variance, expected):
        assert ResponseConsistencyAnalyzer.variance_factor(variance) == pytest.approx(expected)

    def test_variance_flags(self):
        low = ResponseConsistencyAnalyzer.build_flags(10, 0.0, 0.0, 0.01)
        high = ResponseConsistencyAnalyzer.build_flags(10, 0.0, 0.0, 0.65)

        assert low == ["Low response variance suggests possible disengagement"]
        assert high == ["High response variance suggests inconsistent engagement"]


class TestConfidenceIntervalCalculator:

    def test_apply_interval(self):
        score = CompetencyScore(competency_id="a", percentage=80.0)

        ConfidenceIntervalCalculator.apply_interval(score, alpha=0.84, sd=15.0)

        assert score.standard_error == 6.0
        assert score.confidence_interval_lower == pytest.approx(68.24)
        assert score.confidence_interval_upper == pytest.approx(91.76)
        assert score.reliability == 0.84

    def test_interval_is_clamped(self):
        score = CompetencyScore(competency_id="a", percentage=97.0)

        ConfidenceIntervalCalculator.apply_interval(score, alpha=0.5, sd=15.0)

        assert score.confidence_interval_upper == 100.0

    @pytest.mark.parametrize("count,actual,expected", [
        (50, 12.0, 12.0),
        (50, None, 15.0),
        (10, None, 15.0 * math.sqrt(3)),
        (3, 9.0, 15.0),
        (0, None, 15.0),
    ])
    def test_standard_deviation_selection(self, count, actual, expected):
        assert ConfidenceIntervalCalculator.estimate_standard_deviation(count, actual) == pytest.approx(expected)

    @pytest.mark.asyncio
    async def test_enrich_skips_competencies_without_alpha(self, mock_db):
        mock_db.find_many.return_value = [
            {"competency_id": "a", "cronbach_alpha": 0.84},
            {"competency_id": "c", "cronbach_alpha": 1.4},
        ]
        scores = [
            CompetencyScore(competency_id="a", percentage=50.0),
            CompetencyScore(competency_id="b", percentage=50.0),
            CompetencyScore(competency_id="c", percentage=50.0),
        ]

        await ConfidenceIntervalCalculator(db=mock_db).enrich(scores)

        assert scores[0].standard_error == 6.0
        assert scores[1].standard_error is None
        assert scores[2].standard_error is None

    @pytest.mark.asyncio
    async def test_failed_reliability_lookup_leaves_intervals_unset(self, mock_db):
        mock_db.find_many.side_effect = DatabaseError("find failed", operation="find")
        scores = [CompetencyScore(competency_id="a", percentage=50.0)]

        await ConfidenceIntervalCalculator(db=mock_db).enrich(scores)

        assert scores[0].standard_error is None
        assert scores[0].confidence_interval_lower is None
        mock_db.aggregate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_distribution_lookup_uses_default_sd(self, mock_db):
        mock_db.find_many.return_value = [{"competency_id": "a", "cronbach_alpha": 0.84}]
        mock_db.aggregate.side_effect = DatabaseError("aggregate failed", operation="aggregate")
        scores = [CompetencyScore(competency_id="a", percentage=50.0)]

        await ConfidenceIntervalCalculator(db=mock_db).enrich(scores)

        assert scores[0].standard_error == 6.0
