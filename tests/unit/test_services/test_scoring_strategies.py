"""Unit tests for the goal-specific scoring strategies and their registry."""

from unittest.mock import AsyncMock, Mock

import pytest

from src.models.result import CompetencyScore
from src.models.team import OnetProfile, Team
from src.models.template import JobFitBlueprint, OverviewBlueprint, TeamFitBlueprint
from src.services.scoring.aggregation import AggregationResult, CompetencyAggregationService
from src.services.scoring.strategies.base import (
    ScoringContext,
    ScoringStrategyRegistry,
    build_big_five_profile,
    weighted_average,
)
from src.services.scoring.strategies.job_fit import JobFitScoringStrategy
from src.services.scoring.strategies.overview import OverviewScoringStrategy
from src.services.scoring.strategies.team_fit import TeamFitScoringStrategy
from src.utils.constants import AssessmentGoal
from src.utils.exceptions import ConfigurationError


def aggregation_returning(scores, competencies=None):
    """Real aggregation service whose aggregate() returns fixed scores."""
    service = CompetencyAggregationService(db=Mock())
    service.aggregate = AsyncMock(return_value=AggregationResult(
        competency_scores=scores,
        competencies=competencies or {},
    ))
    return service


@pytest.fixture
def context_for(make_template, make_session):
    def _context(goal, blueprint=None):
        template = make_template(goal=goal, blueprint=blueprint)
        session = make_session(template.id_str)
        return ScoringContext(session=session, template=template, answers=[])

    return _context


class TestRegistry:

    def test_lookup_by_goal(self):
        overview = OverviewScoringStrategy(aggregation_returning([]), min_questions=3)
        registry = ScoringStrategyRegistry([overview])

        assert registry.get("OVERVIEW") is overview
        assert registry.get(AssessmentGoal.OVERVIEW) is overview
        assert registry.get("JOB_FIT") is None
        assert registry.get("NOT_A_GOAL") is None

    def test_duplicate_goal_is_rejected(self):
        aggregation = aggregation_returning([])
        registry = ScoringStrategyRegistry([OverviewScoringStrategy(aggregation, min_questions=3)])

        with pytest.raises(ConfigurationError):
            registry.register(OverviewScoringStrategy(aggregation, min_questions=3))

    def test_weighted_average_with_zero_weights(self):
        assert weighted_average([80.0, 20.0], [0.0, 0.0]) == 0.0
        assert weighted_average([80.0, 20.0], [3.0, 1.0]) == 65.0


class TestOverviewScoringStrategy:

    @pytest.mark.asyncio
    async def test_evidence_weighted_overall(self, context_for):
        scores = [
            CompetencyScore(competency_id="a", competency_name="Teamwork", percentage=90.0, questions_answered=4),
            CompetencyScore(competency_id="b", competency_name="Planning", percentage=40.0, questions_answered=2),
        ]
        strategy = OverviewScoringStrategy(aggregation_returning(scores), min_questions=3)

        result = await strategy.calculate(context_for("OVERVIEW", OverviewBlueprint()))

        # (90 * 4 + 40 * 2 * 0.5) / 5
        assert result.overall_percentage == pytest.approx(80.0)
        assert result.passed is None
        assert scores[1].insufficient_evidence is True
        assert scores[0].proficiency_label == "Expert"
        assert result.profile_pattern == {"SIGNATURE_STRENGTH": ["Teamwork"], "DEVELOPING": ["Planning"]}
        assert result.big_five_profile is None

    @pytest.mark.asyncio
    async def test_big_five_profile_when_requested(self, context_for, make_competency):
        competency = make_competency("Reliability", big_five_category="CONSCIENTIOUSNESS")
        plain = make_competency("Negotiation")
        scores = [
            CompetencyScore(competency_id=competency.id_str, percentage=70.0, questions_answered=3),
            CompetencyScore(competency_id=plain.id_str, percentage=10.0, questions_answered=3),
        ]
        competencies = {competency.id_str: competency, plain.id_str: plain}
        strategy = OverviewScoringStrategy(aggregation_returning(scores, competencies), min_questions=3)

        result = await strategy.calculate(context_for("OVERVIEW", OverviewBlueprint(include_big_five=True)))

        assert result.big_five_profile == {"CONSCIENTIOUSNESS": 70.0}

    def test_big_five_profile_without_mapped_traits(self):
        assert build_big_five_profile([CompetencyScore(competency_id="x", percentage=50.0)], {}) is None

    @pytest.mark.parametrize("percentage,overall,category", [
        (90.0, 70.0, "SIGNATURE_STRENGTH"),
        (78.0, 72.0, "STRENGTH"),
        (25.0, 50.0, "CRITICAL_GAP"),
        (45.0, 50.0, "DEVELOPING"),
        (35.0, 50.0, "AVERAGE"),
    ])
    def test_profile_pattern_classification(self, percentage, overall, category):
        assert OverviewScoringStrategy.classify(percentage, overall) == category


class TestJobFitScoringStrategy:

    @pytest.mark.parametrize("strictness,threshold", [(0, 0.5), (50, 0.65), (100, 0.8)])
    def test_pass_threshold(self, strictness, threshold):
        assert JobFitScoringStrategy.pass_threshold(strictness) == pytest.approx(threshold)

    @pytest.mark.asyncio
    async def test_scores_against_benchmarks(self, context_for):
        scores = [
            CompetencyScore(
                competency_id="a", competency_name="Teamwork ", percentage=80.0,
                max_score=4.0, questions_answered=4, onet_code="2.B.1.a",
            ),
            CompetencyScore(competency_id="b", competency_name="Planning", percentage=50.0,
                            max_score=2.0, questions_answered=2),
        ]
        onet = Mock()
        onet.get_profile = AsyncMock(return_value=OnetProfile(
            soc_code="15-1252.00", benchmarks={"Teamwork": 4.0, "Critical Thinking": 3.0},
        ))
        strategy = JobFitScoringStrategy(aggregation_returning(scores), onet_service=onet)
        blueprint = JobFitBlueprint(onet_soc_code="15-1252.00", strictness_level=50)

        result = await strategy.calculate(context_for("JOB_FIT", blueprint))

        assert scores[0].benchmark_score == 80.0
        assert scores[0].questions_correct == 3
        assert scores[0].insufficient_evidence is False
        assert scores[1].insufficient_evidence is True
        assert scores[1].evidence_note == "Score based on 2 question(s); minimum 3 required"
        # (80 * 1.2 + 50) / 2.2
        assert result.overall_percentage == pytest.approx(66.3636, rel=1e-4)
        assert result.passed is True
        assert result.decision_confidence is not None

    @pytest.mark.asyncio
    async def test_missing_profile_scores_without_benchmarks(self, context_for):
        onet = Mock()
        onet.get_profile = AsyncMock(return_value=None)
        scores = [CompetencyScore(competency_id="a", competency_name="Teamwork", percentage=40.0, questions_answered=3)]
        strategy = JobFitScoringStrategy(aggregation_returning(scores), onet_service=onet)

        result = await strategy.calculate(context_for("JOB_FIT", JobFitBlueprint(onet_soc_code="00-0000.00")))

        assert scores[0].benchmark_score is None
        assert result.passed is False

    def test_high_confidence_far_above_threshold(self):
        scores = [CompetencyScore(competency_id="a", competency_name="Teamwork", questions_answered=5)]

        confidence = JobFitScoringStrategy.calculate_decision_confidence(90.0, 0.65, scores, {})

        assert confidence.decision_confidence == 1.0
        assert confidence.confidence_level == "HIGH"
        assert "above" in confidence.confidence_message

    def test_low_confidence_near_threshold_with_thin_evidence(self):
        scores = [CompetencyScore(competency_id="a", competency_name="Teamwork", insufficient_evidence=True)]

        confidence = JobFitScoringStrategy.calculate_decision_confidence(66.0, 0.65, scores, {"teamwork": 4.0})

        # 0.5 * 0.04 + 0.3 * 0 + 0.2 * 1
        assert confidence.decision_confidence == 0.22
        assert confidence.confidence_level == "LOW"


class TestTeamFitScoringStrategy:

    @pytest.mark.parametrize("diversity,saturation,multiplier", [
        (0.5, 0.2, 1.1),
        (0.1, 0.9, 0.9),
        (0.3, 0.3, 1.0),
        (0.5, 0.7, 1.0),
    ])
    def test_multiplier(self, diversity, saturation, multiplier):
        assert TeamFitScoringStrategy.team_fit_multiplier(diversity, saturation) == multiplier

    @pytest.mark.parametrize("fraction,category", [(0.8, "saturation"), (0.6, "diversity"), (0.2, "gap")])
    def test_classify(self, fraction, category):
        assert TeamFitScoringStrategy.classify(fraction, 0.75) == category

    def test_saturation_threshold_falls_back_when_out_of_range(self):
        assert TeamFitScoringStrategy.resolve_saturation_threshold(None) == 0.75
        assert TeamFitScoringStrategy.resolve_saturation_threshold(TeamFitBlueprint(saturation_threshold=1.5)) == 0.75
        assert TeamFitScoringStrategy.resolve_saturation_threshold(TeamFitBlueprint(saturation_threshold=0.6)) == 0.6

    def test_personality_compatibility(self):
        team = Team(name="Core", personality_profile={"OPENNESS": 60.0, "EXTRAVERSION": 50.0})

        assert TeamFitScoringStrategy.personality_compatibility({"OPENNESS": 80.0}, team) == 80.0
        assert TeamFitScoringStrategy.personality_compatibility({"AGREEABLENESS": 80.0}, team) is None
        assert TeamFitScoringStrategy.personality_compatibility(None, team) is None

    @pytest.mark.asyncio
    async def test_reports_unadjusted_percentage_with_multiplier(self, context_for):
        scores = [
            CompetencyScore(competency_id="a", percentage=60.0),
            CompetencyScore(competency_id="b", percentage=55.0),
            CompetencyScore(competency_id="c", percentage=20.0),
        ]
        teams = Mock()
        teams.get_team_profile = AsyncMock(return_value=Team(
            name="Core", member_count=4, competency_saturation={"a": 0.2, "c": 0.9},
        ))
        strategy = TeamFitScoringStrategy(aggregation_returning(scores), team_service=teams)

        result = await strategy.calculate(context_for("TEAM_FIT", TeamFitBlueprint(team_id="507f1f77bcf86cd799439011")))

        metrics = result.team_fit_metrics
        assert result.overall_percentage == pytest.approx(45.0)
        assert metrics.team_fit_multiplier == 1.1
        assert metrics.diversity_count == 2
        assert metrics.gap_count == 1
        assert metrics.team_size == 4
        assert metrics.competency_saturation == {"a": 0.2, "c": 0.9}
        # 45 * 1.1 is below the pass mark
        assert result.passed is False
