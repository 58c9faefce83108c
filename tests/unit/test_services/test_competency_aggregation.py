"""Unit tests for answer normalization, competency aggregation and interpretation."""

import pytest

from src.models.result import CompetencyScore
from src.services.scoring.aggregation import (
    UNKNOWN_COMPETENCY,
    CompetencyAggregationService,
    IndicatorAggregation,
)
from src.services.scoring.interpreter import ScoreInterpreter
from src.services.scoring.normalizer import ScoreNormalizer
from src.utils.constants import Collections, ProficiencyLevel


class TestScoreNormalizer:
    """Each question type is reduced to [0, 1]."""

    @pytest.fixture
    def normalizer(self):
        return ScoreNormalizer()

    @pytest.mark.parametrize("value,expected", [(1, 0.0), (2, 0.25), (3, 0.5), (5, 1.0), (9, 1.0), (0, 0.0)])
    def test_likert_maps_onto_unit_interval(self, normalizer, make_question, make_answer, value, expected):
        question = make_question("ind", question_type="LIKERT")
        answer = make_answer(question.id_str, likert_value=value)

        assert normalizer.normalize(answer, question) == pytest.approx(expected)

    def test_likert_without_value_is_zero(self, normalizer, make_question, make_answer):
        question = make_question("ind", question_type="FREQUENCY_SCALE")
        assert normalizer.normalize(make_answer(question.id_str), question) == 0.0

    def test_skipped_answer_is_zero(self, normalizer, make_question, make_answer):
        question = make_question("ind", question_type="LIKERT")
        answer = make_answer(question.id_str, likert_value=5, is_skipped=True)

        assert normalizer.normalize(answer, question) == 0.0

    @pytest.mark.parametrize("raw,expected", [(0.7, 0.7), (1.4, 1.0), (-0.2, 0.0)])
    def test_sjt_score_is_clamped(self, normalizer, make_question, make_answer, raw, expected):
        question = make_question("ind", question_type="SJT")
        assert normalizer.normalize(make_answer(question.id_str, score=raw), question) == pytest.approx(expected)

    def test_choice_uses_recorded_score(self, normalizer, make_question, make_answer):
        question = make_question("ind", question_type="MCQ")

        assert normalizer.normalize(make_answer(question.id_str, score=1.0), question) == 1.0
        assert normalizer.normalize(make_answer(question.id_str), question) == 0.0

    def test_hybrid_prefers_likert_then_score(self, normalizer, make_question, make_answer):
        question = make_question("ind", question_type="CAPABILITY_ASSESSMENT")

        assert normalizer.normalize(make_answer(question.id_str, likert_value=4, score=0.1), question) == 0.75
        assert normalizer.normalize(make_answer(question.id_str, score=0.6), question) == pytest.approx(0.6)

    def test_missing_question_falls_back_to_clamped_score(self, normalizer, make_answer):
        assert normalizer.normalize(make_answer("q", score=3.0), None) == 1.0


class TestIndicatorAggregation:

    def test_each_answer_adds_one_to_max_score(self):
        aggregation = IndicatorAggregation("ind")
        aggregation.add_answer(1.0)
        aggregation.add_answer(0.5)

        assert aggregation.max_score == 2.0
        assert aggregation.question_count == 2
        assert aggregation.percentage == pytest.approx(75.0)

    def test_empty_aggregation_has_zero_percentage(self):
        assert IndicatorAggregation("ind").percentage == 0.0


class TestCompetencyAggregationService:
    """Four-stage aggregation against a mocked database."""

    @pytest.fixture
    def taxonomy(self, make_competency, make_indicator, make_question):
        competency = make_competency("Teamwork", onet_code="2.B.1.a")
        heavy = make_indicator(competency.id_str, title="Shares credit", weight=2.0)
        light = make_indicator(competency.id_str, title="Asks for help", weight=1.0)
        heavy_questions = [make_question(heavy.id_str) for _ in range(2)]
        light_questions = [make_question(light.id_str) for _ in range(2)]
        return competency, heavy, light, heavy_questions, light_questions

    @pytest.fixture
    def service(self, mock_db, taxonomy):
        competency, heavy, light, heavy_questions, light_questions = taxonomy
        docs = {
            Collections.ASSESSMENT_QUESTIONS: [q.to_mongo() for q in heavy_questions + light_questions],
            Collections.BEHAVIORAL_INDICATORS: [heavy.to_mongo(), light.to_mongo()],
            Collections.COMPETENCIES: [competency.to_mongo()],
        }

        async def find_many(collection, *args, **kwargs):
            return docs.get(collection, [])

        mock_db.find_many.side_effect = find_many
        return CompetencyAggregationService(db=mock_db)

    @pytest.mark.asyncio
    async def test_weighted_roll_up(self, service, taxonomy, make_answer):
        competency, heavy, light, heavy_questions, light_questions = taxonomy
        answers = [make_answer(q.id_str, likert_value=5) for q in heavy_questions]
        answers += [make_answer(light_questions[0].id_str, likert_value=5),
                    make_answer(light_questions[1].id_str, likert_value=1)]

        result = await service.aggregate(answers)

        assert len(result.competency_scores) == 1
        score = result.competency_scores[0]
        assert score.competency_id == competency.id_str
        assert score.competency_name == "Teamwork"
        assert score.onet_code == "2.B.1.a"
        # (2 * 100 + 1 * 50) / 3
        assert score.percentage == pytest.approx(83.333, rel=1e-3)
        assert score.questions_answered == 4
        assert {i.indicator_title for i in score.indicator_scores} == {"Shares credit", "Asks for help"}
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_skipped_and_unanswered_answers_are_excluded(self, service, taxonomy, make_answer):
        _, _, _, heavy_questions, light_questions = taxonomy
        answers = [
            make_answer(heavy_questions[0].id_str, likert_value=5),
            make_answer(heavy_questions[1].id_str, likert_value=1, is_skipped=True),
            make_answer(light_questions[0].id_str, likert_value=1, answered=False),
        ]

        result = await service.aggregate(answers)

        assert result.competency_scores[0].questions_answered == 1
        assert result.competency_scores[0].percentage == pytest.approx(100.0)

    @pytest.mark.asyncio
    async def test_unresolved_question_is_skipped_with_warning(self, service, taxonomy, make_answer):
        _, _, _, heavy_questions, _ = taxonomy
        answers = [
            make_answer(heavy_questions[0].id_str, likert_value=3),
            make_answer("507f1f77bcf86cd799439011", likert_value=5),
        ]

        result = await service.aggregate(answers)

        assert result.competency_scores[0].questions_answered == 1
        assert len(result.warnings) == 1
        assert "507f1f77bcf86cd799439011" in result.warnings[0]

    def test_indicator_without_competency_is_skipped(self, make_indicator):
        service = CompetencyAggregationService(db=object())
        indicator = make_indicator("507f1f77bcf86cd799439011")
        aggregation = IndicatorAggregation(indicator.id_str)
        aggregation.add_answer(1.0)
        warnings = []

        rolled = service.roll_up_indicators_to_competencies(
            {indicator.id_str: aggregation}, {indicator.id_str: indicator}, {}, warnings
        )

        assert rolled == {}
        assert len(warnings) == 1

    def test_percentages_stay_within_bounds(self, make_indicator):
        service = CompetencyAggregationService(db=object())
        indicator = make_indicator("comp", weight=0.0)
        aggregation = IndicatorAggregation(indicator.id_str)
        aggregation.add_answer(1.0)

        rolled = service.roll_up_indicators_to_competencies(
            {indicator.id_str: aggregation}, {indicator.id_str: indicator}, {"comp": None}, []
        )
        scores = service.build_competency_scores(rolled, {})

        assert 0.0 <= scores[0].percentage <= 100.0
        assert scores[0].competency_name == UNKNOWN_COMPETENCY


class TestEvidenceSufficiency:

    def test_flags_thin_evidence_without_changing_score(self):
        thin = CompetencyScore(competency_id="a", percentage=90.0, questions_answered=2)
        solid = CompetencyScore(competency_id="b", percentage=40.0, questions_answered=3)

        CompetencyAggregationService.apply_evidence_sufficiency([thin, solid], min_questions=3)

        assert thin.insufficient_evidence is True
        assert thin.percentage == 90.0
        assert "2 question(s)" in thin.evidence_note
        assert solid.insufficient_evidence is False
        assert solid.evidence_note is None


class TestScoreInterpreter:

    @pytest.mark.parametrize("percentage,label,level", [
        (85.0, "Expert", ProficiencyLevel.EXPERT),
        (84.99, "Advanced", ProficiencyLevel.ADVANCED),
        (50.0, "Proficient", ProficiencyLevel.PROFICIENT),
        (30.0, "Developing", ProficiencyLevel.DEVELOPING),
        (29.9, "Beginning", ProficiencyLevel.BEGINNING),
        (None, "Beginning", ProficiencyLevel.BEGINNING),
    ])
    def test_bands(self, percentage, label, level):
        assert ScoreInterpreter.interpret(percentage) == (label, level)
