"""Unit tests for blueprint driven test assembly."""

from unittest.mock import AsyncMock, Mock

import pytest
from bson import ObjectId

from src.models.team import OnetProfile, Team
from src.models.template import JobFitBlueprint, OverviewBlueprint, TeamFitBlueprint
from src.services.assembly.factory import TestAssemblerFactory
from src.services.assembly.job_fit import JobFitAssembler
from src.services.assembly.overview import OverviewAssembler
from src.services.assembly.selection import QuestionSelectionService, waterfall
from src.services.assembly.team_fit import TeamFitAssembler, split_evenly
from src.services.psychometrics.validator import PsychometricValidator
from src.utils.constants import Collections, ContextScope, DifficultyLevel
from src.utils.exceptions import ConfigurationError


def selection_with_pools(mock_db, indicators, pools):
    """Selection service whose indicator and question lookups are served from memory."""
    by_id = {q.id_str: q for questions in pools.values() for q in questions}

    async def eligible(indicator_id):
        return list(pools.get(indicator_id, []))

    selection = QuestionSelectionService(db=mock_db, validator=Mock())
    selection.load_active_indicators = AsyncMock(return_value=indicators)
    selection.load_eligible_questions = AsyncMock(side_effect=eligible)
    selection.by_id = by_id
    return selection


class TestSelectionHelpers:

    def test_waterfall_interleaves_and_skips_duplicates(self):
        pools = {"a": ["q1", "q2"], "b": ["q1", "q3"]}

        assert waterfall(["a", "b"], pools, 2) == ["q1", "q3", "q2"]

    def test_waterfall_stops_when_pools_run_dry(self):
        assert waterfall(["a"], {"a": ["q1"]}, 5) == ["q1"]
        assert waterfall(["a"], {}, 3) == []

    def test_difficulty_preference_is_stable(self, make_question):
        advanced = make_question("ind", difficulty="ADVANCED")
        foundational = make_question("ind", difficulty="FOUNDATIONAL")
        intermediate = make_question("ind", difficulty="INTERMEDIATE")

        ordered = QuestionSelectionService.apply_difficulty_preference(
            [advanced, foundational, intermediate], DifficultyLevel.INTERMEDIATE
        )

        assert ordered == [intermediate, advanced, foundational]

    @pytest.mark.parametrize("total,parts,shares", [(6, 2, [3, 3]), (5, 2, [3, 2]), (2, 3, [1, 1, 0]), (4, 0, [])])
    def test_split_evenly(self, total, parts, shares):
        assert split_evenly(total, parts) == shares


class TestQuestionSelectionService:

    @pytest.mark.asyncio
    async def test_exhausted_indicator_borrows_from_siblings(self, mock_db, make_indicator, make_question):
        indicator = make_indicator("comp")
        sibling = make_indicator("comp")
        own = [make_question(indicator.id_str)]
        borrowed = [make_question(sibling.id_str) for _ in range(3)]
        selection = selection_with_pools(mock_db, [], {indicator.id_str: own, sibling.id_str: borrowed})
        selection.load_indicator = AsyncMock(return_value=indicator)
        mock_db.find_many.return_value = [{"_id": ObjectId(indicator.id_str)}, {"_id": ObjectId(sibling.id_str)}]
        warnings = []

        selected = await selection.select_questions_for_indicator(indicator.id_str, 3, warnings=warnings)

        assert selected == [own[0].id_str, borrowed[0].id_str, borrowed[1].id_str]
        assert warnings[0].startswith("Borrowing 2 questions")

    @pytest.mark.asyncio
    async def test_excluded_questions_are_never_returned(self, mock_db, make_indicator, make_question):
        indicator = make_indicator("comp")
        questions = [make_question(indicator.id_str) for _ in range(3)]
        selection = selection_with_pools(mock_db, [], {indicator.id_str: questions})
        selection.load_indicator = AsyncMock(return_value=None)

        selected = await selection.select_questions_for_indicator(
            indicator.id_str, 3, exclude={questions[0].id_str}
        )

        assert selected == [questions[1].id_str, questions[2].id_str]

    @pytest.mark.asyncio
    async def test_validator_drops_retired_questions(self, mock_db, make_question):
        kept = make_question("ind")
        retired = make_question("ind")
        inactive = make_question("ind", is_active=False)
        mock_db.find_many.return_value = [{"question_id": retired.id_str, "validity_status": "RETIRED"}]

        eligible = await PsychometricValidator(mock_db).filter_eligible([kept, retired, inactive])

        assert eligible == [kept]

    @pytest.mark.asyncio
    async def test_waterfall_distribution_loads_pools_per_indicator(self, mock_db, make_question):
        first = [make_question("ind-1") for _ in range(2)]
        second = [make_question("ind-2") for _ in range(2)]
        selection = selection_with_pools(mock_db, [], {"ind-1": first, "ind-2": second})

        selected = await selection.distribute_questions_waterfall(["ind-1", "ind-2"], 2)

        assert selected == [first[0].id_str, second[0].id_str, first[1].id_str, second[1].id_str]

    @pytest.mark.asyncio
    async def test_waterfall_distribution_uses_given_pools(self, mock_db):
        selection = QuestionSelectionService(db=mock_db, validator=Mock())

        selected = await selection.distribute_questions_waterfall(
            ["a", "b"], 2, pools={"a": ["q1", "q2"], "b": ["q3"]}
        )

        assert selected == ["q1", "q3", "q2"]
        mock_db.find_many.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_waterfall_distribution_with_nothing_to_do(self, mock_db):
        selection = QuestionSelectionService(db=mock_db, validator=Mock())

        assert await selection.distribute_questions_waterfall([], 3) == []
        assert await selection.distribute_questions_waterfall(["a"], 0) == []

    @pytest.mark.asyncio
    async def test_active_unrated_question_is_eligible(self, mock_db):
        question_id = str(ObjectId())
        mock_db.find_one.return_value = {"_id": ObjectId(question_id), "is_active": True}

        assert await PsychometricValidator(mock_db).is_eligible_for_assembly(question_id) is True

    @pytest.mark.asyncio
    async def test_retired_question_is_not_eligible(self, mock_db):
        question_id = str(ObjectId())
        mock_db.find_one.return_value = {"_id": ObjectId(question_id), "is_active": True}
        mock_db.find_many.return_value = [{"question_id": question_id, "validity_status": "RETIRED"}]

        assert await PsychometricValidator(mock_db).is_eligible_for_assembly(question_id) is False

    @pytest.mark.asyncio
    async def test_inactive_or_unknown_question_is_not_eligible(self, mock_db):
        validator = PsychometricValidator(mock_db)
        mock_db.find_one.return_value = {"is_active": False}

        assert await validator.is_eligible_for_assembly(str(ObjectId())) is False
        assert await validator.is_eligible_for_assembly("not-an-id") is False
        mock_db.find_many.assert_not_awaited()


class TestOverviewAssembler:

    @pytest.mark.asyncio
    async def test_round_robin_across_indicators(self, mock_db, make_indicator, make_question):
        first = make_indicator("comp", weight=2.0)
        second = make_indicator("comp", weight=1.0)
        pools = {
            first.id_str: [make_question(first.id_str) for _ in range(3)],
            second.id_str: [make_question(second.id_str) for _ in range(3)],
        }
        assembler = OverviewAssembler(selection_with_pools(mock_db, [first, second], pools))

        result = await assembler.assemble(OverviewBlueprint(competency_ids=["comp"], questions_per_indicator=2))

        assert result.question_ids == [
            pools[first.id_str][0].id_str,
            pools[second.id_str][0].id_str,
            pools[first.id_str][1].id_str,
            pools[second.id_str][1].id_str,
        ]
        assert len(set(result.question_ids)) == len(result.question_ids)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("scope", [ContextScope.UNIVERSAL, ContextScope.PROFESSIONAL])
    async def test_retired_question_is_never_assembled(self, mock_db, make_indicator, make_question, scope):
        indicator = make_indicator("comp", context_scope=scope)
        kept = make_question(indicator.id_str)
        retired = make_question(indicator.id_str)
        documents = {
            Collections.BEHAVIORAL_INDICATORS: [indicator.to_mongo()],
            Collections.ASSESSMENT_QUESTIONS: [kept.to_mongo(), retired.to_mongo()],
            Collections.ITEM_STATISTICS: [{"question_id": retired.id_str, "validity_status": "RETIRED"}],
        }
        mock_db.find_many.side_effect = lambda collection, *args, **kwargs: documents.get(collection, [])
        assembler = OverviewAssembler(QuestionSelectionService(db=mock_db))

        result = await assembler.assemble(OverviewBlueprint(competency_ids=["comp"], questions_per_indicator=2))

        assert result.question_ids == [kept.id_str]
        assert retired.id_str not in result.question_ids
        assert bool(result.warnings) is (scope != ContextScope.UNIVERSAL)

    @pytest.mark.asyncio
    async def test_empty_blueprint_returns_warning(self, mock_db):
        assembler = OverviewAssembler(QuestionSelectionService(db=mock_db, validator=Mock()))

        result = await assembler.assemble(OverviewBlueprint())

        assert result.is_empty
        assert result.warnings == ["No competency IDs provided in blueprint"]

    @pytest.mark.asyncio
    async def test_wrong_blueprint_type_is_rejected(self, mock_db):
        assembler = OverviewAssembler(QuestionSelectionService(db=mock_db, validator=Mock()))

        with pytest.raises(ConfigurationError):
            await assembler.assemble(JobFitBlueprint(onet_soc_code="15-1252.00"))


class TestTeamFitAssembler:

    @pytest.fixture
    def assembler(self):
        return TeamFitAssembler(team_service=Mock(), selection_service=Mock(), base_questions=4)

    @pytest.mark.parametrize("saturation,quota,difficulty", [
        (0.05, 6, DifficultyLevel.ADVANCED),
        (0.25, 4, DifficultyLevel.INTERMEDIATE),
        (0.45, 3, DifficultyLevel.FOUNDATIONAL),
        (0.8, 2, DifficultyLevel.FOUNDATIONAL),
    ])
    def test_quota_and_difficulty_follow_saturation(self, assembler, saturation, quota, difficulty):
        assert assembler.question_quota(saturation) == quota
        assert assembler.target_difficulty(saturation) == difficulty

    @pytest.mark.parametrize("value,expected", [(None, 0.3), (0.0, 0.3), (1.2, 0.3), (0.5, 0.5)])
    def test_threshold_resolution(self, value, expected):
        assert TeamFitAssembler.resolve_threshold(value) == expected

    @pytest.mark.asyncio
    async def test_deepest_gap_is_probed_first(self, make_indicator):
        indicators = {
            "compA": [make_indicator("compA"), make_indicator("compA")],
            "compB": [make_indicator("compB")],
        }

        async def load_indicators(competency_ids):
            return indicators[competency_ids[0]]

        async def select(indicator_id, share, difficulty, used, warnings):
            return [f"{indicator_id}-{difficulty.value}-{n}" for n in range(share)]

        selection = Mock()
        selection.load_active_indicators = AsyncMock(side_effect=load_indicators)
        selection.select_questions_for_indicator = AsyncMock(side_effect=select)
        teams = Mock()
        teams.get_team_profile = AsyncMock(return_value=Team(
            name="Platform", competency_saturation={"compB": 0.45, "compA": 0.05, "compC": 0.9},
        ))
        teams.get_undersaturated_competencies = AsyncMock(return_value=["compB", "compA"])
        assembler = TeamFitAssembler(team_service=teams, selection_service=selection, base_questions=4)

        result = await assembler.assemble(TeamFitBlueprint(team_id="team-1", saturation_threshold=0.5))

        assert len(result.question_ids) == 9
        assert all("ADVANCED" in qid for qid in result.question_ids[:6])
        assert all(qid.startswith(indicators["compB"][0].id_str) for qid in result.question_ids[6:])
        assert all("FOUNDATIONAL" in qid for qid in result.question_ids[6:])

    @staticmethod
    def scenario_assembler(make_indicator, undersaturated=None):
        """Team with saturation compA 0.05 and compB 0.4, one indicator per competency."""
        team = Team(name="Platform", competency_saturation={"compA": 0.05, "compB": 0.4})
        indicators = {cid: [make_indicator(cid)] for cid in team.competency_saturation}

        async def load_indicators(competency_ids):
            return indicators[competency_ids[0]]

        async def select(indicator_id, share, difficulty, used, warnings):
            return [f"{indicator_id}-{difficulty.value}-{n}" for n in range(share)]

        async def report(team_id, threshold):
            if undersaturated is not None:
                return undersaturated
            return team.get_undersaturated(threshold)

        selection = Mock()
        selection.load_active_indicators = AsyncMock(side_effect=load_indicators)
        selection.select_questions_for_indicator = AsyncMock(side_effect=select)
        teams = Mock()
        teams.get_team_profile = AsyncMock(return_value=team)
        teams.get_undersaturated_competencies = AsyncMock(side_effect=report)
        assembler = TeamFitAssembler(team_service=teams, selection_service=selection, base_questions=4)
        return assembler, indicators, selection

    @pytest.mark.asyncio
    async def test_reported_gaps_are_probed_deepest_first(self, make_indicator):
        assembler, indicators, selection = self.scenario_assembler(make_indicator, ["compB", "compA"])

        result = await assembler.assemble(TeamFitBlueprint(team_id="team-1", saturation_threshold=0.3))

        requests = [(c.args[0], c.args[1], c.args[2]) for c in selection.select_questions_for_indicator.call_args_list]
        assert requests == [
            (indicators["compA"][0].id_str, 6, DifficultyLevel.ADVANCED),
            (indicators["compB"][0].id_str, 3, DifficultyLevel.FOUNDATIONAL),
        ]
        assert len(result.question_ids) == 9
        assert all(qid.startswith(indicators["compA"][0].id_str) for qid in result.question_ids[:6])

    @pytest.mark.asyncio
    async def test_saturation_threshold_limits_targets(self, make_indicator):
        assembler, indicators, selection = self.scenario_assembler(make_indicator)

        result = await assembler.assemble(TeamFitBlueprint(team_id="team-1", saturation_threshold=0.3))

        assert selection.select_questions_for_indicator.await_count == 1
        assert selection.select_questions_for_indicator.call_args.args[:3] == (
            indicators["compA"][0].id_str, 6, DifficultyLevel.ADVANCED,
        )
        assert len(result.question_ids) == 6
        assert not any(qid.startswith(indicators["compB"][0].id_str) for qid in result.question_ids)

    @pytest.mark.asyncio
    async def test_unknown_team_returns_empty_result(self):
        teams = Mock()
        teams.get_team_profile = AsyncMock(return_value=None)
        assembler = TeamFitAssembler(team_service=teams, selection_service=Mock(), base_questions=4)

        result = await assembler.assemble(TeamFitBlueprint(team_id="missing"))

        assert result.is_empty
        assert "missing" in result.warnings[0]


class TestJobFitAssembler:

    def test_gaps_sorted_largest_first(self):
        gaps = JobFitAssembler.analyze_gaps({"Writing": 3.0, "Negotiation": 4.5}, strictness=50)

        assert [g.competency_name for g in gaps] == ["Negotiation", "Writing"]
        assert all(g.significant for g in gaps)

    @pytest.mark.asyncio
    async def test_blank_soc_code_returns_empty(self, mock_db):
        assembler = JobFitAssembler(onet_service=Mock(), selection_service=Mock(), db=mock_db)

        result = await assembler.assemble(JobFitBlueprint(onet_soc_code="  "))

        assert result.is_empty
        assert result.warnings == ["No O*NET SOC code provided in blueprint"]

    @pytest.mark.asyncio
    async def test_unmatched_benchmarks_are_reported(self, mock_db, make_competency):
        onet = Mock()
        onet.get_profile = AsyncMock(return_value=OnetProfile(
            soc_code="15-1252.00", benchmarks={"Programming": 4.5},
        ))
        mock_db.find_many.return_value = [make_competency("Communication").to_mongo()]
        assembler = JobFitAssembler(onet_service=onet, selection_service=Mock(), db=mock_db)

        result = await assembler.assemble(JobFitBlueprint(onet_soc_code="15-1252.00"))

        assert result.is_empty
        assert "Programming" in result.warnings[0]


class TestTestAssemblerFactory:

    @pytest.fixture
    def factory(self, mock_db):
        selection = QuestionSelectionService(db=mock_db, validator=Mock())
        return TestAssemblerFactory([
            OverviewAssembler(selection),
            JobFitAssembler(Mock(), selection, mock_db),
            TeamFitAssembler(Mock(), selection, base_questions=4),
        ])

    def test_available_goals(self, factory):
        assert sorted(factory.available_goals) == ["JOB_FIT", "OVERVIEW", "TEAM_FIT"]
        assert factory.has_assembler("OVERVIEW")
        assert not factory.has_assembler("UNKNOWN")

    def test_get_all_assemblers(self, factory):
        assemblers = factory.get_all_assemblers()

        assert {type(a) for a in assemblers} == {OverviewAssembler, JobFitAssembler, TeamFitAssembler}

    def test_duplicate_goal_is_rejected(self, mock_db):
        selection = QuestionSelectionService(db=mock_db, validator=Mock())

        with pytest.raises(ValueError, match="Duplicate assembler"):
            TestAssemblerFactory([OverviewAssembler(selection), OverviewAssembler(selection)])

    def test_unknown_goal(self, factory):
        with pytest.raises(ValueError, match="No assembler found"):
            factory.get_assembler("UNKNOWN")

    @pytest.mark.asyncio
    async def test_missing_blueprint(self, factory):
        with pytest.raises(ValueError, match="Blueprint cannot be null"):
            await factory.assemble(None)

    @pytest.mark.asyncio
    async def test_dispatches_on_strategy(self, factory):
        result = await factory.assemble(OverviewBlueprint())

        assert result.warnings == ["No competency IDs provided in blueprint"]

    @pytest.mark.asyncio
    async def test_unregistered_strategy(self, mock_db):
        selection = QuestionSelectionService(db=mock_db, validator=Mock())
        factory = TestAssemblerFactory([OverviewAssembler(selection)])

        with pytest.raises(ValueError, match="Available strategies"):
            await factory.assemble(TeamFitBlueprint(team_id="team-1"))
