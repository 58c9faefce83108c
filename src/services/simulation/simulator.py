"""Dry-run simulation of a test blueprint against a candidate persona.

A simulation assembles the blueprint exactly as a live session would,
then lets a persona answer every question using the logit model in
:mod:`src.services.simulation.probability`. Results are deterministic for
a given question set, profile and ability level, which is what makes
them safe to cache.
"""

import math
import random
from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.cache.cache_keys import CacheKeys
from src.cache.cache_manager import CacheManager
from src.core.config import get_settings
from src.database.mongodb import MongoDB
from src.database.redis_client import RedisClient
from src.models.competency import BehavioralIndicator, Competency
from src.models.question import AssessmentQuestion
from src.models.template import TestTemplate
from src.services.assembly.factory import TestAssemblerFactory
from src.services.simulation import probability
from src.services.simulation.inventory import InventoryHeatmapService, InventoryWarning
from src.services.template_service import TemplateService
from src.utils.constants import (
    Collections,
    ErrorCodes,
    HealthStatus,
    SimulationConstants,
    SimulationProfile,
    WarningCode,
    WarningLevel,
)
from src.utils.exceptions import ConfigurationError, ValidationError
from src.utils.helper import to_object_ids, truncate_string
from src.utils.logger import get_simulation_logger

settings = get_settings()
logger = get_simulation_logger()

QUESTION_TEXT_LIMIT = 100


class QuestionSummary(BaseModel):
    """One simulated answer."""

    question_id: str
    competency_id: Optional[str] = None
    indicator_id: Optional[str] = None
    text: str = ""
    difficulty: str
    question_type: str
    time_limit: Optional[int] = None
    simulated_correct: bool
    simulated_answer: str
    competency_name: Optional[str] = None
    indicator_title: Optional[str] = None


class CompetencySimulationScore(BaseModel):
    """Simulated outcome for the questions of one competency."""

    competency_id: str
    total_questions: int
    correct_answers: int
    score_percentage: float
    difficulty_breakdown: Dict[str, int] = Field(default_factory=dict)

    @classmethod
    def of(cls, competency_id: str, total: int, correct: int, breakdown: Dict[str, int]) -> "CompetencySimulationScore":
        percentage = round(correct / total * 100, 2) if total else 0.0
        return cls(
            competency_id=competency_id,
            total_questions=total,
            correct_answers=correct,
            score_percentage=percentage,
            difficulty_breakdown=breakdown,
        )


class SimulationResult(BaseModel):
    """Outcome of a simulation run."""

    model_config = ConfigDict(use_enum_values=True)

    valid: bool = True
    composition: Dict[str, int] = Field(default_factory=dict)
    sample_questions: List[QuestionSummary] = Field(default_factory=list)
    warnings: List[InventoryWarning] = Field(default_factory=list)
    simulated_score: Optional[float] = None
    estimated_duration_minutes: Optional[int] = None
    total_questions: int = 0
    profile: Optional[SimulationProfile] = None
    ability_level: Optional[int] = None
    competency_scores: Dict[str, CompetencySimulationScore] = Field(default_factory=dict)

    @classmethod
    def failed(cls, warnings: List[InventoryWarning]) -> "SimulationResult":
        return cls(valid=False, warnings=list(warnings))


@dataclass
class HydratedQuestion:
    """A question together with the taxonomy nodes it hangs off."""

    question: AssessmentQuestion
    indicator: Optional[BehavioralIndicator] = None
    competency: Optional[Competency] = None

    @property
    def competency_id(self) -> Optional[str]:
        if self.competency is not None:
            return self.competency.id_str
        return self.indicator.competency_id if self.indicator else None


class TestSimulatorService:
    """Runs persona simulations over assembled blueprints."""

    def __init__(
        self,
        db=None,
        cache=None,
        assembler_factory: Optional[TestAssemblerFactory] = None,
        heatmap_service: Optional[InventoryHeatmapService] = None,
        template_service: Optional[TemplateService] = None,
    ):
        self.db = db or MongoDB
        self.cache = cache or RedisClient
        self.cache_manager = CacheManager(self.cache)
        self.assembler_factory = assembler_factory or TestAssemblerFactory.create_default(self.db, self.cache)
        self.heatmap_service = heatmap_service or InventoryHeatmapService(self.db)
        self.template_service = template_service or TemplateService(self.db, self.cache)

    @staticmethod
    def validate_ability_level(ability_level: int) -> int:
        if ability_level is None:
            return SimulationConstants.DEFAULT_ABILITY_LEVEL
        if not 0 <= ability_level <= 100:
            raise ValidationError(
                f"Ability level must be between 0 and 100, got {ability_level}",
                field="ability_level",
                value=ability_level,
                error_code=ErrorCodes.INVALID_ABILITY_LEVEL,
            )
        return ability_level

    async def simulate(
        self,
        blueprint,
        profile: Optional[SimulationProfile] = None,
        ability_level: int = SimulationConstants.DEFAULT_ABILITY_LEVEL,
    ) -> SimulationResult:
        """Simulate a test built from a blueprint.

        Args:
            blueprint: Typed blueprint to assemble
            profile: Persona, RANDOM_GUESSER when omitted
            ability_level: Ability slider value, 0 to 100

        Returns:
            SimulationResult: Never raises for assembly problems; they are
            reported as warnings on a failed result
        """
        if blueprint is None:
            return SimulationResult.failed([InventoryWarning.info("Blueprint is null")])

        profile = SimulationProfile(profile or SimulationProfile.RANDOM_GUESSER)
        ability_level = self.validate_ability_level(ability_level)

        logger.info(
            f"Starting simulation with profile {profile.value}, ability {ability_level} "
            f"for strategy {getattr(blueprint, 'strategy', None)}"
        )

        try:
            assembly = await self.assembler_factory.assemble(blueprint)
        except (ValueError, ConfigurationError) as e:
            logger.error(f"Failed to assemble blueprint for simulation: {str(e)}")
            return SimulationResult.failed([
                InventoryWarning.assembly_warning(
                    WarningLevel.INFO, f"Assembly failed: {str(e)}", WarningCode.ASSEMBLY_FAILED
                )
            ])

        warnings = [InventoryWarning.assembly_warning(WarningLevel.WARNING, w) for w in assembly.warnings]

        if assembly.is_empty:
            warnings.append(InventoryWarning.info("No questions assembled - check blueprint configuration"))
            return SimulationResult(
                valid=False,
                warnings=warnings,
                total_questions=0,
                profile=profile,
                ability_level=ability_level,
            )

        hydrated = await self.hydrate_questions(assembly.question_ids)
        if len(hydrated) < len(assembly.question_ids):
            warnings.append(InventoryWarning.assembly_warning(
                WarningLevel.INFO,
                f"Only {len(hydrated)} of {len(assembly.question_ids)} questions could be loaded",
                WarningCode.QUESTIONS_MISSING,
            ))

        competency_ids = list(dict.fromkeys(h.competency_id for h in hydrated if h.competency_id))
        warnings.extend(await self.calculate_inventory_heatmap(competency_ids, hydrated))

        run = self.run_persona_simulation(hydrated, profile, ability_level)

        composition = dict(Counter(h.question.difficulty_level for h in hydrated))
        simulated_score = self.calculate_simulated_score(run)
        competency_scores = self.calculate_competency_scores(run)
        valid = not any(w.level == WarningLevel.ERROR for w in warnings)
        duration = self.estimate_duration_minutes(hydrated)

        logger.info(
            f"Simulation complete: {len(hydrated)} questions, score {simulated_score}, "
            f"duration {duration} min, valid {valid}, competencies {len(competency_scores)}"
        )

        return SimulationResult(
            valid=valid,
            composition=composition,
            sample_questions=run,
            warnings=warnings,
            simulated_score=simulated_score,
            estimated_duration_minutes=duration,
            total_questions=len(hydrated),
            profile=profile,
            ability_level=ability_level,
            competency_scores=competency_scores,
        )

    async def simulate_template(
        self,
        template_id: str,
        profile: Optional[SimulationProfile] = None,
        ability_level: int = SimulationConstants.DEFAULT_ABILITY_LEVEL,
        force_refresh: bool = False,
    ) -> SimulationResult:
        """Simulate a stored template, caching the result in Redis.

        Raises:
            ResourceNotFoundError: If the template does not exist
            ValidationError: If the ability level is out of range
        """
        profile = SimulationProfile(profile or SimulationProfile.RANDOM_GUESSER)
        ability_level = self.validate_ability_level(ability_level)

        template = await self.load_template(template_id)
        try:
            blueprint = template.require_blueprint()
        except ConfigurationError as e:
            logger.warning(f"Template {template_id} failed pre-simulation validation: {e.message}")
            return SimulationResult.failed([InventoryWarning.info(f"Validation: {e.message}")])

        seed_hash = self.cache_manager.compute_hash({
            "blueprint": blueprint.model_dump(mode="json"),
            "ability": ability_level,
        })
        key = CacheKeys.simulation_result(template_id, profile.value, seed_hash)

        async def compute() -> dict:
            result = await self.simulate(blueprint, profile, ability_level)
            return result.model_dump(mode="json")

        data = await self.cache_manager.get_or_set(
            key, compute, ttl=settings.SIMULATION_CACHE_TTL, force_refresh=force_refresh
        )
        return SimulationResult.model_validate(data)

    async def load_template(self, template_id: str) -> TestTemplate:
        return await self.template_service.get_template(template_id)

    async def hydrate_questions(self, question_ids: List[str]) -> List[HydratedQuestion]:
        """Load questions with their indicator and competency, in assembly order."""
        question_docs = await self.db.find_many(
            Collections.ASSESSMENT_QUESTIONS, {"_id": {"$in": to_object_ids(question_ids)}}
        )
        questions = {str(doc["_id"]): AssessmentQuestion.from_dict(doc) for doc in question_docs}

        indicator_ids = {q.behavioral_indicator_id for q in questions.values()}
        indicator_docs = await self.db.find_many(
            Collections.BEHAVIORAL_INDICATORS, {"_id": {"$in": to_object_ids(indicator_ids)}}
        )
        indicators = {str(doc["_id"]): BehavioralIndicator.from_dict(doc) for doc in indicator_docs}

        competency_ids = {i.competency_id for i in indicators.values()}
        competency_docs = await self.db.find_many(
            Collections.COMPETENCIES, {"_id": {"$in": to_object_ids(competency_ids)}}
        )
        competencies = {str(doc["_id"]): Competency.from_dict(doc) for doc in competency_docs}

        hydrated = []
        for question_id in question_ids:
            question = questions.get(question_id)
            if question is None:
                continue
            indicator = indicators.get(question.behavioral_indicator_id)
            competency = competencies.get(indicator.competency_id) if indicator else None
            hydrated.append(HydratedQuestion(question, indicator, competency))
        return hydrated

    async def calculate_inventory_heatmap(
        self,
        competency_ids: List[str],
        hydrated: Optional[List[HydratedQuestion]] = None,
    ) -> List[InventoryWarning]:
        """Inventory warnings for the competencies a simulation touches."""
        if not competency_ids:
            return []

        names = {h.competency_id: h.competency.name for h in hydrated or [] if h.competency is not None}
        heatmap = await self.heatmap_service.generate_heatmap_for(competency_ids)
        recommended = settings.RECOMMENDED_QUESTIONS_PER_COMPETENCY

        warnings = []
        for competency_id, health in heatmap.competency_health.items():
            name = names.get(competency_id, competency_id)
            available = heatmap.total_for(competency_id)
            if health == HealthStatus.CRITICAL:
                warnings.append(InventoryWarning.critical(competency_id, name, "ALL", available, recommended))
            elif health == HealthStatus.MODERATE:
                warnings.append(InventoryWarning.moderate(competency_id, name, "ALL", available, recommended))
        return warnings

    def run_persona_simulation(
        self,
        hydrated: List[HydratedQuestion],
        profile: SimulationProfile,
        ability_level: int,
    ) -> List[QuestionSummary]:
        """Answer each question as the persona would.

        The RNG is local to the call and seeded from the inputs, so equal
        inputs always yield the same sequence of answers.
        """
        profile = SimulationProfile(profile)
        seed = probability.compute_seed(profile, ability_level, (h.question.id_str for h in hydrated))
        rng = random.Random(seed)
        noise = probability.competency_noise(seed, (h.competency_id for h in hydrated))

        results = []
        for item in hydrated:
            question = item.question
            p = probability.calculate_probability(
                profile,
                question.difficulty_level,
                ability_level,
                noise.get(item.competency_id, 0.0),
            )
            correct = rng.random() < p
            results.append(QuestionSummary(
                question_id=question.id_str,
                competency_id=item.competency_id,
                indicator_id=question.behavioral_indicator_id,
                text=truncate_string(question.question_text, QUESTION_TEXT_LIMIT),
                difficulty=question.difficulty_level,
                question_type=question.question_type,
                time_limit=question.time_limit,
                simulated_correct=correct,
                simulated_answer="Correct Option" if correct else "Incorrect Option",
                competency_name=item.competency.name if item.competency else None,
                indicator_title=item.indicator.title if item.indicator else None,
            ))
        return results

    @staticmethod
    def estimate_duration_minutes(hydrated: List[HydratedQuestion]) -> int:
        seconds = sum(
            h.question.time_limit or SimulationConstants.DEFAULT_QUESTION_TIME_SECONDS for h in hydrated
        )
        return math.ceil(seconds / 60)

    @staticmethod
    def calculate_simulated_score(run: List[QuestionSummary]) -> float:
        if not run:
            return 0.0
        correct = sum(1 for answer in run if answer.simulated_correct)
        return float(round(correct / len(run) * 100))

    @staticmethod
    def calculate_competency_scores(run: List[QuestionSummary]) -> Dict[str, CompetencySimulationScore]:
        grouped: Dict[str, List[QuestionSummary]] = {}
        for answer in run:
            if answer.competency_id:
                grouped.setdefault(answer.competency_id, []).append(answer)

        return {
            competency_id: CompetencySimulationScore.of(
                competency_id,
                len(answers),
                sum(1 for a in answers if a.simulated_correct),
                dict(Counter(a.difficulty for a in answers)),
            )
            for competency_id, answers in grouped.items()
        }
