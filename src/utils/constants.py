"""Constants and enums for the SkillSoft assessment server.

This module defines all constants, enums, and mappings used throughout the
assembly, scoring, simulation and psychometric layers for consistency and
type safety.
"""

from enum import Enum
from typing import Dict, List


# ============================================================================
# CORE ENUMS
# ============================================================================

class AssessmentGoal(str, Enum):
    """Purpose of an assessment; drives assembly and scoring strategy."""

    OVERVIEW = "OVERVIEW"
    JOB_FIT = "JOB_FIT"
    TEAM_FIT = "TEAM_FIT"


class TemplateStatus(str, Enum):
    """Lifecycle status of a test template."""

    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"

    @property
    def is_editable(self) -> bool:
        """Only draft templates may be modified."""
        return self == TemplateStatus.DRAFT


class SessionStatus(str, Enum):
    """Status of a candidate's test session."""

    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    ABANDONED = "ABANDONED"
    TIMED_OUT = "TIMED_OUT"

    @property
    def is_terminal(self) -> bool:
        """Check whether the session can no longer change."""
        return self in (
            SessionStatus.COMPLETED,
            SessionStatus.ABANDONED,
            SessionStatus.TIMED_OUT,
        )


class ResultStatus(str, Enum):
    """Status of a persisted test result."""

    COMPLETED = "COMPLETED"
    PENDING = "PENDING"


class QuestionType(str, Enum):
    """Types of assessment questions."""

    LIKERT = "LIKERT"
    LIKERT_SCALE = "LIKERT_SCALE"
    FREQUENCY_SCALE = "FREQUENCY_SCALE"
    SJT = "SJT"
    SITUATIONAL_JUDGMENT = "SITUATIONAL_JUDGMENT"
    MCQ = "MCQ"
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    CAPABILITY_ASSESSMENT = "CAPABILITY_ASSESSMENT"
    PEER_FEEDBACK = "PEER_FEEDBACK"
    BEHAVIORAL_EXAMPLE = "BEHAVIORAL_EXAMPLE"
    OPEN_TEXT = "OPEN_TEXT"
    SELF_REFLECTION = "SELF_REFLECTION"


class DifficultyLevel(str, Enum):
    """Question difficulty, declared from easiest to hardest."""

    FOUNDATIONAL = "FOUNDATIONAL"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"
    EXPERT = "EXPERT"
    SPECIALIZED = "SPECIALIZED"

    @property
    def ordinal(self) -> int:
        """Position of the level in declaration order."""
        return list(DifficultyLevel).index(self)


class ContextScope(str, Enum):
    """Context in which a behavioral indicator applies."""

    UNIVERSAL = "UNIVERSAL"
    PROFESSIONAL = "PROFESSIONAL"
    TECHNICAL = "TECHNICAL"
    MANAGERIAL = "MANAGERIAL"


class ItemValidityStatus(str, Enum):
    """Psychometric validity status of a question."""

    ACTIVE = "ACTIVE"
    PROBATION = "PROBATION"
    FLAGGED_FOR_REVIEW = "FLAGGED_FOR_REVIEW"
    RETIRED = "RETIRED"


class ItemFlag(str, Enum):
    """Quality flags raised by item analysis."""

    LOW_DISCRIMINATION = "LOW_DISCRIMINATION"
    NEGATIVE_DISCRIMINATION = "NEGATIVE_DISCRIMINATION"
    TOO_EASY = "TOO_EASY"
    TOO_HARD = "TOO_HARD"
    NON_FUNCTIONING_DISTRACTOR = "NON_FUNCTIONING_DISTRACTOR"
    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"


class ReliabilityStatus(str, Enum):
    """Internal consistency classification of a scale."""

    RELIABLE = "RELIABLE"
    ACCEPTABLE = "ACCEPTABLE"
    UNRELIABLE = "UNRELIABLE"
    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"


class BigFiveTrait(str, Enum):
    """Big Five personality traits."""

    OPENNESS = "OPENNESS"
    CONSCIENTIOUSNESS = "CONSCIENTIOUSNESS"
    EXTRAVERSION = "EXTRAVERSION"
    AGREEABLENESS = "AGREEABLENESS"
    EMOTIONAL_STABILITY = "EMOTIONAL_STABILITY"

    @classmethod
    def from_category(cls, category: str) -> "BigFiveTrait":
        """Resolve a stored category name, accepting NEUROTICISM as an alias.

        Raises:
            ValueError: If the category is not a Big Five trait
        """
        normalized = category.strip().upper()
        if normalized == "NEUROTICISM":
            return cls.EMOTIONAL_STABILITY
        return cls(normalized)


class ProficiencyLevel(str, Enum):
    """Proficiency bands applied to percentage scores."""

    EXPERT = "EXPERT"
    ADVANCED = "ADVANCED"
    PROFICIENT = "PROFICIENT"
    DEVELOPING = "DEVELOPING"
    BEGINNING = "BEGINNING"


class ConfidenceLevel(str, Enum):
    """Confidence in a hiring decision."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class SimulationProfile(str, Enum):
    """Candidate personas used for dry-run simulation."""

    PERFECT_CANDIDATE = "PERFECT_CANDIDATE"
    RANDOM_GUESSER = "RANDOM_GUESSER"
    FAILING_CANDIDATE = "FAILING_CANDIDATE"

    @property
    def ordinal(self) -> int:
        """Position of the profile in declaration order."""
        return list(SimulationProfile).index(self)

    @property
    def description(self) -> str:
        """Human readable description of the persona."""
        return SIMULATION_PROFILE_DESCRIPTIONS[self]

    def get_base_probability(self, difficulty: "DifficultyLevel") -> float:
        """Get the base probability of a correct answer at a difficulty.

        Args:
            difficulty: Question difficulty

        Returns:
            float: Base rate, 0.5 when the difficulty is unknown
        """
        try:
            return SIMULATION_BASE_PROBABILITIES[self][DifficultyLevel(difficulty)]
        except (KeyError, ValueError):
            return 0.50


class HealthStatus(str, Enum):
    """Inventory health of a competency's question pool."""

    CRITICAL = "CRITICAL"
    MODERATE = "MODERATE"
    HEALTHY = "HEALTHY"


class WarningLevel(str, Enum):
    """Severity of a simulation or assembly warning."""

    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class WarningCode(str, Enum):
    """Machine readable category of a simulation warning."""

    INVENTORY_CRITICAL = "INVENTORY_CRITICAL"
    INVENTORY_LIMITED = "INVENTORY_LIMITED"
    ASSEMBLY_FAILED = "ASSEMBLY_FAILED"
    QUESTIONS_MISSING = "QUESTIONS_MISSING"
    GENERIC = "GENERIC"


class PsychometricHealth(str, Enum):
    """Overall psychometric health of the item bank."""

    HEALTHY = "HEALTHY"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


# ============================================================================
# SIMULATION MAPPINGS
# ============================================================================

SIMULATION_BASE_PROBABILITIES: Dict[SimulationProfile, Dict[DifficultyLevel, float]] = {
    SimulationProfile.PERFECT_CANDIDATE: {
        DifficultyLevel.FOUNDATIONAL: 0.98,
        DifficultyLevel.INTERMEDIATE: 0.95,
        DifficultyLevel.ADVANCED: 0.90,
        DifficultyLevel.EXPERT: 0.85,
        DifficultyLevel.SPECIALIZED: 0.80,
    },
    SimulationProfile.RANDOM_GUESSER: {
        DifficultyLevel.FOUNDATIONAL: 0.50,
        DifficultyLevel.INTERMEDIATE: 0.40,
        DifficultyLevel.ADVANCED: 0.30,
        DifficultyLevel.EXPERT: 0.25,
        DifficultyLevel.SPECIALIZED: 0.20,
    },
    SimulationProfile.FAILING_CANDIDATE: {
        DifficultyLevel.FOUNDATIONAL: 0.20,
        DifficultyLevel.INTERMEDIATE: 0.15,
        DifficultyLevel.ADVANCED: 0.10,
        DifficultyLevel.EXPERT: 0.05,
        DifficultyLevel.SPECIALIZED: 0.03,
    },
}

SIMULATION_PROFILE_DESCRIPTIONS: Dict[SimulationProfile, str] = {
    SimulationProfile.PERFECT_CANDIDATE: "Answers nearly everything correctly",
    SimulationProfile.RANDOM_GUESSER: "Guesses at random with slight bias to easy items",
    SimulationProfile.FAILING_CANDIDATE: "Rarely answers correctly",
}


# ============================================================================
# QUESTION TYPE MAPPINGS
# ============================================================================

LIKERT_QUESTION_TYPES: List[QuestionType] = [
    QuestionType.LIKERT,
    QuestionType.LIKERT_SCALE,
    QuestionType.FREQUENCY_SCALE,
]

SJT_QUESTION_TYPES: List[QuestionType] = [
    QuestionType.SJT,
    QuestionType.SITUATIONAL_JUDGMENT,
]

CHOICE_QUESTION_TYPES: List[QuestionType] = [
    QuestionType.MCQ,
    QuestionType.MULTIPLE_CHOICE,
]

HYBRID_QUESTION_TYPES: List[QuestionType] = [
    QuestionType.CAPABILITY_ASSESSMENT,
    QuestionType.PEER_FEEDBACK,
]

TEXT_QUESTION_TYPES: List[QuestionType] = [
    QuestionType.BEHAVIORAL_EXAMPLE,
    QuestionType.OPEN_TEXT,
    QuestionType.SELF_REFLECTION,
]


# ============================================================================
# SCORING CONSTANTS
# ============================================================================

class ScoringConstants:
    """Constants for competency scoring and enrichment."""

    # Likert scale bounds
    LIKERT_MIN = 1
    LIKERT_MAX = 5

    # Proficiency band lower bounds (percentage)
    EXPERT_THRESHOLD = 85.0
    ADVANCED_THRESHOLD = 70.0
    PROFICIENT_THRESHOLD = 50.0
    DEVELOPING_THRESHOLD = 30.0

    # Overview strategy
    LOW_EVIDENCE_WEIGHT_FACTOR = 0.5
    SIGNATURE_STRENGTH_BAND = 10.0
    STRENGTH_THRESHOLD = 75.0
    CRITICAL_GAP_THRESHOLD = 30.0
    DEVELOPING_PATTERN_THRESHOLD = 40.0

    # Job fit strategy
    JOB_FIT_BASE_THRESHOLD = 0.5
    JOB_FIT_STRICTNESS_RANGE = 0.3
    JOB_FIT_MIN_QUESTIONS = 3
    ONET_BOOST = 1.2
    ONET_BENCHMARK_SCALE = 20.0
    DEFAULT_STRICTNESS = 50
    DECISION_MARGIN_SPAN = 0.25
    DECISION_MARGIN_WEIGHT = 0.5
    DECISION_EVIDENCE_WEIGHT = 0.3
    DECISION_COVERAGE_WEIGHT = 0.2
    HIGH_CONFIDENCE_THRESHOLD = 0.7
    MEDIUM_CONFIDENCE_THRESHOLD = 0.4

    # Team fit strategy
    DEFAULT_SATURATION_THRESHOLD = 0.75
    DIVERSITY_THRESHOLD = 0.5
    ESCO_BOOST = 1.15
    BIG_FIVE_BOOST = 1.1
    DIVERSITY_BONUS_THRESHOLD = 0.4
    SATURATION_PENALTY_CEILING = 0.6
    SATURATION_PENALTY_THRESHOLD = 0.8
    DIVERSITY_BONUS = 1.1
    SATURATION_PENALTY = 0.9
    TEAM_FIT_PASS_THRESHOLD = 60.0
    MIN_DIVERSITY_RATIO = 0.3

    # Percentiles
    DEFAULT_PERCENTILE = 50


class ConfidenceIntervalConstants:
    """Constants for standard-error based confidence intervals."""

    Z_SCORE_95 = 1.96
    DEFAULT_SD = 15.0
    MIN_SAMPLE_FOR_ACTUAL_SD = 30
    MIN_SAMPLE_FOR_SCALED_SD = 5


class ConsistencyConstants:
    """Constants for response consistency analysis."""

    MIN_RESPONSE_TIME_SECONDS = 3
    STRAIGHT_LINING_THRESHOLD = 0.70
    SPEED_ANOMALY_THRESHOLD = 0.2
    MIN_ANSWERS_FOR_VARIANCE = 3
    OPTIMAL_VARIANCE_LOW = 0.05
    OPTIMAL_VARIANCE_HIGH = 0.4
    LOW_VARIANCE_FLAG = 0.02
    HIGH_VARIANCE_FLAG = 0.6
    ZERO_VARIANCE_FACTOR = 0.7
    SPEED_WEIGHT = 0.3
    STRAIGHT_LINING_WEIGHT = 0.3
    VARIANCE_WEIGHT = 0.4


# ============================================================================
# ASSEMBLY CONSTANTS
# ============================================================================

class AssemblyConstants:
    """Constants for blueprint driven question assembly."""

    TEAM_FIT_DEFAULT_THRESHOLD = 0.3
    CRITICAL_GAP_SATURATION = 0.1
    MODERATE_GAP_SATURATION = 0.3
    MINOR_GAP_SATURATION = 0.5
    CRITICAL_GAP_BONUS = 2

    SIGNIFICANT_GAP_THRESHOLD = 0.2
    QUESTIONS_PER_GAP = 5


# ============================================================================
# SIMULATION CONSTANTS
# ============================================================================

class SimulationConstants:
    """Constants for persona simulation."""

    PROBABILITY_FLOOR = 0.01
    PROBABILITY_CEILING = 0.99
    LOGIT_INPUT_FLOOR = 0.001
    LOGIT_INPUT_CEILING = 0.999
    ABILITY_MIDPOINT = 50
    ABILITY_SCALE = 25.0
    COMPETENCY_NOISE_AMPLITUDE = 0.10
    SEED_MULTIPLIER = 31
    DEFAULT_QUESTION_TIME_SECONDS = 60
    CRITICAL_QUESTION_COUNT = 2
    DEFAULT_ABILITY_LEVEL = 50


# ============================================================================
# PSYCHOMETRIC CONSTANTS
# ============================================================================

class PsychometricConstants:
    """Thresholds for item analysis and scale reliability."""

    COMPLETENESS_THRESHOLD = 0.9

    DIFFICULTY_TOO_HARD = 0.2
    DIFFICULTY_TOO_EASY = 0.9

    DISCRIMINATION_CRITICAL = 0.1
    DISCRIMINATION_WARNING = 0.2
    DISCRIMINATION_GOOD = 0.25
    DISCRIMINATION_EXCELLENT = 0.3

    ALPHA_RELIABLE = 0.7
    ALPHA_ACCEPTABLE = 0.6

    MIN_DISTRACTOR_SELECTION = 0.05

    DECIMAL_SCALE = 4

    # Health report thresholds (fractions)
    CRITICAL_FLAGGED_RATIO = 0.20
    CRITICAL_RETIRED_RATIO = 0.30
    CRITICAL_UNRELIABLE_RATIO = 0.30
    WARNING_FLAGGED_RATIO = 0.10
    WARNING_PROBATION_RATIO = 0.50
    WARNING_UNRELIABLE_RATIO = 0.10


# ============================================================================
# COLLECTION NAMES
# ============================================================================

class Collections:
    """MongoDB collection names."""

    COMPETENCIES = "competencies"
    BEHAVIORAL_INDICATORS = "behavioral_indicators"
    ASSESSMENT_QUESTIONS = "assessment_questions"
    TEST_TEMPLATES = "test_templates"
    TEST_SESSIONS = "test_sessions"
    TEST_ANSWERS = "test_answers"
    TEST_RESULTS = "test_results"
    ITEM_STATISTICS = "item_statistics"
    COMPETENCY_RELIABILITY = "competency_reliability"
    BIG_FIVE_RELIABILITY = "big_five_reliability"
    TEAMS = "teams"
    ONET_PROFILES = "onet_profiles"


# ============================================================================
# ERROR CODES
# ============================================================================

class ErrorCodes:
    """Application error codes."""

    # Validation errors (1100-1199)
    INVALID_BLUEPRINT = 1102
    INVALID_ABILITY_LEVEL = 1103

    # Resource errors (1200-1299)
    SESSION_NOT_FOUND = 1201
    TEMPLATE_NOT_FOUND = 1202
    QUESTION_NOT_FOUND = 1203
    RESULT_NOT_FOUND = 1204
    COMPETENCY_NOT_FOUND = 1205

    # Business logic errors (1300-1399)
    SCORING_IN_PROGRESS = 1301
    ITEM_NOT_ACTIVATABLE = 1302

    # System errors (1400-1499)
    CONFIGURATION_ERROR = 1403
    SCORING_FAILED = 1405


# ============================================================================
# EVENT CHANNELS
# ============================================================================

class EventChannels:
    """Redis pub/sub channels for domain events."""

    SCORING = "events:scoring"
    SCORING_AUDIT = "events:scoring:audit"
    RESILIENCE = "events:resilience"


# Export all constants and enums
__all__ = [
    "AssessmentGoal",
    "TemplateStatus",
    "SessionStatus",
    "ResultStatus",
    "QuestionType",
    "DifficultyLevel",
    "ContextScope",
    "ItemValidityStatus",
    "ItemFlag",
    "ReliabilityStatus",
    "BigFiveTrait",
    "ProficiencyLevel",
    "ConfidenceLevel",
    "SimulationProfile",
    "HealthStatus",
    "WarningLevel",
    "WarningCode",
    "PsychometricHealth",
    "SIMULATION_BASE_PROBABILITIES",
    "LIKERT_QUESTION_TYPES",
    "SJT_QUESTION_TYPES",
    "CHOICE_QUESTION_TYPES",
    "HYBRID_QUESTION_TYPES",
    "TEXT_QUESTION_TYPES",
    "ScoringConstants",
    "ConfidenceIntervalConstants",
    "ConsistencyConstants",
    "AssemblyConstants",
    "SimulationConstants",
    "PsychometricConstants",
    "Collections",
    "ErrorCodes",
    "EventChannels",
]
