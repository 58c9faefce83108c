"""SkillSoft utilities package.

Constants, exceptions, logging and small helpers shared by the services.
"""

from src.utils.constants import (
    AssessmentGoal,
    Collections,
    DifficultyLevel,
    ErrorCodes,
    EventChannels,
    ItemValidityStatus,
    QuestionType,
    ResultStatus,
    SimulationProfile,
)
from src.utils.datetime_utils import elapsed_ms, ensure_utc, utc_now
from src.utils.exceptions import (
    BusinessLogicError,
    ConfigurationError,
    DatabaseError,
    ResourceNotFoundError,
    ScoringError,
    SkillSoftError,
    ValidationError,
)
from src.utils.logger import (
    PerformanceLogger,
    get_api_logger,
    get_logger,
    log_api_request,
    log_api_response,
    setup_logging,
)

__version__ = "1.0.0"

__all__ = [
    # Constants and Enums
    "AssessmentGoal",
    "Collections",
    "DifficultyLevel",
    "ErrorCodes",
    "EventChannels",
    "ItemValidityStatus",
    "QuestionType",
    "ResultStatus",
    "SimulationProfile",

    # DateTime utilities
    "elapsed_ms",
    "ensure_utc",
    "utc_now",

    # Exception classes
    "SkillSoftError",
    "ValidationError",
    "BusinessLogicError",
    "ResourceNotFoundError",
    "DatabaseError",
    "ConfigurationError",
    "ScoringError",

    # Logger functions
    "get_logger",
    "get_api_logger",
    "setup_logging",
    "log_api_request",
    "log_api_response",
    "PerformanceLogger",
]
