"""Question inventory health for simulation warnings."""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.core.config import get_settings
from src.database.mongodb import MongoDB
from src.utils.constants import Collections, HealthStatus, SimulationConstants, WarningCode, WarningLevel
from src.utils.logger import get_simulation_logger

settings = get_settings()
logger = get_simulation_logger()


class InventoryWarning(BaseModel):
    """A warning raised while simulating or assembling a test."""

    model_config = ConfigDict(use_enum_values=True)

    level: WarningLevel
    code: WarningCode = WarningCode.GENERIC
    message: str
    competency_id: Optional[str] = None
    competency_name: Optional[str] = None
    difficulty: Optional[str] = None
    available_questions: int = 0
    required_questions: int = 0
    params: Optional[Dict[str, str]] = None

    @classmethod
    def critical(
        cls,
        competency_id: str,
        competency_name: str,
        difficulty: str,
        available: int,
        required: int,
    ) -> "InventoryWarning":
        return cls(
            level=WarningLevel.ERROR,
            code=WarningCode.INVENTORY_CRITICAL,
            competency_id=competency_id,
            competency_name=competency_name,
            difficulty=difficulty,
            available_questions=available,
            required_questions=required,
            message=(
                f"Critical: Only {available} questions available for "
                f"{competency_name} ({difficulty}), need {required}"
            ),
            params={
                "available": str(available),
                "competencyName": competency_name,
                "difficulty": difficulty,
                "required": str(required),
            },
        )

    @classmethod
    def moderate(
        cls,
        competency_id: str,
        competency_name: str,
        difficulty: str,
        available: int,
        required: int,
    ) -> "InventoryWarning":
        return cls(
            level=WarningLevel.WARNING,
            code=WarningCode.INVENTORY_LIMITED,
            competency_id=competency_id,
            competency_name=competency_name,
            difficulty=difficulty,
            available_questions=available,
            required_questions=required,
            message=(
                f"Warning: Limited questions ({available}) for "
                f"{competency_name} ({difficulty}), recommended {required}"
            ),
            params={
                "available": str(available),
                "competencyName": competency_name,
                "difficulty": difficulty,
                "recommended": str(required),
            },
        )

    @classmethod
    def info(cls, message: str) -> "InventoryWarning":
        return cls(level=WarningLevel.INFO, message=message)

    @classmethod
    def assembly_warning(
        cls,
        level: WarningLevel,
        message: str,
        code: WarningCode = WarningCode.GENERIC,
        params: Optional[Dict[str, str]] = None,
    ) -> "InventoryWarning":
        return cls(level=level, code=code, message=message, params=params)


def calculate_health(total: int) -> HealthStatus:
    """Classify a competency's question count."""
    if total < SimulationConstants.CRITICAL_QUESTION_COUNT:
        return HealthStatus.CRITICAL
    if total < settings.RECOMMENDED_QUESTIONS_PER_COMPETENCY:
        return HealthStatus.MODERATE
    return HealthStatus.HEALTHY


class InventoryHeatmap(BaseModel):
    """Active question counts per competency and difficulty."""

    competency_health: Dict[str, HealthStatus] = Field(default_factory=dict)
    detailed_counts: Dict[str, int] = Field(default_factory=dict)

    model_config = ConfigDict(use_enum_values=True)

    def total_for(self, competency_id: str) -> int:
        prefix = f"{competency_id}:"
        return sum(count for key, count in self.detailed_counts.items() if key.startswith(prefix))

    @property
    def summary(self) -> Dict[str, int]:
        statuses = list(self.competency_health.values())
        return {
            "totalCompetencies": len(statuses),
            "healthyCount": statuses.count(HealthStatus.HEALTHY),
            "moderateCount": statuses.count(HealthStatus.MODERATE),
            "criticalCount": statuses.count(HealthStatus.CRITICAL),
        }


class InventoryHeatmapService:
    """Counts the active question inventory behind a set of competencies."""

    def __init__(self, db=None):
        self.db = db or MongoDB

    async def generate_heatmap_for(self, competency_ids: List[str]) -> InventoryHeatmap:
        """Build the heatmap for the given competencies.

        Keys of ``detailed_counts`` have the form ``competencyId:DIFFICULTY``.
        Competencies without any question still appear, as CRITICAL.
        """
        competency_ids = [cid for cid in dict.fromkeys(competency_ids or []) if cid]
        if not competency_ids:
            return InventoryHeatmap()

        indicator_docs = await self.db.find_many(
            Collections.BEHAVIORAL_INDICATORS,
            {"competency_id": {"$in": competency_ids}, "is_active": True},
            projection={"_id": 1, "competency_id": 1},
        )
        competency_by_indicator = {str(doc["_id"]): doc["competency_id"] for doc in indicator_docs}

        detailed: Dict[str, int] = {}
        if competency_by_indicator:
            rows = await self.db.aggregate(
                Collections.ASSESSMENT_QUESTIONS,
                [
                    {"$match": {
                        "behavioral_indicator_id": {"$in": list(competency_by_indicator)},
                        "is_active": True,
                    }},
                    {"$group": {
                        "_id": {
                            "indicator": "$behavioral_indicator_id",
                            "difficulty": "$difficulty_level",
                        },
                        "count": {"$sum": 1},
                    }},
                ],
            )
            for row in rows:
                competency_id = competency_by_indicator.get(row["_id"]["indicator"])
                if competency_id is None:
                    continue
                key = f"{competency_id}:{row['_id']['difficulty']}"
                detailed[key] = detailed.get(key, 0) + int(row["count"])

        heatmap = InventoryHeatmap(detailed_counts=detailed)
        heatmap.competency_health = {
            cid: calculate_health(heatmap.total_for(cid)) for cid in competency_ids
        }

        summary = heatmap.summary
        logger.info(
            f"Generated heatmap: {summary['totalCompetencies']} competencies, "
            f"{summary['healthyCount']} healthy, {summary['criticalCount']} critical"
        )
        return heatmap
