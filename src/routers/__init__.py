"""API routers for the assessment server."""

from src.routers.assembly import router as assembly_router
from src.routers.health import router as health_router
from src.routers.psychometrics import router as psychometrics_router
from src.routers.scoring import router as scoring_router
from src.routers.simulation import router as simulation_router

__all__ = [
    "assembly_router",
    "health_router",
    "psychometrics_router",
    "scoring_router",
    "simulation_router",
]
