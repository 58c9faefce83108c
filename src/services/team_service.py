"""Team analytics service.

Provides team competency saturation profiles to the team fit assembler and
scoring strategy.
"""

from typing import List, Optional

from src.cache.cache_keys import CacheKeys
from src.cache.cache_manager import CacheManager
from src.core.config import get_settings
from src.database.mongodb import MongoDB
from src.database.redis_client import RedisClient
from src.models.team import Team
from src.utils.constants import Collections
from src.utils.helper import to_object_id
from src.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)


class TeamService:
    """Read access to team saturation profiles."""

    def __init__(self, db=None, cache=None):
        """Initialize team service.

        Args:
            db: Database instance
            cache: Cache instance
        """
        self.db = db or MongoDB
        self.cache = cache or RedisClient
        self.cache_manager = CacheManager(self.cache)

    async def get_team_profile(self, team_id: Optional[str]) -> Optional[Team]:
        """Get a team's competency saturation profile.

        Args:
            team_id: Team id

        Returns:
            Optional[Team]: The team, or None when it does not exist
        """
        object_id = to_object_id(team_id)
        if object_id is None:
            return None

        async def load():
            return await self.db.find_one(Collections.TEAMS, {"_id": object_id})

        doc = await self.cache_manager.get_or_set(
            CacheKeys.team_profile(team_id), load, ttl=settings.CACHE_TTL_DEFAULT
        )
        if not doc:
            logger.debug(f"No team profile found for team {team_id}")
            return None
        return Team.from_dict(doc)

    async def get_undersaturated_competencies(self, team_id: Optional[str], threshold: float) -> List[str]:
        """Get competency ids whose saturation is below a threshold.

        Args:
            team_id: Team id
            threshold: Saturation threshold in (0, 1]

        Returns:
            List[str]: Competency ids, empty when the team is unknown
        """
        team = await self.get_team_profile(team_id)
        if team is None:
            return []
        return team.get_undersaturated(threshold)
