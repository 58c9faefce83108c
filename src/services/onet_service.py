"""O*NET occupation benchmark lookup."""

from typing import Optional

from src.cache.cache_keys import CacheKeys
from src.cache.cache_manager import CacheManager
from src.core.config import get_settings
from src.database.mongodb import MongoDB
from src.database.redis_client import RedisClient
from src.models.team import OnetProfile
from src.utils.constants import Collections
from src.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)


class OnetService:
    """Read access to occupation benchmark profiles."""

    def __init__(self, db=None, cache=None):
        self.db = db or MongoDB
        self.cache = cache or RedisClient
        self.cache_manager = CacheManager(self.cache)

    async def get_profile(self, soc_code: Optional[str]) -> Optional[OnetProfile]:
        """Get the benchmark profile for an O*NET SOC code.

        Args:
            soc_code: Standard Occupational Classification code, e.g. "15-1252.00"

        Returns:
            Optional[OnetProfile]: Profile, or None for a blank or unknown code
        """
        if not soc_code or not soc_code.strip():
            return None
        soc_code = soc_code.strip()

        async def load():
            return await self.db.find_one(Collections.ONET_PROFILES, {"soc_code": soc_code}, projection={"_id": 0})

        doc = await self.cache_manager.get_or_set(
            CacheKeys.onet_profile(soc_code), load, ttl=settings.CACHE_TTL_DEFAULT
        )
        if not doc:
            logger.debug(f"No O*NET profile for SOC code {soc_code}")
            return None
        return OnetProfile.from_dict(doc)
