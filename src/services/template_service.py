"""Test template lookup.

Templates are read far more often than they change, so lookups go through
the Redis cache.
"""

from src.cache.cache_keys import CacheKeys
from src.cache.cache_manager import CacheManager
from src.core.config import get_settings
from src.database.mongodb import MongoDB
from src.database.redis_client import RedisClient
from src.models.template import TestTemplate
from src.utils.constants import Collections, ErrorCodes
from src.utils.exceptions import ResourceNotFoundError
from src.utils.helper import to_object_id
from src.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)


class TemplateService:
    """Read access to test templates."""

    def __init__(self, db=None, cache=None):
        self.db = db or MongoDB
        self.cache = cache or RedisClient
        self.cache_manager = CacheManager(self.cache)

    async def get_template(self, template_id: str) -> TestTemplate:
        """Get a template by id.

        Args:
            template_id: Template id

        Returns:
            TestTemplate: The template

        Raises:
            ResourceNotFoundError: If the id is malformed or unknown
        """
        object_id = to_object_id(template_id)
        doc = None
        if object_id is not None:
            async def load():
                return await self.db.find_one(Collections.TEST_TEMPLATES, {"_id": object_id})

            doc = await self.cache_manager.get_or_set(
                CacheKeys.template_by_id(template_id), load, ttl=settings.CACHE_TTL_DEFAULT
            )

        if not doc:
            raise ResourceNotFoundError(
                f"Template {template_id} not found",
                resource_type="template",
                resource_id=template_id,
                error_code=ErrorCodes.TEMPLATE_NOT_FOUND,
            )
        return TestTemplate.from_dict(doc)
