"""Redis cache layer for the assessment server.

Key patterns, JSON caching, distributed locks and event publication.
"""

from src.cache.cache_keys import CacheKeys
from src.cache.cache_manager import CacheManager

__all__ = [
    "CacheKeys",
    "CacheManager",
]