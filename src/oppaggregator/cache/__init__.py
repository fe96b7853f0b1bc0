"""Result cache — TTL entries, pluggable eviction and similarity lookup."""

from oppaggregator.cache.keys import derive_cache_key
from oppaggregator.cache.manager import CacheStats, ResultCache

__all__ = ["CacheStats", "ResultCache", "derive_cache_key"]
