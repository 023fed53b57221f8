"""
Caching layer for upstream responses.
"""
from .cache_manager import CacheBackend, CacheManager, InMemoryCache

__all__ = [
    "CacheBackend",
    "CacheManager",
    "InMemoryCache",
]
