"""
Short-lived in-memory response caching.
"""

from .soft_cache import SoftResponseCache, SoftCacheEntry

__all__ = [
    "SoftResponseCache",
    "SoftCacheEntry",
]
