"""
Redis caching utilities for API lookups.

Provides simple caching with TTL for expensive lookups such as GeoIP.
Falls back to in-memory cache when Redis is unavailable.

Routes run in FastAPI's threadpool, so every access to the in-memory
fallback goes through _memory_lock.
"""

import json
import logging
import os
import threading
import time
from typing import Any, Dict, Optional, Tuple

from fingerprint.config import get_settings

logger = logging.getLogger(__name__)

# Redis client singleton
_redis_client = None
_redis_available = False
_redis_checked_at = 0.0
_REDIS_RETRY_INTERVAL = 60  # seconds between reconnect attempts

# In-memory fallback cache when Redis is unavailable
# Format: {key: (value, expiry_timestamp)}
_memory_cache: Dict[str, Tuple[Any, float]] = {}
_memory_lock = threading.Lock()
_MEMORY_CACHE_MAX_ENTRIES = 4096  # GeoIP results are small; keep plenty


def _cleanup_memory_cache():
    """Remove expired entries from memory cache. Caller holds _memory_lock."""
    now = time.time()
    # Remove expired entries
    for key in [k for k, (_, expiry) in _memory_cache.items() if expiry <= now]:
        del _memory_cache[key]

    # Leave room for the entry about to be set, dropping those closest to expiry
    overflow = len(_memory_cache) - (_MEMORY_CACHE_MAX_ENTRIES - 1)
    if overflow > 0:
        oldest = sorted(_memory_cache.items(), key=lambda x: x[1][1])[:overflow]
        for key, _ in oldest:
            del _memory_cache[key]


def get_redis_client():
    """Get or create Redis client singleton."""
    global _redis_client, _redis_available, _redis_checked_at

    if _redis_client is not None:
        return _redis_client if _redis_available else None

    if time.time() - _redis_checked_at < _REDIS_RETRY_INTERVAL:
        return None
    _redis_checked_at = time.time()

    try:
        import redis
        redis_url = os.environ.get("REDIS_URL") or get_settings().redis.url
        client = redis.from_url(redis_url, decode_responses=True, socket_connect_timeout=1)
        client.ping()
        _redis_client = client
        _redis_available = True
        return _redis_client
    except Exception as e:
        logger.warning(f"Redis not available, using in-memory cache: {e}")
        _redis_available = False
        _redis_client = None
        return None


def cache_get(key: str) -> Optional[Any]:
    """Get value from cache (Redis with in-memory fallback)."""
    # Try Redis first
    client = get_redis_client()
    if client:
        try:
            value = client.get(key)
            if value:
                return json.loads(value)
        except Exception as e:
            logger.warning(f"Cache get error for {key}: {e}")

    # Fallback to in-memory cache
    with _memory_lock:
        entry = _memory_cache.get(key)
        if entry is None:
            return None
        value, expiry = entry
        if time.time() < expiry:
            logger.debug(f"Memory cache hit: {key}")
            return value
        del _memory_cache[key]
    return None


def cache_set(key: str, value: Any, ttl: int = 3600) -> bool:
    """Set value in cache with TTL (Redis with in-memory fallback)."""
    # Try Redis first
    client = get_redis_client()
    if client:
        try:
            client.setex(key, ttl, json.dumps(value))
            return True
        except Exception as e:
            logger.warning(f"Cache set error for {key}: {e}")

    # Fallback to in-memory cache
    with _memory_lock:
        _cleanup_memory_cache()
        _memory_cache[key] = (value, time.time() + ttl)
    logger.debug(f"Memory cache set: {key} (TTL: {ttl}s)")
    return True
