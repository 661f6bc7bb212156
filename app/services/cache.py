"""Redis caching for assistant replies (optional; degrades to no cache)."""
import logging
from typing import Optional
import redis
from app.core.config import settings

logger = logging.getLogger(__name__)

_redis_client: Optional[redis.Redis] = None
_redis_checked = False


def get_client() -> Optional[redis.Redis]:
    """
    Connect on first use. Returns None when caching is disabled or Redis is down;
    the connection is checked once per process.
    """
    global _redis_client, _redis_checked
    if not settings.cache_enabled:
        return None
    if not _redis_checked:
        _redis_checked = True
        try:
            client = redis.from_url(settings.redis_url, decode_responses=True)
            client.ping()
            _redis_client = client
            logger.info("Redis cache connected")
        except (redis.RedisError, ValueError) as e:
            logger.warning(f"Redis not available: {e}. Continuing without cache.")
            _redis_client = None
    return _redis_client


def is_available() -> bool:
    return get_client() is not None


def get(key: str) -> Optional[str]:
    """
    Get value from cache.

    Args:
        key: Cache key

    Returns:
        Cached value or None
    """
    client = get_client()
    if client is None:
        return None
    try:
        return client.get(key)
    except redis.RedisError as e:
        logger.error(f"Cache get error: {e}")
        return None


def set(key: str, value: str, ttl: int) -> None:
    """Set value in cache with TTL (seconds)."""
    client = get_client()
    if client is None:
        return
    try:
        client.setex(key, ttl, value)
    except redis.RedisError as e:
        logger.error(f"Cache set error: {e}")
