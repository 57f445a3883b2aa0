"""
Redis cache for language-model responses.

Re-verifying the same transcript against the same phrases is common, so the
raw matcher output is cached by content hash. Redis being down only disables
caching.
"""
import hashlib
import json
from typing import Any, Optional

import structlog
import redis

from radiocheck.core.config import get_settings

logger = structlog.get_logger()
settings = get_settings()

_redis_client: Optional[redis.Redis] = None


def get_redis_client() -> Optional[redis.Redis]:
    """Get or create Redis client singleton."""
    global _redis_client

    if _redis_client is not None:
        return _redis_client

    try:
        client = redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
        client.ping()
    except redis.RedisError as e:
        logger.warning("cache.redis_connection_failed", error=str(e))
        return None
    logger.info("cache.redis_connected", url=settings.redis_url)
    _redis_client = client
    return _redis_client


def content_key(*parts: Any) -> str:
    """Stable sha256 over JSON-encoded parts."""
    digest = hashlib.sha256()
    for part in parts:
        digest.update(json.dumps(part, ensure_ascii=False, sort_keys=True).encode("utf-8"))
        digest.update(b"\x00")
    return digest.hexdigest()


def get_cached(key: str, prefix: str = "matcher") -> Optional[Any]:
    client = get_redis_client()
    if not client:
        return None

    full_key = f"{prefix}:{key}"
    try:
        data = client.get(full_key)
    except redis.RedisError as e:
        logger.warning("cache.get_failed", key=full_key, error=str(e))
        return None
    if not data:
        return None
    logger.info("cache.hit", key=full_key)
    return json.loads(data)


def set_cached(key: str, data: Any, prefix: str = "matcher", ttl: Optional[int] = None) -> bool:
    client = get_redis_client()
    if not client:
        return False

    full_key = f"{prefix}:{key}"
    cache_ttl = ttl or settings.redis_cache_ttl
    try:
        client.setex(full_key, cache_ttl, json.dumps(data, ensure_ascii=False))
    except redis.RedisError as e:
        logger.warning("cache.set_failed", key=full_key, error=str(e))
        return False
    logger.info("cache.set", key=full_key, ttl=cache_ttl)
    return True

