import asyncio
import logging
from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

_redis: Optional[aioredis.Redis] = None
_lock = asyncio.Lock()


async def get_redis(url: str) -> aioredis.Redis:
    """Singleton-клиент Redis с повторными попытками подключения."""
    global _redis

    if _redis is not None:
        return _redis

    async with _lock:
        if _redis is not None:
            return _redis

        max_retries = 3
        retry_delay = 1.0

        for attempt in range(1, max_retries + 1):
            client = aioredis.from_url(url, encoding="utf-8", decode_responses=True)
            try:
                logger.info("Redis: attempt %d/%d", attempt, max_retries)
                await client.ping()
                _redis = client
                logger.info("Redis: connected")
                return _redis

            except (RedisError, OSError, asyncio.TimeoutError) as exc:
                logger.warning(
                    "Redis: attempt %d/%d failed: %s",
                    attempt,
                    max_retries,
                    exc.__class__.__name__,
                )
                await client.aclose()

                if attempt < max_retries:
                    await asyncio.sleep(retry_delay)
                    retry_delay *= 2
                else:
                    logger.error("Redis: failed after %d attempts", max_retries)
                    raise RuntimeError(f"Redis connection failed after {max_retries} attempts") from exc

        raise RuntimeError("Unexpected code path")


async def close_redis() -> None:
    global _redis

    if _redis is None:
        return

    try:
        logger.info("Redis: closing...")
        await asyncio.wait_for(_redis.aclose(), timeout=5.0)
        logger.info("Redis: closed")
    except asyncio.TimeoutError:
        logger.warning("Redis: close timeout")
    except RedisError as exc:
        logger.error("Redis: close error: %s", exc)
    finally:
        _redis = None
