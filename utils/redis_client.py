from typing import Optional
import logging

import redis.asyncio as redis

from config.setting_redis import get_redis_settings

logger = logging.getLogger(__name__)


class RedisClient:

    _instance: Optional[redis.Redis] = None

    @classmethod
    def get_instance(cls) -> redis.Redis:
        """
        Shared asyncio Redis connection pool (Singleton).
        Connection errors surface on first command, not here.
        """
        if cls._instance is None:
            redis_settings = get_redis_settings()
            cls._instance = redis.Redis(
                host=redis_settings.REDIS_HOST,
                port=redis_settings.REDIS_PORT,
                db=redis_settings.REDIS_DB,
                password=redis_settings.REDIS_PASSWORD,
                decode_responses=redis_settings.REDIS_DECODE_RESPONSES,
                socket_connect_timeout=5,
                retry_on_timeout=True
            )
            logger.info(f"Redis client created for {redis_settings.REDIS_HOST}:{redis_settings.REDIS_PORT}")
        return cls._instance

    @classmethod
    async def ping(cls) -> bool:
        try:
            return bool(await cls.get_instance().ping())
        except redis.ConnectionError as e:
            logger.error(f"❌ Redis connection failed: {e}")
            return False

    @classmethod
    async def close(cls):
        """Đóng Redis connection"""
        if cls._instance:
            await cls._instance.aclose()
            cls._instance = None
            logger.info("Redis connection closed")
