from typing import Optional
from pydantic_settings import BaseSettings


class RedisSettings(BaseSettings):

    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: Optional[str] = None
    REDIS_DECODE_RESPONSES: bool = True

    # Pub/sub channel carrying room broadcasts between server instances
    REDIS_BROADCAST_CHANNEL: str = "qa:rooms"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "allow"


def get_redis_settings():
    return RedisSettings()
