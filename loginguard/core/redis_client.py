import redis
from loginguard.config import settings
from typing import Optional

redis_client: Optional[redis.Redis] = None


def get_redis(url: Optional[str] = None) -> redis.Redis:
    global redis_client
    if url is not None and url != settings.redis_url:
        return redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=1,
            socket_timeout=1
        )
    if redis_client is None:
        redis_client = redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=1,
            socket_timeout=1
        )
    return redis_client
