import redis
import json
import logging
from typing import Optional
from ..config import settings


class RedisCache:
    """JSON response cache. Any Redis failure behaves like a cache miss."""

    def __init__(self, client: Optional[redis.Redis] = None):
        if client is not None:
            self.redis_client = client
            return
        try:
            self.redis_client = redis.Redis(
                host=settings.REDIS_HOST,
                port=settings.REDIS_PORT,
                db=settings.REDIS_DB,
                decode_responses=True,
                socket_connect_timeout=1
            )
        except Exception as e:
            logging.error(f"Redis connection failed: {str(e)}")
            self.redis_client = None

    @staticmethod
    def analytics_key(project_id: str) -> str:
        return f"labor-analytics:{project_id}"

    async def get_cached_data(self, key: str) -> Optional[dict]:
        if not self.redis_client:
            return None

        try:
            data = self.redis_client.get(key)
            if data:
                return json.loads(data)
            return None
        except Exception as e:
            logging.error(f"Redis get error: {str(e)}")
            return None

    async def set_cached_data(self, key: str, data: dict, expiry_minutes: Optional[int] = None) -> bool:
        if not self.redis_client:
            return False

        minutes = settings.ANALYTICS_CACHE_MINUTES if expiry_minutes is None else expiry_minutes
        try:
            self.redis_client.setex(key, minutes * 60, json.dumps(data, default=str))
            return True
        except Exception as e:
            logging.error(f"Redis set error: {str(e)}")
            return False

    async def invalidate(self, key: str) -> None:
        if not self.redis_client:
            return
        try:
            self.redis_client.delete(key)
        except Exception as e:
            logging.error(f"Redis delete error: {str(e)}")
