import redis
import json
import logging
from datetime import datetime, timezone
from typing import Optional
from pixelmorpher.config import settings

logger = logging.getLogger("pixelmorpher.redis")

# Markers outlive any realistic render cycle
REVALIDATE_TTL_SECONDS = 24 * 60 * 60


class RedisService:
    """Keeps page revalidation markers in Redis.

    Mutating actions mark a page path stale; the page route consumes the
    marker on its next render. Without a Redis URL every call is a no-op.
    """

    def __init__(self, redis_url: Optional[str] = None):
        self.redis_client = None
        self.connect(redis_url or settings.redis_url)

    def connect(self, redis_url: Optional[str]):
        try:
            if redis_url:
                self.redis_client = redis.from_url(
                    redis_url,
                    decode_responses=True,
                    socket_connect_timeout=5,
                    socket_timeout=5,
                    retry_on_timeout=True
                )
                # Test connection
                self.redis_client.ping()
                logger.info("Redis connected successfully")
            else:
                logger.warning("No Redis URL provided, page revalidation disabled")
        except Exception as e:
            logger.warning(f"Redis connection failed: {e}")
            self.redis_client = None

    @property
    def available(self) -> bool:
        return self.redis_client is not None

    def ping(self) -> bool:
        try:
            if self.redis_client:
                self.redis_client.ping()
                return True
            return False
        except Exception:
            return False

    def revalidate_path(self, path: str) -> bool:
        """Mark ``path`` stale so its next render fetches fresh data"""
        if not self.available:
            return False
        try:
            marker = {"revalidated_at": datetime.now(timezone.utc).isoformat()}
            return bool(self.redis_client.setex(
                f"revalidate:{path}",
                REVALIDATE_TTL_SECONDS,
                json.dumps(marker)
            ))
        except Exception as e:
            logger.error(f"Redis revalidate error: {e}")
            return False

    def consume_revalidation(self, path: str) -> Optional[datetime]:
        """Return when ``path`` was marked stale and clear the marker"""
        if not self.available:
            return None
        try:
            key = f"revalidate:{path}"
            result = self.redis_client.get(key)
            if not result:
                return None
            self.redis_client.delete(key)
            data = json.loads(result)
            return datetime.fromisoformat(data["revalidated_at"])
        except Exception as e:
            logger.error(f"Redis revalidation check error: {e}")
            return None


# Global Redis instance
redis_service = RedisService()
