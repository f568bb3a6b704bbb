"""
Redis-backed listing cache.

- Keyed by listing intent + serialized filter parameters
- TTL = 300 seconds (configurable via CACHE_TTL), measured from insertion
- Entries are never invalidated on product writes; readers tolerate up to
  one TTL window of staleness

The cache is advisory: Redis failures are logged and treated as a miss on
read and a skipped store on write.
"""

from typing import Optional, Any, Dict
import json
import logging
from redis import asyncio as aioredis
from redis.asyncio import Redis
from redis.exceptions import RedisError
from catalog.core.config import Settings

logger = logging.getLogger(__name__)


class ListingCache:
    """
    Listing cache with explicit construction and lifetime.

    Created once per process in the application lifecycle and injected into
    the catalog service. SETEX gives atomic per-key upsert with expiry.
    """

    def __init__(self, settings: Settings, client: Optional[Redis] = None, ttl: Optional[int] = None):
        """
        Initialize cache configuration.

        Args:
            settings: Service settings (Redis location, default TTL)
            client: Pre-built Redis client; connect() builds one when omitted
            ttl: Override for the entry time-to-live in seconds
        """
        self.settings = settings
        self.ttl = ttl if ttl is not None else settings.cache_ttl
        self._redis_client = client
        logger.info(f"Listing cache configured: {settings.redis_url}, TTL={self.ttl}s")

    async def connect(self) -> None:
        """
        Establish async connection to Redis.

        Raises:
            RedisError: If connection fails
        """
        if self._redis_client is None:
            try:
                self._redis_client = aioredis.from_url(
                    self.settings.redis_url,
                    password=self.settings.redis_password,
                    encoding="utf-8",
                    decode_responses=True,
                    max_connections=10
                )
                await self._redis_client.ping()
                logger.info("Redis connection established successfully")
            except RedisError as e:
                logger.error(f"Failed to connect to Redis: {str(e)}")
                self._redis_client = None
                raise

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self._redis_client:
            await self._redis_client.aclose()
            self._redis_client = None
            logger.info("Redis connection closed")

    @staticmethod
    def listing_key(intent: str, params: Optional[Dict[str, Any]] = None) -> str:
        """
        Build the cache key for a listing request.

        Args:
            intent: Listing intent (e.g. "all", "flash-deals")
            params: Filter parameters; serialized with sorted keys

        Returns:
            Key such as 'listing:all:{"category": 3, "include_images": true}'
        """
        serialized = json.dumps(params or {}, sort_keys=True, default=str)
        return f"listing:{intent}:{serialized}"

    async def get(self, key: str) -> Optional[Any]:
        """
        Get a cached payload.

        Returns:
            Cached value (deserialized from JSON) or None on miss or error
        """
        if not self._redis_client:
            logger.warning("Redis client not connected, skipping cache get")
            return None

        try:
            value = await self._redis_client.get(key)
            if value is None:
                logger.debug(f"Cache MISS: {key}")
                return None
            logger.debug(f"Cache HIT: {key}")
            return json.loads(value)
        except RedisError as e:
            logger.error(f"Redis GET error for key '{key}': {str(e)}")
            return None
        except json.JSONDecodeError as e:
            logger.error(f"JSON decode error for key '{key}': {str(e)}")
            return None

    async def set(self, key: str, value: Any) -> bool:
        """
        Store a payload, overwriting any previous entry.

        Returns:
            True if successful, False otherwise
        """
        if not self._redis_client:
            logger.warning("Redis client not connected, skipping cache set")
            return False

        try:
            await self._redis_client.setex(key, self.ttl, json.dumps(value))
            logger.debug(f"Cache SET: {key} (TTL={self.ttl}s)")
            return True
        except RedisError as e:
            logger.error(f"Redis SET error for key '{key}': {str(e)}")
            return False
        except (TypeError, ValueError) as e:
            logger.error(f"JSON serialization error for key '{key}': {str(e)}")
            return False
