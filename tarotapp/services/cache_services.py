# tarotapp/services/cache_services.py
"""
Device-local snapshot of the signed-in user.

Two keys per device namespace:
  tarot:{device}:savedUserInfo  -> full UserProfile JSON (both histories)
  tarot:{device}:savedUsername  -> plain username, used to re-fetch when the
                                   full snapshot cannot be read
Every save rewrites the whole snapshot; there is no versioning.
"""
import logging
from typing import Optional

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from tarotapp.models.user_models import UserProfile

logger = logging.getLogger(__name__)

CACHE_PREFIX = "tarot"
USER_INFO_KEY = "savedUserInfo"
USERNAME_KEY = "savedUsername"


def make_cache_key(namespace: str, name: str) -> str:
    return f"{CACHE_PREFIX}:{namespace}:{name}"


class LocalCache:
    def __init__(self, redis_client: Redis, namespace: str):
        self.redis_client = redis_client
        self.namespace = namespace
        self.user_info_key = make_cache_key(namespace, USER_INFO_KEY)
        self.username_key = make_cache_key(namespace, USERNAME_KEY)

    async def save(self, profile: UserProfile) -> None:
        try:
            await self.redis_client.set(self.user_info_key, profile.model_dump_json())
            await self.redis_client.set(self.username_key, profile.username)
            logger.debug(f"Cached profile for {profile.username} under {self.namespace}")
        except RedisError as e:
            logger.warning(f"Could not cache profile for {profile.username}: {e}")

    async def load(self) -> Optional[UserProfile]:
        """Returns the cached profile, or None when absent or unreadable."""
        try:
            raw = await self.redis_client.get(self.user_info_key)
        except RedisError as e:
            logger.warning(f"Local cache unavailable for {self.namespace}: {e}")
            return None

        if raw is None:
            logger.info(f"No cached profile for {self.namespace}")
            return None
        try:
            return UserProfile.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Cached profile for {self.namespace} is malformed, ignoring it: {e.error_count()} error(s)")
            return None

    async def load_username(self) -> Optional[str]:
        try:
            username = await self.redis_client.get(self.username_key)
        except RedisError as e:
            logger.warning(f"Local cache unavailable for {self.namespace}: {e}")
            return None
        if isinstance(username, bytes):
            username = username.decode("utf-8")
        return username or None

    async def clear(self) -> None:
        try:
            await self.redis_client.delete(self.user_info_key, self.username_key)
        except RedisError as e:
            logger.warning(f"Could not clear local cache for {self.namespace}: {e}")
