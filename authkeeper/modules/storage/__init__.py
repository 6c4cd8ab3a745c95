"""
Storage Module - Black Box Interface

Purpose: Own the Redis connection shared by the user and token stores
Interface: StorageModule.connect(), StorageModule.disconnect(), StorageModule.ping()
Hidden: Connection URL assembly, client options

Can be replaced with any storage backend without affecting other modules.
"""

import logging
from typing import Optional

import redis.asyncio as redis

logger = logging.getLogger(__name__)


class StorageModule:
    """Black box storage abstraction."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
    ):
        """Initialize storage with connection settings."""
        # Password is passed separately to avoid URL encoding issues
        self.url = f"redis://{host}:{port}/{db}"
        self.password = password
        self._client: Optional[redis.Redis] = None

    async def connect(self) -> redis.Redis:
        """Get storage connection."""
        if not self._client:
            self._client = redis.from_url(
                self.url,
                password=self.password,
                encoding="utf-8",
                decode_responses=True,
            )
            logger.info(f"Connected storage at {self.url}")
        return self._client

    async def ping(self) -> bool:
        """Check the backend answers."""
        if not self._client:
            return False
        return bool(await self._client.ping())

    async def disconnect(self):
        """Close storage connection."""
        if self._client:
            await self._client.aclose()
            self._client = None


__all__ = ["StorageModule"]
