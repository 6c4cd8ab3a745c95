"""
Ephemeral token persistence.

Two implementations share the TokenStore protocol:
- InMemoryTokenStore for tests and single-process development
- RedisTokenStore for deployments, where the replace and consume steps run
  as Lua scripts so concurrent writers cannot interleave

Both enforce the same invariants: token values are unique across purposes,
an owner holds at most one token per purpose, and consumption is a
compare-and-set that succeeds exactly once.
"""

import asyncio
import logging
from datetime import timedelta
from typing import Dict, Optional, Protocol, Tuple

from ..auth.errors import TokenCollision
from .models import EphemeralToken, TokenPurpose

logger = logging.getLogger(__name__)

TOKEN_KEY_PREFIX = "token:"
OWNER_KEY_PREFIX = "token:owner:"

# KEYS[1]=owner pointer, KEYS[2]=new token hash
# ARGV[1]=token key prefix, ARGV[2]=new value, ARGV[3]=expire-at (unix), ARGV[4..]=hash fields
REPLACE_SCRIPT = """
if redis.call('EXISTS', KEYS[2]) == 1 then
    return 0
end
local previous = redis.call('GET', KEYS[1])
if previous then
    redis.call('DEL', ARGV[1] .. previous)
end
redis.call('HSET', KEYS[2], unpack(ARGV, 4))
redis.call('EXPIREAT', KEYS[2], ARGV[3])
redis.call('SET', KEYS[1], ARGV[2])
redis.call('EXPIREAT', KEYS[1], ARGV[3])
return 1
"""

# KEYS[1]=token hash
CONSUME_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 0 then
    return -1
end
if redis.call('HGET', KEYS[1], 'consumed') == '1' then
    return 0
end
redis.call('HSET', KEYS[1], 'consumed', '1')
return 1
"""

# KEYS[1]=owner pointer, ARGV[1]=token key prefix
DELETE_OWNER_SCRIPT = """
local previous = redis.call('GET', KEYS[1])
if previous then
    redis.call('DEL', ARGV[1] .. previous)
end
redis.call('DEL', KEYS[1])
if previous then
    return 1
end
return 0
"""


class TokenStore(Protocol):
    """Protocol for ephemeral token persistence."""

    async def replace(self, token: EphemeralToken) -> None:
        """Atomically drop the owner's token for this purpose and insert ``token``."""
        ...

    async def get(self, value: str) -> Optional[EphemeralToken]:
        """Fetch a token by value regardless of purpose."""
        ...

    async def mark_consumed(self, value: str) -> bool:
        """Flip the consumed flag; False if missing or already consumed."""
        ...

    async def delete_for_owner(self, owner_id: str, purpose: TokenPurpose) -> bool:
        """Remove the owner's token for a purpose, if any."""
        ...


class InMemoryTokenStore:
    """Stores tokens in memory for the lifetime of the process."""

    def __init__(self):
        self._tokens: Dict[str, EphemeralToken] = {}
        self._owners: Dict[Tuple[str, TokenPurpose], str] = {}
        self._lock = asyncio.Lock()

    async def replace(self, token: EphemeralToken) -> None:
        async with self._lock:
            if token.value in self._tokens:
                raise TokenCollision("Token value already exists")
            owner_key = (token.owner_id, token.purpose)
            previous = self._owners.pop(owner_key, None)
            if previous is not None:
                self._tokens.pop(previous, None)
            self._tokens[token.value] = token
            self._owners[owner_key] = token.value

    async def get(self, value: str) -> Optional[EphemeralToken]:
        async with self._lock:
            return self._tokens.get(value)

    async def mark_consumed(self, value: str) -> bool:
        async with self._lock:
            token = self._tokens.get(value)
            if token is None or token.consumed:
                return False
            self._tokens[value] = token.mark_consumed()
            return True

    async def delete_for_owner(self, owner_id: str, purpose: TokenPurpose) -> bool:
        async with self._lock:
            previous = self._owners.pop((owner_id, purpose), None)
            if previous is None:
                return False
            self._tokens.pop(previous, None)
            return True

    def __len__(self) -> int:
        return len(self._tokens)


class RedisTokenStore:
    """Redis-backed token store."""

    def __init__(self, redis_client, retention_seconds: int = 86400):
        """
        Initialize token store.

        Args:
            redis_client: Async Redis client (decode_responses=True)
            retention_seconds: How long rows outlive their expiry before Redis
                drops them. Validity never depends on this.
        """
        self.redis = redis_client
        self.retention = timedelta(seconds=retention_seconds)

    @staticmethod
    def _token_key(value: str) -> str:
        return f"{TOKEN_KEY_PREFIX}{value}"

    @staticmethod
    def _owner_key(owner_id: str, purpose: TokenPurpose) -> str:
        return f"{OWNER_KEY_PREFIX}{owner_id}:{purpose.value}"

    async def replace(self, token: EphemeralToken) -> None:
        expire_at = int((token.expires_at + self.retention).timestamp())
        fields = []
        for name, field_value in token.to_mapping().items():
            fields.extend([name, field_value])

        result = await self.redis.eval(
            REPLACE_SCRIPT,
            2,
            self._owner_key(token.owner_id, token.purpose),
            self._token_key(token.value),
            TOKEN_KEY_PREFIX,
            token.value,
            expire_at,
            *fields,
        )
        if int(result) == 0:
            raise TokenCollision("Token value already exists")

    async def get(self, value: str) -> Optional[EphemeralToken]:
        data = await self.redis.hgetall(self._token_key(value))
        if not data:
            return None
        return EphemeralToken.from_mapping(data)

    async def mark_consumed(self, value: str) -> bool:
        result = await self.redis.eval(CONSUME_SCRIPT, 1, self._token_key(value))
        return int(result) == 1

    async def delete_for_owner(self, owner_id: str, purpose: TokenPurpose) -> bool:
        result = await self.redis.eval(
            DELETE_OWNER_SCRIPT,
            1,
            self._owner_key(owner_id, purpose),
            TOKEN_KEY_PREFIX,
        )
        return int(result) == 1
