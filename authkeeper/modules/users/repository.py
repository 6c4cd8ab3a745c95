"""
User persistence.

The subject claim carried in bearer tokens is the account email, so
``find_by_subject_claim`` is an email lookup. Emails are normalised to lower
case at every entry point.
"""

import asyncio
import copy
from typing import Dict, Optional, Protocol, Tuple

from .models import ExternalProvider, User


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserRepository(Protocol):
    """Protocol for user persistence."""

    async def find_by_subject_claim(self, claim: str) -> Optional[User]:
        ...

    async def find_by_email(self, email: str) -> Optional[User]:
        ...

    async def exists_by_email(self, email: str) -> bool:
        ...

    async def find_by_id(self, user_id: str) -> Optional[User]:
        ...

    async def find_by_external_provider(
        self, provider: ExternalProvider, provider_id: str
    ) -> Optional[User]:
        ...

    async def save(self, user: User) -> User:
        ...


class InMemoryUserRepository:
    """Keeps users in process memory. Returns copies so callers cannot mutate stored state."""

    def __init__(self):
        self._by_id: Dict[str, User] = {}
        self._email_index: Dict[str, str] = {}
        self._external_index: Dict[Tuple[ExternalProvider, str], str] = {}
        self._lock = asyncio.Lock()

    async def find_by_subject_claim(self, claim: str) -> Optional[User]:
        return await self.find_by_email(claim)

    async def find_by_email(self, email: str) -> Optional[User]:
        async with self._lock:
            user_id = self._email_index.get(normalize_email(email))
            return copy.deepcopy(self._by_id[user_id]) if user_id else None

    async def exists_by_email(self, email: str) -> bool:
        async with self._lock:
            return normalize_email(email) in self._email_index

    async def find_by_id(self, user_id: str) -> Optional[User]:
        async with self._lock:
            user = self._by_id.get(user_id)
            return copy.deepcopy(user) if user else None

    async def find_by_external_provider(
        self, provider: ExternalProvider, provider_id: str
    ) -> Optional[User]:
        async with self._lock:
            user_id = self._external_index.get((provider, provider_id))
            return copy.deepcopy(self._by_id[user_id]) if user_id else None

    async def save(self, user: User) -> User:
        async with self._lock:
            email = normalize_email(user.email)
            owner = self._email_index.get(email)
            if owner is not None and owner != user.id:
                raise ValueError(f"Email {email} belongs to another account")

            previous = self._by_id.get(user.id)
            if previous is not None and normalize_email(previous.email) != email:
                self._email_index.pop(normalize_email(previous.email), None)

            self._by_id[user.id] = copy.deepcopy(user)
            self._email_index[email] = user.id
            if user.external_provider and user.external_provider_id:
                self._external_index[(user.external_provider, user.external_provider_id)] = user.id
            return user


class RedisUserRepository:
    """Stores users as JSON documents keyed by email, with id and provider indexes."""

    def __init__(self, redis_client):
        """
        Initialize user repository.

        Args:
            redis_client: Async Redis client (decode_responses=True)
        """
        self.redis = redis_client

    @staticmethod
    def _user_key(email: str) -> str:
        return f"user:{normalize_email(email)}"

    @staticmethod
    def _id_key(user_id: str) -> str:
        return f"user:id:{user_id}"

    @staticmethod
    def _external_key(provider: ExternalProvider, provider_id: str) -> str:
        return f"user:external:{provider.value}:{provider_id}"

    async def find_by_subject_claim(self, claim: str) -> Optional[User]:
        return await self.find_by_email(claim)

    async def find_by_email(self, email: str) -> Optional[User]:
        data = await self.redis.get(self._user_key(email))
        if data:
            return User.from_json(data)
        return None

    async def exists_by_email(self, email: str) -> bool:
        return await self.redis.exists(self._user_key(email)) > 0

    async def find_by_id(self, user_id: str) -> Optional[User]:
        email = await self.redis.get(self._id_key(user_id))
        if not email:
            return None
        return await self.find_by_email(email)

    async def find_by_external_provider(
        self, provider: ExternalProvider, provider_id: str
    ) -> Optional[User]:
        email = await self.redis.get(self._external_key(provider, provider_id))
        if not email:
            return None
        return await self.find_by_email(email)

    async def save(self, user: User) -> User:
        email = normalize_email(user.email)

        stored_email = await self.redis.get(self._id_key(user.id))
        if stored_email and stored_email != email:
            raise ValueError("Changing an account email is not supported")

        existing = await self.redis.get(self._user_key(email))
        if existing:
            if User.from_json(existing).id != user.id:
                raise ValueError(f"Email {email} belongs to another account")
            await self.redis.set(self._user_key(email), user.to_json())
        else:
            # NX keeps two concurrent registrations from sharing an email
            created = await self.redis.set(self._user_key(email), user.to_json(), nx=True)
            if not created:
                raise ValueError(f"Email {email} belongs to another account")

        await self.redis.set(self._id_key(user.id), email)
        if user.external_provider and user.external_provider_id:
            await self.redis.set(
                self._external_key(user.external_provider, user.external_provider_id), email
            )
        return user
