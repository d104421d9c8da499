"""API-key identities and the provider tokens attached to them.

Records live in Redis when a ``REDIS_URL`` is configured and reachable. If the
durable backend is missing or a write to it fails, the record is kept in this
process's memory instead and the result is tagged ``StoreBackend.FALLBACK``.
The two stores are never reconciled: a record written during an outage exists
only in memory and is lost on restart.
"""

import secrets

import redis.asyncio as redis
import structlog
from redis.exceptions import RedisError

from drivegate.exceptions import InputError
from drivegate.logging_config import redact
from drivegate.models.identity import StoreBackend, StoreResult, UserRecord

logger = structlog.get_logger(__name__)

API_KEY_BYTES = 32
USER_ID_BYTES = 16


def generate_api_key() -> str:
    return secrets.token_hex(API_KEY_BYTES)


def generate_user_id() -> str:
    return secrets.token_hex(USER_ID_BYTES)


class RedisUserBackend:
    """Stores each ``UserRecord`` as a JSON document under ``users:{api_key}``."""

    KEY_PREFIX = "users:"

    def __init__(self, client: redis.Redis):
        self.redis = client

    @classmethod
    def from_url(cls, url: str) -> "RedisUserBackend":
        return cls(
            redis.from_url(
                url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
        )

    def _key(self, api_key: str) -> str:
        return f"{self.KEY_PREFIX}{api_key}"

    async def save(self, user: UserRecord) -> None:
        await self.redis.set(self._key(user.api_key), user.model_dump_json())

    async def load(self, api_key: str) -> UserRecord | None:
        data = await self.redis.get(self._key(api_key))
        if not data:
            return None
        return UserRecord.model_validate_json(data)

    async def delete(self, api_key: str) -> bool:
        return bool(await self.redis.delete(self._key(api_key)))

    async def load_all(self) -> list[UserRecord]:
        users = []
        async for key in self.redis.scan_iter(match=f"{self.KEY_PREFIX}*"):
            data = await self.redis.get(key)
            if data:
                users.append(UserRecord.model_validate_json(data))
        return users

    async def close(self) -> None:
        await self.redis.aclose()


class IdentityStore:
    def __init__(self, durable: RedisUserBackend | None = None):
        self.durable = durable
        self._memory: dict[str, UserRecord] = {}

    async def _persist(self, user: UserRecord) -> StoreBackend:
        if self.durable is not None:
            try:
                await self.durable.save(user)
                return StoreBackend.DURABLE
            except RedisError as e:
                logger.warning("durable_backend_write_failed", user_id=user.id, error=str(e))
        self._memory[user.api_key] = user
        return StoreBackend.FALLBACK

    async def _lookup(self, api_key: str) -> tuple[UserRecord, StoreBackend] | None:
        if self.durable is not None:
            try:
                user = await self.durable.load(api_key)
            except RedisError as e:
                logger.warning("durable_backend_read_failed", api_key=redact(api_key), error=str(e))
            else:
                if user is not None:
                    return user, StoreBackend.DURABLE
        user = self._memory.get(api_key)
        if user is None:
            return None
        return user, StoreBackend.FALLBACK

    async def create_user(self, email: str) -> StoreResult:
        """Issue a fresh API key for ``email``. Repeated calls create independent users."""
        email = (email or "").strip()
        if not email:
            raise InputError("Email is required")
        user = UserRecord(id=generate_user_id(), email=email, api_key=generate_api_key())
        backend = await self._persist(user)
        logger.info("user_created", user_id=user.id, backend=backend.value)
        return StoreResult(user=user, backend=backend)

    async def get_user_by_api_key(self, api_key: str) -> UserRecord | None:
        if not api_key:
            return None
        found = await self._lookup(api_key)
        if found is None:
            return None
        user, backend = found
        user.touch()
        if backend is StoreBackend.DURABLE:
            try:
                await self.durable.save(user)
            except RedisError as e:
                logger.warning("durable_backend_touch_failed", user_id=user.id, error=str(e))
        return user

    async def add_provider_tokens(self, api_key: str, access_token: str, refresh_token: str) -> StoreResult | None:
        """Attach provider OAuth tokens to a user. Empty tokens count as missing."""
        if not access_token or not refresh_token:
            raise InputError("Both access token and refresh token are required")
        found = await self._lookup(api_key)
        if found is None:
            return None
        user, backend = found
        user.set_provider_tokens(access_token, refresh_token)
        if backend is StoreBackend.DURABLE:
            backend = await self._persist(user)
        logger.info("provider_tokens_added", user_id=user.id, backend=backend.value)
        return StoreResult(user=user, backend=backend)

    async def delete_user(self, api_key: str) -> bool:
        deleted = self._memory.pop(api_key, None) is not None
        if self.durable is not None:
            try:
                deleted = await self.durable.delete(api_key) or deleted
            except RedisError as e:
                logger.warning("durable_backend_delete_failed", api_key=redact(api_key), error=str(e))
        return deleted

    async def list_users(self) -> list[UserRecord]:
        users: dict[str, UserRecord] = {}
        if self.durable is not None:
            try:
                users.update((u.api_key, u) for u in await self.durable.load_all())
            except RedisError as e:
                logger.warning("durable_backend_read_failed", error=str(e))
        for api_key, user in self._memory.items():
            users.setdefault(api_key, user)
        return list(users.values())

    async def close(self) -> None:
        if self.durable is not None:
            await self.durable.close()
