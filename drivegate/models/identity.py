from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

from drivegate.models.common import CamelModel


def _now() -> datetime:
    return datetime.now(timezone.utc)


class UserRecord(BaseModel):
    id: str
    email: str
    api_key: str
    provider_access_token: str | None = None
    provider_refresh_token: str | None = None
    created_at: datetime = Field(default_factory=_now)
    last_accessed_at: datetime = Field(default_factory=_now)

    @property
    def has_provider_credentials(self) -> bool:
        return bool(self.provider_access_token and self.provider_refresh_token)

    def touch(self) -> None:
        self.last_accessed_at = _now()

    def set_provider_tokens(self, access_token: str, refresh_token: str) -> None:
        self.provider_access_token = access_token
        self.provider_refresh_token = refresh_token
        self.last_accessed_at = _now()


class StoreBackend(str, Enum):
    DURABLE = "durable"
    FALLBACK = "fallback"


class StoreResult(BaseModel):
    """A user record together with the backend that actually holds it."""

    user: UserRecord
    backend: StoreBackend

    @property
    def degraded(self) -> bool:
        return self.backend is StoreBackend.FALLBACK


class CreateKeyRequest(BaseModel):
    email: str | None = None


class CreateKeyResponse(CamelModel):
    api_key: str
    email: str
    created_at: datetime


class ProviderTokensRequest(CamelModel):
    access_token: str | None = None
    refresh_token: str | None = None


class UserSummary(BaseModel):
    id: str
    email: str


class ProviderTokensResponse(BaseModel):
    message: str
    user: UserSummary
