from fastapi import APIRouter, Depends, Response

from drivegate.deadline import with_deadline
from drivegate.exceptions import DeadlineExceeded, InputError, InvalidCredentialError
from drivegate.gateway import get_services, require_user
from drivegate.models.identity import (
    CreateKeyRequest,
    CreateKeyResponse,
    ProviderTokensRequest,
    ProviderTokensResponse,
    UserRecord,
    UserSummary,
)
from drivegate.services.container import Services

router = APIRouter(prefix="/identity", tags=["identity"])

BACKEND_HEADER = "X-Identity-Backend"


@router.post("/keys", status_code=201)
async def create_key(
    request: CreateKeyRequest, response: Response, services: Services = Depends(get_services)
) -> CreateKeyResponse:
    if not request.email:
        raise InputError("Email is required")
    result = await with_deadline(
        services.identity.create_user(request.email),
        services.settings.identity_write_timeout,
        on_timeout=lambda: DeadlineExceeded("API key creation timed out. Please try again."),
    )
    response.headers[BACKEND_HEADER] = result.backend.value
    return CreateKeyResponse(api_key=result.user.api_key, email=result.user.email, created_at=result.user.created_at)


@router.post("/tokens")
async def add_tokens(
    request: ProviderTokensRequest,
    response: Response,
    user: UserRecord = Depends(require_user),
    services: Services = Depends(get_services),
) -> ProviderTokensResponse:
    result = await with_deadline(
        services.identity.add_provider_tokens(user.api_key, request.access_token, request.refresh_token),
        services.settings.identity_write_timeout,
        on_timeout=lambda: DeadlineExceeded("Operation timed out. Please try again."),
    )
    if result is None:
        raise InvalidCredentialError("User not found for the provided API key")
    response.headers[BACKEND_HEADER] = result.backend.value
    return ProviderTokensResponse(
        message="Provider tokens added successfully",
        user=UserSummary(id=result.user.id, email=result.user.email),
    )
