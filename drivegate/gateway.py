"""Request authentication for API-key and bearer-token protected routes."""

from fastapi import Depends, Request

from drivegate.deadline import with_deadline
from drivegate.exceptions import DeadlineExceeded, InvalidCredentialError, MissingCredentialError
from drivegate.models.identity import UserRecord
from drivegate.services.container import Services

API_KEY_HEADER = "X-API-Key"
API_KEY_QUERY_PARAMS = ("apiKey", "key")


def get_services(request: Request) -> Services:
    return request.app.state.services


def extract_api_key(request: Request) -> str | None:
    api_key = request.headers.get(API_KEY_HEADER)
    if api_key:
        return api_key
    for name in API_KEY_QUERY_PARAMS:
        if request.query_params.get(name):
            return request.query_params[name]
    return None


def bearer_token(request: Request) -> str | None:
    """Return the credential from an ``Authorization: Bearer <token>`` header, if any."""
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def require_user(request: Request, services: Services = Depends(get_services)) -> UserRecord:
    """Resolve the caller's API key to a user and attach it to ``request.state.user``."""
    api_key = extract_api_key(request)
    if not api_key:
        raise MissingCredentialError(
            "API key required. Provide it in the X-API-Key header or the apiKey/key query parameter."
        )
    user = await with_deadline(
        services.identity.get_user_by_api_key(api_key),
        services.settings.auth_timeout,
        on_timeout=lambda: DeadlineExceeded("Authentication timed out. Please try again."),
    )
    if user is None:
        raise InvalidCredentialError("Invalid API key. Please check your API key and try again.")
    request.state.user = user
    return user
