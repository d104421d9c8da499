import os

# Allow Google to return broader scopes than requested (e.g. from prior grants)
os.environ["OAUTHLIB_RELAX_TOKEN_SCOPE"] = "1"

from fastapi import APIRouter, Depends
from google_auth_oauthlib.flow import Flow
from oauthlib.oauth2.rfc6749.errors import InvalidGrantError, OAuth2Error
from pydantic import BaseModel

from drivegate.config import Settings
from drivegate.models.common import CamelModel
from drivegate.exceptions import InputError, InternalError, UpstreamUnavailable
from drivegate.gateway import get_services
from drivegate.services.container import Services

SCOPES = ["https://www.googleapis.com/auth/drive.readonly"]
GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"


class AuthUrlResponse(CamelModel):
    auth_url: str


class OAuthTokens(BaseModel):
    access_token: str | None = None
    refresh_token: str | None = None
    expiry: str | None = None
    scopes: list[str] = []


class OAuthCallbackResponse(BaseModel):
    message: str
    tokens: OAuthTokens


def _create_flow(settings: Settings) -> Flow:
    if not settings.oauth_configured:
        raise InternalError("OAuth2 is not properly configured. Set GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET.")
    client_config = {
        "web": {
            "client_id": settings.google_client_id,
            "client_secret": settings.google_client_secret,
            "auth_uri": GOOGLE_AUTH_URI,
            "token_uri": GOOGLE_TOKEN_URI,
            "redirect_uris": [settings.redirect_uri],
        }
    }
    # The callback builds a fresh flow, so no PKCE verifier survives between the two requests.
    return Flow.from_client_config(
        client_config,
        scopes=SCOPES,
        redirect_uri=settings.redirect_uri,
        autogenerate_code_verifier=False,
    )


# --- Auth router ---

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/url")
def auth_url(services: Services = Depends(get_services)) -> AuthUrlResponse:
    """Build the provider consent URL for offline, read-only Drive access."""
    flow = _create_flow(services.settings)
    url, _ = flow.authorization_url(access_type="offline", include_granted_scopes="true", prompt="consent")
    return AuthUrlResponse(auth_url=url)


@router.get("/callback")
def auth_callback(
    code: str | None = None,
    error: str | None = None,
    error_description: str | None = None,
    services: Services = Depends(get_services),
) -> OAuthCallbackResponse:
    """Exchange an authorization code for provider tokens and hand them back to the caller."""
    if error:
        raise InputError(f"OAuth authorization failed: {error} ({error_description or 'Unknown error'})")
    if not code:
        raise InputError("Authorization code is required")
    flow = _create_flow(services.settings)
    try:
        flow.fetch_token(code=code)
    except InvalidGrantError as e:
        raise InputError(
            "Authorization code has expired or already been used. Please try signing in again."
        ) from e
    except OAuth2Error as e:
        raise UpstreamUnavailable(f"Failed to exchange authorization code for tokens: {e}") from e
    creds = flow.credentials
    return OAuthCallbackResponse(
        message="Authentication successful",
        tokens=OAuthTokens(
            access_token=creds.token,
            refresh_token=creds.refresh_token,
            expiry=creds.expiry.isoformat() if creds.expiry else None,
            scopes=list(creds.scopes or []),
        ),
    )
