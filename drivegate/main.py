from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from drivegate.auth import router as auth_router
from drivegate.config import get_settings
from drivegate.exceptions import GatewayError
from drivegate.gateway import get_services
from drivegate.logging_config import configure_logging
from drivegate.models.common import ErrorResponse, StatusResponse
from drivegate.routers.access import router as access_router
from drivegate.routers.embed import router as embed_router
from drivegate.routers.identity import router as identity_router
from drivegate.services.container import Services, build_services

logger = structlog.get_logger(__name__)


def _error_body(error_code: str, message: str) -> dict:
    return ErrorResponse(error=message, error_code=error_code).model_dump()


def create_api(services: Services | None = None) -> FastAPI:
    """Build the FastAPI app around one set of process-wide components."""
    services = services or build_services(get_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(services.settings.log_level, services.settings.log_json)
        yield
        await services.aclose()

    api = FastAPI(title="Drivegate", version="0.1.0", lifespan=lifespan)
    api.state.services = services
    api.include_router(auth_router)
    api.include_router(access_router)
    api.include_router(identity_router)
    api.include_router(embed_router)

    @api.get("/api/status")
    def api_status(services: Services = Depends(get_services)) -> StatusResponse:
        settings = services.settings
        return StatusResponse(
            upstream_public=bool(settings.google_api_key),
            upstream_oauth=settings.oauth_configured,
            durable_identity_backend=bool(settings.redis_url),
            cache_entries=len(services.cache),
        )

    # --- Exception handlers ---

    @api.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        if exc.status_code >= 500:
            logger.error("request_failed", path=request.url.path, error=type(exc).__name__, detail=str(exc))
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.error_code, str(exc)))

    @api.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content=_error_body("invalid_input", str(exc.errors())))

    @api.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("unexpected_error", path=request.url.path)
        return JSONResponse(status_code=500, content=_error_body("internal_error", "Unexpected server error"))

    return api


def run():
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_json)
    uvicorn.run(
        "drivegate.main:create_api",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
