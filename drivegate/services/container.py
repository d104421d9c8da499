from dataclasses import dataclass

import httpx

from drivegate.cache import TTLCache
from drivegate.config import Settings
from drivegate.services.access import AccessModeResolver, Timeouts
from drivegate.services.breadcrumbs import BreadcrumbResolver
from drivegate.services.identity import IdentityStore, RedisUserBackend


@dataclass
class Services:
    """Process-wide components, built once and handed to the routers."""

    settings: Settings
    http: httpx.AsyncClient
    cache: TTLCache
    access: AccessModeResolver
    breadcrumbs: BreadcrumbResolver
    identity: IdentityStore

    async def aclose(self) -> None:
        await self.http.aclose()
        await self.identity.close()


def build_services(settings: Settings, http: httpx.AsyncClient | None = None) -> Services:
    http = http or httpx.AsyncClient(follow_redirects=True)
    cache = TTLCache(settings.cache_ttl)
    access = AccessModeResolver(
        http,
        cache,
        base_url=settings.drive_api_base,
        public_api_key=settings.google_api_key,
        timeouts=Timeouts(
            listing=settings.listing_timeout,
            detail=settings.detail_timeout,
            path_hop=settings.path_hop_timeout,
            thumbnail=settings.thumbnail_timeout,
            media=settings.media_timeout,
        ),
        fallback_policy=settings.fallback_policy,
    )
    durable = RedisUserBackend.from_url(settings.redis_url) if settings.redis_url else None
    return Services(
        settings=settings,
        http=http,
        cache=cache,
        access=access,
        breadcrumbs=BreadcrumbResolver(access, cache, max_depth=settings.breadcrumb_max_depth),
        identity=IdentityStore(durable),
    )
