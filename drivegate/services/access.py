"""Mode selection, caching and private-to-public fallback for provider reads.

Every read goes through ``AccessModeResolver._fetch``: cache lookup, a
deadline-bounded upstream call through the mode's client, cache population,
and at most one public-mode retry when a private-mode call fails.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable

import httpx
import structlog

from drivegate.cache import MISS, TTLCache, detail_key, listing_key
from drivegate.deadline import with_deadline
from drivegate.exceptions import (
    InputError,
    InternalError,
    MissingCredentialError,
    UpstreamDenied,
    UpstreamError,
    UpstreamNotFound,
    UpstreamTimeout,
)
from drivegate.models.drive import FileRecord, ListingResponse
from drivegate.models.identity import UserRecord
from drivegate.services.drive_client import PARENT_FIELDS, DriveClient, PrivateClient, PublicClient

logger = structlog.get_logger(__name__)

PDF_MIME_TYPE = "application/pdf"


class AccessMode(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class FallbackPolicy(str, Enum):
    ANY = "any"
    DENIED_ONLY = "denied_only"


@dataclass(frozen=True)
class Timeouts:
    listing: float = 4.0
    detail: float = 2.0
    path_hop: float = 1.5
    thumbnail: float = 2.0
    media: float = 10.0


@dataclass
class MediaStream:
    content_type: str | None
    body: AsyncIterator[bytes]
    name: str | None = None


class AccessModeResolver:
    def __init__(
        self,
        http: httpx.AsyncClient,
        cache: TTLCache,
        base_url: str,
        public_api_key: str = "",
        timeouts: Timeouts = Timeouts(),
        fallback_policy: FallbackPolicy | str = FallbackPolicy.ANY,
    ):
        self.http = http
        self.cache = cache
        self.base_url = base_url
        self.public_api_key = public_api_key
        self.timeouts = timeouts
        self.fallback_policy = FallbackPolicy(fallback_policy)

    @staticmethod
    def mode_for_user(user: UserRecord) -> AccessMode:
        """Private access only when the user has both provider tokens on file."""
        return AccessMode.PRIVATE if user.has_provider_credentials else AccessMode.PUBLIC

    def client_for(self, mode: AccessMode | str, credentials: str | None = None) -> DriveClient:
        mode = AccessMode(mode)
        if mode is AccessMode.PRIVATE:
            if not credentials:
                raise MissingCredentialError("Private access requires a provider access token")
            return PrivateClient(self.http, self.base_url, credentials)
        if not self.public_api_key:
            raise InternalError("Public access is not configured: GOOGLE_API_KEY is not set")
        return PublicClient(self.http, self.base_url, self.public_api_key)

    def _should_fall_back(self, error: UpstreamError) -> bool:
        if not self.public_api_key:
            return False
        if self.fallback_policy is FallbackPolicy.DENIED_ONLY:
            return isinstance(error, UpstreamDenied)
        return True

    async def _attempt(
        self,
        operation: str,
        resource_id: str,
        mode: AccessMode,
        credentials: str | None,
        call: Callable[[DriveClient], Awaitable[Any]],
        timeout: float,
        cache_key: Callable[[str], str] | None,
    ) -> Any:
        key = cache_key(mode.value) if cache_key else None
        if key is not None:
            cached = self.cache.get(key)
            if cached is not MISS:
                logger.debug("cache_hit", key=key)
                return cached

        client = self.client_for(mode, credentials)
        result = await with_deadline(
            call(client),
            timeout,
            on_timeout=lambda: UpstreamTimeout(
                f"Drive {operation} for {resource_id} timed out after {timeout:g}s ({mode.value})",
                mode=mode.value,
                resource_id=resource_id,
            ),
        )
        if key is not None:
            self.cache.set(key, result)
        return result

    async def _fetch(
        self,
        operation: str,
        resource_id: str,
        mode: AccessMode | str,
        credentials: str | None,
        call: Callable[[DriveClient], Awaitable[Any]],
        timeout: float,
        cache_key: Callable[[str], str] | None = None,
    ) -> Any:
        result, _ = await self._fetch_served(operation, resource_id, mode, credentials, call, timeout, cache_key)
        return result

    async def _fetch_served(
        self,
        operation: str,
        resource_id: str,
        mode: AccessMode | str,
        credentials: str | None,
        call: Callable[[DriveClient], Awaitable[Any]],
        timeout: float,
        cache_key: Callable[[str], str] | None = None,
    ) -> tuple[Any, AccessMode]:
        """Like ``_fetch`` but also returns the mode that actually served the result."""
        mode = AccessMode(mode)
        try:
            result = await self._attempt(operation, resource_id, mode, credentials, call, timeout, cache_key)
            return result, mode
        except UpstreamError as e:
            if mode is not AccessMode.PRIVATE or not self._should_fall_back(e):
                logger.warning(
                    "upstream_failed",
                    operation=operation,
                    resource_id=resource_id,
                    mode=mode.value,
                    error=type(e).__name__,
                    detail=str(e),
                )
                raise
            # Public-visibility data is served in place of the private failure.
            logger.warning(
                "fallback_to_public",
                operation=operation,
                resource_id=resource_id,
                error=type(e).__name__,
                detail=str(e),
            )
        try:
            result = await self._attempt(
                operation, resource_id, AccessMode.PUBLIC, None, call, timeout, cache_key
            )
            return result, AccessMode.PUBLIC
        except UpstreamError as e:
            logger.warning(
                "upstream_failed",
                operation=operation,
                resource_id=resource_id,
                mode=AccessMode.PUBLIC.value,
                error=type(e).__name__,
                detail=str(e),
                after_fallback=True,
            )
            raise

    async def fetch_listing(
        self,
        folder_id: str,
        mode: AccessMode | str,
        credentials: str | None = None,
        search: str | None = None,
        cursor: str | None = None,
        page_size: int | None = None,
    ) -> ListingResponse:
        """List a folder. Only first pages at the default page size are cached."""
        if not folder_id:
            raise InputError("Folder ID is required")

        def first_page_key(m: str) -> str:
            return listing_key(m, folder_id, search)

        return await self._fetch(
            "listing",
            folder_id,
            mode,
            credentials,
            lambda client: client.list_files(folder_id, search=search, cursor=cursor, page_size=page_size),
            self.timeouts.listing,
            None if cursor or page_size else first_page_key,
        )

    async def fetch_detail(self, file_id: str, mode: AccessMode | str, credentials: str | None = None) -> FileRecord:
        if not file_id:
            raise InputError("File ID is required")
        return await self._fetch(
            "detail",
            file_id,
            mode,
            credentials,
            lambda client: client.get_file(file_id),
            self.timeouts.detail,
            lambda m: detail_key(m, file_id),
        )

    async def fetch_parent_link(
        self, folder_id: str, mode: AccessMode | str, credentials: str | None = None
    ) -> tuple[FileRecord, AccessMode]:
        """Fetch only ``{id, name, parents}`` for one breadcrumb hop; not cached here.

        Returns the record and the mode that served it, which is public after a fallback.
        """
        return await self._fetch_served(
            "path_hop",
            folder_id,
            mode,
            credentials,
            lambda client: client.get_file(folder_id, fields=PARENT_FIELDS),
            self.timeouts.path_hop,
        )

    async def fetch_thumbnail(
        self, file_id: str, mode: AccessMode | str, credentials: str | None = None
    ) -> MediaStream:
        """Resolve a file's thumbnail link and open it for streaming."""
        if not file_id:
            raise InputError("File ID is required")

        async def open_thumbnail(client: DriveClient) -> MediaStream:
            meta = await client.get_file(file_id, fields="id, thumbnailLink")
            if not meta.thumbnail_link:
                raise UpstreamNotFound(
                    f"Thumbnail not available for {file_id}", mode=client.mode, resource_id=file_id
                )
            content_type, body = await client.stream_url(meta.thumbnail_link, file_id)
            return MediaStream(content_type=content_type, body=body)

        return await self._fetch("thumbnail", file_id, mode, credentials, open_thumbnail, self.timeouts.thumbnail)

    async def fetch_pdf(self, file_id: str, mode: AccessMode | str, credentials: str | None = None) -> MediaStream:
        """Open a PDF's content for streaming. Other file types are rejected with ``InputError``."""
        if not file_id:
            raise InputError("File ID is required")

        async def open_pdf(client: DriveClient) -> MediaStream:
            meta = await client.get_file(file_id, fields="id, name, mimeType")
            if meta.mime_type != PDF_MIME_TYPE:
                raise InputError(f"File is not a PDF: {meta.mime_type or 'unknown type'}")
            _, body = await client.stream_media(file_id)
            return MediaStream(content_type=PDF_MIME_TYPE, body=body, name=meta.name)

        return await self._fetch("pdf", file_id, mode, credentials, open_pdf, self.timeouts.media)
