from typing import AsyncIterator

import httpx
from pydantic import ValidationError

from drivegate.exceptions import UpstreamDenied, UpstreamNotFound, UpstreamUnavailable
from drivegate.models.drive import FileRecord, ListingResponse, Owner


FILE_FIELDS = (
    "id, name, mimeType, size, createdTime, modifiedTime, webViewLink, webContentLink, "
    "thumbnailLink, iconLink, owners(displayName, emailAddress), parents"
)
LIST_FIELDS = f"nextPageToken, files({FILE_FIELDS})"
PARENT_FIELDS = "id, name, parents"


def escape_query_value(value: str) -> str:
    """Escape a literal for use inside a single-quoted Drive query string."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def folder_query(folder_id: str, search: str | None = None) -> str:
    query = f"'{escape_query_value(folder_id)}' in parents and trashed = false"
    if search:
        query += f" and name contains '{escape_query_value(search)}'"
    return query


def _parse_file(f: dict) -> FileRecord:
    size = f.get("size")
    return FileRecord(
        id=f["id"],
        name=f.get("name", ""),
        mime_type=f.get("mimeType", ""),
        size=int(size) if size is not None else None,
        created_time=f.get("createdTime"),
        modified_time=f.get("modifiedTime"),
        web_view_link=f.get("webViewLink"),
        web_content_link=f.get("webContentLink"),
        thumbnail_link=f.get("thumbnailLink"),
        icon_link=f.get("iconLink"),
        owners=[
            Owner(display_name=o.get("displayName"), email=o.get("emailAddress"))
            for o in f.get("owners", [])
        ],
        parents=f.get("parents", []),
    )


def _raise_for_status(response: httpx.Response, mode: str, resource_id: str) -> None:
    status = response.status_code
    if status < 400:
        return
    if status in (401, 403):
        raise UpstreamDenied(f"Access denied to {resource_id} ({mode})", mode=mode, resource_id=resource_id)
    if status == 404:
        raise UpstreamNotFound(f"{resource_id} not found ({mode})", mode=mode, resource_id=resource_id)
    raise UpstreamUnavailable(
        f"Drive API error {status} for {resource_id} ({mode})", mode=mode, resource_id=resource_id
    )


class DriveClient:
    """Read-only Drive v3 client bound to one authorization mode."""

    mode = ""

    def __init__(self, http: httpx.AsyncClient, base_url: str):
        self.http = http
        self.base_url = base_url.rstrip("/")

    def _auth_params(self) -> dict:
        return {}

    def _auth_headers(self) -> dict:
        return {}

    async def _get_json(self, path: str, params: dict, resource_id: str) -> dict:
        try:
            response = await self.http.get(
                f"{self.base_url}{path}",
                params={**params, **self._auth_params()},
                headers=self._auth_headers(),
            )
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(
                f"Drive API request failed for {resource_id} ({self.mode}): {e}",
                mode=self.mode,
                resource_id=resource_id,
            ) from e
        _raise_for_status(response, self.mode, resource_id)
        try:
            data = response.json()
        except ValueError as e:
            raise self._malformed(resource_id, e) from e
        if not isinstance(data, dict):
            raise self._malformed(resource_id, f"expected an object, got {type(data).__name__}")
        return data

    def _malformed(self, resource_id: str, detail) -> UpstreamUnavailable:
        return UpstreamUnavailable(
            f"Malformed Drive API response for {resource_id} ({self.mode}): {detail}",
            mode=self.mode,
            resource_id=resource_id,
        )

    async def list_files(
        self,
        folder_id: str,
        search: str | None = None,
        cursor: str | None = None,
        page_size: int | None = None,
    ) -> ListingResponse:
        """List the non-trashed children of a folder, ordered by name."""
        params = {"q": folder_query(folder_id, search), "fields": LIST_FIELDS, "orderBy": "name"}
        if cursor:
            params["pageToken"] = cursor
        if page_size:
            params["pageSize"] = page_size
        data = await self._get_json("/files", params, folder_id)
        try:
            return ListingResponse(
                files=[_parse_file(f) for f in data.get("files", [])],
                next_cursor=data.get("nextPageToken"),
            )
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            raise self._malformed(folder_id, e) from e

    async def get_file(self, file_id: str, fields: str = FILE_FIELDS) -> FileRecord:
        data = await self._get_json(f"/files/{file_id}", {"fields": fields}, file_id)
        try:
            return _parse_file(data)
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            raise self._malformed(file_id, e) from e

    async def stream_media(self, file_id: str) -> tuple[str | None, AsyncIterator[bytes]]:
        """Open a file's content (``files.get`` with ``alt=media``) for streaming."""
        return await self.stream_url(
            f"{self.base_url}/files/{file_id}", file_id, params={"alt": "media", **self._auth_params()}
        )

    async def stream_url(
        self, url: str, resource_id: str, params: dict | None = None
    ) -> tuple[str | None, AsyncIterator[bytes]]:
        """Open ``url`` with this client's auth headers and return (content type, byte iterator).

        The response is closed once the iterator is exhausted or closed.
        """
        request = self.http.build_request("GET", url, params=params, headers=self._auth_headers())
        try:
            response = await self.http.send(request, stream=True)
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(
                f"Fetch failed for {resource_id} ({self.mode}): {e}", mode=self.mode, resource_id=resource_id
            ) from e
        try:
            _raise_for_status(response, self.mode, resource_id)
        except Exception:
            await response.aclose()
            raise

        async def body() -> AsyncIterator[bytes]:
            try:
                async for chunk in response.aiter_bytes():
                    yield chunk
            finally:
                await response.aclose()

        return response.headers.get("content-type"), body()


class PublicClient(DriveClient):
    """Anonymous access, authorized by the server's API key."""

    mode = "public"

    def __init__(self, http: httpx.AsyncClient, base_url: str, api_key: str):
        super().__init__(http, base_url)
        self.api_key = api_key

    def _auth_params(self) -> dict:
        return {"key": self.api_key}


class PrivateClient(DriveClient):
    """Credentialed access on behalf of a user's OAuth access token."""

    mode = "private"

    def __init__(self, http: httpx.AsyncClient, base_url: str, access_token: str):
        super().__init__(http, base_url)
        self.access_token = access_token

    def _auth_headers(self) -> dict:
        return {"Authorization": f"Bearer {self.access_token}"}
