import asyncio
import re

import httpx
import pytest
from fastapi.testclient import TestClient

from drivegate.config import Settings
from drivegate.services.container import build_services


# --- Canned API responses ---

DRIVE_API_FILE = {
    "id": "file123",
    "name": "report.pdf",
    "mimeType": "application/pdf",
    "size": "1024",
    "createdTime": "2025-01-01T00:00:00Z",
    "modifiedTime": "2025-01-02T00:00:00Z",
    "webViewLink": "https://drive.google.com/file/d/file123/view",
    "webContentLink": "https://drive.google.com/uc?id=file123",
    "thumbnailLink": "https://thumbs.example.com/file123",
    "iconLink": "https://icons.example.com/pdf.png",
    "owners": [{"displayName": "Alice", "emailAddress": "alice@example.com"}],
    "parents": ["folder789"],
}

DRIVE_API_FOLDER = {
    "id": "folder789",
    "name": "Lectures",
    "mimeType": "application/vnd.google-apps.folder",
    "parents": ["root1"],
}

DRIVE_API_ROOT = {
    "id": "root1",
    "name": "Shared",
    "mimeType": "application/vnd.google-apps.folder",
}


class FakeClock:
    """Manually advanced monotonic clock for TTL tests."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


_PARENT_QUERY = re.compile(r"^'([^']+)' in parents")


class FakeDrive:
    """In-memory Drive v3 stand-in served through ``httpx.MockTransport``.

    ``public_files`` are visible with the anonymous key, ``private_files``
    only with a bearer token in ``valid_tokens``.
    """

    def __init__(self):
        self.public_files: dict[str, dict] = {}
        self.private_files: dict[str, dict] = {}
        self.valid_tokens = {"good-token"}
        self.delay = 0.0
        self.private_delay = 0.0
        self.fail_status: int | None = None
        self.next_page_token: str | None = None
        self.thumbnail_bytes = b"\x89PNG thumb"
        self.media_bytes = b"%PDF-1.4 body"
        # Modes ("public", "private") whose Drive API calls answer 200 with an HTML page.
        self.malformed_modes: set[str] = set()
        self.requests: list[httpx.Request] = []
        self.cancelled = 0

    def add(self, record: dict, private: bool = False) -> None:
        (self.private_files if private else self.public_files)[record["id"]] = record

    def calls(self, path_suffix: str = "") -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(path_suffix)]

    def _visible(self, request: httpx.Request) -> dict[str, dict] | None:
        auth = request.headers.get("Authorization", "")
        if auth.startswith("Bearer "):
            if auth.removeprefix("Bearer ") not in self.valid_tokens:
                return None
            return {**self.public_files, **self.private_files}
        if request.url.params.get("key"):
            return self.public_files
        return None

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        delay = self.private_delay if "Authorization" in request.headers else self.delay
        if delay:
            try:
                await asyncio.sleep(delay)
            except asyncio.CancelledError:
                self.cancelled += 1
                raise
        if request.url.host != "thumbs.example.com":
            mode = "private" if "Authorization" in request.headers else "public"
            if mode in self.malformed_modes:
                return httpx.Response(200, text="<html>captive portal</html>", headers={"content-type": "text/html"})
        if self.fail_status:
            return httpx.Response(self.fail_status, json={"error": {"code": self.fail_status}})
        if request.url.host == "thumbs.example.com":
            return httpx.Response(200, content=self.thumbnail_bytes, headers={"content-type": "image/png"})

        visible = self._visible(request)
        if visible is None:
            return httpx.Response(403, json={"error": {"code": 403, "message": "forbidden"}})

        path = request.url.path
        if path.endswith("/files"):
            match = _PARENT_QUERY.match(request.url.params.get("q", ""))
            folder_id = match.group(1) if match else None
            files = [f for f in visible.values() if folder_id in f.get("parents", [])]
            body = {"files": files}
            if self.next_page_token:
                body["nextPageToken"] = self.next_page_token
            return httpx.Response(200, json=body)

        file_id = path.rsplit("/", 1)[-1]
        if file_id not in visible:
            return httpx.Response(404, json={"error": {"code": 404, "message": "not found"}})
        if request.url.params.get("alt") == "media":
            mime_type = visible[file_id].get("mimeType", "application/octet-stream")
            return httpx.Response(200, content=self.media_bytes, headers={"content-type": mime_type})
        return httpx.Response(200, json=visible[file_id])


@pytest.fixture
def fake_drive():
    drive = FakeDrive()
    drive.add(DRIVE_API_FILE)
    drive.add(DRIVE_API_FOLDER)
    drive.add(DRIVE_API_ROOT)
    return drive


@pytest.fixture
def http_client(fake_drive):
    return httpx.AsyncClient(transport=httpx.MockTransport(fake_drive.handler))


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        google_api_key="anon-key",
        google_client_id="",
        google_client_secret="",
        redis_url="",
        drive_api_base="https://drive.test/drive/v3",
    )


@pytest.fixture
def services(settings, http_client):
    return build_services(settings, http=http_client)


@pytest.fixture
def api_client(services):
    """FastAPI TestClient for router tests."""
    from drivegate.main import create_api
    return TestClient(create_api(services))
