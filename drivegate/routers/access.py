from urllib.parse import quote

from fastapi import APIRouter, Depends, Query, Request
from starlette.responses import StreamingResponse

from drivegate.exceptions import MissingCredentialError
from drivegate.gateway import bearer_token, get_services
from drivegate.models.drive import FileRecord, FolderPathEntry, ListingResponse
from drivegate.services.access import AccessMode
from drivegate.services.container import Services

router = APIRouter(prefix="/access", tags=["access"])


def _credentials(mode: AccessMode, request: Request) -> str | None:
    if mode is AccessMode.PUBLIC:
        return None
    token = bearer_token(request)
    if not token:
        raise MissingCredentialError("Access token required for private access")
    return token


@router.get("/{mode}/listing/{folder_id}")
async def listing(
    mode: AccessMode,
    folder_id: str,
    request: Request,
    search: str | None = None,
    cursor: str | None = None,
    page_size: int | None = Query(None, ge=1, le=1000),
    services: Services = Depends(get_services),
) -> ListingResponse:
    return await services.access.fetch_listing(
        folder_id, mode, _credentials(mode, request), search=search or None, cursor=cursor, page_size=page_size
    )


@router.get("/{mode}/detail/{file_id}")
async def detail(
    mode: AccessMode, file_id: str, request: Request, services: Services = Depends(get_services)
) -> FileRecord:
    return await services.access.fetch_detail(file_id, mode, _credentials(mode, request))


@router.get("/{mode}/path/{folder_id}")
async def path(
    mode: AccessMode, folder_id: str, request: Request, services: Services = Depends(get_services)
) -> list[FolderPathEntry]:
    return await services.breadcrumbs.resolve_path(folder_id, mode, _credentials(mode, request))


@router.get("/{mode}/thumbnail/{file_id}")
async def thumbnail(
    mode: AccessMode, file_id: str, request: Request, services: Services = Depends(get_services)
) -> StreamingResponse:
    thumb = await services.access.fetch_thumbnail(file_id, mode, _credentials(mode, request))
    return StreamingResponse(
        thumb.body,
        media_type=thumb.content_type or "application/octet-stream",
        headers={"Cache-Control": "public, max-age=3600"},
    )


@router.get("/{mode}/pdf/{file_id}")
async def pdf(
    mode: AccessMode, file_id: str, request: Request, services: Services = Depends(get_services)
) -> StreamingResponse:
    media = await services.access.fetch_pdf(file_id, mode, _credentials(mode, request))
    filename = quote(media.name or file_id)
    return StreamingResponse(
        media.body,
        media_type=media.content_type,
        headers={"Content-Disposition": f"inline; filename*=UTF-8''{filename}"},
    )
