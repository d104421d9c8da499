from fastapi import APIRouter, Depends, Query, Request, Response

from drivegate.gateway import get_services, require_user
from drivegate.models.drive import EmbedFolderResponse, EmbedUser, FileRecord
from drivegate.models.identity import UserRecord
from drivegate.services.container import Services

router = APIRouter(prefix="/embed", tags=["embed"])


@router.get("/folder/{folder_id}", response_model=EmbedFolderResponse)
async def embed_folder(
    folder_id: str,
    request: Request,
    response: Response,
    search: str = "",
    cursor: str | None = None,
    page_size: int | None = Query(None, ge=1),
    user: UserRecord = Depends(require_user),
    services: Services = Depends(get_services),
):
    """List a folder for an embedded file browser, in the caller's best available mode."""
    settings = services.settings
    size = min(page_size or settings.embed_page_size, settings.embed_max_page_size)
    result = await services.access.fetch_listing(
        folder_id,
        services.access.mode_for_user(user),
        user.provider_access_token,
        search=search or None,
        cursor=cursor,
        page_size=size,
    )
    etag = f'W/"{folder_id}:{len(result.files)}:{result.next_cursor or ""}"'
    if request.headers.get("If-None-Match") == etag:
        return Response(status_code=304, headers={"ETag": etag})
    response.headers["ETag"] = etag
    response.headers["Cache-Control"] = "public, max-age=30, stale-while-revalidate=60"
    return EmbedFolderResponse(
        folder_id=folder_id,
        files=result.files,
        next_cursor=result.next_cursor,
        user=EmbedUser(id=user.id, email=user.email),
    )


@router.get("/file/{file_id}")
async def embed_file(
    file_id: str, user: UserRecord = Depends(require_user), services: Services = Depends(get_services)
) -> FileRecord:
    return await services.access.fetch_detail(
        file_id, services.access.mode_for_user(user), user.provider_access_token
    )
