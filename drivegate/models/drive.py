from pydantic import ConfigDict

from drivegate.models.common import CamelModel


class Owner(CamelModel):
    model_config = ConfigDict(frozen=True)

    display_name: str | None = None
    email: str | None = None


class FileRecord(CamelModel):
    """Snapshot of one provider file as of the fetch; never mutated locally."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    mime_type: str = ""
    size: int | None = None
    created_time: str | None = None
    modified_time: str | None = None
    web_view_link: str | None = None
    web_content_link: str | None = None
    thumbnail_link: str | None = None
    icon_link: str | None = None
    owners: list[Owner] = []
    parents: list[str] = []


class ListingResponse(CamelModel):
    files: list[FileRecord]
    next_cursor: str | None = None


class FolderPathEntry(CamelModel):
    id: str
    name: str


class EmbedUser(CamelModel):
    id: str
    email: str


class EmbedFolderResponse(CamelModel):
    folder_id: str
    files: list[FileRecord]
    next_cursor: str | None = None
    user: EmbedUser
