import structlog

from drivegate.cache import MISS, TTLCache, path_key
from drivegate.exceptions import GatewayError
from drivegate.models.drive import FolderPathEntry
from drivegate.services.access import AccessMode, AccessModeResolver

logger = structlog.get_logger(__name__)

DEFAULT_MAX_DEPTH = 5


class BreadcrumbResolver:
    """Builds the root-to-leaf folder trail for navigation.

    Results are best effort: the walk stops at the depth cap or at the first
    failed hop and returns whatever it has collected so far.
    """

    def __init__(self, access: AccessModeResolver, cache: TTLCache, max_depth: int = DEFAULT_MAX_DEPTH):
        self.access = access
        self.cache = cache
        self.max_depth = max_depth

    async def _hop(
        self, folder_id: str, mode: AccessMode, credentials: str | None
    ) -> tuple[tuple[str, str, list[str]], AccessMode]:
        """Return one hop and the mode that served it. Hops are cached under the serving mode."""
        cached = self.cache.get(path_key(folder_id, mode.value))
        if cached is not MISS:
            return cached, mode
        record, served_mode = await self.access.fetch_parent_link(folder_id, mode, credentials)
        hop = (record.id, record.name, list(record.parents))
        self.cache.set(path_key(folder_id, served_mode.value), hop)
        return hop, served_mode

    async def resolve_path(
        self, folder_id: str, mode: AccessMode | str, credentials: str | None = None
    ) -> list[FolderPathEntry]:
        """Walk parent links from ``folder_id`` towards the root.

        Once a private hop falls back to public access, the rest of the walk
        stays public, so one request makes at most one fallback.
        """
        mode = AccessMode(mode)
        path: list[FolderPathEntry] = []
        current_id: str | None = folder_id
        while current_id and len(path) < self.max_depth:
            try:
                (hop_id, name, parents), served_mode = await self._hop(current_id, mode, credentials)
            except GatewayError as e:
                logger.info(
                    "breadcrumb_truncated",
                    folder_id=folder_id,
                    stopped_at=current_id,
                    mode=mode.value,
                    depth=len(path),
                    error=type(e).__name__,
                )
                break
            if served_mode is not mode:
                mode, credentials = served_mode, None
            path.insert(0, FolderPathEntry(id=hop_id, name=name))
            current_id = parents[0] if parents else None
        return path
