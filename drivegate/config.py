from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    host: str = "127.0.0.1"
    port: int = 9000
    log_level: str = "INFO"
    log_json: bool = False

    # Upstream provider
    google_api_key: str = ""
    google_client_id: str = ""
    google_client_secret: str = ""
    redirect_uri: str = "http://localhost:3000/auth/callback"
    drive_api_base: str = "https://www.googleapis.com/drive/v3"

    # Durable identity backend; empty disables it
    redis_url: str = ""

    # Deadlines, in seconds
    listing_timeout: float = 4.0
    detail_timeout: float = 2.0
    path_hop_timeout: float = 1.5
    thumbnail_timeout: float = 2.0
    media_timeout: float = 10.0
    auth_timeout: float = 5.0
    identity_write_timeout: float = 10.0

    cache_ttl: float = 300.0
    breadcrumb_max_depth: int = 5
    fallback_policy: str = "any"  # "any" or "denied_only"

    embed_page_size: int = 24
    embed_max_page_size: int = 100

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def oauth_configured(self) -> bool:
        return bool(self.google_client_id and self.google_client_secret)


@lru_cache
def get_settings() -> Settings:
    return Settings()
