from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Metadata cache
    cache_backend: Literal["file", "mongo"] = "file"
    cache_dir: Path = Path("_links")

    # MongoDB (only used when cache_backend == "mongo")
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "linkpreview"
    mongo_collection: str = "link_metadata"
    mongo_max_pool_size: int = 10

    # HTTP metadata source
    http_timeout: float = 10.0
    http_max_retries: int = 2
    http_verify_ssl: bool = True  # set False behind corporate SSL-inspection proxies
    http_user_agent: str = "LinkPreviewBot/1.0"

    # Resolver
    fetch_timeout: Optional[float] = None  # unset: a fetch may take as long as it takes
    coalesce_requests: bool = True

    # Logging
    log_level: str = "INFO"


settings = Settings()
