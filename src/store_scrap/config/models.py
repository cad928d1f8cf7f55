from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field


class FileRotationSettings(BaseModel):
    """
    Date-based rotation settings (daily).

    This maps cleanly to Python's standard library TimedRotatingFileHandler behavior.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    backup_count: int = 7


class FileLoggingSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str = ""
    rotation: FileRotationSettings = FileRotationSettings()


class LoggingSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    level: str = "INFO"
    file: FileLoggingSettings = FileLoggingSettings()


class StorageSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    countries_path: str = "countries.json"
    data_dir: str = "data"
    lookup_cache_path: str = "cache/itunes_cache.json"


class RefreshSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    # On-demand result cache
    cache_ttl_seconds: float = Field(default=300.0, ge=0)

    # Snapshot batches
    batch_concurrency: int = Field(default=4, ge=1)
    incremental_size: int = Field(default=20, ge=1)

    # Upstream calls
    retry_delays_seconds: Sequence[float] = (0.3, 0.8, 1.5)
    request_timeout_seconds: float = Field(default=20.0, gt=0)
    user_agent: str = "store-scrap/1.0"


class ServerSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    host: str = "0.0.0.0"
    port: int = 8787


class AppleSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    rss_base_url: str = "https://rss.applemarketingtools.com/api/v2"
    lookup_url: str = "https://itunes.apple.com/lookup"
    rss_limit: int = 100
    target_size: int = 50
    lookup_ttl_seconds: float = 60 * 60 * 24 * 7
    lookup_concurrency: int = Field(default=6, ge=1)

    # Feed fallback order per list
    new_feeds: Sequence[str] = ("top-free", "top-grossing", "top-paid")
    updated_feeds: Sequence[str] = ("top-grossing", "top-free", "top-paid")


class GoogleSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    base_url: str = "https://play.google.com"
    new_collection_path: str = "/store/apps/collection/cluster?clp=0g4jCiEKG3RvcHNlbGxpbmdfbmV3X2ZyZWVfR0FNRRAHGAM%3D"
    updated_collection_path: str = "/store/apps/collection/cluster?clp=0g4fCh0KF3RvcHNlbGxpbmdfZnJlZV9HQU1FEAcYAw%3D%3D"
    language: str = "en"
    target_size: int = 50


class AppConfig(BaseModel):
    """Effective runtime configuration after applying all precedence rules."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    logging: LoggingSettings = LoggingSettings()
    storage: StorageSettings = StorageSettings()
    refresh: RefreshSettings = RefreshSettings()
    server: ServerSettings = ServerSettings()
    apple: AppleSettings = AppleSettings()
    google: GoogleSettings = GoogleSettings()


@dataclass(frozen=True, slots=True)
class ConfigLoadRequest:
    """
    Optional inputs for a configuration loader.

    Implementations may use these to control where configuration is read from.
    """

    yaml_path: str = "data/config/config.yaml"
    env_prefix: str = "STORE_SCRAP__"
    dotenv_path: Optional[str] = "data/.env"
