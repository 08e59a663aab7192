"""Application configuration loaded from config.yaml + environment variables."""

from __future__ import annotations

import yaml
from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings

_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.yaml"


def _load_yaml() -> dict:
    if _CONFIG_PATH.exists():
        with open(_CONFIG_PATH) as f:
            return yaml.safe_load(f) or {}
    return {}


_yaml = _load_yaml()


class SyncConfig(BaseSettings):
    debounce_ms: int = 600
    bay_tick_seconds: float = 1.0


class BoardConfig(BaseSettings):
    grid_row_size: int = 8
    # Body-shop bays map 1:1 onto a workflow stage.
    body_bay_statuses: dict[int, str] = Field(default_factory=lambda: {
        7: "BODY_WORK",
        8: "PAINTING",
        9: "MECHANIC_WORK",
    })
    # IANA zone defining the shop day for calendar sync; empty uses the server zone.
    timezone: str = ""


class LocalStoreConfig(BaseSettings):
    snapshot_dir: str = "data/local"


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///data/ckflow.db"
    backend: str = "sql"  # sql | local
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    log_level: str = "INFO"
    sync: SyncConfig = Field(default_factory=SyncConfig)
    board: BoardConfig = Field(default_factory=BoardConfig)
    local_store: LocalStoreConfig = Field(default_factory=LocalStoreConfig)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


def get_settings() -> Settings:
    """Build Settings by merging YAML defaults with env overrides."""
    y = _yaml
    overrides = {}
    if "database" in y and "url" in y["database"]:
        overrides["database_url"] = y["database"]["url"]
    if "backend" in y:
        overrides["backend"] = y["backend"]
    if "log_level" in y:
        overrides["log_level"] = y["log_level"]
    return Settings(
        sync=SyncConfig(**y.get("sync", {})),
        board=BoardConfig(**y.get("board", {})),
        local_store=LocalStoreConfig(**y.get("local_store", {})),
        **overrides,
    )
