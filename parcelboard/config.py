"""Runtime settings, read once from the environment."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

DATA_DIR = Path(__file__).resolve().parents[1]
DEFAULT_DATA_PATH = DATA_DIR / "parcels.json"
DEFAULT_CORS_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    store: str = "json"
    data_path: Path = DEFAULT_DATA_PATH
    store_url: Optional[str] = None
    http_timeout: float = 10.0
    cors_origins: List[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    delay_hours: float = 48.0
    row_limit: int = 100
    log_level: str = "INFO"


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        logging.getLogger(__name__).warning("Ignoring non-numeric %s=%r", name, value)
        return default


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, float(default)))


def load_settings() -> Settings:
    origins = os.environ.get("PARCELBOARD_CORS_ORIGINS")
    cors_origins = [o.strip() for o in origins.split(",") if o.strip()] if origins else list(DEFAULT_CORS_ORIGINS)
    data_path = os.environ.get("PARCELBOARD_DATA_PATH")
    return Settings(
        store=(os.environ.get("PARCELBOARD_STORE") or "json").strip().lower(),
        data_path=Path(data_path) if data_path else DEFAULT_DATA_PATH,
        store_url=os.environ.get("PARCELBOARD_STORE_URL") or None,
        http_timeout=_env_float("PARCELBOARD_HTTP_TIMEOUT", 10.0),
        cors_origins=cors_origins,
        delay_hours=_env_float("PARCELBOARD_DELAY_HOURS", 48.0),
        row_limit=_env_int("PARCELBOARD_ROW_LIMIT", 100),
        log_level=(os.environ.get("PARCELBOARD_LOG_LEVEL") or "INFO").upper(),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
