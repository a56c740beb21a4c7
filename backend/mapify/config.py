"""Environment-backed settings for the Mapify API.

Values come from the process environment, with a local ``.env`` file loaded
first for development.
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()

DEFAULT_OVERPASS_URL = "https://overpass-api.de/api/interpreter"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


@dataclass(frozen=True)
class Settings:
    """Runtime configuration. Build with ``Settings.from_env()`` in production."""

    # Key store: "firestore" or "memory"
    key_store_backend: str = "firestore"
    firebase_project_id: str | None = None

    # Key cache: "memory" or "redis"
    key_cache_backend: str = "memory"
    redis_url: str = "redis://localhost:6379"
    key_cache_ttl_seconds: int = 300
    key_cache_max_entries: int = 1000
    invalidate_cache_on_revoke: bool = True

    # Overpass upstream
    overpass_url: str = DEFAULT_OVERPASS_URL
    overpass_timeout_seconds: float = 30.0
    overpass_query_timeout_seconds: int = 25
    overpass_max_retries: int = 0
    max_results: int = 50

    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        origins = os.getenv("MAPIFY_CORS_ORIGINS", "*")
        return cls(
            key_store_backend=os.getenv("MAPIFY_KEY_STORE", "firestore").strip().lower(),
            firebase_project_id=os.getenv("FIREBASE_PROJECT_ID") or None,
            key_cache_backend=os.getenv("MAPIFY_KEY_CACHE", "memory").strip().lower(),
            redis_url=os.getenv("REDIS_URL", "redis://localhost:6379"),
            key_cache_ttl_seconds=_env_int("MAPIFY_KEY_CACHE_TTL_SECONDS", 300),
            key_cache_max_entries=_env_int("MAPIFY_KEY_CACHE_MAX_ENTRIES", 1000),
            invalidate_cache_on_revoke=_env_bool("MAPIFY_INVALIDATE_ON_REVOKE", True),
            overpass_url=os.getenv("OVERPASS_URL", DEFAULT_OVERPASS_URL),
            overpass_timeout_seconds=_env_float("OVERPASS_TIMEOUT_SECONDS", 30.0),
            overpass_query_timeout_seconds=_env_int("OVERPASS_QUERY_TIMEOUT_SECONDS", 25),
            overpass_max_retries=_env_int("OVERPASS_MAX_RETRIES", 0),
            max_results=_env_int("MAPIFY_MAX_RESULTS", 50),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, read once from the environment."""
    return Settings.from_env()
