from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field

from dotenv import load_dotenv
from loguru import logger

env_path = os.path.join(os.path.dirname(__file__), ".env")
load_dotenv(env_path)

SUPPORTED_SPORTS = ("Soccer", "NBA", "NFL", "NHL")
FALLBACK_MODES = {"on_empty", "always", "never"}


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name, str(default)).strip().lower()
    return raw in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int, minimum: int, maximum: int) -> int:
    raw = os.getenv(name, str(default)).strip()
    try:
        value = int(raw)
    except ValueError:
        value = default
    return max(minimum, min(maximum, value))


def _env_float(name: str, default: float, minimum: float, maximum: float) -> float:
    raw = os.getenv(name, str(default)).strip()
    try:
        value = float(raw)
    except ValueError:
        value = default
    return max(minimum, min(maximum, value))


def _parse_csv_env(name: str, default: str) -> list[str]:
    raw = os.getenv(name, default)
    values = [item.strip() for item in raw.split(",") if item.strip()]
    return values or [item.strip() for item in default.split(",") if item.strip()]


def _parse_sports(values: list[str]) -> tuple[str, ...]:
    by_lower = {sport.lower(): sport for sport in SUPPORTED_SPORTS}
    picked = [by_lower[value.lower()] for value in values if value.lower() in by_lower]
    return tuple(dict.fromkeys(picked)) or SUPPORTED_SPORTS


@dataclass
class Config:
    api_sports_key: str = ""
    sportsdb_key: str = "3"
    admin_token: str = ""
    allow_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])
    cache_dir: str = "cache"

    memory_ttl_seconds: int = 300
    today_ttl_seconds: int = 180
    settled_ttl_seconds: int = 21600
    logo_ttl_hours: int = 168
    logo_negative_ttl_hours: int = 12
    logo_batch_size: int = 6

    request_timeout_seconds: float = 12.0
    request_retries: int = 3
    request_backoff_seconds: float = 0.4

    fallback_mode: str = "on_empty"
    enabled_sports: tuple[str, ...] = SUPPORTED_SPORTS
    strict_merge_key: bool = False
    refresh_interval_minutes: int = 0
    max_daily_api_calls: int = 100
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Config":
        fallback_mode = os.getenv("FALLBACK_MODE", "on_empty").strip().lower()
        if fallback_mode not in FALLBACK_MODES:
            logger.warning(f"Unknown FALLBACK_MODE={fallback_mode!r}; using on_empty.")
            fallback_mode = "on_empty"

        return cls(
            api_sports_key=os.getenv("API_SPORTS_KEY", "").strip(),
            sportsdb_key=os.getenv("SPORTSDB_KEY", "3").strip() or "3",
            admin_token=os.getenv("ADMIN_TOKEN", "").strip(),
            allow_origins=_parse_csv_env("ALLOW_ORIGINS", "http://localhost:3000"),
            cache_dir=os.path.normpath(os.getenv("CACHE_DIR", "cache")),
            memory_ttl_seconds=_env_int("MEMORY_TTL_SECONDS", 300, 10, 3600),
            today_ttl_seconds=_env_int("TODAY_TTL_SECONDS", 180, 10, 3600),
            settled_ttl_seconds=_env_int("SETTLED_TTL_SECONDS", 21600, 60, 7 * 86400),
            logo_ttl_hours=_env_int("LOGO_TTL_HOURS", 168, 1, 24 * 30),
            logo_negative_ttl_hours=_env_int("LOGO_NEGATIVE_TTL_HOURS", 12, 1, 24 * 7),
            logo_batch_size=_env_int("LOGO_BATCH_SIZE", 6, 1, 10),
            request_timeout_seconds=_env_float("REQUEST_TIMEOUT_SECONDS", 12.0, 1.0, 30.0),
            request_retries=_env_int("REQUEST_RETRIES", 3, 1, 5),
            request_backoff_seconds=_env_float("REQUEST_BACKOFF_SECONDS", 0.4, 0.0, 10.0),
            fallback_mode=fallback_mode,
            enabled_sports=_parse_sports(
                _parse_csv_env("ENABLED_SPORTS", ",".join(SUPPORTED_SPORTS))
            ),
            strict_merge_key=_env_flag("STRICT_MERGE_KEY", default=False),
            refresh_interval_minutes=_env_int("REFRESH_INTERVAL_MINUTES", 0, 0, 1440),
            max_daily_api_calls=_env_int("MAX_DAILY_API_CALLS", 100, 1, 10000),
            log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        )


def configure_logging(level: str = "INFO") -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{line} | {message} | {extra}",
    )
