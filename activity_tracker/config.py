from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_TIMEZONE = "Atlantic/Canary"
# Canary Islands / Spain public holidays (not exhaustive).
DEFAULT_HOLIDAYS = frozenset(
    {"01-01", "01-06", "05-01", "08-15", "10-12", "11-01", "12-06", "12-08", "12-25"}
)
DEFAULT_CACHE_PATH = "activity_cache.db"


@dataclass(frozen=True, slots=True)
class Config:
    timezone: ZoneInfo
    holidays: frozenset[str]
    monthly_min_hours: float
    monthly_max_hours: float
    cache_path: Path
    cache_refresh_minutes: int


def _env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _positive_int_env(name: str, default: int) -> int:
    value = _env(name, str(default))
    try:
        parsed = int(value)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer") from exc

    if parsed <= 0:
        raise ValueError(f"Environment variable {name} must be positive")
    return parsed


def _positive_float_env(name: str, default: float) -> float:
    value = _env(name, str(default))
    try:
        parsed = float(value)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be a number") from exc

    if parsed <= 0:
        raise ValueError(f"Environment variable {name} must be positive")
    return parsed


def _timezone_from_env(name: str) -> ZoneInfo:
    tz_name = _env(name, DEFAULT_TIMEZONE)
    try:
        return ZoneInfo(tz_name)
    except ZoneInfoNotFoundError as exc:
        raise ValueError(f"Invalid timezone in {name}: {tz_name}") from exc


def _holidays_from_env(name: str) -> frozenset[str]:
    raw = os.getenv(name)
    if raw is None:
        return DEFAULT_HOLIDAYS

    holidays = frozenset(item.strip() for item in raw.split(",") if item.strip())
    for item in holidays:
        month, _, day = item.partition("-")
        if not (len(month) == 2 and len(day) == 2 and month.isdigit() and day.isdigit()):
            raise ValueError(f"Environment variable {name} must list MM-DD dates, got {item!r}")
    return holidays


def load_config() -> Config:
    min_hours = _positive_float_env("MONTHLY_MIN_HOURS", 75.0)
    max_hours = _positive_float_env("MONTHLY_MAX_HOURS", 95.0)
    if min_hours >= max_hours:
        raise ValueError("MONTHLY_MIN_HOURS must be lower than MONTHLY_MAX_HOURS")

    return Config(
        timezone=_timezone_from_env("ACTIVITY_TIMEZONE"),
        holidays=_holidays_from_env("PUBLIC_HOLIDAYS"),
        monthly_min_hours=min_hours,
        monthly_max_hours=max_hours,
        cache_path=Path(_env("ACTIVITY_CACHE_PATH", DEFAULT_CACHE_PATH)),
        cache_refresh_minutes=_positive_int_env("CACHE_REFRESH_MINUTES", 60),
    )
