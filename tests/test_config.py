from pathlib import Path

import pytest

from activity_tracker.config import DEFAULT_HOLIDAYS, load_config

ENV_VARS = [
    "ACTIVITY_TIMEZONE",
    "PUBLIC_HOLIDAYS",
    "MONTHLY_MIN_HOURS",
    "MONTHLY_MAX_HOURS",
    "ACTIVITY_CACHE_PATH",
    "CACHE_REFRESH_MINUTES",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    config = load_config()

    assert config.timezone.key == "Atlantic/Canary"
    assert config.holidays == DEFAULT_HOLIDAYS
    assert (config.monthly_min_hours, config.monthly_max_hours) == (75.0, 95.0)
    assert config.cache_path == Path("activity_cache.db")
    assert config.cache_refresh_minutes == 60


def test_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ACTIVITY_TIMEZONE", "Europe/Madrid")
    monkeypatch.setenv("PUBLIC_HOLIDAYS", "01-01, 12-25")
    monkeypatch.setenv("MONTHLY_MIN_HOURS", "40")
    monkeypatch.setenv("MONTHLY_MAX_HOURS", "60.5")
    monkeypatch.setenv("CACHE_REFRESH_MINUTES", "15")

    config = load_config()

    assert config.timezone.key == "Europe/Madrid"
    assert config.holidays == frozenset({"01-01", "12-25"})
    assert (config.monthly_min_hours, config.monthly_max_hours) == (40.0, 60.5)
    assert config.cache_refresh_minutes == 15


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("ACTIVITY_TIMEZONE", "Mars/Olympus"),
        ("PUBLIC_HOLIDAYS", "christmas"),
        ("MONTHLY_MIN_HOURS", "lots"),
        ("CACHE_REFRESH_MINUTES", "0"),
        ("MONTHLY_MIN_HOURS", "120"),
    ],
)
def test_invalid_values_raise(monkeypatch: pytest.MonkeyPatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ValueError):
        load_config()
