from worklog_app.app import ordered_pages
from worklog_app.core.config import DEFAULT_CACHE_TTL, AppSettings


def test_from_mapping_defaults():
    settings = AppSettings.from_mapping(None)
    assert settings.cache_ttl == DEFAULT_CACHE_TTL
    assert settings.timezone == "UTC"


def test_from_mapping_coerces_and_ignores_unknown():
    settings = AppSettings.from_mapping(
        {"CACHE_TTL": "60", "batch_limit": "3", "timezone": "Europe/Berlin", "unknown": 1, "cache_maxsize": None}
    )
    assert settings.cache_ttl == 60.0
    assert settings.batch_limit == 3
    assert settings.timezone == "Europe/Berlin"
    assert settings.cache_maxsize is None


def test_ordered_pages_puts_known_pages_first():
    pages = {"Zeta": None, "Setup / Connection": None, "Reports": None, "Alpha": None}
    assert ordered_pages(pages) == ["Reports", "Setup / Connection", "Alpha", "Zeta"]
