from pathlib import Path

import pytest

from casebook.configuration.app_configuration import DEFAULT_DB_PATH, AppConfig
from casebook.configuration.case_settings import CaseSettings


@pytest.fixture()
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "app_config.yml"


def test_app_config_reload_parses_yaml(config_path: Path) -> None:
    config_path.write_text(
        "database:\n"
        "  path: ./var/cases.db\n"
        "cases:\n"
        "  max_attempts: 20\n"
        "  max_page_size: 10\n"
        "  slow_query_threshold_ms: 250\n",
        encoding="utf-8",
    )

    config = AppConfig(config_path)

    assert config.database_path == Path("./var/cases.db")
    settings = config.case_settings
    assert settings.max_attempts == 20
    assert settings.max_page_size == 10
    assert settings.slow_query_threshold_ms == pytest.approx(250.0)
    assert settings.create_attempts == CaseSettings.DEFAULT_CREATE_ATTEMPTS
    assert settings.get("max_attempts") == 20


def test_app_config_missing_file_returns_defaults(tmp_path: Path) -> None:
    config = AppConfig(tmp_path / "does_not_exist.yml")

    assert config.data == {}
    assert config.database_path == DEFAULT_DB_PATH
    assert config.case_settings.as_dict() == {}
    assert config.case_settings.max_page_size == 25


def test_app_config_invalid_yaml_returns_empty(config_path: Path) -> None:
    config_path.write_text("cases: [unclosed\n", encoding="utf-8")

    assert AppConfig(config_path).data == {}


def test_app_config_non_mapping_is_ignored(config_path: Path) -> None:
    config_path.write_text("- just\n- a list\n", encoding="utf-8")

    config = AppConfig(config_path)

    assert config.data == {}
    assert config.get("cases", "fallback") == "fallback"


def test_app_config_reload_picks_up_changes(config_path: Path) -> None:
    config_path.write_text("cases:\n  max_page_size: 5\n", encoding="utf-8")
    config = AppConfig(config_path)
    assert config.case_settings.max_page_size == 5

    config_path.write_text("cases:\n  max_page_size: 15\n", encoding="utf-8")
    config.reload()

    assert config.case_settings.max_page_size == 15


def test_case_settings_fall_back_on_bad_values() -> None:
    settings = CaseSettings(
        {
            "max_attempts": -5,
            "create_attempts": "2",
            "stats_cache_ttl_seconds": None,
            "slow_query_threshold_ms": "fast",
        }
    )

    assert settings.max_attempts == 50
    assert settings.create_attempts == 2
    assert settings.stats_cache_ttl_seconds == 60
    assert settings.slow_query_threshold_ms == pytest.approx(100.0)


def test_case_settings_section_must_be_mapping(config_path: Path) -> None:
    config_path.write_text("cases: nope\n", encoding="utf-8")

    assert AppConfig(config_path).case_settings.as_dict() == {}
