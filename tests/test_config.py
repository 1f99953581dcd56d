from __future__ import annotations

from pathlib import Path

import pytest

from shutterbus.config import (
    DEFAULT_CONFIRM_TIMEOUT_SEC,
    DEFAULT_LOGS_MAX_FILES,
    DEFAULT_MAX_WORKERS,
    ConfigError,
    initialize_config,
    load_settings,
)


def test_missing_config_uses_defaults(tmp_path: Path):
    settings = load_settings(workspace_dir=tmp_path)

    assert settings.base_dir == tmp_path.resolve()
    assert settings.max_workers == DEFAULT_MAX_WORKERS
    assert settings.timings.open_feedback_delay == 2.45
    assert settings.timings.close_feedback_delay == 1.45
    assert settings.timings.confirm_timeout == DEFAULT_CONFIRM_TIMEOUT_SEC
    assert settings.event_log_file == tmp_path.resolve() / "events.db"
    assert settings.logs_path == tmp_path.resolve() / "logs"


def test_config_sections_are_applied(tmp_path: Path):
    path = tmp_path / "shutterbus.toml"
    path.write_text(
        "\n".join(
            [
                "[bus]",
                "max_workers = 2",
                "[shutter]",
                "open_feedback_delay = 0.5",
                "confirm_timeout = 1",
                "[event_log]",
                'path = "data/log.db"',
                "[logs]",
                "enabled = false",
            ]
        ),
        encoding="utf-8",
    )

    settings = load_settings(path)

    assert settings.max_workers == 2
    assert settings.open_feedback_delay == 0.5
    assert settings.close_feedback_delay == 1.45
    assert settings.confirm_timeout == 1.0
    assert settings.event_log_file == tmp_path.resolve() / "data" / "log.db"
    assert settings.logs_enabled is False


def test_invalid_values_fall_back_to_defaults(tmp_path: Path):
    path = tmp_path / "shutterbus.toml"
    path.write_text(
        "\n".join(
            [
                "[bus]",
                "max_workers = true",
                "[shutter]",
                "confirm_timeout = -3",
                "[logs]",
                'max_files = "many"',
            ]
        ),
        encoding="utf-8",
    )

    settings = load_settings(path)

    assert settings.max_workers == DEFAULT_MAX_WORKERS
    assert settings.confirm_timeout == DEFAULT_CONFIRM_TIMEOUT_SEC
    assert settings.logs_max_files == DEFAULT_LOGS_MAX_FILES


def test_malformed_toml_raises_config_error(tmp_path: Path):
    path = tmp_path / "shutterbus.toml"
    path.write_text("[bus\nmax_workers = 2", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_settings(path)


def test_initialized_config_round_trips_defaults(tmp_path: Path):
    path = initialize_config(tmp_path / "shutterbus.toml")

    settings = load_settings(path)
    assert settings.query_timeout == 5.0
    assert settings.logs_enabled is True

    with pytest.raises(ConfigError):
        initialize_config(path)
