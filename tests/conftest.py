"""Pytest configuration and fixtures for PAMr tests."""

from pathlib import Path

import pytest

from tests.helpers.pamguard_data import (
    BINARY_NAME,
    acquisition_row,
    click_records,
    create_pamguard_db,
    detection_row,
    write_binary_json,
)


def pytest_configure(config):
    """Register custom test markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests that do not require external dependencies"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests combining multiple components"
    )
    config.addinivalue_line(
        "markers", "database: Tests that read PAMGuard SQLite databases"
    )


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point user config and logs at a temporary directory."""
    config_dir = tmp_path / ".pamr"
    monkeypatch.setattr("pamr.config.DEFAULT_CONFIG_DIR", config_dir)
    monkeypatch.setattr("pamr.logging_config.DEFAULT_LOG_DIR", config_dir / "logs")
    return config_dir


@pytest.fixture(autouse=True)
def reset_logging_state():
    """Remove handlers installed by the CLI between tests."""
    from pamr.logging_config import reset_logging

    reset_logging()
    yield
    reset_logging()


@pytest.fixture
def decoder_registry():
    """Return the global decoder registry with the default decoders registered."""
    from pamr.binaries.registry import decoder_registry, register_default_decoders

    register_default_decoders()
    return decoder_registry


# =============================================================================
# PAMGuard Data Fixtures
# =============================================================================


@pytest.fixture
def binary_folder(tmp_path) -> Path:
    """Binary folder holding one JSON export with clicks UID 1 and 2."""
    folder = tmp_path / "Binaries"
    write_binary_json(folder / "20190101" / f"{BINARY_NAME}.json", click_records([1, 2]))
    return folder


@pytest.fixture
def event_db_factory(tmp_path):
    """
    Factory for a database with two clicks in event 100.

    Clicks are UID 1 at 00:05 and UID 2 at 00:10 on 2019-01-01.
    """

    def _create(name: str = "survey.sqlite3", acquisition=None, **kwargs) -> Path:
        if acquisition is None:
            acquisition = [acquisition_row("2019-01-01 00:00:00.000", 192000)]
        return create_pamguard_db(
            tmp_path / name,
            acquisition=acquisition,
            detections=[
                detection_row(1, "2019-01-01 00:05:00.000", 100),
                detection_row(2, "2019-01-01 00:10:00.000", 100),
            ],
            events=[
                {
                    "UID": 100,
                    "UTC": "2019-01-01 00:05:00.000",
                    "eventType": "BEAK",
                    "comment": "test event",
                }
            ],
            **kwargs,
        )

    return _create


@pytest.fixture
def event_db(event_db_factory) -> Path:
    """Database with one acquisition start at 192 kHz and one event."""
    return event_db_factory()
