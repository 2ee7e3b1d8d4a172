"""Unit tests for application settings configuration."""

import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from app.config import EmbeddingQueueConfig, Settings, get_config_status
from app.infrastructure.logging.log_config import setup_logging


def test_settings_uses_backend_env_file_independent_of_cwd():
    """Settings should always include backend/.env as an env source."""
    env_files = Settings.model_config.get("env_file")
    assert env_files is not None

    normalized = {str(Path(item)) for item in env_files}
    expected_backend_env = str(Path(__file__).resolve().parents[2] / ".env")

    assert expected_backend_env in normalized
    assert str(Path(".env")) in normalized


def test_queue_settings_read_original_env_names(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("EMBEDDING_QUEUE_WORKER_INTERVAL", "2000")
    monkeypatch.setenv("EMBEDDING_QUEUE_MAX_RETRIES", "5")
    monkeypatch.setenv("EMBEDDING_QUEUE_ENABLED", "false")

    config = Settings(_env_file=None).embedding_queue_config()

    assert config.worker_interval == 2000
    assert config.max_retries == 5
    assert config.enabled is False


def test_default_queue_config_is_valid_and_quiet():
    config = EmbeddingQueueConfig()
    status = get_config_status(config)

    assert config.max_attempts == 3
    assert config.stuck_timeout_minutes == 30
    assert status.warnings == []
    assert status.recommendations == []


@pytest.mark.parametrize(
    "overrides",
    [
        {"worker_interval": 999},
        {"max_retries": 11},
        {"retry_backoff_base": 50},
        {"cleanup_interval_hours": 0},
        {"heartbeat_interval": 4000},
        {"metrics_interval": 5000},
        {"max_processing_time": 30_000},
    ],
)
def test_out_of_range_values_are_rejected(overrides: dict):
    with pytest.raises(ValidationError):
        EmbeddingQueueConfig(**overrides)


def test_worker_interval_must_be_below_heartbeat():
    with pytest.raises(ValidationError, match="heartbeat_interval"):
        EmbeddingQueueConfig(worker_interval=40_000, heartbeat_interval=30_000)


def test_zero_retries_still_allow_one_attempt():
    assert EmbeddingQueueConfig(max_retries=0).max_attempts == 1


def test_config_status_flags_risky_settings():
    config = EmbeddingQueueConfig(
        enabled=False,
        worker_interval=1500,
        max_retries=8,
        cleanup_retention_days=3,
        max_processing_time=120_000,
        heartbeat_interval=10_000,
    )
    status = get_config_status(config)

    assert len(status.warnings) == 4
    assert any("disabled" in r for r in status.recommendations)


def test_setup_logging_applies_category_levels():
    settings = Settings(log_level_sql="ERROR", log_level_worker="debug", log_level_http="bogus", _env_file=None)

    applied = setup_logging(settings)

    assert logging.getLogger("sqlalchemy.engine").level == logging.ERROR
    assert logging.getLogger("EmbeddingWorker").level == logging.DEBUG
    assert applied["log_level_http"] == logging.INFO
