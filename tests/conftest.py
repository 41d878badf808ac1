"""Shared test fixtures."""

from __future__ import annotations

import pytest

from shelltask.config import AppConfig, ExecutorConfig, LoggingConfig, PolicyConfig, StorageConfig


@pytest.fixture
def app_config(tmp_path):
    """Create a test configuration."""
    return AppConfig(
        policy=PolicyConfig(),
        executor=ExecutorConfig(timeout=5),
        storage=StorageConfig(db_path=str(tmp_path / "test.db")),
        logging=LoggingConfig(level="DEBUG", file=str(tmp_path / "test.log")),
    )
