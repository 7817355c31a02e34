"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from tradebook.config.settings import Settings, load_settings
from tradebook.core.decimal_policy import DecimalPolicy
from tradebook.core.metrics import TradeMetricsCalculator
from tradebook.core.processor import TradeProcessor


@pytest.fixture
def settings() -> Settings:
    """Load default settings for testing."""
    return load_settings("default")


@pytest.fixture
def policy() -> DecimalPolicy:
    return DecimalPolicy(scale=4)


@pytest.fixture
def calculator(policy) -> TradeMetricsCalculator:
    return TradeMetricsCalculator(policy)


@pytest.fixture
def processor(policy, calculator) -> TradeProcessor:
    return TradeProcessor(policy, calculator)


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).resolve().parent.parent


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    """Temporary database path for test isolation."""
    return str(tmp_path / "test_tradebook.db")
