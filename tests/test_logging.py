"""Tests for logging setup and prediction-id binding."""

import logging

import pytest
import structlog

from fxgame.logging import QUIET_LOGGERS, bound_prediction, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


class TestSetupLogging:
    """Tests for root logger configuration."""

    def test_sets_root_level_and_quiets_libraries(self) -> None:
        setup_logging("DEBUG", "json")

        assert logging.getLogger().level == logging.DEBUG
        assert len(logging.getLogger().handlers) == 1
        for name in QUIET_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING

    def test_unknown_level_falls_back_to_info(self) -> None:
        setup_logging("chatty")
        assert logging.getLogger().level == logging.INFO


class TestBoundPrediction:
    """Tests for the prediction_id context binding."""

    def test_binds_only_inside_block(self) -> None:
        with bound_prediction("abc123"):
            assert structlog.contextvars.get_contextvars()["prediction_id"] == "abc123"
        assert "prediction_id" not in structlog.contextvars.get_contextvars()
