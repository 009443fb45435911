"""Configuration, Error and Logging Tests."""

import pytest
import structlog
from pydantic import ValidationError

from risktree.config import Settings
from risktree.exceptions import (
    DomainValidationError,
    ErrorCode,
    ErrorContext,
    OptimizationCancelledError,
    RiskTreeError,
)
from risktree.logging_config import configure_logging


class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.default_iterations == 100_000
        assert (settings.default_min_percentile, settings.default_max_percentile) == (10, 90)
        assert settings.optimizer_max_candidates == 16

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("RISKTREE_DEFAULT_ITERATIONS", "20000")
        monkeypatch.setenv("RISKTREE_LOG_FORMAT", "json")
        settings = Settings()
        assert settings.default_iterations == 20_000
        assert settings.log_format == "json"

    def test_iterations_bounds(self, monkeypatch):
        monkeypatch.setenv("RISKTREE_DEFAULT_ITERATIONS", "10")
        with pytest.raises(ValidationError):
            Settings()

    def test_percentile_order(self):
        with pytest.raises(ValidationError):
            Settings(default_min_percentile=80, default_max_percentile=20)


class TestErrors:
    def test_str_includes_code(self):
        error = DomainValidationError("bad value", field="min", value=-1)
        assert str(error) == "[E1001] bad value"
        assert isinstance(error, ValueError)
        assert isinstance(error, RiskTreeError)

    def test_to_dict(self):
        error = DomainValidationError(
            "bad value", field="min", value=-1, context=ErrorContext(node_id="n-1"),
        )
        payload = error.to_dict()
        assert payload["error_code"] == ErrorCode.VALIDATION_ERROR.value
        assert payload["field"] == "min"
        assert payload["value"] == "-1"
        assert payload["node_id"] == "n-1"
        assert payload["recovery"]["action"] == "fix_input"

    def test_cancelled(self):
        error = OptimizationCancelledError(12)
        assert error.evaluated_subsets == 12
        assert error.error_code == ErrorCode.OPTIMIZATION_CANCELLED


class TestLogging:
    def test_configure_json(self):
        configure_logging(level="DEBUG", log_format="json")
        assert structlog.is_configured()
        structlog.get_logger("risktree.test").info("logging_configured", fmt="json")
        structlog.reset_defaults()
