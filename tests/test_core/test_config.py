"""Tests for application configuration settings."""

import os
from unittest.mock import patch

import pytest

from ai_queue.core.config import Settings


class TestQueueSettings:
    """Queue limit and task default settings."""

    def test_should_have_correct_defaults(self):
        """Test queue settings have their documented defaults."""
        # Arrange & Act
        settings = Settings()

        # Assert
        assert settings.app_name == "AI Task Queue"
        assert settings.MAX_CONCURRENT_TASKS == 10
        assert settings.MAX_COMPLETED_HISTORY == 1000
        assert settings.MAX_FAILED_HISTORY == 1000
        assert settings.DEFAULT_MAX_RETRIES == 3
        assert settings.DEFAULT_PRIORITY == 5
        assert settings.DEFAULT_CONFIDENCE == pytest.approx(0.8)
        assert settings.TRANSLATION_TARGET_LANGUAGE == "en"

    def test_should_override_concurrency_via_environment(self):
        """Test MAX_CONCURRENT_TASKS can be overridden via environment."""
        # Act
        with patch.dict(os.environ, {"MAX_CONCURRENT_TASKS": "25"}):
            settings = Settings()

        # Assert
        assert settings.MAX_CONCURRENT_TASKS == 25

    def test_should_accept_zero_retries(self):
        """Test DEFAULT_MAX_RETRIES accepts zero (fail on first error)."""
        with patch.dict(os.environ, {"DEFAULT_MAX_RETRIES": "0"}):
            settings = Settings()

        assert settings.DEFAULT_MAX_RETRIES == 0

    @pytest.mark.parametrize(
        "name,value",
        [
            ("MAX_CONCURRENT_TASKS", "0"),
            ("MAX_CONCURRENT_TASKS", "invalid_value"),
            ("MAX_COMPLETED_HISTORY", "0"),
            ("MAX_FAILED_HISTORY", "-1"),
            ("DEFAULT_MAX_RETRIES", "-1"),
            ("DEFAULT_PRIORITY", "256"),
            ("DEFAULT_CONFIDENCE", "1.5"),
            ("WORKER_POLL_INTERVAL", "0"),
            ("WORKER_ERROR_BACKOFF", "-0.5"),
        ],
    )
    def test_should_raise_validation_error_for_invalid_values(self, name, value):
        """Test out-of-range values are rejected."""
        with patch.dict(os.environ, {name: value}):
            with pytest.raises(ValueError):
                Settings()


class TestLoggingSettings:
    """Logging related settings."""

    def test_should_normalize_log_level(self):
        """Test LOG_LEVEL is upper-cased."""
        with patch.dict(os.environ, {"LOG_LEVEL": "debug"}):
            settings = Settings()

        assert settings.LOG_LEVEL == "DEBUG"

    def test_should_disable_json_logs_via_environment(self):
        """Test JSON_LOGS can be switched off."""
        with patch.dict(os.environ, {"JSON_LOGS": "false"}):
            settings = Settings()

        assert settings.JSON_LOGS is False

    def test_should_handle_multiple_environment_overrides(self):
        """Test settings work correctly with multiple environment variables."""
        env_vars = {
            "WORKER_POLL_INTERVAL": "0.5",
            "TRANSLATION_TARGET_LANGUAGE": "es",
            "LOG_LEVEL": "WARNING",
        }

        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings()

        assert settings.WORKER_POLL_INTERVAL == pytest.approx(0.5)
        assert settings.TRANSLATION_TARGET_LANGUAGE == "es"
        assert settings.LOG_LEVEL == "WARNING"


class TestImportSideEffects:
    """Importing the package never reads the environment."""

    def test_should_import_with_invalid_environment(self):
        """Test invalid env values only fail when Settings is built."""
        import importlib

        import ai_queue.core.config as config_module
        from ai_queue.queue.models import TaskQueue

        with patch.dict(os.environ, {"MAX_CONCURRENT_TASKS": "0"}):
            reloaded = importlib.reload(config_module)
            queue = TaskQueue(max_concurrent_tasks=4)

            assert not hasattr(reloaded, "settings")
            assert queue.max_concurrent_tasks == 4
            with pytest.raises(ValueError):
                reloaded.Settings()
