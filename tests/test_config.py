"""Unit tests for time tracker configuration."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from timetracker.config import Settings


class TestSettings:
    """Tests for Settings defaults and environment loading."""

    def test_defaults(self):
        """Defaults match the shipped delivery pipeline."""
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

        assert settings.env == "development"
        assert settings.qdrant_url is None
        assert settings.timezone is None
        assert settings.collection_prefix == "timetracker"
        assert settings.webhook_user_agent == "EnhancedTimeTracker/1.0"
        assert settings.webhook_default_retry_attempts == 3
        assert settings.webhook_default_timeout_ms == 30000
        assert settings.webhook_name_max_length == 100
        assert settings.webhook_workers == 10
        assert settings.webhook_queue_size == 1000

    def test_env_prefix(self):
        """Values are read from TIMETRACKER_ variables."""
        env = {
            "TIMETRACKER_WEBHOOK_WORKERS": "4",
            "TIMETRACKER_WEBHOOK_USER_AGENT": "Tracker/2.0",
            "TIMETRACKER_LOG_FORMAT": "text",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = Settings(_env_file=None)

        assert settings.webhook_workers == 4
        assert settings.webhook_user_agent == "Tracker/2.0"
        assert settings.log_format == "text"

    def test_invalid_log_format(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_format="xml")

    def test_retry_attempts_bounds(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, webhook_default_retry_attempts=0)

    def test_workers_bounds(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, webhook_workers=0)

    def test_stale_pending_must_exceed_drain_timeout(self):
        """A record still being drained must not look orphaned to the sweeper."""
        with pytest.raises(ValidationError, match="webhook_stale_pending_seconds"):
            Settings(
                _env_file=None,
                webhook_stale_pending_seconds=5,
                webhook_drain_timeout_seconds=10,
            )

    def test_timezone_accepts_iana_name(self):
        settings = Settings(_env_file=None, timezone="Europe/Berlin")
        assert settings.timezone == "Europe/Berlin"

    def test_unknown_timezone_rejected(self):
        with pytest.raises(ValidationError, match="Unknown timezone"):
            Settings(_env_file=None, timezone="Mars/Olympus")

    def test_resolved_qdrant_path_expands_home(self):
        settings = Settings(_env_file=None, qdrant_path="~/tt")
        assert settings.resolved_qdrant_path == Path("~/tt").expanduser()
