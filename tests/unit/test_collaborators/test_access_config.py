"""Unit tests for the access gate and environment configuration."""

import os
from unittest.mock import patch

from siteaudit.access import AccessGate
from siteaudit.config import Config
from siteaudit.constants import DEFAULT_PAGE_TIMEOUT_SECONDS, DEFAULT_USER_AGENT


class TestAccessGate:
    """Tests for AccessGate."""

    def test_matching_secret(self):
        gate = AccessGate("open-sesame")
        assert gate.configured
        assert gate.check("open-sesame")

    def test_whitespace_ignored(self):
        """Test surrounding whitespace in the credential is ignored."""
        assert AccessGate("open-sesame").check("  open-sesame\n")

    def test_mismatch(self):
        gate = AccessGate("open-sesame")
        assert not gate.check("Open-Sesame")
        assert not gate.check("")
        assert not gate.check(None)

    def test_unconfigured_rejects_everything(self):
        """Test an unset secret never admits anyone, even an empty credential."""
        gate = AccessGate(None)
        assert not gate.configured
        assert not gate.check("")
        assert not gate.check("anything")


class TestConfig:
    """Tests for Config.from_env()."""

    def test_defaults(self, monkeypatch):
        """Test defaults when nothing is set."""
        for name in (
            "AUDIT_ACCESS_SECRET",
            "AUDIT_ANALYZER_URL",
            "AUDIT_MAX_CONCURRENCY",
            "AUDIT_PAGE_TIMEOUT",
            "USER_AGENT",
        ):
            monkeypatch.delenv(name, raising=False)

        config = Config.from_env()

        assert config.access_secret is None
        assert config.analyzer_url is None
        assert config.max_concurrency == 1
        assert config.page_timeout == DEFAULT_PAGE_TIMEOUT_SECONDS
        assert config.user_agent == DEFAULT_USER_AGENT

    def test_reads_environment(self):
        """Test values are read from the environment at call time."""
        env = {
            "AUDIT_ACCESS_SECRET": "s3cret",
            "AUDIT_ANALYZER_URL": "http://localhost:9000/analyze",
            "AUDIT_MAX_CONCURRENCY": "3",
            "AUDIT_PAGE_TIMEOUT": "45",
            "AUDIT_SESSION_TTL": "60",
        }
        with patch.dict(os.environ, env):
            config = Config.from_env()

        assert config.access_secret == "s3cret"
        assert config.analyzer_url == "http://localhost:9000/analyze"
        assert config.max_concurrency == 3
        assert config.page_timeout == 45.0
        assert config.session_ttl == 60.0

    def test_bad_numbers_fall_back(self, monkeypatch):
        """Test unparseable and out-of-range values."""
        monkeypatch.setenv("AUDIT_PAGE_TIMEOUT", "soon")
        monkeypatch.setenv("AUDIT_MAX_CONCURRENCY", "0")

        config = Config.from_env()

        assert config.page_timeout == DEFAULT_PAGE_TIMEOUT_SECONDS
        assert config.max_concurrency == 1
