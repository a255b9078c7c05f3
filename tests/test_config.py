"""
p2pcheck/tests/test_config.py

Unit tests for environment-driven configuration.
"""

from unittest.mock import patch

import pytest

from p2pcheck.config import (
    BOOTSTRAP_PEERS,
    BOOTSTRAP_TIMEOUT,
    DEFAULT_PORT,
    DEFAULT_PROBE_TIMEOUT,
    CheckConfig,
)

ENV_VARS = [
    "P2PCHECK_HOST",
    "P2PCHECK_PORT",
    "P2PCHECK_TIMEOUT",
    "P2PCHECK_BOOTSTRAP_TIMEOUT",
    "P2PCHECK_BOOTSTRAP",
    "P2PCHECK_FILTER_PRIVATE",
    "P2PCHECK_PING",
    "P2PCHECK_LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestDefaults:
    """Test configuration defaults."""

    def test_from_empty_env(self):
        config = CheckConfig.from_env()

        assert config.host == "0.0.0.0"
        assert config.port == DEFAULT_PORT == 3333
        assert config.probe_timeout == DEFAULT_PROBE_TIMEOUT
        assert config.bootstrap_timeout == BOOTSTRAP_TIMEOUT
        assert config.bootstrap_peers == BOOTSTRAP_PEERS
        assert config.filter_private_addrs is False
        assert config.check_liveness is True
        assert config.log_level == "INFO"

    def test_bootstrap_list_is_a_copy(self):
        config = CheckConfig()
        config.bootstrap_peers.append("/ip4/1.2.3.4/tcp/4001/p2p/QmX")
        assert "/ip4/1.2.3.4/tcp/4001/p2p/QmX" not in BOOTSTRAP_PEERS


class TestFromEnv:
    """Test reading P2PCHECK_* variables."""

    def test_values(self, monkeypatch):
        monkeypatch.setenv("P2PCHECK_HOST", "127.0.0.1")
        monkeypatch.setenv("P2PCHECK_PORT", "8080")
        monkeypatch.setenv("P2PCHECK_TIMEOUT", "5.5")
        monkeypatch.setenv("P2PCHECK_FILTER_PRIVATE", "yes")
        monkeypatch.setenv("P2PCHECK_PING", "off")
        monkeypatch.setenv("P2PCHECK_LOG_LEVEL", "debug")

        config = CheckConfig.from_env()

        assert config.host == "127.0.0.1"
        assert config.port == 8080
        assert config.probe_timeout == 5.5
        assert config.filter_private_addrs is True
        assert config.check_liveness is False
        assert config.log_level == "DEBUG"

    def test_bootstrap_list(self, monkeypatch):
        monkeypatch.setenv("P2PCHECK_BOOTSTRAP", "/ip4/1.2.3.4/tcp/4001/p2p/QmA, /ip4/5.6.7.8/tcp/4001/p2p/QmB,")

        config = CheckConfig.from_env()

        assert config.bootstrap_peers == [
            "/ip4/1.2.3.4/tcp/4001/p2p/QmA",
            "/ip4/5.6.7.8/tcp/4001/p2p/QmB",
        ]

    def test_empty_bootstrap_means_none(self, monkeypatch):
        monkeypatch.setenv("P2PCHECK_BOOTSTRAP", "")
        assert CheckConfig.from_env().bootstrap_peers == []

    @pytest.mark.parametrize("name,value", [
        ("P2PCHECK_PORT", "eighty"),
        ("P2PCHECK_TIMEOUT", "soon"),
        ("P2PCHECK_TIMEOUT", "-1"),
        ("P2PCHECK_PING", "maybe"),
    ])
    def test_invalid_values_fall_back(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)

        config = CheckConfig.from_env()

        assert config.to_dict() == CheckConfig().to_dict()

    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv("P2PCHECK_PORT", "8080")

        config = CheckConfig.from_env({"port": 9090, "host": None, "unknown": 1})

        assert config.port == 9090
        assert config.host == "0.0.0.0"
        assert not hasattr(config, "unknown")


class TestCommandLine:
    """Test that command line flags override the environment."""

    def test_flags_override_env(self, monkeypatch):
        from click.testing import CliRunner
        from p2pcheck import __main__ as entry

        monkeypatch.setenv("P2PCHECK_PORT", "8080")
        monkeypatch.setenv("P2PCHECK_PING", "on")

        with patch.object(entry.trio, "run") as trio_run, \
                patch.object(entry, "configure_logging") as configure_logging:
            result = CliRunner().invoke(
                entry.run, ["--port", "9090", "--no-ping", "--log-level", "debug"]
            )

        assert result.exit_code == 0, result.output
        _, config = trio_run.call_args[0]
        assert config.port == 9090
        assert config.check_liveness is False
        assert config.log_level == "DEBUG"
        configure_logging.assert_called_once_with("DEBUG")

    def test_env_used_without_flags(self, monkeypatch):
        from click.testing import CliRunner
        from p2pcheck import __main__ as entry

        monkeypatch.setenv("P2PCHECK_PORT", "8080")

        with patch.object(entry.trio, "run") as trio_run, \
                patch.object(entry, "configure_logging"):
            result = CliRunner().invoke(entry.run, [])

        assert result.exit_code == 0, result.output
        _, config = trio_run.call_args[0]
        assert config.port == 8080
        assert config.check_liveness is True
