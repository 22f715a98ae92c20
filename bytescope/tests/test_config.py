"""Tests for settings, network resolution and logging setup."""

from __future__ import annotations

import json
import logging
import os
from unittest.mock import patch

import pytest

from bytescope.core.config import Settings, get_settings
from bytescope.core.logging import DevFormatter, JSONFormatter, setup_logging
from bytescope.core.networks import NETWORKS, get_network_config, resolve_rpc_url


class TestSettings:
    def test_defaults(self):
        s = Settings(_env_file=None)
        assert s.app_env == "development"
        assert s.network == "mainnet"
        assert s.cache_max_entries == 100
        assert s.cache_max_size_bytes == 50 * 1024 * 1024
        assert s.cache_max_age_seconds == 1800
        assert s.min_bytecode_size == 1

    @patch.dict(os.environ, {"BYTESCOPE_NETWORK": "sepolia", "BYTESCOPE_CACHE_MAX_ENTRIES": "5"})
    def test_env_override(self):
        s = Settings(_env_file=None)
        assert s.network == "sepolia"
        assert s.cache_max_entries == 5

    def test_get_settings_returns_same_instance(self):
        get_settings.cache_clear()
        assert get_settings() is get_settings()
        get_settings.cache_clear()


class TestNetworks:
    def test_registry(self):
        assert set(NETWORKS) == {"mainnet", "sepolia", "holesky"}
        assert NETWORKS["mainnet"].chain_id == 1
        assert NETWORKS["sepolia"].is_testnet is True

    def test_lookup_is_case_insensitive(self):
        assert get_network_config("Mainnet") is NETWORKS["mainnet"]
        assert get_network_config("goerli") is None

    def test_explicit_rpc_url_wins(self):
        s = Settings(_env_file=None, rpc_url="http://localhost:8545", alchemy_api_key="k")
        assert resolve_rpc_url(s) == "http://localhost:8545"

    def test_alchemy_then_infura_then_public(self):
        assert resolve_rpc_url(Settings(_env_file=None, alchemy_api_key="abc")) == (
            "https://eth-mainnet.g.alchemy.com/v2/abc"
        )
        assert resolve_rpc_url(Settings(_env_file=None, infura_api_key="xyz"), "sepolia") == (
            "https://sepolia.infura.io/v3/xyz"
        )
        assert resolve_rpc_url(Settings(_env_file=None)) == NETWORKS["mainnet"].public_rpc_url

    def test_unknown_network(self):
        with pytest.raises(ValueError, match="Unsupported network"):
            resolve_rpc_url(Settings(_env_file=None), "goerli")


class TestLogging:
    def _record(self, **extra) -> logging.LogRecord:
        record = logging.LogRecord("bytescope.test", logging.INFO, __file__, 1, "analyzed %s", ("x",), None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_json_formatter_includes_context(self):
        out = json.loads(JSONFormatter().format(self._record(address="0xabc", duration_ms=1.5)))
        assert out["message"] == "analyzed x"
        assert out["level"] == "INFO"
        assert out["address"] == "0xabc"
        assert out["duration_ms"] == 1.5
        assert "tx_hash" not in out

    def test_dev_formatter(self):
        line = DevFormatter().format(self._record(address="0x1234567890abcdef"))
        assert "analyzed x" in line
        assert "0x12345678" in line

    def test_setup_logging_json_in_production(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        try:
            setup_logging(env="production", log_level="WARNING")
            assert root.level == logging.WARNING
            assert isinstance(root.handlers[-1].formatter, JSONFormatter)
            assert logging.getLogger("httpx").level == logging.WARNING
        finally:
            root.handlers[:] = handlers
            root.setLevel(level)
