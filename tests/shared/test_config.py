"""Tests for EnvironConfig typed getters and AppEnvironConfig defaults."""

import pytest

from peerstream.app_config import DEFAULT_ICE_SERVERS, _load_ice_servers
from peerstream.shared.config import config


@pytest.fixture
def env(monkeypatch):
    """Set environment variables and reload the config, restoring it afterwards."""

    def _set(**values: str):
        for key, value in values.items():
            monkeypatch.setenv(key, value)
        config.reload()

    yield _set
    monkeypatch.undo()
    config.reload()


class TestTypedGetters:
    def test_blank_value_uses_default(self, env):
        env(PEERSTREAM_TEST_VALUE="  ")

        assert config.get_str("PEERSTREAM_TEST_VALUE", "fallback") == "fallback"
        assert config.get_int("PEERSTREAM_TEST_VALUE", 7) == 7

    def test_numbers(self, env):
        env(PEERSTREAM_TEST_INT=" 42 ", PEERSTREAM_TEST_FLOAT="0.5")

        assert config.get_int("PEERSTREAM_TEST_INT", 0) == 42
        assert config.get_float("PEERSTREAM_TEST_FLOAT", 1.0) == 0.5

    @pytest.mark.parametrize("raw,expected", [("true", True), ("1", True), ("False", False), ("no", False)])
    def test_bool(self, env, raw, expected):
        env(PEERSTREAM_TEST_BOOL=raw)

        assert config.get_bool("PEERSTREAM_TEST_BOOL") is expected

    def test_list(self, env):
        env(PEERSTREAM_TEST_LIST="http://a.test, http://b.test,,")

        assert config.get_list("PEERSTREAM_TEST_LIST") == ["http://a.test", "http://b.test"]

    def test_missing_key(self):
        assert config.get("PEERSTREAM_NOT_SET") is None
        assert "PEERSTREAM_NOT_SET" not in config


class TestIceServers:
    def test_defaults_when_unset(self, env):
        env(ICE_SERVERS_JSON="")

        assert _load_ice_servers() == DEFAULT_ICE_SERVERS

    def test_custom_servers(self, env):
        env(ICE_SERVERS_JSON='[{"urls": "stun:stun.example.test:3478"}]')

        assert _load_ice_servers() == [{"urls": "stun:stun.example.test:3478"}]

    @pytest.mark.parametrize("raw", ["not json", '{"urls": "stun:x"}'])
    def test_invalid_falls_back(self, env, raw):
        env(ICE_SERVERS_JSON=raw)

        assert _load_ice_servers() == DEFAULT_ICE_SERVERS
