"""
Unit tests for cluster configuration.
"""

import pytest

from cbadmin.config import ClusterConfig
from cbadmin.constants import DEFAULT_KV_TIMEOUT
from cbadmin.exceptions import ConfigurationError


class TestClusterConfigLoad:
    def test_defaults(self):
        config = ClusterConfig.load(connection_string="couchbase://localhost")
        assert config.kv_timeout == DEFAULT_KV_TIMEOUT
        assert config.username == ""
        assert config.tls is False

    def test_hosts_strip_ports_and_options(self):
        config = ClusterConfig.load(
            connection_string="couchbase://10.0.0.1,10.0.0.2:8091/travel?x=1"
        )
        assert config.hosts == ["10.0.0.1", "10.0.0.2"]

    def test_hosts_without_scheme(self):
        config = ClusterConfig.load(connection_string="node1, node2")
        assert config.hosts == ["node1", "node2"]

    def test_tls_from_scheme(self):
        assert ClusterConfig.load(connection_string="couchbases://db").tls is True
        assert ClusterConfig.load(connection_string="https://db").tls is True
        assert ClusterConfig.load(connection_string="couchbase://db", use_tls=True).tls is True

    def test_invalid_scheme(self):
        with pytest.raises(ConfigurationError) as exc_info:
            ClusterConfig.load(connection_string="mongodb://localhost")
        assert exc_info.value.config_key == "connection_string"

    def test_invalid_timeout(self):
        with pytest.raises(ConfigurationError) as exc_info:
            ClusterConfig.load(connection_string="couchbase://localhost", kv_timeout=0)
        assert exc_info.value.config_key == "kv_timeout"

    def test_config_is_frozen(self):
        config = ClusterConfig.load(connection_string="couchbase://localhost")
        with pytest.raises(Exception):
            config.username = "other"


class TestClusterConfigFromEnv:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("CBADMIN_CONNECTION_STRING", "couchbase://envhost")
        monkeypatch.setenv("CBADMIN_USERNAME", "admin")
        monkeypatch.setenv("CBADMIN_QUERY_TIMEOUT", "12.5")
        config = ClusterConfig.from_env()
        assert config.hosts == ["envhost"]
        assert config.username == "admin"
        assert config.query_timeout == 12.5

    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv("CBADMIN_CONNECTION_STRING", "couchbase://envhost")
        config = ClusterConfig.from_env(connection_string="couchbase://other", username=None)
        assert config.hosts == ["other"]

    def test_missing_connection_string(self, monkeypatch):
        monkeypatch.delenv("CBADMIN_CONNECTION_STRING", raising=False)
        with pytest.raises(ConfigurationError) as exc_info:
            ClusterConfig.from_env()
        assert exc_info.value.config_key == "connection_string"

    def test_invalid_env_value(self, monkeypatch):
        monkeypatch.setenv("CBADMIN_CONNECTION_STRING", "couchbase://envhost")
        monkeypatch.setenv("CBADMIN_KV_TIMEOUT", "soon")
        with pytest.raises(ConfigurationError):
            ClusterConfig.from_env()
