"""Tests for configuration loading and node wiring."""

from unittest.mock import patch

import pytest

from orcasync.config import Config, LocalConfig, RemoteConfig, load_config
from orcasync.node import SyncNode, create_remote_stores
from orcasync.records import CollectionName
from orcasync.remote import InMemoryRemoteStore, NoDeleteHttpRemoteStore


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep host ORCASYNC_* variables out of the tests."""
    for key in (
        "NODE_NAME", "LOCAL_DB_PATH", "REMOTE_URL", "REMOTE_TIMEOUT",
        "REMOTE_API_TOKEN", "USER_ID", "PROBE_URL", "PROBE_INTERVAL",
        "SYNC_AUTO_PULL", "SYNC_BACKLOG_INTERVAL", "DASHBOARD_HOST",
        "DASHBOARD_PORT",
    ):
        monkeypatch.delenv(f"ORCASYNC_{key}", raising=False)


class TestConfig:
    """Tests for configuration loading."""

    def test_default_config(self):
        """Test default configuration values."""
        config = load_config()

        assert config.node.name == "orcasync-node"
        assert config.local.db_path == "~/.orcasync/local.db"
        assert config.remote.base_url == ""
        assert config.auth.user_id is None
        assert config.connectivity.probe_url is None
        assert config.sync.auto_pull_on_start is True
        assert config.dashboard.port == 8090

    def test_missing_file_uses_defaults(self, tmp_path):
        config = load_config(tmp_path / "missing.yaml")

        assert config.node.name == "orcasync-node"

    def test_yaml_file(self, tmp_path):
        """Test loading values from YAML."""
        path = tmp_path / "config.yaml"
        path.write_text(
            "node:\n"
            "  name: office-laptop\n"
            "remote:\n"
            "  base_url: https://docs.example.com/api\n"
            "  timeout_seconds: 10\n"
            "auth:\n"
            "  user_id: user-1\n"
            "sync:\n"
            "  auto_pull_on_start: false\n"
            "  backlog_interval_seconds: 15\n"
        )

        config = load_config(path)

        assert config.node.name == "office-laptop"
        assert config.remote.base_url == "https://docs.example.com/api"
        assert config.remote.timeout_seconds == 10
        assert config.auth.user_id == "user-1"
        assert config.sync.auto_pull_on_start is False
        assert config.sync.backlog_interval_seconds == 15

    def test_probe_defaults_to_remote(self, tmp_path):
        """Test that connectivity probes the remote unless configured."""
        path = tmp_path / "config.yaml"
        path.write_text("remote:\n  base_url: https://docs.example.com/api\n")

        config = load_config(path)

        assert config.connectivity.probe_url == "https://docs.example.com/api"

    def test_env_override(self, monkeypatch):
        """Test environment variable overrides."""
        monkeypatch.setenv("ORCASYNC_NODE_NAME", "env-node")
        monkeypatch.setenv("ORCASYNC_REMOTE_URL", "https://remote.local")
        monkeypatch.setenv("ORCASYNC_USER_ID", "user-9")
        monkeypatch.setenv("ORCASYNC_PROBE_URL", "https://probe.local")
        monkeypatch.setenv("ORCASYNC_SYNC_AUTO_PULL", "no")
        monkeypatch.setenv("ORCASYNC_DASHBOARD_PORT", "9000")

        config = load_config()

        assert config.node.name == "env-node"
        assert config.remote.base_url == "https://remote.local"
        assert config.auth.user_id == "user-9"
        assert config.connectivity.probe_url == "https://probe.local"
        assert config.sync.auto_pull_on_start is False
        assert config.dashboard.port == 9000


class TestNodeWiring:
    """Tests for building a node from configuration."""

    def test_remote_stores_require_url(self):
        with pytest.raises(ValueError):
            create_remote_stores(Config())

    def test_remote_stores_per_collection(self):
        """Test that every collection gets a store and organization can't delete."""
        config = Config(remote=RemoteConfig(base_url="https://remote.local"))

        stores = create_remote_stores(config)

        assert set(stores) == set(CollectionName)
        assert isinstance(stores[CollectionName.ORGANIZATION], NoDeleteHttpRemoteStore)
        assert not stores[CollectionName.ORGANIZATION].supports_delete
        assert stores[CollectionName.CLIENTS].supports_delete

    def test_node_without_url_opens_nothing(self, tmp_path):
        """Test that a missing remote URL fails before any client or store opens."""
        config = Config(local=LocalConfig(db_path=str(tmp_path / "local.db")))

        with patch("orcasync.node.httpx.AsyncClient") as client_cls:
            with pytest.raises(ValueError, match="remote.base_url"):
                SyncNode(config)

        client_cls.assert_not_called()
        assert not (tmp_path / "local.db").exists()

    @pytest.mark.asyncio
    async def test_node_with_injected_remotes(self, tmp_path):
        """Test starting and stopping a node against in-memory remotes."""
        remotes = {c: InMemoryRemoteStore(c) for c in CollectionName}
        remotes[CollectionName.ITEMS].documents["i1"] = {"id": "i1", "owner_id": "user-1"}

        config = Config(local=LocalConfig(db_path=str(tmp_path / "local.db")))
        config.auth.user_id = "user-1"
        config.sync.backlog_interval_seconds = 0

        node = SyncNode(config, remotes=remotes)
        await node.start()
        await node.coordinator.drain()

        assert node.coordinator.session.initial_pull_done
        assert node.store.table(CollectionName.ITEMS).get("i1") is not None

        await node.stop()
