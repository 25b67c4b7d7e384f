"""Configuration loading for orcasync."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass
class NodeConfig:
    name: str = "orcasync-node"


@dataclass
class LocalConfig:
    """Configuration for the local SQLite store."""

    db_path: str = "~/.orcasync/local.db"


@dataclass
class RemoteConfig:
    """Configuration for the remote document API."""

    base_url: str = ""
    timeout_seconds: float = 30.0
    api_token: str | None = None


@dataclass
class AuthConfig:
    """Identity supplied by the authentication collaborator."""

    user_id: str | None = None


@dataclass
class ConnectivityConfig:
    """Configuration for connectivity probing."""

    probe_url: str | None = None  # Defaults to the remote base URL when empty
    probe_interval_seconds: float = 30.0
    probe_timeout_seconds: float = 5.0


@dataclass
class SyncConfig:
    """Configuration for sync triggers."""

    auto_pull_on_start: bool = True
    backlog_interval_seconds: float = 60.0


@dataclass
class DashboardConfig:
    host: str = "127.0.0.1"
    port: int = 8090


@dataclass
class Config:
    node: NodeConfig = field(default_factory=NodeConfig)
    local: LocalConfig = field(default_factory=LocalConfig)
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    connectivity: ConnectivityConfig = field(default_factory=ConnectivityConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    dashboard: DashboardConfig = field(default_factory=DashboardConfig)


def _get_env(key: str, default: Any = None) -> Any:
    """Get environment variable with ORCASYNC_ prefix."""
    return os.environ.get(f"ORCASYNC_{key}", default)


def _is_true(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to config."""
    if name := _get_env("NODE_NAME"):
        config.node.name = name

    if db_path := _get_env("LOCAL_DB_PATH"):
        config.local.db_path = db_path

    # Remote overrides
    if base_url := _get_env("REMOTE_URL"):
        config.remote.base_url = base_url
    if timeout := _get_env("REMOTE_TIMEOUT"):
        config.remote.timeout_seconds = float(timeout)
    if token := _get_env("REMOTE_API_TOKEN"):
        config.remote.api_token = token

    if user_id := _get_env("USER_ID"):
        config.auth.user_id = user_id

    # Connectivity overrides
    if probe_url := _get_env("PROBE_URL"):
        config.connectivity.probe_url = probe_url
    if probe_interval := _get_env("PROBE_INTERVAL"):
        config.connectivity.probe_interval_seconds = float(probe_interval)

    # Sync overrides
    if auto_pull := _get_env("SYNC_AUTO_PULL"):
        config.sync.auto_pull_on_start = _is_true(auto_pull)
    if backlog_interval := _get_env("SYNC_BACKLOG_INTERVAL"):
        config.sync.backlog_interval_seconds = float(backlog_interval)

    # Dashboard overrides
    if host := _get_env("DASHBOARD_HOST"):
        config.dashboard.host = host
    if port := _get_env("DASHBOARD_PORT"):
        config.dashboard.port = int(port)

    return config


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to YAML config file. If None, uses default config.

    Returns:
        Loaded Config object.
    """
    config = Config()

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}

            if "node" in data:
                config.node = NodeConfig(
                    name=data["node"].get("name", config.node.name)
                )

            if "local" in data:
                config.local = LocalConfig(
                    db_path=data["local"].get("db_path", config.local.db_path)
                )

            # Parse remote config
            if "remote" in data:
                remote_data = data["remote"]
                config.remote = RemoteConfig(
                    base_url=remote_data.get("base_url", config.remote.base_url),
                    timeout_seconds=remote_data.get(
                        "timeout_seconds", config.remote.timeout_seconds
                    ),
                    api_token=remote_data.get("api_token"),
                )

            if "auth" in data:
                config.auth = AuthConfig(user_id=data["auth"].get("user_id"))

            # Parse connectivity config
            if "connectivity" in data:
                conn_data = data["connectivity"]
                config.connectivity = ConnectivityConfig(
                    probe_url=conn_data.get("probe_url"),
                    probe_interval_seconds=conn_data.get(
                        "probe_interval_seconds",
                        config.connectivity.probe_interval_seconds,
                    ),
                    probe_timeout_seconds=conn_data.get(
                        "probe_timeout_seconds",
                        config.connectivity.probe_timeout_seconds,
                    ),
                )

            # Parse sync config
            if "sync" in data:
                sync_data = data["sync"]
                config.sync = SyncConfig(
                    auto_pull_on_start=sync_data.get(
                        "auto_pull_on_start", config.sync.auto_pull_on_start
                    ),
                    backlog_interval_seconds=sync_data.get(
                        "backlog_interval_seconds",
                        config.sync.backlog_interval_seconds,
                    ),
                )

            if "dashboard" in data:
                dash_data = data["dashboard"]
                config.dashboard = DashboardConfig(
                    host=dash_data.get("host", config.dashboard.host),
                    port=dash_data.get("port", config.dashboard.port),
                )

    config = _apply_env_overrides(config)

    # Probe the remote itself unless told otherwise
    if not config.connectivity.probe_url and config.remote.base_url:
        config.connectivity.probe_url = config.remote.base_url

    return config
