"""Tests for CLI helpers."""

import json
import logging

import pytest

from orcasync.__main__ import JSONFormatter, collect_status
from orcasync.config import AuthConfig, Config, LocalConfig
from orcasync.records import CollectionName
from orcasync.store import LocalStore
from orcasync.sync.coordinator import LAST_SYNC_KEY


class TestJSONFormatter:
    def test_format(self):
        """Test that log records become JSON lines."""
        record = logging.LogRecord(
            name="orcasync.sync.push",
            level=logging.WARNING,
            pathname=__file__,
            lineno=1,
            msg="Push failed for %s",
            args=("items/i1",),
            exc_info=None,
        )

        data = json.loads(JSONFormatter().format(record))

        assert data["level"] == "WARNING"
        assert data["component"] == "orcasync.sync.push"
        assert data["message"] == "Push failed for items/i1"
        assert "exception" not in data


class TestCollectStatus:
    @pytest.mark.asyncio
    async def test_reads_local_state(self, tmp_path):
        """Test that status comes from the local database alone."""
        db_path = tmp_path / "local.db"
        store = LocalStore(db_path)
        store.connect()
        store.save_local(CollectionName.ITEMS, "i1", "user-1", {})
        store.delete_local(CollectionName.CLIENTS, "c1", "user-1")
        store.set_meta(LAST_SYNC_KEY, "2026-03-01T09:30:00")
        store.close()

        config = Config(
            local=LocalConfig(db_path=str(db_path)),
            auth=AuthConfig(user_id="user-1"),
        )

        status = await collect_status(config)

        assert status.pending_count == 2
        assert status.error_count == 0
        assert status.is_online
        assert status.last_sync_timestamp.isoformat() == "2026-03-01T09:30:00"

    @pytest.mark.asyncio
    async def test_signed_out(self, tmp_path):
        config = Config(local=LocalConfig(db_path=str(tmp_path / "local.db")))

        status = await collect_status(config)

        assert status.pending_count == 0
        assert status.user_id is None
        assert status.last_sync_timestamp is None
