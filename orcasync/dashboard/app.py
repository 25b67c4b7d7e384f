"""FastAPI sync status dashboard."""

import logging
from datetime import datetime
from typing import Any

from fastapi import FastAPI, HTTPException

from ..config import Config
from ..records import CollectionName, SyncStatus
from ..store import LocalStore
from ..sync import SyncCoordinator, describe_status

logger = logging.getLogger(__name__)


def create_app(
    config: Config,
    coordinator: SyncCoordinator,
    store: LocalStore,
) -> FastAPI:
    """Create the FastAPI dashboard application.

    Args:
        config: Application configuration.
        coordinator: Coordinator whose status is exposed.
        store: Local store for record and tombstone listings.

    Returns:
        Configured FastAPI application.
    """
    app = FastAPI(
        title="orcasync Dashboard",
        description="Sync status and manual sync for an orcasync node",
        version="0.1.0",
    )

    app.state.config = config
    app.state.coordinator = coordinator
    app.state.store = store

    @app.get("/api/sync/status")
    async def api_sync_status() -> dict[str, Any]:
        """Current sync status with indicator text."""
        status = coordinator.get_status()
        label, detail = describe_status(status)
        data = status.to_dict()
        data["label"] = label
        data["detail"] = detail
        return data

    @app.post("/api/sync/force")
    async def api_sync_force() -> dict[str, Any]:
        """Run a manual sync: push everything, then pull."""
        result = await coordinator.force_sync()
        response: dict[str, Any] = {
            "status": result.status.value,
            "error": result.error,
        }
        if result.push:
            response["push"] = {
                "synced": result.push.synced,
                "failed": result.push.failed,
                "deleted": result.push.deleted,
                "delete_failures": result.push.delete_failures,
            }
        if result.pull:
            response["pull"] = {
                "upserted": result.pull.upserted,
                "removed": result.pull.removed,
            }
        return response

    @app.get("/api/sync/tombstones")
    async def api_tombstones() -> dict[str, Any]:
        """Deletions waiting for remote confirmation."""
        user_id = coordinator.user_id
        tombstones = store.tombstones.list(user_id) if user_id else []
        return {
            "count": len(tombstones),
            "tombstones": [t.to_dict() for t in tombstones],
        }

    @app.get("/api/records/{collection}")
    async def api_records(collection: str, status: str | None = None) -> dict[str, Any]:
        """List the current user's records of one collection."""
        try:
            name = CollectionName(collection)
            sync_status = SyncStatus(status) if status else None
        except ValueError as e:
            raise HTTPException(status_code=404, detail=str(e))

        user_id = coordinator.user_id
        if not user_id:
            return {"collection": name.value, "count": 0, "records": []}

        table = store.table(name)
        if sync_status:
            records = table.list_by_owner_and_status(user_id, sync_status)
        else:
            records = table.list_by_owner(user_id)

        return {
            "collection": name.value,
            "count": len(records),
            "records": [r.to_dict() for r in records],
        }

    @app.get("/api/health")
    async def api_health() -> dict[str, Any]:
        """Health check endpoint.

        Always returns 200 OK; local data stays usable whatever the
        sync outcome.
        """
        health: dict[str, Any] = {
            "status": "ok",
            "timestamp": datetime.now().isoformat(),
            "node_name": config.node.name,
            "online": coordinator.connectivity.is_online,
            "authenticated": coordinator.user_id is not None,
        }

        try:
            health["store"] = store.get_stats(coordinator.user_id)
        except Exception as e:
            health["store_error"] = str(e)

        return health

    return app
