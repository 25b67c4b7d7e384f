"""Web dashboard for orcasync nodes.

Exposes sync status, manual sync and pending deletions over a small
JSON API using FastAPI.
"""

from .app import create_app

__all__ = ["create_app"]
