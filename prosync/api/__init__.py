"""
ProSync Suite API package.

Public exports:
- create_app: FastAPI factory
- app: default global FastAPI instance (for `uvicorn prosync.api:app`)
- AppState: app.state container used by tests
"""

from __future__ import annotations

from prosync.api.app import app, create_app
from prosync.api.state import AppState

__all__ = ["AppState", "app", "create_app"]
