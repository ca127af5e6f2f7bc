"""
Per-user preference routes.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, Response

from prosync.api.dependencies import get_services, get_user_id, no_store
from prosync.api.models import PreferencesUpdate

router = APIRouter(prefix="/v1/settings", tags=["settings"])


@router.get("")
def get_settings(request: Request, response: Response) -> dict:
    no_store(response)
    return get_services(request).preferences.get_effective(get_user_id(request))


@router.put("")
def update_settings(payload: PreferencesUpdate, request: Request) -> dict:
    return get_services(request).preferences.update_settings(get_user_id(request), payload.changes())


@router.delete("")
def delete_settings(request: Request) -> dict:
    return {"deleted": get_services(request).preferences.delete_settings(get_user_id(request))}
