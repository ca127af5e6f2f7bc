"""
Dashboard and insight routes.
"""

from __future__ import annotations

from fastapi import APIRouter, Query, Request, Response

from prosync.api.dependencies import get_services, get_user_id, no_store

router = APIRouter(prefix="/v1/dashboard", tags=["dashboard"])


@router.get("/stats")
def stats(request: Request, response: Response) -> dict:
    no_store(response)
    return get_services(request).dashboard.dashboard_stats(get_user_id(request))


@router.get("/productivity")
def productivity(request: Request, response: Response) -> dict:
    no_store(response)
    return get_services(request).dashboard.productivity_metrics(get_user_id(request))


@router.get("/activity")
def activity(
    request: Request,
    response: Response,
    days: int = Query(default=7, ge=1, le=365),
) -> dict:
    no_store(response)
    return get_services(request).dashboard.activity_summary(get_user_id(request), days)
