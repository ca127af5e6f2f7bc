"""
TimeTrackPro routes.
"""

from __future__ import annotations

from fastapi import APIRouter, Query, Request, Response

from prosync.api.dependencies import get_services, get_user_id, listing, no_store
from prosync.api.models import TimeEntryCreate, TimeEntryUpdate

router = APIRouter(prefix="/v1/time-entries", tags=["time"])


@router.get("")
def list_entries(
    request: Request,
    response: Response,
    project_id: str | None = Query(default=None, max_length=64),
    start_date: str | None = Query(default=None, max_length=40),
    end_date: str | None = Query(default=None, max_length=40),
) -> dict:
    no_store(response)
    items = get_services(request).time.list_entries(
        get_user_id(request), project_id=project_id, start_date=start_date, end_date=end_date
    )
    return listing(items)


@router.post("", status_code=201)
def create_entry(payload: TimeEntryCreate, request: Request) -> dict:
    return get_services(request).time.create_entry(get_user_id(request), payload.model_dump(exclude_none=True))


@router.get("/summary")
def summary(request: Request, response: Response) -> dict:
    no_store(response)
    return get_services(request).time.summary(get_user_id(request))


@router.get("/{entry_id}")
def get_entry(entry_id: str, request: Request, response: Response) -> dict:
    no_store(response)
    return get_services(request).time.get_entry(get_user_id(request), entry_id)


@router.patch("/{entry_id}")
def update_entry(entry_id: str, payload: TimeEntryUpdate, request: Request) -> dict:
    return get_services(request).time.update_entry(get_user_id(request), entry_id, payload.changes())


@router.delete("/{entry_id}")
def delete_entry(entry_id: str, request: Request) -> dict:
    get_services(request).time.delete_entry(get_user_id(request), entry_id)
    return {"deleted": True, "id": entry_id}
