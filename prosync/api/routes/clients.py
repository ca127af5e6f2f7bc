"""
ClientConnect routes.
"""

from __future__ import annotations

from fastapi import APIRouter, Query, Request, Response

from prosync.api.dependencies import get_services, get_user_id, listing, no_store
from prosync.api.models import ClientCreate, ClientUpdate, NoteBody

router = APIRouter(prefix="/v1", tags=["clients"])


@router.get("/clients")
def list_clients(
    request: Request,
    response: Response,
    q: str | None = Query(default=None, max_length=200),
) -> dict:
    no_store(response)
    return listing(get_services(request).clients.list_clients(get_user_id(request), q=q))


@router.post("/clients", status_code=201)
def create_client(payload: ClientCreate, request: Request) -> dict:
    return get_services(request).clients.create_client(get_user_id(request), payload.model_dump(exclude_none=True))


@router.get("/clients/{client_id}")
def get_client(client_id: str, request: Request, response: Response) -> dict:
    no_store(response)
    return get_services(request).clients.get_client(get_user_id(request), client_id)


@router.patch("/clients/{client_id}")
def update_client(client_id: str, payload: ClientUpdate, request: Request) -> dict:
    return get_services(request).clients.update_client(get_user_id(request), client_id, payload.changes())


@router.delete("/clients/{client_id}")
def delete_client(client_id: str, request: Request) -> dict:
    get_services(request).clients.delete_client(get_user_id(request), client_id)
    return {"deleted": True, "id": client_id}


@router.get("/clients/{client_id}/notes")
def list_notes(client_id: str, request: Request, response: Response) -> dict:
    no_store(response)
    return listing(get_services(request).clients.list_notes(get_user_id(request), client_id))


@router.post("/clients/{client_id}/notes", status_code=201)
def create_note(client_id: str, payload: NoteBody, request: Request) -> dict:
    return get_services(request).clients.create_note(get_user_id(request), client_id, payload.content)


@router.patch("/client-notes/{note_id}")
def update_note(note_id: str, payload: NoteBody, request: Request) -> dict:
    return get_services(request).clients.update_note(get_user_id(request), note_id, payload.content)


@router.delete("/client-notes/{note_id}")
def delete_note(note_id: str, request: Request) -> dict:
    get_services(request).clients.delete_note(get_user_id(request), note_id)
    return {"deleted": True, "id": note_id}
