"""
KnowledgeNest routes.
"""

from __future__ import annotations

from fastapi import APIRouter, Query, Request, Response

from prosync.api.dependencies import get_services, get_user_id, listing, no_store
from prosync.api.models import CommentBody, PageCreate, PageUpdate

router = APIRouter(prefix="/v1/knowledge", tags=["knowledge"])


@router.get("/pages")
def list_pages(request: Request, response: Response) -> dict:
    no_store(response)
    return listing(get_services(request).knowledge.list_pages())


@router.post("/pages", status_code=201)
def create_page(payload: PageCreate, request: Request) -> dict:
    return get_services(request).knowledge.create_page(get_user_id(request), payload.model_dump(exclude_none=True))


@router.get("/search")
def search_pages(
    request: Request,
    response: Response,
    q: str = Query(default="", max_length=200),
) -> dict:
    no_store(response)
    return listing(get_services(request).knowledge.search_pages(q))


@router.get("/pages/id/{page_id}")
def get_page_by_id(page_id: str, request: Request, response: Response) -> dict:
    no_store(response)
    return get_services(request).knowledge.get_page_by_id(page_id)


@router.patch("/pages/id/{page_id}")
def update_page(page_id: str, payload: PageUpdate, request: Request) -> dict:
    return get_services(request).knowledge.update_page(get_user_id(request), page_id, payload.changes())


@router.delete("/pages/id/{page_id}")
def delete_page(page_id: str, request: Request) -> dict:
    get_user_id(request)
    page = get_services(request).knowledge.delete_page(page_id)
    return {"deleted": True, "id": page_id, "archived_at": page.get("archived_at")}


@router.get("/pages/id/{page_id}/versions")
def list_versions(page_id: str, request: Request, response: Response) -> dict:
    no_store(response)
    return listing(get_services(request).knowledge.list_versions(page_id))


@router.get("/pages/id/{page_id}/comments")
def list_comments(page_id: str, request: Request, response: Response) -> dict:
    no_store(response)
    return listing(get_services(request).knowledge.list_comments(page_id))


@router.post("/pages/id/{page_id}/comments", status_code=201)
def add_comment(page_id: str, payload: CommentBody, request: Request) -> dict:
    return get_services(request).knowledge.add_comment(get_user_id(request), page_id, payload.content)


@router.post("/comments/{comment_id}/resolve")
def resolve_comment(comment_id: str, request: Request) -> dict:
    return get_services(request).knowledge.resolve_comment(get_user_id(request), comment_id)


@router.get("/pages/{slug}")
def get_page(slug: str, request: Request, response: Response) -> dict:
    no_store(response)
    return get_services(request).knowledge.get_page(slug)
