"""
ServiceCore routes: tickets, change requests and problem records.
"""

from __future__ import annotations

from fastapi import APIRouter, Query, Request, Response

from prosync.api.dependencies import get_services, get_user_id, listing, no_store
from prosync.api.models import (
    ChangeRequestCreate,
    ChangeRequestUpdate,
    ProblemCreate,
    ProblemUpdate,
    TicketCommentCreate,
    TicketCreate,
    TicketUpdate,
)

router = APIRouter(prefix="/v1", tags=["service-desk"])


@router.get("/tickets")
def list_tickets(
    request: Request,
    response: Response,
    status: str | None = Query(default=None, max_length=40),
    priority: str | None = Query(default=None, max_length=40),
    assigned_to: str | None = Query(default=None, max_length=128),
) -> dict:
    no_store(response)
    get_user_id(request)
    items = get_services(request).service_desk.list_tickets(status=status, priority=priority, assigned_to=assigned_to)
    return listing(items)


@router.post("/tickets", status_code=201)
def create_ticket(payload: TicketCreate, request: Request) -> dict:
    return get_services(request).service_desk.create_ticket(
        get_user_id(request), payload.model_dump(exclude_none=True)
    )


@router.get("/tickets/sla-breaches")
def sla_breaches(request: Request, response: Response) -> dict:
    no_store(response)
    get_user_id(request)
    return listing(get_services(request).service_desk.sla_breaches())


@router.get("/tickets/{ticket_id}")
def get_ticket(ticket_id: str, request: Request, response: Response) -> dict:
    no_store(response)
    get_user_id(request)
    return get_services(request).service_desk.get_ticket(ticket_id)


@router.patch("/tickets/{ticket_id}")
def update_ticket(ticket_id: str, payload: TicketUpdate, request: Request) -> dict:
    return get_services(request).service_desk.update_ticket(get_user_id(request), ticket_id, payload.changes())


@router.get("/tickets/{ticket_id}/comments")
def list_ticket_comments(
    ticket_id: str,
    request: Request,
    response: Response,
    include_private: bool = True,
) -> dict:
    no_store(response)
    get_user_id(request)
    return listing(get_services(request).service_desk.list_comments(ticket_id, include_private=include_private))


@router.post("/tickets/{ticket_id}/comments", status_code=201)
def add_ticket_comment(ticket_id: str, payload: TicketCommentCreate, request: Request) -> dict:
    return get_services(request).service_desk.add_comment(
        get_user_id(request),
        ticket_id,
        payload.content,
        is_private=payload.is_private,
        mentions=payload.mentions,
    )


# -- change requests --------------------------------------------------------


@router.get("/change-requests")
def list_change_requests(
    request: Request,
    response: Response,
    status: str | None = Query(default=None, max_length=40),
) -> dict:
    no_store(response)
    get_user_id(request)
    return listing(get_services(request).service_desk.list_change_requests(status=status))


@router.post("/change-requests", status_code=201)
def create_change_request(payload: ChangeRequestCreate, request: Request) -> dict:
    return get_services(request).service_desk.create_change_request(
        get_user_id(request), payload.model_dump(exclude_none=True)
    )


@router.patch("/change-requests/{change_id}")
def update_change_request(change_id: str, payload: ChangeRequestUpdate, request: Request) -> dict:
    get_user_id(request)
    return get_services(request).service_desk.update_change_request(change_id, payload.changes())


# -- problems ---------------------------------------------------------------


@router.get("/problems")
def list_problems(
    request: Request,
    response: Response,
    status: str | None = Query(default=None, max_length=40),
) -> dict:
    no_store(response)
    get_user_id(request)
    return listing(get_services(request).service_desk.list_problems(status=status))


@router.post("/problems", status_code=201)
def create_problem(payload: ProblemCreate, request: Request) -> dict:
    return get_services(request).service_desk.create_problem(
        get_user_id(request), payload.model_dump(exclude_none=True)
    )


@router.patch("/problems/{problem_id}")
def update_problem(problem_id: str, payload: ProblemUpdate, request: Request) -> dict:
    get_user_id(request)
    return get_services(request).service_desk.update_problem(problem_id, payload.changes())
