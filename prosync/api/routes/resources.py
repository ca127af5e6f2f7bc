"""
ResourceHub routes: resources, allocations, skills, capacity and team directory.
"""

from __future__ import annotations

from fastapi import APIRouter, Query, Request, Response

from prosync.api.dependencies import get_services, get_user_id, listing, no_store
from prosync.api.models import (
    AllocationCreate,
    AllocationUpdate,
    ResourceCreate,
    ResourceUpdate,
    SkillCreate,
    TeamMemberCreate,
)

router = APIRouter(prefix="/v1", tags=["resources"])


@router.get("/resources")
def list_resources(request: Request, response: Response) -> dict:
    no_store(response)
    return listing(get_services(request).resources.list_resources(get_user_id(request)))


@router.post("/resources", status_code=201)
def create_resource(payload: ResourceCreate, request: Request) -> dict:
    return get_services(request).resources.create_resource(
        get_user_id(request), payload.model_dump(exclude_none=True)
    )


@router.get("/resources/{resource_id}")
def get_resource(resource_id: str, request: Request, response: Response) -> dict:
    no_store(response)
    return get_services(request).resources.get_resource(get_user_id(request), resource_id)


@router.patch("/resources/{resource_id}")
def update_resource(resource_id: str, payload: ResourceUpdate, request: Request) -> dict:
    return get_services(request).resources.update_resource(get_user_id(request), resource_id, payload.changes())


@router.delete("/resources/{resource_id}")
def delete_resource(resource_id: str, request: Request) -> dict:
    get_services(request).resources.delete_resource(get_user_id(request), resource_id)
    return {"deleted": True, "id": resource_id}


# -- skills -----------------------------------------------------------------


@router.get("/resources/{resource_id}/skills")
def list_skills(resource_id: str, request: Request, response: Response) -> dict:
    no_store(response)
    return listing(get_services(request).resources.list_skills(get_user_id(request), resource_id))


@router.post("/resources/{resource_id}/skills", status_code=201)
def add_skill(resource_id: str, payload: SkillCreate, request: Request) -> dict:
    return get_services(request).resources.add_skill(get_user_id(request), resource_id, payload.skill, payload.level)


@router.delete("/skills/{skill_id}")
def remove_skill(skill_id: str, request: Request) -> dict:
    get_services(request).resources.remove_skill(get_user_id(request), skill_id)
    return {"deleted": True, "id": skill_id}


@router.get("/skills/matrix")
def skill_matrix(request: Request, response: Response) -> dict:
    no_store(response)
    return {"matrix": get_services(request).resources.skill_matrix(get_user_id(request))}


# -- allocations ------------------------------------------------------------


@router.get("/allocations")
def list_allocations(
    request: Request,
    response: Response,
    resource_id: str | None = Query(default=None, max_length=64),
    project_id: str | None = Query(default=None, max_length=64),
) -> dict:
    no_store(response)
    items = get_services(request).resources.list_allocations(
        get_user_id(request), resource_id=resource_id, project_id=project_id
    )
    return listing(items)


@router.post("/allocations", status_code=201)
def create_allocation(payload: AllocationCreate, request: Request) -> dict:
    return get_services(request).resources.create_allocation(
        get_user_id(request), payload.model_dump(exclude_none=True)
    )


@router.patch("/allocations/{allocation_id}")
def update_allocation(allocation_id: str, payload: AllocationUpdate, request: Request) -> dict:
    return get_services(request).resources.update_allocation(get_user_id(request), allocation_id, payload.changes())


@router.delete("/allocations/{allocation_id}")
def delete_allocation(allocation_id: str, request: Request) -> dict:
    get_services(request).resources.delete_allocation(get_user_id(request), allocation_id)
    return {"deleted": True, "id": allocation_id}


@router.get("/capacity")
def capacity(request: Request, response: Response) -> dict:
    no_store(response)
    return get_services(request).resources.capacity_report(get_user_id(request))


# -- team directory ---------------------------------------------------------


@router.get("/team-members")
def list_team_members(request: Request, response: Response) -> dict:
    no_store(response)
    return listing(get_services(request).resources.list_team_members(get_user_id(request)))


@router.post("/team-members", status_code=201)
def add_team_member(payload: TeamMemberCreate, request: Request) -> dict:
    return get_services(request).resources.add_team_member(get_user_id(request), payload.model_dump())


@router.delete("/team-members/{member_id}")
def remove_team_member(member_id: str, request: Request) -> dict:
    get_services(request).resources.remove_team_member(get_user_id(request), member_id)
    return {"deleted": True, "id": member_id}
