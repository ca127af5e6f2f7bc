"""
RiskRadar routes. Risks are shared across the workspace.
"""

from __future__ import annotations

from fastapi import APIRouter, Query, Request, Response

from prosync.api.dependencies import get_services, get_user_id, listing, no_store
from prosync.api.models import MitigationCreate, MitigationUpdate, RiskCreate, RiskUpdate

router = APIRouter(prefix="/v1", tags=["risks"])


@router.get("/risks")
def list_risks(
    request: Request,
    response: Response,
    project_id: str | None = Query(default=None, max_length=64),
    status: str | None = Query(default=None, max_length=40),
) -> dict:
    no_store(response)
    get_user_id(request)
    return listing(get_services(request).risks.list_risks(project_id=project_id, status=status))


@router.post("/risks", status_code=201)
def create_risk(payload: RiskCreate, request: Request) -> dict:
    return get_services(request).risks.create_risk(get_user_id(request), payload.model_dump(exclude_none=True))


@router.get("/risks/analytics")
def analytics(
    request: Request,
    response: Response,
    project_id: str | None = Query(default=None, max_length=64),
) -> dict:
    no_store(response)
    get_user_id(request)
    return get_services(request).risks.analytics(project_id=project_id)


@router.get("/risks/{risk_id}")
def get_risk(risk_id: str, request: Request, response: Response) -> dict:
    no_store(response)
    get_user_id(request)
    return get_services(request).risks.get_risk(risk_id)


@router.patch("/risks/{risk_id}")
def update_risk(risk_id: str, payload: RiskUpdate, request: Request) -> dict:
    return get_services(request).risks.update_risk(get_user_id(request), risk_id, payload.changes())


@router.delete("/risks/{risk_id}")
def delete_risk(risk_id: str, request: Request) -> dict:
    get_user_id(request)
    get_services(request).risks.delete_risk(risk_id)
    return {"deleted": True, "id": risk_id}


@router.get("/risks/{risk_id}/mitigations")
def list_mitigations(risk_id: str, request: Request, response: Response) -> dict:
    no_store(response)
    get_user_id(request)
    services = get_services(request)
    services.risks.get_risk(risk_id)
    return listing(services.risks.list_mitigations(risk_id))


@router.post("/risks/{risk_id}/mitigations", status_code=201)
def create_mitigation(risk_id: str, payload: MitigationCreate, request: Request) -> dict:
    return get_services(request).risks.create_mitigation(
        get_user_id(request), risk_id, payload.model_dump(exclude_none=True)
    )


@router.patch("/mitigations/{mitigation_id}")
def update_mitigation(mitigation_id: str, payload: MitigationUpdate, request: Request) -> dict:
    get_user_id(request)
    return get_services(request).risks.update_mitigation(mitigation_id, payload.changes())
