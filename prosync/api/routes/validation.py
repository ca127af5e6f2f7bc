"""
Input validation route.
"""

from __future__ import annotations

from fastapi import APIRouter

from prosync.api.models import ValidateRequest, ValidateResponse
from prosync.services.validation import validate_value

router = APIRouter(prefix="/v1", tags=["validation"])


@router.post("/validate", response_model=ValidateResponse)
def validate(payload: ValidateRequest) -> ValidateResponse:
    valid, error = validate_value(payload.type, payload.data)
    return ValidateResponse(valid=valid, error=error)
