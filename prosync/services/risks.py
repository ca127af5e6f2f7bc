"""RiskRadar: the shared risk register, mitigations and risk analytics."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any

from prosync.config import MITIGATION_STATUSES, RISK_STATUSES, Settings, get_settings
from prosync.exceptions import ValidationError
from prosync.repository import Query, RecordStore
from prosync.services.base import TableService, check_choice, require_text, require_user, to_iso
from prosync.services.notifications import NotificationService

logger = logging.getLogger(__name__)

_EDITABLE = ("title", "description", "category", "probability", "impact", "status", "project_id", "owner_id")
_MITIGATION_FIELDS = ("action", "description", "status", "owner_id", "due_date")


def _unit_interval(value: Any, field: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError("must be a number", field=field) from exc
    if not 0 <= number <= 1:
        raise ValidationError("must be between 0 and 1", field=field)
    return number


def risk_score(probability: float, impact: float) -> float:
    return round(probability * impact, 4)


class RiskService(TableService):
    table = "risks"
    resource_name = "Risk"
    owner_field = None

    def __init__(
        self,
        store: RecordStore,
        notifications: NotificationService | None = None,
        settings: Settings | None = None,
    ) -> None:
        super().__init__(store)
        self.notifications = notifications
        self.settings = settings or get_settings()

    def _validate(self, values: dict[str, Any]) -> dict[str, Any]:
        if "title" in values:
            values["title"] = require_text(values["title"], "title", max_length=200)
        for field in ("probability", "impact"):
            if field in values:
                values[field] = _unit_interval(values[field], field)
        if "status" in values:
            check_choice(values["status"], RISK_STATUSES, "status")
        return values

    def list_risks(self, *, project_id: str | None = None, status: str | None = None) -> list[dict[str, Any]]:
        query = Query()
        if project_id:
            query.eq("project_id", project_id)
        if status:
            query.eq("status", status)
        return self.store.select(self.table, query.order("risk_score", desc=True))

    def get_risk(self, risk_id: str) -> dict[str, Any]:
        return self._get_or_raise(risk_id)

    def create_risk(self, user_id: str, values: dict[str, Any]) -> dict[str, Any]:
        user_id = require_user(user_id)
        data = self._validate({k: v for k, v in values.items() if k in _EDITABLE})
        for field in ("title", "probability", "impact"):
            if field not in data:
                raise ValidationError("is required", field=field)
        data.setdefault("status", "open")
        data.setdefault("category", "general")
        data["risk_score"] = risk_score(data["probability"], data["impact"])
        data["created_by"] = user_id
        risk = self.store.insert(self.table, data)
        logger.info("risk_created", extra={"risk_id": risk["id"], "risk_score": risk["risk_score"]})

        if self.notifications:
            self.notifications.notify_risk(user_id, risk["title"], "new_risk", risk_id=risk["id"])
            if risk["risk_score"] >= self.settings.high_risk_score:
                self.notifications.notify_risk(user_id, risk["title"], "high_risk", risk_id=risk["id"])
        return risk

    def update_risk(self, user_id: str, risk_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        user_id = require_user(user_id)
        current = self._get_or_raise(risk_id)
        data = self._validate({k: v for k, v in changes.items() if k in _EDITABLE})
        if "probability" in data or "impact" in data:
            data["risk_score"] = risk_score(
                data.get("probability", current.get("probability", 0)),
                data.get("impact", current.get("impact", 0)),
            )
        risk = self._update_or_raise(risk_id, data)
        if self.notifications and data.get("status") == "mitigated" and current.get("status") != "mitigated":
            self.notifications.notify_risk(user_id, risk["title"], "risk_mitigated", risk_id=risk_id)
        return risk

    def delete_risk(self, risk_id: str) -> None:
        self._get_or_raise(risk_id)
        self.store.delete_where("risk_mitigations", Query().eq("risk_id", risk_id))
        self._delete_or_raise(risk_id)

    # -- mitigations --------------------------------------------------------

    def list_mitigations(self, risk_id: str | None = None) -> list[dict[str, Any]]:
        query = Query()
        if risk_id:
            query.eq("risk_id", risk_id)
        return self.store.select("risk_mitigations", query.order("created_at", desc=True))

    def create_mitigation(self, user_id: str, risk_id: str, values: dict[str, Any]) -> dict[str, Any]:
        self.get_risk(risk_id)
        data = {k: v for k, v in values.items() if k in _MITIGATION_FIELDS}
        data["action"] = require_text(data.get("action"), "action", max_length=500)
        data["status"] = check_choice(data.get("status", "planned"), MITIGATION_STATUSES, "status")
        if data.get("due_date"):
            data["due_date"] = to_iso(data["due_date"], "due_date")
        data["risk_id"] = risk_id
        data["created_by"] = require_user(user_id)
        return self.store.insert("risk_mitigations", data)

    def update_mitigation(self, mitigation_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        self._get_or_raise(mitigation_id, "risk_mitigations", "Mitigation")
        data = {k: v for k, v in changes.items() if k in _MITIGATION_FIELDS}
        if "status" in data:
            check_choice(data["status"], MITIGATION_STATUSES, "status")
        return self.store.update("risk_mitigations", mitigation_id, data)

    # -- analytics ----------------------------------------------------------

    def analytics(self, *, project_id: str | None = None) -> dict[str, Any]:
        risks = self.list_risks(project_id=project_id)
        high = self.settings.high_risk_score
        medium = self.settings.medium_risk_score
        scores = [float(r.get("risk_score") or 0) for r in risks]
        return {
            "total": len(risks),
            "high": sum(1 for s in scores if s >= high),
            "medium": sum(1 for s in scores if medium <= s < high),
            "low": sum(1 for s in scores if s < medium),
            "average_score": round(sum(scores) / len(scores), 4) if scores else 0.0,
            "by_category": dict(Counter(r.get("category") or "general" for r in risks)),
            "by_status": dict(Counter(r.get("status") or "open" for r in risks)),
        }
