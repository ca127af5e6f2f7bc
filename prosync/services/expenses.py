"""BudgetBuddy: expenses, expense categories and per-project budgets."""

from __future__ import annotations

import logging
from typing import Any

from prosync.config import EXPENSE_STATUSES, Settings, get_settings
from prosync.exceptions import RecordNotFoundError, ValidationError
from prosync.repository import Query, RecordStore, utc_now_iso
from prosync.services.base import TableService, require_text, require_user, to_iso
from prosync.services.notifications import NotificationService

logger = logging.getLogger(__name__)

_EDITABLE = ("amount", "currency", "category_id", "description", "project_id", "date", "receipt_url")


def _amount(value: Any, field: str = "amount") -> float:
    try:
        amount = round(float(value), 2)
    except (TypeError, ValueError) as exc:
        raise ValidationError("must be a number", field=field) from exc
    if amount <= 0:
        raise ValidationError("must be greater than zero", field=field)
    return amount


class ExpenseService(TableService):
    table = "expenses"
    resource_name = "Expense"

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
        if "amount" in values:
            values["amount"] = _amount(values["amount"])
        if "currency" in values:
            values["currency"] = require_text(values["currency"], "currency", max_length=3).upper()
        if values.get("date"):
            values["date"] = to_iso(values["date"], "date")
        return values

    # -- expenses -----------------------------------------------------------

    def list_expenses(
        self,
        user_id: str,
        *,
        project_id: str | None = None,
        status: str | None = None,
    ) -> dict[str, Any]:
        query = self._owner_query(require_user(user_id))
        if project_id:
            query.eq("project_id", project_id)
        if status:
            query.eq("status", status)
        query.order("date", desc=True).limit(self.settings.expense_list_limit)
        items = self.store.select(self.table, query)
        return {
            "items": items,
            "total": len(items),
            "total_amount": round(sum(float(e.get("amount") or 0) for e in items), 2),
        }

    def get_expense(self, user_id: str, expense_id: str) -> dict[str, Any]:
        return self._owned(expense_id, require_user(user_id))

    def create_expense(self, user_id: str, values: dict[str, Any]) -> dict[str, Any]:
        user_id = require_user(user_id)
        data = self._validate({k: v for k, v in values.items() if k in _EDITABLE and v is not None})
        if "amount" not in data:
            raise ValidationError("is required", field="amount")
        data.setdefault("currency", "USD")
        data.setdefault("date", utc_now_iso())
        data["status"] = "pending"
        data["user_id"] = user_id

        before = self._spent(data["project_id"]) if data.get("project_id") else 0.0
        expense = self.store.insert(self.table, data)
        logger.info("expense_created", extra={"expense_id": expense["id"], "amount": expense["amount"]})
        if expense.get("project_id"):
            self._check_budget(user_id, expense["project_id"], before)
        return expense

    def update_expense(self, user_id: str, expense_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        self._owned(expense_id, require_user(user_id))
        data = self._validate({k: v for k, v in changes.items() if k in _EDITABLE})
        return self._update_or_raise(expense_id, data)

    def delete_expense(self, user_id: str, expense_id: str) -> None:
        self._owned(expense_id, require_user(user_id))
        self._delete_or_raise(expense_id)

    def review_expense(self, reviewer_id: str, expense_id: str, status: str) -> dict[str, Any]:
        """Approve or reject an expense; the submitter is told about approvals."""
        reviewer_id = require_user(reviewer_id)
        if status not in EXPENSE_STATUSES - {"pending"}:
            raise ValidationError("must be approved or rejected", field="status")
        self._get_or_raise(expense_id)
        expense = self._update_or_raise(
            expense_id, {"status": status, "reviewed_by": reviewer_id, "reviewed_at": utc_now_iso()}
        )
        logger.info("expense_reviewed", extra={"expense_id": expense_id, "status": status})
        if status == "approved" and self.notifications:
            self.notifications.notify_budget(
                expense["user_id"], self._project_name(expense.get("project_id")), "approved", related_id=expense_id
            )
        return expense

    def approve_expense(self, reviewer_id: str, expense_id: str) -> dict[str, Any]:
        return self.review_expense(reviewer_id, expense_id, "approved")

    def reject_expense(self, reviewer_id: str, expense_id: str) -> dict[str, Any]:
        return self.review_expense(reviewer_id, expense_id, "rejected")

    # -- categories ---------------------------------------------------------

    def list_categories(self, user_id: str) -> list[dict[str, Any]]:
        query = self._owner_query(require_user(user_id)).order("name")
        return self.store.select("expense_categories", query)

    def create_category(self, user_id: str, name: str, color: str | None = None) -> dict[str, Any]:
        return self.store.insert(
            "expense_categories",
            {"user_id": require_user(user_id), "name": require_text(name, "name", max_length=100), "color": color},
        )

    def delete_category(self, user_id: str, category_id: str) -> None:
        category = self._get_or_raise(category_id, "expense_categories", "Category")
        if category.get("user_id") != require_user(user_id):
            raise RecordNotFoundError("Category", category_id)
        self.store.delete("expense_categories", category_id)

    # -- budgets ------------------------------------------------------------

    def _project_name(self, project_id: str | None) -> str:
        if not project_id:
            return "Unassigned"
        project = self.store.get("projects", project_id)
        return project["name"] if project else project_id

    def _spent(self, project_id: str) -> float:
        query = Query().eq("project_id", project_id).neq("status", "rejected")
        return round(sum(float(e.get("amount") or 0) for e in self.store.select(self.table, query)), 2)

    def _budget(self, project_id: str) -> dict[str, Any] | None:
        return self.store.first("budgets", Query().eq("project_id", project_id))

    def _owned_project(self, user_id: str, project_id: str) -> dict[str, Any]:
        project = self.store.get("projects", project_id)
        if project is None or project.get("user_id") != require_user(user_id):
            raise RecordNotFoundError("Project", project_id)
        return project

    def set_budget(self, user_id: str, project_id: str, total: Any) -> dict[str, Any]:
        """Create or replace the budget of a project the user owns."""
        user_id = require_user(user_id)
        self._owned_project(user_id, project_id)
        total = _amount(total, "total")
        existing = self._budget(project_id)
        if existing:
            return self.store.update("budgets", existing["id"], {"total": total})
        return self.store.insert("budgets", {"project_id": project_id, "user_id": user_id, "total": total})

    def budget_status(self, user_id: str, project_id: str) -> dict[str, Any]:
        self._owned_project(user_id, project_id)
        budget = self._budget(project_id)
        total = float(budget["total"]) if budget else 0.0
        spent = self._spent(project_id)
        return {
            "project_id": project_id,
            "total": total,
            "spent": spent,
            "remaining": round(total - spent, 2),
            "percent_used": round(spent / total * 100, 1) if total else 0.0,
            "has_budget": budget is not None,
        }

    def _check_budget(self, user_id: str, project_id: str, spent_before: float) -> None:
        budget = self._budget(project_id)
        if not budget or not self.notifications:
            return
        total = float(budget["total"])
        before = spent_before / total * 100
        after = self._spent(project_id) / total * 100
        threshold = self.settings.budget_alert_percent
        name = self._project_name(project_id)
        if after > 100 >= before:
            self.notifications.notify_budget(
                user_id, name, "overspent", percentage=round(after - 100), related_id=budget["id"]
            )
        elif after >= threshold > before:
            self.notifications.notify_budget(user_id, name, "threshold", percentage=round(after), related_id=budget["id"])
