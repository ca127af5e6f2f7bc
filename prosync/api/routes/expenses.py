"""
BudgetBuddy routes: expenses, categories and project budgets.
"""

from __future__ import annotations

from fastapi import APIRouter, Query, Request, Response

from prosync.api.dependencies import get_services, get_user_id, listing, no_store
from prosync.api.models import BudgetSet, CategoryCreate, ExpenseCreate, ExpenseUpdate

router = APIRouter(prefix="/v1", tags=["expenses"])


@router.get("/expenses")
def list_expenses(
    request: Request,
    response: Response,
    project_id: str | None = Query(default=None, max_length=64),
    status: str | None = Query(default=None, max_length=40),
) -> dict:
    no_store(response)
    return get_services(request).expenses.list_expenses(get_user_id(request), project_id=project_id, status=status)


@router.post("/expenses", status_code=201)
def create_expense(payload: ExpenseCreate, request: Request) -> dict:
    return get_services(request).expenses.create_expense(get_user_id(request), payload.model_dump(exclude_none=True))


@router.get("/expenses/{expense_id}")
def get_expense(expense_id: str, request: Request, response: Response) -> dict:
    no_store(response)
    return get_services(request).expenses.get_expense(get_user_id(request), expense_id)


@router.patch("/expenses/{expense_id}")
def update_expense(expense_id: str, payload: ExpenseUpdate, request: Request) -> dict:
    return get_services(request).expenses.update_expense(get_user_id(request), expense_id, payload.changes())


@router.delete("/expenses/{expense_id}")
def delete_expense(expense_id: str, request: Request) -> dict:
    get_services(request).expenses.delete_expense(get_user_id(request), expense_id)
    return {"deleted": True, "id": expense_id}


@router.post("/expenses/{expense_id}/approve")
def approve_expense(expense_id: str, request: Request) -> dict:
    return get_services(request).expenses.approve_expense(get_user_id(request), expense_id)


@router.post("/expenses/{expense_id}/reject")
def reject_expense(expense_id: str, request: Request) -> dict:
    return get_services(request).expenses.reject_expense(get_user_id(request), expense_id)


# -- categories -------------------------------------------------------------


@router.get("/expense-categories")
def list_categories(request: Request, response: Response) -> dict:
    no_store(response)
    return listing(get_services(request).expenses.list_categories(get_user_id(request)))


@router.post("/expense-categories", status_code=201)
def create_category(payload: CategoryCreate, request: Request) -> dict:
    return get_services(request).expenses.create_category(get_user_id(request), payload.name, payload.color)


@router.delete("/expense-categories/{category_id}")
def delete_category(category_id: str, request: Request) -> dict:
    get_services(request).expenses.delete_category(get_user_id(request), category_id)
    return {"deleted": True, "id": category_id}


# -- budgets ----------------------------------------------------------------


@router.get("/budgets/{project_id}")
def budget_status(project_id: str, request: Request, response: Response) -> dict:
    no_store(response)
    return get_services(request).expenses.budget_status(get_user_id(request), project_id)


@router.put("/budgets/{project_id}")
def set_budget(project_id: str, payload: BudgetSet, request: Request) -> dict:
    return get_services(request).expenses.set_budget(get_user_id(request), project_id, payload.total)
