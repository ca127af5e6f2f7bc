"""
Pydantic models for API requests and responses.

Create models carry the required fields; ``*Update`` models make everything
optional and are dumped with ``exclude_unset`` so PATCH only touches the
fields the client sent.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

TaskStatus = Literal["todo", "in_progress", "review", "completed", "blocked"]
TaskPriority = Literal["low", "medium", "high", "urgent"]
NotificationType = Literal["info", "warning", "success", "error"]
TicketPriority = Literal["low", "medium", "high", "critical"]
TicketStatus = Literal["open", "in_progress", "resolved", "closed"]
TicketType = Literal["incident", "request", "problem", "change"]
Level = Literal["low", "medium", "high"]
BoardType = Literal["kanban", "scrum", "timeline", "issue_tracker"]
SprintStatus = Literal["planned", "active", "completed", "cancelled"]


class PatchModel(BaseModel):
    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


# =============================================================================
# Tasks & projects
# =============================================================================


class TaskCreate(BaseModel):
    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "title": "Prepare Q3 report",
                    "priority": "high",
                    "due_date": "2026-10-30",
                    "effort": "high",
                    "project_id": None,
                }
            ]
        }
    )

    title: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=10000)
    status: TaskStatus = "todo"
    priority: TaskPriority = "medium"
    due_date: str | None = None
    project_id: str | None = None
    assignee_id: str | None = None
    effort: Level | None = None
    tags: list[str] = Field(default_factory=list)


class TaskUpdate(PatchModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=10000)
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    due_date: str | None = None
    project_id: str | None = None
    assignee_id: str | None = None
    effort: Level | None = None
    tags: list[str] | None = None


class PriorityAnalysisRequest(BaseModel):
    task_ids: list[str] | None = Field(default=None, description="Analyze these tasks; all open tasks when omitted")


class ProjectCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    status: Literal["planning", "active", "on_hold", "completed", "cancelled"] = "active"
    start_date: str | None = None
    end_date: str | None = None
    client_id: str | None = None
    color: str | None = Field(default=None, max_length=20)


class ProjectUpdate(PatchModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    status: Literal["planning", "active", "on_hold", "completed", "cancelled"] | None = None
    start_date: str | None = None
    end_date: str | None = None
    client_id: str | None = None
    color: str | None = Field(default=None, max_length=20)


class BoardCreate(BaseModel):
    project_id: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=200)
    type: BoardType = "kanban"
    description: str | None = Field(default=None, max_length=2000)
    config: dict[str, Any] | None = None


class BoardUpdate(PatchModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    type: BoardType | None = None
    description: str | None = Field(default=None, max_length=2000)
    config: dict[str, Any] | None = None


class SprintCreate(BaseModel):
    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "name": "Sprint 12",
                    "goal": "Ship billing export",
                    "start_date": "2026-10-19",
                    "end_date": "2026-11-01",
                }
            ]
        }
    )

    name: str = Field(min_length=1, max_length=200)
    goal: str | None = Field(default=None, max_length=2000)
    start_date: str | None = None
    end_date: str | None = None
    status: SprintStatus = "planned"
    capacity: int | None = Field(default=None, ge=0)


class SprintUpdate(PatchModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    goal: str | None = Field(default=None, max_length=2000)
    start_date: str | None = None
    end_date: str | None = None
    status: SprintStatus | None = None
    capacity: int | None = Field(default=None, ge=0)


class SprintTaskAdd(BaseModel):
    task_id: str = Field(min_length=1)
    story_points: int | None = Field(default=None, ge=0)


class StoryPointsUpdate(BaseModel):
    story_points: int | None = Field(default=None, ge=0)


# =============================================================================
# Time & expenses
# =============================================================================


class TimeEntryCreate(BaseModel):
    model_config = ConfigDict(
        json_schema_extra={"examples": [{"description": "Client call", "project": "Acme", "time_spent": 45, "billable": True}]}
    )

    description: str | None = Field(default=None, max_length=500)
    project: str | None = Field(default=None, max_length=200)
    project_id: str | None = None
    task_id: str | None = None
    time_spent: int | None = Field(default=None, ge=0, description="Minutes")
    billable: bool = False
    date: str | None = None
    tags: list[str] | None = None


class TimeEntryUpdate(PatchModel):
    description: str | None = Field(default=None, max_length=500)
    project: str | None = Field(default=None, max_length=200)
    project_id: str | None = None
    task_id: str | None = None
    time_spent: int | None = Field(default=None, ge=0)
    billable: bool | None = None
    date: str | None = None
    tags: list[str] | None = None


class ExpenseCreate(BaseModel):
    model_config = ConfigDict(
        json_schema_extra={"examples": [{"amount": 42.5, "currency": "USD", "description": "Train ticket"}]}
    )

    amount: float = Field(gt=0)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    category_id: str | None = None
    description: str | None = Field(default=None, max_length=500)
    project_id: str | None = None
    date: str | None = None
    receipt_url: str | None = Field(default=None, max_length=2000)


class ExpenseUpdate(PatchModel):
    amount: float | None = Field(default=None, gt=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    category_id: str | None = None
    description: str | None = Field(default=None, max_length=500)
    project_id: str | None = None
    date: str | None = None
    receipt_url: str | None = Field(default=None, max_length=2000)


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    color: str | None = Field(default=None, max_length=20)


class BudgetSet(BaseModel):
    total: float = Field(gt=0)


# =============================================================================
# Clients & resources
# =============================================================================


class ClientCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: str | None = Field(default=None, max_length=320)
    phone: str | None = Field(default=None, max_length=50)
    company: str | None = Field(default=None, max_length=200)
    status: str | None = Field(default=None, max_length=40)
    address: str | None = None
    website: str | None = None


class ClientUpdate(PatchModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    email: str | None = Field(default=None, max_length=320)
    phone: str | None = Field(default=None, max_length=50)
    company: str | None = Field(default=None, max_length=200)
    status: str | None = Field(default=None, max_length=40)
    address: str | None = None
    website: str | None = None


class NoteBody(BaseModel):
    content: str = Field(min_length=1, max_length=10000)


class ResourceCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    role: str | None = Field(default=None, max_length=100)
    email: str | None = None
    availability: str | None = None
    hourly_rate: float | None = Field(default=None, ge=0)
    department: str | None = None


class ResourceUpdate(PatchModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    role: str | None = Field(default=None, max_length=100)
    email: str | None = None
    availability: str | None = None
    hourly_rate: float | None = Field(default=None, ge=0)
    department: str | None = None


class AllocationCreate(BaseModel):
    resource_id: str = Field(min_length=1)
    project_id: str | None = None
    percent: float = Field(gt=0, le=100)
    start_date: str | None = None
    end_date: str | None = None
    notes: str | None = None


class AllocationUpdate(PatchModel):
    project_id: str | None = None
    percent: float | None = Field(default=None, gt=0, le=100)
    start_date: str | None = None
    end_date: str | None = None
    notes: str | None = None


class SkillCreate(BaseModel):
    skill: str = Field(min_length=1, max_length=100)
    level: Literal["beginner", "intermediate", "advanced", "expert"] = "intermediate"


class TeamMemberCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: str | None = None
    role: str | None = None


# =============================================================================
# Risks
# =============================================================================


class RiskCreate(BaseModel):
    model_config = ConfigDict(
        json_schema_extra={"examples": [{"title": "Vendor delay", "probability": 0.8, "impact": 0.9, "category": "schedule"}]}
    )

    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    category: str | None = Field(default=None, max_length=60)
    probability: float = Field(ge=0, le=1)
    impact: float = Field(ge=0, le=1)
    status: Literal["open", "monitoring", "mitigated", "closed"] = "open"
    project_id: str | None = None
    owner_id: str | None = None


class RiskUpdate(PatchModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    category: str | None = Field(default=None, max_length=60)
    probability: float | None = Field(default=None, ge=0, le=1)
    impact: float | None = Field(default=None, ge=0, le=1)
    status: Literal["open", "monitoring", "mitigated", "closed"] | None = None
    project_id: str | None = None
    owner_id: str | None = None


class MitigationCreate(BaseModel):
    action: str = Field(min_length=1, max_length=500)
    description: str | None = None
    status: Literal["planned", "in_progress", "completed"] = "planned"
    owner_id: str | None = None
    due_date: str | None = None


class MitigationUpdate(PatchModel):
    action: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = None
    status: Literal["planned", "in_progress", "completed"] | None = None
    owner_id: str | None = None
    due_date: str | None = None


# =============================================================================
# Knowledge base
# =============================================================================


class PageCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    slug: str | None = Field(default=None, max_length=200)
    content: str = Field(default="", max_length=200_000)
    is_published: bool = True
    tags: list[str] = Field(default_factory=list)
    parent_id: str | None = None


class PageUpdate(PatchModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    slug: str | None = Field(default=None, max_length=200)
    content: str | None = Field(default=None, max_length=200_000)
    is_published: bool | None = None
    tags: list[str] | None = None
    parent_id: str | None = None


class CommentBody(BaseModel):
    content: str = Field(min_length=1, max_length=10000)


# =============================================================================
# Service desk
# =============================================================================


class TicketCreate(BaseModel):
    model_config = ConfigDict(
        json_schema_extra={"examples": [{"title": "VPN down", "type": "incident", "priority": "critical"}]}
    )

    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    type: TicketType = "incident"
    priority: TicketPriority = "medium"
    assigned_to: str | None = None
    category: str | None = None
    tags: list[str] = Field(default_factory=list)


class TicketUpdate(PatchModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    type: TicketType | None = None
    priority: TicketPriority | None = None
    status: TicketStatus | None = None
    assigned_to: str | None = None
    category: str | None = None
    tags: list[str] | None = None


class TicketCommentCreate(BaseModel):
    content: str = Field(min_length=1, max_length=10000)
    is_private: bool = False
    mentions: list[str] = Field(default_factory=list)


class ChangeRequestCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    status: Literal["draft", "review", "approved", "implementation", "completed", "closed"] = "draft"
    change_type: Literal["standard", "emergency", "normal"] = "normal"
    risk_level: Level = "low"
    impact_level: Level = "low"
    scheduled_start: str | None = None
    scheduled_end: str | None = None
    rollback_plan: str | None = None
    ticket_id: str | None = None


class ChangeRequestUpdate(PatchModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    status: Literal["draft", "review", "approved", "implementation", "completed", "closed"] | None = None
    change_type: Literal["standard", "emergency", "normal"] | None = None
    risk_level: Level | None = None
    impact_level: Level | None = None
    scheduled_start: str | None = None
    scheduled_end: str | None = None
    rollback_plan: str | None = None


class ProblemCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    status: Literal["open", "investigating", "resolved", "closed"] = "open"
    root_cause: str | None = None
    workaround: str | None = None
    related_tickets: list[str] = Field(default_factory=list)
    assigned_to: str | None = None


class ProblemUpdate(PatchModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    status: Literal["open", "investigating", "resolved", "closed"] | None = None
    root_cause: str | None = None
    workaround: str | None = None
    related_tickets: list[str] | None = None
    assigned_to: str | None = None


# =============================================================================
# Settings, AI, validation
# =============================================================================


class PreferencesUpdate(PatchModel):
    theme: Literal["light", "dark", "system"] | None = None
    language: str | None = Field(default=None, max_length=16)
    timezone: str | None = Field(default=None, max_length=64)
    date_format: str | None = Field(default=None, max_length=32)
    email_notifications: bool | None = None
    app_notifications: bool | None = None
    auto_save: bool | None = None
    interface_density: Literal["compact", "comfortable", "spacious"] | None = None
    font_size: Literal["small", "medium", "large"] | None = None


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str = Field(max_length=20000)


class ChatRequest(BaseModel):
    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "message": "Which of my tasks are due this week?",
                    "history": [{"role": "user", "content": "Hi"}, {"role": "assistant", "content": "Hello!"}],
                    "include_context": True,
                }
            ]
        }
    )

    message: str = Field(min_length=1, max_length=4000)
    history: list[ChatTurn] = Field(default_factory=list, max_length=200)
    include_context: bool = False


class ApiKeyBody(BaseModel):
    api_key: str = Field(min_length=8, max_length=500)


class ValidateRequest(BaseModel):
    model_config = ConfigDict(json_schema_extra={"examples": [{"type": "email", "data": "ada@example.com"}]})

    type: str = Field(min_length=1, max_length=40)
    data: str = Field(max_length=1000)


class ValidateResponse(BaseModel):
    valid: bool
    error: str | None = None


class HealthResponse(BaseModel):
    ok: bool
    backend: str
