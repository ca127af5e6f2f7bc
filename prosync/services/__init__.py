"""Service objects: one per product module, all sharing a record store."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from prosync.config import Settings, get_settings
from prosync.repository import RecordStore
from prosync.services.assistant import AssistantService
from prosync.services.boards import BoardService
from prosync.services.clients import ClientService
from prosync.services.dashboard import DashboardService
from prosync.services.expenses import ExpenseService
from prosync.services.knowledge import KnowledgeService
from prosync.services.notifications import NotificationService
from prosync.services.preferences import PreferencesService
from prosync.services.projects import ProjectService
from prosync.services.resources import ResourceService
from prosync.services.risks import RiskService
from prosync.services.service_desk import ServiceDeskService
from prosync.services.tasks import TaskService
from prosync.services.time_tracking import TimeTrackingService


@dataclass
class Services:
    notifications: NotificationService
    tasks: TaskService
    projects: ProjectService
    boards: BoardService
    time: TimeTrackingService
    expenses: ExpenseService
    clients: ClientService
    resources: ResourceService
    risks: RiskService
    knowledge: KnowledgeService
    service_desk: ServiceDeskService
    preferences: PreferencesService
    dashboard: DashboardService
    assistant: AssistantService


def build_services(
    store: RecordStore,
    settings: Settings | None = None,
    *,
    ai_client_factory: Callable[..., Any] | None = None,
) -> Services:
    settings = settings or get_settings()
    notifications = NotificationService(store)
    tasks = TaskService(store, notifications)
    return Services(
        notifications=notifications,
        tasks=tasks,
        projects=ProjectService(store, notifications),
        boards=BoardService(store, tasks),
        time=TimeTrackingService(store, notifications, settings),
        expenses=ExpenseService(store, notifications, settings),
        clients=ClientService(store, notifications),
        resources=ResourceService(store, notifications, settings),
        risks=RiskService(store, notifications, settings),
        knowledge=KnowledgeService(store),
        service_desk=ServiceDeskService(store, notifications),
        preferences=PreferencesService(store),
        dashboard=DashboardService(store),
        assistant=AssistantService(store, settings, client_factory=ai_client_factory),
    )


__all__ = ["Services", "build_services"]
