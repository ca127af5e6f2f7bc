"""
TaskMaster and PlanBoard routes: tasks, projects, boards and sprints.
"""

from __future__ import annotations

from fastapi import APIRouter, Query, Request, Response

from prosync.api.dependencies import get_services, get_user_id, listing, no_store
from prosync.api.models import (
    BoardCreate,
    BoardUpdate,
    PriorityAnalysisRequest,
    ProjectCreate,
    ProjectUpdate,
    SprintCreate,
    SprintTaskAdd,
    SprintUpdate,
    StoryPointsUpdate,
    TaskCreate,
    TaskUpdate,
)

router = APIRouter(prefix="/v1", tags=["tasks"])


@router.get("/tasks")
def list_tasks(
    request: Request,
    response: Response,
    status: str | None = Query(default=None, max_length=40),
    priority: str | None = Query(default=None, max_length=40),
    project_id: str | None = Query(default=None, max_length=64),
    assignee_id: str | None = Query(default=None, max_length=128),
) -> dict:
    no_store(response)
    items = get_services(request).tasks.list_tasks(
        get_user_id(request),
        status=status,
        priority=priority,
        project_id=project_id,
        assignee_id=assignee_id,
    )
    return listing(items)


@router.post("/tasks", status_code=201)
def create_task(payload: TaskCreate, request: Request) -> dict:
    return get_services(request).tasks.create_task(get_user_id(request), payload.model_dump(exclude_none=True))


@router.post("/tasks/analyze-priorities")
def analyze_priorities(payload: PriorityAnalysisRequest, request: Request, response: Response) -> dict:
    no_store(response)
    items = get_services(request).tasks.analyze_user_tasks(get_user_id(request), payload.task_ids)
    return listing(items)


@router.get("/tasks/{task_id}")
def get_task(task_id: str, request: Request, response: Response) -> dict:
    no_store(response)
    return get_services(request).tasks.get_task(get_user_id(request), task_id)


@router.patch("/tasks/{task_id}")
def update_task(task_id: str, payload: TaskUpdate, request: Request) -> dict:
    return get_services(request).tasks.update_task(get_user_id(request), task_id, payload.changes())


@router.delete("/tasks/{task_id}")
def delete_task(task_id: str, request: Request) -> dict:
    get_services(request).tasks.delete_task(get_user_id(request), task_id)
    return {"deleted": True, "id": task_id}


# -- projects ---------------------------------------------------------------


@router.get("/projects")
def list_projects(
    request: Request,
    response: Response,
    status: str | None = Query(default=None, max_length=40),
) -> dict:
    no_store(response)
    return listing(get_services(request).projects.list_projects(get_user_id(request), status=status))


@router.post("/projects", status_code=201)
def create_project(payload: ProjectCreate, request: Request) -> dict:
    return get_services(request).projects.create_project(get_user_id(request), payload.model_dump(exclude_none=True))


@router.get("/projects/{project_id}")
def get_project(project_id: str, request: Request, response: Response) -> dict:
    no_store(response)
    return get_services(request).projects.get_project(get_user_id(request), project_id)


@router.get("/projects/{project_id}/progress")
def project_progress(project_id: str, request: Request, response: Response) -> dict:
    no_store(response)
    return get_services(request).projects.project_progress(get_user_id(request), project_id)


@router.patch("/projects/{project_id}")
def update_project(project_id: str, payload: ProjectUpdate, request: Request) -> dict:
    return get_services(request).projects.update_project(get_user_id(request), project_id, payload.changes())


@router.delete("/projects/{project_id}")
def delete_project(project_id: str, request: Request) -> dict:
    get_services(request).projects.delete_project(get_user_id(request), project_id)
    return {"deleted": True, "id": project_id}


# -- boards -----------------------------------------------------------------


@router.get("/projects/{project_id}/boards")
def list_boards(project_id: str, request: Request, response: Response) -> dict:
    no_store(response)
    return listing(get_services(request).boards.list_boards(get_user_id(request), project_id))


@router.post("/boards", status_code=201)
def create_board(payload: BoardCreate, request: Request) -> dict:
    return get_services(request).boards.create_board(get_user_id(request), payload.model_dump(exclude_none=True))


@router.get("/boards/{board_id}")
def get_board(board_id: str, request: Request, response: Response) -> dict:
    no_store(response)
    return get_services(request).boards.get_board(get_user_id(request), board_id)


@router.patch("/boards/{board_id}")
def update_board(board_id: str, payload: BoardUpdate, request: Request) -> dict:
    return get_services(request).boards.update_board(get_user_id(request), board_id, payload.changes())


@router.delete("/boards/{board_id}")
def delete_board(board_id: str, request: Request) -> dict:
    get_services(request).boards.delete_board(get_user_id(request), board_id)
    return {"deleted": True, "id": board_id}


# -- sprints ----------------------------------------------------------------


@router.get("/boards/{board_id}/sprints")
def list_sprints(board_id: str, request: Request, response: Response) -> dict:
    no_store(response)
    return listing(get_services(request).boards.list_sprints(get_user_id(request), board_id))


@router.post("/boards/{board_id}/sprints", status_code=201)
def create_sprint(board_id: str, payload: SprintCreate, request: Request) -> dict:
    return get_services(request).boards.create_sprint(
        get_user_id(request), board_id, payload.model_dump(exclude_none=True)
    )


@router.get("/sprints/{sprint_id}")
def get_sprint(sprint_id: str, request: Request, response: Response) -> dict:
    no_store(response)
    return get_services(request).boards.get_sprint(get_user_id(request), sprint_id)


@router.patch("/sprints/{sprint_id}")
def update_sprint(sprint_id: str, payload: SprintUpdate, request: Request) -> dict:
    return get_services(request).boards.update_sprint(get_user_id(request), sprint_id, payload.changes())


@router.delete("/sprints/{sprint_id}")
def delete_sprint(sprint_id: str, request: Request) -> dict:
    get_services(request).boards.delete_sprint(get_user_id(request), sprint_id)
    return {"deleted": True, "id": sprint_id}


@router.get("/sprints/{sprint_id}/velocity")
def sprint_velocity(sprint_id: str, request: Request, response: Response) -> dict:
    no_store(response)
    return get_services(request).boards.calculate_velocity(get_user_id(request), sprint_id)


@router.get("/sprints/{sprint_id}/tasks")
def list_sprint_tasks(sprint_id: str, request: Request, response: Response) -> dict:
    no_store(response)
    return listing(get_services(request).boards.list_sprint_tasks(get_user_id(request), sprint_id))


@router.post("/sprints/{sprint_id}/tasks", status_code=201)
def add_task_to_sprint(sprint_id: str, payload: SprintTaskAdd, request: Request) -> dict:
    return get_services(request).boards.add_task_to_sprint(
        get_user_id(request), sprint_id, payload.task_id, payload.story_points
    )


@router.patch("/sprints/{sprint_id}/tasks/{task_id}")
def update_story_points(sprint_id: str, task_id: str, payload: StoryPointsUpdate, request: Request) -> dict:
    return get_services(request).boards.update_story_points(
        get_user_id(request), sprint_id, task_id, payload.story_points
    )


@router.delete("/sprints/{sprint_id}/tasks/{task_id}")
def remove_task_from_sprint(sprint_id: str, task_id: str, request: Request) -> dict:
    get_services(request).boards.remove_task_from_sprint(get_user_id(request), sprint_id, task_id)
    return {"deleted": True, "id": task_id}
