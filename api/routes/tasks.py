"""
api/routes/tasks.py -- Task CRUD routes for the TaskGuard REST API.

Routes (in registration order to avoid FastAPI path capture conflicts):
  GET    /api/tasks                 -- caller's tasks (admin: all tasks)
  POST   /api/tasks                 -- create a task owned by the caller
  GET    /api/tasks/search?query=   -- substring search, owner-scoped
  GET    /api/tasks/{task_id}       -- one task (owner or admin)
  PATCH  /api/tasks/{task_id}       -- update title/description/completed
  DELETE /api/tasks/{task_id}       -- delete (owner or admin)

Ownership (IDOR guard):
  The route-level policy proves the caller's role may perform the action.
  Single-task handlers then load the task and call guard.check_owner() with
  its user_id before reading or changing it. For non-admins a missing task and
  another user's task are the same 403; admins see a 404 for a missing one.

Mass assignment:
  TaskCreate has no user_id and forbids unknown fields; the owner is always
  identity.user_id.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response

from api.models import ResourceId, TaskCreate, TaskPatch, TaskResponse
from auth.errors import Forbidden
from auth.guard import AccessGuard, current_identity
from auth.models import Identity
from auth.policy import Capability
from tasks.models import Task
from tasks.store import TaskStore

router = APIRouter(prefix="/api")


def _visible_owner(identity: Identity) -> Optional[int]:
    """owner_id filter for list/search: None (everything) for admins, else the caller."""
    return None if identity.is_admin else identity.user_id


def _load_owned_task(request: Request, task_id: int, identity: Identity, capability: Capability) -> Task:
    """Fetch a task and enforce ownership.

    Non-admins get the same Forbidden for a missing task as for someone
    else's, so ids cannot be probed for existence. Admins get a 404.
    """
    task_store: TaskStore = request.app.state.task_store
    guard: AccessGuard = request.app.state.guard

    task = task_store.get_task(task_id)
    if task is None:
        if not identity.is_admin:
            raise Forbidden(f"task_id={task_id} does not exist")
        raise HTTPException(status_code=404, detail="Task not found.")
    guard.check_owner(identity, capability, task.user_id)
    return task


# ---------------------------------------------------------------------------
# Collection routes
# ---------------------------------------------------------------------------


@router.get("/tasks", response_model=list[TaskResponse])
def list_tasks(request: Request, identity: Identity = Depends(current_identity)) -> list[TaskResponse]:
    """Return the caller's tasks, or every task for an admin."""
    task_store: TaskStore = request.app.state.task_store
    return [TaskResponse.from_task(t) for t in task_store.list_tasks(owner_id=_visible_owner(identity))]


@router.post("/tasks", response_model=TaskResponse, status_code=201)
def create_task(
    request: Request,
    body: TaskCreate,
    identity: Identity = Depends(current_identity),
) -> TaskResponse:
    """Create a task owned by the authenticated caller."""
    task_store: TaskStore = request.app.state.task_store
    task_id = task_store.create_task(
        Task(
            user_id=identity.user_id,
            title=body.title,
            description=body.description,
            completed=body.completed,
        )
    )
    return TaskResponse.from_task(task_store.get_task(task_id))


@router.get("/tasks/search", response_model=list[TaskResponse])
def search_tasks(
    request: Request,
    query: str = Query(default="", max_length=200),
    identity: Identity = Depends(current_identity),
) -> list[TaskResponse]:
    """Case-insensitive substring search over title and description.

    The query is bound as a LIKE parameter; it can never alter the SQL.
    """
    task_store: TaskStore = request.app.state.task_store
    tasks = task_store.search_tasks(query, owner_id=_visible_owner(identity))
    return [TaskResponse.from_task(t) for t in tasks]


# ---------------------------------------------------------------------------
# Single-task routes
# ---------------------------------------------------------------------------


@router.get("/tasks/{task_id}", response_model=TaskResponse)
def get_task(request: Request, task_id: ResourceId, identity: Identity = Depends(current_identity)) -> TaskResponse:
    task = _load_owned_task(request, task_id, identity, Capability.TASKS_READ)
    return TaskResponse.from_task(task)


@router.patch("/tasks/{task_id}", response_model=TaskResponse)
def update_task(
    request: Request,
    task_id: ResourceId,
    body: TaskPatch,
    identity: Identity = Depends(current_identity),
) -> TaskResponse:
    """Apply a partial update. An empty body is a 400."""
    task_store: TaskStore = request.app.state.task_store
    _load_owned_task(request, task_id, identity, Capability.TASKS_UPDATE)

    updates = body.model_dump(exclude_none=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update.")
    task_store.update_task(task_id, **updates)
    return TaskResponse.from_task(task_store.get_task(task_id))


@router.delete("/tasks/{task_id}", status_code=204)
def delete_task(request: Request, task_id: ResourceId, identity: Identity = Depends(current_identity)) -> Response:
    task_store: TaskStore = request.app.state.task_store
    _load_owned_task(request, task_id, identity, Capability.TASKS_DELETE)
    task_store.delete_task(task_id)
    return Response(status_code=204)
