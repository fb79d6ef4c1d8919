"""
api/routes/users.py -- User administration endpoints (admin only).

Routes:
  GET    /api/users                    -- list all users
  POST   /api/users                    -- create a user
  DELETE /api/admin/users/{user_id}    -- delete a user and their tasks

All three capabilities are marked sensitive in auth/policy.py, so the guard
re-reads the caller's role from the store: an admin demoted or deleted after
login loses access here immediately.

Every mutation is written to the taskguard.audit logger with the acting
admin's id.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.exc import IntegrityError

from api.models import ResourceId, UserCreate, UserPublic
from auth.guard import current_identity
from auth.models import Identity, User
from auth.passwords import hash_password
from auth.store import UserStore
from tasks.store import TaskStore

audit = logging.getLogger("taskguard.audit")

router = APIRouter(prefix="/api")


@router.get("/users", response_model=list[UserPublic])
def list_users(request: Request, identity: Identity = Depends(current_identity)) -> list[UserPublic]:
    """List all user accounts without credentials."""
    user_store: UserStore = request.app.state.user_store
    return [UserPublic.from_user(u) for u in user_store.list_users()]


@router.post("/users", response_model=UserPublic, status_code=201)
def create_user(
    request: Request,
    body: UserCreate,
    identity: Identity = Depends(current_identity),
) -> UserPublic:
    """Provision a new account. 409 if the username is taken."""
    user_store: UserStore = request.app.state.user_store
    rounds = request.app.state.settings.bcrypt_rounds

    new_user = User(
        username=body.username,
        hashed_password=hash_password(body.password, rounds=rounds),
        email=body.email,
        role=body.role.value,
    )
    try:
        user_id = user_store.create_user(new_user)
    except IntegrityError as exc:
        raise HTTPException(status_code=409, detail="A user with that username already exists.") from exc

    audit.info("admin user_id=%d created user_id=%d role=%s", identity.user_id, user_id, new_user.role)
    created = user_store.get_by_id(user_id)
    return UserPublic.from_user(created)


@router.delete("/admin/users/{user_id}", status_code=204)
def delete_user(
    request: Request,
    user_id: ResourceId,
    identity: Identity = Depends(current_identity),
) -> Response:
    """Delete a user account and every task it owns.

    Self-deletion is refused so an admin cannot lock the last admin out.
    """
    user_store: UserStore = request.app.state.user_store
    task_store: TaskStore = request.app.state.task_store

    if user_id == identity.user_id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account.")
    if user_store.get_by_id(user_id) is None:
        raise HTTPException(status_code=404, detail="User not found.")

    # Tasks first, so a failed account delete never leaves orphaned tasks.
    removed = task_store.delete_tasks_for_user(user_id)
    if not user_store.delete_user(user_id):
        raise HTTPException(status_code=404, detail="User not found.")
    audit.warning("admin user_id=%d deleted user_id=%d (%d tasks removed)", identity.user_id, user_id, removed)
    return Response(status_code=204)
