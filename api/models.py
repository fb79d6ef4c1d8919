"""
API request and response models for TaskGuard REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
tasks/models.py, which own the internal domain representation. Route handlers
map between the two.

Password hashes: UserPublic is built field-by-field from an allow-list
(from_user). No response model has a password or hash field, and request
models forbid unknown fields so clients cannot smuggle in user_id or role.
"""

from enum import Enum
from typing import Annotated, Optional

from fastapi import Path
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from auth.models import Identity, User
from auth.passwords import PASSWORD_MAX_LEN, PASSWORD_MIN_LEN
from tasks.models import Task

# Path ids are bounded to SQLite's signed 64-bit INTEGER; anything larger
# could never name a row and would overflow the driver.
ResourceId = Annotated[int, Path(ge=1, le=2**63 - 1)]

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    admin = "admin"
    user = "user"


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Error envelope returned on every 4xx/5xx response: {"error": "..."}."""

    model_config = ConfigDict(frozen=True)

    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    timestamp: str


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/login.

    No min_length on password: a too-short password must fail the same way as
    a wrong one (401), not with a distinguishable 422.
    """

    model_config = ConfigDict(extra="forbid")

    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=PASSWORD_MAX_LEN)


class UserPublic(BaseModel):
    """The only shape in which a user ever leaves the API."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: Optional[str]
    role: str

    @classmethod
    def from_user(cls, user: User) -> "UserPublic":
        return cls(id=user.id, username=user.username, email=user.email, role=user.role)


class LoginResponse(BaseModel):
    """Response body for a successful POST /api/login."""

    model_config = ConfigDict(frozen=True)

    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserPublic


class MeResponse(BaseModel):
    """Response for GET /api/me -- public profile plus token timing."""

    model_config = ConfigDict(frozen=True)

    user: UserPublic
    issued_at: int
    expires_at: int

    @classmethod
    def build(cls, user: User, identity: Identity) -> "MeResponse":
        return cls(user=UserPublic.from_user(user), issued_at=identity.issued_at, expires_at=identity.expires_at)


class PasswordChange(BaseModel):
    """Request body for POST /api/me/password."""

    model_config = ConfigDict(extra="forbid")

    current_password: str = Field(min_length=1, max_length=PASSWORD_MAX_LEN)
    new_password: str = Field(min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)


class UserCreate(BaseModel):
    """Request body for POST /api/users (admin only)."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    username: str = Field(min_length=1, max_length=255, pattern=r"^[A-Za-z0-9_.@-]+$")
    password: str = Field(min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)
    email: Optional[EmailStr] = None
    role: RoleEnum = RoleEnum.user


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class TaskCreate(BaseModel):
    """Request body for POST /api/tasks.

    There is no user_id field and extra fields are forbidden: the owner is
    always the authenticated caller.
    """

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=200)
    description: str = Field(default="", max_length=2000)
    completed: bool = False


class TaskPatch(BaseModel):
    """Request body for PATCH /api/tasks/{task_id}. Omitted fields are unchanged."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    completed: Optional[bool] = None


class TaskResponse(BaseModel):
    """One task as returned by the API."""

    model_config = ConfigDict(frozen=True)

    id: int
    user_id: int
    title: str
    description: str
    completed: bool
    created_at: str

    @classmethod
    def from_task(cls, task: Task) -> "TaskResponse":
        return cls(
            id=task.id,
            user_id=task.user_id,
            title=task.title,
            description=task.description,
            completed=task.completed,
            created_at=task.created_at,
        )
