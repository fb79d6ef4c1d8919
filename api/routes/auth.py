"""
api/routes/auth.py -- Login and self-service profile endpoints.

Routes:
  POST /api/login             -- password login; returns a bearer token
  GET  /api/me                -- current user's public profile
  POST /api/me/password       -- change own password (re-hash)

Security:
  POST /login is rate-limited per client IP (LOGIN_RATE_LIMIT).
  Authenticator.login() provides timing equalization -- use it, never inline
  get_by_username() + verify_password() here.
  Every failure raises InvalidCredentials, rendered by api/main.py as
  401 {"error": "Invalid credentials"} whatever the underlying reason.
  Responses never include the password hash; UserPublic is an allow-list.

Access policy for these routes is declared in auth/policy.py, not here.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from api.limiter import limiter, login_rate_limit
from api.models import LoginRequest, LoginResponse, MeResponse, PasswordChange, UserPublic
from auth.authenticator import Authenticator
from auth.errors import InvalidCredentials, Unauthenticated
from auth.guard import current_identity
from auth.models import Identity
from auth.passwords import hash_password
from auth.store import UserStore

audit = logging.getLogger("taskguard.audit")

router = APIRouter(prefix="/api")


@router.post("/login", response_model=LoginResponse)
@limiter.limit(login_rate_limit)  # under @router so FastAPI registers the limited wrapper
def login(request: Request, body: LoginRequest) -> LoginResponse:
    """Authenticate with username and password; return a signed bearer token.

    Include the token on later requests as: Authorization: Bearer <token>
    """
    authenticator: Authenticator = request.app.state.authenticator
    user_store: UserStore = request.app.state.user_store

    session = authenticator.login(body.username, body.password)
    user = user_store.get_by_id(session.identity.user_id)
    if user is None:
        # Deleted between verification and lookup; treat as a failed login.
        raise InvalidCredentials("user_deleted_during_login")

    return LoginResponse(
        token=session.token,
        token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
        expires_in=session.expires_in,
        user=UserPublic.from_user(user),
    )


@router.get("/me", response_model=MeResponse)
def me(request: Request, identity: Identity = Depends(current_identity)) -> MeResponse:
    """Return the public profile of the authenticated caller."""
    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_id(identity.user_id)
    if user is None:
        raise Unauthenticated("unknown_subject")
    return MeResponse.build(user, identity)


@router.post("/me/password", status_code=204)
def change_password(
    request: Request,
    body: PasswordChange,
    identity: Identity = Depends(current_identity),
) -> Response:
    """Change the caller's password after re-verifying the current one.

    A wrong current password is a 400, not a 401: the caller's session is
    still valid and must not be told to log in again.
    """
    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_id(identity.user_id)
    if user is None:
        raise Unauthenticated("unknown_subject")
    if not user_store.verify_password(user, body.current_password):
        raise HTTPException(status_code=400, detail="Current password is incorrect.")

    rounds = request.app.state.settings.bcrypt_rounds
    user_store.update_password(user.id, hash_password(body.new_password, rounds=rounds))
    audit.info("user_id=%d changed own password", user.id)
    return Response(status_code=204)
