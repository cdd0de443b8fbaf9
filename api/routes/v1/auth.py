"""
api/routes/v1/auth.py -- Registration, login, and identity endpoints.

Routes:
  POST /api/v1/auth/register   -- create an account (public, rate-limited)
  POST /api/v1/auth/login      -- email + password -> bearer JWT (public, rate-limited)
  GET  /api/v1/auth/me         -- current user profile (requires auth)

Security:
  POST /login and /register are rate-limited per IP (LOGIN_RATE_LIMIT,
  REGISTER_RATE_LIMIT).
  VaultStore.authenticate() runs bcrypt even for unknown emails; never inline
  get_by_email() + verify_password() here.
  Unknown email and wrong password return the same bad_credentials error.
  Cache-Control: no-store on login responses.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_limit, register_limit
from api.models import LoginRequest, LoginResponse, RegisterRequest, UserResponse
from api.outcomes import unwrap
from auth.dependencies import get_current_user
from auth.tokens import create_access_token
from core.config import get_settings
from vault.models import NewUser, User
from vault.store import VaultStore

# Auth policy:
# - POST /api/v1/auth/register:  public
# - POST /api/v1/auth/login:     public
# - GET  /api/v1/auth/me:        requires auth (get_current_user)
router = APIRouter()


@limiter.limit(register_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/register", response_model=UserResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> UserResponse:
    """Create a new account. 409 if the email is already registered."""
    store: VaultStore = request.app.state.store
    user = unwrap(
        store.create_user(
            NewUser(
                first_name=body.first_name,
                last_name=body.last_name,
                email=body.email,
                password=body.password,
            )
        )
    )
    return _user_to_response(user)


@limiter.limit(login_limit)
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password and return a bearer token."""
    store: VaultStore = request.app.state.store
    user = store.authenticate(body.email, body.password)
    if user is None:
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": "bad_credentials", "message": "Invalid email or password."}},
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    expires_in = get_settings().token_expire_seconds
    token = create_access_token(user.id, user.email, expire_seconds=expires_in)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            access_token=token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=expires_in,
            user_id=user.id,
            email=user.email,
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/auth/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)) -> UserResponse:
    """Return the profile of the currently authenticated user."""
    return _user_to_response(current_user)


def _user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        email=user.email,
        created_at=user.created_at,
    )
