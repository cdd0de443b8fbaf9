"""
API request and response models for the OrgVault REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
separate from the dataclasses in vault/models.py, which own the domain
representation. Route handlers map between the two.

Password hashes never appear in any response model. Stored secret values
appear only in PasswordResponse (single-entry fetch); organization listings
use PasswordSummary.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.passwords import BCRYPT_MAX_BYTES

# Shape check only: something@domain.tld
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register.

    The password is taken exactly as sent (no whitespace stripping, so login
    sees the same string) and must fit in bcrypt's 72-byte input.
    """

    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=8, max_length=72)

    @field_validator("first_name", "last_name", "email", mode="before")
    @classmethod
    def strip_text_fields(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        if len(v.encode("utf-8")) > BCRYPT_MAX_BYTES:
            raise ValueError(f"password must be at most {BCRYPT_MAX_BYTES} bytes when UTF-8 encoded")
        return v


class LoginRequest(BaseModel):
    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=72)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user_id: int
    email: str


class UserResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    created_at: str


# ---------------------------------------------------------------------------
# Organizations and memberships
# ---------------------------------------------------------------------------


class OrgCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)


class OrgResponse(BaseModel):
    id: int
    name: str
    created_at: str
    is_admin: Optional[bool] = None


class PasswordSummary(BaseModel):
    """Password entry without its secret value, for organization listings."""

    id: int
    title: str
    url: Optional[str] = None
    username: Optional[str] = None


class OrgDetailResponse(BaseModel):
    """Organization page: the organization plus the entries the caller may see."""

    id: int
    name: str
    created_at: str
    passwords: list[PasswordSummary] = Field(default_factory=list)


class MemberResponse(BaseModel):
    first_name: str
    last_name: str
    email: str


class MemberAdd(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(min_length=1, max_length=255)
    is_admin: bool = False


class MembershipPatch(BaseModel):
    is_active: bool


class MembershipResponse(BaseModel):
    user_id: int
    org_id: int
    is_admin: bool
    is_active: bool


# ---------------------------------------------------------------------------
# Password entries
# ---------------------------------------------------------------------------


class PasswordCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=1000)
    url: Optional[str] = Field(default=None, max_length=2000)
    username: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = Field(default=None, max_length=5000)


class PasswordResponse(BaseModel):
    id: int
    org_id: int
    title: str
    password: str
    url: Optional[str] = None
    username: Optional[str] = None
    notes: Optional[str] = None
    created_at: str


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error code plus a human-readable message."""

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Envelope used by every error response."""

    error: ErrorDetail


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
