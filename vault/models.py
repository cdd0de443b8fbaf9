"""
vault/models.py -- Domain dataclasses for the OrgVault store.

Pure data containers with zero logic. All access rules (active membership,
admin checks, transaction boundaries) live in vault/store.py.

Result / Outcome is the single return shape for every store operation that
can be denied or can conflict. Callers branch on result.outcome instead of
testing falsy-ness, so "not a member" and "nothing there" never collapse into
the same value.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class StoreError(Exception):
    """The underlying database failed (connectivity, missing table, bad query).

    Raised by point lookups (get_by_id, get_by_email, authenticate) so a
    failure is never mistaken for "user does not exist".
    """


class Outcome(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    DENIED = "denied"
    CONFLICT = "conflict"
    STORE_ERROR = "store_error"


@dataclass(frozen=True)
class Result:
    """Tagged outcome of a store operation.

    value is set only when outcome is FOUND. message carries a short,
    client-safe reason for the other outcomes.
    """

    outcome: Outcome
    value: Any = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.FOUND

    @classmethod
    def found(cls, value: Any) -> Result:
        return cls(Outcome.FOUND, value)

    @classmethod
    def not_found(cls, message: str = "Not found.") -> Result:
        return cls(Outcome.NOT_FOUND, message=message)

    @classmethod
    def denied(cls, message: str = "Access denied.") -> Result:
        return cls(Outcome.DENIED, message=message)

    @classmethod
    def conflict(cls, message: str) -> Result:
        return cls(Outcome.CONFLICT, message=message)

    @classmethod
    def store_error(cls, message: str = "Storage unavailable.") -> Result:
        return cls(Outcome.STORE_ERROR, message=message)


@dataclass
class NewUser:
    """Registration profile. password is plaintext and is never persisted as such."""

    first_name: str
    last_name: str
    email: str
    password: str


@dataclass
class User:
    """A registered identity.

    password holds the bcrypt hash, never plaintext. API response models
    leave it out entirely.
    """

    email: str
    first_name: str
    last_name: str
    password: str  # bcrypt hash
    id: Optional[int] = None
    created_at: str = ""


@dataclass
class Organization:
    """A named group that owns password entries.

    is_admin is the requesting user's flag when the organization comes from
    list_orgs_for_user(); it is None when the row is fetched without a
    membership context.
    """

    name: str
    id: Optional[int] = None
    created_at: str = ""
    is_admin: Optional[bool] = None


@dataclass
class Membership:
    user_id: int
    org_id: int
    is_admin: bool = False
    is_active: bool = True


@dataclass
class MemberProfile:
    """Public profile fields of an active member (manage page)."""

    first_name: str
    last_name: str
    email: str


@dataclass
class PasswordEntry:
    """A stored credential scoped to exactly one organization."""

    org_id: int
    title: str
    password: str
    url: Optional[str] = None
    username: Optional[str] = None
    notes: Optional[str] = None
    id: Optional[int] = None
    created_at: str = ""
