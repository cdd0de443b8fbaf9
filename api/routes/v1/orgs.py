"""
api/routes/v1/orgs.py -- Organization, membership, and password-entry routes.

Routes (in registration order to avoid FastAPI path capture conflicts):
  GET    /orgs                               -- organizations the caller actively belongs to
  POST   /orgs                               -- create organization (caller becomes admin)
  GET    /orgs/{org_id}                      -- organization page: org + visible entries
  GET    /orgs/{org_id}/members              -- manage page: active members
  POST   /orgs/{org_id}/members              -- grant membership by email (org admin)
  PATCH  /orgs/{org_id}/members/{user_id}    -- activate / revoke membership (org admin)
  POST   /orgs/{org_id}/passwords            -- store a password entry (active member)
  GET    /passwords/{pwd_id}                 -- fetch one entry (active member of its org)

Authorization:
  Every handler passes the caller's user id into the store. Active membership
  is checked inside the store's queries; these handlers never decide it from
  data they fetched earlier. The organization-admin pre-checks below exist
  only to pick the right error before a lookup by email, and the store
  re-asserts them inside the write transaction.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import (
    MemberAdd,
    MemberResponse,
    MembershipPatch,
    MembershipResponse,
    OrgCreate,
    OrgDetailResponse,
    OrgResponse,
    PasswordCreate,
    PasswordResponse,
    PasswordSummary,
)
from api.outcomes import unwrap
from auth.dependencies import get_current_user
from vault.models import Membership, Organization, Outcome, PasswordEntry, User
from vault.store import VaultStore

# All routes here require authentication via get_current_user.
router = APIRouter()


# ---------------------------------------------------------------------------
# Organizations
# ---------------------------------------------------------------------------


@router.get("/orgs", response_model=list[OrgResponse])
def list_orgs(request: Request, current_user: User = Depends(get_current_user)) -> list[OrgResponse]:
    """List organizations where the caller holds an active membership.

    The store reports "no memberships" as NOT_FOUND; over HTTP that is simply
    an empty list.
    """
    store: VaultStore = request.app.state.store
    result = store.list_orgs_for_user(current_user.id)
    if result.outcome is Outcome.NOT_FOUND:
        return []
    return [_org_to_response(o) for o in unwrap(result)]


@router.post("/orgs", response_model=OrgResponse, status_code=201)
def create_org(
    request: Request,
    body: OrgCreate,
    current_user: User = Depends(get_current_user),
) -> OrgResponse:
    """Create an organization. The caller becomes its active admin in the same transaction."""
    store: VaultStore = request.app.state.store
    return _org_to_response(unwrap(store.create_organization(body.name, current_user)))


@router.get("/orgs/{org_id}", response_model=OrgDetailResponse)
def get_org(request: Request, org_id: int, current_user: User = Depends(get_current_user)) -> OrgDetailResponse:
    """Organization page: the organization and the entries the caller may see.

    Non-members get 403 whether or not the organization exists.
    """
    store: VaultStore = request.app.state.store
    entries: list[PasswordEntry] = unwrap(store.list_secrets_for_org(org_id, current_user.id))
    org = store.get_organization(org_id)
    if org is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "Organization not found."},
        )
    return OrgDetailResponse(
        id=org.id,
        name=org.name,
        created_at=org.created_at,
        passwords=[PasswordSummary(id=e.id, title=e.title, url=e.url, username=e.username) for e in entries],
    )


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------


@router.get("/orgs/{org_id}/members", response_model=list[MemberResponse])
def list_members(request: Request, org_id: int, current_user: User = Depends(get_current_user)) -> list[MemberResponse]:
    """Manage page: public profiles of active members. Caller must be an active member."""
    store: VaultStore = request.app.state.store
    members = unwrap(store.list_users_for_org(org_id, requester_id=current_user.id))
    return [MemberResponse(first_name=m.first_name, last_name=m.last_name, email=m.email) for m in members]


@router.post("/orgs/{org_id}/members", response_model=MembershipResponse, status_code=201)
def add_member(
    request: Request,
    org_id: int,
    body: MemberAdd,
    current_user: User = Depends(get_current_user),
) -> MembershipResponse:
    """Grant an existing user membership by email. Org admin only.

    The admin check runs before the email lookup so non-admins cannot probe
    which emails are registered.
    """
    store: VaultStore = request.app.state.store
    _require_org_admin(store, org_id, current_user)
    target = store.get_by_email(body.email)
    if target is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "No user with that email."},
        )
    membership = unwrap(store.add_member(org_id, target.id, current_user.id, is_admin=body.is_admin))
    return _membership_to_response(membership)


@router.patch("/orgs/{org_id}/members/{user_id}", response_model=MembershipResponse)
def update_member(
    request: Request,
    org_id: int,
    user_id: int,
    body: MembershipPatch,
    current_user: User = Depends(get_current_user),
) -> MembershipResponse:
    """Activate or revoke a membership. Org admin only.

    Deactivating the last active admin is refused with 409; the store
    checks the admin count inside the same transaction as the update.
    """
    store: VaultStore = request.app.state.store
    _require_org_admin(store, org_id, current_user)
    membership = unwrap(store.set_membership_active(org_id, user_id, body.is_active, acting_user_id=current_user.id))
    return _membership_to_response(membership)


# ---------------------------------------------------------------------------
# Password entries
# ---------------------------------------------------------------------------


@router.post("/orgs/{org_id}/passwords", response_model=PasswordResponse, status_code=201)
def create_password(
    request: Request,
    org_id: int,
    body: PasswordCreate,
    current_user: User = Depends(get_current_user),
) -> PasswordResponse:
    """Store a password entry in an organization the caller actively belongs to."""
    store: VaultStore = request.app.state.store
    entry = PasswordEntry(
        org_id=org_id,
        title=body.title,
        password=body.password,
        url=body.url,
        username=body.username,
        notes=body.notes,
    )
    return _secret_to_response(unwrap(store.create_secret(org_id, current_user.id, entry)))


@router.get("/passwords/{pwd_id}", response_model=PasswordResponse)
def get_password(request: Request, pwd_id: int, current_user: User = Depends(get_current_user)) -> PasswordResponse:
    """Fetch one entry. 403 if the caller is not an active member of its organization, 404 if it does not exist."""
    store: VaultStore = request.app.state.store
    return _secret_to_response(unwrap(store.authorize_and_fetch_secret(current_user.id, pwd_id)))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _require_org_admin(store: VaultStore, org_id: int, user: User) -> None:
    membership = store.get_membership(org_id, user.id)
    if membership is None or not (membership.is_admin and membership.is_active):
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "Organization admin access required."},
        )


def _org_to_response(org: Organization) -> OrgResponse:
    return OrgResponse(id=org.id, name=org.name, created_at=org.created_at, is_admin=org.is_admin)


def _membership_to_response(membership: Membership) -> MembershipResponse:
    return MembershipResponse(
        user_id=membership.user_id,
        org_id=membership.org_id,
        is_admin=membership.is_admin,
        is_active=membership.is_active,
    )


def _secret_to_response(entry: PasswordEntry) -> PasswordResponse:
    return PasswordResponse(
        id=entry.id,
        org_id=entry.org_id,
        title=entry.title,
        password=entry.password,
        url=entry.url,
        username=entry.username,
        notes=entry.notes,
        created_at=entry.created_at,
    )
