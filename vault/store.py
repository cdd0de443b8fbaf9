"""
vault/store.py -- SQLAlchemy Core persistence layer for OrgVault.

Pattern: Repository + Data Mapper. VaultStore is the repository; the
_row_to_* functions are the mappers that turn rows into vault/models.py
dataclasses. Route handlers never touch SQL directly.

Authorization lives at the query boundary. Every read of organization data or
password entries carries the predicate

    membership.user_id = :requester AND membership.is_active = 1

inside the same statement as the fetch. A separate membership lookup is only
ever used to *classify* an empty result (denied vs. nothing there), never to
let rows through.

Return shapes:
  Point lookups (get_by_id, get_by_email, authenticate) return None when the
  row is absent and raise StoreError when the database fails.
  Everything that can be denied or can conflict returns a Result tagged with
  an Outcome (FOUND / NOT_FOUND / DENIED / CONFLICT / STORE_ERROR).

Security:
  All queries use bound parameters. No f-strings in SQL.
  Password hashes and secret values are never logged.

Transactions:
  Multi-statement writes (organization + creator membership, membership
  grant/revoke) run inside engine.begin() so a failure rolls back the whole
  unit. No automatic retry: failures are logged and surfaced to the caller.

Usage:
    store = VaultStore("sqlite:///:memory:")
    user = store.create_user(NewUser("Ada", "Lovelace", "ada@example.com", "pw")).value
    org = store.create_organization("Acme", user).value
    store.list_secrets_for_org(org.id, user.id)
    store.close()
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    func,
    select,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.passwords import dummy_hash, hash_password, verify_password
from vault.models import (
    MemberProfile,
    Membership,
    NewUser,
    Organization,
    PasswordEntry,
    Result,
    StoreError,
    User,
)

logger = logging.getLogger("orgvault.store")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'orgvault.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("first_name", String(100), nullable=False),
    Column("last_name", String(100), nullable=False),
    Column("email", String(255), nullable=False, unique=True),  # stored lower-cased
    Column("password", String(255), nullable=False),  # bcrypt hash
    Column("created_at", String(32), nullable=False),
)

_org = Table(
    "org",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("created_at", String(32), nullable=False),
)

# Composite primary key: one row per (user, org) pair.
_membership = Table(
    "membership",
    metadata,
    Column("user_id", Integer, ForeignKey("users.id"), primary_key=True, nullable=False),
    Column("org_id", Integer, ForeignKey("org.id"), primary_key=True, nullable=False),
    Column("is_admin", Integer, nullable=False, server_default="0"),  # boolean stored as 0/1
    Column("is_active", Integer, nullable=False, server_default="1"),  # boolean stored as 0/1
)

_pwd = Table(
    "pwd",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("org_id", Integer, ForeignKey("org.id"), nullable=False),
    Column("title", String(255), nullable=False),
    Column("url", Text),
    Column("username", String(255)),
    Column("password", Text, nullable=False),
    Column("notes", Text),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# SQLite connection pragmas
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign key enforcement.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. foreign_keys=ON makes a membership insert for
    an unknown user fail, which rolls back the organization insert with it.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def _active_member(org_id: int, user_id: int):
    """WHERE clause: user_id holds an active membership in org_id."""
    return (_membership.c.org_id == org_id) & (_membership.c.user_id == user_id) & (_membership.c.is_active == 1)


def _active_admin(org_id: int, user_id: int):
    return _active_member(org_id, user_id) & (_membership.c.is_admin == 1)


def _active_admin_count(conn, org_id: int) -> int:
    stmt = (
        select(func.count())
        .select_from(_membership)
        .where((_membership.c.org_id == org_id) & (_membership.c.is_admin == 1) & (_membership.c.is_active == 1))
    )
    return conn.execute(stmt).scalar() or 0


def _store_failure(operation: str) -> Result:
    """Log the in-flight exception and return a STORE_ERROR result.

    Must be called from inside an except block so exc_info picks up the
    traceback.
    """
    logger.error("%s failed", operation, exc_info=True)
    return Result.store_error()


@contextmanager
def _lookup(operation: str) -> Iterator[None]:
    """Translate database failures in point lookups into StoreError."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("%s failed", operation, exc_info=True)
        raise StoreError(f"{operation} failed") from exc


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class VaultStore:
    """Access-scoped repository for users, organizations, memberships and password entries."""

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            # FastAPI runs sync handlers in a thread pool, so a pooled
            # connection may be used from a thread other than its creator.
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_sqlite_pragmas)
        metadata.create_all(self.engine)
        # authenticate() compares unknown emails against this; pay for it now
        dummy_hash()

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.warning("Database ping failed", exc_info=True)
            return False
        return True

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def get_by_email(self, email: str) -> Optional[User]:
        """Look up a user by email (case-insensitive). Returns None if not found."""
        with _lookup("get_by_email"):
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(_users.c.email == _normalize_email(email))).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> Optional[User]:
        """Look up a user by primary key. Returns None if not found."""
        with _lookup("get_by_id"):
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def authenticate(self, email: str, password: str) -> Optional[User]:
        """Return the user if email and password match, None otherwise.

        An unknown email is checked before anything is dereferenced, but still
        pays for one bcrypt comparison against a dummy hash so the response
        time does not reveal whether the account exists.
        """
        user = self.get_by_email(email)
        if user is None:
            verify_password(password, dummy_hash())
            return None
        if not verify_password(password, user.password):
            return None
        return user

    def create_user(self, profile: NewUser) -> Result:
        """Hash the password and insert a new user.

        FOUND(User) on success, CONFLICT if the email is already registered,
        STORE_ERROR on any other database failure. Raises ValueError (from
        hash_password) for a password over 72 UTF-8 bytes.
        """
        email = _normalize_email(profile.email)
        hashed = hash_password(profile.password)
        created_at = _now_iso()
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    _users.insert().values(
                        first_name=profile.first_name,
                        last_name=profile.last_name,
                        email=email,
                        password=hashed,
                        created_at=created_at,
                    )
                )
                user_id = result.inserted_primary_key[0]
        except IntegrityError:
            logger.info("create_user rejected: email already registered")
            return Result.conflict("A user with that email already exists.")
        except SQLAlchemyError:
            return _store_failure("create_user")
        return Result.found(
            User(
                id=user_id,
                email=email,
                first_name=profile.first_name,
                last_name=profile.last_name,
                password=hashed,
                created_at=created_at,
            )
        )

    # ------------------------------------------------------------------
    # Organizations
    # ------------------------------------------------------------------

    def get_organization(self, org_id: int) -> Optional[Organization]:
        """Fetch an organization by ID without any membership context. Returns None if not found."""
        with _lookup("get_organization"):
            with self.engine.connect() as conn:
                row = conn.execute(_org.select().where(_org.c.id == org_id)).fetchone()
        return _row_to_org(row) if row is not None else None

    def create_organization(self, name: str, creator: User) -> Result:
        """Create an organization and make the creator its active admin.

        Both inserts share one transaction: if the membership insert fails
        (unknown creator, constraint violation) the organization row is rolled
        back with it.
        """
        created_at = _now_iso()
        try:
            with self.engine.begin() as conn:
                org_id = conn.execute(_org.insert().values(name=name, created_at=created_at)).inserted_primary_key[0]
                conn.execute(
                    _membership.insert().values(
                        user_id=creator.id,
                        org_id=org_id,
                        is_admin=1,
                        is_active=1,
                    )
                )
        except IntegrityError:
            logger.warning("create_organization rolled back: membership insert rejected for user_id=%s", creator.id)
            return Result.conflict("Organization could not be created for this user.")
        except SQLAlchemyError:
            return _store_failure("create_organization")
        logger.info("Organization created org_id=%s creator_id=%s", org_id, creator.id)
        return Result.found(Organization(id=org_id, name=name, created_at=created_at, is_admin=True))

    def list_orgs_for_user(self, user_id: Optional[int]) -> Result:
        """Return the organizations where user_id holds an active membership.

        Ordered by name, then id. Each Organization carries the user's
        is_admin flag. NOT_FOUND when user_id is missing or no active
        membership exists.
        """
        if not user_id:
            return Result.not_found("No user given.")
        stmt = (
            select(_org.c.id, _org.c.name, _org.c.created_at, _membership.c.is_admin)
            .select_from(_org.join(_membership, _membership.c.org_id == _org.c.id))
            .where((_membership.c.user_id == user_id) & (_membership.c.is_active == 1))
            .order_by(_org.c.name, _org.c.id)
        )
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(stmt).fetchall()
        except SQLAlchemyError:
            return _store_failure("list_orgs_for_user")
        if not rows:
            return Result.not_found("User has no active organizations.")
        return Result.found(
            [Organization(id=r.id, name=r.name, created_at=r.created_at, is_admin=bool(r.is_admin)) for r in rows]
        )

    # ------------------------------------------------------------------
    # Memberships
    # ------------------------------------------------------------------

    def get_membership(self, org_id: int, user_id: int) -> Optional[Membership]:
        """Fetch the membership row for (org_id, user_id), active or not. Returns None if absent."""
        with _lookup("get_membership"):
            with self.engine.connect() as conn:
                row = conn.execute(
                    _membership.select().where((_membership.c.org_id == org_id) & (_membership.c.user_id == user_id))
                ).fetchone()
        return _row_to_membership(row) if row is not None else None

    def list_users_for_org(self, org_id: int, requester_id: Optional[int] = None) -> Result:
        """Return the public profile of every active member of org_id.

        FOUND([]) when nothing matches. When requester_id is given, the
        requester's active membership is part of the same statement; an empty
        result then means the requester is not an active member (the
        requester would otherwise appear in the list), reported as DENIED.
        """
        stmt = (
            select(_users.c.first_name, _users.c.last_name, _users.c.email)
            .select_from(_users.join(_membership, _membership.c.user_id == _users.c.id))
            .where((_membership.c.org_id == org_id) & (_membership.c.is_active == 1))
            .order_by(_users.c.last_name, _users.c.first_name, _users.c.email)
        )
        if requester_id is not None:
            requester = _membership.alias("requester")
            stmt = stmt.where(
                select(requester.c.user_id)
                .where(
                    (requester.c.org_id == org_id)
                    & (requester.c.user_id == requester_id)
                    & (requester.c.is_active == 1)
                )
                .exists()
            )
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(stmt).fetchall()
        except SQLAlchemyError:
            return _store_failure("list_users_for_org")
        if not rows and requester_id is not None:
            return Result.denied("Not an active member of this organization.")
        return Result.found([MemberProfile(first_name=r.first_name, last_name=r.last_name, email=r.email) for r in rows])

    def count_active_admins(self, org_id: int) -> int:
        """Return the number of active admins in org_id.

        set_membership_active() runs the same count inside its own
        transaction before deactivating an admin.
        """
        with _lookup("count_active_admins"):
            with self.engine.connect() as conn:
                return _active_admin_count(conn, org_id)

    def add_member(self, org_id: int, user_id: int, acting_user_id: int, is_admin: bool = False) -> Result:
        """Grant user_id active membership in org_id.

        acting_user_id must be an active admin of the organization. NOT_FOUND
        when the organization or the target user does not exist. An existing
        inactive membership is re-activated rather than duplicated; an
        existing admin flag is never downgraded here.
        """
        pair = (_membership.c.org_id == org_id) & (_membership.c.user_id == user_id)
        try:
            with self.engine.begin() as conn:
                if conn.execute(select(_org.c.id).where(_org.c.id == org_id)).first() is None:
                    return Result.not_found("Organization not found.")
                if conn.execute(select(_membership.c.user_id).where(_active_admin(org_id, acting_user_id))).first() is None:
                    return Result.denied("Only an active organization admin can add members.")
                if conn.execute(select(_users.c.id).where(_users.c.id == user_id)).first() is None:
                    return Result.not_found("User not found.")
                existing = conn.execute(_membership.select().where(pair)).fetchone()
                if existing is None:
                    conn.execute(
                        _membership.insert().values(
                            user_id=user_id,
                            org_id=org_id,
                            is_admin=1 if is_admin else 0,
                            is_active=1,
                        )
                    )
                    admin_flag = is_admin
                else:
                    admin_flag = bool(existing.is_admin) or is_admin
                    conn.execute(_membership.update().where(pair).values(is_active=1, is_admin=1 if admin_flag else 0))
        except IntegrityError:
            return Result.conflict("Membership could not be created.")
        except SQLAlchemyError:
            return _store_failure("add_member")
        logger.info("Membership granted org_id=%s user_id=%s by=%s", org_id, user_id, acting_user_id)
        return Result.found(Membership(user_id=user_id, org_id=org_id, is_admin=admin_flag, is_active=True))

    def set_membership_active(
        self,
        org_id: int,
        user_id: int,
        is_active: bool,
        acting_user_id: Optional[int] = None,
    ) -> Result:
        """Grant or revoke access by toggling is_active on an existing membership.

        When acting_user_id is given it must be an active admin of the
        organization (DENIED otherwise). NOT_FOUND if no membership row
        exists. The change is visible to the very next read.

        With acting_user_id given, deactivating the last active admin is
        refused with CONFLICT; the count and the update share one
        transaction. Without it (internal callers) the toggle is unguarded.
        """
        pair = (_membership.c.org_id == org_id) & (_membership.c.user_id == user_id)
        try:
            with self.engine.begin() as conn:
                if acting_user_id is not None:
                    acting = conn.execute(select(_membership.c.user_id).where(_active_admin(org_id, acting_user_id)))
                    if acting.first() is None:
                        return Result.denied("Only an active organization admin can change memberships.")
                row = conn.execute(_membership.select().where(pair)).fetchone()
                if row is None:
                    return Result.not_found("Membership not found.")
                if (
                    acting_user_id is not None
                    and not is_active
                    and row.is_admin
                    and row.is_active
                    and _active_admin_count(conn, org_id) <= 1
                ):
                    return Result.conflict("Cannot deactivate the last active admin of an organization.")
                conn.execute(_membership.update().where(pair).values(is_active=1 if is_active else 0))
        except SQLAlchemyError:
            return _store_failure("set_membership_active")
        logger.info("Membership org_id=%s user_id=%s set is_active=%s", org_id, user_id, is_active)
        return Result.found(Membership(user_id=user_id, org_id=org_id, is_admin=bool(row.is_admin), is_active=is_active))

    # ------------------------------------------------------------------
    # Password entries
    # ------------------------------------------------------------------

    def create_secret(self, org_id: int, user_id: int, entry: PasswordEntry) -> Result:
        """Store a password entry in org_id on behalf of user_id.

        DENIED unless user_id holds an active membership in org_id. The check
        and the insert share one transaction. entry.org_id is ignored in
        favour of org_id.
        """
        created_at = _now_iso()
        try:
            with self.engine.begin() as conn:
                if conn.execute(select(_membership.c.user_id).where(_active_member(org_id, user_id))).first() is None:
                    return Result.denied("Not an active member of this organization.")
                secret_id = conn.execute(
                    _pwd.insert().values(
                        org_id=org_id,
                        title=entry.title,
                        url=entry.url,
                        username=entry.username,
                        password=entry.password,
                        notes=entry.notes,
                        created_at=created_at,
                    )
                ).inserted_primary_key[0]
        except IntegrityError:
            return Result.conflict("Password entry could not be stored.")
        except SQLAlchemyError:
            return _store_failure("create_secret")
        logger.info("Password entry created pwd_id=%s org_id=%s by=%s", secret_id, org_id, user_id)
        return Result.found(
            PasswordEntry(
                id=secret_id,
                org_id=org_id,
                title=entry.title,
                url=entry.url,
                username=entry.username,
                password=entry.password,
                notes=entry.notes,
                created_at=created_at,
            )
        )

    def authorize_and_fetch_secret(self, user_id: int, secret_id: int) -> Result:
        """Return a password entry only if user_id is an active member of its organization.

        One join (membership -> org -> pwd) carries the authorization
        predicate. When it yields nothing, a second lookup on the same
        connection tells NOT_FOUND (no such entry) from DENIED (entry exists,
        caller lacks active membership).
        """
        stmt = (
            select(_pwd)
            .select_from(
                _membership.join(_org, _org.c.id == _membership.c.org_id).join(_pwd, _pwd.c.org_id == _org.c.id)
            )
            .where((_membership.c.user_id == user_id) & (_membership.c.is_active == 1) & (_pwd.c.id == secret_id))
            .limit(1)
        )
        try:
            with self.engine.connect() as conn:
                row = conn.execute(stmt).fetchone()
                if row is not None:
                    return Result.found(_row_to_secret(row))
                exists = conn.execute(select(_pwd.c.id).where(_pwd.c.id == secret_id)).first()
        except SQLAlchemyError:
            return _store_failure("authorize_and_fetch_secret")
        if exists is None:
            return Result.not_found("Password entry not found.")
        logger.info("Denied pwd_id=%s to user_id=%s", secret_id, user_id)
        return Result.denied("Not an active member of the organization that owns this entry.")

    def list_secrets_for_org(self, org_id: int, user_id: int) -> Result:
        """Return the password entries of org_id if user_id is an active member.

        The fetch joins membership with the authorization predicate inline.
        An empty result is classified afterwards: FOUND([]) for a member of an
        organization without entries, DENIED for everyone else.
        """
        stmt = (
            select(_pwd)
            .select_from(_pwd.join(_membership, _membership.c.org_id == _pwd.c.org_id))
            .where(_active_member(org_id, user_id))
            .order_by(_pwd.c.title, _pwd.c.id)
        )
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(stmt).fetchall()
                if rows:
                    return Result.found([_row_to_secret(r) for r in rows])
                member = conn.execute(select(_membership.c.user_id).where(_active_member(org_id, user_id))).first()
        except SQLAlchemyError:
            return _store_failure("list_secrets_for_org")
        if member is None:
            return Result.denied("Not an active member of this organization.")
        return Result.found([])

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern -- DB row -> domain dataclass)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        first_name=row.first_name,
        last_name=row.last_name,
        password=row.password,
        created_at=row.created_at,
    )


def _row_to_org(row) -> Organization:
    return Organization(id=row.id, name=row.name, created_at=row.created_at)


def _row_to_membership(row) -> Membership:
    return Membership(
        user_id=row.user_id,
        org_id=row.org_id,
        is_admin=bool(row.is_admin),
        is_active=bool(row.is_active),
    )


def _row_to_secret(row) -> PasswordEntry:
    return PasswordEntry(
        id=row.id,
        org_id=row.org_id,
        title=row.title,
        url=row.url,
        username=row.username,
        password=row.password,
        notes=row.notes,
        created_at=row.created_at,
    )
