"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper (same as fleet/store.py).
UserStore is the repository; _row_to_identity / _row_to_role are the mappers.
Service and route code never touches SQL directly. UserStore satisfies
auth.repository.IdentityRepository.

Security:
  All queries use bound parameters. No f-strings in SQL.

  UNIQUE(email) is enforced by the database. create_identity() turns that
  constraint's IntegrityError into a None return (any other IntegrityError
  propagates), so a registration that loses a race against a concurrent one
  for the same email is reported exactly like a registration for an email
  that was already taken.

Roles are reference data: _ensure_roles() seeds the fixed set on every
startup and nothing else in the application writes to the roles table.

Layer rule: no imports from api/ or fleet/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, ForeignKey, Integer, MetaData, String, Table, Text, create_engine, event, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import Identity, Role
from core.config import DEFAULT_DB_URL

logger = logging.getLogger("fleetrent.auth")

ROLE_NAMES: tuple[str, ...] = ("CUSTOMER", "ADMIN")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_roles = Table(
    "roles",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(30), nullable=False, unique=True),
)

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("encrypted_password", Text, nullable=False),
    Column("role_id", Integer, ForeignKey("roles.id"), nullable=False),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _is_duplicate_email(exc: IntegrityError) -> bool:
    """True when the violated constraint is the unique index on users.email.

    SQLite reports "UNIQUE constraint failed: users.email"; PostgreSQL names
    the index (users_email_key).
    """
    message = str(exc.orig).lower()
    return "users.email" in message or "users_email" in message


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for Identity and Role entities.

    Usage:
        store = UserStore()
        role = store.find_role_by_name("ADMIN")
        store.create_identity(Identity(name="Ops", email="ops@example.com",
                                       password_hash=hash_password("secret"), role_id=role.id))
        identity = store.find_identity_by_email("ops@example.com")
        store.close()
    """

    def __init__(self, db_url: str = DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)
        self._ensure_roles()

    def _ensure_roles(self) -> None:
        """Seed the fixed role set. Idempotent -- safe to call on every startup."""
        with self.engine.connect() as conn:
            existing = {row.name for row in conn.execute(select(_roles.c.name))}
            missing = [name for name in ROLE_NAMES if name not in existing]
            for name in missing:
                conn.execute(_roles.insert().values(name=name))
            conn.commit()
        if missing:
            logger.info("Seeded roles: %s", ", ".join(missing))

    # ------------------------------------------------------------------
    # Identity queries
    # ------------------------------------------------------------------

    def find_identity_by_email(self, email: str) -> Optional[Identity]:
        """Look up an identity by exact email, joined with its role. None if not found."""
        query = (
            select(_users, _roles.c.name.label("role_name"))
            .select_from(_users.outerjoin(_roles, _users.c.role_id == _roles.c.id))
            .where(_users.c.email == email)
        )
        with self.engine.connect() as conn:
            row = conn.execute(query).fetchone()
        return _row_to_identity(row) if row is not None else None

    def find_identity_by_id(self, identity_id: int) -> Optional[Identity]:
        """Look up an identity by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == identity_id)).fetchone()
        return _row_to_identity(row) if row is not None else None

    def create_identity(self, identity: Identity) -> Optional[Identity]:
        """Insert a new identity and return it with its id and created_at.

        Returns None if the email is already registered.
        """
        created_at = _now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        name=identity.name,
                        email=identity.email,
                        encrypted_password=identity.password_hash,
                        role_id=identity.role_id,
                        created_at=created_at,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            if not _is_duplicate_email(exc):
                raise
            logger.info("Duplicate email rejected by users.email constraint")
            return None
        return Identity(
            id=result.inserted_primary_key[0],
            name=identity.name,
            email=identity.email,
            password_hash=identity.password_hash,
            role_id=identity.role_id,
            created_at=created_at,
        )

    # ------------------------------------------------------------------
    # Role queries
    # ------------------------------------------------------------------

    def find_role_by_id(self, role_id: int) -> Optional[Role]:
        with self.engine.connect() as conn:
            row = conn.execute(_roles.select().where(_roles.c.id == role_id)).fetchone()
        return _row_to_role(row) if row is not None else None

    def find_role_by_name(self, name: str) -> Optional[Role]:
        with self.engine.connect() as conn:
            row = conn.execute(_roles.select().where(_roles.c.name == name)).fetchone()
        return _row_to_role(row) if row is not None else None

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_identity(row) -> Identity:
    # role_name is only present on the joined lookup (find_identity_by_email).
    role_name = getattr(row, "role_name", None)
    return Identity(
        id=row.id,
        name=row.name,
        email=row.email,
        password_hash=row.encrypted_password,
        role_id=row.role_id,
        created_at=row.created_at,
        role=Role(id=row.role_id, name=role_name) if role_name is not None else None,
    )


def _row_to_role(row) -> Role:
    return Role(id=row.id, name=row.name)
