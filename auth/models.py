"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, almost no logic). Mirrors the
approach in fleet/models.py -- dataclasses own domain shape; stores,
services and routes do the work.

Layer rule: no imports from api/ or fleet/.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Role:
    """A named access tier. Reference data, seeded by UserStore at startup."""

    id: int
    name: str  # "CUSTOMER", "ADMIN"


@dataclass
class Identity:
    """A registered account capable of being authenticated.

    role is attached by lookups that join the roles table
    (find_identity_by_email); it is None when only the row itself was read.
    """

    name: str
    email: str
    password_hash: str
    role_id: int
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    role: Optional[Role] = None


@dataclass(frozen=True)
class Claims:
    """The decoded content of a session token.

    The shape matches what TokenCodec.encode() signs: identity fields, the
    nested role, and the issued-at marker (epoch seconds). expires_at is only
    set for tokens issued while a lifetime was configured.
    """

    id: int
    name: str
    email: str
    role: Role
    issued_at: int
    expires_at: Optional[int] = None

    def to_payload(self) -> dict:
        payload = {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": {"id": self.role.id, "name": self.role.name},
            "iat": self.issued_at,
        }
        if self.expires_at is not None:
            payload["exp"] = self.expires_at
        return payload
