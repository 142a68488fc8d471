"""
auth/repository.py -- The persistence interface the authentication core needs.

AuthService depends on this Protocol, never on a concrete store.
auth/store.py::UserStore satisfies it in production; the in-memory fake in
tests/conftest.py satisfies it in tests.

Lookups return None for "not found". Storage failures raise whatever the
backend raises; callers do not catch them.
"""

from __future__ import annotations

from typing import Optional, Protocol

from auth.models import Identity, Role


class IdentityRepository(Protocol):
    def find_identity_by_email(self, email: str) -> Optional[Identity]:
        """Return the identity with this email, with its role attached."""
        ...

    def find_identity_by_id(self, identity_id: int) -> Optional[Identity]: ...

    def create_identity(self, identity: Identity) -> Optional[Identity]:
        """Insert the identity and return it with id and created_at set.

        Returns None when the email is already taken (unique constraint).
        """
        ...

    def find_role_by_id(self, role_id: int) -> Optional[Role]: ...

    def find_role_by_name(self, name: str) -> Optional[Role]: ...
