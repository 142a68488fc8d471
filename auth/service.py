"""
auth/service.py -- Registration, login and profile lookup.

AuthService orchestrates the credential verifier (auth/passwords.py), the
token codec (auth/tokens.py) and an IdentityRepository. Each call is
independent; the service holds no per-request state.

Failures are reported with the typed errors from core/errors.py. Repository
errors (database unavailable, etc.) are not caught here -- they propagate to
the catch-all handler in api/main.py.

Layer rule: no imports from api/ or fleet/.
"""

from __future__ import annotations

import logging

from auth.models import Claims, Identity
from auth.passwords import hash_password, verify_password
from auth.repository import IdentityRepository
from auth.tokens import TokenCodec
from core.errors import EmailAlreadyTakenError, EmailNotRegisteredError, RecordNotFoundError, WrongPasswordError

logger = logging.getLogger("fleetrent.auth")


class AuthService:
    def __init__(self, users: IdentityRepository, codec: TokenCodec, default_role: str = "CUSTOMER") -> None:
        self._users = users
        self._codec = codec
        self._default_role = default_role

    def register(self, name: str, email: str, password: str) -> str:
        """Create an identity with the default role and return a session token.

        Raises EmailAlreadyTakenError if the email is registered, including
        the case where a concurrent registration wins the insert.
        """
        if self._users.find_identity_by_email(email) is not None:
            raise EmailAlreadyTakenError(email)

        role = self._users.find_role_by_name(self._default_role)
        if role is None:
            raise RecordNotFoundError(self._default_role)

        created = self._users.create_identity(
            Identity(name=name, email=email, password_hash=hash_password(password), role_id=role.id)
        )
        if created is None:
            raise EmailAlreadyTakenError(email)

        logger.info("Registered identity id=%s role=%s", created.id, role.name)
        return self._codec.encode(created, role)

    def login(self, email: str, password: str) -> str:
        """Verify credentials and return a session token.

        An unknown email and a wrong password are reported as different
        errors (EmailNotRegisteredError / WrongPasswordError).
        """
        identity = self._users.find_identity_by_email(email)
        if identity is None:
            logger.info("Login rejected: email not registered")
            raise EmailNotRegisteredError(email)

        if not verify_password(password, identity.password_hash):
            logger.info("Login rejected: wrong password for identity id=%s", identity.id)
            raise WrongPasswordError()

        role = identity.role or self._users.find_role_by_id(identity.role_id)
        if role is None:
            raise RecordNotFoundError(identity.name)
        return self._codec.encode(identity, role)

    def get_profile(self, claims: Claims) -> Identity:
        """Return the stored identity behind an authorized request, with its role."""
        identity = self._users.find_identity_by_id(claims.id)
        if identity is None:
            raise RecordNotFoundError(claims.name)
        role = self._users.find_role_by_id(identity.role_id)
        if role is None:
            raise RecordNotFoundError(claims.name)
        identity.role = role
        return identity
