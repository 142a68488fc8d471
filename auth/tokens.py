"""
auth/tokens.py -- Session token codec (signed JWT).

Security design decisions:
  JWT: python-jose with HS256. Tokens carry the identity (id, name, email),
       the nested role {id, name}, and the issued-at marker. When a lifetime
       is configured (Settings.token_expire_seconds > 0) they also carry exp.

  Secret: passed explicitly to TokenCodec at construction -- the codec never
       reads settings or the environment itself. api/main.py builds the one
       process-wide instance in lifespan and stores it on app.state. An empty
       secret is a startup failure, not a per-request one.

  Decode failures are typed so the gate can report them precisely:
       TokenMissingError     -- empty or absent token
       MalformedTokenError   -- not a JWT, or claims lack identity/role fields
       InvalidSignatureError -- well-formed, but signed with another key or tampered
       TokenExpiredError     -- exp claim in the past

Encoding is deterministic for a given claim set, issued-at second and secret:
HS256 has no random component, so the same inputs yield the same token.

Layer rule: no imports from api/ or fleet/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import datetime, timezone

from jose import jwt
from jose.exceptions import ExpiredSignatureError, JOSEError, JWTClaimsError

from auth.models import Claims, Identity, Role
from core.errors import InvalidSignatureError, MalformedTokenError, TokenExpiredError, TokenMissingError

logger = logging.getLogger("fleetrent.auth")

_ALGORITHM = "HS256"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenCodec:
    """Encode and decode signed session tokens with one immutable secret.

    Usage:
        codec = TokenCodec(settings.secret_key, settings.token_expire_seconds)
        token = codec.encode(identity, role)
        claims = codec.decode(token)
    """

    def __init__(
        self,
        secret_key: str,
        expire_seconds: int = 0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not secret_key:
            raise ValueError("TokenCodec requires a non-empty signing secret.")
        self._secret_key = secret_key
        self._expire_seconds = expire_seconds
        self._clock = clock

    def encode(self, identity: Identity, role: Role) -> str:
        """Sign a token for the given identity and its role."""
        issued_at = int(self._clock().timestamp())
        claims = Claims(
            id=identity.id,
            name=identity.name,
            email=identity.email,
            role=Role(id=role.id, name=role.name),
            issued_at=issued_at,
            expires_at=issued_at + self._expire_seconds if self._expire_seconds > 0 else None,
        )
        return jwt.encode(claims.to_payload(), self._secret_key, algorithm=_ALGORITHM)

    def decode(self, token: str | None) -> Claims:
        """Verify a token and return its claims.

        Structure is checked before the signature so that garbage input is
        reported as malformed rather than as a signature mismatch.
        """
        if not token:
            raise TokenMissingError()

        try:
            jwt.get_unverified_header(token)
            jwt.get_unverified_claims(token)
        except JOSEError as exc:
            raise MalformedTokenError(str(exc)) from exc

        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[_ALGORITHM],
                options={"verify_exp": True, "verify_iat": True},
            )
        except ExpiredSignatureError as exc:
            raise TokenExpiredError() from exc
        except JWTClaimsError as exc:
            raise MalformedTokenError(str(exc)) from exc
        except JOSEError as exc:
            logger.info("Rejected token with invalid signature")
            raise InvalidSignatureError() from exc

        return _claims_from_payload(payload)


def _claims_from_payload(payload: Mapping) -> Claims:
    """Rebuild Claims from a verified payload, rejecting incomplete claim sets."""
    role = payload.get("role")
    if not isinstance(role, Mapping) or "name" not in role or "id" not in role:
        raise MalformedTokenError("role claim is missing or incomplete")
    missing = [key for key in ("id", "name", "email", "iat") if key not in payload]
    if missing:
        raise MalformedTokenError(f"missing claims: {', '.join(missing)}")
    return Claims(
        id=payload["id"],
        name=payload["name"],
        email=payload["email"],
        role=Role(id=role["id"], name=role["name"]),
        issued_at=payload["iat"],
        expires_at=payload.get("exp"),
    )
