"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

authorize(required_role) is the access control gate. It returns a dependency
that:
  1. reads the Authorization: Bearer <token> header,
  2. decodes the token with the process-wide TokenCodec on app.state,
  3. checks the decoded role name against required_role (exact match;
     a falsy required_role admits any authenticated identity),
  4. attaches the Claims to request.state.user and returns them.

Any failure raises an AppError subclass (401). FastAPI stops resolving the
route, so the handler -- the continuation -- never runs; api/main.py renders
the error body.

Layer rule: no imports from api/ or fleet/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Optional

from fastapi import Request

from auth.models import Claims
from auth.tokens import TokenCodec
from core.errors import InsufficientAccessError, TokenMissingError


def bearer_token(request: Request) -> str:
    """Return the token from the Authorization header, or "" if there is none."""
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()


def authorize(required_role: Optional[str] = None) -> Callable[[Request], Claims]:
    """Build a dependency that requires a valid token and, optionally, a role.

    Use as a FastAPI dependency:
        @router.post("/cars", dependencies=[Depends(authorize("ADMIN"))])
        def route(...): ...

        @router.get("/auth/me")
        def route(claims: Claims = Depends(authorize())): ...
    """

    def guard(request: Request) -> Claims:
        token = bearer_token(request)
        if not token:
            raise TokenMissingError()

        codec: TokenCodec = request.app.state.token_codec
        claims = codec.decode(token)

        if required_role and claims.role.name != required_role:
            raise InsufficientAccessError(claims.role.name)

        request.state.user = claims
        return claims

    return guard
