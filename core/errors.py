"""
core/errors.py -- Domain error taxonomy for FleetRent.

Every error a client can trigger through normal use is an AppError subclass.
Each carries the HTTP status it maps to plus a self-describing message and
optional details, so api/main.py renders all of them with one exception
handler:

    {"error": {"name": <class name>, "message": ..., "details": ...}}

Anything that is not an AppError (database outages, bugs) bypasses domain
handling and reaches the catch-all 500 handler unchanged.

Layer rule: core/ is the kernel. No imports from api/, auth/, or fleet/.
"""

from __future__ import annotations

from typing import Any


class AppError(Exception):
    """Base class for errors with a defined HTTP rendering."""

    status_code: int = 500

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict:
        return {"name": self.name, "message": self.message, "details": self.details}


# ---------------------------------------------------------------------------
# Token / gate failures -- always 401, the route handler never runs
# ---------------------------------------------------------------------------


class TokenMissingError(AppError):
    status_code = 401

    def __init__(self) -> None:
        super().__init__("Access token must be provided.")


class MalformedTokenError(AppError):
    status_code = 401

    def __init__(self, reason: str = "") -> None:
        super().__init__("Access token is malformed.", details={"reason": reason} if reason else None)


class InvalidSignatureError(AppError):
    status_code = 401

    def __init__(self) -> None:
        super().__init__("Access token signature is invalid.")


class TokenExpiredError(AppError):
    status_code = 401

    def __init__(self) -> None:
        super().__init__("Access token has expired.")


class InsufficientAccessError(AppError):
    status_code = 401

    def __init__(self, role: str) -> None:
        super().__init__(
            "Access forbidden!",
            details={"role": role, "reason": f"{role} is not allowed to perform this operation."},
        )
        self.role = role


# ---------------------------------------------------------------------------
# Authentication service
# ---------------------------------------------------------------------------


class EmailAlreadyTakenError(AppError):
    status_code = 422

    def __init__(self, email: str) -> None:
        super().__init__(f"{email} is already taken!", details={"email": email})
        self.email = email


class EmailNotRegisteredError(AppError):
    status_code = 404

    def __init__(self, email: str) -> None:
        super().__init__(f"{email} is not registered!", details={"email": email})
        self.email = email


class WrongPasswordError(AppError):
    status_code = 401

    def __init__(self) -> None:
        super().__init__("Password is not correct!")


class RecordNotFoundError(AppError):
    status_code = 404

    def __init__(self, name: str) -> None:
        super().__init__(f"{name} not found!", details={"name": name})
        self.record_name = name


# ---------------------------------------------------------------------------
# Rentals
# ---------------------------------------------------------------------------


class VehicleAlreadyRentedError(AppError):
    status_code = 422

    def __init__(self, car: Any) -> None:
        super().__init__(
            f"{car.name} is already rented!",
            details={"car": {"id": car.id, "name": car.name}},
        )
        self.car = car


# ---------------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------------


class NotFoundError(AppError):
    """Rendered for requests that match no registered route."""

    status_code = 404

    def __init__(self, method: str, url: str) -> None:
        super().__init__("Not found!", details={"method": method, "url": url})
