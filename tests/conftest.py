"""
tests/conftest.py -- Shared test fixtures for FleetRent.

This module provides:
  - InMemoryIdentityRepository / InMemoryRentalRepository: dict-backed
    implementations of the repository protocols for service-level tests
  - make_stores(): isolated in-memory SQLite stores for auth + fleet
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient plus ADMIN and CUSTOMER tokens

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

The DEBUG env var must be set before any api/core import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

# CRITICAL: Set DEBUG before any core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.models import Identity, Role
from auth.passwords import hash_password
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenCodec
from fleet.booking import RentalConflictChecker
from fleet.models import Car, Rental
from fleet.store import FleetStore

TEST_SECRET = "fleetrent-test-secret-0123456789abcdef"
ADMIN_PASSWORD = "adminpass123"
CUSTOMER_PASSWORD = "customerpass123"


# ---------------------------------------------------------------------------
# In-memory repositories
# ---------------------------------------------------------------------------


class InMemoryIdentityRepository:
    """Dict-backed IdentityRepository seeded with the CUSTOMER and ADMIN roles."""

    def __init__(self) -> None:
        self.roles: dict[int, Role] = {1: Role(id=1, name="CUSTOMER"), 2: Role(id=2, name="ADMIN")}
        self.identities: dict[int, Identity] = {}

    def find_identity_by_email(self, email: str) -> Optional[Identity]:
        for identity in self.identities.values():
            if identity.email == email:
                return replace(identity, role=self.roles.get(identity.role_id))
        return None

    def find_identity_by_id(self, identity_id: int) -> Optional[Identity]:
        identity = self.identities.get(identity_id)
        return replace(identity) if identity is not None else None

    def create_identity(self, identity: Identity) -> Optional[Identity]:
        if any(i.email == identity.email for i in self.identities.values()):
            return None
        stored = replace(identity, id=len(self.identities) + 1, created_at="2026-01-01T00:00:00.000000+00:00")
        self.identities[stored.id] = stored
        return replace(stored)

    def find_role_by_id(self, role_id: int) -> Optional[Role]:
        return self.roles.get(role_id)

    def find_role_by_name(self, name: str) -> Optional[Role]:
        return next((r for r in self.roles.values() if r.name == name), None)


class InMemoryRentalRepository:
    """List-backed RentalRepository.

    create_rental_window() always inserts unless force_conflict is set, so
    tests can tell the checker's own overlap query apart from the write-time
    check.
    """

    def __init__(self) -> None:
        self.cars: dict[int, Car] = {}
        self.rentals: list[Rental] = []
        self.force_conflict = False

    def add_car(self, name: str = "Civic", size: str = "SMALL") -> Car:
        car = Car(id=len(self.cars) + 1, name=name, price=100, size=size)
        self.cars[car.id] = car
        return car

    def get_car(self, car_id: int) -> Optional[Car]:
        return self.cars.get(car_id)

    def find_active_rentals_for_vehicle(self, car_id: int, after: datetime) -> list[Rental]:
        return [
            r
            for r in self.rentals
            if r.car_id == car_id and (r.rent_ended_at is None or r.rent_ended_at >= after)
        ]

    def create_rental_window(self, rental: Rental) -> Optional[Rental]:
        if self.force_conflict:
            return None
        stored = replace(rental, id=len(self.rentals) + 1)
        self.rentals.append(stored)
        return stored


@pytest.fixture
def identity_repo() -> InMemoryIdentityRepository:
    return InMemoryIdentityRepository()


@pytest.fixture
def rental_repo() -> InMemoryRentalRepository:
    return InMemoryRentalRepository()


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def make_stores(db_suffix: str) -> tuple[UserStore, FleetStore]:
    """Create isolated named shared-memory SQLite stores.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    auth_url = f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true"
    fleet_url = f"sqlite:///file:test_fleet_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=auth_url), FleetStore(db_url=fleet_url)


def _patch_lifespan(user_store: UserStore, fleet: FleetStore, codec: TokenCodec):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores and a codec with a known secret into
    app.state so TestClient routes see isolated test DBs.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.fleet = fleet
        app.state.token_codec = codec
        app.state.auth_service = AuthService(user_store, codec)
        app.state.rental_checker = RentalConflictChecker(fleet)
        yield

    return test_lifespan


def _seed_identity(store: UserStore, name: str, email: str, password: str, role_name: str) -> tuple[Identity, Role]:
    role = store.find_role_by_name(role_name)
    identity = store.create_identity(
        Identity(name=name, email=email, password_hash=hash_password(password), role_id=role.id)
    )
    return identity, role


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@dataclass
class ApiContext:
    client: TestClient
    admin_token: str
    customer_token: str
    customer_id: int
    codec: TokenCodec
    customer_password: str = CUSTOMER_PASSWORD

    def headers(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="module")
def api_client(request) -> Generator[ApiContext, None, None]:
    """Yield an ApiContext for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real route handlers but use isolated in-memory stores. One ADMIN
    (admin@example.com) and one CUSTOMER (customer@example.com) are created
    before the client starts.
    """
    user_store, fleet = make_stores(request.module.__name__.rsplit(".", 1)[-1])
    codec = TokenCodec(TEST_SECRET)

    admin, admin_role = _seed_identity(user_store, "Fleet Admin", "admin@example.com", ADMIN_PASSWORD, "ADMIN")
    customer, customer_role = _seed_identity(
        user_store, "Jane Customer", "customer@example.com", CUSTOMER_PASSWORD, "CUSTOMER"
    )

    app.router.lifespan_context = _patch_lifespan(user_store, fleet, codec)
    limiter.reset()

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiContext(
            client=client,
            admin_token=codec.encode(admin, admin_role),
            customer_token=codec.encode(customer, customer_role),
            customer_id=customer.id,
            codec=codec,
        )

    user_store.close()
    fleet.close()
