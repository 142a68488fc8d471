"""
fleet/store.py -- SQLAlchemy-backed persistence layer for cars and rentals.

Uses SQLAlchemy Core (not ORM) so the domain dataclasses in fleet/models.py
remain the authoritative domain representation. Swapping SQLite for
PostgreSQL is a connection string change, not a rewrite.

Pattern: Repository + Data Mapper. FleetStore is the repository; the _row_to_*
functions are the mappers. Route handlers never touch SQL directly.
FleetStore satisfies fleet.repository.RentalRepository.

Timestamps are stored as fixed-width UTC ISO 8601 strings
("2026-01-31T09:00:00.000000+00:00"). Every value has the same width and
offset, so SQL string comparison orders them exactly like the instants they
represent.

Double-booking guard:
  create_rental_window() inserts with INSERT ... SELECT ... WHERE NOT EXISTS
  (overlapping active rental), inside a transaction that first locks the car
  row with SELECT ... FOR UPDATE. On PostgreSQL the row lock serializes
  concurrent bookings of the same car; SQLite ignores FOR UPDATE but executes
  the single INSERT statement under its database write lock. Either way the
  overlap check and the insert cannot interleave with another booking.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = FleetStore()                               # SQLite default
    store = FleetStore("postgresql://user:pw@host/db") # PostgreSQL
    car_id = store.create_car(car)
    store.create_rental_window(rental)
    store.close()
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Column,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    func,
    literal,
    or_,
    select,
)
from sqlalchemy.engine import Engine

from core.config import DEFAULT_DB_URL
from fleet.models import Car, Rental

logger = logging.getLogger("fleetrent.fleet")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_cars = Table(
    "cars",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("price", Integer, nullable=False),
    Column("size", String(10), nullable=False),
    Column("image", Text),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_rentals = Table(
    "rentals",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("car_id", Integer, nullable=False),
    Column("user_id", Integer, nullable=False),
    Column("rent_started_at", String(32), nullable=False),
    Column("rent_ended_at", String(32)),  # NULL = open-ended
    Column("created_at", String(32), nullable=False),
    Index("ix_rentals_car_end", "car_id", "rent_ended_at"),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def to_iso(value: datetime) -> str:
    """Serialize a datetime to the fixed-width UTC form used in storage.

    Naive datetimes are treated as UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_iso(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def _now_iso() -> str:
    return to_iso(datetime.now(timezone.utc))


def _blocking_rental_clause(car_id: int, after_iso: str):
    """WHERE clause for rentals of car_id still active at after_iso (inclusive)."""
    return (_rentals.c.car_id == car_id) & or_(
        _rentals.c.rent_ended_at.is_(None),
        _rentals.c.rent_ended_at >= after_iso,
    )


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class FleetStore:
    """Repository for Car and Rental entities."""

    # Columns an update_car() caller may change. Validated before any SQL.
    _CAR_FIELDS: set = {"name", "price", "size", "image"}

    def __init__(self, db_url: str = DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Cars
    # ------------------------------------------------------------------

    def create_car(self, car: Car) -> int:
        """Insert a new car and return its assigned database ID."""
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _cars.insert().values(
                    name=car.name,
                    price=car.price,
                    size=car.size,
                    image=car.image,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_car(self, car_id: int) -> Optional[Car]:
        """Look up a car by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_cars.select().where(_cars.c.id == car_id)).fetchone()
        return _row_to_car(row) if row is not None else None

    def list_cars(
        self,
        size: Optional[str] = None,
        available_at: Optional[datetime] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> list[Car]:
        """Return one page of cars, ordered by id.

        available_at keeps only cars with no rental still active at that
        instant (end unset or >= available_at).
        """
        query = self._filtered(_cars.select(), size, available_at).order_by(_cars.c.id).limit(limit).offset(offset)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_car(r) for r in rows]

    def count_cars(self, size: Optional[str] = None, available_at: Optional[datetime] = None) -> int:
        """Return the number of cars matching the same filters as list_cars()."""
        query = self._filtered(select(func.count()).select_from(_cars), size, available_at)
        with self.engine.connect() as conn:
            result = conn.execute(query).scalar()
        return result or 0

    @staticmethod
    def _filtered(query, size: Optional[str], available_at: Optional[datetime]):
        if size is not None:
            query = query.where(_cars.c.size == size)
        if available_at is not None:
            blocking = (
                select(_rentals.c.id)
                .where(_rentals.c.car_id == _cars.c.id)
                .where(or_(_rentals.c.rent_ended_at.is_(None), _rentals.c.rent_ended_at >= to_iso(available_at)))
            )
            query = query.where(~blocking.exists())
        return query

    def update_car(self, car_id: int, **fields) -> bool:
        """Update mutable fields on an existing car.

        Only keys in _CAR_FIELDS are accepted; unknown keys raise ValueError.
        Returns True if a row was updated, False if car_id was not found.
        """
        unknown = set(fields) - self._CAR_FIELDS
        if unknown:
            raise ValueError(f"Unknown car fields: {unknown!r}")
        with self.engine.connect() as conn:
            result = conn.execute(_cars.update().where(_cars.c.id == car_id).values(updated_at=_now_iso(), **fields))
            conn.commit()
        return result.rowcount > 0

    def delete_car(self, car_id: int) -> bool:
        """Delete a car and its rental history. Returns False if not found."""
        with self.engine.begin() as conn:
            conn.execute(_rentals.delete().where(_rentals.c.car_id == car_id))
            result = conn.execute(_cars.delete().where(_cars.c.id == car_id))
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Rentals
    # ------------------------------------------------------------------

    def find_active_rentals_for_vehicle(self, car_id: int, after: datetime) -> list[Rental]:
        """Return rentals of car_id whose end is unset or >= after, oldest first."""
        query = (
            _rentals.select()
            .where(_blocking_rental_clause(car_id, to_iso(after)))
            .order_by(_rentals.c.rent_started_at)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_rental(r) for r in rows]

    def create_rental_window(self, rental: Rental) -> Optional[Rental]:
        """Insert a rental unless an active rental for the same car blocks it.

        Returns the stored Rental, or None when the overlap check inside the
        insert statement found a blocking rental.
        """
        started_iso = to_iso(rental.rent_started_at)
        ended_iso = to_iso(rental.rent_ended_at) if rental.rent_ended_at is not None else None
        created_at = _now_iso()

        blocking = select(_rentals.c.id).where(_blocking_rental_clause(rental.car_id, started_iso)).correlate(None)
        source = select(
            literal(rental.car_id, Integer),
            literal(rental.user_id, Integer),
            literal(started_iso, String),
            literal(ended_iso, String),
            literal(created_at, String),
        ).where(~blocking.exists())
        insert = (
            _rentals.insert()
            .from_select(["car_id", "user_id", "rent_started_at", "rent_ended_at", "created_at"], source)
            .returning(_rentals.c.id)
        )

        with self.engine.begin() as conn:
            conn.execute(select(_cars.c.id).where(_cars.c.id == rental.car_id).with_for_update()).fetchone()
            row = conn.execute(insert).fetchone()

        if row is None:
            logger.warning("Overlapping rental for car %s rejected at write time", rental.car_id)
            return None
        return Rental(
            id=row[0],
            car_id=rental.car_id,
            user_id=rental.user_id,
            rent_started_at=from_iso(started_iso),
            rent_ended_at=from_iso(ended_iso),
            created_at=created_at,
        )

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_car(row) -> Car:
    return Car(
        id=row.id,
        name=row.name,
        price=row.price,
        size=row.size,
        image=row.image,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_rental(row) -> Rental:
    return Rental(
        id=row.id,
        car_id=row.car_id,
        user_id=row.user_id,
        rent_started_at=from_iso(row.rent_started_at),
        rent_ended_at=from_iso(row.rent_ended_at),
        created_at=row.created_at,
    )
