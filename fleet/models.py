"""
fleet/models.py -- Domain dataclasses for vehicles and rental windows.

These are pure data containers with zero logic. Availability rules live in
fleet/booking.py; persistence lives in fleet/store.py.

Timestamps are timezone-aware UTC datetimes in the domain. The store
serializes them to fixed-width ISO 8601 strings.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class Car:
    """A rentable vehicle.

    Availability is not stored on the car: it is derived from the rental
    windows recorded against it (see fleet/booking.py).

    id is None before the record is written to the database.
    """

    name: str
    price: int
    size: str  # "SMALL" | "MEDIUM" | "LARGE"
    image: Optional[str] = None
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""


@dataclass
class Rental:
    """A time-bounded assignment of a car to a renter.

    rent_ended_at None means the rental is open-ended: it blocks the car for
    every later start.
    """

    car_id: int
    user_id: int
    rent_started_at: datetime
    rent_ended_at: Optional[datetime] = None
    id: Optional[int] = None
    created_at: str = ""
