"""
fleet/booking.py -- Rental conflict detection.

A car is available for a proposed rental starting at S iff no rental of that
car has an end that is unset or >= S. The boundary is inclusive: a rental
ending exactly at S still blocks, so a new rental must start strictly after
the previous one ends.

Check-then-create is serialized per car. RentalConflictChecker holds a lock
keyed by car id across the overlap query and the insert, so two threads of
this process cannot both pass the check for the same car. The repository's
create_rental_window() repeats the check inside its insert transaction,
which covers other processes sharing the database; a None from it is
reported as the same conflict.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Hashable, Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Optional

from core.errors import VehicleAlreadyRentedError
from fleet.models import Car, Rental
from fleet.repository import RentalRepository

logger = logging.getLogger("fleetrent.fleet")


class KeyedLock:
    """One threading.Lock per key, created on first use.

    Locks are never evicted; the key space (car ids) is bounded by the fleet.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.Lock] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
        with lock:
            yield


class RentalConflictChecker:
    def __init__(self, rentals: RentalRepository, locks: Optional[KeyedLock] = None) -> None:
        self._rentals = rentals
        self._locks = locks or KeyedLock()

    def rent(self, car: Car, renter_id: int, started_at: datetime, ended_at: Optional[datetime] = None) -> Rental:
        """Record a rental of car for renter_id, or raise VehicleAlreadyRentedError.

        ended_at None records an open-ended rental.
        """
        with self._locks.hold(car.id):
            active = self._rentals.find_active_rentals_for_vehicle(car.id, started_at)
            if active:
                logger.info("Rental of car %s at %s blocked by rental %s", car.id, started_at, active[0].id)
                raise VehicleAlreadyRentedError(car)

            created = self._rentals.create_rental_window(
                Rental(car_id=car.id, user_id=renter_id, rent_started_at=started_at, rent_ended_at=ended_at)
            )
            if created is None:
                raise VehicleAlreadyRentedError(car)

        logger.info("Car %s rented by user %s (rental %s)", car.id, renter_id, created.id)
        return created
