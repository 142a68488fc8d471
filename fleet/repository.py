"""
fleet/repository.py -- The persistence interface the rental conflict checker needs.

fleet/store.py::FleetStore satisfies it in production; the in-memory fake in
tests/conftest.py satisfies it in tests.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from fleet.models import Car, Rental


class RentalRepository(Protocol):
    def get_car(self, car_id: int) -> Optional[Car]: ...

    def find_active_rentals_for_vehicle(self, car_id: int, after: datetime) -> list[Rental]:
        """Return rentals of this car whose end is unset or >= after."""
        ...

    def create_rental_window(self, rental: Rental) -> Optional[Rental]:
        """Insert the rental and return it with id and created_at set.

        Implementations re-check for an overlapping active rental in the same
        transaction as the insert and return None if one exists.
        """
        ...
