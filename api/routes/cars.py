"""
api/routes/cars.py -- Vehicle catalogue and rental routes.

Routes (in registration order to avoid FastAPI path capture conflicts):
  GET    /cars              -- paginated list; filters: size, availableAt
  POST   /cars              -- create car (ADMIN)
  GET    /cars/{car_id}     -- car detail
  PUT    /cars/{car_id}     -- replace car fields (ADMIN)
  DELETE /cars/{car_id}     -- delete car and its rentals (ADMIN)
  POST   /cars/{car_id}/rent -- rent car for the caller (CUSTOMER)

Renting delegates to fleet.booking.RentalConflictChecker, which rejects
windows overlapping an active rental with 422 VehicleAlreadyRentedError.
"""

import math
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from api.limiter import limiter
from api.models import (
    CarCreate,
    CarListMeta,
    CarListResponse,
    CarResponse,
    CarSizeEnum,
    Pagination,
    RentalResponse,
    RentRequest,
)
from auth.dependencies import authorize
from auth.models import Claims
from core.errors import RecordNotFoundError
from fleet.booking import RentalConflictChecker
from fleet.models import Car
from fleet.store import FleetStore

router = APIRouter()

_require_admin = authorize("ADMIN")
_require_customer = authorize("CUSTOMER")


def _get_car_or_404(fleet: FleetStore, car_id: int) -> Car:
    car = fleet.get_car(car_id)
    if car is None:
        raise RecordNotFoundError(f"Car {car_id}")
    return car


# ---------------------------------------------------------------------------
# GET /cars -- paginated list
# ---------------------------------------------------------------------------


@limiter.limit("60/minute")
@router.get("/cars", response_model=CarListResponse)
def list_cars(
    request: Request,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=10, ge=1, le=100, alias="pageSize"),
    size: Optional[CarSizeEnum] = Query(default=None),
    available_at: Optional[datetime] = Query(default=None, alias="availableAt"),
) -> CarListResponse:
    """Return one page of cars.

    availableAt keeps only cars that no rental blocks at that instant.
    """
    fleet: FleetStore = request.app.state.fleet
    if available_at is not None and available_at.tzinfo is None:
        available_at = available_at.replace(tzinfo=timezone.utc)
    size_value = size.value if size is not None else None

    count = fleet.count_cars(size=size_value, available_at=available_at)
    cars = fleet.list_cars(
        size=size_value,
        available_at=available_at,
        limit=page_size,
        offset=(page - 1) * page_size,
    )
    return CarListResponse(
        cars=[CarResponse.from_car(c) for c in cars],
        meta=CarListMeta(
            pagination=Pagination(
                page=page,
                page_count=math.ceil(count / page_size),
                page_size=page_size,
                count=count,
            )
        ),
    )


# ---------------------------------------------------------------------------
# POST /cars -- create
# ---------------------------------------------------------------------------


@limiter.limit("30/minute")
@router.post("/cars", response_model=CarResponse, status_code=201, dependencies=[Depends(_require_admin)])
def create_car(request: Request, body: CarCreate) -> CarResponse:
    fleet: FleetStore = request.app.state.fleet
    car_id = fleet.create_car(Car(name=body.name, price=body.price, size=body.size.value, image=body.image))
    return CarResponse.from_car(_get_car_or_404(fleet, car_id))


# ---------------------------------------------------------------------------
# /cars/{car_id}
# ---------------------------------------------------------------------------


@router.get("/cars/{car_id}", response_model=CarResponse)
def get_car(request: Request, car_id: int) -> CarResponse:
    fleet: FleetStore = request.app.state.fleet
    return CarResponse.from_car(_get_car_or_404(fleet, car_id))


@router.put("/cars/{car_id}", response_model=CarResponse, dependencies=[Depends(_require_admin)])
def update_car(request: Request, car_id: int, body: CarCreate) -> CarResponse:
    fleet: FleetStore = request.app.state.fleet
    updated = fleet.update_car(car_id, name=body.name, price=body.price, size=body.size.value, image=body.image)
    if not updated:
        raise RecordNotFoundError(f"Car {car_id}")
    return CarResponse.from_car(_get_car_or_404(fleet, car_id))


@router.delete("/cars/{car_id}", status_code=204, dependencies=[Depends(_require_admin)])
def delete_car(request: Request, car_id: int) -> Response:
    fleet: FleetStore = request.app.state.fleet
    if not fleet.delete_car(car_id):
        raise RecordNotFoundError(f"Car {car_id}")
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# POST /cars/{car_id}/rent
# ---------------------------------------------------------------------------


@limiter.limit("30/minute")
@router.post("/cars/{car_id}/rent", response_model=RentalResponse, status_code=201)
def rent_car(
    request: Request,
    car_id: int,
    body: RentRequest,
    claims: Claims = Depends(_require_customer),
) -> RentalResponse:
    """Rent the car for the authenticated customer.

    The renter is always the token's identity; the body only carries the
    window. A missing rentEndedAt records an open-ended rental.
    """
    fleet: FleetStore = request.app.state.fleet
    checker: RentalConflictChecker = request.app.state.rental_checker
    car = _get_car_or_404(fleet, car_id)
    rental = checker.rent(car, claims.id, body.rent_started_at, body.rent_ended_at)
    return RentalResponse.from_rental(rental)
