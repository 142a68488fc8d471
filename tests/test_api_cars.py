"""
tests/test_api_cars.py -- Integration tests for /cars routes.

Coverage:
  - Access control: ADMIN-only mutations, CUSTOMER-only renting
  - Car CRUD happy paths and 404s
  - Listing: size filter, pagination meta, availableAt filter
  - Renting: conflict on overlap and on the inclusive boundary, window validation
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from conftest import ApiContext

T0 = "2026-03-01T09:00:00Z"
T0_PLUS_12H = "2026-03-01T21:00:00Z"
T0_PLUS_1D = "2026-03-02T09:00:00Z"
T0_PLUS_25H = "2026-03-02T10:00:00Z"


def _create_car(ctx: ApiContext, name: str, size: str = "SMALL", price: int = 3000) -> dict:
    resp = ctx.client.post(
        "/cars",
        json={"name": name, "price": price, "size": size, "image": None},
        headers=ctx.headers(ctx.admin_token),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def _rent(ctx: ApiContext, car_id: int, start: str, end: str | None = None, token: str | None = None):
    body = {"rentStartedAt": start}
    if end is not None:
        body["rentEndedAt"] = end
    return ctx.client.post(
        f"/cars/{car_id}/rent", json=body, headers=ctx.headers(token or ctx.customer_token)
    )


class TestCarAccess:
    def test_create_requires_token(self, api_client: ApiContext) -> None:
        resp = api_client.client.post("/cars", json={"name": "X", "price": 1, "size": "SMALL"})
        assert resp.status_code == 401
        assert resp.json()["error"]["name"] == "TokenMissingError"

    def test_customer_cannot_create(self, api_client: ApiContext) -> None:
        resp = api_client.client.post(
            "/cars",
            json={"name": "X", "price": 1, "size": "SMALL"},
            headers=api_client.headers(api_client.customer_token),
        )
        assert resp.status_code == 401
        error = resp.json()["error"]
        assert error["name"] == "InsufficientAccessError"
        assert error["message"] == "Access forbidden!"
        assert error["details"]["role"] == "CUSTOMER"

    def test_admin_cannot_rent(self, api_client: ApiContext) -> None:
        car = _create_car(api_client, "Admin Pick")
        resp = _rent(api_client, car["id"], T0, token=api_client.admin_token)
        assert resp.status_code == 401
        assert resp.json()["error"]["name"] == "InsufficientAccessError"

    def test_listing_is_public(self, api_client: ApiContext) -> None:
        assert api_client.client.get("/cars").status_code == 200


class TestCarCrud:
    def test_create_and_get(self, api_client: ApiContext) -> None:
        car = _create_car(api_client, "Golf", size="MEDIUM", price=4200)
        assert car["name"] == "Golf"
        assert car["size"] == "MEDIUM"
        assert {"createdAt", "updatedAt"} <= set(car)

        resp = api_client.client.get(f"/cars/{car['id']}")
        assert resp.status_code == 200
        assert resp.json()["price"] == 4200

    def test_get_missing(self, api_client: ApiContext) -> None:
        resp = api_client.client.get("/cars/99999")
        assert resp.status_code == 404
        assert resp.json()["error"]["name"] == "RecordNotFoundError"

    def test_invalid_size(self, api_client: ApiContext) -> None:
        resp = api_client.client.post(
            "/cars",
            json={"name": "Bus", "price": 1, "size": "HUGE"},
            headers=api_client.headers(api_client.admin_token),
        )
        assert resp.status_code == 422

    def test_update(self, api_client: ApiContext) -> None:
        car = _create_car(api_client, "Polo")
        resp = api_client.client.put(
            f"/cars/{car['id']}",
            json={"name": "Polo GTI", "price": 5100, "size": "SMALL"},
            headers=api_client.headers(api_client.admin_token),
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["name"] == "Polo GTI"

    def test_delete(self, api_client: ApiContext) -> None:
        car = _create_car(api_client, "Scrapped")
        headers = api_client.headers(api_client.admin_token)
        assert api_client.client.delete(f"/cars/{car['id']}", headers=headers).status_code == 204
        assert api_client.client.get(f"/cars/{car['id']}").status_code == 404
        assert api_client.client.delete(f"/cars/{car['id']}", headers=headers).status_code == 404


class TestCarListing:
    def test_size_filter_and_pagination(self, api_client: ApiContext) -> None:
        for i in range(3):
            _create_car(api_client, f"Van {i}", size="LARGE")

        resp = api_client.client.get("/cars", params={"size": "LARGE", "pageSize": 2})
        assert resp.status_code == 200
        data = resp.json()
        assert [c["name"] for c in data["cars"]] == ["Van 0", "Van 1"]
        assert data["meta"]["pagination"] == {"page": 1, "pageCount": 2, "pageSize": 2, "count": 3}

        second = api_client.client.get("/cars", params={"size": "LARGE", "pageSize": 2, "page": 2}).json()
        assert [c["name"] for c in second["cars"]] == ["Van 2"]

    def test_available_at_excludes_rented_cars(self, api_client: ApiContext) -> None:
        # MEDIUM cars created here are the only ones rented in this module.
        busy = _create_car(api_client, "Busy", size="MEDIUM")
        idle = _create_car(api_client, "Idle", size="MEDIUM")
        assert _rent(api_client, busy["id"], T0).status_code == 201

        resp = api_client.client.get("/cars", params={"size": "MEDIUM", "availableAt": "2027-01-01T00:00:00Z"})
        names = [c["name"] for c in resp.json()["cars"]]
        assert "Idle" in names
        assert "Busy" not in names
        assert idle["id"] in [c["id"] for c in resp.json()["cars"]]


class TestRenting:
    def test_rent_then_conflict(self, api_client: ApiContext) -> None:
        car = _create_car(api_client, "Corolla")

        first = _rent(api_client, car["id"], T0, T0_PLUS_1D)
        assert first.status_code == 201, first.text
        rental = first.json()
        assert rental["carId"] == car["id"]
        assert rental["userId"] == api_client.customer_id
        assert rental["rentEndedAt"] is not None

        overlap = _rent(api_client, car["id"], T0_PLUS_12H)
        assert overlap.status_code == 422
        assert overlap.json()["error"] == {
            "name": "VehicleAlreadyRentedError",
            "message": "Corolla is already rented!",
            "details": {"car": {"id": car["id"], "name": "Corolla"}},
        }

        boundary = _rent(api_client, car["id"], T0_PLUS_1D)
        assert boundary.status_code == 422

        after = _rent(api_client, car["id"], T0_PLUS_25H)
        assert after.status_code == 201

    def test_open_ended_rental(self, api_client: ApiContext) -> None:
        car = _create_car(api_client, "Forever")
        resp = _rent(api_client, car["id"], T0)
        assert resp.status_code == 201
        assert resp.json()["rentEndedAt"] is None
        assert _rent(api_client, car["id"], "2030-01-01T00:00:00Z").status_code == 422

    def test_end_before_start_rejected(self, api_client: ApiContext) -> None:
        car = _create_car(api_client, "Backwards")
        resp = _rent(api_client, car["id"], T0_PLUS_1D, T0)
        assert resp.status_code == 422
        assert resp.json()["error"]["name"] == "ValidationError"

    def test_rent_missing_car(self, api_client: ApiContext) -> None:
        resp = _rent(api_client, 99999, T0)
        assert resp.status_code == 404
        assert resp.json()["error"]["name"] == "RecordNotFoundError"

    def test_rent_without_token(self, api_client: ApiContext) -> None:
        resp = api_client.client.post("/cars/1/rent", json={"rentStartedAt": T0})
        assert resp.status_code == 401
