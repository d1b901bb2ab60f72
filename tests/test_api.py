import pytest
from fastapi.testclient import TestClient

from carpal.core.config import Settings
from carpal.main import create_app
from carpal.services.push_client import UNREGISTERED
from tests.conftest import EVENT_SECRET, auth_header, minutes_after_base, trip_record

TRIP_PAYLOAD = {
    "fromCity": "Amman",
    "toCity": "Irbid",
    "date": "2024-05-10",
    "time": "08:30",
    "price": 3.5,
    "carModel": "Corolla",
    "carColor": "White",
    "phoneNumber": "+962 7999-12345",
    "notes": "Leaving from the university gate",
    "totalSeats": 4,
}

def create_trip(client, **overrides):
    payload = {**TRIP_PAYLOAD, **overrides}
    response = client.post("/api/v1/trips", json=payload, headers=auth_header())
    assert response.status_code == 201, response.text
    return response.json()["trip"]

def test_health(client):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}

# --- auth ---

def test_create_requires_token(client):
    response = client.post("/api/v1/trips", json=TRIP_PAYLOAD)
    assert response.status_code == 401
    assert response.json() == {"message": "Authentication token is missing"}

def test_invalid_token_is_rejected(client):
    response = client.get("/api/v1/trips/mine", headers={"Authorization": "Bearer mock:"})
    assert response.status_code == 401
    assert response.json() == {"message": "Invalid or expired token"}

# --- trips ---

def test_create_trip(client):
    response = client.post("/api/v1/trips", json=TRIP_PAYLOAD, headers=auth_header())

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Trip created successfully"
    trip = body["trip"]
    assert trip["driverId"] == "driver-1"
    assert trip["driverName"] == "Sami"
    assert trip["availableSeats"] == trip["totalSeats"] == 4
    assert trip["bookedUsers"] == []
    assert trip["createdAt"].endswith("Z")

def test_create_trip_validation_errors(client):
    payload = {**TRIP_PAYLOAD, "date": "10/05/2024", "price": 0, "fromCity": "   "}
    response = client.post("/api/v1/trips", json=payload, headers=auth_header())

    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Validation failed"
    errors = {e["path"]: e["message"] for e in body["errors"]}
    assert errors["date"] == "date must be in YYYY-MM-DD format"
    assert "price" in errors
    assert "fromCity" in errors

def test_create_trip_rejects_bad_phone_and_time(client):
    payload = {**TRIP_PAYLOAD, "phoneNumber": "call me", "time": "24:00"}
    response = client.post("/api/v1/trips", json=payload, headers=auth_header())

    errors = {e["path"]: e["message"] for e in response.json()["errors"]}
    assert errors["phoneNumber"] == "phoneNumber must be a valid phone number"
    assert errors["time"] == "time must be in HH:mm format"

def test_create_trip_rejects_strings_and_booleans_for_numbers(client):
    payload = {**TRIP_PAYLOAD, "price": "5", "totalSeats": True}
    response = client.post("/api/v1/trips", json=payload, headers=auth_header())

    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Validation failed"
    assert {e["path"] for e in body["errors"]} == {"price", "totalSeats"}

def test_update_rejects_strings_and_booleans_for_seats(client):
    trip = create_trip(client)

    response = client.patch(f"/api/v1/trips/{trip['id']}", json={"availableSeats": "2"}, headers=auth_header())
    assert response.status_code == 400

    response = client.patch(f"/api/v1/trips/{trip['id']}", json={"totalSeats": False}, headers=auth_header())
    assert response.status_code == 400
    assert response.json()["errors"][0]["path"] == "totalSeats"

def test_list_and_mine(client):
    mine = create_trip(client)
    client.post("/api/v1/trips", json={**TRIP_PAYLOAD, "toCity": "Aqaba"}, headers=auth_header("driver-2", "Noor"))

    listing = client.get("/api/v1/trips", params={"toCity": "Irbid"}).json()
    assert [t["id"] for t in listing["trips"]] == [mine["id"]]
    assert listing["nextCursor"] is None

    own = client.get("/api/v1/trips/mine", headers=auth_header()).json()
    assert [t["id"] for t in own["trips"]] == [mine["id"]]

def test_pagination(client, app):
    store = app.state.trip_store
    for i in range(3):
        store.put(trip_record(id=f"t{i}", created_at=minutes_after_base(i)))

    first = client.get("/api/v1/trips", params={"limit": "2"}).json()
    assert [t["id"] for t in first["trips"]] == ["t2", "t1"]
    assert first["nextCursor"] == "t1"

    second = client.get("/api/v1/trips", params={"limit": "2", "cursor": "t1"}).json()
    assert [t["id"] for t in second["trips"]] == ["t0"]
    assert second["nextCursor"] is None

def test_bad_limit_and_cursor(client):
    response = client.get("/api/v1/trips", params={"limit": "abc"})
    assert response.status_code == 400
    assert response.json() == {"message": "limit must be a positive number"}

    assert client.get("/api/v1/trips", params={"limit": "-1"}).status_code == 400
    assert client.get("/api/v1/trips", params={"limit": "500"}).status_code == 200

    response = client.get("/api/v1/trips", params={"cursor": "missing"})
    assert response.status_code == 400
    assert response.json() == {"message": "Invalid cursor provided"}

def test_update_trip(client):
    trip = create_trip(client)

    response = client.patch(f"/api/v1/trips/{trip['id']}", json={"price": 4, "totalSeats": 6}, headers=auth_header())

    assert response.status_code == 200
    body = response.json()
    assert body["price"] == 4
    assert body["totalSeats"] == 6
    assert body["availableSeats"] == 4

def test_update_requires_a_field(client):
    trip = create_trip(client)
    response = client.patch(f"/api/v1/trips/{trip['id']}", json={}, headers=auth_header())

    assert response.status_code == 400
    assert response.json()["errors"][0]["message"] == "At least one field must be provided to update"

def test_update_available_cannot_exceed_total(client):
    trip = create_trip(client)
    response = client.patch(
        f"/api/v1/trips/{trip['id']}", json={"totalSeats": 2, "availableSeats": 3}, headers=auth_header()
    )
    assert response.status_code == 400
    assert response.json()["errors"][0]["message"] == "availableSeats cannot exceed totalSeats"

def test_update_seat_example(client, app):
    app.state.trip_store.put(trip_record(total_seats=4, available_seats=2, booked_users=["p1", "p2"]))

    response = client.patch("/api/v1/trips/trip-1", json={"totalSeats": 3}, headers=auth_header())
    assert response.status_code == 200
    assert response.json()["availableSeats"] == 1

    response = client.patch("/api/v1/trips/trip-1", json={"totalSeats": 1}, headers=auth_header())
    assert response.status_code == 400
    assert "booked" in response.json()["message"]

def test_only_owner_can_modify(client):
    trip = create_trip(client)
    other = auth_header("driver-2", "Noor")

    response = client.patch(f"/api/v1/trips/{trip['id']}", json={"price": 1}, headers=other)
    assert response.status_code == 403
    assert response.json() == {"message": "You are not allowed to modify this trip"}

    response = client.delete(f"/api/v1/trips/{trip['id']}", headers=other)
    assert response.status_code == 403

def test_delete_trip(client):
    trip = create_trip(client)

    response = client.delete(f"/api/v1/trips/{trip['id']}", headers=auth_header())
    assert response.status_code == 204

    response = client.patch(f"/api/v1/trips/{trip['id']}", json={"price": 1}, headers=auth_header())
    assert response.status_code == 404
    assert response.json() == {"message": "Trip not found"}

# --- notifications ---

def test_register_token_and_send_test(client, push_client):
    headers = auth_header("passenger-1", "Omar")
    response = client.post("/api/v1/notifications/tokens", json={"token": "device-1"}, headers=headers)
    assert response.status_code == 201

    response = client.post("/api/v1/notifications/test", json={"token": "device-1"}, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"targetCount": 1, "successCount": 1, "failureCount": 0}
    assert push_client.calls[-1]["tokens"] == ["device-1"]
    assert push_client.calls[-1]["data"]["type"] == "test"

def test_send_test_requires_token_argument(client):
    response = client.post("/api/v1/notifications/test", json={}, headers=auth_header())
    assert response.status_code == 400

def test_send_test_reports_failures(client, push_client, app):
    push_client.failures["dead"] = UNREGISTERED
    headers = auth_header("passenger-1", "Omar")
    client.post("/api/v1/notifications/tokens", json={"token": "dead"}, headers=headers)

    response = client.post("/api/v1/notifications/test", json={"token": "dead"}, headers=headers)

    assert response.json() == {"targetCount": 1, "successCount": 0, "failureCount": 1}
    assert app.state.token_store.users["passenger-1"].tokens == []

# --- booking events ---

def test_booking_event_requires_secret(client):
    response = client.post("/api/v1/events/bookings/created", json={"after": {"driverId": "driver-1"}})
    assert response.status_code == 403

    response = client.post(
        "/api/v1/events/bookings/created",
        json={"after": {"driverId": "driver-1"}},
        headers={"X-Event-Secret": "wrong"},
    )
    assert response.status_code == 403

def test_booking_created_event_notifies_driver(client, push_client):
    client.post("/api/v1/notifications/tokens", json={"token": "driver-device"}, headers=auth_header())

    response = client.post(
        "/api/v1/events/bookings/created",
        json={"after": {"tripId": "trip-1", "driverId": "driver-1", "passengerId": "p1", "passengerName": "Omar"}},
        headers={"X-Event-Secret": EVENT_SECRET},
    )

    assert response.status_code == 202
    assert response.json() == {"event": "created", "dispatched": 1}
    assert push_client.calls[-1]["tokens"] == ["driver-device"]
    assert push_client.calls[-1]["data"]["type"] == "booking_created"

def test_booking_event_without_recipient_is_accepted(client, push_client):
    response = client.post(
        "/api/v1/events/bookings/updated",
        json={"before": {"status": "pending"}, "after": {"status": "confirmed"}},
        headers={"X-Event-Secret": EVENT_SECRET},
    )

    assert response.status_code == 202
    assert response.json() == {"event": "updated", "dispatched": 0}
    assert push_client.calls == []

def test_unknown_booking_event(client):
    response = client.post(
        "/api/v1/events/bookings/archived",
        json={},
        headers={"X-Event-Secret": EVENT_SECRET},
    )
    assert response.status_code == 400

def test_open_webhook_in_development(test_settings, push_client):
    open_settings = test_settings.model_copy(update={"EVENT_WEBHOOK_SECRET": None})
    with TestClient(create_app(open_settings, push_client=push_client)) as open_client:
        response = open_client.post("/api/v1/events/bookings/deleted", json={"before": {"status": "pending"}})

    assert response.status_code == 202
    assert response.json() == {"event": "deleted", "dispatched": 0}

def test_production_requires_webhook_secret(push_client):
    prod_settings = Settings(
        _env_file=None,
        ENVIRONMENT="production",
        DATABASE_URL=None,
        FIREBASE_PROJECT_ID=None,
        FIREBASE_CLIENT_EMAIL=None,
        FIREBASE_PRIVATE_KEY=None,
        EVENT_WEBHOOK_SECRET=None,
    )
    with pytest.raises(RuntimeError, match="EVENT_WEBHOOK_SECRET"):
        with TestClient(create_app(prod_settings, push_client=push_client)):
            pass

# --- cors ---

def test_wildcard_cors_without_credentials(client):
    response = client.get("/api/v1/health", headers={"Origin": "https://evil.example"})

    assert response.headers["access-control-allow-origin"] == "*"
    assert "access-control-allow-credentials" not in response.headers

def test_configured_origins_allow_credentials(test_settings, push_client):
    cors_settings = test_settings.model_copy(update={"BACKEND_CORS_ORIGINS": ["https://app.example"]})
    with TestClient(create_app(cors_settings, push_client=push_client)) as cors_client:
        allowed = cors_client.get("/api/v1/health", headers={"Origin": "https://app.example"})
        other = cors_client.get("/api/v1/health", headers={"Origin": "https://evil.example"})

    assert allowed.headers["access-control-allow-origin"] == "https://app.example"
    assert allowed.headers["access-control-allow-credentials"] == "true"
    assert "access-control-allow-origin" not in other.headers
