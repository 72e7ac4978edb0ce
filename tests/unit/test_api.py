"""HTTP surface tests: status codes and payload shapes. Services are patched."""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_assistant, get_gateway
from app.core.db import get_session
from app.core.exceptions import NotFoundError, SlotConflictError, UpstreamCalendarError
from app.main import app
from app.services.chat_service import ChatReply
from app.services.slot_service import NO_SLOTS_MESSAGE, TimeSlot

SLOT_JSON = {
    "start": "2026-11-02T16:00:00Z",
    "end": "2026-11-02T16:30:00Z",
    "bishopric_member_id": 3,
    "bishopric_member_name": "Bishop Jones",
    "bishopric_position": "Bishop",
}
BOOKING = {
    "interview_type_id": 7,
    "member_name": "Sister Allen",
    "member_email": "allen@example.com",
    "slot": SLOT_JSON,
}


async def fake_session():
    yield MagicMock()


@pytest.fixture
def client():
    app.dependency_overrides[get_session] = fake_session
    app.dependency_overrides[get_gateway] = lambda: MagicMock()
    app.dependency_overrides[get_assistant] = lambda: None
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


class TestBooking:
    def test_created(self, client):
        with patch("app.api.routes.appointments.create_appointment", new_callable=AsyncMock, return_value=42) as create:
            resp = client.post("/api/v1/wards/1/appointments", json=BOOKING)

        assert resp.status_code == 201
        assert resp.json() == {"appointment_id": 42}
        slot = create.await_args.args[-1]
        assert slot == TimeSlot(
            start=datetime(2026, 11, 2, 16, 0),
            end=datetime(2026, 11, 2, 16, 30),
            bishopric_member_id=3,
            bishopric_member_name="Bishop Jones",
            bishopric_position="Bishop",
        )

    def test_conflict(self, client):
        with patch(
            "app.api.routes.appointments.create_appointment",
            new_callable=AsyncMock,
            side_effect=SlotConflictError("taken"),
        ):
            resp = client.post("/api/v1/wards/1/appointments", json=BOOKING)

        assert resp.status_code == 409
        assert resp.json()["error"] == "SlotConflictError"

    def test_member_of_another_ward(self, client):
        with patch(
            "app.api.routes.appointments.create_appointment",
            new_callable=AsyncMock,
            side_effect=NotFoundError("Bishopric member 3 does not hold interview type 7 in ward 1"),
        ):
            resp = client.post("/api/v1/wards/1/appointments", json=BOOKING)

        assert resp.status_code == 404

    def test_invalid_email_rejected(self, client):
        resp = client.post("/api/v1/wards/1/appointments", json={**BOOKING, "member_email": "nope"})

        assert resp.status_code == 422

    def test_listing_requires_auth(self, client):
        assert client.get("/api/v1/wards/1/appointments").status_code == 401


class TestSlots:
    def test_no_slots(self, client):
        with patch(
            "app.api.routes.slots.resolve_available_slots", new_callable=AsyncMock, return_value=[]
        ), patch("app.api.routes.slots.get_scheduled_appointments", new_callable=AsyncMock, return_value=[]):
            resp = client.get("/api/v1/wards/1/slots", params={"interview_type_id": 7})

        assert resp.status_code == 200
        assert resp.json() == {"interview_type_id": 7, "slots": [], "text": NO_SLOTS_MESSAGE}

    def test_unknown_type(self, client):
        with patch(
            "app.api.routes.slots.resolve_available_slots",
            new_callable=AsyncMock,
            side_effect=NotFoundError("Interview type 7 not found"),
        ):
            resp = client.get("/api/v1/wards/1/slots", params={"interview_type_id": 7})

        assert resp.status_code == 404

    def test_upstream_failure(self, client):
        with patch(
            "app.api.routes.slots.resolve_available_slots",
            new_callable=AsyncMock,
            side_effect=UpstreamCalendarError("down"),
        ):
            resp = client.get("/api/v1/wards/1/slots", params={"interview_type_id": 7})

        assert resp.status_code == 502

    def test_days_ahead_must_be_positive(self, client):
        resp = client.get("/api/v1/wards/1/slots", params={"interview_type_id": 7, "days_ahead": 0})

        assert resp.status_code == 422


class TestChat:
    def test_turn_round_trips_offered_slots(self, client):
        reply = ChatReply(message="Booked!", appointment_id=42)
        with patch("app.api.routes.chat.handle_chat", new_callable=AsyncMock, return_value=reply) as handle:
            resp = client.post(
                "/api/v1/wards/1/chat",
                json={
                    "messages": [{"role": "user", "content": "The first one please"}],
                    "offered_slots": [SLOT_JSON],
                    "interview_type_id": 7,
                },
            )

        assert resp.status_code == 200
        assert resp.json() == {
            "message": "Booked!",
            "slots": None,
            "interview_type_id": None,
            "appointment_id": 42,
        }
        kwargs = handle.await_args.kwargs
        assert kwargs["interview_type_id"] == 7
        assert kwargs["offered_slots"][0].bishopric_member_id == 3

    def test_empty_transcript_rejected(self, client):
        assert client.post("/api/v1/wards/1/chat", json={"messages": []}).status_code == 422
