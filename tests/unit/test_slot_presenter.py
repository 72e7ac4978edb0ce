"""Tests for rendering ranked slots."""

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from app.services.slot_service import NO_SLOTS_MESSAGE, format_time_slots

UTC_ZONE = ZoneInfo("UTC")


class TestFormatTimeSlots:
    def test_empty_list_returns_fallback(self):
        assert format_time_slots([], limit=5) == NO_SLOTS_MESSAGE
        assert format_time_slots([], limit=1) == NO_SLOTS_MESSAGE
        assert "later date" in NO_SLOTS_MESSAGE
        assert "executive secretary" in NO_SLOTS_MESSAGE

    def test_line_format(self, slot_factory):
        slot = slot_factory(datetime(2026, 11, 2, 16, 0), name="Bishop Jones", position="Bishop")

        text = format_time_slots([slot], limit=5, tz=UTC_ZONE)

        assert text == "1. Monday, November 2 at 4:00 PM with Bishop Jones (Bishop)"

    def test_rendered_in_ward_timezone(self, slot_factory):
        # 16:00 UTC is 9:00 MST once daylight saving has ended
        slot = slot_factory(datetime(2026, 11, 2, 16, 0))

        text = format_time_slots([slot], tz=ZoneInfo("America/Denver"))

        assert text.startswith("1. Monday, November 2 at 9:00 AM with")

    def test_limit_and_order(self, slot_factory):
        start = datetime(2026, 11, 3, 15, 0)
        slots = [
            slot_factory(start + timedelta(hours=7 - i), name=f"Counselor {i}", position="Counselor")
            for i in range(8)
        ]

        lines = format_time_slots(slots, limit=5, tz=UTC_ZONE).splitlines()

        assert len(lines) == 5
        for i, line in enumerate(lines):
            assert line.startswith(f"{i + 1}. ")
            assert f"with Counselor {i} (Counselor)" in line

    def test_midnight_and_noon(self, slot_factory):
        slots = [
            slot_factory(datetime(2026, 11, 3, 0, 5)),
            slot_factory(datetime(2026, 11, 3, 12, 30)),
        ]

        lines = format_time_slots(slots, tz=UTC_ZONE).splitlines()

        assert "at 12:05 AM" in lines[0]
        assert "at 12:30 PM" in lines[1]
