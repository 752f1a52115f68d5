from __future__ import annotations

import asyncio
from types import SimpleNamespace

from aiogram.exceptions import TelegramBadRequest

from booking_bot import db
from booking_bot.handlers.booking import submit
from booking_bot.middleware import BookingSession
from booking_bot.workflow import Phase


class FakeMessage:
    message_id = 10

    def __init__(self):
        self.edits: list[str] = []
        self.sent: list[str] = []

    async def edit_text(self, text, reply_markup=None):
        self.edits.append(text)

    async def answer(self, text, reply_markup=None):
        self.sent.append(text)


class FakeCallback:
    """Records every answer; ``expired`` makes alerts fail like a stale query."""

    def __init__(self, expired: bool = False):
        self.message = FakeMessage()
        self.from_user = SimpleNamespace(id=1, username="", full_name="Test User")
        self.answers: list[tuple[str | None, bool]] = []
        self.expired = expired

    async def answer(self, text=None, show_alert=False):
        if self.expired:
            raise TelegramBadRequest(method=None, message="query is too old")
        self.answers.append((text, show_alert))


def _api(response):
    async def submit_booking(payload):
        submit_booking.calls += 1
        return response

    submit_booking.calls = 0
    return SimpleNamespace(submit_booking=submit_booking)


def _submit(cb, workflow, api, monkeypatch):
    monkeypatch.setattr(db, "pool", None)
    session = BookingSession(user_id=1, workflow=workflow, loaded=True)
    asyncio.run(submit(cb, None, session, api))
    return session


# =============================================================================
# Submit button
# =============================================================================


class TestSubmitButton:
    def test_capacity_shown_as_alert(self, preview_workflow, gate, monkeypatch):
        gate.available_count = 0
        cb = FakeCallback()
        api = _api({"success": True, "consignmentNumber": "CN1"})
        _submit(cb, preview_workflow, api, monkeypatch)

        assert api.submit_booking.calls == 0
        assert len(cb.answers) == 1
        text, alert = cb.answers[0]
        assert alert is True
        assert "consignment" in text
        assert cb.message.sent == []

    def test_server_rejection_shown_as_alert(self, preview_workflow, monkeypatch):
        cb = FakeCallback()
        _submit(cb, preview_workflow, _api({"success": False, "message": "Destination not serviceable"}), monkeypatch)
        assert cb.answers == [("⚠️ Destination not serviceable", True)]
        assert preview_workflow.phase is Phase.EDITING

    def test_expired_query_falls_back_to_message(self, preview_workflow, gate, monkeypatch):
        gate.available_count = 0
        cb = FakeCallback(expired=True)
        _submit(cb, preview_workflow, _api({}), monkeypatch)
        assert len(cb.message.sent) == 1
        assert cb.message.sent[0].startswith("⛔")

    def test_success_answers_after_booking(self, preview_workflow, gate, monkeypatch):
        cb = FakeCallback()
        session = _submit(cb, preview_workflow, _api({"success": True, "consignmentNumber": "CN1"}), monkeypatch)

        assert cb.answers == [("✅ Booked", False)]
        assert preview_workflow.phase is Phase.SUBMITTED
        assert gate.available_count == 4
        assert len(cb.message.edits) == 1
        assert session.card_id == FakeMessage.message_id
