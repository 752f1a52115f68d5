from __future__ import annotations

import asyncio
from types import SimpleNamespace

from booking_bot.draft import Step
from booking_bot.gate import ConsignmentGate
from booking_bot.middleware import SESSION_TTL_SECONDS, BookingSession, BookingSessionMiddleware


class FakeApi:
    def __init__(self, profile, table, gate):
        self.profile, self.table, self.gate = profile, table, gate

    async def get_profile(self):
        return self.profile

    async def get_rate_table(self):
        return self.table

    async def get_consignment_availability(self):
        return self.gate


class TestBookingSession:
    def test_load_prepares_fresh_draft(self, corporate_party, rate_table):
        api = FakeApi(corporate_party, rate_table, ConsignmentGate(has_assignment=True, available_count=2))
        session = BookingSession(user_id=1)
        session.workflow.draft.step = Step.PACKAGE_DETAILS
        asyncio.run(session.load(api))
        wf = session.workflow
        assert session.loaded
        assert wf.step is Step.ORIGIN
        assert wf.draft.use_default_origin
        assert wf.rate_table is rate_table
        assert wf.gate.available_count == 2

    def test_load_without_profile(self, rate_table):
        api = FakeApi(None, None, ConsignmentGate.unavailable("down"))
        session = BookingSession(user_id=1)
        asyncio.run(session.load(api))
        assert session.workflow.draft.use_default_origin is False
        assert session.workflow.read_only


class TestMiddleware:
    def test_injects_session_and_api(self):
        mw = BookingSessionMiddleware(api="api")
        seen = {}

        async def handler(event, data):
            seen.update(data)
            return "ok"

        data = {"event_from_user": SimpleNamespace(id=42)}
        assert asyncio.run(mw(handler, object(), data)) == "ok"
        assert seen["api"] == "api"
        assert seen["session"] is mw.session_for(42)

    def test_no_user_no_session(self):
        mw = BookingSessionMiddleware(api="api")

        async def handler(event, data):
            return data

        data = asyncio.run(mw(handler, object(), {}))
        assert "session" not in data

    def test_idle_sessions_closed(self):
        mw = BookingSessionMiddleware(api="api")
        session = mw.session_for(7)
        session.last_seen -= SESSION_TTL_SECONDS + 1
        assert mw.sweep(session.last_seen + SESSION_TTL_SECONDS + 1) == 1
        assert mw.session_for(7) is not session
