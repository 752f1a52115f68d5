"""Booking-session middleware.

Every update from a user gets that user's ``BookingSession`` injected as
``session`` and the shared ``BookingApi`` as ``api``. Sessions idle for
longer than ``SESSION_TTL_SECONDS`` are closed, which releases their
file previews and cancels any running countdown.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict

from aiogram import BaseMiddleware
from aiogram.types import TelegramObject, User

from booking_bot.api import BookingApi
from booking_bot.config import settings
from booking_bot.previews import PreviewRegistry
from booking_bot.workflow import StepWorkflow

logger = logging.getLogger(__name__)

SESSION_TTL_SECONDS = 3600
SWEEP_INTERVAL_SECONDS = 300


@dataclass
class BookingSession:
    user_id: int
    workflow: StepWorkflow = field(default_factory=StepWorkflow)
    card_id: int | None = None
    loaded: bool = False
    last_seen: float = field(default_factory=time.monotonic)

    async def load(self, api: BookingApi) -> None:
        """Fetch profile, pricing and consignment availability for a fresh draft."""
        profile = await api.get_profile()
        table = await api.get_rate_table()
        gate = await api.get_consignment_availability()
        self.workflow.gate = gate
        self.workflow.reset(default_origin=profile)
        self.workflow.load_rate_table(table)
        self.loaded = True
        logger.info(
            "Session %d loaded: profile=%s pricing=%s available=%d",
            self.user_id, profile is not None, table is not None, gate.available_count,
        )

    def close(self) -> None:
        self.workflow.close()


class BookingSessionMiddleware(BaseMiddleware):
    def __init__(self, api: BookingApi) -> None:
        super().__init__()
        self.api = api
        self._sessions: Dict[int, BookingSession] = {}
        self._last_cleanup: float = 0.0

    def session_for(self, user_id: int) -> BookingSession:
        session = self._sessions.get(user_id)
        if session is None:
            session = BookingSession(
                user_id=user_id,
                workflow=StepWorkflow(previews=PreviewRegistry()),
            )
            self._sessions[user_id] = session
        session.last_seen = time.monotonic()
        return session

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        data["api"] = self.api
        user: User | None = data.get("event_from_user")
        if user is None:
            return await handler(event, data)

        now = time.monotonic()
        # Every 5 minutes close idle sessions
        if now - self._last_cleanup > SWEEP_INTERVAL_SECONDS:
            self.sweep(now)

        data["session"] = self.session_for(user.id)
        return await handler(event, data)

    def sweep(self, now: float | None = None) -> int:
        """Close sessions idle for longer than the TTL; returns how many."""
        now = time.monotonic() if now is None else now
        self._last_cleanup = now
        stale = [
            uid for uid, s in self._sessions.items()
            if now - s.last_seen > SESSION_TTL_SECONDS
        ]
        for uid in stale:
            self._sessions.pop(uid).close()
        if stale:
            logger.info("Closed %d idle booking session(s)", len(stale))
        return len(stale)

    @property
    def active(self) -> int:
        return len(self._sessions)

    def close_all(self) -> None:
        for s in self._sessions.values():
            s.close()
        self._sessions.clear()


def build_api() -> BookingApi:
    return BookingApi(
        settings.BOOKING_API_URL,
        token=settings.BOOKING_API_TOKEN,
        timeout=settings.API_TIMEOUT_SECONDS,
    )
