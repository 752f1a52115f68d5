"""Common handlers: /start, /help, /mybookings, error handler, fallback.

The fallback_router also includes a CATCH-ALL for callback queries
so that when the in-memory session is lost (e.g. after a restart),
inline-button presses don't silently disappear.
"""

from __future__ import annotations

import logging

from aiogram import F, Router, html
from aiogram.filters import Command, CommandStart
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, ErrorEvent, Message

from booking_bot import db
from booking_bot.api import BookingApi
from booking_bot.config import settings
from booking_bot.handlers.booking import send_history, start_booking
from booking_bot.middleware import BookingSession

logger = logging.getLogger(__name__)
router = Router()
fallback_router = Router()


# ═══════════════════════════════════════════════════════════════
# /start
# ═══════════════════════════════════════════════════════════════

@router.message(CommandStart())
async def cmd_start(message: Message, state: FSMContext, session: BookingSession, api: BookingApi) -> None:
    try:
        await start_booking(message, state, session, api)
    except Exception as exc:
        logger.error("/start failed: %s", exc, exc_info=True)
        await message.answer(
            "The booking service is temporarily unavailable. Please try again in a minute.",
            parse_mode=None,
        )


@router.message(F.text.regexp(r"(?i)^(start|book|new booking|menu)$"))
async def text_start(message: Message, state: FSMContext, session: BookingSession, api: BookingApi) -> None:
    await cmd_start(message, state, session, api)


# ═══════════════════════════════════════════════════════════════
# /help, /mybookings
# ═══════════════════════════════════════════════════════════════

@router.message(Command("help"))
async def cmd_help(message: Message) -> None:
    await message.answer(
        "📦 <b>Corporate booking bot</b>\n\n"
        "▸ /start — New booking\n"
        "▸ /mybookings — Recent bookings\n"
        "▸ /help — Help\n\n"
        "Tap a field on the card to fill it in, then ➡️ Next.\n"
        "Send the recipient's phone after the origin step to reuse\n"
        "a previous destination.",
    )


@router.message(Command("mybookings"))
async def cmd_history(message: Message) -> None:
    if message.from_user:
        await send_history(message, message.from_user.id)


# ═══════════════════════════════════════════════════════════════
# Global error handler
# ═══════════════════════════════════════════════════════════════

@router.error()
async def global_error_handler(event: ErrorEvent) -> None:
    logger.error(
        "Unhandled error in update %s: %s",
        event.update.update_id if event.update else "?",
        event.exception,
        exc_info=event.exception,
    )


# ═══════════════════════════════════════════════════════════════
# Admin inline buttons on booking notifications
# ═══════════════════════════════════════════════════════════════

@router.callback_query(F.data.startswith("adm:contact:"))
async def adm_contact(cb: CallbackQuery) -> None:
    if cb.from_user.id not in settings.admin_ids:
        await cb.answer("⛔ Not allowed.", show_alert=True)
        return
    booking_id = int(cb.data.split(":")[2])  # type: ignore[union-attr]
    booking = await db.get_booking(booking_id) if db.pool is not None else None
    if booking:
        who = f"@{booking['username']}" if booking["username"] else f"id {booking['telegram_id']}"
        await cb.message.answer(  # type: ignore[union-attr]
            f"📞 Booked by {html.quote(who)}\n"
            f"🎯 Recipient: {html.quote(booking['destination_name'])}, <b>{booking['destination_phone']}</b>"
        )
    else:
        await cb.message.answer("Booking not found in the journal.")  # type: ignore[union-attr]
    await cb.answer()


# ═══════════════════════════════════════════════════════════════
# FALLBACK: catch-all for expired/lost sessions
# ═══════════════════════════════════════════════════════════════

@fallback_router.callback_query()
async def expired_callback(cb: CallbackQuery, state: FSMContext, session: BookingSession, api: BookingApi) -> None:
    """Handle any callback that wasn't caught by the booking router.

    This happens when the bot restarts and the in-memory sessions are
    wiped; we recover by starting a fresh booking.
    """
    logger.info(
        "Expired/unmatched callback from user %s: %s",
        cb.from_user.id, cb.data,
    )
    await cb.answer("⏳ Session expired — starting over", show_alert=False)
    try:
        await start_booking(cb.message, state, session, api)  # type: ignore[arg-type]
    except Exception as exc:
        logger.error("Recovery after expired callback failed: %s", exc)


@fallback_router.message()
async def fallback_message(message: Message) -> None:
    await message.answer(
        "🤔 I didn't catch that.\n\n"
        "Tap a button on the booking card, or send /start for a new booking.",
    )
