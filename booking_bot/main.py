"""Corporate booking bot entry point.

Background work next to polling:
1. Polling restarts after a crash, with growing backoff.
2. The booking journal is pinged every minute and reconnected when dead.
3. Idle booking sessions are swept even when nobody writes to the bot.
4. ``/health`` reports journal and session state to the hosting platform.
"""

from __future__ import annotations

import asyncio
import logging
import sys

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.fsm.storage.memory import MemoryStorage
from aiogram.types import BotCommand
from aiohttp import web

from booking_bot import db
from booking_bot.config import settings
from booking_bot.handlers import booking, common
from booking_bot.handlers.common import fallback_router
from booking_bot.middleware import SWEEP_INTERVAL_SECONDS, BookingSessionMiddleware, build_api

logger = logging.getLogger("booking_bot")

POLL_MAX_RETRIES = 100
POLL_BACKOFF_CAP = 60
JOURNAL_CHECK_SECONDS = 60

COMMANDS = [
    BotCommand(command="start", description="📦 New booking"),
    BotCommand(command="mybookings", description="📋 Recent bookings"),
    BotCommand(command="help", description="ℹ️ Help"),
]


def _setup_logging() -> None:
    fmt = logging.Formatter(
        "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(fmt)
    logging.root.handlers = [handler]
    logging.root.setLevel(settings.LOG_LEVEL)
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)


# ═══════════════════════════════════════════════════════════════
# Health endpoint
# ═══════════════════════════════════════════════════════════════

async def _start_health_server(sessions: BookingSessionMiddleware) -> web.AppRunner:
    async def _health(_r: web.Request) -> web.Response:
        return web.json_response({
            "status": "ok",
            "journal": db.pool is not None,
            "sessions": sessions.active,
        })

    app = web.Application()
    app.router.add_get("/", _health)
    app.router.add_get("/health", _health)
    runner = web.AppRunner(app)
    await runner.setup()
    await web.TCPSite(runner, "0.0.0.0", settings.HEALTH_PORT).start()
    logger.info("Health server on :%d", settings.HEALTH_PORT)
    return runner


# ═══════════════════════════════════════════════════════════════
# Background loops
# ═══════════════════════════════════════════════════════════════

async def _journal_watchdog() -> None:
    while True:
        await asyncio.sleep(JOURNAL_CHECK_SECONDS)
        # No pool: either disabled or init_db is already retrying
        if db.pool is None:
            continue
        if not await db.ping():
            logger.warning("Booking journal unreachable, reconnecting")
            await db.reconnect()


async def _session_sweeper(sessions: BookingSessionMiddleware) -> None:
    while True:
        await asyncio.sleep(SWEEP_INTERVAL_SECONDS)
        sessions.sweep()


async def _poll(bot: Bot, dp: Dispatcher) -> None:
    for attempt in range(1, POLL_MAX_RETRIES + 1):
        try:
            await bot.delete_webhook(drop_pending_updates=False)
            logger.info("Polling started (attempt #%d)", attempt)
            await dp.start_polling(bot, polling_timeout=30, handle_signals=False)
            logger.info("Polling stopped cleanly")
            return
        except Exception as exc:
            logger.error("Polling crashed (attempt #%d/%d): %s", attempt, POLL_MAX_RETRIES, exc, exc_info=True)
            if attempt == POLL_MAX_RETRIES:
                break
            wait = min(attempt * 5, POLL_BACKOFF_CAP)
            logger.info("Restarting polling in %ds…", wait)
            await asyncio.sleep(wait)
    logger.critical("Giving up after %d polling attempts", POLL_MAX_RETRIES)


# ═══════════════════════════════════════════════════════════════
# MAIN
# ═══════════════════════════════════════════════════════════════

async def main() -> None:
    _setup_logging()
    logger.info("Starting corporate booking bot → %s", settings.BOOKING_API_URL)

    # The journal is optional; init_db keeps retrying on its own
    await db.init_db()

    bot = Bot(
        token=settings.BOT_TOKEN,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )
    await bot.set_my_commands(COMMANDS)

    api = build_api()
    sessions = BookingSessionMiddleware(api)

    dp = Dispatcher(storage=MemoryStorage())
    # Outer middleware: router filters read the session too
    dp.message.outer_middleware(sessions)
    dp.callback_query.outer_middleware(sessions)

    # common first, then booking, fallback last
    dp.include_router(common.router)
    dp.include_router(booking.router)
    dp.include_router(fallback_router)

    runner = await _start_health_server(sessions)
    background = [
        asyncio.create_task(_journal_watchdog()),
        asyncio.create_task(_session_sweeper(sessions)),
    ]

    try:
        await _poll(bot, dp)
    finally:
        for task in background:
            task.cancel()
        await asyncio.gather(*background, return_exceptions=True)
        sessions.close_all()
        await api.close()
        await runner.cleanup()
        await db.close_db()
        await bot.session.close()
        logger.info("Bot stopped")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
