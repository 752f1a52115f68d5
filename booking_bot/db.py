"""Database layer: asyncpg pool + booking journal.

The bot starts even if the database is unreachable.
Journal writes gracefully handle pool=None.
Background retry + periodic health check keep the connection alive.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

import asyncpg

from booking_bot.config import settings

logger = logging.getLogger(__name__)

pool: asyncpg.Pool | None = None

_MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "migrations"

# How long to wait for pool creation before giving up (seconds)
_POOL_CREATE_TIMEOUT = 20


async def _create_pool() -> asyncpg.Pool:
    return await asyncio.wait_for(
        asyncpg.create_pool(
            settings.DATABASE_URL,
            min_size=1,
            max_size=10,
            command_timeout=15,
        ),
        timeout=_POOL_CREATE_TIMEOUT,
    )


async def init_db() -> None:
    """Connect to Postgres and run migrations.

    If the connection fails the bot still starts and a background task
    will retry every 15 seconds.
    """
    global pool
    if not settings.DATABASE_URL:
        logger.warning("DATABASE_URL is empty — running without booking journal")
        return

    try:
        pool = await _create_pool()
        await _run_migrations()
        logger.info("Database connected")
    except Exception as exc:
        logger.error("Database connection failed: %s — will retry in background", exc)
        pool = None
        asyncio.create_task(_retry_connect())


async def _retry_connect() -> None:
    global pool
    for attempt in range(1, 40):
        await asyncio.sleep(15)
        try:
            pool = await _create_pool()
            await _run_migrations()
            logger.info("Database connected on retry #%d", attempt)
            return
        except Exception as exc:
            logger.warning("DB retry #%d failed: %s", attempt, exc)
    logger.error("Gave up reconnecting to database after 40 attempts")


async def _run_migrations() -> None:
    if not pool:
        return
    migration_files = sorted(_MIGRATIONS_DIR.glob("*.sql"))
    async with pool.acquire() as conn:
        for mf in migration_files:
            await conn.execute(mf.read_text(encoding="utf-8"))
    logger.info("Migrations applied: %d file(s)", len(migration_files))


async def close_db() -> None:
    global pool
    if pool:
        await pool.close()
        pool = None


def _check_pool() -> asyncpg.Pool:
    if pool is None:
        raise RuntimeError("Database is not available")
    return pool


# ═══════════════════════════════════════════════════════════════
# Booking journal
# ═══════════════════════════════════════════════════════════════

def journal_row(payload: dict[str, Any]) -> dict[str, Any]:
    """Flatten the booking payload into the journal columns."""
    origin = payload.get("originData") or {}
    destination = payload.get("destinationData") or {}
    shipment = payload.get("shipmentData") or {}
    invoice = payload.get("invoiceData") or {}
    return {
        "origin_pincode": origin.get("pincode", ""),
        "destination_pincode": destination.get("pincode", ""),
        "destination_name": destination.get("name", ""),
        "destination_phone": destination.get("mobileNumber", ""),
        "nature": shipment.get("natureOfConsignment", ""),
        "service": shipment.get("services", ""),
        "mode": shipment.get("mode", ""),
        "chargeable_weight": float(invoice.get("chargeableWeight", 0) or 0),
        "final_price": float(invoice.get("finalPrice", 0) or 0),
        "payment_type": (payload.get("paymentData") or {}).get("paymentType", ""),
    }


async def save_booking(
    telegram_id: int,
    username: str,
    consignment_number: str,
    booking_reference: str,
    payload: dict[str, Any],
) -> int:
    p = _check_pool()
    row_data = journal_row(payload)
    async with p.acquire(timeout=10) as conn:
        row = await conn.fetchrow(
            """
            INSERT INTO bookings
                (telegram_id, username,
                 consignment_number, booking_reference,
                 origin_pincode, destination_pincode,
                 destination_name, destination_phone,
                 nature, service, mode,
                 chargeable_weight, final_price, payment_type,
                 payload)
            VALUES ($1,$2,$3,$4,$5,$6,$7,$8,$9,$10,$11,$12,$13,$14,$15::jsonb)
            ON CONFLICT (consignment_number) DO NOTHING
            RETURNING id
            """,
            telegram_id,
            username,
            consignment_number,
            booking_reference,
            row_data["origin_pincode"],
            row_data["destination_pincode"],
            row_data["destination_name"],
            row_data["destination_phone"],
            row_data["nature"],
            row_data["service"],
            row_data["mode"],
            row_data["chargeable_weight"],
            row_data["final_price"],
            row_data["payment_type"],
            json.dumps(payload, default=str),
        )
        return row["id"] if row else 0


async def get_booking(booking_id: int) -> dict[str, Any] | None:
    p = _check_pool()
    async with p.acquire(timeout=10) as conn:
        row = await conn.fetchrow("SELECT * FROM bookings WHERE id = $1", booking_id)
        return dict(row) if row else None


async def get_user_bookings(telegram_id: int, limit: int = 5) -> list[dict[str, Any]]:
    p = _check_pool()
    async with p.acquire(timeout=10) as conn:
        rows = await conn.fetch(
            "SELECT * FROM bookings WHERE telegram_id = $1 ORDER BY created_at DESC LIMIT $2",
            telegram_id, limit,
        )
        return [dict(r) for r in rows]


# ═══════════════════════════════════════════════════════════════
# Health
# ═══════════════════════════════════════════════════════════════

async def ping() -> bool:
    """True when the pool answers ``SELECT 1``."""
    if pool is None:
        return False
    try:
        async with pool.acquire(timeout=5) as conn:
            await conn.fetchval("SELECT 1")
    except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError) as exc:
        logger.error("Journal health check failed: %s", exc)
        return False
    return True


async def reconnect() -> None:
    """Drop a dead pool and connect again through init_db's retry path."""
    global pool
    dead, pool = pool, None
    if dead is not None:
        try:
            await dead.close()
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
            logger.debug("Pool close failed: %s", exc)
    await init_db()
