"""FSM states for the booking conversation."""

from aiogram.fsm.state import State, StatesGroup


class BookingForm(StatesGroup):
    # ── Typed input ────────────────────────────────────────────────────
    field = State()       # free-text field; key kept in state data

    # ── Destination lookup ─────────────────────────────────────────────
    phone = State()       # 10-digit recipient phone

    # ── Attachments ────────────────────────────────────────────────────
    upload = State()      # photo / document; slot kept in state data
