"""
Corporate booking conversation with edit-in-place UX.

/start → origin → [recipient phone lookup] → destination → shipment →
package → service & payment → preview → submit

• Progress card: one message is edited at each step (no chat clutter).
• Inline keyboards for choices; typed input only for free-text fields.
• All booking rules live in StepWorkflow; handlers only translate
  Telegram updates into workflow calls and render the result.
"""

from __future__ import annotations

import logging

from aiogram import Bot, F, Router, html
from aiogram.exceptions import TelegramAPIError
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, InlineKeyboardMarkup, Message, User

from booking_bot import db
from booking_bot.api import (
    DECLARATION_ENDPOINT,
    INSURANCE_ENDPOINT,
    PACKAGE_IMAGES_ENDPOINT,
    BookingApi,
)
from booking_bot.config import settings
from booking_bot.draft import (
    PACKAGE_TYPES,
    WITH_INSURANCE,
    WITHOUT_INSURANCE,
    Attachment,
    Party,
    Step,
)
from booking_bot.errors import (
    BookingError,
    CapacityExhausted,
    LookupFailure,
    SubmissionInProgress,
    UploadFailure,
    ValidationError,
)
from booking_bot.keyboards import (
    INSURANCE_LABELS,
    MODE_LABELS,
    NATURE_LABELS,
    PARTY_LABELS,
    PAYMENT_LABELS,
    SERVICE_LABELS,
    STEP_TITLES,
    admin_booking_kb,
    after_submit_kb,
    areas_kb,
    cancel_input_kb,
    field_label,
    lookup_kb,
    origin_kb,
    package_details_kb,
    package_types_kb,
    party_kb,
    preview_kb,
    service_payment_kb,
    shipment_nature_kb,
)
from booking_bot.middleware import BookingSession
from booking_bot.previews import check_upload
from booking_bot.states import BookingForm
from booking_bot.submitter import BookingSubmitter
from booking_bot.workflow import Phase, StepWorkflow, Transition

logger = logging.getLogger(__name__)
router = Router()


async def _session_loaded(_event: CallbackQuery, session: BookingSession) -> bool:
    """Buttons from before a restart fall through to the fallback router."""
    return session.loaded


router.callback_query.filter(_session_loaded)

TOTAL_STEPS = len(Step)

# upload slot → (multipart field, endpoint)
UPLOAD_SLOTS: dict[str, tuple[str, str]] = {
    "images": ("packageImages", PACKAGE_IMAGES_ENDPOINT),
    "declaration": ("declarationDocument", DECLARATION_ENDPOINT),
    "insurance": ("insuranceDocument", INSURANCE_ENDPOINT),
}


# ── Helper: build a progress card ────────────────────────────────────

def _bar(step: int) -> str:
    step = max(1, min(TOTAL_STEPS, step))
    filled = "▰" * step
    empty = "▱" * (TOTAL_STEPS - step)
    return f"Step {step}/{TOTAL_STEPS} · {STEP_TITLES[Step(step)]}  {filled}{empty}"


def _party_line(party: Party) -> str:
    parts = [party.name, party.building, party.street, party.area, party.city, party.postal_code]
    return html.quote(", ".join(p for p in parts if p))


def _party_block(party: Party) -> list[str]:
    labels = dict(PARTY_LABELS)
    lines = [f"  {labels[attr]}: {html.quote(getattr(party, attr))}"
             for attr in ("name", "mobile_number", "email", "postal_code", "street", "building", "tax_id")
             if getattr(party, attr)]
    if party.city or party.state:
        lines.append(f"  🏙 {html.quote(', '.join(p for p in (party.area, party.city, party.state) if p))}")
    return lines


def _quote_lines(wf: StepWorkflow) -> list[str]:
    s = wf.draft.shipment
    lines: list[str] = []
    weights = wf.weights
    if weights.chargeable:
        lines.append(
            f"  ⚖️ Actual {weights.actual:.2f} · Volumetric {weights.volumetric:.2f}"
            f" · <b>Chargeable {weights.chargeable:.2f}</b>"
        )
    q = wf.draft.quote
    if q is not None:
        extra = " (minimum weight applied)" if q.minimum_weight_applied else ""
        lines.append(
            f"  💰 {q.base_price:.2f} + GST {q.tax:.2f} = <b>₹{q.final_price:.2f}</b>"
            f"  <i>{q.zone}{extra}</i>"
        )
    elif wf.step >= Step.PACKAGE_DETAILS and wf.rate_table is None:
        lines.append("  💰 <i>No pricing assigned to this account</i>")
    elif s.nature and weights.chargeable:
        lines.append("  💰 <i>Price shown once service is chosen</i>")
    return lines


def _error_lines(errors: dict[str, str]) -> list[str]:
    if not errors:
        return []
    return ["", "⚠️ <b>Please fix:</b>"] + [f"  • {html.quote(msg)}" for msg in errors.values()]


def _card(wf: StepWorkflow, question: str = "") -> str:
    """Accumulating summary of the draft plus the current question."""
    d = wf.draft
    s = d.shipment
    lines: list[str] = [f"<b>📦 Corporate booking</b>\n{_bar(wf.step)}\n"]

    if wf.gate is not None and not wf.gate.disabled:
        lines.append(f"  🎫 Consignments left: {wf.gate.available_count}")

    if wf.step > Step.ORIGIN or d.use_default_origin:
        lines.append(f"  ✅ From: {_party_line(d.origin)}")
    if wf.step > Step.DESTINATION:
        lines.append(f"  ✅ To: {_party_line(d.destination)}")
    if s.nature:
        lines.append(f"  ✅ {NATURE_LABELS[s.nature]}")
    if s.insurance:
        lines.append(f"  ✅ {INSURANCE_LABELS[s.insurance]} · risk: {s.risk_coverage}")
    if wf.step > Step.PACKAGE_DETAILS and s.packages_count:
        pkg = s.others if s.package_type == "Others" else s.package_type
        lines.append(f"  ✅ {html.quote(s.packages_count)} × {html.quote(pkg)}, value {html.quote(s.declared_value)}")
    if s.service:
        mode = f" · {MODE_LABELS[s.mode]}" if s.mode else ""
        lines.append(f"  ✅ {SERVICE_LABELS[s.service]}{mode}")
    if d.payment_type:
        lines.append(f"  ✅ {PAYMENT_LABELS[d.payment_type]}")
    lines.extend(_quote_lines(wf))
    lines.extend(_error_lines(wf.errors))

    if question:
        lines.append(f"\n{question}")
    return "\n".join(lines)


def _preview(wf: StepWorkflow) -> str:
    d = wf.draft
    s = d.shipment
    lines = [f"<b>📋 Review your booking</b>\n{_bar(Step.PREVIEW)}\n", "<b>Origin</b>"]
    lines += _party_block(d.origin)
    lines += ["", "<b>Destination</b>"] + _party_block(d.destination)
    lines += [
        "",
        "<b>Shipment</b>",
        f"  {NATURE_LABELS.get(s.nature, s.nature)} · {INSURANCE_LABELS.get(s.insurance, s.insurance)}",
        f"  Risk coverage: {s.risk_coverage}",
        f"  Packages: {html.quote(s.packages_count)} · {html.quote(s.others or s.package_type)}",
        f"  Declared value: {html.quote(s.declared_value)}",
        f"  Photos: {len(s.package_images)}"
        + (" · declaration attached" if s.declaration_document else ""),
        f"  {SERVICE_LABELS.get(s.service, s.service)}"
        + (f" · {MODE_LABELS[s.mode]}" if s.mode else "")
        + f" · {PAYMENT_LABELS.get(d.payment_type, d.payment_type)}",
    ]
    lines += _quote_lines(wf)
    lines += _error_lines(wf.errors)
    return "\n".join(lines)


def render(wf: StepWorkflow) -> tuple[str, InlineKeyboardMarkup | None]:
    """Text and keyboard for whatever the workflow is showing now."""
    if wf.read_only:
        return (
            "<b>📦 Corporate booking</b>\n\n"
            f"⛔ {html.quote(wf.gate.message or 'Bookings are disabled for this account.')}",  # type: ignore[union-attr]
            None,
        )

    if wf.phase is Phase.SUBMITTED:
        r = wf.receipt
        return (
            "<b>✅ Booking confirmed!</b>\n\n"
            f"  🔖 Consignment: <b>{html.quote(r.consignment_number)}</b>\n"
            f"  📄 Reference: {html.quote(r.booking_reference)}\n",
            after_submit_kb(),
        )

    if wf.phase is Phase.DESTINATION_LOOKUP and wf.lookup is not None:
        lk = wf.lookup
        if lk.records:
            q = f"📇 <b>Previous destinations for {lk.phone}:</b>"
        elif lk.remaining is not None:
            q = f"🔍 No previous destinations. Opening the form in {lk.remaining}…"
        elif lk.pending:
            q = "🔍 Searching…"
        else:
            q = "📱 <b>Send the recipient's 10-digit phone number</b>\nto reuse a previous destination."
        return _card(wf, q), lookup_kb(lk.records)

    d = wf.draft
    step = wf.step
    if step is Step.ORIGIN:
        q = ("🏢 <b>Ship from your corporate address?</b>" if d.use_default_origin
             else "📍 <b>Origin address</b> — tap a field to fill it:")
        return _card(wf, q), origin_kb(d, wf.default_origin is not None)
    if step is Step.DESTINATION:
        return _card(wf, "🎯 <b>Destination address</b> — tap a field to fill it:"), party_kb(
            d.destination, "destination", back=True,
        )
    if step is Step.SHIPMENT_NATURE:
        return _card(wf, "📦 <b>What are you sending, and is it insured?</b>"), shipment_nature_kb(d)
    if step is Step.PACKAGE_DETAILS:
        return _card(wf, "📐 <b>Package details</b>"), package_details_kb(d)
    if step is Step.SERVICE_PAYMENT:
        return _card(wf, "⚡ <b>Service and payment</b>"), service_payment_kb(d)
    return _preview(wf), preview_kb()


async def _safe_edit(
    cb: CallbackQuery,
    text: str,
    reply_markup=None,  # noqa: ANN001
) -> None:
    """If edit fails (old message / too old / already edited), send a new message."""
    try:
        await cb.message.edit_text(text, reply_markup=reply_markup)  # type: ignore[union-attr]
    except TelegramAPIError:
        await cb.message.answer(text, reply_markup=reply_markup)  # type: ignore[union-attr]


async def _refresh(cb: CallbackQuery, session: BookingSession) -> None:
    text, kb = render(session.workflow)
    await _safe_edit(cb, text, reply_markup=kb)
    session.card_id = cb.message.message_id  # type: ignore[union-attr]


async def _send_card(message: Message, session: BookingSession) -> None:
    text, kb = render(session.workflow)
    msg = await message.answer(text, reply_markup=kb)
    session.card_id = msg.message_id


async def _ensure_loaded(session: BookingSession, api: BookingApi) -> None:
    if not session.loaded:
        await session.load(api)


async def _apply(cb: CallbackQuery, session: BookingSession, action, *args) -> bool:  # noqa: ANN001
    """Run a workflow mutation, report a failure on the button, re-render."""
    try:
        action(*args)
    except ValidationError as exc:
        first = next(iter(exc.errors.values()), "Please check the highlighted fields")
        await cb.answer(f"⚠️ {first}")
        await _refresh(cb, session)
        return False
    except BookingError as exc:
        await cb.answer(str(exc), show_alert=True)
        return False
    await _refresh(cb, session)
    await cb.answer()
    return True


async def start_booking(message: Message, state: FSMContext, session: BookingSession, api: BookingApi) -> None:
    await state.clear()
    await session.load(api)
    await _send_card(message, session)


# ── 1. Navigation ────────────────────────────────────────────────────

@router.callback_query(F.data == "nav:next")
async def nav_next(cb: CallbackQuery, state: FSMContext, session: BookingSession, api: BookingApi) -> None:
    await _ensure_loaded(session, api)
    wf = session.workflow
    try:
        transition = wf.next()
    except ValidationError:
        await cb.answer("⚠️ Some fields need attention")
        await _refresh(cb, session)
        return
    except BookingError as exc:
        await cb.answer(str(exc), show_alert=True)
        return
    if transition is Transition.LOOKUP:
        await state.set_state(BookingForm.phone)
    else:
        await state.set_state(None)
    await _refresh(cb, session)
    await cb.answer()


@router.callback_query(F.data == "nav:back")
async def nav_back(cb: CallbackQuery, state: FSMContext, session: BookingSession) -> None:
    session.workflow.previous()
    await state.set_state(None)
    await _refresh(cb, session)
    await cb.answer()


@router.callback_query(F.data == "nav:stay")
async def nav_stay(cb: CallbackQuery, state: FSMContext, session: BookingSession) -> None:
    """Leave typed input / upload mode without changing anything."""
    await state.set_state(None)
    await _refresh(cb, session)
    await cb.answer()


# ── 2. Origin ────────────────────────────────────────────────────────

@router.callback_query(F.data == "origin:default")
async def origin_default(cb: CallbackQuery, session: BookingSession) -> None:
    await _apply(cb, session, session.workflow.use_default_origin)


@router.callback_query(F.data == "origin:custom")
async def origin_custom(cb: CallbackQuery, session: BookingSession) -> None:
    await _apply(cb, session, session.workflow.use_custom_origin)


# ── 3. Recipient phone lookup ────────────────────────────────────────

@router.message(BookingForm.phone)
async def type_lookup_phone(
    message: Message, state: FSMContext, bot: Bot, session: BookingSession, api: BookingApi,
) -> None:
    wf = session.workflow
    chat_id = message.chat.id

    async def _redraw() -> None:
        text, kb = render(wf)
        if session.card_id is None:
            return
        try:
            await bot.edit_message_text(text, chat_id=chat_id, message_id=session.card_id, reply_markup=kb)
        except TelegramAPIError as exc:
            logger.debug("Countdown redraw skipped: %s", exc)

    async def on_tick(_remaining: int) -> None:
        await _redraw()

    async def on_expire() -> None:
        await state.set_state(None)
        await _redraw()

    try:
        await wf.lookup_destinations(
            message.text or "",
            api.lookup_previous_destinations,
            seconds=settings.REDIRECT_COUNTDOWN_SECONDS,
            on_tick=on_tick,
            on_expire=on_expire,
        )
    except ValidationError as exc:
        await message.answer(f"⚠️ {exc.errors.get('lookup.phone', 'Invalid phone number')}")
        return
    except LookupFailure as exc:
        await message.answer(f"⚠️ {html.quote(str(exc))}")
    except BookingError as exc:
        await message.answer(html.quote(str(exc)))
        return
    await _send_card(message, session)


@router.callback_query(F.data.startswith("dest:"))
async def pick_destination(cb: CallbackQuery, state: FSMContext, session: BookingSession) -> None:
    value = cb.data.split(":")[1]  # type: ignore[union-attr]
    wf = session.workflow
    if value == "skip":
        ok = await _apply(cb, session, wf.dismiss_lookup)
    else:
        ok = await _apply(cb, session, wf.select_previous_destination, int(value))
    if ok:
        await state.set_state(None)


# ── 4. Free-text fields ──────────────────────────────────────────────

@router.callback_query(F.data.startswith("edit:"))
async def ask_field(cb: CallbackQuery, state: FSMContext, session: BookingSession) -> None:
    key = cb.data.split(":", 1)[1]  # type: ignore[union-attr]
    wf = session.workflow
    if wf.read_only or wf.phase is Phase.SUBMITTED:
        await cb.answer("Start a new booking to make changes.", show_alert=True)
        return
    wf.cancel_countdown()
    await state.set_state(BookingForm.field)
    await state.update_data(field_key=key)
    await _safe_edit(cb, _card(wf, f"✏️ <b>Send {field_label(key)}:</b>"), reply_markup=cancel_input_kb())
    await cb.answer()


@router.message(BookingForm.field)
async def type_field(message: Message, state: FSMContext, session: BookingSession, api: BookingApi) -> None:
    data = await state.get_data()
    key = data.get("field_key", "")
    wf = session.workflow
    try:
        wf.set_field(key, message.text or "")
    except ValidationError as exc:
        await message.answer(f"⚠️ {html.quote(next(iter(exc.errors.values())))}")
        return
    except BookingError as exc:
        await message.answer(html.quote(str(exc)))
        await state.set_state(None)
        return

    if key.endswith(".postal_code"):
        role = key.partition(".")[0]
        try:
            await wf.resolve_postal_code(role, api.resolve_postal_code)
        except LookupFailure as exc:
            await message.answer(f"ℹ️ {html.quote(str(exc))}")

    await state.set_state(None)
    await _send_card(message, session)


@router.callback_query(F.data.startswith("areas:"))
async def ask_area(cb: CallbackQuery, session: BookingSession) -> None:
    role = cb.data.split(":")[1]  # type: ignore[union-attr]
    party: Party = getattr(session.workflow.draft, role)
    await _safe_edit(cb, _card(session.workflow, "🗺 <b>Choose the area:</b>"), reply_markup=areas_kb(role, party.areas))
    await cb.answer()


@router.callback_query(F.data.startswith("area:"))
async def pick_area(cb: CallbackQuery, session: BookingSession) -> None:
    _, role, index = cb.data.split(":")  # type: ignore[union-attr]
    party: Party = getattr(session.workflow.draft, role)
    i = int(index)
    if not 0 <= i < len(party.areas):
        await cb.answer()
        return
    await _apply(cb, session, session.workflow.set_field, f"{role}.area", party.areas[i])


# ── 5. Choices ───────────────────────────────────────────────────────

@router.callback_query(F.data.startswith("nature:"))
async def pick_nature(cb: CallbackQuery, session: BookingSession) -> None:
    await _apply(cb, session, session.workflow.set_nature, cb.data.split(":", 1)[1])  # type: ignore[union-attr]


@router.callback_query(F.data.startswith("ins:"))
async def pick_insurance(cb: CallbackQuery, session: BookingSession) -> None:
    value = cb.data.split(":")[1]  # type: ignore[union-attr]
    choice = WITH_INSURANCE if value == "with" else WITHOUT_INSURANCE
    await _apply(cb, session, session.workflow.set_insurance, choice)


@router.callback_query(F.data.startswith("svc:"))
async def pick_service(cb: CallbackQuery, session: BookingSession) -> None:
    await _apply(cb, session, session.workflow.set_service, cb.data.split(":", 1)[1])  # type: ignore[union-attr]


@router.callback_query(F.data.startswith("mode:"))
async def pick_mode(cb: CallbackQuery, session: BookingSession) -> None:
    await _apply(cb, session, session.workflow.set_mode, cb.data.split(":", 1)[1])  # type: ignore[union-attr]


@router.callback_query(F.data.startswith("pay:"))
async def pick_payment(cb: CallbackQuery, session: BookingSession) -> None:
    await _apply(cb, session, session.workflow.set_payment_type, cb.data.split(":", 1)[1])  # type: ignore[union-attr]


@router.callback_query(F.data == "pkgtypes")
async def ask_package_type(cb: CallbackQuery, session: BookingSession) -> None:
    await _safe_edit(cb, _card(session.workflow, "🗃 <b>Package type:</b>"), reply_markup=package_types_kb())
    await cb.answer()


@router.callback_query(F.data.startswith("pkg:"))
async def pick_package_type(cb: CallbackQuery, session: BookingSession) -> None:
    i = int(cb.data.split(":")[1])  # type: ignore[union-attr]
    if not 0 <= i < len(PACKAGE_TYPES):
        await cb.answer()
        return
    await _apply(cb, session, session.workflow.set_package_type, PACKAGE_TYPES[i])


@router.callback_query(F.data.startswith("unit:"))
async def pick_unit(cb: CallbackQuery, session: BookingSession) -> None:
    _, index, unit = cb.data.split(":")  # type: ignore[union-attr]
    await _apply(cb, session, session.workflow.set_field, f"dimension.{index}.unit", unit)


# ── 6. Attachments ───────────────────────────────────────────────────

@router.callback_query(F.data.startswith("up:"))
async def ask_upload(cb: CallbackQuery, state: FSMContext, session: BookingSession) -> None:
    slot = cb.data.split(":")[1]  # type: ignore[union-attr]
    if slot not in UPLOAD_SLOTS:
        await cb.answer()
        return
    prompts = {
        "images": "📷 <b>Send package photos</b> (one or more). Tap “Back to step” when done.",
        "declaration": "📎 <b>Send the declaration document</b> (PDF or image).",
        "insurance": "📎 <b>Send the insurance policy</b> (PDF or image).",
    }
    await state.set_state(BookingForm.upload)
    await state.update_data(upload_slot=slot)
    await _safe_edit(cb, _card(session.workflow, prompts[slot]), reply_markup=cancel_input_kb())
    await cb.answer()


@router.message(BookingForm.upload, F.photo | F.document)
async def receive_upload(
    message: Message, state: FSMContext, bot: Bot, session: BookingSession, api: BookingApi,
) -> None:
    slot = (await state.get_data()).get("upload_slot", "images")
    field, endpoint = UPLOAD_SLOTS[slot]
    wf = session.workflow

    if message.photo:
        tg_file = message.photo[-1]
        name = f"photo_{tg_file.file_unique_id}.jpg"
        mime = "image/jpeg"
    else:
        tg_file = message.document  # type: ignore[assignment]
        name = message.document.file_name or "document"  # type: ignore[union-attr]
        mime = message.document.mime_type or ""  # type: ignore[union-attr]

    try:
        check_upload(tg_file.file_size or 0, mime, settings.MAX_UPLOAD_BYTES)
    except UploadFailure as exc:
        await message.answer(f"⚠️ {html.quote(str(exc))}")
        return

    handle = wf.previews.acquire(name, mime)
    try:
        await bot.download(tg_file, destination=handle.path)
        url = await api.upload_file(handle.path, field, endpoint, filename=name, mime_type=mime)
    except (UploadFailure, TelegramAPIError) as exc:
        wf.previews.release(handle)
        logger.warning("Upload %s failed for user %s: %s", slot, message.from_user and message.from_user.id, exc)
        await message.answer(f"⚠️ {html.quote(str(exc))}")
        return

    attachment = Attachment(name=name, url=url, mime_type=mime, preview=handle)
    attach = {
        "images": wf.attach_package_image,
        "declaration": wf.attach_declaration_document,
        "insurance": wf.attach_insurance_document,
    }[slot]
    try:
        attach(attachment)
    except BookingError as exc:
        wf.previews.release(handle)
        await message.answer(html.quote(str(exc)))
        return

    if slot != "images":
        await state.set_state(None)
    await _send_card(message, session)


@router.message(BookingForm.upload)
async def upload_wrong_type(message: Message) -> None:
    await message.answer("⚠️ Please send a photo or a PDF / image file.")


@router.callback_query(F.data.startswith("rm:img:"))
async def remove_image(cb: CallbackQuery, session: BookingSession) -> None:
    i = int(cb.data.split(":")[2])  # type: ignore[union-attr]
    await _apply(cb, session, session.workflow.remove_package_image, i)


# ── 7. Submit ────────────────────────────────────────────────────────

async def _alert(cb: CallbackQuery, text: str) -> None:
    """Popup the user has to dismiss; a chat message if the query has expired."""
    try:
        await cb.answer(text[:200], show_alert=True)
    except TelegramAPIError as exc:
        logger.debug("Alert fell back to a message: %s", exc)
        await cb.message.answer(html.quote(text))  # type: ignore[union-attr]


async def _journal(user: User, receipt, payload: dict) -> int:  # noqa: ANN001
    if db.pool is None:
        return 0
    try:
        return await db.save_booking(
            user.id, user.username or "", receipt.consignment_number, receipt.booking_reference, payload,
        )
    except Exception as exc:
        logger.error("Journal write failed for %s: %s", receipt.consignment_number, exc)
        return 0


@router.callback_query(F.data == "submit")
async def submit(cb: CallbackQuery, bot: Bot, session: BookingSession, api: BookingApi) -> None:
    wf = session.workflow
    submitter = BookingSubmitter()
    # The callback stays unanswered until the outcome is known
    try:
        receipt = await submitter.submit(wf, wf.gate, api.submit_booking)
    except SubmissionInProgress:
        await cb.answer("⏳ Already submitting…")
        return
    except ValidationError:
        await cb.answer("⚠️ Some fields need attention")
        await _refresh(cb, session)
        return
    except CapacityExhausted as exc:
        await _alert(cb, f"⛔ {exc}")
        return
    except BookingError as exc:
        await _alert(cb, f"⚠️ {exc}")
        return

    await _refresh(cb, session)
    try:
        await cb.answer("✅ Booked")
    except TelegramAPIError as exc:
        logger.debug("Late answer for booking %s: %s", receipt.consignment_number, exc)

    booking_id = await _journal(cb.from_user, receipt, submitter.last_payload or {})
    q = wf.draft.quote
    dest = wf.draft.destination
    username_part = f" (@{cb.from_user.username})" if cb.from_user.username else ""
    price_part = f"💰 {q.final_price:.2f}" if q else "💰 —"
    admin_text = (
        f"🆕 <b>New booking {html.quote(receipt.consignment_number)}</b>\n\n"
        f"👤 {html.quote(cb.from_user.full_name)}{username_part}\n"
        f"🎯 {_party_line(dest)}\n"
        f"📦 {wf.draft.shipment.nature} · {wf.draft.shipment.service} {wf.draft.shipment.mode}\n"
        f"{price_part}"
    )
    for admin_id in settings.admin_ids:
        try:
            await bot.send_message(
                admin_id,
                admin_text,
                reply_markup=admin_booking_kb(booking_id) if booking_id else None,
            )
        except TelegramAPIError as exc:
            logger.error("Failed to notify admin %s: %s", admin_id, exc)


# ── Post-submission quick actions ────────────────────────────────────

@router.callback_query(F.data == "action:restart")
async def action_restart(cb: CallbackQuery, state: FSMContext, session: BookingSession, api: BookingApi) -> None:
    await state.clear()
    await session.load(api)
    await _refresh(cb, session)
    await cb.answer()


async def send_history(message: Message, user_id: int) -> None:
    if db.pool is None:
        await message.answer("📋 Booking history is not available right now.")
        return
    rows = await db.get_user_bookings(user_id)
    if not rows:
        await message.answer("📋 No bookings yet.")
        return
    lines = ["<b>📋 Your recent bookings</b>\n"]
    for r in rows:
        lines.append(
            f"  🔖 <b>{html.quote(r['consignment_number'])}</b> → "
            f"{html.quote(r['destination_name'])} {r['destination_pincode']} · ₹{float(r['final_price']):.2f}"
        )
    await message.answer("\n".join(lines))


@router.callback_query(F.data == "action:history")
async def action_history(cb: CallbackQuery) -> None:
    await send_history(cb.message, cb.from_user.id)  # type: ignore[arg-type]
    await cb.answer()
