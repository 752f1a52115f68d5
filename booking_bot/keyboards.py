"""All keyboards and label mappings."""

from __future__ import annotations

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from booking_bot.draft import (
    MODES,
    NATURES,
    PACKAGE_TYPES,
    PAYMENT_TYPES,
    SERVICES,
    UNITS,
    WITH_INSURANCE,
    WITHOUT_INSURANCE,
    BookingDraft,
    Party,
    Step,
)

# ── Field labels (set_field key → prompt label) ─────────────────────

PARTY_LABELS: list[tuple[str, str]] = [
    ("name", "👤 Name"),
    ("company_name", "🏢 Company"),
    ("mobile_number", "📱 Mobile"),
    ("email", "✉️ Email"),
    ("postal_code", "📮 Pincode"),
    ("street", "🛣 Locality"),
    ("building", "🏠 Flat / Building"),
    ("landmark", "📍 Landmark"),
    ("tax_id", "🧾 GST number"),
    ("website", "🌐 Website"),
]

SHIPMENT_LABELS: dict[str, str] = {
    "shipment.packages_count": "📦 No. of packages",
    "shipment.others": "✏️ Package type (other)",
    "shipment.content_description": "📝 Contents",
    "shipment.declared_value": "💰 Declared value",
    "shipment.actual_weight": "⚖️ Actual weight (kg)",
    "shipment.special_instructions": "💬 Special instructions",
    "shipment.insurance_company_name": "🏦 Insurance company",
    "shipment.insurance_policy_number": "🔢 Policy number",
    "shipment.insurance_policy_date": "📅 Policy date",
    "shipment.insurance_valid_upto": "📅 Valid upto",
    "shipment.insurance_premium_amount": "💵 Premium amount",
}

DIMENSION_LABELS: dict[str, str] = {
    "length": "📏 Length",
    "breadth": "📏 Breadth",
    "height": "📏 Height",
}

NATURE_LABELS = {"DOX": "📄 Documents (DOX)", "NON-DOX": "📦 Parcel (NON-DOX)"}
SERVICE_LABELS = {"Standard": "🕐 Standard", "Priority": "⚡ Priority"}
MODE_LABELS = {"Air": "✈️ Air", "Surface": "🚂 Surface", "Road": "🚛 Road"}
PAYMENT_LABELS = {"FP": "💳 Freight Paid (FP)", "TP": "🤝 To Pay (TP)"}
INSURANCE_LABELS = {WITH_INSURANCE: "🛡 With insurance", WITHOUT_INSURANCE: "🚫 Without insurance"}

STEP_TITLES: dict[Step, str] = {
    Step.ORIGIN: "Origin",
    Step.DESTINATION: "Destination",
    Step.SHIPMENT_NATURE: "Shipment",
    Step.PACKAGE_DETAILS: "Package",
    Step.SERVICE_PAYMENT: "Service & payment",
    Step.PREVIEW: "Preview",
}


def field_label(key: str) -> str:
    section, _, attr = key.partition(".")
    if section in ("origin", "destination"):
        return dict(PARTY_LABELS).get(attr, attr)
    if section == "dimension":
        return DIMENSION_LABELS.get(attr.rpartition(".")[2], attr)
    return SHIPMENT_LABELS.get(key, key)


def _mark(filled: object) -> str:
    return "✅ " if filled else ""


def _nav(b: InlineKeyboardBuilder, back: bool = True, next_text: str = "➡️ Next") -> None:
    row = []
    if back:
        row.append(InlineKeyboardButton(text="⬅️ Back", callback_data="nav:back"))
    row.append(InlineKeyboardButton(text=next_text, callback_data="nav:next"))
    b.row(*row)


# ── Step keyboards ──────────────────────────────────────────────────

def party_kb(party: Party, role: str, *, back: bool) -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    for attr, label in PARTY_LABELS:
        b.button(text=f"{_mark(getattr(party, attr))}{label}", callback_data=f"edit:{role}.{attr}")
    b.adjust(2)
    if party.areas:
        b.row(InlineKeyboardButton(
            text=f"{_mark(party.area)}🗺 Area{': ' + party.area if party.area else ''}",
            callback_data=f"areas:{role}",
        ))
    _nav(b, back=back)
    return b.as_markup()


def origin_kb(draft: BookingDraft, has_default: bool) -> InlineKeyboardMarkup:
    if draft.use_default_origin:
        b = InlineKeyboardBuilder()
        b.button(text="✏️ Use a different address", callback_data="origin:custom")
        b.adjust(1)
        _nav(b, back=False)
        return b.as_markup()
    markup = party_kb(draft.origin, "origin", back=False)
    if has_default:
        markup.inline_keyboard.insert(0, [
            InlineKeyboardButton(text="🏢 Use corporate address", callback_data="origin:default"),
        ])
    return markup


def areas_kb(role: str, areas: list[str]) -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    for i, area in enumerate(areas):
        b.button(text=area[:60], callback_data=f"area:{role}:{i}")
    b.adjust(2)
    return b.as_markup()


def lookup_kb(records: list[Party]) -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    for i, party in enumerate(records):
        text = f"{party.name} · {party.building}, {party.city} {party.postal_code}".strip()
        b.button(text=text[:60], callback_data=f"dest:{i}")
    b.button(text="✏️ Enter a new destination", callback_data="dest:skip")
    b.button(text="⬅️ Back", callback_data="nav:back")
    b.adjust(1)
    return b.as_markup()


def shipment_nature_kb(draft: BookingDraft) -> InlineKeyboardMarkup:
    s = draft.shipment
    b = InlineKeyboardBuilder()
    for value in NATURES:
        b.button(text=f"{_mark(s.nature == value)}{NATURE_LABELS[value]}", callback_data=f"nature:{value}")
    ins_values = {WITH_INSURANCE: "with", WITHOUT_INSURANCE: "without"}
    for value, code in ins_values.items():
        b.button(text=f"{_mark(s.insurance == value)}{INSURANCE_LABELS[value]}", callback_data=f"ins:{code}")
    if s.insurance == WITH_INSURANCE:
        for key in (
            "shipment.insurance_company_name", "shipment.insurance_policy_number",
            "shipment.insurance_policy_date", "shipment.insurance_valid_upto",
            "shipment.insurance_premium_amount",
        ):
            attr = key.partition(".")[2]
            b.button(text=f"{_mark(getattr(s, attr))}{SHIPMENT_LABELS[key]}", callback_data=f"edit:{key}")
        b.button(text=f"{_mark(s.insurance_document)}📎 Policy document", callback_data="up:insurance")
        b.adjust(2, 2, 2, 2, 1, 1)
    else:
        b.adjust(2, 2)
    _nav(b)
    return b.as_markup()


def package_details_kb(draft: BookingDraft) -> InlineKeyboardMarkup:
    s = draft.shipment
    b = InlineKeyboardBuilder()
    for key in (
        "shipment.packages_count", "shipment.declared_value",
        "shipment.actual_weight", "shipment.content_description",
    ):
        attr = key.partition(".")[2]
        b.button(text=f"{_mark(getattr(s, attr))}{SHIPMENT_LABELS[key]}", callback_data=f"edit:{key}")
    b.button(
        text=f"{_mark(s.package_type)}🗃 Type{': ' + s.package_type if s.package_type else ''}",
        callback_data="pkgtypes",
    )
    if s.package_type == "Others":
        b.button(text=f"{_mark(s.others)}{SHIPMENT_LABELS['shipment.others']}", callback_data="edit:shipment.others")
    dim = s.dimensions[0]
    for attr, label in DIMENSION_LABELS.items():
        b.button(text=f"{_mark(getattr(dim, attr))}{label}", callback_data=f"edit:dimension.0.{attr}")
    other_unit = UNITS[1] if dim.unit == UNITS[0] else UNITS[0]
    b.button(text=f"📐 Unit: {dim.unit} → {other_unit}", callback_data=f"unit:0:{other_unit}")
    b.button(text=f"{_mark(s.package_images)}📷 Photos ({len(s.package_images)})", callback_data="up:images")
    if s.package_images:
        b.button(text="🗑 Remove last photo", callback_data=f"rm:img:{len(s.package_images) - 1}")
    b.button(text=f"{_mark(s.declaration_document)}📎 Declaration", callback_data="up:declaration")
    b.adjust(2)
    _nav(b)
    return b.as_markup()


def package_types_kb() -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    for i, value in enumerate(PACKAGE_TYPES):
        b.button(text=value, callback_data=f"pkg:{i}")
    b.adjust(3)
    return b.as_markup()


def service_payment_kb(draft: BookingDraft) -> InlineKeyboardMarkup:
    s = draft.shipment
    b = InlineKeyboardBuilder()
    for value in SERVICES:
        b.button(text=f"{_mark(s.service == value)}{SERVICE_LABELS[value]}", callback_data=f"svc:{value}")
    sizes = [2]
    if s.service == "Standard":
        for value in MODES:
            b.button(text=f"{_mark(s.mode == value)}{MODE_LABELS[value]}", callback_data=f"mode:{value}")
        sizes.append(3)
    for value in PAYMENT_TYPES:
        b.button(text=f"{_mark(draft.payment_type == value)}{PAYMENT_LABELS[value]}", callback_data=f"pay:{value}")
    sizes.append(2)
    b.button(
        text=f"{_mark(s.special_instructions)}{SHIPMENT_LABELS['shipment.special_instructions']}",
        callback_data="edit:shipment.special_instructions",
    )
    sizes.append(1)
    b.adjust(*sizes)
    _nav(b)
    return b.as_markup()


def preview_kb() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [InlineKeyboardButton(text="✅ Confirm booking", callback_data="submit")],
            [
                InlineKeyboardButton(text="⬅️ Back", callback_data="nav:back"),
                InlineKeyboardButton(text="✖️ Cancel", callback_data="action:restart"),
            ],
        ]
    )


def cancel_input_kb() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [InlineKeyboardButton(text="↩️ Back to step", callback_data="nav:stay")]
        ]
    )


def after_submit_kb() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [InlineKeyboardButton(text="🔄 New booking", callback_data="action:restart")],
            [InlineKeyboardButton(text="📋 My bookings", callback_data="action:history")],
        ]
    )


def admin_booking_kb(booking_id: int) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [
                InlineKeyboardButton(
                    text="📞 Contact",
                    callback_data=f"adm:contact:{booking_id}",
                ),
            ]
        ]
    )
