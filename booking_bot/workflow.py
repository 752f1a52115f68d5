"""
Six-step booking workflow as an explicit state machine.

    ORIGIN ─next─▶ [destination lookup] ─┬─ record picked ──▶ SHIPMENT_NATURE
                                         ├─ dismissed ──────▶ DESTINATION
                                         └─ countdown ends ─▶ DESTINATION
    DESTINATION ─▶ SHIPMENT_NATURE ─▶ PACKAGE_DETAILS ─▶ SERVICE_PAYMENT ─▶ PREVIEW ─▶ (submitted)

• ``next()`` validates the current step and refuses to move on failure.
• ``previous()`` always works, floor at ORIGIN.
• The destination lookup is its own phase with a typed payload; the
  auto-redirect countdown is an asyncio task stored on that payload and is
  cancelled by any user interaction.
• Every mutation that can change the price refreshes the quote once the
  user has reached PACKAGE_DETAILS and a rate table is loaded.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable

from booking_bot import rating
from booking_bot.draft import (
    INSURANCE_CHOICES,
    MODES,
    NATURES,
    OTHERS_PACKAGE,
    PACKAGE_TYPES,
    PAYMENT_TYPES,
    SERVICES,
    UNITS,
    WITH_INSURANCE,
    Attachment,
    BookingDraft,
    DimensionSet,
    Party,
    PostalResolution,
    Step,
)
from booking_bot.errors import LookupFailure, ValidationError, WorkflowDisabled
from booking_bot.gate import ConsignmentGate
from booking_bot.previews import PreviewRegistry
from booking_bot.validation import digits, validate_step
from booking_bot.weight import WeightBreakdown

logger = logging.getLogger(__name__)

REDIRECT_COUNTDOWN_SECONDS = 4

TickCallback = Callable[[int], Awaitable[None]]
ExpireCallback = Callable[[], Awaitable[None]]


class Phase(str, Enum):
    EDITING = "editing"
    DESTINATION_LOOKUP = "destination_lookup"
    SUBMITTED = "submitted"


class Transition(str, Enum):
    ADVANCED = "advanced"
    LOOKUP = "lookup"


@dataclass
class DestinationLookup:
    phone: str = ""
    records: list[Party] = field(default_factory=list)
    pending: bool = False
    remaining: int | None = None
    countdown: asyncio.Task | None = None


# ── Editable fields ──────────────────────────────────────────────────

PARTY_FIELDS = (
    "name", "company_name", "email", "mobile_number", "postal_code", "area",
    "city", "district", "state", "street", "building", "landmark", "tax_id",
    "website", "address_type",
)

SHIPMENT_TEXT_FIELDS = (
    "packages_count", "others", "content_description", "declared_value",
    "actual_weight", "special_instructions",
    "insurance_company_name", "insurance_policy_number",
    "insurance_policy_date", "insurance_valid_upto", "insurance_premium_amount",
)

DIMENSION_FIELDS = ("length", "breadth", "height", "unit")

# Mutations of these keys change the weight breakdown
_WEIGHT_KEYS = {"shipment.actual_weight"}

INSURANCE_DETAIL_KEYS = {
    "company_name": "insurance_company_name",
    "policy_number": "insurance_policy_number",
    "policy_date": "insurance_policy_date",
    "valid_upto": "insurance_valid_upto",
    "premium_amount": "insurance_premium_amount",
}


def _log_countdown_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Redirect countdown failed: %s", exc, exc_info=exc)


def _normalise(attr: str, value: str) -> str:
    value = (value or "").strip()
    if attr in ("mobile_number",):
        return digits(value)
    if attr == "postal_code":
        return digits(value)[:6]
    if attr == "tax_id":
        return "".join(ch for ch in value.upper() if ch.isalnum())[:15]
    return value


class StepWorkflow:
    def __init__(
        self,
        default_origin: Party | None = None,
        rate_table: rating.RateTable | None = None,
        gate: ConsignmentGate | None = None,
        previews: PreviewRegistry | None = None,
    ) -> None:
        self.default_origin = default_origin
        self.rate_table = rate_table
        self.gate = gate
        self.previews = previews or PreviewRegistry()
        self.draft = BookingDraft.start(default_origin)
        self.phase = Phase.EDITING
        self.lookup: DestinationLookup | None = None
        self.errors: dict[str, str] = {}
        self.pending: set[str] = set()
        self.receipt: Any = None
        self.submitting = False

    # ── State ──────────────────────────────────────────────────────

    @property
    def step(self) -> Step:
        return self.draft.step

    @property
    def read_only(self) -> bool:
        return self.gate is not None and self.gate.disabled

    @property
    def weights(self) -> WeightBreakdown:
        return WeightBreakdown.from_shipment(self.draft.shipment)

    def _ensure_editable(self) -> None:
        if self.gate is not None:
            self.gate.ensure_enabled()
        if self.phase is Phase.SUBMITTED:
            raise WorkflowDisabled("This booking has been submitted. Start a new booking to continue.")

    def _go(self, step: Step) -> None:
        self.cancel_countdown()
        self.draft.step = step
        self.phase = Phase.EDITING
        self.lookup = None
        if step >= Step.PACKAGE_DETAILS:
            self._refresh_quote()

    # ── Navigation ─────────────────────────────────────────────────

    def next(self) -> Transition:
        self._ensure_editable()
        if self.phase is Phase.DESTINATION_LOOKUP:
            self.dismiss_lookup()
            return Transition.ADVANCED

        self.cancel_countdown()
        self.errors = validate_step(self.step, self.draft)
        if self.errors:
            logger.debug("Step %s blocked: %s", self.step.name, sorted(self.errors))
            raise ValidationError(self.errors)

        if self.step is Step.ORIGIN:
            self.phase = Phase.DESTINATION_LOOKUP
            self.lookup = DestinationLookup()
            return Transition.LOOKUP

        self._go(Step(min(self.step + 1, Step.PREVIEW)))
        return Transition.ADVANCED

    def previous(self) -> Step:
        self.cancel_countdown()
        self.errors = {}
        if self.phase is Phase.DESTINATION_LOOKUP:
            self.phase = Phase.EDITING
            self.lookup = None
            return self.step
        if self.phase is Phase.EDITING:
            self.draft.step = Step(max(self.step - 1, Step.ORIGIN))
        return self.step

    # ── Destination lookup ─────────────────────────────────────────

    async def lookup_destinations(
        self,
        phone: str,
        lookup: Callable[[str], Awaitable[Iterable[Party]]],
        *,
        seconds: int = REDIRECT_COUNTDOWN_SECONDS,
        on_tick: TickCallback | None = None,
        on_expire: ExpireCallback | None = None,
    ) -> list[Party]:
        """Find earlier destinations for ``phone``.

        With no matches (or a failed lookup) the redirect countdown is armed;
        a ``LookupFailure`` is re-raised afterwards so the caller can show a
        notice while the flow carries on.
        """
        self._ensure_editable()
        if self.phase is not Phase.DESTINATION_LOOKUP or self.lookup is None:
            self.phase = Phase.DESTINATION_LOOKUP
            self.lookup = DestinationLookup()

        clean = digits(phone)
        if len(clean) != 10:
            self.errors = {"lookup.phone": "Please enter a valid 10-digit phone number."}
            raise ValidationError(self.errors)

        state = self.lookup
        self.cancel_countdown()
        state.phone = clean
        state.pending = True
        try:
            records = list(await lookup(clean))
        except LookupFailure:
            state.records = []
            if self.lookup is state:
                self.start_countdown(seconds, on_tick=on_tick, on_expire=on_expire)
            raise
        finally:
            state.pending = False

        if self.lookup is not state:
            # User left the lookup while it was running
            return []
        state.records = records
        if not records:
            self.start_countdown(seconds, on_tick=on_tick, on_expire=on_expire)
        logger.info("Destination lookup: %d record(s)", len(records))
        return records

    def start_countdown(
        self,
        seconds: int = REDIRECT_COUNTDOWN_SECONDS,
        *,
        tick: float = 1.0,
        on_tick: TickCallback | None = None,
        on_expire: ExpireCallback | None = None,
    ) -> asyncio.Task:
        if self.lookup is None:
            raise RuntimeError("Countdown needs an active destination lookup")
        self.cancel_countdown()
        state = self.lookup

        async def _run() -> None:
            for remaining in range(seconds, 0, -1):
                state.remaining = remaining
                if on_tick is not None:
                    await on_tick(remaining)
                await asyncio.sleep(tick)
            state.remaining = None
            state.countdown = None
            if self.lookup is state:
                self._go(Step.DESTINATION)
                if on_expire is not None:
                    await on_expire()

        state.countdown = asyncio.get_running_loop().create_task(_run())
        state.countdown.add_done_callback(_log_countdown_failure)
        return state.countdown

    def cancel_countdown(self) -> None:
        state = self.lookup
        if state is None or state.countdown is None:
            return
        if not state.countdown.done():
            state.countdown.cancel()
        state.countdown = None
        state.remaining = None

    def select_previous_destination(self, index: int) -> Party:
        self._ensure_editable()
        if self.phase is not Phase.DESTINATION_LOOKUP or self.lookup is None:
            raise ValidationError({"lookup.selection": "No destination lookup in progress"})
        records = self.lookup.records
        if not 0 <= index < len(records):
            raise ValidationError({"lookup.selection": "Please choose one of the listed destinations"})
        self.draft.destination = records[index].model_copy(deep=True)
        self._go(Step.SHIPMENT_NATURE)
        return self.draft.destination

    def dismiss_lookup(self) -> None:
        self._ensure_editable()
        self._go(Step.DESTINATION)

    # ── Origin selection ───────────────────────────────────────────

    def use_default_origin(self) -> None:
        self._ensure_editable()
        if self.default_origin is None:
            raise ValidationError({"origin": "No default address on the corporate profile"})
        self.draft.origin = self.default_origin.model_copy(update={"address_type": "Corporate"})
        self.draft.use_default_origin = True
        self._refresh_quote()

    def use_custom_origin(self, party: Party | None = None) -> None:
        self._ensure_editable()
        self.draft.origin = party.model_copy(deep=True) if party else Party()
        self.draft.use_default_origin = False
        self._refresh_quote()

    # ── Field edits ────────────────────────────────────────────────

    def set_field(self, key: str, value: str) -> None:
        """Set one free-text field, e.g. ``destination.postal_code`` or
        ``dimension.0.length``."""
        self._ensure_editable()
        self.cancel_countdown()
        section, _, attr = key.partition(".")

        if section in ("origin", "destination") and attr in PARTY_FIELDS:
            if section == "origin" and self.draft.use_default_origin:
                raise ValidationError({key: "Switch to a different address to edit the origin"})
            party: Party = getattr(self.draft, section)
            value = _normalise(attr, value)
            if attr == "postal_code" and value != party.postal_code:
                party.area = party.city = party.district = party.state = ""
                party.areas = []
            setattr(party, attr, value)
            if key == "destination.postal_code":
                self._refresh_quote()
        elif section == "shipment" and attr in SHIPMENT_TEXT_FIELDS:
            setattr(self.draft.shipment, attr, _normalise(attr, value))
            if key in _WEIGHT_KEYS:
                self._refresh_weights()
                self._refresh_quote()
        elif section == "dimension":
            index_raw, _, dim_attr = attr.partition(".")
            dims = self.draft.shipment.dimensions
            if not index_raw.isdigit() or int(index_raw) >= len(dims) or dim_attr not in DIMENSION_FIELDS:
                raise ValidationError({key: "Unknown dimension field"})
            value = value.strip()
            if dim_attr == "unit" and value not in UNITS:
                raise ValidationError({key: "Unit must be cm or in"})
            setattr(dims[int(index_raw)], dim_attr, value)
            self._refresh_weights()
            self._refresh_quote()
        else:
            raise ValidationError({key: "Unknown field"})
        self.errors.pop(key, None)

    def add_dimension_set(self) -> int:
        self._ensure_editable()
        dims = self.draft.shipment.dimensions
        dims.append(DimensionSet(unit=dims[-1].unit if dims else "cm"))
        return len(dims) - 1

    def remove_dimension_set(self, index: int) -> None:
        self._ensure_editable()
        dims = self.draft.shipment.dimensions
        if len(dims) > 1 and 0 <= index < len(dims):
            dims.pop(index)
            self._refresh_weights()
            self._refresh_quote()

    # ── Choices ────────────────────────────────────────────────────

    @staticmethod
    def _choice(key: str, value: str, allowed: Iterable[str]) -> str:
        if value not in allowed:
            raise ValidationError({key: f"Unsupported value: {value!r}"})
        return value

    def set_nature(self, value: str) -> None:
        self._ensure_editable()
        self.draft.shipment.nature = self._choice("shipment.nature", value, NATURES)
        self.errors.pop("shipment.nature", None)
        self._refresh_quote()

    def set_insurance(self, choice: str, **details: str) -> None:
        """Pick insurance; risk coverage follows automatically.

        ``details`` takes company_name, policy_number, policy_date,
        valid_upto, premium_amount.
        """
        self._ensure_editable()
        shipment = self.draft.shipment
        shipment.insurance = self._choice("shipment.insurance", choice, INSURANCE_CHOICES)
        if choice != WITH_INSURANCE:
            self.previews.release(shipment.insurance_document.preview if shipment.insurance_document else None)
            shipment.clear_insurance_details()
            return
        for name, value in details.items():
            attr = INSURANCE_DETAIL_KEYS.get(name)
            if attr is None:
                raise ValidationError({f"shipment.{name}": "Unknown insurance field"})
            setattr(shipment, attr, (value or "").strip())

    def set_service(self, value: str) -> None:
        self._ensure_editable()
        shipment = self.draft.shipment
        shipment.service = self._choice("shipment.service", value, SERVICES)
        if value != "Standard":
            shipment.mode = ""
        self._refresh_quote()

    def set_mode(self, value: str) -> None:
        self._ensure_editable()
        shipment = self.draft.shipment
        if shipment.service and shipment.service != "Standard":
            raise ValidationError({"shipment.mode": "Mode applies to Standard service only"})
        shipment.mode = self._choice("shipment.mode", value, MODES)
        self._refresh_quote()

    def set_payment_type(self, value: str) -> None:
        self._ensure_editable()
        self.draft.payment_type = self._choice("payment_type", value, PAYMENT_TYPES)

    def set_package_type(self, value: str) -> None:
        self._ensure_editable()
        shipment = self.draft.shipment
        shipment.package_type = self._choice("shipment.package_type", value, PACKAGE_TYPES)
        if value != OTHERS_PACKAGE:
            shipment.others = ""

    # ── Attachments ────────────────────────────────────────────────

    def attach_package_image(self, attachment: Attachment) -> None:
        self._ensure_editable()
        self.draft.shipment.package_images.append(attachment)
        self.errors.pop("shipment.package_images", None)

    def remove_package_image(self, index: int) -> None:
        self._ensure_editable()
        images = self.draft.shipment.package_images
        if 0 <= index < len(images):
            self.previews.release(images.pop(index).preview)

    def attach_declaration_document(self, attachment: Attachment) -> None:
        self._ensure_editable()
        shipment = self.draft.shipment
        if shipment.declaration_document is not None:
            self.previews.release(shipment.declaration_document.preview)
        shipment.declaration_document = attachment

    def attach_insurance_document(self, attachment: Attachment) -> None:
        self._ensure_editable()
        shipment = self.draft.shipment
        if shipment.insurance != WITH_INSURANCE:
            raise ValidationError({"shipment.insurance_document": "Choose 'With insurance' first"})
        if shipment.insurance_document is not None:
            self.previews.release(shipment.insurance_document.preview)
        shipment.insurance_document = attachment

    # ── Postal codes ───────────────────────────────────────────────

    async def resolve_postal_code(
        self,
        role: str,
        resolve: Callable[[str], Awaitable[PostalResolution]],
    ) -> PostalResolution | None:
        party: Party = getattr(self.draft, role)
        code = party.postal_code
        if len(code) != 6:
            return None
        key = f"{role}.postal_code"
        self.pending.add(key)
        try:
            resolution = await resolve(code)
        finally:
            self.pending.discard(key)
        self.apply_postal_resolution(role, resolution)
        return resolution

    def apply_postal_resolution(self, role: str, resolution: PostalResolution) -> None:
        party: Party = getattr(self.draft, role)
        if resolution.postal_code and resolution.postal_code != party.postal_code:
            logger.debug("Stale postal resolution for %s ignored", role)
            return
        party.city = resolution.city
        party.state = resolution.state
        party.district = resolution.district
        areas = list(resolution.areas)
        if party.area and party.area not in areas:
            areas.insert(0, party.area)
        party.areas = areas

    # ── Pricing ────────────────────────────────────────────────────

    def load_rate_table(self, table: rating.RateTable | None) -> None:
        self.rate_table = table
        self._refresh_quote()

    def _refresh_weights(self) -> None:
        weights = self.weights
        self.draft.shipment.volumetric_weight = weights.volumetric
        self.draft.shipment.chargeable_weight = weights.chargeable

    def _quote_ready(self) -> bool:
        s = self.draft.shipment
        if not (s.nature and s.service and self.draft.destination.postal_code):
            return False
        return s.service != "Standard" or bool(s.mode)

    def _refresh_quote(self) -> None:
        if self.step < Step.PACKAGE_DETAILS or self.rate_table is None:
            return
        self._refresh_weights()
        if not self._quote_ready():
            self.draft.quote = None
            return
        s = self.draft.shipment
        self.draft.quote = rating.compute(
            rating.RatingInput(
                nature=s.nature,
                service=s.service,
                mode=s.mode,
                destination_postal_code=self.draft.destination.postal_code,
                chargeable_weight=s.chargeable_weight,
                use_default_origin=self.draft.use_default_origin,
            ),
            self.rate_table,
        )

    # ── Lifecycle ──────────────────────────────────────────────────

    def mark_submitted(self, receipt: Any) -> None:
        self.cancel_countdown()
        self.receipt = receipt
        self.phase = Phase.SUBMITTED

    def reset(self, default_origin: Party | None = None) -> None:
        self.cancel_countdown()
        self.previews.release_all()
        if default_origin is not None:
            self.default_origin = default_origin
        self.draft = BookingDraft.start(self.default_origin)
        self.phase = Phase.EDITING
        self.lookup = None
        self.errors = {}
        self.pending.clear()
        self.receipt = None
        # submitting stays set until an in-flight submit returns

    def close(self) -> None:
        """Session teardown."""
        self.cancel_countdown()
        self.previews.release_all()
