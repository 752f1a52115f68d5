"""Turns a finished draft into a booking."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Mapping

from booking_bot.draft import BookingDraft, Step
from booking_bot.errors import CapacityExhausted, SubmissionError, SubmissionInProgress, ValidationError
from booking_bot.gate import ConsignmentGate
from booking_bot.rating import REVERSE_LOCATION_LABELS
from booking_bot.validation import validate_step
from booking_bot.weight import WeightBreakdown
from booking_bot.workflow import Phase, StepWorkflow

logger = logging.getLogger(__name__)

CAPACITY_MARKER = "All consignment numbers have been used"

SendFn = Callable[[dict[str, Any]], Awaitable[Mapping[str, Any]]]


@dataclass(frozen=True)
class BookingReceipt:
    booking_reference: str
    consignment_number: str


def build_payload(
    draft: BookingDraft,
    weights: WeightBreakdown,
    now: datetime | None = None,
) -> dict[str, Any]:
    shipment = draft.shipment
    files = {"package_images", "declaration_document", "insurance_document"}
    shipment_data = shipment.model_dump(by_alias=True, exclude=files)
    shipment_data.update(
        volumetricWeight=weights.volumetric,
        chargeableWeight=weights.chargeable,
        uploadedFiles=[img.url for img in shipment.package_images],
        declarationDocumentUrl=shipment.declaration_document.url if shipment.declaration_document else "",
        insuranceDocumentUrl=shipment.insurance_document.url if shipment.insurance_document else "",
    )

    origin = draft.origin.model_dump(by_alias=True)
    origin["useCurrentAddress"] = draft.use_default_origin

    quote = draft.quote
    if quote is None:
        invoice = {
            "calculatedPrice": 0.0,
            "gst": 0.0,
            "finalPrice": 0.0,
            "serviceType": shipment.nature,
            "location": "",
            "zone": "",
            "transportMode": shipment.mode,
            "chargeableWeight": weights.chargeable,
        }
    else:
        # Reverse quotes carry the region key; the service stores its label
        invoice = {
            "calculatedPrice": quote.base_price,
            "gst": quote.tax,
            "finalPrice": quote.final_price,
            "serviceType": shipment.nature,
            "location": REVERSE_LOCATION_LABELS.get(quote.rate_key, quote.rate_key),
            "zone": quote.zone,
            "transportMode": quote.transport_mode,
            "chargeableWeight": quote.chargeable_weight,
        }

    return {
        "originData": origin,
        "destinationData": draft.destination.model_dump(by_alias=True),
        "shipmentData": shipment_data,
        "invoiceData": invoice,
        "paymentData": {"paymentType": draft.payment_type},
        "bookingDate": (now or datetime.now(timezone.utc)).isoformat(),
        "status": "booked",
        "paymentStatus": "unpaid",
    }


def _error_text(result: Mapping[str, Any]) -> str:
    return str(result.get("error") or result.get("message") or "")


class BookingSubmitter:
    """Sends a finished draft.

    The payload of the last accepted booking stays on ``last_payload`` so
    the caller can journal it.
    """

    def __init__(self) -> None:
        self.last_payload: dict[str, Any] | None = None

    async def submit(
        self,
        workflow: StepWorkflow,
        gate: ConsignmentGate | None,
        send: SendFn,
    ) -> BookingReceipt:
        if workflow.phase is Phase.SUBMITTED:
            raise SubmissionError("This booking has already been submitted. Start a new booking.")
        if workflow.submitting:
            raise SubmissionInProgress("This booking is already being submitted")
        if workflow.step is not Step.PREVIEW:
            raise SubmissionError("Finish every step before submitting")

        draft = workflow.draft
        for step in Step:
            errors = validate_step(step, draft)
            if errors:
                workflow.errors = errors
                raise ValidationError(errors)

        gate = gate if gate is not None else workflow.gate
        if gate is not None:
            gate.check_submit()

        payload = build_payload(draft, workflow.weights)
        workflow.submitting = True
        try:
            result = await send(payload)
        finally:
            workflow.submitting = False

        text = _error_text(result)
        if CAPACITY_MARKER in text:
            if gate is not None:
                gate.available_count = 0
            raise CapacityExhausted(text)
        if not result.get("success"):
            raise SubmissionError(text or "Booking submission failed")
        consignment = result.get("consignmentNumber")
        if not consignment:
            logger.error("Booking response without consignment number: %s", result)
            raise SubmissionError("Server response missing consignment number")

        receipt = BookingReceipt(
            booking_reference=str(result.get("bookingReference") or consignment),
            consignment_number=str(consignment),
        )
        logger.info("Booked consignment %s (ref %s)", receipt.consignment_number, receipt.booking_reference)

        if gate is not None:
            gate.consume()
        self.last_payload = payload
        if workflow.draft is not draft:
            # Reset while the request was in flight: the new draft stays open
            logger.warning("Draft replaced during submit of %s; not marking it submitted", receipt.consignment_number)
            return receipt
        workflow.mark_submitted(receipt)
        return receipt
