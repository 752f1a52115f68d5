from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from booking_bot.draft import Step
from booking_bot.errors import (
    CapacityExhausted,
    SubmissionError,
    SubmissionInProgress,
    ValidationError,
    WorkflowDisabled,
)
from booking_bot.gate import ConsignmentGate
from booking_bot.submitter import BookingReceipt, BookingSubmitter, build_payload
from booking_bot.workflow import Phase


def _sender(response):
    async def send(payload):
        send.payloads.append(payload)
        return response

    send.payloads = []
    return send


# =============================================================================
# ConsignmentGate
# =============================================================================


class TestGate:
    def test_from_payload(self):
        gate = ConsignmentGate.from_payload(
            {"hasAssignment": True, "summary": {"availableCount": "7"}, "message": "ok"}
        )
        assert gate.has_assignment
        assert gate.available_count == 7
        assert not gate.disabled

    def test_no_assignment_disables(self):
        gate = ConsignmentGate.from_payload({"hasAssignment": False, "message": "Ask admin"})
        assert gate.disabled
        with pytest.raises(WorkflowDisabled, match="Ask admin"):
            gate.ensure_enabled()

    def test_zero_available_blocks_submit_only(self):
        gate = ConsignmentGate(has_assignment=True, available_count=0)
        gate.ensure_enabled()
        with pytest.raises(CapacityExhausted):
            gate.check_submit()

    def test_consume(self):
        gate = ConsignmentGate(has_assignment=True, available_count=1)
        gate.consume()
        gate.consume()
        assert gate.available_count == 0

    def test_unavailable(self):
        gate = ConsignmentGate.unavailable("Service down")
        assert gate.disabled
        assert gate.message == "Service down"


# =============================================================================
# Payload
# =============================================================================


class TestBuildPayload:
    def test_shape(self, preview_workflow):
        wf = preview_workflow
        now = datetime(2024, 5, 1, tzinfo=timezone.utc)
        payload = build_payload(wf.draft, wf.weights, now=now)

        assert payload["status"] == "booked"
        assert payload["paymentStatus"] == "unpaid"
        assert payload["bookingDate"] == now.isoformat()
        assert payload["paymentData"] == {"paymentType": "FP"}

        origin = payload["originData"]
        assert origin["pincode"] == "110001"
        assert origin["useCurrentAddress"] is True
        assert "areas" not in origin

        shipment = payload["shipmentData"]
        assert shipment["natureOfConsignment"] == "NON-DOX"
        assert shipment["services"] == "Standard"
        assert shipment["riskCoverage"] == "Owner"
        assert shipment["uploadedFiles"] == ["https://cdn.example/box.jpg"]
        assert shipment["declarationDocumentUrl"] == "https://cdn.example/decl.pdf"
        assert shipment["chargeableWeight"] == pytest.approx(3.0)
        assert shipment["volumetricWeight"] == pytest.approx(1.2)
        assert "packageImages" not in shipment
        assert "declarationDocument" not in shipment

        invoice = payload["invoiceData"]
        assert invoice["calculatedPrice"] == pytest.approx(120)
        assert invoice["gst"] == pytest.approx(120 * 0.18)
        assert invoice["finalPrice"] == pytest.approx(120 * 1.18)
        assert invoice["location"] == "assam"
        assert invoice["zone"] == "Assam"
        assert invoice["serviceType"] == "NON-DOX"
        assert invoice["chargeableWeight"] == pytest.approx(3.0)

    def test_reverse_invoice_uses_quote_weight_and_region_label(self, preview_workflow, corporate_party):
        wf = preview_workflow
        wf.use_custom_origin(corporate_party)
        invoice = build_payload(wf.draft, wf.weights)["invoiceData"]
        # Surface minimum 100 kg at 14/kg
        assert invoice["calculatedPrice"] == pytest.approx(1400)
        assert invoice["location"] == "Assam"
        assert invoice["zone"] == "Assam"
        assert invoice["transportMode"] == "byTrain"
        assert invoice["chargeableWeight"] == 100

        wf.set_field("destination.postal_code", "795001")
        payload = build_payload(wf.draft, wf.weights)
        assert payload["invoiceData"]["location"] == "North East"
        assert payload["invoiceData"]["zone"] == "NorthEast"
        assert payload["shipmentData"]["chargeableWeight"] == pytest.approx(3.0)


# =============================================================================
# Submit
# =============================================================================


class TestSubmit:
    def test_success(self, preview_workflow, gate):
        send = _sender({"success": True, "consignmentNumber": "CN1001", "bookingReference": "REF-9"})
        submitter = BookingSubmitter()
        receipt = asyncio.run(submitter.submit(preview_workflow, gate, send))

        assert receipt == BookingReceipt(booking_reference="REF-9", consignment_number="CN1001")
        assert gate.available_count == 4
        assert preview_workflow.phase is Phase.SUBMITTED
        assert preview_workflow.receipt == receipt
        assert submitter.last_payload is send.payloads[0]

    def test_reference_falls_back_to_consignment(self, preview_workflow, gate):
        send = _sender({"success": True, "consignmentNumber": "CN1002"})
        receipt = asyncio.run(BookingSubmitter().submit(preview_workflow, gate, send))
        assert receipt.booking_reference == "CN1002"

    def test_capacity_exhausted_blocks_before_sending(self, preview_workflow):
        gate = ConsignmentGate(has_assignment=True, available_count=0)
        send = _sender({"success": True, "consignmentNumber": "X"})
        with pytest.raises(CapacityExhausted):
            asyncio.run(BookingSubmitter().submit(preview_workflow, gate, send))
        assert send.payloads == []
        assert preview_workflow.phase is Phase.EDITING

    def test_capacity_rejection_from_server(self, preview_workflow, gate):
        send = _sender({"success": False, "error": "All consignment numbers have been used for this account"})
        with pytest.raises(CapacityExhausted):
            asyncio.run(BookingSubmitter().submit(preview_workflow, gate, send))
        assert gate.available_count == 0
        assert preview_workflow.step is Step.PREVIEW

    def test_missing_consignment_number(self, preview_workflow, gate):
        send = _sender({"success": True})
        with pytest.raises(SubmissionError, match="consignment number"):
            asyncio.run(BookingSubmitter().submit(preview_workflow, gate, send))
        assert gate.available_count == 5
        assert preview_workflow.phase is Phase.EDITING

    def test_rejection_message_passed_through(self, preview_workflow, gate):
        send = _sender({"success": False, "message": "Destination not serviceable"})
        with pytest.raises(SubmissionError, match="not serviceable"):
            asyncio.run(BookingSubmitter().submit(preview_workflow, gate, send))

    def test_requires_preview_step(self, workflow, gate):
        with pytest.raises(SubmissionError):
            asyncio.run(BookingSubmitter().submit(workflow, gate, _sender({})))

    def test_revalidates_every_step(self, preview_workflow, gate):
        preview_workflow.draft.destination.mobile_number = "123"
        with pytest.raises(ValidationError) as exc:
            asyncio.run(BookingSubmitter().submit(preview_workflow, gate, _sender({})))
        assert "destination.mobile_number" in exc.value.errors

    def test_single_in_flight(self, preview_workflow, gate):
        release = None

        async def slow_send(payload):
            await release.wait()
            return {"success": True, "consignmentNumber": "CN1"}

        async def scenario():
            nonlocal release
            release = asyncio.Event()
            submitter = BookingSubmitter()
            first = asyncio.create_task(submitter.submit(preview_workflow, gate, slow_send))
            await asyncio.sleep(0)
            with pytest.raises(SubmissionInProgress):
                await submitter.submit(preview_workflow, gate, slow_send)
            release.set()
            return await first

        receipt = asyncio.run(scenario())
        assert receipt.consignment_number == "CN1"
        assert preview_workflow.submitting is False

    def test_uses_workflow_gate_when_none_given(self, preview_workflow):
        preview_workflow.gate = ConsignmentGate(has_assignment=True, available_count=0)
        with pytest.raises(CapacityExhausted):
            asyncio.run(BookingSubmitter().submit(preview_workflow, None, _sender({})))

    def test_submitted_draft_cannot_be_sent_again(self, preview_workflow, gate):
        send = _sender({"success": True, "consignmentNumber": "CN1"})
        submitter = BookingSubmitter()
        asyncio.run(submitter.submit(preview_workflow, gate, send))
        with pytest.raises(SubmissionError, match="already been submitted"):
            asyncio.run(submitter.submit(preview_workflow, gate, send))
        assert len(send.payloads) == 1
        assert gate.available_count == 4

    def test_reset_during_submit_leaves_new_draft_open(self, preview_workflow, gate):
        wf = preview_workflow

        async def scenario():
            release = asyncio.Event()

            async def slow_send(payload):
                await release.wait()
                return {"success": True, "consignmentNumber": "CN9"}

            task = asyncio.create_task(BookingSubmitter().submit(wf, gate, slow_send))
            await asyncio.sleep(0)
            wf.reset()
            assert wf.submitting is True
            release.set()
            return await task

        receipt = asyncio.run(scenario())
        assert receipt.consignment_number == "CN9"
        assert gate.available_count == 4
        assert wf.phase is Phase.EDITING
        assert wf.step is Step.ORIGIN
        assert wf.receipt is None
        assert wf.submitting is False
