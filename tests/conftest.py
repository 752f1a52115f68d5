from __future__ import annotations

import os

# Settings() is built at import time; give it what it needs.
os.environ.setdefault("BOT_TOKEN", "123456:TEST-TOKEN")
os.environ.setdefault("DATABASE_URL", "")

import pytest  # noqa: E402

from booking_bot.draft import Attachment, Party, Step  # noqa: E402
from booking_bot.gate import ConsignmentGate  # noqa: E402
from booking_bot.rating import RateTable  # noqa: E402
from booking_bot.workflow import StepWorkflow  # noqa: E402


def _row(assam: float, ne_air: float, ne_surface: float, rest: float) -> dict:
    return {"assam": assam, "neByAirAgtImp": ne_air, "neBySurface": ne_surface, "restOfIndia": rest}


PRICING = {
    "priorityPricing": {
        "01gm-500gm": _row(50, 60, 55, 80),
        "add500gm": _row(20, 25, 22, 30),
    },
    "doxPricing": {
        "01gm-250gm": _row(30, 40, 35, 45),
        "251gm-500gm": _row(35, 45, 40, 55),
        "add500gm": _row(15, 18, 16, 25),
    },
    "nonDoxAirPricing": _row(100, 120, 110, 150),
    "nonDoxSurfacePricing": _row(40, 60, 50, 70),
    "reversePricing": {
        "toAssam": {
            "byRoad": {"normal": 10, "priority": 12},
            "byTrain": {"normal": 14, "priority": 16},
            "byFlight": {"normal": 90, "priority": 110},
        },
        "toNorthEast": {
            "byRoad": {"normal": 11, "priority": 13},
            "byTrain": {"normal": 15, "priority": 17},
            "byFlight": {"normal": 95, "priority": 115},
        },
    },
}


@pytest.fixture
def pricing() -> dict:
    return PRICING


@pytest.fixture
def rate_table() -> RateTable:
    return RateTable.from_payload(PRICING)


@pytest.fixture
def corporate_party() -> Party:
    return Party(
        name="Acme Logistics",
        company_name="Acme Logistics",
        email="ops@acme.example",
        mobile_number="9876543210",
        postal_code="110001",
        city="New Delhi",
        state="Delhi",
        street="Connaught Place",
        building="Block A",
        address_type="Corporate",
    )


@pytest.fixture
def recipient() -> Party:
    return Party(
        name="Ravi Das",
        email="ravi@example.com",
        mobile_number="9123456780",
        postal_code="781001",
        city="Guwahati",
        state="Assam",
        street="Pan Bazar",
        building="House 12",
    )


@pytest.fixture
def gate() -> ConsignmentGate:
    return ConsignmentGate(has_assignment=True, available_count=5)


@pytest.fixture
def workflow(corporate_party, rate_table, gate) -> StepWorkflow:
    return StepWorkflow(default_origin=corporate_party, rate_table=rate_table, gate=gate)


@pytest.fixture
def preview_workflow(workflow: StepWorkflow, recipient: Party) -> StepWorkflow:
    """A workflow with every step filled in, sitting on Preview."""
    wf = workflow
    d = wf.draft
    d.destination = recipient.model_copy()
    wf.draft.step = Step.SHIPMENT_NATURE
    wf.set_nature("NON-DOX")
    wf.set_insurance("Without insurance")
    wf.draft.step = Step.PACKAGE_DETAILS
    wf.set_field("shipment.packages_count", "2")
    wf.set_package_type("Carton Box")
    wf.set_field("shipment.declared_value", "5000")
    wf.set_field("shipment.actual_weight", "3")
    wf.set_field("dimension.0.length", "30")
    wf.set_field("dimension.0.breadth", "20")
    wf.set_field("dimension.0.height", "10")
    wf.attach_package_image(Attachment(name="box.jpg", url="https://cdn.example/box.jpg", mime_type="image/jpeg"))
    wf.attach_declaration_document(
        Attachment(name="decl.pdf", url="https://cdn.example/decl.pdf", mime_type="application/pdf")
    )
    wf.draft.step = Step.SERVICE_PAYMENT
    wf.set_service("Standard")
    wf.set_mode("Surface")
    wf.set_payment_type("FP")
    wf.next()
    assert wf.step is Step.PREVIEW
    return wf
