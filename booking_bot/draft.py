"""BookingDraft: the single mutable aggregate of one booking session.

Field names are snake_case in Python and camelCase on the wire; a few keep
the booking service's historical names (``pincode``, ``gstNumber``,
``locality``, ``flatBuilding``, ``natureOfConsignment``, ``services``).
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

NATURES = ("DOX", "NON-DOX")
SERVICES = ("Standard", "Priority")
MODES = ("Air", "Surface", "Road")
PAYMENT_TYPES = ("FP", "TP")
UNITS = ("cm", "in")

WITH_INSURANCE = "With insurance"
WITHOUT_INSURANCE = "Without insurance"
INSURANCE_CHOICES = (WITH_INSURANCE, WITHOUT_INSURANCE)

RISK_COVERAGE = {
    WITH_INSURANCE: "Carrier",
    WITHOUT_INSURANCE: "Owner",
}

OTHERS_PACKAGE = "Others"
PACKAGE_TYPES = (
    "Auto & Machine Parts", "Books", "Cheque Book", "Chocolates",
    "Clothing (General)", "Computer Accessories", "Corporate Gifts",
    "Credit / Debit Card", "Documents", "Dry Fruits", "Household Goods",
    "Laptop", "Luggage / Travel Bag", "Medical Equipment", "Medicines",
    "Passport", "Pen Drive", "Promotional Material (Paper)", "SIM Card",
    "Sports", "Stationery Items", "Sweets", "Toys", "Wooden Box",
    "Carton Box", "Gunny bag", OTHERS_PACKAGE,
)


class Step(IntEnum):
    ORIGIN = 1
    DESTINATION = 2
    SHIPMENT_NATURE = 3
    PACKAGE_DETAILS = 4
    SERVICE_PAYMENT = 5
    PREVIEW = 6


class _Model(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=False,
        arbitrary_types_allowed=True,
    )


class Party(_Model):
    name: str = ""
    company_name: str = ""
    email: str = ""
    mobile_number: str = ""
    postal_code: str = Field(default="", alias="pincode")
    area: str = ""
    city: str = ""
    district: str = ""
    state: str = ""
    street: str = Field(default="", alias="locality")
    building: str = Field(default="", alias="flatBuilding")
    landmark: str = ""
    tax_id: str = Field(default="", alias="gstNumber")
    website: str = ""
    address_type: str = "Home"
    # Areas offered by the last postal-code resolution; empty until resolved.
    areas: list[str] = Field(default_factory=list, exclude=True)

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Party":
        """Build from a loosely-shaped API record, ignoring unknown keys."""
        known = {}
        for name, field in cls.model_fields.items():
            if name == "areas":
                continue
            key = field.alias or name
            if key in record and record[key] is not None:
                known[name] = str(record[key])
            elif name in record and record[name] is not None:
                known[name] = str(record[name])
        return cls(**known)


class DimensionSet(_Model):
    length: str = ""
    breadth: str = ""
    height: str = ""
    unit: str = "cm"


class Attachment(_Model):
    name: str
    url: str
    mime_type: str = ""
    # PreviewHandle of the local copy, if one is held
    preview: Any = Field(default=None, exclude=True)


class ShipmentDetails(_Model):
    nature: str = Field(default="", alias="natureOfConsignment")
    service: str = Field(default="", alias="services")
    mode: str = ""
    insurance: str = ""
    insurance_company_name: str = ""
    insurance_policy_number: str = ""
    insurance_policy_date: str = ""
    insurance_valid_upto: str = ""
    insurance_premium_amount: str = ""
    insurance_document: Optional[Attachment] = None
    packages_count: str = ""
    package_type: str = ""
    others: str = ""
    content_description: str = ""
    declared_value: str = ""
    dimensions: list[DimensionSet] = Field(default_factory=lambda: [DimensionSet()])
    actual_weight: str = ""
    volumetric_weight: float = 0.0
    chargeable_weight: float = 0.0
    package_images: list[Attachment] = Field(default_factory=list)
    declaration_document: Optional[Attachment] = None
    special_instructions: str = ""

    @computed_field  # type: ignore[prop-decorator]
    @property
    def risk_coverage(self) -> str:
        return RISK_COVERAGE.get(self.insurance, "")

    def clear_insurance_details(self) -> None:
        self.insurance_company_name = ""
        self.insurance_policy_number = ""
        self.insurance_policy_date = ""
        self.insurance_valid_upto = ""
        self.insurance_premium_amount = ""
        self.insurance_document = None


class Quote(_Model):
    base_price: float
    tax: float
    final_price: float
    zone: str
    rate_key: str
    transport_mode: str
    chargeable_weight: float
    minimum_weight_applied: bool = False


class BookingDraft(_Model):
    origin: Party = Field(default_factory=lambda: Party(address_type="Corporate"))
    destination: Party = Field(default_factory=Party)
    shipment: ShipmentDetails = Field(default_factory=ShipmentDetails)
    quote: Optional[Quote] = None
    payment_type: str = ""
    use_default_origin: bool = True
    step: Step = Field(default=Step.ORIGIN, exclude=True)

    @classmethod
    def start(cls, default_origin: Party | None = None) -> "BookingDraft":
        draft = cls(use_default_origin=default_origin is not None)
        if default_origin is not None:
            draft.origin = default_origin.model_copy(update={"address_type": "Corporate"})
        return draft


class PostalResolution(_Model):
    """What the postal-code service knows about one code."""

    postal_code: str = Field(default="", alias="pincode")
    city: str = ""
    state: str = ""
    district: str = ""
    areas: list[str] = Field(default_factory=list)
