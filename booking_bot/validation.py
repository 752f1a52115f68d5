"""Field rules and per-step validation.

Every validator returns a ``{field: message}`` map; an empty map means the
step may advance. Field keys match the ``set_field`` keys of the workflow
so the bot can point the user straight at the broken input.
"""

from __future__ import annotations

import re

from booking_bot.draft import OTHERS_PACKAGE, WITH_INSURANCE, BookingDraft, Party, Step

MOBILE_RE = re.compile(r"^[6-9]\d{9}$")
POSTAL_RE = re.compile(r"^\d{6}$")
TAX_ID_RE = re.compile(r"^\d{2}[A-Z]{5}\d{4}[A-Z]{2}\d{2}$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
URL_RE = re.compile(r"^(https?://)?([\da-z.-]+)\.([a-z.]{2,6})([/\w .-]*)*/?$", re.IGNORECASE)
LOCALHOST_RE = re.compile(
    r"^(https?://)?(localhost|127\.0\.0\.1|0\.0\.0\.0)(:\d+)?([/\w .-]*)*/?$", re.IGNORECASE,
)


def digits(value: str) -> str:
    return re.sub(r"\D", "", value or "")


def is_valid_mobile(value: str) -> bool:
    return bool(MOBILE_RE.match(digits(value)))


def is_valid_postal_code(value: str) -> bool:
    return bool(POSTAL_RE.match((value or "").strip()))


def is_valid_tax_id(value: str) -> bool:
    """Empty is fine; otherwise the full 15-character positional format."""
    value = (value or "").strip().upper()
    return not value or bool(TAX_ID_RE.match(value))


def is_valid_website(value: str) -> bool:
    value = (value or "").strip()
    if not value:
        return True
    if URL_RE.match(value) or LOCALHOST_RE.match(value):
        return True
    # Bare domains the pattern misses, e.g. long TLDs
    if len(value) >= 3 and "." in value:
        parts = re.sub(r"^https?://", "", value, flags=re.IGNORECASE).split(".")
        return len(parts) >= 2 and all(parts)
    return False


def validate_party(party: Party, prefix: str) -> dict[str, str]:
    errors: dict[str, str] = {}
    if not party.name.strip():
        errors[f"{prefix}.name"] = "Name is required"
    if not party.email.strip():
        errors[f"{prefix}.email"] = "Email is required"
    elif not EMAIL_RE.match(party.email.strip()):
        errors[f"{prefix}.email"] = "Please enter a valid email address"
    if not party.mobile_number.strip():
        errors[f"{prefix}.mobile_number"] = "Mobile number is required"
    elif not is_valid_mobile(party.mobile_number):
        errors[f"{prefix}.mobile_number"] = "Please enter a valid 10-digit mobile number"
    if not party.postal_code.strip():
        errors[f"{prefix}.postal_code"] = "Pincode is required"
    elif not is_valid_postal_code(party.postal_code):
        errors[f"{prefix}.postal_code"] = "Pincode must be 6 digits"
    elif party.areas and not party.area.strip():
        errors[f"{prefix}.area"] = "Area is required"
    if not party.street.strip():
        errors[f"{prefix}.street"] = "Locality is required"
    if not party.building.strip():
        errors[f"{prefix}.building"] = "Flat/Building is required"
    if not is_valid_tax_id(party.tax_id):
        errors[f"{prefix}.tax_id"] = "Please complete the 15-digit GST number or leave it empty"
    if not is_valid_website(party.website):
        errors[f"{prefix}.website"] = (
            "Please enter a valid website URL (e.g., example.com or https://example.com)"
        )
    return errors


def validate_origin(draft: BookingDraft) -> dict[str, str]:
    # The default address comes from the corporate profile as-is.
    if draft.use_default_origin:
        return {}
    return validate_party(draft.origin, "origin")


def validate_destination(draft: BookingDraft) -> dict[str, str]:
    return validate_party(draft.destination, "destination")


def validate_shipment_nature(draft: BookingDraft) -> dict[str, str]:
    s = draft.shipment
    errors: dict[str, str] = {}
    if not s.nature:
        errors["shipment.nature"] = "Nature of consignment is required"
    if not s.insurance:
        errors["shipment.insurance"] = "Insurance selection is required"
    if not s.risk_coverage:
        errors["shipment.risk_coverage"] = "Risk coverage is required"
    if s.insurance == WITH_INSURANCE:
        if not s.insurance_company_name.strip():
            errors["shipment.insurance_company_name"] = "Insurance company name is required"
        if not s.insurance_policy_number.strip():
            errors["shipment.insurance_policy_number"] = "Insurance policy number is required"
        if not s.insurance_policy_date.strip():
            errors["shipment.insurance_policy_date"] = "Insurance policy date is required"
        if not s.insurance_valid_upto.strip():
            errors["shipment.insurance_valid_upto"] = "Insurance valid upto date is required"
        if s.insurance_document is None:
            errors["shipment.insurance_document"] = "Insurance document is required"
    return errors


def validate_package_details(draft: BookingDraft) -> dict[str, str]:
    s = draft.shipment
    errors: dict[str, str] = {}
    if not s.packages_count.strip():
        errors["shipment.packages_count"] = "No. of Packages is required"
    if not s.package_type:
        errors["shipment.package_type"] = "Package Type is required"
    elif s.package_type == OTHERS_PACKAGE and not s.others.strip():
        errors["shipment.others"] = "Please specify the package type"
    if not s.declared_value.strip():
        errors["shipment.declared_value"] = "Declared Value is required"
    if not s.actual_weight.strip():
        errors["shipment.actual_weight"] = "Weight is required"
    if not s.package_images:
        errors["shipment.package_images"] = "At least one package image is required"
    if s.declared_value.strip() and s.declaration_document is None:
        errors["shipment.declaration_document"] = (
            "Declaration document is required when declared value is provided"
        )
    return errors


def validate_service_payment(draft: BookingDraft) -> dict[str, str]:
    errors: dict[str, str] = {}
    if not draft.shipment.service:
        errors["shipment.service"] = "Service is required"
    elif draft.shipment.service == "Standard" and not draft.shipment.mode:
        errors["shipment.mode"] = "Mode is required"
    if not draft.payment_type:
        errors["payment_type"] = "Payment type is required"
    return errors


def validate_step(step: Step, draft: BookingDraft) -> dict[str, str]:
    validators = {
        Step.ORIGIN: validate_origin,
        Step.DESTINATION: validate_destination,
        Step.SHIPMENT_NATURE: validate_shipment_nature,
        Step.PACKAGE_DETAILS: validate_package_details,
        Step.SERVICE_PAYMENT: validate_service_payment,
    }
    check = validators.get(step)
    # Preview is review-only
    return check(draft) if check else {}
