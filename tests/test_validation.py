from __future__ import annotations

from booking_bot.draft import Attachment, BookingDraft, Party, Step
from booking_bot.validation import (
    is_valid_mobile,
    is_valid_postal_code,
    is_valid_tax_id,
    is_valid_website,
    validate_party,
    validate_step,
)


# =============================================================================
# Field rules
# =============================================================================


class TestFieldRules:
    def test_mobile(self):
        assert is_valid_mobile("9876543210")
        assert is_valid_mobile("98765 43210")
        assert not is_valid_mobile("5876543210")
        assert not is_valid_mobile("987654321")

    def test_postal_code(self):
        assert is_valid_postal_code("781001")
        assert not is_valid_postal_code("78100")
        assert not is_valid_postal_code("78100A")

    def test_tax_id(self):
        assert is_valid_tax_id("")
        assert is_valid_tax_id("22ABCDE1234FZ12")
        assert not is_valid_tax_id("22ABCDE1234")
        assert not is_valid_tax_id("AAABCDE1234FZ12")

    def test_website(self):
        assert is_valid_website("")
        assert is_valid_website("example.com")
        assert is_valid_website("https://example.com/about")
        assert is_valid_website("localhost:8080")
        assert is_valid_website("http://127.0.0.1:5000")
        assert not is_valid_website("not a site")


# =============================================================================
# Party validation
# =============================================================================


class TestValidateParty:
    def test_complete_party_passes(self, recipient: Party):
        assert validate_party(recipient, "destination") == {}

    def test_missing_fields_reported_with_prefix(self):
        errors = validate_party(Party(), "destination")
        assert set(errors) >= {
            "destination.name",
            "destination.email",
            "destination.mobile_number",
            "destination.postal_code",
            "destination.street",
            "destination.building",
        }

    def test_area_required_only_after_resolution(self, recipient: Party):
        recipient.areas = ["Pan Bazar", "Fancy Bazar"]
        assert "destination.area" in validate_party(recipient, "destination")
        recipient.area = "Pan Bazar"
        assert validate_party(recipient, "destination") == {}

    def test_partial_tax_id_rejected(self, recipient: Party):
        recipient.tax_id = "22ABC"
        assert "destination.tax_id" in validate_party(recipient, "destination")


# =============================================================================
# Step validation
# =============================================================================


class TestValidateStep:
    def test_default_origin_skips_field_checks(self):
        draft = BookingDraft(use_default_origin=True)
        assert validate_step(Step.ORIGIN, draft) == {}

    def test_custom_origin_checked(self):
        draft = BookingDraft(use_default_origin=False)
        assert "origin.name" in validate_step(Step.ORIGIN, draft)

    def test_with_insurance_needs_policy_details(self):
        draft = BookingDraft()
        draft.shipment.nature = "DOX"
        draft.shipment.insurance = "With insurance"
        errors = validate_step(Step.SHIPMENT_NATURE, draft)
        assert "shipment.insurance_company_name" in errors
        assert "shipment.insurance_document" in errors
        assert "shipment.risk_coverage" not in errors

    def test_declaration_needed_when_value_declared(self):
        draft = BookingDraft()
        s = draft.shipment
        s.packages_count = "1"
        s.package_type = "Books"
        s.actual_weight = "1"
        s.declared_value = "1000"
        s.package_images.append(Attachment(name="a.jpg", url="u"))
        assert validate_step(Step.PACKAGE_DETAILS, draft) == {
            "shipment.declaration_document": "Declaration document is required when declared value is provided"
        }

    def test_others_needs_description(self):
        draft = BookingDraft()
        draft.shipment.package_type = "Others"
        assert "shipment.others" in validate_step(Step.PACKAGE_DETAILS, draft)

    def test_mode_required_for_standard_only(self):
        draft = BookingDraft(payment_type="TP")
        draft.shipment.service = "Standard"
        assert validate_step(Step.SERVICE_PAYMENT, draft) == {"shipment.mode": "Mode is required"}
        draft.shipment.service = "Priority"
        assert validate_step(Step.SERVICE_PAYMENT, draft) == {}

    def test_preview_has_no_rules(self):
        assert validate_step(Step.PREVIEW, BookingDraft()) == {}
