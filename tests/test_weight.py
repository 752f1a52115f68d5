from __future__ import annotations

import pytest

from booking_bot.draft import DimensionSet, ShipmentDetails
from booking_bot.weight import (
    WeightBreakdown,
    chargeable_weight,
    parse_number,
    round2,
    to_centimetres,
    volumetric_weight,
)


# =============================================================================
# parse_number
# =============================================================================


class TestParseNumber:
    def test_plain_and_comma_decimals(self):
        assert parse_number("2.5") == 2.5
        assert parse_number("2,5") == 2.5

    def test_blank_and_garbage_are_zero(self):
        assert parse_number("") == 0.0
        assert parse_number(None) == 0.0
        assert parse_number("abc") == 0.0

    def test_non_finite_is_zero(self):
        assert parse_number("inf") == 0.0
        assert parse_number(float("nan")) == 0.0

    def test_round2(self):
        assert round2(1.234) == 1.23
        assert round2(3.2774128) == 3.28


# =============================================================================
# volumetric / chargeable
# =============================================================================


class TestVolumetric:
    def test_centimetres(self):
        """30 × 20 × 10 cm / 5000 = 1.2 kg."""
        assert volumetric_weight("30", "20", "10", "cm") == pytest.approx(1.2)

    def test_inches_converted_first(self):
        # 10 in = 25.4 cm per side
        expected = round(25.4 ** 3 / 5000, 2)
        assert volumetric_weight("10", "10", "10", "in") == pytest.approx(expected)
        assert to_centimetres("10", "in") == pytest.approx(25.4)

    def test_missing_dimension_gives_zero(self):
        assert volumetric_weight("30", "", "10") == 0.0
        assert volumetric_weight("30", "-5", "10") == 0.0


class TestChargeable:
    def test_actual_wins_when_heavier(self):
        assert chargeable_weight("2", 1.2) == 2.0

    def test_volumetric_wins_when_heavier(self):
        assert chargeable_weight("1", 1.2) == 1.2

    def test_nothing_known(self):
        assert chargeable_weight("", 0.0) == 0.0


# =============================================================================
# WeightBreakdown
# =============================================================================


class TestWeightBreakdown:
    def test_from_dimensions(self):
        w = WeightBreakdown.from_dimensions(DimensionSet(length="30", breadth="20", height="10"), "2")
        assert w.volumetric == pytest.approx(1.2)
        assert w.chargeable == pytest.approx(2.0)
        assert w.actual == 2.0

    def test_only_first_dimension_set_counts(self):
        shipment = ShipmentDetails(
            actual_weight="1",
            dimensions=[
                DimensionSet(length="30", breadth="20", height="10"),
                DimensionSet(length="100", breadth="100", height="100"),
            ],
        )
        w = WeightBreakdown.from_shipment(shipment)
        assert w.volumetric == pytest.approx(1.2)
        assert w.chargeable == pytest.approx(1.2)

    def test_no_dimensions(self):
        w = WeightBreakdown.from_dimensions(None, "4")
        assert w.volumetric == 0.0
        assert w.chargeable == 4.0
