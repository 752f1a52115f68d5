"""Volumetric and chargeable weight.

Pure functions: same inputs, same outputs, no state.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from booking_bot.draft import DimensionSet, ShipmentDetails

VOLUMETRIC_DIVISOR = 5000     # cm³ per kg
CM_PER_INCH = 2.54


def parse_number(value: str | float | int | None) -> float:
    """Lenient numeric parse: '2,5' -> 2.5, blanks and garbage -> 0."""
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0
    raw = value.replace(",", ".").strip()
    try:
        num = float(raw)
    except ValueError:
        return 0.0
    return num if math.isfinite(num) else 0.0


def round2(value: float) -> float:
    return float(f"{value:.2f}")


def to_centimetres(value: str | float | None, unit: str) -> float:
    num = parse_number(value)
    return num * CM_PER_INCH if unit == "in" else num


def volumetric_weight(length: str | float | None, breadth: str | float | None,
                      height: str | float | None, unit: str = "cm") -> float:
    l_cm = to_centimetres(length, unit)
    b_cm = to_centimetres(breadth, unit)
    h_cm = to_centimetres(height, unit)
    if l_cm <= 0 or b_cm <= 0 or h_cm <= 0:
        return 0.0
    result = (l_cm * b_cm * h_cm) / VOLUMETRIC_DIVISOR
    if not math.isfinite(result) or result <= 0:
        return 0.0
    return round2(result)


def chargeable_weight(actual: str | float | None, volumetric: float) -> float:
    weight = max(parse_number(actual), volumetric)
    if not math.isfinite(weight) or weight <= 0:
        return 0.0
    return round2(weight)


@dataclass(frozen=True)
class WeightBreakdown:
    actual: float
    volumetric: float
    chargeable: float

    @classmethod
    def from_dimensions(cls, dims: "DimensionSet | None", actual: str | None) -> "WeightBreakdown":
        vol = 0.0
        if dims is not None:
            vol = volumetric_weight(dims.length, dims.breadth, dims.height, dims.unit)
        return cls(
            actual=parse_number(actual),
            volumetric=vol,
            chargeable=chargeable_weight(actual, vol),
        )

    @classmethod
    def from_shipment(cls, shipment: "ShipmentDetails") -> "WeightBreakdown":
        # Only the first dimension set feeds the volumetric formula.
        first = shipment.dimensions[0] if shipment.dimensions else None
        return cls.from_dimensions(first, shipment.actual_weight)
