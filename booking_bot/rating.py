"""Corporate rating engine.

The nested pricing document served by the booking API is flattened once
into a single lookup keyed by ``(nature, tier, location, slab)``; every
price is then one or two dictionary reads.

Standard pricing
    DOX       slab rates by service; above 500 the top slab plus one
              ``add500gm`` step per started 500.
    NON-DOX   per-kg rate by transport (air / surface).

Reverse pricing (NON-DOX from a non-default origin)
    per-kg rate by destination region (Assam / North East only), transport
    and delivery type, applied to the chargeable weight raised to a
    per-mode minimum.

Tax is a flat 18% on the base price.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Mapping

from booking_bot.draft import Quote
from booking_bot.weight import parse_number
from booking_bot.zones import LOCATIONS, Zone, classify, rate_location

logger = logging.getLogger(__name__)

TAX_RATE = 0.18

# Slab weights are compared against the chargeable weight as-is.
SLAB_STEP = 500
SLAB_ADDITIONAL = "add500gm"

# Ordered (upper bound, slab key) per DOX service tier; first match wins.
DOX_SLABS: dict[str, tuple[tuple[float, str], ...]] = {
    "Priority": ((500, "01gm-500gm"),),
    "Standard": ((250, "01gm-250gm"), (500, "251gm-500gm")),
}

# Source section of the pricing document for each DOX tier
DOX_SECTIONS = {"Priority": "priorityPricing", "Standard": "doxPricing"}

NON_DOX_SECTIONS = {"air": "nonDoxAirPricing", "surface": "nonDoxSurfacePricing"}

# Reverse pricing
REVERSE_MINIMUM_WEIGHT = {"Road": 500, "Surface": 100, "Air": 25}
REVERSE_TRANSPORT = {"Air": "byFlight", "Surface": "byTrain", "Road": "byRoad"}
REVERSE_REGIONS = {Zone.ASSAM: "toAssam", Zone.NORTH_EAST: "toNorthEast"}
# Location names the booking service stores for reverse bookings
REVERSE_LOCATION_LABELS = {"toAssam": "Assam", "toNorthEast": "North East"}
REVERSE_DELIVERY = ("normal", "priority")

PER_KG = "per-kg"
REVERSE = "REVERSE"

RateKey = tuple[str, str, str, str]


class RateTable:
    """Flat view over a corporate pricing document."""

    def __init__(self, rates: Mapping[RateKey, float]) -> None:
        self._rates = dict(rates)

    def __len__(self) -> int:
        return len(self._rates)

    def rate(self, nature: str, tier: str, location: str, slab: str) -> float:
        return self._rates.get((nature, tier, location, slab), 0.0)

    @classmethod
    def from_payload(cls, pricing: Mapping[str, Any]) -> "RateTable":
        rates: dict[RateKey, float] = {}

        def section(*path: str) -> Mapping[str, Any]:
            node: Any = pricing
            for key in path:
                node = node.get(key) if isinstance(node, Mapping) else None
            return node if isinstance(node, Mapping) else {}

        for tier, name in DOX_SECTIONS.items():
            slabs = [key for _, key in DOX_SLABS[tier]] + [SLAB_ADDITIONAL]
            for slab in slabs:
                row = section(name, slab)
                for loc in LOCATIONS:
                    rates[("DOX", tier, loc, slab)] = parse_number(row.get(loc))

        for tier, name in NON_DOX_SECTIONS.items():
            row = section(name)
            for loc in LOCATIONS:
                rates[("NON-DOX", tier, loc, PER_KG)] = parse_number(row.get(loc))

        for region in REVERSE_REGIONS.values():
            for transport in REVERSE_TRANSPORT.values():
                row = section("reversePricing", region, transport)
                for delivery in REVERSE_DELIVERY:
                    rates[(REVERSE, delivery, f"{region}.{transport}", PER_KG)] = (
                        parse_number(row.get(delivery))
                    )

        return cls(rates)


@dataclass(frozen=True)
class RatingInput:
    nature: str
    service: str
    mode: str
    destination_postal_code: str
    chargeable_weight: float
    use_default_origin: bool = True

    @property
    def is_priority(self) -> bool:
        return self.service == "Priority"

    @property
    def is_air(self) -> bool:
        return self.mode == "Air"

    @property
    def is_reverse(self) -> bool:
        return self.nature == "NON-DOX" and not self.use_default_origin


def compute(inp: RatingInput, table: RateTable | None) -> Quote | None:
    """Price a shipment, or None when there is nothing to price yet."""
    if table is None or not inp.destination_postal_code or inp.chargeable_weight <= 0:
        return None

    if inp.is_reverse:
        return _reverse_quote(inp, table)
    return _standard_quote(inp, table)


def _with_tax(price: float, **fields: Any) -> Quote:
    tax = price * TAX_RATE
    return Quote(base_price=price, tax=tax, final_price=price + tax, **fields)


def _reverse_quote(inp: RatingInput, table: RateTable) -> Quote | None:
    zone = classify(inp.destination_postal_code)
    region = REVERSE_REGIONS.get(zone)
    if region is None:
        logger.debug("Reverse pricing not offered for %s", zone.value)
        return None

    mode = inp.mode if inp.mode in ("Air", "Surface") else "Road"
    minimum = REVERSE_MINIMUM_WEIGHT[mode]
    weight = max(inp.chargeable_weight, minimum)
    transport = REVERSE_TRANSPORT[mode]
    delivery = "priority" if inp.is_priority else "normal"
    per_kg = table.rate(REVERSE, delivery, f"{region}.{transport}", PER_KG)

    return _with_tax(
        per_kg * weight,
        zone=zone.value,
        rate_key=region,
        transport_mode=transport,
        chargeable_weight=weight,
        minimum_weight_applied=weight > inp.chargeable_weight,
    )


def dox_price(table: RateTable, service: str, location: str, weight: float) -> float:
    tier = "Priority" if service == "Priority" else "Standard"
    slabs = DOX_SLABS[tier]
    for upper, slab in slabs:
        if weight <= upper:
            return table.rate("DOX", tier, location, slab)

    top_upper, top_slab = slabs[-1]
    steps = math.ceil((weight - top_upper) / SLAB_STEP)
    return (
        table.rate("DOX", tier, location, top_slab)
        + steps * table.rate("DOX", tier, location, SLAB_ADDITIONAL)
    )


def _standard_quote(inp: RatingInput, table: RateTable) -> Quote:
    zone = classify(inp.destination_postal_code)
    location = rate_location(inp.destination_postal_code, inp.is_air)
    weight = inp.chargeable_weight

    if inp.nature == "DOX":
        price = dox_price(table, inp.service, location, weight)
    else:
        tier = "air" if inp.is_air else "surface"
        price = table.rate("NON-DOX", tier, location, PER_KG) * weight

    return _with_tax(
        price,
        zone=zone.value,
        rate_key=location,
        transport_mode=inp.mode,
        chargeable_weight=weight,
    )
