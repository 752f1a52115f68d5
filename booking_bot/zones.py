"""Destination postal code → pricing zone."""

from __future__ import annotations

import logging
import re
from enum import Enum

logger = logging.getLogger(__name__)

ASSAM_RANGE = (780000, 788999)
NORTH_EAST_RANGE = (790000, 799999)
_LEADING_DIGITS = re.compile(r"\d+")


class Zone(str, Enum):
    ASSAM = "Assam"
    NORTH_EAST = "NorthEast"
    REST_OF_INDIA = "RestOfIndia"


# Keys used by the corporate rate table for each zone
LOC_ASSAM = "assam"
LOC_NE_AIR = "neByAirAgtImp"
LOC_NE_SURFACE = "neBySurface"
LOC_REST = "restOfIndia"
LOCATIONS = (LOC_ASSAM, LOC_NE_AIR, LOC_NE_SURFACE, LOC_REST)


def _as_int(postal_code: str | None) -> int | None:
    """Leading digits of the code, e.g. ``"781001a"`` reads as 781001.

    Codes typed into the draft are already digits only; this covers codes
    that arrive from looked-up records.
    """
    code = (postal_code or "").strip()
    match = _LEADING_DIGITS.match(code)
    if match is None:
        if code:
            logger.warning("Non-numeric postal code %r classified as %s", code, Zone.REST_OF_INDIA.value)
        return None
    return int(match.group())


def classify(postal_code: str | None) -> Zone:
    pin = _as_int(postal_code)
    if pin is None:
        return Zone.REST_OF_INDIA
    if ASSAM_RANGE[0] <= pin <= ASSAM_RANGE[1]:
        return Zone.ASSAM
    if NORTH_EAST_RANGE[0] <= pin <= NORTH_EAST_RANGE[1]:
        return Zone.NORTH_EAST
    return Zone.REST_OF_INDIA


def rate_location(postal_code: str | None, is_air: bool = False) -> str:
    """Rate-table column for a destination; North East splits by air/surface."""
    zone = classify(postal_code)
    if zone is Zone.ASSAM:
        return LOC_ASSAM
    if zone is Zone.NORTH_EAST:
        return LOC_NE_AIR if is_air else LOC_NE_SURFACE
    return LOC_REST
