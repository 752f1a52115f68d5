"""Consignment capacity gate."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from booking_bot.errors import CapacityExhausted, WorkflowDisabled

logger = logging.getLogger(__name__)

NO_ASSIGNMENT_MESSAGE = (
    "No consignment numbers assigned to your corporate account. "
    "Please contact admin to get consignment numbers assigned before making bookings."
)


@dataclass
class ConsignmentGate:
    has_assignment: bool
    available_count: int = 0
    message: str = ""

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "ConsignmentGate":
        summary = data.get("summary") or {}
        available = summary.get("availableCount", data.get("availableCount", 0))
        try:
            available = int(available or 0)
        except (TypeError, ValueError):
            available = 0
        return cls(
            has_assignment=bool(data.get("hasAssignment")),
            available_count=max(available, 0),
            message=str(data.get("message") or ""),
        )

    @classmethod
    def unavailable(cls, message: str) -> "ConsignmentGate":
        return cls(has_assignment=False, available_count=0, message=message)

    @property
    def disabled(self) -> bool:
        """No assignment at all: the whole workflow is read-only."""
        return not self.has_assignment

    def ensure_enabled(self) -> None:
        if self.disabled:
            raise WorkflowDisabled(self.message or NO_ASSIGNMENT_MESSAGE)

    def check_submit(self) -> None:
        self.ensure_enabled()
        if self.available_count == 0:
            raise CapacityExhausted(
                "All consignment numbers have been used. "
                "Please contact admin to get more consignment numbers assigned."
            )

    def consume(self) -> None:
        if self.available_count > 0:
            self.available_count -= 1
        logger.info("Consignment used, %d left", self.available_count)
