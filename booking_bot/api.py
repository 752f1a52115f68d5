"""HTTP client for the corporate booking service."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import aiohttp

from booking_bot.draft import Party, PostalResolution
from booking_bot.errors import LookupFailure, SubmissionError, UploadFailure
from booking_bot.gate import ConsignmentGate
from booking_bot.rating import RateTable
from booking_bot.validation import digits

logger = logging.getLogger(__name__)

PACKAGE_IMAGES_ENDPOINT = "/api/upload/package-images"
DECLARATION_ENDPOINT = "/api/upload/corporate/declaration-document"
INSURANCE_ENDPOINT = "/api/upload/corporate/insurance-document"


def _dedupe_key(party: Party) -> tuple[str, str, str, str]:
    return (party.mobile_number, party.name, party.building, party.postal_code)


def profile_to_party(corporate: dict[str, Any]) -> Party:
    """Corporate profile → default origin address."""
    return Party(
        name=corporate.get("companyName") or "",
        company_name=corporate.get("companyName") or "",
        email=corporate.get("email") or "",
        mobile_number=digits(corporate.get("contactNumber") or ""),
        postal_code=str(corporate.get("pin") or ""),
        city=corporate.get("city") or "",
        state=corporate.get("state") or "",
        street=corporate.get("companyAddress") or "",
        building=corporate.get("flatNumber") or "",
        landmark=corporate.get("landmark") or "",
        area=corporate.get("locality") or "",
        tax_id=corporate.get("gstNumber") or "",
        address_type="Corporate",
    )


class BookingApi:
    """One ``aiohttp.ClientSession`` per process, bearer token on every call."""

    def __init__(self, base_url: str, token: str = "", timeout: float = 20) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None

    def _client(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
            self._session = aiohttp.ClientSession(timeout=self.timeout, headers=headers)
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "BookingApi":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _get_json(self, path: str) -> tuple[int, Any]:
        async with self._client().get(f"{self.base_url}{path}") as resp:
            if resp.content_type != "application/json":
                body = await resp.text()
                logger.warning("GET %s → %s non-JSON: %s", path, resp.status, body[:200])
                return resp.status, None
            try:
                return resp.status, await resp.json()
            except ValueError as exc:
                logger.warning("GET %s → %s malformed JSON: %s", path, resp.status, exc)
                return resp.status, None

    # ── Lookups ────────────────────────────────────────────────────

    async def resolve_postal_code(self, code: str) -> PostalResolution:
        try:
            status, data = await self._get_json(f"/api/pincode/{code}/simple")
        except (aiohttp.ClientError, TimeoutError) as exc:
            logger.warning("Pincode lookup %s failed: %s", code, exc)
            raise LookupFailure("Pincode lookup is unavailable, please fill city and state by hand") from exc
        if status >= 400 or not isinstance(data, dict):
            raise LookupFailure(f"Pincode {code} not found")
        return PostalResolution(
            postal_code=code,
            city=data.get("city") or "",
            state=data.get("state") or "",
            district=data.get("district") or "",
            areas=[str(a) for a in data.get("areas") or []],
        )

    async def lookup_previous_destinations(self, phone: str) -> list[Party]:
        clean = digits(phone)
        try:
            status, data = await self._get_json(f"/api/corporate/destinations/phone/{clean}")
        except (aiohttp.ClientError, TimeoutError) as exc:
            logger.warning("Destination lookup failed: %s", exc)
            raise LookupFailure("Could not look up previous destinations") from exc
        if status >= 400 or not isinstance(data, dict):
            error = data.get("error") if isinstance(data, dict) else None
            raise LookupFailure(error or "Failed to fetch destinations")
        if not data.get("success"):
            return []

        seen: set[tuple[str, str, str, str]] = set()
        records: list[Party] = []
        for raw in data.get("data") or []:
            party = Party.from_record(raw)
            key = _dedupe_key(party)
            if key in seen:
                continue
            seen.add(key)
            records.append(party)
        return records

    async def get_rate_table(self) -> RateTable | None:
        try:
            status, data = await self._get_json("/api/corporate/pricing")
        except (aiohttp.ClientError, TimeoutError) as exc:
            logger.warning("Pricing fetch failed: %s", exc)
            return None
        if status == 404 or not isinstance(data, dict):
            logger.info("No pricing assigned to this account")
            return None
        if status >= 400:
            logger.warning("Pricing fetch returned %s", status)
            return None
        pricing = data.get("pricing") or data.get("data") or data
        return RateTable.from_payload(pricing)

    async def get_consignment_availability(self) -> ConsignmentGate:
        try:
            status, data = await self._get_json("/api/corporate/consignment/check")
        except (aiohttp.ClientError, TimeoutError) as exc:
            logger.warning("Consignment check failed: %s", exc)
            return ConsignmentGate.unavailable("Could not check consignment availability. Please try again later.")
        if status >= 400 or not isinstance(data, dict):
            message = data.get("message") if isinstance(data, dict) else None
            return ConsignmentGate.unavailable(message or "Could not check consignment availability.")
        return ConsignmentGate.from_payload(data)

    async def get_profile(self) -> Party | None:
        try:
            status, data = await self._get_json("/api/corporate/profile")
        except (aiohttp.ClientError, TimeoutError) as exc:
            logger.warning("Profile fetch failed: %s", exc)
            return None
        if status >= 400 or not isinstance(data, dict):
            return None
        corporate = data.get("corporate") or data.get("data") or {}
        return profile_to_party(corporate) if corporate else None

    # ── Uploads / booking ──────────────────────────────────────────

    async def upload_file(
        self,
        path: Path,
        field: str,
        endpoint: str,
        filename: str | None = None,
        mime_type: str = "application/octet-stream",
    ) -> str:
        form = aiohttp.FormData()
        try:
            with open(path, "rb") as fh:
                form.add_field(field, fh.read(), filename=filename or path.name, content_type=mime_type)
            async with self._client().post(f"{self.base_url}{endpoint}", data=form) as resp:
                data = await resp.json(content_type=None)
                status = resp.status
        except (OSError, aiohttp.ClientError, TimeoutError, ValueError) as exc:
            logger.warning("Upload to %s failed: %s", endpoint, exc)
            raise UploadFailure("Upload failed, please try again") from exc

        if status >= 400 or not isinstance(data, dict) or not data.get("success", True):
            error = data.get("error") or data.get("message") if isinstance(data, dict) else None
            raise UploadFailure(error or f"Upload failed ({status})")
        if data.get("file"):
            return str(data["file"]["url"])
        files = data.get("files") or []
        if files and files[0].get("url"):
            return str(files[0]["url"])
        raise UploadFailure("Upload response did not include a file URL")

    async def submit_booking(self, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            async with self._client().post(f"{self.base_url}/api/corporate/bookings", json=payload) as resp:
                if resp.content_type != "application/json":
                    body = await resp.text()
                    logger.error("Booking endpoint returned non-JSON (%s): %s", resp.status, body[:500])
                    raise SubmissionError("Server returned an invalid response. Please try again.")
                data = await resp.json()
                ok = resp.status < 400
        except ValueError as exc:
            logger.error("Booking endpoint returned malformed JSON: %s", exc)
            raise SubmissionError("Server returned an invalid response. Please try again.") from exc
        except (aiohttp.ClientError, TimeoutError) as exc:
            logger.error("Booking request failed: %s", exc)
            raise SubmissionError("Failed to submit booking to server. Please check your connection and try again.") from exc

        if not isinstance(data, dict):
            raise SubmissionError("Server returned an invalid response. Please try again.")
        if not ok:
            data.setdefault("success", False)
        return data
