"""Public tracking-code search over stored requests."""

import logging
import re
from typing import Any, Dict, Optional

from docutrack.db.request_store import RequestStore
from docutrack.models.request import DocumentRequest
from docutrack.schemas.schemas import TrackingResult

logger = logging.getLogger("docutrack.tracking")

FORMAT_EXAMPLE = "SURNAME_NUMBER (e.g., ERASMO_12345)"
MULTI_CODE_SEPARATORS = (",", ";", "\n", "|", "&")
CODE_LIKE = re.compile(r"^[A-Z_]+_\d+$", re.IGNORECASE)
SURNAME_PATTERN = re.compile(r"^[A-Z]{2,}$", re.IGNORECASE)
NUMBER_PATTERN = re.compile(r"^\d{2,}$")

ERROR_INVALID_FORMAT = "Invalid tracking code format"
ERROR_MULTIPLE_CODES = "Multiple tracking codes not allowed"
ERROR_SURNAME_MISMATCH = "Surname mismatch"
ERROR_NOT_FOUND = "Tracking code not found"


def is_valid_format(code) -> bool:
    """``SURNAME_NUMBER``: one underscore, 2+ letters, 2+ digits."""
    if not isinstance(code, str):
        return False
    code = code.strip()
    if code.count("_") != 1:
        return False
    surname, number = code.split("_")
    return bool(SURNAME_PATTERN.match(surname) and NUMBER_PATTERN.match(number))


def has_multiple_codes(text: str) -> bool:
    for separator in MULTI_CODE_SEPARATORS:
        if separator in text:
            parts = [p.strip() for p in text.split(separator) if p.strip()]
            if sum(1 for p in parts if CODE_LIKE.match(p)) > 1:
                return True
    parts = text.split()
    return sum(1 for p in parts if CODE_LIKE.match(p)) > 1


def public_view(request: DocumentRequest) -> Dict[str, Any]:
    """Fields an applicant may see for their own request."""
    surname = request.tracking_code.split("_", 1)[0]
    documents = request.requested_documents.get("documents") or []
    return {
        "trackingCode": request.tracking_code,
        "surname": surname,
        "controlNumber": request.control_number,
        "status": request.status,
        "documentType": ", ".join(documents),
        "dateRequested": request.created_at.date().isoformat(),
    }


class TrackingService:
    def __init__(self, request_store: RequestStore):
        self.request_store = request_store

    def _surname_for_number(self, number: str) -> Optional[str]:
        for request in self.request_store.all():
            surname, _, embedded = request.tracking_code.upper().partition("_")
            if embedded == number:
                return surname
        return None

    def search_tracking_code(self, tracking_code) -> TrackingResult:
        if not isinstance(tracking_code, str) or not tracking_code.strip():
            return TrackingResult(
                success=False,
                error=ERROR_INVALID_FORMAT,
                message=f"Tracking code cannot be empty. Please use format: {FORMAT_EXAMPLE}",
            )

        code = tracking_code.strip()
        if has_multiple_codes(code):
            return TrackingResult(
                success=False,
                error=ERROR_MULTIPLE_CODES,
                message=f"Please enter only one tracking code at a time. Use format: {FORMAT_EXAMPLE}",
            )
        if not is_valid_format(code):
            return TrackingResult(
                success=False,
                error=ERROR_INVALID_FORMAT,
                message=f"Invalid tracking code format. Please use format: {FORMAT_EXAMPLE}",
            )

        surname, number = code.upper().split("_")
        known_surname = self._surname_for_number(number)
        if known_surname is not None and known_surname != surname:
            logger.info("Tracking search surname mismatch for number %s", number)
            return TrackingResult(
                success=False,
                error=ERROR_SURNAME_MISMATCH,
                message=(
                    "The surname provided does not match our records for this control number. "
                    "Please verify your tracking code."
                ),
            )

        request = self.request_store.get_by_tracking_code(code)
        if request is None:
            return TrackingResult(
                success=False,
                error=ERROR_NOT_FOUND,
                message=f'Tracking code "{code}" does not exist in our system. Please verify and try again.',
            )
        return TrackingResult(success=True, message="Tracking code found", data=public_view(request))
