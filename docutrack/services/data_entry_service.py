"""Data entry service: request form validation, creation and status workflow.

Each section validator is independent and returns a ``ValidationResult``;
``create_request`` commits only when the union of all section errors is
empty. Validators accept the portal's camelCase keys or their snake_case
equivalents and always emit camelCase sanitized data.
"""

import logging
import re
import secrets
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from docutrack.core.clock import Clock, utc_now
from docutrack.core.exceptions import ErrorCode, ResourceConflictError
from docutrack.db.request_store import RequestStore
from docutrack.models.request import INITIAL_STATUS, STATUS_ORDER, DocumentRequest
from docutrack.schemas.schemas import RequestResult, SessionView, ValidationResult
from docutrack.services.audit_service import AuditService

logger = logging.getLogger("docutrack.requests")

CONTROL_NUMBER_LENGTH = 5
MAX_AMOUNT = 9999.99
MAX_COMMENT_LENGTH = 1000
MAX_QUANTITY_PER_DOCUMENT = 100
MAX_TOTAL_COPIES = 100

VALID_YEARS = ("1st Year", "2nd Year", "3rd Year", "4th Year", "5th Year")
VALID_DOCUMENT_TYPES = (
    "Transcript of Records",
    "Diploma",
    "Certificate of Enrollment",
    "Certificate of Graduation",
    "Certificate of Good Moral Character",
    "Other",
)
OTHER_DOCUMENT = "Other"
VALID_RECEIVE_OPTIONS = ("pickup", "mail", "email")
VALID_XU_DOMAINS = ("@xu.edu.ph", "@my.xu.edu.ph")

NAME_PATTERN = re.compile(r"^[A-Za-z\s\-']+$")
MIN_SURNAME_LETTERS = 2
CONTROL_NUMBER_PATTERN = re.compile(r"^\d{5}$")
AMOUNT_PATTERN = re.compile(r"^-?\d+(\.\d+)?$")
PHONE_PATTERN = re.compile(r"^09\d{9}$")
PHONE_SEPARATORS = re.compile(r"[\s\-()]")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

_TRUE_STRINGS = {"true", "1", "yes"}
_FALSE_STRINGS = {"false", "0", "no"}

PERMISSION_CREATE = "create_requests"
PERMISSION_UPDATE_STATUS = "update_request_status"


def _snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _field(data: Dict[str, Any], name: str, default=None):
    """Read a camelCase key, falling back to its snake_case spelling."""
    if name in data:
        return data[name]
    return data.get(_snake(name), default)


def _text(value) -> str:
    return value.strip() if isinstance(value, str) else ""


def _quantity(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and re.fullmatch(r"-?\d+", value.strip()):
        return int(value.strip())
    return None


def _coerce_bool(value) -> Tuple[bool, bool]:
    """Return (ok, value) for a boolean-like input."""
    if value is None:
        return True, False
    if isinstance(value, bool):
        return True, value
    if isinstance(value, int) and value in (0, 1):
        return True, bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True, True
        if lowered in _FALSE_STRINGS:
            return True, False
    return False, False


class DataEntryService:
    """Validates and stores document requests for staff with the right permissions."""

    def __init__(self, request_store: RequestStore, audit: Optional[AuditService] = None, clock: Clock = utc_now):
        self.request_store = request_store
        self.audit = audit
        self._clock = clock

    # ---- Student details ----

    def validate_student_details(self, student_data: Optional[Dict[str, Any]]) -> ValidationResult:
        if not isinstance(student_data, dict):
            return ValidationResult(is_valid=False, errors=["Student details are required"])

        data = {
            "lastName": _text(_field(student_data, "lastName")),
            "firstName": _text(_field(student_data, "firstName")),
            "middleName": _text(_field(student_data, "middleName")),
            "year": _text(_field(student_data, "year")),
            "program": _text(_field(student_data, "program")),
            "contactNumber": _text(_field(student_data, "contactNumber")),
            "evaluator": _text(_field(student_data, "evaluator")),
        }
        errors: List[str] = []

        for key, label in (
            ("lastName", "Last Name"),
            ("firstName", "First Name"),
            ("year", "Year"),
            ("program", "Program"),
            ("contactNumber", "Contact Number"),
            ("evaluator", "Evaluator"),
        ):
            if not data[key]:
                errors.append(f"{label} is required")

        for key, label in (("lastName", "Last Name"), ("firstName", "First Name"), ("middleName", "Middle Name")):
            if data[key] and not NAME_PATTERN.match(data[key]):
                errors.append(f"{label} can only contain letters, spaces, hyphens, and apostrophes")
            elif key == "lastName" and data[key] and len(re.sub(r"[^A-Za-z]", "", data[key])) < MIN_SURNAME_LETTERS:
                # The tracking code is built from these letters
                errors.append(f"Last Name must contain at least {MIN_SURNAME_LETTERS} letters")

        if data["year"] and data["year"] not in VALID_YEARS:
            errors.append(f"Year must be one of: {', '.join(VALID_YEARS)}")

        if data["contactNumber"] and not PHONE_PATTERN.match(PHONE_SEPARATORS.sub("", data["contactNumber"])):
            errors.append("Invalid contact number format")

        if data["evaluator"] and not self._is_xu_email(data["evaluator"]):
            errors.append("Evaluator email must be from XU domain (@xu.edu.ph or @my.xu.edu.ph)")

        if errors:
            return ValidationResult(is_valid=False, errors=errors)

        data["lastName"] = data["lastName"].upper()
        data["firstName"] = data["firstName"].upper()
        data["middleName"] = data["middleName"].upper()
        data["evaluator"] = data["evaluator"].lower()
        return ValidationResult(is_valid=True, sanitized_data=data)

    @staticmethod
    def _is_xu_email(email: str) -> bool:
        if not EMAIL_PATTERN.match(email):
            return False
        return email.lower().endswith(VALID_XU_DOMAINS)

    # ---- Requested documents ----

    def validate_requested_documents(self, documents_data: Optional[Dict[str, Any]]) -> ValidationResult:
        if not isinstance(documents_data, dict):
            return ValidationResult(is_valid=False, errors=["Documents data is required"])

        documents = _field(documents_data, "documents")
        original = _field(documents_data, "originalQuantities")
        authenticated = _field(documents_data, "authenticatedQuantities")
        other_documents = _text(_field(documents_data, "otherDocuments"))

        if not isinstance(documents, list) or not documents:
            return ValidationResult(is_valid=False, errors=["At least one document must be selected"])
        if (
            not isinstance(original, list)
            or not isinstance(authenticated, list)
            or not len(documents) == len(original) == len(authenticated)
        ):
            return ValidationResult(is_valid=False, errors=["Document arrays must have matching lengths"])

        errors: List[str] = []
        original_counts: List[int] = []
        authenticated_counts: List[int] = []

        for doc_type, raw_original, raw_auth in zip(documents, original, authenticated):
            if doc_type not in VALID_DOCUMENT_TYPES:
                errors.append(f"Invalid document type: {doc_type}")

            original_qty = _quantity(raw_original)
            auth_qty = _quantity(raw_auth)
            if original_qty is None or not 0 <= original_qty <= MAX_QUANTITY_PER_DOCUMENT:
                errors.append(f"Original quantities must be between 0 and {MAX_QUANTITY_PER_DOCUMENT}")
            if auth_qty is None or not 0 <= auth_qty <= MAX_QUANTITY_PER_DOCUMENT:
                errors.append(f"Authenticated quantities must be between 0 and {MAX_QUANTITY_PER_DOCUMENT}")
            if (original_qty or 0) + (auth_qty or 0) == 0:
                errors.append("Each document must have at least 1 copy (original or authenticated)")

            original_counts.append(original_qty or 0)
            authenticated_counts.append(auth_qty or 0)

        total_original = sum(original_counts)
        total_authenticated = sum(authenticated_counts)
        if total_original + total_authenticated > MAX_TOTAL_COPIES:
            errors.append(f"Total copies per request cannot exceed {MAX_TOTAL_COPIES}")

        if OTHER_DOCUMENT in documents and not other_documents:
            errors.append('Other documents must be specified when "Other" is selected')

        if errors:
            return ValidationResult(is_valid=False, errors=errors)

        return ValidationResult(
            is_valid=True,
            sanitized_data={
                "documents": list(documents),
                "originalQuantities": original_counts,
                "authenticatedQuantities": authenticated_counts,
                "otherDocuments": other_documents,
                "totalDocuments": len(documents),
                "totalOriginalCopies": total_original,
                "totalAuthenticatedCopies": total_authenticated,
            },
        )

    # ---- Other details ----

    async def validate_other_details(self, other_details: Optional[Dict[str, Any]]) -> ValidationResult:
        if not isinstance(other_details, dict):
            return ValidationResult(is_valid=False, errors=["Other details are required"])

        errors: List[str] = []
        control_number = await self._validate_control_number(_field(other_details, "controlNumber"), errors)
        amount = self._validate_amount(_field(other_details, "amount"), errors)
        due_date = self._validate_due_date(_field(other_details, "dueDate"), errors)

        receive_option = _text(_field(other_details, "receiveOption"))
        mailing_address = _text(_field(other_details, "mailingAddress"))
        email_address = _text(_field(other_details, "emailAddress"))
        if receive_option not in VALID_RECEIVE_OPTIONS:
            errors.append(f"Receive option must be one of: {', '.join(VALID_RECEIVE_OPTIONS)}")
        elif receive_option == "mail" and not mailing_address:
            errors.append("Mailing address is required for mail delivery")
        elif receive_option == "email" and not email_address:
            errors.append("Email address is required for email delivery")

        if errors:
            return ValidationResult(is_valid=False, errors=errors)

        _, scanned_and_email = _coerce_bool(_field(other_details, "scannedAndEmail"))
        return ValidationResult(
            is_valid=True,
            sanitized_data={
                "controlNumber": control_number,
                "amount": amount,
                "dueDate": due_date,
                "receiveOption": receive_option,
                "mailingAddress": mailing_address,
                "emailAddress": email_address,
                "scannedAndEmail": scanned_and_email,
            },
        )

    async def _validate_control_number(self, value, errors: List[str]) -> Optional[str]:
        control_number = str(value).strip() if isinstance(value, (str, int)) and not isinstance(value, bool) else ""
        if not control_number:
            errors.append("Control number is required")
            return None
        if not CONTROL_NUMBER_PATTERN.match(control_number):
            errors.append(f"Control number must be {CONTROL_NUMBER_LENGTH} digits")
            return None
        if await self.control_number_exists(control_number):
            errors.append("Control number already exists")
            return None
        return control_number

    @staticmethod
    def _validate_amount(value, errors: List[str]) -> Optional[float]:
        if value is None or isinstance(value, bool) or str(value).strip() == "":
            errors.append("Amount is required")
            return None
        text = str(value).strip()
        if not AMOUNT_PATTERN.match(text):
            errors.append("Amount must be a valid number")
            return None
        amount = float(text)
        if amount < 0:
            errors.append("Amount must be 0 or positive")
        elif amount > MAX_AMOUNT:
            errors.append(f"Amount cannot exceed {MAX_AMOUNT}")
        elif "." in text and len(text.split(".", 1)[1]) > 2:
            errors.append("Amount cannot have more than 2 decimal places")
        else:
            return amount
        return None

    def _validate_due_date(self, value, errors: List[str]) -> Optional[str]:
        text = _text(value)
        if not text:
            errors.append("Due date is required")
            return None
        if not DATE_PATTERN.match(text):
            errors.append("Due date must be in YYYY-MM-DD format")
            return None
        try:
            due = date.fromisoformat(text)
        except ValueError:
            errors.append("Due date must be a valid date")
            return None
        if due < self._clock().date():
            errors.append("Due date cannot be in the past")
            return None
        return text

    # ---- Remarks ----

    @staticmethod
    def validate_remarks(remarks: Optional[Dict[str, Any]]) -> ValidationResult:
        if not remarks:
            return ValidationResult(is_valid=True, sanitized_data={"comment": "", "isPublic": False})
        if not isinstance(remarks, dict):
            return ValidationResult(is_valid=False, errors=["Remarks must be an object"])

        errors: List[str] = []
        comment = _field(remarks, "comment")
        comment = "" if comment is None else str(comment)
        if len(comment) > MAX_COMMENT_LENGTH:
            errors.append(f"Comment exceeds maximum length ({MAX_COMMENT_LENGTH} characters)")

        ok, is_public = _coerce_bool(_field(remarks, "isPublic"))
        if not ok:
            errors.append("Privacy setting must be boolean")

        if errors:
            return ValidationResult(is_valid=False, errors=errors)
        return ValidationResult(is_valid=True, sanitized_data={"comment": comment, "isPublic": is_public})

    # ---- Requests ----

    @staticmethod
    def _has_permission(caller: Optional[SessionView], permission: str) -> bool:
        return caller is not None and permission in caller.permissions

    async def create_request(self, request_data: Dict[str, Any], caller: Optional[SessionView]) -> RequestResult:
        """Validate every section and store the request if all pass."""
        if not self._has_permission(caller, PERMISSION_CREATE):
            return RequestResult(
                success=False,
                message="You do not have permission to create requests",
                error_code=ErrorCode.INSUFFICIENT_PERMISSIONS,
            )

        request_data = request_data if isinstance(request_data, dict) else {}
        student = self.validate_student_details(_field(request_data, "studentDetails"))
        documents = self.validate_requested_documents(_field(request_data, "requestedDocuments"))
        other = await self.validate_other_details(_field(request_data, "otherDetails"))
        remarks = self.validate_remarks(_field(request_data, "remarks"))

        errors = [*student.errors, *documents.errors, *other.errors, *remarks.errors]
        if errors:
            return RequestResult(
                success=False, message="Validation failed", error_code=ErrorCode.VALIDATION_FAILED, errors=errors
            )

        now = self._clock()
        request = DocumentRequest(
            id=f"req_{secrets.token_hex(8)}",
            tracking_code=self.generate_tracking_code(student.sanitized_data["lastName"]),
            control_number=other.sanitized_data["controlNumber"],
            status=INITIAL_STATUS,
            student_details=student.sanitized_data,
            requested_documents=documents.sanitized_data,
            other_details=other.sanitized_data,
            remarks=remarks.sanitized_data,
            created_by=caller.email,
            created_at=now,
            updated_at=now,
            updated_by=caller.email,
        )
        request.record_status(INITIAL_STATUS, caller.email, now)

        try:
            self.request_store.add(request)
        except ResourceConflictError as e:
            # Another request took the number after validation ran
            logger.warning("Control number %s taken concurrently", request.control_number)
            return RequestResult(
                success=False, message="Validation failed", error_code=ErrorCode.VALIDATION_FAILED, errors=[e.message]
            )

        logger.info("Request %s (%s) created by %s", request.id, request.tracking_code, caller.email)
        if self.audit is not None:
            self.audit.log(
                "REQUEST",
                "CREATE",
                actor_email=caller.email,
                details={"requestId": request.id, "trackingCode": request.tracking_code},
            )
        return RequestResult(success=True, message="Request created successfully", data=request.to_dict())

    @staticmethod
    def validate_status_transition(current_status: str, new_status: str) -> Optional[str]:
        """Return the rejection message, or None when the move is legal."""
        if new_status not in STATUS_ORDER:
            return "Invalid status value"
        current_order = STATUS_ORDER.get(current_status)
        if current_order is None:
            return None if new_status == INITIAL_STATUS else "Invalid status value"
        new_order = STATUS_ORDER[new_status]
        if new_order < current_order:
            return "Cannot move backwards in status"
        if new_order > current_order + 1:
            return "Cannot skip Processing status"
        return None

    async def update_request_status(
        self, request_id: str, new_status: str, caller: Optional[SessionView]
    ) -> RequestResult:
        if not self._has_permission(caller, PERMISSION_UPDATE_STATUS):
            return RequestResult(
                success=False,
                message="You do not have permission to update request status",
                error_code=ErrorCode.INSUFFICIENT_PERMISSIONS,
            )

        request = self.request_store.get(request_id)
        if request is None:
            return RequestResult(success=False, message="Request not found", error_code=ErrorCode.REQUEST_NOT_FOUND)

        problem = self.validate_status_transition(request.status, new_status)
        if problem is not None:
            return RequestResult(
                success=False, message=problem, error_code=ErrorCode.INVALID_STATUS_TRANSITION, errors=[problem]
            )

        previous = request.status
        request.record_status(new_status, caller.email, self._clock())
        logger.info("Request %s moved from %s to %s by %s", request.id, previous, new_status, caller.email)
        if self.audit is not None:
            self.audit.log(
                "REQUEST",
                "STATUS_UPDATED",
                actor_email=caller.email,
                details={"requestId": request.id, "from": previous, "to": new_status},
            )
        return RequestResult(success=True, message="Status updated", data=request.to_dict())

    def get_request_by_id(self, request_id: str) -> Optional[DocumentRequest]:
        return self.request_store.get(request_id)

    def get_request_by_tracking_code(self, tracking_code: str) -> Optional[DocumentRequest]:
        return self.request_store.get_by_tracking_code(tracking_code)

    def list_requests(self, status: Optional[str] = None, page: int = 1, page_size: int = 50) -> Dict[str, Any]:
        return self.request_store.list(status=status, page=page, page_size=page_size)

    async def control_number_exists(self, control_number: str) -> bool:
        return await self.request_store.control_number_exists(control_number)

    @staticmethod
    def generate_control_number() -> str:
        return str(10000 + secrets.randbelow(90000))

    def generate_tracking_code(self, last_name: str) -> str:
        """``SURNAME_NNNNN``; the number is generated, not the form's control number.

        The number alone is unique across tracking codes, since the public
        search resolves a number to exactly one surname.
        """
        surname = re.sub(r"[^A-Z]", "", (last_name or "").upper())
        while True:
            number = self.generate_control_number()
            if not self.request_store.tracking_number_in_use(number):
                return f"{surname}_{number}"

    @staticmethod
    def sanitize_input_data(data: Dict[str, Any]) -> Dict[str, Any]:
        """Trim strings, upper-case name fields and parse ``amount``."""
        sanitized: Dict[str, Any] = {}
        for key, value in (data or {}).items():
            if not isinstance(value, str):
                sanitized[key] = value
                continue
            trimmed = value.strip()
            if key in ("lastName", "firstName", "middleName", "last_name", "first_name", "middle_name"):
                sanitized[key] = trimmed.upper()
            elif key == "amount":
                try:
                    sanitized[key] = float(trimmed)
                except ValueError:
                    sanitized[key] = trimmed
            else:
                sanitized[key] = trimmed
        return sanitized
