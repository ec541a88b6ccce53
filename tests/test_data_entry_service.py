"""Request form validation, creation and the status workflow."""

import pytest

from docutrack.core.exceptions import ErrorCode
from docutrack.db.request_store import RequestStore
from docutrack.db.seeds.seed_sample_data import seed_sample_data
from docutrack.models.role import Role
from docutrack.services.audit_service import AuditService
from docutrack.services.data_entry_service import DataEntryService
from docutrack.services.tracking_service import TrackingService

from conftest import VALID_REQUEST, make_view, request_data

pytestmark = pytest.mark.anyio


@pytest.fixture
def audit(clock):
    return AuditService(clock=clock)


@pytest.fixture
def service(clock, audit):
    return DataEntryService(RequestStore(), audit=audit, clock=clock)


@pytest.fixture
def evaluator():
    return make_view(Role.EVALUATOR, email="evaluator@xu.edu.ph")


# ---- Student details ----

def test_student_details_sanitized(service):
    result = service.validate_student_details(VALID_REQUEST["studentDetails"])

    assert result.is_valid
    assert result.errors == []
    data = result.sanitized_data
    assert data["lastName"] == "DELA CRUZ"
    assert data["firstName"] == "JUAN"
    assert data["middleName"] == "O'NEIL"
    assert data["evaluator"] == "evaluator@xu.edu.ph"


def test_sanitized_student_details_validate_again_unchanged(service):
    once = service.validate_student_details(VALID_REQUEST["studentDetails"]).sanitized_data
    twice = service.validate_student_details(once).sanitized_data
    assert once == twice


def test_student_details_accept_snake_case(service):
    data = {
        "last_name": "Santos",
        "first_name": "Maria",
        "year": "1st Year",
        "program": "BSN",
        "contact_number": "09171234567",
        "evaluator": "evaluator@xu.edu.ph",
    }
    assert service.validate_student_details(data).is_valid


def test_student_details_required_fields(service):
    result = service.validate_student_details({"middleName": "X"})
    assert not result.is_valid
    assert result.errors == [
        "Last Name is required",
        "First Name is required",
        "Year is required",
        "Program is required",
        "Contact Number is required",
        "Evaluator is required",
    ]
    assert service.validate_student_details(None).errors == ["Student details are required"]


@pytest.mark.parametrize(
    "overrides,message",
    [
        ({"lastName": "Cruz2"}, "Last Name can only contain letters, spaces, hyphens, and apostrophes"),
        ({"lastName": "O"}, "Last Name must contain at least 2 letters"),
        ({"lastName": "-'"}, "Last Name must contain at least 2 letters"),
        ({"year": "6th Year"}, "Year must be one of: 1st Year, 2nd Year, 3rd Year, 4th Year, 5th Year"),
        ({"contactNumber": "12345"}, "Invalid contact number format"),
        ({"contactNumber": "0917123456"}, "Invalid contact number format"),
        ({"evaluator": "someone@gmail.com"}, "Evaluator email must be from XU domain (@xu.edu.ph or @my.xu.edu.ph)"),
    ],
)
def test_student_details_rules(service, overrides, message):
    data = dict(VALID_REQUEST["studentDetails"], **overrides)
    result = service.validate_student_details(data)
    assert result.errors == [message]


# ---- Requested documents ----

def test_documents_totals(service):
    result = service.validate_requested_documents(VALID_REQUEST["requestedDocuments"])
    assert result.is_valid
    assert result.sanitized_data["totalDocuments"] == 2
    assert result.sanitized_data["totalOriginalCopies"] == 1
    assert result.sanitized_data["totalAuthenticatedCopies"] == 3


def test_other_document_needs_description(service):
    docs = {"documents": ["Other"], "originalQuantities": [1], "authenticatedQuantities": [0], "otherDocuments": ""}
    result = service.validate_requested_documents(docs)
    assert result.errors == ['Other documents must be specified when "Other" is selected']

    docs["otherDocuments"] = "Course syllabus"
    assert service.validate_requested_documents(docs).is_valid


@pytest.mark.parametrize(
    "docs,message",
    [
        (None, "Documents data is required"),
        ({"documents": []}, "At least one document must be selected"),
        (
            {"documents": ["Diploma"], "originalQuantities": [1], "authenticatedQuantities": []},
            "Document arrays must have matching lengths",
        ),
        (
            {"documents": ["Yearbook"], "originalQuantities": [1], "authenticatedQuantities": [0]},
            "Invalid document type: Yearbook",
        ),
        (
            {"documents": ["Diploma"], "originalQuantities": [0], "authenticatedQuantities": [0]},
            "Each document must have at least 1 copy (original or authenticated)",
        ),
        (
            {"documents": ["Diploma"], "originalQuantities": [101], "authenticatedQuantities": [0]},
            "Original quantities must be between 0 and 100",
        ),
        (
            {"documents": ["Diploma"], "originalQuantities": [1], "authenticatedQuantities": [-1]},
            "Authenticated quantities must be between 0 and 100",
        ),
    ],
)
def test_document_rules(service, docs, message):
    result = service.validate_requested_documents(docs)
    assert not result.is_valid
    assert message in result.errors


def test_total_copies_capped(service):
    docs = {
        "documents": ["Diploma", "Transcript of Records"],
        "originalQuantities": [60, 0],
        "authenticatedQuantities": [0, 50],
    }
    assert service.validate_requested_documents(docs).errors == ["Total copies per request cannot exceed 100"]


# ---- Other details ----

async def test_other_details_sanitized(service):
    result = await service.validate_other_details(dict(VALID_REQUEST["otherDetails"], scannedAndEmail="yes"))
    assert result.is_valid
    assert result.sanitized_data["amount"] == 150.5
    assert result.sanitized_data["controlNumber"] == "12345"
    assert result.sanitized_data["scannedAndEmail"] is True


@pytest.mark.parametrize(
    "overrides,message",
    [
        ({"controlNumber": ""}, "Control number is required"),
        ({"controlNumber": "1234"}, "Control number must be 5 digits"),
        ({"controlNumber": "12a45"}, "Control number must be 5 digits"),
        ({"amount": ""}, "Amount is required"),
        ({"amount": "abc"}, "Amount must be a valid number"),
        ({"amount": "1e-5"}, "Amount must be a valid number"),
        ({"amount": "1_000"}, "Amount must be a valid number"),
        ({"amount": "inf"}, "Amount must be a valid number"),
        ({"amount": "-1"}, "Amount must be 0 or positive"),
        ({"amount": "10000"}, "Amount cannot exceed 9999.99"),
        ({"amount": "10.555"}, "Amount cannot have more than 2 decimal places"),
        ({"dueDate": "2026/03/10"}, "Due date must be in YYYY-MM-DD format"),
        ({"dueDate": "2026-02-30"}, "Due date must be a valid date"),
        ({"dueDate": "2026-03-01"}, "Due date cannot be in the past"),
        ({"receiveOption": "courier"}, "Receive option must be one of: pickup, mail, email"),
        ({"receiveOption": "mail"}, "Mailing address is required for mail delivery"),
        ({"receiveOption": "email"}, "Email address is required for email delivery"),
    ],
)
async def test_other_detail_rules(service, overrides, message):
    result = await service.validate_other_details(dict(VALID_REQUEST["otherDetails"], **overrides))
    assert result.errors == [message]


@pytest.mark.parametrize("amount", ["0", 0, 42, "9999.99", "12.5", 12.5])
async def test_accepted_amounts(service, amount):
    result = await service.validate_other_details(dict(VALID_REQUEST["otherDetails"], amount=amount))
    assert result.is_valid


async def test_due_date_today_is_allowed(service):
    result = await service.validate_other_details(dict(VALID_REQUEST["otherDetails"], dueDate="2026-03-02"))
    assert result.is_valid


async def test_numeric_control_number_accepted(service):
    result = await service.validate_other_details(dict(VALID_REQUEST["otherDetails"], controlNumber=54321))
    assert result.sanitized_data["controlNumber"] == "54321"


# ---- Remarks ----

@pytest.mark.parametrize("remarks", [None, {}])
def test_empty_remarks_default(remarks):
    result = DataEntryService.validate_remarks(remarks)
    assert result.sanitized_data == {"comment": "", "isPublic": False}


def test_remarks_rules():
    assert DataEntryService.validate_remarks({"comment": "x" * 1001}).errors == [
        "Comment exceeds maximum length (1000 characters)"
    ]
    assert DataEntryService.validate_remarks({"isPublic": "maybe"}).errors == ["Privacy setting must be boolean"]
    assert DataEntryService.validate_remarks(["not", "a", "dict"]).errors == ["Remarks must be an object"]
    assert DataEntryService.validate_remarks({"isPublic": "true"}).sanitized_data["isPublic"] is True


# ---- create_request ----

async def test_create_request(service, evaluator, audit, clock):
    result = await service.create_request(request_data(), evaluator)

    assert result.success
    assert result.message == "Request created successfully"
    data = result.data
    assert data["id"].startswith("req_")
    assert data["trackingCode"].startswith("DELACRUZ_")
    assert len(data["trackingCode"].split("_")[1]) == 5
    assert data["status"] == "Request Received"
    assert data["createdBy"] == "evaluator@xu.edu.ph"
    assert data["studentDetails"]["lastName"] == "DELA CRUZ"
    assert data["statusHistory"] == [
        {"status": "Request Received", "updatedBy": "evaluator@xu.edu.ph", "updatedAt": clock.now.isoformat()}
    ]
    assert service.get_request_by_tracking_code(data["trackingCode"].lower()).id == data["id"]
    assert audit.query_logs(event_type="REQUEST", action="CREATE")["total"] == 1


async def test_duplicate_control_number(service, evaluator):
    assert (await service.create_request(request_data(), evaluator)).success

    second = await service.create_request(request_data(), evaluator)
    assert second.error_code == ErrorCode.VALIDATION_FAILED
    assert second.errors == ["Control number already exists"]
    assert len(service.request_store) == 1


async def test_tracking_number_is_not_reused_across_surnames(clock, evaluator, monkeypatch):
    store = RequestStore()
    seed_sample_data(store)
    service = DataEntryService(store, clock=clock)
    numbers = iter(["12345", "67890", "24680"])
    monkeypatch.setattr(service, "generate_control_number", lambda: next(numbers))

    result = await service.create_request(request_data(otherDetails={"controlNumber": "55555"}), evaluator)

    assert result.data["trackingCode"] == "DELACRUZ_24680"
    found = TrackingService(store).search_tracking_code("DELACRUZ_24680")
    assert found.success
    assert found.data["controlNumber"] == "55555"


async def test_two_letter_surname_is_trackable(clock, evaluator):
    store = RequestStore()
    service = DataEntryService(store, clock=clock)

    result = await service.create_request(request_data(studentDetails={"lastName": "Ng"}), evaluator)

    assert result.data["trackingCode"].startswith("NG_")
    assert TrackingService(store).search_tracking_code(result.data["trackingCode"]).success


async def test_errors_from_every_section_are_reported(service, evaluator):
    data = request_data(studentDetails={"year": "9th Year"}, otherDetails={"receiveOption": "courier"})
    result = await service.create_request(data, evaluator)

    assert result.message == "Validation failed"
    assert any(e.startswith("Year must be one of") for e in result.errors)
    assert any(e.startswith("Receive option must be one of") for e in result.errors)
    assert len(service.request_store) == 0


@pytest.mark.parametrize("role", [Role.STUDENT_ASSISTANT, Role.INTERN, Role.SYSTEM_ADMINISTRATOR])
async def test_create_requires_permission(service, role):
    result = await service.create_request(request_data(), make_view(role))
    assert result.error_code == ErrorCode.INSUFFICIENT_PERMISSIONS
    assert len(service.request_store) == 0


async def test_registrar_can_create(service):
    result = await service.create_request(request_data(), make_view(Role.UNIVERSITY_REGISTRAR))
    assert result.success


# ---- Status workflow ----

@pytest.mark.parametrize(
    "current,new,message",
    [
        ("Request Received", "Processing", None),
        ("Processing", "Ready for Pickup", None),
        ("Processing", "Processing", None),
        ("Request Received", "Ready for Pickup", "Cannot skip Processing status"),
        ("Ready for Pickup", "Processing", "Cannot move backwards in status"),
        ("Processing", "Done", "Invalid status value"),
        ("Archived", "Request Received", None),
        ("Archived", "Processing", "Invalid status value"),
    ],
)
def test_validate_status_transition(current, new, message):
    assert DataEntryService.validate_status_transition(current, new) == message


async def test_status_walks_forward(service, evaluator, clock):
    created = await service.create_request(request_data(), evaluator)
    request_id = created.data["id"]

    clock.advance(hours=1)
    skipped = await service.update_request_status(request_id, "Ready for Pickup", evaluator)
    assert skipped.error_code == ErrorCode.INVALID_STATUS_TRANSITION
    assert skipped.errors == ["Cannot skip Processing status"]

    assert (await service.update_request_status(request_id, "Processing", evaluator)).success
    clock.advance(hours=1)
    done = await service.update_request_status(request_id, "Ready for Pickup", evaluator)

    assert done.data["status"] == "Ready for Pickup"
    assert [h["status"] for h in done.data["statusHistory"]] == ["Request Received", "Processing", "Ready for Pickup"]
    back = await service.update_request_status(request_id, "Request Received", evaluator)
    assert back.errors == ["Cannot move backwards in status"]


async def test_status_update_permission_and_lookup(service, evaluator):
    created = await service.create_request(request_data(), evaluator)

    registrar = make_view(Role.UNIVERSITY_REGISTRAR)
    denied = await service.update_request_status(created.data["id"], "Processing", registrar)
    assert denied.error_code == ErrorCode.INSUFFICIENT_PERMISSIONS

    missing = await service.update_request_status("req_missing", "Processing", evaluator)
    assert missing.error_code == ErrorCode.REQUEST_NOT_FOUND
    assert missing.message == "Request not found"


# ---- Helpers ----

def test_sanitize_input_data():
    data = {"lastName": " cruz ", "amount": " 12.50 ", "program": " BSCS ", "count": 3}
    once = DataEntryService.sanitize_input_data(data)
    assert once == {"lastName": "CRUZ", "amount": 12.5, "program": "BSCS", "count": 3}
    assert DataEntryService.sanitize_input_data(once) == once


def test_generated_control_number():
    for _ in range(50):
        number = DataEntryService.generate_control_number()
        assert len(number) == 5 and number.isdigit()


async def test_list_requests(service, evaluator):
    await service.create_request(request_data(), evaluator)
    await service.create_request(request_data(otherDetails={"controlNumber": "22222"}), evaluator)

    page = service.list_requests(status="Request Received")
    assert page["total"] == 2
    assert service.list_requests(status="Processing")["total"] == 0
