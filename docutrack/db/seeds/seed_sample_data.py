"""Seed sample tracked requests for demo purposes."""

import logging
from datetime import datetime, timezone

from docutrack.db.request_store import RequestStore
from docutrack.models.request import (
    STATUS_PROCESSING,
    STATUS_READY_FOR_PICKUP,
    STATUS_REQUEST_RECEIVED,
    DocumentRequest,
)

logger = logging.getLogger("docutrack.seeds")

SAMPLE_REQUESTS = [
    # (surname, first name, control number, document, requested on, status)
    ("ERASMO", "JUAN", "12345", "Transcript of Records", "2025-01-15", STATUS_PROCESSING),
    ("SANTOS", "MARIA", "67890", "Diploma", "2025-01-10", STATUS_READY_FOR_PICKUP),
    ("GARCIA", "JOSE", "98765", "Certificate of Enrollment", "2025-01-20", STATUS_REQUEST_RECEIVED),
]

SEED_ACTOR = "registrar@xu.edu.ph"


def _history(status: str):
    """Walk the workflow up to ``status`` so the history stays consistent."""
    order = [STATUS_REQUEST_RECEIVED, STATUS_PROCESSING, STATUS_READY_FOR_PICKUP]
    return order[: order.index(status) + 1]


def seed_sample_data(store: RequestStore) -> int:
    """Insert the sample requests whose control numbers are still free."""
    created = 0
    for surname, first_name, control_number, document, requested_on, status in SAMPLE_REQUESTS:
        if store.get_by_tracking_code(f"{surname}_{control_number}") is not None:
            continue
        created_at = datetime.fromisoformat(requested_on).replace(tzinfo=timezone.utc)
        request = DocumentRequest(
            id=f"req_sample_{control_number}",
            tracking_code=f"{surname}_{control_number}",
            control_number=control_number,
            status=STATUS_REQUEST_RECEIVED,
            student_details={"lastName": surname, "firstName": first_name},
            requested_documents={"documents": [document], "originalQuantities": [1], "authenticatedQuantities": [0]},
            other_details={"controlNumber": control_number, "receiveOption": "pickup"},
            remarks={"comment": "", "isPublic": False},
            created_by=SEED_ACTOR,
            created_at=created_at,
            updated_at=created_at,
        )
        for step in _history(status):
            request.record_status(step, SEED_ACTOR, created_at)
        store.add(request)
        created += 1
    logger.info("✅ Seeded %d sample request(s)", created)
    return created
