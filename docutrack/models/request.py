"""Document request record and its status workflow."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

STATUS_REQUEST_RECEIVED = "Request Received"
STATUS_PROCESSING = "Processing"
STATUS_READY_FOR_PICKUP = "Ready for Pickup"

INITIAL_STATUS = STATUS_REQUEST_RECEIVED

# Linear workflow; a request moves forward one step at a time.
STATUS_ORDER: Dict[str, int] = {
    STATUS_REQUEST_RECEIVED: 0,
    STATUS_PROCESSING: 1,
    STATUS_READY_FOR_PICKUP: 2,
}


@dataclass(frozen=True)
class StatusHistoryEntry:
    status: str
    updated_by: str
    updated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "updatedBy": self.updated_by,
            "updatedAt": self.updated_at.isoformat(),
        }


@dataclass
class DocumentRequest:
    """A student's document request as entered by staff.

    ``control_number`` is the validated 5-digit field from the form. The
    number embedded in ``tracking_code`` is generated separately and is not
    guaranteed to match it.
    """

    id: str
    tracking_code: str
    control_number: str
    status: str
    student_details: Dict[str, Any]
    requested_documents: Dict[str, Any]
    other_details: Dict[str, Any]
    remarks: Dict[str, Any]
    created_by: str
    created_at: datetime
    updated_at: datetime
    updated_by: Optional[str] = None
    status_history: List[StatusHistoryEntry] = field(default_factory=list)

    def record_status(self, status: str, updated_by: str, at: datetime) -> None:
        self.status = status
        self.updated_by = updated_by
        self.updated_at = at
        self.status_history.append(StatusHistoryEntry(status, updated_by, at))

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation using the portal's camelCase field names."""
        return {
            "id": self.id,
            "trackingCode": self.tracking_code,
            "controlNumber": self.control_number,
            "status": self.status,
            "studentDetails": dict(self.student_details),
            "requestedDocuments": dict(self.requested_documents),
            "otherDetails": dict(self.other_details),
            "remarks": dict(self.remarks),
            "createdBy": self.created_by,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
            "updatedBy": self.updated_by,
            "statusHistory": [entry.to_dict() for entry in self.status_history],
        }
