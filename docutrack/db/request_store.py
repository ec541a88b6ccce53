"""In-memory document request table."""

import threading
from typing import Dict, List, Optional

from docutrack.core.exceptions import ResourceConflictError
from docutrack.models.request import DocumentRequest


class RequestStore:
    """Requests keyed by id, with a control-number uniqueness index."""

    def __init__(self):
        self._requests: Dict[str, DocumentRequest] = {}
        self._by_control_number: Dict[str, str] = {}
        self._lock = threading.RLock()

    async def control_number_exists(self, control_number: str) -> bool:
        with self._lock:
            return str(control_number) in self._by_control_number

    def add(self, request: DocumentRequest) -> DocumentRequest:
        """Insert a request; the uniqueness check and the insert are atomic.

        Raises:
            ResourceConflictError: the control number is already taken.
        """
        with self._lock:
            if request.control_number in self._by_control_number:
                raise ResourceConflictError("Control number already exists")
            self._requests[request.id] = request
            self._by_control_number[request.control_number] = request.id
            return request

    def get(self, request_id: str) -> Optional[DocumentRequest]:
        with self._lock:
            return self._requests.get(request_id)

    def get_by_tracking_code(self, tracking_code: str) -> Optional[DocumentRequest]:
        if not tracking_code:
            return None
        needle = tracking_code.strip().upper()
        with self._lock:
            for request in self._requests.values():
                if request.tracking_code.upper() == needle:
                    return request
        return None

    def tracking_number_in_use(self, number: str) -> bool:
        """True when any tracking code already ends in ``_<number>``."""
        with self._lock:
            return any(r.tracking_code.rpartition("_")[2] == number for r in self._requests.values())

    def list(self, status: Optional[str] = None, page: int = 1, page_size: int = 50) -> Dict:
        with self._lock:
            items = sorted(self._requests.values(), key=lambda r: r.created_at, reverse=True)
        if status:
            items = [r for r in items if r.status == status]
        start = (page - 1) * page_size
        return {"requests": items[start:start + page_size], "total": len(items), "page": page}

    def all(self) -> List[DocumentRequest]:
        with self._lock:
            return list(self._requests.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._requests)
