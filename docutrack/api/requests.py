"""Document request API router."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from docutrack.core.exceptions import not_found, result_response
from docutrack.core.security import RequirePermission, get_current_session
from docutrack.schemas.schemas import RequestCreate, SessionView, StatusUpdateRequest
from docutrack.wiring import ServiceContainer, get_container

router = APIRouter(prefix="/requests", tags=["requests"])

require_read_access = RequirePermission("read_all_requests", "read_assigned_requests")


@router.post("")
async def create_request(
    body: RequestCreate,
    container: ServiceContainer = Depends(get_container),
    session: SessionView = Depends(get_current_session),
):
    """Validate and store a new document request."""
    result = await container.data_entry_service.create_request(body.model_dump(by_alias=True), session)
    return result_response(result, success_status=status.HTTP_201_CREATED)


@router.get("")
async def list_requests(
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    container: ServiceContainer = Depends(get_container),
    session: SessionView = Depends(require_read_access),
):
    result = container.data_entry_service.list_requests(status_filter, page, page_size)
    return {
        "requests": [r.to_dict() for r in result["requests"]],
        "total": result["total"],
        "page": result["page"],
    }


@router.get("/{request_id}")
async def get_request(
    request_id: str,
    container: ServiceContainer = Depends(get_container),
    session: SessionView = Depends(require_read_access),
):
    request = container.data_entry_service.get_request_by_id(request_id)
    if request is None:
        raise not_found("Request not found")
    return request.to_dict()


@router.patch("/{request_id}/status")
async def update_request_status(
    request_id: str,
    body: StatusUpdateRequest,
    container: ServiceContainer = Depends(get_container),
    session: SessionView = Depends(get_current_session),
):
    """Move a request one step along its workflow."""
    result = await container.data_entry_service.update_request_status(request_id, body.status, session)
    return result_response(result)
