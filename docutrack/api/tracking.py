"""Public tracking search router. No session required."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from docutrack.services.tracking_service import ERROR_MULTIPLE_CODES, ERROR_INVALID_FORMAT
from docutrack.wiring import ServiceContainer, get_container

router = APIRouter(prefix="/search", tags=["tracking"])


@router.get("/{tracking_code}")
async def search_tracking_code(tracking_code: str, container: ServiceContainer = Depends(get_container)):
    """Look up a request by its ``SURNAME_NUMBER`` tracking code."""
    result = container.tracking_service.search_tracking_code(tracking_code)
    if result.success:
        status_code = 200
    elif result.error in (ERROR_INVALID_FORMAT, ERROR_MULTIPLE_CODES):
        status_code = 400
    else:
        status_code = 404
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json", exclude_none=True))
