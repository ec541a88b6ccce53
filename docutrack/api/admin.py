"""Admin / Audit API router."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from docutrack.core.exceptions import forbidden, not_found, result_response
from docutrack.core.security import RequirePermission, require_registrar, require_system_admin
from docutrack.schemas.schemas import AuditLogOut, AuditLogPage, RoleUpdateRequest, SessionView, WhitelistRequest
from docutrack.wiring import ServiceContainer, get_container

router = APIRouter(prefix="/admin", tags=["admin"])

require_audit_access = RequirePermission("view_all_audit_logs")


@router.get("/users")
async def admin_list_users(
    container: ServiceContainer = Depends(get_container),
    session: SessionView = Depends(require_registrar),
):
    """List whitelisted users (registrar and above)."""
    users = container.auth_service.list_users()
    return {"users": users, "total": len(users)}


@router.get("/users/{email}")
async def admin_get_user(
    email: str,
    container: ServiceContainer = Depends(get_container),
    session: SessionView = Depends(require_registrar),
):
    details = container.auth_service.get_user_details(session.session_id, email)
    if details is None:
        raise not_found("User not found")
    return details


@router.post("/users")
async def admin_whitelist_user(
    body: WhitelistRequest,
    container: ServiceContainer = Depends(get_container),
    session: SessionView = Depends(require_system_admin),
):
    """Add a user to the whitelist (system administrator only)."""
    result = container.auth_service.whitelist_user(
        session.session_id, body.email, body.role, password=body.password, full_name=body.full_name
    )
    return result_response(result, success_status=status.HTTP_201_CREATED)


@router.put("/users/{email}/role")
async def admin_change_role(
    email: str,
    body: RoleUpdateRequest,
    container: ServiceContainer = Depends(get_container),
    session: SessionView = Depends(require_system_admin),
):
    """Change a user's role. Sessions already issued keep their permissions."""
    return result_response(container.auth_service.change_user_role(session.session_id, email, body.role))


@router.get("/audit", response_model=AuditLogPage)
async def get_audit_logs(
    event_type: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    actor_email: Optional[str] = Query(None),
    severity: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    container: ServiceContainer = Depends(get_container),
    session: SessionView = Depends(require_audit_access),
):
    """Query the security audit trail."""
    result = container.audit.query_logs(event_type, action, actor_email, severity, page, page_size)
    return AuditLogPage(
        logs=[AuditLogOut.model_validate(entry) for entry in result["logs"]],
        total=result["total"],
        page=result["page"],
        page_size=result["page_size"],
    )


@router.get("/status")
async def system_status(
    container: ServiceContainer = Depends(get_container),
    session: SessionView = Depends(require_system_admin),
):
    report = container.auth_service.get_system_status(session.session_id)
    if report is None:
        raise forbidden()
    return report


@router.get("/integrity")
async def system_integrity(
    container: ServiceContainer = Depends(get_container),
    session: SessionView = Depends(require_system_admin),
):
    """Check every whitelist entry's role against its domain."""
    return container.auth_service.validate_system_integrity()


@router.post("/sessions/sweep")
async def sweep_sessions(
    container: ServiceContainer = Depends(get_container),
    session: SessionView = Depends(require_system_admin),
):
    return container.auth_service.cleanup_expired_sessions()
