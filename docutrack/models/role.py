"""Role definitions for RBAC: permissions, hierarchy levels and domain partition."""

from enum import Enum
from typing import Dict, FrozenSet


class Role(str, Enum):
    """Closed set of staff roles, ordered by privilege."""

    SYSTEM_ADMINISTRATOR = "SystemAdministrator"
    UNIVERSITY_REGISTRAR = "UniversityRegistrar"
    EVALUATOR = "Evaluator"
    STUDENT_ASSISTANT = "StudentAssistant"
    INTERN = "Intern"

    def __str__(self) -> str:
        return self.value


# Sentinel for anything that is not a Role; below every real level.
UNKNOWN_ROLE_LEVEL = -1

STAFF_DOMAIN = "@xu.edu.ph"
STUDENT_DOMAIN = "@my.xu.edu.ph"

ROLE_LEVELS: Dict[Role, int] = {
    Role.SYSTEM_ADMINISTRATOR: 4,
    Role.UNIVERSITY_REGISTRAR: 3,
    Role.EVALUATOR: 2,
    Role.STUDENT_ASSISTANT: 1,
    Role.INTERN: 0,
}

ROLE_PERMISSIONS: Dict[Role, FrozenSet[str]] = {
    # Access control owner: whitelists users and assigns roles
    Role.SYSTEM_ADMINISTRATOR: frozenset({
        "manage_access_control",
        "whitelist_users",
        "assign_roles",
        "view_all_audit_logs",
        "manage_system_config",
        "create_users",
        "delete_users",
        "modify_user_roles",
    }),
    # Full request CRUD, supervises interns and student assistants
    Role.UNIVERSITY_REGISTRAR: frozenset({
        "create_requests",
        "read_all_requests",
        "update_all_requests",
        "delete_requests",
        "assign_staff_permissions",
        "manage_interns_assistants",
        "sign_documents",
        "release_documents",
        "view_all_audit_logs",
        "manage_user_access",
        "delegate_permissions",
    }),
    # Data entry and status processing
    Role.EVALUATOR: frozenset({
        "create_requests",
        "read_assigned_requests",
        "update_request_status",
        "mark_request_issued",
        "mark_request_printed",
        "edit_request_data",
        "view_own_audit_logs",
        "process_documents",
    }),
    Role.STUDENT_ASSISTANT: frozenset({
        "read_assigned_requests",
        "update_request_info",
        "verify_request_data",
        "coordinate_with_registrar",
        "view_assigned_audit_logs",
    }),
    Role.INTERN: frozenset({
        "read_assigned_requests",
        "verify_request_data",
        "view_limited_audit_logs",
    }),
}

# Each domain may only hold the roles listed here.
DOMAIN_ROLES: Dict[str, FrozenSet[Role]] = {
    STAFF_DOMAIN: frozenset({
        Role.SYSTEM_ADMINISTRATOR,
        Role.UNIVERSITY_REGISTRAR,
        Role.EVALUATOR,
    }),
    STUDENT_DOMAIN: frozenset({
        Role.STUDENT_ASSISTANT,
        Role.INTERN,
    }),
}
