"""Security audit trail."""
import pytest

from docutrack.services.audit_service import AuditService, event_severity


@pytest.mark.parametrize(
    "event_type,action,severity",
    [
        ("LOGIN_ATTEMPT", "ACCOUNT_LOCKED", "HIGH"),
        ("LOGIN_ATTEMPT", "INVALID_PASSWORD", "HIGH"),
        ("LOGIN_ATTEMPT", "INVALID_DOMAIN", "MEDIUM"),
        ("ADMIN", "PERMISSION_DENIED", "MEDIUM"),
        ("LOGIN_SUCCESS", "USER_AUTHENTICATED", "INFO"),
        ("SESSION", "CREATE", "LOW"),
    ],
)
def test_event_severity(event_type, action, severity):
    assert event_severity(event_type, action) == severity


def test_log_records_entry(clock):
    audit = AuditService(clock=clock)
    entry = audit.log("SESSION", "CREATE", actor_email="Evaluator@XU.edu.ph", details={"role": "Evaluator"})

    assert entry.id == 1
    assert entry.timestamp == clock.now
    assert entry.actor_email == "evaluator@xu.edu.ph"
    assert entry.severity == "LOW"
    assert audit.recent() == [entry]


def test_entries_are_immutable(clock):
    entry = AuditService(clock=clock).log("SESSION", "CREATE")
    with pytest.raises(AttributeError):
        entry.action = "DESTROY"


def test_query_filters_and_pages_newest_first(clock):
    audit = AuditService(clock=clock)
    for i in range(5):
        audit.log("LOGIN_ATTEMPT", "INVALID_PASSWORD", actor_email="evaluator@xu.edu.ph", details={"n": i})
        clock.advance(seconds=1)
    audit.log("SESSION", "CREATE", actor_email="registrar@xu.edu.ph")

    page = audit.query_logs(event_type="LOGIN_ATTEMPT", page=1, page_size=2)
    assert page["total"] == 5
    assert [e.details["n"] for e in page["logs"]] == [4, 3]

    assert audit.query_logs(actor_email="REGISTRAR@xu.edu.ph")["total"] == 1
    assert audit.query_logs(severity="high")["total"] == 5
    assert audit.query_logs(action="password")["total"] == 5


def test_oldest_entries_roll_off(clock):
    audit = AuditService(clock=clock, max_entries=3)
    for i in range(5):
        audit.log("SESSION", "CREATE", details={"n": i})

    assert len(audit) == 3
    assert [e.details["n"] for e in audit.recent()] == [2, 3, 4]
    assert audit.recent(0) == []
