"""Seed the static staff whitelist."""

import logging

from docutrack.core.security import hash_password
from docutrack.db.user_store import WhitelistStore
from docutrack.models.role import Role
from docutrack.models.user import User

logger = logging.getLogger("docutrack.seeds")

DEFAULT_WHITELIST = [
    ("sysadmin@xu.edu.ph", Role.SYSTEM_ADMINISTRATOR, "SysAdmin123!", "System Administrator"),
    ("registrar@xu.edu.ph", Role.UNIVERSITY_REGISTRAR, "Registrar456!", "University Registrar"),
    ("evaluator@xu.edu.ph", Role.EVALUATOR, "Evaluator789!", "Evaluator"),
    ("assistant@my.xu.edu.ph", Role.STUDENT_ASSISTANT, "Assistant000!", "Student Assistant"),
    ("intern@my.xu.edu.ph", Role.INTERN, "Intern111!", "Intern"),
]


def seed_whitelist(store: WhitelistStore, rounds: int = 12) -> int:
    """Add the default staff accounts that are not already listed."""
    created = 0
    for email, role, password, full_name in DEFAULT_WHITELIST:
        if email in store:
            logger.debug("Whitelist entry '%s' already exists, skipping.", email)
            continue
        store.add(User(email=email, role=role, password_hash=hash_password(password, rounds), full_name=full_name))
        created += 1
    logger.info("✅ Seeded %d whitelist entr%s", created, "y" if created == 1 else "ies")
    return created
