"""Failed-login bookkeeping per identity."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple


@dataclass
class LoginAttemptRecord:
    failed_count: int = 0
    last_attempt_at: Optional[datetime] = None
    locked_until: Optional[datetime] = None
    history: List[Tuple[datetime, str]] = field(default_factory=list)
