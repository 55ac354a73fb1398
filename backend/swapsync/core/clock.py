"""Clock — the single time source injected into services.

Invariants:
    - Always returns timezone-aware UTC datetimes
"""

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
