"""Root conftest — shared test configuration.

Invariants:
    - Tests never touch a real database: DATABASE_URL points at in-memory SQLite
    - Startup reconciliation disabled (route tests wire services directly)
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RECONCILE_ON_STARTUP", "false")
os.environ.setdefault("LOG_FORMAT", "text")
