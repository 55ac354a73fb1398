"""Database Package — SQLAlchemy declarative Base shared by all ORM models.

Invariants:
    - Single async engine per process (initialized in the FastAPI lifespan)
    - All sessions are async (AsyncSession)

Design Decisions:
    - asyncpg driver for PostgreSQL, aiosqlite for tests and local runs
"""
