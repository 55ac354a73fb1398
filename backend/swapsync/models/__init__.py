"""ORM Models — SQLAlchemy declarative models for all domain entities.

Invariants:
    - All models inherit from Base (db/base.py)
    - Models are persistence shapes only; domain logic works on core records

Design Decisions:
    - One file per entity for locality
    - All models imported here so Base.metadata is complete before create_all
      or alembic autogenerate runs
"""

from swapsync.models.user import User  # noqa: F401
from swapsync.models.event import Event  # noqa: F401
from swapsync.models.swap_request import SwapRequest  # noqa: F401
