"""Infrastructure Layer — persistence and cross-cutting concerns.

Invariants:
    - Infrastructure implements core protocols; core never imports from here
    - All SQLAlchemy failures mapped to DatabaseError (core/errors.py)

Design Decisions:
    - Resilient wrappers over raw clients (single responsibility)
"""
