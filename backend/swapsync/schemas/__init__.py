"""Schemas Package — Pydantic models for API request/response validation.

Invariants:
    - All API inputs validated by Pydantic before reaching route handlers
    - Response models expose no version counters or internal fields
"""
