"""Event Schemas — Pydantic models with field-level validation for API boundaries.

Invariants:
    - EventCreate.title: 1-200 chars, stripped, non-empty
    - EventCreate.status limited to BUSY | SWAPPABLE (SWAP_PENDING only via swaps)
    - end_time > start_time checked here for fast 400s and again in core
    - Times leave the schema as aware UTC (naive input is taken as UTC)

Design Decisions:
    - Literal for owner-settable statuses: Pydantic rejects SWAP_PENDING natively
    - from_record classmethods keep routes free of field-by-field copying
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from swapsync.core.enforce_status import normalize_instant
from swapsync.core.records import EventRecord

OwnerStatus = Literal["BUSY", "SWAPPABLE"]


class EventCreate(BaseModel):
    """Event creation: validates title and time range."""
    title: str = Field(min_length=1, max_length=200)
    start_time: datetime
    end_time: datetime
    status: OwnerStatus = "BUSY"

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("title cannot be empty or whitespace")
        return v

    @field_validator("start_time", "end_time")
    @classmethod
    def to_utc(cls, v: datetime) -> datetime:
        return normalize_instant(v)

    @model_validator(mode="after")
    def validate_time_range(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class EventUpdate(BaseModel):
    """Partial edit: any subset of title/time/status, at least one."""
    title: str | None = Field(None, min_length=1, max_length=200)
    start_time: datetime | None = None
    end_time: datetime | None = None
    status: OwnerStatus | None = None

    @field_validator("start_time", "end_time")
    @classmethod
    def to_utc(cls, v: datetime | None) -> datetime | None:
        return normalize_instant(v) if v is not None else None

    @model_validator(mode="after")
    def require_any_field(self):
        if all(
            v is None
            for v in (self.title, self.start_time, self.end_time, self.status)
        ):
            raise ValueError("at least one field must be provided")
        return self


class EventStatusUpdate(BaseModel):
    """set_exchangeable body."""
    status: OwnerStatus


class OwnerSummary(BaseModel):
    id: UUID
    name: str
    email: str


class EventResponse(BaseModel):
    """Event response: public-facing event data."""
    id: UUID
    owner_id: UUID
    title: str
    start_time: datetime
    end_time: datetime
    status: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
    owner: OwnerSummary | None = None

    @classmethod
    def from_record(
        cls, event: EventRecord, owner: dict | None = None,
    ) -> "EventResponse":
        return cls(
            id=event.id,
            owner_id=event.owner_id,
            title=event.title,
            start_time=event.start_time,
            end_time=event.end_time,
            status=event.status.value,
            created_at=event.created_at,
            updated_at=event.updated_at,
            owner=OwnerSummary(**owner) if owner else None,
        )
