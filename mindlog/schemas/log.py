# schemas/log.py
from __future__ import annotations
from typing import List, Optional, Union
from uuid import UUID
from datetime import datetime

from pydantic import Field, field_validator

from .base import CamelModel, as_utc
from .user import UserOut


# ----------------------
# Create
# ----------------------

class LogCreate(CamelModel):
    """Incoming wellbeing entry. Every field is optional; numbers must be real JSON numbers."""
    date: Optional[datetime] = Field(
        default=None, description="Effective date (ISO 8601); defaults to now"
    )
    mood: Optional[int] = Field(default=None, ge=1, le=10, strict=True)
    anxiety: Optional[int] = Field(default=None, ge=0, le=10, strict=True)
    sleep_hours: Optional[float] = Field(default=None, ge=0, le=24, strict=True)
    sleep_quality: Optional[int] = Field(default=None, ge=0, le=10, strict=True)
    activity_type: Optional[str] = None
    activity_mins: Optional[int] = Field(default=None, ge=0, le=1440, strict=True)
    social_count: Optional[int] = Field(default=None, ge=0, le=100, strict=True)
    stress: Optional[int] = Field(default=None, ge=0, le=10, strict=True)
    symptoms: Optional[str] = Field(
        default=None, description="Comma-joined symptom names"
    )
    notes: Optional[str] = None

    @field_validator("symptoms", mode="before")
    @classmethod
    def join_symptoms(cls, v: Union[str, List[str], None]):
        if isinstance(v, list):
            return ", ".join(str(item).strip() for item in v if str(item).strip())
        return v


# ----------------------
# Read
# ----------------------

class LogRead(CamelModel):
    id: UUID
    user_id: UUID
    date: datetime
    mood: Optional[int] = None
    anxiety: Optional[int] = None
    sleep_hours: Optional[float] = None
    sleep_quality: Optional[int] = None
    activity_type: Optional[str] = None
    activity_mins: Optional[int] = None
    social_count: Optional[int] = None
    stress: Optional[int] = None
    symptoms: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    user: Optional[UserOut] = None

    @field_validator("date", "created_at")
    @classmethod
    def tag_utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class TodayLogResponse(CamelModel):
    has_log: bool
    log: Optional[LogRead] = None


# ----------------------
# Stats
# ----------------------

class LogAverages(CamelModel):
    mood: Optional[float] = None
    anxiety: Optional[float] = None
    sleep_hours: Optional[float] = None
    sleep_quality: Optional[float] = None
    stress: Optional[float] = None
    activity_mins: Optional[float] = None
    social_count: Optional[float] = None


class LogStatsResponse(CamelModel):
    range: str
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    total_logs: int
    averages: LogAverages
