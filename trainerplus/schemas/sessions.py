# -*- coding: utf-8 -*-
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class CreateSessionRequest(BaseModel):
    start_at: datetime
    duration_minutes: int = Field(60, ge=5, le=600)
    location: Optional[str] = Field(None, max_length=255)


class UpdateSessionRequest(BaseModel):
    start_at: Optional[datetime] = None
    duration_minutes: Optional[int] = Field(None, ge=5, le=600)
    location: Optional[str] = Field(None, max_length=255)


class RecurringSessionsRequest(BaseModel):
    weekdays: List[int] = Field(..., min_length=1, max_length=7, description="0=Sunday .. 6=Saturday")
    time_of_day: str = Field(..., description="HH:MM")
    from_date: date
    to_date: date
    duration_minutes: int = Field(60, ge=5, le=600)
    location: Optional[str] = Field(None, max_length=255)

    @field_validator('time_of_day')
    @classmethod
    def validate_time(cls, v):
        try:
            datetime.strptime(v, "%H:%M")
        except ValueError:
            raise ValueError('time_of_day must be HH:MM')
        return v
