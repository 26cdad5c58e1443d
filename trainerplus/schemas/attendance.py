# -*- coding: utf-8 -*-
from typing import Any, List
from uuid import UUID

from pydantic import BaseModel, Field


class MarkAttendanceRequest(BaseModel):
    session_id: UUID
    student_id: UUID
    status: str = Field(..., description="present, absent or excused")


class BulkAttendanceRequest(BaseModel):
    session_id: UUID
    # Items are validated one by one so a bad entry fails alone
    items: List[Any] = Field(..., min_length=1, max_length=200)


class UpdateAttendanceRequest(BaseModel):
    status: str
