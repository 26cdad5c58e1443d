# -*- coding: utf-8 -*-
"""Schemas for clubs, groups, students and direct subscriptions."""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class CreateClubRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    address: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=64)
    currency: Optional[str] = Field(None, min_length=3, max_length=8)

    @field_validator('currency')
    @classmethod
    def lower_currency(cls, v):
        return v.lower() if v else v


class CreateGroupRequest(BaseModel):
    title: str = Field(..., min_length=2, max_length=255)
    sport: Optional[str] = Field(None, max_length=64)
    capacity: Optional[int] = Field(None, ge=1, le=1000)
    price: Decimal = Field(Decimal("0"), ge=0)
    description: Optional[str] = Field(None, max_length=2000)
    coach_user_id: Optional[UUID] = None


class ParentContact(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=64)
    email: Optional[str] = Field(None, max_length=255)


class CreateStudentRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    birth_date: Optional[date] = None
    parent_contact: Optional[ParentContact] = None
    notes: Optional[str] = Field(None, max_length=2000)


class CreateSubscriptionRequest(BaseModel):
    """Direct creation by an owner or coach; the subscription starts active."""
    student_id: UUID
    group_id: UUID
    total_sessions: int = Field(..., ge=1, le=100)
    price: Decimal = Field(Decimal("0"), ge=0)
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
