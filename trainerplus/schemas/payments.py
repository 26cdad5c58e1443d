# -*- coding: utf-8 -*-
"""Schemas for public checkout and manual payments."""
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from trainerplus.schemas.clubs import ParentContact


class CheckoutStudent(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    parent_contact: Optional[ParentContact] = None


class CheckoutSubscription(BaseModel):
    total_sessions: int = Field(..., ge=1, le=100)
    price: Decimal = Field(..., ge=0)


class CreateCheckoutRequest(BaseModel):
    student: Optional[CheckoutStudent] = None
    student_id: Optional[UUID] = None
    group_id: UUID
    subscription: CheckoutSubscription
    success_url: str = Field(..., pattern=r'^https?://')
    cancel_url: str = Field(..., pattern=r'^https?://')

    @model_validator(mode='after')
    def require_student(self):
        if self.student is None and self.student_id is None:
            raise ValueError('either student or student_id is required')
        return self

    def student_ref(self):
        if self.student_id is not None:
            return {"student_id": str(self.student_id)}
        contact = self.student.parent_contact
        return {
            "name": self.student.name,
            "parent_contact": contact.model_dump(exclude_none=True) if contact else None,
        }


class ManualPaymentRequest(BaseModel):
    subscription_id: UUID
    amount: Decimal = Field(..., ge=0)
    method: str
    notes: Optional[str] = Field(None, max_length=1000)
