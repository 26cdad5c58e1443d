'''
Payment model

One attempt to collect money for a subscription. ``provider_payment_id`` is the
checkout session id handed out by the payment provider and doubles as the
idempotency key for webhook reconciliation.
'''

import uuid
from enum import Enum

from sqlalchemy import Column, String, DateTime, ForeignKey, Numeric, JSON

from trainerplus.database import db
from trainerplus.utils.time import utcnow, isoformat


class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    STRIPE = "stripe"
    CASH = "cash"
    MANUAL = "manual"


PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.SUCCEEDED, PaymentStatus.FAILED}),
    PaymentStatus.SUCCEEDED: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.FAILED: frozenset(),
    PaymentStatus.REFUNDED: frozenset(),
}


class Payment(db.Model):
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    subscription_id = Column(String(36), ForeignKey("subscriptions.id"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(8), nullable=False)
    method = Column(String(16), nullable=False)
    status = Column(String(16), nullable=False, default=PaymentStatus.PENDING.value)
    provider_payment_id = Column(String(255), unique=True, nullable=True)
    provider_intent_id = Column(String(255), nullable=True, index=True)
    provider_metadata = Column(JSON, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "subscription_id": self.subscription_id,
            "amount": float(self.amount) if self.amount is not None else None,
            "currency": self.currency,
            "method": self.method,
            "status": self.status,
            "provider_payment_id": self.provider_payment_id,
            "provider_metadata": self.provider_metadata,
            "paid_at": isoformat(self.paid_at),
            "created_at": isoformat(self.created_at),
        }
