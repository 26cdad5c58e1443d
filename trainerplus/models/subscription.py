'''
Subscription model

A prepaid block of sessions a student purchased for one group. The row is
only ever mutated through the subscription ledger service.
'''

import uuid
from enum import Enum

from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Numeric, CheckConstraint, Index
from sqlalchemy.orm import relationship

from trainerplus.database import db
from trainerplus.utils.time import utcnow, isoformat


class SubscriptionStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    USED = "used"
    EXPIRED = "expired"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({
    SubscriptionStatus.USED,
    SubscriptionStatus.EXPIRED,
    SubscriptionStatus.CANCELLED,
})

# from -> allowed targets
TRANSITIONS = {
    SubscriptionStatus.PENDING: frozenset({SubscriptionStatus.ACTIVE, SubscriptionStatus.CANCELLED}),
    SubscriptionStatus.ACTIVE: frozenset({
        SubscriptionStatus.USED,
        SubscriptionStatus.EXPIRED,
        SubscriptionStatus.CANCELLED,
    }),
    SubscriptionStatus.USED: frozenset(),
    SubscriptionStatus.EXPIRED: frozenset(),
    SubscriptionStatus.CANCELLED: frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    return SubscriptionStatus(target) in TRANSITIONS[SubscriptionStatus(current)]


class Subscription(db.Model):
    __tablename__ = "subscriptions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    student_id = Column(String(36), ForeignKey("students.id"), nullable=False, index=True)
    group_id = Column(String(36), ForeignKey("groups.id"), nullable=False, index=True)
    total_sessions = Column(Integer, nullable=False)
    remaining_sessions = Column(Integer, nullable=False)
    price = Column(Numeric(12, 2), nullable=False, default=0)
    starts_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    status = Column(String(16), nullable=False, default=SubscriptionStatus.PENDING.value)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    student = relationship("Student")
    group = relationship("Group")

    __table_args__ = (
        CheckConstraint("total_sessions > 0", name="ck_subscriptions_total_positive"),
        CheckConstraint(
            "remaining_sessions >= 0 AND remaining_sessions <= total_sessions",
            name="ck_subscriptions_remaining_bounds",
        ),
        Index("ix_subscriptions_eligibility", "student_id", "group_id", "status"),
    )

    def __repr__(self):
        return f"<Subscription {self.id} {self.status} {self.remaining_sessions}/{self.total_sessions}>"

    def to_dict(self):
        return {
            "id": self.id,
            "student_id": self.student_id,
            "group_id": self.group_id,
            "total_sessions": self.total_sessions,
            "remaining_sessions": self.remaining_sessions,
            "price": float(self.price) if self.price is not None else None,
            "starts_at": isoformat(self.starts_at),
            "expires_at": isoformat(self.expires_at),
            "status": self.status,
            "created_at": isoformat(self.created_at),
        }
