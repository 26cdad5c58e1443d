import uuid
from enum import Enum

from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint

from trainerplus.database import db
from trainerplus.utils.time import utcnow, isoformat


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    EXCUSED = "excused"


class Attendance(db.Model):
    __tablename__ = "attendances"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    session_id = Column(String(36), ForeignKey("sessions.id"), nullable=False, index=True)
    student_id = Column(String(36), ForeignKey("students.id"), nullable=False, index=True)
    # Set only when a present mark consumed a credit
    subscription_id = Column(String(36), ForeignKey("subscriptions.id"), nullable=True, index=True)
    status = Column(String(16), nullable=False)
    noted_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    noted_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("session_id", "student_id", name="uq_attendances_session_student"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "session_id": self.session_id,
            "student_id": self.student_id,
            "subscription_id": self.subscription_id,
            "status": self.status,
            "noted_by": self.noted_by,
            "noted_at": isoformat(self.noted_at),
        }
