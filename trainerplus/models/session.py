import uuid

from sqlalchemy import Column, String, DateTime, ForeignKey, Integer

from trainerplus.database import db
from trainerplus.utils.time import utcnow, isoformat


class ClassSession(db.Model):
    """A scheduled occurrence of a group's class."""
    __tablename__ = "sessions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    group_id = Column(String(36), ForeignKey("groups.id"), nullable=False, index=True)
    start_at = Column(DateTime, nullable=False, index=True)
    duration_minutes = Column(Integer, nullable=False, default=60)
    location = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "group_id": self.group_id,
            "start_at": isoformat(self.start_at),
            "duration_minutes": self.duration_minutes,
            "location": self.location,
            "created_at": isoformat(self.created_at),
        }
