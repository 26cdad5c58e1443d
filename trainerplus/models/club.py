"""
Club, group and student models.

Every tenant-scoped row hangs off a Club; groups and students reference it
directly, everything else reaches it through them.
"""
import uuid
from typing import Any, Dict, Optional

from sqlalchemy import Column, String, DateTime, Date, ForeignKey, Integer, Numeric, Text, JSON
from sqlalchemy.orm import relationship

from trainerplus.database import db
from trainerplus.utils.time import utcnow, isoformat


class Club(db.Model):
    __tablename__ = "clubs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    address = Column(String(255), nullable=True)
    phone = Column(String(64), nullable=True)
    currency = Column(String(8), nullable=False, default="kzt")
    created_at = Column(DateTime, default=utcnow, nullable=False)

    groups = relationship("Group", back_populates="club", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Club {self.name}>"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "owner_user_id": self.owner_user_id,
            "name": self.name,
            "address": self.address,
            "phone": self.phone,
            "currency": self.currency,
            "created_at": isoformat(self.created_at),
        }


class Group(db.Model):
    __tablename__ = "groups"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    club_id = Column(String(36), ForeignKey("clubs.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    sport = Column(String(64), nullable=True)
    capacity = Column(Integer, nullable=True)
    price = Column(Numeric(12, 2), nullable=False, default=0)
    description = Column(Text, nullable=True)
    coach_user_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    club = relationship("Club", back_populates="groups")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "club_id": self.club_id,
            "title": self.title,
            "sport": self.sport,
            "capacity": self.capacity,
            "price": float(self.price) if self.price is not None else None,
            "description": self.description,
            "coach_user_id": self.coach_user_id,
            "created_at": isoformat(self.created_at),
        }


class Student(db.Model):
    __tablename__ = "students"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    club_id = Column(String(36), ForeignKey("clubs.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    birth_date = Column(Date, nullable=True)
    # {"name": ..., "phone": ..., "email": ...}
    parent_contact = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    @property
    def parent_email(self) -> Optional[str]:
        return (self.parent_contact or {}).get("email") or None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "club_id": self.club_id,
            "name": self.name,
            "birth_date": isoformat(self.birth_date),
            "parent_contact": self.parent_contact,
            "notes": self.notes,
            "created_at": isoformat(self.created_at),
        }
