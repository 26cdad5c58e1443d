from datetime import timedelta
from decimal import Decimal

import pytest
from flask_jwt_extended import create_access_token

from trainerplus.config import TestingConfig
from trainerplus.database import db
from trainerplus.models import (
    Attendance, ClassSession, Club, Group, Payment, Student, Subscription, User,
)
from trainerplus.models.payment import PaymentMethod, PaymentStatus
from trainerplus.models.subscription import SubscriptionStatus
from trainerplus.utils.time import utcnow


@pytest.fixture
def app():
    """Create and configure a new app instance for each test."""
    from trainerplus.factory import create_app

    app = create_app(TestingConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """A test client for the app."""
    return app.test_client()


@pytest.fixture
def db_session(app):
    return db.session


class Builder:
    """Creates committed rows with sensible defaults."""

    def __init__(self, session):
        self.session = session
        self._n = 0

    def _save(self, obj):
        self.session.add(obj)
        self.session.commit()
        return obj

    def user(self, role="owner", **kw):
        self._n += 1
        user = User(email=kw.pop("email", f"user{self._n}@example.com"),
                    name=kw.pop("name", f"User {self._n}"), role=role, **kw)
        user.set_password("password123")
        return self._save(user)

    def club(self, owner=None, **kw):
        owner = owner or self.user()
        kw.setdefault("name", "Tigers Club")
        return self._save(Club(owner_user_id=owner.id, **kw))

    def group(self, club=None, coach=None, **kw):
        club = club or self.club()
        kw.setdefault("title", "Junior Judo")
        kw.setdefault("price", Decimal("15000"))
        return self._save(Group(club_id=club.id, coach_user_id=coach.id if coach else None, **kw))

    def student(self, club, **kw):
        kw.setdefault("name", "Aida")
        return self._save(Student(club_id=club.id, **kw))

    def class_session(self, group, start_at=None, **kw):
        return self._save(ClassSession(group_id=group.id,
                                       start_at=start_at or utcnow().replace(microsecond=0),
                                       duration_minutes=kw.pop("duration_minutes", 60), **kw))

    def subscription(self, student, group, total=8, remaining=None,
                     status=SubscriptionStatus.ACTIVE, starts_at=None, expires_at=None, **kw):
        if status == SubscriptionStatus.ACTIVE and starts_at is None:
            starts_at = utcnow() - timedelta(days=1)
        return self._save(Subscription(
            student_id=student.id,
            group_id=group.id,
            total_sessions=total,
            remaining_sessions=total if remaining is None else remaining,
            price=kw.pop("price", Decimal("15000")),
            status=status.value,
            starts_at=starts_at,
            expires_at=expires_at,
            **kw,
        ))

    def payment(self, subscription, provider_payment_id="cs_test_123",
                status=PaymentStatus.PENDING, **kw):
        return self._save(Payment(
            subscription_id=subscription.id,
            amount=kw.pop("amount", Decimal("15000")),
            currency=kw.pop("currency", "kzt"),
            method=kw.pop("method", PaymentMethod.STRIPE.value),
            status=status.value,
            provider_payment_id=provider_payment_id,
            **kw,
        ))

    def attendance(self, class_session, student, actor, status="absent", subscription=None):
        return self._save(Attendance(session_id=class_session.id, student_id=student.id,
                                     status=status, noted_by=actor.id,
                                     subscription_id=subscription.id if subscription else None))


@pytest.fixture
def make(db_session):
    return Builder(db_session)


@pytest.fixture
def world(make):
    """Owner, coach, club, group (coached), student, session and an active subscription."""
    owner = make.user("owner")
    coach = make.user("coach")
    club = make.club(owner)
    group = make.group(club, coach=coach)
    student = make.student(club)
    class_session = make.class_session(group)
    subscription = make.subscription(student, group, total=2)
    return {
        "owner": owner,
        "coach": coach,
        "club": club,
        "group": group,
        "student": student,
        "session": class_session,
        "subscription": subscription,
    }


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        token = create_access_token(identity=user.id, additional_claims={"role": user.role})
        return {"Authorization": f"Bearer {token}"}
    return _headers
