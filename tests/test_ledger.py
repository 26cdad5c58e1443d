# -*- coding: utf-8 -*-
from datetime import timedelta
from decimal import Decimal

import pytest

from trainerplus.models import Subscription
from trainerplus.models.subscription import SubscriptionStatus, can_transition
from trainerplus.services.errors import CoreError, ErrorKind
from trainerplus.services.ledger import SubscriptionLedger
from trainerplus.services.unit_of_work import unit_of_work
from trainerplus.utils.time import utcnow


@pytest.fixture
def ledger(db_session):
    return SubscriptionLedger(db_session)


class TestTransitions:

    def test_allowed_moves(self):
        assert can_transition("pending", "active")
        assert can_transition("pending", "cancelled")
        assert can_transition("active", "used")
        assert can_transition("active", "expired")

    def test_terminal_states_are_final(self):
        for status in ("used", "expired", "cancelled"):
            assert SubscriptionStatus(status).is_terminal
            assert not can_transition(status, "active")
        assert not can_transition("pending", "used")


class TestDecrement:

    def test_consumes_one_credit(self, ledger, world, db_session):
        sub = ledger.decrement(world["subscription"].id)
        db_session.commit()
        assert sub.remaining_sessions == 1
        assert sub.status == "active"

    def test_last_credit_marks_used(self, ledger, make, world, db_session):
        sub = make.subscription(world["student"], world["group"], total=3, remaining=1)
        sub = ledger.decrement(sub.id)
        db_session.commit()
        assert sub.remaining_sessions == 0
        assert sub.status == "used"

    def test_used_subscription_conflicts(self, ledger, make, world):
        sub = make.subscription(world["student"], world["group"], total=3, remaining=0,
                                status=SubscriptionStatus.USED)
        with pytest.raises(CoreError) as exc:
            ledger.decrement(sub.id)
        assert exc.value.kind == ErrorKind.CONFLICT

    def test_pending_subscription_conflicts(self, ledger, make, world):
        sub = make.subscription(world["student"], world["group"], status=SubscriptionStatus.PENDING)
        with pytest.raises(CoreError) as exc:
            ledger.decrement(sub.id)
        assert exc.value.kind == ErrorKind.CONFLICT
        assert ledger.get(sub.id).remaining_sessions == sub.total_sessions


class TestFindEligible:

    def test_picks_earliest_starting(self, ledger, make, world):
        now = utcnow()
        later = make.subscription(world["student"], world["group"], starts_at=now - timedelta(days=2))
        earlier = make.subscription(world["student"], world["group"], starts_at=now - timedelta(days=10))

        found = ledger.find_eligible(world["student"].id, world["group"].id, now)
        assert found.id == earlier.id
        assert found.id != later.id

    def test_skips_outside_window_and_empty(self, ledger, make, world, db_session):
        now = utcnow()
        world["subscription"].status = "cancelled"
        db_session.commit()
        make.subscription(world["student"], world["group"], expires_at=now - timedelta(days=1))
        make.subscription(world["student"], world["group"], starts_at=now + timedelta(days=3))
        make.subscription(world["student"], world["group"], remaining=0)

        with pytest.raises(CoreError) as exc:
            ledger.find_eligible(world["student"].id, world["group"].id, now)
        assert exc.value.kind == ErrorKind.NOT_FOUND

    def test_other_group_not_eligible(self, ledger, make, world):
        other_group = make.group(world["club"], title="Senior Judo")
        with pytest.raises(CoreError) as exc:
            ledger.find_eligible(world["student"].id, other_group.id, utcnow())
        assert exc.value.kind == ErrorKind.NOT_FOUND


class TestLifecycle:

    def test_create_starts_with_full_balance(self, ledger, world, db_session):
        sub = ledger.create(world["student"].id, world["group"].id, 10, Decimal("20000"))
        db_session.commit()
        assert sub.status == "pending"
        assert sub.remaining_sessions == sub.total_sessions == 10

    def test_create_rejects_non_positive_total(self, ledger, world):
        with pytest.raises(CoreError) as exc:
            ledger.create(world["student"].id, world["group"].id, 0, Decimal("0"))
        assert exc.value.kind == ErrorKind.UNPROCESSABLE_ENTITY

    def test_activate_sets_window(self, ledger, make, world):
        sub = make.subscription(world["student"], world["group"], status=SubscriptionStatus.PENDING)
        now = utcnow()
        sub = ledger.activate(sub.id, starts_at=now, expires_at=now + timedelta(days=90))
        assert sub.status == "active"
        assert sub.expires_at - sub.starts_at == timedelta(days=90)

    def test_activate_twice_is_noop(self, ledger, world):
        sub = ledger.activate(world["subscription"].id)
        assert sub.status == "active"

    def test_activate_cancelled_is_invalid(self, ledger, make, world):
        sub = make.subscription(world["student"], world["group"], status=SubscriptionStatus.CANCELLED)
        with pytest.raises(CoreError) as exc:
            ledger.activate(sub.id)
        assert exc.value.kind == ErrorKind.INVALID_TRANSITION

    def test_cancel(self, ledger, world):
        sub = ledger.cancel(world["subscription"].id)
        assert sub.status == "cancelled"

        with pytest.raises(CoreError) as exc:
            ledger.cancel(sub.id)
        assert exc.value.kind == ErrorKind.CONFLICT

    def test_cancel_used_is_invalid(self, ledger, make, world):
        sub = make.subscription(world["student"], world["group"], remaining=0,
                                status=SubscriptionStatus.USED)
        with pytest.raises(CoreError) as exc:
            ledger.cancel(sub.id)
        assert exc.value.kind == ErrorKind.INVALID_TRANSITION

    def test_get_unknown(self, ledger):
        with pytest.raises(CoreError) as exc:
            ledger.get("00000000-0000-0000-0000-000000000000")
        assert exc.value.kind == ErrorKind.NOT_FOUND


class TestExpiryAndRestore:

    def test_expire_overdue(self, ledger, make, world, db_session):
        now = utcnow()
        overdue = make.subscription(world["student"], world["group"], expires_at=now - timedelta(hours=1))
        current = make.subscription(world["student"], world["group"], expires_at=now + timedelta(days=5))

        assert ledger.expire_overdue(now) == 1
        db_session.commit()
        assert ledger.get(overdue.id).status == "expired"
        assert ledger.get(current.id).status == "active"

    def test_expire_active(self, ledger, world):
        assert ledger.expire(world["subscription"].id).status == "expired"

    def test_expire_pending_is_invalid(self, ledger, make, world):
        sub = make.subscription(world["student"], world["group"], status=SubscriptionStatus.PENDING)
        with pytest.raises(CoreError) as exc:
            ledger.expire(sub.id)
        assert exc.value.kind == ErrorKind.INVALID_TRANSITION
        assert ledger.get(sub.id).status == "pending"

    def test_restore_gives_credit_back(self, ledger, make, world, db_session):
        sub = make.subscription(world["student"], world["group"], total=5, remaining=3)
        assert ledger.restore(sub.id) is True
        db_session.commit()
        assert ledger.get(sub.id).remaining_sessions == 4

    def test_restore_never_reopens_used(self, ledger, make, world):
        sub = make.subscription(world["student"], world["group"], total=5, remaining=0,
                                status=SubscriptionStatus.USED)
        assert ledger.restore(sub.id) is False
        assert ledger.get(sub.id).status == "used"


class TestUnitOfWork:

    def test_rolls_back_on_error(self, world, db_session):
        sub_id = world["subscription"].id
        with pytest.raises(RuntimeError):
            with unit_of_work(db_session) as uow:
                uow.ledger.decrement(sub_id)
                raise RuntimeError("boom")

        assert SubscriptionLedger(db_session).get(sub_id).remaining_sessions == 2

    def test_commits_on_success(self, world, db_session):
        sub_id = world["subscription"].id
        with unit_of_work(db_session) as uow:
            uow.ledger.decrement(sub_id)
        db_session.expire_all()
        assert SubscriptionLedger(db_session).get(sub_id).remaining_sessions == 1


class TestRacingForLastCredit:

    def test_stale_reader_loses_the_last_credit(self, ledger, make, world, db_session):
        student = make.student(world["club"], name="Nurlan")
        sub = make.subscription(student, world["group"], total=1)
        at = world["session"].start_at

        # Both workers read remaining == 1 before either writes.
        first = ledger.find_eligible(student.id, world["group"].id, at, lock=False)
        second = ledger.find_eligible(student.id, world["group"].id, at, lock=False)
        assert first.id == second.id == sub.id

        outcomes = []
        for candidate in (first, second):
            try:
                with unit_of_work(db_session) as uow:
                    uow.ledger.decrement(candidate.id)
                outcomes.append("consumed")
            except CoreError as err:
                outcomes.append(err.kind)

        assert outcomes == ["consumed", ErrorKind.CONFLICT]
        db_session.expire_all()
        sub = ledger.get(sub.id)
        assert (sub.remaining_sessions, sub.status) == (0, "used")

    def test_locked_read_sees_committed_balance(self, ledger, make, world, db_session):
        student = make.student(world["club"], name="Aruzhan")
        sub = make.subscription(student, world["group"], total=1)
        assert sub.remaining_sessions == 1

        db_session.connection().execute(
            Subscription.__table__.update()
            .where(Subscription.id == sub.id)
            .values(remaining_sessions=0, status="used")
        )

        with pytest.raises(CoreError) as exc:
            ledger.find_eligible(student.id, world["group"].id, world["session"].start_at)
        assert exc.value.kind == ErrorKind.NOT_FOUND
        assert ledger.get(sub.id, lock=True).status == "used"
