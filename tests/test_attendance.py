# -*- coding: utf-8 -*-
from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import select, func

from trainerplus.models import Attendance
from trainerplus.models.subscription import SubscriptionStatus
from trainerplus.services.attendance import AttendanceRecorder
from trainerplus.services.errors import CoreError, ErrorKind
from trainerplus.services.ledger import SubscriptionLedger


@pytest.fixture
def recorder(db_session):
    return AttendanceRecorder(db_session)


def _attendance_count(db_session):
    return db_session.execute(select(func.count(Attendance.id))).scalar()


def _remaining(db_session, subscription_id):
    db_session.expire_all()
    return SubscriptionLedger(db_session).get(subscription_id).remaining_sessions


class TestMark:

    def test_present_consumes_one_credit(self, recorder, world, db_session):
        attendance = recorder.mark(world["session"].id, world["student"].id, "present",
                                   world["coach"].id)

        assert attendance.status == "present"
        assert attendance.subscription_id == world["subscription"].id
        assert attendance.noted_by == world["coach"].id
        assert _remaining(db_session, world["subscription"].id) == 1

    @pytest.mark.parametrize("status", ["absent", "excused"])
    def test_non_present_leaves_ledger_alone(self, recorder, world, db_session, status):
        attendance = recorder.mark(world["session"].id, world["student"].id, status,
                                   world["owner"].id)

        assert attendance.subscription_id is None
        assert _remaining(db_session, world["subscription"].id) == 2

    def test_duplicate_is_conflict_and_consumes_nothing(self, recorder, world, db_session):
        recorder.mark(world["session"].id, world["student"].id, "present", world["coach"].id)

        with pytest.raises(CoreError) as exc:
            recorder.mark(world["session"].id, world["student"].id, "present", world["coach"].id)

        assert exc.value.kind == ErrorKind.CONFLICT
        assert _remaining(db_session, world["subscription"].id) == 1
        assert _attendance_count(db_session) == 1

    def test_no_subscription_writes_nothing(self, recorder, make, world, db_session):
        other = make.student(world["club"], name="Bolat")

        with pytest.raises(CoreError) as exc:
            recorder.mark(world["session"].id, other.id, "present", world["coach"].id)

        assert exc.value.kind == ErrorKind.UNPROCESSABLE_ENTITY
        assert _attendance_count(db_session) == 0

    def test_last_credit_then_exhausted(self, recorder, make, world, db_session):
        second = make.class_session(world["group"], start_at=world["session"].start_at + timedelta(hours=1))
        third = make.class_session(world["group"], start_at=world["session"].start_at + timedelta(hours=2))

        recorder.mark(world["session"].id, world["student"].id, "present", world["coach"].id)
        recorder.mark(second.id, world["student"].id, "present", world["coach"].id)

        db_session.expire_all()
        sub = SubscriptionLedger(db_session).get(world["subscription"].id)
        assert sub.remaining_sessions == 0
        assert sub.status == SubscriptionStatus.USED.value

        with pytest.raises(CoreError) as exc:
            recorder.mark(third.id, world["student"].id, "present", world["coach"].id)
        assert exc.value.kind == ErrorKind.UNPROCESSABLE_ENTITY

    def test_unassigned_coach_forbidden(self, recorder, make, world):
        stranger = make.user("coach")
        with pytest.raises(CoreError) as exc:
            recorder.mark(world["session"].id, world["student"].id, "present", stranger.id)
        assert exc.value.kind == ErrorKind.FORBIDDEN

    def test_student_from_other_club(self, recorder, make, world):
        foreign = make.student(make.club(), name="Dana")
        with pytest.raises(CoreError) as exc:
            recorder.mark(world["session"].id, foreign.id, "absent", world["owner"].id)
        assert exc.value.kind == ErrorKind.NOT_FOUND

    def test_unknown_session(self, recorder, world):
        with pytest.raises(CoreError) as exc:
            recorder.mark("00000000-0000-0000-0000-000000000000", world["student"].id,
                          "present", world["owner"].id)
        assert exc.value.kind == ErrorKind.NOT_FOUND

    def test_invalid_status(self, recorder, world):
        with pytest.raises(CoreError) as exc:
            recorder.mark(world["session"].id, world["student"].id, "late", world["owner"].id)
        assert exc.value.kind == ErrorKind.UNPROCESSABLE_ENTITY


class TestMarkBulk:

    def test_failures_roll_back_alone(self, recorder, make, world, db_session):
        no_credit = make.student(world["club"], name="Erlan")
        excused = make.student(world["club"], name="Gulnara")

        results = recorder.mark_bulk(world["session"].id, [
            {"student_id": world["student"].id, "status": "present"},
            {"student_id": no_credit.id, "status": "present"},
            {"student_id": excused.id, "status": "excused"},
            {"student_id": "not-a-uuid", "status": "present"},
            {"student_id": world["student"].id, "status": "absent"},
        ], world["coach"].id)

        assert [r.success for r in results] == [True, False, True, False, False]
        assert results[1].error_kind == ErrorKind.UNPROCESSABLE_ENTITY
        assert results[3].error_kind == ErrorKind.BAD_REQUEST
        assert results[4].error_kind == ErrorKind.CONFLICT
        assert results[0].to_dict()["attendance_id"] == results[0].attendance_id

        assert _attendance_count(db_session) == 2
        assert _remaining(db_session, world["subscription"].id) == 1

    def test_non_object_item_fails_alone(self, recorder, world, db_session):
        results = recorder.mark_bulk(world["session"].id, [
            {"student_id": world["student"].id, "status": "absent"},
            "garbage",
            None,
        ], world["coach"].id)

        assert [r.success for r in results] == [True, False, False]
        assert results[1].error_kind == ErrorKind.BAD_REQUEST
        assert results[2].to_dict() == {"student_id": "", "success": False,
                                        "error": "item must be an object", "error_kind": "bad_request"}
        assert _attendance_count(db_session) == 1

    def test_requires_authority(self, recorder, make, world):
        stranger = make.user("coach")
        with pytest.raises(CoreError) as exc:
            recorder.mark_bulk(world["session"].id,
                               [{"student_id": world["student"].id, "status": "present"}],
                               stranger.id)
        assert exc.value.kind == ErrorKind.FORBIDDEN


class TestUpdateDelete:

    def test_update_overwrites_status_only(self, recorder, world, db_session):
        attendance = recorder.mark(world["session"].id, world["student"].id, "present",
                                   world["coach"].id)

        updated = recorder.update(attendance.id, "excused", world["owner"].id)

        assert updated.status == "excused"
        assert updated.noted_by == world["owner"].id
        assert updated.subscription_id == world["subscription"].id
        assert _remaining(db_session, world["subscription"].id) == 1

    def test_delete_keeps_credit_by_default(self, recorder, world, db_session):
        attendance = recorder.mark(world["session"].id, world["student"].id, "present",
                                   world["coach"].id)

        recorder.delete(attendance.id, world["coach"].id)

        assert _attendance_count(db_session) == 0
        assert _remaining(db_session, world["subscription"].id) == 1

    def test_delete_restores_credit_when_enabled(self, world, db_session):
        recorder = AttendanceRecorder(db_session, restore_credit_on_delete=True)
        attendance = recorder.mark(world["session"].id, world["student"].id, "present",
                                   world["coach"].id)

        recorder.delete(attendance.id, world["coach"].id)

        assert _remaining(db_session, world["subscription"].id) == 2

    def test_delete_unknown(self, recorder, world):
        with pytest.raises(CoreError) as exc:
            recorder.delete("00000000-0000-0000-0000-000000000000", world["owner"].id)
        assert exc.value.kind == ErrorKind.NOT_FOUND

    def test_listing(self, recorder, make, world):
        other = make.student(world["club"], name="Kairat")
        recorder.mark(world["session"].id, world["student"].id, "present", world["coach"].id)
        recorder.mark(world["session"].id, other.id, "absent", world["coach"].id)

        assert len(recorder.list_for_session(world["session"].id)) == 2
        assert len(recorder.list_for_student(world["student"].id)) == 1


class TestConcurrentPresentMarks:

    def test_one_credit_two_sessions_only_one_wins(self, recorder, make, world, db_session):
        student = make.student(world["club"], name="Timur")
        sub = make.subscription(student, world["group"], total=1)
        later = make.class_session(world["group"], start_at=world["session"].start_at + timedelta(minutes=30))

        # The losing request picked the subscription before the winner committed.
        stale = SubscriptionLedger(db_session).find_eligible(
            student.id, world["group"].id, later.start_at, lock=False)

        recorder.mark(world["session"].id, student.id, "present", world["coach"].id)
        with patch.object(SubscriptionLedger, "find_eligible", return_value=stale):
            with pytest.raises(CoreError) as exc:
                recorder.mark(later.id, student.id, "present", world["coach"].id)

        assert exc.value.kind == ErrorKind.CONFLICT
        assert len(recorder.list_for_session(later.id)) == 0
        assert _remaining(db_session, sub.id) == 0
