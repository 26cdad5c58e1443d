"""
Attendance Recorder

Records one outcome per (session, student). Only ``present`` touches the
subscription ledger: the eligible subscription is locked and decremented in
the same unit of work that inserts the attendance row, so a failed insert
never leaves a consumed credit behind.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from trainerplus.database import db
from trainerplus.models.attendance import Attendance, AttendanceStatus
from trainerplus.models.session import ClassSession
from trainerplus.services.authorization import authorize_group, load_session, load_student_in_club
from trainerplus.services.errors import CoreError, ErrorKind, not_found
from trainerplus.services.metrics import record
from trainerplus.services.structured_logging import get_logger
from trainerplus.services.unit_of_work import UnitOfWork, unit_of_work
from trainerplus.utils.ids import parse_uuid
from trainerplus.utils.time import utcnow

logger = get_logger(__name__)

DUPLICATE_MESSAGE = "attendance already marked for this student and session"


@dataclass
class BulkItemResult:
    student_id: str
    success: bool
    attendance_id: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        body = {"student_id": self.student_id, "success": self.success}
        if self.success:
            body["attendance_id"] = self.attendance_id
        else:
            body["error"] = self.error
            body["error_kind"] = self.error_kind.value if self.error_kind else None
        return body


def parse_status(value) -> AttendanceStatus:
    try:
        return AttendanceStatus(value)
    except ValueError:
        raise CoreError(ErrorKind.UNPROCESSABLE_ENTITY, "status must be one of present, absent, excused")


class AttendanceRecorder:

    def __init__(self, session=None, restore_credit_on_delete: bool = False):
        self.session = session if session is not None else db.session
        self.restore_credit_on_delete = restore_credit_on_delete

    def mark(self, session_id: str, student_id: str, status, actor_id: str) -> Attendance:
        """Record a single attendance outcome, consuming a credit for ``present``."""
        status = parse_status(status)
        class_session = load_session(self.session, session_id)

        if self._exists(session_id, student_id):
            record("record_attendance_mark", status.value, "duplicate")
            raise CoreError(ErrorKind.CONFLICT, DUPLICATE_MESSAGE)

        _, club = authorize_group(self.session, class_session.group_id, actor_id, "mark attendance")
        load_student_in_club(self.session, student_id, club.id)

        try:
            with unit_of_work(self.session) as uow:
                attendance = self._record(uow, class_session, student_id, status, actor_id)
        except IntegrityError:
            record("record_attendance_mark", status.value, "duplicate")
            raise CoreError(ErrorKind.CONFLICT, DUPLICATE_MESSAGE)
        except CoreError as err:
            record("record_attendance_mark", status.value, err.kind.value)
            raise

        record("record_attendance_mark", status.value, "recorded")
        logger.info("Attendance marked", attendance_id=attendance.id, session_id=session_id,
                    student_id=student_id, status=status.value,
                    subscription_id=attendance.subscription_id)
        return attendance

    def mark_bulk(self, session_id: str, items: Iterable[Any], actor_id: str) -> List[BulkItemResult]:
        """
        Mark many students for one session inside one transaction.

        Each item runs in its own savepoint: a failing item is rolled back on
        its own and reported, the rest still commit.
        """
        class_session = load_session(self.session, session_id)
        _, club = authorize_group(self.session, class_session.group_id, actor_id, "mark attendance")

        results: List[BulkItemResult] = []
        with unit_of_work(self.session) as uow:
            for item in items:
                if not isinstance(item, dict):
                    results.append(BulkItemResult("", False, error="item must be an object",
                                                  error_kind=ErrorKind.BAD_REQUEST))
                    continue
                raw_student_id = str(item.get("student_id") or "")
                try:
                    student_id = parse_uuid(raw_student_id, "student_id")
                    status = parse_status(item.get("status"))
                    with uow.savepoint():
                        if self._exists(session_id, student_id):
                            raise CoreError(ErrorKind.CONFLICT, "already marked")
                        load_student_in_club(self.session, student_id, club.id)
                        attendance = self._record(uow, class_session, student_id, status, actor_id)
                except IntegrityError:
                    results.append(BulkItemResult(raw_student_id, False, error="already marked",
                                                  error_kind=ErrorKind.CONFLICT))
                    continue
                except CoreError as err:
                    results.append(BulkItemResult(raw_student_id, False, error=err.message,
                                                  error_kind=err.kind))
                    continue

                results.append(BulkItemResult(raw_student_id, True, attendance_id=attendance.id))

        for result in results:
            outcome = "recorded" if result.success else result.error_kind.value
            record("record_attendance_mark", "bulk", outcome)
        logger.info("Bulk attendance processed", session_id=session_id,
                    succeeded=sum(1 for r in results if r.success), total=len(results))
        return results

    def update(self, attendance_id: str, status, actor_id: str) -> Attendance:
        """Overwrite status and actor. The consumed subscription is left as recorded."""
        status = parse_status(status)
        attendance = self._get(attendance_id)
        class_session = load_session(self.session, attendance.session_id)
        authorize_group(self.session, class_session.group_id, actor_id, "update attendance")

        with unit_of_work(self.session):
            attendance.status = status.value
            attendance.noted_by = actor_id
            attendance.noted_at = utcnow()
        return attendance

    def delete(self, attendance_id: str, actor_id: str) -> None:
        attendance = self._get(attendance_id)
        class_session = load_session(self.session, attendance.session_id)
        authorize_group(self.session, class_session.group_id, actor_id, "delete attendance")

        with unit_of_work(self.session) as uow:
            if (self.restore_credit_on_delete
                    and attendance.status == AttendanceStatus.PRESENT.value
                    and attendance.subscription_id):
                uow.ledger.restore(attendance.subscription_id)
            self.session.delete(attendance)
        logger.info("Attendance deleted", attendance_id=attendance_id,
                    restore_enabled=self.restore_credit_on_delete)

    def list_for_session(self, session_id: str) -> List[Attendance]:
        return list(self.session.execute(
            select(Attendance).where(Attendance.session_id == session_id).order_by(Attendance.noted_at)
        ).scalars())

    def list_for_student(self, student_id: str, limit: int = 50) -> List[Attendance]:
        return list(self.session.execute(
            select(Attendance)
            .where(Attendance.student_id == student_id)
            .order_by(Attendance.noted_at.desc())
            .limit(limit)
        ).scalars())

    # -- internals ---------------------------------------------------------

    def _record(self, uow: UnitOfWork, class_session: ClassSession, student_id: str,
                status: AttendanceStatus, actor_id: str) -> Attendance:
        subscription_id = None
        if status == AttendanceStatus.PRESENT:
            try:
                sub = uow.ledger.find_eligible(student_id, class_session.group_id,
                                               class_session.start_at, lock=True)
            except CoreError as err:
                if err.kind == ErrorKind.NOT_FOUND:
                    raise CoreError(ErrorKind.UNPROCESSABLE_ENTITY, err.message)
                raise
            uow.ledger.decrement(sub.id)
            subscription_id = sub.id

        return uow.add(Attendance(
            session_id=class_session.id,
            student_id=student_id,
            subscription_id=subscription_id,
            status=status.value,
            noted_by=actor_id,
        ))

    def _exists(self, session_id: str, student_id: str) -> bool:
        return self.session.execute(
            select(Attendance.id).where(
                Attendance.session_id == session_id,
                Attendance.student_id == student_id,
            )
        ).first() is not None

    def _get(self, attendance_id: str) -> Attendance:
        attendance = self.session.get(Attendance, attendance_id)
        if attendance is None:
            raise not_found("attendance")
        return attendance
