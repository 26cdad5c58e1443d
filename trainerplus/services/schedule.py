"""Class session scheduling: recurrence expansion and edits to single sessions."""
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional

from sqlalchemy import exists, select

from trainerplus.database import db
from trainerplus.models.attendance import Attendance
from trainerplus.models.club import Group
from trainerplus.models.session import ClassSession
from trainerplus.services.authorization import authorize_group, load_session
from trainerplus.services.errors import CoreError, ErrorKind
from trainerplus.services.structured_logging import get_logger
from trainerplus.services.unit_of_work import unit_of_work
from trainerplus.utils.time import to_naive_utc

logger = get_logger(__name__)

MAX_SESSIONS_PER_EXPANSION = 365


def sunday_based_weekday(day: date) -> int:
    """0=Sunday .. 6=Saturday."""
    return (day.weekday() + 1) % 7


def parse_time_of_day(value) -> time:
    if isinstance(value, time):
        return value
    try:
        return datetime.strptime(str(value), "%H:%M").time()
    except ValueError:
        raise CoreError(ErrorKind.BAD_REQUEST, "time_of_day must be HH:MM")


def occurrences(weekdays: Iterable[int], from_date: date, to_date: date) -> List[date]:
    days = set(weekdays)
    out = []
    current = from_date
    while current <= to_date:
        if sunday_based_weekday(current) in days:
            out.append(current)
        current += timedelta(days=1)
    return out


class ScheduleGenerator:

    def __init__(self, session=None):
        self.session = session if session is not None else db.session

    def expand(self,
               group_id: str,
               weekdays: Iterable[int],
               time_of_day,
               from_date: date,
               to_date: date,
               duration_minutes: int = 60,
               location: Optional[str] = None,
               actor_id: Optional[str] = None) -> List[ClassSession]:
        """
        Create one session per matching date in ``[from_date, to_date]``.

        The whole batch is written in one transaction; a failure leaves no
        partial schedule behind.
        """
        weekdays = list(weekdays)
        if not weekdays or any(d < 0 or d > 6 for d in weekdays):
            raise CoreError(ErrorKind.BAD_REQUEST, "weekdays must be between 0 (Sunday) and 6 (Saturday)")
        if to_date < from_date:
            raise CoreError(ErrorKind.BAD_REQUEST, "to_date must not be before from_date")
        at = parse_time_of_day(time_of_day)

        dates = occurrences(weekdays, from_date, to_date)
        if not dates:
            raise CoreError(ErrorKind.BAD_REQUEST, "no sessions match the given weekdays and range")
        if len(dates) > MAX_SESSIONS_PER_EXPANSION:
            raise CoreError(ErrorKind.BAD_REQUEST,
                            f"too many sessions (max {MAX_SESSIONS_PER_EXPANSION})",
                            {"count": len(dates)})

        if actor_id is not None:
            authorize_group(self.session, group_id, actor_id, "schedule sessions")

        with unit_of_work(self.session) as uow:
            created = [
                uow.add(ClassSession(
                    group_id=group_id,
                    start_at=datetime.combine(day, at),
                    duration_minutes=duration_minutes,
                    location=location,
                ))
                for day in dates
            ]

        logger.info("Recurring sessions created", group_id=group_id, count=len(created),
                    from_date=from_date.isoformat(), to_date=to_date.isoformat())
        return created

    def create_one(self,
                   group_id: str,
                   start_at: datetime,
                   duration_minutes: int = 60,
                   location: Optional[str] = None,
                   actor_id: Optional[str] = None) -> ClassSession:
        if actor_id is not None:
            authorize_group(self.session, group_id, actor_id, "schedule sessions")
        with unit_of_work(self.session) as uow:
            class_session = uow.add(ClassSession(
                group_id=group_id,
                start_at=to_naive_utc(start_at),
                duration_minutes=duration_minutes,
                location=location,
            ))
        return class_session

    def list_for_group(self, group_id: str,
                       from_at: Optional[datetime] = None,
                       to_at: Optional[datetime] = None) -> List[ClassSession]:
        query = select(ClassSession).where(ClassSession.group_id == group_id)
        if from_at is not None:
            query = query.where(ClassSession.start_at >= to_naive_utc(from_at))
        if to_at is not None:
            query = query.where(ClassSession.start_at <= to_naive_utc(to_at))
        return list(self.session.execute(query.order_by(ClassSession.start_at)).scalars())

    def list_for_club(self, club_id: str, from_at: datetime, to_at: datetime) -> List[ClassSession]:
        return list(self.session.execute(
            select(ClassSession)
            .join(Group, ClassSession.group_id == Group.id)
            .where(
                Group.club_id == club_id,
                ClassSession.start_at >= to_naive_utc(from_at),
                ClassSession.start_at <= to_naive_utc(to_at),
            )
            .order_by(ClassSession.start_at)
        ).scalars())

    def get(self, session_id: str, actor_id: Optional[str] = None) -> ClassSession:
        class_session = load_session(self.session, session_id)
        if actor_id is not None:
            authorize_group(self.session, class_session.group_id, actor_id, "view sessions")
        return class_session

    def update(self,
               session_id: str,
               start_at: Optional[datetime] = None,
               duration_minutes: Optional[int] = None,
               location: Optional[str] = None,
               actor_id: Optional[str] = None) -> ClassSession:
        """Reschedule a session. Refused once any attendance has been recorded for it."""
        class_session = self._editable(session_id, actor_id, "update sessions")
        with unit_of_work(self.session):
            if start_at is not None:
                class_session.start_at = to_naive_utc(start_at)
            if duration_minutes is not None:
                class_session.duration_minutes = duration_minutes
            if location is not None:
                class_session.location = location
        logger.info("Session updated", session_id=session_id)
        return class_session

    def delete(self, session_id: str, actor_id: Optional[str] = None):
        class_session = self._editable(session_id, actor_id, "delete sessions")
        with unit_of_work(self.session):
            self.session.delete(class_session)
        logger.info("Session deleted", session_id=session_id)

    def _editable(self, session_id: str, actor_id: Optional[str], action: str) -> ClassSession:
        class_session = self.get(session_id)
        if actor_id is not None:
            authorize_group(self.session, class_session.group_id, actor_id, action)
        marked = self.session.execute(
            select(exists().where(Attendance.session_id == session_id))
        ).scalar()
        if marked:
            raise CoreError(ErrorKind.CONFLICT, "session already has attendance and can no longer change")
        return class_session
