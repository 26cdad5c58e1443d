"""Club-owner / group-coach authority checks."""
from typing import Tuple

from trainerplus.models.club import Club, Group, Student
from trainerplus.models.session import ClassSession
from trainerplus.services.errors import forbidden, not_found


def can_manage_group(club: Club, group: Group, actor_id: str) -> bool:
    if club.owner_user_id == actor_id:
        return True
    return group.coach_user_id is not None and group.coach_user_id == actor_id


def load_group(session, group_id: str) -> Tuple[Group, Club]:
    group = session.get(Group, group_id)
    if group is None:
        raise not_found("group")
    club = session.get(Club, group.club_id)
    if club is None:
        raise not_found("club")
    return group, club


def authorize_group(session, group_id: str, actor_id: str, action: str = "manage this group") -> Tuple[Group, Club]:
    """Load a group and its club, raising FORBIDDEN unless the actor is owner or coach."""
    group, club = load_group(session, group_id)
    if not can_manage_group(club, group, actor_id):
        raise forbidden(f"you don't have permission to {action}")
    return group, club


def authorize_club_owner(session, club_id: str, actor_id: str) -> Club:
    club = session.get(Club, club_id)
    if club is None:
        raise not_found("club")
    if club.owner_user_id != actor_id:
        raise forbidden("only the club owner can do this")
    return club


def load_session(session, session_id: str) -> ClassSession:
    class_session = session.get(ClassSession, session_id)
    if class_session is None:
        raise not_found("session")
    return class_session


def load_student_in_club(session, student_id: str, club_id: str) -> Student:
    student = session.get(Student, student_id)
    if student is None or student.club_id != club_id:
        raise not_found("student")
    return student
