# -*- coding: utf-8 -*-
"""Minimal club, group and student management."""
from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import select

from trainerplus.database import db
from trainerplus.middleware.auth import actor_required, current_actor_id
from trainerplus.models.club import Club, Group, Student
from trainerplus.models.user import User
from trainerplus.routes.common import parse_body
from trainerplus.schemas.clubs import CreateClubRequest, CreateGroupRequest, CreateStudentRequest
from trainerplus.services.authorization import authorize_club_owner
from trainerplus.services.errors import CoreError, ErrorKind, forbidden, not_found
from trainerplus.services.unit_of_work import current_ledger

clubs_bp = Blueprint("clubs", __name__)


def _club_member(club_id: str, actor_id: str) -> Club:
    """Owner, or a coach assigned to at least one of the club's groups."""
    club = db.session.get(Club, club_id)
    if club is None:
        raise not_found("club")
    if club.owner_user_id == actor_id:
        return club
    coached = db.session.execute(
        select(Group.id).where(Group.club_id == club_id, Group.coach_user_id == actor_id)
    ).first()
    if coached is None:
        raise forbidden("you don't have access to this club")
    return club


@clubs_bp.route("/clubs", methods=["POST"])
@actor_required
def create_club():
    data = parse_body(CreateClubRequest)
    club = Club(
        owner_user_id=current_actor_id(),
        name=data.name,
        address=data.address,
        phone=data.phone,
        currency=data.currency or current_app.config.get("DEFAULT_CURRENCY", "kzt"),
    )
    db.session.add(club)
    db.session.commit()
    return jsonify(club.to_dict()), 201


@clubs_bp.route("/clubs", methods=["GET"])
@actor_required
def list_clubs():
    clubs = db.session.execute(
        select(Club).where(Club.owner_user_id == current_actor_id()).order_by(Club.created_at)
    ).scalars()
    return jsonify({"clubs": [c.to_dict() for c in clubs]}), 200


@clubs_bp.route("/clubs/<club_id>/groups", methods=["POST"])
@actor_required
def create_group(club_id):
    club = authorize_club_owner(db.session, club_id, current_actor_id())
    data = parse_body(CreateGroupRequest)
    coach_id = str(data.coach_user_id) if data.coach_user_id else None
    if coach_id and db.session.get(User, coach_id) is None:
        raise CoreError(ErrorKind.UNPROCESSABLE_ENTITY, "coach not found")

    group = Group(
        club_id=club.id,
        title=data.title,
        sport=data.sport,
        capacity=data.capacity,
        price=data.price,
        description=data.description,
        coach_user_id=coach_id,
    )
    db.session.add(group)
    db.session.commit()
    return jsonify(group.to_dict()), 201


@clubs_bp.route("/clubs/<club_id>/groups", methods=["GET"])
@actor_required
def list_groups(club_id):
    _club_member(club_id, current_actor_id())
    groups = db.session.execute(
        select(Group).where(Group.club_id == club_id).order_by(Group.title)
    ).scalars()
    return jsonify({"groups": [g.to_dict() for g in groups]}), 200


@clubs_bp.route("/clubs/<club_id>/students", methods=["POST"])
@actor_required
def create_student(club_id):
    club = _club_member(club_id, current_actor_id())
    data = parse_body(CreateStudentRequest)
    student = Student(
        club_id=club.id,
        name=data.name,
        birth_date=data.birth_date,
        parent_contact=data.parent_contact.model_dump(exclude_none=True) if data.parent_contact else None,
        notes=data.notes,
    )
    db.session.add(student)
    db.session.commit()
    return jsonify(student.to_dict()), 201


@clubs_bp.route("/clubs/<club_id>/students", methods=["GET"])
@actor_required
def list_students(club_id):
    _club_member(club_id, current_actor_id())
    students = db.session.execute(
        select(Student).where(Student.club_id == club_id).order_by(Student.name)
    ).scalars()
    return jsonify({"students": [s.to_dict() for s in students]}), 200


@clubs_bp.route("/clubs/<club_id>/subscriptions", methods=["GET"])
@actor_required
def list_club_subscriptions(club_id):
    authorize_club_owner(db.session, club_id, current_actor_id())
    subs = current_ledger().list_for_club(club_id, status=request.args.get("status"))
    return jsonify({"subscriptions": [s.to_dict() for s in subs]}), 200
