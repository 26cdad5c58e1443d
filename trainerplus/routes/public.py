# -*- coding: utf-8 -*-
"""
Public club pages.

Unauthenticated, read-only views of a club's groups and upcoming sessions,
meant for a schedule page parents can open without an account. Only
catalogue fields are exposed: no coach ids, students or balances.
"""
from datetime import date, datetime, time, timedelta

from flask import Blueprint, jsonify, request
from sqlalchemy import select

from trainerplus.database import db
from trainerplus.models.club import Club, Group
from trainerplus.services.errors import CoreError, ErrorKind, not_found
from trainerplus.services.schedule import ScheduleGenerator
from trainerplus.utils.ids import parse_uuid
from trainerplus.utils.time import isoformat, utcnow

public_bp = Blueprint("public", __name__)

DEFAULT_WINDOW_DAYS = 30


def _club(club_id: str) -> Club:
    club = db.session.get(Club, parse_uuid(club_id, "club id"))
    if club is None:
        raise not_found("club")
    return club


def _groups(club_id: str):
    return list(db.session.execute(
        select(Group).where(Group.club_id == club_id).order_by(Group.title)
    ).scalars())


def _public_group(group: Group):
    return {
        "id": group.id,
        "title": group.title,
        "sport": group.sport,
        "capacity": group.capacity,
        "price": float(group.price) if group.price is not None else None,
        "description": group.description,
    }


def _query_date(name: str, default: date) -> date:
    raw = request.args.get(name)
    if not raw:
        return default
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise CoreError(ErrorKind.BAD_REQUEST, f"invalid {name}, use YYYY-MM-DD")


@public_bp.route("/public/clubs/<club_id>/groups", methods=["GET"])
def public_groups(club_id):
    club = _club(club_id)
    return jsonify({"groups": [_public_group(g) for g in _groups(club.id)]}), 200


@public_bp.route("/public/clubs/<club_id>/schedule", methods=["GET"])
def public_schedule(club_id):
    club = _club(club_id)
    today = utcnow().date()
    from_date = _query_date("from", today)
    to_date = _query_date("to", from_date + timedelta(days=DEFAULT_WINDOW_DAYS))
    if to_date < from_date:
        raise CoreError(ErrorKind.BAD_REQUEST, "to must not be before from")

    groups = _groups(club.id)
    titles = {g.id: g.title for g in groups}
    sessions = ScheduleGenerator().list_for_club(
        club.id, datetime.combine(from_date, time.min), datetime.combine(to_date, time.max)
    )

    return jsonify({
        "club": {
            "id": club.id,
            "name": club.name,
            "address": club.address,
            "phone": club.phone,
            "currency": club.currency,
        },
        "groups": [_public_group(g) for g in groups],
        "sessions": [{
            "id": s.id,
            "group_id": s.group_id,
            "group_title": titles.get(s.group_id),
            "start_at": isoformat(s.start_at),
            "duration_minutes": s.duration_minutes,
            "location": s.location,
        } for s in sessions],
    }), 200
