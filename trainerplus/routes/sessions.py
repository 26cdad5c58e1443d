# -*- coding: utf-8 -*-
"""Class session scheduling."""
from datetime import datetime

from flask import Blueprint, jsonify, request

from trainerplus.database import db
from trainerplus.middleware.auth import actor_required, current_actor_id
from trainerplus.routes.common import parse_body
from trainerplus.schemas.sessions import (
    CreateSessionRequest,
    RecurringSessionsRequest,
    UpdateSessionRequest,
)
from trainerplus.services.authorization import authorize_group
from trainerplus.services.errors import CoreError, ErrorKind
from trainerplus.services.schedule import ScheduleGenerator

sessions_bp = Blueprint("sessions", __name__)


def _query_datetime(name: str):
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        raise CoreError(ErrorKind.BAD_REQUEST, f"invalid {name}, use ISO 8601")


@sessions_bp.route("/groups/<group_id>/sessions", methods=["POST"])
@actor_required
def create_session(group_id):
    data = parse_body(CreateSessionRequest)
    class_session = ScheduleGenerator().create_one(
        group_id,
        data.start_at,
        duration_minutes=data.duration_minutes,
        location=data.location,
        actor_id=current_actor_id(),
    )
    return jsonify(class_session.to_dict()), 201


@sessions_bp.route("/groups/<group_id>/sessions/recurring", methods=["POST"])
@actor_required
def create_recurring_sessions(group_id):
    data = parse_body(RecurringSessionsRequest)
    created = ScheduleGenerator().expand(
        group_id,
        data.weekdays,
        data.time_of_day,
        data.from_date,
        data.to_date,
        duration_minutes=data.duration_minutes,
        location=data.location,
        actor_id=current_actor_id(),
    )
    return jsonify({
        "created": len(created),
        "sessions": [s.to_dict() for s in created],
    }), 201


@sessions_bp.route("/groups/<group_id>/sessions", methods=["GET"])
@actor_required
def list_sessions(group_id):
    authorize_group(db.session, group_id, current_actor_id(), "view sessions")
    sessions = ScheduleGenerator().list_for_group(
        group_id, _query_datetime("from"), _query_datetime("to")
    )
    return jsonify({"sessions": [s.to_dict() for s in sessions]}), 200


@sessions_bp.route("/sessions/<session_id>", methods=["GET"])
@actor_required
def get_session(session_id):
    class_session = ScheduleGenerator().get(session_id, actor_id=current_actor_id())
    return jsonify(class_session.to_dict()), 200


@sessions_bp.route("/sessions/<session_id>", methods=["PUT"])
@actor_required
def update_session(session_id):
    data = parse_body(UpdateSessionRequest)
    class_session = ScheduleGenerator().update(
        session_id,
        start_at=data.start_at,
        duration_minutes=data.duration_minutes,
        location=data.location,
        actor_id=current_actor_id(),
    )
    return jsonify(class_session.to_dict()), 200


@sessions_bp.route("/sessions/<session_id>", methods=["DELETE"])
@actor_required
def delete_session(session_id):
    ScheduleGenerator().delete(session_id, actor_id=current_actor_id())
    return "", 204
