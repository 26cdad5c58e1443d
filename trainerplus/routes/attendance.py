# -*- coding: utf-8 -*-
"""Attendance marking endpoints."""
from flask import Blueprint, jsonify

from trainerplus.database import db
from trainerplus.middleware.auth import actor_required, current_actor_id
from trainerplus.routes.common import attendance_recorder, parse_body
from trainerplus.schemas.attendance import (
    BulkAttendanceRequest,
    MarkAttendanceRequest,
    UpdateAttendanceRequest,
)
from trainerplus.models.club import Student
from trainerplus.services.authorization import authorize_club_owner, authorize_group, load_session
from trainerplus.services.errors import not_found

attendance_bp = Blueprint("attendance", __name__)


@attendance_bp.route("/attendance", methods=["POST"])
@actor_required
def mark_attendance():
    data = parse_body(MarkAttendanceRequest)
    attendance = attendance_recorder().mark(
        str(data.session_id), str(data.student_id), data.status, current_actor_id()
    )
    return jsonify(attendance.to_dict()), 201


@attendance_bp.route("/attendance/bulk", methods=["POST"])
@actor_required
def mark_attendance_bulk():
    data = parse_body(BulkAttendanceRequest)
    results = attendance_recorder().mark_bulk(str(data.session_id), data.items, current_actor_id())
    succeeded = sum(1 for r in results if r.success)
    return jsonify({
        "results": [r.to_dict() for r in results],
        "succeeded": succeeded,
        "failed": len(results) - succeeded,
    }), 200


@attendance_bp.route("/attendance/<attendance_id>", methods=["PUT"])
@actor_required
def update_attendance(attendance_id):
    data = parse_body(UpdateAttendanceRequest)
    attendance = attendance_recorder().update(attendance_id, data.status, current_actor_id())
    return jsonify(attendance.to_dict()), 200


@attendance_bp.route("/attendance/<attendance_id>", methods=["DELETE"])
@actor_required
def delete_attendance(attendance_id):
    attendance_recorder().delete(attendance_id, current_actor_id())
    return "", 204


@attendance_bp.route("/sessions/<session_id>/attendance", methods=["GET"])
@actor_required
def list_session_attendance(session_id):
    class_session = load_session(db.session, session_id)
    authorize_group(db.session, class_session.group_id, current_actor_id(), "view attendance")
    records = attendance_recorder().list_for_session(session_id)
    return jsonify({"attendance": [a.to_dict() for a in records]}), 200


@attendance_bp.route("/students/<student_id>/attendance", methods=["GET"])
@actor_required
def list_student_attendance(student_id):
    student = db.session.get(Student, student_id)
    if student is None:
        raise not_found("student")
    authorize_club_owner(db.session, student.club_id, current_actor_id())
    records = attendance_recorder().list_for_student(student_id)
    return jsonify({"attendance": [a.to_dict() for a in records]}), 200
