# -*- coding: utf-8 -*-
"""Direct subscription management for owners and coaches."""
from flask import Blueprint, jsonify, request

from trainerplus.database import db
from trainerplus.middleware.auth import actor_required, current_actor_id
from trainerplus.models.club import Student
from trainerplus.models.subscription import SubscriptionStatus
from trainerplus.routes.common import parse_body
from trainerplus.schemas.clubs import CreateSubscriptionRequest
from trainerplus.services.authorization import (
    authorize_club_owner, authorize_group, load_group, load_student_in_club,
)
from trainerplus.services.errors import CoreError, ErrorKind, not_found
from trainerplus.services.unit_of_work import current_ledger, unit_of_work
from trainerplus.utils.time import to_naive_utc

subscriptions_bp = Blueprint("subscriptions", __name__)


def _authorized_subscription(subscription_id: str, action: str):
    sub = current_ledger().get(subscription_id)
    authorize_group(db.session, sub.group_id, current_actor_id(), action)
    return sub


@subscriptions_bp.route("/subscriptions", methods=["POST"])
@actor_required
def create_subscription():
    data = parse_body(CreateSubscriptionRequest)
    group_id, student_id = str(data.group_id), str(data.student_id)
    _, club = authorize_group(db.session, group_id, current_actor_id(), "create subscriptions")
    load_student_in_club(db.session, student_id, club.id)

    starts_at = to_naive_utc(data.starts_at) if data.starts_at else None
    expires_at = to_naive_utc(data.expires_at) if data.expires_at else None
    if starts_at and expires_at and expires_at < starts_at:
        raise CoreError(ErrorKind.UNPROCESSABLE_ENTITY, "expires_at must not be before starts_at")

    with unit_of_work() as uow:
        sub = uow.ledger.create(
            student_id=student_id,
            group_id=group_id,
            total_sessions=data.total_sessions,
            price=data.price,
            status=SubscriptionStatus.ACTIVE,
            starts_at=starts_at,
            expires_at=expires_at,
        )
    return jsonify(sub.to_dict()), 201


@subscriptions_bp.route("/subscriptions/<subscription_id>/cancel", methods=["POST"])
@actor_required
def cancel_subscription(subscription_id):
    _authorized_subscription(subscription_id, "cancel subscriptions")
    with unit_of_work() as uow:
        sub = uow.ledger.cancel(subscription_id)
    return jsonify(sub.to_dict()), 200


@subscriptions_bp.route("/subscriptions/<subscription_id>", methods=["GET"])
@actor_required
def get_subscription(subscription_id):
    sub = _authorized_subscription(subscription_id, "view subscriptions")
    return jsonify(sub.to_dict()), 200


@subscriptions_bp.route("/groups/<group_id>/subscriptions", methods=["GET"])
@actor_required
def list_group_subscriptions(group_id):
    authorize_group(db.session, group_id, current_actor_id(), "view subscriptions")
    subs = current_ledger().list_for_group(group_id, status=request.args.get("status"))
    return jsonify({"subscriptions": [s.to_dict() for s in subs]}), 200


@subscriptions_bp.route("/subscriptions/<subscription_id>/expire", methods=["POST"])
@actor_required
def expire_subscription(subscription_id):
    """Close an active subscription before its window ends. Owner only."""
    sub = current_ledger().get(subscription_id)
    _, club = load_group(db.session, sub.group_id)
    authorize_club_owner(db.session, club.id, current_actor_id())
    with unit_of_work() as uow:
        sub = uow.ledger.expire(subscription_id)
    return jsonify(sub.to_dict()), 200


@subscriptions_bp.route("/students/<student_id>/subscriptions", methods=["GET"])
@actor_required
def list_student_subscriptions(student_id):
    student = db.session.get(Student, student_id)
    if student is None:
        raise not_found("student")
    authorize_club_owner(db.session, student.club_id, current_actor_id())
    subs = current_ledger().list_for_student(student_id)
    return jsonify({"subscriptions": [s.to_dict() for s in subs]}), 200
