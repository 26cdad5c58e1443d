# -*- coding: utf-8 -*-
"""Public checkout, manual payments and payment reads."""
from flask import Blueprint, jsonify

from trainerplus.database import db
from trainerplus.middleware.auth import actor_required, current_actor_id
from trainerplus.routes.common import parse_body, payment_reconciler
from trainerplus.schemas.payments import CreateCheckoutRequest, ManualPaymentRequest
from trainerplus.services.authorization import authorize_group
from trainerplus.services.payments import CheckoutTerms, ReturnUrls
from trainerplus.services.unit_of_work import current_ledger

payments_bp = Blueprint("payments", __name__)


@payments_bp.route("/payments/create-checkout-session", methods=["POST"])
def create_checkout_session():
    """Public endpoint: opens a provider checkout for a new subscription."""
    data = parse_body(CreateCheckoutRequest)
    handle = payment_reconciler().create_checkout(
        str(data.group_id),
        data.student_ref(),
        CheckoutTerms(data.subscription.total_sessions, data.subscription.price),
        ReturnUrls(data.success_url, data.cancel_url),
    )
    return jsonify(handle.to_dict()), 200


@payments_bp.route("/payments/manual", methods=["POST"])
@actor_required
def create_manual_payment():
    data = parse_body(ManualPaymentRequest)
    payment = payment_reconciler().create_manual(
        str(data.subscription_id), data.amount, data.method, data.notes, current_actor_id()
    )
    return jsonify(payment.to_dict()), 201


@payments_bp.route("/payments/<payment_id>", methods=["GET"])
@actor_required
def get_payment(payment_id):
    payment = payment_reconciler().get(payment_id)
    sub = current_ledger().get(payment.subscription_id)
    authorize_group(db.session, sub.group_id, current_actor_id(), "view payments")
    return jsonify(payment.to_dict()), 200


@payments_bp.route("/subscriptions/<subscription_id>/payments", methods=["GET"])
@actor_required
def list_subscription_payments(subscription_id):
    sub = current_ledger().get(subscription_id)
    authorize_group(db.session, sub.group_id, current_actor_id(), "view payments")
    payments = payment_reconciler().list_for_subscription(subscription_id)
    return jsonify({"payments": [p.to_dict() for p in payments]}), 200
