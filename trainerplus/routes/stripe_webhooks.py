# -*- coding: utf-8 -*-
"""
Stripe webhook receiver.

Handles checkout completion/expiry and refunds. Signature and payload
failures answer 400; once an event is authenticated the endpoint answers 200
even when reconciliation failed, since a redelivery would fail the same way.
"""
from flask import Blueprint, jsonify, request

from trainerplus.routes.common import payment_reconciler

stripe_webhooks_bp = Blueprint('stripe_webhooks', __name__)

MAX_BODY_BYTES = 65536


@stripe_webhooks_bp.route('/webhooks/stripe', methods=['POST'])
def stripe_webhook():
    if request.content_length and request.content_length > MAX_BODY_BYTES:
        return jsonify({'error': 'bad_request', 'message': 'payload too large'}), 400

    result = payment_reconciler().handle_provider_event(
        request.get_data(), request.headers.get('Stripe-Signature')
    )
    return jsonify({'status': 'success', **result.to_dict()}), 200
