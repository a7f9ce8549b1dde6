"""
Stripe Webhook Routes
Handles incoming payment events from Stripe, checkout sessions and manual verification
"""
import logging

from flask import request, jsonify, current_app
from flask_login import login_required, current_user

from . import payments_bp, json_body
from ..helpers.webhook_helpers import log_webhook, validate_stripe_signature, parse_stripe_event
from ..helpers.payments import process_webhook_event, verify_payment, create_checkout_session


@payments_bp.route("/webhook", methods=["POST"])
def stripe_webhook():
    """
    Flow:
    1. Validate signature (400 on failure, never retried)
    2. Parse event
    3. Skip events already in the ledger
    4. Apply, then record the event id
    """
    raw_payload = request.get_data()
    signature = request.headers.get("Stripe-Signature", "")

    log_webhook(f"Received Stripe event ({len(raw_payload)} bytes)")

    if not signature:
        log_webhook("Missing Stripe-Signature header", logging.WARNING)
        return jsonify({"error": "Missing stripe-signature header"}), 400

    webhook_secret = current_app.config.get("STRIPE_WEBHOOK_SECRET")
    if not webhook_secret:
        log_webhook("STRIPE_WEBHOOK_SECRET not configured", logging.ERROR)
        return jsonify({"error": "Server configuration error"}), 500

    if not validate_stripe_signature(raw_payload, signature, webhook_secret):
        return jsonify({"error": "Invalid signature"}), 400

    event = parse_stripe_event(raw_payload)
    if event is None:
        return jsonify({"error": "Invalid JSON"}), 400

    result = process_webhook_event(event["event_id"], event["event_type"], event["data_object"])
    return jsonify(result)


@payments_bp.route("/verify-payment", methods=["POST"])
@login_required
def verify():
    data = json_body()
    return jsonify(verify_payment(current_user, data.get("invoiceId")))


@payments_bp.route("/create-checkout", methods=["POST"])
@login_required
def create_checkout():
    data = json_body()
    return jsonify(create_checkout_session(current_user, data.get("invoiceId")))
