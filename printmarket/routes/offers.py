"""
Offer negotiation endpoints
Callers authenticate with a session cookie or 'Authorization: Bearer <api_token>'
"""
from flask import jsonify
from flask_login import login_required, current_user

from . import offers_bp, json_body
from ..helpers.offers import submit_offer, respond_to_offer, withdraw_offer


@offers_bp.route("/submit", methods=["POST"])
@login_required
def submit():
    data = json_body()
    listing_id = data.get("listingId")
    amount = data.get("amount")

    if not listing_id or amount is None:
        return jsonify({"error": "Missing listingId or amount"}), 400

    result = submit_offer(current_user, listing_id, amount, data.get("message"))
    return jsonify(result)


@offers_bp.route("/respond", methods=["POST"])
@login_required
def respond():
    data = json_body()
    result = respond_to_offer(
        current_user,
        data.get("offerId"),
        data.get("action"),
        counter_amount=data.get("counterAmount"),
        counter_message=data.get("counterMessage"),
    )
    return jsonify(result)


@offers_bp.route("/withdraw", methods=["POST"])
@login_required
def withdraw():
    data = json_body()
    return jsonify(withdraw_offer(current_user, data.get("offerId")))
