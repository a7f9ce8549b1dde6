"""
Live bidding endpoint
"""
from flask import jsonify
from flask_login import login_required, current_user

from . import bids_bp, json_body
from ..helpers.bidding import place_bid


@bids_bp.route("/place", methods=["POST"])
@login_required
def place():
    data = json_body()
    result = place_bid(current_user, data.get("listingId"), data.get("maxBid"))
    return jsonify(result)
