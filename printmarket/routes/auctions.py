"""
Auction settlement endpoint
Called by an external cron (POST) or by hand (GET)
"""
import logging

from flask import jsonify

from . import auctions_bp, cron_authorized
from ..helpers.settlement import settle_ended_auctions

logger = logging.getLogger(__name__)


@auctions_bp.route("/process-ended", methods=["GET", "POST"])
def process_ended_auctions():
    if not cron_authorized():
        return jsonify({"error": "Unauthorized"}), 401

    summary = settle_ended_auctions()
    logger.info("Processed %d ended auctions", summary["processed"])
    return jsonify(summary)
