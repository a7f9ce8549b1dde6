from flask import jsonify

from . import listings_bp, cron_authorized
from ..helpers.settlement import activate_scheduled_listings


@listings_bp.route("/activate-scheduled", methods=["GET", "POST"])
def activate_scheduled():
    """Flip scheduled listings whose start_time has passed to active"""
    if not cron_authorized():
        return jsonify({"error": "Unauthorized"}), 401

    return jsonify(activate_scheduled_listings())
