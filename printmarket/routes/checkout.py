import logging

from flask import jsonify
from flask_login import login_required, current_user

from . import checkout_bp, json_body
from ..exceptions import MarketplaceError
from ..helpers.buy_now import buy_now
from ..helpers.payments import create_checkout_session

logger = logging.getLogger(__name__)


@checkout_bp.route("/buy-now", methods=["POST"])
@login_required
def buy_now_checkout():
    """
    Buy a listing at its Buy Now price, then open a Checkout Session.

    The sale stands even when the payment processor is unavailable; the
    buyer can pay later through /api/stripe/create-checkout.
    """
    data = json_body()
    result = buy_now(current_user, data.get("listingId"))

    try:
        session = create_checkout_session(current_user, result["invoiceId"])
    except MarketplaceError as e:
        logger.warning("Checkout session for invoice %s not opened: %s", result["invoiceId"], e.message)
        result["checkoutError"] = e.message
    else:
        result["sessionId"] = session["sessionId"]
        result["sessionUrl"] = session["url"]

    return jsonify(result)
