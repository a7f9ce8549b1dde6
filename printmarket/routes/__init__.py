import hmac

from flask import Blueprint, current_app, request

auctions_bp = Blueprint("auctions", __name__, url_prefix="/api/auctions")
listings_bp = Blueprint("listings", __name__, url_prefix="/api/listings")
offers_bp = Blueprint("offers", __name__, url_prefix="/api/offers")
bids_bp = Blueprint("bids", __name__, url_prefix="/api/bids")
checkout_bp = Blueprint("checkout", __name__, url_prefix="/api/checkout")
payments_bp = Blueprint("payments", __name__, url_prefix="/api/stripe")
admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")
platform_bp = Blueprint("platform", __name__, url_prefix="/api/platform")


def cron_authorized():
    """Batch endpoints require 'Bearer <CRON_SECRET>' only when a secret is configured"""
    secret = current_app.config.get("CRON_SECRET")
    if not secret:
        return True
    header = request.headers.get("Authorization", "")
    return hmac.compare_digest(header, f"Bearer {secret}")


def json_body():
    return request.get_json(silent=True) or {}


from . import auctions, listings, offers, bids, checkout, payments, admin, platform  # noqa: E402,F401
