"""
Admin back-office API
Platform default rates and per-seller commission overrides
"""
from functools import wraps

from flask import jsonify
from flask_login import login_required, current_user

from . import admin_bp, json_body
from ..helpers.commissions import update_platform_settings, update_seller_commission_rates
from ..models.platform_setting import PlatformSettings


def admin_required(view):
    @wraps(view)
    @login_required
    def wrapper(*args, **kwargs):
        if not current_user.is_admin:
            return jsonify({"error": "Admin access required"}), 403
        return view(*args, **kwargs)
    return wrapper


@admin_bp.route("/settings", methods=["GET"])
@admin_required
def get_settings():
    settings = PlatformSettings.current()
    if settings is None:
        return jsonify({"settings": None})
    return jsonify({"settings": settings.to_dict()})


@admin_bp.route("/settings", methods=["POST"])
@admin_required
def save_settings():
    settings = update_platform_settings(json_body())
    return jsonify({"success": True, "settings": settings.to_dict()})


@admin_bp.route("/sellers/<int:seller_id>/commission-rates", methods=["POST"])
@admin_required
def set_seller_rates(seller_id):
    data = json_body()
    seller = update_seller_commission_rates(
        seller_id,
        data.get("buyerPremiumPercent"),
        data.get("sellerCommissionPercent"),
    )
    return jsonify({
        "success": True,
        "sellerId": seller.id,
        "buyerPremiumPercent": seller.custom_buyer_premium_percent,
        "sellerCommissionPercent": seller.custom_seller_commission_percent,
    })
