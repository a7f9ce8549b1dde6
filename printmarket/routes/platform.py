from flask import jsonify, request

from . import platform_bp
from ..exceptions import ValidationError
from ..helpers.commissions import calculate_fees, get_commission_rates, load_platform_defaults


@platform_bp.route("/fees", methods=["GET"])
def fees():
    """Resolved rates for a seller (or platform defaults), plus a breakdown when amount is given"""
    defaults = load_platform_defaults()
    seller_id = request.args.get("sellerId", type=int)

    if seller_id:
        rates = get_commission_rates(seller_id, defaults)
    else:
        rates = {
            "buyer_premium_percent": defaults["buyer_premium_percent"],
            "seller_commission_percent": defaults["seller_commission_percent"],
            "is_custom": False,
        }

    body = {
        "buyerPremiumPercent": rates["buyer_premium_percent"],
        "sellerCommissionPercent": rates["seller_commission_percent"],
        "isCustom": rates["is_custom"],
    }

    amount = request.args.get("amount")
    if amount is not None:
        try:
            sale_amount = float(amount)
        except ValueError:
            raise ValidationError("Invalid amount")
        breakdown = calculate_fees(sale_amount, rates)
        body["fees"] = {
            "buyerPremiumAmount": round(breakdown["buyer_premium_amount"], 2),
            "sellerCommissionAmount": round(breakdown["seller_commission_amount"], 2),
            "totalBuyerPays": round(breakdown["total_buyer_pays"], 2),
            "sellerPayoutAmount": round(breakdown["seller_payout_amount"], 2),
            "platformEarnings": round(breakdown["platform_earnings"], 2),
        }

    return jsonify(body)
