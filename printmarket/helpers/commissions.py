"""
Commission rates and fee math

calculate_fees() is pure. Rate resolution reads the seller profile and
takes the platform defaults as an explicit argument, so one operation
fetches the settings row once (load_platform_defaults) and passes it down.
"""
import logging
import math
from datetime import datetime

from flask import current_app

from ..extensions import db
from ..exceptions import ValidationError, NotFoundError
from ..models.user import User
from ..models.platform_setting import PlatformSettings

logger = logging.getLogger(__name__)

FALLBACK_BUYER_PREMIUM = 8.0
FALLBACK_SELLER_COMMISSION = 8.0
FALLBACK_OFFER_EXPIRY_HOURS = 48
FALLBACK_AUCTION_EXTENSION_MINUTES = 2


def parse_amount(value, error_message):
    """Positive, finite dollar amount from user input, else ValidationError"""
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValidationError(error_message)
    if not math.isfinite(amount) or amount <= 0:
        raise ValidationError(error_message)
    return amount


def calculate_fees(sale_amount, rates):
    """
    Split a sale into buyer premium, seller commission and payouts.

    No rounding is applied; callers round at presentation or persistence.
    Invariant: total_buyer_pays - platform_earnings == seller_payout_amount

    Args:
        sale_amount: Hammer price / accepted offer amount (>= 0)
        rates: dict with buyer_premium_percent and seller_commission_percent

    Returns:
        dict fee breakdown
    """
    buyer_premium_percent = rates['buyer_premium_percent']
    seller_commission_percent = rates['seller_commission_percent']

    if sale_amount is None or sale_amount < 0:
        raise ValidationError("Sale amount cannot be negative")
    if not math.isfinite(sale_amount):
        raise ValidationError("Sale amount must be a finite number")
    if buyer_premium_percent < 0 or seller_commission_percent < 0:
        raise ValidationError("Commission percentages cannot be negative")
    if not (math.isfinite(buyer_premium_percent) and math.isfinite(seller_commission_percent)):
        raise ValidationError("Commission percentages must be finite numbers")

    buyer_premium_amount = sale_amount * buyer_premium_percent / 100
    seller_commission_amount = sale_amount * seller_commission_percent / 100

    return {
        'buyer_premium_amount': buyer_premium_amount,
        'seller_commission_amount': seller_commission_amount,
        'total_buyer_pays': sale_amount + buyer_premium_amount,
        'seller_payout_amount': sale_amount - seller_commission_amount,
        'platform_earnings': buyer_premium_amount + seller_commission_amount,
    }


def load_platform_defaults():
    """
    Snapshot of the platform-wide defaults.

    A missing settings row falls back to configured defaults instead of
    failing, payment flows must keep working without it.
    """
    settings = PlatformSettings.current()
    if settings is None:
        logger.warning("platform_settings row missing, using fallback commission rates")
        config = current_app.config
        return {
            'buyer_premium_percent': config.get('FALLBACK_BUYER_PREMIUM_PERCENT', FALLBACK_BUYER_PREMIUM),
            'seller_commission_percent': config.get('FALLBACK_SELLER_COMMISSION_PERCENT', FALLBACK_SELLER_COMMISSION),
            'offer_expiry_hours': config.get('OFFER_EXPIRY_HOURS', FALLBACK_OFFER_EXPIRY_HOURS),
            'auction_extension_minutes': config.get('AUCTION_EXTENSION_MINUTES', FALLBACK_AUCTION_EXTENSION_MINUTES),
        }

    extension = settings.auction_extension_minutes
    return {
        'buyer_premium_percent': settings.default_buyer_premium_percent,
        'seller_commission_percent': settings.default_seller_commission_percent,
        'offer_expiry_hours': settings.offer_expiry_hours or FALLBACK_OFFER_EXPIRY_HOURS,
        'auction_extension_minutes': extension if extension is not None else FALLBACK_AUCTION_EXTENSION_MINUTES,
    }


def get_commission_rates(seller_id, defaults):
    """
    Resolve the rates that apply to a seller.

    Each custom percent overrides its default independently, so a seller
    may carry only one of the two overrides.

    Returns:
        dict: buyer_premium_percent, seller_commission_percent, is_custom
    """
    seller = db.session.get(User, seller_id)

    custom_premium = seller.custom_buyer_premium_percent if seller else None
    custom_commission = seller.custom_seller_commission_percent if seller else None

    return {
        'buyer_premium_percent': custom_premium if custom_premium is not None else defaults['buyer_premium_percent'],
        'seller_commission_percent': custom_commission if custom_commission is not None else defaults['seller_commission_percent'],
        'is_custom': custom_premium is not None or custom_commission is not None,
    }


def _validate_percent(value, label):
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be between 0 and 100")
    if not math.isfinite(value) or value < 0 or value > 100:
        raise ValidationError(f"{label} must be between 0 and 100")
    return value


def update_platform_settings(values):
    """
    Update the platform settings row (admin).

    Creates the row on first use. Only keys present in values are touched.
    """
    updates = {}

    if values.get('default_buyer_premium_percent') is not None:
        updates['default_buyer_premium_percent'] = _validate_percent(
            values['default_buyer_premium_percent'], 'Buyer premium')

    if values.get('default_seller_commission_percent') is not None:
        updates['default_seller_commission_percent'] = _validate_percent(
            values['default_seller_commission_percent'], 'Seller commission')

    if values.get('auction_extension_minutes') is not None:
        try:
            minutes = int(values['auction_extension_minutes'])
        except (TypeError, ValueError):
            raise ValidationError("Auction extension must be a positive number")
        if minutes < 0:
            raise ValidationError("Auction extension must be a positive number")
        updates['auction_extension_minutes'] = minutes

    if values.get('offer_expiry_hours') is not None:
        try:
            hours = int(values['offer_expiry_hours'])
        except (TypeError, ValueError):
            raise ValidationError("Offer expiry must be at least 1 hour")
        if hours < 1:
            raise ValidationError("Offer expiry must be at least 1 hour")
        updates['offer_expiry_hours'] = hours

    settings = PlatformSettings.current()
    if settings is None:
        settings = PlatformSettings()
        db.session.add(settings)

    for key, value in updates.items():
        setattr(settings, key, value)
    settings.updated_at = datetime.utcnow()
    db.session.commit()

    logger.info("Platform settings updated: %s", updates)
    return settings


def update_seller_commission_rates(seller_id, buyer_premium_percent, seller_commission_percent):
    """Set or clear (None) a seller's custom rates"""
    seller = db.session.get(User, seller_id)
    if seller is None:
        raise NotFoundError('Seller', seller_id)

    seller.custom_buyer_premium_percent = (
        _validate_percent(buyer_premium_percent, 'Buyer premium')
        if buyer_premium_percent is not None else None
    )
    seller.custom_seller_commission_percent = (
        _validate_percent(seller_commission_percent, 'Seller commission')
        if seller_commission_percent is not None else None
    )
    db.session.commit()

    logger.info(
        "Seller %s commission rates set to premium=%s commission=%s",
        seller_id, seller.custom_buyer_premium_percent, seller.custom_seller_commission_percent
    )
    return seller
