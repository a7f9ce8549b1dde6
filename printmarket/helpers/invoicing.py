"""
Invoice creation shared by auction settlement and offer acceptance
"""
import logging
from datetime import datetime, timedelta

from flask import current_app

from ..extensions import db
from ..models.invoice import Invoice
from .commissions import calculate_fees, get_commission_rates
from .invoice_numbers import generate_invoice_number

logger = logging.getLogger(__name__)


def _cents(value):
    return round(value, 2)


def allocate_invoice_number(now=None):
    """
    Generate an invoice number not used yet.

    The unique index on invoices.invoice_number remains the real guarantee;
    this loop just keeps the 16-bit suffix from colliding in practice.
    """
    max_attempts = current_app.config.get('INVOICE_NUMBER_MAX_ATTEMPTS', 5)
    number = generate_invoice_number(now)
    attempts = 1
    while Invoice.query.filter_by(invoice_number=number).first() is not None:
        if attempts >= max_attempts:
            raise RuntimeError(f"Could not allocate a free invoice number after {attempts} attempts")
        logger.warning("Invoice number %s already taken, regenerating", number)
        number = generate_invoice_number(now)
        attempts += 1
    return number


def payment_due_date_for(listing, now=None):
    now = now or datetime.utcnow()
    days = listing.payment_due_days or current_app.config.get('DEFAULT_PAYMENT_DUE_DAYS', 7)
    return (now + timedelta(days=days)).date()


def create_invoice(listing, buyer_id, sale_amount, defaults, offer_id=None, now=None):
    """
    Add a pending invoice for a sale to the current transaction.

    The caller commits together with the listing transition, so a failed
    insert leaves the listing untouched.

    Args:
        listing: Listing being sold
        buyer_id: winning bidder / offer buyer
        sale_amount: hammer price or accepted offer
        defaults: platform defaults snapshot (load_platform_defaults)
        offer_id: accepted offer, if any

    Returns:
        (Invoice, fees dict, rates dict)
    """
    now = now or datetime.utcnow()
    rates = get_commission_rates(listing.seller_id, defaults)
    fees = calculate_fees(sale_amount, rates)

    invoice = Invoice(
        invoice_number=allocate_invoice_number(now),
        listing_id=listing.id,
        offer_id=offer_id,
        seller_id=listing.seller_id,
        buyer_id=buyer_id,
        sale_amount=_cents(sale_amount),
        buyer_premium_percent=rates['buyer_premium_percent'],
        buyer_premium_amount=_cents(fees['buyer_premium_amount']),
        seller_commission_percent=rates['seller_commission_percent'],
        seller_commission_amount=_cents(fees['seller_commission_amount']),
        total_amount=_cents(fees['total_buyer_pays']),
        seller_payout_amount=_cents(fees['seller_payout_amount']),
        status='pending',
        fulfillment_status='awaiting_payment',
        payment_due_date=payment_due_date_for(listing, now),
    )
    db.session.add(invoice)
    db.session.flush()

    logger.info(
        "Invoice %s created for listing %s: sale=%.2f total=%.2f payout=%.2f",
        invoice.invoice_number, listing.id, sale_amount,
        fees['total_buyer_pays'], fees['seller_payout_amount']
    )
    return invoice, fees, rates
