"""
Buy Now purchases

A buyer takes a listing at its buy_now_price. The listing is claimed with
the same conditional active -> sold update that auction settlement and
offer acceptance use, so at most one path ever invoices a listing.
"""
import logging
from datetime import datetime

from ..extensions import db
from ..exceptions import ValidationError, NotFoundError, ConflictError
from ..models.bid import Bid
from ..models.listing import Listing
from .commissions import load_platform_defaults
from .email_sender import format_money
from .invoicing import create_invoice
from .notifications import NotificationOutbox
from .offers import decline_other_pending
from .transitions import conditional_update

logger = logging.getLogger(__name__)

BUY_NOW_TYPES = ('auction_buy_now', 'fixed_price', 'fixed_price_offers')


def buy_now(buyer, listing_id, now=None):
    """
    Purchase a listing outright and create its pending invoice.

    Returns:
        dict response body with invoiceId
    """
    now = now or datetime.utcnow()

    if not listing_id:
        raise ValidationError('Missing listingId')

    listing = db.session.get(Listing, listing_id)
    if listing is None:
        raise NotFoundError('Listing', listing_id)

    if listing.status != 'active':
        raise ValidationError('This listing is no longer available')
    if listing.seller_id == buyer.id:
        raise ValidationError('You cannot buy your own listing')
    if listing.listing_type not in BUY_NOW_TYPES or not listing.buy_now_price or listing.buy_now_price <= 0:
        raise ValidationError('This listing does not have a buy now price')

    sale_amount = float(listing.buy_now_price)

    if not conditional_update(Listing, listing.id, 'active', status='sold', ended_at=now, updated_at=now):
        db.session.rollback()
        raise ConflictError('This listing is no longer available')

    invoice, fees, _ = create_invoice(listing, buyer.id, sale_amount, load_platform_defaults(), now=now)
    declined = decline_other_pending(listing.id, None, now)
    Bid.query.filter(Bid.listing_id == listing.id).update({'status': 'lost'}, synchronize_session=False)
    db.session.commit()

    outbox = NotificationOutbox()
    outbox.notify(
        listing.seller_id, 'item_sold', 'Item Sold!',
        f'Your listing "{listing.title}" has been purchased via Buy Now for {format_money(sale_amount)}.',
        listing_id=listing.id, invoice_id=invoice.id
    )
    outbox.notify(
        buyer.id, 'purchase_confirmed', 'Purchase Confirmed',
        f'You bought "{listing.title}" for {format_money(sale_amount)}. '
        f'Total due {format_money(fees["total_buyer_pays"])}.',
        listing_id=listing.id, invoice_id=invoice.id
    )
    outbox.dispatch()

    logger.info("Listing %s bought now by user %s (invoice %s, %d offers declined)",
                listing.id, buyer.id, invoice.invoice_number, declined)
    return {
        'success': True,
        'invoiceId': invoice.id,
        'invoiceNumber': invoice.invoice_number,
        'totalAmount': round(fees['total_buyer_pays'], 2),
    }
