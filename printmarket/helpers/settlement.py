"""
Auction settlement

Run by the periodic batch job. For every active auction past its end_time
the highest bid either wins (reserve met) and becomes an invoice, or the
listing ends without a sale. The listing transition is a conditional
update inside the same transaction as the invoice, so a listing is
settled at most once even when several batch runs overlap.
"""
import logging
from datetime import datetime

from ..extensions import db
from ..models.bid import Bid
from ..models.listing import Listing, AUCTION_TYPES
from ..models.user import User
from .commissions import load_platform_defaults
from .invoicing import create_invoice
from .notifications import NotificationOutbox
from .transitions import conditional_update
from .email_sender import format_money, send_auction_won_email, send_auction_ended_seller_email

logger = logging.getLogger(__name__)


def find_ended_auctions(now=None):
    now = now or datetime.utcnow()
    return Listing.query.filter(
        Listing.status == 'active',
        Listing.listing_type.in_(AUCTION_TYPES),
        Listing.end_time < now
    ).order_by(Listing.end_time).all()


def highest_bid(listing_id):
    return Bid.query.filter_by(listing_id=listing_id).order_by(Bid.amount.desc(), Bid.id).first()


def reserve_met(listing, winning_bid):
    """
    Compare the listing's current price with its reserve.

    current_price is maintained by live bidding; when it was never set the
    highest bid stands in for it.
    """
    if not listing.reserve_price:
        return True
    current_price = listing.current_price or (winning_bid.amount if winning_bid else None) \
        or listing.starting_price or 0
    return current_price >= listing.reserve_price


def settle_auction(listing, defaults, now=None):
    """
    Settle one ended auction.

    Returns:
        dict result: status is 'sold', 'ended' or 'skipped' (another run
        already settled the listing)
    """
    now = now or datetime.utcnow()
    outbox = NotificationOutbox()

    winning_bid = highest_bid(listing.id)
    met = reserve_met(listing, winning_bid)

    if winning_bid and met:
        result = _settle_sold(listing, winning_bid, defaults, now, outbox)
    else:
        result = _settle_unsold(listing, winning_bid, now, outbox)

    if result['status'] != 'skipped':
        outbox.dispatch()
    return result


def _claim(listing, new_status, now):
    return conditional_update(
        Listing, listing.id, 'active',
        status=new_status, ended_at=now, updated_at=now
    )


def _settle_sold(listing, winning_bid, defaults, now, outbox):
    if not _claim(listing, 'sold', now):
        db.session.rollback()
        logger.info("Listing %s already settled by another run", listing.id)
        return {'listing_id': listing.id, 'status': 'skipped', 'reason': 'already_settled'}

    sale_amount = winning_bid.amount
    invoice, fees, rates = create_invoice(listing, winning_bid.bidder_id, sale_amount, defaults, now=now)

    Bid.query.filter_by(id=winning_bid.id).update({'status': 'won'}, synchronize_session=False)
    Bid.query.filter(
        Bid.listing_id == listing.id,
        Bid.id != winning_bid.id
    ).update({'status': 'lost'}, synchronize_session=False)

    db.session.commit()
    db.session.refresh(listing)

    due = invoice.payment_due_date
    outbox.notify(
        winning_bid.bidder_id, 'auction_won',
        'Congratulations! You won the auction!',
        f'You won "{listing.title}" with a bid of {format_money(sale_amount)}. '
        f'Total due (including {rates["buyer_premium_percent"]:g}% buyer premium): '
        f'{format_money(fees["total_buyer_pays"])}. Payment is due by {due.isoformat()}.',
        listing_id=listing.id, invoice_id=invoice.id
    )
    outbox.notify(
        listing.seller_id, 'auction_ended',
        'Your auction has ended - SOLD!',
        f'"{listing.title}" sold for {format_money(sale_amount)}. '
        f'Your payout after commission: {format_money(fees["seller_payout_amount"])}.',
        listing_id=listing.id, invoice_id=invoice.id
    )

    buyer = db.session.get(User, winning_bid.bidder_id)
    seller = db.session.get(User, listing.seller_id)
    outbox.email(
        send_auction_won_email, buyer,
        listing_title=listing.title, invoice_id=invoice.id,
        winning_bid=sale_amount, total_amount=fees['total_buyer_pays'],
        payment_due_date=due
    )
    outbox.email(
        send_auction_ended_seller_email, seller,
        listing_title=listing.title, listing_id=listing.id, has_bids=True,
        winning_bid=sale_amount, buyer_name=buyer.display_name if buyer else '',
        seller_payout=fees['seller_payout_amount']
    )

    logger.info("Listing %s sold to %s for %.2f (invoice %s)",
                listing.id, winning_bid.bidder_id, sale_amount, invoice.invoice_number)

    return {
        'listing_id': listing.id,
        'status': 'sold',
        'winner_id': winning_bid.bidder_id,
        'sale_amount': sale_amount,
        'invoice_id': invoice.id,
        'invoice_number': invoice.invoice_number,
    }


def _settle_unsold(listing, winning_bid, now, outbox):
    reason = 'no_bids' if winning_bid is None else 'reserve_not_met'

    if not _claim(listing, 'ended', now):
        db.session.rollback()
        logger.info("Listing %s already settled by another run", listing.id)
        return {'listing_id': listing.id, 'status': 'skipped', 'reason': 'already_settled'}

    bidder_ids = []
    if winning_bid is not None:
        Bid.query.filter_by(listing_id=listing.id).update({'status': 'lost'}, synchronize_session=False)
        bidder_ids = sorted({
            bidder_id for (bidder_id,) in
            db.session.query(Bid.bidder_id).filter(Bid.listing_id == listing.id).distinct()
        })

    db.session.commit()
    db.session.refresh(listing)

    if reason == 'no_bids':
        body = f'"{listing.title}" ended with no bids.'
    else:
        highest = listing.current_price or winning_bid.amount
        body = (f'"{listing.title}" ended but the reserve price was not met. '
                f'Highest bid: {format_money(highest)}.')

    outbox.notify(listing.seller_id, 'auction_ended', 'Your auction has ended', body, listing_id=listing.id)

    seller = db.session.get(User, listing.seller_id)
    outbox.email(
        send_auction_ended_seller_email, seller,
        listing_title=listing.title, listing_id=listing.id, has_bids=False, reason=reason
    )

    if reason == 'reserve_not_met':
        for bidder_id in bidder_ids:
            outbox.notify(
                bidder_id, 'auction_ended', 'Auction ended - Reserve not met',
                f'The auction for "{listing.title}" has ended but the reserve price was not met.',
                listing_id=listing.id
            )

    logger.info("Listing %s ended without sale (%s)", listing.id, reason)
    return {'listing_id': listing.id, 'status': 'ended', 'reason': reason}


def settle_ended_auctions(now=None):
    """
    Settle every active auction whose end_time has passed.

    Each listing is processed on its own; an error is recorded in its
    result and the batch carries on.

    Returns:
        dict: message, processed, results
    """
    now = now or datetime.utcnow()
    candidates = find_ended_auctions(now)

    if not candidates:
        return {'message': 'No ended auctions to process', 'processed': 0, 'results': []}

    defaults = load_platform_defaults()
    candidate_ids = [listing.id for listing in candidates]
    results = []

    for listing_id in candidate_ids:
        try:
            listing = db.session.get(Listing, listing_id)
            results.append(settle_auction(listing, defaults, now))
        except Exception as e:
            db.session.rollback()
            logger.exception("Error processing auction %s", listing_id)
            results.append({'listing_id': listing_id, 'status': 'error', 'error': str(e)})

    return {
        'message': f'Processed {len(candidate_ids)} ended auctions',
        'processed': len(candidate_ids),
        'results': results,
    }


def activate_scheduled_listings(now=None):
    """
    Flip scheduled listings whose start_time has passed to active.

    Returns:
        dict: message, activated (ids), errors
    """
    now = now or datetime.utcnow()
    scheduled = Listing.query.filter(
        Listing.status == 'scheduled',
        Listing.start_time <= now
    ).all()

    if not scheduled:
        return {'message': 'No scheduled listings to activate', 'activated': [], 'errors': []}

    scheduled_ids = [listing.id for listing in scheduled]
    activated = []
    errors = []

    for listing_id in scheduled_ids:
        try:
            if conditional_update(Listing, listing_id, 'scheduled', status='active', updated_at=now):
                db.session.commit()
                activated.append(listing_id)
            else:
                db.session.rollback()
        except Exception as e:
            db.session.rollback()
            logger.exception("Error activating listing %s", listing_id)
            errors.append({'id': listing_id, 'error': str(e)})

    logger.info("Activated %d of %d scheduled listings", len(activated), len(scheduled_ids))
    return {
        'message': f'Activated {len(activated)} listings',
        'activated': activated,
        'errors': errors,
    }
