"""
Live auction bidding

Bids are proxy bids: the bidder names a maximum and the visible amount
only rises as far as competition requires. A bid placed inside the
soft-close window pushes end_time out by auction_extension_minutes from
the platform settings.

The listing row is the serialization point: its price, bid_count and
end_time are written with an UPDATE guarded on the bid_count the caller
read, so two bids computed from the same state cannot both land.
"""
import logging
from datetime import datetime, timedelta

from ..extensions import db
from ..exceptions import ValidationError, AuthorizationError, NotFoundError, ConflictError
from ..models.bid import Bid
from ..models.listing import Listing, AUCTION_TYPES
from ..models.user import User
from .commissions import load_platform_defaults, parse_amount
from .email_sender import format_money, send_outbid_email
from .notifications import NotificationOutbox
from .settlement import highest_bid

logger = logging.getLogger(__name__)

# (price ceiling, increment) pairs, checked in order
BID_INCREMENTS = ((250, 1), (1000, 10), (10000, 50))
TOP_INCREMENT = 100


def min_next_bid(current):
    for ceiling, increment in BID_INCREMENTS:
        if current < ceiling:
            return current + increment
    return current + TOP_INCREMENT


def in_soft_close(end_time, window_minutes, now):
    """True when the auction is still open and ends within the window"""
    if not end_time or not window_minutes or window_minutes <= 0:
        return False
    remaining = end_time - now
    return timedelta(0) < remaining <= timedelta(minutes=window_minutes)


def _load_open_auction(bidder, listing_id, now):
    listing = db.session.get(Listing, listing_id)
    if listing is None:
        raise NotFoundError('Listing', listing_id)
    if listing.listing_type not in AUCTION_TYPES:
        raise ValidationError('This listing is not an auction')
    if listing.status != 'active' or (listing.end_time and listing.end_time <= now):
        raise ValidationError('This auction has ended')
    if listing.seller_id == bidder.id:
        raise AuthorizationError('You cannot bid on your own listing')
    return listing


def _claim_listing(listing, values):
    """Write listing values only if no other bid landed since we read it"""
    changed = Listing.query.filter(
        Listing.id == listing.id,
        Listing.status == 'active',
        Listing.bid_count == listing.bid_count
    ).update(values, synchronize_session=False)
    if changed != 1:
        db.session.rollback()
        raise ConflictError('Another bid was just placed. Please try again.')


def place_bid(bidder, listing_id, max_bid, now=None):
    """
    Place (or raise) a proxy bid.

    Returns:
        dict response body: message, currentPrice, bidCount, wasOutbid,
        reserveMet, auctionExtended
    """
    now = now or datetime.utcnow()

    if not listing_id or max_bid is None or max_bid == '':
        raise ValidationError('Missing listingId or maxBid')
    user_max = parse_amount(max_bid, 'Invalid bid amount')

    listing = _load_open_auction(bidder, listing_id, now)
    defaults = load_platform_defaults()
    reserve = listing.reserve_price or 0

    high = highest_bid(listing.id)
    high_max = (high.max_bid or high.amount) if high else 0
    previous_price = listing.current_price or (high.amount if high else 0)
    reserve_was_met = bool(high) and previous_price >= reserve

    if high is not None and high.bidder_id == bidder.id:
        return _raise_own_max(listing, high, high_max, user_max, reserve, reserve_was_met, now)

    outbox = NotificationOutbox()
    outbid_user_id = None
    was_outbid = False

    if high is None:
        min_bid = listing.starting_price or min_next_bid(0)
        if user_max < min_bid:
            raise ValidationError(f'Minimum bid is {format_money(min_bid)}')
        if reserve and user_max >= reserve:
            amount = max(reserve, min_bid)
        elif reserve:
            amount = user_max
        else:
            amount = min_bid
        new_bid = Bid(listing_id=listing.id, bidder_id=bidder.id, amount=amount, max_bid=user_max, status='winning')
        final_price = amount
    else:
        min_bid = min_next_bid(high.amount)
        if user_max < min_bid:
            raise ValidationError(f'Minimum bid is {format_money(min_bid)}')

        if user_max > high_max:
            amount = min(user_max, min_next_bid(high_max))
            if reserve and amount < reserve <= user_max:
                amount = reserve
            new_bid = Bid(listing_id=listing.id, bidder_id=bidder.id, amount=amount, max_bid=user_max,
                          status='winning')
            final_price = amount
            outbid_user_id = high.bidder_id
            previous_high_amount = high.amount
        else:
            # The standing proxy answers; ties go to the earlier bid
            new_bid = Bid(listing_id=listing.id, bidder_id=bidder.id, amount=user_max, max_bid=user_max,
                          status='outbid')
            if user_max < high_max:
                final_price = min(high_max, max(min_next_bid(user_max), reserve))
            else:
                final_price = high_max
            was_outbid = True

    extension_minutes = defaults['auction_extension_minutes']
    extended = in_soft_close(listing.end_time, extension_minutes, now)
    values = {
        'current_price': final_price,
        'bid_count': (listing.bid_count or 0) + 1,
        'updated_at': now,
    }
    if extended:
        values['end_time'] = now + timedelta(minutes=extension_minutes)
        if listing.original_end_time is None:
            values['original_end_time'] = listing.end_time

    _claim_listing(listing, values)

    if outbid_user_id is not None:
        high.status = 'outbid'
    elif was_outbid:
        high.amount = final_price
    db.session.add(new_bid)
    db.session.commit()
    db.session.refresh(listing)

    reserve_now_met = final_price >= reserve

    outbox.notify(
        listing.seller_id, 'new_bid', 'New bid on your listing',
        f'Someone bid {format_money(final_price)} on "{listing.title}"',
        listing_id=listing.id
    )
    if reserve and not reserve_was_met and reserve_now_met:
        outbox.notify(
            listing.seller_id, 'reserve_met', 'Reserve price met!',
            f'The reserve price of {format_money(reserve)} has been met on "{listing.title}". '
            f'Your item will sell when the auction ends.',
            listing_id=listing.id
        )

    if was_outbid:
        outbox.notify(
            bidder.id, 'outbid', 'You have been outbid',
            f'Your bid on "{listing.title}" was outbid by a proxy bid. '
            f'Current high: {format_money(final_price)}',
            listing_id=listing.id
        )
        outbox.email(
            send_outbid_email, bidder,
            listing_title=listing.title, listing_id=listing.id, your_bid=user_max,
            new_high_bid=final_price, end_time=listing.end_time
        )
    elif outbid_user_id is not None:
        outbox.notify(
            outbid_user_id, 'outbid', 'You have been outbid',
            f'Someone outbid you on "{listing.title}". New high bid: {format_money(final_price)}',
            listing_id=listing.id
        )
        outbox.email(
            send_outbid_email, db.session.get(User, outbid_user_id),
            listing_title=listing.title, listing_id=listing.id, your_bid=previous_high_amount,
            new_high_bid=final_price, end_time=listing.end_time
        )
    outbox.dispatch()

    logger.info("Bid %s on listing %s: max=%.2f price=%.2f outbid=%s extended=%s",
                new_bid.id, listing.id, user_max, final_price, was_outbid, extended)

    extension_msg = f' Auction extended by {extension_minutes} minutes!' if extended else ''
    reserve_msg = ' Reserve has been met!' if reserve and not reserve_was_met and reserve_now_met else ''
    if was_outbid:
        message = (f'Your bid of {format_money(user_max)} was placed but you were outbid by a proxy bid.'
                   f'{reserve_msg}{extension_msg}')
    else:
        message = f'You are now the high bidder at {format_money(final_price)}!{reserve_msg}{extension_msg}'

    return {
        'success': True,
        'message': message,
        'currentPrice': final_price,
        'bidCount': listing.bid_count,
        'wasOutbid': was_outbid,
        'reserveMet': reserve_now_met,
        'auctionExtended': extended,
    }


def _raise_own_max(listing, high, high_max, user_max, reserve, reserve_was_met, now):
    """The current leader raises their maximum; the price only moves toward an unmet reserve"""
    if user_max <= high_max:
        raise ValidationError("You're already the high bidder. Your current max bid is higher or equal.")

    if reserve and not reserve_was_met:
        new_amount = min(user_max, reserve)
        _claim_listing(listing, {'current_price': new_amount, 'updated_at': now})
        high.amount = new_amount
        high.max_bid = user_max
        db.session.commit()

        reserve_now_met = new_amount >= reserve
        if reserve_now_met:
            outbox = NotificationOutbox()
            outbox.notify(
                listing.seller_id, 'reserve_met', 'Reserve price met!',
                f'The reserve price of {format_money(reserve)} has been met on "{listing.title}". '
                f'Your item will sell when the auction ends.',
                listing_id=listing.id
            )
            outbox.dispatch()

        logger.info("Leader raised bid %s on listing %s to %.2f", high.id, listing.id, new_amount)
        return {
            'success': True,
            'message': f'You are now the high bidder at {format_money(new_amount)}!'
                       + (' Reserve has been met!' if reserve_now_met else ''),
            'currentPrice': new_amount,
            'bidCount': listing.bid_count,
            'wasOutbid': False,
            'reserveMet': reserve_now_met,
            'auctionExtended': False,
        }

    high.max_bid = user_max
    db.session.commit()
    logger.info("Leader raised max on bid %s (listing %s) to %.2f", high.id, listing.id, user_max)
    return {
        'success': True,
        'message': f'Your maximum bid has been updated to {format_money(user_max)}',
        'currentPrice': high.amount,
        'bidCount': listing.bid_count,
        'wasOutbid': False,
        'reserveMet': reserve_was_met or not reserve,
        'auctionExtended': False,
    }
