"""
Offer / counter-offer negotiation

Each Offer row is one move in a chain. A pending row can be accepted,
declined or countered only by the party who did not author it, and
withdrawn only by its author. Every move is a conditional
pending -> <terminal> update, so concurrent responses to the same row
cannot both succeed.
"""
import logging
from datetime import datetime, timedelta

from flask import current_app

from ..extensions import db
from ..exceptions import ValidationError, AuthorizationError, NotFoundError, ConflictError
from ..models.listing import Listing
from ..models.offer import Offer
from ..models.user import User
from .commissions import load_platform_defaults, parse_amount
from .invoicing import create_invoice
from .notifications import NotificationOutbox
from .transitions import conditional_update
from .email_sender import (
    format_money,
    send_offer_received_email,
    send_offer_accepted_email,
    send_offer_declined_email,
    send_counter_offer_email,
)

logger = logging.getLogger(__name__)

RESPONSE_ACTIONS = ('accept', 'decline', 'counter')


def author_of(offer):
    """'buyer' or 'seller': who made this offer record"""
    return offer.author_role()


def _expiry(defaults, now):
    hours = defaults.get('offer_expiry_hours') or current_app.config.get('OFFER_EXPIRY_HOURS', 48)
    return now + timedelta(hours=hours), hours


def _get_offer(offer_id):
    offer = db.session.get(Offer, offer_id) if offer_id is not None else None
    if offer is None:
        raise NotFoundError('Offer', offer_id)
    return offer


def _mark_listing_sold(listing, now):
    if not conditional_update(Listing, listing.id, 'active', status='sold', ended_at=now, updated_at=now):
        db.session.rollback()
        raise ConflictError("This listing is no longer available")


def submit_offer(buyer, listing_id, amount, message=None, now=None):
    """
    Submit an original offer on a listing.

    Amounts below auto_decline_price are rejected before anything is
    stored; amounts at or above auto_accept_price are accepted on the spot
    and invoiced in the same transaction.

    Returns:
        dict response body
    """
    now = now or datetime.utcnow()
    offer_amount = parse_amount(amount, 'Invalid offer amount')

    listing = db.session.get(Listing, listing_id) if listing_id is not None else None
    if listing is None:
        raise NotFoundError('Listing', listing_id)

    if not listing.accept_offers:
        raise ValidationError('This listing does not accept offers')
    if listing.status != 'active':
        raise ValidationError('This listing is no longer available')
    if listing.seller_id == buyer.id:
        raise ValidationError('You cannot make an offer on your own listing')

    max_offers = current_app.config.get('MAX_OFFERS_PER_BUYER_PER_LISTING', 3)
    existing_count = Offer.query.filter(
        Offer.listing_id == listing.id,
        Offer.buyer_id == buyer.id,
        Offer.parent_offer_id.is_(None)
    ).count()
    if existing_count >= max_offers:
        raise ValidationError(f'You have reached the maximum of {max_offers} offers on this listing')

    pending = Offer.query.filter_by(listing_id=listing.id, buyer_id=buyer.id, status='pending').first()
    if pending is not None:
        raise ValidationError(
            'You already have a pending offer on this listing. '
            'Please wait for the seller to respond or withdraw your offer.'
        )

    if listing.auto_decline_price and offer_amount < listing.auto_decline_price:
        logger.info("Offer of %.2f on listing %s auto-declined (minimum %.2f)",
                    offer_amount, listing.id, listing.auto_decline_price)
        raise ValidationError(
            f'Offer amount is too low. Minimum accepted: {format_money(listing.auto_decline_price)}',
            payload={'autoDeclined': True}
        )

    defaults = load_platform_defaults()
    expires_at, expiry_hours = _expiry(defaults, now)
    auto_accept = bool(listing.auto_accept_price) and offer_amount >= listing.auto_accept_price

    offer = Offer(
        listing_id=listing.id,
        buyer_id=buyer.id,
        seller_id=listing.seller_id,
        amount=offer_amount,
        message=message or None,
        status='accepted' if auto_accept else 'pending',
        counter_count=0,
        expires_at=expires_at,
        responded_at=now if auto_accept else None,
    )
    db.session.add(offer)
    db.session.flush()

    outbox = NotificationOutbox()
    seller = db.session.get(User, listing.seller_id)

    if auto_accept:
        _mark_listing_sold(listing, now)
        invoice, fees, _ = create_invoice(listing, buyer.id, offer_amount, defaults, offer_id=offer.id, now=now)
        decline_other_pending(listing.id, offer.id, now)
        db.session.commit()

        outbox.notify(
            buyer.id, 'offer_accepted', 'Offer Accepted!',
            f'Your offer of {format_money(offer_amount)} for "{listing.title}" has been automatically '
            f'accepted! Please proceed to payment.',
            listing_id=listing.id, invoice_id=invoice.id, offer_id=offer.id
        )
        outbox.notify(
            listing.seller_id, 'offer_accepted', 'Offer Auto-Accepted',
            f'An offer of {format_money(offer_amount)} for "{listing.title}" was automatically accepted '
            f'based on your settings.',
            listing_id=listing.id, invoice_id=invoice.id, offer_id=offer.id
        )
        outbox.email(
            send_offer_accepted_email, buyer,
            listing_title=listing.title, invoice_id=invoice.id,
            offer_amount=offer_amount, total_amount=fees['total_buyer_pays']
        )
        outbox.dispatch()

        logger.info("Offer %s auto-accepted on listing %s (invoice %s)", offer.id, listing.id, invoice.invoice_number)
        return {
            'success': True,
            'autoAccepted': True,
            'message': 'Your offer has been automatically accepted!',
            'offerId': offer.id,
            'invoiceId': invoice.id,
        }

    db.session.commit()

    outbox.notify(
        listing.seller_id, 'new_offer', 'New Offer Received',
        f'You received an offer of {format_money(offer_amount)} for "{listing.title}". '
        f'Expires in {expiry_hours} hours.',
        listing_id=listing.id, offer_id=offer.id
    )
    outbox.email(
        send_offer_received_email, seller,
        listing_title=listing.title, listing_id=listing.id, offer_amount=offer_amount,
        buyer_name=buyer.full_name or 'A buyer', expires_at=expires_at
    )
    outbox.dispatch()

    logger.info("Offer %s of %.2f submitted on listing %s", offer.id, offer_amount, listing.id)
    return {
        'success': True,
        'message': f'Your offer of {format_money(offer_amount)} has been submitted. '
                   f'The seller has {expiry_hours} hours to respond.',
        'offerId': offer.id,
        'expiresAt': expires_at.isoformat(),
        'remainingOffers': max_offers - (existing_count + 1),
    }


def decline_other_pending(listing_id, keep_offer_id, now):
    """Decline every pending offer on a sold listing except keep_offer_id (None keeps nothing)"""
    query = Offer.query.filter(Offer.listing_id == listing_id, Offer.status == 'pending')
    if keep_offer_id is not None:
        query = query.filter(Offer.id != keep_offer_id)
    return query.update({'status': 'declined', 'responded_at': now}, synchronize_session=False)


def _check_actionable(offer, user, now):
    """Shared guards for accept/decline/counter. Returns caller role."""
    if user.id == offer.seller_id:
        role = 'seller'
    elif user.id == offer.buyer_id:
        role = 'buyer'
    else:
        raise AuthorizationError('Unauthorized')

    if offer.status != 'pending':
        raise ValidationError(f'This offer has already been {offer.status}')

    if offer.is_expired(now):
        if conditional_update(Offer, offer.id, 'pending', status='expired'):
            db.session.commit()
        else:
            db.session.rollback()
        raise ValidationError('This offer has expired')

    return role


def _own_offer_error(offer, verb):
    noun = 'counter-offer' if author_of(offer) == 'seller' else 'offer'
    return ValidationError(f'You cannot {verb} your own {noun}')


def respond_to_offer(user, offer_id, action, counter_amount=None, counter_message=None, now=None):
    """
    Accept, decline or counter a pending offer record.

    Returns:
        dict response body
    """
    now = now or datetime.utcnow()

    if not offer_id or not action:
        raise ValidationError('Missing offerId or action')
    if action not in RESPONSE_ACTIONS:
        raise ValidationError('Invalid action')

    offer = _get_offer(offer_id)
    role = _check_actionable(offer, user, now)

    if action == 'accept':
        if role == author_of(offer):
            raise _own_offer_error(offer, 'accept')
        return _accept(offer, now)

    if action == 'decline':
        if role == author_of(offer):
            noun = 'counter-offer' if author_of(offer) == 'seller' else 'offer'
            raise ValidationError(f'Use withdraw to cancel your own {noun}')
        return _decline(offer, now)

    if role == author_of(offer):
        raise _own_offer_error(offer, 'counter')
    return _counter(offer, role, counter_amount, counter_message, now)


def _accept(offer, now):
    listing = db.session.get(Listing, offer.listing_id)
    offer_amount = float(offer.amount)

    if not conditional_update(Offer, offer.id, 'pending', status='accepted', responded_at=now):
        db.session.rollback()
        db.session.refresh(offer)
        raise ValidationError(f'This offer has already been {offer.status}')

    _mark_listing_sold(listing, now)
    defaults = load_platform_defaults()
    invoice, fees, _ = create_invoice(listing, offer.buyer_id, offer_amount, defaults, offer_id=offer.id, now=now)
    declined = decline_other_pending(listing.id, offer.id, now)
    db.session.commit()

    outbox = NotificationOutbox()
    outbox.notify(
        offer.buyer_id, 'offer_accepted', 'Offer Accepted!',
        f'Your offer of {format_money(offer_amount)} for "{listing.title}" has been accepted! '
        f'Please proceed to payment.',
        listing_id=listing.id, invoice_id=invoice.id, offer_id=offer.id
    )
    outbox.notify(
        offer.seller_id, 'offer_accepted', 'Offer Accepted',
        f'The offer of {format_money(offer_amount)} for "{listing.title}" was accepted.',
        listing_id=listing.id, invoice_id=invoice.id, offer_id=offer.id
    )
    outbox.email(
        send_offer_accepted_email, db.session.get(User, offer.buyer_id),
        listing_title=listing.title, invoice_id=invoice.id,
        offer_amount=offer_amount, total_amount=fees['total_buyer_pays']
    )
    outbox.dispatch()

    logger.info("Offer %s accepted on listing %s (invoice %s, %d other offers declined)",
                offer.id, listing.id, invoice.invoice_number, declined)
    return {
        'success': True,
        'action': 'accepted',
        'message': 'Offer accepted! Invoice has been created.',
        'invoiceId': invoice.id,
    }


def _decline(offer, now):
    if not conditional_update(Offer, offer.id, 'pending', status='declined', responded_at=now):
        db.session.rollback()
        db.session.refresh(offer)
        raise ValidationError(f'This offer has already been {offer.status}')
    db.session.commit()

    listing = db.session.get(Listing, offer.listing_id)
    author = author_of(offer)
    declined_by = 'The seller' if author == 'buyer' else 'The buyer'
    noun = 'offer' if author == 'buyer' else 'counter-offer'

    outbox = NotificationOutbox()
    outbox.notify(
        offer.author_id(), 'offer_declined', 'Offer Declined',
        f'{declined_by} declined your {noun} of {format_money(offer.amount)} for "{listing.title}".',
        listing_id=listing.id, offer_id=offer.id
    )
    if author == 'buyer':
        outbox.email(
            send_offer_declined_email, db.session.get(User, offer.buyer_id),
            listing_title=listing.title, listing_id=listing.id, offer_amount=offer.amount
        )
    outbox.dispatch()

    logger.info("Offer %s declined", offer.id)
    return {'success': True, 'action': 'declined', 'message': 'Offer declined.'}


def _counter(offer, role, counter_amount, counter_message, now):
    max_counters = current_app.config.get('MAX_COUNTER_OFFERS', 3)

    if counter_amount is None or counter_amount == '':
        raise ValidationError('Counter amount is required')
    if offer.counter_count >= max_counters:
        raise ValidationError(
            f'Maximum of {max_counters} counter-offers reached. Please accept or decline.'
        )
    amount = parse_amount(counter_amount, 'Invalid counter amount')
    if amount == float(offer.amount):
        raise ValidationError('Counter amount must be different from the offer')

    defaults = load_platform_defaults()
    expires_at, expiry_hours = _expiry(defaults, now)

    if not conditional_update(Offer, offer.id, 'pending', status='countered', responded_at=now):
        db.session.rollback()
        db.session.refresh(offer)
        raise ValidationError(f'This offer has already been {offer.status}')

    counter = Offer(
        listing_id=offer.listing_id,
        buyer_id=offer.buyer_id,
        seller_id=offer.seller_id,
        amount=amount,
        message=counter_message or None,
        status='pending',
        parent_offer_id=offer.id,
        counter_count=offer.counter_count + 1,
        expires_at=expires_at,
    )
    db.session.add(counter)
    db.session.commit()

    listing = db.session.get(Listing, offer.listing_id)
    notify_user_id = counter.recipient_id()

    outbox = NotificationOutbox()
    outbox.notify(
        notify_user_id, 'counter_offer', 'Counter Offer Received',
        f'The {role} countered with {format_money(amount)} for "{listing.title}". '
        f'Expires in {expiry_hours} hours.',
        listing_id=listing.id, offer_id=counter.id
    )
    outbox.email(
        send_counter_offer_email, db.session.get(User, notify_user_id),
        listing_title=listing.title, original_amount=offer.amount, counter_amount=amount,
        counter_message=counter_message, expires_at=expires_at, is_buyer=(role == 'seller')
    )
    outbox.dispatch()

    logger.info("Offer %s countered by %s with %.2f (counter %s)", offer.id, role, amount, counter.id)
    return {
        'success': True,
        'action': 'countered',
        'message': f'Counter-offer of {format_money(amount)} sent.',
        'counterOfferId': counter.id,
        'expiresAt': expires_at.isoformat(),
    }


def withdraw_offer(user, offer_id, now=None):
    """Withdraw a pending offer record; only its author may do this"""
    now = now or datetime.utcnow()

    if not offer_id:
        raise ValidationError('Missing offerId')

    offer = _get_offer(offer_id)
    if user.id not in (offer.buyer_id, offer.seller_id):
        raise AuthorizationError('You can only withdraw your own offers')
    if offer.status != 'pending':
        raise ValidationError(f'Cannot withdraw a {offer.status} offer')
    if user.id != offer.author_id():
        raise ValidationError('You can only withdraw your own offers')

    if not conditional_update(Offer, offer.id, 'pending', status='withdrawn', responded_at=now):
        db.session.rollback()
        db.session.refresh(offer)
        raise ValidationError(f'Cannot withdraw a {offer.status} offer')
    db.session.commit()

    listing = db.session.get(Listing, offer.listing_id)
    who = 'A buyer' if author_of(offer) == 'buyer' else 'The seller'
    outbox = NotificationOutbox()
    outbox.notify(
        offer.recipient_id(), 'offer_withdrawn', 'Offer Withdrawn',
        f'{who} withdrew their offer of {format_money(offer.amount)} for "{listing.title}".',
        listing_id=listing.id, offer_id=offer.id
    )
    outbox.dispatch()

    logger.info("Offer %s withdrawn", offer.id)
    return {'success': True, 'message': 'Offer withdrawn successfully.'}
