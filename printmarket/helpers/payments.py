"""
Payment processing: Stripe webhook events and manual verification

An invoice moves pending -> paid exactly once. Three layers guard that:
the processed-event ledger (duplicate deliveries), the conditional status
update (webhook racing manual verification) and once-only notifications
(duplicate notification inserts).
"""
import logging
from datetime import datetime

import stripe
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..exceptions import ValidationError, AuthorizationError, NotFoundError, MarketplaceError
from ..models.invoice import Invoice
from ..models.payment import Payment
from ..models.webhook import ProcessedWebhookEvent
from .notifications import NotificationOutbox
from .transitions import conditional_update
from .webhook_helpers import log_webhook
from .email_sender import format_money, send_receipt_email, send_payment_received_seller_email

logger = logging.getLogger(__name__)


def get_stripe():
    """Configure the SDK with the secret key and return the module"""
    secret_key = current_app.config.get('STRIPE_SECRET_KEY')
    if not secret_key:
        raise MarketplaceError('Stripe not configured', status_code=503)
    stripe.api_key = secret_key
    return stripe


def _cents(value):
    return (value or 0) / 100.0


def mark_invoice_paid(invoice_id, amount=None, payment_intent_id=None, method='credit_card', now=None):
    """
    Transition an invoice from pending to paid and record the payment.

    Args:
        invoice_id: Invoice primary key
        amount: amount received in dollars (defaults to invoice total)
        payment_intent_id: Stripe PaymentIntent id, if known

    Returns:
        str: 'paid' when this call performed the transition, 'already_paid'
        when it lost to an earlier one, 'not_found' for an unknown invoice
    """
    now = now or datetime.utcnow()

    invoice = db.session.get(Invoice, invoice_id)
    if invoice is None:
        logger.warning("Payment for unknown invoice %s", invoice_id)
        return 'not_found'

    values = {
        'status': 'paid',
        'fulfillment_status': 'processing',
        'paid_at': now,
        'payment_method': method,
        'updated_at': now,
    }
    if payment_intent_id:
        values['stripe_payment_intent_id'] = payment_intent_id

    if not conditional_update(Invoice, invoice.id, 'pending', **values):
        db.session.rollback()
        logger.info("Invoice %s not pending, payment already applied", invoice_id)
        return 'already_paid'

    payment = Payment(
        invoice_id=invoice.id,
        amount=round(amount if amount is not None else invoice.total_amount, 2),
        method=method,
        status='completed',
        stripe_payment_intent_id=payment_intent_id,
        processed_at=now,
    )
    db.session.add(payment)
    db.session.commit()
    db.session.refresh(invoice)

    listing_title = invoice.listing.title if invoice.listing else 'item'
    buyer = invoice.buyer
    seller = invoice.seller

    outbox = NotificationOutbox()
    outbox.notify(
        invoice.seller_id, 'payment_received', 'Payment Received',
        f'{format_money(invoice.total_amount)} payment received for "{listing_title}". '
        f'The item is ready to be shipped.',
        listing_id=invoice.listing_id, invoice_id=invoice.id,
        related_type='invoice', related_id=invoice.id, once=True
    )
    outbox.notify(
        invoice.buyer_id, 'payment_confirmed', 'Payment Confirmed',
        f'Your payment for "{listing_title}" has been processed successfully. '
        f'The seller will prepare your item for shipping.',
        listing_id=invoice.listing_id, invoice_id=invoice.id,
        related_type='invoice', related_id=invoice.id, once=True
    )
    outbox.email(
        send_receipt_email, buyer,
        invoice_number=invoice.invoice_number, listing_title=listing_title,
        sale_amount=invoice.sale_amount, buyer_premium_percent=invoice.buyer_premium_percent,
        buyer_premium_amount=invoice.buyer_premium_amount, total_amount=invoice.total_amount,
        paid_at=now, seller_name=(seller.display_name if seller else 'Seller')
    )
    outbox.email(
        send_payment_received_seller_email, seller,
        invoice_number=invoice.invoice_number, listing_title=listing_title,
        sale_amount=invoice.sale_amount, seller_payout=invoice.seller_payout_amount
    )
    outbox.dispatch()

    logger.info("Invoice %s marked paid (%s)", invoice.invoice_number, method)
    return 'paid'


def record_failed_payment(payment_intent_id, amount=None, now=None):
    """Add a failed ledger row for the invoice carrying this intent; status untouched"""
    invoice = Invoice.query.filter_by(stripe_payment_intent_id=payment_intent_id).first()
    if invoice is None:
        log_webhook(f"No invoice found for failed payment intent {payment_intent_id}")
        return None

    payment = Payment(
        invoice_id=invoice.id,
        amount=round(amount or 0, 2),
        method='credit_card',
        status='failed',
        stripe_payment_intent_id=payment_intent_id,
        processed_at=now or datetime.utcnow(),
    )
    db.session.add(payment)
    db.session.commit()
    return payment


def _metadata_invoice_id(obj):
    metadata = obj.get('metadata') or {}
    invoice_id = metadata.get('invoice_id')
    if invoice_id in (None, ''):
        return None
    try:
        return int(invoice_id)
    except (TypeError, ValueError):
        return None


def handle_stripe_event(event_type, data_object):
    """
    Apply one verified Stripe event.

    Returns:
        dict describing what happened (for logs and tests)
    """
    if event_type == 'checkout.session.completed':
        invoice_id = _metadata_invoice_id(data_object)
        if invoice_id is None:
            log_webhook("checkout.session.completed without invoice_id metadata", logging.WARNING)
            return {'handled': False, 'reason': 'missing_invoice_id'}
        outcome = mark_invoice_paid(
            invoice_id,
            amount=_cents(data_object.get('amount_total')) if data_object.get('amount_total') is not None else None,
            payment_intent_id=data_object.get('payment_intent'),
        )
        return {'handled': True, 'invoice_id': invoice_id, 'outcome': outcome}

    if event_type == 'payment_intent.succeeded':
        invoice_id = _metadata_invoice_id(data_object)
        if invoice_id is None:
            log_webhook(f"PaymentIntent succeeded: {data_object.get('id')}")
            return {'handled': False, 'reason': 'missing_invoice_id'}
        outcome = mark_invoice_paid(
            invoice_id,
            amount=_cents(data_object.get('amount_received') or data_object.get('amount')),
            payment_intent_id=data_object.get('id'),
        )
        return {'handled': True, 'invoice_id': invoice_id, 'outcome': outcome}

    if event_type == 'payment_intent.payment_failed':
        payment = record_failed_payment(data_object.get('id'), _cents(data_object.get('amount')))
        return {'handled': payment is not None, 'outcome': 'failed_recorded' if payment else 'not_found'}

    log_webhook(f"Unhandled event type: {event_type}")
    return {'handled': False, 'reason': 'unhandled_type'}


def process_webhook_event(event_id, event_type, data_object):
    """
    Ledger-guarded event processing. The event id is recorded only after
    handling succeeds so a crash mid-way is retried by the provider.

    Returns:
        dict response body
    """
    if not event_id or not event_type:
        raise ValidationError('Missing event data')

    if ProcessedWebhookEvent.has_been_processed(event_id):
        log_webhook(f"Event {event_id} already processed, skipping")
        return {'received': True, 'skipped': True}

    result = handle_stripe_event(event_type, data_object)

    db.session.add(ProcessedWebhookEvent(event_id=event_id, event_type=event_type))
    try:
        db.session.commit()
    except IntegrityError:
        # A concurrent delivery recorded it first
        db.session.rollback()
        log_webhook(f"Event {event_id} recorded concurrently")

    log_webhook(f"Event {event_id} ({event_type}) processed: {result}")
    return {'received': True}


def create_checkout_session(user, invoice_id):
    """
    Open a hosted Stripe Checkout Session for a pending invoice.

    The session metadata carries invoice_id, which is how the
    checkout.session.completed webhook and verify_payment() find the
    invoice again. Only the invoice's buyer may pay it.

    Returns:
        dict with sessionId and url
    """
    if not invoice_id:
        raise ValidationError('Missing invoiceId')

    invoice = db.session.get(Invoice, invoice_id)
    if invoice is None:
        raise NotFoundError('Invoice', invoice_id)
    if user.id != invoice.buyer_id:
        raise AuthorizationError('Unauthorized')
    if invoice.status == 'paid':
        raise ValidationError('Invoice is already paid')
    if invoice.status != 'pending':
        raise ValidationError(f'Invoice is {invoice.status}')

    client = get_stripe()
    site_url = current_app.config.get('SITE_URL', '').rstrip('/')
    listing_title = invoice.listing.title if invoice.listing else 'Auction Item'

    try:
        session = client.checkout.Session.create(
            payment_method_types=['card'],
            line_items=[{
                'price_data': {
                    'currency': 'usd',
                    'product_data': {
                        'name': listing_title,
                        'description': f'Invoice #{invoice.invoice_number}',
                    },
                    'unit_amount': int(round(invoice.total_amount * 100)),
                },
                'quantity': 1,
            }],
            mode='payment',
            success_url=f'{site_url}/dashboard/invoices/{invoice.id}?payment=success',
            cancel_url=f'{site_url}/dashboard/invoices/{invoice.id}?payment=cancelled',
            metadata={
                'invoice_id': str(invoice.id),
                'invoice_number': invoice.invoice_number,
                'buyer_id': str(invoice.buyer_id),
                'seller_id': str(invoice.seller_id),
                'listing_id': str(invoice.listing_id),
            },
            customer_email=invoice.buyer.email if invoice.buyer else None,
        )
    except stripe.StripeError as e:
        logger.error("Checkout session for invoice %s failed: %s", invoice.invoice_number, e)
        raise MarketplaceError('Failed to create checkout session', status_code=502)

    payment_intent_id = getattr(session, 'payment_intent', None)
    if payment_intent_id:
        invoice.stripe_payment_intent_id = payment_intent_id
        invoice.updated_at = datetime.utcnow()
        db.session.commit()

    logger.info("Checkout session %s opened for invoice %s", session.id, invoice.invoice_number)
    return {'sessionId': session.id, 'url': session.url}


def verify_payment(user, invoice_id):
    """
    Confirm an invoice's payment with Stripe when the webhook has not
    arrived yet. Only the invoice's buyer or seller may ask.
    """
    if not invoice_id:
        raise ValidationError('Missing invoiceId')

    invoice = db.session.get(Invoice, invoice_id)
    if invoice is None:
        raise NotFoundError('Invoice', invoice_id)
    if user.id not in (invoice.buyer_id, invoice.seller_id):
        raise AuthorizationError('Unauthorized')

    if invoice.status == 'paid':
        return {'success': True, 'alreadyPaid': True, 'message': 'Invoice is already paid'}
    if invoice.status != 'pending':
        raise ValidationError(f'Invoice is {invoice.status}')

    client = get_stripe()

    if invoice.stripe_payment_intent_id:
        intent = client.PaymentIntent.retrieve(invoice.stripe_payment_intent_id)
        if intent.status != 'succeeded':
            raise ValidationError('Payment not yet completed', payload={'status': intent.status})
        amount = _cents(getattr(intent, 'amount_received', None) or intent.amount)
        payment_intent_id = intent.id
    else:
        sessions = client.checkout.Session.list(limit=10)
        match = None
        for session in sessions.data:
            metadata = getattr(session, 'metadata', None)
            session_invoice_id = getattr(metadata, 'invoice_id', None) if metadata is not None else None
            if str(session_invoice_id) == str(invoice.id) and session.payment_status == 'paid':
                match = session
                break
        if match is None:
            raise ValidationError('No completed payment found for this invoice')
        amount = _cents(match.amount_total)
        payment_intent_id = getattr(match, 'payment_intent', None)

    outcome = mark_invoice_paid(invoice.id, amount=amount, payment_intent_id=payment_intent_id)
    if outcome == 'already_paid':
        return {'success': True, 'alreadyPaid': True, 'message': 'Invoice is already paid'}
    return {'success': True, 'message': 'Payment verified and processed'}
