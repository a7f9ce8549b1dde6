"""
Offer / counter-offer negotiation
"""
import unittest
from datetime import datetime, timedelta

from base import MarketplaceTestCase
from printmarket.extensions import db
from printmarket.exceptions import ValidationError, AuthorizationError, NotFoundError, ConflictError
from printmarket.helpers.offers import submit_offer, respond_to_offer, withdraw_offer, author_of
from printmarket.models.invoice import Invoice
from printmarket.models.listing import Listing
from printmarket.models.notification import Notification
from printmarket.models.offer import Offer


class TestOfferAuthorship(unittest.TestCase):

    def test_parity(self):
        self.assertEqual(author_of(Offer(counter_count=0)), 'buyer')
        self.assertEqual(author_of(Offer(counter_count=1)), 'seller')
        self.assertEqual(author_of(Offer(counter_count=2)), 'buyer')
        self.assertEqual(author_of(Offer(counter_count=3)), 'seller')

    def test_author_and_recipient_ids(self):
        offer = Offer(buyer_id=1, seller_id=2, counter_count=1)
        self.assertEqual(offer.author_id(), 2)
        self.assertEqual(offer.recipient_id(), 1)


class TestSubmitOffer(MarketplaceTestCase):

    def test_pending_offer(self):
        listing = self.make_offer_listing()
        now = datetime(2025, 6, 1, 10, 0)

        result = submit_offer(self.buyer, listing.id, 9000, 'Can pick up next week', now=now)

        self.assertTrue(result['success'])
        self.assertEqual(result['remainingOffers'], 2)
        offer = db.session.get(Offer, result['offerId'])
        self.assertEqual(offer.status, 'pending')
        self.assertEqual(offer.counter_count, 0)
        self.assertIsNone(offer.parent_offer_id)
        self.assertEqual(offer.expires_at, now + timedelta(hours=48))
        self.assertEqual(Notification.query.filter_by(user_id=self.seller.id, type='new_offer').count(), 1)

    def test_expiry_window_comes_from_settings(self):
        self.settings.offer_expiry_hours = 24
        db.session.commit()
        listing = self.make_offer_listing()
        now = datetime(2025, 6, 1, 10, 0)

        result = submit_offer(self.buyer, listing.id, 9000, now=now)

        offer = db.session.get(Offer, result['offerId'])
        self.assertEqual(offer.expires_at, now + timedelta(hours=24))

    def test_auto_accept_at_threshold(self):
        listing = self.make_offer_listing(auto_accept_price=10000, auto_decline_price=5000)

        result = submit_offer(self.buyer, listing.id, 10000)

        self.assertTrue(result['autoAccepted'])
        offer = db.session.get(Offer, result['offerId'])
        self.assertEqual(offer.status, 'accepted')
        self.assertEqual(db.session.get(Listing, listing.id).status, 'sold')
        invoice = db.session.get(Invoice, result['invoiceId'])
        self.assertEqual(invoice.sale_amount, 10000)
        self.assertEqual(invoice.total_amount, 10800)
        self.assertEqual(invoice.offer_id, offer.id)
        self.assertEqual(invoice.buyer_id, self.buyer.id)

    def test_auto_decline_below_threshold_creates_nothing(self):
        listing = self.make_offer_listing(auto_accept_price=10000, auto_decline_price=5000)

        with self.assertRaises(ValidationError) as ctx:
            submit_offer(self.buyer, listing.id, 4999.99)

        self.assertTrue(ctx.exception.payload['autoDeclined'])
        self.assertIn('$5,000.00', ctx.exception.message)
        self.assertEqual(Offer.query.count(), 0)

    def test_exactly_auto_decline_price_is_pending(self):
        listing = self.make_offer_listing(auto_accept_price=10000, auto_decline_price=5000)
        result = submit_offer(self.buyer, listing.id, 5000)
        self.assertEqual(db.session.get(Offer, result['offerId']).status, 'pending')

    def test_between_thresholds_is_pending(self):
        listing = self.make_offer_listing(auto_accept_price=10000, auto_decline_price=5000)
        result = submit_offer(self.buyer, listing.id, 9999.99)
        self.assertNotIn('autoAccepted', result)
        self.assertEqual(db.session.get(Offer, result['offerId']).status, 'pending')

    def test_invalid_amounts(self):
        listing = self.make_offer_listing()
        for amount in (0, -10, 'abc', None, float('nan')):
            with self.assertRaises(ValidationError, msg=repr(amount)):
                submit_offer(self.buyer, listing.id, amount)

    def test_infinite_amounts_rejected(self):
        listing = self.make_offer_listing(auto_accept_price=10000)
        for amount in ('inf', 'Infinity', float('inf'), '-inf'):
            with self.assertRaisesRegex(ValidationError, 'Invalid offer amount', msg=repr(amount)):
                submit_offer(self.buyer, listing.id, amount)

        self.assertEqual(Offer.query.count(), 0)
        self.assertEqual(Invoice.query.count(), 0)
        self.assertEqual(db.session.get(Listing, listing.id).status, 'active')

    def test_listing_rules(self):
        with self.assertRaises(NotFoundError):
            submit_offer(self.buyer, 9999, 100)

        no_offers = self.make_offer_listing(accept_offers=False)
        with self.assertRaisesRegex(ValidationError, 'does not accept offers'):
            submit_offer(self.buyer, no_offers.id, 100)

        sold = self.make_offer_listing(status='sold')
        with self.assertRaisesRegex(ValidationError, 'no longer available'):
            submit_offer(self.buyer, sold.id, 100)

        listing = self.make_offer_listing()
        with self.assertRaisesRegex(ValidationError, 'your own listing'):
            submit_offer(self.seller, listing.id, 100)

    def test_one_pending_offer_per_buyer(self):
        listing = self.make_offer_listing()
        submit_offer(self.buyer, listing.id, 8000)
        with self.assertRaisesRegex(ValidationError, 'already have a pending offer'):
            submit_offer(self.buyer, listing.id, 8500)

        # Another buyer is unaffected
        submit_offer(self.other_buyer, listing.id, 8200)

    def test_max_three_original_offers(self):
        listing = self.make_offer_listing()
        for amount in (7000, 7500, 8000):
            result = submit_offer(self.buyer, listing.id, amount)
            withdraw_offer(self.buyer, result['offerId'])

        with self.assertRaisesRegex(ValidationError, 'maximum of 3 offers'):
            submit_offer(self.buyer, listing.id, 8500)


class TestRespondToOffer(MarketplaceTestCase):

    def setUp(self):
        super().setUp()
        self.listing = self.make_offer_listing()
        self.offer = self.make_offer(self.listing, self.buyer, 9000)

    def test_seller_accepts(self):
        other = self.make_offer(self.listing, self.other_buyer, 8500)

        result = respond_to_offer(self.seller, self.offer.id, 'accept')

        self.assertEqual(result['action'], 'accepted')
        self.assertEqual(db.session.get(Offer, self.offer.id).status, 'accepted')
        self.assertEqual(db.session.get(Offer, other.id).status, 'declined')
        self.assertEqual(db.session.get(Listing, self.listing.id).status, 'sold')

        invoice = db.session.get(Invoice, result['invoiceId'])
        self.assertEqual(invoice.sale_amount, 9000)
        self.assertEqual(invoice.buyer_premium_amount, 720)
        self.assertEqual(invoice.seller_payout_amount, 8280)
        self.assertEqual(invoice.status, 'pending')

        self.assertEqual(Notification.query.filter_by(type='offer_accepted').count(), 2)

    def test_buyer_cannot_accept_own_offer(self):
        with self.assertRaisesRegex(ValidationError, 'cannot accept your own offer'):
            respond_to_offer(self.buyer, self.offer.id, 'accept')
        self.assertEqual(Invoice.query.count(), 0)

    def test_stranger_is_rejected(self):
        with self.assertRaises(AuthorizationError):
            respond_to_offer(self.other_buyer, self.offer.id, 'accept')

    def test_unknown_offer(self):
        with self.assertRaises(NotFoundError):
            respond_to_offer(self.seller, 9999, 'accept')

    def test_invalid_action(self):
        with self.assertRaisesRegex(ValidationError, 'Invalid action'):
            respond_to_offer(self.seller, self.offer.id, 'ignore')

    def test_non_pending_offer(self):
        respond_to_offer(self.seller, self.offer.id, 'decline')
        with self.assertRaisesRegex(ValidationError, 'already been declined'):
            respond_to_offer(self.seller, self.offer.id, 'accept')

    def test_expired_offer_is_flipped(self):
        self.offer.expires_at = datetime.utcnow() - timedelta(minutes=1)
        db.session.commit()

        with self.assertRaisesRegex(ValidationError, 'expired'):
            respond_to_offer(self.seller, self.offer.id, 'accept')

        self.assertEqual(db.session.get(Offer, self.offer.id).status, 'expired')
        self.assertEqual(db.session.get(Listing, self.listing.id).status, 'active')
        self.assertEqual(Invoice.query.count(), 0)

    def test_decline_notifies_author(self):
        respond_to_offer(self.seller, self.offer.id, 'decline')

        self.assertEqual(db.session.get(Offer, self.offer.id).status, 'declined')
        notification = Notification.query.filter_by(type='offer_declined').one()
        self.assertEqual(notification.user_id, self.buyer.id)

    def test_author_cannot_decline(self):
        with self.assertRaisesRegex(ValidationError, 'Use withdraw'):
            respond_to_offer(self.buyer, self.offer.id, 'decline')

    def test_counter_chain(self):
        result = respond_to_offer(self.seller, self.offer.id, 'counter', counter_amount=9500,
                                  counter_message='Meet me at 9.5k')

        self.assertEqual(db.session.get(Offer, self.offer.id).status, 'countered')
        counter = db.session.get(Offer, result['counterOfferId'])
        self.assertEqual(counter.status, 'pending')
        self.assertEqual(counter.parent_offer_id, self.offer.id)
        self.assertEqual(counter.counter_count, 1)
        self.assertEqual(counter.amount, 9500)
        self.assertEqual(author_of(counter), 'seller')
        self.assertEqual((counter.buyer_id, counter.seller_id), (self.buyer.id, self.seller.id))

        notification = Notification.query.filter_by(type='counter_offer').one()
        self.assertEqual(notification.user_id, self.buyer.id)

        # Seller authored the counter, so only the buyer may act on it
        with self.assertRaisesRegex(ValidationError, 'cannot accept your own counter-offer'):
            respond_to_offer(self.seller, counter.id, 'accept')

        accepted = respond_to_offer(self.buyer, counter.id, 'accept')
        invoice = db.session.get(Invoice, accepted['invoiceId'])
        self.assertEqual(invoice.sale_amount, 9500)
        self.assertEqual(invoice.offer_id, counter.id)

    def test_counter_requires_different_amount(self):
        with self.assertRaisesRegex(ValidationError, 'different'):
            respond_to_offer(self.seller, self.offer.id, 'counter', counter_amount=9000)
        with self.assertRaisesRegex(ValidationError, 'required'):
            respond_to_offer(self.seller, self.offer.id, 'counter')
        self.assertEqual(db.session.get(Offer, self.offer.id).status, 'pending')

    def test_infinite_counter_rejected(self):
        for amount in ('inf', 'Infinity', float('inf')):
            with self.assertRaisesRegex(ValidationError, 'Invalid counter amount', msg=repr(amount)):
                respond_to_offer(self.seller, self.offer.id, 'counter', counter_amount=amount)

        self.assertEqual(db.session.get(Offer, self.offer.id).status, 'pending')
        self.assertEqual(Offer.query.count(), 1)

    def test_author_cannot_counter(self):
        with self.assertRaisesRegex(ValidationError, 'cannot counter your own offer'):
            respond_to_offer(self.buyer, self.offer.id, 'counter', counter_amount=8000)

    def test_counter_limit(self):
        current = self.offer
        responders = [self.seller, self.buyer, self.seller]
        for i, responder in enumerate(responders):
            result = respond_to_offer(responder, current.id, 'counter', counter_amount=9100 + i * 100)
            current = db.session.get(Offer, result['counterOfferId'])
        self.assertEqual(current.counter_count, 3)
        self.assertEqual(author_of(current), 'seller')

        before = Offer.query.count()
        with self.assertRaisesRegex(ValidationError, 'Maximum of 3 counter-offers reached'):
            respond_to_offer(self.buyer, current.id, 'counter', counter_amount=9250)
        self.assertEqual(Offer.query.count(), before)
        self.assertEqual(db.session.get(Offer, current.id).status, 'pending')

        # Accepting is still possible at the limit
        respond_to_offer(self.buyer, current.id, 'accept')
        self.assertEqual(db.session.get(Offer, current.id).status, 'accepted')

    def test_listing_sold_elsewhere(self):
        self.listing.status = 'sold'
        db.session.commit()

        with self.assertRaisesRegex(ConflictError, 'no longer available'):
            respond_to_offer(self.seller, self.offer.id, 'accept')

        self.assertEqual(db.session.get(Offer, self.offer.id).status, 'pending')
        self.assertEqual(Invoice.query.count(), 0)


class TestWithdrawOffer(MarketplaceTestCase):

    def setUp(self):
        super().setUp()
        self.listing = self.make_offer_listing()
        self.offer = self.make_offer(self.listing, self.buyer, 9000)

    def test_author_withdraws(self):
        withdraw_offer(self.buyer, self.offer.id)
        self.assertEqual(db.session.get(Offer, self.offer.id).status, 'withdrawn')
        notification = Notification.query.filter_by(type='offer_withdrawn').one()
        self.assertEqual(notification.user_id, self.seller.id)

    def test_seller_withdraws_own_counter(self):
        result = respond_to_offer(self.seller, self.offer.id, 'counter', counter_amount=9800)
        withdraw_offer(self.seller, result['counterOfferId'])
        self.assertEqual(db.session.get(Offer, result['counterOfferId']).status, 'withdrawn')

    def test_recipient_cannot_withdraw(self):
        with self.assertRaisesRegex(ValidationError, 'only withdraw your own'):
            withdraw_offer(self.seller, self.offer.id)

    def test_stranger_cannot_withdraw(self):
        with self.assertRaises(AuthorizationError):
            withdraw_offer(self.other_buyer, self.offer.id)

    def test_cannot_withdraw_twice(self):
        withdraw_offer(self.buyer, self.offer.id)
        with self.assertRaisesRegex(ValidationError, 'Cannot withdraw a withdrawn offer'):
            withdraw_offer(self.buyer, self.offer.id)


if __name__ == '__main__':
    unittest.main()
