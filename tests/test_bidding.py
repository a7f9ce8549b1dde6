"""
Proxy bidding and soft-close extension
"""
import unittest
from datetime import datetime, timedelta

from base import MarketplaceTestCase
from printmarket.extensions import db
from printmarket.exceptions import ValidationError, AuthorizationError, NotFoundError, ConflictError
from printmarket.helpers.bidding import place_bid, min_next_bid, in_soft_close
from printmarket.helpers.settlement import highest_bid, settle_ended_auctions
from printmarket.models.bid import Bid
from printmarket.models.invoice import Invoice
from printmarket.models.listing import Listing
from printmarket.models.notification import Notification

NOW = datetime(2025, 5, 1, 12, 0)


class TestBidIncrements(unittest.TestCase):

    def test_tiers(self):
        self.assertEqual(min_next_bid(0), 1)
        self.assertEqual(min_next_bid(249), 250)
        self.assertEqual(min_next_bid(250), 260)
        self.assertEqual(min_next_bid(999), 1009)
        self.assertEqual(min_next_bid(1000), 1050)
        self.assertEqual(min_next_bid(10000), 10100)

    def test_soft_close_window(self):
        end = NOW + timedelta(minutes=2)
        self.assertTrue(in_soft_close(end, 2, NOW))
        self.assertFalse(in_soft_close(end, 1, NOW))
        self.assertFalse(in_soft_close(end, 0, NOW))
        self.assertFalse(in_soft_close(NOW - timedelta(seconds=1), 2, NOW))
        self.assertFalse(in_soft_close(None, 2, NOW))


class BiddingTestCase(MarketplaceTestCase):

    def open_auction(self, ends_in=timedelta(days=1), **kwargs):
        listing = self.make_auction(ended=False, **kwargs)
        listing.start_time = NOW - timedelta(days=3)
        listing.end_time = NOW + ends_in
        db.session.commit()
        return listing

    def bid(self, bidder, listing, max_bid, now=NOW):
        return place_bid(bidder, listing.id, max_bid, now=now)


class TestPlaceBid(BiddingTestCase):

    def test_first_bid_opens_at_starting_price(self):
        listing = self.open_auction()

        result = self.bid(self.buyer, listing, 500)

        self.assertEqual(result['currentPrice'], 100)
        self.assertEqual(result['bidCount'], 1)
        self.assertFalse(result['wasOutbid'])
        bid = Bid.query.one()
        self.assertEqual((bid.amount, bid.max_bid, bid.status), (100, 500, 'winning'))
        self.assertEqual(db.session.get(Listing, listing.id).current_price, 100)
        self.assertEqual(Notification.query.filter_by(user_id=self.seller.id, type='new_bid').count(), 1)

    def test_below_starting_price(self):
        listing = self.open_auction()
        with self.assertRaisesRegex(ValidationError, r'Minimum bid is \$100.00'):
            self.bid(self.buyer, listing, 50)

    def test_higher_max_takes_the_lead_one_increment_up(self):
        listing = self.open_auction()
        first = self.bid(self.buyer, listing, 500)

        result = self.bid(self.other_buyer, listing, 800)

        self.assertEqual(result['currentPrice'], 510)
        self.assertFalse(result['wasOutbid'])
        self.assertEqual(highest_bid(listing.id).bidder_id, self.other_buyer.id)
        self.assertEqual(Bid.query.filter_by(bidder_id=self.buyer.id).one().status, 'outbid')
        self.assertEqual(Notification.query.filter_by(user_id=self.buyer.id, type='outbid').count(), 1)
        self.assertEqual(first['currentPrice'], 100)

    def test_standing_proxy_answers_lower_max(self):
        listing = self.open_auction()
        self.bid(self.buyer, listing, 500)

        result = self.bid(self.other_buyer, listing, 300)

        self.assertTrue(result['wasOutbid'])
        self.assertEqual(result['currentPrice'], 310)
        leader = highest_bid(listing.id)
        self.assertEqual(leader.bidder_id, self.buyer.id)
        self.assertEqual(leader.amount, 310)
        self.assertEqual(Notification.query.filter_by(user_id=self.other_buyer.id, type='outbid').count(), 1)

    def test_tie_goes_to_earlier_bid(self):
        listing = self.open_auction()
        self.bid(self.buyer, listing, 500)

        result = self.bid(self.other_buyer, listing, 500)

        self.assertTrue(result['wasOutbid'])
        self.assertEqual(result['currentPrice'], 500)
        self.assertEqual(highest_bid(listing.id).bidder_id, self.buyer.id)

    def test_below_next_increment(self):
        listing = self.open_auction()
        self.bid(self.buyer, listing, 500)
        with self.assertRaisesRegex(ValidationError, r'Minimum bid is \$101.00'):
            self.bid(self.other_buyer, listing, 100.5)

    def test_leader_raises_max_silently(self):
        listing = self.open_auction()
        self.bid(self.buyer, listing, 500)

        result = self.bid(self.buyer, listing, 900)

        self.assertIn('maximum bid has been updated', result['message'])
        bid = Bid.query.one()
        self.assertEqual((bid.amount, bid.max_bid), (100, 900))
        self.assertEqual(db.session.get(Listing, listing.id).bid_count, 1)

        with self.assertRaisesRegex(ValidationError, 'already the high bidder'):
            self.bid(self.buyer, listing, 900)

    def test_reserve_is_met_in_one_step(self):
        listing = self.open_auction(reserve_price=1000)

        result = self.bid(self.buyer, listing, 1500)

        self.assertEqual(result['currentPrice'], 1000)
        self.assertTrue(result['reserveMet'])
        self.assertIn('Reserve has been met', result['message'])
        self.assertEqual(Notification.query.filter_by(user_id=self.seller.id, type='reserve_met').count(), 1)

    def test_bid_below_reserve(self):
        listing = self.open_auction(reserve_price=1000)

        result = self.bid(self.buyer, listing, 600)

        self.assertEqual(result['currentPrice'], 600)
        self.assertFalse(result['reserveMet'])

        # Leader pushes on to the reserve
        result = self.bid(self.buyer, listing, 1200)
        self.assertEqual(result['currentPrice'], 1000)
        self.assertTrue(result['reserveMet'])
        self.assertEqual(Notification.query.filter_by(user_id=self.seller.id, type='reserve_met').count(), 1)

    def test_bidding_rules(self):
        listing = self.open_auction()
        with self.assertRaises(AuthorizationError):
            self.bid(self.seller, listing, 500)
        with self.assertRaises(NotFoundError):
            place_bid(self.buyer, 9999, 500, now=NOW)

        ended = self.open_auction(ends_in=timedelta(minutes=-1))
        with self.assertRaisesRegex(ValidationError, 'has ended'):
            self.bid(self.buyer, ended, 500)

        fixed = self.make_offer_listing()
        with self.assertRaisesRegex(ValidationError, 'not an auction'):
            self.bid(self.buyer, fixed, 500)

        for amount in ('inf', float('inf'), 'abc', 0, -5):
            with self.assertRaisesRegex(ValidationError, 'Invalid bid amount', msg=repr(amount)):
                self.bid(self.buyer, listing, amount)
        self.assertEqual(Bid.query.count(), 0)

    def test_concurrent_bid_is_rejected(self):
        listing = self.open_auction()
        self.assertEqual(listing.bid_count, 0)

        # Another request bumps bid_count after this one read the listing
        Listing.query.filter_by(id=listing.id).update({'bid_count': 1}, synchronize_session=False)

        with self.assertRaises(ConflictError):
            self.bid(self.buyer, listing, 500)
        self.assertEqual(Bid.query.count(), 0)

    def test_winning_proxy_bid_settles(self):
        listing = self.open_auction(ends_in=timedelta(hours=1))
        self.bid(self.buyer, listing, 500)
        self.bid(self.other_buyer, listing, 300)

        settle_ended_auctions(NOW + timedelta(hours=2))

        invoice = Invoice.query.filter_by(listing_id=listing.id).one()
        self.assertEqual(invoice.buyer_id, self.buyer.id)
        self.assertEqual(invoice.sale_amount, 310)


class TestSoftClose(BiddingTestCase):

    def test_bid_in_window_extends_auction(self):
        listing = self.open_auction(ends_in=timedelta(minutes=1))
        original_end = listing.end_time

        result = self.bid(self.buyer, listing, 500)

        self.assertTrue(result['auctionExtended'])
        self.assertIn('Auction extended by 2 minutes', result['message'])
        listing = db.session.get(Listing, listing.id)
        self.assertEqual(listing.end_time, NOW + timedelta(minutes=2))
        self.assertEqual(listing.original_end_time, original_end)

    def test_window_comes_from_settings(self):
        self.settings.auction_extension_minutes = 5
        db.session.commit()
        listing = self.open_auction(ends_in=timedelta(minutes=4))

        result = self.bid(self.buyer, listing, 500)

        self.assertTrue(result['auctionExtended'])
        self.assertEqual(db.session.get(Listing, listing.id).end_time, NOW + timedelta(minutes=5))

    def test_zero_minutes_disables_extension(self):
        self.settings.auction_extension_minutes = 0
        db.session.commit()
        listing = self.open_auction(ends_in=timedelta(seconds=30))

        result = self.bid(self.buyer, listing, 500)

        self.assertFalse(result['auctionExtended'])
        self.assertEqual(db.session.get(Listing, listing.id).end_time, NOW + timedelta(seconds=30))

    def test_outside_window(self):
        listing = self.open_auction(ends_in=timedelta(minutes=10))
        result = self.bid(self.buyer, listing, 500)
        self.assertFalse(result['auctionExtended'])
        self.assertIsNone(db.session.get(Listing, listing.id).original_end_time)

    def test_original_end_time_kept_across_extensions(self):
        listing = self.open_auction(ends_in=timedelta(minutes=1))
        original_end = listing.end_time

        self.bid(self.buyer, listing, 500)
        self.bid(self.other_buyer, listing, 800, now=NOW + timedelta(minutes=1, seconds=30))

        listing = db.session.get(Listing, listing.id)
        self.assertEqual(listing.original_end_time, original_end)
        self.assertEqual(listing.end_time, NOW + timedelta(minutes=3, seconds=30))


class TestBidEndpoint(BiddingTestCase):

    def test_place(self):
        listing = self.make_auction(ended=False)
        response = self.client.post('/api/bids/place', json={'listingId': listing.id, 'maxBid': 400},
                                    headers=self.auth_headers(self.buyer))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['currentPrice'], 100)

    def test_requires_login(self):
        response = self.client.post('/api/bids/place', json={'listingId': 1, 'maxBid': 400})
        self.assertEqual(response.status_code, 401)

    def test_missing_fields(self):
        response = self.client.post('/api/bids/place', json={}, headers=self.auth_headers(self.buyer))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json(), {'error': 'Missing listingId or maxBid'})


if __name__ == '__main__':
    unittest.main()
