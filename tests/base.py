"""
Shared fixtures for the Flask/SQLAlchemy test cases
"""
import unittest
import sys
import os
from datetime import datetime, timedelta

from flask import g

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from printmarket import create_app
from printmarket.config import Config
from printmarket.extensions import db
from printmarket.models.user import User
from printmarket.models.listing import Listing
from printmarket.models.bid import Bid
from printmarket.models.offer import Offer
from printmarket.models.platform_setting import PlatformSettings


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    CRON_SECRET = None
    STRIPE_SECRET_KEY = 'sk_test_dummy'
    STRIPE_WEBHOOK_SECRET = 'whsec_test_secret'
    LOG_LEVEL = 'WARNING'


class MarketplaceTestCase(unittest.TestCase):
    """App + in-memory database per test, with a seller, two buyers and an admin"""

    config_class = TestConfig

    def setUp(self):
        self.app = create_app(self.config_class)
        # The app context pushed below is reused by every test-client request;
        # drop Flask-Login's per-context user cache so each request authenticates afresh
        @self.app.before_request
        def _forget_cached_user():
            g.pop('_login_user', None)
        self.app_context = self.app.app_context()
        self.app_context.push()
        db.create_all()
        self.client = self.app.test_client()

        self.settings = PlatformSettings(
            default_buyer_premium_percent=8.0,
            default_seller_commission_percent=8.0,
            auction_extension_minutes=2,
            offer_expiry_hours=48,
        )
        db.session.add(self.settings)

        self.seller = self.make_user('seller@example.com', 'Sam Seller', company_name='Press Brokers')
        self.buyer = self.make_user('buyer@example.com', 'Bea Buyer')
        self.other_buyer = self.make_user('other@example.com', 'Otto Other')
        self.admin = self.make_user('admin@example.com', 'Ada Admin', is_admin=True)
        db.session.commit()

    def tearDown(self):
        db.session.remove()
        db.drop_all()
        self.app_context.pop()

    def make_user(self, email, full_name, company_name=None, is_admin=False):
        user = User(email=email, full_name=full_name, company_name=company_name, is_admin=is_admin)
        user.issue_api_token()
        db.session.add(user)
        return user

    def auth_headers(self, user):
        return {'Authorization': f'Bearer {user.api_token}'}

    def make_auction(self, ended=True, reserve_price=None, current_price=None, **kwargs):
        now = datetime.utcnow()
        listing = Listing(
            seller_id=self.seller.id,
            title=kwargs.pop('title', 'Pitney Bowes DI950 Inserter'),
            status=kwargs.pop('status', 'active'),
            listing_type=kwargs.pop('listing_type', 'auction'),
            starting_price=kwargs.pop('starting_price', 100.0),
            reserve_price=reserve_price,
            current_price=current_price,
            start_time=now - timedelta(days=7),
            end_time=now - timedelta(minutes=5) if ended else now + timedelta(days=1),
            **kwargs
        )
        db.session.add(listing)
        db.session.commit()
        return listing

    def make_offer_listing(self, auto_accept_price=None, auto_decline_price=None, **kwargs):
        listing = Listing(
            seller_id=self.seller.id,
            title=kwargs.pop('title', 'Xerox Versant 180 Press'),
            status=kwargs.pop('status', 'active'),
            listing_type=kwargs.pop('listing_type', 'fixed_price_offers'),
            buy_now_price=kwargs.pop('buy_now_price', 12000.0),
            accept_offers=kwargs.pop('accept_offers', True),
            auto_accept_price=auto_accept_price,
            auto_decline_price=auto_decline_price,
            **kwargs
        )
        db.session.add(listing)
        db.session.commit()
        return listing

    def place_bid(self, listing, bidder, amount):
        bid = Bid(listing_id=listing.id, bidder_id=bidder.id, amount=amount, max_bid=amount)
        db.session.add(bid)
        listing.current_price = amount
        listing.bid_count = (listing.bid_count or 0) + 1
        db.session.commit()
        return bid

    def make_offer(self, listing, buyer, amount, counter_count=0, parent=None, status='pending',
                   expires_at=None):
        offer = Offer(
            listing_id=listing.id,
            buyer_id=buyer.id,
            seller_id=listing.seller_id,
            amount=amount,
            status=status,
            counter_count=counter_count,
            parent_offer_id=parent.id if parent else None,
            expires_at=expires_at or datetime.utcnow() + timedelta(hours=48),
        )
        db.session.add(offer)
        db.session.commit()
        return offer
