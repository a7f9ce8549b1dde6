from datetime import datetime
from ..extensions import db

AUCTION_TYPES = ('auction', 'auction_buy_now')


class Listing(db.Model):
    """
    An auctionable or offerable piece of equipment.

    Owned by its seller until sold; after that the Invoice is the
    authoritative settlement record.
    """
    __tablename__ = "listings"

    id = db.Column(db.Integer, primary_key=True)
    seller_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)

    # draft, scheduled, active, ended, sold, cancelled, expired
    status = db.Column(db.String(20), nullable=False, default='draft', index=True)
    # auction, auction_buy_now, fixed_price, fixed_price_offers
    listing_type = db.Column(db.String(30), nullable=False, default='auction', index=True)

    # Pricing
    starting_price = db.Column(db.Float, nullable=True)
    reserve_price = db.Column(db.Float, nullable=True)
    current_price = db.Column(db.Float, nullable=True)
    buy_now_price = db.Column(db.Float, nullable=True)
    bid_count = db.Column(db.Integer, default=0, nullable=False)

    # Offers
    accept_offers = db.Column(db.Boolean, default=False, nullable=False)
    auto_accept_price = db.Column(db.Float, nullable=True)
    auto_decline_price = db.Column(db.Float, nullable=True)

    payment_due_days = db.Column(db.Integer, nullable=True)

    # Timing
    start_time = db.Column(db.DateTime, nullable=True, index=True)
    end_time = db.Column(db.DateTime, nullable=True, index=True)
    # end_time before the first soft-close extension
    original_end_time = db.Column(db.DateTime, nullable=True)
    ended_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    bids = db.relationship("Bid", backref="listing", lazy="dynamic")
    offers = db.relationship("Offer", backref="listing", lazy="dynamic")

    def __repr__(self):
        return f"<Listing {self.id} {self.status}>"
