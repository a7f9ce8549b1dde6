from datetime import datetime
from ..extensions import db


class Offer(db.Model):
    """
    One record in an offer/counter-offer chain.

    The original offer has parent_offer_id NULL and counter_count 0. Each
    counter points at its parent and increments counter_count, so the
    parity of counter_count tells who authored the record: even = buyer,
    odd = seller. Always go through author_role()/author_id() instead of
    repeating the modulo.
    """
    __tablename__ = "offers"

    id = db.Column(db.Integer, primary_key=True)
    listing_id = db.Column(db.Integer, db.ForeignKey("listings.id"), nullable=False, index=True)
    buyer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    seller_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    amount = db.Column(db.Float, nullable=False)
    message = db.Column(db.Text, nullable=True)

    # pending, accepted, declined, countered, expired, withdrawn
    status = db.Column(db.String(20), nullable=False, default='pending', index=True)

    parent_offer_id = db.Column(db.Integer, db.ForeignKey("offers.id"), nullable=True, index=True)
    counter_count = db.Column(db.Integer, nullable=False, default=0)

    expires_at = db.Column(db.DateTime, nullable=True)
    responded_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    parent = db.relationship("Offer", remote_side=[id], backref="counters")

    def author_role(self):
        """'buyer' or 'seller', from counter_count parity"""
        return 'buyer' if (self.counter_count or 0) % 2 == 0 else 'seller'

    def author_id(self):
        return self.buyer_id if self.author_role() == 'buyer' else self.seller_id

    def recipient_id(self):
        return self.seller_id if self.author_role() == 'buyer' else self.buyer_id

    def is_expired(self, now=None):
        now = now or datetime.utcnow()
        return self.expires_at is not None and self.expires_at < now

    def __repr__(self):
        return f"<Offer {self.id}: {self.amount} ({self.status}, counter {self.counter_count})>"
