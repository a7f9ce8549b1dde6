"""
User Notification Model
Stores in-app notifications for auctions, offers and payments
"""
from datetime import datetime
from printmarket.extensions import db


class Notification(db.Model):
    """
    In-app notification. Push and e-mail are sent alongside it,
    the row is what the dashboard shows.
    """
    __tablename__ = 'notifications'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)

    # auction_won, auction_ended, new_offer, offer_accepted, offer_declined,
    # counter_offer, offer_withdrawn, payment_received, payment_confirmed, ...
    type = db.Column(db.String(50), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    body = db.Column(db.Text)

    # Related entities
    listing_id = db.Column(db.Integer, db.ForeignKey('listings.id'), nullable=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey('invoices.id'), nullable=True)
    offer_id = db.Column(db.Integer, db.ForeignKey('offers.id'), nullable=True)
    related_type = db.Column(db.String(30))
    related_id = db.Column(db.String(64), index=True)

    is_read = db.Column(db.Boolean, default=False, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    read_at = db.Column(db.DateTime)

    user = db.relationship('User', backref=db.backref('notifications', lazy='dynamic'))

    def __repr__(self):
        return f'<Notification {self.id}: {self.type} for user {self.user_id}>'

    @staticmethod
    def exists_for(user_id, type, related_id):
        """True if user already has a notification of this type for related_id"""
        return Notification.query.filter_by(
            user_id=user_id,
            type=type,
            related_id=str(related_id)
        ).first() is not None
