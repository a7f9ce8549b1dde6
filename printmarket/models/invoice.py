from datetime import datetime
from ..extensions import db


class Invoice(db.Model):
    """
    Settlement record, created exactly once per sale.

    Commission percentages are copied from the rates used at creation so
    later rate changes never alter historical invoices.
    """
    __tablename__ = "invoices"

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(20), unique=True, nullable=False, index=True)

    # One sale per listing
    listing_id = db.Column(db.Integer, db.ForeignKey("listings.id"), unique=True, nullable=False)
    offer_id = db.Column(db.Integer, db.ForeignKey("offers.id"), nullable=True)
    seller_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    buyer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # Amounts
    sale_amount = db.Column(db.Float, nullable=False)
    buyer_premium_percent = db.Column(db.Float, nullable=False)
    buyer_premium_amount = db.Column(db.Float, nullable=False)
    seller_commission_percent = db.Column(db.Float, nullable=False)
    seller_commission_amount = db.Column(db.Float, nullable=False)
    total_amount = db.Column(db.Float, nullable=False)
    seller_payout_amount = db.Column(db.Float, nullable=False)

    # pending, paid, partial, overdue, cancelled, refunded
    status = db.Column(db.String(20), nullable=False, default='pending', index=True)
    # awaiting_payment, processing, shipped, delivered
    fulfillment_status = db.Column(db.String(30), nullable=False, default='awaiting_payment')

    payment_due_date = db.Column(db.Date, nullable=True)
    paid_at = db.Column(db.DateTime, nullable=True)
    payment_method = db.Column(db.String(30), nullable=True)
    stripe_payment_intent_id = db.Column(db.String(255), nullable=True, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    listing = db.relationship("Listing", backref=db.backref("invoice", uselist=False))
    buyer = db.relationship("User", foreign_keys=[buyer_id])
    seller = db.relationship("User", foreign_keys=[seller_id])
    payments = db.relationship("Payment", backref="invoice", lazy="dynamic")

    def __repr__(self):
        return f"<Invoice {self.invoice_number} ({self.status})>"
