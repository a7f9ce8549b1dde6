from datetime import datetime
from ..extensions import db


class Payment(db.Model):
    """Payment ledger row; one completed row per paid invoice"""
    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    amount = db.Column(db.Float, nullable=False)
    method = db.Column(db.String(30), nullable=False, default='credit_card')
    status = db.Column(db.String(20), nullable=False)  # completed, failed
    stripe_payment_intent_id = db.Column(db.String(255), nullable=True, index=True)
    processed_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<Payment {self.id}: {self.amount} for invoice {self.invoice_id} ({self.status})>"
