"""
Payment webhook ledger
Existence of a row for an event id means the event must not be processed again
"""
from datetime import datetime
from printmarket.extensions import db


class ProcessedWebhookEvent(db.Model):
    __tablename__ = 'processed_webhook_events'

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.String(255), unique=True, nullable=False)  # e.g. "evt_1Abc..."
    event_type = db.Column(db.String(100), nullable=False)  # e.g. "checkout.session.completed"
    processed_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f'<ProcessedWebhookEvent {self.event_id} ({self.event_type})>'

    @staticmethod
    def has_been_processed(event_id):
        return ProcessedWebhookEvent.query.filter_by(event_id=event_id).first() is not None
