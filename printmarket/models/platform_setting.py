from datetime import datetime
from ..extensions import db


class PlatformSettings(db.Model):
    """Single global settings row, editable by administrators"""
    __tablename__ = "platform_settings"

    id = db.Column(db.Integer, primary_key=True)
    default_buyer_premium_percent = db.Column(db.Float, nullable=False, default=8.0)
    default_seller_commission_percent = db.Column(db.Float, nullable=False, default=8.0)
    auction_extension_minutes = db.Column(db.Integer, nullable=False, default=2)
    offer_expiry_hours = db.Column(db.Integer, nullable=False, default=48)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @staticmethod
    def current():
        return PlatformSettings.query.order_by(PlatformSettings.id).first()

    def to_dict(self):
        return {
            'default_buyer_premium_percent': self.default_buyer_premium_percent,
            'default_seller_commission_percent': self.default_seller_commission_percent,
            'auction_extension_minutes': self.auction_extension_minutes,
            'offer_expiry_hours': self.offer_expiry_hours,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
