from datetime import datetime
import secrets
from flask_login import UserMixin
from ..extensions import db, login_manager

class User(UserMixin, db.Model):
    __tablename__ = "users"
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    full_name = db.Column(db.String(255), nullable=True)
    company_name = db.Column(db.String(255), nullable=True)
    api_token = db.Column(db.String(64), unique=True, nullable=True, index=True)
    is_admin = db.Column(db.Boolean, default=False, nullable=False)

    # Per-seller commission overrides (NULL = use platform default)
    custom_buyer_premium_percent = db.Column(db.Float, nullable=True)
    custom_seller_commission_percent = db.Column(db.Float, nullable=True)

    # Notification preferences
    notify_email = db.Column(db.Boolean, default=True, nullable=False)
    notify_push = db.Column(db.Boolean, default=True, nullable=False)
    expo_push_token = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    listings = db.relationship("Listing", backref="seller", lazy="dynamic")

    def issue_api_token(self) -> str:
        self.api_token = secrets.token_hex(32)
        return self.api_token

    @property
    def display_name(self):
        return self.company_name or self.full_name or self.email

    @property
    def has_custom_rates(self):
        return (
            self.custom_buyer_premium_percent is not None
            or self.custom_seller_commission_percent is not None
        )

    def __repr__(self):
        return f"<User {self.id} {self.email}>"


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


@login_manager.request_loader
def load_user_from_request(request):
    """API callers authenticate with 'Authorization: Bearer <api_token>'"""
    auth_header = request.headers.get('Authorization', '')
    if not auth_header.startswith('Bearer '):
        return None
    token = auth_header[len('Bearer '):].strip()
    if not token:
        return None
    return User.query.filter_by(api_token=token).first()
