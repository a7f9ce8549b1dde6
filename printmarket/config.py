import os
from datetime import timedelta

class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "change-me")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # PostgreSQL in production, local SQLite file otherwise
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///printmarket.db")

    # SQLAlchemy Engine Options - only applied to server databases (see create_app)
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': 10,              # Max connections in pool per worker
        'pool_recycle': 3600,         # Recycle connections after 1 hour
        'pool_pre_ping': True,        # Verify connections before using (detect stale connections)
        'max_overflow': 5,            # Allow 5 extra connections beyond pool_size
        'pool_timeout': 30,           # Timeout waiting for connection from pool
    }

    # Session configuration
    PERMANENT_SESSION_LIFETIME = timedelta(days=30)
    SESSION_COOKIE_SECURE = os.environ.get("SESSION_COOKIE_SECURE", "False") == "True"
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Shared secret for the cron-triggered batch endpoints (optional)
    CRON_SECRET = os.environ.get("CRON_SECRET")

    # Stripe
    STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET = os.environ.get("STRIPE_WEBHOOK_SECRET")

    # Used when the platform_settings row is missing
    FALLBACK_BUYER_PREMIUM_PERCENT = float(os.environ.get("FALLBACK_BUYER_PREMIUM_PERCENT", "8.0"))
    FALLBACK_SELLER_COMMISSION_PERCENT = float(os.environ.get("FALLBACK_SELLER_COMMISSION_PERCENT", "8.0"))
    OFFER_EXPIRY_HOURS = int(os.environ.get("OFFER_EXPIRY_HOURS", "48"))
    AUCTION_EXTENSION_MINUTES = int(os.environ.get("AUCTION_EXTENSION_MINUTES", "2"))

    # Offer negotiation limits
    MAX_OFFERS_PER_BUYER_PER_LISTING = int(os.environ.get("MAX_OFFERS_PER_BUYER_PER_LISTING", "3"))
    MAX_COUNTER_OFFERS = int(os.environ.get("MAX_COUNTER_OFFERS", "3"))

    DEFAULT_PAYMENT_DUE_DAYS = int(os.environ.get("DEFAULT_PAYMENT_DUE_DAYS", "7"))
    INVOICE_NUMBER_MAX_ATTEMPTS = int(os.environ.get("INVOICE_NUMBER_MAX_ATTEMPTS", "5"))

    # Email/SMTP configuration (see helpers/email_sender.py)
    # - SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASSWORD
    # - SMTP_FROM_EMAIL (optional, defaults to SMTP_USER)
    # - SMTP_FROM_NAME (optional, defaults to "PrintMarket")
    SITE_URL = os.environ.get("SITE_URL", "http://localhost:5000")

    # Expo push notifications
    EXPO_PUSH_URL = os.environ.get("EXPO_PUSH_URL", "https://exp.host/--/api/v2/push/send")
