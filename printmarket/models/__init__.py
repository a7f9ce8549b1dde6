from .user import User
from .listing import Listing
from .bid import Bid
from .offer import Offer
from .invoice import Invoice
from .payment import Payment
from .notification import Notification
from .webhook import ProcessedWebhookEvent
from .platform_setting import PlatformSettings

__all__ = [
    'User',
    'Listing',
    'Bid',
    'Offer',
    'Invoice',
    'Payment',
    'Notification',
    'ProcessedWebhookEvent',
    'PlatformSettings'
]
