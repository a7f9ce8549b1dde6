"""
Notification outbox

State transitions queue their notifications here and call dispatch() only
after the authoritative commit. Each intent is delivered on its own: a
failed row insert, push or e-mail is logged and never reaches the caller.
"""
import logging

from ..extensions import db
from ..models.notification import Notification
from ..models.user import User
from .push import send_push_notification

logger = logging.getLogger(__name__)


class NotificationOutbox:

    def __init__(self):
        self.notifications = []
        self.emails = []

    def __len__(self):
        return len(self.notifications) + len(self.emails)

    def notify(self, user_id, type, title, body=None, listing_id=None, invoice_id=None,
               offer_id=None, related_type=None, related_id=None, once=False):
        """
        Queue an in-app notification (plus push when the user opted in).

        once=True skips the insert if the user already has a notification of
        the same type for related_id.
        """
        self.notifications.append({
            'user_id': user_id,
            'type': type,
            'title': title,
            'body': body,
            'listing_id': listing_id,
            'invoice_id': invoice_id,
            'offer_id': offer_id,
            'related_type': related_type,
            'related_id': str(related_id) if related_id is not None else None,
            'once': once,
        })

    def email(self, send_fn, user, **kwargs):
        """Queue send_fn(to=user.email, user_name=..., **kwargs)"""
        if user is None or not user.email or not user.notify_email:
            return
        kwargs.setdefault('user_name', user.full_name or '')
        self.emails.append((send_fn, user.email, kwargs))

    def dispatch(self):
        """
        Deliver everything queued. Call after commit.

        Returns:
            dict with counts of created/skipped/failed notifications and sent/failed e-mails
        """
        stats = {'created': 0, 'skipped': 0, 'failed': 0, 'emails_sent': 0, 'emails_failed': 0}

        for intent in self.notifications:
            try:
                if intent['once'] and intent['related_id'] is not None and Notification.exists_for(
                        intent['user_id'], intent['type'], intent['related_id']):
                    stats['skipped'] += 1
                    continue

                notification = Notification(
                    user_id=intent['user_id'],
                    type=intent['type'],
                    title=intent['title'],
                    body=intent['body'],
                    listing_id=intent['listing_id'],
                    invoice_id=intent['invoice_id'],
                    offer_id=intent['offer_id'],
                    related_type=intent['related_type'],
                    related_id=intent['related_id'],
                )
                db.session.add(notification)
                db.session.commit()
                stats['created'] += 1
            except Exception as e:
                db.session.rollback()
                stats['failed'] += 1
                logger.warning("Failed to create %s notification for user %s: %s",
                               intent['type'], intent['user_id'], e)
                continue

            self._push(intent)

        for send_fn, to_email, kwargs in self.emails:
            try:
                success, error = send_fn(to=to_email, **kwargs)
            except Exception as e:
                success, error = False, str(e)

            if success:
                stats['emails_sent'] += 1
            else:
                stats['emails_failed'] += 1
                logger.warning("Email %s to %s not sent: %s", send_fn.__name__, to_email, error)

        self.notifications = []
        self.emails = []
        return stats

    def _push(self, intent):
        try:
            user = db.session.get(User, intent['user_id'])
            if not user or not user.notify_push or not user.expo_push_token:
                return
            data = {'type': intent['type']}
            for key in ('listing_id', 'invoice_id', 'offer_id'):
                if intent[key] is not None:
                    data[key] = intent[key]
            success, error = send_push_notification(user.expo_push_token, intent['title'], intent['body'], data)
            if not success:
                logger.warning("Push to user %s failed: %s", intent['user_id'], error)
        except Exception as e:
            logger.warning("Push to user %s failed: %s", intent['user_id'], e)
