"""
Expo push notifications (fire-and-forget)
"""
import requests
from flask import current_app

DEFAULT_EXPO_PUSH_URL = "https://exp.host/--/api/v2/push/send"


def is_expo_push_token(token):
    return bool(token) and (
        token.startswith('ExponentPushToken[') or token.startswith('ExpoPushToken[')
    )


def send_push_notification(token, title, body=None, data=None):
    """
    Send one push message through the Expo push API.

    Returns:
        (success: bool, error_message: str|None)
    """
    if not is_expo_push_token(token):
        return False, "Invalid Expo push token"

    url = current_app.config.get('EXPO_PUSH_URL', DEFAULT_EXPO_PUSH_URL)
    message = {
        'to': token,
        'sound': 'default',
        'title': title,
        'body': body or '',
        'data': data or {},
    }

    try:
        response = requests.post(
            url,
            json=message,
            headers={'Accept': 'application/json', 'Content-Type': 'application/json'},
            timeout=10
        )
    except requests.RequestException as e:
        return False, f"Push request failed: {str(e)}"

    if response.status_code != 200:
        return False, f"Push API returned {response.status_code}"

    ticket = (response.json() or {}).get('data') or {}
    if isinstance(ticket, list):
        ticket = ticket[0] if ticket else {}
    if ticket.get('status') == 'error':
        return False, ticket.get('message', 'Push rejected')

    return True, None
