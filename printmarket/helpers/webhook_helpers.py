"""
Stripe Webhook Helper Functions
Handles signature validation, logging, and event parsing
"""
import json
import logging

import stripe

logger = logging.getLogger(__name__)


def log_webhook(msg, level=logging.INFO):
    """Helper for webhook logging"""
    logger.log(level, f"[WEBHOOK] {msg}")


def validate_stripe_signature(payload: bytes, signature: str, webhook_secret: str) -> bool:
    """
    Validate a Stripe webhook signature

    Stripe signs the raw body with HMAC-SHA256 using the endpoint secret and
    sends "t=<timestamp>,v1=<signature>" in the Stripe-Signature header.
    Verification is delegated to the SDK (which also enforces the timestamp
    tolerance).

    Args:
        payload: Raw request body (bytes)
        signature: Value of the Stripe-Signature header
        webhook_secret: Endpoint secret (whsec_...)

    Returns:
        bool: True if signature is valid, False otherwise
    """
    if not signature or not webhook_secret:
        log_webhook("Missing signature or webhook secret", logging.WARNING)
        return False

    if isinstance(payload, bytes):
        try:
            payload = payload.decode('utf-8')
        except UnicodeDecodeError:
            log_webhook("Payload is not valid UTF-8", logging.WARNING)
            return False

    try:
        stripe.WebhookSignature.verify_header(payload, signature, webhook_secret)
    except stripe.SignatureVerificationError as e:
        log_webhook(f"Signature validation failed: {e}", logging.WARNING)
        return False

    log_webhook("Signature validation passed", logging.DEBUG)
    return True


def parse_stripe_event(payload) -> dict:
    """
    Parse a verified Stripe event body

    Returns:
        dict with event_id, event_type and data_object, or None if the body
        is not a JSON event
    """
    try:
        event = json.loads(payload)
    except (TypeError, ValueError) as e:
        log_webhook(f"Invalid JSON payload: {e}", logging.WARNING)
        return None

    if not isinstance(event, dict):
        return None

    return {
        'event_id': event.get('id'),
        'event_type': event.get('type'),
        'data_object': (event.get('data') or {}).get('object') or {},
    }
