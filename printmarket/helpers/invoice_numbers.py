"""
Invoice numbers: INV-YYYYMMDD-XXXX

The date is the UTC generation date and XXXX four uppercase hex digits
from a cryptographically strong source.
"""
import re
import secrets
from datetime import datetime, date

INVOICE_NUMBER_PATTERN = re.compile(r"^INV-[0-9]{8}-[A-F0-9]{4}$")


def generate_invoice_number(now=None):
    now = now or datetime.utcnow()
    suffix = secrets.token_hex(2).upper()
    return f"INV-{now.strftime('%Y%m%d')}-{suffix}"


def is_valid_invoice_number(value):
    if not isinstance(value, str):
        return False
    return INVOICE_NUMBER_PATTERN.fullmatch(value) is not None


def get_invoice_date(value):
    """Date embedded in an invoice number, or None if it doesn't parse"""
    if not is_valid_invoice_number(value):
        return None
    digits = value[4:12]
    try:
        return date(int(digits[:4]), int(digits[4:6]), int(digits[6:8]))
    except ValueError:
        return None
