"""
Marketplace exception classes

Every user-facing failure raised by the helpers derives from
MarketplaceError and carries the HTTP status the routes should answer with.
"""


class MarketplaceError(Exception):
    """Base marketplace error"""

    status_code = 400

    def __init__(self, message, status_code=None, payload=None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload or {}
        super().__init__(self.message)

    def to_dict(self):
        body = dict(self.payload)
        body['error'] = self.message
        return body


class ValidationError(MarketplaceError):
    """User input or record state does not allow the action"""

    status_code = 400


class AuthorizationError(MarketplaceError):
    """Caller is not a party to the record"""

    status_code = 403


class NotFoundError(MarketplaceError):
    """Offer, listing or invoice does not exist"""

    status_code = 404

    def __init__(self, entity, entity_id=None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found")


class ConflictError(MarketplaceError):
    """A conditional state transition was won by someone else"""

    status_code = 409
