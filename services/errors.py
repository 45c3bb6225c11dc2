# services/errors.py
"""
Error taxonomy shared by the checkout and webhook paths.

Checkout surfaces these to the caller (400 / 500); the webhook path logs
them and always acknowledges.
"""

from __future__ import annotations
from typing import Any, Optional


class RelayError(Exception):
    message = "Relay error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.message
        super().__init__(self.message)

    def __str__(self):
        return self.message


class ClientInputError(RelayError):
    message = "Items vacíos"


class UpstreamError(RelayError):
    """Payment API answered non-2xx (or could not be reached)."""
    message = "Payment API error"

    def __init__(self, message: Optional[str] = None, status: Optional[int] = None,
                 details: Any = None):
        super().__init__(message)
        self.status = status
        self.details = details


class DeliveryError(RelayError):
    message = "Mail delivery failed"


class MalformedNotification(RelayError):
    message = "Notification carries no payment id"
