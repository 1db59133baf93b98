"""
Outcome and error types shared by the auth services.

Expected outcomes of an auth operation (bad password, spent refresh token...)
are returned as ``AuthFailure`` values. Faults that no caller can recover from
inside a request (store down, entropy source broken) are raised.
"""

from enum import Enum


class AuthFailure(str, Enum):
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    EMAIL_NOT_VERIFIED = "EMAIL_NOT_VERIFIED"
    INVALID_OR_EXPIRED_REFRESH_TOKEN = "INVALID_OR_EXPIRED_REFRESH_TOKEN"
    INVALID_VERIFICATION_TOKEN = "INVALID_VERIFICATION_TOKEN"
    EMAIL_ALREADY_REGISTERED = "EMAIL_ALREADY_REGISTERED"
    UNAUTHENTICATED = "UNAUTHENTICATED"


class StoreUnavailable(Exception):
    """The credential store failed; the transaction was rolled back."""


class EntropyFailure(Exception):
    """The OS random source failed. Never retried with a weaker source."""
