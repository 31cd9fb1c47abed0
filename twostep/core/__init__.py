"""
twostep.core
============

TOTP (RFC 6238) / HOTP (RFC 4226) engine compatible with Google Authenticator.

──────────────────────────────────────────────
Core algorithm
──────────────────────────────────────────────
- HOTP: code = Truncate(HMAC-SHA1(key=secret, msg=counter)) mod 10^digits
- TOTP: HOTP with counter = epoch_millis / 30000 (30 s steps)
- Validation checks a window of steps around "now" (3 by default:
  one behind, current, one ahead) to absorb clock skew.
- Scratch codes: 5 eight-digit recovery codes generated with each secret.

──────────────────────────────────────────────
Quick start
──────────────────────────────────────────────
>>> from twostep.core import Authenticator
>>> auth = Authenticator(credential_repository=None)
>>> key = auth.create_credentials()
>>> auth.authorize(key.key, key.verification_code, time=0)
True
"""

from .authenticator import Authenticator
from .config import AuthenticatorConfig, HmacHashFunction, KeyRepresentation
from .credentials import AuthenticatorKey
from .exceptions import (
    AuthenticatorError,
    ConfigurationError,
    DecodingError,
    OperationError,
    UnsupportedOperationError,
    ValidationError,
)
from .repository import CredentialRepository

__all__ = [
    "Authenticator",
    "AuthenticatorConfig",
    "AuthenticatorError",
    "AuthenticatorKey",
    "ConfigurationError",
    "CredentialRepository",
    "DecodingError",
    "HmacHashFunction",
    "KeyRepresentation",
    "OperationError",
    "UnsupportedOperationError",
    "ValidationError",
]
