"""
exceptions.py — Error types raised by the twostep authenticator.

Every error derives from AuthenticatorError so callers (Flask routes, CLI)
can catch the whole family in one place. Argument problems also derive from
ValueError and the missing-repository error from NotImplementedError, so code
written against the built-in types keeps working.
"""


class AuthenticatorError(Exception):
    """Base class for all authenticator errors."""


class ValidationError(AuthenticatorError, ValueError):
    """A caller-supplied argument violates a precondition."""


class ConfigurationError(AuthenticatorError):
    """A required primitive (hash, encoding, random generator) cannot be set up."""


class DecodingError(AuthenticatorError, ValueError):
    """The secret text does not conform to the configured key encoding."""


class OperationError(AuthenticatorError):
    """A cryptographic primitive failed while computing a code.

    The message is always generic; details go to the log only.
    """


class UnsupportedOperationError(AuthenticatorError, NotImplementedError):
    """The operation needs a credential repository and none is available."""
