"""
codec.py — Secret key <-> text conversion.

- BASE32 (RFC 4648): what authenticator apps expect. Decoding is
  case-insensitive: the text is uppercased first, whitespace is dropped and
  missing '=' padding is restored, so "jbsw y3dp ehpk 3pxp" is accepted.
- BASE64: standard alphabet, case-sensitive, strict.
"""

import base64
import binascii

from .config import KeyRepresentation
from .exceptions import ConfigurationError, DecodingError, ValidationError


def encode_secret(raw: bytes, representation: KeyRepresentation = KeyRepresentation.BASE32) -> str:
    """Encode raw key bytes into the configured text form."""
    if representation is KeyRepresentation.BASE32:
        return base64.b32encode(raw).decode("ascii")
    if representation is KeyRepresentation.BASE64:
        return base64.b64encode(raw).decode("ascii")
    raise ConfigurationError(f"Unknown key representation type: {representation!r}")


def decode_secret(secret: str, representation: KeyRepresentation = KeyRepresentation.BASE32) -> bytes:
    """
    Decode an encoded secret back to raw key bytes.

    Raises:
        ValidationError: secret is None
        DecodingError: secret is not valid text for the representation
        ConfigurationError: unknown representation
    """
    if secret is None:
        raise ValidationError("Secret cannot be null.")

    if representation is KeyRepresentation.BASE32:
        value = "".join(secret.split()).upper()
        value += "=" * (-len(value) % 8)
        try:
            return base64.b32decode(value)
        except (binascii.Error, ValueError) as e:
            raise DecodingError("Invalid Base32 secret") from e

    if representation is KeyRepresentation.BASE64:
        try:
            return base64.b64decode(secret.strip(), validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecodingError("Invalid Base64 secret") from e

    raise ConfigurationError(f"Unknown key representation type: {representation!r}")
