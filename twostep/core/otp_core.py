#!/usr/bin/env python3
"""
otp_core.py — Core library for TOTP / HOTP computation and validation.

Goals:
- Pure functions only: they read the (immutable) AuthenticatorConfig and the
  caller-supplied key / time, nothing else. Safe to call from many threads.
- No I/O, no argparse; the CLI lives in otp_cli.py, storage in twostep.database.

Algorithm summary:
- HOTP (RFC 4226):
  code = Truncate(HMAC(key, counter as 8 bytes big-endian)) mod 10^digits
- TOTP (RFC 6238):
  HOTP with counter = epoch_millis / time_step_millis
- Dynamic truncation (RFC 4226, 5.3):
  offset = last byte & 0x0F, take 4 bytes from offset, clear bit 31.

Codes are plain ints. Zero padding ("012345") is a display concern, see format_code().
"""

import hmac
import logging
import struct
from typing import Optional
from urllib.parse import quote, urlencode

from .config import DEFAULT_CONFIG, AuthenticatorConfig
from .exceptions import OperationError, ValidationError

logger = logging.getLogger(__name__)

# --- Scratch code constants -------------------------------------------------
SCRATCH_CODE_LENGTH = 8
SCRATCH_CODE_MODULUS = 10 ** SCRATCH_CODE_LENGTH
BYTES_PER_SCRATCH_CODE = 4


# --- RFC helpers -----------------------------------------------------------
def int_to_bytes(counter: int) -> bytes:
    """
    Convert the counter to the 8-byte big-endian form required by RFC 4226.

    Negative counters (possible one step before the epoch) use two's
    complement, like a signed 64-bit integer.

    Example: int_to_bytes(1) -> b'\\x00\\x00\\x00\\x00\\x00\\x00\\x00\\x01'
    """
    try:
        return struct.pack(">q", counter)
    except struct.error as e:
        raise ValidationError(f"Counter out of 64-bit range: {counter}") from e


def dynamic_truncate(hmac_digest: bytes) -> int:
    """
    Apply RFC 4226 dynamic truncation and return a 31-bit unsigned integer.

    - offset = last_byte & 0x0F
    - 4 bytes from offset, read big-endian unsigned
    - clear bit 31
    """
    offset = hmac_digest[-1] & 0x0F
    truncated = int.from_bytes(hmac_digest[offset:offset + 4], "big")
    return truncated & 0x7FFFFFFF


def compute_code(key: bytes, counter: int, config: AuthenticatorConfig = DEFAULT_CONFIG) -> int:
    """
    Compute the HOTP value of key at counter.

    Steps:
    1. message = 8-byte counter
    2. HMAC(key, message) with the configured hash (SHA1 by default)
    3. dynamic truncation
    4. modulo 10^digits

    Raises:
        OperationError: the HMAC primitive failed. The cause is logged and
            deliberately not attached to the raised error.
    """
    msg = int_to_bytes(counter)
    try:
        digest = hmac.new(key, msg, config.hmac_hash_function.digestmod).digest()
    except (TypeError, ValueError):
        logger.exception("HMAC computation failed with %s", config.hmac_hash_function.value)
        raise OperationError("The operation cannot be performed now.") from None

    return dynamic_truncate(digest) % config.key_modulus


def time_window(epoch_millis: int, config: AuthenticatorConfig = DEFAULT_CONFIG) -> int:
    """
    Time step counter for a UNIX timestamp in milliseconds.

    Integer division truncating toward zero (not Python's floor), so
    time_window(-1) == 0 as in C or Java.
    """
    step = config.time_step_size_in_millis
    window = abs(epoch_millis) // step
    return window if epoch_millis >= 0 else -window


def window_offsets(window_size: int) -> range:
    """
    Step offsets checked around the current window.

    From -((window_size - 1) // 2) to window_size // 2 inclusive:
    3 -> (-1, 0, 1), 4 -> (-1, 0, 1, 2).
    An even window leans one step into the future.
    """
    return range(-((window_size - 1) // 2), window_size // 2 + 1)


def check_code(
    key: bytes,
    code: int,
    epoch_millis: int,
    window_size: int,
    config: AuthenticatorConfig = DEFAULT_CONFIG,
) -> bool:
    """
    Check code against every step in the window around epoch_millis.

    Returns True on the first matching step. Any step of the window is
    equally valid.
    """
    center = time_window(epoch_millis, config)
    for i in window_offsets(window_size):
        if compute_code(key, center + i, config) == code:
            logger.debug("Code matched at window offset %d", i)
            return True
    return False


def calculate_scratch_code(buffer: bytes) -> Optional[int]:
    """
    Derive a scratch code from the first 4 bytes of buffer.

    Returns None when the value does not have exactly 8 significant digits
    (for example 00012345); the caller draws fresh bytes and tries again.

    Raises:
        ValidationError: buffer shorter than 4 bytes
    """
    if len(buffer) < BYTES_PER_SCRATCH_CODE:
        raise ValidationError(
            f"The provided random byte buffer is too small: {len(buffer)}.")

    value = int.from_bytes(buffer[:BYTES_PER_SCRATCH_CODE], "big")
    scratch_code = (value & 0x7FFFFFFF) % SCRATCH_CODE_MODULUS

    if validate_scratch_code(scratch_code):
        return scratch_code
    return None


def validate_scratch_code(scratch_code: int) -> bool:
    return SCRATCH_CODE_MODULUS // 10 <= scratch_code < SCRATCH_CODE_MODULUS


# --- Presentation helpers ----------------------------------------------------
def format_code(code: int, digits: int = DEFAULT_CONFIG.code_digits) -> str:
    """Zero-pad a code for display: format_code(1234) -> '001234'."""
    return str(code).zfill(digits)


def format_otpauth_uri(
    secret: str,
    account: str,
    issuer: str,
    config: AuthenticatorConfig = DEFAULT_CONFIG,
) -> str:
    """
    Build the otpauth:// URI understood by Google Authenticator / Authy.

    otpauth://totp/{issuer}:{account}?secret=...&issuer=...&algorithm=...&digits=...&period=...

    Label and parameters are URL-encoded here, so callers pass raw values.
    The period is expressed in seconds, as apps expect.
    """
    label = quote(f"{issuer}:{account}", safe=":@")
    params = urlencode({
        "secret": secret,
        "issuer": issuer,
        "algorithm": config.hmac_hash_function.otpauth_name,
        "digits": config.code_digits,
        "period": config.time_step_size_in_seconds,
    }, quote_via=quote)
    return f"otpauth://totp/{label}?{params}"
