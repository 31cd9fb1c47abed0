"""
config.py — Configuration of the TOTP algorithm.

An AuthenticatorConfig is immutable once built and is shared by reference
between every engine call of one Authenticator instance.

Defaults follow Google Authenticator:
- 30 s time step, expressed in milliseconds (30000)
- window of 3 steps (one behind, current, one ahead)
- 6 digit codes
- Base32 keys, HMAC-SHA1
"""

import enum
import hashlib
import os
from dataclasses import dataclass

from .exceptions import ConfigurationError

# --- Defaults ---------------------------------------------------------------
DEFAULT_TIME_STEP_MS = 30_000
DEFAULT_WINDOW_SIZE = 3
DEFAULT_DIGITS = 6
MIN_DIGITS = 6
MAX_DIGITS = 8

# Environment variables read by from_env()
ENV_TIME_STEP_MS = "TWOSTEP_TIME_STEP_MS"
ENV_WINDOW_SIZE = "TWOSTEP_WINDOW_SIZE"
ENV_CODE_DIGITS = "TWOSTEP_CODE_DIGITS"
ENV_KEY_REPRESENTATION = "TWOSTEP_KEY_REPRESENTATION"
ENV_HMAC_HASH_FUNCTION = "TWOSTEP_HMAC_HASH_FUNCTION"
ENV_DATABASE = "TWOSTEP_DATABASE"

DEFAULT_DATABASE_FILE = "database/2fa_database.db"


class KeyRepresentation(enum.Enum):
    """Text encoding of the secret key."""

    BASE32 = "BASE32"
    BASE64 = "BASE64"


class HmacHashFunction(enum.Enum):
    """Hash function used inside the HMAC."""

    HMAC_SHA1 = "HmacSHA1"
    HMAC_SHA256 = "HmacSHA256"

    @property
    def digestmod(self):
        return _DIGESTS[self]

    @property
    def otpauth_name(self) -> str:
        # Name used in the otpauth:// "algorithm" parameter
        return self.value[len("Hmac"):]


_DIGESTS = {
    HmacHashFunction.HMAC_SHA1: hashlib.sha1,
    HmacHashFunction.HMAC_SHA256: hashlib.sha256,
}


def _normalize(name: str) -> str:
    # "HmacSHA1", "HMAC_SHA1", "sha-1" and "SHA1" all become "SHA1"
    name = name.strip().upper().replace("-", "").replace("_", "")
    return name[len("HMAC"):] if name.startswith("HMAC") else name


def _parse_enum(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        for member in enum_cls:
            if _normalize(value) in (_normalize(member.name), _normalize(member.value)):
                return member
    raise ConfigurationError(f"Unknown {enum_cls.__name__}: {value!r}")


@dataclass(frozen=True)
class AuthenticatorConfig:
    """Read-only TOTP settings.

    key_modulus is derived from code_digits, so both always stay consistent.
    """

    time_step_size_in_millis: int = DEFAULT_TIME_STEP_MS
    window_size: int = DEFAULT_WINDOW_SIZE
    code_digits: int = DEFAULT_DIGITS
    key_representation: KeyRepresentation = KeyRepresentation.BASE32
    hmac_hash_function: HmacHashFunction = HmacHashFunction.HMAC_SHA1

    def __post_init__(self):
        # Accept plain strings ("BASE64", "SHA256") and normalize them
        object.__setattr__(
            self, "key_representation",
            _parse_enum(KeyRepresentation, self.key_representation))
        object.__setattr__(
            self, "hmac_hash_function",
            _parse_enum(HmacHashFunction, self.hmac_hash_function))

        if self.time_step_size_in_millis <= 0:
            raise ConfigurationError("Time step size must be positive.")
        if self.window_size <= 0:
            raise ConfigurationError("Window number must be positive.")
        if self.code_digits < MIN_DIGITS:
            raise ConfigurationError(f"The minimum number of digits is {MIN_DIGITS}.")
        if self.code_digits > MAX_DIGITS:
            raise ConfigurationError(f"The maximum number of digits is {MAX_DIGITS}.")

    @property
    def key_modulus(self) -> int:
        return 10 ** self.code_digits

    @property
    def time_step_size_in_seconds(self) -> int:
        return self.time_step_size_in_millis // 1000

    @classmethod
    def from_env(cls, environ=None) -> "AuthenticatorConfig":
        """
        Build a config from TWOSTEP_* environment variables.

        Unset variables keep their defaults. A value that is not an integer
        where one is expected raises ConfigurationError.
        """
        environ = os.environ if environ is None else environ
        kwargs = {}
        for env_name, field_name in (
            (ENV_TIME_STEP_MS, "time_step_size_in_millis"),
            (ENV_WINDOW_SIZE, "window_size"),
            (ENV_CODE_DIGITS, "code_digits"),
        ):
            raw = environ.get(env_name)
            if raw is None or not raw.strip():
                continue
            try:
                kwargs[field_name] = int(raw)
            except ValueError as e:
                raise ConfigurationError(f"{env_name} must be an integer, got {raw!r}") from e

        if environ.get(ENV_KEY_REPRESENTATION):
            kwargs["key_representation"] = environ[ENV_KEY_REPRESENTATION]
        if environ.get(ENV_HMAC_HASH_FUNCTION):
            kwargs["hmac_hash_function"] = environ[ENV_HMAC_HASH_FUNCTION]
        return cls(**kwargs)


DEFAULT_CONFIG = AuthenticatorConfig()


def database_path(environ=None) -> str:
    """Path of the SQLite credential store used by the CLI and the backend."""
    environ = os.environ if environ is None else environ
    return environ.get(ENV_DATABASE) or DEFAULT_DATABASE_FILE
