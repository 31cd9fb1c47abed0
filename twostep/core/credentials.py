"""
credentials.py — Generation of a fresh credential set.

A credential set (AuthenticatorKey) holds:
- the encoded secret key the user registers on their device
- the verification code at time step 0, a fixed fingerprint of the key
- 5 scratch codes for account recovery
- the config the key was generated for
"""

from dataclasses import dataclass, field
from typing import List, Tuple

from . import otp_core
from .codec import encode_secret
from .config import DEFAULT_CONFIG, AuthenticatorConfig

# 80 bits give a 16 character Base32 key, no padding needed.
SECRET_BITS = 80
SECRET_BYTES = SECRET_BITS // 8

# Google's default: 5 scratch codes of 4 random bytes each.
SCRATCH_CODES = 5


@dataclass(frozen=True)
class AuthenticatorKey:
    """Immutable result of a create_credentials() call."""

    key: str
    verification_code: int
    scratch_codes: Tuple[int, ...] = ()
    config: AuthenticatorConfig = field(default=DEFAULT_CONFIG, repr=False)

    def __post_init__(self):
        # Callers may hand in a list; store an immutable copy.
        object.__setattr__(self, "scratch_codes", tuple(self.scratch_codes))


class KeyMaterialBuilder:
    """Builds AuthenticatorKey instances from a random source."""

    def __init__(self, config: AuthenticatorConfig, random_source):
        self.config = config
        self.random_source = random_source

    def create_credentials(self) -> AuthenticatorKey:
        buffer = self.random_source.next_bytes(
            SECRET_BYTES + SCRATCH_CODES * otp_core.BYTES_PER_SCRATCH_CODE)

        secret_key = buffer[:SECRET_BYTES]
        return AuthenticatorKey(
            key=encode_secret(secret_key, self.config.key_representation),
            verification_code=otp_core.compute_code(secret_key, 0, self.config),
            scratch_codes=self.calculate_scratch_codes(buffer),
            config=self.config,
        )

    def calculate_scratch_codes(self, buffer: bytes) -> List[int]:
        """
        One scratch code per 4-byte slice following the secret.

        A slice that does not yield 8 digits is discarded and replaced with
        fresh random bytes (see generate_scratch_code).
        """
        size = otp_core.BYTES_PER_SCRATCH_CODE
        scratch_codes = []
        for i in range(SCRATCH_CODES):
            start = SECRET_BYTES + i * size
            scratch_code = otp_core.calculate_scratch_code(buffer[start:start + size])
            if scratch_code is None:
                scratch_code = self.generate_scratch_code()
            scratch_codes.append(scratch_code)
        return scratch_codes

    def generate_scratch_code(self) -> int:
        """
        Draw fresh bytes until they produce a valid scratch code.

        About 90% of draws are accepted, so the loop ends after very few rounds.
        """
        while True:
            buffer = self.random_source.next_bytes(otp_core.BYTES_PER_SCRATCH_CODE)
            scratch_code = otp_core.calculate_scratch_code(buffer)
            if scratch_code is not None:
                return scratch_code
