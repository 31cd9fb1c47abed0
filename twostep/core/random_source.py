"""
random_source.py — Cryptographically strong random bytes with periodic reseeding.

A ReseedingRandomSource wraps one generator and rebuilds it from a fresh OS
seed once it has served more than max_operations requests. The generator is
chosen by (algorithm, provider), taken from the environment when not given:

    TWOSTEP_RNG_ALGORITHM            default "ChaCha20"
    TWOSTEP_RNG_ALGORITHM_PROVIDER   default "cryptography"

Supported pairs:
    ChaCha20 / cryptography   ChaCha20 keystream keyed from os.urandom
    urandom / os              os.urandom
    SystemRandom / os         random.SystemRandom

Anything else raises ConfigurationError; there is no weaker fallback.
"""

import itertools
import logging
import os
import random
import threading

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

RNG_ALGORITHM = "TWOSTEP_RNG_ALGORITHM"
RNG_ALGORITHM_PROVIDER = "TWOSTEP_RNG_ALGORITHM_PROVIDER"

DEFAULT_RANDOM_NUMBER_ALGORITHM = "ChaCha20"
DEFAULT_RANDOM_NUMBER_ALGORITHM_PROVIDER = "cryptography"

MAX_OPERATIONS = 1_000_000


def get_random_number_algorithm(environ=None) -> str:
    environ = os.environ if environ is None else environ
    return environ.get(RNG_ALGORITHM) or DEFAULT_RANDOM_NUMBER_ALGORITHM


def get_random_number_algorithm_provider(environ=None) -> str:
    environ = os.environ if environ is None else environ
    return environ.get(RNG_ALGORITHM_PROVIDER) or DEFAULT_RANDOM_NUMBER_ALGORITHM_PROVIDER


# --- Generators ---------------------------------------------------------------
class ChaCha20Generator:
    """ChaCha20 keystream used as a DRBG, keyed with 256 bits from the OS."""

    def __init__(self):
        key = os.urandom(32)
        nonce = os.urandom(16)
        self._encryptor = Cipher(algorithms.ChaCha20(key, nonce), mode=None).encryptor()
        # The encryptor keeps internal state; serialize access to it.
        self._lock = threading.Lock()

    def __call__(self, n: int) -> bytes:
        with self._lock:
            return self._encryptor.update(b"\x00" * n)


class UrandomGenerator:
    def __call__(self, n: int) -> bytes:
        return os.urandom(n)


class SystemRandomGenerator:
    def __init__(self):
        self._random = random.SystemRandom()

    def __call__(self, n: int) -> bytes:
        return self._random.randbytes(n)


GENERATORS = {
    ("chacha20", "cryptography"): ChaCha20Generator,
    ("urandom", "os"): UrandomGenerator,
    ("systemrandom", "os"): SystemRandomGenerator,
}


def build_generator(algorithm: str, provider: str):
    """Instantiate the generator for (algorithm, provider)."""
    factory = GENERATORS.get((algorithm.lower(), provider.lower()))
    if factory is None:
        raise ConfigurationError(
            f"Could not initialise the random generator with the specified algorithm: "
            f"{algorithm} (provider: {provider}). Another one can be chosen setting the "
            f"{RNG_ALGORITHM} and {RNG_ALGORITHM_PROVIDER} environment variables.")
    try:
        return factory()
    except Exception as e:
        raise ConfigurationError(
            f"Could not initialise the random generator with the specified algorithm: "
            f"{algorithm} (provider: {provider}).") from e


class ReseedingRandomSource:
    """
    Thread-safe random byte source that rebuilds its generator every
    max_operations calls.

    The use counter is an itertools.count (next() on it is atomic). Crossing
    the threshold takes a lock, and the generation number read before
    counting makes sure only one caller per crossing rebuilds. The new
    generator is complete before it replaces the old one, so readers never
    see a half-built generator.
    """

    def __init__(self, algorithm=None, provider=None, max_operations=MAX_OPERATIONS,
                 generator_factory=None):
        self.algorithm = algorithm or get_random_number_algorithm()
        self.provider = provider or get_random_number_algorithm_provider()
        self.max_operations = max_operations
        self._generator_factory = generator_factory or (
            lambda: build_generator(self.algorithm, self.provider))
        self._lock = threading.Lock()
        self._generation = 0
        self.rebuilds = 0
        self._generator = self._generator_factory()
        self._uses = itertools.count(1)

    def _rebuild(self):
        generator = self._generator_factory()
        self._generator = generator
        self._uses = itertools.count(1)
        self._generation += 1
        self.rebuilds += 1
        logger.info("Random generator %s/%s reseeded", self.algorithm, self.provider)

    def next_bytes(self, n: int) -> bytes:
        """Return n random bytes."""
        generation = self._generation
        if next(self._uses) > self.max_operations:
            with self._lock:
                if self._generation == generation:
                    self._rebuild()
        return self._generator(n)
