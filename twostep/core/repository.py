"""
repository.py — Credential repository interface and plugin discovery.

The authenticator only needs two calls from storage: read the encoded secret
of a user, and save a freshly created credential set. Implementations can be
passed to Authenticator directly, or published as an entry point:

    [project.entry-points."twostep.credential_repositories"]
    sqlite = "twostep.database.db_manager:SqliteCredentialRepository"

discover_credential_repository() returns an instance of the first one found.
"""

import abc
import logging
from importlib.metadata import entry_points
from typing import Optional, Sequence

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "twostep.credential_repositories"


class CredentialRepository(abc.ABC):
    """Storage of per-user secrets used by the Authenticator."""

    @abc.abstractmethod
    def get_secret_key(self, user_name: str) -> Optional[str]:
        """Return the encoded secret key of user_name, or None if unknown."""

    @abc.abstractmethod
    def save_user_credentials(
        self,
        user_name: str,
        secret_key: str,
        verification_code: int,
        scratch_codes: Sequence[int],
    ) -> None:
        """Persist a credential set for user_name."""

    def add_user_credentials(
        self,
        user_name: str,
        secret_key: str,
        verification_code: int,
        scratch_codes: Sequence[int],
    ) -> bool:
        """
        Save a credential set only if user_name has none yet.

        Returns False, and changes nothing, when the user already exists.
        Implementations shared between threads or processes should override
        this with an atomic insert.
        """
        if self.get_secret_key(user_name) is not None:
            return False
        self.save_user_credentials(user_name, secret_key, verification_code, scratch_codes)
        return True


def discover_credential_repository() -> Optional[CredentialRepository]:
    """Instantiate the first registered repository, or return None."""
    for entry_point in entry_points(group=ENTRY_POINT_GROUP):
        factory = entry_point.load()
        logger.info("Using credential repository %s from %s", entry_point.name, entry_point.value)
        return factory()
    logger.info("No credential repository registered under %s", ENTRY_POINT_GROUP)
    return None
