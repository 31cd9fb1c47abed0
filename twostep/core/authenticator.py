"""
authenticator.py — Public entry point: create credentials, compute and check TOTP codes.

Typical backend usage:

    auth = Authenticator(credential_repository=SqliteCredentialRepository(path))
    key = auth.create_credentials_for_user("alice")     # show key.key as QR code
    ...
    if auth.authorize_user("alice", int(user_input)):
        login_ok = True

All times are UNIX epoch milliseconds.
"""

import logging
import threading
import time as _time
from typing import Optional

from . import otp_core
from .codec import decode_secret
from .config import AuthenticatorConfig
from .credentials import AuthenticatorKey, KeyMaterialBuilder
from .exceptions import UnsupportedOperationError, ValidationError
from .random_source import ReseedingRandomSource
from .repository import CredentialRepository, discover_credential_repository

logger = logging.getLogger(__name__)

# Repository slot not resolved yet (discovery has not run).
UNRESOLVED = object()


def current_time_millis() -> int:
    return int(_time.time() * 1000)


class Authenticator:
    """TOTP authenticator bound to one configuration."""

    def __init__(
        self,
        config: Optional[AuthenticatorConfig] = None,
        credential_repository=UNRESOLVED,
        random_source=None,
        repository_loader=discover_credential_repository,
    ):
        self.config = config or AuthenticatorConfig()
        self.random_source = random_source or ReseedingRandomSource()
        self.key_builder = KeyMaterialBuilder(self.config, self.random_source)
        self._repository_loader = repository_loader
        self._repository_lock = threading.Lock()
        self._credential_repository = credential_repository

    # --- Credential repository slot ---------------------------------------
    @property
    def credential_repository(self) -> Optional[CredentialRepository]:
        """
        The repository in use, discovered on first access if none was set.

        Discovery runs at most once; concurrent first calls all get the same
        result.
        """
        repository = self._credential_repository
        if repository is not UNRESOLVED:
            return repository
        with self._repository_lock:
            if self._credential_repository is UNRESOLVED:
                self._credential_repository = self._repository_loader()
            return self._credential_repository

    @credential_repository.setter
    def credential_repository(self, repository: Optional[CredentialRepository]):
        # None disables the feature and skips discovery.
        with self._repository_lock:
            self._credential_repository = repository

    def _get_valid_credential_repository(self) -> CredentialRepository:
        repository = self.credential_repository
        if repository is None:
            raise UnsupportedOperationError(
                f"An instance of the {CredentialRepository.__module__}."
                f"{CredentialRepository.__name__} service must be configured "
                f"in order to use this feature.")
        return repository

    def get_user_secret(self, user_name: str) -> Optional[str]:
        """
        Encoded secret stored for user_name, None if the user is unknown.

        Raises:
            UnsupportedOperationError: no credential repository is configured
        """
        return self._get_valid_credential_repository().get_secret_key(user_name)

    # --- Credentials --------------------------------------------------------
    def create_credentials(self) -> AuthenticatorKey:
        """Generate a new secret key, its time-0 verification code and scratch codes."""
        return self.key_builder.create_credentials()

    def create_credentials_for_user(self, user_name: str) -> AuthenticatorKey:
        """
        Generate credentials and save them through the credential repository.

        Repository errors are not caught here.
        """
        if not user_name:
            raise ValidationError("User name cannot be null.")

        repository = self._get_valid_credential_repository()
        key = self.create_credentials()
        repository.save_user_credentials(
            user_name, key.key, key.verification_code, list(key.scratch_codes))
        logger.info("Created credentials for user %r", user_name)
        return key

    def register_user(self, user_name: str) -> Optional[AuthenticatorKey]:
        """
        Like create_credentials_for_user(), but never replaces an existing user.

        Returns None when user_name already has credentials.
        """
        if not user_name:
            raise ValidationError("User name cannot be null.")

        repository = self._get_valid_credential_repository()
        key = self.create_credentials()
        if not repository.add_user_credentials(
                user_name, key.key, key.verification_code, list(key.scratch_codes)):
            logger.info("User %r already has credentials", user_name)
            return None
        logger.info("Registered user %r", user_name)
        return key

    # --- Codes ---------------------------------------------------------------
    def get_totp_password(self, secret: str, time: Optional[int] = None) -> int:
        """TOTP code of secret at time (default: now)."""
        if time is None:
            time = current_time_millis()
        return otp_core.compute_code(
            decode_secret(secret, self.config.key_representation),
            otp_core.time_window(time, self.config),
            self.config)

    def get_totp_password_of_user(self, user_name: str, time: Optional[int] = None) -> int:
        return self.get_totp_password(self.get_user_secret(user_name), time)

    def authorize(self, secret: str, verification_code: int, time: Optional[int] = None) -> bool:
        """
        Check a code against secret, tolerating config.window_size steps of skew.

        Codes outside (0, key_modulus) are rejected without computing any HMAC.

        Raises:
            ValidationError: secret is None
            DecodingError: secret is not valid for the key representation
            OperationError: the HMAC computation failed
        """
        if secret is None:
            raise ValidationError("Secret cannot be null.")

        if verification_code <= 0 or verification_code >= self.config.key_modulus:
            return False

        if time is None:
            time = current_time_millis()
        return otp_core.check_code(
            decode_secret(secret, self.config.key_representation),
            verification_code,
            time,
            self.config.window_size,
            self.config)

    def authorize_user(self, user_name: str, verification_code: int, time: Optional[int] = None) -> bool:
        """authorize() with the secret stored for user_name."""
        return self.authorize(self.get_user_secret(user_name), verification_code, time)
