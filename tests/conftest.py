from __future__ import annotations

import os
import sys
from typing import Dict, List, Optional, Sequence

import pytest

PROJECT_ROOT = os.path.dirname(os.path.dirname(__file__))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from twostep.core.authenticator import Authenticator  # noqa: E402
from twostep.core.repository import CredentialRepository  # noqa: E402

# RFC 4226 Appendix D secret, also the SHA1 secret of RFC 6238 Appendix B
RFC_SECRET = b"12345678901234567890"
RFC_SECRET_BASE32 = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"


class MemoryCredentialRepository(CredentialRepository):
    def __init__(self):
        self.users: Dict[str, dict] = {}
        self.saved: List[str] = []

    def get_secret_key(self, user_name: str) -> Optional[str]:
        user = self.users.get(user_name)
        return user["secret_key"] if user else None

    def save_user_credentials(self, user_name: str, secret_key: str,
                              verification_code: int, scratch_codes: Sequence[int]) -> None:
        self.saved.append(user_name)
        self.users[user_name] = {
            "secret_key": secret_key,
            "verification_code": verification_code,
            "scratch_codes": list(scratch_codes),
        }


class ScriptedRandomSource:
    """Returns pre-recorded byte chunks, one per next_bytes() call."""

    def __init__(self, *chunks: bytes):
        self.chunks = list(chunks)
        self.requests: List[int] = []

    def next_bytes(self, n: int) -> bytes:
        self.requests.append(n)
        chunk = self.chunks.pop(0)
        assert len(chunk) == n
        return chunk


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in list(os.environ):
        if name.startswith("TWOSTEP_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def repository() -> MemoryCredentialRepository:
    return MemoryCredentialRepository()


@pytest.fixture
def authenticator(repository) -> Authenticator:
    return Authenticator(credential_repository=repository)
