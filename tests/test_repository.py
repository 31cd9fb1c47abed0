import pytest

from twostep.core import repository as repository_module
from twostep.core.repository import (
    ENTRY_POINT_GROUP,
    CredentialRepository,
    discover_credential_repository,
)
from twostep.database.db_manager import SqliteCredentialRepository

from conftest import MemoryCredentialRepository


class FakeEntryPoint:
    def __init__(self, name, factory):
        self.name = name
        self.value = f"tests:{name}"
        self.factory = factory
        self.loaded = False

    def load(self):
        self.loaded = True
        return self.factory


def test_discover_uses_first_entry_point(monkeypatch):
    first = FakeEntryPoint("memory", MemoryCredentialRepository)
    second = FakeEntryPoint("other", MemoryCredentialRepository)
    seen_groups = []

    def fake_entry_points(group):
        seen_groups.append(group)
        return [first, second]

    monkeypatch.setattr(repository_module, "entry_points", fake_entry_points)
    found = discover_credential_repository()

    assert isinstance(found, MemoryCredentialRepository)
    assert seen_groups == [ENTRY_POINT_GROUP]
    assert first.loaded and not second.loaded


def test_discover_without_plugins(monkeypatch):
    monkeypatch.setattr(repository_module, "entry_points", lambda group: [])
    assert discover_credential_repository() is None


def test_interface_is_abstract():
    with pytest.raises(TypeError):
        CredentialRepository()


def test_sqlite_repository_implements_interface(tmp_path):
    assert isinstance(SqliteCredentialRepository(str(tmp_path / "creds.db")), CredentialRepository)
