"""Shared fixtures for kadisync tests."""

from __future__ import annotations

import io
import textwrap
from datetime import datetime, timezone
from pathlib import Path

import pytest
from rich.console import Console

from kadisync.errors import RemoteError
from kadisync.settings import Settings
from kadisync.sync.kadi import Record, User
from kadisync.vault import FileVault

FIXED_NOW = datetime(2024, 5, 1, 9, 30, 12, 345000, tzinfo=timezone.utc)


class FakeClient:
    """In-memory RecordClient that records every call."""

    def __init__(self, *, fail: Exception | None = None, next_id: int = 101) -> None:
        self.fail = fail
        self.next_id = next_id
        self.calls: list[tuple] = []
        self.closed = False

    async def create_record(self, payload):
        self.calls.append(("create", payload))
        if self.fail:
            raise self.fail
        record = Record(
            id=self.next_id,
            identifier=payload["identifier"],
            title=payload["title"],
            state=payload["state"],
            visibility=payload["visibility"],
            license=payload.get("license"),
        )
        self.next_id += 1
        return record

    async def update_record(self, record_id, payload):
        self.calls.append(("update", record_id, payload))
        if self.fail:
            raise self.fail
        return Record(
            id=record_id,
            identifier=payload.get("identifier", f"existing-{record_id}"),
            title=payload["title"],
            state=payload["state"],
            visibility=payload["visibility"],
            last_modified="2024-05-01T09:30:13.000Z",
        )

    async def get_current_user(self):
        self.calls.append(("me",))
        if self.fail:
            raise self.fail
        return User(id=1, username="jdoe", displayname="J. Doe")

    def record_url(self, record_id):
        return f"https://kadi.example.org/records/{record_id}"

    async def aclose(self):
        self.closed = True


def write_note(root: Path, rel: str, content: str) -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(content), encoding="utf-8")
    return path


@pytest.fixture
def vault_dir(tmp_path: Path) -> Path:
    root = tmp_path / "vault"
    root.mkdir()
    return root


@pytest.fixture
def vault(vault_dir: Path) -> FileVault:
    return FileVault(vault_dir, name="Lab", console=Console(file=io.StringIO()))


@pytest.fixture
def settings() -> Settings:
    return Settings(host="https://kadi.example.org", pat="secret-token")


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def failing_client() -> FakeClient:
    return FakeClient(fail=RemoteError("Bad request", status_code=400, response={"description": "Bad request"}))


@pytest.fixture
def make_note(vault: FileVault, vault_dir: Path):
    """Write a dedented note into the vault and return its handle."""

    def _make(rel: str, content: str):
        write_note(vault_dir, rel, content)
        return vault.note(rel)

    return _make


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def fake_client_cls() -> type[FakeClient]:
    return FakeClient
