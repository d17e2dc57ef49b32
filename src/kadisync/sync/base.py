"""Capability protocols the sync engine depends on."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from kadisync.note import Note

if TYPE_CHECKING:
    from kadisync.dialog import SyncDialog, SyncParams
    from kadisync.sync.kadi import Record, User


#: Confirmation surface: shows the dialog, returns the final parameters or
#: ``None`` when the user cancels.
Confirmer = Callable[["SyncDialog"], Awaitable["SyncParams | None"]]


@runtime_checkable
class Host(Protocol):
    """Document store and notification surface owning the notes.

    Implementations (the filesystem :class:`~kadisync.vault.FileVault`, an
    editor bridge, …) must satisfy this protocol so the engine never touches
    storage directly.
    """

    vault_name: str

    # ----------------------------------------------------------------- notes

    async def read(self, note: Note) -> str:
        """Return the raw text of *note*."""
        ...

    def get_frontmatter(self, note: Note) -> dict[str, Any] | None:
        """Cached header view, or ``None`` when *note* has no header block."""
        ...

    def get_tags(self, note: Note) -> list[str]:
        """Native tag annotations of *note*, ``#``-stripped."""
        ...

    async def process_frontmatter(self, note: Note, fn: Callable[[dict[str, Any]], None]) -> None:
        """Atomically apply *fn* to a copy of the header and persist the change."""
        ...

    async def create_file(self, name: str, content: str) -> Note:
        """Create a new note named *name* at the vault root."""
        ...

    # -------------------------------------------------------------- surface

    def notice(self, message: str, timeout: float | None = None) -> None:
        """Show a transient one-line message to the user."""
        ...

    # ------------------------------------------------------------- settings

    def load_data(self) -> dict[str, Any] | None:
        ...

    def save_data(self, data: dict[str, Any]) -> None:
        ...


@runtime_checkable
class RecordClient(Protocol):
    """Remote record service."""

    async def create_record(self, payload: dict[str, Any]) -> "Record":
        ...

    async def update_record(self, record_id: int, payload: dict[str, Any]) -> "Record":
        ...

    async def get_current_user(self) -> "User":
        ...

    def record_url(self, record_id: int) -> str:
        ...
