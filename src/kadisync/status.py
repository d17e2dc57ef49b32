"""Sync status persisted in note headers, plus the status indicator."""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from kadisync.frontmatter import get_record_id
from kadisync.identifier import isoformat_utc

if TYPE_CHECKING:
    from datetime import datetime

    from kadisync.sync.kadi import Record


class SyncState(enum.Enum):
    """Where a note stands relative to its remote record."""

    UNSYNCED = "unsynced"
    SYNCING = "syncing"
    SYNCED = "synced"
    ERROR = "error"


@dataclass
class SyncStatus:
    """The ``kadi_*`` bookkeeping keys of one note header."""

    kadi_id: int | None = None
    kadi_identifier: str | None = None
    kadi_synced: str | None = None
    kadi_state: str | None = None
    kadi_visibility: str | None = None
    kadi_modified: str | None = None
    kadi_license: str | None = None

    @classmethod
    def from_frontmatter(cls, frontmatter: Mapping[str, Any] | None) -> "SyncStatus":
        if not frontmatter:
            return cls()

        def text(key: str) -> str | None:
            value = frontmatter.get(key)
            return None if value is None else str(value)

        return cls(
            kadi_id=get_record_id(frontmatter),
            kadi_identifier=text("kadi_identifier"),
            kadi_synced=text("kadi_synced"),
            kadi_state=text("kadi_state"),
            kadi_visibility=text("kadi_visibility"),
            kadi_modified=text("kadi_modified"),
            kadi_license=text("kadi_license"),
        )

    @classmethod
    def from_record(
        cls,
        record: "Record",
        *,
        synced_at: "datetime | None" = None,
        modified: bool = False,
        license: str | None = None,
        state: str | None = None,
        visibility: str | None = None,
    ) -> "SyncStatus":
        """Status to write after a successful create (or update when *modified*).

        *state* and *visibility* fill in for values the response omits.
        """
        synced = isoformat_utc(synced_at)
        status = cls(
            kadi_id=record.id,
            kadi_identifier=record.identifier,
            kadi_synced=synced,
            kadi_state=record.state or state,
            kadi_visibility=record.visibility or visibility,
            kadi_license=license or None,
        )
        if modified:
            status.kadi_modified = record.last_modified or synced
        return status

    @property
    def is_synced(self) -> bool:
        return self.kadi_id is not None

    def to_patch(self) -> dict[str, Any]:
        """Header keys to merge, skipping unset optional fields."""
        return {
            key: value
            for key, value in (
                ("kadi_id", self.kadi_id),
                ("kadi_identifier", self.kadi_identifier),
                ("kadi_synced", self.kadi_synced),
                ("kadi_state", self.kadi_state),
                ("kadi_visibility", self.kadi_visibility),
                ("kadi_modified", self.kadi_modified),
                ("kadi_license", self.kadi_license),
            )
            if value is not None
        }

    def describe(self) -> str:
        if not self.is_synced:
            return "This note has not been synced yet"
        return "\n".join(
            [
                f"Record ID: {self.kadi_id}",
                f"Identifier: {self.kadi_identifier or 'N/A'}",
                f"Last synced: {self.kadi_synced or 'Unknown'}",
                f"State: {self.kadi_state or 'N/A'}",
                f"Visibility: {self.kadi_visibility or 'N/A'}",
            ]
        )


def infer_state(frontmatter: Mapping[str, Any] | None) -> SyncState:
    """Resting state of a note when no sync is running."""
    return SyncState.SYNCED if get_record_id(frontmatter) is not None else SyncState.UNSYNCED


class StatusBar:
    """One-line sync indicator for the active note."""

    PREFIX = "Kadi4Mat"

    def __init__(self) -> None:
        self.text = ""
        self.tooltip = ""

    def update(self, frontmatter: Mapping[str, Any] | None, *, configured: bool = True) -> str:
        """Refresh the indicator from a header snapshot."""
        self.tooltip = ""
        if not configured:
            self.text = ""
            return self.text
        status = SyncStatus.from_frontmatter(frontmatter)
        if status.is_synced:
            self.text = f"{self.PREFIX}: ✓ ID {status.kadi_id}"
            self.tooltip = f"Last synced: {status.kadi_synced or 'Unknown'}"
        else:
            self.text = f"{self.PREFIX}: Not synced"
        return self.text

    def show_syncing(self) -> None:
        self.text = f"{self.PREFIX}: ⟳ Syncing..."

    def show_success(self, record_id: int) -> None:
        self.text = f"{self.PREFIX}: ✓ ID {record_id}"

    def show_error(self, message: str) -> None:
        self.text = f"{self.PREFIX}: ✗ {message}"
