"""Model behind the sync confirmation surface.

The dialog is seeded from the note header, lets the user adjust title,
state, visibility and license, and keeps a timestamped diagnostic log that
the engine appends to while the request runs.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

from loguru import logger

from kadisync.errors import RemoteError, ValidationError
from kadisync.frontmatter import ControlFields, extract_control_fields
from kadisync.identifier import isoformat_utc, utc_now
from kadisync.settings import STATES, VISIBILITIES
from kadisync.sync.extras import nested_extras
from kadisync.sync.licenses import DEFAULT_LICENSE, get_license_by_id, is_common_license

if TYPE_CHECKING:
    from kadisync.note import Note
    from kadisync.settings import Settings
    from kadisync.sync.base import Host

logger = logger.bind(module="dialog")


@dataclass
class SyncParams:
    """Values the user confirmed."""

    title: str
    state: str
    visibility: str
    license: str | None = None

    def validate(self) -> None:
        if not self.title or not self.title.strip():
            raise ValidationError("Please enter a title for the record")
        if self.state not in STATES:
            raise ValidationError(f"State must be one of {', '.join(STATES)}")
        if self.visibility not in VISIBILITIES:
            raise ValidationError(f"Visibility must be one of {', '.join(VISIBILITIES)}")


@dataclass
class SyncDialog:
    note: Note
    fields: ControlFields
    title: str
    state: str
    visibility: str
    license: str | None = DEFAULT_LICENSE
    messages: list[str] = field(default_factory=list)

    @classmethod
    def for_note(cls, note: "Note", frontmatter: dict[str, Any] | None, settings: "Settings") -> "SyncDialog":
        fields = extract_control_fields(note, frontmatter)
        stored_license = (frontmatter or {}).get("kadi_license")
        dialog = cls(
            note=note,
            fields=fields,
            title=fields.title,
            state=fields.state if fields.state in STATES else settings.default_state,
            visibility=fields.visibility if fields.visibility in VISIBILITIES else settings.default_visibility,
            license=stored_license if isinstance(stored_license, str) and stored_license else DEFAULT_LICENSE,
        )
        dialog.log(f"Initializing sync for: {note.path}")
        dialog.log(f"Mode: {dialog.mode}")
        if dialog.is_update:
            dialog.log(f"Record ID: {dialog.record_id}")
        return dialog

    @property
    def is_update(self) -> bool:
        return self.fields.is_update

    @property
    def record_id(self) -> int | None:
        return self.fields.record_id

    @property
    def mode(self) -> str:
        return "Update" if self.is_update else "Create"

    @property
    def license_label(self) -> str:
        """License shown next to the dropdown; only set for uncommon licenses."""
        if not self.license or is_common_license(self.license):
            return ""
        info = get_license_by_id(self.license)
        return str(info) if info else self.license

    def params(self) -> SyncParams:
        return SyncParams(title=self.title, state=self.state, visibility=self.visibility, license=self.license)

    # ------------------------------------------------------------------
    # Diagnostic log
    # ------------------------------------------------------------------

    def log(self, message: str) -> None:
        stamp = utc_now().strftime("%H:%M:%S.%f")[:12]
        self.messages.append(f"[{stamp}] {message}")
        logger.debug(message)

    def log_error(self, error: BaseException) -> None:
        """Record an error with the status code and response body when known."""
        self.log(f"ERROR: {error}")
        if isinstance(error, RemoteError):
            if error.status_code is not None:
                self.log(f"Status Code: {error.status_code}")
            if error.response is not None:
                self.log("API Response:")
                self.log(json.dumps(error.response, indent=2, default=str))

    def render_log(self) -> str:
        lines = [
            "Kadi4Mat Sync Debug Log",
            "=" * 50,
            f"Generated: {isoformat_utc()}",
            f"File: {self.note.path}",
            f"Mode: {self.mode}",
        ]
        if self.is_update:
            lines.append(f"Record ID: {self.record_id}")
        lines += ["=" * 50, "", *self.messages]
        return "\n".join(lines)

    async def save_log(self, host: "Host") -> "Note":
        stamp = isoformat_utc().replace(":", "-").replace(".", "-")
        name = f"kadi-sync-log-{stamp}.txt"
        saved = await host.create_file(name, self.render_log())
        host.notice(f"Debug log saved to {name}")
        self.log(f"Log saved to: {name}")
        return saved

    # ------------------------------------------------------------------
    # Preview
    # ------------------------------------------------------------------

    def preview(self, extras: list[dict[str, Any]]) -> dict[str, Any]:
        """Summary of what would be sent, written to the log as well."""
        data: dict[str, Any] = {
            "title": self.title,
            "state": self.state,
            "visibility": self.visibility,
            "license": self.license,
        }
        if self.fields.tags:
            data["tags"] = self.fields.tags
        data["extras_count"] = len(extras)
        data["extras_sample"] = extras[:3]

        self.log("--- Metadata Preview ---")
        self.log(json.dumps(data, indent=2, default=str, ensure_ascii=False))
        self.log(f"Total extras fields: {len(extras)}")
        nested = nested_extras(extras)
        if nested:
            self.log(f"Nested structures: {len(nested)}")
            for extra in nested:
                self.log(f"  - {extra['key']} ({extra['type']})")
        return data

    def summary(self) -> dict[str, Any]:
        return asdict(self.params())
