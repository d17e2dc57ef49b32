"""SyncEngine: pushes a note to its Kadi4Mat record and writes the link back.

One ``sync_note`` call walks a note through

    UNSYNCED/SYNCED --confirm--> SYNCING --success--> SYNCED
                                          --failure--> ERROR

The header is patched only after the remote call succeeded, so a failed
attempt leaves the note exactly as it was and can simply be retried.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any, Callable

from loguru import logger

from kadisync.dialog import SyncDialog, SyncParams
from kadisync.errors import ConfigurationError, EligibilityRejection, ValidationError
from kadisync.frontmatter import (
    ControlFields,
    extract_control_fields,
    filter_metadata,
    get_record_id,
    union_tags,
)
from kadisync.identifier import generate_identifier, isoformat_utc, utc_now
from kadisync.parser import extract_note_content, extract_note_title, load_header, split_frontmatter
from kadisync.status import StatusBar, SyncState, SyncStatus, infer_state
from kadisync.sync.extras import json_to_extras, nested_extras
from kadisync.sync.kadi import build_client

if TYPE_CHECKING:
    from datetime import datetime

    from kadisync.note import Note
    from kadisync.settings import Settings
    from kadisync.sync.base import Confirmer, Host, RecordClient
    from kadisync.sync.kadi import Record

logger = logger.bind(module="engine")

#: Only markdown notes are synced
NOTE_EXTENSION = "md"


async def accept_defaults(dialog: SyncDialog) -> SyncParams:
    """Confirmer that takes the dialog's seeded values unchanged."""
    return dialog.params()


@dataclass
class SyncOutcome:
    note: Note
    state: SyncState
    record: Record | None = None
    created: bool = False
    #: Why nothing was sent: ``"excluded"``, ``"cancelled"`` or ``"in-progress"``
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.state is SyncState.SYNCED and self.record is not None


class SyncEngine:
    """Coordinates host, confirmation surface and remote client for one vault."""

    def __init__(
        self,
        host: Host,
        settings: Settings,
        client: RecordClient | None = None,
        *,
        status_bar: StatusBar | None = None,
        confirm: Confirmer | None = None,
        to_extras: Callable[..., list[dict[str, Any]]] = json_to_extras,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.host = host
        self.settings = settings
        self.client = client
        self.status_bar = status_bar or StatusBar()
        self.confirm = confirm or accept_defaults
        self.to_extras = to_extras
        self.clock = clock
        # notes inside a sync_note call, confirmation included
        self._active: set[str] = set()
        # notes whose request is in flight
        self._syncing: set[str] = set()
        # last failure per note, cleared by the next success
        self._errors: dict[str, str] = {}

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    async def reconfigure(self, settings: Settings) -> None:
        """Swap in new settings and rebuild the client, as a settings save does."""
        close = getattr(self.client, "aclose", None)
        if close is not None:
            await close()
        self.settings = settings
        self.client = build_client(settings)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def state_of(self, note: Note) -> SyncState:
        if note.path in self._syncing:
            return SyncState.SYNCING
        if note.path in self._errors:
            return SyncState.ERROR
        return infer_state(self.host.get_frontmatter(note))

    def last_error(self, note: Note) -> str | None:
        return self._errors.get(note.path)

    def resolve_tags(self, note: Note) -> list[str]:
        """Native tag annotations plus header tags, as sent with the record."""
        fields = extract_control_fields(note, self.host.get_frontmatter(note))
        return union_tags(self.host.get_tags(note), fields.tags or [])

    def check_eligible(self, note: Note) -> None:
        """Raise :class:`EligibilityRejection` naming the rule that excludes *note*."""
        if note.extension != NOTE_EXTENSION:
            raise EligibilityRejection(f"{note.path} is not a markdown note")

        for folder in self.settings.exclude_folders:
            if note.path.startswith(folder):
                raise EligibilityRejection(f"{note.path} is in excluded folder {folder}")

        if self.settings.tag_filter:
            tags = self.resolve_tags(note)
            if not any(tag in tags for tag in self.settings.tag_filter):
                raise EligibilityRejection(f"{note.path} has none of the tags {', '.join(self.settings.tag_filter)}")

    def should_sync(self, note: Note) -> bool:
        try:
            self.check_eligible(note)
        except EligibilityRejection as exc:
            logger.debug(str(exc))
            return False
        return True

    def build_dialog(self, note: Note) -> SyncDialog:
        return SyncDialog.for_note(note, self.host.get_frontmatter(note), self.settings)

    def enrich_metadata(self, note: Note, custom: dict[str, Any], *, update: bool) -> dict[str, Any]:
        """Custom metadata plus file, vault and a created/modified timestamp."""
        return {
            **custom,
            "obsidian_filename": note.path,
            "obsidian_vault": self.host.vault_name,
            ("modified_date" if update else "created_date"): isoformat_utc(self.clock()),
        }

    def build_extras(self, note: Note, *, update: bool) -> list[dict[str, Any]]:
        custom = filter_metadata(self.host.get_frontmatter(note))
        enriched = self.enrich_metadata(note, custom, update=update)
        return self.to_extras(enriched, nest_objects=True, parse_units=True)

    def preview_metadata(self, dialog: SyncDialog) -> dict[str, Any]:
        return dialog.preview(self.build_extras(dialog.note, update=dialog.is_update))

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    async def sync_note(self, note: Note, confirm: Confirmer | None = None) -> SyncOutcome:
        """Create or update the remote record of *note*.

        Raises :class:`ConfigurationError` without a client and
        :class:`ValidationError` for invalid confirmed values. Request and
        header-patch failures are reported, then re-raised.
        """
        if self.client is None:
            self.host.notice("Kadi4Mat not configured. Please check settings.")
            raise ConfigurationError("Kadi4Mat host and access token are not configured")

        if not self.should_sync(note):
            self.host.notice("This file is excluded from sync")
            return SyncOutcome(note, self.state_of(note), reason="excluded")

        if note.path in self._active:
            self.host.notice(f"{note.path} is already being synced")
            return SyncOutcome(note, SyncState.SYNCING, reason="in-progress")

        self._active.add(note.path)
        try:
            dialog = self.build_dialog(note)
            params = await (confirm or self.confirm)(dialog)
            if params is None:
                dialog.log("Sync cancelled by user")
                return SyncOutcome(note, self.state_of(note), reason="cancelled")

            try:
                params.validate()
            except ValidationError as exc:
                dialog.log(f"ERROR: {exc}")
                self.host.notice(str(exc))
                raise

            dialog.log("User confirmed sync with parameters")
            dialog.log(json.dumps(asdict(params), indent=2))
            return await self._run(note, dialog, params)
        finally:
            self._active.discard(note.path)

    async def _run(self, note: Note, dialog: SyncDialog, params: SyncParams) -> SyncOutcome:
        self._syncing.add(note.path)
        self.status_bar.show_syncing()
        try:
            content = await self.host.read(note)
            dialog.log(f"Read note content: {len(content)} characters")

            # a header the write-back cannot parse must stop the sync before any request
            header, _ = split_frontmatter(content)
            if header is not None:
                load_header(header, strict=True)

            title = extract_note_title(content, note.basename)
            description = extract_note_content(content)
            dialog.log(f"Extracted title: {title}")
            dialog.log(f"Description length: {len(description)} characters")

            frontmatter = self.host.get_frontmatter(note)
            dialog.log("Extracting Kadi4Mat fields from frontmatter")
            fields = extract_control_fields(note, frontmatter)

            dialog.log("Filtering custom metadata")
            custom = filter_metadata(frontmatter)
            dialog.log(f"Found {len(custom)} custom metadata fields")

            dialog.log("Converting metadata to Kadi4Mat extras format")
            update = fields.record_id is not None
            extras = self.to_extras(
                self.enrich_metadata(note, custom, update=update),
                nest_objects=True,
                parse_units=True,
            )
            dialog.log(f"Generated {len(extras)} extras fields")
            nested = nested_extras(extras)
            if nested:
                dialog.log(f"Including {len(nested)} nested structures (dict/list)")

            if update:
                record = await self._update(note, dialog, params, fields, description, extras)
            else:
                record = await self._create(note, dialog, params, fields, description, extras)
        except Exception as exc:
            dialog.log_error(exc)
            logger.error(f"Sync of {note.path} failed: {exc}")
            self._errors[note.path] = str(exc)
            self.host.notice(f"Sync failed: {exc}")
            self.status_bar.show_error("Sync failed")
            raise
        finally:
            self._syncing.discard(note.path)

        self._errors.pop(note.path, None)
        self.status_bar.show_success(record.id)
        return SyncOutcome(note, SyncState.SYNCED, record=record, created=not update)

    def _payload(
        self,
        params: SyncParams,
        fields: ControlFields,
        description: str,
        extras: list[dict[str, Any]],
        identifier: str | None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"title": params.title}
        if identifier:
            payload["identifier"] = identifier
        payload["state"] = params.state
        payload["visibility"] = params.visibility
        if params.license:
            payload["license"] = params.license
        if fields.tags:
            payload["tags"] = fields.tags
        if description:
            payload["description"] = description
        payload["extras"] = extras
        return payload

    @staticmethod
    def _log_payload(dialog: SyncDialog, payload: dict[str, Any]) -> None:
        shown = dict(payload, extras=f"[{len(payload['extras'])} items]")
        shown["description"] = f"[{len(payload['description'])} chars]" if "description" in payload else "none"
        dialog.log(f"Request params: {json.dumps(shown, ensure_ascii=False)}")

    async def _write_status(self, note: Note, dialog: SyncDialog, status: SyncStatus) -> None:
        patch = status.to_patch()
        dialog.log("Updating note frontmatter with Kadi4Mat identifiers")
        await self.host.process_frontmatter(note, lambda fm: fm.update(patch))
        dialog.log("Frontmatter updated")

    async def _create(
        self,
        note: Note,
        dialog: SyncDialog,
        params: SyncParams,
        fields: ControlFields,
        description: str,
        extras: list[dict[str, Any]],
    ) -> Record:
        # identifiers are always chosen here so the header can be patched with a known value
        identifier = fields.identifier or generate_identifier(params.title, self.clock())
        dialog.log(f"Using identifier: {identifier}")

        payload = self._payload(params, fields, description, extras, identifier)
        self._log_payload(dialog, payload)
        dialog.log("Sending create request to Kadi4Mat API...")
        record = await self.client.create_record(payload)
        dialog.log(f"✅ Record created successfully with ID: {record.id}")
        dialog.log(f"Identifier: {record.identifier}")

        status = SyncStatus.from_record(
            record,
            synced_at=self.clock(),
            license=params.license,
            state=params.state,
            visibility=params.visibility,
        )
        await self._write_status(note, dialog, status)

        self.host.notice(f"✅ Created Kadi4Mat record: {record.identifier}")
        logger.info(f"Created record id={record.id} identifier={record.identifier} file={note.path}")
        return record

    async def _update(
        self,
        note: Note,
        dialog: SyncDialog,
        params: SyncParams,
        fields: ControlFields,
        description: str,
        extras: list[dict[str, Any]],
    ) -> Record:
        # updates never invent an identifier
        payload = self._payload(params, fields, description, extras, fields.identifier)
        self._log_payload(dialog, payload)
        dialog.log(f"Sending update request to Kadi4Mat API for record {fields.record_id}...")
        record = await self.client.update_record(fields.record_id, payload)
        dialog.log("✅ Record updated successfully")
        dialog.log(f"Identifier: {record.identifier}")

        status = SyncStatus.from_record(
            record,
            synced_at=self.clock(),
            modified=True,
            license=params.license,
            state=params.state,
            visibility=params.visibility,
        )
        await self._write_status(note, dialog, status)

        self.host.notice(f"✅ Updated Kadi4Mat record: {record.identifier}")
        logger.info(f"Updated record id={record.id} identifier={record.identifier} file={note.path}")
        return record

    # ------------------------------------------------------------------
    # Status, links and connectivity
    # ------------------------------------------------------------------

    def update_status_bar(self, note: Note | None) -> str:
        if note is None:
            self.status_bar.text = ""
            return ""
        return self.status_bar.update(self.host.get_frontmatter(note), configured=self.client is not None)

    def show_sync_status(self, note: Note) -> str:
        message = SyncStatus.from_frontmatter(self.host.get_frontmatter(note)).describe()
        self.host.notice(message, timeout=5)
        return message

    def record_url(self, note: Note) -> str | None:
        record_id = get_record_id(self.host.get_frontmatter(note))
        if record_id is None:
            self.host.notice("This note has not been synced yet")
            return None
        if self.client is None:
            return f"{self.settings.host.rstrip('/')}/records/{record_id}"
        return self.client.record_url(record_id)

    async def test_connection(self) -> bool:
        """Report whether the configured token reaches the instance."""
        if self.client is None:
            self.host.notice("Please configure Kadi4Mat settings first")
            return False
        try:
            user = await self.client.get_current_user()
        except Exception as exc:  # noqa: BLE001
            logger.error(f"Connection test failed: {exc}")
            self.host.notice(f"❌ Connection failed: {exc}")
            return False
        self.host.notice(f"✅ Connected successfully as {user.username}")
        return True
