"""kadi-sync: push Obsidian notes to Kadi4Mat records."""

from kadisync.engine import SyncEngine, SyncOutcome
from kadisync.errors import ConfigurationError, KadiSyncError, RemoteError, ValidationError
from kadisync.frontmatter import extract_control_fields, filter_metadata
from kadisync.identifier import generate_identifier
from kadisync.note import Note
from kadisync.parser import extract_note_content, extract_note_title
from kadisync.settings import Settings, load_settings
from kadisync.status import StatusBar, SyncState, SyncStatus
from kadisync.vault import FileVault

__all__ = [
    "Note",
    "FileVault",
    "Settings",
    "load_settings",
    "SyncEngine",
    "SyncOutcome",
    "SyncState",
    "SyncStatus",
    "StatusBar",
    "extract_control_fields",
    "filter_metadata",
    "generate_identifier",
    "extract_note_title",
    "extract_note_content",
    "KadiSyncError",
    "ConfigurationError",
    "RemoteError",
    "ValidationError",
]
