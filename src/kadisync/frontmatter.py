"""Control-field extraction and custom-metadata filtering for note headers.

Keys prefixed with ``kadi_`` are reserved for sync bookkeeping and for the
record's top-level properties. Everything else in a header, minus a few
Obsidian display fields, is custom metadata sent to Kadi4Mat as extras.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from kadisync.note import Note

#: Namespace shared by every control field
CONTROL_PREFIX = "kadi_"

#: Header keys never forwarded as custom metadata
EXCLUDED_FIELDS = frozenset(
    {
        # Obsidian display fields
        "cssclasses",
        "cssclass",
        "aliases",
        "alias",
        "position",
        # native tags, merged into ControlFields.tags instead
        "tags",
        # control fields (also caught by the prefix rule)
        "kadi_id",
        "kadi_identifier",
        "kadi_title",
        "kadi_state",
        "kadi_visibility",
        "kadi_synced",
        "kadi_modified",
        "kadi_tags",
        "kadi_license",
    }
)

_TAG_SPLIT_RE = re.compile(r"[,\s]+")


@dataclass
class ControlFields:
    """Record-level fields resolved from one header snapshot."""

    title: str
    identifier: str | None = None
    state: str | None = None
    visibility: str | None = None
    #: ``None`` when no tag was found; never an empty list
    tags: list[str] | None = None
    #: Remote record id; its presence means the note updates instead of creates
    record_id: int | None = None

    @property
    def is_update(self) -> bool:
        return self.record_id is not None


def _strip_hash(tag: str) -> str:
    # one leading "#" only; "##x" stays "#x"
    return tag[1:] if tag.startswith("#") else tag


def _split_tag_string(value: str) -> list[str]:
    tags = (_strip_hash(t.strip()).strip() for t in _TAG_SPLIT_RE.split(value))
    return [t for t in tags if t]


def _coerce_tags(value: Any) -> list[str]:
    if isinstance(value, str):
        return _split_tag_string(value)
    if isinstance(value, (list, tuple)):
        result = []
        for tag in value:
            if tag is None:
                continue
            text = _strip_hash(tag) if isinstance(tag, str) else str(tag)
            if text:
                result.append(text)
        return result
    return []


def extract_tags(frontmatter: Mapping[str, Any] | None) -> list[str]:
    """Return the note's native ``tags`` with leading ``#`` removed.

    Accepts both the list form and the comma/space separated string form.
    """
    if not frontmatter:
        return []
    return _coerce_tags(frontmatter.get("tags"))


def union_tags(*sources: Iterable[str]) -> list[str]:
    """Merge tag lists with set semantics, keeping first-seen order."""
    return list(dict.fromkeys(tag for source in sources for tag in source))


def _string_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def get_record_id(frontmatter: Mapping[str, Any] | None) -> int | None:
    """Return ``kadi_id`` only when it is a real number.

    A quoted ``kadi_id: "12"`` written by hand does not count; such a note is
    treated as never synced. Booleans are rejected as well.
    """
    if not frontmatter:
        return None
    value = frontmatter.get("kadi_id")
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def is_synced(frontmatter: Mapping[str, Any] | None) -> bool:
    return get_record_id(frontmatter) is not None


def extract_control_fields(note: Note, frontmatter: Mapping[str, Any] | None) -> ControlFields:
    """Resolve :class:`ControlFields` for *note* from its header.

    Values of the wrong type are ignored, never reported. The title falls
    back to the note's basename.
    """
    if frontmatter is None:
        return ControlFields(title=note.basename)

    fields = ControlFields(title=_string_or_none(frontmatter.get("kadi_title")) or note.basename)
    fields.identifier = _string_or_none(frontmatter.get("kadi_identifier"))
    fields.state = _string_or_none(frontmatter.get("kadi_state"))
    fields.visibility = _string_or_none(frontmatter.get("kadi_visibility"))

    tags = union_tags(extract_tags(frontmatter), _coerce_tags(frontmatter.get("kadi_tags")))
    fields.tags = tags or None

    fields.record_id = get_record_id(frontmatter)
    return fields


def filter_metadata(frontmatter: Mapping[str, Any] | None) -> dict[str, Any]:
    """Return the header's custom metadata in source order.

    Drops :data:`EXCLUDED_FIELDS` and every key in the ``kadi_`` namespace.
    Values are passed through as-is.
    """
    if not frontmatter:
        return {}
    return {
        key: value
        for key, value in frontmatter.items()
        if key not in EXCLUDED_FIELDS and not str(key).startswith(CONTROL_PREFIX)
    }
