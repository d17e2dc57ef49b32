"""Record identifier and timestamp helpers."""

from __future__ import annotations

import re
from datetime import datetime, timezone

_NON_SLUG_RE = re.compile(r"[^a-z0-9]+")

#: Maximum length of the title-derived part of an identifier
SLUG_MAX_LENGTH = 50


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def isoformat_utc(moment: datetime | None = None) -> str:
    """Render *moment* as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` in UTC.

    Millisecond precision with a ``Z`` suffix, the form written to
    ``kadi_synced`` and ``kadi_modified``.
    """
    moment = moment or utc_now()
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def slugify(title: str) -> str:
    """Lower-case *title* and collapse every run outside ``[a-z0-9]`` to ``-``."""
    slug = _NON_SLUG_RE.sub("-", title.lower()).strip("-")
    return slug[:SLUG_MAX_LENGTH]


def generate_identifier(title: str, moment: datetime | None = None) -> str:
    """Build a ``<slug>-<timestamp>`` record identifier from *title*.

    The timestamp is the ISO-8601 instant with ``:``, ``.`` and ``T`` turned
    into hyphens and the ``Z`` dropped, e.g.
    ``my-run-2024-05-01-09-30-12-345``. Uniqueness only holds at millisecond
    resolution: two calls for the same title within one millisecond collide.
    A title with no usable characters falls back to the slug ``note``.
    """
    slug = slugify(title) or "note"
    stamp = isoformat_utc(moment)
    stamp = re.sub(r"[:.]", "-", stamp).replace("T", "-", 1)
    stamp = re.sub(r"Z$", "", stamp).lower()
    return f"{slug}-{stamp}"
