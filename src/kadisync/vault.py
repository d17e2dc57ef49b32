"""FileVault: a directory of markdown notes acting as the sync host."""

from __future__ import annotations

import asyncio
import copy
import json
import os
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

from loguru import logger
from rich.console import Console

from kadisync.frontmatter import extract_tags, union_tags
from kadisync.note import Note
from kadisync.parser import (
    load_header,
    newline_of,
    parse_frontmatter,
    parse_tags,
    patch_frontmatter,
    render_frontmatter,
    split_frontmatter,
)

logger = logger.bind(module="vault")

DATA_DIR = ".kadi-sync"
DATA_FILE = "data.json"


def atomic_write_text(path: Path, content: str) -> None:
    """Write *content* through a temp file in the same directory, then rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", text=True)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
            fh.write(content)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(temp_path, path)
    except BaseException:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise


class FileVault:
    """Host implementation backed by a vault directory on disk."""

    def __init__(self, root: Path, name: str | None = None, *, console: Console | None = None) -> None:
        self.root = Path(root).resolve()
        self.vault_name = name or self.root.name
        self.console = console or Console(stderr=True)
        #: Every notice shown, oldest first
        self.notices: list[str] = []
        # path -> (mtime_ns, header or None)
        self._cache: dict[str, tuple[int, dict[str, Any] | None]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    def note(self, path: Path | str) -> Note:
        """Build a :class:`Note` from an absolute or vault-relative path."""
        path = Path(path)
        if path.is_absolute():
            path = path.resolve().relative_to(self.root)
        return Note(path.as_posix())

    def notes(self) -> list[Note]:
        return [
            self.note(p.relative_to(self.root))
            for p in sorted(self.root.glob("**/*.md"))
            if DATA_DIR not in p.relative_to(self.root).parts
        ]

    def path_of(self, note: Note) -> Path:
        return self.root / note.path

    def exists(self, note: Note) -> bool:
        return self.path_of(note).is_file()

    async def read(self, note: Note) -> str:
        return await asyncio.to_thread(self._read_sync, note)

    def _read_sync(self, note: Note) -> str:
        return self.path_of(note).read_text(encoding="utf-8")

    def _read_raw(self, note: Note) -> str:
        # line breaks as stored, so a patch keeps them
        with self.path_of(note).open(encoding="utf-8", newline="") as fh:
            return fh.read()

    # ------------------------------------------------------------------
    # Header view
    # ------------------------------------------------------------------

    def get_frontmatter(self, note: Note) -> dict[str, Any] | None:
        """Header mapping, re-parsed only when the file changed on disk."""
        path = self.path_of(note)
        mtime = path.stat().st_mtime_ns
        cached = self._cache.get(note.path)
        if cached is not None and cached[0] == mtime:
            return cached[1]
        header, _ = split_frontmatter(self._read_sync(note))
        meta = None if header is None else load_header(header)
        self._cache[note.path] = (mtime, meta)
        return meta

    def get_tags(self, note: Note) -> list[str]:
        """Header ``tags`` followed by inline ``#tags`` from the body."""
        meta, body = parse_frontmatter(self._read_sync(note))
        return union_tags(extract_tags(meta), parse_tags(body))

    async def process_frontmatter(self, note: Note, fn: Callable[[dict[str, Any]], None]) -> None:
        """Apply *fn* to a copy of the header and write back only what changed.

        Patches to the same note are serialised; the file is replaced
        atomically. Raises :class:`FrontmatterError` when the existing header
        is not a YAML mapping, leaving the file untouched.
        """
        lock = self._locks.setdefault(note.path, asyncio.Lock())
        async with lock:
            content = await asyncio.to_thread(self._read_raw, note)
            header, body = split_frontmatter(content)
            before = {} if header is None else load_header(header, strict=True)
            after = copy.deepcopy(before)
            fn(after)

            updates = {k: v for k, v in after.items() if k not in before or before[k] != v}
            removed = [k for k in before if k not in after]
            if not updates and not removed:
                return

            patched = patch_frontmatter(content, updates, removed)
            if parse_frontmatter(patched)[0] != after:
                logger.warning(f"Line-level patch of {note.path} did not round-trip; rewriting header")
                patched = render_frontmatter(after, newline_of(content)) + body

            await asyncio.to_thread(atomic_write_text, self.path_of(note), patched)
            self._cache.pop(note.path, None)
            logger.debug(f"Patched header of {note.path}: {sorted(updates)} (removed {removed})")

    async def create_file(self, name: str, content: str) -> Note:
        path = self.root / name
        if path.exists():
            raise FileExistsError(f"{name} already exists")
        await asyncio.to_thread(atomic_write_text, path, content)
        return self.note(path)

    # ------------------------------------------------------------------
    # Surface
    # ------------------------------------------------------------------

    def notice(self, message: str, timeout: float | None = None) -> None:
        self.notices.append(message)
        logger.info(message)
        self.console.print(message, markup=False, highlight=False)

    # ------------------------------------------------------------------
    # Settings storage
    # ------------------------------------------------------------------

    @property
    def data_path(self) -> Path:
        return self.root / DATA_DIR / DATA_FILE

    def load_data(self) -> dict[str, Any] | None:
        if not self.data_path.exists():
            return None
        try:
            return json.loads(self.data_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            logger.warning(f"Ignoring unreadable settings file {self.data_path}: {exc}")
            return None

    def save_data(self, data: dict[str, Any]) -> None:
        atomic_write_text(self.data_path, json.dumps(data, indent=2, ensure_ascii=False) + "\n")
