"""YAML-frontmatter, heading, and tag parsing for notes.

Also holds the text-level header patcher used by the filesystem host: it
rewrites only the top-level YAML entries that change so every other header
line survives byte-for-byte.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

import yaml

from kadisync.errors import FrontmatterError

# YAML front-matter block: a line of exactly ``---``, content, a line of exactly ``---``
_FRONTMATTER_RE = re.compile(r"^---\r?\n(.*?)^---(?:\r?\n|\Z)", re.DOTALL | re.MULTILINE)
# First level-one heading: "# Title"
_H1_RE = re.compile(r"^#\s+(.+)$", re.MULTILINE)
# Same heading including its line break, for removal from the description
_H1_LINE_RE = re.compile(r"^#\s+.+$\n?", re.MULTILINE)
# Inline #tags (not inside code-spans or URLs)
_TAG_RE = re.compile(r"(?<![`\w/#])#([\w/-]+)")
# Top-level mapping key at column 0
_TOP_KEY_RE = re.compile(r"""^(?P<key>"[^"]*"|'[^']*'|[^\s#'"\-][^:]*?)\s*:(?:\s|$)""")


def split_frontmatter(content: str) -> tuple[str | None, str]:
    """Split *content* into ``(header_text, body)``.

    ``header_text`` is ``None`` when the document does not start with a
    header block; it is the raw YAML between the delimiters otherwise.
    """
    match = _FRONTMATTER_RE.match(content)
    if not match:
        return None, content
    return match.group(1), content[match.end() :]


def load_header(text: str, *, strict: bool = False) -> dict[str, Any]:
    """Parse raw header YAML into a mapping.

    Invalid YAML or a non-mapping document yields ``{}``, or raises
    :class:`FrontmatterError` when *strict*.
    """
    try:
        meta = yaml.safe_load(text) if text.strip() else {}
    except yaml.YAMLError as exc:
        if strict:
            raise FrontmatterError(f"Header is not valid YAML: {exc}") from exc
        return {}
    if meta is None:
        return {}
    if not isinstance(meta, dict):
        if strict:
            raise FrontmatterError(f"Header must be a mapping, got {type(meta).__name__}")
        return {}
    return meta


def parse_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """Split YAML front-matter from body text.

    Returns ``(metadata_dict, body)``; ``metadata_dict`` is empty when there
    is no front-matter block.
    """
    header, body = split_frontmatter(content)
    if header is None:
        return {}, content
    return load_header(header), body


def strip_frontmatter(content: str) -> str:
    return split_frontmatter(content)[1]


def extract_note_title(content: str, fallback: str) -> str:
    """Return the text of the first ``# Heading`` after the header, else *fallback*."""
    match = _H1_RE.search(strip_frontmatter(content))
    if match:
        return match.group(1).strip()
    return fallback


def extract_note_content(content: str) -> str:
    """Return the body with the header and the first ``# Heading`` line removed."""
    body = _H1_LINE_RE.sub("", strip_frontmatter(content), count=1)
    return body.strip()


def parse_tags(text: str) -> list[str]:
    """Return all ``#tag`` values found in *text* (de-duped, ordered)."""
    seen: set[str] = set()
    result: list[str] = []
    for m in _TAG_RE.finditer(text):
        tag = m.group(1)
        if tag not in seen:
            seen.add(tag)
            result.append(tag)
    return result


# ---------------------------------------------------------------------------
# Header patching
# ---------------------------------------------------------------------------


def dump_entry(key: str, value: Any) -> str:
    """Serialise one top-level ``key: value`` entry, newline-terminated."""
    return yaml.safe_dump(
        {key: value},
        default_flow_style=False,
        allow_unicode=True,
        sort_keys=False,
        width=1000,
    )


def newline_of(content: str) -> str:
    """Line break used by *content*: ``"\\r\\n"`` when its first line ends with one."""
    end = content.find("\n")
    return "\r\n" if end > 0 and content[end - 1] == "\r" else "\n"


def render_frontmatter(meta: Mapping[str, Any], newline: str = "\n") -> str:
    """Serialise a whole header block including both delimiters."""
    text = "---\n" + "".join(dump_entry(k, v) for k, v in meta.items()) + "---\n"
    return text.replace("\n", newline)


def _entries(lines: list[str]) -> list[tuple[str | None, list[str]]]:
    """Group header lines into ``(key, lines)`` chunks.

    Lines that belong to no top-level key (comments, blank lines, a leading
    document marker) form chunks with ``key`` of ``None``.
    """
    chunks: list[tuple[str | None, list[str]]] = []
    for line in lines:
        keyed = bool(chunks) and chunks[-1][0] is not None
        if keyed and (line[:1] in {" ", "\t", "-"} or not line.strip()):
            chunks[-1][1].append(line)
            continue
        if keyed:
            _peel_blank_lines(chunks)
        match = _TOP_KEY_RE.match(line)
        if match:
            key = match.group("key").strip()
            if key[:1] in {'"', "'"}:
                key = key[1:-1]
            chunks.append((key, [line]))
        else:
            chunks.append((None, [line]))
    if chunks and chunks[-1][0] is not None:
        _peel_blank_lines(chunks)
    return chunks


def _peel_blank_lines(chunks: list[tuple[str | None, list[str]]]) -> None:
    # Blank lines between entries belong to no key
    _, lines = chunks[-1]
    trailing: list[str] = []
    while len(lines) > 1 and not lines[-1].strip():
        trailing.insert(0, lines.pop())
    if trailing:
        chunks.append((None, trailing))


def patch_frontmatter(
    content: str,
    updates: Mapping[str, Any],
    removed: Iterable[str] = (),
) -> str:
    """Apply a merge-patch to the header of *content* and return the new text.

    Keys in *updates* replace their existing entry in place or are appended
    before the closing delimiter; keys in *removed* are dropped. All other
    lines are left untouched. A document without a header gets a new one.
    Written lines take the line break style of *content*.
    """
    header, body = split_frontmatter(content)
    removed = set(removed)
    newline = newline_of(content)
    if header is None:
        if not updates:
            return content
        return render_frontmatter(updates, newline) + content

    lines = header.splitlines(keepends=True)
    if lines and not lines[-1].endswith("\n"):
        lines[-1] += newline

    pending = dict(updates)
    out: list[str] = []
    for key, chunk in _entries(lines):
        if key is not None and key in pending:
            out.append(dump_entry(key, pending.pop(key)).replace("\n", newline))
        elif key is not None and key in removed:
            continue
        else:
            out.extend(chunk)
    for key, value in pending.items():
        out.append(dump_entry(key, value).replace("\n", newline))

    return f"---{newline}" + "".join(out) + f"---{newline}" + body
