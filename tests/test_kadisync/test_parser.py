"""Unit tests for kadisync.parser."""

import textwrap

import pytest

from kadisync.errors import FrontmatterError
from kadisync.parser import (
    extract_note_content,
    extract_note_title,
    load_header,
    newline_of,
    parse_frontmatter,
    parse_tags,
    patch_frontmatter,
    render_frontmatter,
    split_frontmatter,
)

# ---------------------------------------------------------------------------
# parse_frontmatter / split_frontmatter
# ---------------------------------------------------------------------------


class TestParseFrontmatter:
    def test_no_frontmatter_returns_empty_dict(self):
        meta, body = parse_frontmatter("Just some text.")
        assert meta == {}
        assert body == "Just some text."

    def test_basic_frontmatter(self):
        raw = textwrap.dedent("""\
            ---
            title: My Note
            tags: [a, b]
            ---
            Body here.
        """)
        meta, body = parse_frontmatter(raw)
        assert meta["title"] == "My Note"
        assert meta["tags"] == ["a", "b"]
        assert body == "Body here.\n"

    def test_frontmatter_not_at_start_is_ignored(self):
        raw = "Intro\n---\ntitle: Nope\n---\nMore text."
        assert split_frontmatter(raw) == (None, raw)

    def test_empty_frontmatter_block(self):
        header, body = split_frontmatter("---\n---\nBody.")
        assert header == ""
        assert body == "Body."
        assert parse_frontmatter("---\n---\nBody.")[0] == {}

    def test_invalid_yaml_returns_empty_dict(self):
        meta, _ = parse_frontmatter("---\nkey: [unclosed\n---\nBody.")
        assert meta == {}

    def test_invalid_yaml_raises_when_strict(self):
        with pytest.raises(FrontmatterError):
            load_header("key: [unclosed\n", strict=True)

    def test_non_mapping_header(self):
        assert load_header("- a\n- b\n") == {}
        with pytest.raises(FrontmatterError, match="mapping"):
            load_header("- a\n- b\n", strict=True)


# ---------------------------------------------------------------------------
# Title and description
# ---------------------------------------------------------------------------


class TestNoteContent:
    def test_title_from_first_h1(self):
        raw = "---\nkadi_id: 1\n---\nIntro\n# First Heading\n# Second\n"
        assert extract_note_title(raw, "fallback") == "First Heading"

    def test_title_and_description_after_header(self):
        raw = "---\nkadi_id: 1\n---\n# My Title\nBody text"
        assert extract_note_title(raw, "fallback") == "My Title"
        assert extract_note_content(raw) == "Body text"

    def test_title_fallback_without_h1(self):
        assert extract_note_title("## Only a subheading\ntext", "my-note") == "my-note"

    def test_heading_inside_header_is_not_a_title(self):
        raw = "---\nnote: '# not a title'\n---\nbody\n"
        assert extract_note_title(raw, "fallback") == "fallback"

    def test_content_drops_header_and_first_h1(self):
        raw = "---\na: 1\n---\n# Title\n\nPara one.\n\n# Other\n"
        assert extract_note_content(raw) == "Para one.\n\n# Other"

    def test_content_without_heading_is_trimmed_body(self):
        assert extract_note_content("\n\n  Plain text.  \n") == "Plain text."


# ---------------------------------------------------------------------------
# parse_tags
# ---------------------------------------------------------------------------


class TestParseTags:
    def test_simple_tags(self):
        assert parse_tags("Some #python and #ml text") == ["python", "ml"]

    def test_nested_tag(self):
        assert "lab/run" in parse_tags("#lab/run here")

    def test_deduplication(self):
        assert parse_tags("#a #b #a") == ["a", "b"]

    def test_heading_is_not_a_tag(self):
        assert parse_tags("# Heading\n## Sub") == []


# ---------------------------------------------------------------------------
# patch_frontmatter
# ---------------------------------------------------------------------------


class TestPatchFrontmatter:
    HEADER = (
        "---\n"
        "# keep me\n"
        "title:   My   Title\n"
        "list:\n"
        "  - a\n"
        "  - b\n"
        "\n"
        "kadi_id: 1\n"
        "---\n"
        "Body\n"
    )

    def test_replaces_entry_in_place(self):
        patched = patch_frontmatter(self.HEADER, {"kadi_id": 2})
        assert patched == self.HEADER.replace("kadi_id: 1", "kadi_id: 2")

    def test_appends_new_entry_before_delimiter(self):
        patched = patch_frontmatter(self.HEADER, {"kadi_state": "active"})
        assert patched.endswith("kadi_id: 1\nkadi_state: active\n---\nBody\n")
        assert patched.startswith("---\n# keep me\ntitle:   My   Title\nlist:\n  - a\n  - b\n\n")

    def test_removes_entry(self):
        patched = patch_frontmatter(self.HEADER, {}, removed=["list"])
        assert "list:" not in patched
        assert "  - a" not in patched
        assert "title:   My   Title\n" in patched

    def test_document_without_header_gets_one(self):
        assert patch_frontmatter("Body\n", {"kadi_id": 5}) == "---\nkadi_id: 5\n---\nBody\n"

    def test_no_updates_without_header_is_noop(self):
        assert patch_frontmatter("Body\n", {}) == "Body\n"

    def test_patched_header_round_trips(self):
        patched = patch_frontmatter(self.HEADER, {"kadi_synced": "2024-05-01T09:30:12.345Z"})
        meta, body = parse_frontmatter(patched)
        assert meta["kadi_synced"] == "2024-05-01T09:30:12.345Z"
        assert meta["list"] == ["a", "b"]
        assert body == "Body\n"

    def test_render_frontmatter(self):
        assert render_frontmatter({}) == "---\n---\n"
        assert render_frontmatter({"a": 1, "b": "x"}) == "---\na: 1\nb: x\n---\n"

    def test_crlf_header_is_patched_in_its_own_style(self):
        content = self.HEADER.replace("\n", "\r\n")
        patched = patch_frontmatter(content, {"kadi_id": 2, "kadi_state": "active"})
        assert patched == content.replace("kadi_id: 1\r\n", "kadi_id: 2\r\nkadi_state: active\r\n")

    def test_crlf_split(self):
        header, body = split_frontmatter("---\r\na: 1\r\n---\r\nBody\r\n")
        assert header == "a: 1\r\n"
        assert body == "Body\r\n"
        assert newline_of("---\r\n") == "\r\n"
        assert newline_of("Body\n") == "\n"
        assert newline_of("") == "\n"
