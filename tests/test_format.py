"""Tests for note serialization."""

import pytest

from memex.errors import FormatError
from memex.memory.format import MemoryEntry, parse_note, serialize_note, slugify


class TestSerialize:
    def test_layout(self):
        text = serialize_note("Title", ["a", "b"], "body text")
        assert text == "# Title\n\n#a #b\n\nbody text\n"

    def test_no_tags(self):
        assert serialize_note("Title", [], "body") == "# Title\n\nbody\n"

    def test_inline_tags_not_repeated(self):
        text = serialize_note("T", ["inline", "extra"], "mentions #inline")
        assert text == "# T\n\n#extra\n\nmentions #inline\n"


class TestParse:
    def test_round_trip(self):
        parsed = parse_note(serialize_note("My Note", ["x", "area__y"], "line one\n\nline two  \n"))
        assert parsed.title == "My Note"
        assert parsed.body == "line one\n\nline two"
        assert parsed.tags == ["x", "area__y"]

    def test_tags_from_body(self):
        parsed = parse_note("# T\n\nsome #inline text")
        assert parsed.tags == ["inline"]
        assert parsed.body == "some #inline text"

    def test_missing_heading(self):
        with pytest.raises(FormatError):
            parse_note("no heading here")

    def test_empty(self):
        with pytest.raises(FormatError):
            parse_note("\n\n")

    def test_leading_blank_lines(self):
        assert parse_note("\n\n# T\n\nbody").title == "T"

    def test_heading_without_separator(self):
        assert parse_note("# T\nbody").body == "body"

    def test_body_leading_blank_lines_kept(self):
        assert parse_note(serialize_note("T", [], "\n\nbody")).body == "\n\nbody"
        parsed = parse_note(serialize_note("T", ["x"], "\n\nbody"))
        assert parsed.body == "\n\nbody"
        assert parsed.tags == ["x"]

    def test_body_indentation_kept(self):
        assert parse_note(serialize_note("T", [], "  indented\nnext")).body == "  indented\nnext"

    def test_title_whitespace_normalized(self):
        assert parse_note(serialize_note("  Spaced title ", [], "b")).title == "Spaced title"


class TestMemoryEntry:
    def test_title_stripped(self):
        assert MemoryEntry(id="id__aaaaaa", title="  Spaced title ", body="b").title == "Spaced title"

    def test_render_parses_back(self):
        entry = MemoryEntry(id="id__aaaaaa", title=" T ", body="\n\nfirst\n\nsecond", tags=["x"])
        parsed = parse_note(entry.render())
        assert (parsed.title, parsed.body, parsed.tags) == (entry.title, entry.body, entry.tags)


class TestSlugify:
    def test_basic(self):
        assert slugify("Hello, World!") == "hello-world"

    def test_empty(self):
        assert slugify("!!!") == "untitled"

    def test_capped(self):
        assert len(slugify("x" * 200)) == 50
