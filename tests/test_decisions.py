"""Tests for parsing generation output."""

import pytest

from memex.decisions import (
    ArchiveAction,
    MergeAction,
    RenameAction,
    RetagAction,
    SplitAction,
    extract_structured,
    parse_decision,
    parse_drafts,
)
from memex.errors import DecisionParseError


class TestExtractStructured:
    def test_plain_json(self):
        assert extract_structured('[{"a": 1}]') == [{"a": 1}]

    def test_fenced_with_language(self):
        assert extract_structured('```json\n[1, 2]\n```') == [1, 2]

    def test_fenced_without_language(self):
        assert extract_structured('here:\n```\n{"x": true}\n```', "object") == {"x": True}

    def test_prose_preamble(self):
        text = 'Here are the entries:\n[{"title": "t", "body": "b"}]'
        assert extract_structured(text) == [{"title": "t", "body": "b"}]

    def test_link_noise_before_array(self):
        assert extract_structured("see [[id__abc123]] for context\n[]") == []

    def test_object_after_prose(self):
        assert extract_structured('ok {"actions": []} ', "object") == {"actions": []}

    def test_brackets_inside_strings_ignored(self):
        text = 'Here:\n[{"title":"t","body":"index arr[0 first","tags":[]}]\nDone.'
        assert extract_structured(text) == [{"title": "t", "body": "index arr[0 first", "tags": []}]

    def test_escaped_quote_inside_string(self):
        text = 'ok [{"body": "say \\"]\\" twice"}] bye'
        assert extract_structured(text) == [{"body": 'say "]" twice'}]

    def test_failure_reports_prefix(self):
        with pytest.raises(DecisionParseError) as exc:
            extract_structured("x" * 500)
        assert exc.value.tag == "decision.parse"
        assert "x" * 200 in str(exc.value)
        assert "x" * 201 not in str(exc.value)


class TestParseDrafts:
    def test_prose_wrapped_array(self):
        (draft,) = parse_drafts('Sure! [{"title":"t","body":"b","tags":["a", 3]}]')
        assert draft.title == "t"
        assert draft.body == "b"
        assert draft.tags == ["a"]

    def test_empty(self):
        assert parse_drafts("[]") == []

    def test_unbalanced_bracket_in_body(self):
        (draft,) = parse_drafts('Here:\n[{"title":"t","body":"index arr[0 first","tags":[]}]\nDone.')
        assert draft.body == "index arr[0 first"

    def test_missing_body(self):
        with pytest.raises(DecisionParseError, match="body"):
            parse_drafts('[{"title": "t"}]')

    def test_not_an_array(self):
        with pytest.raises(DecisionParseError):
            parse_drafts('{"title": "t"}')


class TestParseDecision:
    def test_all_kinds(self):
        decision = parse_decision(
            """{
              "actions": [
                {"type": "merge", "sources": ["id__aaaaaa", "id__bbbbbb"], "title": "m", "body": "b"},
                {"type": "split", "source": "id__cccccc", "entries": [{"title": "p", "body": "q"}]},
                {"type": "rename", "id": "id__dddddd", "newTitle": "new"},
                {"type": "archive", "id": "id__eeeeee", "reason": "old"},
                {"type": "update-tags", "id": "id__ffffff", "tags": ["t"]}
              ],
              "topOfMind": ["id__aaaaaa"]
            }"""
        )
        kinds = [type(a) for a in decision.actions]
        assert kinds == [MergeAction, SplitAction, RenameAction, ArchiveAction, RetagAction]
        assert decision.actions[2].new_title == "new"
        assert decision.top_of_mind == ["id__aaaaaa"]

    def test_unknown_kind(self):
        with pytest.raises(DecisionParseError, match="unknown action type"):
            parse_decision('{"actions": [{"type": "explode", "id": "id__aaaaaa"}], "topOfMind": []}')

    def test_missing_field_named(self):
        with pytest.raises(DecisionParseError, match="newTitle"):
            parse_decision('{"actions": [{"type": "rename", "id": "id__aaaaaa"}], "topOfMind": []}')

    def test_missing_actions(self):
        with pytest.raises(DecisionParseError, match="actions"):
            parse_decision('{"topOfMind": []}')

    def test_snake_case_selection(self):
        decision = parse_decision('{"actions": [], "top_of_mind": ["id__aaaaaa", 7]}')
        assert decision.top_of_mind == ["id__aaaaaa"]

    def test_to_dict(self):
        decision = parse_decision('{"actions": [{"type": "rename", "id": "id__aaaaaa", "newTitle": "n"}]}')
        assert decision.to_dict() == {
            "actions": [{"type": "rename", "id": "id__aaaaaa", "newTitle": "n"}],
            "topOfMind": [],
        }
