"""Tests for tool call extraction from model output."""

import logging

import pytest

from agent.parser import ResponseParser, iter_json_objects
from agent.schemas import ToolCall


@pytest.fixture
def parser():
    return ResponseParser()


def fenced(body: str) -> str:
    return f"```tool\n{body}\n```"


class TestFencedBlocks:
    """Fenced ```tool blocks."""

    def test_single_block(self, parser):
        text = "Let me search.\n" + fenced('{"name": "web_search", "arguments": {"query": "X"}}')

        calls = parser.parse(text)

        assert calls == [ToolCall(name="web_search", arguments={"query": "X"})]

    def test_multiple_blocks_keep_source_order(self, parser):
        text = "\n".join(
            [
                fenced('{"name": "get_current_time", "arguments": {}}'),
                "and then",
                fenced('{"name": "calculate", "arguments": {"expression": "1+1"}}'),
                fenced('{"name": "web_search", "arguments": {"query": "python"}}'),
            ]
        )

        calls = parser.parse(text)

        assert [c.name for c in calls] == ["get_current_time", "calculate", "web_search"]

    def test_malformed_block_is_skipped(self, parser):
        text = fenced('{"name": "web_search", "arguments": {"query": ') + "\n" + fenced(
            '{"name": "calculate", "arguments": {"expression": "2*3"}}'
        )

        calls = parser.parse(text)

        assert calls == [ToolCall(name="calculate", arguments={"expression": "2*3"})]

    def test_string_arguments_are_decoded(self, parser):
        text = fenced('{"name": "web_search", "arguments": "{\\"query\\": \\"X\\"}"}')

        assert parser.parse(text) == [ToolCall(name="web_search", arguments={"query": "X"})]


class TestBraceScan:
    """Bare JSON objects found by the balanced-brace scan."""

    def test_inline_object(self, parser):
        text = 'Sure! {"name": "calculate", "arguments": {"expression": "2+2"}} done.'

        assert parser.parse(text) == [ToolCall(name="calculate", arguments={"expression": "2+2"})]

    def test_sibling_fields_become_arguments(self, parser):
        text = 'I will look it up: {"name": "web_search", "query": "rust wasm", "limit": 3}'

        calls = parser.parse(text)

        assert calls == [ToolCall(name="web_search", arguments={"query": "rust wasm", "limit": 3})]

    def test_braces_inside_string_values(self, parser):
        text = '{"name": "save_note", "arguments": {"title": "code", "content": "fn main() { } }}"}}'

        calls = parser.parse(text)

        assert calls == [
            ToolCall(name="save_note", arguments={"title": "code", "content": "fn main() { } }}"})
        ]

    def test_objects_without_name_are_ignored(self, parser):
        text = 'Config is {"debug": true} and nothing else'

        assert parser.parse(text) == []

    def test_stray_closing_brace_does_not_break_scan(self, parser):
        text = 'oops } then {"name": "get_current_time", "arguments": {}}'

        assert parser.parse(text) == [ToolCall(name="get_current_time", arguments={})]


class TestDeduplication:
    """Fenced and bare encodings of the same call are merged."""

    def test_fenced_call_not_repeated_by_brace_scan(self, parser):
        text = fenced('{"name": "web_search", "arguments": {"query": "X"}}')

        calls = parser.parse(text)

        assert len(calls) == 1

    def test_same_name_different_arguments_kept(self, parser):
        text = (
            '{"name": "web_search", "arguments": {"query": "a"}} '
            '{"name": "web_search", "arguments": {"query": "b"}} '
            '{"name": "web_search", "arguments": {"query": "a"}}'
        )

        calls = parser.parse(text)

        assert [c.arguments for c in calls] == [{"query": "a"}, {"query": "b"}]

    def test_numbers_and_booleans_are_distinct_arguments(self, parser):
        text = (
            '{"name": "t", "arguments": {"x": 1}} '
            '{"name": "t", "arguments": {"x": true}} '
            '{"name": "t", "arguments": {"x": 1.0}}'
        )

        calls = parser.parse(text)

        assert len(calls) == 3
        assert [c.arguments["x"] for c in calls] == [1, True, 1.0]

    def test_key_order_does_not_matter(self, parser):
        text = (
            '{"name": "t", "arguments": {"a": 1, "b": 2}} '
            '{"name": "t", "arguments": {"b": 2, "a": 1}}'
        )

        assert len(parser.parse(text)) == 1


class TestTagFallback:
    """Loose <arg_value> annotations."""

    def test_tag_with_open_argument_object(self, parser):
        text = 'web_search{"arguments":{"query":"weather Oslo"}<arg_value>web_search</tool_call>'

        calls = parser.parse(text)

        assert calls == [ToolCall(name="web_search", arguments={"query": "weather Oslo"})]

    def test_tag_with_complete_fragment(self, parser):
        text = '{"arguments": {"expression": "3*3"}}<arg_value>calculate</tool_call>'

        assert parser.parse(text) == [ToolCall(name="calculate", arguments={"expression": "3*3"})]

    def test_tag_without_arguments(self, parser):
        text = "<arg_value>get_current_time</tool_call>"

        assert parser.parse(text) == [ToolCall(name="get_current_time", arguments={})]

    def test_tag_name_with_brace_rejected(self, parser):
        assert parser.parse("<arg_value>{weird</tool_call>") == []

    def test_not_used_when_structured_call_found(self, parser):
        text = (
            fenced('{"name": "calculate", "arguments": {"expression": "1"}}')
            + "<arg_value>web_search</tool_call>"
        )

        assert [c.name for c in parser.parse(text)] == ["calculate"]


class TestNoToolCalls:
    """Plain text and edge cases."""

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "Hello! How can I help you today?",
            "Use braces like {this} in templates.",
            "```python\nprint('hi')\n```",
        ],
    )
    def test_plain_text_yields_nothing(self, parser, text):
        assert parser.parse(text) == []

    def test_parsing_is_deterministic(self, parser):
        text = (
            'first {"name": "a", "x": 1} '
            + fenced('{"name": "b", "arguments": {"y": [1, 2]}}')
            + ' {"name": "c", "arguments": {}}'
        )

        results = [parser.parse(text) for _ in range(5)]

        assert all(r == results[0] for r in results)
        assert [c.name for c in results[0]] == ["b", "a", "c"]

    def test_truncated_output_warns_but_keeps_complete_calls(self, parser, caplog):
        text = (
            '{"name": "get_current_time", "arguments": {}} '
            'then {"name": "web_search", "arguments": {"query": "cut'
        )

        with caplog.at_level(logging.WARNING, logger="agent.parser"):
            calls = parser.parse(text)

        assert calls == [ToolCall(name="get_current_time", arguments={})]
        assert "Incomplete JSON" in caplog.text


class TestIterJsonObjects:
    """The brace tokenizer on its own."""

    def test_spans_of_top_level_objects(self):
        text = 'a {"x": {"y": 1}} b {"z": "}"} c'

        spans = [text[start:end] for start, end in iter_json_objects(text)]

        assert spans == ['{"x": {"y": 1}}', '{"z": "}"}']

    def test_escaped_quote_inside_string(self):
        text = '{"q": "say \\"{hi}\\""}'

        assert [text[s:e] for s, e in iter_json_objects(text)] == [text]

    def test_unclosed_object_not_yielded(self):
        assert list(iter_json_objects('{"a": {"b": 1}')) == []
