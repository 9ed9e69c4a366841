"""Extraction of tool calls from free-text model replies.

Three encodings are recognized, in priority order:

1. Fenced blocks opened with ```tool and holding a JSON object with
   ``name`` and ``arguments``.
2. Any top-level JSON object in the text with a ``name`` field. When it
   has no ``arguments`` field, the sibling fields become the arguments.
3. A loose tag form some models emit, e.g.
   ``{"arguments": {...}<arg_value>web_search</tool_call>``. Only tried
   when nothing else matched.

Results are merged in that order and deduplicated by (name, arguments).
Parsing never raises; text without tool calls yields an empty list.
"""

import json
import logging
from typing import Any, Iterator, List, Optional, Tuple

from .schemas import ToolCall

logger = logging.getLogger(__name__)

FENCE_MARKER = "```tool"
FENCE_END = "```"
TAG_MARKER = "<arg_value>"


def iter_json_objects(text: str, start: int = 0) -> Iterator[Tuple[int, int]]:
    """Yield (start, end) spans of balanced top-level ``{...}`` objects.

    Single pass with a depth counter. Braces inside JSON string literals
    are skipped, so argument values may contain braces. Stray closing
    braces at depth zero are ignored. An object left open at the end of
    the text is not yielded.
    """
    depth = 0
    span_start = -1
    in_string = False
    escaped = False

    for i in range(start, len(text)):
        c = text[i]

        if in_string:
            if escaped:
                escaped = False
            elif c == "\\":
                escaped = True
            elif c == '"':
                in_string = False
            continue

        if c == '"' and depth > 0:
            in_string = True
        elif c == "{":
            if depth == 0:
                span_start = i
            depth += 1
        elif c == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                yield span_start, i + 1
                span_start = -1


def _load_json(fragment: str) -> Any:
    try:
        return json.loads(fragment)
    except (json.JSONDecodeError, ValueError):
        return None


def _normalize_arguments(arguments: Any) -> Any:
    """Arguments sent as a JSON-encoded string are decoded."""
    if isinstance(arguments, str):
        decoded = _load_json(arguments)
        if isinstance(decoded, dict):
            return decoded
    if arguments is None:
        return {}
    return arguments


def canonical_arguments(arguments: Any) -> str:
    """Order-independent JSON encoding of arguments, used for equality."""
    return json.dumps(arguments, sort_keys=True, separators=(",", ":"), default=repr)


def tool_call_from_object(obj: Any) -> Optional[ToolCall]:
    """Build a ToolCall from a decoded JSON object, if it names a tool."""
    if not isinstance(obj, dict):
        return None

    name = obj.get("name")
    if not isinstance(name, str) or not name.strip():
        return None

    if "arguments" in obj:
        arguments = _normalize_arguments(obj["arguments"])
    else:
        arguments = {key: value for key, value in obj.items() if key != "name"}

    return ToolCall(name=name.strip(), arguments=arguments)


class ResponseParser:
    """Parses model output into an ordered, deduplicated list of tool calls."""

    def parse(self, text: str) -> List[ToolCall]:
        """Extract all tool calls from a model reply.

        Args:
            text: Raw model output

        Returns:
            Tool calls in priority-then-source order, possibly empty
        """
        if not text:
            return []

        self._warn_if_truncated(text)

        calls: List[ToolCall] = []
        for call in self._parse_fenced(text):
            self._append_unique(calls, call)
        for call in self._parse_objects(text):
            self._append_unique(calls, call)

        if not calls:
            call = self._parse_tagged(text)
            if call is not None:
                calls.append(call)

        return calls

    @staticmethod
    def _append_unique(calls: List[ToolCall], call: ToolCall) -> None:
        key = canonical_arguments(call.arguments)
        for existing in calls:
            if existing.name == call.name and canonical_arguments(existing.arguments) == key:
                return
        calls.append(call)

    @staticmethod
    def _warn_if_truncated(text: str) -> None:
        open_braces = text.count("{")
        close_braces = text.count("}")
        open_brackets = text.count("[")
        close_brackets = text.count("]")

        if open_braces > close_braces or open_brackets > close_brackets:
            logger.warning(
                f"Incomplete JSON detected, response may be truncated "
                f"({{:{open_braces}/}}:{close_braces}, [:{open_brackets}/]:{close_brackets})"
            )

    def _parse_fenced(self, text: str) -> Iterator[ToolCall]:
        search_start = 0
        while True:
            start = text.find(FENCE_MARKER, search_start)
            if start == -1:
                return

            body_start = start + len(FENCE_MARKER)
            end = text.find(FENCE_END, body_start)
            if end != -1:
                call = tool_call_from_object(_load_json(text[body_start:end].strip()))
                if call is not None:
                    yield call

            search_start = body_start

    def _parse_objects(self, text: str) -> Iterator[ToolCall]:
        for start, end in iter_json_objects(text):
            call = tool_call_from_object(_load_json(text[start:end]))
            if call is not None:
                yield call

    def _parse_tagged(self, text: str) -> Optional[ToolCall]:
        """Loose tag form: tool name after the last <arg_value> marker."""
        marker = text.rfind(TAG_MARKER)
        if marker == -1:
            return None

        after = text[marker + len(TAG_MARKER):]
        end = after.find("<")
        name = (after[:end] if end != -1 else after).strip()
        if not name or "{" in name:
            return None

        return ToolCall(name=name, arguments=self._tagged_arguments(text[:marker]))

    @staticmethod
    def _tagged_arguments(fragment: str) -> Any:
        """Arguments from the JSON fragment preceding the tag marker."""
        brace = fragment.find("{")
        if brace == -1:
            return {}

        for start, end in iter_json_objects(fragment, brace):
            if start == brace:
                obj = _load_json(fragment[start:end])
                if isinstance(obj, dict) and "arguments" in obj:
                    return _normalize_arguments(obj["arguments"])
            break

        # The enclosing object is often left open; look for the arguments value itself
        key = fragment.find('"arguments"', brace)
        if key != -1:
            value_start = fragment.find("{", key)
            if value_start != -1:
                for start, end in iter_json_objects(fragment, value_start):
                    obj = _load_json(fragment[start:end])
                    if isinstance(obj, dict):
                        return obj
                    break

        return {}
