"""
Tool-call recovery from raw model text.

WHAT: Extract one (tool name, arguments) pair from a text-only model response
WHY: Local models without native function calling emit <tool_call> blocks
     with broken tags, single quotes, bare keys and trailing commas
HOW: Strict tag regex -> malformed-tag regexes -> balanced JSON search,
     then strict json.loads with a repair pass as fallback

Expected format:
    <tool_call>{"name": "find_suppliers", "arguments": {"part_description": "hex bolt"}}</tool_call>
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Iterator

from ..utils.exceptions import ToolCallParseError
from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class ParsedToolCall:
    """Tool call recovered from model text."""
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


_STRICT_PATTERNS = [
    re.compile(r'<tool_call>\s*(\{.*?\})\s*</tool_call>', re.DOTALL),
]

# Tag damage seen in practice, most specific first
_MALFORMED_PATTERNS = [
    re.compile(r'<ool_call>\s*(\{.*?\})\s*</t?ool_call>', re.DOTALL),   # opener lost its "t"
    re.compile(r'<t?ool_call>\s*(\{.*?\})\s*<t?ool_call>', re.DOTALL),  # closed by a second opener
    re.compile(r'<t?ool_call>\s*(\{.*)', re.DOTALL),                    # no closing tag at all
]

_NAME_KEY = re.compile(r'["\']?name["\']?\s*:')
_TRAILING_COMMA = re.compile(r',\s*([}\]])')
_BARE_KEY = re.compile(r'([{,]\s*)([A-Za-z_][\w\-]*)\s*:')


def parse_tool_call(text: str | None) -> ParsedToolCall | None:
    """
    Recover the first tool call in a model response.

    Args:
        text: Raw assistant text

    Returns:
        ParsedToolCall, or None when the text contains no tool call

    Raises:
        ToolCallParseError: A candidate was found but lacks a usable name or
            arguments even after repair. The raw candidate is attached.
    """
    if not text:
        return None

    for pattern in _STRICT_PATTERNS + _MALFORMED_PATTERNS:
        match = pattern.search(text)
        if match:
            candidate = match.group(1)
            logger.debug(f"Tool call candidate matched {pattern.pattern!r}")
            return _to_tool_call(load_json_lenient(candidate), candidate)

    # Last resort: a bare JSON object carrying a "name" key
    first_named = None
    for candidate in _iter_json_objects(text):
        if not _NAME_KEY.search(candidate):
            continue
        first_named = first_named or candidate
        try:
            data = load_json_lenient(candidate)
        except ToolCallParseError:
            continue
        if isinstance(data, dict) and "name" in data:
            return _to_tool_call(data, candidate)

    if first_named is not None:
        raise ToolCallParseError("Found a tool-like object but could not parse it", first_named)
    return None


def load_tool_arguments(raw: str | None) -> dict[str, Any]:
    """
    Decode a structured tool call's arguments string.

    Raises:
        ToolCallParseError: If the arguments are not a JSON object
    """
    if raw is None or not raw.strip():
        return {}
    data = load_json_lenient(raw)
    if not isinstance(data, dict):
        raise ToolCallParseError("Tool arguments must be a JSON object", raw)
    return data


def load_json_lenient(raw: str) -> Any:
    """
    json.loads, then json.loads after repair_json.

    Raises:
        ToolCallParseError: Both attempts failed
    """
    try:
        return json.loads(raw.strip())
    except json.JSONDecodeError:
        pass

    repaired = repair_json(raw)
    try:
        data = json.loads(repaired)
    except json.JSONDecodeError as e:
        logger.warning(f"Tool call JSON unrecoverable: {e} | raw={raw[:500]!r}")
        raise ToolCallParseError(f"Invalid tool call JSON: {e}", raw) from e

    logger.info("Tool call JSON recovered after repair")
    return data


def repair_json(raw: str) -> str:
    """
    Apply the repair heuristics to a JSON-ish string.

    Trim to the outermost braces, close unbalanced brackets, drop trailing
    commas, turn single quotes into double quotes, quote bare property names.
    """
    start = raw.find("{")
    if start == -1:
        return raw
    end = raw.rfind("}")
    text = raw[start:end + 1] if end > start else raw[start:]

    text = text.replace("'", '"')
    text = _BARE_KEY.sub(r'\1"\2":', text)
    text = _close_brackets(text)
    text = _TRAILING_COMMA.sub(r'\1', text)
    return text


def _close_brackets(text: str) -> str:
    """Append whatever closing braces/brackets a truncated object is missing."""
    stack: list[str] = []
    in_string = False
    escaped = False
    for char in text:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in "{[":
            stack.append("}" if char == "{" else "]")
        elif char in "}]" and stack and stack[-1] == char:
            stack.pop()
    if in_string:
        text += '"'
    return text + "".join(reversed(stack))


def _iter_json_objects(text: str) -> Iterator[str]:
    """Yield every balanced {...} substring, in order of its opening brace."""
    for start, char in enumerate(text):
        if char != "{":
            continue
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            current = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif current == "\\":
                    escaped = True
                elif current == '"':
                    in_string = False
                continue
            if current == '"':
                in_string = True
            elif current == "{":
                depth += 1
            elif current == "}":
                depth -= 1
                if depth == 0:
                    yield text[start:index + 1]
                    break


def _to_tool_call(data: Any, raw: str) -> ParsedToolCall:
    if not isinstance(data, dict):
        raise ToolCallParseError("Tool call is not a JSON object", raw)

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ToolCallParseError("Tool call is missing a name", raw)

    if "arguments" not in data:
        raise ToolCallParseError(f"Tool call '{name}' is missing arguments", raw)

    arguments = data["arguments"]
    if isinstance(arguments, str):
        arguments = load_tool_arguments(arguments)
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        raise ToolCallParseError(f"Arguments for '{name}' must be an object", raw)

    return ParsedToolCall(name=name.strip(), arguments=arguments)
