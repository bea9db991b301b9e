"""
Unit tests for tool-call recovery from model text.

WHAT: Strict tags, damaged tags, bare JSON, repair heuristics, failures
WHY: Text-only models are the least reliable path into side-effecting tools
HOW: parse_tool_call / repair_json on hand-written model outputs
"""

import json

import pytest

from supplyscout.agents.tool_call_parser import (
    ParsedToolCall,
    load_tool_arguments,
    parse_tool_call,
    repair_json,
)
from supplyscout.utils.exceptions import ToolCallParseError

ORDER_ARGS = {
    "supplier_email": "sales@acme.example",
    "supplier_name": "Acme Fasteners",
    "part_number": "HB-M8",
    "quantity": 500,
    "price": 0.39,
}
ORDER_CALL = ParsedToolCall(name="place_order", arguments=ORDER_ARGS)


@pytest.mark.unit
class TestStrictTags:

    def test_extracted_from_noisy_text(self):
        payload = json.dumps({"name": "place_order", "arguments": ORDER_ARGS})
        text = f"Sure, placing it now.\n<tool_call>\n{payload}\n</tool_call>\nLet me know!"
        assert parse_tool_call(text) == ORDER_CALL

    @pytest.mark.parametrize("prefix,suffix", [
        ("", ""),
        ("I'll do that. ", ""),
        ("", " Done."),
        ("Thinking...\n\n", "\n\n(awaiting result)"),
    ])
    def test_surrounding_prose_does_not_matter(self, prefix, suffix):
        payload = json.dumps({"name": "place_order", "arguments": ORDER_ARGS})
        assert parse_tool_call(f"{prefix}<tool_call>{payload}</tool_call>{suffix}") == ORDER_CALL

    def test_only_first_call_is_extracted(self):
        first = json.dumps({"name": "find_suppliers", "arguments": {"part_description": "bolt"}})
        second = json.dumps({"name": "search_parts_catalog", "arguments": {}})
        result = parse_tool_call(f"<tool_call>{first}</tool_call><tool_call>{second}</tool_call>")
        assert result.name == "find_suppliers"

    def test_arguments_given_as_json_string(self):
        text = '<tool_call>{"name": "find_suppliers", "arguments": "{\\"part_description\\": \\"bolt\\"}"}</tool_call>'
        assert parse_tool_call(text) == ParsedToolCall("find_suppliers", {"part_description": "bolt"})

    def test_null_arguments_become_empty(self):
        assert parse_tool_call('<tool_call>{"name": "search_parts_catalog", "arguments": null}</tool_call>') == (
            ParsedToolCall("search_parts_catalog", {})
        )


@pytest.mark.unit
class TestMalformedTags:

    def test_missing_leading_t_in_opener(self):
        text = '<ool_call>{"name": "find_suppliers", "arguments": {"part_description": "bolt"}}</tool_call>'
        assert parse_tool_call(text).name == "find_suppliers"

    def test_closed_by_second_opener(self):
        text = '<tool_call>{"name": "find_suppliers", "arguments": {"part_description": "bolt"}}<tool_call>'
        assert parse_tool_call(text).arguments == {"part_description": "bolt"}

    def test_missing_closing_tag(self):
        text = 'Calling now <tool_call>{"name": "find_suppliers", "arguments": {"part_description": "bolt"}}'
        assert parse_tool_call(text).name == "find_suppliers"

    def test_missing_closing_tag_with_trailing_prose(self):
        text = '<tool_call>{"name": "find_suppliers", "arguments": {"part_description": "bolt"}} thanks'
        assert parse_tool_call(text).arguments == {"part_description": "bolt"}

    def test_truncated_object_is_closed(self):
        text = '<tool_call>{"name": "find_suppliers", "arguments": {"part_description": "bolt"'
        assert parse_tool_call(text) == ParsedToolCall("find_suppliers", {"part_description": "bolt"})


@pytest.mark.unit
class TestRepair:

    def test_broken_variant_matches_strict_result(self):
        broken = (
            "<tool_call>{name: 'place_order', arguments: {supplier_email: 'sales@acme.example', "
            "supplier_name: 'Acme Fasteners', part_number: 'HB-M8', quantity: 500, price: 0.39,},}"
        )
        assert parse_tool_call(broken) == ORDER_CALL

    def test_single_quotes(self):
        text = "<tool_call>{'name': 'find_suppliers', 'arguments': {'part_description': 'washer'}}</tool_call>"
        assert parse_tool_call(text).arguments == {"part_description": "washer"}

    def test_trailing_commas(self):
        text = '<tool_call>{"name": "search_parts_catalog", "arguments": {"search_term": "grease",},}</tool_call>'
        assert parse_tool_call(text).arguments == {"search_term": "grease"}

    def test_repair_json_trims_to_outer_braces(self):
        assert json.loads(repair_json('noise {"a": 1} more noise')) == {"a": 1}

    def test_repair_json_quotes_bare_keys(self):
        assert json.loads(repair_json("{a: 1, b_c: {d: 'x'}}")) == {"a": 1, "b_c": {"d": "x"}}


@pytest.mark.unit
class TestBareJsonFallback:

    def test_bare_object_with_name_key(self):
        text = 'I will search: {"name": "search_parts_catalog", "arguments": {"search_term": "bolt"}}'
        assert parse_tool_call(text) == ParsedToolCall("search_parts_catalog", {"search_term": "bolt"})

    def test_object_without_name_is_not_a_call(self):
        assert parse_tool_call('Here is some data: {"price": 12}') is None

    def test_plain_text_is_not_a_call(self):
        assert parse_tool_call("The best price is $0.39 per unit from Acme.") is None

    @pytest.mark.parametrize("text", ["", None])
    def test_empty_input(self, text):
        assert parse_tool_call(text) is None


@pytest.mark.unit
class TestParseFailures:

    def test_missing_arguments_raises_with_raw(self):
        text = '<tool_call>{"name": "place_order"}</tool_call>'
        with pytest.raises(ToolCallParseError) as exc_info:
            parse_tool_call(text)
        assert exc_info.value.raw == '{"name": "place_order"}'

    def test_missing_name_raises(self):
        with pytest.raises(ToolCallParseError):
            parse_tool_call('<tool_call>{"arguments": {"a": 1}}</tool_call>')

    def test_non_object_arguments_raise(self):
        with pytest.raises(ToolCallParseError):
            parse_tool_call('<tool_call>{"name": "place_order", "arguments": [1, 2]}</tool_call>')

    def test_unrecoverable_json_raises(self):
        with pytest.raises(ToolCallParseError):
            parse_tool_call('<tool_call>{"name": "find_suppliers", "arguments": {"x": ][}}</tool_call>')


@pytest.mark.unit
class TestLoadToolArguments:

    def test_structured_arguments(self):
        assert load_tool_arguments('{"part_description": "bolt"}') == {"part_description": "bolt"}

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_empty_arguments(self, raw):
        assert load_tool_arguments(raw) == {}

    def test_list_is_rejected(self):
        with pytest.raises(ToolCallParseError):
            load_tool_arguments("[1, 2]")
