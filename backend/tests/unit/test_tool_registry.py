"""
Unit tests for the tool registry.

WHAT: Definitions, prompt catalogue, executor error mapping, plugin fallback
WHY: No tool call from the model may crash a turn
HOW: Small throwaway Tool subclasses next to the real procurement tools
"""

from typing import Any

import pytest
from pydantic import BaseModel
from sqlalchemy.exc import OperationalError

from supplyscout.services.email_client import ResendEmailClient
from supplyscout.tools import Tool, ToolContext, ToolRegistry, build_default_registry
from supplyscout.utils.exceptions import EmailNotConfiguredError


class ExplodingTool(Tool):
    name = "explode"
    description = "Raises whatever it is told to."

    class Arguments(BaseModel):
        kind: str

    async def execute(self, args, context):
        if args.kind == "db":
            raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))
        if args.kind == "config":
            raise EmailNotConfiguredError("no key")
        raise RuntimeError("boom")


class EchoResolver:
    async def resolve(self, name: str, arguments: dict[str, Any], context: ToolContext) -> dict[str, Any]:
        return {"plugin": name, "arguments": arguments}


@pytest.fixture
def context():
    return ToolContext(session_id="s1", email_client=ResendEmailClient(api_key=""))


@pytest.mark.unit
class TestDefinitions:

    def test_default_registry_has_all_tools(self):
        registry = build_default_registry()
        assert registry.names == [
            "find_suppliers",
            "search_parts_catalog",
            "send_supplier_email",
            "send_bulk_procurement_request",
            "get_supplier_responses",
            "place_order",
        ]
        assert len(registry.definitions()) == 6

    def test_definition_shape(self):
        definition = build_default_registry().get("find_suppliers").definition()
        assert definition["type"] == "function"
        parameters = definition["function"]["parameters"]
        assert parameters["required"] == ["part_description"]
        assert "title" not in parameters

    def test_injected_session_id_is_hidden(self):
        registry = build_default_registry()
        schema = registry.get("send_bulk_procurement_request").parameters_schema()

        assert "session_id" not in schema["properties"]
        assert "session_id" not in schema.get("required", [])
        assert registry.injected_fields("send_bulk_procurement_request") == ("session_id",)
        assert registry.injected_fields("find_suppliers") == ()

    def test_nested_models_are_inlined(self):
        schema = build_default_registry().get("send_bulk_procurement_request").parameters_schema()
        items = schema["properties"]["suppliers"]["items"]
        assert "$ref" not in items
        assert set(items["properties"]) == {"email", "name"}

    def test_prompt_catalogue_lists_every_tool(self):
        text = build_default_registry().describe_for_prompt()
        assert "### find_suppliers" in text
        assert "### place_order" in text
        assert '"part_description"' in text

    def test_duplicate_names_rejected(self):
        with pytest.raises(ValueError):
            ToolRegistry([ExplodingTool(), ExplodingTool()])


@pytest.mark.unit
class TestExecute:

    @pytest.mark.asyncio
    async def test_unknown_tool(self, context):
        result = await build_default_registry().execute("launch_rocket", {}, context)
        assert result["error_type"] == "unknown_tool"
        assert "launch_rocket" in result["error"]

    @pytest.mark.asyncio
    async def test_plugin_resolver_receives_unknown_names(self, context):
        registry = ToolRegistry([ExplodingTool()], plugin_resolver=EchoResolver())
        assert await registry.execute("weather", {"city": "Oslo"}, context) == {
            "plugin": "weather", "arguments": {"city": "Oslo"}
        }

    @pytest.mark.asyncio
    async def test_missing_arguments_are_validation_errors(self, context):
        result = await build_default_registry().execute("find_suppliers", None, context)
        assert result["error_type"] == "validation"
        assert "part_description" in result["error"]

    @pytest.mark.asyncio
    async def test_blank_required_string_is_rejected(self, context):
        result = await build_default_registry().execute("find_suppliers", {"part_description": "   "}, context)
        assert result["error_type"] == "validation"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind,error_type", [
        ("db", "data"),
        ("config", "configuration"),
        ("other", "internal"),
    ])
    async def test_exceptions_become_tagged_errors(self, context, kind, error_type):
        registry = ToolRegistry([ExplodingTool()])
        result = await registry.execute("explode", {"kind": kind}, context)
        assert result["error_type"] == error_type
