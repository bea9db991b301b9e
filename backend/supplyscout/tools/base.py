"""
Tool base class and result helpers.

WHAT: Common shape for every tool the assistant can call
WHY: One schema drives both what the model sees and how input is validated
HOW: Each tool declares a pydantic Arguments model; its JSON schema is
     published to the model and the same model validates calls
"""

from dataclasses import dataclass
from typing import Any, ClassVar, Literal

from pydantic import BaseModel

from ..services.email_client import ResendEmailClient

ToolErrorType = Literal[
    "validation", "configuration", "upstream", "data", "not_found", "unknown_tool", "internal"
]

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def tool_error(message: str, error_type: ToolErrorType, **extra: Any) -> dict[str, Any]:
    """Tagged error result; tools never raise across the executor boundary."""
    return {"error": message, "error_type": error_type, **extra}


def is_tool_error(result: Any) -> bool:
    return isinstance(result, dict) and "error" in result and "error_type" in result


@dataclass
class ToolContext:
    """Per-call execution context."""
    session_id: str | None
    email_client: ResendEmailClient


class Tool:
    """
    Base class for assistant tools.

    Subclasses set name/description/Arguments and implement execute().
    Fields listed in injected_fields are filled in by the orchestrator and
    hidden from the model's view of the schema.
    """

    name: ClassVar[str] = ""
    description: ClassVar[str] = ""
    Arguments: ClassVar[type[BaseModel]] = BaseModel
    injected_fields: ClassVar[tuple[str, ...]] = ()

    def parameters_schema(self) -> dict[str, Any]:
        """JSON schema of the arguments as the model should see it."""
        schema = self.Arguments.model_json_schema()
        definitions = schema.pop("$defs", {})
        schema = _clean_schema(_inline_refs(schema, definitions))

        properties = schema.get("properties", {})
        for field_name in self.injected_fields:
            properties.pop(field_name, None)
        if "required" in schema:
            schema["required"] = [r for r in schema["required"] if r not in self.injected_fields]
            if not schema["required"]:
                del schema["required"]
        schema.setdefault("properties", {})
        return schema

    def definition(self) -> dict[str, Any]:
        """OpenAI function-calling tool definition."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters_schema(),
            },
        }

    async def execute(self, args: BaseModel, context: ToolContext) -> dict[str, Any]:
        raise NotImplementedError


def _inline_refs(node: Any, definitions: dict[str, Any]) -> Any:
    if isinstance(node, dict):
        ref = node.get("$ref")
        if isinstance(ref, str) and ref.startswith("#/$defs/"):
            target = definitions.get(ref.split("/")[-1], {})
            merged = {**target, **{k: v for k, v in node.items() if k != "$ref"}}
            return _inline_refs(merged, definitions)
        return {key: _inline_refs(value, definitions) for key, value in node.items()}
    if isinstance(node, list):
        return [_inline_refs(item, definitions) for item in node]
    return node


def _clean_schema(node: Any) -> Any:
    """Drop pydantic's auto-generated titles (property names stay intact)."""
    if isinstance(node, dict):
        cleaned = {}
        for key, value in node.items():
            if key == "title" and isinstance(value, str):
                continue
            if key == "properties" and isinstance(value, dict):
                cleaned[key] = {name: _clean_schema(sub) for name, sub in value.items()}
            else:
                cleaned[key] = _clean_schema(value)
        return cleaned
    if isinstance(node, list):
        return [_clean_schema(item) for item in node]
    return node
