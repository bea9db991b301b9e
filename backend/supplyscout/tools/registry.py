"""
Tool registry and executor.

WHAT: Look up tools by name, publish their definitions, run them safely
WHY: The model may name any tool with any arguments; nothing it sends may
     crash a turn
HOW: Validate arguments with the tool's pydantic model, execute, and map
     every failure to a tagged error result. Names not registered here go
     to a pluggable resolver.
"""

import json
import time
from typing import Any, Iterable, Protocol

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from ..utils.exceptions import EmailDeliveryError, EmailNotConfiguredError
from ..utils.logger import get_logger
from .base import Tool, ToolContext, tool_error
from .procurement_tools import PROCUREMENT_TOOLS

logger = get_logger(__name__)


class PluginToolResolver(Protocol):
    """Fallback for tool names the registry does not know."""

    async def resolve(self, name: str, arguments: dict[str, Any], context: ToolContext) -> dict[str, Any]:
        ...


class UnknownToolResolver:
    """Default resolver: every unknown name is an error."""

    async def resolve(self, name: str, arguments: dict[str, Any], context: ToolContext) -> dict[str, Any]:
        return tool_error(f"Unknown tool: {name}", "unknown_tool")


class ToolRegistry:
    """
    Named collection of tools.

    Usage:
        registry = ToolRegistry([FindSuppliersTool()])
        result = await registry.execute("find_suppliers", {"part_description": "bolt"}, context)
    """

    def __init__(self, tools: Iterable[Tool], plugin_resolver: PluginToolResolver | None = None):
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            if tool.name in self._tools:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            self._tools[tool.name] = tool
        self.plugin_resolver = plugin_resolver or UnknownToolResolver()

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def definitions(self) -> list[dict[str, Any]]:
        """OpenAI-style tool definitions for providers with native tool calling."""
        return [tool.definition() for tool in self._tools.values()]

    def describe_for_prompt(self) -> str:
        """Plain-text tool catalogue for providers without native tool calling."""
        blocks = []
        for tool in self._tools.values():
            schema = json.dumps(tool.parameters_schema(), indent=2)
            blocks.append(f"### {tool.name}\n{tool.description}\nParameters:\n{schema}")
        return "\n\n".join(blocks)

    def injected_fields(self, name: str) -> tuple[str, ...]:
        tool = self._tools.get(name)
        return tool.injected_fields if tool else ()

    async def execute(self, name: str, arguments: dict[str, Any] | None, context: ToolContext) -> dict[str, Any]:
        """
        Run one tool call.

        Never raises: validation, configuration, upstream and database
        failures come back as {"error", "error_type"} results so the model
        can explain them to the user.
        """
        arguments = arguments or {}
        tool = self._tools.get(name)
        if tool is None:
            logger.warning(f"Tool '{name}' not registered; delegating to plugin resolver")
            return await self.plugin_resolver.resolve(name, arguments, context)

        try:
            args = tool.Arguments.model_validate(arguments)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}" for err in e.errors()
            )
            logger.warning(f"Invalid arguments for {name}: {problems}")
            return tool_error(f"Invalid arguments for {name}: {problems}", "validation")

        start = time.perf_counter()
        try:
            result = await tool.execute(args, context)
        except EmailNotConfiguredError as e:
            logger.warning(f"Tool {name} needs email configuration: {e}")
            return tool_error(str(e), "configuration")
        except EmailDeliveryError as e:
            logger.error(f"Tool {name} email delivery failed: {e}")
            return tool_error(str(e), "upstream")
        except SQLAlchemyError as e:
            logger.error(f"Tool {name} database error: {e}")
            return tool_error(f"Database error while running {name}", "data")
        except Exception as e:
            logger.exception(f"Tool {name} failed unexpectedly")
            return tool_error(f"Tool {name} failed: {e}", "internal")

        elapsed_ms = (time.perf_counter() - start) * 1000
        outcome = "error" if isinstance(result, dict) and "error" in result else "ok"
        logger.info(f"Tool {name} finished in {elapsed_ms:.0f}ms ({outcome})")
        return result


def build_default_registry(plugin_resolver: PluginToolResolver | None = None) -> ToolRegistry:
    return ToolRegistry([tool_cls() for tool_cls in PROCUREMENT_TOOLS], plugin_resolver)


_registry: ToolRegistry | None = None


def get_tool_registry() -> ToolRegistry:
    """Process-wide registry of the procurement tools."""
    global _registry
    if _registry is None:
        _registry = build_default_registry()
    return _registry
