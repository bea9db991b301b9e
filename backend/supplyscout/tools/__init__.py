"""
Assistant tools.

Exports the registry and the tool base types used by the orchestrator.
"""

from .base import Tool, ToolContext, is_tool_error, tool_error
from .registry import PluginToolResolver, ToolRegistry, build_default_registry, get_tool_registry

__all__ = [
    "Tool",
    "ToolContext",
    "ToolRegistry",
    "PluginToolResolver",
    "build_default_registry",
    "get_tool_registry",
    "is_tool_error",
    "tool_error",
]
