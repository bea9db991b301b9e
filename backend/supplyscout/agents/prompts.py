"""
Prompt templates for the procurement assistant.

WHAT: The system prompt, the text-mode tool instructions and the
      follow-up prompts used after tools run or replies arrive
WHY: One canonical workflow policy for every provider
HOW: Template strings; render_* helpers return ChatMessage lists
"""

import json
from typing import List

from ..core.config import settings
from ..llm.types import ChatMessage
from ..models.chat import Message, ToolInvocation
from ..tools.registry import ToolRegistry
from ..utils.history_truncation import format_tool_call, truncate_conversation_history


SYSTEM_PROMPT = """You are SupplyScout, an autonomous procurement agent.

Core mandate: be proactive. Run the procurement workflow yourself using tools instead of asking the user to do it.

Available tools:
{tool_list}

Procurement workflow:
1. When the user needs a part, call find_suppliers first to locate suppliers from purchase history
2. When two or more suppliers are found, contact them together with send_bulk_procurement_request
   (use send_supplier_email only for a single supplier)
3. Tell the user replies are tracked automatically and they will be notified as quotes arrive
4. When replies arrive or the user asks about them, call get_supplier_responses to compare prices
5. Present the comparison clearly: "Best price: Supplier X at $Y per unit"
6. Offer to place the order; call place_order only after the user confirms

Rules:
- Always gather data with tools before drawing conclusions
- Never invent suppliers, prices or order numbers
- If a tool returns an error, explain it plainly and suggest what to do next
- Use search_parts_catalog when the user is unsure of a part name"""


TOOL_FORMAT_PROMPT = """Tool definitions:

{tool_schemas}

Tool usage format:
When you need a tool, respond with exactly one block and nothing else:
<tool_call>
{{"name": "tool_name", "arguments": {{"param1": "value1"}}}}
</tool_call>

Use double quotes for all JSON keys and strings. Call at most one tool per response."""


SUMMARY_PROMPT = """The user asked: "{user_text}"

You gathered this data using tools:
{tool_results}

Now answer the user based on this data. Be concise and professional. Do not call any more tools."""


ANALYSIS_PROMPT = (
    "New supplier quotes arrived for \"{part_description}\". "
    "Review all supplier responses received so far, compare the prices and recommend the best option."
)


def render_system_prompt(registry: ToolRegistry, include_tool_format: bool) -> str:
    """
    System prompt for one turn.

    Text-only providers also get the full tool schemas and the
    <tool_call> format, since nothing else tells them how to call tools.
    """
    tool_list = "\n".join(
        f"- {name}: {registry.get(name).description}" for name in registry.names
    )
    prompt = SYSTEM_PROMPT.format(tool_list=tool_list)
    if include_tool_format:
        prompt += "\n\n" + TOOL_FORMAT_PROMPT.format(tool_schemas=registry.describe_for_prompt())
    return prompt


def render_turn_messages(
    system_prompt: str,
    history: List[Message],
    user_text: str
) -> List[ChatMessage]:
    """System prompt, then the recent flattened history, then the new user message."""
    recent = truncate_conversation_history(
        history,
        max_messages=settings.HISTORY_WINDOW,
        max_chars=settings.HISTORY_MAX_CHARS,
    )
    return [
        {"role": "system", "content": system_prompt},
        *recent,
        {"role": "user", "content": user_text},
    ]


def render_tool_results(invocations: List[ToolInvocation]) -> str:
    blocks = []
    for invocation in invocations:
        blocks.append(
            f"Tool: {invocation.name}\n"
            f"Arguments: {json.dumps(invocation.arguments, default=str)}\n"
            f"Result: {json.dumps(invocation.result, default=str)}"
        )
    return "\n\n".join(blocks)


def render_summary_messages(
    turn_messages: List[ChatMessage],
    user_text: str,
    invocations: List[ToolInvocation]
) -> List[ChatMessage]:
    """Turn context plus the tool traffic, asking for a final answer."""
    calls = "\n".join(format_tool_call(i.name, i.arguments) for i in invocations)
    return [
        *turn_messages,
        {"role": "assistant", "content": calls},
        {
            "role": "user",
            "content": SUMMARY_PROMPT.format(
                user_text=user_text,
                tool_results=render_tool_results(invocations),
            ),
        },
    ]


def render_analysis_prompt(part_description: str) -> str:
    return ANALYSIS_PROMPT.format(part_description=part_description)
