"""
Unit tests for the chat service.

WHAT: Turn ordering per session and transport failures inside a turn
WHY: The webhook notifier and the user can both start a turn on one session
HOW: A slow scripted provider run concurrently; respx for the real HTTP provider
"""

import asyncio
import logging

import httpx
import pytest
import respx

from supplyscout.core.session_manager import session_manager
from supplyscout.llm.openai_provider import OpenAIProvider
from supplyscout.llm.types import LLMResult, ProviderUnavailableError
from supplyscout.services.chat_service import ChatService

from fixtures.mock_llm import MockLLMProvider

OPENAI_URL = "https://llm.test/v1"


class SlowEchoProvider(MockLLMProvider):
    """Replies "reply-<prompt>" after a pause, yielding to other tasks."""

    async def generate(self, messages, *, temperature, max_tokens, stop=None, model=None, tools=None):
        self.calls.append({"method": "generate", "messages": messages, "model": model})
        prompt = messages[-1]["content"]
        await asyncio.sleep(0.05)
        return LLMResult(text=f"reply-{prompt}", usage={}, model=model or "mock-model")


@pytest.mark.unit
class TestTurnOrdering:

    @pytest.mark.asyncio
    async def test_concurrent_turns_run_one_after_another(self, use_provider):
        provider = use_provider(SlowEchoProvider())
        service = ChatService()

        await asyncio.gather(
            service.send_message("s1", "first"),
            service.send_message("s1", "second", system_origin=True),
        )

        state = session_manager.get_state("s1")
        assert [(m.role, m.content) for m in state.messages] == [
            ("user", "first"),
            ("assistant", "reply-first"),
            ("user", "second"),
            ("assistant", "reply-second"),
        ]
        assert state.messages[2].is_system_notification is True
        assert state.is_processing is False
        # The second turn saw the completed first exchange
        second_prompt = [m["content"] for m in provider.calls[1]["messages"]]
        assert "reply-first" in second_prompt

    @pytest.mark.asyncio
    async def test_other_sessions_are_not_blocked(self, use_provider):
        use_provider(SlowEchoProvider())
        service = ChatService()

        await asyncio.gather(
            service.send_message("s1", "alpha"),
            service.send_message("s2", "beta"),
        )

        assert [m.content for m in session_manager.get_state("s1").messages] == ["alpha", "reply-alpha"]
        assert [m.content for m in session_manager.get_state("s2").messages] == ["beta", "reply-beta"]


@pytest.mark.unit
class TestTransportFailures:

    @pytest.mark.asyncio
    @respx.mock
    async def test_dropped_connection_becomes_error_reply(self, use_provider):
        respx.post(f"{OPENAI_URL}/chat/completions").mock(side_effect=httpx.ReadError("connection reset"))
        use_provider(OpenAIProvider(api_key="sk-test", base_url=OPENAI_URL, max_retries=1, retry_delay=0))

        state = await ChatService().send_message("s2", "hello")

        assert [m.role for m in state.messages] == ["user", "assistant"]
        assert state.messages[-1].content.startswith("Error calling AI")
        assert "ReadError" in state.messages[-1].content
        assert state.is_processing is False


@pytest.mark.unit
class TestTurnOutcome:

    @pytest.mark.asyncio
    async def test_preview_turn_is_reported(self, caplog):
        caplog.set_level(logging.INFO, logger="supplyscout.services.chat_service")

        state = await ChatService().send_message("s3", "hello")

        assert state.messages[-1].content.startswith("AI not configured")
        assert "(preview: True, failed: False, tools: 0)" in caplog.text

    @pytest.mark.asyncio
    async def test_failed_turn_is_reported(self, use_provider, caplog):
        caplog.set_level(logging.INFO, logger="supplyscout.services.chat_service")
        use_provider(MockLLMProvider([ProviderUnavailableError("down")]))

        state = await ChatService().send_message("s3", "hello")

        assert state.messages[-1].content == "Error calling AI: down"
        assert "(preview: False, failed: True, tools: 0)" in caplog.text
