"""
Unit Tests for LLM Module
=========================

Covers the client retry/error mapping and the AI delegate: prompt layout,
apology on failure and reply post-processing within the length budget.
"""

import asyncio
import re
from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock, patch

import pytest

from hejbot.database.json_store import RecentMessageStore
from hejbot.llm.ai_delegate import AI_APOLOGY, AIDelegate
from hejbot.llm.llm_client import (
    AnthropicClient, BaseLLMClient, LLMConfig, LLMProvider, LLMRequest,
    LLMResponse, Message, ModelError, OpenAIClient, RateLimitError,
    create_llm_client,
)

IDENTIFIER_RE = re.compile(r" \[[0-9a-f]{6}\]$")


def make_response(content):
    return LLMResponse(
        content=content,
        finish_reason="stop",
        model="test-model",
        usage={"total_tokens": 10},
        response_time=0.01,
        provider=LLMProvider.OPENAI,
    )


class ScriptedClient(BaseLLMClient):
    """Client whose _make_request results are scripted per call."""

    def __init__(self, results, max_retries=0):
        super().__init__(LLMConfig(
            provider=LLMProvider.OPENAI,
            model_name="test-model",
            max_retries=max_retries,
            retry_delay=0,
        ))
        self.results = list(results)
        self.calls = 0

    async def _make_request(self, request):
        self.calls += 1
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def recent_store(tmp_path):
    return RecentMessageStore(tmp_path / "recentMessages.json", max_messages=10)


class TestLLMClient:
    """Test the shared client behaviour."""

    @pytest.mark.asyncio
    async def test_single_request_by_default(self):
        client = ScriptedClient([RateLimitError("slow down")])
        request = LLMRequest(messages=[Message(role="user", content="hi")])

        with pytest.raises(RateLimitError):
            await client.complete(request)
        assert client.calls == 1

    @pytest.mark.asyncio
    async def test_retries_with_backoff(self):
        client = ScriptedClient([ConnectionError("reset"), make_response("ok")], max_retries=2)
        request = LLMRequest(messages=[Message(role="user", content="hi")])

        with patch("hejbot.llm.llm_client.asyncio.sleep", new=AsyncMock()) as sleep:
            response = await client.complete(request)

        assert response.content == "ok"
        assert client.calls == 2
        sleep.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unexpected_errors_become_model_errors(self):
        client = ScriptedClient([KeyError("boom")])
        request = LLMRequest(messages=[Message(role="user", content="hi")])

        with pytest.raises(ModelError):
            await client.complete(request)

    @pytest.mark.asyncio
    async def test_rejects_invalid_role(self):
        client = ScriptedClient([])
        request = LLMRequest(messages=[Message(role="robot", content="hi")])

        with pytest.raises(ModelError, match="Invalid message role"):
            await client.complete(request)
        assert client.calls == 0

    def test_factory_picks_provider(self):
        openai_client = create_llm_client(LLMConfig(
            provider=LLMProvider.OPENAI, model_name="gpt-4o-mini", api_key="sk-test",
        ))
        anthropic_client = create_llm_client(LLMConfig(
            provider=LLMProvider.ANTHROPIC, model_name="claude-3-5-haiku-latest", api_key="test",
        ))
        assert isinstance(openai_client, OpenAIClient)
        assert isinstance(anthropic_client, AnthropicClient)

    def test_missing_key_raises(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(ModelError, match="API key not provided"):
            OpenAIClient(LLMConfig(provider=LLMProvider.OPENAI, model_name="gpt-4o-mini"))

    def test_config_from_settings(self):
        settings = Mock(
            provider="anthropic", model_name="claude", api_key="", api_base=None,
            max_tokens=100, temperature=0.2, timeout=5, max_retries=1,
        )
        config = LLMConfig.from_settings(settings)
        assert config.provider == LLMProvider.ANTHROPIC
        assert config.api_key is None
        assert config.max_retries == 1


class TestPrompt:
    """Test prompt construction."""

    def test_prompt_contains_history_and_question(self, recent_store):
        stamp = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        recent_store.append("bob#twoblade.com", "anyone here?", timestamp=stamp)
        delegate = AIDelegate(Mock(), recent_store, bot_name="HejBot")

        prompt = delegate.build_prompt("alice#twoblade.com", "what's new?", recent_store.as_list())

        assert "You are HejBot" in prompt
        assert f"[{stamp.isoformat()}] bob#twoblade.com: anyone here?" in prompt
        assert prompt.endswith("alice#twoblade.com asks: what's new?")

    def test_prompt_without_history(self, recent_store):
        delegate = AIDelegate(Mock(), recent_store)
        assert "(no recent messages)" in delegate.build_prompt("a", "q", [])


class TestAnswer:
    """Test answering questions."""

    @pytest.mark.asyncio
    async def test_answer_postprocesses_reply(self, recent_store):
        client = Mock()
        client.complete = AsyncMock(return_value=make_response("**Hello** there"))
        delegate = AIDelegate(client, recent_store)

        reply = await delegate.answer("alice", "hi?")

        assert IDENTIFIER_RE.search(reply)
        assert reply.startswith("Hello there [")
        request = client.complete.call_args.args[0]
        assert len(request.messages) == 1
        assert request.messages[0].role == "user"
        assert request.user_id == "alice"

    @pytest.mark.asyncio
    async def test_failure_returns_apology(self, recent_store):
        client = Mock()
        client.complete = AsyncMock(side_effect=asyncio.TimeoutError())
        delegate = AIDelegate(client, recent_store)

        assert await delegate.answer("alice", "hi?") == AI_APOLOGY

    @pytest.mark.asyncio
    async def test_no_client_returns_apology(self, recent_store):
        delegate = AIDelegate(None, recent_store)
        assert await delegate.answer("alice", "hi?") == AI_APOLOGY

    @pytest.mark.asyncio
    async def test_apology_respects_small_budget(self, recent_store):
        client = Mock()
        client.complete = AsyncMock(side_effect=RuntimeError("boom"))

        for delegate in (AIDelegate(client, recent_store, max_reply_chars=20),
                         AIDelegate(None, recent_store, max_reply_chars=20)):
            reply = await delegate.answer("alice", "hi?")
            assert len(reply) <= 20
            assert reply.startswith("Sorry")
            assert reply.endswith("...")


class TestPostprocess:
    """Test reply clean-up and the length budget."""

    @pytest.fixture
    def delegate(self, recent_store):
        return AIDelegate(Mock(), recent_store, bot_name="HejBot", max_reply_chars=60)

    def test_strips_markup_and_labels(self, delegate):
        reply = delegate.postprocess('HejBot: "```python\nprint(1)\n```"')
        assert reply.startswith("print(1) [")

    def test_strips_assistant_label(self, delegate):
        assert delegate.postprocess("Assistant: sure").startswith("sure [")

    def test_replaces_echoed_identifier(self, delegate):
        reply = delegate.postprocess("hello [abc123]")
        assert reply.startswith("hello [")
        assert reply.count("[") == 1
        assert IDENTIFIER_RE.search(reply)

    def test_collapses_whitespace(self, delegate):
        assert delegate.postprocess("a \n\n  b\tc").startswith("a b c [")

    def test_truncates_within_budget(self, delegate):
        reply = delegate.postprocess("word " * 100)
        assert len(reply) <= 60
        body = IDENTIFIER_RE.sub("", reply)
        assert body.endswith("...")

    @pytest.mark.parametrize("length", [0, 1, 50, 51, 52, 500])
    def test_never_exceeds_budget(self, delegate, length):
        assert len(delegate.postprocess("x" * length)) <= 60

    def test_empty_reply_uses_apology(self, delegate):
        reply = delegate.postprocess("")
        assert len(reply) <= 60
        assert IDENTIFIER_RE.search(reply)

    def test_identifier_changes(self, delegate):
        with patch("hejbot.llm.ai_delegate.secrets.token_hex", side_effect=["aaaaaa", "bbbbbb"]):
            first = delegate.postprocess("same")
            second = delegate.postprocess("same")
        assert first == "same [aaaaaa]"
        assert second == "same [bbbbbb]"

    def test_budget_too_small(self, recent_store):
        with pytest.raises(ValueError):
            AIDelegate(Mock(), recent_store, max_reply_chars=12)
