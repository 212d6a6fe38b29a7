"""Tests for core/llm.py."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from core.llm import (
    AnthropicClient,
    ModelChainExhausted,
    ModelInvoker,
    OpenAICompatibleClient,
    create_llm_client,
)
from core.types import ModelConfig, Provider

PROVIDERS = {
    "alpha": Provider("alpha", "https://alpha.example/v1", "ALPHA_API_KEY"),
    "beta": Provider("beta", "https://beta.example/v1", "BETA_API_KEY"),
}

CHAIN = (
    ModelConfig("alpha", "alpha-large"),
    ModelConfig("beta", "beta-small"),
)


class ScriptedClient:
    def __init__(self, provider: Provider, outcomes: dict):
        self.provider = provider
        self.outcomes = outcomes
        self.calls = []

    async def complete(self, model, system_prompt, user_message, temperature, max_tokens):
        self.calls.append(model)
        outcome = self.outcomes[model]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def make_invoker(outcomes: dict, api_keys=None):
    created = []

    def factory(provider, api_key, timeout):
        client = ScriptedClient(provider, outcomes)
        created.append(client)
        return client

    invoker = ModelInvoker(
        api_keys=api_keys if api_keys is not None else {"ALPHA_API_KEY": "a", "BETA_API_KEY": "b"},
        providers=PROVIDERS,
        client_factory=factory,
    )
    return invoker, created


async def test_first_model_answers():
    invoker, _ = make_invoker({"alpha-large": "primary answer", "beta-small": "unused"})
    result = await invoker.invoke("market_analyst", "sys", "question", CHAIN)

    assert result.content == "primary answer"
    assert result.provider == "alpha"
    assert result.fallback_level == 0
    assert not result.fallback


async def test_falls_back_after_failure():
    invoker, _ = make_invoker({"alpha-large": RuntimeError("rate limited"), "beta-small": "fallback answer"})
    result = await invoker.invoke("market_analyst", "sys", "question", CHAIN)

    assert result.content == "fallback answer"
    assert result.model == "beta-small"
    assert result.fallback_level == 1
    assert [log.success for log in invoker.call_log] == [False, True]


async def test_missing_key_counts_as_failed_attempt():
    invoker, created = make_invoker({"beta-small": "from beta"}, api_keys={"BETA_API_KEY": "b"})
    result = await invoker.invoke("risk_assessor", "sys", "question", CHAIN)

    assert result.provider == "beta"
    assert len(created) == 1
    assert "ALPHA_API_KEY not configured" in invoker.call_log[0].error


async def test_exhausted_chain_raises_with_every_error():
    invoker, _ = make_invoker({"alpha-large": RuntimeError("down"), "beta-small": RuntimeError("also down")})
    with pytest.raises(ModelChainExhausted) as exc_info:
        await invoker.invoke("financial_analyst", "sys", "question", CHAIN)

    assert exc_info.value.role_id == "financial_analyst"
    assert len(exc_info.value.errors) == 2
    assert "also down" in str(exc_info.value)


async def test_empty_chain_raises():
    invoker, _ = make_invoker({})
    with pytest.raises(ModelChainExhausted):
        await invoker.invoke("copilot", "sys", "question", ())


async def test_unknown_provider_is_a_failed_attempt():
    invoker, _ = make_invoker({"beta-small": "ok"})
    chain = (ModelConfig("nowhere", "ghost"), ModelConfig("beta", "beta-small"))
    result = await invoker.invoke("copilot", "sys", "question", chain)
    assert result.fallback_level == 1


async def test_clients_are_reused_per_provider():
    invoker, created = make_invoker({"alpha-large": "one"})
    await invoker.invoke("a", "sys", "q", CHAIN[:1])
    await invoker.invoke("b", "sys", "q", CHAIN[:1])
    assert len(created) == 1
    assert created[0].calls == ["alpha-large", "alpha-large"]


def test_create_llm_client_picks_sdk():
    with patch("openai.AsyncOpenAI") as openai_cls:
        client = create_llm_client(PROVIDERS["alpha"], "key", timeout=5)
    assert isinstance(client, OpenAICompatibleClient)
    openai_cls.assert_called_once_with(api_key="key", base_url="https://alpha.example/v1", timeout=5)

    with patch("anthropic.AsyncAnthropic"):
        client = create_llm_client(Provider("claude", "", "ANTHROPIC_API_KEY", sdk="anthropic"), "key")
    assert isinstance(client, AnthropicClient)

    with pytest.raises(ValueError):
        create_llm_client(Provider("odd", "", "ODD_KEY", sdk="grpc"), "key")


async def test_openai_compatible_client_sends_system_and_user_messages():
    with patch("openai.AsyncOpenAI") as openai_cls:
        client = OpenAICompatibleClient("key", "https://alpha.example/v1")
    create = AsyncMock(return_value=SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content="答案"))]
    ))
    openai_cls.return_value.chat.completions.create = create

    assert await client.complete("m", "system", "user") == "答案"
    messages = create.call_args.kwargs["messages"]
    assert messages == [{"role": "system", "content": "system"}, {"role": "user", "content": "user"}]


async def test_anthropic_client_joins_text_blocks():
    with patch("anthropic.AsyncAnthropic") as anthropic_cls:
        client = AnthropicClient("key")
    anthropic_cls.return_value.messages.create = AsyncMock(return_value=SimpleNamespace(
        content=[SimpleNamespace(text="第一段"), MagicMock(spec=[]), SimpleNamespace(text="第二段")]
    ))

    assert await client.complete("claude", "system", "user") == "第一段第二段"
    kwargs = anthropic_cls.return_value.messages.create.call_args.kwargs
    assert kwargs["system"] == "system"
