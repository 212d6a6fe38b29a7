"""
Model invocation with fallback across a role's model chain.

Most backends speak the OpenAI chat-completions protocol at their own base
URL; Claude is reached through the Anthropic SDK.

Usage:
    from core.llm import ModelInvoker

    invoker = ModelInvoker(api_keys=config.api_keys)
    result = await invoker.invoke("market_analyst", prompt, question, role.models)
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .roles import PROVIDERS
from .types import CallResult, ModelConfig, Provider

logger = logging.getLogger(__name__)

MAX_CALL_LOG = 500


class ModelCallError(Exception):
    """A single backend in a chain failed."""

    def __init__(self, model: str, message: str):
        self.model = model
        super().__init__(f"[{model}] {message}")


class ModelChainExhausted(Exception):
    """Every backend in a role's chain failed."""

    def __init__(self, role_id: str, errors: List[str]):
        self.role_id = role_id
        self.errors = errors
        super().__init__(f"All models failed for {role_id}: {'; '.join(errors) or 'empty chain'}")


class OpenAICompatibleClient:
    """Chat client for any backend exposing /chat/completions."""

    def __init__(self, api_key: str, base_url: str, timeout: float = 30.0):
        from openai import AsyncOpenAI

        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout)

    async def complete(
        self,
        model: str,
        system_prompt: str,
        user_message: str,
        temperature: float = 0.7,
        max_tokens: int = 4096,
    ) -> str:
        response = await self.client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
        )
        return response.choices[0].message.content or ""


class AnthropicClient:
    """Chat client for Claude."""

    def __init__(self, api_key: str, base_url: Optional[str] = None, timeout: float = 30.0):
        from anthropic import AsyncAnthropic

        if base_url:
            self.client = AsyncAnthropic(api_key=api_key, base_url=base_url, timeout=timeout)
        else:
            self.client = AsyncAnthropic(api_key=api_key, timeout=timeout)

    async def complete(
        self,
        model: str,
        system_prompt: str,
        user_message: str,
        temperature: float = 0.7,
        max_tokens: int = 4096,
    ) -> str:
        response = await self.client.messages.create(
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            system=system_prompt,
            messages=[{"role": "user", "content": user_message}],
        )
        return "".join(block.text for block in response.content if hasattr(block, "text"))


def create_llm_client(provider: Provider, api_key: str, timeout: float = 30.0) -> Any:
    """Create the chat client matching a provider's SDK."""
    if provider.sdk == "anthropic":
        return AnthropicClient(api_key=api_key, base_url=provider.base_url, timeout=timeout)
    if provider.sdk == "openai":
        return OpenAICompatibleClient(api_key=api_key, base_url=provider.base_url, timeout=timeout)
    raise ValueError(f"Unknown provider SDK: {provider.sdk}")


@dataclass
class CallLog:
    role_id: str
    model: str
    provider: str
    success: bool
    latency_ms: int
    error: Optional[str] = None
    fallback_level: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role_id": self.role_id,
            "model": self.model,
            "provider": self.provider,
            "success": self.success,
            "latency_ms": self.latency_ms,
            "error": self.error,
            "fallback_level": self.fallback_level,
        }


class ModelInvoker:
    """Tries a model chain in priority order and returns the first success."""

    def __init__(
        self,
        api_keys: Optional[Mapping[str, str]] = None,
        providers: Optional[Mapping[str, Provider]] = None,
        client_factory: Callable[[Provider, str, float], Any] = create_llm_client,
        timeout: float = 30.0,
        temperature: float = 0.7,
        max_tokens: int = 4096,
    ):
        self.api_keys = dict(api_keys or {})
        self.providers = dict(providers or PROVIDERS)
        self.client_factory = client_factory
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._clients: Dict[Tuple[str, str], Any] = {}
        self.call_log: List[CallLog] = []

    def _record(self, entry: CallLog) -> None:
        self.call_log.append(entry)
        if len(self.call_log) > MAX_CALL_LOG:
            del self.call_log[: len(self.call_log) - MAX_CALL_LOG]

    def _client_for(self, provider: Provider, api_key: str) -> Any:
        key = (provider.name, api_key)
        if key not in self._clients:
            self._clients[key] = self.client_factory(provider, api_key, self.timeout)
        return self._clients[key]

    async def _call(self, model_config: ModelConfig, system_prompt: str, user_message: str) -> str:
        provider = self.providers.get(model_config.provider)
        if provider is None:
            raise ModelCallError(model_config.display_name, f"unknown provider {model_config.provider}")

        api_key = self.api_keys.get(provider.api_key_env)
        if not api_key:
            raise ModelCallError(model_config.display_name, f"{provider.api_key_env} not configured")

        client = self._client_for(provider, api_key)
        try:
            return await client.complete(
                model=model_config.model,
                system_prompt=system_prompt,
                user_message=user_message,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except Exception as e:
            raise ModelCallError(model_config.display_name, str(e)) from e

    async def invoke(
        self,
        role_id: str,
        system_prompt: str,
        user_message: str,
        model_chain: Sequence[ModelConfig],
    ) -> CallResult:
        """
        Call each model of the chain until one succeeds.

        Raises:
            ModelChainExhausted: when every entry failed (or the chain is empty)
        """
        errors: List[str] = []

        for level, model_config in enumerate(model_chain):
            start_time = time.time()
            try:
                content = await self._call(model_config, system_prompt, user_message)
            except ModelCallError as e:
                latency_ms = int((time.time() - start_time) * 1000)
                errors.append(str(e))
                self._record(CallLog(
                    role_id, model_config.model, model_config.provider,
                    success=False, latency_ms=latency_ms, error=str(e), fallback_level=level,
                ))
                logger.warning("Model call failed for %s: %s", role_id, e)
                continue

            latency_ms = int((time.time() - start_time) * 1000)
            self._record(CallLog(
                role_id, model_config.model, model_config.provider,
                success=True, latency_ms=latency_ms, fallback_level=level,
            ))
            if level > 0:
                logger.info("%s answered by fallback #%d %s", role_id, level, model_config.display_name)
            logger.info("%s <- %s (%d ms)", role_id, model_config.display_name, latency_ms)
            return CallResult(
                content=content,
                model=model_config.model,
                provider=model_config.provider,
                latency_ms=latency_ms,
                fallback_level=level,
            )

        raise ModelChainExhausted(role_id, errors)
