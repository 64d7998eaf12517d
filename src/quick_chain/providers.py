"""Completion provider adapters."""

from __future__ import annotations

import logging
import os
from typing import Awaitable, Callable

import anyio
import httpx
from pydantic_ai import Agent
from pydantic_ai.exceptions import ModelHTTPError, UnexpectedModelBehavior
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.openai import OpenAIProvider
from pydantic_ai.settings import ModelSettings

from quick_chain.errors import ProviderError, ProviderErrorKind
from quick_chain.models.model_spec import ModelSpec

logger = logging.getLogger(__name__)

CONTENT_FILTER_MARKERS = ("content_filter", "content filter", "content_policy", "content policy")
TIMEOUT_STATUS_CODES = frozenset({408, 504})


class CompletionProvider:
    """
    Wraps one remote text-generation call.
    Subclasses implement ``complete``; ``invoke`` adds the timeout and error classification.
    """

    async def complete(self, prompt: str) -> str:
        raise NotImplementedError("CompletionProvider.complete must be implemented by subclasses.")

    def classify_error(self, exc: Exception) -> ProviderError:
        return ProviderError(ProviderErrorKind.UNKNOWN, f"{type(exc).__name__}: {exc}")

    async def invoke(self, prompt: str, timeout: float) -> str:
        try:
            with anyio.fail_after(timeout):
                return await self.complete(prompt)
        except ProviderError:
            raise
        except TimeoutError as exc:
            raise ProviderError(ProviderErrorKind.TIMEOUT, f"No completion within {timeout:.2f}s") from exc
        except Exception as exc:
            error = self.classify_error(exc)
            logger.debug("Provider call failed with %s", error.kind.value, exc_info=True)
            raise error from exc


class FunctionProvider(CompletionProvider):
    """In-process provider backed by an async callable."""

    def __init__(self, func: Callable[[str], Awaitable[str]]) -> None:
        self._func = func

    async def complete(self, prompt: str) -> str:
        return await self._func(prompt)


class PydanticAIProvider(CompletionProvider):
    def __init__(self, model_spec: ModelSpec, *, instructions: str = "") -> None:
        self.model_spec: ModelSpec = model_spec
        self.model: OpenAIChatModel = build_model(model_spec)
        self.model_settings: ModelSettings = build_model_settings(model_spec)
        self._instructions: str = instructions

    def _normalize_instructions(self) -> str | None:
        if self._instructions:
            return self._instructions
        return None

    async def complete(self, prompt: str) -> str:
        # A fresh agent per call keeps concurrent invocations independent.
        agent = Agent(
            self.model,
            instructions=self._normalize_instructions(),
            output_type=str,
            model_settings=self.model_settings,
        )
        result = await agent.run(prompt)
        return result.output

    def classify_error(self, exc: Exception) -> ProviderError:
        return classify_provider_exception(exc)


def classify_provider_exception(exc: Exception) -> ProviderError:
    message = f"{type(exc).__name__}: {exc}"
    if isinstance(exc, ModelHTTPError):
        status = exc.status_code
        if status == 429:
            return ProviderError(ProviderErrorKind.RATE_LIMITED, message)
        if status in TIMEOUT_STATUS_CODES:
            return ProviderError(ProviderErrorKind.TIMEOUT, message)
        if status >= 500:
            return ProviderError(ProviderErrorKind.TRANSIENT_NETWORK, message)
        if _mentions_content_filter(f"{exc} {exc.body}"):
            return ProviderError(ProviderErrorKind.CONTENT_FILTERED, message)
        return ProviderError(ProviderErrorKind.UNKNOWN, message)
    if isinstance(exc, httpx.TimeoutException):
        return ProviderError(ProviderErrorKind.TIMEOUT, message)
    if isinstance(exc, httpx.TransportError):
        return ProviderError(ProviderErrorKind.TRANSIENT_NETWORK, message)
    if isinstance(exc, UnexpectedModelBehavior) and _mentions_content_filter(str(exc)):
        return ProviderError(ProviderErrorKind.CONTENT_FILTERED, message)
    return ProviderError(ProviderErrorKind.UNKNOWN, message)


def _mentions_content_filter(text: str) -> bool:
    lowered = text.lower()
    return any(marker in lowered for marker in CONTENT_FILTER_MARKERS)


def build_model(model_spec: ModelSpec) -> OpenAIChatModel:
    api_key = os.environ.get(model_spec.api_key_env, "noop")
    provider = OpenAIProvider(base_url=model_spec.base_url, api_key=api_key)
    return OpenAIChatModel(model_spec.model_name, provider=provider)


def build_model_settings(model_spec: ModelSpec) -> ModelSettings:
    settings: ModelSettings = {
        "temperature": model_spec.temperature,
        "max_tokens": model_spec.max_tokens,
    }
    return settings
