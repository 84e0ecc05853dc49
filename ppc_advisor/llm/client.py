"""
Thin LLM client on top of LiteLLM

Wraps the async call and hides provider differences. The reasoning service
can fail at any time, so every failure is converted into LLMError.
"""

import time
from dataclasses import dataclass, field
from typing import Any

import structlog
from litellm import acompletion
from litellm.exceptions import (
    APIConnectionError,
    APIError,
    AuthenticationError,
    RateLimitError,
    Timeout,
)

from ppc_advisor.config import get_settings
from ppc_advisor.observability.metrics import LLM_CALL_DURATION

log = structlog.get_logger()


class LLMError(Exception):
    """Application-level LLM failure"""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


@dataclass
class LLMResponse:
    """Result of one LLM call"""

    content: str  # text output
    model: str  # model actually used
    usage: dict  # {"prompt_tokens": ..., "completion_tokens": ..., "total_tokens": ...}
    finish_reason: str
    tool_calls_raw: list[Any] = field(default_factory=list)  # provider tool call objects, OpenAI shape


class LLMClient:
    """Single entry point for reasoning calls"""

    def __init__(
        self,
        default_model: str | None = None,
        api_key: str | None = None,
        api_base: str | None = None,
        timeout: int | None = None,
        max_tokens: int | None = None,
    ):
        settings = get_settings()
        self.default_model = default_model or settings.LLM_DEFAULT_MODEL
        self.api_key = api_key or settings.LLM_API_KEY
        self.api_base = api_base or settings.LLM_API_BASE
        self.timeout = timeout or settings.LLM_TIMEOUT
        self.max_tokens = max_tokens or settings.LLM_MAX_TOKENS

    async def chat_with_tools(
        self,
        messages: list[dict],
        tools: list[dict],
        model: str | None = None,
        temperature: float = 0.0,
    ) -> LLMResponse:
        """
        Non-streaming call with tool definitions.

        Args:
            messages: OpenAI-format message list (system prompt first)
            tools: OpenAI function calling schemas
            model: model name, default model when omitted
        """
        use_model = model or self.default_model

        kwargs: dict = {
            "model": use_model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": self.max_tokens,
            "timeout": self.timeout,
            "tools": tools,
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base

        log.debug("LLM tool call started", model=use_model, msg_count=len(messages), tools_count=len(tools))
        start = time.perf_counter()

        try:
            response = await acompletion(**kwargs)
        except AuthenticationError as e:
            log.error("LLM authentication failed", model=use_model, error=str(e))
            raise LLMError(f"LLM authentication failed, check the API key: {e}", cause=e) from e
        except RateLimitError as e:
            log.warning("LLM rate limited", model=use_model, error=str(e))
            raise LLMError(f"LLM rate limited: {e}", cause=e) from e
        except Timeout as e:
            log.warning("LLM call timed out", model=use_model, timeout=self.timeout)
            raise LLMError(f"LLM call timed out ({self.timeout}s): {e}", cause=e) from e
        except APIConnectionError as e:
            log.error("LLM connection failed", model=use_model, error=str(e))
            raise LLMError(f"LLM connection failed: {e}", cause=e) from e
        except APIError as e:
            log.error("LLM API error", model=use_model, error=str(e))
            raise LLMError(f"LLM API error: {e}", cause=e) from e
        except Exception as e:
            log.error("LLM unexpected error", model=use_model, error=str(e), exc_info=True)
            raise LLMError(f"LLM call failed: {e}", cause=e) from e
        finally:
            LLM_CALL_DURATION.labels(model=use_model).observe((time.perf_counter() - start) * 1000)

        choice = response.choices[0]
        usage = response.usage

        result = LLMResponse(
            content=choice.message.content or "",
            model=response.model or use_model,
            usage={
                "prompt_tokens": usage.prompt_tokens if usage else 0,
                "completion_tokens": usage.completion_tokens if usage else 0,
                "total_tokens": usage.total_tokens if usage else 0,
            },
            finish_reason=choice.finish_reason or "stop",
            tool_calls_raw=list(choice.message.tool_calls or []),
        )

        log.debug(
            "LLM tool call finished",
            model=result.model,
            tokens=result.usage.get("total_tokens", 0),
            finish_reason=result.finish_reason,
            tool_calls=len(result.tool_calls_raw),
        )

        return result
