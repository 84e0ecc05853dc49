"""
Thinker: one LLM call + strict response parsing

In function-calling ReAct the "think" and the "act" decision come from the
same call:
- content = thought
- tool_calls = the chosen tools

Parsing is strict. Structured tool calls are preferred; only when there are
none is the text searched for a JSON object that validates against a
terminal tool input (submit first, then skip). An unreachable LLM or
unparsable tool arguments mark the turn malformed instead of raising.
"""

import json
import re

import structlog
from pydantic import BaseModel, ValidationError

from ppc_advisor.agent.schemas import ThinkResult, ToolCallRequest
from ppc_advisor.llm.client import LLMClient, LLMError
from ppc_advisor.tools.base import ToolName
from ppc_advisor.tools.builtin_tools.terminal import SkipRecommendationsInput, SubmitRecommendationsInput

log = structlog.get_logger()

_FENCED = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)

_TERMINAL_FALLBACK: tuple[tuple[ToolName, type[BaseModel]], ...] = (
    (ToolName.SUBMIT_RECOMMENDATIONS, SubmitRecommendationsInput),
    (ToolName.SKIP_RECOMMENDATIONS, SkipRecommendationsInput),
)


class MalformedToolCall(ValueError):
    pass


def _parse_arguments(name: str, raw) -> dict:
    if isinstance(raw, dict):
        return raw
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return {}
    try:
        args = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise MalformedToolCall(f"Malformed arguments for tool {name}: {e}") from e
    if not isinstance(args, dict):
        raise MalformedToolCall(f"Arguments for tool {name} must be a JSON object")
    return args


def terminal_call_from_text(text: str) -> ToolCallRequest | None:
    """Fallback: a terminal payload written as JSON text (optionally fenced)"""
    if not text:
        return None
    candidates = _FENCED.findall(text)
    stripped = text.strip()
    if stripped.startswith("{") and stripped.endswith("}"):
        candidates.append(stripped)

    for candidate in candidates:
        try:
            obj = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if not isinstance(obj, dict):
            continue
        for tool_name, model in _TERMINAL_FALLBACK:
            try:
                model.model_validate(obj)
            except ValidationError:
                continue
            return ToolCallRequest(id="text_fallback", name=tool_name.value, arguments=obj)
    return None


class Thinker:
    """LLM call + response parsing"""

    def __init__(self, llm: LLMClient):
        self.llm = llm

    async def think(self, messages: list[dict], tool_schemas: list[dict]) -> ThinkResult:
        try:
            response = await self.llm.chat_with_tools(messages=messages, tools=tool_schemas)
        except LLMError as e:
            log.warning("Reasoning step unavailable", error=str(e))
            return ThinkResult(thought="", malformed=f"Reasoning step unavailable: {e}")

        thought = response.content or ""
        try:
            tool_calls = self._parse_tool_calls(response.tool_calls_raw)
        except MalformedToolCall as e:
            log.warning("Malformed tool call in reasoning output", error=str(e))
            return ThinkResult(
                thought=thought,
                usage=response.usage,
                finish_reason=response.finish_reason,
                malformed=str(e),
            )

        if not tool_calls:
            fallback = terminal_call_from_text(thought)
            if fallback is not None:
                log.info("Terminal call recovered from text", tool=fallback.name)
                tool_calls = [fallback]

        return ThinkResult(
            thought=thought,
            tool_calls=tool_calls,
            usage=response.usage,
            finish_reason=response.finish_reason,
        )

    @staticmethod
    def _parse_tool_calls(raw_tool_calls) -> list[ToolCallRequest]:
        """
        raw_tool_calls are the litellm objects:
        - id: str
        - function.name: str
        - function.arguments: str (JSON)
        """
        result: list[ToolCallRequest] = []
        for i, tc in enumerate(raw_tool_calls or []):
            name = tc.function.name
            result.append(ToolCallRequest(
                id=tc.id or f"call_{i}",
                name=name,
                arguments=_parse_arguments(name, tc.function.arguments),
            ))
        return result
