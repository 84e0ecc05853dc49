"""
Tool base class + standardized result

BaseTool contract:
1. name / description / params_model: the tool schema (generated from Pydantic, no hand-written dicts)
2. execute: takes validated params + the session GuardrailContext, returns a ToolResult

ToolResult:
- status: "success" | "error"
- data: tool-specific payload
- error: error description (only when status="error")
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel

from ppc_advisor.guardrails.schemas import GuardrailContext


class ToolName(str, Enum):
    """Closed set of tools offered to the reasoning step"""

    CHECK_SIGNAL_BUS = "check_signal_bus"
    GET_HISTORICAL_PERFORMANCE = "get_historical_performance"
    CHECK_REALLOCATION_IMPACT = "check_reallocation_impact"
    EVALUATE_RECOMMENDATION = "evaluate_recommendation"
    SUBMIT_RECOMMENDATIONS = "submit_recommendations"
    SKIP_RECOMMENDATIONS = "skip_recommendations"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_TOOLS


TERMINAL_TOOLS = frozenset({ToolName.SUBMIT_RECOMMENDATIONS, ToolName.SKIP_RECOMMENDATIONS})


@dataclass
class ToolResult:
    """Standardized tool execution result"""

    status: str  # "success" | "error"
    data: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    def to_dict(self) -> dict:
        """Payload fed back to the reasoning step (and kept in the call log)"""
        if self.status == "error":
            return {"error": self.error}
        return dict(self.data)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)

    @classmethod
    def success(cls, **data: Any) -> "ToolResult":
        return cls(status="success", data=data)

    @classmethod
    def fail(cls, error: str) -> "ToolResult":
        return cls(status="error", error=error)


@dataclass(frozen=True)
class ToolCallRecord:
    """One entry of the session's append-only tool call log"""

    tool_name: str
    input: dict
    output: dict
    duration_ms: int

    def to_dict(self) -> dict:
        return {
            "tool_name": self.tool_name,
            "input": self.input,
            "output": self.output,
            "duration_ms": self.duration_ms,
        }


def clamp_days(value: Any, default: int, upper: int) -> int:
    """Missing / zero / unparsable -> default, otherwise clamped to [1, upper]"""
    if isinstance(value, bool):
        return default
    try:
        days = int(float(value))
    except (TypeError, ValueError):
        return default
    if days == 0:
        return default
    return max(1, min(days, upper))


def _strip_titles(node: Any) -> Any:
    """Drop the "title" keys Pydantic adds to every model / property"""
    if isinstance(node, dict):
        return {
            k: _strip_titles(v)
            for k, v in node.items()
            if not (k == "title" and isinstance(v, str))
        }
    if isinstance(node, list):
        return [_strip_titles(v) for v in node]
    return node


class BaseTool(ABC):
    """All tools inherit from this"""

    @property
    @abstractmethod
    def name(self) -> ToolName:
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """Tool description (read by the LLM)"""
        ...

    @property
    @abstractmethod
    def params_model(self) -> type[BaseModel]:
        """Pydantic parameter model, source of the JSON schema"""
        ...

    @abstractmethod
    async def execute(self, params: BaseModel, context: GuardrailContext) -> ToolResult:
        ...

    @property
    def terminal(self) -> bool:
        return self.name.is_terminal

    def parse(self, args: dict) -> BaseModel:
        """Strict validation of raw arguments (raises pydantic.ValidationError)"""
        return self.params_model.model_validate(args)

    def schema(self) -> dict:
        """OpenAI function calling tool schema"""
        json_schema = _strip_titles(self.params_model.model_json_schema())

        parameters = {
            "type": "object",
            "properties": json_schema.get("properties", {}),
            "required": json_schema.get("required", []),
        }
        if "$defs" in json_schema:
            parameters["$defs"] = json_schema["$defs"]

        return {
            "type": "function",
            "function": {
                "name": self.name.value,
                "description": self.description,
                "parameters": parameters,
            },
        }
