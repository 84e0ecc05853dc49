"""
Tool registry: registration, schema export and execution dispatch

execute() is the ToolExecutor of the recommendation loop:
- dispatch is on the closed ToolName enum; unknown names become an error payload
- arguments are validated against the tool's Pydantic model before the call
- every call is timed and recorded, failures included
- tool exceptions become {"error": ...} payloads; cancellation propagates
"""

import asyncio
import time

import structlog
from pydantic import ValidationError

from ppc_advisor.guardrails.schemas import GuardrailContext
from ppc_advisor.observability.metrics import TOOL_CALL_DURATION, TOOL_CALL_TOTAL
from ppc_advisor.tools.base import BaseTool, ToolCallRecord, ToolName, ToolResult

log = structlog.get_logger()


def _validation_summary(e: ValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "<root>"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


class ToolRegistry:
    """Tool registry"""

    def __init__(self):
        self._tools: dict[ToolName, BaseTool] = {}

    def register(self, tool: BaseTool) -> None:
        self._tools[tool.name] = tool
        log.debug("Tool registered", tool=tool.name.value, terminal=tool.terminal)

    def get(self, name: str) -> BaseTool | None:
        try:
            return self._tools.get(ToolName(name))
        except ValueError:
            return None

    def has_tool(self, name: str) -> bool:
        return self.get(name) is not None

    def is_terminal(self, name: str) -> bool:
        tool = self.get(name)
        return tool is not None and tool.terminal

    def get_all_schemas(self) -> list[dict]:
        """OpenAI function calling schemas of every registered tool"""
        return [tool.schema() for tool in self._tools.values()]

    async def execute(
        self,
        name: str,
        arguments: dict,
        context: GuardrailContext,
    ) -> tuple[ToolResult, ToolCallRecord]:
        """
        Run one tool call and return (result, record).

        Never raises for tool-level problems: an unknown tool, invalid
        arguments or an exception inside the tool all come back as
        ToolResult.fail(...). Only asyncio.CancelledError propagates.
        """
        start = time.perf_counter()
        tool = self.get(name)

        if tool is None:
            result = ToolResult.fail(f"Unknown tool: {name}")
        else:
            try:
                params = tool.parse(arguments)
            except ValidationError as e:
                result = ToolResult.fail(f"Invalid arguments for {name}: {_validation_summary(e)}")
            else:
                try:
                    result = await tool.execute(params, context)
                except asyncio.CancelledError:
                    log.warning("Tool execution cancelled", tool=name)
                    raise
                except Exception as e:
                    log.error("Tool execution failed", tool=name, error=str(e), exc_info=True)
                    result = ToolResult.fail(f"Tool {name} failed: {e}")

        duration_ms = int((time.perf_counter() - start) * 1000)
        label = name if tool is not None else "unknown"
        TOOL_CALL_TOTAL.labels(tool_name=label, status=result.status).inc()
        TOOL_CALL_DURATION.labels(tool_name=label).observe(duration_ms)
        log.info("Tool executed", tool=name, status=result.status, duration_ms=duration_ms)

        record = ToolCallRecord(
            tool_name=name,
            input=dict(arguments),
            output=result.to_dict(),
            duration_ms=duration_ms,
        )
        return result, record

    @property
    def tool_names(self) -> list[str]:
        return [n.value for n in self._tools]

    @property
    def tool_count(self) -> int:
        return len(self._tools)
