"""
Observer: cross-turn state tracking for one session

- iteration count
- append-only tool call log
- budget (SessionBudget) and the stop check built on it
"""

import time
from collections.abc import Callable

import structlog

from ppc_advisor.agent.budget import SessionBudget
from ppc_advisor.agent.schemas import AgentConfig, ThinkResult
from ppc_advisor.tools.base import ToolCallRecord

log = structlog.get_logger()


class Observer:
    """State tracking + stop decisions"""

    def __init__(self, config: AgentConfig, clock: Callable[[], float] = time.monotonic):
        self.config = config
        self.budget = SessionBudget(config, clock=clock)
        self.iterations = 0
        self.tool_calls: list[ToolCallRecord] = []

    def start(self) -> None:
        self.budget.start()

    def next_turn(self) -> None:
        self.iterations += 1

    def should_stop(self) -> tuple[bool, str | None]:
        """Returns (stop, reason); checked before every reasoning call"""
        reason = self.budget.exhausted_reason()
        if reason:
            log.warning(
                "Session budget exhausted",
                reason=reason,
                iterations=self.iterations,
                **self.budget.to_dict(),
            )
            return True, reason
        return False, None

    def on_think(self, result: ThinkResult) -> None:
        log.debug(
            "Reasoning turn finished",
            iteration=self.iterations,
            tool_calls=[tc.name for tc in result.tool_calls],
            finish_reason=result.finish_reason,
            malformed=result.malformed,
        )

    def on_tool(self, record: ToolCallRecord) -> None:
        self.tool_calls.append(record)
        self.budget.record_call()

    def on_refused(self, tool_name: str, reason: str) -> None:
        log.info("Tool call refused", tool=tool_name, reason=reason, iteration=self.iterations)
