"""
Session budget: the single authority on tool-call count and wall-clock time

Two independent exhaustion conditions, checked at two points:
- before every reasoning call (exhausted_reason): either one forces termination
- before every non-terminal tool dispatch (refusal_reason): the call is refused
  and the reasoning step is told to finish with a terminal tool
"""

import time
from collections.abc import Callable

from ppc_advisor.agent.schemas import AgentConfig

FINISH_NOW = "You must call submit_recommendations or skip_recommendations now."


class SessionBudget:
    def __init__(self, config: AgentConfig, clock: Callable[[], float] = time.monotonic):
        self.config = config
        self._clock = clock
        self._start: float | None = None
        self.tool_calls = 0

    def start(self) -> None:
        self._start = self._clock()

    @property
    def elapsed_seconds(self) -> float:
        return self._clock() - self._start if self._start is not None else 0.0

    @property
    def time_remaining(self) -> float:
        return self.config.timeout_seconds - self.elapsed_seconds

    def record_call(self) -> None:
        self.tool_calls += 1

    def exhausted_reason(self) -> str | None:
        """Checked at the top of every turn"""
        if self.elapsed_seconds > self.config.timeout_seconds:
            return "Time budget exceeded"
        if self.tool_calls >= self.config.max_tool_calls:
            return "Tool call budget exceeded"
        return None

    def refusal_reason(self) -> str | None:
        """Checked before each non-terminal tool; None means the call may run"""
        if self.tool_calls >= self.config.max_tool_calls:
            return f"Tool call budget exceeded. {FINISH_NOW}"
        if self.time_remaining < self.config.tool_time_reserve_seconds:
            return f"Time budget nearly exceeded. {FINISH_NOW}"
        return None

    def to_dict(self) -> dict:
        return {
            "tool_calls": self.tool_calls,
            "max_tool_calls": self.config.max_tool_calls,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "timeout_seconds": self.config.timeout_seconds,
        }
