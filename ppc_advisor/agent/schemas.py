"""
Recommendation loop data structures

Components talk through plain data structures only.
"""

from dataclasses import dataclass, field
from typing import Literal

from ppc_advisor.ads.schemas import AdPerformance, CampaignPerformance, KeywordPerformance, TodaySpend
from ppc_advisor.config import get_settings
from ppc_advisor.guardrails.schemas import Proposal
from ppc_advisor.tools.base import ToolCallRecord


# ── Runtime config ──


@dataclass(frozen=True)
class AgentConfig:
    """Session budgets, loaded from Settings so ops can override them per environment"""

    max_tool_calls: int = 5
    timeout_seconds: float = 30.0
    tool_time_reserve_seconds: float = 3.0

    def __post_init__(self):
        if self.max_tool_calls <= 0 or self.timeout_seconds <= 0:
            raise ValueError("max_tool_calls and timeout_seconds must be > 0")
        if not 0 <= self.tool_time_reserve_seconds < self.timeout_seconds:
            raise ValueError("tool_time_reserve_seconds must be >= 0 and below timeout_seconds")

    @classmethod
    def from_settings(cls) -> "AgentConfig":
        s = get_settings()
        return cls(
            max_tool_calls=s.AGENT_MAX_TOOL_CALLS,
            timeout_seconds=s.AGENT_TIMEOUT_SECONDS,
            tool_time_reserve_seconds=s.AGENT_TOOL_TIME_RESERVE_SECONDS,
        )


# ── Session input ──


@dataclass
class InitialFacts:
    """Account snapshot the session starts from (rendered into the prompt)"""

    campaigns: list[CampaignPerformance] = field(default_factory=list)
    keywords: list[KeywordPerformance] = field(default_factory=list)
    ads: list[AdPerformance] = field(default_factory=list)
    today_spend: TodaySpend = field(default_factory=TodaySpend)
    anomalies: list[str] = field(default_factory=list)
    guardrail_violations: list[str] = field(default_factory=list)
    allowed_actions: list[str] = field(default_factory=list)
    guardrails: list[dict] = field(default_factory=list)
    account: dict = field(default_factory=dict)


# ── Thinker output ──


@dataclass
class ToolCallRequest:
    """One tool call parsed from the LLM response"""

    id: str           # tool_call_id generated by the LLM
    name: str
    arguments: dict


@dataclass
class ThinkResult:
    """Output of one reasoning turn"""

    thought: str                                                 # response.content
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    usage: dict = field(default_factory=dict)
    finish_reason: str = "stop"
    malformed: str | None = None                                 # why the turn is unusable, if it is


# ── Loop output ──


@dataclass(frozen=True)
class LoopResult:
    """
    Tagged result of a session: action="submit" carries proposals + narrative,
    action="skip" carries skip_reason. Both carry the full tool call log.
    """

    action: Literal["submit", "skip"]
    investigation_summary: str
    iterations: int
    tool_calls: tuple[ToolCallRecord, ...] = ()
    proposals: tuple[Proposal, ...] = ()
    narrative: str = ""
    skip_reason: str | None = None
    forced: bool = False

    @property
    def tools_used(self) -> list[str]:
        """Distinct tool names, in first-use order"""
        return list(dict.fromkeys(c.tool_name for c in self.tool_calls))

    @classmethod
    def submit(
        cls,
        proposals: list[Proposal],
        narrative: str,
        investigation_summary: str,
        iterations: int,
        tool_calls: list[ToolCallRecord],
    ) -> "LoopResult":
        return cls(
            action="submit",
            proposals=tuple(proposals),
            narrative=narrative,
            investigation_summary=investigation_summary,
            iterations=iterations,
            tool_calls=tuple(tool_calls),
        )

    @classmethod
    def skip(
        cls,
        reason: str,
        investigation_summary: str,
        iterations: int,
        tool_calls: list[ToolCallRecord],
        forced: bool = False,
    ) -> "LoopResult":
        return cls(
            action="skip",
            skip_reason=reason,
            investigation_summary=investigation_summary,
            iterations=iterations,
            tool_calls=tuple(tool_calls),
            forced=forced,
        )

    @classmethod
    def forced_termination(cls, reason: str, iterations: int, tool_calls: list[ToolCallRecord]) -> "LoopResult":
        return cls.skip(
            reason=f"Forced termination: {reason}",
            investigation_summary=(
                f"Agent was forced to terminate after {iterations} iterations and "
                f"{len(tool_calls)} tool calls. Reason: {reason}"
            ),
            iterations=iterations,
            tool_calls=tool_calls,
            forced=True,
        )

    def to_dict(self) -> dict:
        return {
            "action": self.action,
            "proposals": [p.model_dump() for p in self.proposals],
            "narrative": self.narrative,
            "investigation_summary": self.investigation_summary,
            "skip_reason": self.skip_reason,
            "iterations": self.iterations,
            "tools_used": self.tools_used,
            "tool_calls": [c.to_dict() for c in self.tool_calls],
            "forced": self.forced,
        }
