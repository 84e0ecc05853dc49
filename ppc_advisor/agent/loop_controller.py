"""
Recommendation loop: orchestrates Thinker -> ToolRegistry -> Observer

A budgeted state machine. Each turn:
1. stop check (time, tool calls) -> forced termination
2. think -> malformed output or no tool call -> forced termination
3. process tool calls in request order:
   - terminal tool: validate payload, build the LoopResult, ignore the rest of the turn
   - budget exhausted / time nearly out: refuse with an error payload, keep going
   - otherwise: execute, record, feed the result back
Every session ends in exactly one LoopResult; only cancellation propagates.
"""

import json
import time
from collections.abc import Callable, Sequence

import structlog
from pydantic import ValidationError

from ppc_advisor.agent.observer import Observer
from ppc_advisor.agent.prompts import build_initial_message, build_system_prompt
from ppc_advisor.agent.schemas import AgentConfig, InitialFacts, LoopResult, ThinkResult, ToolCallRequest
from ppc_advisor.agent.thinker import Thinker
from ppc_advisor.guardrails.schemas import GuardrailContext, GuardrailLimits
from ppc_advisor.llm.client import LLMClient
from ppc_advisor.observability.context import account_id_var, new_trace_id, trace_id_var
from ppc_advisor.observability.metrics import SESSION_TOTAL, TOOL_CALL_TOTAL
from ppc_advisor.tools.base import ToolName
from ppc_advisor.tools.builtin_tools.terminal import SkipRecommendationsInput, SubmitRecommendationsInput
from ppc_advisor.tools.registry import ToolRegistry

log = structlog.get_logger()

END_TURN_REASONS = ("stop", "end_turn")


class RecommendationLoop:
    """One investigation session per run() call"""

    def __init__(
        self,
        llm: LLMClient,
        tool_registry: ToolRegistry,
        config: AgentConfig | None = None,
        limits: GuardrailLimits | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.tool_registry = tool_registry
        self.config = config or AgentConfig.from_settings()
        self.limits = limits or GuardrailLimits.from_settings()
        self.thinker = Thinker(llm)
        self._clock = clock

    async def run(
        self,
        context: GuardrailContext,
        initial_facts: InitialFacts,
        history: Sequence = (),
    ) -> LoopResult:
        """
        Run one session for context.account_id.

        history: recent decisions (approved / rejected) shown to the reasoning step.
        """
        trace_id = trace_id_var.get() or new_trace_id()
        trace_token = trace_id_var.set(trace_id)
        account_token = account_id_var.set(context.account_id)
        try:
            with structlog.contextvars.bound_contextvars(trace_id=trace_id, account_id=context.account_id):
                result = await self._loop(context, initial_facts, history)
        finally:
            account_id_var.reset(account_token)
            trace_id_var.reset(trace_token)

        SESSION_TOTAL.labels(outcome=result.action, forced=str(result.forced).lower()).inc()
        return result

    async def _loop(
        self,
        context: GuardrailContext,
        facts: InitialFacts,
        history: Sequence,
    ) -> LoopResult:
        observer = Observer(self.config, clock=self._clock)
        observer.start()

        messages: list[dict] = [
            {"role": "system", "content": build_system_prompt(
                facts,
                max_tool_calls=self.config.max_tool_calls,
                timeout_seconds=self.config.timeout_seconds,
                budget_floor=self.limits.budget_floor_dollars,
                bid_cap=self.limits.bid_change_cap_pct,
            )},
            {"role": "user", "content": build_initial_message(facts, history)},
        ]
        tool_schemas = self.tool_registry.get_all_schemas()

        log.info(
            "Recommendation session started",
            max_tool_calls=self.config.max_tool_calls,
            timeout_seconds=self.config.timeout_seconds,
        )

        while True:
            observer.next_turn()

            # ── Stop check ──
            should_stop, reason = observer.should_stop()
            if should_stop:
                return self._forced(observer, reason)

            # ── Think ──
            think_result = await self.thinker.think(messages, tool_schemas)
            observer.on_think(think_result)

            if think_result.malformed:
                return self._forced(observer, think_result.malformed)

            if not think_result.tool_calls:
                if think_result.finish_reason in END_TURN_REASONS:
                    return self._forced(observer, "Agent ended without calling a terminal tool")
                return self._forced(observer, "No tool calls in response")

            # ── Act ──
            tool_messages: list[dict] = []
            for tc in think_result.tool_calls:
                if self.tool_registry.is_terminal(tc.name):
                    return self._terminal(observer, tc)

                refusal = observer.budget.refusal_reason()
                if refusal:
                    observer.on_refused(tc.name, refusal)
                    TOOL_CALL_TOTAL.labels(tool_name=tc.name, status="refused").inc()
                    tool_messages.append(self._tool_message(tc, {"error": refusal}))
                    continue

                result, record = await self.tool_registry.execute(tc.name, tc.arguments, context)
                observer.on_tool(record)
                tool_messages.append(self._tool_message(tc, result.to_dict()))

            messages.append(self._assistant_message(think_result))
            messages.extend(tool_messages)

    # ── Result builders ──

    def _terminal(self, observer: Observer, tc: ToolCallRequest) -> LoopResult:
        try:
            if tc.name == ToolName.SUBMIT_RECOMMENDATIONS.value:
                payload = SubmitRecommendationsInput.model_validate(tc.arguments)
                result = LoopResult.submit(
                    proposals=payload.proposals,
                    narrative=payload.narrative,
                    investigation_summary=payload.investigation_summary,
                    iterations=observer.iterations,
                    tool_calls=observer.tool_calls,
                )
            else:
                payload = SkipRecommendationsInput.model_validate(tc.arguments)
                result = LoopResult.skip(
                    reason=payload.reason,
                    investigation_summary=payload.investigation_summary,
                    iterations=observer.iterations,
                    tool_calls=observer.tool_calls,
                )
        except ValidationError as e:
            log.warning("Malformed terminal payload", tool=tc.name, errors=e.errors(include_url=False))
            return self._forced(observer, f"Malformed {tc.name} payload ({e.error_count()} validation errors)")

        log.info(
            "Recommendation session finished",
            action=result.action,
            proposals=len(result.proposals),
            iterations=result.iterations,
            tools_used=result.tools_used,
            elapsed_ms=int(observer.budget.elapsed_seconds * 1000),
        )
        return result

    @staticmethod
    def _forced(observer: Observer, reason: str) -> LoopResult:
        log.warning(
            "Recommendation session force-terminated",
            reason=reason,
            iterations=observer.iterations,
            tool_calls=len(observer.tool_calls),
        )
        return LoopResult.forced_termination(reason, observer.iterations, observer.tool_calls)

    @staticmethod
    def _tool_message(tc: ToolCallRequest, payload: dict) -> dict:
        return {
            "role": "tool",
            "tool_call_id": tc.id,
            "content": json.dumps(payload, ensure_ascii=False, default=str),
        }

    @staticmethod
    def _assistant_message(think_result: ThinkResult) -> dict:
        """Assistant message carrying tool_calls (OpenAI format)"""
        return {
            "role": "assistant",
            "content": think_result.thought,
            "tool_calls": [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {
                        "name": tc.name,
                        "arguments": json.dumps(tc.arguments, ensure_ascii=False),
                    },
                }
                for tc in think_result.tool_calls
            ],
        }
