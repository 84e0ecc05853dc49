import pytest

from conftest import NOW, FakeChangeLog, FakeClock, FakeLLM, FakeSignalStore, FakeSource, budget_row, llm_response, tool_call
from ppc_advisor.agent import AgentConfig, InitialFacts, RecommendationLoop
from ppc_advisor.guardrails.evaluator import GuardrailEvaluator
from ppc_advisor.guardrails.schemas import GuardrailLimits
from ppc_advisor.insights.historical import HistoricalPerformanceReader, HistoryPolicy
from ppc_advisor.insights.reallocation import ReallocationImpactAnalyzer, ReallocationPolicy
from ppc_advisor.llm.client import LLMError
from ppc_advisor.tools.builtin_tools import create_agent_registry

EVALUATE_ARGS = {"action_type": "pause_campaign", "action_detail": {"campaign_id": "222"}}
SKIP_ARGS = {"reason": "healthy account", "investigation_summary": "Metrics within targets, nothing to change."}
PROPOSAL = {
    "action_type": "adjust_bid",
    "action_summary": "Raise bid on meat processing software by 10%",
    "action_detail": {"criterion_id": "501", "ad_group_id": "701", "new_bid_micros": "2200000"},
    "reason": "CPA $40 vs $80 account average, impression share lost to rank",
    "risk_level": "Medium",
    "priority": 3,
}
SUBMIT_ARGS = {
    "proposals": [PROPOSAL],
    "narrative": "I found one under-bid strategic keyword and propose a small raise.",
    "investigation_summary": "Evaluated the bid change against the guardrails.",
}


def make_loop(
    llm, max_tool_calls=5, timeout_seconds=30.0, reserve_seconds=3.0, clock=None, source=None,
) -> RecommendationLoop:
    source = source or FakeSource(utilization=[budget_row("1", "Generic A"), budget_row("2", "Generic B")])
    change_log = FakeChangeLog()
    registry = create_agent_registry(
        source,
        change_log,
        FakeSignalStore(),
        evaluator=GuardrailEvaluator(GuardrailLimits()),
        historical=HistoricalPerformanceReader(source, change_log, policy=HistoryPolicy(), now=lambda: NOW),
        reallocation=ReallocationImpactAnalyzer(source, change_log, policy=ReallocationPolicy(), now=lambda: NOW),
    )
    return RecommendationLoop(
        llm,
        registry,
        config=AgentConfig(
            max_tool_calls=max_tool_calls,
            timeout_seconds=timeout_seconds,
            tool_time_reserve_seconds=reserve_seconds,
        ),
        limits=GuardrailLimits(),
        clock=clock or FakeClock(),
    )


@pytest.mark.anyio
async def test_healthy_account_skips_on_first_turn(context):
    llm = FakeLLM([llm_response(tool_call("skip_recommendations", SKIP_ARGS))])

    result = await make_loop(llm).run(context, InitialFacts())

    assert result.action == "skip"
    assert result.skip_reason == "healthy account"
    assert result.proposals == ()
    assert result.iterations == 1
    assert result.tool_calls == ()
    assert result.forced is False


@pytest.mark.anyio
async def test_investigate_then_submit(context):
    llm = FakeLLM([
        llm_response(tool_call("evaluate_recommendation", EVALUATE_ARGS, call_id="c1")),
        llm_response(tool_call("submit_recommendations", SUBMIT_ARGS)),
    ])

    result = await make_loop(llm).run(context, InitialFacts())

    assert result.action == "submit"
    assert result.forced is False
    assert result.iterations == 2
    assert len(result.proposals) == 1
    assert result.proposals[0].risk_level == "medium"
    assert result.narrative == SUBMIT_ARGS["narrative"]
    assert result.tools_used == ["evaluate_recommendation"]
    assert result.tool_calls[0].output == {"passes": True, "violations": [], "warnings": []}

    # the tool result was fed back before the second reasoning call
    second_call = llm.calls[1]
    assert second_call[-2]["role"] == "assistant"
    assert second_call[-2]["tool_calls"][0]["id"] == "c1"
    assert second_call[-1] == {
        "role": "tool",
        "tool_call_id": "c1",
        "content": '{"passes": true, "violations": [], "warnings": []}',
    }


@pytest.mark.anyio
async def test_empty_submit_is_a_no_op_submission(context):
    args = {
        "proposals": [],
        "narrative": "I checked the account and nothing needs to change this week.",
        "investigation_summary": "No anomalies in the snapshot.",
    }
    llm = FakeLLM([llm_response(tool_call("submit_recommendations", args))])

    result = await make_loop(llm).run(context, InitialFacts())

    assert result.action == "submit"
    assert result.forced is False
    assert result.proposals == ()
    assert result.narrative == args["narrative"]
    assert result.skip_reason is None


@pytest.mark.anyio
async def test_calls_after_terminal_call_are_not_executed(context):
    source = FakeSource(utilization=[budget_row("1", "Generic A"), budget_row("2", "Generic B")])
    llm = FakeLLM([
        llm_response(
            tool_call("skip_recommendations", SKIP_ARGS, call_id="c1"),
            tool_call("check_reallocation_impact", {"source_campaign_id": "1"}, call_id="c2"),
            tool_call("get_historical_performance", {"campaign_id": "1"}, call_id="c3"),
        ),
    ])

    result = await make_loop(llm, source=source).run(context, InitialFacts())

    assert result.action == "skip"
    assert result.forced is False
    assert result.tool_calls == ()
    assert source.utilization_calls == 0
    assert source.daily_calls == []
    assert len(llm.calls) == 1


@pytest.mark.anyio
async def test_calls_over_budget_are_refused_and_not_logged(context):
    llm = FakeLLM([
        llm_response(
            tool_call("evaluate_recommendation", EVALUATE_ARGS, call_id="c1"),
            tool_call("check_signal_bus", {"topic": "meat erp"}, call_id="c2"),
            tool_call("get_historical_performance", {"campaign_id": "111"}, call_id="c3"),
            tool_call("submit_recommendations", SUBMIT_ARGS, call_id="c4"),
        ),
    ])

    result = await make_loop(llm, max_tool_calls=2).run(context, InitialFacts())

    assert result.action == "submit"
    assert result.iterations == 1
    assert [c.tool_name for c in result.tool_calls] == ["evaluate_recommendation", "check_signal_bus"]


@pytest.mark.anyio
async def test_exhausted_budget_forces_termination(context):
    llm = FakeLLM([
        llm_response(
            tool_call("evaluate_recommendation", EVALUATE_ARGS, call_id="c1"),
            tool_call("check_signal_bus", {"topic": "meat erp"}, call_id="c2"),
            tool_call("check_signal_bus", {"topic": "dairy"}, call_id="c3"),
        ),
        llm_response(tool_call("skip_recommendations", SKIP_ARGS)),
    ])

    result = await make_loop(llm, max_tool_calls=2).run(context, InitialFacts())

    assert result.action == "skip"
    assert result.forced is True
    assert result.skip_reason == "Forced termination: Tool call budget exceeded"
    assert result.iterations == 2
    assert len(result.tool_calls) == 2
    # the reasoning step was never consulted again
    assert len(llm.calls) == 1
    assert result.investigation_summary == (
        "Agent was forced to terminate after 2 iterations and 2 tool calls. Reason: Tool call budget exceeded"
    )


@pytest.mark.anyio
async def test_budget_of_one_allows_a_single_call(context):
    llm = FakeLLM([
        llm_response(
            tool_call("evaluate_recommendation", EVALUATE_ARGS, call_id="c1"),
            tool_call("check_signal_bus", {"topic": "meat erp"}, call_id="c2"),
        ),
        llm_response(tool_call("skip_recommendations", SKIP_ARGS)),
    ])

    result = await make_loop(llm, max_tool_calls=1).run(context, InitialFacts())

    assert result.forced is True
    assert len(result.tool_calls) == 1


@pytest.mark.anyio
async def test_unknown_tool_counts_against_budget(context):
    llm = FakeLLM([
        llm_response(tool_call("delete_account", {})),
        llm_response(tool_call("skip_recommendations", SKIP_ARGS)),
    ])

    result = await make_loop(llm, max_tool_calls=1).run(context, InitialFacts())

    assert result.forced is True
    assert result.tool_calls[0].output == {"error": "Unknown tool: delete_account"}


@pytest.mark.anyio
async def test_reply_without_tool_call_is_forced_skip(context):
    llm = FakeLLM([llm_response(content="Everything looks fine to me.")])

    result = await make_loop(llm).run(context, InitialFacts())

    assert result.action == "skip"
    assert result.forced is True
    assert result.skip_reason == "Forced termination: Agent ended without calling a terminal tool"
    assert result.iterations == 1


@pytest.mark.anyio
async def test_truncated_reply_without_tool_call(context):
    llm = FakeLLM([llm_response(content="Let me look at", finish_reason="length")])

    result = await make_loop(llm).run(context, InitialFacts())

    assert result.skip_reason == "Forced termination: No tool calls in response"


@pytest.mark.anyio
async def test_reasoning_failure_is_forced_skip(context):
    llm = FakeLLM([LLMError("LLM connection failed: refused")])

    result = await make_loop(llm).run(context, InitialFacts())

    assert result.action == "skip"
    assert result.forced is True
    assert result.skip_reason.startswith("Forced termination: Reasoning step unavailable")


@pytest.mark.anyio
async def test_malformed_arguments_are_forced_skip(context):
    llm = FakeLLM([llm_response(tool_call("check_signal_bus", '{"topic": "meat'))])

    result = await make_loop(llm).run(context, InitialFacts())

    assert result.forced is True
    assert "Malformed arguments for tool check_signal_bus" in result.skip_reason
    assert result.tool_calls == ()


@pytest.mark.anyio
async def test_malformed_terminal_payload_is_forced_skip(context):
    bad = {"proposals": [{"action_type": "adjust_bid"}], "narrative": "x", "investigation_summary": "y"}
    llm = FakeLLM([llm_response(tool_call("submit_recommendations", bad))])

    result = await make_loop(llm).run(context, InitialFacts())

    assert result.action == "skip"
    assert result.forced is True
    assert result.skip_reason.startswith("Forced termination: Malformed submit_recommendations payload (")
    assert result.proposals == ()


@pytest.mark.anyio
async def test_terminal_payload_in_text_is_accepted(context):
    text = 'Nothing to do.\n```json\n{"reason": "healthy account", "investigation_summary": "all fine"}\n```'
    llm = FakeLLM([llm_response(content=text)])

    result = await make_loop(llm).run(context, InitialFacts())

    assert result.action == "skip"
    assert result.forced is False
    assert result.skip_reason == "healthy account"


class SlowLLM(FakeLLM):
    """Each reasoning call takes `seconds` on the fake clock"""

    def __init__(self, script, clock: FakeClock, seconds: float):
        super().__init__(script)
        self.clock = clock
        self.seconds = seconds

    async def chat_with_tools(self, messages, tools, model=None, temperature=0.0):
        self.clock.advance(self.seconds)
        return await super().chat_with_tools(messages, tools, model, temperature)


@pytest.mark.anyio
async def test_time_budget_refuses_tools_then_terminates(context):
    clock = FakeClock()
    llm = SlowLLM(
        [
            llm_response(tool_call("evaluate_recommendation", EVALUATE_ARGS)),
            llm_response(tool_call("skip_recommendations", SKIP_ARGS)),
        ],
        clock,
        seconds=31.0,
    )

    result = await make_loop(llm, clock=clock).run(context, InitialFacts())

    # the first reasoning call overran the budget: its tool is refused, the next turn stops
    assert result.forced is True
    assert result.skip_reason == "Forced termination: Time budget exceeded"
    assert result.tool_calls == ()
    assert result.iterations == 2


@pytest.mark.anyio
async def test_terminal_call_still_accepted_inside_time_reserve(context):
    clock = FakeClock()
    llm = SlowLLM([llm_response(tool_call("skip_recommendations", SKIP_ARGS))], clock, seconds=29.0)

    result = await make_loop(llm, clock=clock).run(context, InitialFacts())

    assert result.forced is False
    assert result.skip_reason == "healthy account"


@pytest.mark.anyio
async def test_tool_refused_inside_time_reserve_gets_error_payload(context):
    clock = FakeClock()
    llm = SlowLLM(
        [
            llm_response(tool_call("evaluate_recommendation", EVALUATE_ARGS, call_id="c1")),
            llm_response(tool_call("skip_recommendations", SKIP_ARGS)),
        ],
        clock,
        seconds=12.0,
    )

    # 18s left after the first call, under the 20s reserve
    result = await make_loop(llm, reserve_seconds=20.0, clock=clock).run(context, InitialFacts())

    assert result.forced is False
    assert result.skip_reason == "healthy account"
    assert result.tool_calls == ()
    assert llm.calls[1][-1] == {
        "role": "tool",
        "tool_call_id": "c1",
        "content": (
            '{"error": "Time budget nearly exceeded. '
            'You must call submit_recommendations or skip_recommendations now."}'
        ),
    }
