import asyncio

import pytest
from pydantic import BaseModel

from conftest import NOW, FakeChangeLog, FakeSignalStore, FakeSource, budget_row
from ppc_advisor.guardrails.evaluator import GuardrailEvaluator
from ppc_advisor.guardrails.schemas import GuardrailContext, GuardrailLimits
from ppc_advisor.insights.historical import HistoricalPerformanceReader, HistoryPolicy
from ppc_advisor.insights.reallocation import ReallocationImpactAnalyzer, ReallocationPolicy
from ppc_advisor.tools.base import BaseTool, ToolName, ToolResult, clamp_days
from ppc_advisor.tools.builtin_tools import create_agent_registry
from ppc_advisor.tools.builtin_tools.check_reallocation_impact import CheckReallocationImpactParams
from ppc_advisor.tools.builtin_tools.check_signal_bus import CheckSignalBusParams
from ppc_advisor.tools.builtin_tools.get_historical_performance import GetHistoricalPerformanceParams
from ppc_advisor.tools.registry import ToolRegistry


@pytest.fixture
def registry() -> ToolRegistry:
    source = FakeSource(utilization=[budget_row("1", "Generic A"), budget_row("2", "Generic B")])
    change_log = FakeChangeLog()
    return create_agent_registry(
        source,
        change_log,
        FakeSignalStore(),
        evaluator=GuardrailEvaluator(GuardrailLimits()),
        historical=HistoricalPerformanceReader(source, change_log, policy=HistoryPolicy(), now=lambda: NOW),
        reallocation=ReallocationImpactAnalyzer(source, change_log, policy=ReallocationPolicy(), now=lambda: NOW),
    )


def test_registry_exposes_all_tools(registry):
    assert registry.tool_count == 6
    assert set(registry.tool_names) == {t.value for t in ToolName}
    assert registry.is_terminal("submit_recommendations")
    assert registry.is_terminal("skip_recommendations")
    assert not registry.is_terminal("evaluate_recommendation")
    assert not registry.is_terminal("made_up")


def test_schemas_are_openai_function_format_without_titles(registry):
    schemas = {s["function"]["name"]: s for s in registry.get_all_schemas()}

    signal = schemas["check_signal_bus"]
    assert signal["type"] == "function"
    assert signal["function"]["parameters"]["required"] == ["topic"]
    assert "title" not in signal["function"]["parameters"]["properties"]["topic"]

    submit = schemas["submit_recommendations"]["function"]["parameters"]
    assert "Proposal" in submit["$defs"]
    assert "title" not in submit["$defs"]["Proposal"]


@pytest.mark.parametrize(
    "value, expected",
    [(None, 7), (0, 7), ("abc", 7), (True, 7), (-5, 1), (3, 3), (3.9, 3), ("14", 14), (365, 30)],
)
def test_lookback_days_are_clamped(value, expected):
    assert clamp_days(value, 7, 30) == expected


def test_tool_params_clamp_instead_of_rejecting():
    assert CheckSignalBusParams(topic="dairy").lookback_days == 7
    assert CheckSignalBusParams(topic="dairy", lookback_days=400).lookback_days == 30
    assert GetHistoricalPerformanceParams(campaign_id=111).campaign_id == "111"
    assert GetHistoricalPerformanceParams(keyword_text="x", days=0).days == 30
    assert GetHistoricalPerformanceParams(keyword_text="x", days=500).days == 90


def test_reallocation_params_accept_micros():
    params = CheckReallocationImpactParams(source_campaign_id=1, decrease_amount_micros=15_000_000)

    assert params.source_campaign_id == "1"
    assert params.decrease_amount == 15.0


@pytest.mark.anyio
async def test_execute_records_success(registry, context):
    args = {"action_type": "pause_campaign", "action_detail": {"campaign_id": "111"}}

    result, record = await registry.execute("evaluate_recommendation", args, context)

    assert result.status == "success"
    assert result.data["passes"] is False
    assert record.tool_name == "evaluate_recommendation"
    assert record.input == args
    assert record.output == result.to_dict()
    assert record.duration_ms >= 0


@pytest.mark.anyio
async def test_unknown_tool_is_an_error_payload(registry, context):
    result, record = await registry.execute("delete_everything", {}, context)

    assert result.to_dict() == {"error": "Unknown tool: delete_everything"}
    assert record.output == {"error": "Unknown tool: delete_everything"}


@pytest.mark.anyio
async def test_terminal_tools_only_acknowledge_when_dispatched(registry, context):
    args = {"proposals": [], "narrative": "Nothing worth changing.", "investigation_summary": "Checked signals."}

    submitted, _ = await registry.execute("submit_recommendations", args, context)
    skipped, _ = await registry.execute("skip_recommendations", {"reason": "healthy", "investigation_summary": ""}, context)

    assert submitted.to_dict() == {"acknowledged": True, "action": "submit_recommendations", "proposals": 0}
    assert skipped.to_dict() == {"acknowledged": True, "action": "skip_recommendations"}


@pytest.mark.anyio
async def test_invalid_arguments_are_an_error_payload(registry, context):
    result, _ = await registry.execute("check_signal_bus", {"lookback_days": 3}, context)

    assert result.status == "error"
    assert result.error.startswith("Invalid arguments for check_signal_bus: topic:")


@pytest.mark.anyio
async def test_historical_tool_requires_exactly_one_entity(registry, context):
    result, _ = await registry.execute("get_historical_performance", {}, context)

    assert result.to_dict() == {"error": "Provide exactly one of campaign_id or keyword_text"}


@pytest.mark.anyio
async def test_reallocation_tool_unknown_campaign(registry, context):
    result, _ = await registry.execute("check_reallocation_impact", {"source_campaign_id": "404"}, context)

    assert result.status == "error"
    assert "404" in result.error


@pytest.mark.anyio
async def test_reallocation_tool_success(registry, context):
    result, _ = await registry.execute("check_reallocation_impact", {"source_campaign_id": "1"}, context)

    assert result.status == "success"
    assert result.data["potential_targets"][0]["campaign_id"] == "2"


class _Params(BaseModel):
    pass


class ExplodingTool(BaseTool):
    def __init__(self, exc: BaseException):
        self.exc = exc

    @property
    def name(self) -> ToolName:
        return ToolName.CHECK_SIGNAL_BUS

    @property
    def description(self) -> str:
        return "explodes"

    @property
    def params_model(self) -> type[BaseModel]:
        return _Params

    async def execute(self, params, context: GuardrailContext) -> ToolResult:
        raise self.exc


@pytest.mark.anyio
async def test_tool_exception_becomes_error_payload(context):
    registry = ToolRegistry()
    registry.register(ExplodingTool(RuntimeError("boom")))

    result, record = await registry.execute("check_signal_bus", {}, context)

    assert result.to_dict() == {"error": "Tool check_signal_bus failed: boom"}
    assert record.output == result.to_dict()


@pytest.mark.anyio
async def test_cancellation_propagates(context):
    registry = ToolRegistry()
    registry.register(ExplodingTool(asyncio.CancelledError()))

    with pytest.raises(asyncio.CancelledError):
        await registry.execute("check_signal_bus", {}, context)
