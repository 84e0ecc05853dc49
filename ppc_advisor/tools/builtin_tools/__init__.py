"""
Built-in tools: the fixed palette of the recommendation loop

Usage:
    from ppc_advisor.tools.builtin_tools import create_agent_registry
    registry = create_agent_registry(source, change_log, signal_store)
"""

from ppc_advisor.ads.base import PerformanceSource
from ppc_advisor.config import get_settings
from ppc_advisor.db.stores import ChangeLogStore, SignalStore
from ppc_advisor.guardrails.evaluator import GuardrailEvaluator
from ppc_advisor.insights.historical import HistoricalPerformanceReader
from ppc_advisor.insights.reallocation import ReallocationImpactAnalyzer
from ppc_advisor.insights.signal_bus import SignalBusReader
from ppc_advisor.tools.builtin_tools.check_reallocation_impact import CheckReallocationImpactTool
from ppc_advisor.tools.builtin_tools.check_signal_bus import CheckSignalBusTool
from ppc_advisor.tools.builtin_tools.evaluate_recommendation import EvaluateRecommendationTool
from ppc_advisor.tools.builtin_tools.get_historical_performance import GetHistoricalPerformanceTool
from ppc_advisor.tools.builtin_tools.terminal import (
    SkipRecommendationsInput,
    SkipRecommendationsTool,
    SubmitRecommendationsInput,
    SubmitRecommendationsTool,
)
from ppc_advisor.tools.registry import ToolRegistry

__all__ = [
    "SkipRecommendationsInput",
    "SubmitRecommendationsInput",
    "create_agent_registry",
]


def create_agent_registry(
    source: PerformanceSource,
    change_log: ChangeLogStore,
    signal_store: SignalStore,
    evaluator: GuardrailEvaluator | None = None,
    historical: HistoricalPerformanceReader | None = None,
    reallocation: ReallocationImpactAnalyzer | None = None,
    signal_bus: SignalBusReader | None = None,
) -> ToolRegistry:
    """Registry with all six tools; readers default to settings-driven instances"""
    settings = get_settings()
    registry = ToolRegistry()

    registry.register(CheckSignalBusTool(
        signal_bus or SignalBusReader(signal_store, timeout_seconds=settings.SIGNAL_BUS_TIMEOUT_SECONDS)
    ))
    registry.register(GetHistoricalPerformanceTool(historical or HistoricalPerformanceReader(source, change_log)))
    registry.register(CheckReallocationImpactTool(reallocation or ReallocationImpactAnalyzer(source, change_log)))
    registry.register(EvaluateRecommendationTool(evaluator or GuardrailEvaluator()))

    # Terminal tools
    registry.register(SubmitRecommendationsTool())
    registry.register(SkipRecommendationsTool())

    return registry
