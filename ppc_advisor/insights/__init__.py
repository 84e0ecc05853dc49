"""
Investigation data readers used by the recommendation loop's tools
"""

from ppc_advisor.insights.historical import HistoricalPerformanceReader, HistoryPolicy, compute_trend
from ppc_advisor.insights.reallocation import ReallocationImpactAnalyzer, ReallocationPolicy
from ppc_advisor.insights.signal_bus import SignalBusReader

__all__ = [
    "HistoricalPerformanceReader",
    "HistoryPolicy",
    "ReallocationImpactAnalyzer",
    "ReallocationPolicy",
    "SignalBusReader",
    "compute_trend",
]
