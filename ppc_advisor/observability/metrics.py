"""
Prometheus metric definitions

All metrics live here; middleware and business code import what they need.
"""

from prometheus_client import Counter, Histogram

# ── Request metrics ──

REQUEST_TOTAL = Counter(
    "ppc_request_total",
    "HTTP requests",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "ppc_request_duration_ms",
    "HTTP request duration (ms)",
    ["method", "endpoint"],
    buckets=[50, 100, 200, 500, 1000, 2000, 5000, 10000, 30000, 60000],
)

# ── LLM metrics ──

LLM_CALL_DURATION = Histogram(
    "ppc_llm_call_duration_ms",
    "Reasoning step duration (ms)",
    ["model"],
    buckets=[200, 500, 1000, 2000, 5000, 10000, 30000],
)

# ── Recommendation loop metrics ──

SESSION_TOTAL = Counter(
    "ppc_session_total",
    "Investigation sessions by outcome",
    ["outcome", "forced"],  # outcome: submit/skip, forced: true/false
)

TOOL_CALL_TOTAL = Counter(
    "ppc_tool_call_total",
    "Tool calls",
    ["tool_name", "status"],  # status: success/error/refused
)

TOOL_CALL_DURATION = Histogram(
    "ppc_tool_call_duration_ms",
    "Tool call duration (ms)",
    ["tool_name"],
    buckets=[10, 50, 100, 250, 500, 1000, 2500, 5000, 10000],
)

GUARDRAIL_VIOLATION_TOTAL = Counter(
    "ppc_guardrail_violation_total",
    "Guardrail violations reported by evaluate_recommendation",
    ["rule"],
)
