"""
Guardrails: static safety rules applied to proposed account changes
"""

from ppc_advisor.guardrails.evaluator import GuardrailEvaluator
from ppc_advisor.guardrails.schemas import (
    ActionType,
    GuardrailContext,
    GuardrailEvaluation,
    GuardrailLimits,
    Proposal,
)

__all__ = [
    "ActionType",
    "GuardrailContext",
    "GuardrailEvaluation",
    "GuardrailEvaluator",
    "GuardrailLimits",
    "Proposal",
]
