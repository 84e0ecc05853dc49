"""
EvaluateRecommendationTool: self-check of a draft proposal against the guardrails

Pure and deterministic; may be called as often as the tool budget allows.
"""

from typing import Any

from pydantic import BaseModel, Field

from ppc_advisor.guardrails.evaluator import GuardrailEvaluator
from ppc_advisor.guardrails.schemas import GuardrailContext, action_detail_contract
from ppc_advisor.observability.metrics import GUARDRAIL_VIOLATION_TOTAL
from ppc_advisor.tools.base import BaseTool, ToolName, ToolResult


class EvaluateRecommendationParams(BaseModel):
    action_type: str = Field(description="The action type (e.g. adjust_budget, adjust_bid, pause_keyword)")
    action_detail: dict[str, Any] = Field(description="The full action_detail object for this recommendation")
    reason: str = Field(default="", description="The reason/rationale for this recommendation")


class EvaluateRecommendationTool(BaseTool):
    def __init__(self, evaluator: GuardrailEvaluator):
        self._evaluator = evaluator

    @property
    def name(self) -> ToolName:
        return ToolName.EVALUATE_RECOMMENDATION

    @property
    def description(self) -> str:
        return (
            "Self-check a draft recommendation against the guardrails BEFORE submitting. If it violates "
            "a guardrail, revise it and re-evaluate. Catches budget floor violations, bid cap breaches, "
            "protected keyword / campaign / ad conflicts and invalid IDs. action_detail keys per action type "
            "(amounts in micros):\n" + action_detail_contract()
        )

    @property
    def params_model(self) -> type[BaseModel]:
        return EvaluateRecommendationParams

    async def execute(self, params: EvaluateRecommendationParams, context: GuardrailContext) -> ToolResult:
        evaluation = self._evaluator.evaluate(params.action_type, params.action_detail, context)
        for rule in evaluation.violated_rules:
            GUARDRAIL_VIOLATION_TOTAL.labels(rule=rule).inc()
        return ToolResult.success(**evaluation.to_dict())
