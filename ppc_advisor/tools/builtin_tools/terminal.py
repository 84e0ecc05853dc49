"""
Terminal tools: submit_recommendations / skip_recommendations

Calling either ends the session. The loop validates the arguments with the
models below and builds the LoopResult itself, without dispatching; terminal
calls never enter the tool-call log. execute() only exists to satisfy the
BaseTool interface and acknowledges a call dispatched through the registry.
"""

from pydantic import BaseModel, Field

from ppc_advisor.guardrails.schemas import GuardrailContext, Proposal, action_detail_contract
from ppc_advisor.tools.base import BaseTool, ToolName, ToolResult


class SubmitRecommendationsInput(BaseModel):
    proposals: list[Proposal] = Field(description="Recommendations to submit (may be empty for a no-op run)")
    narrative: str = Field(
        min_length=1,
        description="2-4 sentence summary of what you observed and recommend, in first person",
    )
    investigation_summary: str = Field(
        description="What tools you used, what you found, and how it informed your recommendations",
    )


class SkipRecommendationsInput(BaseModel):
    reason: str = Field(min_length=1, description="Why no recommendations are warranted")
    investigation_summary: str = Field(description="Summary of what you investigated before deciding to skip")


class SubmitRecommendationsTool(BaseTool):
    @property
    def name(self) -> ToolName:
        return ToolName.SUBMIT_RECOMMENDATIONS

    @property
    def description(self) -> str:
        return (
            "TERMINAL. Submit your final recommendations to the decision queue, with a narrative and a "
            "summary of what you investigated. Every proposal needs action_type, action_summary, "
            "action_detail, reason, risk_level (low/medium/high) and priority (1-10). The session ends "
            "after this call. action_detail keys per action type (amounts in micros):\n" + action_detail_contract()
        )

    @property
    def params_model(self) -> type[BaseModel]:
        return SubmitRecommendationsInput

    async def execute(self, params: SubmitRecommendationsInput, context: GuardrailContext) -> ToolResult:
        return ToolResult.success(acknowledged=True, action=self.name.value, proposals=len(params.proposals))


class SkipRecommendationsTool(BaseTool):
    @property
    def name(self) -> ToolName:
        return ToolName.SKIP_RECOMMENDATIONS

    @property
    def description(self) -> str:
        return (
            "TERMINAL. Explicitly decide not to make any recommendations this run, with a reason. Use when "
            "everything looks healthy or data is insufficient. The session ends after this call."
        )

    @property
    def params_model(self) -> type[BaseModel]:
        return SkipRecommendationsInput

    async def execute(self, params: SkipRecommendationsInput, context: GuardrailContext) -> ToolResult:
        return ToolResult.success(acknowledged=True, action=self.name.value)
