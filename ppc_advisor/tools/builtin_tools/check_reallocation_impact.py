"""
CheckReallocationImpactTool: is a budget decrease on this campaign safe, and where would the budget go?
"""

from pydantic import BaseModel, Field, field_validator, model_validator

from ppc_advisor.ads.schemas import micros_to_dollars
from ppc_advisor.guardrails.schemas import GuardrailContext
from ppc_advisor.insights.reallocation import ReallocationImpactAnalyzer
from ppc_advisor.tools.base import BaseTool, ToolName, ToolResult


class CheckReallocationImpactParams(BaseModel):
    source_campaign_id: str = Field(min_length=1, description="The campaign ID you want to decrease budget on")
    decrease_amount: float | None = Field(
        default=None, ge=0, description="Optional: the daily amount in dollars you plan to decrease"
    )
    decrease_amount_micros: str | None = Field(
        default=None, description="Optional: the same amount in micros (used when decrease_amount is absent)"
    )

    @field_validator("source_campaign_id", "decrease_amount_micros", mode="before")
    @classmethod
    def _numbers_as_str(cls, v):
        return str(v) if isinstance(v, (int, float)) and not isinstance(v, bool) else v

    @model_validator(mode="after")
    def _resolve_amount(self) -> "CheckReallocationImpactParams":
        if self.decrease_amount is None and self.decrease_amount_micros:
            try:
                self.decrease_amount = micros_to_dollars(self.decrease_amount_micros)
            except ValueError:
                raise ValueError("decrease_amount_micros must be numeric")
        return self


class CheckReallocationImpactTool(BaseTool):
    def __init__(self, analyzer: ReallocationImpactAnalyzer):
        self._analyzer = analyzer

    @property
    def name(self) -> ToolName:
        return ToolName.CHECK_REALLOCATION_IMPACT

    @property
    def description(self) -> str:
        return (
            "Before recommending a budget decrease on a campaign, check which campaigns could absorb the "
            "freed budget and whether they can use it well. Only campaigns in the same brand/non-brand "
            "category are considered. Returns targets ranked by CPA, the creative protection window status, "
            "cumulative budget loss over the tracking window, and warnings."
        )

    @property
    def params_model(self) -> type[BaseModel]:
        return CheckReallocationImpactParams

    async def execute(self, params: CheckReallocationImpactParams, context: GuardrailContext) -> ToolResult:
        ad_group_ids = sorted({a.ad_group_id for a in context.ads if a.campaign_id == params.source_campaign_id})
        try:
            data = await self._analyzer.analyze(
                context.account_id,
                params.source_campaign_id,
                decrease_amount=params.decrease_amount,
                source_ad_group_ids=ad_group_ids,
            )
        except LookupError as e:
            return ToolResult.fail(str(e))
        return ToolResult.success(**data)
