"""
GetHistoricalPerformanceTool: trend + aftermath of past changes for one campaign or keyword
"""

from pydantic import BaseModel, Field, field_validator

from ppc_advisor.config import get_settings
from ppc_advisor.guardrails.schemas import GuardrailContext
from ppc_advisor.insights.historical import HistoricalPerformanceReader
from ppc_advisor.tools.base import BaseTool, ToolName, ToolResult, clamp_days


class GetHistoricalPerformanceParams(BaseModel):
    campaign_id: str | None = Field(default=None, description="Google Ads campaign ID to pull history for")
    keyword_text: str | None = Field(
        default=None,
        description="Keyword text to pull history for (use instead of campaign_id for keyword-level analysis)",
    )
    days: int | None = Field(default=None, validate_default=True, description="How many days of history (default 30, max 90)")

    @field_validator("campaign_id", mode="before")
    @classmethod
    def _id_as_str(cls, v):
        return str(v) if isinstance(v, int) and not isinstance(v, bool) else v

    @field_validator("days", mode="before")
    @classmethod
    def _clamp(cls, v):
        s = get_settings()
        return clamp_days(v, s.HISTORY_DEFAULT_DAYS, s.HISTORY_MAX_DAYS)


class GetHistoricalPerformanceTool(BaseTool):
    def __init__(self, reader: HistoricalPerformanceReader):
        self._reader = reader

    @property
    def name(self) -> ToolName:
        return ToolName.GET_HISTORICAL_PERFORMANCE

    @property
    def description(self) -> str:
        return (
            "Pull historical performance for exactly one campaign (campaign_id) or keyword (keyword_text) "
            "over up to 90 days. Returns recent daily metrics, the trend direction, and what happened after "
            "previous executed adjustments. Use it to check for seasonality, to see whether a CPA spike is "
            "temporary, or whether a past adjustment helped or hurt."
        )

    @property
    def params_model(self) -> type[BaseModel]:
        return GetHistoricalPerformanceParams

    async def execute(self, params: GetHistoricalPerformanceParams, context: GuardrailContext) -> ToolResult:
        if bool(params.campaign_id) == bool(params.keyword_text):
            return ToolResult.fail("Provide exactly one of campaign_id or keyword_text")

        try:
            data = await self._reader.read(
                context.account_id,
                params.days,
                campaign_id=params.campaign_id,
                keyword_text=params.keyword_text,
            )
        except ValueError as e:
            return ToolResult.fail(str(e))
        return ToolResult.success(**data)
