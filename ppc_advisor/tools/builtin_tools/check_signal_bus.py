"""
CheckSignalBusTool: cross-system signals mentioning a keyword or topic

Best effort: the reader already turns every backend failure into an
empty result, so this tool never reports an error for an outage.
"""

from pydantic import BaseModel, Field, field_validator

from ppc_advisor.config import get_settings
from ppc_advisor.guardrails.schemas import GuardrailContext
from ppc_advisor.insights.signal_bus import SignalBusReader
from ppc_advisor.tools.base import BaseTool, ToolName, ToolResult, clamp_days


class CheckSignalBusParams(BaseModel):
    topic: str = Field(min_length=1, description='Keyword or topic to search signals for (e.g. "meat erp", "dairy processing")')
    lookback_days: int | None = Field(default=None, validate_default=True, description="How many days back to search (default 7, max 30)")

    @field_validator("lookback_days", mode="before")
    @classmethod
    def _clamp(cls, v):
        s = get_settings()
        return clamp_days(v, s.SIGNAL_BUS_DEFAULT_LOOKBACK_DAYS, s.SIGNAL_BUS_MAX_LOOKBACK_DAYS)


class CheckSignalBusTool(BaseTool):
    def __init__(self, reader: SignalBusReader):
        self._reader = reader

    @property
    def name(self) -> ToolName:
        return ToolName.CHECK_SIGNAL_BUS

    @property
    def description(self) -> str:
        return (
            "Query the shared signal bus for recent signals from other agents related to a keyword "
            "or topic. Use this when considering changes to a keyword or campaign, to check whether "
            "another system sees organic interest or related activity."
        )

    @property
    def params_model(self) -> type[BaseModel]:
        return CheckSignalBusParams

    async def execute(self, params: CheckSignalBusParams, context: GuardrailContext) -> ToolResult:
        return ToolResult.success(**await self._reader.read(params.topic, params.lookback_days))
