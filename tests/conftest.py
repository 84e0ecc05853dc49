# tests/conftest.py
import json
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from ppc_advisor.ads.base import PerformanceSource
from ppc_advisor.ads.schemas import (
    AdPerformance,
    CampaignBudgetPerformance,
    CampaignPerformance,
    DailyMetrics,
    KeywordPerformance,
    TodaySpend,
)
from ppc_advisor.db.stores import ChangeLogStore, ExecutedAction, Signal, SignalStore
from ppc_advisor.guardrails.schemas import GuardrailContext
from ppc_advisor.llm.client import LLMError, LLMResponse

NOW = datetime(2025, 6, 30, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def anyio_backend():
    # asyncio only, trio is not a dependency
    return "asyncio"


# ── Collaborator fakes ──


class FakeSource(PerformanceSource):
    def __init__(
        self,
        campaign_rows: list[DailyMetrics] = (),
        keyword_rows: list[DailyMetrics] = (),
        utilization: list[CampaignBudgetPerformance] = (),
        campaigns: list[CampaignPerformance] = (),
        keywords: list[KeywordPerformance] = (),
        ads: list[AdPerformance] = (),
        avg_cpc: dict[str, float] | None = None,
        spend: TodaySpend | None = None,
    ):
        self.campaign_rows = list(campaign_rows)
        self.keyword_rows = list(keyword_rows)
        self.utilization = list(utilization)
        self.campaigns = list(campaigns)
        self.keywords = list(keywords)
        self.ads = list(ads)
        self.avg_cpc = avg_cpc or {}
        self.spend = spend or TodaySpend()
        self.daily_calls: list[int] = []
        self.utilization_calls = 0

    async def campaign_daily(self, days):
        self.daily_calls.append(days)
        return self.campaign_rows

    async def keyword_daily(self, days):
        self.daily_calls.append(days)
        return self.keyword_rows

    async def budget_utilization(self):
        self.utilization_calls += 1
        return self.utilization

    async def campaign_performance(self, date_range="LAST_7_DAYS"):
        return self.campaigns

    async def keyword_performance(self, date_range="LAST_7_DAYS"):
        return self.keywords

    async def ad_performance(self, date_range="LAST_7_DAYS"):
        return self.ads

    async def keyword_7day_avg_cpc(self):
        return self.avg_cpc

    async def today_spend(self):
        return self.spend


class FakeChangeLog(ChangeLogStore):
    def __init__(self, actions: list[ExecutedAction] = ()):
        self.actions = list(actions)
        self.queries: list[tuple] = []

    async def executed_actions(self, account_id, since, action_types=None, limit=100):
        self.queries.append((account_id, since, action_types))
        rows = [
            a for a in self.actions
            if a.created_at >= since and (action_types is None or a.action_type in action_types)
        ]
        rows.sort(key=lambda a: a.created_at, reverse=True)
        return rows[:limit]


class FakeSignalStore(SignalStore):
    def __init__(self, signals: list[Signal] = (), error: Exception | None = None):
        self.signals = list(signals)
        self.error = error

    async def search(self, topic, since, limit=10):
        if self.error is not None:
            raise self.error
        return [s for s in self.signals if topic.lower() in json.dumps(s.payload).lower()][:limit]


class FakeLLM:
    """Replays scripted responses; an exception in the script is raised instead"""

    def __init__(self, script: list):
        self.script = list(script)
        self.calls: list[list[dict]] = []

    async def chat_with_tools(self, messages, tools, model=None, temperature=0.0):
        self.calls.append([dict(m) for m in messages])
        if not self.script:
            raise LLMError("script exhausted")
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ── Builders ──


def tool_call(name: str, arguments: dict | str, call_id: str | None = None) -> SimpleNamespace:
    raw = arguments if isinstance(arguments, str) else json.dumps(arguments)
    return SimpleNamespace(id=call_id or f"call_{name}", function=SimpleNamespace(name=name, arguments=raw))


def llm_response(*tool_calls, content: str = "", finish_reason: str | None = None) -> LLMResponse:
    return LLMResponse(
        content=content,
        model="fake-model",
        usage={"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0},
        finish_reason=finish_reason or ("tool_calls" if tool_calls else "stop"),
        tool_calls_raw=list(tool_calls),
    )


def budget_row(
    campaign_id: str,
    name: str,
    daily_budget: float = 100.0,
    cpa: float = 50.0,
    utilization: float = 0.5,
    is_brand: bool = False,
    status: str = "ENABLED",
    budget_id: str | None = None,
) -> CampaignBudgetPerformance:
    return CampaignBudgetPerformance(
        campaign_id=campaign_id,
        campaign_name=name,
        status=status,
        budget_id=budget_id or f"9{campaign_id}",
        daily_budget=daily_budget,
        total_spend=daily_budget * utilization * 30,
        conversions=10.0,
        cpa=cpa,
        ctr=0.05,
        utilization_rate=utilization,
        is_brand=is_brand,
    )


def executed(action_type: str, created_at: datetime, detail: dict, data_used: dict | None = None) -> ExecutedAction:
    return ExecutedAction(
        action_type=action_type,
        action_detail=detail,
        created_at=created_at,
        reason="test",
        data_used=data_used,
    )


@pytest.fixture
def context() -> GuardrailContext:
    return GuardrailContext(
        account_id="acct-1",
        campaigns=(
            CampaignPerformance(campaign_id="111", campaign_name="Non-Brand ERP", status="ENABLED", conversions=3),
            CampaignPerformance(campaign_id="222", campaign_name="Generic", status="ENABLED", conversions=0),
        ),
        keywords=(
            KeywordPerformance(
                criterion_id="501", keyword_text="meat processing software", match_type="PHRASE",
                status="ENABLED", ad_group_id="701", campaign_id="111", cpc_bid_micros="2000000",
            ),
            KeywordPerformance(
                criterion_id="502", keyword_text="cheap erp", match_type="BROAD",
                status="ENABLED", ad_group_id="702", campaign_id="222",
            ),
        ),
        ads=(
            AdPerformance(ad_id="801", ad_group_id="701", campaign_id="111", status="ENABLED"),
            AdPerformance(ad_id="802", ad_group_id="701", campaign_id="111", status="ENABLED"),
            AdPerformance(ad_id="803", ad_group_id="702", campaign_id="222", status="ENABLED"),
            AdPerformance(ad_id="804", ad_group_id="702", campaign_id="222", status="PAUSED"),
        ),
    )
