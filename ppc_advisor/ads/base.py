"""
Performance data source: the read boundary of the advertising platform

Everything the loop knows about live account performance comes through
this interface. GoogleAdsClient is the production implementation.
"""

from abc import ABC, abstractmethod

from ppc_advisor.ads.schemas import (
    AdPerformance,
    CampaignBudgetPerformance,
    CampaignPerformance,
    DailyMetrics,
    KeywordPerformance,
    TodaySpend,
)


class PerformanceSource(ABC):
    """Read-only view of the advertising account"""

    @abstractmethod
    async def campaign_daily(self, days: int) -> list[DailyMetrics]:
        """Daily campaign metrics, chronological"""
        ...

    @abstractmethod
    async def keyword_daily(self, days: int) -> list[DailyMetrics]:
        """Daily keyword metrics, chronological"""
        ...

    @abstractmethod
    async def budget_utilization(self) -> list[CampaignBudgetPerformance]:
        """Enabled campaigns with 30-day utilization and 7d-vs-30d CTR trend"""
        ...

    @abstractmethod
    async def campaign_performance(self, date_range: str = "LAST_7_DAYS") -> list[CampaignPerformance]:
        ...

    @abstractmethod
    async def keyword_performance(self, date_range: str = "LAST_7_DAYS") -> list[KeywordPerformance]:
        ...

    @abstractmethod
    async def ad_performance(self, date_range: str = "LAST_7_DAYS") -> list[AdPerformance]:
        ...

    @abstractmethod
    async def keyword_7day_avg_cpc(self) -> dict[str, float]:
        """criterion_id -> average CPC over the last 7 days"""
        ...

    @abstractmethod
    async def today_spend(self) -> TodaySpend:
        ...
