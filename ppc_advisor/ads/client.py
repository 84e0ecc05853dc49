"""
Google Ads REST client (searchStream reads only)

- Every outbound request first takes a slot from the injected RateLimiter
- Reads use googleAds:searchStream (single response, no pagination)
- Daily history is pulled in 30-day chunks to stay under the 4MB response cap
- Money comes back in micros and is converted to dollars here
"""

from datetime import date, timedelta

import httpx
import structlog

from ppc_advisor.ads.auth import TokenProvider
from ppc_advisor.ads.base import PerformanceSource
from ppc_advisor.ads.rate_limiter import RateLimiter
from ppc_advisor.ads.schemas import (
    AdPerformance,
    CampaignBudgetPerformance,
    CampaignPerformance,
    DailyMetrics,
    KeywordPerformance,
    TodaySpend,
    is_brand_campaign,
    micros_to_dollars,
)
from ppc_advisor.config import get_settings

log = structlog.get_logger()

_RANGE_DAYS = {"LAST_7_DAYS": 7, "LAST_14_DAYS": 14, "LAST_30_DAYS": 30, "LAST_90_DAYS": 90}


class GoogleAdsError(Exception):
    """Non-2xx response from the Google Ads API"""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def _int(v) -> int:
    return int(v or 0)


def _float(v) -> float:
    return float(v or 0)


def date_chunks(days: int, chunk_size: int = 30, today: date | None = None) -> list[tuple[str, str]]:
    """[start, end] windows covering the last `days` days up to yesterday, chronological"""
    today = today or date.today()
    earliest = today - timedelta(days=days)
    end = today - timedelta(days=1)
    chunks: list[tuple[str, str]] = []
    while end > earliest:
        start = max(end - timedelta(days=chunk_size - 1), earliest)
        chunks.append((start.isoformat(), end.isoformat()))
        end = start - timedelta(days=1)
    chunks.reverse()
    return chunks


class GoogleAdsClient(PerformanceSource):
    """PerformanceSource backed by the Google Ads REST API"""

    def __init__(
        self,
        customer_id: str,
        rate_limiter: RateLimiter,
        http: httpx.AsyncClient | None = None,
        token_provider: TokenProvider | None = None,
    ):
        s = get_settings()
        self.customer_id = customer_id.replace("-", "")
        self.rate_limiter = rate_limiter
        self._http = http or httpx.AsyncClient(timeout=s.GOOGLE_ADS_TIMEOUT)
        self._tokens = token_provider or TokenProvider(
            s.GOOGLE_ADS_CLIENT_ID,
            s.GOOGLE_ADS_CLIENT_SECRET,
            s.GOOGLE_ADS_REFRESH_TOKEN,
            self._http,
        )
        self._base_url = f"https://googleads.googleapis.com/{s.GOOGLE_ADS_API_VERSION}"
        self._developer_token = s.GOOGLE_ADS_DEVELOPER_TOKEN
        self._login_customer_id = s.GOOGLE_ADS_MANAGER_CUSTOMER_ID.replace("-", "")

    @classmethod
    def from_settings(cls, customer_id: str | None = None) -> "GoogleAdsClient":
        s = get_settings()
        limiter = RateLimiter(s.GOOGLE_ADS_RATE_LIMIT_CALLS, s.GOOGLE_ADS_RATE_LIMIT_WINDOW_SECONDS)
        return cls(customer_id or s.GOOGLE_ADS_CUSTOMER_ID, limiter)

    async def aclose(self) -> None:
        await self._http.aclose()

    # ── Core request ──

    async def query(self, gaql: str) -> list[dict]:
        """Run a GAQL query, flattening the searchStream batches"""
        await self.rate_limiter.acquire()
        token = await self._tokens.get_token()

        headers = {
            "Authorization": f"Bearer {token}",
            "developer-token": self._developer_token,
        }
        if self._login_customer_id:
            headers["login-customer-id"] = self._login_customer_id

        url = f"{self._base_url}/customers/{self.customer_id}/googleAds:searchStream"
        resp = await self._http.post(url, headers=headers, json={"query": gaql})
        if resp.status_code >= 400:
            log.error("Google Ads API error", status=resp.status_code, body=resp.text[:500])
            raise GoogleAdsError(
                f"Google Ads API error ({resp.status_code}): {resp.text[:500]}",
                status_code=resp.status_code,
            )

        data = resp.json()
        if isinstance(data, list):
            return [row for batch in data for row in batch.get("results", [])]
        return data.get("results", [])

    # ── Daily history ──

    async def campaign_daily(self, days: int) -> list[DailyMetrics]:
        out: list[DailyMetrics] = []
        for start, end in date_chunks(days):
            rows = await self.query(f"""
                SELECT segments.date, campaign.id, metrics.impressions, metrics.clicks,
                       metrics.ctr, metrics.cost_micros, metrics.conversions,
                       metrics.cost_per_conversion
                FROM campaign
                WHERE segments.date BETWEEN '{start}' AND '{end}'
                  AND campaign.status != 'REMOVED'
                ORDER BY segments.date ASC
            """)
            for row in rows:
                m = row.get("metrics", {})
                out.append(DailyMetrics(
                    date=row["segments"]["date"],
                    campaign_id=str(row["campaign"]["id"]),
                    impressions=_int(m.get("impressions")),
                    clicks=_int(m.get("clicks")),
                    ctr=_float(m.get("ctr")),
                    cost=micros_to_dollars(m.get("costMicros")),
                    conversions=_float(m.get("conversions")),
                    cost_per_conversion=micros_to_dollars(m.get("costPerConversion")),
                ))
        return out

    async def keyword_daily(self, days: int) -> list[DailyMetrics]:
        out: list[DailyMetrics] = []
        for start, end in date_chunks(days):
            rows = await self.query(f"""
                SELECT segments.date, ad_group_criterion.criterion_id,
                       ad_group_criterion.keyword.text, campaign.id,
                       metrics.impressions, metrics.clicks, metrics.ctr, metrics.cost_micros,
                       metrics.conversions, metrics.cost_per_conversion
                FROM keyword_view
                WHERE segments.date BETWEEN '{start}' AND '{end}'
                  AND ad_group_criterion.status != 'REMOVED'
                  AND metrics.impressions > 0
                ORDER BY segments.date ASC
            """)
            for row in rows:
                m = row.get("metrics", {})
                crit = row.get("adGroupCriterion", {})
                out.append(DailyMetrics(
                    date=row["segments"]["date"],
                    campaign_id=str(row["campaign"]["id"]),
                    keyword_text=crit.get("keyword", {}).get("text", ""),
                    criterion_id=str(crit.get("criterionId", "")),
                    impressions=_int(m.get("impressions")),
                    clicks=_int(m.get("clicks")),
                    ctr=_float(m.get("ctr")),
                    cost=micros_to_dollars(m.get("costMicros")),
                    conversions=_float(m.get("conversions")),
                    cost_per_conversion=micros_to_dollars(m.get("costPerConversion")),
                ))
        return out

    # ── Budget utilization ──

    async def _budget_performance(self, date_range: str) -> list[CampaignBudgetPerformance]:
        rows = await self.query(f"""
            SELECT campaign.id, campaign.name, campaign.status, campaign_budget.id,
                   campaign_budget.amount_micros, metrics.cost_micros, metrics.conversions,
                   metrics.cost_per_conversion, metrics.ctr, metrics.search_impression_share
            FROM campaign
            WHERE segments.date DURING {date_range}
              AND campaign.status = 'ENABLED'
              AND campaign_budget.amount_micros > 0
            ORDER BY metrics.cost_micros DESC
        """)
        days = _RANGE_DAYS.get(date_range, 30)
        out: list[CampaignBudgetPerformance] = []
        for row in rows:
            m = row.get("metrics", {})
            budget = row.get("campaignBudget", {})
            daily_budget = micros_to_dollars(budget.get("amountMicros"))
            spend = micros_to_dollars(m.get("costMicros"))
            available = daily_budget * days
            out.append(CampaignBudgetPerformance(
                campaign_id=str(row["campaign"]["id"]),
                campaign_name=row["campaign"]["name"],
                status=row["campaign"]["status"],
                budget_id=str(budget.get("id", "")),
                daily_budget=daily_budget,
                total_spend=spend,
                conversions=_float(m.get("conversions")),
                cpa=micros_to_dollars(m.get("costPerConversion")),
                ctr=_float(m.get("ctr")),
                utilization_rate=spend / available if available > 0 else 0.0,
                is_brand=is_brand_campaign(row["campaign"]["name"]),
                search_impression_share=_float(m.get("searchImpressionShare")),
            ))
        return out

    async def budget_utilization(self) -> list[CampaignBudgetPerformance]:
        campaigns = await self._budget_performance("LAST_30_DAYS")
        recent_ctr = {c.campaign_id: c.ctr for c in await self._budget_performance("LAST_7_DAYS")}
        for c in campaigns:
            ctr_7d = recent_ctr.get(c.campaign_id, c.ctr)
            c.ctr_trend = (ctr_7d - c.ctr) / c.ctr if c.ctr > 0 else 0.0
        return campaigns

    # ── Current-window performance ──

    async def campaign_performance(self, date_range: str = "LAST_7_DAYS") -> list[CampaignPerformance]:
        rows = await self.query(f"""
            SELECT campaign.id, campaign.name, campaign.status,
                   campaign.advertising_channel_type, campaign.bidding_strategy_type,
                   campaign_budget.id, campaign_budget.amount_micros,
                   metrics.impressions, metrics.clicks, metrics.ctr, metrics.average_cpc,
                   metrics.cost_micros, metrics.conversions, metrics.cost_per_conversion
            FROM campaign
            WHERE segments.date DURING {date_range}
              AND campaign.status != 'REMOVED'
            ORDER BY metrics.cost_micros DESC
        """)
        out: list[CampaignPerformance] = []
        for row in rows:
            m = row.get("metrics", {})
            c = row["campaign"]
            budget = row.get("campaignBudget", {})
            out.append(CampaignPerformance(
                campaign_id=str(c["id"]),
                campaign_name=c.get("name", ""),
                status=c.get("status", ""),
                channel_type=c.get("advertisingChannelType", ""),
                bidding_strategy=c.get("biddingStrategyType", ""),
                budget_id=str(budget["id"]) if budget.get("id") else None,
                daily_budget_micros=budget.get("amountMicros"),
                impressions=_int(m.get("impressions")),
                clicks=_int(m.get("clicks")),
                ctr=_float(m.get("ctr")),
                avg_cpc=micros_to_dollars(m.get("averageCpc")),
                cost=micros_to_dollars(m.get("costMicros")),
                conversions=_float(m.get("conversions")),
                cost_per_conversion=micros_to_dollars(m.get("costPerConversion")),
            ))
        return out

    async def keyword_performance(self, date_range: str = "LAST_7_DAYS") -> list[KeywordPerformance]:
        rows = await self.query(f"""
            SELECT ad_group_criterion.criterion_id, ad_group_criterion.keyword.text,
                   ad_group_criterion.keyword.match_type, ad_group_criterion.status,
                   ad_group_criterion.cpc_bid_micros, ad_group_criterion.quality_info.quality_score,
                   ad_group.id, campaign.id, campaign.name,
                   metrics.impressions, metrics.clicks, metrics.ctr, metrics.average_cpc,
                   metrics.cost_micros, metrics.conversions, metrics.cost_per_conversion
            FROM keyword_view
            WHERE segments.date DURING {date_range}
              AND ad_group_criterion.status != 'REMOVED'
            ORDER BY metrics.cost_micros DESC
        """)
        out: list[KeywordPerformance] = []
        for row in rows:
            m = row.get("metrics", {})
            crit = row["adGroupCriterion"]
            quality = crit.get("qualityInfo", {}).get("qualityScore")
            out.append(KeywordPerformance(
                criterion_id=str(crit["criterionId"]),
                keyword_text=crit.get("keyword", {}).get("text", ""),
                match_type=crit.get("keyword", {}).get("matchType", ""),
                status=crit.get("status", ""),
                cpc_bid_micros=crit.get("cpcBidMicros"),
                quality_score=int(quality) if quality is not None else None,
                ad_group_id=str(row["adGroup"]["id"]),
                campaign_id=str(row["campaign"]["id"]),
                campaign_name=row["campaign"].get("name", ""),
                impressions=_int(m.get("impressions")),
                clicks=_int(m.get("clicks")),
                ctr=_float(m.get("ctr")),
                avg_cpc=micros_to_dollars(m.get("averageCpc")),
                cost=micros_to_dollars(m.get("costMicros")),
                conversions=_float(m.get("conversions")),
                cost_per_conversion=micros_to_dollars(m.get("costPerConversion")),
            ))
        return out

    async def ad_performance(self, date_range: str = "LAST_7_DAYS") -> list[AdPerformance]:
        rows = await self.query(f"""
            SELECT ad_group_ad.ad.id, ad_group_ad.ad.responsive_search_ad.headlines,
                   ad_group_ad.ad.responsive_search_ad.descriptions, ad_group_ad.ad.final_urls,
                   ad_group_ad.status, ad_group_ad.policy_summary.approval_status,
                   ad_group.id, ad_group.name, campaign.id, campaign.name,
                   metrics.impressions, metrics.clicks, metrics.ctr, metrics.cost_micros,
                   metrics.conversions, metrics.cost_per_conversion
            FROM ad_group_ad
            WHERE segments.date DURING {date_range}
              AND ad_group_ad.status != 'REMOVED'
              AND ad_group_ad.ad.type = 'RESPONSIVE_SEARCH_AD'
            ORDER BY metrics.cost_micros DESC
        """)
        out: list[AdPerformance] = []
        for row in rows:
            m = row.get("metrics", {})
            aga = row["adGroupAd"]
            rsa = aga["ad"].get("responsiveSearchAd", {})
            out.append(AdPerformance(
                ad_id=str(aga["ad"]["id"]),
                ad_group_id=str(row["adGroup"]["id"]),
                ad_group_name=row["adGroup"].get("name", ""),
                campaign_id=str(row["campaign"]["id"]),
                campaign_name=row["campaign"].get("name", ""),
                status=aga.get("status", ""),
                approval_status=aga.get("policySummary", {}).get("approvalStatus", "UNKNOWN"),
                headlines=[h["text"] for h in rsa.get("headlines", [])],
                descriptions=[d["text"] for d in rsa.get("descriptions", [])],
                final_urls=aga["ad"].get("finalUrls", []),
                impressions=_int(m.get("impressions")),
                clicks=_int(m.get("clicks")),
                ctr=_float(m.get("ctr")),
                cost=micros_to_dollars(m.get("costMicros")),
                conversions=_float(m.get("conversions")),
                cost_per_conversion=micros_to_dollars(m.get("costPerConversion")),
            ))
        return out

    async def keyword_7day_avg_cpc(self) -> dict[str, float]:
        totals: dict[str, list[float]] = {}
        for k in await self.keyword_performance("LAST_7_DAYS"):
            if k.status != "ENABLED" or k.clicks <= 0:
                continue
            cost_clicks = totals.setdefault(k.criterion_id, [0.0, 0])
            cost_clicks[0] += k.cost
            cost_clicks[1] += k.clicks
        return {cid: cost / clicks for cid, (cost, clicks) in totals.items() if clicks}

    async def today_spend(self) -> TodaySpend:
        rows = await self.query("""
            SELECT metrics.cost_micros, metrics.clicks, metrics.impressions, metrics.conversions
            FROM customer
            WHERE segments.date DURING TODAY
        """)
        spend = TodaySpend()
        for row in rows:
            m = row.get("metrics", {})
            spend.cost += micros_to_dollars(m.get("costMicros"))
            spend.clicks += _int(m.get("clicks"))
            spend.impressions += _int(m.get("impressions"))
            spend.conversions += _float(m.get("conversions"))
        return spend
