"""
Historical performance reader

For one campaign or keyword:
- trend: older half vs recent half of the daily series (CPA / CTR averages, zero days ignored)
- aftermath: for each executed action on the entity in the look-back window,
  CPA over the 7 days before vs the 7 days after the action
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import structlog

from ppc_advisor.ads.base import PerformanceSource
from ppc_advisor.ads.schemas import DailyMetrics
from ppc_advisor.config import get_settings
from ppc_advisor.db.stores import ChangeLogStore, ExecutedAction

log = structlog.get_logger()

TREND_THRESHOLD_PCT = 10.0
MAX_ADJUSTMENTS = 5
RECENT_DAILY_ROWS = 14


@dataclass(frozen=True)
class HistoryPolicy:
    adjustment_lookback_days: int = 90
    aftermath_window_days: int = 7

    @classmethod
    def from_settings(cls) -> "HistoryPolicy":
        s = get_settings()
        return cls(
            adjustment_lookback_days=s.HISTORY_ADJUSTMENT_LOOKBACK_DAYS,
            aftermath_window_days=s.HISTORY_AFTERMATH_WINDOW_DAYS,
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def average_nonzero(rows: list[DailyMetrics], attr: str) -> float:
    values = [getattr(r, attr) for r in rows if getattr(r, attr) > 0]
    return sum(values) / len(values) if values else 0.0


def aggregate_by_date(rows: list[DailyMetrics]) -> list[DailyMetrics]:
    """Collapse rows sharing a date (a keyword can live in several ad groups)"""
    by_date: dict[str, DailyMetrics] = {}
    for r in rows:
        agg = by_date.get(r.date)
        if agg is None:
            by_date[r.date] = DailyMetrics(
                date=r.date,
                campaign_id=r.campaign_id,
                impressions=r.impressions,
                clicks=r.clicks,
                cost=r.cost,
                conversions=r.conversions,
                keyword_text=r.keyword_text,
                criterion_id=r.criterion_id,
            )
        else:
            agg.impressions += r.impressions
            agg.clicks += r.clicks
            agg.cost += r.cost
            agg.conversions += r.conversions

    out = sorted(by_date.values(), key=lambda d: d.date)
    for d in out:
        d.ctr = d.clicks / d.impressions if d.impressions > 0 else 0.0
        d.cost_per_conversion = d.cost / d.conversions if d.conversions > 0 else 0.0
    return out


def compute_trend(daily: list[DailyMetrics]) -> dict:
    """
    Split chronologically into older / recent halves and compare CPA.
    CPA down more than 10% -> improving, up more than 10% -> declining.
    """
    mid = len(daily) // 2
    older, recent = daily[:mid], daily[mid:]

    recent_cpa = average_nonzero(recent, "cost_per_conversion")
    older_cpa = average_nonzero(older, "cost_per_conversion")
    cpa_pct_change = (recent_cpa - older_cpa) / older_cpa * 100 if older_cpa > 0 else 0.0

    if cpa_pct_change < -TREND_THRESHOLD_PCT:
        direction = "improving"
    elif cpa_pct_change > TREND_THRESHOLD_PCT:
        direction = "declining"
    else:
        direction = "stable"

    return {
        "direction": direction,
        "recent_cpa": round(recent_cpa, 2),
        "historical_cpa": round(older_cpa, 2),
        "cpa_pct_change": round(cpa_pct_change, 1),
        "recent_ctr": round(average_nonzero(recent, "ctr"), 4),
        "historical_ctr": round(average_nonzero(older, "ctr"), 4),
    }


def compute_aftermath(action: ExecutedAction, daily: list[DailyMetrics], window_days: int) -> dict:
    """CPA in the window before vs after the action date"""
    action_day = action.created_at.date()
    before_start = (action_day - timedelta(days=window_days)).isoformat()
    after_start = action_day.isoformat()
    after_end = (action_day + timedelta(days=window_days)).isoformat()

    before = [d for d in daily if before_start <= d.date < after_start]
    after = [d for d in daily if after_start <= d.date <= after_end]

    if not after:
        return {"note": "Insufficient post-adjustment data"}

    before_cpa = average_nonzero(before, "cost_per_conversion")
    after_cpa = average_nonzero(after, "cost_per_conversion")
    change = (after_cpa - before_cpa) / before_cpa * 100 if before_cpa > 0 else None
    return {
        "cpa_before": round(before_cpa, 2),
        "cpa_after": round(after_cpa, 2),
        "cpa_change_pct": round(change, 1) if change is not None else None,
        "days_of_data": len(after),
    }


class HistoricalPerformanceReader:
    def __init__(
        self,
        source: PerformanceSource,
        change_log: ChangeLogStore,
        policy: HistoryPolicy | None = None,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.source = source
        self.change_log = change_log
        self.policy = policy or HistoryPolicy.from_settings()
        self._now = now

    async def read(
        self,
        account_id: str,
        days: int,
        campaign_id: str | None = None,
        keyword_text: str | None = None,
    ) -> dict:
        """Raises ValueError unless exactly one of campaign_id / keyword_text is given"""
        if bool(campaign_id) == bool(keyword_text):
            raise ValueError("Provide exactly one of campaign_id or keyword_text")

        if campaign_id:
            rows = [d for d in await self.source.campaign_daily(days) if d.campaign_id == str(campaign_id)]
            entity = f"campaign {campaign_id}"
        else:
            needle = keyword_text.lower()
            rows = [
                d for d in await self.source.keyword_daily(days)
                if (d.keyword_text or "").lower() == needle
            ]
            entity = f'keyword "{keyword_text}"'

        daily = aggregate_by_date(rows)
        adjustments = await self._past_adjustments(account_id, campaign_id, keyword_text, daily)

        log.debug("Historical performance read", entity=entity, days=len(daily), adjustments=len(adjustments))

        return {
            "entity": entity,
            "days_of_data": len(daily),
            "recent_daily": [
                {
                    "date": d.date,
                    "impressions": d.impressions,
                    "clicks": d.clicks,
                    "cost": round(d.cost, 2),
                    "conversions": d.conversions,
                    "cpa": round(d.cost_per_conversion, 2),
                }
                for d in daily[-RECENT_DAILY_ROWS:]
            ],
            "trend": compute_trend(daily),
            "previous_adjustments": adjustments,
        }

    async def _past_adjustments(
        self,
        account_id: str,
        campaign_id: str | None,
        keyword_text: str | None,
        daily: list[DailyMetrics],
    ) -> list[dict]:
        since = self._now() - timedelta(days=self.policy.adjustment_lookback_days)
        actions = await self.change_log.executed_actions(account_id, since)
        if campaign_id:
            related = [a for a in actions if a.references_id(str(campaign_id))]
        else:
            related = [a for a in actions if a.mentions_text(keyword_text)]

        return [
            {
                "date": a.created_at.isoformat(),
                "action_type": a.action_type,
                "action_detail": a.action_detail,
                "reason": a.reason,
                "aftermath": compute_aftermath(a, daily, self.policy.aftermath_window_days),
            }
            for a in related[:MAX_ADJUSTMENTS]
        ]
