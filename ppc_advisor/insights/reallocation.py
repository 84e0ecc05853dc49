"""
Budget reallocation impact analysis

Answers "if this campaign's budget is cut, is that safe and where can the
freed budget go?":
- targets: same brand/non-brand category only, enabled, below the utilization
  ceiling, cheapest CPA first
- creative protection: new ads deployed on the source inside the window
- cumulative loss: budget already removed from the source inside the window,
  as a share of its notional budget over that window
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import structlog

from ppc_advisor.ads.base import PerformanceSource
from ppc_advisor.ads.schemas import CampaignBudgetPerformance, micros_to_dollars
from ppc_advisor.config import get_settings
from ppc_advisor.db.stores import ChangeLogStore, ExecutedAction

log = structlog.get_logger()

CREATIVE_ACTIONS = ("create_ad", "replace_ad")
BUDGET_ACTIONS = ("reallocate_budget", "adjust_budget")


@dataclass(frozen=True)
class ReallocationPolicy:
    creative_protection_days: int = 14
    cumulative_loss_window_days: int = 60
    cumulative_loss_threshold_pct: float = 40.0
    max_utilization: float = 0.95
    max_targets: int = 5
    budget_floor_dollars: float = 25.0

    @classmethod
    def from_settings(cls) -> "ReallocationPolicy":
        s = get_settings()
        return cls(
            creative_protection_days=s.REALLOCATION_CREATIVE_PROTECTION_DAYS,
            cumulative_loss_window_days=s.REALLOCATION_CUMULATIVE_LOSS_WINDOW_DAYS,
            cumulative_loss_threshold_pct=s.REALLOCATION_CUMULATIVE_LOSS_THRESHOLD_PCT,
            max_utilization=s.REALLOCATION_MAX_UTILIZATION,
            max_targets=s.REALLOCATION_MAX_TARGETS,
            budget_floor_dollars=s.GUARDRAIL_BUDGET_FLOOR_DOLLARS,
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _micros(value) -> float:
    if value is None or value == "" or isinstance(value, bool):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def rank_targets(
    source: CampaignBudgetPerformance,
    campaigns: Iterable[CampaignBudgetPerformance],
    max_utilization: float,
) -> list[CampaignBudgetPerformance]:
    """Same-category recipients, best CPA first; campaigns without a CPA rank last"""
    candidates = [
        c for c in campaigns
        if c.is_brand == source.is_brand
        and c.campaign_id != source.campaign_id
        and c.status == "ENABLED"
        and c.utilization_rate < max_utilization
    ]
    return sorted(candidates, key=lambda c: (c.cpa <= 0, c.cpa))


def budget_removed_micros(action: ExecutedAction, campaign_id: str, budget_id: str | None) -> float:
    """Micros this executed action took away from the campaign (0 when unrelated)"""
    payloads = [p for p in (action.data_used, action.action_detail) if isinstance(p, dict)]

    if action.action_type == "reallocate_budget":
        for p in payloads:
            from_campaign = p.get("from_campaign_id")
            from_budget = p.get("from_budget_id")
            hit = str(from_campaign) == campaign_id if from_campaign is not None else (
                budget_id is not None and str(from_budget) == budget_id
            )
            if hit and p.get("amount_micros"):
                return _micros(p["amount_micros"])
        return 0.0

    if action.action_type == "adjust_budget":
        for p in payloads:
            target_campaign = p.get("campaign_id")
            target_budget = p.get("budget_id")
            if not (
                (target_campaign is not None and str(target_campaign) == campaign_id)
                or (budget_id is not None and target_budget is not None and str(target_budget) == budget_id)
            ):
                continue
            old = _micros(p.get("previous_amount_micros") or p.get("old_amount_micros"))
            new = _micros(p.get("new_amount_micros"))
            if old > 0 and new > 0 and old > new:
                return old - new
        return 0.0

    return 0.0


class ReallocationImpactAnalyzer:
    def __init__(
        self,
        source: PerformanceSource,
        change_log: ChangeLogStore,
        policy: ReallocationPolicy | None = None,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.source = source
        self.change_log = change_log
        self.policy = policy or ReallocationPolicy.from_settings()
        self._now = now

    async def analyze(
        self,
        account_id: str,
        source_campaign_id: str,
        decrease_amount: float | None = None,
        source_ad_group_ids: Iterable[str] = (),
    ) -> dict:
        """
        decrease_amount is in dollars. Raises LookupError when the source
        campaign is not in the utilization data.
        """
        policy = self.policy
        source_campaign_id = str(source_campaign_id)

        utilization = await self.source.budget_utilization()
        src = next((c for c in utilization if c.campaign_id == source_campaign_id), None)
        if src is None:
            raise LookupError(f"Campaign {source_campaign_id} not found in budget utilization data")

        targets = rank_targets(src, utilization, policy.max_utilization)
        has_new_creatives = await self._has_new_creatives(account_id, src, source_ad_group_ids)
        loss_dollars, loss_pct = await self._cumulative_loss(account_id, src)
        exceeds = loss_pct > policy.cumulative_loss_threshold_pct
        at_floor = src.daily_budget <= policy.budget_floor_dollars

        warnings: list[str] = []
        if has_new_creatives:
            warnings.append(
                f"Source campaign has new creatives deployed in last {policy.creative_protection_days} days "
                "(creative protection window)"
            )
        if exceeds:
            warnings.append(
                f"Cumulative budget loss exceeds {policy.cumulative_loss_threshold_pct:g}% threshold "
                f"({round(loss_pct)}%)"
            )
        if at_floor:
            warnings.append(f"Source campaign is at or below ${policy.budget_floor_dollars:g}/day floor")
        below_floor_after = (
            decrease_amount is not None
            and not at_floor
            and src.daily_budget - decrease_amount < policy.budget_floor_dollars
        )
        if below_floor_after:
            warnings.append(
                f"Decreasing by ${decrease_amount:.2f} would take the budget to "
                f"${src.daily_budget - decrease_amount:.2f}/day, below the ${policy.budget_floor_dollars:g} floor"
            )
        if not targets:
            warnings.append("No viable target campaigns found in same brand/non-brand category")

        safe = bool(targets) and not (has_new_creatives or exceeds or at_floor or below_floor_after)

        log.info(
            "Reallocation impact analyzed",
            campaign_id=source_campaign_id,
            targets=len(targets),
            cumulative_loss_pct=round(loss_pct, 1),
            safe_to_decrease=safe,
        )

        return {
            "source": {
                "campaign_id": src.campaign_id,
                "campaign_name": src.campaign_name,
                "daily_budget": src.daily_budget,
                "cpa": round(src.cpa, 2),
                "utilization_rate": round(src.utilization_rate, 2),
                "is_brand": src.is_brand,
                "has_new_creatives": has_new_creatives,
                "decrease_amount": decrease_amount,
                "at_budget_floor": at_floor,
                "safe_to_decrease": safe,
            },
            "potential_targets": [self._target_dict(c) for c in targets[: policy.max_targets]],
            "brand_non_brand_safe": bool(targets),
            "cumulative_loss": {
                "total_dollars": round(loss_dollars, 2),
                "pct_of_window_budget": round(loss_pct, 1),
                "window_days": policy.cumulative_loss_window_days,
                "threshold_pct": policy.cumulative_loss_threshold_pct,
                "exceeds_40pct_threshold": exceeds,
            },
            "warnings": warnings,
        }

    async def _has_new_creatives(
        self,
        account_id: str,
        src: CampaignBudgetPerformance,
        ad_group_ids: Iterable[str],
    ) -> bool:
        since = self._now() - timedelta(days=self.policy.creative_protection_days)
        actions = await self.change_log.executed_actions(account_id, since, action_types=CREATIVE_ACTIONS)
        ids = {src.campaign_id, *(str(g) for g in ad_group_ids)}
        return any(a.references_id(i) for a in actions for i in ids)

    async def _cumulative_loss(self, account_id: str, src: CampaignBudgetPerformance) -> tuple[float, float]:
        window = self.policy.cumulative_loss_window_days
        since = self._now() - timedelta(days=window)
        actions = await self.change_log.executed_actions(account_id, since, action_types=BUDGET_ACTIONS)

        removed = sum(budget_removed_micros(a, src.campaign_id, src.budget_id) for a in actions)
        dollars = micros_to_dollars(removed)
        notional = src.daily_budget * window
        pct = round(dollars / notional * 100, 6) if notional > 0 else 0.0
        return dollars, pct

    @staticmethod
    def _target_dict(c: CampaignBudgetPerformance) -> dict:
        return {
            "campaign_id": c.campaign_id,
            "campaign_name": c.campaign_name,
            "daily_budget": c.daily_budget,
            "utilization_rate": round(c.utilization_rate, 2),
            "cpa": round(c.cpa, 2),
            "ctr": round(c.ctr, 4),
            "ctr_trend": round(c.ctr_trend, 2),
            "impression_share": round(c.search_impression_share, 2),
            "conversions": c.conversions,
            "is_brand": c.is_brand,
            "headroom": round(max(0.0, 1 - c.utilization_rate) * c.daily_budget, 2),
        }
