"""
Account snapshot: the deterministic pre-pass before a session

- load account config + active guardrail rules
- pull campaign / keyword / ad performance and today's spend
- rule-driven checks: budget pacing, CPC spikes, minimum data points,
  converting campaigns (protected from pause)
Produces the GuardrailContext and the InitialFacts the loop starts from.
"""

import asyncio
import uuid
from dataclasses import dataclass, field

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ppc_advisor.ads.base import PerformanceSource
from ppc_advisor.ads.schemas import CampaignPerformance, KeywordPerformance, TodaySpend
from ppc_advisor.agent.schemas import InitialFacts
from ppc_advisor.db.models.account import Account, GuardrailRule
from ppc_advisor.db.models.decision import DecisionQueueItem
from ppc_advisor.guardrails.schemas import ALLOWED_ACTIONS, ActionType, GuardrailContext

log = structlog.get_logger()

# Removed from the allowed list when there is not enough data to optimize on
DATA_DEPENDENT_ACTIONS = (
    ActionType.ADJUST_BID.value,
    ActionType.PAUSE_KEYWORD.value,
    ActionType.ADJUST_BUDGET.value,
)
RECENT_DECISIONS_LIMIT = 20


@dataclass
class PreChecks:
    anomalies: list[str] = field(default_factory=list)
    violations: list[str] = field(default_factory=list)
    allowed_actions: list[str] = field(default_factory=lambda: list(ALLOWED_ACTIONS))


def _threshold(rules: dict[str, dict], rule_type: str) -> float | None:
    rule = rules.get(rule_type)
    if rule is None or rule.get("threshold_value") is None:
        return None
    return float(rule["threshold_value"])


def budget_pacing_violation(spend: TodaySpend, daily_cap: float | None, threshold_pct: float | None) -> str | None:
    if threshold_pct is None or not daily_cap or daily_cap <= 0:
        return None
    pct_used = spend.cost / daily_cap * 100
    if pct_used > threshold_pct:
        return f"Budget pacing alert: {pct_used:.1f}% of daily cap spent (limit: {threshold_pct:g}%)"
    return None


def cpc_spike_anomalies(
    keywords: list[KeywordPerformance],
    avg_cpc_7day: dict[str, float],
    threshold_pct: float | None,
) -> list[str]:
    if threshold_pct is None:
        return []
    out = []
    for kw in keywords:
        baseline = avg_cpc_7day.get(kw.criterion_id, 0.0)
        if baseline <= 0 or kw.avg_cpc <= 0:
            continue
        change = (kw.avg_cpc - baseline) / baseline * 100
        if change > threshold_pct:
            out.append(
                f'CPC spike on "{kw.keyword_text}": ${kw.avg_cpc:.2f} vs 7-day avg ${baseline:.2f} (+{change:.0f}%)'
            )
    return out


def insufficient_data_violation(keywords: list[KeywordPerformance], min_clicks: float | None) -> str | None:
    if min_clicks is None:
        return None
    total = sum(kw.clicks for kw in keywords)
    if total < min_clicks:
        return (
            f"Insufficient data: {total} total clicks (need {min_clicks:g}). "
            "No bid, keyword or budget changes will be proposed."
        )
    return None


def converting_campaigns_note(campaigns: list[CampaignPerformance], lookback_days: float | None) -> str | None:
    if lookback_days is None:
        return None
    ids = [c.campaign_id for c in campaigns if c.conversions > 0]
    if not ids:
        return None
    return f"Campaigns with conversions in last {lookback_days:g} days (protected from pause): {', '.join(ids)}"


def run_prechecks(
    rules: dict[str, dict],
    account_daily_cap: float | None,
    campaigns: list[CampaignPerformance],
    keywords: list[KeywordPerformance],
    avg_cpc_7day: dict[str, float],
    spend: TodaySpend,
) -> PreChecks:
    checks = PreChecks()

    pacing = budget_pacing_violation(spend, account_daily_cap, _threshold(rules, "max_daily_spend_pct"))
    if pacing:
        checks.violations.append(pacing)

    checks.anomalies.extend(cpc_spike_anomalies(keywords, avg_cpc_7day, _threshold(rules, "cpc_spike_alert_pct")))

    thin = insufficient_data_violation(keywords, _threshold(rules, "min_data_points"))
    if thin:
        checks.violations.append(thin)
        checks.allowed_actions = [a for a in checks.allowed_actions if a not in DATA_DEPENDENT_ACTIONS]

    converting = converting_campaigns_note(campaigns, _threshold(rules, "never_pause_converting"))
    if converting:
        checks.anomalies.append(converting)

    return checks


class AccountSnapshotService:
    def __init__(self, source: PerformanceSource, session_factory: async_sessionmaker[AsyncSession]):
        self.source = source
        self._session_factory = session_factory

    async def build(self, account_id: str) -> tuple[GuardrailContext, InitialFacts]:
        """Raises LookupError when the account does not exist"""
        account, rules = await self._load_account(account_id)

        campaigns, keywords, avg_cpc, spend, ads = await asyncio.gather(
            self.source.campaign_performance("LAST_7_DAYS"),
            self.source.keyword_performance("LAST_7_DAYS"),
            self.source.keyword_7day_avg_cpc(),
            self.source.today_spend(),
            self.source.ad_performance("LAST_7_DAYS"),
        )

        rules_by_type = {r["rule_type"]: r for r in rules}
        daily_cap = float(account.daily_budget_cap) if account.daily_budget_cap is not None else None
        checks = run_prechecks(rules_by_type, daily_cap, campaigns, keywords, avg_cpc, spend)

        log.info(
            "Account snapshot built",
            campaigns=len(campaigns),
            keywords=len(keywords),
            ads=len(ads),
            anomalies=len(checks.anomalies),
            violations=len(checks.violations),
        )

        context = GuardrailContext(
            account_id=account_id,
            guardrails=tuple(rules),
            campaigns=tuple(campaigns),
            ads=tuple(ads),
            keywords=tuple(keywords),
        )
        facts = InitialFacts(
            campaigns=campaigns,
            keywords=keywords,
            ads=ads,
            today_spend=spend,
            anomalies=checks.anomalies,
            guardrail_violations=checks.violations,
            allowed_actions=checks.allowed_actions,
            guardrails=rules,
            account=account.to_prompt_dict(),
        )
        return context, facts

    async def recent_decisions(self, account_id: str) -> list[dict]:
        """Latest reviewed proposals, so the reasoning step can learn from approvals / rejections"""
        stmt = (
            select(DecisionQueueItem)
            .where(
                DecisionQueueItem.account_id == account_id,
                DecisionQueueItem.status.in_(("approved", "rejected")),
            )
            .order_by(DecisionQueueItem.created_at.desc())
            .limit(RECENT_DECISIONS_LIMIT)
        )
        async with self._session_factory() as db:
            rows = (await db.execute(stmt)).scalars().all()
        return [
            {"action_type": r.action_type, "action_summary": r.action_summary, "status": r.status}
            for r in rows
        ]

    async def _load_account(self, account_id: str) -> tuple[Account, list[dict]]:
        try:
            pk = uuid.UUID(str(account_id))
        except ValueError:
            raise LookupError(f"Account {account_id} not found") from None

        async with self._session_factory() as db:
            account = await db.get(Account, pk)
            if account is None:
                raise LookupError(f"Account {account_id} not found")
            rules = (
                await db.execute(
                    select(GuardrailRule).where(
                        GuardrailRule.account_id == account.id,
                        GuardrailRule.is_active.is_(True),
                    )
                )
            ).scalars().all()
        return account, [r.to_dict() for r in rules]
