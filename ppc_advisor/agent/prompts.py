"""
Recommendation loop prompt templates

- System prompt = behaviour rules (investigation process, budget, constraints)
- Tool schemas  = capability catalogue (descriptions live on the tools)
- Initial message = the account snapshot the session investigates
"""

import json
from datetime import date

from ppc_advisor.ads.schemas import AdPerformance
from ppc_advisor.agent.schemas import InitialFacts
from ppc_advisor.guardrails.schemas import action_detail_contract

MAX_PROMPT_KEYWORDS = 50
MAX_PROMPT_ADS = 30

_SYSTEM_TEMPLATE = """\
You are a PPC advisor managing Google Ads campaigns. You analyze performance data and propose optimizations for a human to approve. You INVESTIGATE before recommending: use your tools to check cross-system signals, historical patterns and downstream impact before committing to a recommendation.

## Investigation Process
1. Review the performance data provided. Identify areas of concern (high CPA, low CTR, spend anomalies).
2. For budget changes: ALWAYS use check_reallocation_impact before proposing. This prevents the brand-starvation anti-pattern.
3. For keywords with unusual CPA: use get_historical_performance to check whether this is seasonal or a real trend.
4. For any keyword or topic you consider changing: use check_signal_bus to check whether other systems see organic interest.
5. Before submitting: use evaluate_recommendation to self-check each proposal against the guardrails.
6. Call submit_recommendations with your final proposals, or skip_recommendations if nothing is warranted.

## Budget
You have {max_tool_calls} tool calls and {timeout_seconds:g} seconds. Not every recommendation needs every tool. You MUST call submit_recommendations or skip_recommendations before the budget runs out. Replying without a tool call ends the session with nothing submitted.

## Critical Constraints
- LOW-VOLUME account. Be conservative and do not thrash on thin data.
- You CANNOT override guardrails. If a guardrail blocks an action, do not propose it.
- Allowed actions: {allowed_actions}
- NEVER propose pausing a campaign that has conversions.
- Max bid change: {bid_cap:g}% per adjustment. Minimum daily budget: ${budget_floor:.2f}.

## Keyword Rehabilitation Rule
NEVER propose pause_keyword or add_negative_keyword for strategic food & beverage industry keywords:
{protected_terms}, and related ERP/software terms.
Propose creative improvements instead (new ad copy, bid adjustments, match type changes).

## Ad Management Rules
- PREFER replace_ad over separate pause_ad + create_ad when swapping underperforming ads.
- replace_ad: when an ad is >30% worse CTR/CPA than its siblings with 50+ impressions.
- create_ad: when an ad group has only 1 active ad or CTR below 3%.
- pause_ad: when >100 impressions, zero conversions, and the ad group has 3+ active ads.
- NEVER pause the last active ad in an ad group.

## Action Detail Fields
Every proposal's action_detail uses these keys. Amounts are in micros ($1 = 1000000). The guardrails reject a budget change without its new amount and a campaign pause without campaign_id.
{action_detail_fields}

## Action Detail ID Rules
ALL IDs (campaign_id, ad_group_id, ad_id, criterion_id, budget_id) MUST be real numeric Google Ads IDs from the data provided. NEVER use placeholders.
If proposing add_negative_keyword for several campaigns, create a SEPARATE proposal per campaign.

## Account Config
{account}

## Guardrails in Effect
{guardrails}

## Guardrail Violations This Run
{violations}

## Anomalies Detected
{anomalies}

Today: {today}"""

_INITIAL_TEMPLATE = """\
Here is the current Google Ads performance data. Analyze it, investigate using your tools, and propose optimizations.

CAMPAIGN PERFORMANCE (last 7 days):
{campaigns}

KEYWORD PERFORMANCE (last 7 days):
{keywords}

AD PERFORMANCE (last 7 days, top {max_ads} by spend):
{ads}

TODAY'S SPEND:
{today_spend}

RECENT DECISION HISTORY (learn from what was approved vs rejected):
{history}"""

# Shown in the prompt; the evaluator checks the full vocabulary
_PROMPT_TERMS = (
    "meat, beef, pork, poultry, chicken, seafood, fish, dairy, bakery, brewery, beverage, "
    "food processing, food manufacturing, food safety, HACCP, USDA"
)


def _dump(obj) -> str:
    return json.dumps(obj, indent=2, ensure_ascii=False, default=str)


def _bullets(lines: list[str]) -> str:
    return "\n".join(lines) if lines else "None"


def slim_ad(ad: AdPerformance) -> dict:
    return {
        "ad_id": ad.ad_id,
        "ad_group_id": ad.ad_group_id,
        "ad_group_name": ad.ad_group_name,
        "campaign_name": ad.campaign_name,
        "headlines": ad.headlines,
        "status": ad.status,
        "impressions": ad.impressions,
        "clicks": ad.clicks,
        "ctr": ad.ctr,
        "conversions": ad.conversions,
        "cost_per_conversion": ad.cost_per_conversion,
        "final_urls": ad.final_urls,
    }


def build_system_prompt(
    facts: InitialFacts,
    max_tool_calls: int,
    timeout_seconds: float,
    budget_floor: float = 25.0,
    bid_cap: float = 20.0,
) -> str:
    guardrails = [
        f"- {g.get('rule_name') or g.get('rule_type')}: {g.get('threshold_value')} ({g.get('violation_action', 'block')})"
        for g in facts.guardrails
    ]
    return _SYSTEM_TEMPLATE.format(
        max_tool_calls=max_tool_calls,
        timeout_seconds=timeout_seconds,
        allowed_actions=", ".join(facts.allowed_actions),
        bid_cap=bid_cap,
        budget_floor=budget_floor,
        protected_terms=_PROMPT_TERMS,
        action_detail_fields=action_detail_contract(),
        account=_dump(facts.account),
        guardrails=_bullets(guardrails),
        violations=_bullets(facts.guardrail_violations),
        anomalies=_bullets(facts.anomalies),
        today=date.today().isoformat(),
    )


def build_initial_message(facts: InitialFacts, recent_decisions: list | tuple = ()) -> str:
    ads = sorted(facts.ads, key=lambda a: a.cost, reverse=True)[:MAX_PROMPT_ADS]
    spend = facts.today_spend
    return _INITIAL_TEMPLATE.format(
        campaigns=_dump([c.to_dict() for c in facts.campaigns]),
        keywords=_dump([k.to_dict() for k in facts.keywords[:MAX_PROMPT_KEYWORDS]]),
        max_ads=MAX_PROMPT_ADS,
        ads=_dump([slim_ad(a) for a in ads]),
        today_spend=json.dumps({
            "spend": round(spend.cost, 2),
            "clicks": spend.clicks,
            "impressions": spend.impressions,
            "conversions": spend.conversions,
        }),
        history=_dump(list(recent_decisions)),
    )
