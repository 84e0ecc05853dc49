"""
Guardrail evaluator: deterministic safety rules for one proposed action

Rules (all evaluated, never short-circuited):
1. budget_floor     : new daily budget must be >= floor (a violation when no amount is given)
2. bid_cap          : bid change must stay within the cap (warning when the current bid is unknown)
3. protected_keyword: strategic industry keywords are never paused / negated
4. protected_campaign: campaigns with conversions in the window are never paused (a violation when the target is unknown)
5. last_active_ad   : the last enabled ad of an ad group is never paused
6. id_validity      : every identifier field must be a string of digits

Pure: no I/O, reads only the GuardrailContext it is given.
"""

import re
from typing import Any

from ppc_advisor.ads.schemas import micros_to_dollars
from ppc_advisor.guardrails.industry_terms import classify_industry, find_protected_term
from ppc_advisor.guardrails.schemas import (
    ALLOWED_ACTIONS,
    ActionType,
    GuardrailContext,
    GuardrailEvaluation,
    GuardrailLimits,
)

# (snake_case, camelCase), the reasoning step uses either spelling
ID_FIELDS: tuple[tuple[str, str], ...] = (
    ("campaign_id", "campaignId"),
    ("ad_group_id", "adGroupId"),
    ("ad_id", "adId"),
    ("old_ad_id", "oldAdId"),
    ("criterion_id", "criterionId"),
    ("budget_id", "budgetId"),
    ("from_campaign_id", "fromCampaignId"),
    ("to_campaign_id", "toCampaignId"),
    ("from_budget_id", "fromBudgetId"),
    ("to_budget_id", "toBudgetId"),
)

BUDGET_MICROS_KEYS = (
    "new_amount_micros", "newAmountMicros",
    "new_daily_budget_micros", "newDailyBudgetMicros",
    "new_budget_micros", "newBudgetMicros",
)
BUDGET_DOLLAR_KEYS = ("new_amount", "newAmount", "new_daily_budget", "newDailyBudget", "new_budget", "newBudget")
SOURCE_BUDGET_MICROS_KEYS = ("from_new_amount_micros", "fromNewAmountMicros")
SOURCE_BUDGET_DOLLAR_KEYS = ("from_new_amount", "fromNewAmount")

_DIGITS = re.compile(r"^\d+$")
_MONEY = re.compile(r"^\$?\s*(\d[\d,]*(?:\.\d+)?)$")


def _get(detail: dict, *names: str) -> Any:
    for name in names:
        value = detail.get(name)
        if value is not None:
            return value
    return None


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_dollars(value: Any) -> float | None:
    """Plain numbers or money strings such as "$1,250.00" """
    if isinstance(value, str):
        match = _MONEY.match(value.strip())
        return float(match.group(1).replace(",", "")) if match else None
    return _as_number(value)


class GuardrailEvaluator:
    """Applies the rule set to one action at a time"""

    def __init__(self, limits: GuardrailLimits | None = None):
        self.limits = limits or GuardrailLimits.from_settings()

    def evaluate(
        self,
        action_type: str,
        action_detail: dict,
        context: GuardrailContext,
    ) -> GuardrailEvaluation:
        violations: list[str] = []
        warnings: list[str] = []
        rules: list[str] = []

        def violate(rule: str, message: str) -> None:
            violations.append(message)
            rules.append(rule)

        detail = action_detail if isinstance(action_detail, dict) else {}
        if not isinstance(action_detail, dict):
            violate("action_detail", "action_detail must be an object")

        if action_type not in ALLOWED_ACTIONS:
            violate(
                "action_type",
                f"Unsupported action type '{action_type}'. Allowed: {', '.join(ALLOWED_ACTIONS)}",
            )

        self._check_budget_floor(action_type, detail, violate)
        self._check_bid_cap(action_type, detail, context, violate, warnings)
        self._check_protected_keyword(action_type, detail, context, violate)
        self._check_protected_campaign(action_type, detail, context, violate, warnings)
        self._check_last_active_ad(action_type, detail, context, violate, warnings)
        self._check_ids(detail, violate)

        return GuardrailEvaluation(
            violations=tuple(violations),
            warnings=tuple(warnings),
            violated_rules=tuple(rules),
        )

    # ── Rule 1 ──

    def _check_budget_floor(self, action_type, detail, violate) -> None:
        floor = self.limits.budget_floor_dollars

        if action_type == ActionType.ADJUST_BUDGET.value:
            new_amount = self._dollars(detail, BUDGET_MICROS_KEYS, BUDGET_DOLLAR_KEYS)
            expected = "new_amount_micros"
        elif action_type == ActionType.REALLOCATE_BUDGET.value:
            new_amount = self._dollars(detail, SOURCE_BUDGET_MICROS_KEYS, SOURCE_BUDGET_DOLLAR_KEYS)
            expected = "from_new_amount_micros"
        else:
            return

        if new_amount is None:
            violate(
                "budget_floor",
                f"Budget floor (${floor:.2f}/day) cannot be validated: action_detail needs {expected}",
            )
            return
        if new_amount < floor:
            violate(
                "budget_floor",
                f"Budget floor violation: ${new_amount:.2f}/day is below ${floor:.2f} minimum",
            )

    @staticmethod
    def _dollars(detail: dict, micros_keys: tuple[str, ...], dollar_keys: tuple[str, ...]) -> float | None:
        micros = _as_number(_get(detail, *micros_keys))
        if micros is not None:
            return micros_to_dollars(micros)
        return _as_dollars(_get(detail, *dollar_keys))

    # ── Rule 2 ──

    def _check_bid_cap(self, action_type, detail, context, violate, warnings) -> None:
        if action_type != ActionType.ADJUST_BID.value:
            return
        cap = self.limits.bid_change_cap_pct

        new_bid = _as_number(_get(detail, "new_bid_micros", "newBidMicros"))
        if new_bid is None:
            warnings.append("Bid cap cannot be validated: no new_bid_micros in action_detail")
            return

        current = _as_number(_get(detail, "current_bid_micros", "currentBidMicros"))
        if current is None:
            criterion_id = _get(detail, "criterion_id", "criterionId")
            keyword = context.find_keyword(str(criterion_id)) if criterion_id is not None else None
            if keyword is not None:
                current = _as_number(keyword.cpc_bid_micros)

        if not current or current <= 0:
            warnings.append(
                f"Bid cap ({cap:.0f}% max change) cannot be fully validated without current bid data"
            )
            return

        change_pct = round(abs(new_bid - current) / current * 100, 6)
        if change_pct > cap:
            violate(
                "bid_cap",
                f"Bid cap violation: {change_pct:.1f}% change "
                f"(${micros_to_dollars(current):.2f} -> ${micros_to_dollars(new_bid):.2f}) exceeds {cap:.0f}% maximum",
            )

    # ── Rule 3 ──

    @staticmethod
    def _check_protected_keyword(action_type, detail, context, violate) -> None:
        if action_type not in (ActionType.PAUSE_KEYWORD.value, ActionType.ADD_NEGATIVE_KEYWORD.value):
            return

        keyword_text = _get(detail, "keyword_text", "keywordText")
        if not keyword_text:
            criterion_id = _get(detail, "criterion_id", "criterionId")
            keyword = context.find_keyword(str(criterion_id)) if criterion_id is not None else None
            keyword_text = keyword.keyword_text if keyword else None
        if not isinstance(keyword_text, str) or not keyword_text:
            return

        term = find_protected_term(keyword_text)
        if term is not None:
            category = classify_industry(keyword_text) or "food_general"
            violate(
                "protected_keyword",
                f"Keyword rehabilitation violation: \"{keyword_text}\" contains strategic term "
                f"\"{term}\" ({category}). Use adjust_bid, replace_ad or creative improvements instead.",
            )

    # ── Rule 4 ──

    @staticmethod
    def _check_protected_campaign(action_type, detail, context, violate, warnings) -> None:
        if action_type != ActionType.PAUSE_CAMPAIGN.value:
            return
        campaign_id = _get(detail, "campaign_id", "campaignId")
        if campaign_id is None:
            campaign_name = _get(detail, "campaign_name", "campaignName")
            campaign = context.find_campaign_by_name(campaign_name) if isinstance(campaign_name, str) else None
            if campaign is None:
                violate(
                    "protected_campaign",
                    "Protected-campaign rule cannot be validated: action_detail needs campaign_id",
                )
                return
            campaign_id = campaign.campaign_id
        campaign = context.find_campaign(str(campaign_id))
        if campaign is None:
            warnings.append(
                f"Campaign {campaign_id} is not in the current reporting window; conversions unknown"
            )
            return
        if campaign.conversions > 0:
            violate(
                "protected_campaign",
                f"Cannot pause campaign {campaign_id} with conversions "
                f"({campaign.conversions:g} in the current reporting window)",
            )

    # ── Rule 5 ──

    @staticmethod
    def _check_last_active_ad(action_type, detail, context, violate, warnings) -> None:
        if action_type != ActionType.PAUSE_AD.value:
            return
        ad_group_id = _get(detail, "ad_group_id", "adGroupId")
        if ad_group_id is None:
            ad_id = _get(detail, "ad_id", "adId")
            ad = context.find_ad(str(ad_id)) if ad_id is not None else None
            ad_group_id = ad.ad_group_id if ad else None
        if ad_group_id is None:
            warnings.append("Last-active-ad rule cannot be validated: ad group unknown")
            return

        active = context.enabled_ads_in_group(str(ad_group_id))
        if len(active) <= 1:
            violate(
                "last_active_ad",
                f"Cannot pause last active ad in ad group {ad_group_id} (only {len(active)} active)",
            )

    # ── Rule 6 ──

    @staticmethod
    def _check_ids(detail, violate) -> None:
        for snake, camel in ID_FIELDS:
            for key in (snake, camel):
                if key not in detail:
                    continue
                value = detail[key]
                if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
                    continue
                if isinstance(value, str) and _DIGITS.match(value):
                    continue
                violate("id_validity", f"Invalid ID: {key} = \"{value}\" (must be numeric)")
