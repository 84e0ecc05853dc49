"""
Guardrail data structures

- ActionType: closed set of account changes a proposal may ask for
- Proposal: one suggested change awaiting human approval (validated with Pydantic)
- GuardrailContext: read-only session snapshot consulted by the evaluator
- GuardrailEvaluation: evaluator output (violations block, warnings inform)
"""

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ppc_advisor.ads.schemas import AdPerformance, CampaignPerformance, KeywordPerformance
from ppc_advisor.config import get_settings


class ActionType(str, Enum):
    ADD_KEYWORD = "add_keyword"
    ADD_NEGATIVE_KEYWORD = "add_negative_keyword"
    PAUSE_KEYWORD = "pause_keyword"
    ADJUST_BID = "adjust_bid"
    ADJUST_BUDGET = "adjust_budget"
    REALLOCATE_BUDGET = "reallocate_budget"
    PAUSE_CAMPAIGN = "pause_campaign"
    ENABLE_CAMPAIGN = "enable_campaign"
    CREATE_AD = "create_ad"
    REPLACE_AD = "replace_ad"
    PAUSE_AD = "pause_ad"
    ENABLE_AD = "enable_ad"


ALLOWED_ACTIONS: tuple[str, ...] = tuple(a.value for a in ActionType)

# action_detail keys per action type; amounts in micros, IDs as numeric strings
ACTION_DETAIL_FIELDS: dict[str, str] = {
    ActionType.ADD_KEYWORD.value: "campaign_id, ad_group_id, keyword_text, match_type, cpc_bid_micros (optional)",
    ActionType.ADD_NEGATIVE_KEYWORD.value: "campaign_id, keyword_text, match_type",
    ActionType.PAUSE_KEYWORD.value: "campaign_id, ad_group_id, criterion_id, keyword_text",
    ActionType.ADJUST_BID.value: "ad_group_id, criterion_id, current_bid_micros, new_bid_micros",
    ActionType.ADJUST_BUDGET.value: "campaign_id, budget_id, previous_amount_micros, new_amount_micros",
    ActionType.REALLOCATE_BUDGET.value: (
        "from_campaign_id, from_budget_id, to_campaign_id, to_budget_id, amount_micros, "
        "from_new_amount_micros, to_new_amount_micros"
    ),
    ActionType.PAUSE_CAMPAIGN.value: "campaign_id",
    ActionType.ENABLE_CAMPAIGN.value: "campaign_id",
    ActionType.CREATE_AD.value: "campaign_id, ad_group_id, headlines (3+), descriptions (2+), final_urls",
    ActionType.REPLACE_AD.value: "campaign_id, ad_group_id, old_ad_id, headlines (3+), descriptions (2+), final_urls",
    ActionType.PAUSE_AD.value: "ad_group_id, ad_id",
    ActionType.ENABLE_AD.value: "ad_group_id, ad_id",
}


def action_detail_contract() -> str:
    """One line per action type, for prompts and tool descriptions"""
    return "\n".join(f"- {action}: {fields}" for action, fields in ACTION_DETAIL_FIELDS.items())


class Proposal(BaseModel):
    """A single proposed account change. Frozen once the session ends."""

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    action_type: ActionType
    action_summary: str = Field(min_length=1, description="One-line summary for the human reviewer")
    action_detail: dict[str, Any] = Field(
        description="Fields needed to execute the action (see the per-action keys); amounts in micros, "
        "IDs are numeric strings",
    )
    reason: str = Field(min_length=1, description="Rationale citing the metrics that triggered it")
    risk_level: Literal["low", "medium", "high"]
    priority: int = Field(ge=1, le=10)
    data_snapshot: dict[str, Any] | None = Field(default=None, description="Supporting data points")

    @field_validator("risk_level", mode="before")
    @classmethod
    def _lower_risk(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("action_detail", "data_snapshot")
    @classmethod
    def _own_copy(cls, v: dict | None) -> dict | None:
        # detached from the caller's payload (nested lists / dicts included)
        return copy.deepcopy(v)


# ── Session snapshot ──


@dataclass(frozen=True)
class GuardrailContext:
    """Read-only snapshot supplied once per session"""

    account_id: str
    guardrails: tuple[dict, ...] = ()           # active guardrail rule rows
    campaigns: tuple[CampaignPerformance, ...] = ()
    ads: tuple[AdPerformance, ...] = ()
    keywords: tuple[KeywordPerformance, ...] = ()  # current bids for the bid-cap rule

    def find_campaign(self, campaign_id: str) -> CampaignPerformance | None:
        return next((c for c in self.campaigns if c.campaign_id == str(campaign_id)), None)

    def find_campaign_by_name(self, campaign_name: str) -> CampaignPerformance | None:
        name = campaign_name.strip().lower()
        return next((c for c in self.campaigns if c.campaign_name.strip().lower() == name), None)

    def find_keyword(self, criterion_id: str) -> KeywordPerformance | None:
        return next((k for k in self.keywords if k.criterion_id == str(criterion_id)), None)

    def find_ad(self, ad_id: str) -> AdPerformance | None:
        return next((a for a in self.ads if a.ad_id == str(ad_id)), None)

    def enabled_ads_in_group(self, ad_group_id: str) -> list[AdPerformance]:
        return [
            a for a in self.ads
            if a.ad_group_id == str(ad_group_id) and a.status == "ENABLED"
        ]


@dataclass(frozen=True)
class GuardrailLimits:
    """Tunable thresholds (per-account risk tolerance)"""

    budget_floor_dollars: float = 25.0
    bid_change_cap_pct: float = 20.0

    @classmethod
    def from_settings(cls) -> "GuardrailLimits":
        s = get_settings()
        return cls(
            budget_floor_dollars=s.GUARDRAIL_BUDGET_FLOOR_DOLLARS,
            bid_change_cap_pct=s.GUARDRAIL_BID_CHANGE_CAP_PCT,
        )


# ── Evaluator output ──


@dataclass(frozen=True)
class GuardrailEvaluation:
    """passes iff there are no violations; warnings never block"""

    violations: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    violated_rules: tuple[str, ...] = field(default=(), compare=False)  # rule ids, for metrics

    @property
    def passes(self) -> bool:
        return not self.violations

    def to_dict(self) -> dict:
        return {
            "passes": self.passes,
            "violations": list(self.violations),
            "warnings": list(self.warnings),
        }
