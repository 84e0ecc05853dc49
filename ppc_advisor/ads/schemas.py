"""
Google Ads performance rows

All monetary values are dollars (converted from micros on read) unless the
field name ends in _micros. Identifiers stay numeric strings, as the API
returns them.
"""

from dataclasses import asdict, dataclass, field

BRAND_MARKERS = ("brand", "branded", "inecta")


def micros_to_dollars(micros: str | int | float | None) -> float:
    """1_000_000 micros = $1.00"""
    if micros is None or micros == "":
        return 0.0
    return float(micros) / 1_000_000


def dollars_to_micros(dollars: float) -> str:
    return str(round(dollars * 1_000_000))


def is_brand_campaign(name: str) -> bool:
    """Brand / non-brand split is by campaign name"""
    lower = name.lower()
    return any(marker in lower for marker in BRAND_MARKERS)


@dataclass
class CampaignPerformance:
    """Campaign metrics over a reporting window"""

    campaign_id: str
    campaign_name: str
    status: str
    budget_id: str | None = None
    daily_budget_micros: str | None = None
    impressions: int = 0
    clicks: int = 0
    ctr: float = 0.0
    avg_cpc: float = 0.0
    cost: float = 0.0
    conversions: float = 0.0
    cost_per_conversion: float = 0.0
    channel_type: str = ""
    bidding_strategy: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class KeywordPerformance:
    """Keyword metrics over a reporting window"""

    criterion_id: str
    keyword_text: str
    match_type: str
    status: str
    ad_group_id: str
    campaign_id: str
    campaign_name: str = ""
    cpc_bid_micros: str | None = None  # current bid, None when the ad group default applies
    impressions: int = 0
    clicks: int = 0
    ctr: float = 0.0
    avg_cpc: float = 0.0
    cost: float = 0.0
    conversions: float = 0.0
    cost_per_conversion: float = 0.0
    quality_score: int | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class AdPerformance:
    """Responsive search ad metrics over a reporting window"""

    ad_id: str
    ad_group_id: str
    campaign_id: str
    status: str
    ad_group_name: str = ""
    campaign_name: str = ""
    headlines: list[str] = field(default_factory=list)
    descriptions: list[str] = field(default_factory=list)
    final_urls: list[str] = field(default_factory=list)
    approval_status: str = "UNKNOWN"
    impressions: int = 0
    clicks: int = 0
    ctr: float = 0.0
    cost: float = 0.0
    conversions: float = 0.0
    cost_per_conversion: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class DailyMetrics:
    """One day of metrics for a campaign or keyword"""

    date: str  # YYYY-MM-DD
    campaign_id: str
    impressions: int = 0
    clicks: int = 0
    ctr: float = 0.0
    cost: float = 0.0
    conversions: float = 0.0
    cost_per_conversion: float = 0.0
    keyword_text: str | None = None  # set for keyword rows only
    criterion_id: str | None = None


@dataclass
class CampaignBudgetPerformance:
    """Campaign budget vs. spend, used by the reallocation analysis"""

    campaign_id: str
    campaign_name: str
    status: str
    budget_id: str
    daily_budget: float
    total_spend: float
    conversions: float
    cpa: float
    ctr: float
    utilization_rate: float  # spend / (daily budget * days), may exceed 1
    is_brand: bool
    search_impression_share: float = 0.0
    ctr_trend: float = 0.0  # (7d CTR - 30d CTR) / 30d CTR


@dataclass
class TodaySpend:
    cost: float = 0.0
    clicks: int = 0
    impressions: int = 0
    conversions: float = 0.0
