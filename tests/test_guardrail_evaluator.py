import pytest

from ppc_advisor.guardrails.evaluator import GuardrailEvaluator
from ppc_advisor.guardrails.industry_terms import classify_industry, is_strategic_keyword
from ppc_advisor.guardrails.schemas import GuardrailLimits


@pytest.fixture
def evaluator() -> GuardrailEvaluator:
    return GuardrailEvaluator(GuardrailLimits(budget_floor_dollars=25.0, bid_change_cap_pct=20.0))


def test_budget_below_floor_is_violation(evaluator, context):
    result = evaluator.evaluate("adjust_budget", {"campaign_id": "111", "new_amount_micros": "20000000"}, context)

    assert not result.passes
    assert result.violations == ("Budget floor violation: $20.00/day is below $25.00 minimum",)
    assert result.violated_rules == ("budget_floor",)


def test_budget_exactly_at_floor_passes(evaluator, context):
    result = evaluator.evaluate("adjust_budget", {"campaign_id": "111", "new_amount_micros": 25_000_000}, context)

    assert result.passes
    assert result.warnings == ()


def test_budget_without_amount_is_violation(evaluator, context):
    result = evaluator.evaluate("adjust_budget", {"campaign_id": "111"}, context)

    assert not result.passes
    assert result.violated_rules == ("budget_floor",)
    assert "needs new_amount_micros" in result.violations[0]


@pytest.mark.parametrize("detail", [
    {"campaign_id": "1", "budget_id": "9", "new_daily_budget_micros": "10000000"},
    {"campaign_id": "1", "new_amount": "$10.00"},
    {"campaign_id": "1", "newDailyBudget": 10},
])
def test_budget_floor_reads_alternate_amount_keys(evaluator, context, detail):
    result = evaluator.evaluate("adjust_budget", detail, context)

    assert result.violations == ("Budget floor violation: $10.00/day is below $25.00 minimum",)


def test_unparseable_budget_amount_is_violation(evaluator, context):
    result = evaluator.evaluate("adjust_budget", {"campaign_id": "1", "new_amount": "ten dollars"}, context)

    assert result.violated_rules == ("budget_floor",)


def test_reallocation_without_source_amount_is_violation(evaluator, context):
    detail = {"from_campaign_id": "111", "to_campaign_id": "222", "amount_micros": "5000000"}

    result = evaluator.evaluate("reallocate_budget", detail, context)

    assert result.violated_rules == ("budget_floor",)
    assert "from_new_amount_micros" in result.violations[0]


def test_reallocation_checks_source_new_amount(evaluator, context):
    detail = {"from_campaign_id": "111", "to_campaign_id": "222", "from_new_amount_micros": "10000000"}

    result = evaluator.evaluate("reallocate_budget", detail, context)

    assert result.violated_rules == ("budget_floor",)


def test_bid_change_over_cap_uses_keyword_current_bid(evaluator, context):
    # 2.00 -> 2.50 is +25%
    result = evaluator.evaluate("adjust_bid", {"criterion_id": "501", "new_bid_micros": "2500000"}, context)

    assert result.violated_rules == ("bid_cap",)
    assert "25.0% change" in result.violations[0]


def test_bid_change_exactly_at_cap_passes(evaluator, context):
    result = evaluator.evaluate("adjust_bid", {"criterion_id": "501", "new_bid_micros": "2400000"}, context)

    assert result.passes
    assert result.warnings == ()


def test_bid_change_with_explicit_current_bid(evaluator, context):
    detail = {"criterion_id": "502", "current_bid_micros": "1000000", "new_bid_micros": "500000"}

    result = evaluator.evaluate("adjust_bid", detail, context)

    assert result.violated_rules == ("bid_cap",)


def test_bid_change_without_current_bid_degrades_to_warning(evaluator, context):
    result = evaluator.evaluate("adjust_bid", {"criterion_id": "502", "new_bid_micros": "9000000"}, context)

    assert result.passes
    assert any("current bid" in w for w in result.warnings)


@pytest.mark.parametrize("action_type", ["pause_keyword", "add_negative_keyword"])
def test_strategic_keyword_cannot_be_eliminated(evaluator, context, action_type):
    result = evaluator.evaluate(action_type, {"keyword_text": "Dairy ERP software"}, context)

    assert result.violated_rules == ("protected_keyword",)
    assert '"dairy"' in result.violations[0]
    assert "(dairy)" in result.violations[0]


def test_strategic_keyword_resolved_from_criterion_id(evaluator, context):
    result = evaluator.evaluate("pause_keyword", {"criterion_id": "501"}, context)

    assert result.violated_rules == ("protected_keyword",)


def test_strategic_keyword_bid_change_is_allowed(evaluator, context):
    result = evaluator.evaluate("adjust_bid", {"criterion_id": "501", "new_bid_micros": "2200000"}, context)

    assert result.passes


def test_non_strategic_keyword_can_be_paused(evaluator, context):
    result = evaluator.evaluate("pause_keyword", {"criterion_id": "502", "keyword_text": "cheap erp"}, context)

    assert result.passes


def test_converting_campaign_cannot_be_paused(evaluator, context):
    result = evaluator.evaluate("pause_campaign", {"campaign_id": "111"}, context)

    assert result.violated_rules == ("protected_campaign",)


def test_non_converting_campaign_can_be_paused(evaluator, context):
    assert evaluator.evaluate("pause_campaign", {"campaign_id": "222"}, context).passes


def test_pause_campaign_without_target_is_violation(evaluator, context):
    result = evaluator.evaluate("pause_campaign", {"campaignName": "Generic A"}, context)

    assert result.violated_rules == ("protected_campaign",)
    assert "needs campaign_id" in result.violations[0]


def test_pause_campaign_resolved_by_name(evaluator, context):
    result = evaluator.evaluate("pause_campaign", {"campaign_name": "non-brand erp"}, context)

    assert result.violated_rules == ("protected_campaign",)
    assert "Cannot pause campaign 111" in result.violations[0]


def test_pause_campaign_outside_reporting_window_warns(evaluator, context):
    result = evaluator.evaluate("pause_campaign", {"campaign_id": "333"}, context)

    assert result.passes
    assert result.warnings == ("Campaign 333 is not in the current reporting window; conversions unknown",)


def test_last_active_ad_cannot_be_paused(evaluator, context):
    # ad group 702 has one enabled and one paused ad
    result = evaluator.evaluate("pause_ad", {"ad_id": "803"}, context)

    assert result.violated_rules == ("last_active_ad",)
    assert "only 1 active" in result.violations[0]


def test_ad_with_sibling_can_be_paused(evaluator, context):
    assert evaluator.evaluate("pause_ad", {"ad_id": "801", "ad_group_id": "701"}, context).passes


def test_non_numeric_ids_are_violations(evaluator, context):
    detail = {"campaign_id": "camp-111", "adGroupId": "701", "criterion_id": "abc", "new_bid_micros": "1"}

    result = evaluator.evaluate("adjust_bid", detail, context)

    id_violations = [v for v in result.violations if v.startswith("Invalid ID")]
    assert len(id_violations) == 2
    assert 'campaign_id = "camp-111"' in id_violations[0]


def test_integer_ids_are_accepted(evaluator, context):
    assert evaluator.evaluate("pause_campaign", {"campaign_id": 222}, context).passes


def test_unsupported_action_type(evaluator, context):
    result = evaluator.evaluate("delete_account", {}, context)

    assert result.violated_rules == ("action_type",)


def test_all_rules_are_reported_together(evaluator, context):
    detail = {"campaign_id": "x1", "new_amount_micros": "1000000"}

    result = evaluator.evaluate("adjust_budget", detail, context)

    assert set(result.violated_rules) == {"budget_floor", "id_validity"}
    assert result.to_dict()["passes"] is False


def test_industry_classification():
    assert classify_industry("chicken plant erp") == "poultry"
    assert classify_industry("food erp for small plants") == "food_general"
    assert classify_industry("project management") is None
    assert is_strategic_keyword("HACCP compliance")
    assert not is_strategic_keyword("accounting software")
