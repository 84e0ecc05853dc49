from datetime import timedelta

from conftest import NOW
from ppc_advisor.agent.schemas import LoopResult
from ppc_advisor.db.models import AgentRunAudit, ChangeLog, DecisionQueueItem
from ppc_advisor.guardrails.schemas import Proposal
from ppc_advisor.services.proposal_writer import ProposalWriter, session_metadata
from ppc_advisor.tools.base import ToolCallRecord

CALLS = [
    ToolCallRecord("check_signal_bus", {"topic": "dairy"}, {"signals": [], "count": 0}, 12),
    ToolCallRecord("evaluate_recommendation", {"action_type": "pause_ad"}, {"passes": True}, 3),
    ToolCallRecord("check_signal_bus", {"topic": "meat"}, {"signals": [], "count": 0}, 9),
]


def proposal(summary: str) -> Proposal:
    return Proposal(
        action_type="add_negative_keyword",
        action_summary=summary,
        action_detail={"campaign_id": "111", "keyword_text": "free erp"},
        reason="Zero conversions over 30 days",
        risk_level="low",
        priority=4,
        data_snapshot={"clicks": 41},
    )


def writer() -> ProposalWriter:
    return ProposalWriter(session_factory=None, expiry_hours=72, now=lambda: NOW)


def test_session_metadata_dedupes_tools_in_first_use_order():
    result = LoopResult.skip("nothing to do", "checked", iterations=3, tool_calls=CALLS)

    meta = session_metadata(result)

    assert meta["iteration_count"] == 3
    assert meta["tools_used"] == ["check_signal_bus", "evaluate_recommendation"]
    assert len(meta["tool_call_log"]) == 3
    assert meta["tool_call_log"][0] == {
        "tool_name": "check_signal_bus",
        "input": {"topic": "dairy"},
        "output": {"signals": [], "count": 0},
        "duration_ms": 12,
    }


def test_submit_writes_change_log_and_queue_row_per_proposal():
    result = LoopResult.submit(
        proposals=[proposal("Negate free erp"), proposal("Negate erp jobs")],
        narrative="Two wasteful queries.",
        investigation_summary="Checked signals first.",
        iterations=2,
        tool_calls=CALLS[:1],
    )

    rows = writer().build_rows("acct-1", result, trace_id="t-1", duration_ms=1500)

    assert [type(r) for r in rows] == [ChangeLog, DecisionQueueItem, ChangeLog, DecisionQueueItem, AgentRunAudit]
    log_entry, item = rows[0], rows[1]
    assert log_entry.outcome == "pending"
    assert item.change_log_id == log_entry.id
    assert item.status == "pending"
    assert item.risk_level == "low"
    assert item.action_type == "add_negative_keyword"
    assert item.expires_at == NOW + timedelta(hours=72)
    assert item.session_metadata["tools_used"] == ["check_signal_bus"]
    assert rows[0].id != rows[2].id

    audit = rows[-1]
    assert audit.action == "submit"
    assert audit.proposal_count == 2
    assert audit.narrative == "Two wasteful queries."
    assert audit.reason is None


def test_skip_writes_only_the_audit_row():
    result = LoopResult.forced_termination("Time budget exceeded", iterations=4, tool_calls=CALLS)

    rows = writer().build_rows("acct-1", result, trace_id="t-2")

    assert len(rows) == 1
    audit = rows[0]
    assert isinstance(audit, AgentRunAudit)
    assert audit.action == "skip"
    assert audit.forced is True
    assert audit.reason == "Forced termination: Time budget exceeded"
    assert audit.narrative is None
    assert len(audit.tool_call_log) == 3


def test_proposal_keeps_its_own_copy_of_the_payload():
    detail = {"campaign_id": "111", "keyword_text": "free erp", "match_types": ["PHRASE"]}

    p = Proposal(
        action_type="add_negative_keyword",
        action_summary="Negate free erp",
        action_detail=detail,
        reason="Zero conversions over 30 days",
        risk_level="low",
        priority=4,
    )
    detail["campaign_id"] = "999"
    detail["match_types"].append("EXACT")

    assert p.action_detail == {"campaign_id": "111", "keyword_text": "free erp", "match_types": ["PHRASE"]}


def test_rows_do_not_share_dicts_with_the_proposal():
    p = proposal("Negate free erp")
    result = LoopResult.submit(
        proposals=[p], narrative="One query.", investigation_summary="", iterations=1, tool_calls=[],
    )

    log_entry, item, _ = writer().build_rows("acct-1", result, trace_id="t-3")
    item.action_detail["campaign_id"] = "999"
    log_entry.data_used["clicks"] = 0

    assert p.action_detail["campaign_id"] == "111"
    assert p.data_snapshot == {"clicks": 41}
    assert log_entry.action_detail["campaign_id"] == "111"
