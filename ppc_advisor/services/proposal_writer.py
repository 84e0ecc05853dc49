"""
Proposal writer: persists a session's LoopResult

submit -> per proposal: a pending change_log row + a decision_queue row
          (session metadata attached, expires after PROPOSAL_EXPIRY_HOURS)
skip   -> no proposals
Both   -> one agent_run_audit row with the reason / summary / tool call log
All rows of a session are written in one transaction.
"""

import copy
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from uuid6 import uuid7

from ppc_advisor.agent.schemas import LoopResult
from ppc_advisor.config import get_settings
from ppc_advisor.db.models.change_log import ChangeLog
from ppc_advisor.db.models.decision import AgentRunAudit, DecisionQueueItem

log = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def session_metadata(result: LoopResult) -> dict:
    return {
        "iteration_count": result.iterations,
        "tools_used": result.tools_used,
        "tool_call_log": [c.to_dict() for c in result.tool_calls],
    }


class ProposalWriter:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        expiry_hours: int | None = None,
        now: Callable[[], datetime] = _utcnow,
    ):
        self._session_factory = session_factory
        self.expiry_hours = expiry_hours if expiry_hours is not None else get_settings().PROPOSAL_EXPIRY_HOURS
        self._now = now

    def build_rows(
        self,
        account_id: str,
        result: LoopResult,
        trace_id: str,
        duration_ms: int | None = None,
    ) -> list:
        """ORM rows for one session, in insert order"""
        session_end = self._now()
        expires_at = session_end + timedelta(hours=self.expiry_hours)
        metadata = session_metadata(result)
        rows: list = []

        for proposal in result.proposals:
            log_entry = ChangeLog(
                id=uuid7(),
                account_id=account_id,
                action_type=proposal.action_type,
                action_detail=copy.deepcopy(proposal.action_detail),
                data_used=copy.deepcopy(proposal.data_snapshot),
                reason=proposal.reason,
                outcome="pending",
                executed_by="agent",
            )
            rows.append(log_entry)
            rows.append(DecisionQueueItem(
                account_id=account_id,
                change_log_id=log_entry.id,
                action_type=proposal.action_type,
                action_summary=proposal.action_summary,
                action_detail=copy.deepcopy(proposal.action_detail),
                reason=proposal.reason,
                data_snapshot=copy.deepcopy(proposal.data_snapshot),
                risk_level=proposal.risk_level,
                priority=proposal.priority,
                status="pending",
                session_metadata=metadata,
                expires_at=expires_at,
            ))

        rows.append(AgentRunAudit(
            account_id=account_id,
            trace_id=trace_id,
            action=result.action,
            forced=result.forced,
            reason=result.skip_reason,
            narrative=result.narrative or None,
            investigation_summary=result.investigation_summary,
            proposal_count=len(result.proposals),
            iterations=result.iterations,
            tool_call_log=metadata["tool_call_log"],
            duration_ms=duration_ms,
        ))
        return rows

    async def write(
        self,
        account_id: str,
        result: LoopResult,
        trace_id: str,
        duration_ms: int | None = None,
    ) -> int:
        """Persist the session; returns the number of decision_queue rows written"""
        rows = self.build_rows(account_id, result, trace_id, duration_ms)
        async with self._session_factory() as db:
            async with db.begin():
                # change_log rows must exist before the decision rows referencing them
                for row in rows:
                    db.add(row)
                    if isinstance(row, ChangeLog):
                        await db.flush()

        log.info(
            "Session persisted",
            action=result.action,
            proposals=len(result.proposals),
            expiry_hours=self.expiry_hours,
        )
        return len(result.proposals)
