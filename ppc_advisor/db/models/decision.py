"""
Decision queue + session audit

- DecisionQueueItem: one row per submitted proposal, awaiting human approval
- AgentRunAudit: one row per session (submit or skip), append-only
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column
from uuid6 import uuid7

from ppc_advisor.config import get_settings
from ppc_advisor.db.models.base import Base

settings = get_settings()
_schema = settings.DB_SCHEMA


class DecisionQueueItem(Base):
    __tablename__ = "decision_queue"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid7)
    account_id: Mapped[str] = mapped_column(String(64), index=True)
    change_log_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey(f"{_schema}.change_log.id")
    )
    action_type: Mapped[str] = mapped_column(String(50), nullable=False)
    action_summary: Mapped[str] = mapped_column(Text, nullable=False)
    action_detail: Mapped[dict] = mapped_column(JSONB, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    data_snapshot: Mapped[dict | None] = mapped_column(JSONB)
    risk_level: Mapped[str] = mapped_column(String(10), server_default="medium")
    priority: Mapped[int] = mapped_column(Integer, server_default="5")
    status: Mapped[str] = mapped_column(String(20), server_default="pending", index=True)
    session_metadata: Mapped[dict] = mapped_column(
        JSONB, default=dict, server_default="{}",
        comment="iteration_count / tools_used / tool_call_log",
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class AgentRunAudit(Base):
    __tablename__ = "agent_run_audit"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid7)
    account_id: Mapped[str] = mapped_column(String(64), index=True)
    trace_id: Mapped[str] = mapped_column(String(36), nullable=False)
    action: Mapped[str] = mapped_column(String(10), nullable=False, comment="submit / skip")
    forced: Mapped[bool] = mapped_column(server_default="false")
    reason: Mapped[str | None] = mapped_column(Text, comment="skip reason")
    narrative: Mapped[str | None] = mapped_column(Text)
    investigation_summary: Mapped[str] = mapped_column(Text, server_default="")
    proposal_count: Mapped[int] = mapped_column(Integer, server_default="0")
    iterations: Mapped[int] = mapped_column(Integer, server_default="0")
    tool_call_log: Mapped[list] = mapped_column(JSONB, default=list, server_default="[]")
    duration_ms: Mapped[int | None] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), index=True
    )
