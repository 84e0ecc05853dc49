"""
Change log: append-only record of every proposed / executed account change

outcome moves pending -> executed / auto_executed / rejected / expired.
Only executed rows feed the historical and reallocation analysis.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column
from uuid6 import uuid7

from ppc_advisor.db.models.base import Base

EXECUTED_OUTCOMES = ("executed", "auto_executed")


class ChangeLog(Base):
    __tablename__ = "change_log"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid7)
    account_id: Mapped[str] = mapped_column(String(64), index=True)
    action_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    action_detail: Mapped[dict] = mapped_column(JSONB, default=dict, server_default="{}")
    data_used: Mapped[dict | None] = mapped_column(JSONB, comment="supporting data / reallocation amounts")
    reason: Mapped[str | None] = mapped_column(Text)
    outcome: Mapped[str] = mapped_column(String(20), server_default="pending", index=True)
    executed_by: Mapped[str] = mapped_column(String(20), server_default="agent")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), index=True
    )
