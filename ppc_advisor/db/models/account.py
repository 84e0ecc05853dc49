"""
Account configuration and its guardrail rules
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Numeric, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column
from uuid6 import uuid7

from ppc_advisor.config import get_settings
from ppc_advisor.db.models.base import Base

settings = get_settings()
_schema = settings.DB_SCHEMA


class Account(Base):
    """Advertising account under management"""

    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid7)
    account_name: Mapped[str] = mapped_column(String(200), nullable=False)
    customer_id: Mapped[str] = mapped_column(String(20), nullable=False, comment="Google Ads customer ID, digits only")
    monthly_budget: Mapped[float | None] = mapped_column(Numeric(12, 2))
    daily_budget_cap: Mapped[float | None] = mapped_column(Numeric(12, 2))
    agent_mode: Mapped[str] = mapped_column(String(20), server_default="advisory", comment="advisory only")
    icp_definition: Mapped[str | None] = mapped_column(Text, comment="ideal customer profile")
    goals: Mapped[dict] = mapped_column(JSONB, default=dict, server_default="{}")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    def to_prompt_dict(self) -> dict:
        return {
            "name": self.account_name,
            "budget": float(self.monthly_budget) if self.monthly_budget is not None else None,
            "mode": self.agent_mode,
            "icp": self.icp_definition,
            "goals": self.goals,
        }


class GuardrailRule(Base):
    """Active guardrail rule for an account (e.g. max_daily_spend_pct = 90)"""

    __tablename__ = "guardrails"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid7)
    account_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey(f"{_schema}.accounts.id"), index=True
    )
    rule_name: Mapped[str] = mapped_column(String(100), nullable=False)
    rule_type: Mapped[str] = mapped_column(String(50), nullable=False, comment="max_daily_spend_pct / cpc_spike_alert_pct / min_data_points ...")
    threshold_value: Mapped[float] = mapped_column(Numeric(12, 4), nullable=False)
    violation_action: Mapped[str] = mapped_column(String(50), server_default="alert")
    is_active: Mapped[bool] = mapped_column(Boolean, server_default="true")

    def to_dict(self) -> dict:
        return {
            "rule_name": self.rule_name,
            "rule_type": self.rule_type,
            "threshold_value": float(self.threshold_value),
            "violation_action": self.violation_action,
        }
