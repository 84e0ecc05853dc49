"""
Model exports: import every model so metadata is complete
"""

from ppc_advisor.db.models.base import Base
from ppc_advisor.db.models.account import Account, GuardrailRule
from ppc_advisor.db.models.change_log import ChangeLog
from ppc_advisor.db.models.decision import AgentRunAudit, DecisionQueueItem
from ppc_advisor.db.models.signal import AgentSignal

__all__ = [
    "Base",
    "Account",
    "GuardrailRule",
    "ChangeLog",
    "AgentRunAudit",
    "DecisionQueueItem",
    "AgentSignal",
]
