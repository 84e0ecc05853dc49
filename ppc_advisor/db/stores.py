"""
Read-side stores used by the investigation tools

ChangeLogStore / SignalStore are the seams the insights readers depend on;
the Sql* implementations run on an async SQLAlchemy session factory.
Tests substitute in-memory implementations.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import Text, cast, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ppc_advisor.db.models.change_log import EXECUTED_OUTCOMES, ChangeLog
from ppc_advisor.db.models.signal import AgentSignal


def _scalars(*payloads) -> list:
    out: list = []
    stack = [p for p in payloads if p is not None]
    while stack:
        item = stack.pop()
        if isinstance(item, dict):
            stack.extend(item.values())
        elif isinstance(item, (list, tuple)):
            stack.extend(item)
        else:
            out.append(item)
    return out


@dataclass(frozen=True)
class ExecutedAction:
    """A change that was actually applied to the account"""

    action_type: str
    action_detail: dict
    created_at: datetime
    reason: str | None = None
    data_used: dict | None = None
    outcome: str = "executed"

    def references_id(self, entity_id: str) -> bool:
        """Whether any scalar in the payload equals the id (no prefix matches)"""
        return any(str(v) == str(entity_id) for v in _scalars(self.action_detail, self.data_used))

    def mentions_text(self, text: str) -> bool:
        needle = text.lower()
        return any(
            isinstance(v, str) and needle in v.lower()
            for v in _scalars(self.action_detail, self.data_used)
        )


@dataclass(frozen=True)
class Signal:
    source_agent: str
    event_type: str
    payload: dict = field(default_factory=dict)
    created_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "source_agent": self.source_agent,
            "event_type": self.event_type,
            "payload": self.payload,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class ChangeLogStore(ABC):
    @abstractmethod
    async def executed_actions(
        self,
        account_id: str,
        since: datetime,
        action_types: tuple[str, ...] | None = None,
        limit: int = 100,
    ) -> list[ExecutedAction]:
        """Executed actions newer than `since`, newest first"""
        ...


class SignalStore(ABC):
    @abstractmethod
    async def search(self, topic: str, since: datetime, limit: int = 10) -> list[Signal]:
        """Signals whose payload mentions `topic`, newest first"""
        ...


class SqlChangeLogStore(ChangeLogStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def executed_actions(
        self,
        account_id: str,
        since: datetime,
        action_types: tuple[str, ...] | None = None,
        limit: int = 100,
    ) -> list[ExecutedAction]:
        stmt = (
            select(ChangeLog)
            .where(
                ChangeLog.account_id == account_id,
                ChangeLog.created_at >= since,
                ChangeLog.outcome.in_(EXECUTED_OUTCOMES),
            )
            .order_by(ChangeLog.created_at.desc())
            .limit(limit)
        )
        if action_types:
            stmt = stmt.where(ChangeLog.action_type.in_(action_types))

        async with self._session_factory() as db:
            rows = (await db.execute(stmt)).scalars().all()

        return [
            ExecutedAction(
                action_type=r.action_type,
                action_detail=r.action_detail or {},
                created_at=r.created_at,
                reason=r.reason,
                data_used=r.data_used,
                outcome=r.outcome,
            )
            for r in rows
        ]


class SqlSignalStore(SignalStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def search(self, topic: str, since: datetime, limit: int = 10) -> list[Signal]:
        stmt = (
            select(AgentSignal)
            .where(
                AgentSignal.created_at >= since,
                cast(AgentSignal.payload, Text).ilike(f"%{topic}%"),
            )
            .order_by(AgentSignal.created_at.desc())
            .limit(limit)
        )
        async with self._session_factory() as db:
            rows = (await db.execute(stmt)).scalars().all()

        return [
            Signal(
                source_agent=r.source_agent,
                event_type=r.event_type,
                payload=r.payload or {},
                created_at=r.created_at,
            )
            for r in rows
        ]
