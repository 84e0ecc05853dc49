"""
Signal bus reader: best-effort lookup of cross-system signals for a topic

The absence of a signal must never block a decision, so every failure
(store error, timeout) degrades to the empty result.
"""

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import structlog

from ppc_advisor.db.stores import SignalStore

log = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SignalBusReader:
    def __init__(
        self,
        store: SignalStore,
        timeout_seconds: float = 5.0,
        max_results: int = 10,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.timeout_seconds = timeout_seconds
        self.max_results = max_results
        self._now = now

    async def read(self, topic: str, lookback_days: int) -> dict:
        since = self._now() - timedelta(days=lookback_days)
        try:
            signals = await asyncio.wait_for(
                self.store.search(topic, since, limit=self.max_results),
                timeout=self.timeout_seconds,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.warning("Signal bus unavailable, continuing without signals", topic=topic, error=str(e))
            return {"signals": [], "count": 0, "note": "Signal bus unavailable"}

        return {
            "topic": topic,
            "lookback_days": lookback_days,
            "signals": [s.to_dict() for s in signals],
            "count": len(signals),
        }
