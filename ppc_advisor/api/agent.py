"""
/api/ads-agent/run: one recommendation session for an account

snapshot (ads API + account config) -> RecommendationLoop -> ProposalWriter
Triggered by the scheduler; protected by CRON_SECRET when configured.
"""

import hmac
import time

import structlog
from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field

from ppc_advisor.ads.client import GoogleAdsClient
from ppc_advisor.agent import RecommendationLoop
from ppc_advisor.config import get_settings
from ppc_advisor.db.engine import async_session
from ppc_advisor.db.stores import SqlChangeLogStore, SqlSignalStore
from ppc_advisor.llm.client import LLMClient
from ppc_advisor.observability.context import get_trace_id, new_trace_id
from ppc_advisor.services.account_snapshot import AccountSnapshotService
from ppc_advisor.services.proposal_writer import ProposalWriter
from ppc_advisor.tools.builtin_tools import create_agent_registry

router = APIRouter(prefix="/api/ads-agent", tags=["ads-agent"])
log = structlog.get_logger()
bearer_scheme = HTTPBearer(auto_error=False)

# ── Shared components (stateless, reused across requests) ──
llm_client = LLMClient()
ads_client = GoogleAdsClient.from_settings()
snapshot_service = AccountSnapshotService(ads_client, async_session)
proposal_writer = ProposalWriter(async_session)
tool_registry = create_agent_registry(
    ads_client,
    SqlChangeLogStore(async_session),
    SqlSignalStore(async_session),
)


# ── Request / response models ──

class RunRequest(BaseModel):
    account_id: str
    recent_decisions: list[dict] | None = None  # default: loaded from the decision queue


class RunResponse(BaseModel):
    action: str
    proposals: int
    iterations: int
    tools_used: list[str] = Field(default_factory=list)
    skip_reason: str | None = None
    forced: bool = False


def verify_cron_secret(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> None:
    secret = get_settings().CRON_SECRET
    if not secret:
        return
    if credentials is None or not hmac.compare_digest(credentials.credentials, secret):
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.post("/run", response_model=RunResponse, dependencies=[Depends(verify_cron_secret)])
async def run_session(req: RunRequest) -> RunResponse:
    started = time.monotonic()
    trace_id = get_trace_id() or new_trace_id()

    try:
        context, facts = await snapshot_service.build(req.account_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None

    history = req.recent_decisions
    if history is None:
        history = await snapshot_service.recent_decisions(req.account_id)

    loop = RecommendationLoop(llm_client, tool_registry)
    result = await loop.run(context, facts, history=history)

    duration_ms = int((time.monotonic() - started) * 1000)
    await proposal_writer.write(req.account_id, result, trace_id=trace_id, duration_ms=duration_ms)

    log.info(
        "Ads agent run complete",
        account_id=req.account_id,
        action=result.action,
        proposals=len(result.proposals),
        forced=result.forced,
        duration_ms=duration_ms,
    )
    return RunResponse(
        action=result.action,
        proposals=len(result.proposals),
        iterations=result.iterations,
        tools_used=result.tools_used,
        skip_reason=result.skip_reason,
        forced=result.forced,
    )
