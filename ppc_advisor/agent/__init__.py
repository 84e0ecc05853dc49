"""
Recommendation loop: bounded investigation session ending in submit or skip
"""

from ppc_advisor.agent.loop_controller import RecommendationLoop
from ppc_advisor.agent.schemas import AgentConfig, InitialFacts, LoopResult

__all__ = ["AgentConfig", "InitialFacts", "LoopResult", "RecommendationLoop"]
