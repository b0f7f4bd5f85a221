"""
Guided search: run state machine and the search funnel.
"""

from .state import RunStateMachine, can_transition
from .funnel import (
    SearchFunnel,
    FunnelConfig,
    Candidate,
    top_k_count,
    score_candidates,
    within_budget,
    rank_by_net_opportunity,
)

__all__ = [
    # State machine
    "RunStateMachine",
    "can_transition",
    # Funnel
    "SearchFunnel",
    "FunnelConfig",
    "Candidate",
    "top_k_count",
    "score_candidates",
    "within_budget",
    "rank_by_net_opportunity",
]
