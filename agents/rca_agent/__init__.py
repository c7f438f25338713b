"""RCA Agent — deterministic root-cause analysis with a replayed reasoning trace.

Public API::

    from agents.rca_agent import RCAAgent, RCAAgentConfig, AnalysisSession
    from agents.rca_agent.schema import AnalysisResult, AgentAction
"""

from agents.rca_agent.agent import RCAAgent
from agents.rca_agent.config import RCAAgentConfig
from agents.rca_agent.schema import (
    AgentAction,
    AnalysisResult,
    Evidence,
    Hypothesis,
)
from agents.rca_agent.session import AnalysisSession

__all__ = [
    "RCAAgent",
    "RCAAgentConfig",
    "AnalysisSession",
    "AgentAction",
    "AnalysisResult",
    "Evidence",
    "Hypothesis",
]
