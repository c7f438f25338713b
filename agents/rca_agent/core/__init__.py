"""Core deterministic analysis modules.

Exports:
    ScenarioInference: Keyword match query → scenario key
    HypothesisResolver: Rule table lookup → Hypothesis
    EvidenceCollector: Ordered evidence for the active relevant sources
    ActionSequencer: Epoch-keyed, cancelable reasoning replay
    ManualScheduler / AsyncioScheduler: Injectable clocks
"""

from agents.rca_agent.core.action_sequencer import ActionSequencer, SequencerStateError
from agents.rca_agent.core.evidence_collector import EvidenceCollector
from agents.rca_agent.core.hypothesis_resolver import HypothesisResolver
from agents.rca_agent.core.scenario_inference import ScenarioInference
from agents.rca_agent.core.scheduler import AsyncioScheduler, ManualScheduler

__all__ = [
    "ScenarioInference",
    "HypothesisResolver",
    "EvidenceCollector",
    "ActionSequencer",
    "SequencerStateError",
    "ManualScheduler",
    "AsyncioScheduler",
]
