"""
File: schema.py
Purpose: Type-safe Pydantic v2 schemas for the RCA agent.
Dependencies: pydantic >=2.0
Performance: Schema validation <1ms per object

Defines the resolver outputs (Hypothesis, Evidence), the reasoning trace
(AgentAction, SequencerEvent), the scenario playbooks that drive them,
and the playbook validation report.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from scenarios.models import SourceKey


# ═══════════════════════════════════════════════════════════════
#  ENUMS
# ═══════════════════════════════════════════════════════════════


class ConfidenceLevel(str, Enum):
    """Ordered confidence levels: NONE < VERY_LOW < LOW < MEDIUM < HIGH."""
    NONE = "None"
    VERY_LOW = "Very Low"
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @property
    def rank(self) -> int:
        return _LEVEL_RANK[self]

    @property
    def adverb(self) -> str:
        """Adverb used when phrasing the final hypothesis."""
        return _LEVEL_ADVERB.get(self, "")


_LEVEL_RANK: Dict[ConfidenceLevel, int] = {
    level: rank for rank, level in enumerate(ConfidenceLevel)
}

_LEVEL_ADVERB: Dict[ConfidenceLevel, str] = {
    ConfidenceLevel.HIGH: "strongly",
    ConfidenceLevel.MEDIUM: "moderately",
    ConfidenceLevel.LOW: "weakly",
}


class ActionType(str, Enum):
    """Kinds of entries in the reasoning trace."""
    PARSE = "parse"
    IDENTIFY = "identify"
    DETERMINE = "determine"
    THOUGHT = "thought"
    CHECK = "check"
    FINDING = "finding"
    WARNING = "warning"
    CORRELATE = "correlate"
    HYPOTHESIS = "hypothesis"


class SequencerState(str, Enum):
    """Lifecycle of one reasoning replay."""
    IDLE = "idle"
    INTRO = "intro"
    CHECKING = "checking"
    CORRELATING = "correlating"
    COMPLETE = "complete"


class EventKind(str, Enum):
    """What a SequencerEvent announces."""
    ACTION = "action"
    STATE = "state"
    REVEAL = "reveal"
    RESET = "reset"


class ValidationSeverity(str, Enum):
    """Severity of a validation failure."""
    CRITICAL = "critical"
    WARNING = "warning"


# ═══════════════════════════════════════════════════════════════
#  RESOLVER OUTPUTS
# ═══════════════════════════════════════════════════════════════


class Confidence(BaseModel):
    """Confidence level with the fixed percentage its rule assigns."""
    model_config = ConfigDict(frozen=True)

    level: ConfidenceLevel
    percent: int = Field(ge=0, le=100)


class Hypothesis(BaseModel):
    """Best-guess conclusion for a scenario and source set.

    Attributes:
        conclusion: Literal conclusion sentence.
        confidence: Level + percent.
        note: Caveat naming what is missing, if anything.
    """
    model_config = ConfigDict(frozen=True)

    conclusion: str
    confidence: Confidence
    note: Optional[str] = None


class Evidence(BaseModel):
    """One source-attributed finding supporting a hypothesis.

    Attributes:
        source: Source the finding came from.
        text: Static summary for the (scenario, source) pair.
        has_data: Whether a raw record backs this evidence.
        evidence_id: Index of the backing record for the source.
    """
    model_config = ConfigDict(frozen=True)

    source: SourceKey
    text: str
    has_data: bool = True
    evidence_id: int = Field(default=0, ge=0)


class AnalysisResult(BaseModel):
    """Final synthesis revealed when a replay completes."""
    model_config = ConfigDict(frozen=True)

    scenario_key: str
    hypothesis: Hypothesis
    evidence: Tuple[Evidence, ...] = ()


# ═══════════════════════════════════════════════════════════════
#  REASONING TRACE
# ═══════════════════════════════════════════════════════════════


class AgentAction(BaseModel):
    """One entry in the reasoning trace. Never mutated once logged.

    Attributes:
        type: Action kind.
        label: Short heading for the action.
        content: Body text.
        timestamp: Seconds since the run started, on the sequencer clock.
        source: Source the action concerns, if any.
        sequence: Position in the action log.
    """
    model_config = ConfigDict(frozen=True)

    type: ActionType
    label: str
    content: str
    timestamp: float = Field(default=0.0, ge=0.0)
    source: Optional[SourceKey] = None
    sequence: int = Field(default=0, ge=0)


class SequencerEvent(BaseModel):
    """Notification pushed to sequencer subscribers."""
    model_config = ConfigDict(frozen=True)

    kind: EventKind
    epoch: int
    state: SequencerState
    action: Optional[AgentAction] = None


# ═══════════════════════════════════════════════════════════════
#  PLAYBOOKS
# ═══════════════════════════════════════════════════════════════


class IntroNarrative(BaseModel):
    """The four framing statements that open every replay."""
    model_config = ConfigDict(frozen=True)

    parse: str = Field(min_length=1)
    identify: str = Field(min_length=1)
    determine: str = Field(min_length=1)
    thought: str = Field(min_length=1)


class SourceNarrative(BaseModel):
    """Per-(scenario, source) strings.

    Attributes:
        check: What the agent looks for in the source.
        thought: Interpretation voiced after a finding.
        evidence: Supporting-evidence summary for the final synthesis.
        evidence_id: Which record backs the evidence.
    """
    model_config = ConfigDict(frozen=True)

    check: str = Field(min_length=1)
    thought: str = Field(min_length=1)
    evidence: str = Field(min_length=1)
    evidence_id: int = Field(default=0, ge=0)


class HypothesisRule(BaseModel):
    """Matches when every ``requires`` source is active and relevant."""
    model_config = ConfigDict(frozen=True)

    requires: Tuple[SourceKey, ...] = ()
    conclusion: str = Field(min_length=1)
    level: ConfidenceLevel
    percent: int = Field(ge=0, le=100)
    note: Optional[str] = None

    def to_hypothesis(self) -> Hypothesis:
        return Hypothesis(
            conclusion=self.conclusion,
            confidence=Confidence(level=self.level, percent=self.percent),
            note=self.note,
        )


class CorrelateRule(BaseModel):
    """Narrative used by the correlate step for a source combination."""
    model_config = ConfigDict(frozen=True)

    requires: Tuple[SourceKey, ...] = ()
    text: str = Field(min_length=1)


class ScenarioPlaybook(BaseModel):
    """Everything the agent needs to reason about one scenario.

    Attributes:
        scenario_key: Scenario this playbook belongs to.
        keywords: Lower-case substrings that select the scenario.
        intro: Framing statements for phase 1.
        sources: Narrative per relevant source.
        hypothesis_rules: Ordered most-specific first, catch-all last.
        correlate_rules: Ordered most-specific first, catch-all last.
    """
    model_config = ConfigDict(frozen=True)

    scenario_key: str = Field(min_length=1)
    keywords: Tuple[str, ...] = ()
    intro: IntroNarrative
    sources: Dict[SourceKey, SourceNarrative] = Field(default_factory=dict)
    hypothesis_rules: Tuple[HypothesisRule, ...] = ()
    correlate_rules: Tuple[CorrelateRule, ...] = ()

    @field_validator("keywords")
    @classmethod
    def _normalise_keywords(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        return tuple(k.strip().lower() for k in v if k and k.strip())


# ═══════════════════════════════════════════════════════════════
#  VALIDATION SCHEMAS
# ═══════════════════════════════════════════════════════════════


class ValidatorError(BaseModel):
    """A single validation error or warning.

    Attributes:
        check_number: Validation check number (1-12).
        check_name: Symbolic check name.
        error_description: What failed.
        expected: Expected value or condition.
        actual: Actual value.
        severity: CRITICAL or WARNING.
    """
    check_number: int = Field(ge=1, le=12)
    check_name: str
    error_description: str
    expected: str = ""
    actual: str = ""
    severity: ValidationSeverity = ValidationSeverity.WARNING


class ValidationResult(BaseModel):
    """Result of all playbook validation checks.

    Attributes:
        scenario_key: Playbook that was validated.
        validation_passed: True if no CRITICAL errors.
        total_checks: Number of checks run.
        errors: CRITICAL failures.
        warnings: Non-critical warnings.
    """
    scenario_key: str = ""
    validation_passed: bool = True
    total_checks: int = 0
    errors: List[ValidatorError] = Field(default_factory=list)
    warnings: List[ValidatorError] = Field(default_factory=list)
