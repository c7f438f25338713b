"""
File: validator.py
Purpose: 12-check authoring validation for scenario playbooks.
Dependencies: Schema models, scenario catalogue, record store.
Performance: <5ms, O(r²) where r = rules per playbook.

Validation categories:
  Structural   (4 checks): Playbook matches its scenario
  Rule tables  (4 checks): Catch-all present, reachable, relevant-only
  Confidence   (2 checks): Percent ordering across rules
  Coverage     (2 checks): Correlate table and record backing
"""

from __future__ import annotations

import time
from itertools import combinations
from typing import Dict, List, Optional, Sequence

from agents.rca_agent.config import RCAAgentConfig
from agents.rca_agent.schema import (
    ConfidenceLevel,
    CorrelateRule,
    HypothesisRule,
    ScenarioPlaybook,
    ValidationResult,
    ValidationSeverity,
    ValidatorError,
)
from agents.rca_agent.telemetry import get_logger
from scenarios.models import Scenario
from scenarios.records import SourceRecordStore

logger = get_logger("rca_agent.validator")


def _names(sources: Sequence) -> str:
    return "+".join(s.value for s in sources) or "<catch-all>"


class PlaybookValidator:
    """Validates a ScenarioPlaybook against its Scenario with 12 checks.

    CRITICAL errors make a playbook unusable (the loader refuses it);
    warnings are informational.

    Args:
        config: Agent configuration.
    """

    def __init__(self, config: Optional[RCAAgentConfig] = None) -> None:
        self._config = config or RCAAgentConfig()

    def validate(
        self,
        scenario: Scenario,
        playbook: ScenarioPlaybook,
        records: Optional[SourceRecordStore] = None,
    ) -> ValidationResult:
        """Run all 12 validation checks.

        Args:
            scenario: Scenario the playbook narrates.
            playbook: Playbook under test.
            records: Record store; check 12 is skipped without one.

        Returns:
            ValidationResult with errors and warnings.
        """
        start = time.perf_counter()
        errors: List[ValidatorError] = []
        warnings: List[ValidatorError] = []
        checks = 0
        relevant = set(scenario.relevant_sources)
        rules = list(playbook.hypothesis_rules)

        # ── Structural Checks (1–4) ────────────────────────────

        # 1. playbook belongs to the scenario
        checks += 1
        if playbook.scenario_key != scenario.key:
            errors.append(ValidatorError(
                check_number=1,
                check_name="scenario_key_matches",
                error_description="playbook scenario_key differs from scenario key",
                expected=scenario.key,
                actual=playbook.scenario_key,
                severity=ValidationSeverity.CRITICAL,
            ))

        # 2. at least one inference keyword
        checks += 1
        if not playbook.keywords:
            warnings.append(ValidatorError(
                check_number=2,
                check_name="keywords_present",
                error_description="playbook has no keywords; inference can never select it",
                expected="non-empty keywords",
                actual="[]",
                severity=ValidationSeverity.WARNING,
            ))

        # 3. every relevant source is narrated
        checks += 1
        missing = [s for s in scenario.relevant_sources if s not in playbook.sources]
        if missing:
            errors.append(ValidatorError(
                check_number=3,
                check_name="relevant_sources_narrated",
                error_description="relevant sources without a narrative",
                expected=_names(scenario.relevant_sources),
                actual=_names(missing),
                severity=ValidationSeverity.CRITICAL,
            ))

        # 4. no narratives for irrelevant sources
        checks += 1
        extra = [s for s in playbook.sources if s not in relevant]
        if extra:
            warnings.append(ValidatorError(
                check_number=4,
                check_name="narratives_only_relevant",
                error_description="narratives for sources the scenario never checks",
                expected=_names(scenario.relevant_sources),
                actual=_names(extra),
                severity=ValidationSeverity.WARNING,
            ))

        # ── Rule Table Checks (5–8) ────────────────────────────

        # 5. hypothesis rules present
        checks += 1
        if not rules:
            errors.append(ValidatorError(
                check_number=5,
                check_name="hypothesis_rules_present",
                error_description="playbook has no hypothesis rules",
                expected=">= 1 rule",
                actual="0",
                severity=ValidationSeverity.CRITICAL,
            ))

        # 6. last hypothesis rule is the catch-all
        checks += 1
        if rules and rules[-1].requires:
            errors.append(ValidatorError(
                check_number=6,
                check_name="hypothesis_catch_all_last",
                error_description="last hypothesis rule must require no sources",
                expected="<catch-all>",
                actual=_names(rules[-1].requires),
                severity=ValidationSeverity.CRITICAL,
            ))

        # 7. rules only test relevant sources
        checks += 1
        for index, rule in enumerate(rules):
            stray = [s for s in rule.requires if s not in relevant]
            if stray:
                errors.append(ValidatorError(
                    check_number=7,
                    check_name="rules_only_relevant",
                    error_description=f"hypothesis rule {index} requires irrelevant sources",
                    expected=_names(scenario.relevant_sources),
                    actual=_names(stray),
                    severity=ValidationSeverity.CRITICAL,
                ))

        # 8. every rule is reachable (most-specific first)
        checks += 1
        for shadowing, shadowed in self._shadowed(rules):
            errors.append(ValidatorError(
                check_number=8,
                check_name="rules_reachable",
                error_description=(
                    f"hypothesis rule {shadowed} can never match; "
                    f"rule {shadowing} always matches first"
                ),
                expected="more specific rules earlier",
                actual=(
                    f"{_names(rules[shadowing].requires)} before "
                    f"{_names(rules[shadowed].requires)}"
                ),
                severity=ValidationSeverity.CRITICAL,
            ))

        # ── Confidence Checks (9–10) ───────────────────────────

        # 9. percent non-decreasing with level
        checks += 1
        by_level: Dict[ConfidenceLevel, List[int]] = {}
        for rule in rules:
            by_level.setdefault(rule.level, []).append(rule.percent)
        ordered = sorted(by_level.items(), key=lambda item: item[0].rank)
        for (low, low_pcts), (high, high_pcts) in zip(ordered, ordered[1:]):
            if max(low_pcts) > min(high_pcts):
                errors.append(ValidatorError(
                    check_number=9,
                    check_name="percent_monotonic_with_level",
                    error_description=(
                        f"a {low.value} rule scores higher than a {high.value} rule"
                    ),
                    expected=f"max({low.value}) <= min({high.value})",
                    actual=f"{max(low_pcts)} > {min(high_pcts)}",
                    severity=ValidationSeverity.CRITICAL,
                ))

        # 10. adding sources never lowers confidence
        checks += 1
        for subset, superset in self._nested(rules):
            if rules[superset].percent < rules[subset].percent:
                warnings.append(ValidatorError(
                    check_number=10,
                    check_name="percent_monotonic_with_sources",
                    error_description=(
                        f"rule {superset} needs more sources than rule {subset} "
                        f"but scores lower"
                    ),
                    expected=f">= {rules[subset].percent}",
                    actual=str(rules[superset].percent),
                    severity=ValidationSeverity.WARNING,
                ))

        # ── Coverage Checks (11–12) ────────────────────────────

        # 11. correlate table ends with a catch-all
        checks += 1
        correlate: Sequence[CorrelateRule] = playbook.correlate_rules
        if not correlate or correlate[-1].requires:
            errors.append(ValidatorError(
                check_number=11,
                check_name="correlate_catch_all_last",
                error_description="correlate rules must end with a catch-all",
                expected="<catch-all>",
                actual=_names(correlate[-1].requires) if correlate else "[]",
                severity=ValidationSeverity.CRITICAL,
            ))

        # 12. every narrated source is backed by a record
        if records is not None:
            checks += 1
            for source in scenario.relevant_sources:
                narrative = playbook.sources.get(source)
                if narrative is None:
                    continue
                if records.get(scenario.key, source, narrative.evidence_id) is None:
                    warnings.append(ValidatorError(
                        check_number=12,
                        check_name="evidence_backed_by_record",
                        error_description=(
                            f"no record for {source.value} #{narrative.evidence_id}; "
                            f"the replay will emit a warning instead of a finding"
                        ),
                        expected="record present",
                        actual="missing",
                        severity=ValidationSeverity.WARNING,
                    ))

        elapsed_ms = (time.perf_counter() - start) * 1000
        passed = not errors
        logger.info(
            f"Playbook validation {'passed' if passed else 'failed'} — "
            f"{scenario.key}, {len(errors)} errors, {len(warnings)} warnings",
            extra={
                "layer": "validation",
                "context": {
                    "scenario": scenario.key,
                    "checks": checks,
                    "elapsed_ms": round(elapsed_ms, 3),
                },
            },
        )

        return ValidationResult(
            scenario_key=scenario.key,
            validation_passed=passed,
            total_checks=checks,
            errors=errors,
            warnings=warnings,
        )

    @staticmethod
    def _shadowed(rules: Sequence[HypothesisRule]) -> List[tuple]:
        """Pairs (i, j), i < j, where rule i matches whenever rule j does."""
        return [
            (i, j)
            for i, j in combinations(range(len(rules)), 2)
            if set(rules[i].requires) <= set(rules[j].requires)
        ]

    @staticmethod
    def _nested(rules: Sequence[HypothesisRule]) -> List[tuple]:
        """Pairs (sub, sup) where rule sub requires a strict subset of rule sup."""
        pairs = []
        for i, j in combinations(range(len(rules)), 2):
            a, b = set(rules[i].requires), set(rules[j].requires)
            if a < b:
                pairs.append((i, j))
            elif b < a:
                pairs.append((j, i))
        return pairs
