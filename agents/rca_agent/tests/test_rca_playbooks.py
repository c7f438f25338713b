"""
Tests for validator.py and playbook_loader.py — authoring checks and YAML loading.
"""

from __future__ import annotations

from pathlib import Path

import pydantic
import pytest
import yaml

from agents.rca_agent.agent import RCAAgent
from agents.rca_agent.core.scheduler import ManualScheduler
from agents.rca_agent.playbook_loader import (
    PlaybookError,
    discover,
    load_document,
    load_playbooks,
    parse_document,
)
from agents.rca_agent.playbooks import API_ERROR_SPIKE, CHECKOUT_DROP, default_library
from agents.rca_agent.schema import (
    ConfidenceLevel,
    CorrelateRule,
    HypothesisRule,
    ValidationSeverity,
)
from agents.rca_agent.validator import PlaybookValidator
from scenarios.catalog import SCENARIOS, default_catalog
from scenarios.models import SourceKey
from scenarios.records import SourceRecordStore, default_record_store

SAMPLE = Path(__file__).resolve().parents[3] / "playbooks" / "payment-latency.yaml"

_A = SourceKey.ANALYTICS
_S = SourceKey.SUPPORT
_R = SourceKey.RELEASES


def _checkout():
    return next(s for s in SCENARIOS if s.key == "checkout-drop")


def _rule(requires, level, percent):
    return HypothesisRule(requires=requires, conclusion="x", level=level, percent=percent)


def _failed(result):
    return {e.check_number for e in result.errors}


@pytest.fixture
def validator() -> PlaybookValidator:
    return PlaybookValidator()


# ── validator ──────────────────────────────────────────────────────


class TestSeedPlaybooks:
    @pytest.mark.parametrize("playbook", [CHECKOUT_DROP, API_ERROR_SPIKE])
    def test_seed_playbooks_pass(self, validator, playbook):
        scenario = default_catalog().get(playbook.scenario_key)
        result = validator.validate(scenario, playbook, default_record_store())
        assert result.validation_passed, result.errors
        assert result.warnings == []
        assert result.total_checks == 12

    def test_without_record_store(self, validator):
        result = validator.validate(_checkout(), CHECKOUT_DROP)
        assert result.total_checks == 11


class TestValidatorChecks:
    def test_key_mismatch(self, validator):
        playbook = CHECKOUT_DROP.model_copy(update={"scenario_key": "other"})
        assert 1 in _failed(validator.validate(_checkout(), playbook))

    def test_missing_keywords_is_warning(self, validator):
        playbook = CHECKOUT_DROP.model_copy(update={"keywords": ()})
        result = validator.validate(_checkout(), playbook)
        assert result.validation_passed
        assert [w.check_number for w in result.warnings] == [2]
        assert result.warnings[0].severity is ValidationSeverity.WARNING

    def test_missing_narrative(self, validator):
        sources = {k: v for k, v in CHECKOUT_DROP.sources.items() if k is not _R}
        playbook = CHECKOUT_DROP.model_copy(update={"sources": sources})
        assert 3 in _failed(validator.validate(_checkout(), playbook))

    def test_missing_catch_all(self, validator):
        rules = CHECKOUT_DROP.hypothesis_rules[:-1]
        playbook = CHECKOUT_DROP.model_copy(update={"hypothesis_rules": rules})
        assert 6 in _failed(validator.validate(_checkout(), playbook))

    def test_no_rules(self, validator):
        playbook = CHECKOUT_DROP.model_copy(update={"hypothesis_rules": ()})
        failed = _failed(validator.validate(_checkout(), playbook))
        assert 5 in failed
        assert 6 not in failed

    def test_irrelevant_source_in_rule(self, validator):
        rules = (
            _rule((_A, SourceKey.APPSTORE), ConfidenceLevel.HIGH, 90),
            _rule((), ConfidenceLevel.VERY_LOW, 10),
        )
        playbook = CHECKOUT_DROP.model_copy(update={"hypothesis_rules": rules})
        assert 7 in _failed(validator.validate(_checkout(), playbook))

    def test_unreachable_rule(self, validator):
        rules = (
            _rule((_A,), ConfidenceLevel.LOW, 30),
            _rule((_A, _S), ConfidenceLevel.MEDIUM, 65),
            _rule((), ConfidenceLevel.VERY_LOW, 10),
        )
        playbook = CHECKOUT_DROP.model_copy(update={"hypothesis_rules": rules})
        assert 8 in _failed(validator.validate(_checkout(), playbook))

    def test_non_monotonic_percent(self, validator):
        rules = (
            _rule((_A, _S, _R), ConfidenceLevel.HIGH, 50),
            _rule((_A,), ConfidenceLevel.LOW, 60),
            _rule((), ConfidenceLevel.VERY_LOW, 10),
        )
        playbook = CHECKOUT_DROP.model_copy(update={"hypothesis_rules": rules})
        result = validator.validate(_checkout(), playbook)
        assert 9 in _failed(result)
        assert 10 in {w.check_number for w in result.warnings}

    def test_correlate_without_catch_all(self, validator):
        correlate = (CorrelateRule(requires=(_A,), text="only analytics"),)
        playbook = CHECKOUT_DROP.model_copy(update={"correlate_rules": correlate})
        assert 11 in _failed(validator.validate(_checkout(), playbook))

    def test_missing_record_is_warning(self, validator):
        result = validator.validate(_checkout(), CHECKOUT_DROP, SourceRecordStore({}))
        assert result.validation_passed
        assert {w.check_number for w in result.warnings} == {12}
        assert len(result.warnings) == 3


# ── loader ─────────────────────────────────────────────────────────


def _sample_raw() -> dict:
    with open(SAMPLE, encoding="utf-8") as fh:
        return yaml.safe_load(fh)


class TestLoader:
    def test_sample_document(self):
        doc = load_document(SAMPLE)
        assert doc.scenario.key == "payment-latency"
        assert doc.playbook.scenario_key == "payment-latency"
        assert doc.playbook.hypothesis_rules[-1].requires == ()
        assert set(doc.records) == {
            SourceKey.ANALYTICS, SourceKey.INFRASTRUCTURE, SourceKey.RELEASES,
        }
        assert doc.validation.validation_passed

    def test_load_registers_everywhere(self):
        catalog, library, records = default_catalog(), default_library(), default_record_store()
        docs = load_playbooks([SAMPLE.parent], catalog, library, records)

        assert [d.scenario.key for d in docs] == ["payment-latency"]
        assert "payment-latency" in catalog
        assert library.keys()[-1] == "payment-latency"
        assert records.get("payment-latency", "releases").title == "Release v4.2.0"

    def test_loaded_scenario_runs_end_to_end(self):
        catalog, library, records = default_catalog(), default_library(), default_record_store()
        load_playbooks([SAMPLE], catalog, library, records)
        clock = ManualScheduler()
        agent = RCAAgent(scheduler=clock, catalog=catalog, playbooks=library, records=records)

        key = agent.infer_scenario("Why are payments so slow?")
        assert key == "payment-latency"
        agent.start(key, {"analytics": True, "infrastructure": True, "releases": True})
        clock.run_until_idle()

        assert agent.result.hypothesis.confidence.percent == 88
        assert agent.actions[-1].content.startswith("Evidence strongly suggests release v4.2.0")
        assert [e.source for e in agent.result.evidence] == [
            SourceKey.ANALYTICS, SourceKey.INFRASTRUCTURE, SourceKey.RELEASES,
        ]

    def test_invalid_playbook_refused(self):
        raw = _sample_raw()
        raw["playbook"]["hypothesis_rules"] = raw["playbook"]["hypothesis_rules"][:-1]
        with pytest.raises(PlaybookError) as excinfo:
            parse_document(raw, "bad.yaml")
        assert excinfo.value.result is not None
        assert "hypothesis_catch_all_last" in str(excinfo.value)

    def test_missing_section(self):
        with pytest.raises(PlaybookError, match="missing 'playbook'"):
            parse_document({"scenario": _sample_raw()["scenario"]})

    def test_not_a_mapping(self):
        with pytest.raises(PlaybookError):
            parse_document(["nope"])

    def test_unknown_record_source(self):
        raw = _sample_raw()
        raw["records"]["telepathy"] = []
        with pytest.raises(PlaybookError, match="telepathy"):
            parse_document(raw)

    def test_schema_error_propagates(self):
        raw = _sample_raw()
        raw["playbook"]["hypothesis_rules"][0]["percent"] = 150
        with pytest.raises(pydantic.ValidationError):
            parse_document(raw)

    def test_bad_file_leaves_registries_untouched(self, tmp_path):
        (tmp_path / "a.yaml").write_text(SAMPLE.read_text(encoding="utf-8"), encoding="utf-8")
        (tmp_path / "b.yaml").write_text("scenario: [unclosed", encoding="utf-8")
        catalog = default_catalog()
        with pytest.raises(yaml.YAMLError):
            load_playbooks([tmp_path], catalog, default_library(), default_record_store())
        assert "payment-latency" not in catalog

    def test_discover_filters_suffixes(self, tmp_path):
        (tmp_path / "one.yml").write_text("", encoding="utf-8")
        (tmp_path / "two.yaml").write_text("", encoding="utf-8")
        (tmp_path / "notes.txt").write_text("", encoding="utf-8")
        assert [p.name for p in discover([tmp_path])] == ["one.yml", "two.yaml"]
