"""
File: playbook_loader.py
Purpose: Load YAML-authored scenarios (scenario + playbook + records).
Dependencies: PyYAML, Pydantic schema models, PlaybookValidator.
Performance: One file read per document; validation O(r²).

Document layout::

    scenario:
      key: payment-latency
      title: Payment latency regression
      query: Why are payments slow since Tuesday?
      relevant_sources: [analytics, infrastructure]
    playbook:
      keywords: [payment, latency]
      intro: {parse: ..., identify: ..., determine: ..., thought: ...}
      sources:
        analytics: {check: ..., thought: ..., evidence: ...}
      hypothesis_rules:
        - {requires: [analytics, infrastructure], conclusion: ..., level: High, percent: 85}
        - {conclusion: ..., level: Very Low, percent: 10}
      correlate_rules:
        - {text: ...}
    records:
      analytics:
        - {summary: ..., title: ..., type: chart, chart_data: [...]}

``playbook.scenario_key`` defaults to ``scenario.key``. A document whose
playbook fails a CRITICAL validation check is refused with PlaybookError.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import yaml

from agents.rca_agent.playbooks import PlaybookLibrary
from agents.rca_agent.schema import ScenarioPlaybook, ValidationResult
from agents.rca_agent.telemetry import get_logger
from agents.rca_agent.validator import PlaybookValidator
from scenarios.catalog import ScenarioCatalog
from scenarios.models import Scenario, SourceKey, SourceRecord
from scenarios.records import SourceRecordStore

logger = get_logger("rca_agent.playbook_loader")

PathLike = Union[str, Path]

_SUFFIXES = (".yaml", ".yml")


class PlaybookError(ValueError):
    """A playbook document is malformed or fails CRITICAL checks."""

    def __init__(
        self,
        message: str,
        source: str = "",
        result: Optional[ValidationResult] = None,
    ) -> None:
        super().__init__(f"{source}: {message}" if source else message)
        self.source = source
        self.result = result


@dataclass
class PlaybookDocument:
    """One parsed, validated document."""
    scenario: Scenario
    playbook: ScenarioPlaybook
    records: Dict[SourceKey, List[SourceRecord]] = field(default_factory=dict)
    validation: Optional[ValidationResult] = None


def parse_document(raw: Any, source: str = "") -> PlaybookDocument:
    """Build and validate a document from already-parsed YAML.

    Raises:
        PlaybookError: Missing sections or CRITICAL validation errors.
        pydantic.ValidationError: A section does not match its model.
    """
    if not isinstance(raw, dict):
        raise PlaybookError("document must be a mapping", source)
    for section in ("scenario", "playbook"):
        if not isinstance(raw.get(section), dict):
            raise PlaybookError(f"missing '{section}' section", source)

    scenario = Scenario.model_validate(raw["scenario"])
    playbook = ScenarioPlaybook.model_validate(
        {"scenario_key": scenario.key, **raw["playbook"]}
    )

    records: Dict[SourceKey, List[SourceRecord]] = {}
    for key, items in (raw.get("records") or {}).items():
        try:
            source_key = SourceKey(key)
        except ValueError as exc:
            raise PlaybookError(f"unknown record source '{key}'", source) from exc
        records[source_key] = [SourceRecord.model_validate(item) for item in items or ()]

    store = SourceRecordStore({scenario.key: records})
    result = PlaybookValidator().validate(scenario, playbook, store)
    if not result.validation_passed:
        details = "; ".join(
            f"#{e.check_number} {e.check_name}: {e.error_description}"
            for e in result.errors
        )
        raise PlaybookError(f"playbook failed validation ({details})", source, result)

    return PlaybookDocument(
        scenario=scenario, playbook=playbook, records=records, validation=result,
    )


def load_document(path: PathLike) -> PlaybookDocument:
    """Read and validate the YAML document at *path*.

    Raises:
        FileNotFoundError: *path* does not exist.
        yaml.YAMLError: The file is not valid YAML.
        PlaybookError: See ``parse_document``.
    """
    file_path = Path(path)
    with open(file_path, encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    return parse_document(raw, str(file_path))


def discover(paths: Iterable[PathLike]) -> List[Path]:
    """Expand directories to their YAML files (sorted); keep files as given."""
    found: List[Path] = []
    for entry in paths:
        path = Path(entry)
        if path.is_dir():
            found.extend(
                sorted(p for p in path.iterdir() if p.suffix in _SUFFIXES)
            )
        else:
            found.append(path)
    return found


def load_playbooks(
    paths: Iterable[PathLike],
    catalog: ScenarioCatalog,
    library: PlaybookLibrary,
    records: SourceRecordStore,
) -> List[PlaybookDocument]:
    """Load every document under *paths* and register it.

    All documents are parsed before any is registered, so a bad file
    leaves the registries untouched.

    Returns:
        Loaded documents in registration order.
    """
    documents = [load_document(path) for path in discover(paths)]
    for doc in documents:
        catalog.register(doc.scenario)
        library.register(doc.playbook)
        for source, items in doc.records.items():
            records.register(doc.scenario.key, source, items)
        logger.info(
            f"Playbook loaded — {doc.scenario.key}",
            extra={
                "layer": "loader",
                "context": {
                    "scenario": doc.scenario.key,
                    "sources": [s.value for s in doc.scenario.relevant_sources],
                    "warnings": len(doc.validation.warnings) if doc.validation else 0,
                },
            },
        )
    return documents
