"""Configuration for the Insight Flow shell — YAML file + INSIGHTFLOW_* env.

Pydantic v2 models validate the merged document; PyYAML reads and writes
it. Relative ``analysis.playbook_paths`` are resolved against the
directory of the config file they came from.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from agents.rca_agent.config import (
    FeatureFlags,
    InferenceConfig,
    RCAAgentConfig,
    StepDelays,
)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


# ── settings models ────────────────────────────────────────────────


class SystemSettings(BaseModel):
    """Identity and logging."""

    model_config = ConfigDict(frozen=True)

    project_name: str = "Insight Flow"
    version: str = "1.0.0"
    log_level: str = "INFO"
    correlation_id_header: str = "X-Correlation-ID"

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        level = v.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {list(_LOG_LEVELS)}, got '{v}'")
        return level


class DelaySettings(BaseModel):
    """Per-step replay delays in seconds, before ``speed`` scaling."""

    model_config = ConfigDict(frozen=True)

    intro: float = Field(default=0.8, ge=0)
    phase_transition: float = Field(default=0.4, ge=0)
    check: float = Field(default=0.8, ge=0)
    finding: float = Field(default=1.0, ge=0)
    thought: float = Field(default=0.8, ge=0)
    correlate: float = Field(default=1.2, ge=0)
    hypothesis: float = Field(default=1.2, ge=0)
    reveal: float = Field(default=0.6, ge=0)


class AnalysisSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    default_scenario: str = "checkout-drop"
    speed: float = 1.0
    check_irrelevant_sources: bool = False
    playbook_paths: List[str] = Field(default_factory=list)
    delays: DelaySettings = Field(default_factory=DelaySettings)


class APISettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    host: str = "127.0.0.1"
    port: int = 8000
    enable_cors: bool = True
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])


class SystemConfig(BaseModel):
    """The whole config document."""

    model_config = ConfigDict(frozen=True)

    system: SystemSettings = Field(default_factory=SystemSettings)
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    api: APISettings = Field(default_factory=APISettings)

    def to_agent_config(self) -> RCAAgentConfig:
        """Translate the ``analysis`` block into an RCAAgentConfig.

        Raises:
            ValueError: ``analysis.speed`` is not positive.
        """
        analysis = self.analysis
        return RCAAgentConfig(
            delays=StepDelays(**analysis.delays.model_dump()).scaled(analysis.speed),
            features=FeatureFlags(
                check_irrelevant_sources=analysis.check_irrelevant_sources,
            ),
            inference=InferenceConfig(default_scenario=analysis.default_scenario),
        )


# ── environment overrides ──────────────────────────────────────────


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# env var → (dotted config path, coercion)
_ENV_MAP: Dict[str, Tuple[str, Callable[[str], Any]]] = {
    "INSIGHTFLOW_LOG_LEVEL": ("system.log_level", str),
    "INSIGHTFLOW_DEFAULT_SCENARIO": ("analysis.default_scenario", str),
    "INSIGHTFLOW_SPEED": ("analysis.speed", float),
    "INSIGHTFLOW_CHECK_IRRELEVANT": ("analysis.check_irrelevant_sources", _as_bool),
    "INSIGHTFLOW_API_HOST": ("api.host", str),
    "INSIGHTFLOW_API_PORT": ("api.port", int),
}


def _set_path(tree: Dict[str, Any], dotted: str, value: Any) -> None:
    *parents, leaf = dotted.split(".")
    for key in parents:
        tree = tree.setdefault(key, {})
    tree[leaf] = value


# ── ConfigManager ──────────────────────────────────────────────────


class ConfigManager:
    """Load, check, override and persist :class:`SystemConfig`."""

    @staticmethod
    def load(config_path: str = "config.yaml") -> SystemConfig:
        """Read *config_path* (defaults if absent), then apply env overrides.

        Raises:
            yaml.YAMLError: The file is not valid YAML.
            pydantic.ValidationError: The merged document is invalid.
            ValueError: An env override cannot be coerced.
        """
        path = Path(config_path)
        raw: Dict[str, Any] = {}
        if path.exists():
            with open(path, encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
            _resolve_playbook_paths(raw, path.parent)
        return ConfigManager.merge_env_vars(SystemConfig.model_validate(raw))

    @staticmethod
    def validate(config: SystemConfig) -> List[str]:
        """Human-readable problems that models alone cannot catch.

        An empty list means the config is usable.
        """
        issues: List[str] = []
        analysis = config.analysis
        if analysis.speed <= 0:
            issues.append("analysis.speed must be > 0")
        if not analysis.default_scenario.strip():
            issues.append("analysis.default_scenario must not be empty")
        issues.extend(
            f"analysis.playbook_paths entry '{entry}' does not exist"
            for entry in analysis.playbook_paths
            if not Path(entry).exists()
        )
        if not 0 < config.api.port < 65536:
            issues.append("api.port must be between 1 and 65535")
        return issues

    @staticmethod
    def merge_env_vars(config: SystemConfig) -> SystemConfig:
        """Return *config* with INSIGHTFLOW_* overrides applied.

        The same object is returned when no override is set.
        """
        overrides: Dict[str, Any] = {}
        for env_key, (dotted, coerce) in _ENV_MAP.items():
            value = os.environ.get(env_key)
            if value is not None:
                _set_path(overrides, dotted, coerce(value))
        if not overrides:
            return config

        merged = config.model_dump()
        _deep_merge(merged, overrides)
        return SystemConfig.model_validate(merged)

    @staticmethod
    def save(config: SystemConfig, path: str) -> None:
        """Write *config* as YAML, creating parent directories."""
        out = Path(path)
        out.parent.mkdir(parents=True, exist_ok=True)
        with open(out, "w", encoding="utf-8") as fh:
            yaml.safe_dump(config.model_dump(), fh, sort_keys=False)


# ── helpers ────────────────────────────────────────────────────────


def _resolve_playbook_paths(raw: Dict[str, Any], base: Path) -> None:
    analysis = raw.get("analysis")
    if not isinstance(analysis, dict) or not isinstance(analysis.get("playbook_paths"), list):
        return
    entries = [Path(str(p)) for p in analysis["playbook_paths"]]
    analysis["playbook_paths"] = [str(p if p.is_absolute() else base / p) for p in entries]


def _deep_merge(base: dict, overrides: dict) -> None:
    """Merge *overrides* into *base* in place, recursing into dicts."""
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
