"""
File: core/availability.py
Purpose: Fail-safe source-availability handling shared by every resolver.
Dependencies: scenarios catalogue only.
Performance: O(s) where s = number of known sources.

A source counts as available for a scenario only when it is switched on
AND the scenario deems it canonical. Anything malformed in a caller's
source map (unknown keys, non-bool values, a non-mapping) reads as off.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from scenarios.models import ALL_SOURCES, Scenario, SourceKey


def normalize_sources(active_sources: Any) -> Dict[SourceKey, bool]:
    """Coerce a caller-supplied source map to ``{SourceKey: bool}``.

    Only entries whose key names a known source and whose value is the
    boolean ``True`` count as on; every known source appears in the
    result.
    """
    on: Dict[SourceKey, bool] = {source: False for source in ALL_SOURCES}
    if not isinstance(active_sources, Mapping):
        return on
    for key, value in active_sources.items():
        try:
            source = SourceKey(key)
        except ValueError:
            continue
        on[source] = value is True
    return on


def merge_availability(
    defaults: Mapping[SourceKey, bool],
    toggles: Any,
) -> Dict[SourceKey, bool]:
    """Overlay user *toggles* on a scenario's *defaults*.

    A source is available only if the scenario's relevance table marks it
    and the toggle (falling back to the default) leaves it on.
    """
    explicit: Dict[SourceKey, bool] = {}
    if isinstance(toggles, Mapping):
        for key, value in toggles.items():
            try:
                explicit[SourceKey(key)] = value is True
            except ValueError:
                continue
    return {
        source: bool(defaults.get(source, False))
        and explicit.get(source, bool(defaults.get(source, False)))
        for source in ALL_SOURCES
    }


def relevant_active_sources(
    scenario: Optional[Scenario],
    active_sources: Any,
) -> List[SourceKey]:
    """Sources both active and canonical, in the scenario's priority order."""
    if scenario is None:
        return []
    on = normalize_sources(active_sources)
    return [source for source in scenario.relevant_sources if on[source]]


def irrelevant_active_sources(
    scenario: Optional[Scenario],
    active_sources: Any,
) -> List[SourceKey]:
    """Sources switched on that the scenario does not consider canonical."""
    relevant = set(scenario.relevant_sources) if scenario else set()
    on = normalize_sources(active_sources)
    return [s for s in ALL_SOURCES if on[s] and s not in relevant]
