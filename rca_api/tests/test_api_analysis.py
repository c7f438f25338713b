"""Tests for rca_api — resolution and session replay endpoints."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from agents.rca_agent.core.scheduler import ManualScheduler
from integration.config_manager import SystemConfig
from rca_api.dependencies import get_scheduler, init_dependencies, shutdown_dependencies
from rca_api.server import app


@pytest.fixture(autouse=True)
def _setup_deps():
    init_dependencies(SystemConfig(), scheduler=ManualScheduler())
    yield
    shutdown_dependencies()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def clock() -> ManualScheduler:
    return get_scheduler()  # type: ignore[return-value]


# ---------------------------------------------------------------------------
# Synchronous resolution
# ---------------------------------------------------------------------------

class TestResolve:
    @pytest.mark.parametrize(
        "sources, percent",
        [
            ({"analytics": True, "support": True, "releases": True}, 90),
            ({"analytics": True, "support": True}, 65),
            ({"analytics": True, "releases": True}, 60),
            ({"analytics": True}, 30),
            ({}, 20),
        ],
    )
    def test_checkout_table(self, client, sources, percent):
        resp = client.post(
            "/api/v1/analysis/resolve",
            json={"scenario_key": "checkout-drop", "active_sources": sources},
        )
        assert resp.status_code == 200
        assert resp.json()["hypothesis"]["confidence"]["percent"] == percent

    def test_evidence_order_and_ids(self, client):
        resp = client.post(
            "/api/v1/analysis/resolve",
            json={
                "scenario_key": "api-error-spike",
                "active_sources": {"infrastructure": True, "analytics": True, "appstore": True},
            },
        )
        evidence = resp.json()["evidence"]
        assert [e["source"] for e in evidence] == ["analytics", "infrastructure"]
        assert all(e["has_data"] for e in evidence)

    def test_unknown_source_keys_read_as_off(self, client):
        resp = client.post(
            "/api/v1/analysis/resolve",
            json={"scenario_key": "checkout-drop", "active_sources": {"bogus": True}},
        )
        assert resp.status_code == 200
        assert resp.json()["hypothesis"]["confidence"]["level"] == "Very Low"

    def test_unknown_scenario(self, client):
        resp = client.post("/api/v1/analysis/resolve", json={"scenario_key": "nope"})
        assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Session replay
# ---------------------------------------------------------------------------

class TestSessionReplay:
    def test_initial_state(self, client):
        data = client.get("/api/v1/analysis").json()
        assert data["scenario_key"] == "checkout-drop"
        assert data["state"] == "idle"
        assert data["actions"] == []
        assert data["result"] is None
        assert data["toggles"]["analytics"] is True
        assert data["toggles"]["appstore"] is False

    def test_start_and_complete(self, client, clock):
        resp = client.post("/api/v1/analysis/start", json={})
        assert resp.status_code == 200
        assert resp.json()["state"] == "intro"
        assert resp.json()["result"] is None

        clock.run_until_idle()
        data = client.get("/api/v1/analysis").json()
        assert data["state"] == "complete"
        assert data["revealed"] is True
        assert data["result"]["hypothesis"]["confidence"]["percent"] == 90
        assert data["actions"][0]["type"] == "parse"
        assert data["actions"][-1]["type"] == "hypothesis"

    def test_since_returns_tail(self, client, clock):
        client.post("/api/v1/analysis/start", json={})
        clock.run_until_idle()
        full = client.get("/api/v1/analysis").json()
        tail = client.get("/api/v1/analysis", params={"since": 5}).json()
        assert tail["total_actions"] == full["total_actions"]
        assert tail["actions"] == full["actions"][5:]
        assert tail["actions"][0]["sequence"] == 5

    def test_partial_trace_while_running(self, client, clock):
        client.post("/api/v1/analysis/start", json={})
        clock.advance(2.0)
        data = client.get("/api/v1/analysis").json()
        assert data["state"] == "intro"
        assert 0 < data["total_actions"] < 4
        assert data["result"] is None

    def test_start_with_query(self, client, clock):
        resp = client.post(
            "/api/v1/analysis/start",
            json={"query": "Why did the API error rate spike?"},
        )
        assert resp.json()["scenario_key"] == "api-error-spike"
        clock.run_until_idle()
        data = client.get("/api/v1/analysis").json()
        assert data["result"]["hypothesis"]["confidence"]["percent"] == 95

    def test_start_with_overrides(self, client, clock):
        resp = client.post(
            "/api/v1/analysis/start",
            json={"scenario_key": "api-error-spike", "active_sources": {"internal": False}},
        )
        assert resp.json()["toggles"]["internal"] is False
        clock.run_until_idle()
        data = client.get("/api/v1/analysis").json()
        assert data["result"]["hypothesis"]["confidence"]["percent"] == 70

    def test_start_unknown_scenario(self, client):
        resp = client.post("/api/v1/analysis/start", json={"scenario_key": "nope"})
        assert resp.status_code == 404

    def test_start_unknown_source(self, client):
        resp = client.post(
            "/api/v1/analysis/start", json={"active_sources": {"bogus": True}},
        )
        assert resp.status_code == 404
        assert client.get("/api/v1/analysis").json()["state"] == "idle"

    def test_rejected_start_leaves_session_untouched(self, client, clock):
        client.post("/api/v1/analysis/start", json={})
        clock.run_until_idle()
        before = client.get("/api/v1/analysis").json()
        assert before["state"] == "complete"

        resp = client.post(
            "/api/v1/analysis/start",
            json={
                "scenario_key": "api-error-spike",
                "active_sources": {"analytics": False, "bogus": True},
            },
        )
        assert resp.status_code == 404
        after = client.get("/api/v1/analysis").json()
        assert after["scenario_key"] == "checkout-drop"
        assert after["state"] == "complete"
        assert after["toggles"] == before["toggles"]
        assert after["total_actions"] == before["total_actions"]

    def test_reset(self, client, clock):
        client.post("/api/v1/analysis/start", json={})
        clock.advance(3.0)
        data = client.post("/api/v1/analysis/reset").json()
        assert data["state"] == "idle"
        assert data["actions"] == []
        clock.run_until_idle()
        assert client.get("/api/v1/analysis").json()["total_actions"] == 0


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

class TestSessionInputs:
    def test_toggle_flips(self, client):
        resp = client.post("/api/v1/analysis/sources/releases/toggle")
        assert resp.status_code == 200
        assert resp.json() == {"source": "releases", "enabled": False}
        resp = client.post("/api/v1/analysis/sources/releases/toggle")
        assert resp.json()["enabled"] is True

    def test_toggle_sets(self, client):
        resp = client.post(
            "/api/v1/analysis/sources/appstore/toggle", json={"enabled": True},
        )
        assert resp.json()["enabled"] is True
        data = client.get("/api/v1/analysis").json()
        assert data["toggles"]["appstore"] is True
        # Irrelevant to checkout-drop, so never available.
        assert data["availability"]["appstore"] is False

    def test_toggle_resets_running_replay(self, client, clock):
        client.post("/api/v1/analysis/start", json={})
        clock.advance(1.0)
        client.post("/api/v1/analysis/sources/support/toggle", json={"enabled": False})
        data = client.get("/api/v1/analysis").json()
        assert data["state"] == "idle"
        assert data["total_actions"] == 0

        client.post("/api/v1/analysis/start", json={})
        clock.run_until_idle()
        data = client.get("/api/v1/analysis").json()
        assert data["result"]["hypothesis"]["confidence"]["percent"] == 60

    def test_toggle_unknown_source(self, client):
        resp = client.post("/api/v1/analysis/sources/bogus/toggle")
        assert resp.status_code == 404

    def test_select_scenario(self, client):
        client.post("/api/v1/analysis/sources/analytics/toggle", json={"enabled": False})
        resp = client.post("/api/v1/analysis/scenario", json={"scenario_key": "api-error-spike"})
        data = resp.json()
        assert data["scenario_key"] == "api-error-spike"
        assert [s for s, on in data["toggles"].items() if on] == [
            "analytics", "internal", "infrastructure",
        ]

    def test_select_unknown_scenario(self, client):
        resp = client.post("/api/v1/analysis/scenario", json={"scenario_key": "nope"})
        assert resp.status_code == 404
        assert client.get("/api/v1/analysis").json()["scenario_key"] == "checkout-drop"
