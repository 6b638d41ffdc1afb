"""
Tests for Study Registration API endpoints.

API integration tests using FastAPI TestClient.

Tests:
1. Health and metrics endpoints
2. Session lifecycle and section navigation
3. Section validation (422 with field errors)
4. Results, readiness and live estimate
5. Site row buttons
6. Error handling (404 for unknown sessions and sections)
"""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from studyreg import __version__
from studyreg.api.routes import configure_session_store, router
from studyreg.storage.session_store import InMemorySessionStore

# =============================================================================
# TEST FIXTURES
# =============================================================================


@pytest.fixture
def app():
    """Create test FastAPI app."""
    app = FastAPI()
    app.include_router(router)
    return app


@pytest.fixture
def client(app):
    """Create test client."""
    with TestClient(app) as c:
        yield c


@pytest.fixture(autouse=True)
def session_store():
    """Fresh in-memory store for each test."""
    store = InMemorySessionStore()
    configure_session_store(store)
    yield store
    configure_session_store(None)


@pytest.fixture
def session_id(client) -> str:
    response = client.post("/api/v1/sessions")
    assert response.status_code == 201
    return response.json()["session_id"]


def _url(session_id: str, suffix: str = "") -> str:
    return f"/api/v1/sessions/{session_id}/feasibility{suffix}"


def _complete_wizard(client, session_id: str) -> None:
    forms = [
        ("platform", {"platform": "bpor"}),
        ("target", {"target_recruitment": "500"}),
        ("sites", {"sites": [{"name": "Leeds", "coverage_type": "radius", "radius": "15"}]}),
        ("diagnoses", {"diagnoses": []}),
        ("demographics", {"age_mode": "preset", "age_preset": "18-65", "sex": "any"}),
        ("demographics-extended", {}),
        ("medical", {"exclude": ["Stroke", "Epilepsy", "Asthma"]}),
        ("disabilities", {}),
        ("other", {}),
    ]
    for section, form in forms:
        response = client.post(_url(session_id, f"/{section}"), json=form)
        assert response.status_code == 200, response.text


# =============================================================================
# SERVICE
# =============================================================================


class TestService:
    """Tests for health and metrics endpoints."""

    def test_health(self, client) -> None:
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        assert response.json() == {
            "status": "healthy",
            "version": __version__,
            "service": "studyreg",
        }

    def test_metrics_counts_activity(self, client, session_id: str) -> None:
        client.post(_url(session_id, "/platform"), json={})
        data = client.get("/api/v1/metrics").json()
        assert data["studyreg.sessions_created"] == 1
        assert data["studyreg.validation_failures"] == 1


# =============================================================================
# SESSIONS AND SECTIONS
# =============================================================================


class TestSessions:
    """Tests for session lifecycle."""

    def test_new_session_state(self, client, session_id: str) -> None:
        response = client.get(_url(session_id))
        assert response.status_code == 200
        body = response.json()
        assert body["session_id"] == session_id
        assert body["progress"] == {"completed": 0, "total": 10}
        assert body["feasibility"]["completed"] is False

    def test_unknown_session(self, client) -> None:
        assert client.get(_url("nope")).status_code == 404
        assert client.get(_url("nope", "/platform")).status_code == 404
        assert client.get(_url("nope", "/results")).status_code == 404
        assert client.post(_url("nope", "/estimate")).status_code == 404


class TestSections:
    """Tests for section view and save."""

    def test_view_marks_in_progress(self, client, session_id: str) -> None:
        response = client.get(_url(session_id, "/sites"))
        assert response.status_code == 200
        body = response.json()
        assert body["section"] == "sites"
        assert body["status"] == "in-progress"
        assert body["data"]["default_radius"] == 10.0

    def test_save_returns_next_section(self, client, session_id: str) -> None:
        response = client.post(_url(session_id, "/platform"), json={"platform": "jdr"})
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "completed"
        assert body["next_section"] == "target"
        assert body["progress"]["completed"] == 1

        saved = client.get(_url(session_id, "/platform")).json()
        assert saved["data"] == {"platform": "jdr"}
        assert saved["status"] == "completed"

    def test_validation_errors(self, client, session_id: str) -> None:
        response = client.post(_url(session_id, "/target"), json={"target_recruitment": "2.5"})
        assert response.status_code == 422
        assert response.json() == {
            "errors": [
                {"href": "#targetRecruitment", "text": "Enter a whole number (no decimals)"}
            ]
        }
        assert client.get(_url(session_id)).json()["progress"]["completed"] == 0

    def test_empty_body(self, client, session_id: str) -> None:
        response = client.post(_url(session_id, "/platform"))
        assert response.status_code == 422
        assert response.json()["errors"][0]["href"] == "#platform-bpor"

    def test_unknown_section(self, client, session_id: str) -> None:
        assert client.get(_url(session_id, "/payment")).status_code == 404
        assert client.post(_url(session_id, "/payment"), json={}).status_code == 404

    def test_results_cannot_be_posted(self, client, session_id: str) -> None:
        assert client.post(_url(session_id, "/results"), json={}).status_code == 404

    def test_other_leads_to_results(self, client, session_id: str) -> None:
        body = client.post(_url(session_id, "/other"), json={"mmse": "21"}).json()
        assert body["next_section"] == "results"


# =============================================================================
# RESULTS AND LIVE ESTIMATE
# =============================================================================


class TestResults:
    """Tests for the results endpoint."""

    def test_results_persisted(self, client, session_id: str) -> None:
        _complete_wizard(client, session_id)
        response = client.get(_url(session_id, "/results"))
        assert response.status_code == 200
        body = response.json()
        assert body["available"] == 10_000
        assert body["matched"] == 9_640
        assert body["summary"] == (
            "Estimated 9,640 out of 10,000 possible volunteers meet your criteria."
        )
        assert body["readiness"]["status"] == "pass"
        assert [step["step"] for step in body["breakdown"]] == ["medical_exclude", "coverage"]

        state = client.get(_url(session_id)).json()
        assert state["feasibility"]["completed"] is True
        assert state["feasibility"]["results"] == {
            "total_estimate": 10_000,
            "matched_estimate": 9_640,
        }
        assert state["progress"] == {"completed": 10, "total": 10}

    def test_results_without_target(self, client, session_id: str) -> None:
        body = client.get(_url(session_id, "/results")).json()
        assert body["matched"] == 6_667
        assert body["readiness"] == {
            "status": "warn",
            "ratio": None,
            "message": "No overall target provided.",
        }

    def test_results_section_completed(self, client, session_id: str) -> None:
        client.get(_url(session_id, "/results"))
        state = client.get(_url(session_id)).json()
        assert state["feasibility"]["status"]["results"] == "completed"


class TestLiveEstimate:
    """Tests for the live estimate endpoint."""

    def test_without_overrides(self, client, session_id: str) -> None:
        response = client.post(_url(session_id, "/estimate"))
        assert response.status_code == 200
        assert response.json() == {"available": 10_000, "matched": 6_667}

    def test_override_is_not_saved(self, client, session_id: str) -> None:
        _complete_wizard(client, session_id)
        body = {"overrides": {"section": "medical", "values": {"include": [], "exclude": []}}}
        response = client.post(_url(session_id, "/estimate"), json=body)
        assert response.json()["matched"] == 10_000

        saved = client.get(_url(session_id, "/medical")).json()
        assert saved["data"]["exclude"] == ["Stroke", "Epilepsy", "Asthma"]

    def test_override_by_page_path(self, client, session_id: str) -> None:
        path = "/researcher/feasibility/demographics"
        body = {"overrides": {"path": path, "values": {"sex": "male"}}}
        response = client.post(_url(session_id, "/estimate"), json=body)
        assert response.json()["matched"] == 3_333

    def test_oversized_age_is_treated_as_missing(self, client, session_id: str) -> None:
        values = {"age_mode": "custom", "age_min": 10**400, "age_max": 60}
        body = {"overrides": {"section": "demographics", "values": values}}
        response = client.post(_url(session_id, "/estimate"), json=body)
        assert response.status_code == 200
        assert 0 <= response.json()["matched"] <= 10_000

    def test_unknown_override_section(self, client, session_id: str) -> None:
        body = {"overrides": {"section": "payment", "values": {"platform": "jdr"}}}
        response = client.post(_url(session_id, "/estimate"), json=body)
        assert response.json()["matched"] == 6_667


# =============================================================================
# SITE ROWS
# =============================================================================


class TestSiteRows:
    """Tests for the add/remove site row endpoints."""

    def test_add_and_remove(self, client, session_id: str) -> None:
        response = client.post(
            _url(session_id, "/sites/rows"),
            json={"name": "Leeds", "coverage_type": "postcode", "districts": "ls1 ls2"},
        )
        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "in-progress"
        assert body["data"]["sites"][0]["coverage"] == {
            "type": "postcode",
            "districts": ["LS1", "LS2"],
        }

        response = client.delete(_url(session_id, "/sites/rows/0"))
        assert response.status_code == 200
        assert response.json()["data"]["sites"] == []
        assert response.json()["status"] == "not-started"

    def test_blank_row_adds_nothing(self, client, session_id: str) -> None:
        response = client.post(_url(session_id, "/sites/rows"), json={})
        assert response.status_code == 201
        assert response.json()["data"]["sites"] == []

    def test_remove_missing_row(self, client, session_id: str) -> None:
        assert client.delete(_url(session_id, "/sites/rows/3")).status_code == 404
