"""Tests for the HTTP API."""

import pytest
from fastapi import BackgroundTasks, HTTPException
from fastapi.testclient import TestClient

from common.models.config import TestConfig
from common.models.run import RunStatus
from controller import dependencies
from controller.api.routes import runs
from controller.core.orchestrator import RunOrchestrator
from controller.core.run_state import RunStateMachine
from controller.main import create_app
from controller.storage.history import HistoryLedger
from controller.storage.preferences import PreferencesStore
from tests.conftest import FakeEngine, InMemoryKeyValueStore, make_result


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine(auto_result=make_result())


@pytest.fixture
def client(engine):
    """Test client with in-memory components; the lifespan is not run."""
    store = InMemoryKeyValueStore()
    preferences = PreferencesStore(store)
    orchestrator = RunOrchestrator(
        engine=engine,
        state=RunStateMachine(),
        ledger=HistoryLedger(store),
        on_error_logs=preferences.reveal_error_logs,
    )
    dependencies.set_orchestrator(orchestrator)
    dependencies.set_preferences(preferences)

    yield TestClient(create_app())

    dependencies.set_orchestrator(None)
    dependencies.set_preferences(None)


def start_run(client, **overrides):
    body = {"url": "https://api.example.com/items", "num_requests": 10, "concurrency": 5}
    body.update(overrides)
    return client.post("/api/v1/runs/start", json=body)


class TestSystemRoutes:
    """Tests for system endpoints."""

    def test_root(self, client):
        assert client.get("/").json()["status"] == "running"

    def test_health(self, client):
        assert client.get("/api/v1/system/health").json() == {"status": "healthy"}

    def test_cpus(self, client):
        assert client.get("/api/v1/system/cpus").json()["cpus"] > 0

    def test_preferences(self, client):
        """Test reading and updating preferences."""
        response = client.put("/api/v1/system/preferences", json={
            "theme": "light",
            "layout": {"show_histogram": False},
        })

        assert response.status_code == 200
        data = client.get("/api/v1/system/preferences").json()
        assert data["theme"] == "light"
        assert data["layout"]["show_histogram"] is False
        assert data["layout"]["show_latency_chart"] is True

    def test_invalid_layout_rejected(self, client):
        """Test that a layout value of the wrong type is a client error."""
        response = client.put("/api/v1/system/preferences", json={
            "layout": {"show_histogram": "maybe"},
        })

        assert response.status_code == 422
        assert response.json()["detail"][0]["loc"] == ["show_histogram"]
        assert client.get("/api/v1/system/preferences").json()["layout"]["show_histogram"] is True


class TestRunRoutes:
    """Tests for run control endpoints."""

    def test_initial_state(self, client):
        data = client.get("/api/v1/runs/state").json()

        assert data["status"] == "idle"
        assert data["can_start"] is True
        assert data["has_result"] is False
        assert data["percent"] == 0.0

    def test_no_result(self, client):
        assert client.get("/api/v1/runs/result").status_code == 404
        assert client.get("/api/v1/runs/charts").status_code == 404

    def test_start_run(self, client, engine):
        """Test a run started through the API."""
        response = start_run(client)

        assert response.status_code == 202
        assert len(engine.configs) == 1

        state = client.get("/api/v1/runs/state").json()
        assert state["status"] == "completed"
        assert state["has_result"] is True

        result = client.get("/api/v1/runs/result").json()
        assert result["total_requests"] == 10

        charts = client.get("/api/v1/runs/charts", params={"max_points": 5}).json()
        assert len(charts["latency"]) <= 5

    def test_run_reveals_error_logs(self, client):
        """Test that a run with failures shows the error panel."""
        start_run(client)

        assert client.get("/api/v1/system/preferences").json()["show_error_logs"] is True

    def test_start_invalid_url(self, client, engine):
        """Test that an invalid URL is rejected before reaching the engine."""
        response = start_run(client, url="")

        assert response.status_code == 400
        assert response.json()["detail"] == "Please enter a URL"
        assert engine.configs == []
        assert client.get("/api/v1/runs/state").json()["status"] == "idle"

    def test_start_while_running(self, client, engine):
        """Test that a second run is refused."""
        dependencies.get_orchestrator().state.begin()

        response = start_run(client)

        assert response.status_code == 409
        assert engine.configs == []

    def test_cancel(self, client, engine):
        assert client.post("/api/v1/runs/cancel").status_code == 202
        assert engine.cancel_requests == 1

    def test_recommendation(self, client):
        """Test concurrency recommendation for a config."""
        response = client.post("/api/v1/runs/recommendation", json={
            "url": "http://localhost:8080",
            "concurrency": 500,
        })

        data = response.json()
        assert response.status_code == 200
        assert data["recommendation"]["factors"]["local_multiplier"] == 2.0
        assert data["recommendation"]["suggested"] <= data["recommendation"]["max"]
        assert isinstance(data["warnings"], list)


class TestHistoryRoutes:
    """Tests for history endpoints."""

    def test_empty_history(self, client):
        data = client.get("/api/v1/history/").json()

        assert data["entries"] == []
        assert data["selected_id"] is None

    def test_history_after_run(self, client):
        """Test listing, selecting and exporting a recorded run."""
        start_run(client)

        entries = client.get("/api/v1/history/").json()["entries"]
        assert len(entries) == 1
        entry_id = entries[0]["id"]
        assert entries[0]["url"] == "https://api.example.com/items"

        entry = client.get(f"/api/v1/history/{entry_id}").json()
        assert entry["stats"]["results"] == []

        response = client.post("/api/v1/history/select", json={"entry_id": entry_id})
        assert response.json()["selected_id"] == entry_id
        assert response.json()["entry"]["id"] == entry_id

        charts = client.get(f"/api/v1/history/{entry_id}/charts").json()
        assert len(charts["percentiles"]) == 7

        csv = client.get(f"/api/v1/history/{entry_id}/export", params={"format": "csv"})
        assert csv.status_code == 200
        assert csv.headers["content-type"].startswith("text/csv")
        assert csv.text.startswith("# Zoyla Test Results")

        exported = client.get(f"/api/v1/history/{entry_id}/export").json()
        assert exported["summary"]["totalRequests"] == 10

    def test_unknown_entry(self, client):
        assert client.get("/api/v1/history/missing").status_code == 404
        assert client.delete("/api/v1/history/missing").status_code == 404
        assert client.post("/api/v1/history/select", json={"entry_id": "missing"}).status_code == 404

    def test_delete_and_clear(self, client):
        """Test deleting one entry and clearing the rest."""
        start_run(client)
        start_run(client)
        entries = client.get("/api/v1/history/").json()["entries"]

        assert client.delete(f"/api/v1/history/{entries[0]['id']}").status_code == 200
        assert client.get("/api/v1/history/").json()["total"] == 1

        assert client.delete("/api/v1/history/").status_code == 200
        assert client.get("/api/v1/history/").json()["total"] == 0

    def test_export_bad_format(self, client):
        start_run(client)
        entry_id = client.get("/api/v1/history/").json()["entries"][0]["id"]

        assert client.get(f"/api/v1/history/{entry_id}/export", params={"format": "xml"}).status_code == 422


@pytest.mark.asyncio
class TestStartRoute:
    """Tests for the start handler itself, without running background tasks."""

    async def test_start_claims_run_before_responding(self, client, engine):
        """Test that two starts in a row cannot both be accepted."""
        config = TestConfig(url="https://api.example.com/items", num_requests=10, concurrency=5)
        first_tasks = BackgroundTasks()

        response = await runs.start_run(config, first_tasks)

        orchestrator = dependencies.get_orchestrator()
        assert orchestrator.state.status == RunStatus.RUNNING
        assert orchestrator.state.run_id == response["run_id"]
        assert len(first_tasks.tasks) == 1
        assert engine.configs == []

        second_tasks = BackgroundTasks()
        with pytest.raises(HTTPException) as exc_info:
            await runs.start_run(config, second_tasks)

        assert exc_info.value.status_code == 409
        assert second_tasks.tasks == []

        await first_tasks()
        assert engine.configs == [config]
        assert orchestrator.state.status == RunStatus.COMPLETED
