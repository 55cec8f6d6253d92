"""HTTP trigger tests using Flask's test client."""

from datetime import timedelta

import pytest

import config
from conftest import BKK, FakeClock, FakeMessenger, FakeRowSource, FakeStore, RecordingSleep, stock_row
from cooldown import CooldownTracker
from job_store import JobConfig
from runner import JobRunner, RunReport
from webapp import create_app

SECRET = "s3cret"
AUTH = {"Authorization": f"Bearer {SECRET}"}


class StubRunner:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def run_all(self, job_names=None):
        self.calls.append(job_names)
        if self.error:
            raise self.error
        names = job_names or ["notify-overdue-stock-vehicles"]
        return [RunReport(name, messages_sent=1) for name in names]


@pytest.fixture
def stub_runner():
    return StubRunner()


@pytest.fixture
def client(monkeypatch, stub_runner):
    monkeypatch.setattr(config, "API_SECRET", SECRET)
    app = create_app(runner_factory=lambda: stub_runner)
    app.config["TESTING"] = True
    return app.test_client()


def test_health_needs_no_auth(client):
    resp = client.get("/api/health")
    data = resp.get_json()

    assert resp.status_code == 200
    assert data["success"] is True
    assert "POST /api/notify - Run every active notification job" in data["endpoints"]
    assert data["timestamp"]


@pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer wrong"}, {"Authorization": SECRET}])
def test_notify_rejects_bad_tokens(client, stub_runner, headers):
    resp = client.post("/api/notify", headers=headers)

    assert resp.status_code == 401
    assert resp.get_json() == {"error": "Unauthorized"}
    assert stub_runner.calls == []


def test_notify_without_configured_secret_is_refused(monkeypatch, stub_runner):
    monkeypatch.setattr(config, "API_SECRET", "")
    client = create_app(runner_factory=lambda: stub_runner).test_client()

    assert client.post("/api/notify", headers={"Authorization": "Bearer "}).status_code == 401


def test_notify_all(client, stub_runner):
    resp = client.post("/api/notify", headers=AUTH)
    data = resp.get_json()

    assert resp.status_code == 200
    assert data["success"] is True
    assert data["message"] == "Notification job completed successfully (all jobs)"
    assert len(data["reports"]) == 1
    assert stub_runner.calls == [None]


def test_notify_one_job(client, stub_runner):
    resp = client.post("/api/notify/notify-vehicles-near-tax-deadline", headers=AUTH)

    assert resp.status_code == 200
    assert stub_runner.calls == [["notify-vehicles-near-tax-deadline"]]
    assert resp.get_json()["reports"][0].startswith("notify-vehicles-near-tax-deadline:")


def test_notify_failure_is_500(monkeypatch):
    monkeypatch.setattr(config, "API_SECRET", SECRET)
    runner = StubRunner(error=RuntimeError("sheet unavailable"))
    client = create_app(runner_factory=lambda: runner).test_client()

    resp = client.post("/api/notify", headers=AUTH)
    data = resp.get_json()

    assert resp.status_code == 500
    assert data["success"] is False
    assert data["error"] == "Internal server error"
    assert data["message"] == "sheet unavailable"


def test_get_on_notify_is_405(client):
    resp = client.get("/api/notify")
    assert resp.status_code == 405
    assert resp.get_json() == {"error": "Method not allowed"}


def test_unknown_route_is_json_404(client):
    resp = client.get("/api/nothing")
    assert resp.status_code == 404
    assert resp.get_json() == {"error": "Not found"}


def test_runner_is_built_once_per_app(monkeypatch, stub_runner):
    monkeypatch.setattr(config, "API_SECRET", SECRET)
    builds = []

    def factory():
        builds.append(1)
        return stub_runner

    client = create_app(runner_factory=factory).test_client()
    client.post("/api/notify", headers=AUTH)
    client.post("/api/notify/notify-vehicles-near-tax-deadline", headers=AUTH)

    assert len(builds) == 1
    assert stub_runner.calls == [None, ["notify-vehicles-near-tax-deadline"]]


def test_failed_build_is_retried(monkeypatch, stub_runner):
    monkeypatch.setattr(config, "API_SECRET", SECRET)
    outcomes = [RuntimeError("LINE connection failed"), stub_runner]

    def factory():
        outcome = outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    client = create_app(runner_factory=factory).test_client()

    assert client.post("/api/notify", headers=AUTH).status_code == 500
    assert client.post("/api/notify", headers=AUTH).status_code == 200


def test_cooldown_holds_across_requests(monkeypatch):
    monkeypatch.setattr(config, "API_SECRET", SECRET)
    messenger = FakeMessenger()
    job = JobConfig("notify-overdue-stock-vehicles", "Stock", recipient_ids=["U1"])

    def factory():
        return JobRunner(
            FakeStore(job),
            FakeRowSource({"Stock": [["header"] * 19, stock_row("19/08/2026")]}),
            messenger,
            cooldown=CooldownTracker(window=timedelta(hours=1)),
            clock=FakeClock(),
            tz=BKK,
            sleep=RecordingSleep(),
        )

    client = create_app(runner_factory=factory).test_client()
    for _ in range(2):
        resp = client.post("/api/notify/notify-overdue-stock-vehicles", headers=AUTH)
        assert resp.status_code == 200

    assert len(messenger.calls) == 1
    assert "1 in cooldown" in resp.get_json()["reports"][0]
