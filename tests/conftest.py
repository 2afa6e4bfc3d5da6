from datetime import date

import pytest

from app import create_app
from orchestrator import PlanOrchestrator
from plan_store import MemoryPlanStore

TODAY = date(2025, 5, 1)


class FakeGenerator:
    """Stands in for PlanGenerator; failures are queued per week number."""

    def __init__(self):
        self.calls = []
        self.failures = {}

    def generate_week(self, chunk, total_weeks, race_date, goal_time, current_mileage=None):
        self.calls.append({"chunk": chunk, "total_weeks": total_weeks, "current_mileage": current_mileage})
        failure = self.failures.pop(chunk.week_number, None)
        if failure is not None:
            raise failure
        return f"## Week {chunk.week_number}\nRun: easy {chunk.week_number} miles"


class FakeMailer:
    def __init__(self, result=True):
        self.result = result
        self.sent = []

    def send_plan(self, to_address, plan, race_date):
        self.sent.append({"to": to_address, "plan": plan, "race_date": race_date})
        return self.result


class FakeSubscriber:
    def __init__(self):
        self.subscribed = []

    def subscribe(self, email):
        self.subscribed.append(email)
        return {}


@pytest.fixture(autouse=True)
def test_env(monkeypatch):
    """Set safe defaults for tests (no real secrets, no network)."""
    monkeypatch.setenv("FLASK_SECRET_KEY", "test_" + "a" * 64)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    for name in ("REDIS_URL", "SMTP_HOST", "SMTP_USERNAME", "SMTP_PASSWORD", "KLAVIYO_API_KEY", "KLAVIYO_LIST_ID"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def store():
    return MemoryPlanStore()


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def orchestrator(store, generator, mailer):
    return PlanOrchestrator(store, generator, mailer, clock=lambda: TODAY)


@pytest.fixture
def subscriber():
    return FakeSubscriber()


@pytest.fixture
def flask_app(store, generator, mailer, subscriber):
    app = create_app(
        store=store,
        generator=generator,
        mailer=mailer,
        subscriber=subscriber,
        clock=lambda: TODAY,
    )
    app.testing = True
    return app


@pytest.fixture
def client(flask_app):
    return flask_app.test_client()
