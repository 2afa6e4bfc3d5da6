"""
Scenarios for the week-by-week state machine.

Weeks must be generated in order and exactly once, terminal requests never
change, and the completion email goes out exactly once.
"""

import json
from datetime import date

import pytest

from conftest import TODAY, FakeMailer
from errors import GenerationFailure, PlanNotFound, PlanValidationError, StateConflict
from orchestrator import PlanOrchestrator
from plan_models import PlanForm
from plan_store import plan_key


def make_form(race_date="2025-06-01", email="runner@example.com"):
    return PlanForm.from_json({
        "raceDate": race_date,
        "goalTime": {"hours": "3", "minutes": "45", "seconds": "0"},
        "currentMileage": "25",
        "email": email,
    })


class TestInitialize:
    def test_returns_request_id_and_week_count(self, orchestrator):
        result = orchestrator.initialize(make_form())
        assert result["totalWeeks"] == 5
        assert result["requestId"]

    def test_status_right_after_initialize(self, orchestrator):
        request_id = orchestrator.initialize(make_form())["requestId"]
        status = orchestrator.get_status(request_id)
        assert status["status"] == "initialized"
        assert status["currentWeek"] == 0
        assert status["totalWeeks"] == 5
        assert status["weeks"] == {}
        assert "error" not in status

    def test_race_tomorrow_accepted(self, orchestrator):
        assert orchestrator.initialize(make_form("2025-05-02"))["totalWeeks"] == 1

    def test_race_today_rejected_and_nothing_written(self, store, generator, mailer):
        writes = []
        original_set = store.set
        store.set = lambda *args: writes.append(args) or original_set(*args)
        orchestrator = PlanOrchestrator(store, generator, mailer, clock=lambda: TODAY)

        with pytest.raises(PlanValidationError):
            orchestrator.initialize(make_form("2025-05-01"))
        assert writes == []

    def test_record_stored_with_ttl(self, generator, mailer):
        calls = []

        class RecordingStore:
            def set(self, key, value, ttl_seconds):
                calls.append((key, value, ttl_seconds))

        orchestrator = PlanOrchestrator(RecordingStore(), generator, mailer, clock=lambda: TODAY, ttl_seconds=3600)
        request_id = orchestrator.initialize(make_form())["requestId"]

        key, value, ttl = calls[0]
        assert key == plan_key(request_id)
        assert ttl == 3600
        record = json.loads(value)
        assert record["status"] == "initialized"
        assert record["start_date"] == "2025-05-01"


class TestAdvanceWeek:
    def setup_method(self):
        self.form = make_form()

    def test_full_sequence_completes_and_emails_once(self, orchestrator, generator, mailer):
        request_id = orchestrator.initialize(self.form)["requestId"]

        for week in range(1, 6):
            result = orchestrator.advance_week(request_id, week)
            assert result["currentWeek"] == week
            assert result["totalWeeks"] == 5
            assert result["weekPlan"].startswith(f"## Week {week}")
            assert result["status"] == ("completed" if week == 5 else "in_progress")

        status = orchestrator.get_status(request_id)
        assert status["status"] == "completed"
        assert sorted(status["weeks"]) == ["1", "2", "3", "4", "5"]

        assert len(mailer.sent) == 1
        sent = mailer.sent[0]
        assert sent["to"] == "runner@example.com"
        assert sent["race_date"] == date(2025, 6, 1)
        assert sent["plan"] == "\n\n".join(status["weeks"][str(w)] for w in range(1, 6))

    def test_advance_after_completion_is_rejected_unchanged(self, orchestrator, mailer):
        request_id = orchestrator.initialize(make_form("2025-05-02"))["requestId"]
        orchestrator.advance_week(request_id, 1)
        before = orchestrator.get_status(request_id)

        with pytest.raises(StateConflict) as excinfo:
            orchestrator.advance_week(request_id, 2)
        assert excinfo.value.details["status"] == "completed"

        assert orchestrator.get_status(request_id) == before
        assert len(mailer.sent) == 1

    def test_skipping_a_week_is_rejected(self, orchestrator):
        request_id = orchestrator.initialize(self.form)["requestId"]
        orchestrator.advance_week(request_id, 1)

        with pytest.raises(StateConflict) as excinfo:
            orchestrator.advance_week(request_id, 3)
        assert excinfo.value.details["expectedWeek"] == 2

        status = orchestrator.get_status(request_id)
        assert status["currentWeek"] == 1
        assert list(status["weeks"]) == ["1"]

    def test_repeating_a_week_is_rejected(self, orchestrator, generator):
        request_id = orchestrator.initialize(self.form)["requestId"]
        orchestrator.advance_week(request_id, 1)

        with pytest.raises(StateConflict):
            orchestrator.advance_week(request_id, 1)
        assert len(generator.calls) == 1

    def test_unknown_request(self, orchestrator):
        with pytest.raises(PlanNotFound):
            orchestrator.advance_week("missing", 1)
        with pytest.raises(PlanNotFound):
            orchestrator.get_status("missing")

    def test_week_number_below_one(self, orchestrator):
        request_id = orchestrator.initialize(self.form)["requestId"]
        with pytest.raises(PlanValidationError):
            orchestrator.advance_week(request_id, 0)

    def test_mileage_only_sent_for_first_week(self, orchestrator, generator):
        request_id = orchestrator.initialize(self.form)["requestId"]
        orchestrator.advance_week(request_id, 1)
        orchestrator.advance_week(request_id, 2)
        assert generator.calls[0]["current_mileage"] == 25.0
        assert generator.calls[1]["current_mileage"] is None

    def test_chunks_use_initialization_date(self, store, generator, mailer):
        days = iter([date(2025, 5, 1), date(2025, 5, 20)])
        orchestrator = PlanOrchestrator(store, generator, mailer, clock=lambda: next(days))
        request_id = orchestrator.initialize(self.form)["requestId"]
        orchestrator.advance_week(request_id, 1)
        assert generator.calls[0]["chunk"].start == date(2025, 5, 1)

    def test_lock_held_elsewhere_is_a_conflict(self, orchestrator, store, generator):
        request_id = orchestrator.initialize(self.form)["requestId"]
        with store.lock("lock:request:" + request_id, timeout=30) as acquired:
            assert acquired
            with pytest.raises(StateConflict):
                orchestrator.advance_week(request_id, 1)
        assert generator.calls == []

        # Released afterwards
        assert orchestrator.advance_week(request_id, 1)["currentWeek"] == 1


class TestLongPlan:
    def test_weeks_stay_in_numeric_order_past_week_nine(self, orchestrator, mailer):
        result = orchestrator.initialize(make_form("2025-08-01"))
        request_id = result["requestId"]
        assert result["totalWeeks"] == 14

        for week in range(1, 15):
            orchestrator.advance_week(request_id, week)

        status = orchestrator.get_status(request_id)
        assert status["status"] == "completed"
        assert list(status["weeks"]) == [str(w) for w in range(1, 15)]

        assert len(mailer.sent) == 1
        plan = mailer.sent[0]["plan"]
        assert plan == "\n\n".join(f"## Week {w}\nRun: easy {w} miles" for w in range(1, 15))
        assert plan.index("## Week 2\n") < plan.index("## Week 10\n")


class TestGenerationFailure:
    def _three_week_request(self, orchestrator):
        result = orchestrator.initialize(make_form("2025-05-20"))
        assert result["totalWeeks"] == 3
        return result["requestId"]

    def test_failure_on_week_two_of_three(self, orchestrator, generator, mailer):
        request_id = self._three_week_request(orchestrator)
        orchestrator.advance_week(request_id, 1)
        generator.failures[2] = GenerationFailure("backend exploded")

        with pytest.raises(GenerationFailure) as excinfo:
            orchestrator.advance_week(request_id, 2)
        assert excinfo.value.details["status"] == "error"

        status = orchestrator.get_status(request_id)
        assert status["status"] == "error"
        assert status["error"] == "backend exploded"
        assert status["currentWeek"] == 1
        assert list(status["weeks"]) == ["1"]
        assert mailer.sent == []

    def test_only_failed_week_may_follow_an_error(self, orchestrator, generator):
        request_id = self._three_week_request(orchestrator)
        orchestrator.advance_week(request_id, 1)
        generator.failures[2] = GenerationFailure("backend exploded")
        with pytest.raises(GenerationFailure):
            orchestrator.advance_week(request_id, 2)
        before = orchestrator.get_status(request_id)

        with pytest.raises(StateConflict):
            orchestrator.advance_week(request_id, 3)
        assert orchestrator.get_status(request_id) == before

    def test_retrying_failed_week_resumes(self, orchestrator, generator, mailer):
        request_id = self._three_week_request(orchestrator)
        orchestrator.advance_week(request_id, 1)
        generator.failures[2] = GenerationFailure("timed out", kind=GenerationFailure.TIMEOUT)
        with pytest.raises(GenerationFailure) as excinfo:
            orchestrator.advance_week(request_id, 2)
        assert excinfo.value.status_code == 408

        result = orchestrator.advance_week(request_id, 2)
        assert result["status"] == "in_progress"
        assert "error" not in orchestrator.get_status(request_id)

        assert orchestrator.advance_week(request_id, 3)["status"] == "completed"
        assert len(mailer.sent) == 1

    def test_failure_on_first_week(self, orchestrator, generator):
        request_id = self._three_week_request(orchestrator)
        generator.failures[1] = GenerationFailure("no key")
        with pytest.raises(GenerationFailure):
            orchestrator.advance_week(request_id, 1)
        status = orchestrator.get_status(request_id)
        assert status["status"] == "error"
        assert status["weeks"] == {}


class TestNotification:
    def test_email_failure_keeps_plan_completed(self, store, generator):
        mailer = FakeMailer(result=False)
        orchestrator = PlanOrchestrator(store, generator, mailer, clock=lambda: TODAY)
        request_id = orchestrator.initialize(make_form("2025-05-02"))["requestId"]

        assert orchestrator.advance_week(request_id, 1)["status"] == "completed"
        assert orchestrator.get_status(request_id)["status"] == "completed"
        assert len(mailer.sent) == 1

    def test_email_exception_keeps_plan_completed(self, store, generator):
        class BrokenMailer:
            def send_plan(self, *args):
                raise RuntimeError("smtp down")

        orchestrator = PlanOrchestrator(store, generator, BrokenMailer(), clock=lambda: TODAY)
        request_id = orchestrator.initialize(make_form("2025-05-02"))["requestId"]
        assert orchestrator.advance_week(request_id, 1)["status"] == "completed"

    def test_without_mailer(self, store, generator):
        orchestrator = PlanOrchestrator(store, generator, None, clock=lambda: TODAY)
        request_id = orchestrator.initialize(make_form("2025-05-02"))["requestId"]
        assert orchestrator.advance_week(request_id, 1)["status"] == "completed"
