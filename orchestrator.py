# orchestrator.py
"""
Week-by-week plan generation driven by client calls.

Lifecycle of a request
----------------------
initialize            -> status "initialized", current_week 0, no weeks
advance_week(id, n)   -> generates week n (must be current_week + 1)
                         "in_progress" until the last week, then "completed"
                         and the plan is emailed once
get_status(id)        -> read-only view of the stored record

A backend failure moves the request to "error". Weeks already generated are
kept, and the failed week may be requested again; a successful retry clears
the error and the sequence continues. "completed" accepts nothing further.

Every transition is persisted before the call returns, so a crashed worker or
a reloaded page resumes from the stored record. advance_week holds a per-request
lock around its read-modify-write.
"""

import logging
from datetime import date
from typing import Callable, Dict, Optional

from errors import GenerationFailure, NotificationFailure, PlanNotFound, PlanValidationError, StateConflict
from plan_models import PlanForm, PlanRequest
from plan_store import LOCK_PREFIX, plan_key
from week_planner import total_weeks, week_chunk

logger = logging.getLogger(__name__)


class PlanOrchestrator:
    def __init__(
        self,
        store,
        generator,
        mailer=None,
        clock: Callable[[], date] = date.today,
        ttl_seconds: int = 3600,
        lock_timeout: float = 60.0,
    ):
        self.store = store
        self.generator = generator
        self.mailer = mailer
        self.clock = clock
        self.ttl_seconds = ttl_seconds
        self.lock_timeout = lock_timeout

    # -------------------------
    # Persistence
    # -------------------------
    def _load(self, request_id: str) -> PlanRequest:
        raw = self.store.get(plan_key(request_id))
        if raw is None:
            raise PlanNotFound("Request not found", {"requestId": request_id})
        return PlanRequest.model_validate_json(raw)

    def _save(self, plan: PlanRequest) -> None:
        self.store.set(plan_key(plan.request_id), plan.model_dump_json(), self.ttl_seconds)

    # -------------------------
    # Operations
    # -------------------------
    def initialize(self, form: PlanForm) -> Dict:
        today = self.clock()
        weeks = total_weeks(today, form.race_date)
        plan = PlanRequest(
            email=form.email,
            race_date=form.race_date,
            goal_time=form.goal_time,
            current_mileage=form.current_mileage,
            start_date=today,
            total_weeks=weeks,
        )
        self._save(plan)
        logger.info("Plan %s initialized: %d weeks until %s", plan.request_id, weeks, plan.race_date)
        return {"requestId": plan.request_id, "totalWeeks": weeks}

    def advance_week(self, request_id: str, week_number: int) -> Dict:
        if week_number < 1:
            raise PlanValidationError("Week number must be 1 or greater", {"weekNumber": week_number})

        with self.store.lock(LOCK_PREFIX + request_id, self.lock_timeout) as acquired:
            if not acquired:
                raise StateConflict(
                    "A week is already being generated for this request",
                    {"requestId": request_id, "weekNumber": week_number},
                )
            return self._advance_locked(request_id, week_number)

    def _advance_locked(self, request_id: str, week_number: int) -> Dict:
        plan = self._load(request_id)

        if plan.status == "completed":
            raise StateConflict("Plan is already complete; no further action", plan.progress())

        expected = plan.current_week + 1
        if week_number != expected:
            details = plan.progress()
            details.update(weekNumber=week_number, expectedWeek=expected)
            raise StateConflict(f"Expected week {expected}, got week {week_number}", details)

        chunk = week_chunk(plan.start_date, plan.race_date, week_number)
        if week_number > plan.total_weeks or chunk.start >= plan.race_date:
            details = plan.progress()
            details.update(weekNumber=week_number)
            raise StateConflict("Week starts on or after race day", details)

        if plan.status == "error":
            logger.info("Plan %s retrying week %d after error: %s", request_id, week_number, plan.error)

        try:
            text = self.generator.generate_week(
                chunk,
                plan.total_weeks,
                plan.race_date,
                plan.goal_time,
                plan.current_mileage if week_number == 1 else None,
            )
        except GenerationFailure as e:
            plan.status = "error"
            plan.error = e.message
            self._save(plan)
            logger.warning("Plan %s failed on week %d (%s): %s", request_id, week_number, e.kind, e.message)
            e.details.update(plan.progress(), weekNumber=week_number, kind=e.kind)
            raise

        plan.weeks[week_number] = text
        plan.current_week = week_number
        plan.error = None
        plan.status = "completed" if week_number == plan.total_weeks else "in_progress"
        self._save(plan)
        logger.info("Plan %s week %d/%d stored", request_id, week_number, plan.total_weeks)

        if plan.status == "completed":
            self._notify(plan)

        result = plan.progress()
        result["weekPlan"] = text
        return result

    def get_status(self, request_id: str) -> Dict:
        return self._load(request_id).to_status()

    # -------------------------
    # Completion email
    # -------------------------
    def _notify(self, plan: PlanRequest) -> None:
        if self.mailer is None:
            logger.info("No mailer configured, plan %s not emailed", plan.request_id)
            return
        try:
            if not self.mailer.send_plan(plan.email, plan.full_plan(), plan.race_date):
                raise NotificationFailure("Plan email was not delivered", {"requestId": plan.request_id})
        except NotificationFailure as e:
            logger.warning("Plan %s completed but email failed: %s", plan.request_id, e.message)
        except Exception:
            logger.exception("Plan %s completed but email raised", plan.request_id)
