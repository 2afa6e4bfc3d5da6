# plan_models.py
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Dict, Literal, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from errors import PlanValidationError

PlanStatus = Literal["initialized", "in_progress", "completed", "error"]


# -------------------------
# Form input
# -------------------------
class GoalTime(BaseModel):
    hours: int = Field(default=0, ge=0, le=12)
    minutes: int = Field(default=0, ge=0, le=59)
    seconds: int = Field(default=0, ge=0, le=59)

    @field_validator("hours", "minutes", "seconds", mode="before")
    @classmethod
    def _blank_is_zero(cls, value):
        if isinstance(value, str) and not value.strip():
            return 0
        return value

    def label(self) -> str:
        return f"{self.hours}h{self.minutes:02d}m{self.seconds:02d}s"


class PlanForm(BaseModel):
    race_date: date = Field(alias="raceDate")
    goal_time: GoalTime = Field(alias="goalTime")
    current_mileage: float = Field(alias="currentMileage", ge=0, le=500, allow_inf_nan=False)
    email: str

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        value = value.strip()
        local, _, domain = value.partition("@")
        if not local or "." not in domain:
            raise ValueError("Invalid email address")
        return value

    @classmethod
    def from_json(cls, body: Dict) -> "PlanForm":
        missing = [k for k in ("raceDate", "goalTime", "currentMileage", "email") if body.get(k) in (None, "")]
        if missing:
            raise PlanValidationError("Missing required fields", {"missing": missing})
        try:
            return cls.model_validate(body)
        except ValidationError as e:
            fields = {".".join(str(p) for p in err["loc"]): err["msg"] for err in e.errors()}
            raise PlanValidationError("Invalid plan request", {"fields": fields}) from e


# -------------------------
# Persisted state
# -------------------------
class PlanRequest(BaseModel):
    request_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    status: PlanStatus = "initialized"
    email: str
    race_date: date
    goal_time: GoalTime
    current_mileage: float
    start_date: date
    total_weeks: int = Field(ge=1)
    current_week: int = 0
    weeks: Dict[int, str] = Field(default_factory=dict)
    error: Optional[str] = None
    start_time: datetime = Field(default_factory=datetime.now)

    def full_plan(self) -> str:
        return "\n\n".join(self.weeks[w] for w in sorted(self.weeks))

    def progress(self) -> Dict:
        return {
            "status": self.status,
            "currentWeek": self.current_week,
            "totalWeeks": self.total_weeks,
        }

    def to_status(self) -> Dict:
        body = self.progress()
        body.update(
            weeks={str(w): self.weeks[w] for w in sorted(self.weeks)},
            startTime=self.start_time.isoformat(),
            raceDate=self.race_date.isoformat(),
        )
        if self.error is not None:
            body["error"] = self.error
        return body
