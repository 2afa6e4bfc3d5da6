# week_planner.py
"""
Date arithmetic for splitting the days before a race into weekly chunks.

Week 1 starts on the reference date (the day the plan was requested). Every
chunk covers seven days except the last, which is clipped to race day.
"""

import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import List

from errors import PlanValidationError

DAYS_PER_WEEK = 7


@dataclass(frozen=True)
class WeekChunk:
    week_number: int
    start: date
    end: date

    def days(self) -> List[date]:
        return [self.start + timedelta(days=i) for i in range((self.end - self.start).days + 1)]


def total_weeks(reference_date: date, race_date: date) -> int:
    """Number of weekly chunks between the reference date and race day.

    Raises PlanValidationError when the race is not strictly in the future.
    """
    days = (race_date - reference_date).days
    if days <= 0:
        raise PlanValidationError(
            "Race date must be after today",
            {"raceDate": race_date.isoformat(), "today": reference_date.isoformat()},
        )
    return math.ceil(days / DAYS_PER_WEEK)


def week_chunk(reference_date: date, race_date: date, week_number: int) -> WeekChunk:
    """Start/end dates for a 1-based week index.

    The chunk end never passes race day. A chunk starting on or after race day
    is returned as-is; callers decide whether that is acceptable.
    """
    if week_number < 1:
        raise PlanValidationError("Week number must be 1 or greater", {"weekNumber": week_number})
    start = reference_date + timedelta(days=(week_number - 1) * DAYS_PER_WEEK)
    end = min(start + timedelta(days=DAYS_PER_WEEK - 1), race_date)
    return WeekChunk(week_number=week_number, start=start, end=end)
