# plan_generator.py
"""
Prompt construction and the OpenAI call for a single training week.

One request per week keeps every call well inside the generation timeout.
Week 1 carries the runner profile; later weeks only need the dates and the
week header so the model keeps the same layout.
"""

import logging
import time
from datetime import date
from typing import Optional

from openai import APITimeoutError, OpenAI, OpenAIError

from errors import GenerationFailure
from plan_models import GoalTime
from week_planner import WeekChunk

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a marathon coach. Create specific daily workouts that build progressively. "
    "Include distances, paces, and brief tips."
)


def format_day(d: date) -> str:
    # e.g. "Saturday, June 1, 2025"
    return f"{d:%A, %B} {d.day}, {d.year}"


def build_week_prompt(
    chunk: WeekChunk,
    total_weeks: int,
    race_date: date,
    goal_time: GoalTime,
    current_mileage: Optional[float] = None,
) -> str:
    week = chunk.week_number
    lines = [f"Create a marathon training plan for Week {week} of {total_weeks}."]

    if week == 1:
        mileage = f"{current_mileage:g}" if current_mileage is not None else "unknown"
        lines += [
            "",
            "Runner Profile:",
            f"- Race Day: {format_day(race_date)}",
            f"- Goal Time: {goal_time.label()}",
            f"- Current Weekly Mileage: {mileage} miles",
            "",
            "Training Overview:",
            "Provide a brief overview of the training approach.",
        ]
    elif week == total_weeks:
        lines += ["", f"This is race week. The race is on {format_day(race_date)}."]

    lines += [
        "",
        "Format the week like this:",
        f"## Week {week}",
        "> Weekly Target: [X] miles",
        "> Key Workouts: Long run ([X] miles), Speed work ([X] miles)",
        "> Build: [+/- X] miles from previous week",
        "",
        "Then list each day in this format:",
        "**[Full Day and Date]**",
        "Run: [Exact workout with distance]",
        "Pace: [Specific pace]",
        "Notes: [Brief tips]",
        "",
        "Generate the plan for these dates:",
    ]
    lines += [format_day(d) for d in chunk.days()]
    return "\n".join(lines)


class PlanGenerator:
    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4o-mini",
        timeout: float = 25.0,
        max_tokens: int = 1000,
        temperature: float = 0.5,
        client: Optional[OpenAI] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._client = client

    @classmethod
    def from_config(cls, config) -> "PlanGenerator":
        return cls(
            api_key=config.get("OPENAI_API_KEY"),
            model=config.get("OPENAI_MODEL", "gpt-4o-mini"),
            timeout=config.get("GENERATION_TIMEOUT_SECONDS", 25.0),
            max_tokens=config.get("GENERATION_MAX_TOKENS", 1000),
            temperature=config.get("GENERATION_TEMPERATURE", 0.5),
        )

    def client(self) -> OpenAI:
        if self._client is None:
            if not self.api_key:
                raise GenerationFailure("OpenAI API key not configured")
            # Retries are the caller's decision, never the SDK's.
            self._client = OpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        return self._client

    def complete(self, system_prompt: str, user_prompt: str) -> str:
        """Run one chat completion. Raises GenerationFailure on any backend problem."""
        client = self.client()
        try:
            completion = client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                timeout=self.timeout,
            )
        except APITimeoutError as e:
            raise GenerationFailure(
                f"Plan generation timed out after {self.timeout:g}s",
                kind=GenerationFailure.TIMEOUT,
            ) from e
        except OpenAIError as e:
            raise GenerationFailure(f"Failed to generate training plan: {e}") from e

        try:
            return completion.choices[0].message.content or ""
        except (AttributeError, IndexError, TypeError) as e:
            raise GenerationFailure("Malformed response from text generation backend") from e

    def generate_week(
        self,
        chunk: WeekChunk,
        total_weeks: int,
        race_date: date,
        goal_time: GoalTime,
        current_mileage: Optional[float] = None,
    ) -> str:
        prompt = build_week_prompt(chunk, total_weeks, race_date, goal_time, current_mileage)
        started = time.monotonic()
        text = self.complete(SYSTEM_PROMPT, prompt)
        logger.info(
            "Week %s/%s generated in %.1fs (%d chars)",
            chunk.week_number, total_weeks, time.monotonic() - started, len(text),
        )
        if not text:
            logger.warning("Backend returned no content for week %s", chunk.week_number)
        return text
