"""Request models for the workout log API."""
import math
import re
from datetime import date
from typing import Any, List, Optional

from pydantic import BaseModel, Field

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class ValidationError(ValueError):
    """Missing or malformed request field (HTTP 400)."""


class SetInput(BaseModel):
    """One performed set, in the order the client sent it."""
    reps: int = 0
    weight_kg: float = 0


class ExerciseInput(BaseModel):
    """One exercise with its sets, in the order the client sent it."""
    name: str
    sets: List[SetInput] = Field(default_factory=list)


class WorkoutPayload(BaseModel):
    """Complete desired state of one day's workout."""
    workout_date: str
    title: Optional[str] = None
    notes: Optional[str] = None
    exercises: List[ExerciseInput] = Field(default_factory=list)


def coerce_non_negative(value: Any) -> float:
    """
    Lenient number coercion for set fields.

    Numbers and numeric strings are accepted; anything missing, non-numeric,
    non-finite or negative becomes 0.
    """
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str) and value.strip():
        try:
            number = float(value.strip())
        except ValueError:
            return 0
    else:
        return 0
    if not math.isfinite(number) or number < 0:
        return 0
    return number


def parse_workout_date(value: Any, field: str = "date") -> str:
    """Return ``value`` if it is a real calendar date in YYYY-MM-DD form."""
    if not value:
        raise ValidationError(f"{field}=YYYY-MM-DD required")
    if not isinstance(value, str) or not DATE_PATTERN.match(value):
        raise ValidationError(f"{field} must be YYYY-MM-DD")
    try:
        date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"{field} is not a valid date") from None
    return value


def _optional_text(body: dict, field: str) -> Optional[str]:
    value = body.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value


def _parse_sets(raw_sets: Any) -> List[SetInput]:
    if not isinstance(raw_sets, list):
        return []
    sets = []
    for raw in raw_sets:
        raw = raw if isinstance(raw, dict) else {}
        sets.append(
            SetInput(
                reps=int(coerce_non_negative(raw.get("reps"))),
                weight_kg=coerce_non_negative(raw.get("weight_kg")),
            )
        )
    return sets


def parse_workout_payload(body: Any) -> WorkoutPayload:
    """
    Validate the body of ``POST /api/workouts``.

    Structural problems (missing date, ``exercises`` not a list, exercise
    without a name) raise ValidationError. Set values are never rejected;
    they are coerced with :func:`coerce_non_negative`.
    """
    if not isinstance(body, dict):
        raise ValidationError("JSON object body required")

    workout_date = parse_workout_date(body.get("workout_date"), "workout_date")

    raw_exercises = body.get("exercises")
    if not isinstance(raw_exercises, list):
        raise ValidationError("exercises[] required")

    exercises = []
    for idx, raw in enumerate(raw_exercises):
        if not isinstance(raw, dict):
            raise ValidationError(f"exercises[{idx}] must be an object")
        name = raw.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValidationError(f"exercises[{idx}].name required")
        exercises.append(ExerciseInput(name=name, sets=_parse_sets(raw.get("sets"))))

    return WorkoutPayload(
        workout_date=workout_date,
        title=_optional_text(body, "title"),
        notes=_optional_text(body, "notes"),
        exercises=exercises,
    )
