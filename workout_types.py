import datetime
import uuid
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class SetType(str, Enum):
    NORMAL = "normal"
    WARMUP = "warmup"
    DROPSET = "dropset"
    FAILURE = "failure"


class PlannedExercise(BaseModel):
    """One exercise row of a plan day."""

    name: str
    sets: int = Field(default=3, ge=0)
    reps: str = ""
    rest: str = ""
    notes: Optional[str] = None


class WorkoutDay(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    day_name: str
    exercises: List[PlannedExercise] = Field(default_factory=list)


class WorkoutPlan(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    title: str
    frequency: int = Field(default=3, ge=0)
    goal: Optional[str] = None
    days: List[WorkoutDay] = Field(default_factory=list)
    created_at: str = Field(
        default_factory=lambda: datetime.datetime.now().isoformat(timespec="seconds")
    )
    is_public: bool = False


class SetLog(BaseModel):
    """A single editable weight x reps cell."""

    weight: float = 0.0
    reps: int = 0
    rpe: Optional[int] = 8
    type: SetType = SetType.NORMAL


class ExerciseLog(BaseModel):
    name: str
    sets: List[SetLog] = Field(default_factory=list)
    notes: str = ""
    is_pr: bool = False


class WorkoutLog(BaseModel):
    """Immutable record produced once at the end of a logging session."""

    model_config = {"frozen": True}

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    plan_id: str
    plan_title: str
    day_name: str
    date: str
    exercises: List[ExerciseLog]
    total_volume: float
    duration_seconds: int = 0
