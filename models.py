from __future__ import annotations

import datetime
import uuid
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator

MuscleGroup = Literal[
    "chest",
    "back",
    "shoulders",
    "biceps",
    "triceps",
    "forearms",
    "abs",
    "obliques",
    "quads",
    "hamstrings",
    "glutes",
    "calves",
]

ALL_MUSCLE_GROUPS: list[str] = [
    "chest",
    "back",
    "shoulders",
    "biceps",
    "triceps",
    "forearms",
    "abs",
    "obliques",
    "quads",
    "hamstrings",
    "glutes",
    "calves",
]

ExerciseCategory = Literal["machine", "barbell", "dumbbell", "bodyweight", "cable", "other"]
TrainingSplit = Literal["upper_lower", "push_pull_legs", "full_body", "bro_split", "custom"]
MesocycleStatus = Literal["planned", "active", "completed", "abandoned"]
RecoveryStatus = Literal["well_recovered", "moderately_recovered", "fatigued", "very_fatigued"]

DEFAULT_TARGET_REPS = 8


def _now() -> datetime.datetime:
    return datetime.datetime.now()


def _new_id() -> str:
    return uuid.uuid4().hex


class UserProfile(BaseModel):
    id: Optional[int] = None
    name: str = Field(min_length=1, max_length=100)
    experience_level: Literal["beginner", "intermediate", "advanced"] = "beginner"
    units: Literal["metric", "imperial"] = "metric"
    theme: Literal["light", "dark", "system"] = "system"
    created_at: datetime.datetime = Field(default_factory=_now)
    updated_at: datetime.datetime = Field(default_factory=_now)


class Exercise(BaseModel):
    id: Optional[int] = None
    name: str = Field(min_length=1, max_length=100)
    category: ExerciseCategory = "other"
    muscle_groups: list[MuscleGroup] = Field(default_factory=list)
    equipment: Optional[str] = None
    notes: Optional[str] = None
    is_custom: bool = False
    created_at: datetime.datetime = Field(default_factory=_now)


class WorkoutSet(BaseModel):
    """A single logged set. ``set_number`` is 1-based and dense per exercise."""

    id: str = Field(default_factory=_new_id)
    exercise_id: int
    set_number: int = Field(ge=1)
    target_reps: int = Field(ge=0)
    actual_reps: Optional[int] = Field(default=None, ge=0)
    weight: float = Field(default=0.0, ge=0)
    rir: Optional[int] = Field(default=None, ge=0, le=10)
    completed: bool = False


class WorkoutExercise(BaseModel):
    exercise_id: int
    sets: list[WorkoutSet] = Field(default_factory=list)
    notes: Optional[str] = None


class MuscleGroupFeedback(BaseModel):
    muscle_group: MuscleGroup
    pump: Optional[int] = Field(default=None, ge=1, le=5)
    soreness: Optional[int] = Field(default=None, ge=1, le=5)


class WorkoutFeedback(BaseModel):
    overall_recovery: Optional[RecoveryStatus] = None
    muscle_group_feedback: list[MuscleGroupFeedback] = Field(default_factory=list)
    notes: Optional[str] = None


class DraftIdentity(BaseModel):
    """Identity of a workout that has never been committed."""

    kind: Literal["draft"] = "draft"
    token: str = Field(default_factory=_new_id)


class PersistedIdentity(BaseModel):
    """Identity of a workout stored in the entity store."""

    kind: Literal["persisted"] = "persisted"
    id: int


WorkoutIdentity = Annotated[
    Union[DraftIdentity, PersistedIdentity], Field(discriminator="kind")
]


class Workout(BaseModel):
    identity: WorkoutIdentity = Field(default_factory=DraftIdentity)
    date: datetime.datetime = Field(default_factory=_now)
    exercises: list[WorkoutExercise] = Field(default_factory=list)
    notes: Optional[str] = None
    completed: bool = False
    duration: Optional[int] = Field(default=None, ge=0)
    mesocycle_id: Optional[int] = None
    week_number: Optional[int] = Field(default=None, ge=1)
    split_day_id: Optional[int] = None
    feedback: Optional[WorkoutFeedback] = None
    created_at: datetime.datetime = Field(default_factory=_now)
    updated_at: datetime.datetime = Field(default_factory=_now)

    @property
    def is_draft(self) -> bool:
        return isinstance(self.identity, DraftIdentity)

    @property
    def id(self) -> int | None:
        if isinstance(self.identity, PersistedIdentity):
            return self.identity.id
        return None

    def find_exercise(self, exercise_id: int) -> WorkoutExercise | None:
        for entry in self.exercises:
            if entry.exercise_id == exercise_id:
                return entry
        return None


class PlannedExercise(BaseModel):
    exercise_id: int
    order: int = Field(default=0, ge=0)
    target_sets: int = Field(default=3, ge=1, le=10)
    target_reps_min: int = Field(default=8, ge=1, le=50)
    target_reps_max: int = Field(default=12, ge=1, le=50)
    rest_seconds: int = Field(default=90, ge=0, le=600)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _check_rep_range(self) -> "PlannedExercise":
        if self.target_reps_min > self.target_reps_max:
            raise ValueError("target_reps_min cannot exceed target_reps_max")
        return self

    @property
    def planned_reps(self) -> int:
        """Midpoint of the planned rep range, 10 when the range is empty."""
        return (self.target_reps_min + self.target_reps_max) // 2 or 10


class SplitDay(BaseModel):
    id: Optional[int] = None
    name: str = Field(min_length=1, max_length=50)
    day_order: int = Field(default=1, ge=1)
    exercises: list[PlannedExercise] = Field(default_factory=list)


class Mesocycle(BaseModel):
    id: Optional[int] = None
    name: str = Field(min_length=1, max_length=100)
    start_date: datetime.date
    end_date: datetime.date
    duration_weeks: int = Field(default=6, ge=4, le=6)
    current_week: int = Field(default=1, ge=1, le=6)
    deload_week: int = Field(default=6, ge=1, le=6)
    training_split: TrainingSplit = "custom"
    split_days: list[SplitDay] = Field(default_factory=list)
    status: MesocycleStatus = "planned"
    notes: Optional[str] = None
    created_at: datetime.datetime = Field(default_factory=_now)
    updated_at: datetime.datetime = Field(default_factory=_now)

    @model_validator(mode="after")
    def _check_dates(self) -> "Mesocycle":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

    def find_split_day(self, split_day_id: int) -> SplitDay | None:
        for split_day in self.split_days:
            if split_day.id == split_day_id:
                return split_day
        return None


class PreviousPerformance(BaseModel):
    exercise_id: int
    date: datetime.datetime
    sets: list[WorkoutSet]

    @property
    def last_set(self) -> WorkoutSet | None:
        return self.sets[-1] if self.sets else None


class SplitCompletion(BaseModel):
    split_day: SplitDay
    completed: bool
    completed_date: Optional[datetime.datetime] = None
