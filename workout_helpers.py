from __future__ import annotations

import datetime
import math
from typing import Iterable, Optional

from models import DEFAULT_TARGET_REPS, PlannedExercise, WorkoutSet


def create_empty_set(
    exercise_id: int,
    set_number: int,
    previous_set: Optional[WorkoutSet] = None,
    default_reps: int = DEFAULT_TARGET_REPS,
) -> WorkoutSet:
    """Return a new uncompleted set seeded from ``previous_set``.

    Target reps prefer the previous set's actual reps, then its target
    reps, then ``default_reps``. Weight is carried forward or 0.
    """
    if previous_set is not None:
        if previous_set.actual_reps is not None:
            reps = previous_set.actual_reps
        else:
            reps = previous_set.target_reps
        weight = previous_set.weight
    else:
        reps = default_reps
        weight = 0.0
    return WorkoutSet(
        exercise_id=exercise_id,
        set_number=set_number,
        target_reps=reps,
        weight=weight,
    )


def seed_planned_set(
    planned: PlannedExercise,
    previous_set: Optional[WorkoutSet] = None,
) -> WorkoutSet:
    """First set for a planned exercise.

    Previous performance wins over the split day's planned target.
    """
    if previous_set is not None:
        return create_empty_set(planned.exercise_id, 1, previous_set)
    return create_empty_set(
        planned.exercise_id, 1, default_reps=planned.planned_reps
    )


def renumber_sets(sets: Iterable[WorkoutSet]) -> list[WorkoutSet]:
    return [
        s.model_copy(update={"set_number": number})
        for number, s in enumerate(sets, start=1)
    ]


def set_numbers_are_dense(sets: Iterable[WorkoutSet]) -> bool:
    numbers = [s.set_number for s in sets]
    return numbers == list(range(1, len(numbers) + 1))


def elapsed_minutes(start: datetime.datetime, end: datetime.datetime) -> int:
    """Whole minutes between ``start`` and ``end``, halves rounded up, never negative."""
    seconds = (end - start).total_seconds()
    return max(0, int(math.floor(seconds / 60.0 + 0.5)))
