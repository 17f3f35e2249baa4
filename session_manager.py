from __future__ import annotations

import asyncio
import datetime
import threading
from enum import Enum
from typing import Any, Callable, Optional

from loguru import logger

from autosave import AutosaveTask
from db import (
    AsyncExerciseRepository,
    AsyncMesocycleRepository,
    AsyncWorkoutRepository,
    DraftRepository,
)
from errors import CommitError, InvalidTransitionError, LookupFailedError
from mesocycle_service import MesocycleService
from models import (
    PersistedIdentity,
    SplitDay,
    Workout,
    WorkoutExercise,
    WorkoutFeedback,
    WorkoutSet,
)
from settings_schema import SettingsSchema
from split_scheduler import calculate_mesocycle_week
from workout_helpers import (
    create_empty_set,
    elapsed_minutes,
    renumber_sets,
    seed_planned_set,
)

PROTECTED_SET_FIELDS = {"id", "exercise_id", "set_number"}


class SessionState(str, Enum):
    INACTIVE = "inactive"
    ACTIVE = "active"


class WorkoutSessionManager:
    """Owns the single in-progress workout draft.

    The draft is only changed through the methods of this class. While a
    session is active the draft is snapshotted to the draft repository on
    entry and then every ``settings.autosave_interval`` seconds. A snapshot
    found at construction time is adopted and the session starts active.

    Operations called from the wrong state raise
    :class:`InvalidTransitionError` when ``strict_transitions`` is set and
    are otherwise logged and ignored.
    """

    def __init__(
        self,
        workout_repo: AsyncWorkoutRepository,
        exercise_repo: AsyncExerciseRepository,
        mesocycle_repo: AsyncMesocycleRepository,
        draft_repo: DraftRepository,
        settings: SettingsSchema | None = None,
        *,
        mesocycle_service: MesocycleService | None = None,
        clock: Callable[[], datetime.datetime] = datetime.datetime.now,
    ) -> None:
        self.workouts = workout_repo
        self.exercises = exercise_repo
        self.mesocycles = mesocycle_repo
        self.drafts = draft_repo
        self.settings = settings or SettingsSchema()
        self.planner = mesocycle_service or MesocycleService(mesocycle_repo, workout_repo)
        self.clock = clock
        self.current_exercise_index = 0
        self._lock = threading.RLock()
        self._state = SessionState.INACTIVE
        self._draft: Optional[Workout] = None
        self._generation = 0
        # Set while finish or cancel is ending the session.
        self._ending = False
        self._autosave: Optional[AutosaveTask] = None
        self._recover()

    # -- observation -------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is SessionState.ACTIVE

    @property
    def workout(self) -> Optional[Workout]:
        """Copy of the current draft, ``None`` while inactive."""
        with self._lock:
            if self._draft is None:
                return None
            return self._draft.model_copy(deep=True)

    def set_current_exercise_index(self, index: int) -> None:
        self.current_exercise_index = max(0, index)

    # -- state plumbing ----------------------------------------------------

    def _recover(self) -> None:
        draft = self.drafts.load()
        if draft is None:
            return
        logger.info(f"Recovered in-progress workout started at {draft.date.isoformat()}")
        self._activate(draft)

    def _reject(self, operation: str) -> None:
        state = "ending" if self._ending else self._state.value
        if self.settings.strict_transitions:
            raise InvalidTransitionError(operation, state)
        logger.warning(f"Ignoring {operation}: session is {state}")

    def _require_active(self, operation: str, generation: int | None = None) -> bool:
        if self._state is SessionState.ACTIVE and self._draft is not None and not self._ending:
            if generation is None or generation == self._generation:
                return True
        self._reject(operation)
        return False

    def _require_inactive(self, operation: str) -> bool:
        if self._state is SessionState.INACTIVE:
            return True
        self._reject(operation)
        return False

    def _activate(self, draft: Workout) -> None:
        with self._lock:
            self._draft = draft
            self._state = SessionState.ACTIVE
            self._generation += 1
            self.current_exercise_index = 0
        task = AutosaveTask(self._autosave_tick, self.settings.autosave_interval)
        self._autosave = task
        task.start()

    def _release(self) -> Optional[AutosaveTask]:
        with self._lock:
            self._state = SessionState.INACTIVE
            self._draft = None
            self._ending = False
            self.current_exercise_index = 0
            task, self._autosave = self._autosave, None
        return task

    def _deactivate(self) -> None:
        # Must not hold the lock here: stopping waits for an in-flight tick.
        task = self._release()
        if task is not None:
            task.stop()

    def _begin_ending(self, operation: str) -> bool:
        """Claim the session for ``operation`` and stop further snapshots."""
        with self._lock:
            if not self._require_active(operation):
                return False
            self._ending = True
            return True

    def _abort_ending(self) -> None:
        with self._lock:
            self._ending = False

    def _autosave_tick(self) -> None:
        with self._lock:
            if self._state is not SessionState.ACTIVE or self._draft is None or self._ending:
                return
            self.drafts.save(self._draft)

    def _replace_draft(self, **changes: Any) -> None:
        changes["updated_at"] = self.clock()
        self._draft = self._draft.model_copy(update=changes)

    def _exercise_index(self, exercise_id: int) -> int:
        for index, entry in enumerate(self._draft.exercises):
            if entry.exercise_id == exercise_id:
                return index
        raise LookupFailedError(f"exercise {exercise_id} is not part of this workout")

    def _replace_exercise(self, index: int, **changes: Any) -> None:
        exercises = list(self._draft.exercises)
        exercises[index] = exercises[index].model_copy(update=changes)
        self._replace_draft(exercises=exercises)

    # -- lifecycle ---------------------------------------------------------

    def start(self) -> Optional[Workout]:
        if not self._require_inactive("start"):
            return None
        now = self.clock()
        draft = Workout(date=now, created_at=now, updated_at=now)
        self._activate(draft)
        logger.info("Workout started")
        return draft.model_copy(deep=True)

    async def start_from_split(
        self, mesocycle_id: int, split_day_id: int
    ) -> Optional[Workout]:
        """Start a draft pre-filled with the split day's planned exercises.

        Raises :class:`LookupFailedError` when the mesocycle or split day is
        unknown; callers fall back to :meth:`start`.
        """
        if not self._require_inactive("start_from_split"):
            return None
        try:
            mesocycle = await self.mesocycles.fetch(mesocycle_id)
        except ValueError as e:
            raise LookupFailedError(f"mesocycle {mesocycle_id} not found") from e
        split_day = mesocycle.find_split_day(split_day_id)
        if split_day is None:
            raise LookupFailedError(
                f"split day {split_day_id} not found in mesocycle {mesocycle_id}"
            )

        entries: list[WorkoutExercise] = []
        for planned in split_day.exercises:
            if not await self.exercises.exists(planned.exercise_id):
                logger.warning(f"Exercise {planned.exercise_id} not found, skipping")
                continue
            previous = await self.workouts.previous_performance(planned.exercise_id)
            entries.append(
                WorkoutExercise(
                    exercise_id=planned.exercise_id,
                    sets=[seed_planned_set(planned, previous.last_set if previous else None)],
                    notes=planned.notes,
                )
            )

        if not self._require_inactive("start_from_split"):
            return None
        now = self.clock()
        draft = Workout(
            date=now,
            exercises=entries,
            mesocycle_id=mesocycle.id,
            week_number=mesocycle.current_week,
            split_day_id=split_day.id,
            created_at=now,
            updated_at=now,
        )
        self._activate(draft)
        logger.info(f"Workout started from split day {split_day.name!r}")
        return draft.model_copy(deep=True)

    async def finish(self, feedback: WorkoutFeedback | None = None) -> Optional[Workout]:
        """Commit the draft as a completed workout and end the session.

        On a storage failure :class:`CommitError` is raised and the session,
        draft and snapshot stay as they were. While the commit is in flight
        every other operation, including a second ``finish`` or ``cancel``,
        is rejected.
        """
        if not self._begin_ending("finish"):
            return None
        draft = self._draft
        try:
            end = self.clock()
            completed = draft.model_copy(
                update={
                    "completed": True,
                    "duration": elapsed_minutes(draft.date, end),
                    "feedback": feedback if feedback is not None else draft.feedback,
                    "updated_at": end,
                }
            )
            if completed.mesocycle_id is None:
                completed = await self._attach_active_mesocycle(completed)
            if isinstance(completed.identity, PersistedIdentity):
                workout_id = completed.identity.id
                await self.workouts.update(workout_id, completed)
            else:
                workout_id = await self.workouts.insert(completed)
        except Exception as e:
            self._abort_ending()
            logger.error(f"Failed to save finished workout: {e!r}")
            raise CommitError("could not save the finished workout") from e

        task = self._release()
        if task is not None:
            await asyncio.to_thread(task.stop)
        try:
            self.drafts.clear()
        except Exception as e:
            logger.error(f"Workout {workout_id} saved but draft snapshot not cleared: {e!r}")
        committed = completed.model_copy(update={"identity": PersistedIdentity(id=workout_id)})
        logger.info(f"Workout {workout_id} saved ({committed.duration} min)")

        if committed.mesocycle_id is not None:
            try:
                await self.planner.update_progress(committed.mesocycle_id)
            except Exception as e:
                logger.warning(f"Could not update mesocycle progress: {e!r}")
        return committed

    async def _attach_active_mesocycle(self, workout: Workout) -> Workout:
        mesocycle = await self.mesocycles.fetch_active()
        if mesocycle is None:
            return workout
        week = calculate_mesocycle_week(mesocycle, workout.date) or mesocycle.current_week
        return workout.model_copy(update={"mesocycle_id": mesocycle.id, "week_number": week})

    def cancel(self) -> None:
        """Discard the draft. The session stays active if the snapshot cannot be cleared."""
        if not self._begin_ending("cancel"):
            return
        try:
            self.drafts.clear()
        except Exception:
            self._abort_ending()
            raise
        self._deactivate()
        logger.info("Workout cancelled")

    def close(self) -> None:
        """Stop autosaving, writing one last snapshot if a session is active.

        The draft is kept so the next manager recovers it.
        """
        task, self._autosave = self._autosave, None
        if task is not None:
            task.stop()
            task.tick()

    # -- draft mutations ---------------------------------------------------

    async def add_exercise(self, exercise_id: int) -> Optional[WorkoutExercise]:
        """Append ``exercise_id`` with one set seeded from its last performance.

        Duplicate ids are not rejected here.
        """
        if not self._require_active("add_exercise"):
            return None
        generation = self._generation
        if not await self.exercises.exists(exercise_id):
            raise LookupFailedError(f"exercise {exercise_id} not found")
        previous = await self.workouts.previous_performance(exercise_id)
        entry = WorkoutExercise(
            exercise_id=exercise_id,
            sets=[
                create_empty_set(
                    exercise_id,
                    1,
                    previous.last_set if previous else None,
                    self.settings.default_target_reps,
                )
            ],
        )
        with self._lock:
            if not self._require_active("add_exercise", generation):
                return None
            self._replace_draft(exercises=[*self._draft.exercises, entry])
        return entry.model_copy(deep=True)

    def remove_exercise(self, exercise_id: int) -> None:
        with self._lock:
            if not self._require_active("remove_exercise"):
                return
            remaining = [e for e in self._draft.exercises if e.exercise_id != exercise_id]
            if len(remaining) == len(self._draft.exercises):
                return
            self._replace_draft(exercises=remaining)
            self.current_exercise_index = min(
                self.current_exercise_index, max(0, len(remaining) - 1)
            )

    def add_set(self, exercise_id: int) -> Optional[WorkoutSet]:
        """Append a set copying weight and reps forward from the last one."""
        with self._lock:
            if not self._require_active("add_set"):
                return None
            index = self._exercise_index(exercise_id)
            entry = self._draft.exercises[index]
            new_set = create_empty_set(
                exercise_id,
                len(entry.sets) + 1,
                entry.sets[-1] if entry.sets else None,
                self.settings.default_target_reps,
            )
            self._replace_exercise(index, sets=[*entry.sets, new_set])
        return new_set.model_copy()

    def remove_set(self, exercise_id: int, set_id: str) -> None:
        with self._lock:
            if not self._require_active("remove_set"):
                return
            index = self._exercise_index(exercise_id)
            entry = self._draft.exercises[index]
            remaining = [s for s in entry.sets if s.id != set_id]
            if len(remaining) == len(entry.sets):
                return
            self._replace_exercise(index, sets=renumber_sets(remaining))

    def update_set(
        self, exercise_id: int, set_id: str, fields: dict[str, Any]
    ) -> Optional[WorkoutSet]:
        """Shallow-merge ``fields`` into one set. Identity fields cannot change."""
        with self._lock:
            if not self._require_active("update_set"):
                return None
            protected = PROTECTED_SET_FIELDS.intersection(fields)
            if protected:
                raise ValueError(f"cannot update {', '.join(sorted(protected))}")
            index = self._exercise_index(exercise_id)
            sets = list(self._draft.exercises[index].sets)
            for pos, current in enumerate(sets):
                if current.id == set_id:
                    break
            else:
                raise LookupFailedError(f"set {set_id} not found")
            updated = WorkoutSet.model_validate({**current.model_dump(), **fields})
            sets[pos] = updated
            self._replace_exercise(index, sets=sets)
        return updated.model_copy()

    def update_exercise_notes(self, exercise_id: int, notes: str | None) -> None:
        with self._lock:
            if not self._require_active("update_exercise_notes"):
                return
            self._replace_exercise(self._exercise_index(exercise_id), notes=notes)

    def update_workout_notes(self, notes: str | None) -> None:
        with self._lock:
            if not self._require_active("update_workout_notes"):
                return
            self._replace_draft(notes=notes)

    # -- scheduling --------------------------------------------------------

    async def recommend_next_split(
        self, mesocycle_id: int | None = None
    ) -> Optional[SplitDay]:
        """Recommended split day for ``mesocycle_id`` or the active mesocycle."""
        if mesocycle_id is None:
            _mesocycle, split_day = await self.planner.next_split_for_active()
            return split_day
        return await self.planner.next_split(mesocycle_id)
