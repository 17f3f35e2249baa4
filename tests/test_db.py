import os
import sys
import sqlite3
import datetime

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import (
    AsyncExerciseRepository,
    AsyncMesocycleRepository,
    AsyncUserProfileRepository,
    AsyncWorkoutRepository,
    Database,
    DraftRepository,
)
from models import (
    Exercise,
    Mesocycle,
    MuscleGroupFeedback,
    PersistedIdentity,
    PlannedExercise,
    SplitDay,
    UserProfile,
    Workout,
    WorkoutExercise,
    WorkoutFeedback,
    WorkoutSet,
)


def _set(exercise_id, number, reps=8, weight=50.0, actual=None):
    return WorkoutSet(
        exercise_id=exercise_id,
        set_number=number,
        target_reps=reps,
        actual_reps=actual,
        weight=weight,
    )


def test_draft_repository_roundtrip(tmp_path):
    repo = DraftRepository(str(tmp_path / "draft.db"))
    assert repo.load() is None
    assert repo.saved_at() is None

    workout = Workout(
        exercises=[WorkoutExercise(exercise_id=1, sets=[_set(1, 1)])],
        notes="first",
    )
    repo.save(workout)
    repo.save(workout.model_copy(update={"notes": "second"}))
    loaded = repo.load()
    assert loaded.notes == "second"
    assert loaded.identity == workout.identity
    assert loaded.exercises == workout.exercises
    assert repo.saved_at() is not None
    assert len(repo.fetch_all("SELECT slot FROM active_workout;")) == 1

    repo.clear()
    assert repo.load() is None
    repo.clear()


def test_draft_repository_keeps_persisted_identity(tmp_path):
    repo = DraftRepository(str(tmp_path / "draft.db"))
    repo.save(Workout(identity=PersistedIdentity(id=5)))
    loaded = repo.load()
    assert not loaded.is_draft
    assert loaded.id == 5


def test_schema_migration_adds_columns(tmp_path):
    db_path = str(tmp_path / "old.db")
    conn = sqlite3.connect(db_path)
    conn.execute(
        "CREATE TABLE exercises (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT NOT NULL);"
    )
    conn.execute("INSERT INTO exercises (name) VALUES ('Squat');")
    conn.commit()
    conn.close()

    Database(db_path)
    conn = sqlite3.connect(db_path)
    cols = [row[1] for row in conn.execute("PRAGMA table_info(exercises);")]
    rows = conn.execute("SELECT name, is_custom FROM exercises;").fetchall()
    conn.close()
    assert "muscle_groups" in cols
    assert rows == [("Squat", 0)]


@pytest.mark.asyncio
async def test_user_and_exercise_repositories(tmp_path):
    db_path = str(tmp_path / "repstack.db")
    users = AsyncUserProfileRepository(db_path)
    uid = await users.create(UserProfile(name="Sam", experience_level="advanced"))
    profile = await users.fetch(uid)
    assert profile.name == "Sam"
    assert profile.experience_level == "advanced"
    with pytest.raises(ValueError):
        await users.fetch(uid + 1)

    exercises = AsyncExerciseRepository(db_path)
    eid = await exercises.create(
        Exercise(name="Incline Press", category="dumbbell", muscle_groups=["chest", "shoulders"])
    )
    ex = await exercises.fetch(eid)
    assert ex.muscle_groups == ["chest", "shoulders"]
    assert await exercises.exists(eid)
    assert not await exercises.exists(eid + 100)
    assert [e.name for e in await exercises.fetch_all_exercises()] == ["Incline Press"]
    with pytest.raises(ValueError):
        await exercises.fetch(eid + 100)


@pytest.mark.asyncio
async def test_mesocycle_repository(tmp_path):
    repo = AsyncMesocycleRepository(str(tmp_path / "repstack.db"))
    start = datetime.date(2024, 5, 6)
    mid = await repo.create(
        Mesocycle(
            name="Spring",
            start_date=start,
            end_date=start + datetime.timedelta(days=34),
            duration_weeks=5,
            deload_week=5,
            training_split="upper_lower",
            split_days=[
                SplitDay(
                    name="Upper",
                    exercises=[
                        PlannedExercise(exercise_id=3, order=0, target_sets=4),
                        PlannedExercise(exercise_id=1, order=1, notes="paused"),
                    ],
                ),
                SplitDay(name="Lower", day_order=2),
            ],
        )
    )
    meso = await repo.fetch(mid)
    assert meso.start_date == start
    assert [d.name for d in meso.split_days] == ["Upper", "Lower"]
    assert all(d.id is not None for d in meso.split_days)
    assert [p.exercise_id for p in meso.split_days[0].exercises] == [3, 1]
    assert meso.split_days[0].exercises[1].notes == "paused"
    assert meso.split_days[0].exercises[0].target_sets == 4

    assert await repo.fetch_active() is None
    await repo.set_status(mid, "active")
    await repo.set_current_week(mid, 3)
    active = await repo.fetch_active()
    assert active.id == mid
    assert active.current_week == 3
    with pytest.raises(ValueError):
        await repo.set_status(mid, "paused")
    with pytest.raises(ValueError):
        await repo.fetch(mid + 1)


@pytest.mark.asyncio
async def test_workout_repository(tmp_path):
    repo = AsyncWorkoutRepository(str(tmp_path / "repstack.db"))
    older = Workout(
        date=datetime.datetime(2024, 5, 1, 18),
        completed=True,
        duration=45,
        exercises=[WorkoutExercise(exercise_id=1, sets=[_set(1, 1, actual=9), _set(1, 2, actual=7, weight=55)])],
    )
    newer = Workout(
        date=datetime.datetime(2024, 5, 3, 18),
        completed=True,
        duration=50,
        mesocycle_id=4,
        week_number=1,
        split_day_id=2,
        exercises=[
            WorkoutExercise(exercise_id=2, sets=[_set(2, 1)], notes="new"),
            WorkoutExercise(exercise_id=1, sets=[_set(1, 1, actual=10, weight=60)]),
        ],
        feedback=WorkoutFeedback(
            overall_recovery="well_recovered",
            muscle_group_feedback=[MuscleGroupFeedback(muscle_group="chest", pump=4)],
        ),
    )
    first = await repo.insert(older)
    second = await repo.insert(newer)
    assert await repo.count() == 2

    loaded = await repo.fetch(second)
    assert loaded.id == second
    assert [e.exercise_id for e in loaded.exercises] == [2, 1]
    assert loaded.exercises[0].notes == "new"
    assert loaded.feedback.muscle_group_feedback[0].pump == 4
    assert loaded.split_day_id == 2

    assert [w.id for w in await repo.fetch_completed()] == [second, first]
    assert [w.id for w in await repo.fetch_completed(mesocycle_id=4, week_number=1)] == [second]
    assert [w.id for w in await repo.fetch_completed(limit=1)] == [second]

    prev = await repo.previous_performance(1)
    assert prev.last_set.actual_reps == 10
    assert prev.last_set.weight == 60
    assert await repo.previous_performance(99) is None

    await repo.update(first, older.model_copy(update={"notes": "edited", "exercises": []}))
    edited = await repo.fetch(first)
    assert edited.notes == "edited"
    assert edited.exercises == []
    with pytest.raises(ValueError):
        await repo.update(999, older)
