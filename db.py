import sqlite3
import aiosqlite
import datetime
from contextlib import contextmanager, asynccontextmanager
from typing import List, Tuple, Optional

from loguru import logger
from pydantic import ValidationError

from models import (
    Exercise,
    Mesocycle,
    MuscleGroupFeedback,
    PersistedIdentity,
    PlannedExercise,
    PreviousPerformance,
    SplitDay,
    UserProfile,
    Workout,
    WorkoutExercise,
    WorkoutFeedback,
    WorkoutSet,
)


_TEXT_DEFAULTS = {
    "status": "'planned'",
    "training_split": "'custom'",
    "category": "'other'",
    "muscle_groups": "''",
    "experience_level": "'beginner'",
    "units": "'metric'",
    "theme": "'system'",
}


def _iso(value: datetime.date | datetime.datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "user_profiles": (
            """CREATE TABLE user_profiles (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    experience_level TEXT NOT NULL DEFAULT 'beginner',
                    units TEXT NOT NULL DEFAULT 'metric',
                    theme TEXT NOT NULL DEFAULT 'system',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );""",
            [
                "id",
                "name",
                "experience_level",
                "units",
                "theme",
                "created_at",
                "updated_at",
            ],
        ),
        "exercises": (
            """CREATE TABLE exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    category TEXT NOT NULL DEFAULT 'other',
                    muscle_groups TEXT NOT NULL DEFAULT '',
                    equipment TEXT,
                    notes TEXT,
                    is_custom INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL
                );""",
            [
                "id",
                "name",
                "category",
                "muscle_groups",
                "equipment",
                "notes",
                "is_custom",
                "created_at",
            ],
        ),
        "mesocycles": (
            """CREATE TABLE mesocycles (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    start_date TEXT NOT NULL,
                    end_date TEXT NOT NULL,
                    duration_weeks INTEGER NOT NULL DEFAULT 6,
                    current_week INTEGER NOT NULL DEFAULT 1,
                    deload_week INTEGER NOT NULL DEFAULT 6,
                    training_split TEXT NOT NULL DEFAULT 'custom',
                    status TEXT NOT NULL DEFAULT 'planned',
                    notes TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );""",
            [
                "id",
                "name",
                "start_date",
                "end_date",
                "duration_weeks",
                "current_week",
                "deload_week",
                "training_split",
                "status",
                "notes",
                "created_at",
                "updated_at",
            ],
        ),
        "split_days": (
            """CREATE TABLE split_days (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    mesocycle_id INTEGER NOT NULL,
                    name TEXT NOT NULL,
                    day_order INTEGER NOT NULL DEFAULT 1,
                    position INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY(mesocycle_id) REFERENCES mesocycles(id) ON DELETE CASCADE
                );""",
            ["id", "mesocycle_id", "name", "day_order", "position"],
        ),
        "split_day_exercises": (
            """CREATE TABLE split_day_exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    split_day_id INTEGER NOT NULL,
                    exercise_id INTEGER NOT NULL,
                    position INTEGER NOT NULL DEFAULT 0,
                    target_sets INTEGER NOT NULL,
                    target_reps_min INTEGER NOT NULL,
                    target_reps_max INTEGER NOT NULL,
                    rest_seconds INTEGER NOT NULL,
                    notes TEXT,
                    FOREIGN KEY(split_day_id) REFERENCES split_days(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "split_day_id",
                "exercise_id",
                "position",
                "target_sets",
                "target_reps_min",
                "target_reps_max",
                "rest_seconds",
                "notes",
            ],
        ),
        "workouts": (
            """CREATE TABLE workouts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    date TEXT NOT NULL,
                    mesocycle_id INTEGER,
                    week_number INTEGER,
                    split_day_id INTEGER,
                    notes TEXT,
                    completed INTEGER NOT NULL DEFAULT 0,
                    duration INTEGER,
                    has_feedback INTEGER NOT NULL DEFAULT 0,
                    overall_recovery TEXT,
                    feedback_notes TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );""",
            [
                "id",
                "date",
                "mesocycle_id",
                "week_number",
                "split_day_id",
                "notes",
                "completed",
                "duration",
                "has_feedback",
                "overall_recovery",
                "feedback_notes",
                "created_at",
                "updated_at",
            ],
        ),
        "workout_exercises": (
            """CREATE TABLE workout_exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    workout_id INTEGER NOT NULL,
                    exercise_id INTEGER NOT NULL,
                    position INTEGER NOT NULL DEFAULT 0,
                    notes TEXT,
                    FOREIGN KEY(workout_id) REFERENCES workouts(id) ON DELETE CASCADE
                );""",
            ["id", "workout_id", "exercise_id", "position", "notes"],
        ),
        "workout_sets": (
            """CREATE TABLE workout_sets (
                    id TEXT PRIMARY KEY,
                    workout_exercise_id INTEGER NOT NULL,
                    exercise_id INTEGER NOT NULL,
                    set_number INTEGER NOT NULL,
                    target_reps INTEGER NOT NULL,
                    actual_reps INTEGER,
                    weight REAL NOT NULL DEFAULT 0,
                    rir INTEGER,
                    completed INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY(workout_exercise_id) REFERENCES workout_exercises(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "workout_exercise_id",
                "exercise_id",
                "set_number",
                "target_reps",
                "actual_reps",
                "weight",
                "rir",
                "completed",
            ],
        ),
        "muscle_group_feedback": (
            """CREATE TABLE muscle_group_feedback (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    workout_id INTEGER NOT NULL,
                    muscle_group TEXT NOT NULL,
                    pump INTEGER,
                    soreness INTEGER,
                    FOREIGN KEY(workout_id) REFERENCES workouts(id) ON DELETE CASCADE
                );""",
            ["id", "workout_id", "muscle_group", "pump", "soreness"],
        ),
    }

    def __init__(self, db_path: str = "repstack.db") -> None:
        self._db_path = db_path
        self._ensure_schema()

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute("PRAGMA foreign_keys=off;")
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            cursor.execute("PRAGMA foreign_keys=on;")

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)

        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            missing = [c for c in columns if c not in existing_cols]
            if missing:
                def default_val(col: str) -> str:
                    if col in ("completed", "has_feedback", "is_custom", "position"):
                        return "0"
                    if col in ("current_week", "day_order"):
                        return "1"
                    if col in _TEXT_DEFAULTS:
                        return _TEXT_DEFAULTS[col]
                    if col in ("created_at", "updated_at"):
                        return f"'{datetime.datetime.now().isoformat()}'"
                    return "NULL"

                defaults = ", ".join(default_val(c) for c in missing)
                conn.execute(
                    f"INSERT INTO {table} ({cols}, {', '.join(missing)}) SELECT {cols}, {defaults} FROM {table}_old;"
                )
            else:
                conn.execute(
                    f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;"
                )
        conn.execute(f"DROP TABLE {table}_old;")


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()


class AsyncDatabase(Database):
    """Provides asynchronous connection management."""

    @asynccontextmanager
    async def _async_connection(self):
        conn = await aiosqlite.connect(self._db_path)
        try:
            yield conn
            await conn.commit()
        finally:
            await conn.close()


class AsyncBaseRepository(AsyncDatabase):
    """Asynchronous variant of BaseRepository using aiosqlite."""

    async def execute(self, query: str, params: Tuple = ()) -> int:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            await conn.commit()
            return cursor.lastrowid

    async def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return rows


class AsyncUserProfileRepository(AsyncBaseRepository):
    """Async repository for user profiles."""

    async def create(self, profile: UserProfile) -> int:
        return await self.execute(
            "INSERT INTO user_profiles (name, experience_level, units, theme, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?);",
            (
                profile.name,
                profile.experience_level,
                profile.units,
                profile.theme,
                _iso(profile.created_at),
                _iso(profile.updated_at),
            ),
        )

    async def fetch(self, profile_id: int) -> UserProfile:
        rows = await self.fetch_all(
            "SELECT id, name, experience_level, units, theme, created_at, updated_at FROM user_profiles WHERE id = ?;",
            (profile_id,),
        )
        if not rows:
            raise ValueError("user profile not found")
        pid, name, level, units, theme, created, updated = rows[0]
        return UserProfile(
            id=pid,
            name=name,
            experience_level=level,
            units=units,
            theme=theme,
            created_at=created,
            updated_at=updated,
        )


class AsyncExerciseRepository(AsyncBaseRepository):
    """Async repository for the exercise library."""

    _COLUMNS = "id, name, category, muscle_groups, equipment, notes, is_custom, created_at"

    @staticmethod
    def _from_row(row: Tuple) -> Exercise:
        eid, name, category, muscles, equipment, notes, is_custom, created = row
        return Exercise(
            id=eid,
            name=name,
            category=category,
            muscle_groups=[m for m in muscles.split("|") if m],
            equipment=equipment,
            notes=notes,
            is_custom=bool(is_custom),
            created_at=created,
        )

    async def create(self, exercise: Exercise) -> int:
        return await self.execute(
            "INSERT INTO exercises (name, category, muscle_groups, equipment, notes, is_custom, created_at) VALUES (?, ?, ?, ?, ?, ?, ?);",
            (
                exercise.name,
                exercise.category,
                "|".join(exercise.muscle_groups),
                exercise.equipment,
                exercise.notes,
                int(exercise.is_custom),
                _iso(exercise.created_at),
            ),
        )

    async def fetch(self, exercise_id: int) -> Exercise:
        rows = await self.fetch_all(
            f"SELECT {self._COLUMNS} FROM exercises WHERE id = ?;",
            (exercise_id,),
        )
        if not rows:
            raise ValueError("exercise not found")
        return self._from_row(rows[0])

    async def exists(self, exercise_id: int) -> bool:
        rows = await self.fetch_all(
            "SELECT 1 FROM exercises WHERE id = ?;", (exercise_id,)
        )
        return bool(rows)

    async def fetch_all_exercises(self) -> list[Exercise]:
        rows = await self.fetch_all(
            f"SELECT {self._COLUMNS} FROM exercises ORDER BY name;"
        )
        return [self._from_row(r) for r in rows]


class AsyncMesocycleRepository(AsyncBaseRepository):
    """Async repository for mesocycles and their split days."""

    _COLUMNS = (
        "id, name, start_date, end_date, duration_weeks, current_week, deload_week, "
        "training_split, status, notes, created_at, updated_at"
    )

    async def create(self, mesocycle: Mesocycle) -> int:
        async with self._async_connection() as conn:
            cursor = await conn.execute(
                "INSERT INTO mesocycles (name, start_date, end_date, duration_weeks, current_week, deload_week, training_split, status, notes, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);",
                (
                    mesocycle.name,
                    _iso(mesocycle.start_date),
                    _iso(mesocycle.end_date),
                    mesocycle.duration_weeks,
                    mesocycle.current_week,
                    mesocycle.deload_week,
                    mesocycle.training_split,
                    mesocycle.status,
                    mesocycle.notes,
                    _iso(mesocycle.created_at),
                    _iso(mesocycle.updated_at),
                ),
            )
            mesocycle_id = cursor.lastrowid
            for pos, split_day in enumerate(mesocycle.split_days):
                cursor = await conn.execute(
                    "INSERT INTO split_days (mesocycle_id, name, day_order, position) VALUES (?, ?, ?, ?);",
                    (mesocycle_id, split_day.name, split_day.day_order, pos),
                )
                split_day_id = cursor.lastrowid
                await conn.executemany(
                    "INSERT INTO split_day_exercises (split_day_id, exercise_id, position, target_sets, target_reps_min, target_reps_max, rest_seconds, notes) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?);",
                    [
                        (
                            split_day_id,
                            planned.exercise_id,
                            planned.order,
                            planned.target_sets,
                            planned.target_reps_min,
                            planned.target_reps_max,
                            planned.rest_seconds,
                            planned.notes,
                        )
                        for planned in split_day.exercises
                    ],
                )
        return mesocycle_id

    async def _load(self, conn: aiosqlite.Connection, row: Tuple) -> Mesocycle:
        (
            mid,
            name,
            start_date,
            end_date,
            duration_weeks,
            current_week,
            deload_week,
            training_split,
            status,
            notes,
            created,
            updated,
        ) = row
        cursor = await conn.execute(
            "SELECT id, name, day_order FROM split_days WHERE mesocycle_id = ? ORDER BY position, id;",
            (mid,),
        )
        split_days: list[SplitDay] = []
        for sid, split_name, day_order in await cursor.fetchall():
            ex_cursor = await conn.execute(
                "SELECT exercise_id, position, target_sets, target_reps_min, target_reps_max, rest_seconds, notes "
                "FROM split_day_exercises WHERE split_day_id = ? ORDER BY position, id;",
                (sid,),
            )
            planned = [
                PlannedExercise(
                    exercise_id=ex_id,
                    order=pos,
                    target_sets=t_sets,
                    target_reps_min=r_min,
                    target_reps_max=r_max,
                    rest_seconds=rest,
                    notes=ex_notes,
                )
                for ex_id, pos, t_sets, r_min, r_max, rest, ex_notes in await ex_cursor.fetchall()
            ]
            split_days.append(
                SplitDay(id=sid, name=split_name, day_order=day_order, exercises=planned)
            )
        return Mesocycle(
            id=mid,
            name=name,
            start_date=start_date,
            end_date=end_date,
            duration_weeks=duration_weeks,
            current_week=current_week,
            deload_week=deload_week,
            training_split=training_split,
            split_days=split_days,
            status=status,
            notes=notes,
            created_at=created,
            updated_at=updated,
        )

    async def fetch(self, mesocycle_id: int) -> Mesocycle:
        async with self._async_connection() as conn:
            cursor = await conn.execute(
                f"SELECT {self._COLUMNS} FROM mesocycles WHERE id = ?;",
                (mesocycle_id,),
            )
            row = await cursor.fetchone()
            if row is None:
                raise ValueError("mesocycle not found")
            return await self._load(conn, row)

    async def fetch_active(self) -> Optional[Mesocycle]:
        async with self._async_connection() as conn:
            cursor = await conn.execute(
                f"SELECT {self._COLUMNS} FROM mesocycles WHERE status = 'active' ORDER BY id LIMIT 1;"
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            return await self._load(conn, row)

    async def fetch_all_mesocycles(self) -> list[Mesocycle]:
        async with self._async_connection() as conn:
            cursor = await conn.execute(
                f"SELECT {self._COLUMNS} FROM mesocycles ORDER BY start_date DESC, id DESC;"
            )
            return [await self._load(conn, row) for row in await cursor.fetchall()]

    async def set_current_week(self, mesocycle_id: int, week: int) -> None:
        await self.execute(
            "UPDATE mesocycles SET current_week = ?, updated_at = ? WHERE id = ?;",
            (week, _iso(datetime.datetime.now()), mesocycle_id),
        )

    async def set_status(self, mesocycle_id: int, status: str) -> None:
        if status not in {"planned", "active", "completed", "abandoned"}:
            raise ValueError(f"invalid mesocycle status: {status}")
        await self.execute(
            "UPDATE mesocycles SET status = ?, updated_at = ? WHERE id = ?;",
            (status, _iso(datetime.datetime.now()), mesocycle_id),
        )


class AsyncWorkoutRepository(AsyncBaseRepository):
    """Async repository for committed workouts."""

    _COLUMNS = (
        "id, date, mesocycle_id, week_number, split_day_id, notes, completed, duration, "
        "has_feedback, overall_recovery, feedback_notes, created_at, updated_at"
    )

    @staticmethod
    def _row_values(workout: Workout) -> tuple:
        feedback = workout.feedback
        return (
            _iso(workout.date),
            workout.mesocycle_id,
            workout.week_number,
            workout.split_day_id,
            workout.notes,
            int(workout.completed),
            workout.duration,
            int(feedback is not None),
            feedback.overall_recovery if feedback else None,
            feedback.notes if feedback else None,
            _iso(workout.created_at),
            _iso(workout.updated_at),
        )

    async def _write_children(
        self, conn: aiosqlite.Connection, workout_id: int, workout: Workout
    ) -> None:
        for pos, entry in enumerate(workout.exercises):
            cursor = await conn.execute(
                "INSERT INTO workout_exercises (workout_id, exercise_id, position, notes) VALUES (?, ?, ?, ?);",
                (workout_id, entry.exercise_id, pos, entry.notes),
            )
            entry_id = cursor.lastrowid
            await conn.executemany(
                "INSERT INTO workout_sets (id, workout_exercise_id, exercise_id, set_number, target_reps, actual_reps, weight, rir, completed) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);",
                [
                    (
                        s.id,
                        entry_id,
                        s.exercise_id,
                        s.set_number,
                        s.target_reps,
                        s.actual_reps,
                        s.weight,
                        s.rir,
                        int(s.completed),
                    )
                    for s in entry.sets
                ],
            )
        if workout.feedback is not None:
            await conn.executemany(
                "INSERT INTO muscle_group_feedback (workout_id, muscle_group, pump, soreness) VALUES (?, ?, ?, ?);",
                [
                    (workout_id, fb.muscle_group, fb.pump, fb.soreness)
                    for fb in workout.feedback.muscle_group_feedback
                ],
            )

    async def _delete_children(self, conn: aiosqlite.Connection, workout_id: int) -> None:
        await conn.execute(
            "DELETE FROM workout_sets WHERE workout_exercise_id IN "
            "(SELECT id FROM workout_exercises WHERE workout_id = ?);",
            (workout_id,),
        )
        await conn.execute(
            "DELETE FROM workout_exercises WHERE workout_id = ?;", (workout_id,)
        )
        await conn.execute(
            "DELETE FROM muscle_group_feedback WHERE workout_id = ?;", (workout_id,)
        )

    async def insert(self, workout: Workout) -> int:
        async with self._async_connection() as conn:
            cursor = await conn.execute(
                "INSERT INTO workouts (date, mesocycle_id, week_number, split_day_id, notes, completed, duration, has_feedback, overall_recovery, feedback_notes, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);",
                self._row_values(workout),
            )
            workout_id = cursor.lastrowid
            await self._write_children(conn, workout_id, workout)
        return workout_id

    async def update(self, workout_id: int, workout: Workout) -> None:
        async with self._async_connection() as conn:
            cursor = await conn.execute(
                "SELECT id FROM workouts WHERE id = ?;", (workout_id,)
            )
            if await cursor.fetchone() is None:
                raise ValueError("workout not found")
            await conn.execute(
                "UPDATE workouts SET date = ?, mesocycle_id = ?, week_number = ?, split_day_id = ?, notes = ?, completed = ?, duration = ?, "
                "has_feedback = ?, overall_recovery = ?, feedback_notes = ?, created_at = ?, updated_at = ? WHERE id = ?;",
                self._row_values(workout) + (workout_id,),
            )
            await self._delete_children(conn, workout_id)
            await self._write_children(conn, workout_id, workout)

    async def _load(self, conn: aiosqlite.Connection, row: Tuple) -> Workout:
        (
            wid,
            date,
            mesocycle_id,
            week_number,
            split_day_id,
            notes,
            completed,
            duration,
            has_feedback,
            overall_recovery,
            feedback_notes,
            created,
            updated,
        ) = row
        cursor = await conn.execute(
            "SELECT id, exercise_id, notes FROM workout_exercises WHERE workout_id = ? ORDER BY position, id;",
            (wid,),
        )
        exercises: list[WorkoutExercise] = []
        for entry_id, exercise_id, entry_notes in await cursor.fetchall():
            exercises.append(
                WorkoutExercise(
                    exercise_id=exercise_id,
                    sets=await self._load_sets(conn, entry_id),
                    notes=entry_notes,
                )
            )
        feedback = None
        if has_feedback:
            cursor = await conn.execute(
                "SELECT muscle_group, pump, soreness FROM muscle_group_feedback WHERE workout_id = ? ORDER BY id;",
                (wid,),
            )
            feedback = WorkoutFeedback(
                overall_recovery=overall_recovery,
                muscle_group_feedback=[
                    MuscleGroupFeedback(muscle_group=mg, pump=pump, soreness=sore)
                    for mg, pump, sore in await cursor.fetchall()
                ],
                notes=feedback_notes,
            )
        return Workout(
            identity=PersistedIdentity(id=wid),
            date=date,
            exercises=exercises,
            notes=notes,
            completed=bool(completed),
            duration=duration,
            mesocycle_id=mesocycle_id,
            week_number=week_number,
            split_day_id=split_day_id,
            feedback=feedback,
            created_at=created,
            updated_at=updated,
        )

    @staticmethod
    async def _load_sets(conn: aiosqlite.Connection, entry_id: int) -> list[WorkoutSet]:
        cursor = await conn.execute(
            "SELECT id, exercise_id, set_number, target_reps, actual_reps, weight, rir, completed "
            "FROM workout_sets WHERE workout_exercise_id = ? ORDER BY set_number;",
            (entry_id,),
        )
        return [
            WorkoutSet(
                id=sid,
                exercise_id=ex_id,
                set_number=number,
                target_reps=target,
                actual_reps=actual,
                weight=weight,
                rir=rir,
                completed=bool(done),
            )
            for sid, ex_id, number, target, actual, weight, rir, done in await cursor.fetchall()
        ]

    async def fetch(self, workout_id: int) -> Workout:
        async with self._async_connection() as conn:
            cursor = await conn.execute(
                f"SELECT {self._COLUMNS} FROM workouts WHERE id = ?;", (workout_id,)
            )
            row = await cursor.fetchone()
            if row is None:
                raise ValueError("workout not found")
            return await self._load(conn, row)

    async def fetch_completed(
        self,
        mesocycle_id: Optional[int] = None,
        week_number: Optional[int] = None,
        limit: int | None = None,
    ) -> list[Workout]:
        """Return completed workouts, newest first."""
        query = f"SELECT {self._COLUMNS} FROM workouts WHERE completed = 1"
        params: list[int] = []
        if mesocycle_id is not None:
            query += " AND mesocycle_id = ?"
            params.append(mesocycle_id)
        if week_number is not None:
            query += " AND week_number = ?"
            params.append(week_number)
        query += " ORDER BY date DESC, id DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        query += ";"
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, tuple(params))
            return [await self._load(conn, row) for row in await cursor.fetchall()]

    async def count(self) -> int:
        rows = await self.fetch_all("SELECT COUNT(*) FROM workouts;")
        return int(rows[0][0])

    async def previous_performance(
        self, exercise_id: int
    ) -> Optional[PreviousPerformance]:
        """Sets logged for ``exercise_id`` in the most recent completed workout."""
        async with self._async_connection() as conn:
            cursor = await conn.execute(
                "SELECT w.date, we.id FROM workouts w "
                "JOIN workout_exercises we ON we.workout_id = w.id "
                "WHERE w.completed = 1 AND we.exercise_id = ? "
                "ORDER BY w.date DESC, w.id DESC, we.position LIMIT 1;",
                (exercise_id,),
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            date, entry_id = row
            sets = await self._load_sets(conn, entry_id)
        return PreviousPerformance(exercise_id=exercise_id, date=date, sets=sets)


class DraftRepository(BaseRepository):
    """Single-slot store holding the snapshot of the in-progress workout.

    Lives in its own database file so it is independent of committed
    history. Every save overwrites the one row.
    """

    _TABLE_DEFINITIONS = {
        "active_workout": (
            """CREATE TABLE active_workout (
                    slot INTEGER PRIMARY KEY CHECK (slot = 1),
                    payload TEXT NOT NULL,
                    saved_at TEXT NOT NULL
                );""",
            ["slot", "payload", "saved_at"],
        ),
    }

    def __init__(self, db_path: str = "repstack_draft.db") -> None:
        super().__init__(db_path)

    def save(self, workout: Workout) -> None:
        self.execute(
            "INSERT INTO active_workout (slot, payload, saved_at) VALUES (1, ?, ?) "
            "ON CONFLICT(slot) DO UPDATE SET payload=excluded.payload, saved_at=excluded.saved_at;",
            (workout.model_dump_json(), datetime.datetime.now().isoformat()),
        )

    def load(self) -> Optional[Workout]:
        rows = self.fetch_all("SELECT payload FROM active_workout WHERE slot = 1;")
        if not rows:
            return None
        try:
            return Workout.model_validate_json(rows[0][0])
        except ValidationError as e:
            logger.error(f"Discarding unreadable workout draft: {e}")
            return None

    def saved_at(self) -> Optional[str]:
        rows = self.fetch_all("SELECT saved_at FROM active_workout WHERE slot = 1;")
        return rows[0][0] if rows else None

    def clear(self) -> None:
        self.execute("DELETE FROM active_workout;")
