import argparse
import asyncio
import datetime
from typing import Optional

from db import (
    AsyncExerciseRepository,
    AsyncMesocycleRepository,
    AsyncWorkoutRepository,
    DraftRepository,
)
from log_config import configure_logging
from mesocycle_service import MesocycleService
from models import Exercise
from split_scheduler import describe_week

DEMO_EXERCISES = {
    "Push": [
        ("Bench Press", "barbell", ["chest", "triceps", "shoulders"]),
        ("Overhead Press", "barbell", ["shoulders", "triceps"]),
    ],
    "Pull": [
        ("Barbell Row", "barbell", ["back", "biceps"]),
        ("Lat Pulldown", "cable", ["back", "biceps"]),
    ],
    "Legs": [
        ("Back Squat", "barbell", ["quads", "glutes"]),
        ("Romanian Deadlift", "barbell", ["hamstrings", "glutes"]),
    ],
}


async def next_split(db_path: str, mesocycle_id: Optional[int] = None) -> None:
    """Print the split day that should be trained next."""
    planner = MesocycleService(
        AsyncMesocycleRepository(db_path), AsyncWorkoutRepository(db_path)
    )
    if mesocycle_id is None:
        mesocycle, split_day = await planner.next_split_for_active()
        if mesocycle is None:
            print("No active mesocycle")
            return
    else:
        mesocycle = await planner.fetch(mesocycle_id)
        split_day = await planner.next_split(mesocycle_id)
    label = describe_week(mesocycle, mesocycle.current_week)
    if split_day is None:
        print(f"{mesocycle.name} ({label}): no split days configured")
    else:
        print(f"{mesocycle.name} ({label}): next up is {split_day.name}")


def show_draft(draft_path: str, clear: bool = False) -> None:
    drafts = DraftRepository(draft_path)
    if clear:
        drafts.clear()
        print("Draft cleared")
        return
    workout = drafts.load()
    if workout is None:
        print("No workout in progress")
        return
    sets = sum(len(entry.sets) for entry in workout.exercises)
    print(
        f"Workout started {workout.date.isoformat(timespec='minutes')}: "
        f"{len(workout.exercises)} exercises, {sets} sets "
        f"(saved {drafts.saved_at()})"
    )


async def demo_data(db_path: str) -> None:
    """Populate the database with a push/pull/legs mesocycle if empty."""
    mesocycles = AsyncMesocycleRepository(db_path)
    if await mesocycles.fetch_all_mesocycles():
        print("Database already contains mesocycles")
        return
    exercises = AsyncExerciseRepository(db_path)
    by_day: dict[str, list[int]] = {}
    for day, entries in DEMO_EXERCISES.items():
        for name, category, muscles in entries:
            eid = await exercises.create(
                Exercise(name=name, category=category, muscle_groups=muscles)
            )
            by_day.setdefault(day, []).append(eid)
    planner = MesocycleService(mesocycles, AsyncWorkoutRepository(db_path))
    mid = await planner.create_from_split_type(
        "Demo PPL",
        datetime.date.today(),
        "push_pull_legs",
        exercises_by_day=by_day,
        status="active",
    )
    print(f"Demo mesocycle {mid} inserted")


def main() -> None:
    parser = argparse.ArgumentParser(description="Utility commands")
    parser.add_argument("--log-level", default="WARNING")
    sub = parser.add_subparsers(dest="cmd", required=True)

    nxt = sub.add_parser("next-split")
    nxt.add_argument("--db", default="repstack.db")
    nxt.add_argument("--mesocycle", type=int)

    draft = sub.add_parser("draft")
    draft.add_argument("--draft", default="repstack_draft.db")
    draft.add_argument("--clear", action="store_true")

    demo = sub.add_parser("demo")
    demo.add_argument("--db", default="repstack.db")

    args = parser.parse_args()
    configure_logging(args.log_level)

    if args.cmd == "next-split":
        asyncio.run(next_split(args.db, args.mesocycle))
    elif args.cmd == "draft":
        show_draft(args.draft, args.clear)
    elif args.cmd == "demo":
        asyncio.run(demo_data(args.db))


if __name__ == "__main__":
    main()
