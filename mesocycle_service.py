from __future__ import annotations

import datetime
from typing import Optional

from loguru import logger

from db import AsyncMesocycleRepository, AsyncWorkoutRepository
from errors import LookupFailedError
from models import Mesocycle, PlannedExercise, SplitCompletion, SplitDay
from split_scheduler import (
    calculate_mesocycle_week,
    generate_default_split_days,
    recommend_next_split,
    split_completion_status,
)


class MesocycleService:
    """Async queries and updates that feed the split scheduler."""

    def __init__(
        self,
        mesocycle_repo: AsyncMesocycleRepository,
        workout_repo: AsyncWorkoutRepository,
    ) -> None:
        self.mesocycles = mesocycle_repo
        self.workouts = workout_repo

    async def fetch(self, mesocycle_id: int) -> Mesocycle:
        try:
            return await self.mesocycles.fetch(mesocycle_id)
        except ValueError as e:
            raise LookupFailedError(f"mesocycle {mesocycle_id} not found") from e

    async def next_split(self, mesocycle_id: int) -> Optional[SplitDay]:
        mesocycle = await self.fetch(mesocycle_id)
        completed = await self.workouts.fetch_completed(mesocycle_id=mesocycle_id)
        return recommend_next_split(mesocycle, completed)

    async def next_split_for_active(self) -> tuple[Optional[Mesocycle], Optional[SplitDay]]:
        mesocycle = await self.mesocycles.fetch_active()
        if mesocycle is None:
            return None, None
        completed = await self.workouts.fetch_completed(mesocycle_id=mesocycle.id)
        return mesocycle, recommend_next_split(mesocycle, completed)

    async def completion_status(self, mesocycle_id: int) -> list[SplitCompletion]:
        mesocycle = await self.fetch(mesocycle_id)
        completed = await self.workouts.fetch_completed(mesocycle_id=mesocycle_id)
        return split_completion_status(mesocycle, completed)

    async def update_progress(self, mesocycle_id: int) -> Optional[int]:
        """Move ``current_week`` to the week of the latest completed workout.

        Returns the new week when it changed.
        """
        mesocycle = await self.fetch(mesocycle_id)
        if mesocycle.status != "active":
            return None
        latest = await self.workouts.fetch_completed(mesocycle_id=mesocycle_id, limit=1)
        if not latest:
            return None
        week = calculate_mesocycle_week(mesocycle, latest[0].date)
        if week is None or week == mesocycle.current_week:
            return None
        await self.mesocycles.set_current_week(mesocycle_id, week)
        logger.info(f"Mesocycle {mesocycle_id} advanced to week {week}")
        return week

    async def check_completion(
        self, mesocycle_id: int, today: datetime.date | None = None
    ) -> bool:
        """Mark an active mesocycle completed once its end date has passed."""
        mesocycle = await self.fetch(mesocycle_id)
        if mesocycle.status != "active":
            return False
        today = today or datetime.date.today()
        if today <= mesocycle.end_date:
            return False
        await self.mesocycles.set_status(mesocycle_id, "completed")
        logger.info(f"Mesocycle {mesocycle_id} completed")
        return True

    async def create_from_split_type(
        self,
        name: str,
        start_date: datetime.date,
        training_split: str,
        duration_weeks: int = 6,
        exercises_by_day: dict[str, list[int]] | None = None,
        status: str = "planned",
    ) -> int:
        """Create a mesocycle with the default split days for ``training_split``.

        ``exercises_by_day`` maps split day names to exercise ids planned
        for that day.
        """
        split_days = generate_default_split_days(training_split)
        for split_day in split_days:
            ids = (exercises_by_day or {}).get(split_day.name, [])
            split_day.exercises = [
                PlannedExercise(exercise_id=ex_id, order=pos)
                for pos, ex_id in enumerate(ids)
            ]
        mesocycle = Mesocycle(
            name=name,
            start_date=start_date,
            end_date=start_date + datetime.timedelta(weeks=duration_weeks, days=-1),
            duration_weeks=duration_weeks,
            deload_week=duration_weeks,
            training_split=training_split,
            split_days=split_days,
            status=status,
        )
        return await self.mesocycles.create(mesocycle)
