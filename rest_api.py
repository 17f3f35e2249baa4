import contextlib
import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, FastAPI, HTTPException
from loguru import logger

from config import APP_VERSION, YamlConfig
from db import (
    AsyncExerciseRepository,
    AsyncMesocycleRepository,
    AsyncUserProfileRepository,
    AsyncWorkoutRepository,
    DraftRepository,
)
from errors import CommitError, InvalidTransitionError, LookupFailedError
from log_config import configure_logging
from mesocycle_service import MesocycleService
from models import Exercise, Mesocycle, UserProfile, WorkoutFeedback
from session_manager import WorkoutSessionManager
from split_scheduler import calculate_mesocycle_week, describe_week


@contextlib.contextmanager
def _http_errors():
    """Translate session and repository errors into HTTP responses."""
    try:
        yield
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except LookupFailedError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except CommitError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


class RepstackAPI:
    """Provides REST endpoints around the workout session manager."""

    def __init__(
        self,
        db_path: str | None = None,
        draft_path: str | None = None,
        yaml_path: str = "settings.yaml",
    ) -> None:
        self.config = YamlConfig(yaml_path)
        self.settings = self.config.settings()
        if db_path is not None:
            self.settings.db_path = db_path
        if draft_path is not None:
            self.settings.draft_path = draft_path
        self.users = AsyncUserProfileRepository(self.settings.db_path)
        self.exercises = AsyncExerciseRepository(self.settings.db_path)
        self.mesocycles = AsyncMesocycleRepository(self.settings.db_path)
        self.workouts = AsyncWorkoutRepository(self.settings.db_path)
        self.drafts = DraftRepository(self.settings.draft_path)
        self.planner = MesocycleService(self.mesocycles, self.workouts)
        self.session = WorkoutSessionManager(
            self.workouts,
            self.exercises,
            self.mesocycles,
            self.drafts,
            self.settings,
            mesocycle_service=self.planner,
        )
        self.app = FastAPI(
            title="Repstack API",
            description="REST API for logging hypertrophy training sessions",
            version=APP_VERSION,
        )
        self._setup_routes()

    def close(self) -> None:
        self.session.close()

    def _setup_routes(self) -> None:
        session_router = APIRouter(prefix="/session", tags=["Session"])
        mesocycle_router = APIRouter(prefix="/mesocycles", tags=["Mesocycles"])

        @self.app.get("/health")
        async def health():
            try:
                await self.workouts.count()
                return {"status": "ok"}
            except Exception as e:  # pragma: no cover - connectivity failure
                raise HTTPException(status_code=500, detail=str(e))

        @session_router.get("")
        def get_session():
            return {
                "state": self.session.state.value,
                "workout": self.session.workout,
                "current_exercise_index": self.session.current_exercise_index,
            }

        @session_router.post("/start")
        def start_session():
            with _http_errors():
                return self.session.start()

        @session_router.post("/start_from_split")
        async def start_from_split(mesocycle_id: int, split_day_id: int):
            with _http_errors():
                return await self.session.start_from_split(mesocycle_id, split_day_id)

        @session_router.post("/exercises")
        async def add_exercise(exercise_id: int):
            with _http_errors():
                return await self.session.add_exercise(exercise_id)

        @session_router.delete("/exercises/{exercise_id}")
        def remove_exercise(exercise_id: int):
            with _http_errors():
                self.session.remove_exercise(exercise_id)
            return {"status": "removed"}

        @session_router.post("/exercises/{exercise_id}/sets")
        def add_set(exercise_id: int):
            with _http_errors():
                return self.session.add_set(exercise_id)

        @session_router.put("/exercises/{exercise_id}/sets/{set_id}")
        def update_set(exercise_id: int, set_id: str, fields: Dict[str, Any] = Body(...)):
            with _http_errors():
                return self.session.update_set(exercise_id, set_id, fields)

        @session_router.delete("/exercises/{exercise_id}/sets/{set_id}")
        def remove_set(exercise_id: int, set_id: str):
            with _http_errors():
                self.session.remove_set(exercise_id, set_id)
            return {"status": "removed"}

        @session_router.put("/exercises/{exercise_id}/notes")
        def update_exercise_notes(exercise_id: int, notes: Optional[str] = None):
            with _http_errors():
                self.session.update_exercise_notes(exercise_id, notes)
            return {"status": "updated"}

        @session_router.put("/notes")
        def update_workout_notes(notes: Optional[str] = None):
            with _http_errors():
                self.session.update_workout_notes(notes)
            return {"status": "updated"}

        @session_router.post("/finish")
        async def finish_session(feedback: Optional[WorkoutFeedback] = Body(None)):
            current = self.session.workout
            if current is not None and not current.exercises:
                raise HTTPException(status_code=400, detail="workout has no exercises")
            with _http_errors():
                return await self.session.finish(feedback)

        @session_router.post("/cancel")
        def cancel_session():
            with _http_errors():
                self.session.cancel()
            return {"status": "cancelled"}

        @self.app.post("/exercises")
        async def create_exercise(exercise: Exercise):
            eid = await self.exercises.create(exercise)
            return {"id": eid}

        @self.app.get("/exercises/{exercise_id}")
        async def get_exercise(exercise_id: int):
            try:
                return await self.exercises.fetch(exercise_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))

        @self.app.get("/workouts")
        async def list_workouts(mesocycle_id: Optional[int] = None, limit: Optional[int] = None):
            return await self.workouts.fetch_completed(mesocycle_id=mesocycle_id, limit=limit)

        @mesocycle_router.post("")
        async def create_mesocycle(mesocycle: Mesocycle):
            mid = await self.mesocycles.create(mesocycle)
            logger.info(f"Mesocycle {mid} created ({mesocycle.name!r})")
            return {"id": mid}

        @mesocycle_router.get("/{mesocycle_id}")
        async def get_mesocycle(mesocycle_id: int):
            try:
                return await self.mesocycles.fetch(mesocycle_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))

        @mesocycle_router.get("/{mesocycle_id}/next_split")
        async def next_split(mesocycle_id: int):
            with _http_errors():
                split_day = await self.planner.next_split(mesocycle_id)
            return {"split_day": split_day}

        @mesocycle_router.get("/{mesocycle_id}/status")
        async def mesocycle_status(mesocycle_id: int):
            with _http_errors():
                mesocycle = await self.planner.fetch(mesocycle_id)
                completion = await self.planner.completion_status(mesocycle_id)
            week = calculate_mesocycle_week(mesocycle, datetime.datetime.now())
            return {
                "current_week": mesocycle.current_week,
                "calendar_week": week,
                "label": describe_week(mesocycle, mesocycle.current_week),
                "splits": completion,
            }

        @self.app.post("/users")
        async def create_user(profile: UserProfile):
            uid = await self.users.create(profile)
            return {"id": uid}

        @self.app.get("/users/{user_id}")
        async def get_user(user_id: int):
            try:
                return await self.users.fetch(user_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))

        self.app.include_router(session_router)
        self.app.include_router(mesocycle_router)


if __name__ == "__main__":
    import uvicorn

    api = RepstackAPI()
    configure_logging(api.settings.log_level)
    try:
        uvicorn.run(api.app)
    finally:
        api.close()
