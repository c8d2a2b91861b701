import time
from collections import deque
from typing import Callable
import logging
from fastapi import FastAPI, APIRouter, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from db import (
    ProgressionRuleRepository,
    UserProgressionRepository,
    WeeklyVolumeRepository,
    ExerciseCatalogRepository,
    WorkoutSessionRepository,
    SettingsRepository,
)
from config import APP_VERSION, db_path_from_env, settings_path_from_env, log_level_from_env
from errors import ProgressionError, ValidationError
from progression_service import ProgressionService
from volume_service import VolumeService
from recommendation_service import RecommendationService
from tracking_service import TrackingService

logger = logging.getLogger(__name__)


class RateLimiter:
    """Per-client sliding window limit, installed as HTTP middleware.

    Clients whose requests have all aged out of the window are forgotten.
    """

    def __init__(
        self, limit: int = 60, window: float = 60, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.limit = limit
        self.window = window
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}

    def _expire(self, now: float) -> None:
        for client in list(self._hits):
            hits = self._hits[client]
            while hits and now - hits[0] >= self.window:
                hits.popleft()
            if not hits:
                del self._hits[client]

    def allow(self, client: str) -> bool:
        now = self._clock()
        self._expire(now)
        hits = self._hits.setdefault(client, deque())
        if len(hits) >= self.limit:
            return False
        hits.append(now)
        return True

    def tracked_clients(self) -> list[str]:
        return sorted(self._hits)

    async def __call__(self, request: Request, call_next):
        client = request.client.host if request.client else "anon"
        if not self.allow(client):
            logger.warning("rate limit exceeded for %s", client)
            error = {"kind": "rate_limited", "message": "rate limit exceeded"}
            return JSONResponse(status_code=429, content={"error": error})
        return await call_next(request)


class ProgressionAPI:
    """Provides REST endpoints for progression advice and volume balance."""

    def __init__(
        self,
        db_path: str = "progression.db",
        yaml_path: str = "settings.yaml",
        *,
        rate_limit: int | None = None,
        rate_window: int = 60,
    ) -> None:
        self.db_path = db_path
        self.settings = SettingsRepository(db_path, yaml_path)
        self.rules = ProgressionRuleRepository(db_path)
        self.progressions = UserProgressionRepository(db_path)
        self.volumes = WeeklyVolumeRepository(db_path)
        self.catalog = ExerciseCatalogRepository(db_path)
        self.sessions = WorkoutSessionRepository(db_path)
        self.progression = ProgressionService(
            self.rules, self.progressions, self.settings
        )
        self.volume = VolumeService(self.volumes, self.catalog, self.settings)
        self.recommender = RecommendationService(
            self.sessions, self.catalog, self.volumes, self.settings
        )
        self.tracking = TrackingService(self.sessions, self.progression, self.volume)
        self.app = FastAPI(
            title="Progression API",
            description="Weight progression advice and weekly volume balance",
            version=APP_VERSION,
        )
        if rate_limit is not None:
            limiter = RateLimiter(limit=rate_limit, window=rate_window)
            self.app.middleware("http")(limiter)
        self._setup_error_handlers()
        self._setup_routes()

    def _setup_error_handlers(self) -> None:
        @self.app.exception_handler(ProgressionError)
        async def progression_error(_request: Request, exc: ProgressionError):
            logger.warning("%s: %s", exc.kind, exc.message)
            return JSONResponse(
                status_code=exc.status_code, content={"error": exc.to_dict()}
            )

        @self.app.exception_handler(RequestValidationError)
        async def request_error(_request: Request, exc: RequestValidationError):
            fields = [".".join(str(p) for p in e.get("loc", ())) for e in exc.errors()]
            error = ValidationError(f"invalid request parameters: {', '.join(fields)}")
            logger.warning("validation: %s", error.message)
            return JSONResponse(status_code=400, content={"error": error.to_dict()})

    def _setup_routes(self) -> None:
        progression_router = APIRouter(prefix="/progression", tags=["Progression"])
        volume_router = APIRouter(prefix="/volume", tags=["Volume"])
        sessions_router = APIRouter(prefix="/sessions", tags=["Sessions"])

        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        def health():
            self.rules.fetch_rules()
            return {"status": "ok", "version": APP_VERSION}

        @progression_router.post("/rules")
        def create_progression_rule(
            exercise: str,
            increment: float,
            deload_threshold: float,
            target_sessions: int,
        ):
            rule = self.progression.create_rule(
                exercise, increment, deload_threshold, target_sessions
            )
            return rule.to_dict()

        @progression_router.get("/rules")
        def list_progression_rules():
            return [r.to_dict() for r in self.progression.list_rules()]

        @progression_router.get("/rules/{exercise}")
        def get_progression_rule(exercise: str):
            return self.progression.get_rule(exercise).to_dict()

        @progression_router.put("/rules/{exercise}")
        def update_progression_rule(
            exercise: str,
            increment: float = None,
            deload_threshold: float = None,
            target_sessions: int = None,
        ):
            rule = self.progression.update_rule(
                exercise,
                increment=increment,
                deload_threshold=deload_threshold,
                target_sessions=target_sessions,
            )
            return rule.to_dict()

        @progression_router.delete("/rules/{exercise}")
        def delete_progression_rule(exercise: str):
            self.progression.delete_rule(exercise)
            return {"status": "deleted"}

        @progression_router.get("/suggest")
        def suggest_weight(
            user: str,
            exercise: str,
            last_weight: float,
            last_sets: int,
            last_reps: int,
        ):
            suggestion = self.progression.suggest_weight(
                user, exercise, last_weight, last_sets, last_reps
            )
            return suggestion.to_dict()

        @progression_router.post("/record")
        def record_progression(user: str, exercise: str, new_weight: float):
            return self.progression.record_progression(user, exercise, new_weight).to_dict()

        @progression_router.get("/state")
        def get_progression(user: str, exercise: str = None):
            if exercise is None:
                return [p.to_dict() for p in self.progression.list_progressions(user)]
            return self.progression.get_progression(user, exercise).to_dict()

        @volume_router.post("")
        def update_volume(
            user: str,
            exercise: str,
            sets: int,
            reps: int,
            weight: float,
            week_start: str = None,
        ):
            return self.volume.update_volume(user, exercise, sets, reps, weight, week_start)

        @volume_router.get("")
        def get_weekly_volume(user: str, week_start: str = None):
            return self.volume.get_weekly_volume(user, week_start)

        @volume_router.get("/balance")
        def check_balance(user: str, week_start: str = None):
            return {"imbalance": self.volume.check_balance(user, week_start)}

        @self.app.get("/workouts/suggested", tags=["Suggestions"])
        def get_suggested_workouts(
            user: str, limit: int = None, lookback_days: int = None
        ):
            suggestions = self.recommender.get_suggested_workouts(
                user, limit, lookback_days
            )
            return {"suggestions": [s.to_dict() for s in suggestions]}

        @sessions_router.post("")
        def start_session(user: str, date: str):
            return {"id": self.tracking.start_session(user, date)}

        @sessions_router.post("/{session_id}/exercises")
        def record_exercise(
            session_id: int,
            exercise: str,
            weight: float,
            sets: int,
            reps: int,
            notes: str = None,
        ):
            return self.tracking.record_exercise(
                session_id, exercise, weight, sets, reps, notes
            )

        @sessions_router.get("/history")
        def workout_history(user: str, exercise: str, limit: int = 10):
            return self.tracking.get_workout_history(user, exercise, limit)

        @sessions_router.get("/last_weight")
        def last_weight(user: str, exercise: str):
            return {"weight": self.tracking.get_last_weight(user, exercise)}

        @self.app.get("/exercises/{exercise}/muscle_groups", tags=["Catalog"])
        def exercise_muscle_groups(exercise: str):
            return self.catalog.muscle_groups(exercise)

        @self.app.get("/settings", tags=["Settings"])
        def get_settings():
            return self.settings.all_settings()

        @self.app.post("/settings/{key}", tags=["Settings"])
        def update_setting(key: str, value: str):
            try:
                self.settings.set_text(key, value)
            except ValueError as e:
                raise ValidationError(str(e))
            return {"status": "updated"}

        self.app.include_router(progression_router)
        self.app.include_router(volume_router)
        self.app.include_router(sessions_router)


def create_app() -> FastAPI:
    return ProgressionAPI(db_path_from_env(), settings_path_from_env()).app


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=log_level_from_env())
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
