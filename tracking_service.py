from __future__ import annotations

import logging
from typing import Optional

from db import WorkoutSessionRepository
from algorithms.week_tools import parse_date, week_start
from errors import ValidationError, NotFoundError, require_id, require_number
from progression_service import ProgressionService
from volume_service import VolumeService

logger = logging.getLogger(__name__)


class TrackingService:
    """Record workout sessions and fan each exercise out to progression and volume."""

    def __init__(
        self,
        session_repo: WorkoutSessionRepository,
        progression: ProgressionService | None = None,
        volume: VolumeService | None = None,
    ) -> None:
        self.sessions = session_repo
        self.progression = progression
        self.volume = volume

    def start_session(self, user_id: str, date: str) -> int:
        user_id = require_id(user_id, "user")
        day = parse_date(date, "date")
        session_id = self.sessions.create(user_id, day.isoformat())
        logger.info("started session %d for %s on %s", session_id, user_id, day)
        return session_id

    def record_exercise(
        self,
        session_id: int,
        exercise: str,
        weight: float,
        sets: int,
        reps: int,
        notes: Optional[str] = None,
    ) -> dict:
        detail = self.sessions.fetch_detail(session_id)
        if detail is None:
            raise NotFoundError(f"session with id {session_id} not found")
        exercise = require_id(exercise, "exercise")
        if require_number(weight, "weight") < 0:
            raise ValidationError("weight cannot be negative")
        if require_number(sets, "sets") <= 0:
            raise ValidationError("sets must be greater than 0")
        if require_number(reps, "reps") <= 0:
            raise ValidationError("reps must be greater than 0")
        _sid, user_id, date = detail
        record_id = self.sessions.add_record(session_id, exercise, weight, sets, reps, notes)
        result: dict = {"id": record_id}
        if self.progression is not None:
            state = self.progression.record_progression(user_id, exercise, weight)
            result["progression"] = state.to_dict()
        if self.volume is not None:
            try:
                result["volume"] = self.volume.update_volume(
                    user_id, exercise, sets, reps, weight, week_start(date)
                )
            except NotFoundError:
                # exercises missing from the catalog still count as history
                logger.warning("no muscle groups for %s, volume not updated", exercise)
                result["volume"] = None
        return result

    def get_last_weight(self, user_id: str, exercise: str) -> Optional[float]:
        return self.sessions.last_weight(
            require_id(user_id, "user"), require_id(exercise, "exercise")
        )

    def get_workout_history(self, user_id: str, exercise: str, limit: int = 10) -> list[dict]:
        user_id = require_id(user_id, "user")
        exercise = require_id(exercise, "exercise")
        if limit <= 0:
            raise ValidationError("limit must be greater than 0")
        rows = self.sessions.history(user_id, exercise, limit)
        return [
            {
                "date": date,
                "exercise": ex,
                "weight": weight,
                "sets": sets,
                "reps": reps,
                "notes": notes,
                "recorded_at": recorded_at,
            }
            for date, ex, weight, sets, reps, notes, recorded_at in rows
        ]
