import sqlite3
import csv
import os
import datetime
import logging
from contextlib import contextmanager
from typing import List, Tuple, Optional, Iterable

from config import YamlConfig
from settings_schema import validate_settings, DEFAULT_SETTINGS
from algorithms.progression_advisor import ProgressionRule, UserProgression
from algorithms.week_tools import utc_now_iso

logger = logging.getLogger(__name__)


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "progression_rules": (
            """CREATE TABLE progression_rules (
                    exercise TEXT PRIMARY KEY,
                    increment REAL NOT NULL,
                    deload_threshold REAL NOT NULL,
                    target_sessions INTEGER NOT NULL
                );""",
            ["exercise", "increment", "deload_threshold", "target_sessions"],
        ),
        "user_progressions": (
            """CREATE TABLE user_progressions (
                    user_id TEXT NOT NULL,
                    exercise TEXT NOT NULL,
                    current_weight REAL NOT NULL,
                    sessions_at_weight INTEGER NOT NULL DEFAULT 0,
                    last_updated TEXT NOT NULL,
                    PRIMARY KEY (user_id, exercise)
                );""",
            [
                "user_id",
                "exercise",
                "current_weight",
                "sessions_at_weight",
                "last_updated",
            ],
        ),
        "weekly_volume": (
            """CREATE TABLE weekly_volume (
                    user_id TEXT NOT NULL,
                    muscle_group TEXT NOT NULL,
                    week_start TEXT NOT NULL,
                    volume REAL NOT NULL DEFAULT 0,
                    PRIMARY KEY (user_id, muscle_group, week_start)
                );""",
            ["user_id", "muscle_group", "week_start", "volume"],
        ),
        "exercise_muscle_groups": (
            """CREATE TABLE exercise_muscle_groups (
                    exercise TEXT NOT NULL,
                    muscle_group TEXT NOT NULL,
                    is_custom INTEGER NOT NULL DEFAULT 0,
                    PRIMARY KEY (exercise, muscle_group)
                );""",
            ["exercise", "muscle_group", "is_custom"],
        ),
        "workout_sessions": (
            """CREATE TABLE workout_sessions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    date TEXT NOT NULL
                );""",
            ["id", "user_id", "date"],
        ),
        "exercise_records": (
            """CREATE TABLE exercise_records (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id INTEGER NOT NULL,
                    exercise TEXT NOT NULL,
                    weight REAL NOT NULL,
                    sets INTEGER NOT NULL,
                    reps INTEGER NOT NULL,
                    notes TEXT,
                    recorded_at TEXT NOT NULL,
                    FOREIGN KEY(session_id) REFERENCES workout_sessions(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "session_id",
                "exercise",
                "weight",
                "sets",
                "reps",
                "notes",
                "recorded_at",
            ],
        ),
        "settings": (
            """CREATE TABLE settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );""",
            ["key", "value"],
        ),
    }

    def __init__(self, db_path: str = "progression.db") -> None:
        self._db_path = db_path
        self._ensure_schema()
        self._import_exercise_catalog_data()
        self._init_settings()

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path, timeout=30)
        try:
            connection.execute("PRAGMA foreign_keys=on;")
            yield connection
            connection.commit()
        except Exception:
            connection.rollback()
            raise
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            conn.execute("PRAGMA foreign_keys=off;")
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            conn.execute("PRAGMA foreign_keys=on;")

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

        logger.info("migrating table %s: %s -> %s", table, existing_cols, columns)
        conn.execute(f"DROP TABLE IF EXISTS {table}_old;")
        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)

        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            missing = [c for c in columns if c not in existing_cols]
            if missing:
                def default_val(col: str) -> str:
                    if col in ("sessions_at_weight", "volume", "is_custom"):
                        return "0"
                    if col == "last_updated":
                        return "'1970-01-01T00:00:00+00:00'"
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

    def _import_exercise_catalog_data(self) -> None:
        csv_path = os.path.join(
            os.path.dirname(__file__), "exercise_muscle_groups.csv"
        )
        if not os.path.exists(csv_path):
            return
        with open(csv_path, newline="") as csvfile:
            reader = csv.DictReader(csvfile)
            records = [
                (row["Exercise"].strip(), group.strip(), row["Exercise"].strip())
                for row in reader
                for group in row["Muscle Groups"].split("|")
                if group.strip()
            ]
        # customised exercises keep their own mapping
        with self._connection() as conn:
            conn.executemany(
                "INSERT OR IGNORE INTO exercise_muscle_groups (exercise, muscle_group, is_custom) "
                "SELECT ?, ?, 0 WHERE NOT EXISTS "
                "(SELECT 1 FROM exercise_muscle_groups WHERE exercise = ? AND is_custom = 1);",
                records,
            )

    def _init_settings(self) -> None:
        with self._connection() as conn:
            for key, value in DEFAULT_SETTINGS.items():
                conn.execute(
                    "INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?);",
                    (key, str(value)),
                )

    def vacuum(self) -> None:
        """Run SQLite VACUUM to reduce database size."""
        with self._connection() as conn:
            conn.execute("VACUUM;")


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def execute_count(self, query: str, params: Tuple = ()) -> int:
        """Execute ``query`` and return the number of affected rows."""
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.rowcount

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()

    def _delete_all(self, table: str) -> None:
        self.execute(f"DELETE FROM {table};")


class ProgressionRuleRepository(BaseRepository):
    """Repository for per-exercise progression rules."""

    _COLUMNS = "exercise, increment, deload_threshold, target_sessions"

    def add(
        self,
        exercise: str,
        increment: float,
        deload_threshold: float,
        target_sessions: int,
    ) -> ProgressionRule:
        try:
            self.execute(
                f"INSERT INTO progression_rules ({self._COLUMNS}) VALUES (?, ?, ?, ?);",
                (exercise, increment, deload_threshold, target_sessions),
            )
        except sqlite3.IntegrityError as e:
            # only a key conflict means the rule exists; NOT NULL failures propagate
            if "UNIQUE constraint failed" not in str(e):
                raise
            raise ValueError("rule exists")
        return ProgressionRule(exercise, increment, deload_threshold, target_sessions)

    def fetch(self, exercise: str) -> Optional[ProgressionRule]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM progression_rules WHERE exercise = ?;",
            (exercise,),
        )
        if not rows:
            return None
        ex, inc, thr, target = rows[0]
        return ProgressionRule(ex, float(inc), float(thr), int(target))

    def fetch_rules(self) -> List[ProgressionRule]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM progression_rules ORDER BY exercise;"
        )
        return [ProgressionRule(ex, float(i), float(t), int(s)) for ex, i, t, s in rows]

    def update(
        self,
        exercise: str,
        increment: float,
        deload_threshold: float,
        target_sessions: int,
    ) -> bool:
        changed = self.execute_count(
            "UPDATE progression_rules SET increment = ?, deload_threshold = ?, target_sessions = ? WHERE exercise = ?;",
            (increment, deload_threshold, target_sessions, exercise),
        )
        return changed > 0

    def delete(self, exercise: str) -> bool:
        changed = self.execute_count(
            "DELETE FROM progression_rules WHERE exercise = ?;", (exercise,)
        )
        return changed > 0

    def delete_all(self) -> None:
        self._delete_all("progression_rules")


class UserProgressionRepository(BaseRepository):
    """Repository holding the working weight and session counter per user and exercise."""

    _COLUMNS = "user_id, exercise, current_weight, sessions_at_weight, last_updated"

    # One statement per transition keeps concurrent writers on the same key
    # from losing updates. SET expressions see the row as it was before.
    _RECORD_SQL = (
        "INSERT INTO user_progressions (user_id, exercise, current_weight, sessions_at_weight, last_updated) "
        "VALUES (?, ?, ?, 1, ?) "
        "ON CONFLICT(user_id, exercise) DO UPDATE SET "
        "sessions_at_weight = CASE "
        "WHEN excluded.current_weight > current_weight THEN 1 "
        "WHEN excluded.current_weight = current_weight THEN sessions_at_weight + 1 "
        "ELSE sessions_at_weight END, "
        "current_weight = excluded.current_weight, "
        "last_updated = excluded.last_updated;"
    )

    @staticmethod
    def _row(row: Tuple) -> UserProgression:
        user_id, exercise, weight, sessions, updated = row
        return UserProgression(user_id, exercise, float(weight), int(sessions), updated)

    def record_weight(
        self,
        user_id: str,
        exercise: str,
        new_weight: float,
        timestamp: str | None = None,
    ) -> UserProgression:
        stamp = timestamp or utc_now_iso()
        with self._connection() as conn:
            conn.execute(self._RECORD_SQL, (user_id, exercise, new_weight, stamp))
            row = conn.execute(
                f"SELECT {self._COLUMNS} FROM user_progressions WHERE user_id = ? AND exercise = ?;",
                (user_id, exercise),
            ).fetchone()
        return self._row(row)

    def fetch(self, user_id: str, exercise: str) -> Optional[UserProgression]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM user_progressions WHERE user_id = ? AND exercise = ?;",
            (user_id, exercise),
        )
        return self._row(rows[0]) if rows else None

    def fetch_for_user(self, user_id: str) -> List[UserProgression]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM user_progressions WHERE user_id = ? ORDER BY exercise;",
            (user_id,),
        )
        return [self._row(r) for r in rows]


class WeeklyVolumeRepository(BaseRepository):
    """Repository for per user, muscle group and week volume counters."""

    def add_volume(
        self,
        user_id: str,
        muscle_groups: Iterable[str],
        week_start: str,
        contribution: float,
    ) -> None:
        with self._connection() as conn:
            for group in muscle_groups:
                conn.execute(
                    "INSERT INTO weekly_volume (user_id, muscle_group, week_start, volume) VALUES (?, ?, ?, ?) "
                    "ON CONFLICT(user_id, muscle_group, week_start) DO UPDATE SET volume = volume + excluded.volume;",
                    (user_id, group, week_start, contribution),
                )

    def fetch_week(self, user_id: str, week_start: str) -> List[Tuple[str, float]]:
        rows = self.fetch_all(
            "SELECT muscle_group, volume FROM weekly_volume WHERE user_id = ? AND week_start = ? ORDER BY muscle_group;",
            (user_id, week_start),
        )
        return [(group, float(volume)) for group, volume in rows]

    def fetch_weeks(self, user_id: str) -> List[str]:
        rows = self.fetch_all(
            "SELECT DISTINCT week_start FROM weekly_volume WHERE user_id = ? ORDER BY week_start DESC;",
            (user_id,),
        )
        return [r[0] for r in rows]


class ExerciseCatalogRepository(BaseRepository):
    """Resolve exercises to the muscle groups they train."""

    def muscle_groups(self, exercise: str) -> List[str]:
        rows = self.fetch_all(
            "SELECT muscle_group FROM exercise_muscle_groups WHERE exercise = ? ORDER BY rowid;",
            (exercise,),
        )
        return [r[0] for r in rows]

    def set_muscle_groups(self, exercise: str, muscle_groups: Iterable[str]) -> None:
        groups = [g.strip() for g in muscle_groups if g and g.strip()]
        if not groups:
            raise ValueError("muscle groups required")
        with self._connection() as conn:
            conn.execute(
                "DELETE FROM exercise_muscle_groups WHERE exercise = ?;", (exercise,)
            )
            for group in groups:
                conn.execute(
                    "INSERT OR IGNORE INTO exercise_muscle_groups (exercise, muscle_group, is_custom) VALUES (?, ?, 1);",
                    (exercise, group),
                )

    def fetch_exercises(self) -> List[str]:
        rows = self.fetch_all(
            "SELECT DISTINCT exercise FROM exercise_muscle_groups ORDER BY exercise;"
        )
        return [r[0] for r in rows]


class WorkoutSessionRepository(BaseRepository):
    """Repository for workout sessions and the exercise records inside them."""

    def create(self, user_id: str, date: str) -> int:
        return self.execute(
            "INSERT INTO workout_sessions (user_id, date) VALUES (?, ?);",
            (user_id, date),
        )

    def fetch_detail(self, session_id: int) -> Optional[Tuple[int, str, str]]:
        rows = self.fetch_all(
            "SELECT id, user_id, date FROM workout_sessions WHERE id = ?;",
            (session_id,),
        )
        return rows[0] if rows else None

    def add_record(
        self,
        session_id: int,
        exercise: str,
        weight: float,
        sets: int,
        reps: int,
        notes: Optional[str] = None,
        recorded_at: str | None = None,
    ) -> int:
        return self.execute(
            "INSERT INTO exercise_records (session_id, exercise, weight, sets, reps, notes, recorded_at) VALUES (?, ?, ?, ?, ?, ?, ?);",
            (
                session_id,
                exercise,
                weight,
                sets,
                reps,
                notes,
                recorded_at or utc_now_iso(),
            ),
        )

    def fetch_records(self, session_id: int) -> List[Tuple]:
        return self.fetch_all(
            "SELECT id, exercise, weight, sets, reps, notes, recorded_at FROM exercise_records WHERE session_id = ? ORDER BY recorded_at, id;",
            (session_id,),
        )

    def sessions_since(self, user_id: str, since: str) -> List[Tuple[int, str]]:
        return self.fetch_all(
            "SELECT id, date FROM workout_sessions WHERE user_id = ? AND date >= ? ORDER BY date DESC, id DESC;",
            (user_id, since),
        )

    def recent_sessions(self, user_id: str, days: int) -> List[Tuple[int, str]]:
        since = (
            datetime.datetime.now(datetime.timezone.utc).date()
            - datetime.timedelta(days=days)
        ).isoformat()
        return self.sessions_since(user_id, since)

    def exercises_for_sessions(self, session_ids: List[int]) -> List[str]:
        if not session_ids:
            return []
        placeholders = ", ".join("?" for _ in session_ids)
        rows = self.fetch_all(
            f"SELECT exercise FROM exercise_records WHERE session_id IN ({placeholders}) ORDER BY id;",
            tuple(session_ids),
        )
        return [r[0] for r in rows]

    def last_weight(self, user_id: str, exercise: str) -> Optional[float]:
        rows = self.fetch_all(
            "SELECT r.weight FROM exercise_records r JOIN workout_sessions s ON r.session_id = s.id "
            "WHERE s.user_id = ? AND r.exercise = ? ORDER BY r.recorded_at DESC, r.id DESC LIMIT 1;",
            (user_id, exercise),
        )
        return float(rows[0][0]) if rows else None

    def history(self, user_id: str, exercise: str, limit: int) -> List[Tuple]:
        return self.fetch_all(
            "SELECT s.date, r.exercise, r.weight, r.sets, r.reps, r.notes, r.recorded_at "
            "FROM exercise_records r JOIN workout_sessions s ON r.session_id = s.id "
            "WHERE s.user_id = ? AND r.exercise = ? ORDER BY s.date DESC, r.recorded_at DESC, r.id DESC LIMIT ?;",
            (user_id, exercise, limit),
        )


class SettingsRepository(BaseRepository):
    """Repository for tunable analysis settings synchronized with YAML."""

    def __init__(
        self, db_path: str = "progression.db", yaml_path: str = "settings.yaml"
    ) -> None:
        super().__init__(db_path)
        self._yaml = YamlConfig(yaml_path)
        self._sync_from_yaml()
        self._sync_to_yaml()

    def _raw_all_settings(self) -> dict:
        rows = self.fetch_all("SELECT key, value FROM settings ORDER BY key;")
        result: dict[str, float | str] = {}
        for k, v in rows:
            try:
                result[k] = float(v)
            except ValueError:
                result[k] = v
        return result

    def _sync_from_yaml(self) -> None:
        data = self._yaml.load()
        if not data:
            return
        validate_settings(data)
        with self._connection() as conn:
            for key, value in data.items():
                conn.execute(
                    "INSERT INTO settings (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
                    (key, str(value)),
                )

    def _sync_to_yaml(self) -> None:
        self._yaml.save(self._raw_all_settings())

    def get_float(self, key: str, default: float) -> float:
        self._sync_from_yaml()
        rows = self.fetch_all("SELECT value FROM settings WHERE key = ?;", (key,))
        return float(rows[0][0]) if rows else default

    def set_float(self, key: str, value: float) -> None:
        self.set_text(key, str(value))

    def get_text(self, key: str, default: str) -> str:
        self._sync_from_yaml()
        rows = self.fetch_all("SELECT value FROM settings WHERE key = ?;", (key,))
        return rows[0][0] if rows else default

    def get_int(self, key: str, default: int) -> int:
        try:
            return int(float(self.get_text(key, str(default))))
        except ValueError:
            return default

    def set_text(self, key: str, value: str) -> None:
        if key not in DEFAULT_SETTINGS:
            raise ValueError(f"unknown setting {key!r}")
        candidate = self._raw_all_settings()
        candidate[key] = value
        validate_settings(candidate)
        self.execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
            (key, value),
        )
        self._sync_to_yaml()

    def get_list(self, key: str) -> list[str]:
        val = self.get_text(key, "")
        return [v.strip() for v in val.split(",") if v.strip()]

    def get_pairs(self, key: str) -> list[tuple[str, str]]:
        pairs = []
        for item in self.get_list(key):
            a, _sep, b = item.partition(":")
            if a and b:
                pairs.append((a.strip(), b.strip()))
        return pairs

    def all_settings(self) -> dict:
        self._sync_from_yaml()
        return self._raw_all_settings()
