import sqlite3
import csv
import io
import json
import datetime
from contextlib import contextmanager
from typing import List, Tuple, Optional

from config import YamlConfig
from settings_schema import validate_settings
from tools import MathTools
from workout_types import (
    ExerciseLog,
    PlannedExercise,
    SetLog,
    WorkoutDay,
    WorkoutLog,
    WorkoutPlan,
)


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "plans": (
            """CREATE TABLE plans (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    frequency INTEGER NOT NULL DEFAULT 3,
                    goal TEXT,
                    created_at TEXT NOT NULL,
                    is_public INTEGER NOT NULL DEFAULT 0
                );""",
            ["id", "title", "frequency", "goal", "created_at", "is_public"],
        ),
        "plan_days": (
            """CREATE TABLE plan_days (
                    id TEXT PRIMARY KEY,
                    plan_id TEXT NOT NULL,
                    day_name TEXT NOT NULL,
                    position INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY(plan_id) REFERENCES plans(id) ON DELETE CASCADE
                );""",
            ["id", "plan_id", "day_name", "position"],
        ),
        "plan_exercises": (
            """CREATE TABLE plan_exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    day_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    sets INTEGER NOT NULL DEFAULT 3,
                    reps TEXT NOT NULL DEFAULT '',
                    rest TEXT NOT NULL DEFAULT '',
                    notes TEXT,
                    position INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY(day_id) REFERENCES plan_days(id) ON DELETE CASCADE
                );""",
            ["id", "day_id", "name", "sets", "reps", "rest", "notes", "position"],
        ),
        "workout_logs": (
            """CREATE TABLE workout_logs (
                    id TEXT PRIMARY KEY,
                    plan_id TEXT NOT NULL,
                    plan_title TEXT NOT NULL,
                    day_name TEXT NOT NULL,
                    date TEXT NOT NULL,
                    total_volume REAL NOT NULL DEFAULT 0,
                    duration_seconds INTEGER NOT NULL DEFAULT 0
                );""",
            [
                "id",
                "plan_id",
                "plan_title",
                "day_name",
                "date",
                "total_volume",
                "duration_seconds",
            ],
        ),
        "exercise_logs": (
            """CREATE TABLE exercise_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    log_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    notes TEXT NOT NULL DEFAULT '',
                    is_pr INTEGER NOT NULL DEFAULT 0,
                    position INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY(log_id) REFERENCES workout_logs(id) ON DELETE CASCADE
                );""",
            ["id", "log_id", "name", "notes", "is_pr", "position"],
        ),
        "set_logs": (
            """CREATE TABLE set_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    exercise_log_id INTEGER NOT NULL,
                    weight REAL NOT NULL DEFAULT 0,
                    reps INTEGER NOT NULL DEFAULT 0,
                    rpe INTEGER,
                    set_type TEXT NOT NULL DEFAULT 'normal',
                    position INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY(exercise_log_id) REFERENCES exercise_logs(id) ON DELETE CASCADE
                );""",
            ["id", "exercise_log_id", "weight", "reps", "rpe", "set_type", "position"],
        ),
        "body_metrics": (
            """CREATE TABLE body_metrics (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    date TEXT NOT NULL,
                    weight REAL NOT NULL,
                    body_fat REAL,
                    muscle_mass REAL,
                    notes TEXT
                );""",
            ["id", "date", "weight", "body_fat", "muscle_mass", "notes"],
        ),
        "goal_items": (
            """CREATE TABLE goal_items (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL,
                    target_date TEXT,
                    completed INTEGER NOT NULL DEFAULT 0,
                    category TEXT NOT NULL DEFAULT 'other'
                );""",
            ["id", "title", "target_date", "completed", "category"],
        ),
        "payments": (
            """CREATE TABLE payments (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    amount REAL NOT NULL,
                    date TEXT NOT NULL,
                    expiry_date TEXT NOT NULL,
                    method TEXT NOT NULL DEFAULT 'Cash',
                    notes TEXT
                );""",
            ["id", "amount", "date", "expiry_date", "method", "notes"],
        ),
        "settings": (
            """CREATE TABLE settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );""",
            ["key", "value"],
        ),
    }

    def __init__(self, db_path: str = "pitugym.db") -> None:
        self._db_path = db_path
        self._ensure_schema()
        self._init_settings()
        self.vacuum()

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        connection.execute("PRAGMA foreign_keys=on;")
        try:
            yield connection
            connection.commit()
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

        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)

        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            conn.execute(
                f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;"
            )
        conn.execute(f"DROP TABLE {table}_old;")

    def _init_settings(self) -> None:
        defaults = {
            "theme": "light",
            "weight_unit": "kg",
            "language": "en",
            "rest_default_seconds": "90",
            "rest_presets": "15,30,45,90,120,180",
            "rest_extend_options": "30,60",
            "beep_frequency": "880",
            "sound_enabled": "1",
            "vibration_enabled": "1",
            "default_payment_amount": "45",
            "api_token": "",
        }
        with self._connection() as conn:
            for key, value in defaults.items():
                conn.execute(
                    "INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?);",
                    (key, value),
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

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()

    def _delete_all(self, table: str) -> None:
        self.execute(f"DELETE FROM {table};")

    def _require(self, table: str, row_id, message: str) -> None:
        rows = self.fetch_all(f"SELECT id FROM {table} WHERE id = ?;", (row_id,))
        if not rows:
            raise ValueError(message)


class PlanRepository(BaseRepository):
    """Repository for workout plans, their days and planned exercises."""

    @staticmethod
    def validate(plan: WorkoutPlan) -> None:
        if not plan.title.strip():
            raise ValueError("title required")
        for day in plan.days:
            for ex in day.exercises:
                PlanRepository.validate_exercise(ex)

    @staticmethod
    def validate_exercise(exercise: PlannedExercise) -> None:
        if not exercise.name.strip():
            raise ValueError("exercise name required")

    def create(self, plan: WorkoutPlan) -> str:
        self.validate(plan)
        with self._connection() as conn:
            conn.execute(
                "INSERT INTO plans (id, title, frequency, goal, created_at, is_public) VALUES (?, ?, ?, ?, ?, ?);",
                (
                    plan.id,
                    plan.title,
                    plan.frequency,
                    plan.goal,
                    plan.created_at,
                    int(plan.is_public),
                ),
            )
            for d_pos, day in enumerate(plan.days):
                conn.execute(
                    "INSERT INTO plan_days (id, plan_id, day_name, position) VALUES (?, ?, ?, ?);",
                    (day.id, plan.id, day.day_name, d_pos),
                )
                for e_pos, ex in enumerate(day.exercises):
                    conn.execute(
                        "INSERT INTO plan_exercises (day_id, name, sets, reps, rest, notes, position) VALUES (?, ?, ?, ?, ?, ?, ?);",
                        (day.id, ex.name, ex.sets, ex.reps, ex.rest, ex.notes, e_pos),
                    )
        return plan.id

    def _days(self, plan_id: str) -> List[WorkoutDay]:
        days = self.fetch_all(
            "SELECT id, day_name FROM plan_days WHERE plan_id = ? ORDER BY position;",
            (plan_id,),
        )
        result: List[WorkoutDay] = []
        for day_id, day_name in days:
            rows = self.fetch_all(
                "SELECT name, sets, reps, rest, notes FROM plan_exercises WHERE day_id = ? ORDER BY position;",
                (day_id,),
            )
            result.append(
                WorkoutDay(
                    id=day_id,
                    day_name=day_name,
                    exercises=[
                        PlannedExercise(
                            name=name, sets=int(sets), reps=reps, rest=rest, notes=notes
                        )
                        for name, sets, reps, rest, notes in rows
                    ],
                )
            )
        return result

    def fetch(self, plan_id: str) -> WorkoutPlan:
        rows = self.fetch_all(
            "SELECT id, title, frequency, goal, created_at, is_public FROM plans WHERE id = ?;",
            (plan_id,),
        )
        if not rows:
            raise ValueError("plan not found")
        pid, title, frequency, goal, created_at, is_public = rows[0]
        return WorkoutPlan(
            id=pid,
            title=title,
            frequency=int(frequency),
            goal=goal,
            days=self._days(pid),
            created_at=created_at,
            is_public=bool(is_public),
        )

    def fetch_all_plans(self) -> List[WorkoutPlan]:
        rows = self.fetch_all("SELECT id FROM plans ORDER BY created_at DESC, rowid DESC;")
        return [self.fetch(r[0]) for r in rows]

    def fetch_day(self, plan_id: str, day_id: str) -> WorkoutDay:
        for day in self.fetch(plan_id).days:
            if day.id == day_id:
                return day
        raise ValueError("day not found")

    def set_public(self, plan_id: str, is_public: bool) -> None:
        self._require("plans", plan_id, "plan not found")
        self.execute(
            "UPDATE plans SET is_public = ? WHERE id = ?;", (int(is_public), plan_id)
        )

    def duplicate(self, plan_id: str, title: str | None = None) -> str:
        plan = self.fetch(plan_id)
        copy = WorkoutPlan(
            title=title or f"{plan.title} (copy)",
            frequency=plan.frequency,
            goal=plan.goal,
            days=[
                WorkoutDay(day_name=d.day_name, exercises=list(d.exercises))
                for d in plan.days
            ],
        )
        return self.create(copy)

    def _exercise_ids(self, day_id: str) -> List[int]:
        self._require("plan_days", day_id, "day not found")
        rows = self.fetch_all(
            "SELECT id FROM plan_exercises WHERE day_id = ? ORDER BY position, id;",
            (day_id,),
        )
        return [int(r[0]) for r in rows]

    def _exercise_id(self, day_id: str, position: int) -> int:
        ids = self._exercise_ids(day_id)
        if not 0 <= position < len(ids):
            raise ValueError("exercise not found")
        return ids[position]

    def add_exercise(self, day_id: str, exercise: PlannedExercise) -> int:
        """Append ``exercise`` to a day and return its position."""
        self.validate_exercise(exercise)
        position = len(self._exercise_ids(day_id))
        self.execute(
            "INSERT INTO plan_exercises (day_id, name, sets, reps, rest, notes, position) VALUES (?, ?, ?, ?, ?, ?, ?);",
            (
                day_id,
                exercise.name,
                exercise.sets,
                exercise.reps,
                exercise.rest,
                exercise.notes,
                position,
            ),
        )
        return position

    def update_exercise(
        self, day_id: str, position: int, exercise: PlannedExercise
    ) -> None:
        self.validate_exercise(exercise)
        ex_id = self._exercise_id(day_id, position)
        self.execute(
            "UPDATE plan_exercises SET name = ?, sets = ?, reps = ?, rest = ?, notes = ? WHERE id = ?;",
            (
                exercise.name,
                exercise.sets,
                exercise.reps,
                exercise.rest,
                exercise.notes,
                ex_id,
            ),
        )

    def delete_exercise(self, day_id: str, position: int) -> None:
        """Remove one exercise and close the gap in the day's ordering."""
        ex_id = self._exercise_id(day_id, position)
        remaining = [i for i in self._exercise_ids(day_id) if i != ex_id]
        with self._connection() as conn:
            conn.execute("DELETE FROM plan_exercises WHERE id = ?;", (ex_id,))
            for pos, other in enumerate(remaining):
                conn.execute(
                    "UPDATE plan_exercises SET position = ? WHERE id = ?;",
                    (pos, other),
                )

    def delete(self, plan_id: str) -> None:
        self._require("plans", plan_id, "plan not found")
        self.execute("DELETE FROM plans WHERE id = ?;", (plan_id,))

    def count(self) -> int:
        rows = self.fetch_all("SELECT COUNT(*) FROM plans;")
        return int(rows[0][0]) if rows else 0

    def frequencies(self) -> list[int]:
        return [int(r[0]) for r in self.fetch_all("SELECT frequency FROM plans;")]

    def delete_all(self) -> None:
        self._delete_all("plans")


class WorkoutLogRepository(BaseRepository):
    """Repository for finished sessions; the persistence side of logging."""

    def _best_weight(self, name: str) -> float | None:
        rows = self.fetch_all(
            "SELECT MAX(s.weight) FROM set_logs s JOIN exercise_logs e ON s.exercise_log_id = e.id WHERE e.name = ?;",
            (name,),
        )
        return float(rows[0][0]) if rows and rows[0][0] is not None else None

    def save(self, log: WorkoutLog) -> WorkoutLog:
        """Store ``log`` and return it with personal records flagged."""
        flagged: List[ExerciseLog] = []
        for ex in log.exercises:
            best = max((s.weight for s in ex.sets), default=0.0)
            previous = self._best_weight(ex.name)
            is_pr = previous is not None and best > previous
            flagged.append(ex.model_copy(update={"is_pr": is_pr}))
        stored = log.model_copy(update={"exercises": flagged})
        with self._connection() as conn:
            conn.execute(
                "INSERT INTO workout_logs (id, plan_id, plan_title, day_name, date, total_volume, duration_seconds) VALUES (?, ?, ?, ?, ?, ?, ?);",
                (
                    stored.id,
                    stored.plan_id,
                    stored.plan_title,
                    stored.day_name,
                    stored.date,
                    stored.total_volume,
                    stored.duration_seconds,
                ),
            )
            for e_pos, ex in enumerate(stored.exercises):
                cur = conn.execute(
                    "INSERT INTO exercise_logs (log_id, name, notes, is_pr, position) VALUES (?, ?, ?, ?, ?);",
                    (stored.id, ex.name, ex.notes, int(ex.is_pr), e_pos),
                )
                ex_id = cur.lastrowid
                for s_pos, s in enumerate(ex.sets):
                    conn.execute(
                        "INSERT INTO set_logs (exercise_log_id, weight, reps, rpe, set_type, position) VALUES (?, ?, ?, ?, ?, ?);",
                        (ex_id, s.weight, s.reps, s.rpe, s.type.value, s_pos),
                    )
        return stored

    def fetch(self, log_id: str) -> WorkoutLog:
        rows = self.fetch_all(
            "SELECT id, plan_id, plan_title, day_name, date, total_volume, duration_seconds FROM workout_logs WHERE id = ?;",
            (log_id,),
        )
        if not rows:
            raise ValueError("log not found")
        lid, plan_id, plan_title, day_name, date, volume, duration = rows[0]
        exercises: List[ExerciseLog] = []
        for ex_id, name, notes, is_pr in self.fetch_all(
            "SELECT id, name, notes, is_pr FROM exercise_logs WHERE log_id = ? ORDER BY position;",
            (lid,),
        ):
            sets = [
                SetLog(weight=float(w), reps=int(r), rpe=rpe, type=t)
                for w, r, rpe, t in self.fetch_all(
                    "SELECT weight, reps, rpe, set_type FROM set_logs WHERE exercise_log_id = ? ORDER BY position;",
                    (ex_id,),
                )
            ]
            exercises.append(
                ExerciseLog(name=name, sets=sets, notes=notes, is_pr=bool(is_pr))
            )
        return WorkoutLog(
            id=lid,
            plan_id=plan_id,
            plan_title=plan_title,
            day_name=day_name,
            date=date,
            exercises=exercises,
            total_volume=float(volume),
            duration_seconds=int(duration),
        )

    def fetch_all_logs(
        self, start_date: Optional[str] = None, end_date: Optional[str] = None
    ) -> List[WorkoutLog]:
        query = "SELECT id FROM workout_logs WHERE 1=1"
        params: list[str] = []
        if start_date:
            query += " AND substr(date, 1, 10) >= ?"
            params.append(start_date)
        if end_date:
            query += " AND substr(date, 1, 10) <= ?"
            params.append(end_date)
        query += " ORDER BY date DESC, rowid DESC;"
        return [self.fetch(r[0]) for r in self.fetch_all(query, tuple(params))]

    def delete(self, log_id: str) -> None:
        self._require("workout_logs", log_id, "log not found")
        self.execute("DELETE FROM workout_logs WHERE id = ?;", (log_id,))

    def count_exercises(self) -> int:
        rows = self.fetch_all("SELECT COUNT(*) FROM exercise_logs;")
        return int(rows[0][0]) if rows else 0

    def exercise_names(self) -> List[str]:
        rows = self.fetch_all("SELECT DISTINCT name FROM exercise_logs ORDER BY name;")
        return [r[0] for r in rows]

    def export_log_json(self, log_id: str) -> str:
        return json.dumps(self.fetch(log_id).model_dump(mode="json"), indent=2)

    def export_csv(self) -> str:
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(
            ["Date", "Plan", "Day", "Exercise", "Set", "Weight", "Reps", "RPE", "Type"]
        )
        for log in self.fetch_all_logs():
            for ex in log.exercises:
                for idx, s in enumerate(ex.sets, start=1):
                    writer.writerow(
                        [
                            log.date,
                            log.plan_title,
                            log.day_name,
                            ex.name,
                            idx,
                            s.weight,
                            s.reps,
                            "" if s.rpe is None else s.rpe,
                            s.type.value,
                        ]
                    )
        return output.getvalue()

    def delete_all(self) -> None:
        self._delete_all("workout_logs")


class BodyMetricRepository(BaseRepository):
    """Repository for body weight and composition entries."""

    @staticmethod
    def validate(date: str, weight: float, body_fat: float | None = None) -> None:
        if weight <= 0:
            raise ValueError("weight must be positive")
        if body_fat is not None and not 0 <= body_fat <= 100:
            raise ValueError("body_fat must be between 0 and 100")
        datetime.date.fromisoformat(date)

    def add(
        self,
        date: str,
        weight: float,
        body_fat: float | None = None,
        muscle_mass: float | None = None,
        notes: str | None = None,
    ) -> int:
        self.validate(date, weight, body_fat)
        return self.execute(
            "INSERT INTO body_metrics (date, weight, body_fat, muscle_mass, notes) VALUES (?, ?, ?, ?, ?);",
            (date, weight, body_fat, muscle_mass, notes),
        )

    def fetch_history(self) -> list[dict]:
        rows = self.fetch_all(
            "SELECT id, date, weight, body_fat, muscle_mass, notes FROM body_metrics ORDER BY date, id;"
        )
        return [
            {
                "id": int(r[0]),
                "date": r[1],
                "weight": float(r[2]),
                "body_fat": r[3],
                "muscle_mass": r[4],
                "notes": r[5],
            }
            for r in rows
        ]

    def delete(self, entry_id: int) -> None:
        self._require("body_metrics", entry_id, "metric not found")
        self.execute("DELETE FROM body_metrics WHERE id = ?;", (entry_id,))

    def fetch_latest_weight(self) -> float | None:
        """Return the most recent logged body weight if available."""
        row = self.fetch_all(
            "SELECT weight FROM body_metrics ORDER BY date DESC, id DESC LIMIT 1;"
        )
        if row:
            return float(row[0][0])
        return None

    def weight_change(self) -> float | None:
        """Difference between the two most recent entries."""
        history = self.fetch_history()
        if len(history) < 2:
            return None
        return round(history[-1]["weight"] - history[-2]["weight"], 1)

    def delete_all(self) -> None:
        self._delete_all("body_metrics")


class GoalItemRepository(BaseRepository):
    """Repository for personal goals."""

    CATEGORIES = {"strength", "weight", "endurance", "other"}

    @classmethod
    def validate(
        cls, title: str, category: str = "other", target_date: str | None = None
    ) -> None:
        if not title.strip():
            raise ValueError("title required")
        if category not in cls.CATEGORIES:
            raise ValueError("invalid category")
        if target_date:
            datetime.date.fromisoformat(target_date)

    def add(
        self, title: str, category: str = "other", target_date: str | None = None
    ) -> int:
        self.validate(title, category, target_date)
        return self.execute(
            "INSERT INTO goal_items (title, target_date, completed, category) VALUES (?, ?, 0, ?);",
            (title, target_date or None, category),
        )

    def fetch_all_goals(self) -> list[dict]:
        rows = self.fetch_all(
            "SELECT id, title, target_date, completed, category FROM goal_items ORDER BY id;"
        )
        return [
            {
                "id": int(r[0]),
                "title": r[1],
                "target_date": r[2],
                "completed": bool(r[3]),
                "category": r[4],
            }
            for r in rows
        ]

    def toggle(self, goal_id: int) -> bool:
        rows = self.fetch_all(
            "SELECT completed FROM goal_items WHERE id = ?;", (goal_id,)
        )
        if not rows:
            raise ValueError("goal not found")
        completed = not bool(rows[0][0])
        self.execute(
            "UPDATE goal_items SET completed = ? WHERE id = ?;",
            (int(completed), goal_id),
        )
        return completed

    def delete(self, goal_id: int) -> None:
        self._require("goal_items", goal_id, "goal not found")
        self.execute("DELETE FROM goal_items WHERE id = ?;", (goal_id,))

    def progress(self) -> int:
        """Percentage of completed goals, rounded."""
        goals = self.fetch_all_goals()
        if not goals:
            return 0
        done = sum(1 for g in goals if g["completed"])
        return round(100 * done / len(goals))

    def delete_all(self) -> None:
        self._delete_all("goal_items")


class PaymentRepository(BaseRepository):
    """Repository for gym membership payments."""

    @staticmethod
    def validate(amount: float, date: str, expiry_date: str) -> None:
        if amount <= 0:
            raise ValueError("amount must be positive")
        if datetime.date.fromisoformat(expiry_date) < datetime.date.fromisoformat(date):
            raise ValueError("expiry_date must not precede date")

    def add(
        self,
        amount: float,
        date: str,
        expiry_date: str,
        method: str = "Cash",
        notes: str | None = None,
    ) -> int:
        self.validate(amount, date, expiry_date)
        return self.execute(
            "INSERT INTO payments (amount, date, expiry_date, method, notes) VALUES (?, ?, ?, ?, ?);",
            (amount, date, expiry_date, method, notes),
        )

    def fetch_all_payments(self) -> list[dict]:
        rows = self.fetch_all(
            "SELECT id, amount, date, expiry_date, method, notes FROM payments ORDER BY date DESC, id DESC;"
        )
        return [
            {
                "id": int(r[0]),
                "amount": float(r[1]),
                "date": r[2],
                "expiry_date": r[3],
                "method": r[4],
                "notes": r[5],
            }
            for r in rows
        ]

    def delete(self, payment_id: int) -> None:
        self._require("payments", payment_id, "payment not found")
        self.execute("DELETE FROM payments WHERE id = ?;", (payment_id,))

    def status(self, today: datetime.date | None = None) -> dict:
        """Membership status derived from the latest payment."""
        today = today or datetime.date.today()
        payments = self.fetch_all_payments()
        if not payments:
            return {"expired": True, "days_to_expiry": 0, "last_payment": None}
        last = payments[0]
        expiry = datetime.date.fromisoformat(last["expiry_date"])
        return {
            "expired": expiry <= today,
            "days_to_expiry": MathTools.days_until(expiry, today),
            "last_payment": last,
        }

    def delete_all(self) -> None:
        self._delete_all("payments")


class SettingsRepository(BaseRepository):
    """Repository for general application settings synchronized with YAML."""

    BOOL_KEYS = {"sound_enabled", "vibration_enabled"}
    TEXT_KEYS = {
        "theme",
        "weight_unit",
        "language",
        "rest_presets",
        "rest_extend_options",
        "api_token",
    }

    def __init__(
        self, db_path: str = "pitugym.db", yaml_path: str = "settings.yaml"
    ) -> None:
        super().__init__(db_path)
        self._yaml = YamlConfig(yaml_path)
        self._sync_from_yaml()
        self._sync_to_yaml()

    def _raw_all_settings(self) -> dict:
        rows = self.fetch_all("SELECT key, value FROM settings ORDER BY key;")
        result: dict[str, float | str | bool] = {}
        for k, v in rows:
            if k in self.BOOL_KEYS:
                result[k] = v in {"1", "1.0", "true", "True"}
                continue
            if k in self.TEXT_KEYS:
                result[k] = v
                continue
            try:
                result[k] = float(v)
            except ValueError:
                result[k] = v
        return result

    def all_settings(self) -> dict:
        self._sync_from_yaml()
        return self._raw_all_settings()

    def _sync_from_yaml(self) -> None:
        data = self._yaml.load()
        if not data:
            return
        validate_settings(data)
        with self._connection() as conn:
            for key, value in data.items():
                val = str(value)
                if key in self.BOOL_KEYS:
                    if val in {"1", "1.0", "true", "True"}:
                        val = "1"
                    else:
                        val = "0"
                conn.execute(
                    "INSERT INTO settings (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
                    (key, val),
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
        candidate = self._raw_all_settings()
        candidate[key] = value
        validate_settings(candidate)
        self.execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
            (key, value),
        )
        self._sync_to_yaml()

    def set_int(self, key: str, value: int) -> None:
        self.set_text(key, str(value))

    def get_int_list(self, key: str, default: str) -> list[int]:
        result: list[int] = []
        for part in self.get_text(key, default).split(","):
            value = MathTools.leading_int(part)
            if value is not None and value > 0:
                result.append(value)
        return result

    def get_bool(self, key: str, default: bool) -> bool:
        return self.get_text(key, "1" if default else "0") in {
            "1",
            "true",
            "True",
            "1.0",
        }

    def set_bool(self, key: str, value: bool) -> None:
        self.set_text(key, "1" if value else "0")
