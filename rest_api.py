import datetime
import asyncio
import logging
import os
import time
import uuid
from typing import Dict, Sequence
from fastapi import (
    FastAPI,
    HTTPException,
    Response,
    Request,
    WebSocket,
    WebSocketDisconnect,
    Header,
    Depends,
)
import numpy as np

from db import (
    PlanRepository,
    WorkoutLogRepository,
    BodyMetricRepository,
    GoalItemRepository,
    PaymentRepository,
    SettingsRepository,
)
from config import APP_VERSION
from alerts import AlertSink, AudioChannel, HapticChannel, encode_wav, synthesize_beeps
from session_service import LoggingSession, parse_rest_duration
from stats_service import StatisticsService
from timers import Clock, poll_forever
from tools import MathTools
from workout_types import PlannedExercise, SetType, WorkoutPlan

logger = logging.getLogger(__name__)


class RateLimiter:
    """Simple in-memory rate limiter."""

    def __init__(self, limit: int = 60, window: int = 60) -> None:
        self.limit = limit
        self.window = window
        self.requests: dict[str, list[float]] = {}

    async def __call__(self, request: Request, call_next):
        ip = request.client.host if request.client else "anon"
        now = time.time()
        history = [t for t in self.requests.get(ip, []) if now - t < self.window]
        if len(history) >= self.limit:
            return Response("rate limit exceeded", status_code=429)
        history.append(now)
        self.requests[ip] = history
        return await call_next(request)


class QueuedAudio(AudioChannel):
    """Queues a beep event for the remote screen instead of playing locally."""

    def __init__(self, events: list) -> None:
        self.events = events

    def play(self, samples: np.ndarray, sample_rate: int) -> None:
        self.events.append(
            {
                "type": "beep",
                "url": "/alerts/beep.wav",
                "seconds": round(len(samples) / sample_rate, 2),
            }
        )


class QueuedHaptic(HapticChannel):
    def __init__(self, events: list) -> None:
        self.events = events

    def vibrate(self, pattern: Sequence[int]) -> None:
        self.events.append({"type": "vibrate", "pattern": list(pattern)})


def _http_error(exc: ValueError) -> HTTPException:
    message = str(exc)
    status = 404 if "not found" in message else 400
    return HTTPException(status_code=status, detail=message)


class PituGymAPI:
    """Provides REST endpoints for plans, live logging sessions and history."""

    def __init__(
        self,
        db_path: str = "pitugym.db",
        yaml_path: str = "settings.yaml",
        *,
        clock: Clock = time.monotonic,
        rate_limit: int | None = None,
        rate_window: int = 60,
        session_ttl: float | None = 4 * 3600,
    ) -> None:
        self.db_path = db_path
        self.clock = clock
        self.settings = SettingsRepository(db_path, yaml_path)
        self.plans = PlanRepository(db_path)
        self.logs = WorkoutLogRepository(db_path)
        self.metrics = BodyMetricRepository(db_path)
        self.goals = GoalItemRepository(db_path)
        self.payments = PaymentRepository(db_path)
        self.statistics = StatisticsService(
            self.plans, self.logs, self.metrics, self.goals
        )
        self.sessions: Dict[str, LoggingSession] = {}
        self.session_events: Dict[str, list] = {}
        self.session_ttl = session_ttl
        self.last_seen: Dict[str, float] = {}
        self.app = FastAPI(
            title="PituGym API",
            version=APP_VERSION,
            description="REST API for workout plans, session logging and history",
            dependencies=[Depends(self._check_token)],
        )
        if rate_limit is not None:
            limiter = RateLimiter(limit=rate_limit, window=rate_window)
            self.app.middleware("http")(limiter)
        self._setup_routes()

    def _check_token(self, x_api_token: str | None = Header(default=None)) -> None:
        expected = self.settings.get_text("api_token", "")
        if expected and x_api_token != expected:
            raise HTTPException(status_code=401, detail="invalid api token")

    def _alerts_for(self, events: list) -> AlertSink:
        audible = QueuedAudio(events) if self.settings.get_bool("sound_enabled", True) else None
        haptic = (
            QueuedHaptic(events)
            if self.settings.get_bool("vibration_enabled", True)
            else None
        )
        return AlertSink(
            audible=audible,
            haptic=haptic,
            frequency=self.settings.get_float("beep_frequency", 880.0),
        )

    def evict_idle_sessions(self) -> list[str]:
        """Close sessions nobody has touched for ``session_ttl`` seconds."""
        if self.session_ttl is None:
            return []
        now = self.clock()
        stale = [
            sid
            for sid, seen in self.last_seen.items()
            if now - seen > self.session_ttl
        ]
        for sid in stale:
            logger.info("Evicting idle session %s", sid)
            self.close_session(sid)
        return stale

    def open_session(self, plan_id: str, day_id: str) -> str:
        self.evict_idle_sessions()
        plan = self.plans.fetch(plan_id)
        day = self.plans.fetch_day(plan_id, day_id)
        session_id = uuid.uuid4().hex
        events: list = []
        self.session_events[session_id] = events
        self.sessions[session_id] = LoggingSession(
            plan.id,
            plan.title,
            day,
            persist=self.logs.save,
            alerts=self._alerts_for(events),
            clock=self.clock,
            default_rest=self.settings.get_int("rest_default_seconds", 90),
        )
        self.last_seen[session_id] = self.clock()
        logger.info("Opened session %s for plan %s day %s", session_id, plan_id, day_id)
        return session_id

    def close_session(self, session_id: str) -> None:
        session = self.sessions.pop(session_id, None)
        self.session_events.pop(session_id, None)
        self.last_seen.pop(session_id, None)
        if session is not None:
            session.close()

    def _session(self, session_id: str) -> LoggingSession:
        self.evict_idle_sessions()
        session = self.sessions.get(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail="session not found")
        self.last_seen[session_id] = self.clock()
        return session

    def _session_payload(self, session_id: str) -> dict:
        session = self.sessions[session_id]
        session.poll()
        events = self.session_events.get(session_id, [])
        payload = session.to_dict()
        payload["session_id"] = session_id
        payload["alerts"] = list(events)
        events.clear()
        if session.showing_summary:
            summary = session.summary()
            payload["summary"] = {
                "total_volume": summary.total_volume,
                "total_minutes": summary.total_minutes,
                "completed_sets": summary.completed_sets,
                "total_sets": summary.total_sets,
            }
        return payload

    def _setup_routes(self) -> None:
        @self.app.get("/health")
        def health():
            return {"status": "ok"}

        @self.app.get("/settings")
        def get_settings():
            data = self.settings.all_settings()
            data.pop("api_token", None)
            return data

        @self.app.put("/settings/{key}")
        def update_setting(key: str, value: str):
            try:
                self.settings.set_text(key, value)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"status": "updated"}

        @self.app.post(
            "/plans",
            summary="Create plan",
            description="Store a workout plan with its days and exercises.",
        )
        def create_plan(plan: WorkoutPlan):
            try:
                plan_id = self.plans.create(plan)
            except ValueError as e:
                raise _http_error(e)
            return {"id": plan_id}

        @self.app.get("/plans")
        def list_plans():
            return [p.model_dump(mode="json") for p in self.plans.fetch_all_plans()]

        @self.app.get("/plans/{plan_id}")
        def get_plan(plan_id: str):
            try:
                return self.plans.fetch(plan_id).model_dump(mode="json")
            except ValueError as e:
                raise _http_error(e)

        @self.app.put("/plans/{plan_id}/public")
        def set_plan_public(plan_id: str, is_public: bool):
            try:
                self.plans.set_public(plan_id, is_public)
            except ValueError as e:
                raise _http_error(e)
            return {"status": "updated"}

        @self.app.post("/plans/{plan_id}/duplicate")
        def duplicate_plan(plan_id: str, title: str | None = None):
            try:
                return {"id": self.plans.duplicate(plan_id, title)}
            except ValueError as e:
                raise _http_error(e)

        @self.app.delete("/plans/{plan_id}")
        def delete_plan(plan_id: str):
            try:
                self.plans.delete(plan_id)
            except ValueError as e:
                raise _http_error(e)
            return {"status": "deleted"}

        @self.app.post("/plans/{plan_id}/days/{day_id}/exercises")
        def add_plan_exercise(plan_id: str, day_id: str, exercise: PlannedExercise):
            try:
                self.plans.fetch_day(plan_id, day_id)
                position = self.plans.add_exercise(day_id, exercise)
            except ValueError as e:
                raise _http_error(e)
            return {"position": position}

        @self.app.put("/plans/{plan_id}/days/{day_id}/exercises/{position}")
        def update_plan_exercise(
            plan_id: str, day_id: str, position: int, exercise: PlannedExercise
        ):
            try:
                self.plans.fetch_day(plan_id, day_id)
                self.plans.update_exercise(day_id, position, exercise)
            except ValueError as e:
                raise _http_error(e)
            return {"status": "updated"}

        @self.app.delete("/plans/{plan_id}/days/{day_id}/exercises/{position}")
        def delete_plan_exercise(plan_id: str, day_id: str, position: int):
            try:
                self.plans.fetch_day(plan_id, day_id)
                self.plans.delete_exercise(day_id, position)
            except ValueError as e:
                raise _http_error(e)
            return {"status": "deleted"}

        @self.app.get("/rest/parse")
        def parse_rest(value: str = ""):
            return {"seconds": parse_rest_duration(value)}

        @self.app.post(
            "/sessions",
            summary="Open logging session",
            description="Start the session clock for one day of a plan.",
        )
        def open_session(plan_id: str, day_id: str):
            try:
                session_id = self.open_session(plan_id, day_id)
            except ValueError as e:
                raise _http_error(e)
            return self._session_payload(session_id)

        @self.app.get("/sessions/{session_id}")
        def get_session(session_id: str):
            self._session(session_id)
            return self._session_payload(session_id)

        @self.app.put("/sessions/{session_id}/sets/{exercise_index}/{set_index}")
        def update_set(
            session_id: str,
            exercise_index: int,
            set_index: int,
            weight: str | None = None,
            reps: str | None = None,
            rpe: str | None = None,
            set_type: str | None = None,
        ):
            session = self._session(session_id)
            try:
                kind = SetType(set_type) if set_type is not None else None
                if weight is not None:
                    session.update_weight(exercise_index, set_index, weight)
                if reps is not None:
                    session.update_reps(exercise_index, set_index, reps)
                if rpe is not None:
                    session.update_rpe(exercise_index, set_index, rpe)
                if kind is not None:
                    session.update_type(exercise_index, set_index, kind.value)
            except ValueError as e:
                raise _http_error(e)
            return self._session_payload(session_id)

        @self.app.put("/sessions/{session_id}/exercises/{exercise_index}/notes")
        def update_notes(session_id: str, exercise_index: int, notes: str = ""):
            session = self._session(session_id)
            try:
                session.update_notes(exercise_index, notes)
            except ValueError as e:
                raise _http_error(e)
            return self._session_payload(session_id)

        @self.app.post("/sessions/{session_id}/sets/{exercise_index}/{set_index}/toggle")
        def toggle_set(session_id: str, exercise_index: int, set_index: int):
            session = self._session(session_id)
            try:
                session.toggle_set(exercise_index, set_index)
            except ValueError as e:
                raise _http_error(e)
            return self._session_payload(session_id)

        @self.app.post("/sessions/{session_id}/rest/start")
        def start_rest(
            session_id: str,
            exercise_index: int | None = None,
            seconds: int | None = None,
        ):
            session = self._session(session_id)
            try:
                session.start_rest(exercise_index, seconds)
            except ValueError as e:
                raise _http_error(e)
            return self._session_payload(session_id)

        @self.app.post("/sessions/{session_id}/rest/add")
        def add_rest(session_id: str, seconds: int = 30):
            session = self._session(session_id)
            try:
                session.add_rest_time(seconds)
            except ValueError as e:
                raise _http_error(e)
            return self._session_payload(session_id)

        @self.app.post("/sessions/{session_id}/rest/skip")
        def skip_rest(session_id: str):
            session = self._session(session_id)
            session.skip_rest()
            return self._session_payload(session_id)

        @self.app.post("/sessions/{session_id}/summary")
        def enter_summary(session_id: str):
            session = self._session(session_id)
            session.enter_summary()
            return self._session_payload(session_id)

        @self.app.delete("/sessions/{session_id}/summary")
        def leave_summary(session_id: str):
            session = self._session(session_id)
            session.leave_summary()
            return self._session_payload(session_id)

        @self.app.post(
            "/sessions/{session_id}/save",
            summary="Save session",
            description="Persist the finished session once and close it.",
        )
        def save_session(session_id: str):
            session = self._session(session_id)
            try:
                log = session.save()
            except ValueError as e:
                raise _http_error(e)
            self.close_session(session_id)
            return self.logs.fetch(log.id).model_dump(mode="json")

        @self.app.delete("/sessions/{session_id}")
        def close_session(session_id: str):
            self._session(session_id)
            self.close_session(session_id)
            return {"status": "closed"}

        @self.app.websocket("/sessions/{session_id}/live")
        async def live_session(websocket: WebSocket, session_id: str):
            session = self.sessions.get(session_id)
            if session is None:
                await websocket.close(code=1008)
                return
            await websocket.accept()

            async def push() -> None:
                if session_id in self.sessions:
                    self.last_seen[session_id] = self.clock()
                    await websocket.send_json(self._session_payload(session_id))

            await push()
            ticker = asyncio.create_task(poll_forever(session.timers, push))
            try:
                while True:
                    await websocket.receive_text()
            except WebSocketDisconnect:
                pass
            finally:
                ticker.cancel()

        @self.app.get("/alerts/beep.wav")
        def beep_wav():
            samples = synthesize_beeps(
                frequency=self.settings.get_float("beep_frequency", 880.0)
            )
            return Response(content=encode_wav(samples), media_type="audio/wav")

        @self.app.get("/logs")
        def list_logs(start_date: str | None = None, end_date: str | None = None):
            return [
                log.model_dump(mode="json")
                for log in self.logs.fetch_all_logs(start_date, end_date)
            ]

        @self.app.get("/logs/export_csv")
        def export_logs_csv():
            return Response(
                content=self.logs.export_csv(),
                media_type="text/csv",
                headers={"Content-Disposition": "attachment; filename=logs.csv"},
            )

        @self.app.get("/logs/{log_id}")
        def get_log(log_id: str):
            try:
                return self.logs.fetch(log_id).model_dump(mode="json")
            except ValueError as e:
                raise _http_error(e)

        @self.app.get("/logs/{log_id}/export_json")
        def export_log_json(log_id: str):
            try:
                data = self.logs.export_log_json(log_id)
            except ValueError as e:
                raise _http_error(e)
            return Response(
                content=data,
                media_type="application/json",
                headers={"Content-Disposition": f"attachment; filename=log_{log_id}.json"},
            )

        @self.app.delete("/logs/{log_id}")
        def delete_log(log_id: str):
            try:
                self.logs.delete(log_id)
            except ValueError as e:
                raise _http_error(e)
            return {"status": "deleted"}

        @self.app.post("/metrics")
        def add_metric(
            weight: float,
            date: str | None = None,
            body_fat: float | None = None,
            muscle_mass: float | None = None,
            notes: str | None = None,
        ):
            try:
                mid = self.metrics.add(
                    date or datetime.date.today().isoformat(),
                    weight,
                    body_fat,
                    muscle_mass,
                    notes,
                )
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"id": mid}

        @self.app.get("/metrics")
        def list_metrics():
            return self.metrics.fetch_history()

        @self.app.get("/metrics/change")
        def metric_change():
            return {"change": self.metrics.weight_change()}

        @self.app.delete("/metrics/{metric_id}")
        def delete_metric(metric_id: int):
            try:
                self.metrics.delete(metric_id)
            except ValueError as e:
                raise _http_error(e)
            return {"status": "deleted"}

        @self.app.post("/goals")
        def add_goal(title: str, category: str = "other", target_date: str | None = None):
            try:
                gid = self.goals.add(title, category, target_date)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"id": gid}

        @self.app.get("/goals")
        def list_goals():
            return self.goals.fetch_all_goals()

        @self.app.post("/goals/{goal_id}/toggle")
        def toggle_goal(goal_id: int):
            try:
                return {"completed": self.goals.toggle(goal_id)}
            except ValueError as e:
                raise _http_error(e)

        @self.app.delete("/goals/{goal_id}")
        def delete_goal(goal_id: int):
            try:
                self.goals.delete(goal_id)
            except ValueError as e:
                raise _http_error(e)
            return {"status": "deleted"}

        @self.app.post("/payments")
        def add_payment(
            amount: float | None = None,
            date: str | None = None,
            expiry_date: str | None = None,
            method: str = "Cash",
            notes: str | None = None,
        ):
            try:
                paid = (
                    datetime.date.today()
                    if date is None
                    else datetime.date.fromisoformat(date)
                )
                expiry = expiry_date or MathTools.add_months(paid).isoformat()
                pid = self.payments.add(
                    amount
                    if amount is not None
                    else self.settings.get_float("default_payment_amount", 45.0),
                    paid.isoformat(),
                    expiry,
                    method,
                    notes,
                )
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"id": pid}

        @self.app.get("/payments")
        def list_payments():
            return self.payments.fetch_all_payments()

        @self.app.get("/payments/status")
        def payment_status():
            return self.payments.status()

        @self.app.delete("/payments/{payment_id}")
        def delete_payment(payment_id: int):
            try:
                self.payments.delete(payment_id)
            except ValueError as e:
                raise _http_error(e)
            return {"status": "deleted"}

        @self.app.get("/stats/dashboard")
        def stats_dashboard():
            return self.statistics.dashboard()

        @self.app.get("/stats/home")
        def stats_home():
            return self.statistics.home()

        @self.app.get("/stats/volume")
        def stats_volume(start_date: str | None = None, end_date: str | None = None):
            return self.statistics.history_volume(start_date, end_date)

        @self.app.get("/stats/exercise_progress")
        def stats_exercise_progress(name: str):
            return self.statistics.exercise_progress(name)


api = PituGymAPI(
    os.environ.get("DB_PATH", "pitugym.db"),
    os.environ.get("YAML_PATH", "settings.yaml"),
)
app = api.app

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app)
