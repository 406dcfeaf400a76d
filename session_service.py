"""Session timer and set-logging engine.

A :class:`LoggingSession` models one open logging screen. It owns a
:class:`~timers.TimerGroup` with two independent periodic timers (the
elapsed-session clock and, while a rest interval is open, the rest
countdown), a :class:`SetLedger` holding the editable weight/reps grid and
the summary/persist flow producing a single :class:`~workout_types.WorkoutLog`.
"""

import datetime
import logging
import math
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from alerts import AlertSink
from timers import Clock, TimerGroup
from tools import MathTools, TimeFormatter
from workout_types import ExerciseLog, SetLog, SetType, WorkoutDay, WorkoutLog

logger = logging.getLogger(__name__)

DEFAULT_REST_SECONDS = 90
PROGRESS_RING_CIRCUMFERENCE = 282.7


def parse_rest_duration(text: Optional[str], default: int = DEFAULT_REST_SECONDS) -> int:
    """Return the rest duration in seconds described by ``text``.

    ``2'30"`` reads as minutes and seconds, ``90s`` as a bare second count.
    Empty or ``-`` means no rest. A value without a leading number falls
    back to ``default``.
    """
    if not text or text == "-":
        return 0
    if "'" in text:
        parts = text.split("'")
        mins = MathTools.leading_int(parts[0]) or 0
        secs = MathTools.leading_int(parts[1].replace('"', "")) or 0
        return max(mins * 60 + secs, 0)
    seconds = MathTools.leading_int(text.replace("s", "", 1)) or default
    return max(seconds, 0)


def coerce_weight(value) -> float:
    """Normalize a weight entry; anything non-numeric or negative becomes 0."""
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        number = MathTools.leading_float(str(value))
        if number is None:
            return 0.0
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


def coerce_reps(value) -> int:
    """Normalize a reps entry; anything non-numeric or negative becomes 0."""
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, int):
        number = value
    elif isinstance(value, float):
        number = int(value) if math.isfinite(value) else 0
    else:
        number = MathTools.leading_int(str(value)) or 0
    return max(number, 0)


def total_volume(exercises: Iterable[ExerciseLog]) -> float:
    """Sum of weight x reps over every set, completed or not."""
    return MathTools.volume(
        (s.reps, s.weight) for ex in exercises for s in ex.sets
    )


@dataclass(frozen=True)
class RestIdle:
    pass


@dataclass(frozen=True)
class RestCounting:
    remaining: int
    original: int
    label: str
    exercise_index: Optional[int] = None
    exercise_total: int = 0

    @property
    def ratio(self) -> float:
        return self.remaining / self.original if self.original > 0 else 0.0


RestTimerState = Union[RestIdle, RestCounting]
REST_IDLE = RestIdle()


def progress_offset(
    state: RestTimerState, circumference: float = PROGRESS_RING_CIRCUMFERENCE
) -> float:
    """Stroke offset of the progress ring for ``state``."""
    if not isinstance(state, RestCounting) or state.original <= 0:
        return 0.0
    return circumference - state.ratio * circumference


class RestCountdown:
    """At-most-one-active rest interval with an alert on natural expiry."""

    TIMER_NAME = "rest"

    def __init__(self, timers: TimerGroup, alerts: Optional[AlertSink] = None) -> None:
        self.timers = timers
        self.alerts = alerts or AlertSink()
        self.state: RestTimerState = REST_IDLE
        self.activations = 0
        self.expirations = 0

    @property
    def is_counting(self) -> bool:
        return isinstance(self.state, RestCounting)

    def start(
        self,
        duration: int,
        label: str,
        exercise_index: Optional[int] = None,
        exercise_total: int = 0,
    ) -> bool:
        if self.is_counting:
            logger.debug("Rest already counting, ignoring start for %s", label)
            return False
        if duration <= 0:
            return False
        self.state = RestCounting(
            remaining=duration,
            original=duration,
            label=label,
            exercise_index=exercise_index,
            exercise_total=exercise_total,
        )
        self.activations += 1
        self.timers.start(self.TIMER_NAME, 1.0, self.tick)
        logger.debug("Rest started: %ss before %s", duration, label)
        return True

    def tick(self) -> None:
        state = self.state
        if not isinstance(state, RestCounting):
            return
        if state.remaining <= 1:
            self._finish(expired=True)
            return
        self.state = replace(state, remaining=state.remaining - 1)

    def add_time(self, seconds: int) -> bool:
        if seconds <= 0:
            raise ValueError("seconds must be positive")
        state = self.state
        if not isinstance(state, RestCounting):
            return False
        self.state = replace(
            state,
            remaining=state.remaining + seconds,
            original=state.original + seconds,
        )
        return True

    def skip(self) -> bool:
        if not self.is_counting:
            return False
        self._finish(expired=False)
        return True

    def _finish(self, expired: bool) -> None:
        self.timers.cancel(self.TIMER_NAME)
        self.state = REST_IDLE
        if expired:
            self.expirations += 1
            logger.debug("Rest expired")
            self.alerts.rest_finished()


class ElapsedClock:
    """Free-running seconds counter for an open session."""

    TIMER_NAME = "session"

    def __init__(self, timers: TimerGroup) -> None:
        self.timers = timers
        self.seconds = 0
        self.running = False

    def start(self) -> None:
        if self.running:
            return
        self.timers.start(self.TIMER_NAME, 1.0, self._tick)
        self.running = True

    def _tick(self) -> None:
        self.seconds += 1

    def stop(self) -> int:
        self.timers.cancel(self.TIMER_NAME)
        self.running = False
        return self.seconds

    @property
    def minutes(self) -> int:
        return TimeFormatter.minutes(self.seconds)


class SetLedger:
    """Editable weight/reps grid for one workout day plus completion flags."""

    def __init__(self, day: WorkoutDay) -> None:
        self.day = day
        self.exercises: List[ExerciseLog] = [
            ExerciseLog(name=ex.name, sets=[SetLog() for _ in range(ex.sets)])
            for ex in day.exercises
        ]
        self.completed: Dict[Tuple[int, int], bool] = {}

    def _cell(self, exercise_index: int, set_index: int) -> SetLog:
        if not 0 <= exercise_index < len(self.exercises):
            raise ValueError("exercise not found")
        sets = self.exercises[exercise_index].sets
        if not 0 <= set_index < len(sets):
            raise ValueError("set not found")
        return sets[set_index]

    def update_weight(self, exercise_index: int, set_index: int, value) -> float:
        cell = self._cell(exercise_index, set_index)
        cell.weight = coerce_weight(value)
        return cell.weight

    def update_reps(self, exercise_index: int, set_index: int, value) -> int:
        cell = self._cell(exercise_index, set_index)
        cell.reps = coerce_reps(value)
        return cell.reps

    def update_rpe(self, exercise_index: int, set_index: int, value) -> Optional[int]:
        cell = self._cell(exercise_index, set_index)
        if value is None or value == "":
            cell.rpe = None
        else:
            cell.rpe = int(MathTools.clamp(coerce_reps(value), 1, 10))
        return cell.rpe

    def update_type(self, exercise_index: int, set_index: int, value: str) -> SetType:
        cell = self._cell(exercise_index, set_index)
        cell.type = SetType(value)
        return cell.type

    def update_notes(self, exercise_index: int, notes: str) -> None:
        if not 0 <= exercise_index < len(self.exercises):
            raise ValueError("exercise not found")
        self.exercises[exercise_index].notes = notes or ""

    def is_completed(self, exercise_index: int, set_index: int) -> bool:
        return self.completed.get((exercise_index, set_index), False)

    def toggle(self, exercise_index: int, set_index: int) -> bool:
        self._cell(exercise_index, set_index)
        key = (exercise_index, set_index)
        self.completed[key] = not self.completed.get(key, False)
        return self.completed[key]

    def rest_spec(self, exercise_index: int) -> str:
        return self.day.exercises[exercise_index].rest

    def exercise_completed(self, exercise_index: int) -> bool:
        sets = self.exercises[exercise_index].sets
        return bool(sets) and all(
            self.is_completed(exercise_index, i) for i in range(len(sets))
        )

    def completed_count(self) -> int:
        return sum(1 for done in self.completed.values() if done)

    def set_count(self) -> int:
        return sum(len(ex.sets) for ex in self.exercises)

    def total_volume(self) -> float:
        return total_volume(self.exercises)

    def snapshot(self) -> List[ExerciseLog]:
        return [ex.model_copy(deep=True) for ex in self.exercises]


@dataclass(frozen=True)
class SessionSummary:
    total_volume: float
    elapsed_seconds: int
    total_minutes: int
    completed_sets: int
    total_sets: int


class LoggingSession:
    """One logging screen from open to close or save.

    Every action first catches the timers up to the host clock, then applies
    the edit, so ticks and user input interleave in real order.
    """

    def __init__(
        self,
        plan_id: str,
        plan_title: str,
        day: WorkoutDay,
        persist: Optional[Callable[[WorkoutLog], object]] = None,
        alerts: Optional[AlertSink] = None,
        clock: Clock = time.monotonic,
        default_rest: int = DEFAULT_REST_SECONDS,
    ) -> None:
        self.plan_id = plan_id
        self.plan_title = plan_title
        self.day = day
        self.persist = persist
        self.default_rest = default_rest
        self.timers = TimerGroup(clock)
        self.clock = ElapsedClock(self.timers)
        self.rest = RestCountdown(self.timers, alerts)
        self.ledger = SetLedger(day)
        self.showing_summary = False
        self.saved_log: Optional[WorkoutLog] = None
        self.clock.start()
        logger.debug("Opened session for %s / %s", plan_title, day.day_name)

    def __enter__(self) -> "LoggingSession":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self.timers.closed

    def _require_open(self) -> None:
        if self.saved_log is not None:
            raise ValueError("session already saved")
        if self.closed:
            raise ValueError("session is closed")

    def poll(self, now: Optional[float] = None) -> int:
        return self.timers.poll(now)

    def _begin(self) -> None:
        self._require_open()
        self.poll()

    def update_weight(self, exercise_index: int, set_index: int, value) -> float:
        self._begin()
        return self.ledger.update_weight(exercise_index, set_index, value)

    def update_reps(self, exercise_index: int, set_index: int, value) -> int:
        self._begin()
        return self.ledger.update_reps(exercise_index, set_index, value)

    def update_rpe(self, exercise_index: int, set_index: int, value) -> Optional[int]:
        self._begin()
        return self.ledger.update_rpe(exercise_index, set_index, value)

    def update_type(self, exercise_index: int, set_index: int, value: str) -> SetType:
        self._begin()
        return self.ledger.update_type(exercise_index, set_index, value)

    def update_notes(self, exercise_index: int, notes: str) -> None:
        self._begin()
        self.ledger.update_notes(exercise_index, notes)

    def toggle_set(self, exercise_index: int, set_index: int) -> bool:
        """Flip completion; completing a set opens its rest interval."""
        self._begin()
        done = self.ledger.toggle(exercise_index, set_index)
        if done:
            duration = parse_rest_duration(
                self.ledger.rest_spec(exercise_index), self.default_rest
            )
            if duration > 0:
                self.rest.start(
                    duration,
                    self.ledger.exercises[exercise_index].name,
                    exercise_index,
                    len(self.ledger.exercises),
                )
        return done

    def start_rest(
        self, exercise_index: Optional[int] = None, duration: Optional[int] = None
    ) -> bool:
        self._begin()
        if exercise_index is None:
            label = self.day.day_name
        else:
            if not 0 <= exercise_index < len(self.ledger.exercises):
                raise ValueError("exercise not found")
            label = self.ledger.exercises[exercise_index].name
        return self.rest.start(
            self.default_rest if duration is None else duration,
            label,
            exercise_index,
            len(self.ledger.exercises),
        )

    def add_rest_time(self, seconds: int) -> bool:
        self._begin()
        return self.rest.add_time(seconds)

    def skip_rest(self) -> bool:
        self._begin()
        return self.rest.skip()

    def total_volume(self) -> float:
        return self.ledger.total_volume()

    def summary(self) -> SessionSummary:
        return SessionSummary(
            total_volume=self.ledger.total_volume(),
            elapsed_seconds=self.clock.seconds,
            total_minutes=self.clock.minutes,
            completed_sets=self.ledger.completed_count(),
            total_sets=self.ledger.set_count(),
        )

    def enter_summary(self) -> SessionSummary:
        self._begin()
        self.showing_summary = True
        return self.summary()

    def leave_summary(self) -> None:
        self._begin()
        self.showing_summary = False

    def save(self) -> WorkoutLog:
        """Package the session once and hand it to the persistence callable."""
        self._begin()
        if not self.showing_summary:
            raise ValueError("open the summary before saving")
        log = WorkoutLog(
            plan_id=self.plan_id,
            plan_title=self.plan_title,
            day_name=self.day.day_name,
            date=datetime.datetime.now(datetime.timezone.utc).isoformat(
                timespec="seconds"
            ),
            exercises=self.ledger.snapshot(),
            total_volume=self.ledger.total_volume(),
            duration_seconds=self.clock.seconds,
        )
        if self.persist is not None:
            self.persist(log)
        self.saved_log = log
        self.close()
        logger.info(
            "Saved session %s: volume %.1f in %s min",
            log.id,
            log.total_volume,
            TimeFormatter.minutes(log.duration_seconds),
        )
        return log

    def close(self) -> None:
        if self.closed:
            return
        self.rest.skip()
        self.clock.stop()
        self.timers.close()

    def to_dict(self) -> dict:
        state = self.rest.state
        rest = {"active": False}
        if isinstance(state, RestCounting):
            rest = {
                "active": True,
                "remaining": state.remaining,
                "original": state.original,
                "label": state.label,
                "exercise_index": state.exercise_index,
                "exercise_total": state.exercise_total,
                "ratio": round(state.ratio, 4),
                "offset": round(progress_offset(state), 2),
            }
        return {
            "plan_id": self.plan_id,
            "plan_title": self.plan_title,
            "day_name": self.day.day_name,
            "elapsed_seconds": self.clock.seconds,
            "clock": TimeFormatter.clock(self.clock.seconds),
            "rest": rest,
            "exercises": [ex.model_dump(mode="json") for ex in self.ledger.exercises],
            "completed": [
                [ex_idx, set_idx]
                for (ex_idx, set_idx), done in sorted(self.ledger.completed.items())
                if done
            ],
            "total_volume": self.ledger.total_volume(),
            "showing_summary": self.showing_summary,
            "closed": self.closed,
            "saved_log_id": self.saved_log.id if self.saved_log else None,
        }
