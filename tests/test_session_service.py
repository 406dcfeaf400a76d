import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from alerts import AlertSink, AudioChannel, HapticChannel
from session_service import (
    LoggingSession,
    RestCountdown,
    RestCounting,
    RestIdle,
    coerce_reps,
    coerce_weight,
    parse_rest_duration,
    progress_offset,
    total_volume,
)
from timers import TimerGroup
from workout_types import ExerciseLog, PlannedExercise, SetLog, WorkoutDay


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingAudio(AudioChannel):
    def __init__(self) -> None:
        self.calls = 0

    def play(self, samples, sample_rate) -> None:
        self.calls += 1


class RecordingHaptic(HapticChannel):
    def __init__(self) -> None:
        self.patterns = []

    def vibrate(self, pattern) -> None:
        self.patterns.append(tuple(pattern))


def _day(rest: str = "60s", sets: int = 3) -> WorkoutDay:
    return WorkoutDay(
        day_name="Push",
        exercises=[PlannedExercise(name="Bench Press", sets=sets, reps="10", rest=rest)],
    )


class RestParsingTest(unittest.TestCase):
    def test_minutes_and_seconds(self) -> None:
        self.assertEqual(parse_rest_duration("2'30\""), 150)
        self.assertEqual(parse_rest_duration("1'"), 60)

    def test_plain_seconds(self) -> None:
        self.assertEqual(parse_rest_duration("90s"), 90)
        self.assertEqual(parse_rest_duration("45"), 45)

    def test_empty_means_no_rest(self) -> None:
        self.assertEqual(parse_rest_duration(""), 0)
        self.assertEqual(parse_rest_duration("-"), 0)
        self.assertEqual(parse_rest_duration(None), 0)

    def test_unparseable_falls_back(self) -> None:
        self.assertEqual(parse_rest_duration("abc"), 90)
        self.assertEqual(parse_rest_duration("abc", default=120), 120)

    def test_negative_clamped(self) -> None:
        self.assertEqual(parse_rest_duration("-30"), 0)


class CoercionTest(unittest.TestCase):
    def test_weight(self) -> None:
        self.assertEqual(coerce_weight("42.5kg"), 42.5)
        self.assertEqual(coerce_weight(50), 50.0)
        self.assertEqual(coerce_weight("abc"), 0.0)
        self.assertEqual(coerce_weight("-5"), 0.0)
        self.assertEqual(coerce_weight(float("inf")), 0.0)
        self.assertEqual(coerce_weight(None), 0.0)

    def test_reps(self) -> None:
        self.assertEqual(coerce_reps("12 reps"), 12)
        self.assertEqual(coerce_reps(7.9), 7)
        self.assertEqual(coerce_reps("x"), 0)
        self.assertEqual(coerce_reps(-3), 0)

    def test_volume_includes_incomplete_sets(self) -> None:
        exercises = [
            ExerciseLog(name="A", sets=[SetLog(weight=50, reps=10), SetLog(weight=20, reps=5)]),
            ExerciseLog(name="B", sets=[SetLog()]),
        ]
        self.assertEqual(total_volume(exercises), 600.0)


class RestCountdownTest(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()
        self.timers = TimerGroup(self.clock)
        self.audio = RecordingAudio()
        self.haptic = RecordingHaptic()
        self.rest = RestCountdown(self.timers, AlertSink(self.audio, self.haptic))

    def test_second_start_is_ignored(self) -> None:
        self.assertTrue(self.rest.start(60, "Bench"))
        self.clock.advance(10)
        self.timers.poll()
        self.assertFalse(self.rest.start(120, "Squat"))
        self.assertEqual(self.rest.state.remaining, 50)
        self.assertEqual(self.rest.state.original, 60)
        self.assertEqual(self.rest.state.label, "Bench")
        self.assertEqual(self.rest.activations, 1)

    def test_zero_duration_does_not_start(self) -> None:
        self.assertFalse(self.rest.start(0, "Bench"))
        self.assertIsInstance(self.rest.state, RestIdle)

    def test_expiry_alerts_once(self) -> None:
        self.rest.start(3, "Bench")
        self.clock.advance(2)
        self.timers.poll()
        self.assertEqual(self.audio.calls, 0)
        self.clock.advance(10)
        self.timers.poll()
        self.assertIsInstance(self.rest.state, RestIdle)
        self.assertEqual(self.audio.calls, 1)
        self.assertEqual(self.haptic.patterns, [(300, 300, 300, 300, 300)])
        self.assertFalse(self.timers.is_running("rest"))

    def test_skip_has_no_alert(self) -> None:
        self.rest.start(30, "Bench")
        self.assertTrue(self.rest.skip())
        self.clock.advance(60)
        self.timers.poll()
        self.assertEqual(self.audio.calls, 0)
        self.assertEqual(self.haptic.patterns, [])
        self.assertFalse(self.rest.skip())

    def test_add_time_rescales_ratio(self) -> None:
        self.rest.start(60, "Bench")
        self.clock.advance(30)
        self.timers.poll()
        self.assertTrue(self.rest.add_time(30))
        state = self.rest.state
        self.assertEqual((state.remaining, state.original), (60, 90))
        self.assertAlmostEqual(state.ratio, 60 / 90)
        self.assertAlmostEqual(progress_offset(state), 282.7 - 282.7 * 60 / 90)

    def test_add_time_when_idle(self) -> None:
        self.assertFalse(self.rest.add_time(30))
        with self.assertRaises(ValueError):
            self.rest.add_time(0)

    def test_missing_alert_channels(self) -> None:
        rest = RestCountdown(self.timers, AlertSink())
        rest.start(1, "Bench")
        self.clock.advance(1)
        self.timers.poll()
        self.assertEqual(rest.expirations, 1)


class LoggingSessionTest(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()
        self.audio = RecordingAudio()
        self.saved = []
        self.session = LoggingSession(
            "plan-1",
            "Strength",
            _day(),
            persist=self.saved.append,
            alerts=AlertSink(self.audio, RecordingHaptic()),
            clock=self.clock,
        )

    def tearDown(self) -> None:
        self.session.close()

    def test_end_to_end_three_sets(self) -> None:
        s = self.session
        for idx in range(3):
            s.update_weight(0, idx, "50")
            s.update_reps(0, idx, "10")
            self.assertTrue(s.toggle_set(0, idx))
            self.assertIsInstance(s.rest.state, RestCounting)
            self.assertEqual(s.rest.state.original, 60)
            self.assertEqual(s.rest.state.label, "Bench Press")
            self.clock.advance(60)
            s.poll()
            self.assertIsInstance(s.rest.state, RestIdle)
        self.assertEqual(s.rest.activations, 3)
        self.assertEqual(self.audio.calls, 3)
        self.assertEqual(s.total_volume(), 1500)
        s.enter_summary()
        log = s.save()
        self.assertEqual(self.saved, [log])
        self.assertEqual(log.total_volume, 1500)
        self.assertEqual(len(log.exercises), 1)
        self.assertEqual(
            [(st.weight, st.reps) for st in log.exercises[0].sets], [(50.0, 10)] * 3
        )
        self.assertEqual(log.duration_seconds, 180)
        self.assertTrue(s.closed)

    def test_uncomplete_keeps_running_rest(self) -> None:
        self.session.toggle_set(0, 0)
        self.clock.advance(5)
        self.assertFalse(self.session.toggle_set(0, 0))
        self.assertIsInstance(self.session.rest.state, RestCounting)
        self.assertEqual(self.session.rest.state.remaining, 55)

    def test_no_rest_for_dash(self) -> None:
        session = LoggingSession("p", "t", _day(rest="-"), clock=self.clock)
        session.toggle_set(0, 0)
        self.assertIsInstance(session.rest.state, RestIdle)
        session.close()

    def test_manual_rest_uses_default(self) -> None:
        self.assertTrue(self.session.start_rest())
        self.assertEqual(self.session.rest.state.original, 90)
        self.assertEqual(self.session.rest.state.label, "Push")

    def test_zero_duration_manual_rest_is_ignored(self) -> None:
        self.assertFalse(self.session.start_rest(None, 0))
        self.assertIsInstance(self.session.rest.state, RestIdle)
        self.assertEqual(self.session.rest.activations, 0)

    def test_clocks_are_independent(self) -> None:
        self.clock.advance(10)
        self.session.start_rest(0, 5)
        self.clock.advance(20)
        self.session.poll()
        self.assertEqual(self.session.clock.seconds, 30)
        self.assertIsInstance(self.session.rest.state, RestIdle)

    def test_late_poll_catches_up(self) -> None:
        self.session.toggle_set(0, 0)
        self.clock.advance(125)
        self.session.poll()
        self.assertEqual(self.session.clock.seconds, 125)
        self.assertEqual(self.audio.calls, 1)

    def test_save_requires_summary(self) -> None:
        with self.assertRaises(ValueError):
            self.session.save()
        self.session.enter_summary()
        self.session.leave_summary()
        self.assertFalse(self.session.showing_summary)
        with self.assertRaises(ValueError):
            self.session.save()

    def test_save_only_once(self) -> None:
        self.session.enter_summary()
        self.session.save()
        with self.assertRaises(ValueError):
            self.session.save()
        with self.assertRaises(ValueError):
            self.session.update_weight(0, 0, 10)
        self.assertEqual(len(self.saved), 1)

    def test_failed_persist_keeps_session_open(self) -> None:
        def fail(log):
            raise RuntimeError("disk full")

        session = LoggingSession("p", "t", _day(), persist=fail, clock=self.clock)
        session.enter_summary()
        with self.assertRaises(RuntimeError):
            session.save()
        self.assertFalse(session.closed)
        self.assertIsNone(session.saved_log)
        session.close()

    def test_close_cancels_timers(self) -> None:
        self.session.toggle_set(0, 0)
        self.session.close()
        self.assertEqual(self.session.timers.running(), [])
        self.clock.advance(100)
        self.session.poll()
        self.assertEqual(self.audio.calls, 0)

    def test_invalid_indices(self) -> None:
        with self.assertRaises(ValueError):
            self.session.update_weight(3, 0, 10)
        with self.assertRaises(ValueError):
            self.session.toggle_set(0, 5)

    def test_rpe_and_type(self) -> None:
        self.assertEqual(self.session.update_rpe(0, 0, "12"), 10)
        self.assertIsNone(self.session.update_rpe(0, 0, ""))
        self.assertEqual(self.session.update_type(0, 0, "warmup").value, "warmup")
        with self.assertRaises(ValueError):
            self.session.update_type(0, 0, "bogus")

    def test_to_dict(self) -> None:
        self.session.update_weight(0, 0, 40)
        self.session.update_reps(0, 0, 8)
        self.session.toggle_set(0, 0)
        self.clock.advance(15)
        self.session.poll()
        data = self.session.to_dict()
        self.assertEqual(data["clock"], "0:15")
        self.assertEqual(data["completed"], [[0, 0]])
        self.assertEqual(data["rest"]["remaining"], 45)
        self.assertEqual(data["total_volume"], 320)


if __name__ == "__main__":
    unittest.main()
