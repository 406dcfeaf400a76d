import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import (
    BodyMetricRepository,
    GoalItemRepository,
    PlanRepository,
    WorkoutLogRepository,
)
from stats_service import StatisticsService
from workout_types import ExerciseLog, SetLog, WorkoutLog, WorkoutPlan


def _log(date: str, weight: float, reps: int) -> WorkoutLog:
    sets = [SetLog(weight=weight, reps=reps), SetLog(weight=weight, reps=reps)]
    return WorkoutLog(
        plan_id="p",
        plan_title="Plan",
        day_name="A",
        date=date,
        exercises=[ExerciseLog(name="Squat", sets=sets)],
        total_volume=2 * weight * reps,
    )


class StatisticsServiceTest(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_stats.db"
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
        self.plans = PlanRepository(self.db_path)
        self.logs = WorkoutLogRepository(self.db_path)
        self.metrics = BodyMetricRepository(self.db_path)
        self.goals = GoalItemRepository(self.db_path)
        self.stats = StatisticsService(self.plans, self.logs, self.metrics, self.goals)

    def tearDown(self) -> None:
        if os.path.exists(self.db_path):
            os.remove(self.db_path)

    def test_empty(self) -> None:
        self.assertEqual(
            self.stats.dashboard(),
            {
                "total_plans": 0,
                "total_exercises": 0,
                "avg_frequency": "0",
                "latest_weight": None,
            },
        )
        home = self.stats.home()
        self.assertEqual(home["total_sessions"], 0)
        self.assertEqual(home["weekly_volume"], 0)
        self.assertEqual(self.stats.exercise_progress("Squat"), [])

    def test_average_frequency(self) -> None:
        self.plans.create(WorkoutPlan(title="A", frequency=3))
        self.plans.create(WorkoutPlan(title="B", frequency=4))
        self.assertEqual(self.stats.dashboard()["avg_frequency"], "3.5")

    def test_weekly_volume_uses_last_seven_logs(self) -> None:
        for day in range(1, 10):
            self.logs.save(_log(f"2024-01-{day:02d}T10:00:00+00:00", 10, day))
        home = self.stats.home()
        self.assertEqual(home["total_sessions"], 9)
        # days 3..9, two sets of 10 kg each
        self.assertEqual(home["weekly_volume"], sum(20 * d for d in range(3, 10)))

    def test_exercise_progress(self) -> None:
        self.logs.save(_log("2024-01-01T10:00:00+00:00", 100, 5))
        self.logs.save(_log("2024-01-08T10:00:00+00:00", 110, 3))
        progress = self.stats.exercise_progress("Squat")
        self.assertEqual([p["date"] for p in progress], ["2024-01-01", "2024-01-08"])
        self.assertEqual(progress[1]["max_weight"], 110)
        self.assertEqual(progress[0]["est_1rm"], round(100 * (1 + 0.0333 * 5), 1))
        self.assertEqual(progress[0]["volume"], 1000)
        self.assertEqual(self.stats.exercise_names(), ["Squat"])
        volume = self.stats.history_volume("2024-01-05")
        self.assertEqual(len(volume), 1)


if __name__ == "__main__":
    unittest.main()
