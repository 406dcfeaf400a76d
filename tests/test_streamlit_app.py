import os
import sys
import unittest

from streamlit.testing.v1 import AppTest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import PlanRepository, SettingsRepository, WorkoutLogRepository
from streamlit_app import parse_exercise_lines
from workout_types import PlannedExercise, WorkoutDay, WorkoutPlan


class StreamlitAppTest(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_gui.db"
        self.yaml_path = "test_gui_settings.yaml"
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)
        os.environ["DB_PATH"] = self.db_path
        os.environ["YAML_PATH"] = self.yaml_path
        os.environ["TEST_MODE"] = "1"
        self.plan = WorkoutPlan(
            title="Upper",
            days=[
                WorkoutDay(
                    day_name="Push",
                    exercises=[
                        PlannedExercise(name="Bench Press", sets=2, reps="8", rest="90s")
                    ],
                )
            ],
        )
        PlanRepository(self.db_path).create(self.plan)
        self.at = AppTest.from_file("../streamlit_app.py", default_timeout=20)
        self.at.run(timeout=20)

    def tearDown(self) -> None:
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)

    def _start(self) -> None:
        day_id = self.plan.days[0].id
        self.at.button(key=f"start_{day_id}").click().run()

    def test_tabs_present(self) -> None:
        labels = [t.label for t in self.at.tabs]
        self.assertEqual(
            labels, ["Plans", "History", "Body", "Goals", "Payments", "Settings"]
        )
        self.assertFalse(self.at.exception)

    def test_log_and_save_session(self) -> None:
        self._start()
        self.assertFalse(self.at.exception)
        self.at.number_input(key="set_w_0_0").set_value(60.0).run()
        self.at.number_input(key="set_r_0_0").set_value(8).run()
        self.at.checkbox(key="set_d_0_0").check().run()
        session = self.at.session_state["logging_session"]
        self.assertTrue(session.rest.is_counting)
        self.assertEqual(session.rest.state.original, 90)
        self.at.button(key="rest_skip").click().run()
        self.assertFalse(session.rest.is_counting)
        self.at.button(key="finish_session").click().run()
        self.assertTrue(session.showing_summary)
        self.at.button(key="save_session").click().run()
        self.assertFalse(self.at.exception)
        logs = WorkoutLogRepository(self.db_path).fetch_all_logs()
        self.assertEqual(len(logs), 1)
        self.assertEqual(logs[0].total_volume, 480)
        self.assertIsNone(self.at.session_state["logging_session"])

    def test_preset_and_extend(self) -> None:
        self._start()
        self.at.button(key="rest_preset_45").click().run()
        session = self.at.session_state["logging_session"]
        self.assertEqual(session.rest.state.original, 45)
        self.at.button(key="rest_add_30").click().run()
        self.assertEqual(session.rest.state.original, 75)

    def _reload(self, **settings) -> None:
        repo = SettingsRepository(self.db_path, self.yaml_path)
        for key, value in settings.items():
            repo.set_text(key, value)
        self.at = AppTest.from_file("../streamlit_app.py", default_timeout=20)
        self.at.run(timeout=20)

    def test_pound_entries_stored_as_kg(self) -> None:
        self._reload(weight_unit="lb")
        self._start()
        self.assertEqual(self.at.number_input(key="set_w_0_0").label, "Weight (lb)")
        self.at.number_input(key="set_w_0_0").set_value(100.0).run()
        self.at.number_input(key="set_r_0_0").set_value(10).run()
        session = self.at.session_state["logging_session"]
        self.assertAlmostEqual(session.ledger.exercises[0].sets[0].weight, 45.359, places=2)
        self.assertEqual(self.at.number_input(key="set_w_0_0").value, 100.0)
        totals = [m.value for m in self.at.markdown if "Total Volume" in m.value]
        self.assertEqual(len(totals), 1)
        self.assertIn("1000.0 lb", totals[0])

    def test_rest_over_banner(self) -> None:
        self._reload(sound_enabled="0", vibration_enabled="0")
        self._start()
        self.at.button(key="rest_preset_15").click().run()
        session = self.at.session_state["logging_session"]
        session.poll(session.timers.clock() + 16)
        self.at.run()
        self.assertEqual(session.rest.expirations, 1)
        self.assertIn("Rest over!", [s.value for s in self.at.success])
        self.at.button(key="rest_preset_30").click().run()
        self.assertNotIn("Rest over!", [s.value for s in self.at.success])

    def test_delete_plan_exercise(self) -> None:
        day_id = self.plan.days[0].id
        self.at.button(key=f"ex_del_{day_id}_0").click().run()
        self.assertFalse(self.at.exception)
        day = PlanRepository(self.db_path).fetch_day(self.plan.id, day_id)
        self.assertEqual(day.exercises, [])

    def test_discard_session(self) -> None:
        self._start()
        self.at.button(key="discard_session").click().run()
        self.assertIsNone(self.at.session_state["logging_session"])
        self.assertEqual(WorkoutLogRepository(self.db_path).fetch_all_logs(), [])


class PlanFormParsingTest(unittest.TestCase):
    def test_parse_lines(self) -> None:
        exercises = parse_exercise_lines("Squat | 4 | 5 | 3'\nCurl\n\n")
        self.assertEqual([e.name for e in exercises], ["Squat", "Curl"])
        self.assertEqual(exercises[0].sets, 4)
        self.assertEqual(exercises[0].rest, "3'")
        self.assertEqual(exercises[1].sets, 3)


if __name__ == "__main__":
    unittest.main()
