import datetime
import json
import logging
import os
import time
from typing import Optional, Sequence

import numpy as np
import pandas as pd
import streamlit as st
import streamlit.components.v1 as components

from alerts import AlertSink, AudioChannel, HapticChannel
from db import (
    PlanRepository,
    WorkoutLogRepository,
    BodyMetricRepository,
    GoalItemRepository,
    PaymentRepository,
    SettingsRepository,
)
from localization import translator
from session_service import LoggingSession, RestCounting
from stats_service import StatisticsService
from tools import MathTools, TimeFormatter, WeightConverter
from workout_types import PlannedExercise, WorkoutDay, WorkoutPlan

logger = logging.getLogger(__name__)

GRID_KEY_PREFIXES = ("set_w_", "set_r_", "set_d_", "ex_notes_", "rest_over_")


class StreamlitAudio(AudioChannel):
    """Plays the end-of-rest beeps in the browser."""

    def play(self, samples: np.ndarray, sample_rate: int) -> None:
        st.audio(samples, sample_rate=sample_rate, autoplay=True)


class StreamlitHaptic(HapticChannel):
    def vibrate(self, pattern: Sequence[int]) -> None:
        components.html(
            f"<script>if (navigator.vibrate) navigator.vibrate({json.dumps(list(pattern))});</script>",
            height=0,
        )


def parse_exercise_lines(text: str) -> list[PlannedExercise]:
    """Read ``name | sets | reps | rest`` lines from the plan form."""
    exercises = []
    for line in text.splitlines():
        parts = [p.strip() for p in line.split("|")]
        if not parts[0]:
            continue
        sets = MathTools.leading_int(parts[1]) if len(parts) > 1 else None
        exercises.append(
            PlannedExercise(
                name=parts[0],
                sets=max(sets, 0) if sets is not None else 3,
                reps=parts[2] if len(parts) > 2 else "",
                rest=parts[3] if len(parts) > 3 else "",
            )
        )
    return exercises


class PituGymApp:
    """Streamlit screens for plans, live session logging and history."""

    def __init__(
        self, db_path: str = "pitugym.db", yaml_path: str = "settings.yaml"
    ) -> None:
        self.settings_repo = SettingsRepository(db_path, yaml_path)
        self.weight_unit = self.settings_repo.get_text("weight_unit", "kg")
        self.language = self.settings_repo.get_text("language", "en")
        translator.set_language(self.language)
        self.plans = PlanRepository(db_path)
        self.logs = WorkoutLogRepository(db_path)
        self.metrics = BodyMetricRepository(db_path)
        self.goals = GoalItemRepository(db_path)
        self.payments = PaymentRepository(db_path)
        self.stats = StatisticsService(self.plans, self.logs, self.metrics, self.goals)
        self._configure_page()
        self._state_init()

    def _t(self, text: str) -> str:
        return translator.gettext(text)

    def _configure_page(self) -> None:
        if st.session_state.get("layout_set"):
            return
        st.set_page_config(page_title="PituGym", layout="centered")
        st.session_state.layout_set = True

    def _state_init(self) -> None:
        if "logging_session" not in st.session_state:
            st.session_state.logging_session = None
        if "flash" not in st.session_state:
            st.session_state.flash = None

    def _format_weight(self, weight: float) -> str:
        if self.weight_unit == "lb":
            return f"{WeightConverter.kg_to_lb(weight):.1f} lb"
        return f"{weight:.1f} kg"

    def _to_display_unit(self, kg: float) -> float:
        if self.weight_unit == "lb":
            return WeightConverter.kg_to_lb(kg)
        return float(kg)

    def _to_kg(self, value: float) -> float:
        """Weights are stored in kg whatever unit the grid shows."""
        if self.weight_unit == "lb":
            return value / WeightConverter.KG_TO_LB
        return value

    @property
    def session(self) -> Optional[LoggingSession]:
        return st.session_state.get("logging_session")

    def _alerts(self) -> AlertSink:
        return AlertSink(
            audible=StreamlitAudio()
            if self.settings_repo.get_bool("sound_enabled", True)
            else None,
            haptic=StreamlitHaptic()
            if self.settings_repo.get_bool("vibration_enabled", True)
            else None,
            frequency=self.settings_repo.get_float("beep_frequency", 880.0),
        )

    def _start_session(self, plan_id: str, day_id: str) -> None:
        plan = self.plans.fetch(plan_id)
        day = self.plans.fetch_day(plan_id, day_id)
        self._clear_grid_keys()
        st.session_state.logging_session = LoggingSession(
            plan.id,
            plan.title,
            day,
            persist=self.logs.save,
            alerts=self._alerts(),
            default_rest=self.settings_repo.get_int("rest_default_seconds", 90),
        )

    def _end_session(self) -> None:
        session = self.session
        if session is not None:
            session.close()
        st.session_state.logging_session = None
        self._clear_grid_keys()

    def _clear_grid_keys(self) -> None:
        for key in list(st.session_state.keys()):
            if str(key).startswith(GRID_KEY_PREFIXES):
                del st.session_state[key]

    def _seed(self, key: str, value) -> None:
        if key not in st.session_state:
            st.session_state[key] = value

    def _guarded(self, action, *args) -> None:
        try:
            action(*args)
        except ValueError as e:
            logger.info("Session action rejected: %s", e)
            st.session_state.flash = str(e)

    def _on_weight(self, ex_idx: int, set_idx: int) -> None:
        value = st.session_state.get(f"set_w_{ex_idx}_{set_idx}") or 0.0
        self._guarded(
            self.session.update_weight, ex_idx, set_idx, self._to_kg(float(value))
        )

    def _on_reps(self, ex_idx: int, set_idx: int) -> None:
        value = st.session_state.get(f"set_r_{ex_idx}_{set_idx}")
        self._guarded(self.session.update_reps, ex_idx, set_idx, value)

    def _on_toggle(self, ex_idx: int, set_idx: int) -> None:
        self._guarded(self.session.toggle_set, ex_idx, set_idx)

    def _on_notes(self, ex_idx: int) -> None:
        notes = st.session_state.get(f"ex_notes_{ex_idx}", "")
        self._guarded(self.session.update_notes, ex_idx, notes)

    def _flash(self) -> None:
        message = st.session_state.get("flash")
        if message:
            st.error(message)
            st.session_state.flash = None

    # Logging screen

    def _session_header(self, session: LoggingSession) -> None:
        cols = st.columns([3, 1, 1])
        cols[0].subheader(f"{session.plan_title} · {session.day.day_name}")
        cols[1].markdown(
            f"<div id='session-clock'>⏱ {TimeFormatter.clock(session.clock.seconds)}</div>",
            unsafe_allow_html=True,
        )
        if cols[2].button(self._t("Finish"), key="finish_session"):
            self._guarded(session.enter_summary)
            st.rerun()

    def _rest_panel(self, session: LoggingSession) -> None:
        state = session.rest.state
        if isinstance(state, RestCounting):
            st.markdown(f"**{self._t('Rest in progress')}** · {state.label}")
            if state.exercise_index is not None:
                st.caption(f"{state.exercise_index + 1}/{state.exercise_total}")
            st.progress(state.ratio, text=TimeFormatter.clock(state.remaining))
            extend = self.settings_repo.get_int_list("rest_extend_options", "30,60")
            cols = st.columns(len(extend) + 1)
            for col, seconds in zip(cols, extend):
                if col.button(f"+{seconds}s", key=f"rest_add_{seconds}"):
                    self._guarded(session.add_rest_time, seconds)
                    st.rerun()
            if cols[-1].button(self._t("Skip Rest"), key="rest_skip"):
                self._guarded(session.skip_rest)
                st.rerun()
            return
        if session.rest.expirations > st.session_state.get("rest_over_seen", 0):
            st.session_state.rest_over_seen = session.rest.expirations
            st.session_state.rest_over_for = session.rest.activations
        # stays up until the next rest starts
        if st.session_state.get("rest_over_for") == session.rest.activations:
            st.success(self._t("Rest over!"))
        presets = self.settings_repo.get_int_list(
            "rest_presets", "15,30,45,90,120,180"
        )
        cols = st.columns(len(presets))
        for col, seconds in zip(cols, presets):
            if col.button(f"{seconds}s", key=f"rest_preset_{seconds}"):
                self._guarded(session.start_rest, None, seconds)
                st.rerun()

    def _set_grid(self, session: LoggingSession) -> None:
        for ex_idx, planned in enumerate(session.day.exercises):
            logged = session.ledger.exercises[ex_idx]
            done = session.ledger.exercise_completed(ex_idx)
            with st.container(border=True):
                st.markdown(f"### {'✅ ' if done else ''}{planned.name}")
                st.caption(
                    f"{planned.sets} × {planned.reps or '-'} · Rest {planned.rest or '-'}"
                )
                for set_idx, cell in enumerate(logged.sets):
                    self._seed(
                        f"set_w_{ex_idx}_{set_idx}", self._to_display_unit(cell.weight)
                    )
                    self._seed(f"set_r_{ex_idx}_{set_idx}", int(cell.reps))
                    self._seed(
                        f"set_d_{ex_idx}_{set_idx}",
                        session.ledger.is_completed(ex_idx, set_idx),
                    )
                    cols = st.columns([1, 3, 3, 2])
                    cols[0].write(f"#{set_idx + 1}")
                    cols[1].number_input(
                        f"{self._t('Weight')} ({self.weight_unit})",
                        min_value=0.0,
                        step=2.5,
                        key=f"set_w_{ex_idx}_{set_idx}",
                        on_change=self._on_weight,
                        args=(ex_idx, set_idx),
                    )
                    cols[2].number_input(
                        self._t("Reps"),
                        min_value=0,
                        step=1,
                        key=f"set_r_{ex_idx}_{set_idx}",
                        on_change=self._on_reps,
                        args=(ex_idx, set_idx),
                    )
                    cols[3].checkbox(
                        self._t("Done"),
                        key=f"set_d_{ex_idx}_{set_idx}",
                        on_change=self._on_toggle,
                        args=(ex_idx, set_idx),
                    )
                self._seed(f"ex_notes_{ex_idx}", logged.notes)
                st.text_input(
                    "Notes",
                    key=f"ex_notes_{ex_idx}",
                    on_change=self._on_notes,
                    args=(ex_idx,),
                )
                if st.button("⏱ Rest", key=f"rest_start_{ex_idx}"):
                    self._guarded(session.start_rest, ex_idx)
                    st.rerun()

    def _summary_screen(self, session: LoggingSession) -> None:
        summary = session.summary()
        st.header(self._t("Workout Finished!"))
        cols = st.columns(3)
        cols[0].metric(self._t("Total Volume"), self._format_weight(summary.total_volume))
        cols[1].metric(self._t("Total Time"), f"{summary.total_minutes} min")
        cols[2].metric("Sets", f"{summary.completed_sets}/{summary.total_sets}")
        if st.button(self._t("Save Session"), key="save_session"):
            try:
                log = session.save()
            except ValueError as e:
                st.error(str(e))
                return
            self._end_session()
            st.success(f"Saved {log.day_name} · {self._format_weight(log.total_volume)}")
            return
        if st.button(self._t("Back to Workout"), key="leave_summary"):
            self._guarded(session.leave_summary)
            st.rerun()

    def _session_screen(self, session: LoggingSession) -> None:
        session.poll()
        self._flash()
        if session.showing_summary:
            self._summary_screen(session)
            return
        self._session_header(session)
        self._rest_panel(session)
        self._set_grid(session)
        st.markdown(f"**{self._t('Total Volume')}:** {self._format_weight(session.total_volume())}")
        if st.button("Discard Session", key="discard_session"):
            self._end_session()
            st.rerun()

    # Tabs

    def _plans_tab(self) -> None:
        data = self.stats.dashboard()
        cols = st.columns(3)
        cols[0].metric("Plans", data["total_plans"])
        cols[1].metric("Exercises", data["total_exercises"])
        cols[2].metric("Avg / week", data["avg_frequency"])
        self._create_plan_form()
        plans = self.plans.fetch_all_plans()
        if not plans:
            st.info("No plans yet.")
        for plan in plans:
            with st.expander(f"{plan.title} · {plan.frequency}x/week", expanded=True):
                if plan.goal:
                    st.caption(plan.goal)
                for day in plan.days:
                    st.markdown(f"**{day.day_name}**")
                    st.table(
                        pd.DataFrame(
                            [
                                {
                                    "Exercise": ex.name,
                                    "Sets": ex.sets,
                                    "Reps": ex.reps,
                                    "Rest": ex.rest,
                                }
                                for ex in day.exercises
                            ],
                            columns=["Exercise", "Sets", "Reps", "Rest"],
                        )
                    )
                    self._day_editor(day)
                    if st.button(self._t("Start Session"), key=f"start_{day.id}"):
                        self._start_session(plan.id, day.id)
                        st.rerun()
                cols = st.columns(2)
                if cols[0].button("Duplicate", key=f"dup_{plan.id}"):
                    self.plans.duplicate(plan.id)
                    st.rerun()
                if cols[1].button("Delete", key=f"del_{plan.id}"):
                    self.plans.delete(plan.id)
                    st.rerun()

    def _day_editor(self, day: WorkoutDay) -> None:
        cols = st.columns(max(len(day.exercises), 1))
        for pos, (col, ex) in enumerate(zip(cols, day.exercises)):
            if col.button(f"✕ {ex.name}", key=f"ex_del_{day.id}_{pos}"):
                self.plans.delete_exercise(day.id, pos)
                st.rerun()
        with st.form(f"add_ex_{day.id}", clear_on_submit=True):
            line = st.text_input(
                "Add exercise (name | sets | reps | rest)", key=f"ex_add_{day.id}"
            )
            if st.form_submit_button("Add"):
                try:
                    for ex in parse_exercise_lines(line):
                        self.plans.add_exercise(day.id, ex)
                    st.rerun()
                except ValueError as e:
                    st.error(str(e))

    def _create_plan_form(self) -> None:
        with st.expander("Create New Plan"):
            with st.form("new_plan_form"):
                title = st.text_input("Title", key="plan_title")
                frequency = st.number_input(
                    "Days per week", min_value=1, max_value=7, value=3, key="plan_freq"
                )
                goal = st.text_input("Goal", key="plan_goal")
                day_name = st.text_input("Day", value="Day A", key="plan_day")
                lines = st.text_area(
                    "Exercises (name | sets | reps | rest)", key="plan_exercises"
                )
                if st.form_submit_button("Save Plan"):
                    try:
                        self.plans.create(
                            WorkoutPlan(
                                title=title,
                                frequency=int(frequency),
                                goal=goal or None,
                                days=[
                                    WorkoutDay(
                                        day_name=day_name or "Day A",
                                        exercises=parse_exercise_lines(lines),
                                    )
                                ],
                            )
                        )
                        st.success("Plan saved")
                    except ValueError as e:
                        st.error(str(e))

    def _history_tab(self) -> None:
        home = self.stats.home()
        cols = st.columns(2)
        cols[0].metric("Sessions", home["total_sessions"])
        cols[1].metric("Last 7 sessions", self._format_weight(home["weekly_volume"]))
        logs = self.logs.fetch_all_logs()
        if not logs:
            st.info("No sessions logged yet.")
            return
        df = pd.DataFrame(
            [
                {
                    "Date": log.date[:10],
                    "Plan": log.plan_title,
                    "Day": log.day_name,
                    "Volume": round(log.total_volume, 1),
                    "Minutes": TimeFormatter.minutes(log.duration_seconds),
                    "PR": any(ex.is_pr for ex in log.exercises),
                }
                for log in logs
            ]
        )
        st.dataframe(df, hide_index=True)
        volume = pd.DataFrame(self.stats.history_volume())
        if not volume.empty:
            st.line_chart(volume.set_index("date")["volume"])
        st.download_button(
            label="Export CSV",
            data=self.logs.export_csv(),
            file_name="logs.csv",
            mime="text/csv",
            key="export_logs_csv",
        )
        names = self.stats.exercise_names()
        if names:
            name = st.selectbox("Exercise progress", names, key="progress_name")
            progress = pd.DataFrame(self.stats.exercise_progress(name))
            if not progress.empty:
                st.line_chart(progress.set_index("date")["max_weight"])

    def _body_tab(self) -> None:
        latest = self.metrics.fetch_latest_weight()
        change = self.metrics.weight_change()
        st.metric(
            "Weight",
            self._format_weight(latest) if latest is not None else "-",
            delta=change,
        )
        with st.form("metric_form"):
            date = st.date_input("Date", datetime.date.today(), key="metric_date")
            weight = st.number_input("Weight (kg)", min_value=0.0, step=0.1, key="metric_weight")
            body_fat = st.number_input("Body fat %", min_value=0.0, max_value=100.0, key="metric_fat")
            if st.form_submit_button("Add Entry"):
                try:
                    self.metrics.add(date.isoformat(), weight, body_fat or None)
                    st.success("Entry added")
                except ValueError as e:
                    st.error(str(e))
        history = self.metrics.fetch_history()
        if history:
            df = pd.DataFrame(history)
            st.line_chart(df.set_index("date")["weight"])
            st.dataframe(df[["date", "weight", "body_fat"]], hide_index=True)

    def _goals_tab(self) -> None:
        st.progress(self.goals.progress() / 100, text=f"{self.goals.progress()}%")
        with st.form("goal_form"):
            title = st.text_input("Goal", key="goal_title")
            category = st.selectbox(
                "Category", sorted(GoalItemRepository.CATEGORIES), key="goal_category"
            )
            if st.form_submit_button("Add Goal"):
                try:
                    self.goals.add(title, category)
                except ValueError as e:
                    st.error(str(e))
        for goal in self.goals.fetch_all_goals():
            cols = st.columns([4, 1])
            cols[0].checkbox(
                f"{goal['title']} ({goal['category']})",
                value=goal["completed"],
                key=f"goal_{goal['id']}",
                on_change=self.goals.toggle,
                args=(goal["id"],),
            )
            if cols[1].button("Delete", key=f"goal_del_{goal['id']}"):
                self.goals.delete(goal["id"])
                st.rerun()

    def _payments_tab(self) -> None:
        status = self.payments.status()
        if status["expired"]:
            st.error(self._t("Membership Expired"))
        else:
            st.success(f"{self._t('Membership Active')} · {status['days_to_expiry']} days")
        with st.form("payment_form"):
            amount = st.number_input(
                "Amount",
                min_value=0.0,
                value=self.settings_repo.get_float("default_payment_amount", 45.0),
                key="payment_amount",
            )
            paid = st.date_input("Date", datetime.date.today(), key="payment_date")
            method = st.selectbox("Method", ["Cash", "Card", "Transfer"], key="payment_method")
            if st.form_submit_button("Add Payment"):
                try:
                    self.payments.add(
                        amount,
                        paid.isoformat(),
                        MathTools.add_months(paid).isoformat(),
                        method,
                    )
                    st.rerun()
                except ValueError as e:
                    st.error(str(e))
        payments = self.payments.fetch_all_payments()
        if payments:
            st.dataframe(
                pd.DataFrame(payments)[["date", "expiry_date", "amount", "method"]],
                hide_index=True,
            )

    def _settings_tab(self) -> None:
        with st.form("settings_form"):
            language = st.selectbox(
                "Language", ["en", "it"], index=["en", "it"].index(self.language), key="set_language"
            )
            unit = st.selectbox(
                "Weight unit", ["kg", "lb"], index=["kg", "lb"].index(self.weight_unit), key="set_unit"
            )
            rest = st.number_input(
                "Default rest (s)",
                min_value=1,
                value=self.settings_repo.get_int("rest_default_seconds", 90),
                key="set_rest",
            )
            sound = st.toggle(
                "Sound", value=self.settings_repo.get_bool("sound_enabled", True), key="set_sound"
            )
            vibration = st.toggle(
                "Vibration",
                value=self.settings_repo.get_bool("vibration_enabled", True),
                key="set_vibration",
            )
            if st.form_submit_button("Save"):
                self.settings_repo.set_text("language", language)
                self.settings_repo.set_text("weight_unit", unit)
                self.settings_repo.set_int("rest_default_seconds", int(rest))
                self.settings_repo.set_bool("sound_enabled", sound)
                self.settings_repo.set_bool("vibration_enabled", vibration)
                st.success("Settings saved")

    def run(self) -> None:
        st.title("PituGym")
        session = self.session
        if session is not None:
            self._session_screen(session)
            if (
                self.session is not None
                and not self.session.closed
                and os.environ.get("TEST_MODE") != "1"
            ):
                time.sleep(1)
                st.rerun()
            return
        labels = ["Plans", "History", "Body", "Goals", "Payments", "Settings"]
        tabs = st.tabs([self._t(label) for label in labels])
        with tabs[0]:
            self._plans_tab()
        with tabs[1]:
            self._history_tab()
        with tabs[2]:
            self._body_tab()
        with tabs[3]:
            self._goals_tab()
        with tabs[4]:
            self._payments_tab()
        with tabs[5]:
            self._settings_tab()


if __name__ == "__main__":
    db_path = os.environ.get("DB_PATH", "pitugym.db")
    yaml_path = os.environ.get("YAML_PATH", "settings.yaml")
    PituGymApp(db_path=db_path, yaml_path=yaml_path).run()
