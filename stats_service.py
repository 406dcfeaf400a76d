from __future__ import annotations
from typing import Dict, List, Optional
from db import (
    PlanRepository,
    WorkoutLogRepository,
    BodyMetricRepository,
    GoalItemRepository,
)
from session_service import total_volume
from tools import MathTools


class StatisticsService:
    """Compute workout statistics for the dashboard and history views."""

    def __init__(
        self,
        plan_repo: PlanRepository,
        log_repo: WorkoutLogRepository,
        metric_repo: "BodyMetricRepository" | None = None,
        goal_repo: "GoalItemRepository" | None = None,
    ) -> None:
        self.plans = plan_repo
        self.logs = log_repo
        self.metrics = metric_repo
        self.goals = goal_repo

    def dashboard(self) -> Dict[str, object]:
        """Return plan totals, average frequency and latest body weight."""
        plans = self.plans.fetch_all_plans()
        total_exercises = sum(len(d.exercises) for p in plans for d in p.days)
        freqs = [p.frequency for p in plans]
        avg = f"{sum(freqs) / len(freqs):.1f}" if freqs else "0"
        latest = (
            self.metrics.fetch_latest_weight() if self.metrics is not None else None
        )
        return {
            "total_plans": len(plans),
            "total_exercises": total_exercises,
            "avg_frequency": avg,
            "latest_weight": latest,
        }

    def home(self) -> Dict[str, float]:
        """Session count, volume of the last seven sessions, weight and goal trend."""
        logs = self.logs.fetch_all_logs()
        weekly = sum(log.total_volume for log in logs[:7])
        delta = 0.0
        if self.metrics is not None:
            history = self.metrics.fetch_history()
            if len(history) >= 2:
                delta = round(history[-1]["weight"] - history[0]["weight"], 1)
        progress = self.goals.progress() if self.goals is not None else 0
        return {
            "total_sessions": len(logs),
            "weekly_volume": round(weekly, 2),
            "weight_delta": delta,
            "goal_progress": progress,
        }

    def history_volume(
        self, start_date: Optional[str] = None, end_date: Optional[str] = None
    ) -> List[Dict[str, float]]:
        """Volume per logged session, oldest first."""
        logs = self.logs.fetch_all_logs(start_date, end_date)
        return [
            {"id": log.id, "date": log.date[:10], "volume": round(log.total_volume, 2)}
            for log in reversed(logs)
        ]

    def exercise_progress(self, name: str) -> List[Dict[str, float]]:
        """Best weight, estimated 1RM and volume of ``name`` per session."""
        result = []
        for log in reversed(self.logs.fetch_all_logs()):
            match = next((ex for ex in log.exercises if ex.name == name), None)
            if match is None:
                continue
            result.append(
                {
                    "date": log.date[:10],
                    "max_weight": max((s.weight for s in match.sets), default=0.0),
                    "est_1rm": round(
                        max(
                            (MathTools.epley_1rm(s.weight, s.reps) for s in match.sets),
                            default=0.0,
                        ),
                        1,
                    ),
                    "volume": round(total_volume([match]), 2),
                }
            )
        return result

    def exercise_names(self) -> List[str]:
        return self.logs.exercise_names()
