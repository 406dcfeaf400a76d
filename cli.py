import argparse
import datetime
import json
import logging
import shutil

from db import (
    PlanRepository,
    WorkoutLogRepository,
    BodyMetricRepository,
    GoalItemRepository,
    PaymentRepository,
)
from alerts import encode_wav, synthesize_beeps
from session_service import parse_rest_duration
from tools import WeightConverter
from workout_types import PlannedExercise, WorkoutDay, WorkoutLog, WorkoutPlan

logger = logging.getLogger(__name__)


def export_data(db_path: str, fmt: str, out_path: str) -> None:
    """Write every plan, log, metric, goal and payment as JSON, or the logs as CSV."""
    logs = WorkoutLogRepository(db_path)
    if fmt == "csv":
        data = logs.export_csv()
    else:
        data = json.dumps(
            {
                "plans": [
                    p.model_dump(mode="json")
                    for p in PlanRepository(db_path).fetch_all_plans()
                ],
                "logs": [log.model_dump(mode="json") for log in logs.fetch_all_logs()],
                "payments": PaymentRepository(db_path).fetch_all_payments(),
                "goals": GoalItemRepository(db_path).fetch_all_goals(),
                "metrics": BodyMetricRepository(db_path).fetch_history(),
            },
            indent=2,
        )
    with open(out_path, "w", encoding="utf-8") as f:
        f.write(data)


def _unique_ids(items: list, kind: str) -> None:
    ids = [item.id for item in items]
    if len(ids) != len(set(ids)):
        raise ValueError(f"duplicate {kind} id in backup")


def parse_backup(data: dict) -> dict:
    """Validate a JSON export without touching the database."""
    if not isinstance(data, dict):
        raise ValueError("backup must be a JSON object")
    try:
        plans = [WorkoutPlan(**p) for p in data.get("plans", [])]
        logs = [WorkoutLog(**log) for log in data.get("logs", [])]
        metrics = [
            (m["date"], m["weight"], m.get("body_fat"), m.get("muscle_mass"), m.get("notes"))
            for m in data.get("metrics", [])
        ]
        goals = [
            (g["title"], g.get("category", "other"), g.get("target_date"), bool(g.get("completed")))
            for g in data.get("goals", [])
        ]
        payments = [
            (p["amount"], p["date"], p["expiry_date"], p.get("method", "Cash"), p.get("notes"))
            for p in data.get("payments", [])
        ]
        for plan in plans:
            PlanRepository.validate(plan)
        for m in metrics:
            BodyMetricRepository.validate(m[0], m[1], m[2])
        for g in goals:
            GoalItemRepository.validate(g[0], g[1], g[2])
        for p in payments:
            PaymentRepository.validate(p[0], p[1], p[2])
    except (KeyError, TypeError, AttributeError) as e:
        raise ValueError(f"malformed backup: {e!r}")
    _unique_ids(plans, "plan")
    _unique_ids([day for plan in plans for day in plan.days], "day")
    _unique_ids(logs, "log")
    return {
        "plans": plans,
        "logs": logs,
        "metrics": metrics,
        "goals": goals,
        "payments": payments,
    }


def import_data(json_path: str, db_path: str) -> None:
    """Replace the database contents with a JSON export.

    The whole file is validated first; a rejected backup leaves the
    database untouched.
    """
    with open(json_path, "r", encoding="utf-8") as f:
        data = parse_backup(json.load(f))
    plans = PlanRepository(db_path)
    logs = WorkoutLogRepository(db_path)
    metrics = BodyMetricRepository(db_path)
    goals = GoalItemRepository(db_path)
    payments = PaymentRepository(db_path)
    for repo in (plans, logs, metrics, goals, payments):
        repo.delete_all()
    for plan in data["plans"]:
        plans.create(plan)
    for log in reversed(data["logs"]):
        logs.save(log)
    for m in data["metrics"]:
        metrics.add(*m)
    for title, category, target_date, completed in data["goals"]:
        gid = goals.add(title, category, target_date)
        if completed:
            goals.toggle(gid)
    for p in reversed(data["payments"]):
        payments.add(*p)
    logger.info(
        "Imported %d plans and %d logs from %s",
        len(data["plans"]),
        len(data["logs"]),
        json_path,
    )


def backup_db(db_path: str, backup_path: str) -> None:
    shutil.copy(db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)


def write_beep(out_path: str, frequency: float = 880.0) -> None:
    with open(out_path, "wb") as f:
        f.write(encode_wav(synthesize_beeps(frequency=frequency)))


def demo_data(db_path: str) -> None:
    """Populate the database with a demo plan if empty."""
    plans = PlanRepository(db_path)
    if plans.count():
        print("Database already contains plans")
        return
    plans.create(
        WorkoutPlan(
            title="Full Body Demo",
            frequency=3,
            goal="strength",
            days=[
                WorkoutDay(
                    day_name="Monday",
                    exercises=[
                        PlannedExercise(name="Bench Press", sets=3, reps="8-10", rest="90s"),
                        PlannedExercise(name="Squat", sets=3, reps="6-8", rest="2'30\""),
                    ],
                ),
                WorkoutDay(
                    day_name="Thursday",
                    exercises=[
                        PlannedExercise(name="Deadlift", sets=3, reps="5", rest="3'"),
                        PlannedExercise(name="Pull Up", sets=3, reps="max", rest="60s"),
                    ],
                ),
            ],
        )
    )
    BodyMetricRepository(db_path).add(datetime.date.today().isoformat(), 80.0)
    print("Demo data inserted")


def main() -> None:
    parser = argparse.ArgumentParser(description="Utility commands")
    parser.add_argument("--log-level", default="WARNING")
    sub = parser.add_subparsers(dest="cmd", required=True)

    exp = sub.add_parser("export")
    exp.add_argument("--db", default="pitugym.db")
    exp.add_argument("--fmt", choices=["json", "csv"], default="json")
    exp.add_argument("--out", default=None)

    imp = sub.add_parser("import")
    imp.add_argument("--json", required=True)
    imp.add_argument("--db", default="pitugym.db")

    bkp = sub.add_parser("backup")
    bkp.add_argument("--db", default="pitugym.db")
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")
    rst.add_argument("--db", default="pitugym.db")

    demo = sub.add_parser("demo")
    demo.add_argument("--db", default="pitugym.db")

    beep = sub.add_parser("beep")
    beep.add_argument("--out", default="rest_over.wav")
    beep.add_argument("--frequency", type=float, default=880.0)

    rest = sub.add_parser("parse-rest")
    rest.add_argument("value")

    conv = sub.add_parser("convert")
    conv.add_argument("--weight", type=float, required=True)
    conv.add_argument("--unit", choices=["kg", "lb"], required=True)

    args = parser.parse_args()
    logging.basicConfig(level=args.log_level.upper())

    if args.cmd == "export":
        out = args.out or f"pitugym_backup_{datetime.date.today().isoformat()}.{args.fmt}"
        export_data(args.db, args.fmt, out)
    elif args.cmd == "import":
        import_data(args.json, args.db)
    elif args.cmd == "backup":
        backup_db(args.db, args.out)
    elif args.cmd == "restore":
        restore_db(args.src, args.db)
    elif args.cmd == "demo":
        demo_data(args.db)
    elif args.cmd == "beep":
        write_beep(args.out, args.frequency)
    elif args.cmd == "parse-rest":
        print(parse_rest_duration(args.value))
    elif args.cmd == "convert":
        if args.unit == "kg":
            print(f"{args.weight} kg = {WeightConverter.kg_to_lb(args.weight)} lb")
        else:
            print(f"{args.weight} lb = {WeightConverter.lb_to_kg(args.weight)} kg")


if __name__ == "__main__":
    main()
