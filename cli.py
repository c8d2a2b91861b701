import argparse
import datetime
import json
import logging
import shutil
import sys

from config import db_path_from_env, settings_path_from_env, log_level_from_env
from errors import ProgressionError
from rest_api import ProgressionAPI

logger = logging.getLogger(__name__)


def backup_db(db_path: str, backup_path: str) -> None:
    shutil.copy(db_path, backup_path)
    logger.info("backed up %s to %s", db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)
    logger.info("restored %s from %s", db_path, backup_path)


def demo_data(db_path: str, yaml_path: str) -> None:
    """Populate the database with demo rules and sessions if empty."""
    api = ProgressionAPI(db_path=db_path, yaml_path=yaml_path)
    if api.progression.list_rules():
        print("Database already contains progression rules")
        return
    api.progression.create_rule("benchpress", 5, 0.15, 2)
    api.progression.create_rule("squat", 10, 0.15, 3)
    today = datetime.datetime.now(datetime.timezone.utc).date()
    for offset, (exercise, weight) in enumerate(
        [("benchpress", 185), ("squat", 225), ("benchpress", 185)]
    ):
        day = today - datetime.timedelta(days=4 - offset * 2)
        sid = api.tracking.start_session("demo", day.isoformat())
        api.tracking.record_exercise(sid, exercise, weight, 3, 5)
    print("Demo data inserted")


def _print(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def _run(args: argparse.Namespace) -> None:
    if args.cmd == "serve":
        import uvicorn

        api = ProgressionAPI(args.db, args.yaml, rate_limit=args.rate_limit)
        uvicorn.run(api.app, host=args.host, port=args.port)
        return
    if args.cmd == "backup":
        backup_db(args.db, args.out)
        return
    if args.cmd == "restore":
        restore_db(args.src, args.db)
        return
    if args.cmd == "demo":
        demo_data(args.db, args.yaml)
        return

    api = ProgressionAPI(args.db, args.yaml)
    if args.cmd == "add-rule":
        rule = api.progression.create_rule(
            args.exercise, args.increment, args.deload_threshold, args.target_sessions
        )
        _print(rule.to_dict())
    elif args.cmd == "suggest":
        suggestion = api.progression.suggest_weight(
            args.user, args.exercise, args.weight, args.sets, args.reps
        )
        _print(suggestion.to_dict())
    elif args.cmd == "record":
        _print(api.progression.record_progression(args.user, args.exercise, args.weight).to_dict())
    elif args.cmd == "volume":
        _print(
            api.volume.update_volume(
                args.user, args.exercise, args.sets, args.reps, args.weight, args.week
            )
        )
    elif args.cmd == "balance":
        _print(api.volume.check_balance(args.user, args.week))
    elif args.cmd == "suggest-workouts":
        suggestions = api.recommender.get_suggested_workouts(
            args.user, args.limit, args.lookback_days
        )
        _print([s.to_dict() for s in suggestions])


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Progression and volume balance tools")
    parser.add_argument("--db", default=db_path_from_env())
    parser.add_argument("--yaml", default=settings_path_from_env())
    sub = parser.add_subparsers(dest="cmd", required=True)

    srv = sub.add_parser("serve")
    srv.add_argument("--host", default="127.0.0.1")
    srv.add_argument("--port", type=int, default=8000)
    srv.add_argument("--rate-limit", type=int, default=None)

    rule = sub.add_parser("add-rule")
    rule.add_argument("exercise")
    rule.add_argument("--increment", type=float, required=True)
    rule.add_argument("--deload-threshold", type=float, required=True)
    rule.add_argument("--target-sessions", type=int, required=True)

    sug = sub.add_parser("suggest")
    sug.add_argument("user")
    sug.add_argument("exercise")
    sug.add_argument("--weight", type=float, required=True)
    sug.add_argument("--sets", type=int, required=True)
    sug.add_argument("--reps", type=int, required=True)

    rec = sub.add_parser("record")
    rec.add_argument("user")
    rec.add_argument("exercise")
    rec.add_argument("--weight", type=float, required=True)

    vol = sub.add_parser("volume")
    vol.add_argument("user")
    vol.add_argument("exercise")
    vol.add_argument("--sets", type=int, required=True)
    vol.add_argument("--reps", type=int, required=True)
    vol.add_argument("--weight", type=float, required=True)
    vol.add_argument("--week", default=None)

    bal = sub.add_parser("balance")
    bal.add_argument("user")
    bal.add_argument("--week", default=None)

    wk = sub.add_parser("suggest-workouts")
    wk.add_argument("user")
    wk.add_argument("--limit", type=int, default=None)
    wk.add_argument("--lookback-days", type=int, default=None)

    bkp = sub.add_parser("backup")
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")

    sub.add_parser("demo")
    return parser


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=log_level_from_env())
    args = build_parser().parse_args(argv)
    try:
        _run(args)
    except ProgressionError as e:
        print(f"{e.kind}: {e.message}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
