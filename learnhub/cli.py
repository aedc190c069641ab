import argparse
import logging
from pathlib import Path

import uvicorn

from learnhub.database import SessionLocal, init_db
from learnhub.logging_setup import setup_console_logging
from learnhub.services.auth_service import purge_expired_sessions
from learnhub.services.course_service import import_course
from learnhub.services.scheduler_service import sweep_expired_attempts
from learnhub.utils import parse_iso_timestamp, read_json_file, utc_now

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="learnhub", description="Learnhub administration")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create database tables")

    import_parser = commands.add_parser("import", help="Import a course from a JSON file")
    import_parser.add_argument("file", type=Path, help="Path to course JSON")

    sweep_parser = commands.add_parser(
        "sweep", help="Submit expired attempts and drop expired sessions"
    )
    sweep_parser.add_argument(
        "--now",
        type=str,
        default=None,
        help="ISO timestamp to use as the current time",
    )

    serve_parser = commands.add_parser("serve", help="Run the API server")
    serve_parser.add_argument("--host", type=str, default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)
    return parser.parse_args(argv)


def run_import(path: Path) -> int:
    payload = read_json_file(path, None)
    if not isinstance(payload, dict):
        logger.error("%s does not contain a course object", path)
        return 1
    db = SessionLocal()
    try:
        course_id = import_course(db, payload).id
    except ValueError as exc:
        db.rollback()
        logger.error("Invalid course file %s: %s", path, exc)
        return 1
    finally:
        db.close()
    print(f"Imported course {course_id}")
    return 0


def run_sweep(now_raw: str | None) -> int:
    now = utc_now()
    if now_raw is not None:
        now = parse_iso_timestamp(now_raw)
        if now is None:
            logger.error("Invalid --now timestamp: %s", now_raw)
            return 1
    db = SessionLocal()
    try:
        finalized = sweep_expired_attempts(db, now)
        sessions = purge_expired_sessions(db)
    finally:
        db.close()
    print(f"Submitted {finalized} expired attempts, removed {sessions} expired sessions")
    return 0


def main(argv: list[str] | None = None) -> int:
    setup_console_logging()
    args = parse_args(argv)

    if args.command == "serve":
        uvicorn.run("learnhub.app:app", host=args.host, port=args.port, log_level="info")
        return 0

    init_db()
    if args.command == "import":
        return run_import(args.file)
    if args.command == "sweep":
        return run_sweep(args.now)
    print("Database initialized")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
