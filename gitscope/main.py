"""Command-line entry point: run the pipeline or enqueue work."""

import argparse
import logging
import signal
import threading
from typing import List, Optional

from bson import ObjectId

from gitscope.config import settings
from gitscope.core.logging import setup_logging
from gitscope.database.ensure_indexes import ensure_indexes
from gitscope.database.mongo import close_client, get_database
from gitscope.services.job_service import JobService
from gitscope.services.scheduler_service import SchedulerService
from gitscope.workers.manager import WorkerManager

logger = logging.getLogger(__name__)


def _object_id(value: str) -> ObjectId:
    if not ObjectId.is_valid(value):
        raise argparse.ArgumentTypeError(f"not a valid id: {value}")
    return ObjectId(value)


def run(args: argparse.Namespace) -> int:
    db = get_database()
    ensure_indexes(db)

    manager = WorkerManager(db)
    scheduler = SchedulerService(db) if settings.SCHEDULER_ENABLED and not args.no_scheduler else None

    shutdown = threading.Event()

    def _handle_signal(signum, _frame):
        logger.info(f"Received signal {signum}, shutting down")
        shutdown.set()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    manager.start_all()
    if scheduler:
        scheduler.start()

    try:
        while not shutdown.wait(1.0):
            pass
    finally:
        if scheduler:
            scheduler.stop(timeout=5)
        manager.stop_all()
        close_client()
    return 0


def enqueue(args: argparse.Namespace) -> int:
    db = get_database()
    service = JobService(db)
    if args.repository:
        jobs = service.create_chain(args.project_id, args.repository)
        print(f"Enqueued {len(jobs)} jobs for repository {args.repository}")
    else:
        chains = service.create_chains_for_tracked_repositories(args.project_id)
        print(f"Enqueued {chains} job chains for project {args.project_id}")
    close_client()
    return 0


def status(args: argparse.Namespace) -> int:
    db = get_database()
    counts = JobService(db).summarize_project_jobs(args.project_id)
    for name, count in counts.items():
        print(f"{name:<12} {count}")
    close_client()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gitscope", description=settings.APP_NAME)
    parser.add_argument("--log-level", default=None, help="Override the ENV-derived log level")
    sub = parser.add_subparsers(dest="command", required=True)

    run_parser = sub.add_parser("run", help="Start the worker pool and hourly scheduler")
    run_parser.add_argument("--no-scheduler", action="store_true", help="Do not start the scheduler")
    run_parser.set_defaults(func=run)

    enqueue_parser = sub.add_parser("enqueue", help="Enqueue clone/commit/pull_request/stats chains")
    enqueue_parser.add_argument("project_id", type=_object_id)
    enqueue_parser.add_argument("--repository", type=_object_id, help="Project repository id")
    enqueue_parser.set_defaults(func=enqueue)

    status_parser = sub.add_parser("status", help="Show job counts per status for a project")
    status_parser.add_argument("project_id", type=_object_id)
    status_parser.set_defaults(func=status)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level=args.log_level)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
