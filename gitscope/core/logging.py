"""Process-wide logging setup."""

import logging

from gitscope.config import settings

DEV_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
PROD_FORMAT = "%(levelname)s | %(message)s"


def setup_logging(env: str | None = None, level: str | None = None) -> None:
    # ENV=dev: INFO level with detailed format (default)
    # ENV=prod/staging: WARNING level, minimal logs
    env = (env or settings.ENV).lower()
    is_dev = env == "dev"

    log_level = logging.INFO if is_dev else logging.WARNING
    override = level or settings.LOG_LEVEL
    if override:
        log_level = logging.getLevelName(override.upper())
        if not isinstance(log_level, int):
            log_level = logging.INFO

    logging.basicConfig(
        level=log_level,
        format=DEV_FORMAT if is_dev else PROD_FORMAT,
        datefmt="%H:%M:%S",
    )

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def log_ctx(worker_id: str, job_id: object | None = None) -> str:
    """Bracketed prefix used by worker log lines."""
    if job_id is None:
        return f"[{worker_id}]"
    return f"[{worker_id}][job={job_id}]"
