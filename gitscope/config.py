from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "gitscope"
    APP_VERSION: str = "1.0.0"
    ENV: str = "dev"  # Environment: "dev", "staging", "prod"
    LOG_LEVEL: Optional[str] = None  # Overrides the ENV-derived level when set

    # Database (MongoDB)
    MONGODB_URI: str = "mongodb://localhost:27017"
    MONGODB_DB_NAME: str = "gitscope"

    # GitHub
    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_REQUEST_TIMEOUT_SECONDS: float = 60.0
    GITHUB_BACKOFF_SCHEDULE_SECONDS: List[float] = [60, 180, 360, 600, 900]

    # ==========================================================================
    # Worker Pool
    # ==========================================================================

    # Kept as raw strings: invalid values fall back to defaults instead of
    # failing startup (see gitscope.workers.manager.read_worker_counts).
    CLONE_WORKERS: Optional[str] = None
    COMMIT_WORKERS: Optional[str] = None
    PULL_REQUEST_WORKERS: Optional[str] = None
    STATS_WORKERS: Optional[str] = None

    WORKER_IDLE_SLEEP_SECONDS: float = 10.0  # No claimable job
    WORKER_ERROR_SLEEP_SECONDS: float = 5.0  # Claim raised

    # --- Git ---
    CLONE_BASE: str = "./clones"
    GIT_CLONE_ATTEMPTS: int = 3
    GIT_RETRY_DELAY_SECONDS: float = 2.0
    GIT_COMMAND_TIMEOUT_SECONDS: int = 1800

    # --- Statistics anti-noise filters ---
    STATS_MAX_COMMIT_CHANGES: int = 20000  # Drop commits above this many counted lines
    STATS_MAX_DELETION_ONLY: int = 5000  # Drop pure-deletion commits above this

    # --- Scheduler ---
    SCHEDULER_ENABLED: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
