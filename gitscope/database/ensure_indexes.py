"""Database index management for MongoDB collections."""

import logging
from typing import List, Tuple

from pymongo.database import Database
from pymongo.errors import OperationFailure

logger = logging.getLogger(__name__)

# (collection, keys, name, unique)
INDEXES: List[Tuple[str, list, str, bool]] = [
    # Natural keys backing upsert-by-key and race-safe inserts
    ("commits", [("sha", 1)], "commit_sha_unique", True),
    ("github_people", [("github_user_id", 1)], "github_user_id_unique", True),
    ("people", [("primary_email", 1)], "person_primary_email_unique", True),
    (
        "project_github_people",
        [("project_id", 1), ("github_person_id", 1), ("is_deleted", 1)],
        "project_github_person_unique",
        True,
    ),
    (
        "people_statistics",
        [("project_id", 1), ("github_repository_id", 1), ("github_person_id", 1), ("stat_date", 1)],
        "people_statistics_natural_key",
        True,
    ),
    ("pull_requests", [("github_pr_id", 1)], "github_pr_id_unique", True),
    ("pr_reviews", [("github_review_id", 1)], "github_review_id_unique", True),
    (
        "github_person_emails",
        [("project_id", 1), ("github_person_id", 1)],
        "github_person_email_by_person_unique",
        True,
    ),
    (
        "github_person_emails",
        [("project_id", 1), ("person_id", 1)],
        "github_person_email_by_email_unique",
        True,
    ),
    ("email_merges", [("project_id", 1), ("source_email", 1)], "email_merge_source_unique", True),
    ("score_settings", [("project_id", 1)], "score_settings_project_unique", True),
    ("project_update_settings", [("project_id", 1)], "update_settings_project_unique", True),
    ("working_hours_settings", [("project_id", 1)], "working_hours_project_unique", True),
    # Query paths
    ("jobs", [("job_type", 1), ("status", 1), ("created_at", 1)], "job_claim_idx", False),
    ("jobs", [("depends_on", 1)], "job_depends_on_idx", False),
    ("jobs", [("project_id", 1), ("created_at", 1)], "job_project_idx", False),
    ("commit_files", [("commit_id", 1)], "commit_file_commit_idx", False),
    ("commits", [("github_repository_id", 1), ("commit_date", -1)], "commit_repo_date_idx", False),
    ("pull_requests", [("github_repository_id", 1), ("github_created_at", -1)], "pr_repo_created_idx", False),
    ("pr_reviews", [("github_repository_id", 1)], "pr_review_repo_idx", False),
]


def ensure_indexes(db: Database) -> None:
    """
    Ensure all required indexes exist.

    Called on startup. Unique indexes are load-bearing: the pipeline relies on
    DuplicateKeyError to detect concurrent inserts of the same natural key.
    """
    for collection_name, keys, name, unique in INDEXES:
        try:
            db[collection_name].create_index(keys, unique=unique, name=name)
            logger.debug(f"Created index: {name}")
        except OperationFailure as e:
            # Index may already exist with different options
            if "already exists" not in str(e):
                logger.warning(f"Failed to create {name} index: {e}")
    logger.info("Database indexes ensured successfully")
