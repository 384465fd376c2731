from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from .base import BaseEntity, PyObjectId


class FileStatus(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"
    RENAMED = "renamed"


class Commit(BaseEntity):
    github_repository_id: PyObjectId
    sha: str = Field(..., description="Commit SHA, unique across the store")
    message: str = ""
    author_name: str = ""
    author_email: Optional[str] = None
    author_person_id: Optional[PyObjectId] = None
    commit_date: datetime
    is_merge_commit: bool = False

    # Aggregates flushed at end of each log entry; equal the sum over files
    additions: int = 0
    deletions: int = 0
    changes: int = 0


class CommitFile(BaseEntity):
    commit_id: PyObjectId
    filename: str
    status: str = FileStatus.MODIFIED.value
    additions: int = 0
    deletions: int = 0
    changes: int = 0
