from __future__ import annotations

import logging
import os
import re
import subprocess
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional

from gitscope.config import settings
from gitscope.core.exceptions import GitCommandError

logger = logging.getLogger(__name__)

# Field separator is load-bearing for parse_log_header
LOG_FORMAT = "--pretty=format:%H|%aN|%aE|%ad|%s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S %z"
SINCE_FORMAT = "%Y-%m-%d %H:%M:%S %z"

GIT_LOCK_FILES = (
    "index.lock",
    "MERGE_HEAD.lock",
    "CHERRY_PICK_HEAD.lock",
    "REBASE_HEAD.lock",
)
GIT_LOCK_DIRS = ("refs/heads", "refs/remotes")

_CREDENTIALS_RE = re.compile(r"(https?://)[^/@\s]+@")
_BRACE_RENAME_RE = re.compile(r"\{([^{}]*) => ([^{}]*)\}")


@dataclass
class LogHeader:
    sha: str
    author_name: str
    author_email: str
    date: datetime
    subject: str

    @property
    def is_merge(self) -> bool:
        return "merge" in self.subject.lower()


@dataclass
class NumstatEntry:
    additions: int
    deletions: int
    filename: str
    status: str
    previous_filename: Optional[str] = None

    @property
    def changes(self) -> int:
        return self.additions + self.deletions


def build_auth_url(clone_url: str, token: str) -> str:
    """Inject ``<token>@`` right after the https:// scheme."""
    if not clone_url.startswith("https://"):
        raise ValueError(f"Only https clone URLs can carry a token: {redact(clone_url)}")
    return clone_url.replace("https://", f"https://{token}@", 1)


def redact(text: str) -> str:
    """Strip credentials embedded in URLs."""
    return _CREDENTIALS_RE.sub(r"\1***@", text)


def _git_env() -> dict:
    env = dict(os.environ)
    # Never block on an interactive credential prompt
    env["GIT_TERMINAL_PROMPT"] = "0"
    return env


def run_git(cwd: Path | None, args: List[str], timeout: int | None = None) -> str:
    """Run a git command and return its stripped stdout."""
    timeout = timeout or settings.GIT_COMMAND_TIMEOUT_SECONDS
    safe_args = [redact(arg) for arg in args]
    try:
        result = subprocess.run(
            ["git"] + args,
            cwd=str(cwd) if cwd else None,
            capture_output=True,
            text=True,
            check=True,
            timeout=timeout,
            env=_git_env(),
        )
    except subprocess.CalledProcessError as exc:
        raise GitCommandError(safe_args, redact(exc.stderr or ""), exc.returncode) from None
    except subprocess.TimeoutExpired:
        raise GitCommandError(safe_args, f"timed out after {timeout}s") from None
    return result.stdout.strip()


def iter_git_lines(cwd: Path, args: List[str]) -> Iterator[str]:
    """Stream a git command's stdout line by line."""
    process = subprocess.Popen(
        ["git"] + args,
        cwd=str(cwd),
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        encoding="utf-8",
        errors="replace",
        env=_git_env(),
    )
    try:
        for line in process.stdout:
            yield line.rstrip("\r\n")
        stderr = process.stderr.read()
        returncode = process.wait()
    finally:
        if process.poll() is None:
            process.kill()
            process.wait()
        process.stdout.close()
        process.stderr.close()

    if returncode != 0:
        raise GitCommandError([redact(arg) for arg in args], redact(stderr), returncode)


def git_log_args(since: Optional[datetime] = None) -> List[str]:
    args = ["log", LOG_FORMAT, "--date=iso", "--numstat"]
    if since is not None:
        args.append(f"--since={since.strftime(SINCE_FORMAT)}")
    return args


def is_header_line(line: str) -> bool:
    return "|" in line


def parse_log_header(line: str) -> LogHeader:
    """
    Parse ``sha|name|email|date|subject``.

    The subject keeps any further ``|`` characters. Raises ValueError for
    short lines or unparsable dates.
    """
    parts = line.split("|", 4)
    if len(parts) < 5:
        raise ValueError(f"Expected 5 header fields, got {len(parts)}")
    sha, name, email, raw_date, subject = parts
    date = datetime.strptime(raw_date.strip(), LOG_DATE_FORMAT)
    return LogHeader(
        sha=sha.strip(),
        author_name=name.strip(),
        author_email=email.strip(),
        date=date,
        subject=subject,
    )


def _parse_count(value: str) -> int:
    # Binary files report "-" for both counts
    if value == "-":
        return 0
    count = int(value)
    if count < 0:
        raise ValueError(f"Negative line count {value}")
    return count


def _resolve_rename(path: str) -> tuple[str, Optional[str]]:
    """Return (new_path, old_path) for numstat rename notation."""
    if " => " not in path:
        return path, None
    if _BRACE_RENAME_RE.search(path):
        new = _BRACE_RENAME_RE.sub(lambda m: m.group(2), path)
        old = _BRACE_RENAME_RE.sub(lambda m: m.group(1), path)
        return new.replace("//", "/"), old.replace("//", "/")
    old, new = path.split(" => ", 1)
    return new, old


def file_status(additions: int, deletions: int) -> str:
    if additions > 0 and deletions == 0:
        return "added"
    if additions == 0 and deletions > 0:
        return "removed"
    return "modified"


def parse_numstat_line(line: str) -> Optional[NumstatEntry]:
    """
    Parse ``<add> <del> <path>``.

    Returns None for lines naming no usable file. Raises ValueError for
    malformed counts.
    """
    parts = line.split(None, 2)
    if len(parts) < 3:
        raise ValueError(f"Malformed numstat line: {line!r}")
    raw_add, raw_del, path = parts
    path = path.strip()
    if not path or path == "-":
        return None

    additions = _parse_count(raw_add)
    deletions = _parse_count(raw_del)
    filename, previous = _resolve_rename(path)
    status = "renamed" if previous is not None else file_status(additions, deletions)
    return NumstatEntry(
        additions=additions,
        deletions=deletions,
        filename=filename,
        status=status,
        previous_filename=previous,
    )


def remove_git_lock_files(repo_path: Path) -> List[Path]:
    """Delete stale lock files a killed git process left under .git/."""
    git_dir = repo_path / ".git"
    candidates = [git_dir / name for name in GIT_LOCK_FILES]
    for sub_dir in GIT_LOCK_DIRS:
        ref_dir = git_dir / sub_dir
        if ref_dir.is_dir():
            candidates.extend(ref_dir.rglob("*.lock"))

    removed = []
    for lock in candidates:
        if lock.is_file():
            try:
                lock.unlink()
                removed.append(lock)
            except OSError as e:
                logger.warning(f"Could not remove git lock {lock}: {e}")
    if removed:
        logger.info(f"Removed {len(removed)} stale git lock file(s) in {repo_path}")
    return removed
