"""Exceptions raised by the job pipeline."""

from __future__ import annotations


class GitscopeError(Exception):
    """Base exception for pipeline failures."""


class PreconditionError(GitscopeError):
    """Raised when a job is missing an input it cannot run without."""


class JobDependencyError(GitscopeError):
    """Raised when a job references an unknown dependency or forms a cycle."""


class JobConflictError(GitscopeError):
    """Raised when a repository already has an active job of the same type."""


class GitCommandError(GitscopeError):
    """Raised when a git subprocess exits non-zero or times out."""

    def __init__(self, command: list[str], stderr: str = "", returncode: int | None = None):
        self.command = command
        self.stderr = (stderr or "").strip()
        self.returncode = returncode
        message = f"git {' '.join(command)} failed"
        if returncode is not None:
            message += f" (exit {returncode})"
        if self.stderr:
            message += f": {self.stderr}"
        super().__init__(message)
