"""
Centralized path configuration for local repository clones.

Layout:
    <CLONE_BASE>/
        <owner>/
            <repo>/         # Working clone of github.com/<owner>/<repo>
                .git/
"""

from pathlib import Path

from gitscope.config import settings


def get_clone_base() -> Path:
    return Path(settings.CLONE_BASE).expanduser().resolve()


def get_repo_path(full_name: str, base: Path | None = None) -> Path:
    """
    Local clone path for a repository.

    The full name keeps its slash so clones nest as <base>/<owner>/<repo>.
    """
    root = base if base is not None else get_clone_base()
    return root / full_name


def is_git_checkout(path: Path) -> bool:
    """A directory counts as an existing clone when it has a .git directory."""
    return (path / ".git").is_dir()
