"""Git operations — branch checks and overlay checkouts on bare repositories."""

from __future__ import annotations

import logging
import os
from enum import Enum
from pathlib import Path

from git import Git, Repo
from git.exc import (
    GitCommandError,
    GitCommandNotFound,
    InvalidGitRepositoryError,
    NoSuchPathError,
)

logger = logging.getLogger(__name__)


class BranchState(Enum):
    """Result of looking up the publish branch.

    ``UNKNOWN`` means the check itself could not run (missing repository,
    broken ref store, no git executable). Callers treat it exactly like
    ``ABSENT``: an ambiguous state never triggers a deployment.
    """

    PRESENT = "present"
    ABSENT = "absent"
    UNKNOWN = "unknown"

    @property
    def exists(self) -> bool:
        return self is BranchState.PRESENT


def check_branch(git_dir: str | Path, branch: str) -> BranchState:
    """Look up ``refs/heads/<branch>`` in a repository without modifying it."""
    try:
        with Repo(git_dir) as repo:
            repo.git.rev_parse("--verify", "--quiet", f"refs/heads/{branch}^{{commit}}")
    except (InvalidGitRepositoryError, NoSuchPathError, GitCommandNotFound) as e:
        logger.debug("Branch check failed for %s: %s", git_dir, e)
        return BranchState.UNKNOWN
    except GitCommandError as e:
        # rev-parse --verify --quiet exits 1 with no output when the ref is missing
        if e.status == 1:
            return BranchState.ABSENT
        logger.debug("Branch check failed for %s: %s", git_dir, e)
        return BranchState.UNKNOWN
    return BranchState.PRESENT


def branch_exists(git_dir: str | Path, branch: str) -> bool:
    """Two-way form of ``check_branch``: unknown collapses into absent."""
    return check_branch(git_dir, branch).exists


def list_tree(git_dir: str | Path, branch: str) -> set[str]:
    """Return the paths of every file tracked by ``branch``."""
    with Repo(git_dir) as repo:
        output = repo.git.ls_tree("-r", "-z", "--name-only", branch)
    return {name for name in output.split("\0") if name}


def prune_untracked(dest: Path, tracked: set[str]) -> list[str]:
    """Delete files under ``dest`` that are not in ``tracked``.

    Directories left empty are removed as well, ``dest`` itself excepted.
    Returns the relative paths of removed files.
    """
    removed = []
    for dirpath, dirnames, filenames in os.walk(dest, topdown=False):
        base = Path(dirpath)
        rel_base = base.relative_to(dest)
        # os.walk lists symlinks to directories as directories
        entries = filenames + [d for d in dirnames if (base / d).is_symlink()]
        for name in entries:
            rel = (rel_base / name).as_posix()
            if rel not in tracked:
                (base / name).unlink()
                removed.append(rel)
        if base != dest and not any(base.iterdir()):
            base.rmdir()
    return removed


def checkout_overlay(git_dir: str | Path, branch: str, dest: str | Path) -> bool:
    """Materialize ``branch`` of a bare repository into ``dest``.

    Creates ``dest`` if needed, removes every file the branch does not
    track, then writes the branch tree with ``git restore --no-overlay``.
    Failures are logged and reported as ``False``; nothing is rolled back.
    """
    dest = Path(dest)
    try:
        dest.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error("Error updating site: %s", e)
        return False

    try:
        removed = prune_untracked(dest, list_tree(git_dir, branch))
        if removed:
            logger.debug("Removed %d stale files from %s", len(removed), dest)

        worktree = Git(str(dest))
        worktree.update_environment(
            GIT_DIR=str(Path(git_dir).resolve()),
            GIT_WORK_TREE=str(dest.resolve()),
        )
        worktree.restore("--source", branch, "--worktree", "--no-overlay", "--", ".")
    except (
        GitCommandError,
        GitCommandNotFound,
        InvalidGitRepositoryError,
        NoSuchPathError,
        OSError,
    ) as e:
        logger.error("Error updating site: %s", e)
        return False
    return True


class GitSourceControl:
    """Source-control collaborator used by the sync engine."""

    def branch_state(self, git_dir: Path, branch: str) -> BranchState:
        return check_branch(git_dir, branch)

    def checkout_overlay(self, git_dir: Path, branch: str, dest: Path) -> bool:
        return checkout_overlay(git_dir, branch, dest)
